"""Building the ``docker run`` arguments for node containers."""

from __future__ import annotations

import socket
from dataclasses import dataclass
from enum import Enum
from typing import List, Sequence, Union

from kindprov.base import RunError, command, output_lines


class MountPropagation(str, Enum):
    NONE = "None"
    HOST_TO_CONTAINER = "HostToContainer"
    BIDIRECTIONAL = "Bidirectional"


@dataclass
class Mount:
    """A host path mounted into a node container."""

    host_path: str
    container_path: str
    readonly: bool = False
    selinux_relabel: bool = False
    propagation: Union[MountPropagation, str] = MountPropagation.NONE


class PortMappingProtocol(str, Enum):
    TCP = "TCP"
    UDP = "UDP"
    SCTP = "SCTP"


@dataclass
class PortMapping:
    """A container port published on the host; port 0 picks a free one."""

    container_port: int
    host_port: int = 0
    listen_address: str = ""
    protocol: Union[PortMappingProtocol, str] = ""


class ClusterIPFamily(str, Enum):
    IPV4 = "ipv4"
    IPV6 = "ipv6"
    DUAL_STACK = "dual"


def _join_host_port(host: str, port: Union[int, str]) -> str:
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def _port_or_free_port(port: int, listen_address: str) -> int:
    if port:
        return port
    family = socket.AF_INET6 if ":" in listen_address else socket.AF_INET
    with socket.socket(family, socket.SOCK_STREAM) as sock:
        sock.bind((listen_address, 0))
        return sock.getsockname()[1]


def generate_mount_bindings(*args: Mount) -> List[str]:
    """Turn mounts into ``--volume=<host>:<container>[:options]`` arguments."""
    result = []
    for mount in args:
        bind = f"{mount.host_path}:{mount.container_path}"
        attrs = []
        if mount.readonly:
            attrs.append("ro")
        # relabel only when asked, or the volume gets a random MCS label
        if mount.selinux_relabel:
            attrs.append("Z")
        if mount.propagation == MountPropagation.BIDIRECTIONAL:
            attrs.append("rshared")
        elif mount.propagation == MountPropagation.HOST_TO_CONTAINER:
            attrs.append("rslave")
        if attrs:
            bind = f"{bind}:{','.join(attrs)}"
        result.append(f"--volume={bind}")
    return result


def generate_port_mappings(
    cluster_ip_family: Union[ClusterIPFamily, str], *args: PortMapping
) -> List[str]:
    """Turn port mappings into ``--publish=`` arguments."""
    result = []
    for mapping in args:
        listen_address = mapping.listen_address
        if not listen_address:
            if cluster_ip_family in (ClusterIPFamily.IPV4, ClusterIPFamily.DUAL_STACK):
                listen_address = "0.0.0.0"
            elif cluster_ip_family == ClusterIPFamily.IPV6:
                listen_address = "::"
            else:
                raise ValueError(f"unknown cluster IP family: {cluster_ip_family}")
        raw_protocol = mapping.protocol or PortMappingProtocol.TCP
        try:
            protocol = PortMappingProtocol(raw_protocol)
        except ValueError as err:
            raise ValueError(f"unknown port mapping protocol: {raw_protocol}") from err
        try:
            host_port = _port_or_free_port(mapping.host_port, listen_address)
        except OSError as err:
            raise RuntimeError("failed to get random host port for port mapping") from err
        binding = _join_host_port(listen_address, host_port)
        result.append(f"--publish={binding}:{mapping.container_port}/{protocol.value}")
    return result


def get_subnets(network_name: str) -> List[str]:
    """Subnets configured on the docker network ``network_name``."""
    fmt = '{{range (index (index . "IPAM") "Config")}}{{index . "Subnet"}} {{end}}'
    try:
        lines = output_lines(command("docker", "network", "inspect", "-f", fmt, network_name))
    except RunError as err:
        raise RuntimeError("failed to get subnets") from err
    if not lines:
        raise RuntimeError("failed to get subnets: no output")
    return lines[0].strip().split(" ")


def create_container(name: str, args: Sequence[str]) -> None:
    """Run a detached container called ``name`` with the given run arguments."""
    command("docker", "run", "--name", name, *args).run()