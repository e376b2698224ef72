"""Management of the docker network that cluster nodes attach to."""

from __future__ import annotations

import hashlib
import ipaddress
import json
import struct
from dataclasses import dataclass, field
from typing import Dict, List

from kindprov.base import RunError, command, output, output_lines

# applied to each node container for identification
CLUSTER_LABEL_KEY = "io.x-k8s.kind.cluster"
# applied to each node container for categorization by role
NODE_ROLE_LABEL_KEY = "io.x-k8s.kind.role"

# default network; may be overridden by KIND_EXPERIMENTAL_DOCKER_NETWORK
FIXED_NETWORK_NAME = "kind"

_MAX_ATTEMPTS = 5
_REGEX_SPECIALS = set("\\.+*?()|[]{}^$")


def _quote_meta(text: str) -> str:
    return "".join("\\" + ch if ch in _REGEX_SPECIALS else ch for ch in text)


@dataclass
class NetworkInspectEntry:
    """The parts of ``docker network inspect`` output used for sorting."""

    id: str
    containers: Dict[str, Dict[str, str]] = field(default_factory=dict)

    @classmethod
    def from_json(cls, raw: dict) -> "NetworkInspectEntry":
        return cls(id=raw.get("Id", ""), containers=raw.get("Containers") or {})


def ensure_network(name: str) -> None:
    """Make sure exactly one docker network called ``name`` exists."""
    if remove_duplicate_networks(name):
        return

    mtu = get_default_network_mtu()
    try:
        create_network_no_duplicates(name, generate_ula_subnet_from_name(name, 0), mtu)
        return
    except RunError as err:
        if is_ipv6_unavailable_error(err):
            create_network_no_duplicates(name, "", mtu)
            return
        if not is_pool_overlap_error(err):
            raise
        # another process may have created the network meanwhile
        if check_if_network_exists(name):
            return

    for attempt in range(1, _MAX_ATTEMPTS):
        try:
            create_network_no_duplicates(name, generate_ula_subnet_from_name(name, attempt), mtu)
            return
        except RunError as err:
            if not is_pool_overlap_error(err):
                raise
            if check_if_network_exists(name):
                return
    raise RuntimeError("exhausted attempts trying to find a non-overlapping subnet")


def create_network_no_duplicates(name: str, ipv6_subnet: str, mtu: int) -> None:
    """Create the network, tolerating a concurrent creation, then deduplicate."""
    try:
        create_network(name, ipv6_subnet, mtu)
    except RunError as err:
        if not is_network_already_exists_error(err):
            raise
    remove_duplicate_networks(name)


def remove_duplicate_networks(name: str) -> bool:
    """Delete all but the preferred network named ``name``; report whether one exists."""
    networks = sorted_networks_with_name(name)
    if len(networks) > 1:
        try:
            delete_networks(*networks[1:])
        except RunError as err:
            if not is_only_error_no_such_network(err):
                raise
    return len(networks) > 0


def create_network(name: str, ipv6_subnet: str, mtu: int) -> None:
    args = [
        "network", "create", "-d=bridge",
        "-o", "com.docker.network.bridge.enable_ip_masquerade=true",
    ]
    if mtu > 0:
        args += ["-o", f"com.docker.network.driver.mtu={mtu}"]
    if ipv6_subnet:
        args += ["--ipv6", "--subnet", ipv6_subnet]
    args.append(name)
    command("docker", *args).run()


def get_default_network_mtu() -> int:
    """Return the MTU of docker's default bridge network, or 0 if unknown."""
    cmd = command(
        "docker", "network", "inspect", "bridge",
        "-f", '{{ index .Options "com.docker.network.driver.mtu" }}',
    )
    try:
        lines = output_lines(cmd)
    except RunError:
        return 0
    if len(lines) != 1:
        return 0
    try:
        return int(lines[0])
    except ValueError:
        return 0


def sorted_networks_with_name(name: str) -> List[str]:
    """IDs of networks named ``name``, the one to keep first."""
    ids = networks_with_name(name)
    if len(ids) < 2:
        return ids
    networks = inspect_networks(ids)
    sort_network_inspect_entries(networks)
    return [network.id for network in networks]


def sort_network_inspect_entries(networks: List[NetworkInspectEntry]) -> None:
    """Sort in place: networks with more containers first, then by ID."""
    networks.sort(key=lambda n: (-len(n.containers), n.id))


def inspect_networks(network_ids: List[str]) -> List[NetworkInspectEntry]:
    try:
        raw = output(command("docker", "network", "inspect", *network_ids))
    except RunError as err:
        # missing networks are simply absent from the result
        if not is_only_error_no_such_network(err):
            raise
        raw = err.stdout
    try:
        decoded = json.loads(raw)
    except ValueError as err:
        raise ValueError("failed to decode networks list") from err
    return [NetworkInspectEntry.from_json(entry) for entry in decoded or []]


def networks_with_name(name: str) -> List[str]:
    """IDs of networks whose name is exactly ``name``."""
    raw = output(command(
        "docker", "network", "ls",
        f"--filter=name=^{_quote_meta(name)}$",
        "--format={{.ID}}",
    ))
    cleaned = raw.decode(errors="replace").removesuffix("\n")
    if not cleaned:
        return []
    return cleaned.split("\n")


def check_if_network_exists(name: str) -> bool:
    raw = output(command(
        "docker", "network", "ls",
        f"--filter=name=^{_quote_meta(name)}$",
        "--format={{.Name}}",
    ))
    return raw.decode(errors="replace").startswith(name)


def _run_output(err: BaseException) -> bytes | None:
    return err.output if isinstance(err, RunError) else None


def is_ipv6_unavailable_error(err: BaseException) -> bool:
    out = _run_output(err)
    return out is not None and out.startswith(
        b"Error response from daemon: Cannot read IPv6 setup for bridge"
    )


def is_pool_overlap_error(err: BaseException) -> bool:
    out = _run_output(err)
    return out is not None and (
        out.startswith(b"Error response from daemon: Pool overlaps with other one on this address space")
        or b"networks have overlapping" in out
    )


def is_network_already_exists_error(err: BaseException) -> bool:
    out = _run_output(err)
    return (
        out is not None
        and out.startswith(b"Error response from daemon: network with name")
        and b"already exists" in out
    )


def is_only_error_no_such_network(err: BaseException) -> bool:
    """True if every error line in the failed command's output is "No such network"."""
    out = _run_output(err)
    if out is None:
        return False
    # only complete, newline-terminated lines are considered
    for line in out.split(b"\n")[:-1]:
        if line.startswith(b"Error: No such network:"):
            continue
        if line.startswith(b"Error: "):
            return False
    return True


def delete_networks(*args: str) -> None:
    command("docker", "network", "rm", *args).run()


def generate_ula_subnet_from_name(name: str, attempt: int) -> str:
    """Derive a /64 subnet in fc00::/8 from a network name and probe attempt."""
    digest = hashlib.sha1(name.encode() + struct.pack("<i", attempt)).digest()
    address = bytes([0xFC, 0x00]) + digest[2:8] + bytes(8)
    return str(ipaddress.IPv6Network((ipaddress.IPv6Address(address), 64)))