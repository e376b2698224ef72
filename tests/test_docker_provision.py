import subprocess

import pytest

from kindprov.docker_provision import (
    ClusterIPFamily,
    Mount,
    MountPropagation,
    PortMapping,
    PortMappingProtocol,
    create_container,
    generate_mount_bindings,
    generate_port_mappings,
    get_subnets,
)


class FakeRun:
    def __init__(self, stdout=b"", returncode=0):
        self.stdout = stdout
        self.returncode = returncode
        self.calls = []

    def __call__(self, argv, **kwargs):
        self.calls.append(list(argv))
        return subprocess.CompletedProcess(argv, self.returncode, self.stdout, b"")


@pytest.fixture
def fake(monkeypatch):
    runner = FakeRun()
    monkeypatch.setattr(subprocess, "run", runner)
    return runner


def test_mount_plain():
    assert generate_mount_bindings(Mount("/host", "/ctr")) == ["--volume=/host:/ctr"]


def test_mount_all_options():
    mount = Mount("/host", "/ctr", readonly=True, selinux_relabel=True,
                  propagation=MountPropagation.BIDIRECTIONAL)
    assert generate_mount_bindings(mount) == ["--volume=/host:/ctr:ro,Z,rshared"]


def test_mount_host_to_container():
    mount = Mount("/h", "/c", propagation=MountPropagation.HOST_TO_CONTAINER)
    assert generate_mount_bindings(mount) == ["--volume=/h:/c:rslave"]


def test_port_mapping_ipv4_default_tcp():
    args = generate_port_mappings(ClusterIPFamily.IPV4, PortMapping(container_port=80, host_port=8080))
    assert args == ["--publish=0.0.0.0:8080:80/TCP"]


def test_port_mapping_ipv6_brackets():
    args = generate_port_mappings(
        ClusterIPFamily.IPV6,
        PortMapping(container_port=53, host_port=5353, protocol=PortMappingProtocol.UDP),
    )
    assert args == ["--publish=[::]:5353:53/UDP"]


def test_port_mapping_random_port():
    (arg,) = generate_port_mappings(
        ClusterIPFamily.DUAL_STACK, PortMapping(container_port=6443, listen_address="127.0.0.1")
    )
    prefix = "--publish=127.0.0.1:"
    assert arg.startswith(prefix) and arg.endswith(":6443/TCP")
    port = int(arg[len(prefix):].split(":")[0])
    assert 0 < port < 65536


def test_port_mapping_unknown_protocol():
    with pytest.raises(ValueError, match="unknown port mapping protocol"):
        generate_port_mappings(ClusterIPFamily.IPV4, PortMapping(80, 8080, protocol="ICMP"))


def test_port_mapping_unknown_family():
    with pytest.raises(ValueError, match="unknown cluster IP family"):
        generate_port_mappings("bogus", PortMapping(80, 8080))


def test_get_subnets(fake):
    fake.stdout = b"172.18.0.0/16 fc00:f853:ccd:e793::/64 \n"
    assert get_subnets("kind") == ["172.18.0.0/16", "fc00:f853:ccd:e793::/64"]
    assert fake.calls[0][:4] == ["docker", "network", "inspect", "-f"]
    assert fake.calls[0][-1] == "kind"


def test_get_subnets_failure(fake):
    fake.returncode = 1
    with pytest.raises(RuntimeError, match="failed to get subnets"):
        get_subnets("kind")


def test_create_container_arguments(fake):
    result = create_container("kind-lb", ["--detach", "image:tag"])
    assert result is None
    assert fake.calls == [["docker", "run", "--name", "kind-lb", "--detach", "image:tag"]]