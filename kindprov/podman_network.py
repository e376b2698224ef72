"""Management of the podman network that cluster nodes attach to."""

from __future__ import annotations

from kindprov import docker_network
from kindprov.base import RunError, command, output

# applied to each node container for identification
CLUSTER_LABEL_KEY = "io.x-k8s.kind.cluster"
# applied to each node container for categorization by role
NODE_ROLE_LABEL_KEY = "io.x-k8s.kind.role"

# default network; may be overridden by KIND_EXPERIMENTAL_PODMAN_NETWORK
FIXED_NETWORK_NAME = "kind"

_MAX_ATTEMPTS = 5
_REGEX_SPECIALS = set("\\.+*?()|[]{}^$")


def _quote_meta(text: str) -> str:
    return "".join("\\" + ch if ch in _REGEX_SPECIALS else ch for ch in text)


def ensure_network(name: str) -> None:
    """Create the network ``name`` unless it exists, preferring an IPv6 subnet."""
    if check_if_network_exists(name):
        return

    try:
        create_network(name, generate_ula_subnet_from_name(name, 0))
        return
    except RunError as err:
        # podman only creates IPv6 networks from 2.2.0 on
        if is_unknown_ipv6_flag_error(err) or is_ipv6_disabled_error(err):
            create_network(name, "")
            return
        if not is_pool_overlap_error(err):
            raise

    for attempt in range(1, _MAX_ATTEMPTS):
        try:
            create_network(name, generate_ula_subnet_from_name(name, attempt))
            return
        except RunError as err:
            if not is_pool_overlap_error(err):
                raise
    raise RuntimeError("exhausted attempts trying to find a non-overlapping subnet")


def create_network(name: str, ipv6_subnet: str) -> None:
    if not ipv6_subnet:
        command("podman", "network", "create", "-d=bridge", name).run()
        return
    command(
        "podman", "network", "create", "-d=bridge",
        "--ipv6", "--subnet", ipv6_subnet, name,
    ).run()


def check_if_network_exists(name: str) -> bool:
    try:
        output(command("podman", "network", "inspect", _quote_meta(name)))
    except RunError:
        return False
    return True


def _run_output(err: BaseException) -> bytes | None:
    return err.output if isinstance(err, RunError) else None


def is_unknown_ipv6_flag_error(err: BaseException) -> bool:
    out = _run_output(err)
    return out is not None and b"unknown flag: --ipv6" in out


def is_ipv6_disabled_error(err: BaseException) -> bool:
    out = _run_output(err)
    return out is not None and b"is ipv6 enabled in the kernel" in out


def is_pool_overlap_error(err: BaseException) -> bool:
    out = _run_output(err)
    if out is None:
        return False
    return (
        b"is already used on the host or by another config" in out
        or b"is being used by a network interface" in out
        or b"is already being used by a cni configuration" in out
    )


def generate_ula_subnet_from_name(name: str, attempt: int) -> str:
    """Derive a /64 subnet in fc00::/8 from a network name and probe attempt."""
    return docker_network.generate_ula_subnet_from_name(name, attempt)