"""Docker node provider and Podman node, network and image helpers for container-based clusters."""

__version__ = "0.1.0"