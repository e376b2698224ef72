"""A cluster node provider that drives the ``docker`` command line."""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from kindprov import docker_util
from kindprov.base import ProviderInfo, RunError, command, output_lines
from kindprov.docker_network import CLUSTER_LABEL_KEY
from kindprov.docker_node import DockerNode


class DockerProvider:
    """Lists, deletes and describes node containers managed through docker."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger(__name__)
        self._info: Optional[ProviderInfo] = None

    def __str__(self) -> str:
        return "docker"

    def list_clusters(self) -> List[str]:
        """Names of all clusters that have node containers, sorted and unique."""
        cmd = command(
            "docker", "ps",
            "-a",  # include stopped nodes
            "--filter", f"label={CLUSTER_LABEL_KEY}",
            "--format", f'{{{{.Label "{CLUSTER_LABEL_KEY}"}}}}',
        )
        try:
            lines = output_lines(cmd)
        except RunError as err:
            raise RuntimeError("failed to list clusters") from err
        return sorted(set(lines))

    def list_nodes(self, cluster: str) -> List[DockerNode]:
        """Nodes of ``cluster``, running or not."""
        cmd = command(
            "docker", "ps",
            "-a",
            "--filter", f"label={CLUSTER_LABEL_KEY}={cluster}",
            "--format", "{{.Names}}",
        )
        try:
            lines = output_lines(cmd)
        except RunError as err:
            raise RuntimeError("failed to list nodes") from err
        return [DockerNode(name) for name in lines]

    def delete_nodes(self, nodes: Sequence[object]) -> None:
        """Force-remove the node containers and their volumes."""
        if not nodes:
            return
        args = ["rm", "-f", "-v", *(str(node) for node in nodes)]
        try:
            command("docker", *args).run()
        except RunError as err:
            raise RuntimeError("failed to delete nodes") from err

    def info(self) -> ProviderInfo:
        """Runtime capabilities, queried once and then cached."""
        if self._info is None:
            self._info = docker_util.info()
        return self._info