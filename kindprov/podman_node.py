"""Cluster nodes backed by podman containers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import IO, Any, List, Optional, Sequence, Tuple

from kindprov.base import Cmd, RunError, command, output_lines
from kindprov.podman_network import NODE_ROLE_LABEL_KEY


@dataclass(frozen=True)
class PodmanNode:
    """A node identified by its container name."""

    name: str

    def __str__(self) -> str:
        return self.name

    def role(self) -> str:
        """Return the role label of the node container."""
        cmd = command(
            "podman", "inspect",
            "--format", f'{{{{ index .Config.Labels "{NODE_ROLE_LABEL_KEY}"}}}}',
            self.name,
        )
        try:
            lines = output_lines(cmd)
        except RunError as err:
            raise RuntimeError("failed to get role for node") from err
        if len(lines) != 1:
            raise RuntimeError(f"failed to get role for node: output lines {len(lines)} != 1")
        return lines[0]

    def ip(self) -> Tuple[str, str]:
        """Return the node's IPv4 and IPv6 addresses."""
        cmd = command(
            "podman", "inspect",
            "-f", "{{range .NetworkSettings.Networks}}{{.IPAddress}},{{.GlobalIPv6Address}}{{end}}",
            self.name,
        )
        try:
            lines = output_lines(cmd)
        except RunError as err:
            raise RuntimeError("failed to get container details") from err
        if len(lines) != 1:
            raise RuntimeError(f"file should only be one line, got {len(lines)} lines")
        ips = lines[0].split(",")
        if len(ips) != 2:
            raise RuntimeError(
                f"container addresses should have 2 values, got {len(ips)} values"
            )
        return ips[0], ips[1]

    def command(self, command: str, *args: str) -> "PodmanNodeCmd":
        """Build a command to run inside the node container."""
        return PodmanNodeCmd(self.name, command, args)

    def serial_logs(self, writer: IO[Any]) -> None:
        """Write the container's logs to ``writer``."""
        Cmd("podman", "logs", self.name).set_stdout(writer).set_stderr(writer).run()


class PodmanNodeCmd:
    """A command executed in a node container via ``podman exec``."""

    def __init__(
        self,
        name_or_id: str,
        command: str,
        args: Sequence[str] = (),
        timeout: Optional[float] = None,
    ) -> None:
        self.name_or_id = name_or_id
        self.command = command
        self.args = list(args)
        self.timeout = timeout
        self._env: List[str] = []
        self._stdin: Optional[IO[Any]] = None
        self._stdout: Optional[IO[Any]] = None
        self._stderr: Optional[IO[Any]] = None

    def set_env(self, *args: str) -> "PodmanNodeCmd":
        self._env = list(args)
        return self

    def set_stdin(self, stream: IO[Any]) -> "PodmanNodeCmd":
        self._stdin = stream
        return self

    def set_stdout(self, stream: IO[Any]) -> "PodmanNodeCmd":
        self._stdout = stream
        return self

    def set_stderr(self, stream: IO[Any]) -> "PodmanNodeCmd":
        self._stderr = stream
        return self

    def build_args(self) -> List[str]:
        """The arguments passed to ``podman``."""
        args = ["exec", "--privileged"]
        if self._stdin is not None:
            args.append("-i")
        for env in self._env:
            args += ["-e", env]
        args += [self.name_or_id, self.command, *self.args]
        return args

    def run(self) -> None:
        cmd = Cmd("podman", *self.build_args(), timeout=self.timeout)
        if self._stdin is not None:
            cmd.set_stdin(self._stdin)
        if self._stderr is not None:
            cmd.set_stderr(self._stderr)
        if self._stdout is not None:
            cmd.set_stdout(self._stdout)
        cmd.run()