"""Core primitives shared by the container providers.

A cluster node is anything with a ``name``, a ``role()`` and ``ip()`` lookup,
a ``command()`` factory returning a :class:`Cmd`-like object, and
``serial_logs(writer)``. Providers create, list and delete such nodes and
report their capabilities as a :class:`ProviderInfo`.
"""

from __future__ import annotations

import io
import subprocess
from dataclasses import dataclass
from typing import IO, Any, List, Optional, Sequence


@dataclass
class ProviderInfo:
    """Capabilities of the container runtime behind a provider."""

    rootless: bool = False
    cgroup2: bool = False
    supports_memory_limit: bool = False
    supports_pids_limit: bool = False
    supports_cpu_shares: bool = False


class RunError(Exception):
    """A command failed; carries its combined output and its stdout."""

    def __init__(
        self,
        command: Sequence[str],
        output: bytes = b"",
        stdout: bytes = b"",
        returncode: Optional[int] = None,
        reason: str = "",
    ) -> None:
        self.command = list(command)
        self.output = output
        self.stdout = stdout
        self.returncode = returncode
        detail = reason or f"exit status {returncode}"
        super().__init__(f'command "{" ".join(self.command)}" failed with error: {detail}')


def _write(stream: Optional[IO[Any]], data: bytes) -> None:
    if stream is None or not data:
        return
    try:
        stream.write(data)
    except TypeError:
        stream.write(data.decode(errors="replace"))


class Cmd:
    """A host command with optional stdin, stdout, stderr and environment."""

    def __init__(self, name: str, *args: str, timeout: Optional[float] = None) -> None:
        self.argv: List[str] = [name, *args]
        self.timeout = timeout
        self._env: Optional[List[str]] = None
        self._stdin: Optional[IO[Any]] = None
        self._stdout: Optional[IO[Any]] = None
        self._stderr: Optional[IO[Any]] = None

    def set_env(self, *args: str) -> "Cmd":
        """Replace the environment with ``KEY=VALUE`` entries."""
        self._env = list(args)
        return self

    def set_stdin(self, stream: IO[Any]) -> "Cmd":
        self._stdin = stream
        return self

    def set_stdout(self, stream: IO[Any]) -> "Cmd":
        self._stdout = stream
        return self

    def set_stderr(self, stream: IO[Any]) -> "Cmd":
        self._stderr = stream
        return self

    def run(self) -> None:
        """Run the command, raising :class:`RunError` if it fails."""
        kwargs: dict = {}
        if self._stdin is not None:
            data = self._stdin.read()
            kwargs["input"] = data.encode() if isinstance(data, str) else data
        else:
            kwargs["stdin"] = subprocess.DEVNULL
        if self._env is not None:
            kwargs["env"] = dict(item.partition("=")[::2] for item in self._env)
        try:
            proc = subprocess.run(
                self.argv,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                timeout=self.timeout,
                check=False,
                **kwargs,
            )
        except subprocess.TimeoutExpired as err:
            out = err.stdout or b""
            raise RunError(
                self.argv,
                output=out + (err.stderr or b""),
                stdout=out,
                reason=f"timed out after {self.timeout}s",
            ) from err
        except OSError as err:
            raise RunError(self.argv, reason=str(err)) from err
        stdout = proc.stdout or b""
        stderr = proc.stderr or b""
        _write(self._stdout, stdout)
        _write(self._stderr, stderr)
        if proc.returncode != 0:
            raise RunError(self.argv, stdout + stderr, stdout, proc.returncode)


def command(name: str, *args: str) -> Cmd:
    """Build a host command."""
    return Cmd(name, *args)


def output(cmd: Cmd) -> bytes:
    """Run ``cmd`` and return what it wrote to stdout."""
    buf = io.BytesIO()
    cmd.set_stdout(buf)
    cmd.run()
    return buf.getvalue()


def output_lines(cmd: Cmd) -> List[str]:
    """Run ``cmd`` and return its stdout split into lines."""
    lines = output(cmd).decode(errors="replace").split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line.removesuffix("\r") for line in lines]