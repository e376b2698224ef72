import io
import subprocess

import pytest

from kindprov.base import RunError
from kindprov.docker_network import NODE_ROLE_LABEL_KEY
from kindprov.docker_node import DockerNode, NodeCmd


class FakeRun:
    def __init__(self):
        self.calls = []
        self.inputs = []
        self.results = []

    def queue(self, stdout=b"", returncode=0, stderr=b""):
        self.results.append((returncode, stdout, stderr))

    def __call__(self, argv, **kwargs):
        self.calls.append(list(argv))
        self.inputs.append(kwargs.get("input"))
        if self.results:
            rc, out, err = self.results.pop(0)
        else:
            rc, out, err = 1, b"", b"unexpected call"
        return subprocess.CompletedProcess(argv, rc, out, err)


@pytest.fixture
def fake_run(monkeypatch):
    fake = FakeRun()
    monkeypatch.setattr(subprocess, "run", fake)
    return fake


def test_str_is_name():
    assert str(DockerNode("kind-control-plane")) == "kind-control-plane"


def test_role_reads_label(fake_run):
    fake_run.queue(stdout=b"worker\n")
    assert DockerNode("n1").role() == "worker"
    argv = fake_run.calls[0]
    assert argv[:2] == ["docker", "inspect"]
    assert argv[-1] == "n1"
    assert NODE_ROLE_LABEL_KEY in argv[3]


def test_role_rejects_multiple_lines(fake_run):
    fake_run.queue(stdout=b"a\nb\n")
    with pytest.raises(RuntimeError, match="output lines 2 != 1"):
        DockerNode("n1").role()


def test_role_wraps_command_failure(fake_run):
    fake_run.queue(returncode=1)
    with pytest.raises(RuntimeError, match="failed to get role for node") as info:
        DockerNode("n1").role()
    assert isinstance(info.value.__cause__, RunError)


def test_ip_splits_addresses(fake_run):
    fake_run.queue(stdout=b"172.18.0.2,fc00:f853:ccd:e793::2\n")
    assert DockerNode("n1").ip() == ("172.18.0.2", "fc00:f853:ccd:e793::2")


def test_ip_requires_two_values(fake_run):
    fake_run.queue(stdout=b"172.18.0.2\n")
    with pytest.raises(RuntimeError, match="should have 2 values"):
        DockerNode("n1").ip()


def test_ip_requires_one_line(fake_run):
    fake_run.queue(stdout=b"")
    with pytest.raises(RuntimeError, match="one line"):
        DockerNode("n1").ip()


def test_build_args_plain():
    cmd = DockerNode("n1").command("cat", "/etc/hosts")
    assert cmd.build_args() == ["exec", "--privileged", "n1", "cat", "/etc/hosts"]


def test_build_args_with_stdin_and_env():
    cmd = NodeCmd("n1", "sh", ["-c", "true"])
    cmd.set_env("A=1", "B=2").set_stdin(io.BytesIO(b"data"))
    assert cmd.build_args() == [
        "exec", "--privileged", "-i", "-e", "A=1", "-e", "B=2", "n1", "sh", "-c", "true",
    ]


def test_run_passes_stdin_and_collects_stdout(fake_run):
    fake_run.queue(stdout=b"hello")
    out = io.BytesIO()
    DockerNode("n1").command("cat").set_stdin(io.BytesIO(b"input")).set_stdout(out).run()
    assert out.getvalue() == b"hello"
    assert fake_run.inputs[0] == b"input"
    assert fake_run.calls[0][0] == "docker"


def test_run_raises_on_failure(fake_run):
    fake_run.queue(returncode=3, stderr=b"boom")
    with pytest.raises(RunError) as info:
        DockerNode("n1").command("false").run()
    assert info.value.returncode == 3


def test_serial_logs_writes_output(fake_run):
    fake_run.queue(stdout=b"boot\n", stderr=b"warn\n")
    buf = io.BytesIO()
    DockerNode("n1").serial_logs(buf)
    assert fake_run.calls[0] == ["docker", "logs", "n1"]
    assert b"boot" in buf.getvalue()
    assert b"warn" in buf.getvalue()