import subprocess
from unittest import mock

import pytest

from kindprov import podman_images
from kindprov.podman_images import pull, pull_if_not_present, sanitize_image

DIGEST = "69860bda5563ac81e3c0057d654b5253219618a22ec3a346306239bba8cfa1a6"


class FakeRun:
    def __init__(self, results):
        self.results = list(results)
        self.calls = []

    def __call__(self, argv, **kwargs):
        self.calls.append(list(argv))
        rc, out, err = self.results.pop(0) if self.results else (0, b"", b"")
        return subprocess.CompletedProcess(argv, rc, out, err)


@pytest.mark.parametrize(
    "image,friendly,pull_name",
    [
        (f"kindest/node:v1.21.1@sha256:{DIGEST}", "kindest/node:v1.21.1",
         f"docker.io/kindest/node@sha256:{DIGEST}"),
        ("kindest/node:v1.21.1", "kindest/node:v1.21.1", "docker.io/kindest/node:v1.21.1"),
        (f"kindest/node@sha256:{DIGEST}", "kindest/node",
         f"docker.io/kindest/node@sha256:{DIGEST}"),
        (f"foo.bar/kindest/node:v1.21.1@sha256:{DIGEST}", "foo.bar/kindest/node:v1.21.1",
         f"foo.bar/kindest/node@sha256:{DIGEST}"),
        ("foo.bar/kindest/node:v1.21.1", "foo.bar/kindest/node:v1.21.1",
         "foo.bar/kindest/node:v1.21.1"),
        (f"foo.bar/kindest/node@sha256:{DIGEST}", "foo.bar/kindest/node",
         f"foo.bar/kindest/node@sha256:{DIGEST}"),
        (f"foo.bar/baz:quux@sha256:{DIGEST}", "foo.bar/baz:quux",
         f"foo.bar/baz@sha256:{DIGEST}"),
        ("foo.bar/baz:quux", "foo.bar/baz:quux", "foo.bar/baz:quux"),
        (f"foo.bar/baz@sha256:{DIGEST}", "foo.bar/baz", f"foo.bar/baz@sha256:{DIGEST}"),
        (f"baz:quux@sha256:{DIGEST}", "baz:quux", f"docker.io/library/baz@sha256:{DIGEST}"),
        ("baz:quux", "baz:quux", "docker.io/library/baz:quux"),
        (f"baz@sha256:{DIGEST}", "baz", f"docker.io/library/baz@sha256:{DIGEST}"),
    ],
)
def test_sanitize_image(image, friendly, pull_name):
    assert sanitize_image(image) == (friendly, pull_name)


def test_sanitize_image_localhost_registry_kept():
    assert sanitize_image("localhost/node:dev") == ("localhost/node:dev", "localhost/node:dev")


def test_pull_if_not_present_skips_local_image(monkeypatch):
    fake = FakeRun([(0, b"", b"")])
    monkeypatch.setattr(subprocess, "run", fake)
    assert pull_if_not_present("img:1", 4) is False
    assert fake.calls == [["podman", "inspect", "--type=image", "img:1"]]


def test_pull_if_not_present_pulls_missing_image(monkeypatch):
    fake = FakeRun([(1, b"", b"no such image"), (0, b"", b"")])
    monkeypatch.setattr(subprocess, "run", fake)
    assert pull_if_not_present("img:1", 4) is True
    assert fake.calls[1] == ["podman", "pull", "img:1"]


def test_pull_retries_then_fails(monkeypatch):
    fake = FakeRun([(1, b"", b"boom")] * 5)
    monkeypatch.setattr(subprocess, "run", fake)
    with mock.patch.object(podman_images.time, "sleep") as sleep:
        with pytest.raises(RuntimeError, match="failed to pull image"):
            pull("img:1", 4)
    assert len(fake.calls) == 5
    assert [c.args[0] for c in sleep.call_args_list] == [1, 2, 3, 4]


def test_pull_succeeds_on_retry(monkeypatch):
    fake = FakeRun([(1, b"", b"boom"), (0, b"", b"")])
    monkeypatch.setattr(subprocess, "run", fake)
    with mock.patch.object(podman_images.time, "sleep") as sleep:
        result = pull("img:1", 4)
    assert result is None
    assert len(fake.calls) == 2
    assert sleep.call_count == 1