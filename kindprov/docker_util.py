"""Probes of the local docker daemon's setup and capabilities."""

from __future__ import annotations

import csv
import io
import json
from typing import Union

from kindprov.base import ProviderInfo, RunError, command, output, output_lines


def is_available() -> bool:
    """True if a docker client is installed and answers ``docker -v``."""
    try:
        lines = output_lines(command("docker", "-v"))
    except RunError:
        return False
    if len(lines) != 1:
        return False
    return lines[0].startswith("Docker version")


def userns_remap() -> bool:
    """True if user namespace remapping is enabled in dockerd."""
    try:
        lines = output_lines(command("docker", "info", "--format", "'{{json .SecurityOptions}}'"))
    except RunError:
        return False
    return bool(lines) and "name=userns" in lines[0]


def mount_dev_mapper() -> bool:
    """True if the storage driver or backing filesystem needs /dev/mapper."""
    try:
        lines = output_lines(command("docker", "info", "-f", "{{.Driver}}"))
    except RunError:
        return False
    if len(lines) != 1:
        return False
    storage = lines[0].strip().lower()
    if storage in ("btrfs", "zfs", "devicemapper"):
        return True

    try:
        lines = output_lines(command("docker", "info", "-f", "{{json .DriverStatus }}"))
    except RunError:
        return False
    if len(lines) != 1:
        return False
    try:
        status = json.loads(lines[0])
    except ValueError:
        return False
    if not isinstance(status, list):
        return False
    for item in status:
        if isinstance(item, list) and len(item) >= 2 and item[0] == "Backing Filesystem":
            storage = str(item[1]).lower()
            break
    return storage in ("btrfs", "zfs", "xfs")


def mount_fuse() -> bool:
    """True for rootless docker, which needs /dev/fuse for fuse-overlayfs."""
    try:
        return info().rootless
    except (RunError, RuntimeError, ValueError, csv.Error):
        return False


def parse_info(raw: Union[str, bytes]) -> ProviderInfo:
    """Build a :class:`ProviderInfo` from ``docker info --format '{{json .}}'`` output."""
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("docker info output is not a JSON object")
    result = ProviderInfo(cgroup2=data.get("CgroupVersion") == "2")
    # with no cgroup driver the limit flags are meaningless
    if data.get("CgroupDriver") != "none":
        result.supports_memory_limit = bool(data.get("MemoryLimit"))
        result.supports_pids_limit = bool(data.get("PidsLimit"))
        result.supports_cpu_shares = bool(data.get("CPUShares"))
    for option in data.get("SecurityOptions") or []:
        # options look like "name=seccomp,profile=default" or "name=rootless"
        for row in csv.reader(io.StringIO(option), strict=True):
            if "name=rootless" in row:
                result.rootless = True
    return result


def info() -> ProviderInfo:
    """Query docker for its capabilities."""
    try:
        raw = output(command("docker", "info", "--format", "{{json .}}"))
    except RunError as err:
        raise RuntimeError("failed to get docker info") from err
    return parse_info(raw)