"""Making sure the node images a cluster needs are present in podman."""

from __future__ import annotations

import logging
import time
from typing import Tuple

from kindprov.base import RunError, command

logger = logging.getLogger(__name__)

_DIGEST_SEPARATOR = "@sha256:"
_DEFAULT_DOMAIN = "docker.io/"
_OFFICIAL_REPO_NAME = "library"


def sanitize_image(image: str) -> Tuple[str, str]:
    """Return a human readable name and the fully qualified pullable name.

    Podman does not assume a default registry, so short names are expanded
    to ``docker.io`` and official images get the ``library/`` prefix.
    """
    if _DIGEST_SEPARATOR in image:
        splits = image.split(_DIGEST_SEPARATOR)
        friendly = splits[0]
        remainder = splits[0].split(":")[0] + _DIGEST_SEPARATOR + splits[1]
    else:
        friendly = image
        remainder = image

    if "/" not in remainder:
        remainder = f"{_OFFICIAL_REPO_NAME}/{remainder}"

    slash = friendly.find("/")
    if slash == -1:
        return friendly, _DEFAULT_DOMAIN + remainder
    first = friendly[:slash]
    if not any(ch in first for ch in ".:") and first != "localhost":
        return friendly, _DEFAULT_DOMAIN + remainder
    return friendly, remainder


def pull_if_not_present(image: str, retries: int) -> bool:
    """Pull ``image`` unless it is present locally; report whether a pull happened."""
    try:
        command("podman", "inspect", "--type=image", image).run()
    except RunError:
        pass
    else:
        logger.debug("Image: %s present locally", image)
        return False
    pull(image, retries)
    return True


def pull(image: str, retries: int) -> None:
    """Pull ``image``, retrying up to ``retries`` times with a growing pause."""
    logger.debug("Pulling image: %s ...", image)
    try:
        command("podman", "pull", image).run()
        return
    except RunError as first:
        err = first
    for attempt in range(retries):
        time.sleep(attempt + 1)
        logger.debug("Trying again to pull image: %r ... %s", image, err)
        try:
            command("podman", "pull", image).run()
            return
        except RunError as again:
            err = again
    raise RuntimeError(f'failed to pull image "{image}"') from err