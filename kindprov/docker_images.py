"""Making sure the node images a cluster needs are present in docker."""

from __future__ import annotations

import logging
import time
from typing import Tuple

from kindprov.base import RunError, command

logger = logging.getLogger(__name__)

_DIGEST_SEPARATOR = "@sha256:"


def sanitize_image(image: str) -> Tuple[str, str]:
    """Return a human readable name and the pullable name for ``image``."""
    if _DIGEST_SEPARATOR in image:
        return image.split(_DIGEST_SEPARATOR)[0], image
    return image, image


def pull_if_not_present(image: str, retries: int) -> bool:
    """Pull ``image`` unless it is present locally; report whether a pull happened."""
    try:
        command("docker", "inspect", "--type=image", image).run()
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
        command("docker", "pull", image).run()
        return
    except RunError as first:
        err = first
    for attempt in range(retries):
        time.sleep(attempt + 1)
        logger.debug("Trying again to pull image: %r ... %s", image, err)
        try:
            command("docker", "pull", image).run()
            return
        except RunError as again:
            err = again
    raise RuntimeError(f'failed to pull image "{image}"') from err