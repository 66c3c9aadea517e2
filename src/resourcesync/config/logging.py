"""Console logging for the resourcesync commands."""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(*, level: int = logging.INFO, force: bool = False) -> None:
    """Send log records to stderr in a short, timestamped format.

    Every command reports progress through logging, so this runs once from the
    CLI entry point. ``force`` replaces handlers installed by an earlier call.
    """

    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt="%H:%M:%S", force=force)
    # httpx logs every request at INFO, which drowns link-check output
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
