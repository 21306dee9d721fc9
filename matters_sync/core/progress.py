"""Progress reporting sink."""

import logging
from typing import Callable

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int, int, str], None]


def log_progress(phase: str, current: int, total: int, message: str = "") -> None:
    """Default sink: progress goes to the debug log."""
    logger.debug("[%s %d/%d] %s", phase, current, total, message)
