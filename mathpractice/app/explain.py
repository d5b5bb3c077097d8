from __future__ import annotations

"""Minimal tracing helpers (Explain Mode).

Enable with the CLI flag to get terse one-line JSON traces of session
milestones on the ``explain`` log channel.
"""

import json
import logging
from typing import Any, Dict

from ..logging_config import get_logger

_ENABLED = False
logger = get_logger("explain")


def enable(flag: bool = True) -> None:
    global _ENABLED
    _ENABLED = bool(flag)
    if _ENABLED:
        logger.setLevel(logging.INFO)


def enabled() -> bool:
    return _ENABLED


def trace(event: str, payload: Dict[str, Any] | None = None) -> None:
    if not _ENABLED:
        return
    try:
        data = json.dumps(payload or {}, separators=(",", ":"), ensure_ascii=False, default=str)
        logger.info("%s :: %s", event, data)
    except (TypeError, ValueError):
        logger.info(event)
