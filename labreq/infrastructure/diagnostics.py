"""Structured diagnostic events.

Services report what happened through :func:`log_event` instead of ad-hoc
log strings, so every line has the form ``event key=value ...`` and can be
grepped or parsed from ``app.log``.
"""

from __future__ import annotations

import json
import logging


def format_event(event: str, **fields: object) -> str:
    parts = [event]
    for key in sorted(fields):
        parts.append(f"{key}={json.dumps(fields[key], ensure_ascii=False, default=str)}")
    return " ".join(parts)


def log_event(logger: logging.Logger, level: int, event: str, **fields: object) -> None:
    if not logger.isEnabledFor(level):
        return
    logger.log(level, "%s", format_event(event, **fields))
