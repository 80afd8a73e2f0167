# -*- coding: utf-8 -*-
"""observability.py

Structured event logs for the insights service
----------------------------------------------

Purpose
- Make report runs, cache misses and upstream failures easy to filter in the
  hosting platform's log search.
- Never let a logging problem fail a report.

Policy
- ``log_event`` writes one compact JSON line per event (``json_logs=False``
  falls back to ``event {fields}``).
- Access tokens and reflection text are never passed as fields.
"""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _safe_default(o: Any) -> str:
    try:
        return str(o)
    except Exception:
        return repr(o)


def _safe_json_dumps(obj: Dict[str, Any]) -> str:
    return json.dumps(obj, ensure_ascii=False, separators=(",", ":"), default=_safe_default)


def log_event(
    logger: logging.Logger,
    event: str,
    *,
    level: str = "info",
    json_logs: bool = True,
    **fields: Any,
) -> None:
    """Write a structured event log.

    - level: info|warning|error|debug
    - event: stable identifier (e.g., insights_report_complete)
    """
    payload: Dict[str, Any] = {
        "ts": _iso_now(),
        "event": event,
        **fields,
    }

    msg = _safe_json_dumps(payload) if json_logs else f"{event} {payload}"

    try:
        fn = getattr(logger, level, logger.info)
        fn(msg)
    except Exception:
        # Never crash caller due to logging failures
        try:
            logger.info(msg)
        except Exception:
            pass


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


def elapsed_ms(start_ms: float) -> int:
    try:
        return int(max(0.0, monotonic_ms() - float(start_ms)))
    except Exception:
        return 0
