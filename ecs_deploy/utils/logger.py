"""Lightweight JSON logger utility for the plan compiler.

Emits structured logs carrying the stage and stack name when available, so
that synth output from several stages can be told apart.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, Optional

_CONTEXT_FIELDS = ("stage", "stack_name", "node_id", "kind")


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in _CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value:
                payload[field] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        payload["timestamp"] = record.created
        return json.dumps(payload, ensure_ascii=False)


class _Adapter(logging.LoggerAdapter):
    def process(self, msg: Any, kwargs: Dict[str, Any]):  # type: ignore[override]
        extra = self.extra.copy() if isinstance(self.extra, dict) else {}
        if "extra" in kwargs and isinstance(kwargs["extra"], dict):
            extra.update(kwargs["extra"])  # merge per-call extras
        kwargs["extra"] = extra
        return msg, kwargs


def get_logger(name: str, *, stage: Optional[str] = None, stack_name: Optional[str] = None) -> logging.LoggerAdapter:
    """Return a JSON-formatted logger adapter bound to a stage and stack."""
    base = logging.getLogger(name)
    if not base.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(_JsonFormatter())
        base.addHandler(handler)
    base.setLevel(os.environ.get("ECS_DEPLOY_LOG_LEVEL", "INFO").upper())
    extras: Dict[str, Any] = {}
    if stage:
        extras["stage"] = stage
    if stack_name:
        extras["stack_name"] = stack_name
    return _Adapter(base, extras)
