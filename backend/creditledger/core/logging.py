"""Logging configuration.

Provides a module-level ``logger`` and a ``ContextualLogger`` that carries
dimensions (event id, account id, ...) through a call chain:

    log = logger.with_context(event_id=event.event_id, account_id=account_id)
    log.info("Credits reset")

Dimensions are appended to the message as ``key=value`` pairs in local
environments and rendered as a JSON object otherwise so log shippers can
index them.
"""

import json
import logging
import sys
from typing import Any, MutableMapping

from creditledger.core.config import settings

_CONTEXT_ATTR = "context_dimensions"


class _ContextFormatter(logging.Formatter):
    """Formatter that renders context dimensions after the message."""

    def __init__(self, as_json: bool) -> None:
        super().__init__("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        self._as_json = as_json

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        dims = getattr(record, _CONTEXT_ATTR, None)
        if not dims:
            return base
        if self._as_json:
            return f"{base} {json.dumps(dims, default=str, sort_keys=True)}"
        rendered = " ".join(f"{key}={value}" for key, value in sorted(dims.items()))
        return f"{base} [{rendered}]"


class ContextualLogger(logging.LoggerAdapter):
    """Logger adapter that merges a fixed set of dimensions into every record."""

    def __init__(self, logger: logging.Logger, dimensions: dict[str, Any] | None = None):
        super().__init__(logger, dict(dimensions or {}))
        self.dimensions: dict[str, Any] = dict(dimensions or {})

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        merged = {**self.dimensions, **extra.pop(_CONTEXT_ATTR, {})}
        extra[_CONTEXT_ATTR] = merged
        kwargs["extra"] = extra
        return msg, kwargs

    def with_context(self, **dimensions: Any) -> "ContextualLogger":
        """Return a new logger with extra dimensions layered on top of these."""
        merged = {**self.dimensions}
        merged.update({k: v for k, v in dimensions.items() if v is not None})
        return ContextualLogger(self.logger, merged)


def _configure_root_logger(name: str) -> logging.Logger:
    base = logging.getLogger(name)
    if not base.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(_ContextFormatter(as_json=not settings.is_local))
        base.addHandler(handler)
        base.propagate = False
    base.setLevel(settings.LOG_LEVEL.upper())
    return base


logger = ContextualLogger(_configure_root_logger("creditledger"))
