"""Structured logging for limiter, cache and request events.

Events are logged as dotted names (``rate_limit.exceeded``, ``cache.hit``)
with their fields passed through ``extra``. Two filters run before
formatting:

- ``RequestIdFilter`` stamps the request id kept in a contextvar.
- ``SensitiveDataFilter`` blanks credential fields and replaces cache keys
  and key patterns with short digests, because keys embed user and
  customer ids.
"""

from __future__ import annotations

import hashlib
import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from shipguard.core.config import LogSettings, settings

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

REDACTED = "[REDACTED]"

SENSITIVE_KEYS_DEFAULT: frozenset[str] = frozenset(
    {
        "authorization",
        "cookie",
        "set-cookie",
        "password",
        "password_hash",
        "secret",
        "token",
        "access_token",
        "refresh_token",
        "session",
        "session_token",
        "next-auth.session-token",
        "email",
        "phone",
        "x-forwarded-for",
    }
)

# Logged, but only as a digest.
HASHED_KEYS_DEFAULT: frozenset[str] = frozenset({"cache_key", "pattern"})

# Attributes every LogRecord carries; everything else came in via ``extra``.
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
    "request_id",
}


def set_request_id(request_id: str | None) -> None:
    _request_id_var.set(request_id)


def get_request_id() -> str | None:
    return _request_id_var.get()


def clear_request_id() -> None:
    _request_id_var.set(None)


def digest(value: Any) -> str:
    """Short stable digest used in place of identifying values."""
    return hashlib.sha256(str(value).encode()).hexdigest()[:16]


def _scrub(value: Any, sensitive: frozenset[str]) -> Any:
    if isinstance(value, Mapping):
        return {
            k: REDACTED if str(k).lower() in sensitive else _scrub(v, sensitive)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return type(value)(_scrub(v, sensitive) for v in value)
    return value


def _extras(record: logging.LogRecord) -> dict[str, Any]:
    return {
        k: v
        for k, v in record.__dict__.items()
        if k not in _RECORD_ATTRS and not k.startswith("_")
    }


class RequestIdFilter(logging.Filter):
    """Attach the context request id unless the record already has one."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = get_request_id()
        return True


class SensitiveDataFilter(logging.Filter):
    """Redact credential fields and digest key fields on the record."""

    def __init__(
        self,
        sensitive_keys: Iterable[str] | None = None,
        hashed_keys: Iterable[str] | None = None,
    ) -> None:
        super().__init__()
        self.sensitive_keys = frozenset(
            k.lower() for k in (sensitive_keys or SENSITIVE_KEYS_DEFAULT)
        )
        self.hashed_keys = frozenset(hashed_keys or HASHED_KEYS_DEFAULT)

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _extras(record).items():
            if key.lower() in self.sensitive_keys:
                scrubbed: Any = REDACTED
            elif key in self.hashed_keys:
                scrubbed = digest(value)
            else:
                scrubbed = _scrub(value, self.sensitive_keys)
            setattr(record, key, scrubbed)
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line: timestamp, level, logger, message, extras."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        request_id = getattr(record, "request_id", None) or get_request_id()
        if request_id:
            payload["request_id"] = request_id
        payload.update(_extras(record))
        if record.exc_info:
            payload["exc_type"] = record.exc_info[0].__name__ if record.exc_info[0] else None
        return json.dumps(payload, default=str)


def configure_logging(log_settings: LogSettings | None = None) -> None:
    """Install a single stdout handler on the root logger.

    Args:
        log_settings: Level, format (``json`` or ``plain``); defaults to the
            global settings.
    """

    cfg = log_settings or settings.log

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    if cfg.format.lower() == "plain":
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    else:
        handler.setFormatter(JsonFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, cfg.level.upper(), logging.INFO))

    logging.getLogger("uvicorn").propagate = False
    logging.getLogger("uvicorn.access").propagate = False
