"""
Process-wide settings, read from the environment.

TIP_DENOMINATIONS  comma separated bill/coin values, largest first
TIP_CORS_ORIGINS   comma separated origins allowed by the API
TIP_LOG_LEVEL      logging level name (default INFO)
"""
import json
import logging
import os
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Tuple

from distribution import DEFAULT_DENOMINATIONS, InvalidInputError, from_cents, normalize_denominations

DEFAULT_CORS_ORIGINS = ["http://localhost:3000", "http://localhost:5173"]  # React dev servers

# attributes every LogRecord carries; anything else came in through extra=
_STDLIB_KEYS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime", "taskName"}


def _split(raw: str) -> List[str]:
    return [part.strip() for part in raw.split(",") if part.strip()]


def parse_denominations(raw: Optional[str]) -> Tuple[Decimal, ...]:
    """Parse ``"100,50,20"`` into validated Decimals, largest first."""
    if raw is None or not raw.strip():
        return DEFAULT_DENOMINATIONS
    try:
        cents = normalize_denominations(_split(raw))
    except InvalidInputError as e:
        raise ValueError(f"Invalid TIP_DENOMINATIONS: {e}") from e
    return tuple(from_cents(c) for c in cents)


def get_denominations() -> Tuple[Decimal, ...]:
    return parse_denominations(os.getenv("TIP_DENOMINATIONS"))


def get_cors_origins() -> List[str]:
    raw = os.getenv("TIP_CORS_ORIGINS")
    if not raw:
        return list(DEFAULT_CORS_ORIGINS)
    return _split(raw)


def get_log_level() -> int:
    name = os.getenv("TIP_LOG_LEVEL", "INFO").upper()
    level = logging.getLevelName(name)
    if not isinstance(level, int):
        raise ValueError(f"Unknown TIP_LOG_LEVEL: {name}")
    return level


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, with any ``extra={...}`` fields merged in."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, val in vars(record).items():
            if key not in _STDLIB_KEYS and key not in payload:
                payload[key] = val
        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            payload["exc_type"] = type(exc).__name__
            payload["exc_message"] = str(exc)
            if hasattr(exc, "code"):
                payload["exc_code"] = exc.code
            payload["traceback"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(level: Optional[int] = None, stream=None):
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    logging.basicConfig(level=level if level is not None else get_log_level(), handlers=[handler])
