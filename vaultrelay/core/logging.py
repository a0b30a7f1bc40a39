"""Logging setup for the relay process.

Two output shapes share one set of relay fields (chain, outcome, detail,
tx hash/status, message id, block):
  - one JSON object per line when running in staging/production
  - a compact colored line for local development
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import IO, Any

RELAY_FIELDS = ("chain", "outcome", "detail", "tx_hash", "tx_status", "message_id", "block_number")

_QUIET_LOGGERS = ("web3", "web3.providers", "web3.manager", "urllib3", "asyncio", "aiohttp")


def relay_fields(record: logging.LogRecord) -> dict[str, Any]:
    """Relay-specific ``extra=`` values attached to *record*, in a stable order."""
    return {key: getattr(record, key) for key in RELAY_FIELDS if hasattr(record, key)}


def _level(name: str) -> int:
    level = getattr(logging, name.upper(), None)
    return level if isinstance(level, int) else logging.INFO


class JSONFormatter(logging.Formatter):
    """One JSON document per record, with relay fields at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "source": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        entry.update(relay_fields(record))

        exc_type, exc, _ = record.exc_info or (None, None, None)
        if exc is not None:
            entry["exception"] = {
                "type": exc_type.__name__ if exc_type else type(exc).__name__,
                "message": str(exc),
                "traceback": self.formatException(record.exc_info),
            }
        return json.dumps(entry, default=str)


class DevFormatter(logging.Formatter):
    """Colored single-line formatter; chain first, outcome last."""

    COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    DIM = "\033[2m"
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelno, "")
        ts = datetime.fromtimestamp(record.created, timezone.utc).strftime("%H:%M:%S")
        fields = relay_fields(record)

        line = f"{color}{ts} {record.levelname:<7s}{self.RESET} {record.name}: "
        if "chain" in fields:
            line += f"[{fields['chain']}] "
        line += record.getMessage()
        if "outcome" in fields:
            line += f" {self.DIM}({fields['outcome']}/{fields.get('detail', '-')}){self.RESET}"

        if record.exc_info and record.exc_info[1]:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(env: str = "development", log_level: str = "INFO", stream: IO[str] | None = None) -> None:
    """Install a single root handler for *env*.

    Args:
        env: development, staging or production; the latter two log JSON
        log_level: Minimum level name; unknown names fall back to INFO
        stream: Output stream, stdout by default
    """
    level = _level(log_level)
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter() if env in ("staging", "production") else DevFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
