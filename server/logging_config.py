"""
Structured logging for the Flip 7 engine and its room layer.

Every action a room applies runs with room_code_var and player_id_var set,
so engine log lines pick up which table and which player they concern
without threading those values through the pure rule functions.

Production gets one JSON object per line; development gets a short
colored line with the same context in brackets.
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional

room_code_var: ContextVar[Optional[str]] = ContextVar("room_code", default=None)
player_id_var: ContextVar[Optional[str]] = ContextVar("player_id", default=None)

# Fields an action log line may carry, in output order
CONTEXT_FIELDS = ("room_code", "player_id", "target_id", "error_kind")
_CONTEXT_VARS = {"room_code": room_code_var, "player_id": player_id_var}


def context_fields(record: logging.LogRecord) -> dict[str, str]:
    """
    Collect table context for a record.

    Values passed through ``extra=`` win over the ambient context vars.
    Empty values are left out.
    """
    fields = {}
    for name in CONTEXT_FIELDS:
        value = getattr(record, name, None)
        if not value and name in _CONTEXT_VARS:
            value = _CONTEXT_VARS[name].get()
        if value:
            fields[name] = str(value)
    return fields


class JSONFormatter(logging.Formatter):
    """One JSON object per record, for log aggregation in production."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **context_fields(record),
        }

        if record.levelno >= logging.ERROR:
            entry["source"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class DevelopmentFormatter(logging.Formatter):
    """Colored single-line output for local play and simulations."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"
    # Short labels used inside the bracketed context
    LABELS = {"room_code": "room", "player_id": "player", "target_id": "target", "error_kind": "error"}

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelname, "")
        reset = self.RESET if color else ""
        clock = datetime.now().strftime("%H:%M:%S.%f")[:-3]

        fields = context_fields(record)
        context = ""
        if fields:
            parts = [f"{self.LABELS[name]}={value[:12]}" for name, value in fields.items()]
            context = f" [{', '.join(parts)}]"

        line = f"{clock} {color}{record.levelname:8}{reset} {record.name}{context} - {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(level: str = "INFO", environment: str = "development") -> None:
    """
    Install a single stdout handler on the root logger.

    Args:
        level: Level name; unknown names fall back to INFO.
        environment: "production" selects JSON output.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if environment == "production" else DevelopmentFormatter())

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for noisy in ("redis", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(f"Logging ready: level={level}, environment={environment}")
