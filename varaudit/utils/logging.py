"""Centralized logging configuration using Loguru with Pino-compatible output.

Usage:
    from varaudit.utils.logging import logger
    logger.info("Message")
    logger.debug("Debug message")  # Only shows if VARAUDIT_LOG_LEVEL=DEBUG

Environment Variables:
    VARAUDIT_LOG_LEVEL: DEBUG|INFO|WARNING|ERROR (default: WARNING)
    VARAUDIT_LOG_JSON: 0|1 (default: 0, human-readable)
    VARAUDIT_LOG_FILE: path to log file (optional)
    VARAUDIT_REQUEST_ID: correlation ID for cross-process tracing
"""

import json
import os
import sys
import uuid

from loguru import logger

from .constants import ENV_LOG_FILE, ENV_LOG_JSON, ENV_LOG_LEVEL, ENV_REQUEST_ID

# Remove default handler
logger.remove()

# Pino-compatible numeric levels
PINO_LEVELS = {
    "TRACE": 10,
    "DEBUG": 20,
    "INFO": 30,
    "WARNING": 40,
    "ERROR": 50,
    "CRITICAL": 60,
}

# Report lines go to stdout, so the default log level stays quiet
_log_level = os.environ.get(ENV_LOG_LEVEL, "WARNING").upper()
_json_mode = os.environ.get(ENV_LOG_JSON, "0") == "1"
_log_file = os.environ.get(ENV_LOG_FILE)
_request_id = os.environ.get(ENV_REQUEST_ID) or str(uuid.uuid4())


def _pino_record(message) -> dict:
    """Convert a loguru message into a Pino log object."""
    record = message.record

    pino_log = {
        "level": PINO_LEVELS.get(record["level"].name, 30),
        "time": int(record["time"].timestamp() * 1000),
        "msg": record["message"],
        "pid": record["process"].id,
        "request_id": record["extra"].get("request_id", _request_id),
    }

    for key, value in record["extra"].items():
        if key != "request_id":
            pino_log[key] = value

    if record["exception"]:
        pino_log["err"] = {
            "type": record["exception"].type.__name__ if record["exception"].type else "Error",
            "message": str(record["exception"].value) if record["exception"].value else "",
        }

    return pino_log


def pino_compatible_sink(message):
    """Format log records as Pino-compatible NDJSON on stderr.

    Output format:
    {"level":30,"time":1715629847123,"msg":"...","pid":12345,"request_id":"..."}
    """
    # CRITICAL: Never call logger.* inside a sink - causes infinite recursion
    sys.stderr.write(json.dumps(_pino_record(message), default=str) + "\n")
    sys.stderr.flush()


# Human-readable format (no emojis - Windows CP1252 compatibility)
_human_format = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}:{function}:{line}</cyan> - "
    "<level>{message}</level>"
)

logger.level("DEBUG", color="<blue>")
logger.level("INFO", color="<white>")
logger.level("WARNING", color="<yellow>")
logger.level("ERROR", color="<red>")
logger.level("CRITICAL", color="<red><bold>")

if _json_mode:
    logger.add(
        pino_compatible_sink,
        level=_log_level,
        colorize=False,
    )
else:
    logger.add(
        sys.stderr,
        level=_log_level,
        format=_human_format,
        colorize=None,  # Auto-detect: colors if TTY, plain if piped
    )

# Optional file handler (always NDJSON for machine parsing)
if _log_file:

    def _file_pino_sink(message):
        """Write Pino-format JSON to the configured log file."""
        with open(_log_file, "a", encoding="utf-8") as f:
            f.write(json.dumps(_pino_record(message), default=str) + "\n")

    logger.add(
        _file_pino_sink,
        level="DEBUG",  # File always captures everything
    )


__all__ = [
    "logger",
]
