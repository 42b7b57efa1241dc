"""Loguru sinks and structured log helpers for research runs."""

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from loguru import logger

from brandintel.config import Settings, settings

LOG_DIR = Path("logs")

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"

# Provider SDKs and the HTTP stack log every request at INFO.
NOISY_LOGGERS = (
    "uvicorn",
    "uvicorn.error",
    "uvicorn.access",
    "fastapi",
    "httpx",
    "httpcore",
    "openai._base_client",
    "supabase",
    "asyncio",
)


def configure_logging(config: Settings) -> None:
    LOG_DIR.mkdir(exist_ok=True)
    logger.remove()
    logger.add(sys.stderr, format=CONSOLE_FORMAT, level=config.app_log_level.upper(), colorize=True)
    logger.add(
        LOG_DIR / "brandintel_{time:YYYY-MM-DD}.log",
        format=FILE_FORMAT,
        level="DEBUG",
        rotation="00:00",
        retention="7 days",
        compression="zip",
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(config.noisy_log_level.upper())


configure_logging(settings)


def _emit(label: str, data: dict[str, Any], *, failed: bool = False) -> None:
    record = {"timestamp": datetime.now(timezone.utc).isoformat(), **data}
    # depth=2 reports the caller of the public helper, not this function
    emitter = logger.opt(depth=2)
    if failed:
        emitter.error(f"{label}_FAILED: {record}")
    else:
        emitter.info(f"{label}: {record}")


def log_provider_call(
    provider: str,
    model: str,
    duration_ms: int = 0,
    status: str = "success",
    output_chars: int = 0,
    error: Optional[str] = None,
) -> None:
    """Log one research provider call (HTTP request or background job)."""
    _emit(
        "PROVIDER_CALL",
        {
            "provider": provider,
            "model": model,
            "duration_ms": duration_ms,
            "status": status,
            "output_chars": output_chars,
            "error": error,
        },
        failed=bool(error),
    )


def log_research_step(subject: str, step_type: str, status: str, data: Optional[dict] = None) -> None:
    _emit("RESEARCH_STEP", {"subject": subject, "step": step_type, "status": status, "data": data})


def log_db_operation(
    operation: str,
    table: str,
    status: str,
    details: Optional[str] = None,
    error: Optional[str] = None,
) -> None:
    _emit(
        "DB_OPERATION",
        {"operation": operation, "table": table, "status": status, "details": details, "error": error},
        failed=bool(error),
    )


def log_event(event_type: str, message: str, **kwargs) -> None:
    _emit("EVENT", {"event_type": event_type, "message": message, **kwargs})
