"""Centralized logging service using loguru."""

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from loguru import logger

from adcvd_tracker.config import settings

LOG_DIR = Path(settings.log_dir)
LOG_DIR.mkdir(exist_ok=True)

# Remove default handler
logger.remove()

logger.add(
    sys.stderr,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
    level=settings.app_log_level.upper(),
    colorize=True,
)

logger.add(
    LOG_DIR / "adcvd_tracker_{time:YYYY-MM-DD}.log",
    format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
    level="DEBUG",
    rotation="00:00",
    retention="7 days",
    compression="zip",
)

# Reduce noise from framework/network libraries
for logger_name in (
    "uvicorn",
    "uvicorn.error",
    "uvicorn.access",
    "fastapi",
    "httpx",
    "httpcore",
    "hpack",
    "asyncio",
):
    logging.getLogger(logger_name).setLevel(settings.noisy_log_level.upper())


def log_fetch(
    kind: str,
    entity: str,
    url: str,
    status: Optional[int] = None,
    result_count: Optional[int] = None,
    error: Optional[str] = None,
) -> None:
    """Log one outbound Federal Register call."""
    fetch_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "kind": kind,
        "entity": entity,
        "url": url,
        "status": status,
        "result_count": result_count,
        "error": error,
    }
    if error:
        logger.warning(f"FETCH_FAILED: {fetch_data}")
    else:
        logger.debug(f"FETCH: {fetch_data}")


def log_pipeline_run(
    pipeline: str,
    cache_key: str,
    status: str,
    data: Optional[dict[str, Any]] = None,
) -> None:
    """Log a pipeline run outcome."""
    run_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "pipeline": pipeline,
        "cache_key": cache_key,
        "status": status,
        "data": data,
    }
    logger.info(f"PIPELINE_RUN: {run_data}")


def log_event(
    event_type: str,
    message: str,
    **kwargs,
) -> None:
    """Log a generic event."""
    event_data = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "event_type": event_type,
        "message": message,
        **kwargs,
    }
    logger.info(f"EVENT: {event_data}")
