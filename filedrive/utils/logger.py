"""Structured logging setup using structlog"""

import logging
import sys
from typing import Any

import structlog

from filedrive.config import settings

# Libraries whose own logging would drown out transfer events
QUIET_LOGGERS = [
    "aiohttp",
    "aiohttp.client",
    "sqlalchemy",
    "sqlalchemy.engine",
    "sqlalchemy.pool",
    "urllib3",
    "asyncio",
]


def configure_third_party_loggers():
    """Only let third-party libraries report errors"""
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.ERROR)


def configure_logging():
    """Configure JSON structured logging at the configured level"""
    log_level = getattr(logging, settings.log_level.upper(), logging.ERROR)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    configure_third_party_loggers()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> Any:
    """Get a logger instance"""
    return structlog.get_logger(name)


def redact_secret(value: Any) -> str:
    """Mask a secret for logging, keeping only whether it is set"""
    return "[REDACTED]" if value else "[NOT_SET]"


def log_backend_config(logger: Any, config: Any) -> None:
    """
    Log backend configuration safely without exposing credentials.

    Args:
        logger: Logger instance
        config: Settings object with backend configuration
    """
    logger.info(
        "backend_config_loaded",
        environment=config.environment,
        backend_url=config.backend_url,
        api_key=redact_secret(config.backend_api_key),
        access_token=redact_secret(config.backend_access_token),
        timeout_seconds=config.backend_timeout,
        storage_bucket=config.storage_bucket,
        files_table=config.files_table,
        download_dir=config.download_dir,
        auto_retries=config.download_auto_retries,
        history_limit=config.download_history_limit,
        upload_max_file_size_mb=config.upload_max_file_size_mb,
    )


# Configure logging on import
configure_logging()
