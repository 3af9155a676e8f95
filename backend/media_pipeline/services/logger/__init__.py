"""
Centralized Logger Service Module.

Usage:
    from media_pipeline.services.logger import get_service_logger
    from media_pipeline.enums import LoggerName, LogSource

    logger = get_service_logger(LoggerName.IMAGE_PIPELINE, LogSource.PIPELINE)
    logger.info("Ladder generated")
"""

# Re-export commonly used enums for convenience
from ...enums import LogEmoji, LoggerName, LogLevel, LogSource
from .logger_service import ServiceLogger, configure_logging, get_service_logger

__all__ = [
    "ServiceLogger",
    "configure_logging",
    "get_service_logger",
    # Enums
    "LogLevel",
    "LogSource",
    "LoggerName",
    "LogEmoji",
]
