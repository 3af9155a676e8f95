# backend/media_pipeline/services/logger/logger_service.py
"""
Logger Service - loguru-backed service loggers.

Every module obtains a logger through get_service_logger(), which binds the
logger name and source onto loguru records and resolves a message emoji.

Emoji priority system (highest to lowest):
1. Direct: emoji passed directly to the log method call
2. Instance-set: default emoji set when creating the service logger
3. Fallback: default emoji based on log level
"""

import sys
from typing import Any, Dict, Optional

from loguru import logger as _logger

from ...enums import LogEmoji, LoggerName, LogLevel, LogSource

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[source]}</cyan>:<cyan>{extra[logger_name]}</cyan> | "
    "<level>{message}</level>"
)

_configured_handler_id: Optional[int] = None

_logger.configure(extra={"source": LogSource.SYSTEM.value, "logger_name": LoggerName.SYSTEM.value})


def configure_logging(level: LogLevel = LogLevel.INFO, sink=None) -> int:
    """
    Install the console sink once per process.

    Args:
        level: Minimum level written to the sink
        sink: Optional loguru sink (defaults to stderr)

    Returns:
        loguru handler id of the installed sink
    """
    global _configured_handler_id

    if _configured_handler_id is not None:
        _logger.remove(_configured_handler_id)
    else:
        _logger.remove()

    _configured_handler_id = _logger.add(
        sink or sys.stderr,
        level=level.value,
        format=CONSOLE_FORMAT,
        backtrace=False,
        diagnose=False,
    )
    return _configured_handler_id


class ServiceLogger:
    """Logger bound to one LoggerName/LogSource pair."""

    def __init__(
        self,
        logger_name: LoggerName,
        source: LogSource = LogSource.SYSTEM,
        default_emoji: Optional[LogEmoji] = None,
    ):
        self.logger_name = logger_name
        self.source = source
        self.default_emoji = default_emoji
        self._bound = _logger.bind(logger_name=logger_name.value, source=source.value)

    def _resolve_emoji(
        self, method_emoji: Optional[LogEmoji], fallback_emoji: LogEmoji
    ) -> LogEmoji:
        if method_emoji is not None:
            return method_emoji
        if self.default_emoji is not None:
            return self.default_emoji
        return fallback_emoji

    def _emit(
        self,
        level: LogLevel,
        message: str,
        emoji: LogEmoji,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        bound = self._bound.bind(context=context) if context else self._bound
        bound.opt(depth=2).log(level.value, f"{emoji.value} {message}")

    def error(
        self,
        message: str,
        exception: Optional[BaseException] = None,
        error_context: Optional[Dict[str, Any]] = None,
        emoji: Optional[LogEmoji] = None,
        **kwargs,
    ) -> None:
        """Log an error with emoji priority system."""
        if exception is not None:
            message = f"{message}: {exception}"
        self._emit(
            LogLevel.ERROR,
            message,
            self._resolve_emoji(emoji, LogEmoji.ERROR),
            error_context,
        )

    def warning(
        self,
        message: str,
        extra_context: Optional[Dict[str, Any]] = None,
        emoji: Optional[LogEmoji] = None,
        **kwargs,
    ) -> None:
        """Log a warning with emoji priority system."""
        self._emit(
            LogLevel.WARNING,
            message,
            self._resolve_emoji(emoji, LogEmoji.WARNING),
            extra_context,
        )

    def info(
        self,
        message: str,
        extra_context: Optional[Dict[str, Any]] = None,
        emoji: Optional[LogEmoji] = None,
        **kwargs,
    ) -> None:
        """Log an info message with emoji priority system."""
        self._emit(
            LogLevel.INFO,
            message,
            self._resolve_emoji(emoji, LogEmoji.INFO),
            extra_context,
        )

    def debug(
        self,
        message: str,
        extra_context: Optional[Dict[str, Any]] = None,
        emoji: Optional[LogEmoji] = None,
        **kwargs,
    ) -> None:
        """Log a debug message with emoji priority system."""
        self._emit(
            LogLevel.DEBUG,
            message,
            self._resolve_emoji(emoji, LogEmoji.DEBUG),
            extra_context,
        )


def get_service_logger(
    logger_name: LoggerName,
    source: LogSource = LogSource.SYSTEM,
    default_emoji: Optional[LogEmoji] = None,
) -> ServiceLogger:
    """
    Factory function to create a pre-configured logger for a specific service.

    Args:
        logger_name: The logger name enum to use for all calls
        source: The log source enum to use for all calls (defaults to SYSTEM)
        default_emoji: Instance-level default emoji that overrides level-based fallbacks

    Returns:
        ServiceLogger instance with error, warning, info, debug methods

    Example:
        logger = get_service_logger(LoggerName.VIDEO_PIPELINE, LogSource.PIPELINE)
        logger.error("Encode failed", exception=e)
        logger.info("Master playlist written", emoji=LogEmoji.VIDEO)
    """
    return ServiceLogger(logger_name, source, default_emoji)
