"""
Logging configuration with JSON formatter for structured logging.
"""
import logging
import sys
import time
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger
from core.settings import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter adding source location and deployment fields."""

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any]
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record['timestamp'] = self.formatTime(record, self.datefmt)
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['location'] = f"{record.module}:{record.funcName}:{record.lineno}"

        log_record['app_name'] = settings.app_name
        log_record['environment'] = settings.app_env
        log_record['timezone'] = settings.restaurant_timezone

        if record.exc_info:
            log_record['exc_info'] = self.formatException(record.exc_info)


def setup_logging(level: Optional[str] = None, json_logs: Optional[bool] = None) -> None:
    """
    Configure the root logger.

    Args:
        level: Log level name, defaults to ``settings.log_level``
        json_logs: Force JSON output on or off; by default JSON is used in
            staging and production
    """
    level = (level or settings.log_level).upper()
    use_json = json_logs if json_logs is not None else settings.app_env in ["production", "staging"]

    if use_json:
        formatter = CustomJsonFormatter(
            fmt='%(timestamp)s %(level)s %(name)s %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
    else:
        formatter = logging.Formatter(
            fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%H:%M:%S'
        )

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # httpx logs every request at INFO; one line per availability check is noise
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    logging.info(
        "Logging configured",
        extra={
            "log_level": level,
            "environment": settings.app_env,
            "json_logging": use_json
        }
    )


def get_logger(name: str) -> logging.Logger:
    """Logger for ``name`` (typically ``__name__``)."""
    return logging.getLogger(name)


class LogContext:
    """
    Tag the log records of one operation and time it.

    Every record written through ``log`` carries the operation fields. On a
    clean exit a debug record with the elapsed time is written; an exception
    is logged with its traceback and then propagates.
    """

    def __init__(self, operation: str, logger: Optional[logging.Logger] = None, **fields: Any):
        self.operation = operation
        self.context = {"operation": operation, **fields}
        self.logger = logger or get_logger(__name__)
        self._started: Optional[float] = None

    @property
    def elapsed_ms(self) -> float:
        if self._started is None:
            return 0.0
        return (time.perf_counter() - self._started) * 1000

    def __enter__(self) -> 'LogContext':
        self._started = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is not None and issubclass(exc_type, Exception):
            self.logger.error(
                f"{self.operation} raised {exc_type.__name__}",
                extra={**self.context, "duration_ms": round(self.elapsed_ms, 1)},
                exc_info=(exc_type, exc_val, exc_tb)
            )
        elif exc_type is None:
            self.logger.debug(
                f"{self.operation} finished",
                extra={**self.context, "duration_ms": round(self.elapsed_ms, 1)}
            )

    def log(self, level: str, message: str, **extra_fields: Any) -> None:
        """Log ``message`` at ``level`` with the context fields merged in."""
        log_method = getattr(self.logger, level.lower())
        log_method(message, extra={**self.context, **extra_fields})
