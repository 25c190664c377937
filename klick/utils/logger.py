from . import structlog_patch

import functools
import inspect
import logging
import logging.handlers
import sys
import time
from pathlib import Path
from typing import Optional
from datetime import datetime, timezone

import psutil
import structlog
from structlog.types import FilteringBoundLogger

from config.settings import get_settings
from .exceptions import KlickError


class PerformanceTimer:
    """Context manager for performance timing"""

    def __init__(self, logger: FilteringBoundLogger, operation: str):
        self.logger = logger
        self.operation = operation
        self.start_time = None
        self.duration_ms: Optional[float] = None

    def __enter__(self):
        self.start_time = time.perf_counter()
        self.logger.debug("operation_started", operation=self.operation)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = time.perf_counter() - self.start_time
        self.duration_ms = round(duration * 1000, 2)
        self.logger.info(
            "operation_completed",
            operation=self.operation,
            duration_ms=self.duration_ms,
            success=exc_type is None
        )

        if exc_type:
            self.logger.error(
                "operation_failed",
                operation=self.operation,
                error_type=exc_type.__name__,
                error_message=str(exc_val) if exc_val else None,
                duration_ms=self.duration_ms
            )


def add_context_processor(logger, method_name, event_dict):
    """Add contextual information to log records."""
    event_dict['timestamp'] = datetime.now(timezone.utc).isoformat()
    event_dict['logger_name'] = logger.name if hasattr(logger, 'name') else 'unknown'
    event_dict['method'] = method_name
    return event_dict


def add_performance_processor(logger, method_name, event_dict):
    """Add system metrics to timing events."""
    if event_dict.get('event') in ('operation_completed', 'memory_pressure_detected'):
        memory = psutil.virtual_memory()
        event_dict['system_metrics'] = {
            'cpu_percent': psutil.cpu_percent(),
            'memory_percent': memory.percent,
            'available_memory_mb': memory.available // (1024 * 1024)
        }

    return event_dict


def exception_processor(logger, method_name, event_dict):
    """Process exceptions for structured logging."""
    if 'exception' in event_dict:
        exc = event_dict['exception']
        if isinstance(exc, KlickError):
            event_dict.update(exc.to_dict())
        elif isinstance(exc, Exception):
            event_dict['exception_type'] = exc.__class__.__name__
            event_dict['exception_message'] = str(exc)

    return event_dict


def setup_logging() -> FilteringBoundLogger:
    """Setup stdlib handlers and the structlog processor chain"""
    settings = get_settings()
    log_config = settings.get_logging_config()
    level = getattr(logging, log_config.level)

    stdlib_logger = logging.getLogger()
    stdlib_logger.setLevel(level)

    for handler in stdlib_logger.handlers[:]:
        stdlib_logger.removeHandler(handler)

    formatter = logging.Formatter('%(message)s')

    if log_config.file_enabled:
        log_path = Path(log_config.file_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            filename=log_path,
            maxBytes=log_config.max_file_size_mb * 1024 * 1024,
            backupCount=log_config.backup_count,
            encoding='utf-8'
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        stdlib_logger.addHandler(file_handler)

    if log_config.console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        stdlib_logger.addHandler(console_handler)

    processors = [
        structlog.stdlib.filter_by_level,
        add_context_processor,
    ]
    if log_config.features.system_metrics:
        processors.append(add_performance_processor)
    processors.extend([
        exception_processor,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer() if log_config.format == "structured"
        else structlog.dev.ConsoleRenderer()
    ])

    structlog.configure(
        processors=processors,
        context_class=dict,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False
    )

    return structlog.get_logger(settings.shared.system.name)


def get_logger(name: str = None) -> FilteringBoundLogger:
    """Get logger instance"""
    settings = get_settings()
    logger_name = name or settings.shared.system.name
    logging.getLogger(logger_name).setLevel(
        getattr(logging, settings.get_logging_config().level)
    )

    return structlog.get_logger(logger_name)


def log_performance(operation: str):
    """Decorator for performance logging"""
    def decorator(func):
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            logger = get_logger(func.__module__)
            with PerformanceTimer(logger, operation):
                return await func(*args, **kwargs)

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            logger = get_logger(func.__module__)
            with PerformanceTimer(logger, operation):
                return func(*args, **kwargs)

        return async_wrapper if inspect.iscoroutinefunction(func) else sync_wrapper

    return decorator


_logger: Optional[FilteringBoundLogger] = None


def init_logging() -> FilteringBoundLogger:
    """Initialize logging system"""
    global _logger
    _logger = setup_logging()
    _logger.info("logging_system_initialized")
    return _logger
