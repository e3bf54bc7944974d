"""Logging configuration for the planner and its command line tools"""

import logging
import logging.handlers
import json
import sys
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional
from contextlib import contextmanager
import threading
import uuid


class StructuredFormatter(logging.Formatter):
    """JSON structured logging formatter"""

    EXTRA_FIELDS = ('request_id', 'operation', 'duration', 'grant_id', 'plan_id', 'scenario')

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON"""
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "thread_name": record.threadName,
        }

        for name in self.EXTRA_FIELDS:
            if hasattr(record, name):
                log_data[name] = getattr(record, name)

        if record.exc_info:
            log_data['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': str(record.exc_info[1]),
                'traceback': traceback.format_exception(*record.exc_info)
            }

        return json.dumps(log_data, default=str)


class PerformanceLogger:
    """Logger for timing planner operations"""

    def __init__(self):
        self.logger = logging.getLogger('consumption_planner.performance')
        self._timers: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    @contextmanager
    def timer(self, operation: str, **kwargs):
        """Context manager to time operations"""
        start_time = datetime.now(timezone.utc)
        timer_id = str(uuid.uuid4())

        with self._lock:
            self._timers[timer_id] = {'operation': operation, 'start_time': start_time, **kwargs}

        try:
            yield timer_id
        finally:
            end_time = datetime.now(timezone.utc)
            duration = (end_time - start_time).total_seconds()

            with self._lock:
                self._timers.pop(timer_id, None)

            self.logger.info(
                f"Performance: {operation} completed in {duration:.3f}s",
                extra={'operation': operation, 'duration': duration, **kwargs}
            )

    @property
    def active_timers(self) -> int:
        with self._lock:
            return len(self._timers)


class LoggerManager:
    """Centralized logger management"""

    def __init__(self):
        self.performance_logger = PerformanceLogger()

    def setup_logging(self,
                      level: str = "INFO",
                      log_file: Optional[Path] = None,
                      structured: bool = False,
                      console: bool = True,
                      fmt: str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                      max_bytes: int = 10485760,
                      backup_count: int = 5,
                      handler: Optional[logging.Handler] = None):
        """Setup application-wide logging configuration

        Args:
            level: Root log level name
            log_file: Optional rotating log file
            structured: Emit JSON records instead of plain text
            console: Attach a stdout handler
            handler: Pre-built console handler (the CLI passes a RichHandler)
        """
        root_logger = logging.getLogger()
        root_logger.setLevel(getattr(logging, level.upper()))
        root_logger.handlers = []

        formatter = StructuredFormatter() if structured else logging.Formatter(fmt)

        if handler is not None:
            root_logger.addHandler(handler)
        elif console:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setFormatter(formatter)
            root_logger.addHandler(console_handler)

        if log_file:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=max_bytes,
                backupCount=backup_count
            )
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)


# Global logger manager instance
logger_manager = LoggerManager()


def setup_logging_from_config(config, handler: Optional[logging.Handler] = None):
    """Setup logging from a LoggingConfig section"""
    logger_manager.setup_logging(
        level=config.level,
        log_file=config.file,
        structured=config.structured,
        console=config.console,
        fmt=config.format,
        max_bytes=config.max_bytes,
        backup_count=config.backup_count,
        handler=handler,
    )


def get_performance_logger() -> PerformanceLogger:
    """Get performance logger instance"""
    return logger_manager.performance_logger
