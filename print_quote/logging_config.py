"""
Structured logging configuration for the print_quote package.

Provides:
- JSON formatter for machine-readable quote audit logs
- Console formatter for human-readable output
- Timing helpers for per-file estimation
- LogContext for stamping a quote id on every record of one request

Usage:
    from print_quote.logging_config import setup_logging, get_logger

    setup_logging(level=logging.INFO, json_file="quotes.log.json")

    logger = get_logger(__name__)
    logger.info("Estimated mesh", extra={"file": "part.stl", "grams": 12.5})
"""

import json
import logging
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar, Token
from datetime import datetime
from functools import wraps
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, TypeVar, Union

F = TypeVar('F', bound=Callable[..., Any])

PACKAGE_LOGGER = "print_quote"

# Attributes every LogRecord carries; anything else arrived through `extra=`.
_RESERVED_KEYS = frozenset({
    'name', 'msg', 'args', 'created', 'filename', 'funcName',
    'levelname', 'levelno', 'lineno', 'module', 'msecs',
    'pathname', 'process', 'processName', 'relativeCreated',
    'stack_info', 'exc_info', 'exc_text', 'thread', 'threadName',
    'taskName', 'message', 'asctime',
})


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    return {k: v for k, v in record.__dict__.items() if k not in _RESERVED_KEYS}


class JSONFormatter(logging.Formatter):
    """JSON log formatter, one object per line.

    Output format:
        {"timestamp": "...", "level": "INFO", "logger": "...", "message": "...", ...}
    """

    def __init__(self, include_extra: bool = True):
        super().__init__()
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.levelno >= logging.WARNING:
            log_entry["location"] = {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        if self.include_extra:
            for key, value in _extra_fields(record).items():
                try:
                    json.dumps(value)
                    log_entry[key] = value
                except (TypeError, ValueError):
                    log_entry[key] = str(value)

        return json.dumps(log_entry, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """Human-readable console formatter with optional colors.

    Format: [TIME] LEVEL logger: message [extra_key=value ...]
    """

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
        'RESET': '\033[0m',
    }

    def __init__(self, use_colors: bool = True, show_extra: bool = True):
        super().__init__()
        self.use_colors = use_colors
        self.show_extra = show_extra

    def format(self, record: logging.LogRecord) -> str:
        time_str = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")

        level = record.levelname
        if self.use_colors and level in self.COLORS:
            level_str = f"{self.COLORS[level]}{level:8}{self.COLORS['RESET']}"
        else:
            level_str = f"{level:8}"

        logger_name = record.name
        if logger_name.startswith(PACKAGE_LOGGER + "."):
            logger_name = logger_name[len(PACKAGE_LOGGER) + 1:]

        extra_str = ""
        if self.show_extra:
            extras = []
            for key, value in _extra_fields(record).items():
                if isinstance(value, float):
                    extras.append(f"{key}={value:.3g}")
                elif isinstance(value, (list, tuple)) and len(value) > 3:
                    extras.append(f"{key}=[...{len(value)} items]")
                else:
                    extras.append(f"{key}={value}")
            if extras:
                extra_str = " [" + ", ".join(extras) + "]"

        result = f"[{time_str}] {level_str} {logger_name}: {record.getMessage()}{extra_str}"

        if record.exc_info:
            result += "\n" + self.formatException(record.exc_info)

        return result


def setup_logging(
    level: int = logging.INFO,
    json_file: Optional[Union[str, Path]] = None,
    console: bool = True,
    use_colors: bool = True,
    root_logger: bool = False,
) -> logging.Logger:
    """Configure logging for the print_quote package.

    Args:
        level: Minimum log level (default INFO)
        json_file: Optional path for a JSON-lines log file
        console: Enable console output on stderr
        use_colors: Use ANSI colors in console output
        root_logger: Configure the root logger instead of print_quote

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger("" if root_logger else PACKAGE_LOGGER)
    logger.setLevel(level)
    logger.handlers.clear()

    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(ConsoleFormatter(use_colors=use_colors))
        logger.addHandler(console_handler)

    if json_file:
        json_handler = logging.FileHandler(Path(json_file), encoding='utf-8')
        json_handler.setLevel(level)
        json_handler.setFormatter(JSONFormatter())
        logger.addHandler(json_handler)

    for handler in logger.handlers:
        handler.addFilter(_CONTEXT_FILTER)

    if not root_logger:
        logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for a module (typically ``__name__``)."""
    return logging.getLogger(name)


@contextmanager
def log_timing(
    logger: logging.Logger,
    operation: str,
    level: int = logging.DEBUG,
    **extra_fields: Any
) -> Iterator[Dict[str, Any]]:
    """Context manager to log operation timing.

    Example:
        with log_timing(logger, "Estimating uploads", files=3) as info:
            estimates = estimate_uploads(uploads, config)
            info["triangles"] = sum(e.result.n_triangles for e in estimates)

    Yields:
        dict that can be updated with additional fields for the completion record
    """
    timing_info: Dict[str, Any] = {}
    start_time = time.perf_counter()

    logger.log(level, "Starting: %s", operation, extra={
        "event": "start",
        "operation": operation,
        **extra_fields
    })

    try:
        yield timing_info
    except Exception as e:
        elapsed = time.perf_counter() - start_time
        logger.error("Failed: %s (%.3fs) - %s", operation, elapsed, e, extra={
            "event": "error",
            "operation": operation,
            "elapsed_seconds": elapsed,
            "error": str(e),
            **extra_fields
        })
        raise

    elapsed = time.perf_counter() - start_time
    timing_info['elapsed_seconds'] = elapsed
    logger.log(level, "Completed: %s (%.3fs)", operation, elapsed, extra={
        "event": "complete",
        "operation": operation,
        **extra_fields,
        **timing_info
    })


def timed(
    logger: Optional[logging.Logger] = None,
    level: int = logging.DEBUG,
    operation: Optional[str] = None,
) -> Callable[[F], F]:
    """Decorator to log function execution time.

    Example:
        @timed(level=logging.INFO)
        def price_cart(entries, unique_file_count, config):
            ...
    """
    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            func_logger = logger or logging.getLogger(func.__module__)
            with log_timing(func_logger, operation or func.__name__, level):
                return func(*args, **kwargs)

        return wrapper  # type: ignore
    return decorator


# Innermost LogContext of the running thread or task, with merged fields
_active_context: ContextVar[Optional['LogContext']] = ContextVar('print_quote_log_context', default=None)


class _ContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        context = _active_context.get()
        if context is not None:
            for key, value in context.merged_fields.items():
                setattr(record, key, value)
        return True


_CONTEXT_FILTER = _ContextFilter()


def _reachable_handlers(logger: logging.Logger) -> List[logging.Handler]:
    """Handlers a record logged on ``logger`` is passed to, following propagation."""
    handlers: List[logging.Handler] = []
    current: Optional[logging.Logger] = logger
    while current is not None:
        handlers.extend(h for h in current.handlers if h not in handlers)
        current = current.parent if current.propagate else None
    return handlers


class LogContext:
    """Adds common fields to every record logged through print_quote loggers.

    The active context lives in a ContextVar, so concurrent quotes in
    different threads each stamp only their own fields. Worker threads see
    the context when their task runs in ``contextvars.copy_context()``.
    A shared filter is installed on every handler the package logger
    reaches, so records from child loggers (print_quote.estimation, ...)
    are stamped too.

    Example:
        with LogContext(quote_id="q-42"):
            quote_order(uploads)  # every record carries quote_id
    """

    def __init__(self, **fields: Any):
        self.fields = fields
        self.merged_fields: Dict[str, Any] = dict(fields)
        self._token: Optional[Token] = None

    def __enter__(self) -> 'LogContext':
        outer = _active_context.get()
        self.merged_fields = {**(outer.merged_fields if outer else {}), **self.fields}
        self._token = _active_context.set(self)

        for handler in _reachable_handlers(logging.getLogger(PACKAGE_LOGGER)):
            handler.addFilter(_CONTEXT_FILTER)
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._token is not None:
            _active_context.reset(self._token)
            self._token = None

    @classmethod
    def current(cls) -> Optional['LogContext']:
        """Get the innermost context active in this thread or task."""
        return _active_context.get()


def configure_default_logging(verbose: bool = False) -> logging.Logger:
    """Configure console logging: DEBUG when verbose, INFO otherwise."""
    level = logging.DEBUG if verbose else logging.INFO
    return setup_logging(level=level, console=True, use_colors=sys.stderr.isatty())
