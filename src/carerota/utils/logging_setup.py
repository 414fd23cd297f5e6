"""
carerota: Logging Infrastructure
================================
Console and rotating-file logging for the rule engine and the services
around it.

Levels:
    TRACE (5): Call tracing, per-placement evaluation counts
    DEBUG (10): Scan walk-through, reload bookkeeping
    INFO (20): Commits, reloads, scan summaries, rule warnings
    WARNING (30): Rule errors, advisory validation failures
    ERROR (40): Failed commits, exceptions
"""
import functools
import inspect
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Callable, Iterable, Optional, TextIO, Union

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

DEFAULT_LOG_FILE = "logs/carerota.log"
CONSOLE_FORMAT = "%(asctime)s %(levelname)-5s %(name)s | %(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)-5s [%(name)s.%(funcName)s:%(lineno)d] %(message)s"

# httpx logs every request at INFO
QUIET_LOGGERS = ("httpx", "httpcore")


class ConsoleFormatter(logging.Formatter):
    """Colours whole lines by level, only when the stream is a terminal."""

    PALETTE = {
        TRACE: "90",
        logging.DEBUG: "36",
        logging.INFO: "32",
        logging.WARNING: "33",
        logging.ERROR: "31",
        logging.CRITICAL: "1;31",
    }

    def __init__(self, stream: Optional[TextIO] = None):
        super().__init__(CONSOLE_FORMAT, datefmt="%H:%M:%S")
        isatty = getattr(stream, "isatty", None)
        self.use_colour = bool(isatty and isatty())

    def format(self, record):
        text = super().format(record)
        code = self.PALETTE.get(record.levelno)
        if self.use_colour and code:
            return f"\033[{code}m{text}\033[0m"
        return text


def _level(value: Union[str, int], default: int = logging.INFO) -> int:
    if isinstance(value, int):
        return value
    resolved = logging.getLevelName(value.upper())
    return resolved if isinstance(resolved, int) else default


def _file_handler(path: Path, level: int, max_bytes: int, backup_count: int) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def setup_logging(
    level: Union[str, int] = "INFO",
    log_file: Optional[str] = DEFAULT_LOG_FILE,
    console_level: Optional[Union[str, int]] = None,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
    stream: Optional[TextIO] = None,
    quiet: Iterable[str] = QUIET_LOGGERS,
) -> logging.Logger:
    """
    Configure the ``carerota`` logger tree.

    Args:
        level: Minimum level written to the log file (accepts "TRACE")
        log_file: Rotating log file, None for console only
        console_level: Console level, defaults to ``level``
        max_bytes: File size that triggers rotation
        backup_count: Rotated files kept
        stream: Console stream, stdout by default (the CLI passes stderr)
        quiet: Third-party loggers held at WARNING

    Returns:
        The ``carerota`` logger
    """
    logger = logging.getLogger("carerota")
    logger.setLevel(TRACE)
    logger.handlers.clear()

    file_level = _level(level)
    cons_level = _level(console_level if console_level is not None else level)

    stream = stream or sys.stdout
    console = logging.StreamHandler(stream)
    console.setLevel(cons_level)
    console.setFormatter(ConsoleFormatter(stream))
    logger.addHandler(console)

    if log_file:
        logger.addHandler(_file_handler(Path(log_file), file_level, max_bytes, backup_count))

    for name in quiet:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.debug(
        f"Logging ready: console={logging.getLevelName(cons_level)}, "
        f"file={log_file or 'off'} ({logging.getLevelName(file_level)})"
    )
    return logger


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``carerota`` tree, e.g. ``get_logger("carerota.engine")``."""
    return logging.getLogger(name)


def _short(value: Any, width: int) -> str:
    text = repr(value)
    return text if len(text) <= width else text[:width - 3] + "..."


def _describe_call(func: Callable, args: tuple, kwargs: dict) -> str:
    parts = [_short(a, 50) for a in args[:3]]
    parts += [f"{k}={_short(v, 30)}" for k, v in list(kwargs.items())[:3]]
    return f"{func.__name__}({', '.join(parts)})"


def log_function_call(func: Callable) -> Callable:
    """
    Trace entry, exit and exceptions of a function or coroutine function.

    Entry and exit go out at TRACE; exceptions are logged at ERROR and
    re-raised unchanged.

    Usage:
        @log_function_call
        async def load_schedule(backend, package_id, week_start):
            ...
    """
    module = func.__module__ or ""
    logger = logging.getLogger(module if module.startswith("carerota") else f"carerota.{module}")

    def _failed(e: Exception):
        logger.error(f"✖ {func.__name__} raised {type(e).__name__}: {e}")

    if inspect.iscoroutinefunction(func):
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            logger.log(TRACE, f"→ {_describe_call(func, args, kwargs)}")
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                _failed(e)
                raise
            logger.log(TRACE, f"← {func.__name__}: {_short(result, 100)}")
            return result

        return async_wrapper

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger.log(TRACE, f"→ {_describe_call(func, args, kwargs)}")
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            _failed(e)
            raise
        logger.log(TRACE, f"← {func.__name__}: {_short(result, 100)}")
        return result

    return wrapper


def log_rule_check(
    logger: logging.Logger,
    rule: Any,
    satisfied: bool,
    details: str = "",
    level: int = logging.DEBUG,
    failed_level: int = logging.WARNING,
):
    """
    Log the result of one rule check.

    Args:
        logger: Logger to use
        rule: RuleType or rule name
        satisfied: Whether the rule holds
        details: Carer, slot or message text
        level: Level for a rule that holds
        failed_level: Level for a breached rule
    """
    name = getattr(rule, "value", rule)
    msg = f"[{'✓' if satisfied else '✗'}] {name}"
    if details:
        msg += f" ({details})"
    logger.log(level if satisfied else failed_level, msg)


class EngineLogger:
    """Indented trace of one rule-engine pass over a schedule."""

    def __init__(self, name: str = "carerota.engine"):
        self.logger = logging.getLogger(name)
        self.indent = 0

    def _prefix(self) -> str:
        return "  " * self.indent

    def phase(self, name: str):
        self.logger.info(f"=== {name} ===")

    def detail(self, key: str, value: Any):
        self.logger.debug(f"{self._prefix()}  {key}: {value}")

    def rule(self, rule: Any, satisfied: bool, details: str = "", failed_level: int = logging.WARNING):
        log_rule_check(self.logger, rule, satisfied, details, failed_level=failed_level)

    def enter(self, context: str):
        """Open a nested block, e.g. one entry of the schedule."""
        self.logger.debug(f"{self._prefix()}┌─ {context}")
        self.indent += 1

    def exit(self, context: str = ""):
        self.indent = max(0, self.indent - 1)
        if context:
            self.logger.debug(f"{self._prefix()}└─ {context}")

    def summary(self, errors: int, warnings: int):
        self.logger.info(f"Scan found {errors} error(s), {warnings} warning(s)")
