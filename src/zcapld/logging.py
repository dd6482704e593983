# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Structured logging configuration for zcapld.

Provides:
- JSON formatter for production (machine-parseable)
- Standard formatter for development (human-readable)
- Correlation IDs for tracing one authorization decision across modules
- ``LogLevels``: an injectable table of per-module thresholds and
  caller-info switches, applied to stdlib loggers on demand
"""

from __future__ import annotations

import json
import logging
import sys
import threading
import uuid
from collections.abc import Generator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

from .exceptions import ConfigException

# Context variable for correlation ID (thread/async-safe)
_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def get_correlation_id() -> str | None:
    """Get the current correlation ID."""
    return _correlation_id.get()


def set_correlation_id(correlation_id: str | None) -> None:
    """Set the correlation ID for the current context.

    Args:
        correlation_id: The correlation ID to set, or None to clear.
    """
    _correlation_id.set(correlation_id)


def generate_correlation_id() -> str:
    """Generate a new unique correlation ID."""
    return str(uuid.uuid4())


@contextmanager
def correlation_context(
    correlation_id: str | None = None,
) -> Generator[str, None, None]:
    """Context manager for correlation ID scope.

    Args:
        correlation_id: Optional correlation ID to use. If None, generates a new one.

    Yields:
        The correlation ID being used.

    Example:
        with correlation_context() as cid:
            verifier.verify(proof, invocation)  # log records carry cid
    """
    cid = correlation_id or generate_correlation_id()
    token = _correlation_id.set(cid)
    try:
        yield cid
    finally:
        _correlation_id.reset(token)


def parse_level(level: str | int) -> int:
    """Convert a level name or number to a stdlib logging level.

    Raises:
        ConfigException: If the name is not a known level.
    """
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.strip().upper())
    if not isinstance(value, int):
        raise ConfigException(f"Unknown log level: {level!r}", setting="log_level")
    return value


# =============================================================================
# PER-MODULE LEVELS
# =============================================================================


class LogLevels:
    """Per-module log thresholds and caller-info switches.

    Module names are dotted logger names. A module without its own entry
    inherits from its nearest configured parent, then from ``default``.

    Instances are passed explicitly to ``configure_logging`` and
    ``CallerInfoFilter``; there is no process-wide table.

    Example:
        levels = LogLevels.from_spec("zcapld.verifier=DEBUG,zcapld.resolver=WARNING")
        levels.is_enabled_for("zcapld.verifier", logging.DEBUG)  # True
        levels.apply()
    """

    def __init__(self, levels: dict[str, str | int] | None = None, default: str | int = logging.INFO):
        self._lock = threading.RLock()
        self._default = parse_level(default)
        self._levels: dict[str, int] = {}
        self._caller_info: set[tuple[str, int]] = set()
        for module, level in (levels or {}).items():
            self.set_level(module, level)

    @classmethod
    def from_spec(cls, spec: str, default: str | int = logging.INFO) -> LogLevels:
        """Build from a ``module=LEVEL,module=LEVEL`` string.

        Raises:
            ConfigException: If an entry is not ``module=LEVEL``.
        """
        levels: dict[str, str | int] = {}
        for entry in spec.split(","):
            entry = entry.strip()
            if not entry:
                continue
            module, sep, level = entry.partition("=")
            if not sep or not module.strip() or not level.strip():
                raise ConfigException(
                    f"Invalid module log level entry: {entry!r}",
                    setting="module_log_levels",
                )
            levels[module.strip()] = level
        return cls(levels, default=default)

    @property
    def default(self) -> int:
        return self._default

    def set_level(self, module: str, level: str | int) -> None:
        """Set the threshold for a module."""
        parsed = parse_level(level)
        with self._lock:
            self._levels[module] = parsed

    def get_level(self, module: str) -> int:
        """Get the effective threshold for a module."""
        with self._lock:
            name = module
            while name:
                if name in self._levels:
                    return self._levels[name]
                name = name.rpartition(".")[0]
            return self._default

    def get_all_levels(self) -> dict[str, int]:
        """Return a copy of all explicitly set thresholds."""
        with self._lock:
            return dict(self._levels)

    def is_enabled_for(self, module: str, level: int) -> bool:
        """Check whether ``level`` passes the module's threshold."""
        return level >= self.get_level(module)

    def show_caller_info(self, module: str, level: str | int) -> None:
        """Include the source location in log lines for a module and level."""
        with self._lock:
            self._caller_info.add((module, parse_level(level)))

    def hide_caller_info(self, module: str, level: str | int) -> None:
        """Stop including the source location for a module and level."""
        with self._lock:
            self._caller_info.discard((module, parse_level(level)))

    def is_caller_info_enabled(self, module: str, level: str | int) -> bool:
        """Check whether caller info is shown for a module (or a parent) and level."""
        parsed = parse_level(level)
        with self._lock:
            name = module
            while name:
                if (name, parsed) in self._caller_info:
                    return True
                name = name.rpartition(".")[0]
            return False

    def apply(self) -> None:
        """Push the configured thresholds onto the stdlib loggers."""
        for module, level in self.get_all_levels().items():
            logging.getLogger(module).setLevel(level)


class CallerInfoFilter(logging.Filter):
    """Marks records whose module and level have caller info enabled.

    Formatters read ``record.caller_info`` to decide whether to print the
    source location.
    """

    def __init__(self, levels: LogLevels):
        super().__init__()
        self.levels = levels

    def filter(self, record: logging.LogRecord) -> bool:
        record.caller_info = self.levels.is_caller_info_enabled(record.name, record.levelno)
        return True


# =============================================================================
# FORMATTERS
# =============================================================================


class JSONFormatter(logging.Formatter):
    """JSON log formatter for production environments.

    Produces structured logs that can be parsed by log aggregation tools.
    Includes correlation ID when present in context.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        correlation_id = get_correlation_id()
        if correlation_id:
            log_data["correlation_id"] = correlation_id

        # Source location for warnings and above, or when requested
        if record.levelno >= logging.WARNING or getattr(record, "caller_info", False):
            log_data["source"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_data"):
            log_data["extra"] = record.extra_data

        return json.dumps(log_data, default=str)


class StandardFormatter(logging.Formatter):
    """Standard log formatter for development.

    Human-readable format with colors for terminal output.
    Includes correlation ID when present in context.
    """

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"
    CORRELATION_COLOR = "\033[90m"  # Gray

    def __init__(self, use_colors: bool = True):
        super().__init__(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        self.use_colors = use_colors and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        # Copy to avoid mutating the record seen by other handlers
        record = logging.makeLogRecord(record.__dict__)

        correlation_id = get_correlation_id()
        if correlation_id:
            short_cid = correlation_id[:8]
            if self.use_colors:
                cid_str = f"{self.CORRELATION_COLOR}[{short_cid}]{self.RESET} "
            else:
                cid_str = f"[{short_cid}] "
            record.msg = cid_str + str(record.msg)

        if getattr(record, "caller_info", False):
            record.msg = f"{record.msg} ({record.filename}:{record.lineno})"

        if self.use_colors:
            color = self.COLORS.get(record.levelname, "")
            record.levelname = f"{color}{record.levelname}{self.RESET}"

        return super().format(record)


def configure_logging(
    level: str | int | None = None,
    json_format: bool | None = None,
    log_file: str | None = None,
    levels: LogLevels | None = None,
) -> LogLevels:
    """Configure logging for services embedding the verifier.

    Args:
        level: Root log level (defaults to ZCAPLD_LOG_LEVEL)
        json_format: Use JSON format (auto-detect if None)
        log_file: Optional file to write logs to
        levels: Per-module thresholds (defaults to ZCAPLD_MODULE_LOG_LEVELS)

    Returns:
        The LogLevels table that was applied.
    """
    from .config import get_config

    config = get_config()

    root_level = parse_level(config.log_level if level is None else level)

    if json_format is None:
        format_env = config.log_format.lower()
        if format_env == "json":
            json_format = True
        elif format_env == "text":
            json_format = False
        else:
            # Auto-detect: use JSON if not in a terminal
            json_format = not sys.stderr.isatty()

    log_file = config.log_file if log_file is None else log_file

    if levels is None:
        levels = LogLevels.from_spec(config.module_log_levels, default=root_level)

    formatter: logging.Formatter
    if json_format:
        formatter = JSONFormatter()
    else:
        formatter = StandardFormatter()

    caller_filter = CallerInfoFilter(levels)

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(caller_filter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        # Always use JSON for file output
        file_handler.setFormatter(JSONFormatter())
        file_handler.addFilter(caller_filter)
        root_logger.addHandler(file_handler)

    levels.apply()

    # Set levels for noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    return levels
