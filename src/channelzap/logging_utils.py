"""Logging helpers for :mod:`channelzap`."""

from __future__ import annotations

import logging
import os
import threading
import weakref
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - only for typing
    from .log_viewer import LogViewer

__all__ = [
    "configure_logging",
    "detach_console_handler",
    "get_log_file_path",
    "get_logger",
    "register_log_viewer",
]

_ENV_LEVEL = "CHANNELZAP_LOG_LEVEL"
_ENV_FILE = "CHANNELZAP_LOG_FILE"
_DEFAULT_LOG_PATH = Path.home() / ".cache" / "channelzap.log"
_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_LOGGER_NAME = "channelzap"


def _coerce_level(value: str) -> int:
    """Return a logging level derived from *value*."""

    normalized = value.strip().upper()
    if normalized.isdigit():
        level = int(normalized)
        if 0 <= level <= logging.CRITICAL:
            return level
    return getattr(logging, normalized, logging.INFO)


class _UILogHandler(logging.Handler):
    """Buffer formatted records and relay them to the in-app log viewer."""

    def __init__(self, *, capacity: int = 300) -> None:
        super().__init__()
        self._buffer: deque[str] = deque(maxlen=capacity)
        self._viewer: Optional[weakref.ReferenceType["LogViewer"]] = None
        self._lock = threading.RLock()

    @property
    def messages(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(self._buffer)

    def set_viewer(self, viewer: Optional["LogViewer"]) -> None:
        with self._lock:
            self._viewer = weakref.ref(viewer) if viewer is not None else None
            backlog = list(self._buffer)
        if viewer is not None:
            viewer.replace_messages(backlog)

    def _current_viewer(self) -> Optional["LogViewer"]:
        with self._lock:
            ref = self._viewer
        return ref() if ref is not None else None

    def emit(self, record: logging.LogRecord) -> None:
        line = self.format(record)
        with self._lock:
            self._buffer.append(line)
        viewer = self._current_viewer()
        if viewer is None:
            return
        try:
            app = viewer.app
        except Exception:  # pragma: no cover - viewer detached from its app
            return
        try:
            app.call_from_thread(viewer.append_message, line)
        except RuntimeError:
            # Already on the app thread.
            viewer.append_message(line)
        except Exception:  # pragma: no cover - UI teardown races
            self.handleError(record)


@dataclass
class _LoggingState:
    level: int = logging.INFO
    console: Optional[logging.Handler] = None
    ui: Optional[_UILogHandler] = None
    file: Optional[logging.FileHandler] = None
    log_path: Optional[Path] = None
    ready: bool = False


_state = _LoggingState()


def _route_to_file(logger: logging.Logger, destination: Optional[str]) -> None:
    """Point file logging at *destination*; an empty value turns it off."""

    if _state.file is not None:
        logger.removeHandler(_state.file)
        _state.file.close()
        _state.file = None
    _state.log_path = None
    if not destination:
        return

    path = Path(destination).expanduser()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, encoding="utf8")
    except OSError:
        logger.warning("Failed to set up file logging at %s", path)
        return
    handler.setFormatter(logging.Formatter(fmt=_FORMAT, datefmt=_DATE_FORMAT))
    logger.addHandler(handler)
    _state.file = handler
    _state.log_path = path
    logger.debug("File logging enabled at %s", path)


def _install_handlers(logger: logging.Logger, log_file: Optional[str]) -> None:
    formatter = logging.Formatter(fmt=_FORMAT, datefmt=_DATE_FORMAT)
    logger.propagate = False

    _state.console = logging.StreamHandler()
    _state.console.setFormatter(formatter)
    logger.addHandler(_state.console)

    _state.ui = _UILogHandler()
    _state.ui.setFormatter(formatter)
    logger.addHandler(_state.ui)

    if log_file is None:
        log_file = os.getenv(_ENV_FILE, str(_DEFAULT_LOG_PATH))
    _route_to_file(logger, log_file)
    _state.ready = True


def configure_logging(
    *,
    level: Optional[str] = None,
    log_file: Optional[str] = None,
) -> logging.Logger:
    """Configure the package logger.

    The first call installs a console handler, the in-app UI handler and a
    file handler (``CHANNELZAP_LOG_FILE`` or ``~/.cache/channelzap.log``).
    Later calls only apply the overrides they are given, so modules can call
    this freely to obtain the logger.
    """

    logger = logging.getLogger(_LOGGER_NAME)
    requested = level if level is not None else os.getenv(_ENV_LEVEL)
    if requested is not None:
        _state.level = _coerce_level(requested)

    if not _state.ready:
        _install_handlers(logger, log_file)
    elif log_file is not None:
        _route_to_file(logger, log_file)

    logger.setLevel(_state.level)
    for handler in logger.handlers:
        handler.setLevel(_state.level)
    return logger


def detach_console_handler() -> None:
    """Stop writing to the terminal; used while the Textual UI owns the screen."""

    logger = configure_logging()
    handler = _state.console
    if handler is None:
        return
    logger.removeHandler(handler)
    _state.console = None
    logger.debug("Console log handler detached")


def get_log_file_path() -> Optional[Path]:
    """Return the active log file, if file logging is enabled."""

    configure_logging()
    return _state.log_path


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a module-specific logger."""

    base = configure_logging()
    if not name or name == base.name:
        return base
    if name.startswith(base.name + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{base.name}.{name}")


def register_log_viewer(viewer: Optional["LogViewer"]) -> None:
    """Attach *viewer* to the in-app log handler."""

    logger = configure_logging()
    if _state.ui is None:
        logger.warning("UI log handler is not available")
        return
    _state.ui.set_viewer(viewer)
