"""Auto-hide timers for transient overlays."""
from __future__ import annotations

from typing import Callable, Optional, Protocol

from .logging_utils import get_logger

log = get_logger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Source of delayed callbacks; the UI event loop provides one."""

    def now(self) -> float: ...

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


VisibilityListener = Callable[["OverlayTimer", bool], None]


class OverlayTimer:
    """Visibility of one overlay: ``Hidden -> Visible(deadline) -> Hidden``.

    Arming while visible replaces the pending deadline instead of adding a
    second one, so only the last arm produces a hide.
    """

    def __init__(self, name: str, delay: float, scheduler: Scheduler) -> None:
        self.name = name
        self.delay = delay
        self._scheduler = scheduler
        self._handle: Optional[TimerHandle] = None
        self._deadline: Optional[float] = None
        self._listeners: list[VisibilityListener] = []
        self._expire_callbacks: list[Callable[[], None]] = []

    @property
    def visible(self) -> bool:
        return self._deadline is not None

    @property
    def deadline(self) -> Optional[float]:
        return self._deadline

    def add_listener(self, listener: VisibilityListener) -> None:
        """Call *listener* on every show, re-arm and hide."""

        self._listeners.append(listener)

    def on_expire(self, callback: Callable[[], None]) -> None:
        """Call *callback* when the deadline passes (not on cancel)."""

        self._expire_callbacks.append(callback)

    def arm(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
        self._deadline = self._scheduler.now() + self.delay
        self._handle = self._scheduler.call_later(self.delay, self._fire)
        log.debug("Overlay %s armed until %.3f", self.name, self._deadline)
        self._notify(True)

    def cancel(self) -> None:
        """Hide immediately without running expiry callbacks."""

        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        if self._deadline is None:
            return
        self._deadline = None
        self._notify(False)

    def _fire(self) -> None:
        if self._deadline is None:
            return
        self._handle = None
        self._deadline = None
        log.debug("Overlay %s expired", self.name)
        for callback in list(self._expire_callbacks):
            callback()
        self._notify(False)

    def _notify(self, visible: bool) -> None:
        for listener in list(self._listeners):
            listener(self, visible)


__all__ = ["OverlayTimer", "Scheduler", "TimerHandle", "VisibilityListener"]
