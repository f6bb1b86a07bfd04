"""Coordination of the transient overlays and the main menu."""
from __future__ import annotations

from typing import Callable, Optional

from .logging_utils import get_logger
from .timers import OverlayTimer, Scheduler

log = get_logger(__name__)

INFO_OVERLAY_DELAY = 4.0
NUMBER_BUFFER_DELAY = 2.0
PROGRESS_BAR_DELAY = 3.0

MenuListener = Callable[[bool], None]


class OverlayCoordinator:
    """Own the info, number-buffer and progress-bar timers plus menu visibility.

    The info overlay and the progress bar share the bottom display layer;
    the progress bar wins while both timers are running.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        *,
        info_delay: float = INFO_OVERLAY_DELAY,
        number_delay: float = NUMBER_BUFFER_DELAY,
        progress_delay: float = PROGRESS_BAR_DELAY,
    ) -> None:
        self.info = OverlayTimer("info", info_delay, scheduler)
        self.number = OverlayTimer("number", number_delay, scheduler)
        self.progress = OverlayTimer("progress", progress_delay, scheduler)
        self._menu_visible = True
        self._menu_listeners: list[MenuListener] = []

    @property
    def timers(self) -> tuple[OverlayTimer, OverlayTimer, OverlayTimer]:
        return (self.info, self.number, self.progress)

    @property
    def menu_visible(self) -> bool:
        return self._menu_visible

    @property
    def info_displayed(self) -> bool:
        return self.info.visible and not self.progress.visible and not self._menu_visible

    @property
    def bottom_layer(self) -> Optional[str]:
        """Name of the overlay currently drawn in the bottom bar."""

        if self.progress.visible:
            return "progress"
        if self.info_displayed:
            return "info"
        return None

    def add_menu_listener(self, listener: MenuListener) -> None:
        self._menu_listeners.append(listener)

    def show_menu(self) -> None:
        self._set_menu_visible(True)

    def hide_menu(self) -> None:
        self._set_menu_visible(False)

    def _set_menu_visible(self, visible: bool) -> None:
        if self._menu_visible == visible:
            return
        self._menu_visible = visible
        log.debug("Menu %s", "shown" if visible else "hidden")
        for listener in list(self._menu_listeners):
            listener(visible)

    def cancel_all(self) -> None:
        for timer in self.timers:
            timer.cancel()


__all__ = [
    "INFO_OVERLAY_DELAY",
    "NUMBER_BUFFER_DELAY",
    "OverlayCoordinator",
    "PROGRESS_BAR_DELAY",
]
