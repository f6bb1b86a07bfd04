"""Map remote-control key symbols onto navigation and playback actions."""
from __future__ import annotations

import enum
from typing import Union

from .logging_utils import get_logger
from .navigation import NavigationEngine
from .overlays import OverlayCoordinator
from .player import SEEK_STEP_SECONDS, PlaybackController

log = get_logger(__name__)

DIGITS = frozenset("0123456789")


class Key(str, enum.Enum):
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"
    CONFIRM = "confirm"
    BACK = "back"
    MENU = "menu"
    CHANNEL_UP = "channel_up"
    CHANNEL_DOWN = "channel_down"
    PLAY_PAUSE = "play_pause"
    FAST_FORWARD = "fast_forward"
    REWIND = "rewind"


class KeyAction(enum.Enum):
    DOWN = "down"
    UP = "up"


KeySymbol = Union[Key, str]


class InputRouter:
    """Dispatch key presses while the video is in front.

    With controls enabled the directional keys seek and confirm pauses;
    without them every directional key zaps and confirm opens the menu.
    Digits feed the channel number buffer in both modes.
    """

    def __init__(
        self,
        engine: NavigationEngine,
        overlays: OverlayCoordinator,
        playback: PlaybackController,
        *,
        controls_enabled: bool = False,
    ) -> None:
        self.engine = engine
        self.overlays = overlays
        self.playback = playback
        self.controls_enabled = controls_enabled

    def handle(self, key: KeySymbol, action: KeyAction = KeyAction.DOWN) -> bool:
        """Act on *key*; return ``True`` when the key was consumed."""

        if action is not KeyAction.DOWN:
            return False
        if not isinstance(key, Key) and key in DIGITS:
            self.engine.enter_digit(key)
            return True
        if self.overlays.menu_visible:
            return False
        try:
            key = Key(key)
        except ValueError:
            return False
        if key is Key.BACK:
            self.engine.open_menu()
            return True
        if self.controls_enabled:
            handled = self._handle_with_controls(key)
        else:
            handled = self._handle_zap_only(key)
        if handled:
            log.debug("Handled key %s (controls %s)", key.value, "on" if self.controls_enabled else "off")
        return handled

    def _seek(self, delta: float) -> None:
        self.playback.seek(delta)
        self.overlays.progress.arm()

    def _handle_with_controls(self, key: Key) -> bool:
        if key in (Key.RIGHT, Key.FAST_FORWARD):
            self._seek(SEEK_STEP_SECONDS)
        elif key in (Key.LEFT, Key.REWIND):
            self._seek(-SEEK_STEP_SECONDS)
        elif key in (Key.CONFIRM, Key.PLAY_PAUSE):
            self.playback.toggle_pause()
            self.overlays.progress.arm()
        elif key in (Key.UP, Key.CHANNEL_UP):
            self.engine.zap_next()
        elif key in (Key.DOWN, Key.CHANNEL_DOWN):
            self.engine.zap_previous()
        elif key is Key.MENU:
            self.engine.open_menu()
        else:
            return False
        return True

    def _handle_zap_only(self, key: Key) -> bool:
        if key in (Key.UP, Key.RIGHT, Key.CHANNEL_UP):
            self.engine.zap_next()
        elif key in (Key.DOWN, Key.LEFT, Key.CHANNEL_DOWN):
            self.engine.zap_previous()
        elif key is Key.CONFIRM:
            self.engine.open_menu()
        else:
            return False
        return True


__all__ = ["DIGITS", "InputRouter", "Key", "KeyAction", "KeySymbol"]
