"""Channel selection: zapping, numeric entry, startup choices and menu sync."""
from __future__ import annotations

from typing import Callable, Optional

from .catalog import ChannelCatalog, ViewMode
from .config import LAST_PLAYED_ID_KEY, Preferences
from .logging_utils import get_logger
from .overlays import OverlayCoordinator
from .player import PlaybackController
from .playlist import Channel

log = get_logger(__name__)

DEFAULT_CHANNEL_ID = "1"


class NavigationEngine:
    """Track the playing channel and move between channels.

    The playing channel is related to the catalog only through its URL and
    is re-resolved on demand; a URL missing from the catalog is a normal
    state, not an error.
    """

    def __init__(
        self,
        catalog: ChannelCatalog,
        overlays: OverlayCoordinator,
        playback: PlaybackController,
        preferences: Preferences,
        *,
        default_channel_id: str = DEFAULT_CHANNEL_ID,
        default_group: Optional[str] = None,
        on_scroll: Optional[Callable[[int], None]] = None,
        on_change: Optional[Callable[[], None]] = None,
    ) -> None:
        self.catalog = catalog
        self.overlays = overlays
        self.playback = playback
        self.preferences = preferences
        self.default_channel_id = default_channel_id
        self.default_group = default_group
        self.on_scroll = on_scroll
        self.on_change = on_change
        self.playing: Optional[Channel] = None
        self.selected_group: Optional[str] = None
        self.number_buffer = ""
        self.has_auto_played = False
        overlays.number.on_expire(self.commit_number_buffer)

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change()

    @property
    def view(self) -> ViewMode:
        return self.catalog.view_for(self.selected_group)

    @property
    def visible_channels(self) -> tuple[Channel, ...]:
        return self.catalog.visible(self.view)

    def play(self, channel: Channel) -> None:
        log.info("Playing channel %s: %s (%s)", channel.id, channel.name, channel.url)
        self.playing = channel
        self.preferences.set_string(LAST_PLAYED_ID_KEY, channel.id)
        self.overlays.hide_menu()
        self.overlays.info.arm()
        self.playback.load(channel.url)
        self._changed()

    def _current_index(self) -> int:
        if self.playing is None:
            return -1
        return self.catalog.index_of_url(self.playing.url)

    def zap_next(self) -> Optional[Channel]:
        channels = self.catalog.channels
        if not channels:
            return None
        index = self._current_index()
        target = channels[0 if index >= len(channels) - 1 else index + 1]
        self.play(target)
        return target

    def zap_previous(self) -> Optional[Channel]:
        channels = self.catalog.channels
        if not channels:
            return None
        index = self._current_index()
        target = channels[len(channels) - 1 if index <= 0 else index - 1]
        self.play(target)
        return target

    def enter_digit(self, digit: str) -> None:
        """Append *digit* to the number buffer and restart its timer."""

        if len(digit) != 1 or digit not in "0123456789":
            raise ValueError(f"Expected a single digit, got {digit!r}")
        self.number_buffer += digit
        self.overlays.number.arm()
        self._changed()

    def resolve_number_buffer(self, buffer: str) -> Optional[Channel]:
        """Play the 1-based catalog position in *buffer*; bad input is ignored."""

        target: Optional[Channel] = None
        position = int(buffer) if buffer.isascii() and buffer.isdigit() else 0
        if position > 0:
            target = self.catalog.channel_at(position)
        self.number_buffer = ""
        if target is None:
            log.debug("Ignoring channel number %r", buffer)
        else:
            self.play(target)
        self._changed()
        return target

    def commit_number_buffer(self) -> Optional[Channel]:
        return self.resolve_number_buffer(self.number_buffer)

    def select_group(self, group: Optional[str]) -> None:
        self.selected_group = group
        self._changed()

    def set_query(self, query: str) -> tuple[Channel, ...]:
        result = self.catalog.set_query(query)
        self._changed()
        return result

    def catalog_changed(self) -> None:
        """Reconcile state with a freshly loaded catalog."""

        if self.playing is not None:
            current = self.catalog.find_by_url(self.playing.url)
            if current is None:
                log.info("Playing channel %s is gone from the new playlist", self.playing.name)
            self.playing = current
        if self.selected_group is not None and self.selected_group not in self.catalog.groups:
            self.selected_group = None
        self._select_startup_group()
        self._auto_play()
        self._changed()

    def _select_startup_group(self) -> None:
        names = self.catalog.group_names
        if not names or self.selected_group is not None:
            return
        preferred = None
        if self.default_group:
            wanted = self.default_group.strip().lower()
            preferred = next((name for name in names if name.strip().lower() == wanted), None)
        self.selected_group = preferred or names[0]
        log.debug("Selected startup group %s", self.selected_group)

    def _auto_play(self) -> None:
        if self.has_auto_played or not self.catalog:
            return
        target = None
        saved_id = self.preferences.get_string(LAST_PLAYED_ID_KEY)
        if saved_id is not None:
            target = self.catalog.find_by_id(saved_id)
        if target is None:
            target = self.catalog.find_by_id(self.default_channel_id)
        if target is None:
            log.info("No startup channel found; waiting for the next playlist")
            return
        self.play(target)
        self.has_auto_played = True

    def open_menu(self) -> Optional[int]:
        """Show the menu and scroll it to the playing channel.

        Returns the index scrolled to, or ``None`` when the playing channel
        is not in the visible list.
        """

        self.overlays.show_menu()
        index = self._locate_playing()
        if index is not None and self.on_scroll is not None:
            self.on_scroll(index)
        self._changed()
        return index

    def _locate_playing(self) -> Optional[int]:
        if self.playing is None:
            return None
        channel = self.catalog.find_by_url(self.playing.url)
        if channel is None:
            return None
        if not self.catalog.searching:
            self.selected_group = channel.group
        index = self.catalog.index_of_url(channel.url, self.visible_channels)
        return index if index >= 0 else None

    def close_menu(self) -> None:
        self.overlays.hide_menu()
        self._changed()


__all__ = ["DEFAULT_CHANNEL_ID", "NavigationEngine"]
