"""Textual application: full-screen channel player driven by remote keys."""
from __future__ import annotations

import time
from pathlib import Path
from typing import Callable, List, Optional

try:
    from textual import events, on
    from textual.app import App, ComposeResult
    from textual.binding import Binding
    from textual.containers import Horizontal, Vertical
    from textual.reactive import reactive
    from textual.timer import Timer
    from textual.widgets import Footer, Input, Label, ListItem, ListView, Static
except ModuleNotFoundError as exc:  # pragma: no cover - dependency guard
    raise ModuleNotFoundError(
        "The 'textual' package is required to run channelzap. "
        "Install dependencies with 'pip install -e .[test]' or 'pip install channelzap'."
    ) from exc

from rich.console import Group
from rich.markup import escape
from rich.progress_bar import ProgressBar
from rich.text import Text

from .config import PLAYLIST_SOURCE_KEY, AppConfig, Preferences
from .input_router import DIGITS, Key, KeySymbol
from .loader import fetch_channels
from .log_viewer import LogViewer
from .logging_utils import detach_console_handler, get_logger
from .player import MpvPlayer, Player
from .playlist import Channel
from .session import ZapSession, format_time

log = get_logger(__name__)


# Terminal key name -> remote-control key
KEY_SYMBOLS: dict[str, Key] = {
    "up": Key.UP,
    "down": Key.DOWN,
    "left": Key.LEFT,
    "right": Key.RIGHT,
    "enter": Key.CONFIRM,
    "escape": Key.BACK,
    "backspace": Key.BACK,
    "m": Key.MENU,
    "pageup": Key.CHANNEL_UP,
    "pagedown": Key.CHANNEL_DOWN,
    "space": Key.PLAY_PAUSE,
    "full_stop": Key.FAST_FORWARD,
    "comma": Key.REWIND,
}


def key_symbol(key: str) -> Optional[KeySymbol]:
    """Translate a Textual key name, or return ``None`` for unmapped keys."""

    if len(key) == 1 and key in DIGITS:
        return key
    return KEY_SYMBOLS.get(key)


class _TimerHandle:
    def __init__(self, timer: Timer) -> None:
        self._timer = timer

    def cancel(self) -> None:
        self._timer.stop()


class AppScheduler:
    """Run overlay deadlines on the application's event loop."""

    def __init__(self, app: App) -> None:
        self._app = app

    def now(self) -> float:
        return time.monotonic()

    def call_later(self, delay: float, callback: Callable[[], None]) -> _TimerHandle:
        return _TimerHandle(self._app.set_timer(delay, callback))


class GroupItem(ListItem):
    def __init__(self, group: str) -> None:
        self.group = group
        super().__init__(Label(group, markup=False))


class ChannelItem(ListItem):
    """One row of the channel list: ``id. name``."""

    def __init__(self, channel: Channel) -> None:
        self.channel = channel
        super().__init__(Label(f"{channel.id}. {channel.name}", markup=False))


class _DigitListView(ListView):
    """List that still feeds digits to the channel number buffer."""

    def on_key(self, event: events.Key) -> None:
        if event.key not in DIGITS:
            return
        app = self.app
        if isinstance(app, ZapApp) and app.route_key(event.key):
            event.stop()
            event.prevent_default()


class GroupList(_DigitListView):
    pass


class ChannelList(_DigitListView):
    pass


class SearchInput(Input):
    """Search field that hands arrow navigation to the channel list."""

    def on_key(self, event: events.Key) -> None:  # pragma: no cover - UI callback
        if event.key == "down":
            app = self.app
            if isinstance(app, ZapApp):
                event.stop()
                app.call_after_refresh(app._focus_channel_list)


class VideoSurface(Static, can_focus=True):
    """Stand-in for the video window; owns key input while the menu is hidden."""

    def on_key(self, event: events.Key) -> None:
        app = self.app
        if isinstance(app, ZapApp) and app.route_key(event.key):
            event.stop()
            event.prevent_default()


class NumberBadge(Static):
    buffer: reactive[str] = reactive("")

    def watch_buffer(self, buffer: str) -> None:
        self.update(f"CH {buffer}" if buffer else "")


class InfoBar(Static):
    """Bottom overlay: channel info or the playback progress bar."""

    def show_info(self, channel: Channel) -> None:
        self.update(
            f"[b]{escape(channel.id)}. {escape(channel.name)}[/b]  [dim]{escape(channel.group)}[/dim]"
        )

    def show_progress(self, position: float, duration: float) -> None:
        bar = ProgressBar(total=max(duration, 1.0), completed=min(max(position, 0.0), duration))
        times = Text(f"{format_time(position)} / {format_time(duration)}", justify="center")
        self.update(Group(bar, times))


class StatusBar(Static):
    """A simple status bar widget."""

    status: reactive[str] = reactive("Ready")

    def watch_status(self, status: str) -> None:
        self.update(status)


DEFAULT_CSS = """
Screen {
    layout: vertical;
}

#menu {
    height: 1fr;
    layout: horizontal;
}

#group-list {
    width: 1fr;
    min-width: 20;
    border: heavy $surface;
}

#channel-pane {
    width: 3fr;
    layout: vertical;
}

#channel-list {
    height: 1fr;
    border: heavy $surface;
}

#video {
    height: 1fr;
    content-align: center middle;
    background: $boost;
}

#video.compact {
    height: 5;
}

#number-badge {
    dock: top;
    width: auto;
    padding: 0 2;
    background: $accent;
    offset-x: 1;
}

#info-bar {
    height: auto;
    min-height: 2;
    padding: 0 1;
    border: heavy $surface;
}

#log-viewer {
    height: 10;
    border: heavy $surface;
    padding: 0 1;
    overflow-y: auto;
}

StatusBar {
    padding: 0 1;
}
"""


class ZapApp(App[None]):
    """Main Textual application."""

    CSS = DEFAULT_CSS
    BINDINGS = [
        Binding("ctrl+c", "quit", "Quit"),
        Binding("q", "quit", "Quit"),
        Binding("f2", "toggle_controls", "Controls"),
        Binding("f4", "toggle_logs", "Logs"),
        Binding("f5", "reload", "Reload"),
        Binding("slash", "focus_search", "Search"),
        Binding("escape", "back", "Back", show=False),
    ]

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        *,
        config_path: Optional[Path] = None,
        preferred_player: Optional[str] = None,
        player: Optional[Player] = None,
        fetch: Callable[[str], List[Channel]] = fetch_channels,
    ) -> None:
        super().__init__()
        self.config = config if config is not None else AppConfig()
        self.preferences = Preferences(self.config, config_path)
        if player is None:
            player = MpvPlayer(
                preferred=preferred_player or self.config.preferred_player,
                controls_enabled=self.config.controls_enabled,
            )
        self.session = ZapSession(
            player,
            self.preferences,
            AppScheduler(self),
            default_channel_id=self.config.default_channel_id,
            default_group=self.config.default_group,
            on_scroll=self._scroll_to,
            on_change=self._schedule_refresh,
            fetch=fetch,
        )
        self.session.overlays.add_menu_listener(self._menu_toggled)
        for timer in self.session.overlays.timers:
            timer.add_listener(lambda _timer, _visible: self._schedule_refresh())
        self._refresh_pending = False
        self._rendered_groups: tuple[str, ...] = ()
        self._rendered_channels: tuple[Channel, ...] = ()
        self._pending_scroll: Optional[int] = None
        self._loads_seen = 0

    def compose(self) -> ComposeResult:
        with Horizontal(id="menu"):
            yield GroupList(id="group-list")
            with Vertical(id="channel-pane"):
                yield SearchInput(placeholder="Search channels…", id="search")
                yield ChannelList(id="channel-list")
        yield VideoSurface("No channel playing", id="video")
        yield NumberBadge(id="number-badge")
        yield InfoBar(id="info-bar")
        yield LogViewer(id="log-viewer")
        yield StatusBar(id="status")
        yield Footer()

    def on_mount(self) -> None:
        log.debug("Application mounted")
        detach_console_handler()
        self.query_one("#log-viewer", LogViewer).display = False
        self.run_worker(self.session.start(), name="player", exit_on_error=False)
        self.session.load()
        self._refresh_view()
        self._focus_channel_list()

    async def on_unmount(self) -> None:
        await self.session.close()

    # Key input -----------------------------------------------------------

    def route_key(self, key: str) -> bool:
        symbol = key_symbol(key)
        if symbol is None:
            return False
        return self.session.handle_key(symbol)

    # Session callbacks ---------------------------------------------------

    def _schedule_refresh(self) -> None:
        if self._refresh_pending:
            return
        self._refresh_pending = True
        self.call_later(self._refresh_view)

    def _scroll_to(self, index: int) -> None:
        self._pending_scroll = index
        self._schedule_refresh()

    def _menu_toggled(self, visible: bool) -> None:
        if visible:
            self.call_after_refresh(self._focus_channel_list)
        else:
            self.call_after_refresh(self._focus_video)
        self._schedule_refresh()

    def _focus_channel_list(self) -> None:
        channel_list = self.query_one("#channel-list", ChannelList)
        if channel_list.children and channel_list.index is None:
            channel_list.index = 0
        channel_list.focus()

    def _focus_video(self) -> None:
        self.query_one("#video", VideoSurface).focus()

    # Rendering -----------------------------------------------------------

    def _refresh_view(self) -> None:
        self._refresh_pending = False
        session = self.session
        overlays = session.overlays
        engine = session.engine
        menu_visible = overlays.menu_visible
        self.query_one("#menu").display = menu_visible
        video = self.query_one("#video", VideoSurface)
        video.set_class(menu_visible, "compact")
        playing = engine.playing
        video.update(
            Text(playing.name if playing is not None else "No channel playing", justify="center")
        )
        badge = self.query_one("#number-badge", NumberBadge)
        badge.buffer = engine.number_buffer if overlays.number.visible else ""
        badge.display = bool(badge.buffer)
        info = self.query_one("#info-bar", InfoBar)
        layer = overlays.bottom_layer
        if layer == "progress":
            info.show_progress(session.poller.position, session.poller.duration)
        elif layer == "info" and playing is not None:
            info.show_info(playing)
        else:
            layer = None
        info.display = layer is not None
        if session.loads_applied != self._loads_seen:
            self._loads_seen = session.loads_applied
            # A new catalog starts with no search query.
            search = self.query_one("#search", Input)
            if search.value and not session.catalog.query:
                search.value = ""
        self.query_one(StatusBar).status = self._status_text()
        self.call_later(self._sync_lists)

    def _status_text(self) -> str:
        session = self.session
        if session.last_error:
            return session.last_error
        if session.loader.loading:
            return "Loading playlist…"
        if not session.catalog and not session.preferences.get_string(PLAYLIST_SOURCE_KEY):
            return "No playlist configured; start with --playlist"
        controls = "on" if session.controls_enabled else "off"
        return f"{len(session.catalog)} channels • controls {controls}"

    async def _sync_lists(self) -> None:
        engine = self.session.engine
        catalog = self.session.catalog
        groups = tuple(catalog.group_names)
        channels = engine.visible_channels
        group_list = self.query_one("#group-list", GroupList)
        if groups != self._rendered_groups:
            self._rendered_groups = groups
            await group_list.clear()
            await group_list.extend(GroupItem(group) for group in groups)
        if engine.selected_group in groups and not catalog.searching:
            index = groups.index(engine.selected_group)
            if group_list.index != index:
                group_list.index = index
        channel_list = self.query_one("#channel-list", ChannelList)
        if channels != self._rendered_channels:
            self._rendered_channels = channels
            await channel_list.clear()
            await channel_list.extend(ChannelItem(channel) for channel in channels)
        if self._pending_scroll is not None:
            index = self._pending_scroll
            self._pending_scroll = None
            if 0 <= index < len(channels):
                channel_list.index = index

    # Widget events -------------------------------------------------------

    @on(ListView.Selected, "#group-list")
    def on_group_selected(self, event: ListView.Selected) -> None:
        if isinstance(event.item, GroupItem):
            log.debug("Group selected: %s", event.item.group)
            self.session.engine.select_group(event.item.group)
            self.call_after_refresh(self._focus_channel_list)

    @on(ListView.Selected, "#channel-list")
    def on_channel_selected(self, event: ListView.Selected) -> None:
        if isinstance(event.item, ChannelItem):
            self.session.engine.play(event.item.channel)

    @on(Input.Changed, "#search")
    def on_search_changed(self, event: Input.Changed) -> None:
        log.debug("Search changed: %s", event.value)
        self.session.engine.set_query(event.value)

    # Actions -------------------------------------------------------------

    def action_toggle_controls(self) -> None:
        enabled = self.session.toggle_controls()
        self.notify(f"Video controls {'enabled' if enabled else 'disabled'}")

    def action_toggle_logs(self) -> None:
        viewer = self.query_one("#log-viewer", LogViewer)
        viewer.display = not viewer.display

    def action_reload(self) -> None:
        search = self.query_one("#search", Input)
        if search.value:
            search.value = ""
        self.session.load()
        self._refresh_view()

    def action_focus_search(self) -> None:
        self.session.engine.open_menu()
        self.call_after_refresh(self.query_one("#search", Input).focus)

    def action_back(self) -> None:
        search = self.query_one("#search", Input)
        if search.value:
            search.value = ""
            return
        if self.session.engine.playing is not None:
            self.session.engine.close_menu()


__all__ = ["AppScheduler", "KEY_SYMBOLS", "ZapApp", "key_symbol"]
