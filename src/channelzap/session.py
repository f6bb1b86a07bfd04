"""One playback session: every component wired together, with teardown."""
from __future__ import annotations

import asyncio
from contextlib import suppress
from typing import Callable, List, Optional

from .catalog import ChannelCatalog
from .config import CONTROLS_ENABLED_KEY, PLAYLIST_SOURCE_KEY, Preferences
from .input_router import InputRouter, KeyAction, KeySymbol
from .loader import PlaylistLoader, fetch_channels
from .logging_utils import get_logger
from .navigation import DEFAULT_CHANNEL_ID, NavigationEngine
from .overlays import OverlayCoordinator
from .player import PlaybackController, Player
from .playlist import Channel
from .timers import Scheduler

log = get_logger(__name__)

POSITION_POLL_INTERVAL = 0.5


def format_time(seconds: float) -> str:
    """Render *seconds* as ``MM:SS``."""

    total = max(0, int(seconds))
    minutes, remainder = divmod(total, 60)
    return f"{minutes:02d}:{remainder:02d}"


class PositionPoller:
    """Poll playback position twice a second while something is playing."""

    def __init__(
        self,
        playback: PlaybackController,
        is_active: Callable[[], bool],
        *,
        interval: float = POSITION_POLL_INTERVAL,
        on_update: Optional[Callable[[], None]] = None,
    ) -> None:
        self._playback = playback
        self._is_active = is_active
        self.interval = interval
        self.on_update = on_update
        self.position = 0.0
        self.duration = 1.0
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def progress(self) -> float:
        if self.duration <= 0:
            return 0.0
        return max(0.0, min(1.0, self.position / self.duration))

    def ensure_running(self) -> None:
        if self.running:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            log.debug("No running event loop; position polling not started")
            return
        self._task = loop.create_task(self._run(), name="position-poll")

    async def tick(self) -> bool:
        """Query the player once; return ``True`` when anything changed."""

        changed = False
        position = await self._playback.position()
        if position is not None:
            self.position = position
            changed = True
        duration = await self._playback.duration()
        if duration is not None and duration > 0:
            self.duration = duration
            changed = True
        if changed and self.on_update is not None:
            self.on_update()
        return changed

    async def _run(self) -> None:
        while self._is_active():
            await self.tick()
            await asyncio.sleep(self.interval)

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None or task.done():
            return
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task


class ZapSession:
    """Own the catalog, navigation, overlays, input routing and player."""

    def __init__(
        self,
        player: Player,
        preferences: Preferences,
        scheduler: Scheduler,
        *,
        default_channel_id: str = DEFAULT_CHANNEL_ID,
        default_group: Optional[str] = None,
        on_scroll: Optional[Callable[[int], None]] = None,
        on_change: Optional[Callable[[], None]] = None,
        fetch: Callable[[str], List[Channel]] = fetch_channels,
    ) -> None:
        self.preferences = preferences
        self.on_change = on_change
        self.catalog = ChannelCatalog()
        self.overlays = OverlayCoordinator(scheduler)
        self.playback = PlaybackController(player)
        self.engine = NavigationEngine(
            self.catalog,
            self.overlays,
            self.playback,
            preferences,
            default_channel_id=default_channel_id,
            default_group=default_group,
            on_scroll=on_scroll,
            on_change=self._engine_changed,
        )
        self.router = InputRouter(
            self.engine,
            self.overlays,
            self.playback,
            controls_enabled=preferences.get_bool(CONTROLS_ENABLED_KEY),
        )
        self.loader = PlaylistLoader(self._apply_channels, self._handle_load_failure, fetch=fetch)
        self.poller = PositionPoller(
            self.playback, lambda: self.engine.playing is not None, on_update=self._notify
        )
        self.last_error: Optional[str] = None
        self.loads_applied = 0
        self.closed = False

    def _notify(self) -> None:
        if self.on_change is not None and not self.closed:
            self.on_change()

    def _engine_changed(self) -> None:
        if self.engine.playing is not None and not self.closed:
            self.poller.ensure_running()
        self._notify()

    @property
    def controls_enabled(self) -> bool:
        return self.router.controls_enabled

    async def start(self) -> bool:
        """Start the player and apply the persisted controls setting."""

        started = await self.playback.start()
        if started:
            self.playback.set_overlay_visible(self.controls_enabled)
            # A playlist may have finished loading before the player was up.
            if self.engine.playing is not None:
                self.playback.load(self.engine.playing.url)
        return started

    def load(self, source: Optional[str] = None) -> Optional[asyncio.Task[None]]:
        """Load *source*, or the persisted playlist source when omitted."""

        if self.closed:
            return None
        if source is None:
            source = self.preferences.get_string(PLAYLIST_SOURCE_KEY)
        elif source != self.preferences.get_string(PLAYLIST_SOURCE_KEY):
            self.preferences.set_string(PLAYLIST_SOURCE_KEY, source)
        if not source:
            log.info("No playlist source configured")
            return None
        task = self.loader.request(source)
        self._notify()
        return task

    def _apply_channels(self, source: str, channels: List[Channel]) -> None:
        if self.closed:
            return
        self.last_error = None
        self.catalog.set_query("")
        self.loads_applied += 1
        self.catalog.set_channels(channels)
        self.engine.catalog_changed()

    def _handle_load_failure(self, source: str, exc: Exception) -> None:
        if self.closed:
            return
        self.last_error = f"Failed to load {source}: {exc}"
        log.error("Keeping previous catalog (%d channels)", len(self.catalog))
        self._notify()

    def set_controls_enabled(self, enabled: bool) -> None:
        self.preferences.set_bool(CONTROLS_ENABLED_KEY, enabled)
        self.router.controls_enabled = enabled
        self.playback.set_overlay_visible(enabled)
        log.info("Video controls %s", "enabled" if enabled else "disabled")
        self._notify()

    def toggle_controls(self) -> bool:
        self.set_controls_enabled(not self.controls_enabled)
        return self.controls_enabled

    def handle_key(self, key: KeySymbol, action: KeyAction = KeyAction.DOWN) -> bool:
        if self.closed:
            return False
        return self.router.handle(key, action)

    async def close(self) -> None:
        """Cancel every pending callback, then release the player."""

        if self.closed:
            return
        self.closed = True
        self.loader.cancel()
        self.overlays.cancel_all()
        await self.poller.stop()
        await self.playback.close()
        log.info("Session closed")


__all__ = ["POSITION_POLL_INTERVAL", "PositionPoller", "ZapSession", "format_time"]
