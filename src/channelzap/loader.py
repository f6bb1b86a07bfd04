"""Background playlist loading that never blocks key handling."""
from __future__ import annotations

import asyncio
from contextlib import suppress
from typing import Callable, List, Optional

from .logging_utils import get_logger
from .playlist import Channel, parse_playlist, read_playlist_source

log = get_logger(__name__)


def fetch_channels(source: str, *, user_agent: Optional[str] = None) -> List[Channel]:
    """Read and parse *source*; blocking, meant for a worker thread."""

    return parse_playlist(read_playlist_source(source, user_agent=user_agent))


class PlaylistLoader:
    """Run playlist loads as asyncio tasks.

    A new request supersedes the one in flight. Results are tagged with a
    generation number and only the newest request's result reaches
    ``on_loaded``, so a slow, superseded download can never overwrite a newer
    catalog. Failures go to ``on_failed`` and leave the current catalog alone.
    """

    def __init__(
        self,
        on_loaded: Callable[[str, List[Channel]], None],
        on_failed: Optional[Callable[[str, Exception], None]] = None,
        *,
        fetch: Callable[[str], List[Channel]] = fetch_channels,
    ) -> None:
        self._on_loaded = on_loaded
        self._on_failed = on_failed
        self._fetch = fetch
        self._generation = 0
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def loading(self) -> bool:
        return self._task is not None and not self._task.done()

    def request(self, source: str) -> asyncio.Task[None]:
        """Start loading *source*; must be called from the event loop."""

        self.cancel()
        self._generation += 1
        log.info("Loading playlist %s (request %d)", source, self._generation)
        self._task = asyncio.get_running_loop().create_task(
            self._run(source, self._generation), name=f"playlist:{self._generation}"
        )
        return self._task

    async def _run(self, source: str, generation: int) -> None:
        try:
            channels = await asyncio.to_thread(self._fetch, source)
        except asyncio.CancelledError:
            log.debug("Playlist request %d cancelled", generation)
            raise
        except Exception as exc:
            if generation != self._generation:
                return
            log.exception("Error loading playlist from %s", source)
            if self._on_failed is not None:
                self._on_failed(source, exc)
            return
        if generation != self._generation:
            log.debug("Discarding result of superseded request %d", generation)
            return
        log.info("Loaded %d channel(s) from %s", len(channels), source)
        self._on_loaded(source, channels)

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def join(self) -> None:
        """Wait for the current request, if any, to finish."""

        task = self._task
        if task is None:
            return
        with suppress(asyncio.CancelledError):
            await task


__all__ = ["PlaylistLoader", "fetch_channels"]
