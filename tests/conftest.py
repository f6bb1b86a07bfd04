"""Shared fakes for the channelzap tests."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, Optional

import pytest

# Keep test runs from writing to ~/.cache/channelzap.log.
os.environ.setdefault("CHANNELZAP_LOG_FILE", "")

from channelzap.config import AppConfig, Preferences
from channelzap.playlist import Channel


class FakeHandle:
    def __init__(self, scheduler: "FakeScheduler", due: float, callback: Callable[[], None]) -> None:
        self.scheduler = scheduler
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Manual clock; callbacks run only when :meth:`advance` passes their due time."""

    def __init__(self) -> None:
        self.time = 0.0
        self.handles: list[FakeHandle] = []

    def now(self) -> float:
        return self.time

    def call_later(self, delay: float, callback: Callable[[], None]) -> FakeHandle:
        handle = FakeHandle(self, self.time + delay, callback)
        self.handles.append(handle)
        return handle

    @property
    def pending(self) -> list[FakeHandle]:
        return [handle for handle in self.handles if not handle.cancelled]

    def advance(self, seconds: float) -> None:
        target = self.time + seconds
        while True:
            due = [h for h in self.pending if h.due <= target]
            if not due:
                break
            handle = min(due, key=lambda h: h.due)
            self.handles.remove(handle)
            self.time = handle.due
            handle.callback()
        self.time = target


class FakePlayer:
    """Records every command; set ``fail`` to make commands raise."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.fail: set[str] = set()
        self.position: Optional[float] = 12.0
        self.duration: Optional[float] = 120.0
        self.started = False
        self.closed = False

    def _record(self, name: str, *args) -> None:
        self.calls.append((name, *args))
        if name in self.fail:
            raise RuntimeError(f"{name} failed")

    @property
    def loaded(self) -> list[str]:
        return [call[1] for call in self.calls if call[0] == "load"]

    async def start(self) -> bool:
        self._record("start")
        self.started = True
        return True

    def load(self, url: str) -> None:
        self._record("load", url)

    def seek(self, delta_seconds: float) -> None:
        self._record("seek", delta_seconds)

    def toggle_pause(self) -> None:
        self._record("toggle_pause")

    def set_overlay_visible(self, visible: bool) -> None:
        self._record("set_overlay_visible", visible)

    async def get_position_seconds(self) -> Optional[float]:
        self._record("get_position_seconds")
        return self.position

    async def get_duration_seconds(self) -> Optional[float]:
        self._record("get_duration_seconds")
        return self.duration

    async def close(self) -> None:
        self._record("close")
        self.closed = True


def make_channels(*specs: tuple[str, str]) -> list[Channel]:
    """Build channels with ids from 1 and urls ``http://tv/<id>``."""

    return [
        Channel(id=str(index), name=name, group=group, url=f"http://tv/{index}")
        for index, (name, group) in enumerate(specs, start=1)
    ]


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def fake_player() -> FakePlayer:
    return FakePlayer()


@pytest.fixture
def preferences(tmp_path: Path) -> Preferences:
    return Preferences(AppConfig(), tmp_path / "config.yaml")
