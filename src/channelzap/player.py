"""mpv playback backend driven over its JSON IPC socket."""
from __future__ import annotations

import asyncio
import enum
import itertools
import json
import os
import shutil
import subprocess
import sys
import tempfile
from contextlib import suppress
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterable, Optional, Protocol, Sequence

from .logging_utils import get_logger

PREFERRED_PLAYER_DEFAULT = "mpv"

DEFAULT_PLAYER_CANDIDATES: Sequence[str] = ("mpv",)

PLAYER_PROBE_TIMEOUT_ENV = "CHANNELZAP_PLAYER_PROBE_TIMEOUT"
DEFAULT_PLAYER_PROBE_TIMEOUT = 10.0

SEEK_STEP_SECONDS = 10.0

log = get_logger(__name__)


class Player(Protocol):
    """Playback capability used by the navigation engine."""

    async def start(self) -> bool: ...

    def load(self, url: str) -> None: ...

    def seek(self, delta_seconds: float) -> None: ...

    def toggle_pause(self) -> None: ...

    def set_overlay_visible(self, visible: bool) -> None: ...

    async def get_position_seconds(self) -> Optional[float]: ...

    async def get_duration_seconds(self) -> Optional[float]: ...

    async def close(self) -> None: ...


class SessionState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    DISPOSED = "disposed"


@dataclass(slots=True)
class PlayerCommand:
    """Describe a player invocation."""

    executable: str
    args: list[str]
    ipc_path: Optional[str] = None
    cleanup_paths: tuple[Path, ...] = ()

    def as_sequence(self) -> list[str]:
        return [self.executable, *self.args]


def detect_player(
    preferred: Optional[str] = None,
    *,
    candidates: Iterable[str] = DEFAULT_PLAYER_CANDIDATES,
) -> Optional[str]:
    """Return the path to the first available player executable."""

    search_order: list[str] = []
    if preferred:
        search_order.append(str(preferred))
    for candidate in candidates:
        if candidate not in search_order:
            search_order.append(candidate)
    for executable in search_order:
        path = shutil.which(executable)
        if path:
            log.info("Selected player executable: %s (from candidate %s)", path, executable)
            return path
        log.debug("Player candidate %s not found on PATH", executable)
    return None


def _detect_display_backend() -> str:
    if sys.platform == "darwin":
        return "darwin"
    if os.getenv("WAYLAND_DISPLAY"):
        return "wayland"
    if os.getenv("DISPLAY"):
        return "x11"
    return "unknown"


def _hardware_flags() -> list[str]:
    backend = _detect_display_backend()
    if backend == "darwin":
        return ["--hwdec=auto-safe"]
    if backend in {"wayland", "x11"}:
        return ["--hwdec=auto-safe", "--vo=gpu", f"--gpu-context={backend}"]
    return []


def _prepare_ipc() -> tuple[str, tuple[Path, ...]]:
    temp_dir = Path(tempfile.mkdtemp(prefix="channelzap_mpv_"))
    return str(temp_dir / "ipc.sock"), (temp_dir,)


def build_player_command(
    preferred: Optional[str] = None, *, controls_enabled: bool = False
) -> PlayerCommand:
    """Build an idle mpv invocation that listens on a fresh IPC socket."""

    executable = detect_player(preferred)
    if executable is None:
        log.error("Unable to locate mpv")
        raise RuntimeError("mpv was not found on PATH")
    ipc_path, cleanup_paths = _prepare_ipc()
    args = [
        "--idle=yes",
        "--force-window=immediate",
        "--no-terminal",
        "--framedrop=vo",
        f"--osc={'yes' if controls_enabled else 'no'}",
        "--osd-level=3",
        "--osd-on-seek=msg-bar",
        "--osd-duration=2500",
        *_hardware_flags(),
        f"--input-ipc-server={ipc_path}",
    ]
    command = PlayerCommand(
        executable=executable,
        args=args,
        ipc_path=ipc_path,
        cleanup_paths=cleanup_paths,
    )
    log.info("Built player command: %s", command.as_sequence())
    return command


def _player_probe_timeout() -> float:
    raw_value = os.getenv(PLAYER_PROBE_TIMEOUT_ENV)
    if raw_value is None:
        return DEFAULT_PLAYER_PROBE_TIMEOUT
    try:
        timeout = float(raw_value)
    except ValueError:
        log.warning(
            "Invalid %s value %r; using default %.1f seconds",
            PLAYER_PROBE_TIMEOUT_ENV,
            raw_value,
            DEFAULT_PLAYER_PROBE_TIMEOUT,
        )
        return DEFAULT_PLAYER_PROBE_TIMEOUT
    if timeout <= 0:
        return DEFAULT_PLAYER_PROBE_TIMEOUT
    return timeout


def probe_player(preferred: Optional[str] = None) -> str:
    """Run ``mpv --version`` and return the first line of its output."""

    executable = detect_player(preferred)
    if executable is None:
        raise RuntimeError("mpv was not found on PATH")
    timeout = _player_probe_timeout()
    try:
        result = subprocess.run(
            [executable, "--version"],
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as exc:
        raise RuntimeError(
            f"{Path(executable).name} --version timed out after {timeout:.1f} seconds"
        ) from exc
    except (OSError, subprocess.SubprocessError) as exc:
        raise RuntimeError(f"Player probe failed: {exc}") from exc
    if result.returncode != 0:
        output = result.stderr.strip() or result.stdout.strip()
        raise RuntimeError(
            f"{Path(executable).name} --version exited with {result.returncode}: {output}"
        )
    output = result.stdout.strip() or result.stderr.strip()
    summary = output.splitlines()[0] if output else Path(executable).name
    log.info("Player probe succeeded using %s: %s", executable, summary)
    return summary


class MpvPlayer:
    """An mpv process controlled through ``--input-ipc-server``.

    Commands are only sent in :attr:`SessionState.READY`; before
    :meth:`start` succeeds and after :meth:`close` they are ignored and
    property queries return ``None``.
    """

    def __init__(
        self,
        *,
        preferred: Optional[str] = None,
        controls_enabled: bool = False,
        request_timeout: float = 1.0,
    ) -> None:
        self.state = SessionState.UNINITIALIZED
        self._preferred = preferred
        self._controls_enabled = controls_enabled
        self._request_timeout = request_timeout
        self._command: Optional[PlayerCommand] = None
        self._process: Optional[asyncio.subprocess.Process] = None
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._reader_task: Optional[asyncio.Task[None]] = None
        self._pending: dict[int, asyncio.Future[dict[str, Any]]] = {}
        self._request_ids = itertools.count(1)

    async def start(self) -> bool:
        if self.state is not SessionState.UNINITIALIZED:
            return self.state is SessionState.READY
        if sys.platform == "win32":  # pragma: no cover - platform dependent
            log.warning("mpv IPC control is not supported on Windows")
            return False
        self._command = build_player_command(
            self._preferred, controls_enabled=self._controls_enabled
        )
        log.info("Launching mpv")
        self._process = await asyncio.create_subprocess_exec(
            *self._command.as_sequence(),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        )
        log.debug("Spawned mpv PID %s", getattr(self._process, "pid", "unknown"))
        assert self._command.ipc_path is not None
        connection = await self._connect(self._command.ipc_path)
        if connection is None:
            await self._shutdown_process()
            self._cleanup_paths()
            return False
        self._reader, self._writer = connection
        self._reader_task = asyncio.get_running_loop().create_task(self._read_replies())
        self.state = SessionState.READY
        log.info("mpv session ready")
        return True

    async def _connect(
        self, ipc_path: str, retries: int = 50, delay: float = 0.1
    ) -> Optional[tuple[asyncio.StreamReader, asyncio.StreamWriter]]:
        for attempt in range(retries):
            try:
                return await asyncio.open_unix_connection(ipc_path)
            except (FileNotFoundError, ConnectionRefusedError):
                await asyncio.sleep(delay)
            except OSError as exc:
                log.debug("Attempt %s to reach mpv IPC at %s failed: %s", attempt + 1, ipc_path, exc)
                await asyncio.sleep(delay)
        log.warning("Unable to connect to mpv IPC server at %s", ipc_path)
        return None

    async def _read_replies(self) -> None:
        assert self._reader is not None
        try:
            while True:
                line = await self._reader.readline()
                if not line:
                    break
                try:
                    payload = json.loads(line.decode("utf-8"))
                except (UnicodeDecodeError, json.JSONDecodeError):
                    continue
                request_id = payload.get("request_id")
                if request_id is not None:
                    future = self._pending.pop(request_id, None)
                    if future is not None and not future.done():
                        future.set_result(payload)
                    continue
                if payload.get("event"):
                    log.debug("mpv event: %s", payload["event"])
        except asyncio.CancelledError:
            raise
        except Exception:
            log.exception("Error while reading mpv IPC replies")
        finally:
            for future in self._pending.values():
                if not future.done():
                    future.set_result({"error": "disconnected"})
            self._pending.clear()
            if self.state is SessionState.READY:
                log.warning("mpv IPC connection closed")
                self.state = SessionState.DISPOSED

    def _send(self, command: list[Any], *, request_id: Optional[int] = None) -> bool:
        if self.state is not SessionState.READY or self._writer is None:
            log.debug("Ignoring mpv command %s; session is %s", command[0], self.state.value)
            return False
        payload: dict[str, Any] = {"command": command}
        if request_id is not None:
            payload["request_id"] = request_id
        self._writer.write((json.dumps(payload) + "\n").encode("utf-8"))
        return True

    async def _get_number(self, name: str) -> Optional[float]:
        if self.state is not SessionState.READY:
            return None
        request_id = next(self._request_ids)
        future: asyncio.Future[dict[str, Any]] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        if not self._send(["get_property", name], request_id=request_id):
            self._pending.pop(request_id, None)
            return None
        try:
            reply = await asyncio.wait_for(future, timeout=self._request_timeout)
        except asyncio.TimeoutError:
            self._pending.pop(request_id, None)
            log.debug("mpv did not answer get_property %s in time", name)
            return None
        if reply.get("error") != "success":
            return None
        data = reply.get("data")
        if isinstance(data, bool) or not isinstance(data, (int, float)):
            return None
        return float(data)

    def load(self, url: str) -> None:
        self._send(["loadfile", url, "replace"])

    def seek(self, delta_seconds: float) -> None:
        self._send(["seek", delta_seconds, "relative"])

    def toggle_pause(self) -> None:
        self._send(["cycle", "pause"])

    def set_overlay_visible(self, visible: bool) -> None:
        self._controls_enabled = visible
        # mpv started with --osc=no has no OSC script to receive the message.
        self._send(["set_property", "osc", visible])
        self._send(["script-message", "osc-visibility", "auto" if visible else "never"])

    async def get_position_seconds(self) -> Optional[float]:
        return await self._get_number("time-pos")

    async def get_duration_seconds(self) -> Optional[float]:
        return await self._get_number("duration")

    async def close(self) -> None:
        if self.state is SessionState.READY:
            self._send(["quit"])
        self.state = SessionState.DISPOSED
        if self._reader_task is not None:
            self._reader_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._reader_task
            self._reader_task = None
        if self._writer is not None:
            self._writer.close()
            with suppress(Exception):
                await self._writer.wait_closed()
            self._writer = None
        await self._shutdown_process()
        self._cleanup_paths()

    async def _shutdown_process(self) -> None:
        process = self._process
        self._process = None
        if process is None or process.returncode is not None:
            return
        try:
            await asyncio.wait_for(process.wait(), timeout=2.0)
        except asyncio.TimeoutError:
            log.info("mpv did not exit; terminating PID %s", process.pid)
            process.terminate()
            await process.wait()

    def _cleanup_paths(self) -> None:
        if self._command is None:
            return
        for path in self._command.cleanup_paths:
            shutil.rmtree(path, ignore_errors=True)


class PlaybackController:
    """Front for a :class:`Player` where no single failure escapes.

    Each command is isolated: an exception is logged and reported as a
    ``False`` result, queries fall back to ``None``.
    """

    def __init__(self, player: Player) -> None:
        self.player = player

    def _run(self, label: str, command: Callable[..., None], *args: Any) -> bool:
        try:
            command(*args)
        except Exception:
            log.warning("Player command %s failed", label, exc_info=True)
            return False
        return True

    async def _query(self, label: str, query: Callable[[], Awaitable[Optional[float]]]) -> Optional[float]:
        try:
            return await query()
        except asyncio.CancelledError:
            raise
        except Exception:
            log.debug("Player query %s failed", label, exc_info=True)
            return None

    async def start(self) -> bool:
        try:
            return await self.player.start()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            log.error("Unable to start player: %s", exc)
            return False

    def load(self, url: str) -> bool:
        return self._run("load", self.player.load, url)

    def seek(self, delta_seconds: float) -> bool:
        return self._run("seek", self.player.seek, delta_seconds)

    def toggle_pause(self) -> bool:
        return self._run("toggle_pause", self.player.toggle_pause)

    def set_overlay_visible(self, visible: bool) -> bool:
        return self._run("set_overlay_visible", self.player.set_overlay_visible, visible)

    async def position(self) -> Optional[float]:
        return await self._query("position", self.player.get_position_seconds)

    async def duration(self) -> Optional[float]:
        return await self._query("duration", self.player.get_duration_seconds)

    async def close(self) -> None:
        try:
            await self.player.close()
        except Exception:
            log.warning("Failed to close player cleanly", exc_info=True)


__all__ = [
    "DEFAULT_PLAYER_CANDIDATES",
    "MpvPlayer",
    "PREFERRED_PLAYER_DEFAULT",
    "PlaybackController",
    "Player",
    "PlayerCommand",
    "SEEK_STEP_SECONDS",
    "SessionState",
    "build_player_command",
    "detect_player",
    "probe_player",
]
