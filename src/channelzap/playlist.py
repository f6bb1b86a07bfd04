"""Parsing and fetching of M3U channel playlists."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, List, Optional
from urllib import request
from urllib.parse import unquote, urlparse

from .logging_utils import get_logger

log = get_logger(__name__)

EXTINF_MARKER = "#EXTINF"
GROUP_ATTRIBUTE = 'group-title="'
DEFAULT_NAME = "Unknown"
# Group for URL lines that appear before any metadata line.
DEFAULT_GROUP = "Uncategorized"
# Group for metadata lines that carry no group-title attribute.
UNGROUPED_LABEL = "All"


@dataclass(frozen=True, slots=True)
class Channel:
    """A playable channel entry from a playlist."""

    id: str
    name: str
    group: str
    url: str


class PlaylistError(RuntimeError):
    """Raised when a playlist source cannot be read."""


def _extract_name(line: str, previous: str) -> str:
    _, comma, name = line.rpartition(",")
    if not comma:
        return previous
    return name.strip()


def _extract_group(line: str) -> str:
    start = line.find(GROUP_ATTRIBUTE)
    if start < 0:
        return UNGROUPED_LABEL
    remainder = line[start + len(GROUP_ATTRIBUTE) :]
    value, _, _ = remainder.partition('"')
    return value


def parse_playlist(text: str) -> List[Channel]:
    """Parse playlist *text* into channels.

    Every non-blank, non-comment line is a stream URL that inherits the most
    recent ``#EXTINF`` name and group. Metadata without a following URL is
    overwritten by the next metadata line. Nothing here raises: text that is
    not a playlist simply yields no channels.
    """

    channels: List[Channel] = []
    name = DEFAULT_NAME
    group = DEFAULT_GROUP
    counter = 1

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line:
            continue
        if line.startswith(EXTINF_MARKER):
            name = _extract_name(line, name)
            group = _extract_group(line)
            continue
        if line.startswith("#"):
            continue
        channels.append(Channel(id=str(counter), name=name, group=group, url=line))
        counter += 1

    log.info("Parsed %d channels from playlist", len(channels))
    return channels


def format_playlist(channels: Iterable[Channel]) -> str:
    """Render *channels* as extended M3U text that parses back identically."""

    lines = ["#EXTM3U"]
    for channel in channels:
        lines.append(f'#EXTINF:-1 group-title="{channel.group}",{channel.name}')
        lines.append(channel.url)
    lines.append("")
    return "\n".join(lines)


def _decode(data: bytes) -> str:
    return data.decode("utf-8-sig", errors="replace")


def read_playlist_source(
    source: str | Path,
    *,
    timeout: float = 30.0,
    user_agent: Optional[str] = None,
    progress: Optional[Callable[[int, Optional[int]], None]] = None,
) -> str:
    """Return the raw text of a playlist from a URL, ``file://`` URL or path."""

    def report(loaded: int, total: Optional[int]) -> None:
        if progress is None:
            return
        try:
            progress(loaded, total)
        except Exception:  # pragma: no cover - diagnostic safeguard
            log.exception("Progress callback failed")

    source_str = str(source)
    log.info("Reading playlist from %s", source_str)
    chunk_size = 64_000
    data = bytearray()

    if source_str.startswith(("http://", "https://")):
        req = request.Request(source_str)
        if user_agent:
            req.add_header("User-Agent", user_agent)
        with request.urlopen(req, timeout=timeout) as response:
            total = getattr(response, "length", None)
            while True:
                chunk = response.read(chunk_size)
                if not chunk:
                    break
                data.extend(chunk)
                report(len(data), total)
        report(len(data), total)
        log.debug("Downloaded playlist bytes: %d", len(data))
        return _decode(bytes(data))

    if source_str.startswith("file://"):
        path = Path(unquote(urlparse(source_str).path))
    else:
        path = Path(source_str).expanduser()
    if not path.is_file():
        raise PlaylistError(f"Playlist path not found: {path}")
    data.extend(path.read_bytes())
    report(len(data), len(data))
    log.debug("Read playlist file %s (%d bytes)", path, len(data))
    return _decode(bytes(data))


__all__ = [
    "Channel",
    "DEFAULT_GROUP",
    "DEFAULT_NAME",
    "PlaylistError",
    "UNGROUPED_LABEL",
    "format_playlist",
    "parse_playlist",
    "read_playlist_source",
]
