"""Channel catalog with group partitioning and live filtering."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, Sequence, Union

from .logging_utils import get_logger
from .playlist import Channel

log = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class GroupedView:
    """Browse the channels of a single group."""

    group: Optional[str]


@dataclass(frozen=True, slots=True)
class FilteredView:
    """Browse every channel whose name matches ``query``."""

    query: str


ViewMode = Union[GroupedView, FilteredView]


def filter_channels(channels: Sequence[Channel], query: str) -> tuple[Channel, ...]:
    """Return channels whose name contains *query*, ignoring case."""

    if not query:
        return tuple(channels)
    needle = query.lower()
    return tuple(channel for channel in channels if needle in channel.name.lower())


class ChannelCatalog:
    """Ordered channel list plus the views derived from it."""

    def __init__(self, channels: Iterable[Channel] = ()) -> None:
        self._channels: tuple[Channel, ...] = ()
        self._groups: dict[str, tuple[Channel, ...]] = {}
        self._query = ""
        self._filtered: tuple[Channel, ...] = ()
        self.set_channels(channels)

    @staticmethod
    def groups_of(channels: Iterable[Channel]) -> dict[str, tuple[Channel, ...]]:
        """Partition *channels* by group, keyed in first-appearance order."""

        buckets: dict[str, list[Channel]] = {}
        for channel in channels:
            buckets.setdefault(channel.group, []).append(channel)
        return {group: tuple(members) for group, members in buckets.items()}

    def set_channels(self, channels: Iterable[Channel]) -> None:
        """Replace the catalog; derived views are rebuilt."""

        self._channels = tuple(channels)
        self._groups = self.groups_of(self._channels)
        self._filtered = filter_channels(self._channels, self._query)
        log.debug(
            "Catalog holds %d channel(s) in %d group(s)",
            len(self._channels),
            len(self._groups),
        )

    def set_query(self, query: str) -> tuple[Channel, ...]:
        """Set the search query and return the filtered view."""

        self._query = query
        self._filtered = filter_channels(self._channels, query)
        log.debug("Search query %r matched %d channel(s)", query, len(self._filtered))
        return self._filtered

    @property
    def channels(self) -> tuple[Channel, ...]:
        return self._channels

    @property
    def groups(self) -> dict[str, tuple[Channel, ...]]:
        return dict(self._groups)

    @property
    def group_names(self) -> list[str]:
        return list(self._groups)

    @property
    def query(self) -> str:
        return self._query

    @property
    def searching(self) -> bool:
        return bool(self._query)

    @property
    def filtered(self) -> tuple[Channel, ...]:
        return self._filtered

    def view_for(self, selected_group: Optional[str]) -> ViewMode:
        """Return the active view mode; a search always wins over the group."""

        if self._query:
            return FilteredView(self._query)
        return GroupedView(selected_group)

    def visible(self, view: ViewMode) -> tuple[Channel, ...]:
        """Return the channels shown for *view*."""

        if isinstance(view, FilteredView):
            if view.query == self._query:
                return self._filtered
            return filter_channels(self._channels, view.query)
        if view.group is None:
            return ()
        return self._groups.get(view.group, ())

    def find_by_id(self, channel_id: Optional[str]) -> Optional[Channel]:
        if channel_id is None:
            return None
        wanted = channel_id.strip()
        for channel in self._channels:
            if channel.id.strip() == wanted:
                return channel
        return None

    def find_by_url(self, url: Optional[str]) -> Optional[Channel]:
        index = self.index_of_url(url)
        return self._channels[index] if index >= 0 else None

    def index_of_url(self, url: Optional[str], channels: Optional[Sequence[Channel]] = None) -> int:
        """Return the first position of *url* in *channels* (default: catalog) or -1."""

        if url is None:
            return -1
        for index, channel in enumerate(self._channels if channels is None else channels):
            if channel.url == url:
                return index
        return -1

    def channel_at(self, position: int) -> Optional[Channel]:
        """Return the channel at 1-based *position*, or ``None`` when out of range."""

        if 1 <= position <= len(self._channels):
            return self._channels[position - 1]
        return None

    def __len__(self) -> int:
        return len(self._channels)

    def __iter__(self) -> Iterator[Channel]:
        return iter(self._channels)

    def __bool__(self) -> bool:
        return bool(self._channels)


__all__ = [
    "ChannelCatalog",
    "FilteredView",
    "GroupedView",
    "ViewMode",
    "filter_channels",
]
