from __future__ import annotations

import pytest

from conftest import make_channels

from channelzap.catalog import ChannelCatalog
from channelzap.config import LAST_PLAYED_ID_KEY
from channelzap.navigation import NavigationEngine
from channelzap.overlays import NUMBER_BUFFER_DELAY, OverlayCoordinator
from channelzap.player import PlaybackController
from channelzap.playlist import Channel


def build_engine(scheduler, player, preferences, channels=(), **kwargs) -> NavigationEngine:
    catalog = ChannelCatalog()
    overlays = OverlayCoordinator(scheduler)
    engine = NavigationEngine(catalog, overlays, PlaybackController(player), preferences, **kwargs)
    if channels:
        catalog.set_channels(channels)
        engine.catalog_changed()
    return engine


def _numbered(count: int):
    return make_channels(*[(f"Channel {index}", f"Group {index % 3}") for index in range(1, count + 1)])


def test_play_persists_hides_menu_and_arms_info(scheduler, fake_player, preferences):
    engine = build_engine(scheduler, fake_player, preferences)
    engine.catalog.set_channels(_numbered(3))
    channel = engine.catalog.channels[2]

    engine.play(channel)

    assert engine.playing == channel
    assert preferences.get_string(LAST_PLAYED_ID_KEY) == "3"
    assert not engine.overlays.menu_visible
    assert engine.overlays.info.visible
    assert fake_player.loaded == [channel.url]


def test_play_survives_player_failure(scheduler, fake_player, preferences):
    fake_player.fail.add("load")
    engine = build_engine(scheduler, fake_player, preferences, _numbered(2))
    assert engine.playing.id == "1"
    engine.zap_next()
    assert engine.playing.id == "2"


@pytest.mark.parametrize("size", [1, 2, 5])
def test_zap_next_cycles_back_to_start(scheduler, fake_player, preferences, size):
    engine = build_engine(scheduler, fake_player, preferences, _numbered(size))
    for start in engine.catalog.channels:
        engine.play(start)
        for _ in range(size):
            engine.zap_next()
        assert engine.playing == start


@pytest.mark.parametrize("size", [2, 4])
def test_zap_next_then_previous_returns(scheduler, fake_player, preferences, size):
    engine = build_engine(scheduler, fake_player, preferences, _numbered(size))
    for start in engine.catalog.channels:
        engine.play(start)
        engine.zap_next()
        engine.zap_previous()
        assert engine.playing == start


def test_zap_wraps_around(scheduler, fake_player, preferences):
    engine = build_engine(scheduler, fake_player, preferences, _numbered(3))
    engine.play(engine.catalog.channels[-1])
    assert engine.zap_next().id == "1"
    assert engine.zap_previous().id == "3"


def test_zap_uses_full_catalog_not_visible_view(scheduler, fake_player, preferences):
    engine = build_engine(scheduler, fake_player, preferences, _numbered(4))
    engine.set_query("Channel 4")
    engine.play(engine.catalog.channels[0])
    assert engine.zap_next().id == "2"


def test_zap_from_unknown_channel(scheduler, fake_player, preferences):
    engine = build_engine(scheduler, fake_player, preferences, _numbered(3))
    engine.playing = Channel(id="9", name="Elsewhere", group="X", url="http://other/9")
    assert engine.zap_next().id == "1"

    engine.playing = None
    assert engine.zap_previous().id == "3"


def test_empty_catalog_zaps_are_noops(scheduler, fake_player, preferences):
    engine = build_engine(scheduler, fake_player, preferences)
    assert engine.zap_next() is None
    assert engine.zap_previous() is None
    assert engine.playing is None
    assert fake_player.loaded == []


@pytest.mark.parametrize("buffer", ["0", "", "4", "-1", "abc", "00"])
def test_invalid_number_buffer_changes_nothing(scheduler, fake_player, preferences, buffer):
    engine = build_engine(scheduler, fake_player, preferences, _numbered(3))
    before = engine.playing
    loads = list(fake_player.loaded)
    engine.number_buffer = buffer

    assert engine.resolve_number_buffer(buffer) is None

    assert engine.playing == before
    assert fake_player.loaded == loads
    assert engine.number_buffer == ""


def test_number_buffer_selects_full_catalog_position(scheduler, fake_player, preferences):
    engine = build_engine(scheduler, fake_player, preferences, _numbered(5))
    engine.set_query("Channel 1")
    assert engine.resolve_number_buffer("04").id == "4"
    assert engine.number_buffer == ""


@pytest.mark.parametrize("buffer", ["1_0", " 3", "3 ", "+3", "٣", "1e1"])
def test_number_buffer_accepts_only_plain_ascii_digits(scheduler, fake_player, preferences, buffer):
    engine = build_engine(scheduler, fake_player, preferences, _numbered(12))
    loads = list(fake_player.loaded)

    assert engine.resolve_number_buffer(buffer) is None

    assert engine.playing.id == "1"
    assert fake_player.loaded == loads


def test_digits_accumulate_and_resolve_on_timeout(scheduler, fake_player, preferences):
    engine = build_engine(scheduler, fake_player, preferences, _numbered(600))

    for digit in "527":
        engine.enter_digit(digit)
        scheduler.advance(0.5)
    assert engine.number_buffer == "527"
    assert engine.playing.id == "1"

    scheduler.advance(NUMBER_BUFFER_DELAY - 0.6)
    assert engine.playing.id == "1"

    scheduler.advance(0.2)
    assert engine.playing.id == "527"
    assert engine.number_buffer == ""
    assert not engine.overlays.number.visible


def test_number_past_catalog_is_discarded_on_timeout(scheduler, fake_player, preferences):
    engine = build_engine(scheduler, fake_player, preferences, _numbered(10))
    engine.enter_digit("5")
    engine.enter_digit("2")
    engine.enter_digit("7")

    scheduler.advance(NUMBER_BUFFER_DELAY)

    assert engine.playing.id == "1"
    assert engine.number_buffer == ""


def test_enter_digit_rejects_other_keys(scheduler, fake_player, preferences):
    engine = build_engine(scheduler, fake_player, preferences)
    with pytest.raises(ValueError):
        engine.enter_digit("x")


def test_auto_play_prefers_last_played(scheduler, fake_player, preferences):
    preferences.set_string(LAST_PLAYED_ID_KEY, "3")
    engine = build_engine(scheduler, fake_player, preferences, _numbered(4))
    assert engine.playing.id == "3"
    assert engine.has_auto_played


def test_auto_play_falls_back_to_default_id(scheduler, fake_player, preferences):
    preferences.set_string(LAST_PLAYED_ID_KEY, "99")
    engine = build_engine(scheduler, fake_player, preferences, _numbered(4), default_channel_id="2")
    assert engine.playing.id == "2"


def test_auto_play_latch_stays_open_until_a_channel_resolves(scheduler, fake_player, preferences):
    engine = build_engine(scheduler, fake_player, preferences, _numbered(3), default_channel_id="7")
    assert engine.playing is None
    assert not engine.has_auto_played

    engine.catalog.set_channels(_numbered(8))
    engine.catalog_changed()
    assert engine.playing.id == "7"
    assert engine.has_auto_played

    engine.catalog.set_channels(_numbered(9))
    engine.catalog_changed()
    assert fake_player.loaded.count("http://tv/7") == 1


def test_startup_group_prefers_default_label(scheduler, fake_player, preferences):
    channels = make_channels(("A", "Music"), ("B", " tamil "), ("C", "News"))
    engine = build_engine(scheduler, fake_player, preferences, channels, default_group="Tamil")
    assert engine.selected_group == " tamil "


def test_startup_group_falls_back_to_first(scheduler, fake_player, preferences):
    channels = make_channels(("A", "Music"), ("B", "News"))
    engine = build_engine(scheduler, fake_player, preferences, channels, default_group="Tamil")
    assert engine.selected_group == "Music"


def test_reload_keeps_playing_channel_by_url(scheduler, fake_player, preferences):
    engine = build_engine(scheduler, fake_player, preferences, _numbered(3))
    engine.play(engine.catalog.channels[1])

    engine.catalog.set_channels(list(reversed(_numbered(3))))
    engine.catalog_changed()
    assert engine.playing.url == "http://tv/2"

    engine.catalog.set_channels(_numbered(1))
    engine.catalog_changed()
    assert engine.playing is None


def test_reload_keeps_selected_group_that_survives(scheduler, fake_player, preferences):
    channels = make_channels(("A", "Music"), ("B", "News"), ("C", "Sports"))
    engine = build_engine(scheduler, fake_player, preferences, channels)
    engine.select_group("News")

    engine.catalog.set_channels(make_channels(("C", "Sports"), ("B", "News")))
    engine.catalog_changed()

    assert engine.selected_group == "News"


@pytest.mark.parametrize(("default_group", "expected"), [(None, "Sports"), ("music", "Music")])
def test_reload_reselects_group_that_vanished(scheduler, fake_player, preferences, default_group, expected):
    channels = make_channels(("A", "Music"), ("B", "News"), ("C", "Sports"))
    engine = build_engine(scheduler, fake_player, preferences, channels, default_group=default_group)
    engine.select_group("News")

    engine.catalog.set_channels(make_channels(("C", "Sports"), ("A", "Music")))
    engine.catalog_changed()

    assert engine.selected_group == expected


def test_open_menu_scrolls_to_playing_channel(scheduler, fake_player, preferences):
    scrolled: list[int] = []
    channels = make_channels(("A", "News"), ("B", "Sports"), ("C", "News"), ("D", "Sports"))
    engine = build_engine(scheduler, fake_player, preferences, channels, on_scroll=scrolled.append)
    engine.play(engine.catalog.channels[3])
    engine.select_group("News")

    assert engine.open_menu() == 1
    assert engine.selected_group == "Sports"
    assert engine.overlays.menu_visible
    assert scrolled == [1]


def test_open_menu_while_searching_keeps_group(scheduler, fake_player, preferences):
    scrolled: list[int] = []
    channels = make_channels(("Alpha", "News"), ("Beta", "Sports"), ("Alpine", "Sports"))
    engine = build_engine(scheduler, fake_player, preferences, channels, on_scroll=scrolled.append)
    engine.play(engine.catalog.channels[2])
    engine.select_group("News")
    engine.set_query("alp")

    assert engine.open_menu() == 1
    assert engine.selected_group == "News"

    engine.set_query("beta")
    assert engine.open_menu() is None
    assert scrolled == [1]


def test_open_menu_without_playing_channel(scheduler, fake_player, preferences):
    engine = build_engine(scheduler, fake_player, preferences)
    engine.close_menu()
    assert engine.open_menu() is None
    assert engine.overlays.menu_visible
