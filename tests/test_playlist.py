from __future__ import annotations

import io
from pathlib import Path

import pytest

from channelzap import playlist as playlist_module
from channelzap.playlist import (
    DEFAULT_GROUP,
    DEFAULT_NAME,
    UNGROUPED_LABEL,
    Channel,
    PlaylistError,
    format_playlist,
    parse_playlist,
    read_playlist_source,
)

SAMPLE_PLAYLIST = """#EXTM3U
#EXTINF:-1 tvg-id="news.one" group-title="News",News One
http://example.com/news1.m3u8

#EXTINF:-1 group-title="Sports",Sports, Live
http://example.com/sports.m3u8
#EXTINF:-1,Movies Plus
# a stray comment
http://example.com/movies.m3u8
"""


def test_parse_playlist_two_entry_scenario():
    text = '#EXTINF:-1 group-title="News",Channel A\nhttp://x/1\n#EXTINF:-1,Channel B\nhttp://x/2\n'
    assert parse_playlist(text) == [
        Channel(id="1", name="Channel A", group="News", url="http://x/1"),
        Channel(id="2", name="Channel B", group=UNGROUPED_LABEL, url="http://x/2"),
    ]


def test_parse_playlist_skips_blank_and_comment_lines():
    channels = parse_playlist(SAMPLE_PLAYLIST)
    assert [channel.url for channel in channels] == [
        "http://example.com/news1.m3u8",
        "http://example.com/sports.m3u8",
        "http://example.com/movies.m3u8",
    ]
    assert [channel.id for channel in channels] == ["1", "2", "3"]


def test_name_is_taken_after_last_comma():
    channels = parse_playlist(SAMPLE_PLAYLIST)
    assert channels[1].name == "Live"
    assert channels[1].group == "Sports"


def test_name_without_comma_keeps_previous_value():
    text = "#EXTINF:-1,First\nhttp://x/1\n#EXTINF:-1 no name here\nhttp://x/2\n"
    channels = parse_playlist(text)
    assert [channel.name for channel in channels] == ["First", "First"]
    assert channels[1].group == UNGROUPED_LABEL


def test_first_entry_without_comma_is_unknown():
    channels = parse_playlist("#EXTINF:-1\nhttp://x/1\n")
    assert channels[0].name == DEFAULT_NAME


def test_group_value_is_verbatim():
    text = '#EXTINF:-1 group-title="Films &amp; Series",Cinema\nhttp://x/1\n'
    assert parse_playlist(text)[0].group == "Films &amp; Series"


def test_urls_before_any_metadata_use_defaults():
    channels = parse_playlist("http://x/0\n#EXTINF:-1,A\nhttp://x/1\n")
    assert channels[0] == Channel(id="1", name=DEFAULT_NAME, group=DEFAULT_GROUP, url="http://x/0")
    assert channels[1].id == "2"


def test_metadata_without_url_is_overwritten():
    text = '#EXTINF:-1 group-title="Lost",Dropped\n#EXTINF:-1 group-title="Kept",Shown\nhttp://x/1\n'
    channels = parse_playlist(text)
    assert len(channels) == 1
    assert channels[0].name == "Shown"
    assert channels[0].group == "Kept"


def test_multiple_urls_share_metadata():
    text = "#EXTINF:-1,Backup\nhttp://x/1\nhttp://x/2\n"
    channels = parse_playlist(text)
    assert [(channel.id, channel.name) for channel in channels] == [("1", "Backup"), ("2", "Backup")]


def test_duplicate_urls_are_kept():
    text = "#EXTINF:-1,A\nhttp://x/1\n#EXTINF:-1,B\nhttp://x/1\n"
    assert len(parse_playlist(text)) == 2


@pytest.mark.parametrize("text", ["", "\n\n", "#EXTM3U\n", "#EXTINF:-1,Orphan\n"])
def test_empty_or_malformed_input_yields_no_channels(text):
    assert parse_playlist(text) == []


def test_lines_are_trimmed():
    text = "  #EXTINF:-1 group-title=\"G\" ,  Padded  \r\n   http://x/1   \r\n"
    assert parse_playlist(text) == [Channel(id="1", name="Padded", group="G", url="http://x/1")]


def test_reparsing_serialized_catalog_is_identical():
    channels = parse_playlist(SAMPLE_PLAYLIST + "http://example.com/extra\n")
    channels.insert(0, Channel(id="0", name=DEFAULT_NAME, group=DEFAULT_GROUP, url="http://x/first"))
    first = parse_playlist(format_playlist(channels))
    second = parse_playlist(format_playlist(first))
    assert first == second
    assert [(c.name, c.group, c.url) for c in first] == [(c.name, c.group, c.url) for c in channels]


def test_read_playlist_source_from_path(tmp_path: Path):
    playlist_path = tmp_path / "list.m3u"
    playlist_path.write_bytes("\ufeff#EXTINF:-1,Café\nhttp://x/1\n".encode("utf-8"))
    progress: list[tuple[int, int | None]] = []

    text = read_playlist_source(playlist_path, progress=lambda loaded, total: progress.append((loaded, total)))

    assert parse_playlist(text)[0].name == "Café"
    assert progress and progress[-1][0] == progress[-1][1]


def test_read_playlist_source_from_file_url(tmp_path: Path):
    playlist_path = tmp_path / "my list.m3u"
    playlist_path.write_text("#EXTINF:-1,A\nhttp://x/1\n", encoding="utf8")

    text = read_playlist_source(playlist_path.as_uri())

    assert "http://x/1" in text


def test_read_playlist_source_missing_file_raises(tmp_path: Path):
    with pytest.raises(PlaylistError):
        read_playlist_source(tmp_path / "missing.m3u")


def test_read_playlist_source_over_http(monkeypatch):
    body = b"#EXTINF:-1,Remote\nhttp://x/1\n"
    seen = {}

    class FakeResponse(io.BytesIO):
        length = len(body)

    def fake_urlopen(req, timeout):
        seen["url"] = req.full_url
        seen["agent"] = req.get_header("User-agent")
        seen["timeout"] = timeout
        return FakeResponse(body)

    monkeypatch.setattr(playlist_module.request, "urlopen", fake_urlopen)

    text = read_playlist_source("http://example.com/list.m3u", user_agent="zap/1.0", timeout=5)

    assert parse_playlist(text)[0].name == "Remote"
    assert seen == {"url": "http://example.com/list.m3u", "agent": "zap/1.0", "timeout": 5}
