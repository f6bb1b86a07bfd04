"""Command line entry point for channelzap."""
from __future__ import annotations

import argparse
from pathlib import Path
from typing import Iterable

from . import __version__
from .app import ZapApp
from .config import CONFIG_PATH, AppConfig, load_config, save_config
from .logging_utils import configure_logging, get_logger
from .loader import fetch_channels
from .player import probe_player
from .playlist import PlaylistError

log = get_logger(__name__)


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Remote-control IPTV channel player")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--config",
        type=Path,
        default=CONFIG_PATH,
        help="Path to configuration file (default: %(default)s)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override CHANNELZAP_LOG_LEVEL for this invocation",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Write logs to this file instead of the default or CHANNELZAP_LOG_FILE",
    )
    parser.add_argument(
        "--player",
        dest="preferred_player",
        default=None,
        help="mpv executable to launch (default: the configured player, then mpv on PATH)",
    )
    parser.add_argument(
        "--playlist",
        default=None,
        help="Playlist URL or file path; remembered for the next start",
    )
    parser.add_argument(
        "--controls",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Enable or disable on-screen video controls and remember the choice",
    )
    parser.add_argument(
        "--dump",
        action="store_true",
        help="Load the playlist, print the parsed channels and exit.",
    )
    parser.add_argument(
        "--probe-player",
        action="store_true",
        help="Check that the player starts and exit.",
    )
    return parser.parse_args(argv)


def _apply_overrides(args: argparse.Namespace, config: AppConfig) -> bool:
    """Fold command line overrides into *config*; return ``True`` if any changed."""

    changed = False
    if args.playlist and args.playlist != config.playlist_source:
        config.playlist_source = args.playlist
        changed = True
    if args.controls is not None and args.controls != config.controls_enabled:
        config.controls_enabled = args.controls
        changed = True
    return changed


def _dump_playlist(source: str | None) -> int:
    if not source:
        print("No playlist configured; pass --playlist.")
        return 2
    try:
        channels = fetch_channels(source)
    except (OSError, PlaylistError) as exc:
        log.error("Unable to load playlist from %s: %s", source, exc)
        print(f"Unable to load playlist: {exc}")
        return 1
    for channel in channels:
        print(f"{channel.id}. [{channel.group}] {channel.name}")
    return 0


def _probe(preferred: str | None) -> int:
    try:
        summary = probe_player(preferred)
    except RuntimeError as exc:
        print(f"Player probe failed: {exc}")
        return 1
    print(summary)
    return 0


def main(argv: Iterable[str] | None = None) -> None:
    args = parse_args(argv)
    configure_logging(
        level=args.log_level,
        log_file=str(args.log_file) if args.log_file is not None else None,
    )
    log.info("CLI invoked with config=%s", args.config)
    config = load_config(args.config)
    if _apply_overrides(args, config):
        try:
            save_config(config, args.config)
        except OSError as exc:
            log.warning("Failed to save configuration to %s: %s", args.config, exc)
    if args.dump:
        raise SystemExit(_dump_playlist(config.playlist_source))
    if args.probe_player:
        raise SystemExit(_probe(args.preferred_player or config.preferred_player))

    app = ZapApp(config, config_path=args.config, preferred_player=args.preferred_player)
    log.info("Launching Textual application")
    try:
        app.run()
    except KeyboardInterrupt:
        log.info("Keyboard interrupt received; exiting application")
        if app.is_running:
            app.exit()
        raise SystemExit(130) from None


if __name__ == "__main__":  # pragma: no cover
    main()
