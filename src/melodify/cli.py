"""
Melodify CLI - Entry point

Collection management subcommands plus an interactive `play` session.
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional

from loguru import logger
from rich.table import Table

from melodify.core import config as config_module
from melodify.core.output import get_console, log, setup_from_config
from melodify.domain.library.collection import CollectionStore
from melodify.domain.library.metadata import format_duration, get_display_name
from melodify.domain.playback import (
    AsyncioScheduler,
    MpvTransport,
    NullTransport,
    PlaybackController,
    PlaybackPosition,
    check_mpv_available,
)
from melodify.exceptions import MelodifyError
from melodify.session import Event, Session

PLAY_HELP = (
    "n next | p previous | t / space toggle | s shuffle | r repeat | "
    "+/- volume | > SECONDS seek | q quit"
)

VOLUME_STEP = 0.1


def cmd_list(store: CollectionStore, args: argparse.Namespace) -> int:
    table = Table(title="Playlists")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Tracks", justify="right")
    table.add_column("Description", style="dim")
    for playlist in store.playlists():
        table.add_row(playlist.id, playlist.name, str(playlist.track_count), playlist.description)
    get_console().print(table)
    return 0


def cmd_show(store: CollectionStore, args: argparse.Namespace) -> int:
    playlist = store.get_playlist(args.playlist)
    table = Table(title=playlist.name, caption=playlist.description or None)
    table.add_column("#", justify="right")
    table.add_column("ID", style="cyan")
    table.add_column("Title")
    table.add_column("Artist")
    table.add_column("Album", style="dim")
    table.add_column("Duration", justify="right")
    for i, track in enumerate(playlist.tracks):
        table.add_row(
            str(i), track.id, track.title, track.artist, track.album, format_duration(track.duration)
        )
    get_console().print(table)
    return 0


def cmd_add_playlist(store: CollectionStore, args: argparse.Namespace) -> int:
    playlist = store.add_playlist(args.name, args.description)
    log(f"Created playlist {playlist.id}: {playlist.name}", style="green")
    return 0


def cmd_remove_playlist(store: CollectionStore, args: argparse.Namespace) -> int:
    playlist = store.remove_playlist(args.playlist)
    log(f"Removed playlist {playlist.id} ({playlist.name})")
    return 0


def cmd_add_track(store: CollectionStore, args: argparse.Namespace) -> int:
    track = store.add_track(args.playlist, args.title, args.url, artist=args.artist, album=args.album)
    get_console().print(f"Added [cyan]{track.id}[/cyan]: {get_display_name(track)}")
    return 0


def cmd_add_file(store: CollectionStore, args: argparse.Namespace) -> int:
    track = store.add_local_file(args.playlist, args.path)
    get_console().print(f"Added [cyan]{track.id}[/cyan]: {get_display_name(track)}")
    return 0


def cmd_remove_track(store: CollectionStore, args: argparse.Namespace) -> int:
    if store.remove_track(args.playlist, args.track) is None:
        get_console().print(f"Track {args.track} is not in {args.playlist}", style="yellow")
        return 1
    log(f"Removed track {args.track} from {args.playlist}")
    return 0


def cmd_move_track(store: CollectionStore, args: argparse.Namespace) -> int:
    if store.move_track(args.source, args.track, args.target) is None:
        get_console().print("Nothing moved", style="yellow")
        return 1
    log(f"Moved track {args.track} to {args.target}")
    return 0


def cmd_export(store: CollectionStore, args: argparse.Namespace) -> int:
    text = store.export_playlist(args.playlist)
    if args.output:
        Path(args.output).write_text(text, encoding="utf-8")
        get_console().print(f"Exported to {args.output}")
    else:
        sys.stdout.write(text + "\n")
    return 0


def cmd_import(store: CollectionStore, args: argparse.Namespace) -> int:
    playlist = store.import_playlist(Path(args.file).read_text(encoding="utf-8"))
    get_console().print(
        f"Imported [cyan]{playlist.id}[/cyan]: {playlist.name} ({playlist.track_count} tracks)"
    )
    return 0


def render_status(session: Session, position: PlaybackPosition) -> str:
    track = session.controller.current_track()
    if track is None:
        return "[dim]Nothing playing[/dim]"
    state = "▶" if position.is_playing else "⏸"
    flags = []
    if position.shuffle_enabled:
        flags.append("shuffle")
    if position.repeat_mode.value != "OFF":
        flags.append(f"repeat {position.repeat_mode.value.lower()}")
    extra = f" [dim]({', '.join(flags)})[/dim]" if flags else ""
    return (
        f"{state} {get_display_name(track)} "
        f"({format_duration(track.duration)}) "
        f"vol {round(position.volume * 100)}%{extra}"
    )


def parse_play_command(line: str, position: PlaybackPosition) -> Optional[tuple]:
    """Map one line of interactive input to a session event (name, *args)."""
    text = line.strip()
    if text in ("", "t"):
        return ("toggle_play_pause",)
    if text == "n":
        return ("next",)
    if text == "p":
        return ("previous",)
    if text == "s":
        return ("toggle_shuffle",)
    if text == "r":
        return ("cycle_repeat_mode",)
    if text in ("+", "-"):
        step = VOLUME_STEP if text == "+" else -VOLUME_STEP
        return ("set_volume", round(min(1.0, max(0.0, position.volume + step)), 2))
    if text.startswith(">"):
        try:
            return ("seek", float(text[1:].strip()))
        except ValueError:
            return None
    return None


async def _read_commands(session: Session) -> None:
    console = get_console()
    while True:
        line = await asyncio.to_thread(sys.stdin.readline)
        if not line or line.strip() == "q":
            session.quit()
            return
        command = parse_play_command(line, session.controller.snapshot())
        if command is None:
            console.print(PLAY_HELP, style="dim")
            continue
        session.submit(*command)


async def _run_play(
    config: config_module.Config, store: CollectionStore, playlist_id: str, index: int
) -> int:
    console = get_console()

    transport = None
    if check_mpv_available(config.player.mpv_path):
        transport = MpvTransport(config.player)
        if not await asyncio.to_thread(transport.start):
            transport = None
    if transport is None:
        console.print("mpv not available - running without audio output", style="yellow")

    controller = PlaybackController.from_config(
        config, store, transport or NullTransport(), AsyncioScheduler()
    )
    session = Session(controller, store, transport, poll_interval=config.player.poll_interval)

    last_line = {"text": ""}

    def show(position: PlaybackPosition) -> None:
        text = render_status(session, position)
        if text != last_line["text"]:
            last_line["text"] = text
            console.print(text)

    def rejected(event: Event, error: Exception) -> None:
        console.print(str(error), style="red")

    session.subscribe(show)
    session.on_rejected(rejected)

    reader: Optional[asyncio.Task] = None
    try:
        # Validate the selection up front so a bad index exits non-zero.
        controller.play(playlist_id, index)
        show(controller.snapshot())
        console.print(PLAY_HELP, style="dim")

        reader = asyncio.create_task(_read_commands(session))
        await session.run()
    finally:
        if reader is not None:
            reader.cancel()
        if transport is not None:
            transport.stop()
    return 0


def cmd_play(store: CollectionStore, args: argparse.Namespace) -> int:
    return asyncio.run(_run_play(args.config, store, args.playlist, args.index))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="melodify",
        description="Melodify - playlist-based media player",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", type=Path, default=None, help="Path to config.toml")
    subparsers = parser.add_subparsers(dest="subcommand", required=True)

    p = subparsers.add_parser("list", help="List playlists")
    p.set_defaults(func=cmd_list)

    p = subparsers.add_parser("show", help="Show a playlist's tracks")
    p.add_argument("playlist")
    p.set_defaults(func=cmd_show)

    p = subparsers.add_parser("add-playlist", help="Create a playlist")
    p.add_argument("name")
    p.add_argument("-d", "--description", default="")
    p.set_defaults(func=cmd_add_playlist)

    p = subparsers.add_parser("remove-playlist", help="Delete a playlist")
    p.add_argument("playlist")
    p.set_defaults(func=cmd_remove_playlist)

    p = subparsers.add_parser("add-track", help="Add a track by URL")
    p.add_argument("playlist")
    p.add_argument("title")
    p.add_argument("url")
    p.add_argument("--artist", default="")
    p.add_argument("--album", default="")
    p.set_defaults(func=cmd_add_track)

    p = subparsers.add_parser("add-file", help="Add a local audio file (tags read from the file)")
    p.add_argument("playlist")
    p.add_argument("path")
    p.set_defaults(func=cmd_add_file)

    p = subparsers.add_parser("remove-track", help="Remove a track from a playlist")
    p.add_argument("playlist")
    p.add_argument("track")
    p.set_defaults(func=cmd_remove_track)

    p = subparsers.add_parser("move-track", help="Move a track to another playlist")
    p.add_argument("source")
    p.add_argument("track")
    p.add_argument("target")
    p.set_defaults(func=cmd_move_track)

    p = subparsers.add_parser("export", help="Export a playlist as JSON")
    p.add_argument("playlist")
    p.add_argument("-o", "--output", default=None)
    p.set_defaults(func=cmd_export)

    p = subparsers.add_parser("import", help="Import a playlist JSON file")
    p.add_argument("file")
    p.set_defaults(func=cmd_import)

    p = subparsers.add_parser("play", help="Start an interactive playback session")
    p.add_argument("playlist")
    p.add_argument("--index", type=int, default=0)
    p.set_defaults(func=cmd_play)

    return parser


def run(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    config = config_module.load_config(args.config)
    setup_from_config(config.logging)
    config_module.ensure_directories()
    args.config = config

    try:
        store = CollectionStore.load()
        return args.func(store, args)
    except (MelodifyError, ValueError, OSError) as e:
        logger.warning(f"{args.subcommand} failed: {e}")
        get_console().print(str(e), style="red")
        return 1


def main() -> None:
    """Main entry point for the melodify command."""
    sys.exit(run())


if __name__ == "__main__":
    main()
