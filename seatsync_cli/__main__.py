from __future__ import annotations

import argparse
from pathlib import Path

import structlog

from seatsync import importer, structure
from seatsync.db import get_session, init_db
from seatsync.errors import FormatError, SeatSyncError
from seatsync.layout import LayoutTriple
from seatsync.log import configure_logging

from .render import render_layout

logger = structlog.get_logger(__name__)


def cmd_init_db(args: argparse.Namespace) -> int:
    init_db()
    print("Database tables created")
    return 0


def cmd_import_structure(args: argparse.Namespace) -> int:
    inp = Path(args.input)
    if not inp.exists():
        raise FormatError(f"input file not found: {inp}")
    init_db()
    with get_session() as session:
        result = importer.import_structure_file(session, inp.read_bytes(), inp.name)
    print(
        f"Imported {inp}: {result.blocks_created} blocks, "
        f"{result.floors_created} floors, {result.rooms_created} rooms created"
    )
    return 0


def cmd_show_layout(args: argparse.Namespace) -> int:
    init_db()
    with get_session() as session:
        layout = structure.get_room_layout(session, args.room)
        print(render_layout(layout.room, layout.seats, cell_width=args.width))
    return 0


def cmd_set_layout(args: argparse.Namespace) -> int:
    init_db()
    with get_session() as session:
        room = structure.configure_layout(session, args.room, LayoutTriple(args.rows, args.benches, args.seats))
        layout = structure.get_room_layout(session, room.id)
    print(f"Room {layout.room.room_code} now has {layout.seat_count} seats")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="seatsync", description="SeatSync structure administration (CLI).")
    p.add_argument("--log-level", default=None, help="Log level (default: $SEATSYNC_LOG_LEVEL or INFO)")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_init = sub.add_parser("init-db", help="Create database tables")
    p_init.set_defaults(func=cmd_init_db)

    p_import = sub.add_parser("import-structure", help="Import blocks/floors/rooms from a CSV or Excel file")
    p_import.add_argument("--input", required=True)
    p_import.set_defaults(func=cmd_import_structure)

    p_show = sub.add_parser("show-layout", help="Print a room's seat grid")
    p_show.add_argument("--room", type=int, required=True, help="Room id")
    p_show.add_argument("--width", type=int, default=3, help="Cell width for display")
    p_show.set_defaults(func=cmd_show_layout)

    p_set = sub.add_parser("set-layout", help="Set a room's layout and regenerate its seats")
    p_set.add_argument("--room", type=int, required=True, help="Room id")
    p_set.add_argument("--rows", type=int, required=True)
    p_set.add_argument("--benches", type=int, required=True)
    p_set.add_argument("--seats", type=int, required=True)
    p_set.set_defaults(func=cmd_set_layout)

    return p


def main(argv: list[str] | None = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)
    configure_logging(args.log_level)
    try:
        return int(args.func(args))
    except SeatSyncError as e:
        logger.debug("cli_command_failed", cmd=args.cmd, error=e.message)
        print(f"Error: {e.message}")
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
