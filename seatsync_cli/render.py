from __future__ import annotations

from itertools import groupby
from typing import Iterable, Optional

from seatsync.models import Room, Seat


def _seat_cell(seat_number: Optional[int], width: int) -> str:
    # Seat numbers are right-aligned so benches of 9+ seats stay in columns.
    return ("." if seat_number is None else str(seat_number)).rjust(width)


def render_layout(room: Room, seats: Iterable[Seat], *, cell_width: int = 3) -> str:
    """
    One line per seat row; benches are bracketed groups of seat numbers.
    Seats must be ordered by row, bench, seat.
    """
    cell_width = max(1, int(cell_width))
    title = (
        f"Room {room.room_code}: {room.total_rows} rows x {room.benches_per_row} benches "
        f"x {room.seats_per_bench} seats"
    )
    lines = [title]
    seats = list(seats)
    if not seats:
        lines.append("(no seats; configure a layout first)")
        return "\n".join(lines)

    label_width = max(len(s.row_label) for s in seats) + 2
    for label, row_seats in groupby(seats, key=lambda s: s.row_label):
        benches = []
        for _, bench_seats in groupby(row_seats, key=lambda s: s.bench_number):
            benches.append("[" + " ".join(_seat_cell(s.seat_number, cell_width) for s in bench_seats) + "]")
        lines.append(label.ljust(label_width) + " ".join(benches))
    lines.append(f"{len(seats)} seats")
    return "\n".join(lines)
