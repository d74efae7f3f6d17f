from __future__ import annotations

from dataclasses import dataclass

from .errors import ValidationError


class LayoutError(ValidationError):
    pass


def row_label(index: int) -> str:
    """
    Spreadsheet-style label for a 1-based row index: 1 -> A, 26 -> Z, 27 -> AA.
    """
    if index < 1:
        raise LayoutError(f"row index must be >= 1, got {index}")
    label = ""
    n = index
    while n > 0:
        n, rem = divmod(n - 1, 26)
        label = chr(ord("A") + rem) + label
    return label


@dataclass(frozen=True)
class LayoutTriple:
    total_rows: int = 0
    benches_per_row: int = 0
    seats_per_bench: int = 0

    def __post_init__(self) -> None:
        for name in ("total_rows", "benches_per_row", "seats_per_bench"):
            value = getattr(self, name)
            if value < 0:
                raise LayoutError(f"{name} must be >= 0, got {value}")

    @property
    def is_complete(self) -> bool:
        return self.total_rows > 0 and self.benches_per_row > 0 and self.seats_per_bench > 0

    @property
    def seat_count(self) -> int:
        if not self.is_complete:
            return 0
        return self.total_rows * self.benches_per_row * self.seats_per_bench


@dataclass(frozen=True)
class SeatSlot:
    row_index: int
    row_label: str
    bench_number: int
    seat_number: int


def generate_seat_grid(total_rows: int, benches_per_row: int, seats_per_bench: int) -> list[SeatSlot]:
    """
    Seats for a rows x benches x seats grid, ordered row, bench, seat; all 1-indexed.
    Any zero dimension yields no seats.
    """
    triple = LayoutTriple(total_rows, benches_per_row, seats_per_bench)
    if not triple.is_complete:
        return []

    slots: list[SeatSlot] = []
    for r in range(1, triple.total_rows + 1):
        label = row_label(r)
        for b in range(1, triple.benches_per_row + 1):
            for s in range(1, triple.seats_per_bench + 1):
                slots.append(SeatSlot(row_index=r, row_label=label, bench_number=b, seat_number=s))
    return slots
