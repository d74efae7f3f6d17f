"""
Explicit lookups for the structural tables.

Related rows are only fetched when named in ``related``; callers get a plain
frozen view instead of lazily-loaded ORM relationships.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import func
from sqlmodel import Session, select

from .models import Block, Exam, Floor, Room, Seat, SeatAllocation, Status

FLOOR_RELATIONS = frozenset({"block"})
ROOM_RELATIONS = frozenset({"block", "floor"})


@dataclass(frozen=True)
class FloorView:
    floor: Floor
    block: Optional[Block] = None


@dataclass(frozen=True)
class RoomView:
    room: Room
    block: Optional[Block] = None
    floor: Optional[Floor] = None


def _check_related(related: Iterable[str], allowed: frozenset[str]) -> set[str]:
    wanted = set(related)
    unknown = wanted - allowed
    if unknown:
        raise ValueError(f"unknown relation(s): {sorted(unknown)}; allowed: {sorted(allowed)}")
    return wanted


def load_floor(session: Session, floor_id: int, related: Iterable[str] = ()) -> Optional[FloorView]:
    wanted = _check_related(related, FLOOR_RELATIONS)
    floor = session.get(Floor, floor_id)
    if floor is None:
        return None
    block = session.get(Block, floor.block_id) if "block" in wanted else None
    return FloorView(floor=floor, block=block)


def load_room(session: Session, room_id: int, related: Iterable[str] = ()) -> Optional[RoomView]:
    wanted = _check_related(related, ROOM_RELATIONS)
    room = session.get(Room, room_id)
    if room is None:
        return None
    block = session.get(Block, room.block_id) if "block" in wanted else None
    floor = session.get(Floor, room.floor_id) if "floor" in wanted else None
    return RoomView(room=room, block=block, floor=floor)


def find_block_by_name(session: Session, name: str) -> Optional[Block]:
    return session.exec(select(Block).where(Block.name == name)).first()


def find_floor(session: Session, block_id: int, floor_number: int) -> Optional[Floor]:
    return session.exec(
        select(Floor).where(Floor.block_id == block_id, Floor.floor_number == floor_number)
    ).first()


def find_room_by_code(session: Session, room_code: str, floor_id: int) -> Optional[Room]:
    return session.exec(select(Room).where(Room.room_code == room_code, Room.floor_id == floor_id)).first()


def count_floors(session: Session, block_id: int) -> int:
    return int(session.exec(select(func.count()).select_from(Floor).where(Floor.block_id == block_id)).one())


def count_rooms(session: Session, floor_id: int) -> int:
    return int(session.exec(select(func.count()).select_from(Room).where(Room.floor_id == floor_id)).one())


def count_active_rooms(session: Session, floor_id: int) -> int:
    stmt = select(func.count()).select_from(Room).where(Room.floor_id == floor_id, Room.status == Status.active)
    return int(session.exec(stmt).one())


def count_seats(session: Session, room_id: int) -> int:
    return int(session.exec(select(func.count()).select_from(Seat).where(Seat.room_id == room_id)).one())


def count_allocations(session: Session, room_id: int) -> int:
    """Allocations that ever touched a seat of this room (examination history)."""
    stmt = (
        select(func.count())
        .select_from(SeatAllocation)
        .join(Seat, Seat.id == SeatAllocation.seat_id)
        .where(Seat.room_id == room_id)
    )
    return int(session.exec(stmt).one())


def count_future_allocations(session: Session, room_id: int, now: datetime) -> int:
    stmt = (
        select(func.count())
        .select_from(SeatAllocation)
        .join(Seat, Seat.id == SeatAllocation.seat_id)
        .join(Exam, Exam.id == SeatAllocation.exam_id)
        .where(Seat.room_id == room_id, Exam.exam_date >= now)
    )
    return int(session.exec(stmt).one())


def list_seats(session: Session, room_id: int) -> list[Seat]:
    stmt = (
        select(Seat)
        .where(Seat.room_id == room_id)
        .order_by(Seat.row_index, Seat.bench_number, Seat.seat_number)
    )
    return list(session.exec(stmt).all())
