"""
Block -> Floor -> Room hierarchy and the seat grids rooms own.

Every function takes the caller's Session explicitly. Mutations run inside
``transaction(session)`` so each call either fully commits or fully rolls back.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

import structlog
from sqlalchemy import func
from sqlmodel import Session, delete, select

from . import repository as repo
from .batch import AtomicBatch
from .db import transaction
from .errors import ConflictError, NotFoundError, ValidationError
from .layout import LayoutTriple, generate_seat_grid
from .models import Block, Floor, Room, Seat, Status

logger = structlog.get_logger(__name__)


def _utc_now() -> datetime:
    return datetime.utcnow()


def _clean_name(value: str, what: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationError(f"{what} is required")
    return cleaned


def _require_block(session: Session, block_id: int) -> Block:
    block = session.get(Block, block_id)
    if not block:
        raise NotFoundError("Block not found")
    return block


def _require_floor(session: Session, floor_id: int) -> Floor:
    floor = session.get(Floor, floor_id)
    if not floor:
        raise NotFoundError("Floor not found")
    return floor


def _require_room(session: Session, room_id: int, related: Iterable[str] = ()) -> repo.RoomView:
    view = repo.load_room(session, room_id, related)
    if view is None:
        raise NotFoundError("Room not found")
    return view


def _floor_in_block(session: Session, block_id: int, floor_id: int) -> Floor:
    view = repo.load_floor(session, floor_id)
    if view is None or view.floor.block_id != block_id:
        raise ValidationError("Invalid floor for selected block")
    return view.floor


def _check_capacity(capacity: int) -> None:
    if capacity is None or capacity <= 0:
        raise ValidationError("Capacity must be greater than 0")


def _check_code_free(session: Session, room_code: str, floor_id: int, *, exclude_id: Optional[int] = None) -> None:
    existing = repo.find_room_by_code(session, room_code, floor_id)
    if existing and existing.id != exclude_id:
        raise ValidationError(f"Room code '{room_code}' already exists on this floor")


# --- blocks ---


def list_blocks(session: Session) -> list[tuple[Block, int]]:
    blocks = session.exec(select(Block).order_by(Block.name)).all()
    counts = dict(session.exec(select(Floor.block_id, func.count()).group_by(Floor.block_id)).all())
    return [(b, int(counts.get(b.id, 0))) for b in blocks]


def create_block(session: Session, name: str, status: Status = Status.active) -> Block:
    name = _clean_name(name, "Block name")
    with transaction(session):
        if repo.find_block_by_name(session, name):
            raise ValidationError("Block Name must be unique")
        block = Block(name=name, status=status)
        session.add(block)
    session.refresh(block)
    logger.info("block_created", block_id=block.id, name=block.name)
    return block


def update_block(session: Session, block_id: int, name: Optional[str] = None, status: Optional[Status] = None) -> Block:
    with transaction(session):
        block = _require_block(session, block_id)
        if name is not None:
            name = _clean_name(name, "Block name")
            if name != block.name:
                taken = repo.find_block_by_name(session, name)
                if taken and taken.id != block.id:
                    raise ValidationError("Block Name already taken")
                block.name = name
        if status is not None:
            block.status = status
        session.add(block)
    session.refresh(block)
    logger.info("block_updated", block_id=block.id)
    return block


def delete_block(session: Session, block_id: int) -> None:
    with transaction(session):
        block = _require_block(session, block_id)
        if repo.count_floors(session, block_id) > 0:
            raise ConflictError("Cannot delete block with existing floors.")
        session.delete(block)
    logger.info("block_deleted", block_id=block_id)


# --- floors ---


def list_floors(session: Session, block_id: Optional[int] = None) -> list[Floor]:
    stmt = select(Floor)
    if block_id is not None:
        stmt = stmt.where(Floor.block_id == block_id)
    return list(session.exec(stmt.order_by(Floor.block_id, Floor.floor_number)).all())


def create_floor(session: Session, block_id: int, floor_number: int, status: Status = Status.active) -> Floor:
    with transaction(session):
        _require_block(session, block_id)
        if repo.find_floor(session, block_id, floor_number):
            raise ValidationError("Floor Number already exists in this block")
        floor = Floor(block_id=block_id, floor_number=floor_number, status=status)
        session.add(floor)
    session.refresh(floor)
    logger.info("floor_created", floor_id=floor.id, block_id=block_id, floor_number=floor_number)
    return floor


def update_floor(
    session: Session,
    floor_id: int,
    floor_number: Optional[int] = None,
    status: Optional[Status] = None,
) -> Floor:
    with transaction(session):
        floor = _require_floor(session, floor_id)
        if floor_number is not None and floor_number != floor.floor_number:
            if repo.find_floor(session, floor.block_id, floor_number):
                raise ValidationError("Floor Number already exists in this block")
            floor.floor_number = floor_number
        if status is not None:
            if status == Status.inactive and floor.status == Status.active:
                if repo.count_active_rooms(session, floor_id) > 0:
                    raise ConflictError("Cannot disable floor with active rooms.")
            floor.status = status
        session.add(floor)
    session.refresh(floor)
    logger.info("floor_updated", floor_id=floor.id)
    return floor


def delete_floor(session: Session, floor_id: int) -> None:
    with transaction(session):
        floor = _require_floor(session, floor_id)
        if repo.count_rooms(session, floor_id) > 0:
            raise ConflictError("Cannot delete floor with existing rooms.")
        session.delete(floor)
    logger.info("floor_deleted", floor_id=floor_id)


# --- rooms ---


def list_rooms(session: Session, block_id: Optional[int] = None, floor_id: Optional[int] = None) -> list[Room]:
    stmt = select(Room)
    if block_id is not None:
        stmt = stmt.where(Room.block_id == block_id)
    if floor_id is not None:
        stmt = stmt.where(Room.floor_id == floor_id)
    return list(session.exec(stmt.order_by(Room.room_code)).all())


def regenerate_seats(session: Session, room: Room) -> int:
    """
    Replace the room's seats with the grid for its current layout triple.
    Runs in the caller's transaction; returns the new seat count.
    """
    session.exec(delete(Seat).where(Seat.room_id == room.id))
    slots = generate_seat_grid(room.total_rows, room.benches_per_row, room.seats_per_bench)
    session.add_all(
        Seat(
            room_id=room.id,
            row_index=slot.row_index,
            row_label=slot.row_label,
            bench_number=slot.bench_number,
            seat_number=slot.seat_number,
        )
        for slot in slots
    )
    session.flush()
    return len(slots)


def create_room(
    session: Session,
    block_id: int,
    floor_id: int,
    room_code: str,
    capacity: int,
    exam_usable: bool = False,
    layout: Optional[LayoutTriple] = None,
    status: Status = Status.active,
) -> Room:
    room_code = _clean_name(room_code, "Room code")
    _check_capacity(capacity)
    layout = layout or LayoutTriple()
    with transaction(session):
        _floor_in_block(session, block_id, floor_id)
        _check_code_free(session, room_code, floor_id)
        room = Room(
            block_id=block_id,
            floor_id=floor_id,
            room_code=room_code,
            capacity=capacity,
            exam_usable=exam_usable,
            status=status,
            total_rows=layout.total_rows,
            benches_per_row=layout.benches_per_row,
            seats_per_bench=layout.seats_per_bench,
        )
        session.add(room)
        session.flush()
        seats = regenerate_seats(session, room) if layout.is_complete else 0
    session.refresh(room)
    logger.info("room_created", room_id=room.id, room_code=room.room_code, floor_id=floor_id, seats=seats)
    return room


def update_room(
    session: Session,
    room_id: int,
    *,
    room_code: Optional[str] = None,
    capacity: Optional[int] = None,
    exam_usable: Optional[bool] = None,
    status: Optional[Status] = None,
    total_rows: Optional[int] = None,
    benches_per_row: Optional[int] = None,
    seats_per_bench: Optional[int] = None,
) -> Room:
    """
    Apply field changes to a room. A layout change regenerates the seat grid,
    unless any seat of the room has been allocated: then the layout change is
    dropped, the other changes are still committed, and ConflictError is raised.
    Allocations keep their seat ids, so allocated seats are never replaced.
    """
    layout_conflict: Optional[str] = None
    with transaction(session):
        room = _require_room(session, room_id).room

        if room_code is not None:
            room_code = _clean_name(room_code, "Room code")
            if room_code != room.room_code:
                _check_code_free(session, room_code, room.floor_id, exclude_id=room.id)
                room.room_code = room_code
        if capacity is not None:
            _check_capacity(capacity)
            room.capacity = capacity
        if exam_usable is not None:
            room.exam_usable = exam_usable
        if status is not None:
            room.status = status

        current = LayoutTriple(room.total_rows, room.benches_per_row, room.seats_per_bench)
        wanted = LayoutTriple(
            current.total_rows if total_rows is None else total_rows,
            current.benches_per_row if benches_per_row is None else benches_per_row,
            current.seats_per_bench if seats_per_bench is None else seats_per_bench,
        )
        if wanted != current:
            if repo.count_future_allocations(session, room.id, _utc_now()) > 0:
                layout_conflict = "Cannot modify layout. Room is booked for future exams."
            elif repo.count_allocations(session, room.id) > 0:
                layout_conflict = "Cannot modify layout. Room has examination history."
            else:
                room.total_rows = wanted.total_rows
                room.benches_per_row = wanted.benches_per_row
                room.seats_per_bench = wanted.seats_per_bench
                seats = regenerate_seats(session, room)
                logger.info("room_layout_regenerated", room_id=room.id, seats=seats)
        session.add(room)

    if layout_conflict:
        logger.warning("room_layout_change_rejected", room_id=room_id, reason=layout_conflict)
        raise ConflictError(layout_conflict)
    session.refresh(room)
    logger.info("room_updated", room_id=room.id)
    return room


def configure_layout(session: Session, room_id: int, layout: LayoutTriple) -> Room:
    return update_room(
        session,
        room_id,
        total_rows=layout.total_rows,
        benches_per_row=layout.benches_per_row,
        seats_per_bench=layout.seats_per_bench,
    )


def disable_room(session: Session, room_id: int) -> Room:
    with transaction(session):
        room = _require_room(session, room_id).room
        room.status = Status.inactive
        session.add(room)
    session.refresh(room)
    logger.info("room_disabled", room_id=room_id)
    return room


def delete_room(session: Session, room_id: int) -> None:
    with transaction(session):
        room = _require_room(session, room_id).room
        if repo.count_allocations(session, room_id) > 0:
            raise ConflictError("Cannot delete room. It has examination history.")
        session.exec(delete(Seat).where(Seat.room_id == room_id))
        session.delete(room)
    logger.info("room_deleted", room_id=room_id)


@dataclass(frozen=True)
class RoomLayout:
    room: Room
    seats: list[Seat]
    block: Optional[Block] = None
    floor: Optional[Floor] = None

    @property
    def seat_count(self) -> int:
        return len(self.seats)


def get_room_layout(session: Session, room_id: int) -> RoomLayout:
    view = _require_room(session, room_id, related=("block", "floor"))
    return RoomLayout(
        room=view.room,
        seats=repo.list_seats(session, room_id),
        block=view.block,
        floor=view.floor,
    )


@dataclass(frozen=True)
class RoomDraft:
    room_code: str
    capacity: int


def bulk_create_rooms(session: Session, block_id: int, floor_id: int, rooms: Iterable[RoomDraft]) -> list[Room]:
    """
    Create many rooms on one floor. Any invalid or duplicate entry aborts the batch.
    """
    drafts = list(rooms)
    if not drafts:
        raise ValidationError("No rooms provided in payload")

    _floor_in_block(session, block_id, floor_id)
    seen: set[str] = set()
    created: list[Room] = []

    def _create(line: int, draft: RoomDraft) -> None:
        code = (draft.room_code or "").strip()
        if not code:
            raise ValidationError("Room code cannot be empty")
        if draft.capacity is None or draft.capacity <= 0:
            raise ValidationError(f"Invalid capacity for room '{code}'")
        if code.lower() in seen:
            raise ValidationError(f"Duplicate room code '{code}' in payload")
        seen.add(code.lower())
        _check_code_free(session, code, floor_id)

        room = Room(
            block_id=block_id,
            floor_id=floor_id,
            room_code=code,
            capacity=draft.capacity,
            exam_usable=True,
            status=Status.active,
        )
        session.add(room)
        session.flush()
        created.append(room)

    AtomicBatch(session, name="rooms_bulk").run(enumerate(drafts, start=1), _create)
    for room in created:
        session.refresh(room)
    return created
