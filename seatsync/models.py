from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel


def _utc_now() -> datetime:
    return datetime.utcnow()


class Status(str, Enum):
    active = "Active"
    inactive = "Inactive"


class ExamStatus(str, Enum):
    scheduled = "Scheduled"
    completed = "Completed"
    cancelled = "Cancelled"


class Block(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    # Case-sensitive as stored.
    name: str = Field(index=True, unique=True)
    status: Status = Status.active

    created_at: datetime = Field(default_factory=_utc_now)


class Floor(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("block_id", "floor_number", name="uq_floor_block_number"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    block_id: int = Field(index=True, foreign_key="block.id")
    floor_number: int
    status: Status = Status.active

    created_at: datetime = Field(default_factory=_utc_now)


class Room(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("floor_id", "room_code", name="uq_room_floor_code"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    # Denormalized; must match floor.block_id.
    block_id: int = Field(index=True, foreign_key="block.id")
    floor_id: int = Field(index=True, foreign_key="floor.id")
    room_code: str
    capacity: int
    exam_usable: bool = False
    status: Status = Status.active

    # Layout triple; all zero means no seat grid.
    total_rows: int = 0
    benches_per_row: int = 0
    seats_per_bench: int = 0

    created_at: datetime = Field(default_factory=_utc_now)


class Seat(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    room_id: int = Field(index=True, foreign_key="room.id")
    # Numeric row position; row_label is derived from it and sorts wrongly past Z.
    row_index: int
    row_label: str
    bench_number: int
    seat_number: int


class Exam(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    exam_name: str
    exam_date: datetime = Field(index=True)
    status: ExamStatus = ExamStatus.scheduled

    created_at: datetime = Field(default_factory=_utc_now)


class Student(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    register_number: str = Field(index=True, unique=True)
    full_name: str = ""
    email: str
    department_code: str
    batch_year: Optional[int] = None

    created_at: datetime = Field(default_factory=_utc_now)


class SeatAllocation(SQLModel, table=True):
    exam_id: int = Field(primary_key=True, foreign_key="exam.id")
    seat_id: int = Field(primary_key=True, foreign_key="seat.id")
    student_id: int = Field(index=True, foreign_key="student.id")

    allocated_at: datetime = Field(default_factory=_utc_now)
