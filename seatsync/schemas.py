from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .models import ExamStatus, Status


class ApiModel(BaseModel):
    # camelCase on the wire, snake_case in Python.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class BlockCreate(ApiModel):
    name: str = Field(min_length=1)
    status: Status = Status.active


class BlockUpdate(ApiModel):
    name: Optional[str] = None
    status: Optional[Status] = None


class BlockRead(ApiModel):
    id: int
    name: str
    status: Status
    floor_count: Optional[int] = None


class FloorCreate(ApiModel):
    block_id: int
    floor_number: int
    status: Status = Status.active


class FloorUpdate(ApiModel):
    floor_number: Optional[int] = None
    status: Optional[Status] = None


class FloorRead(ApiModel):
    id: int
    block_id: int
    floor_number: int
    status: Status


class LayoutFields(ApiModel):
    total_rows: int = Field(ge=0, default=0)
    benches_per_row: int = Field(ge=0, default=0)
    seats_per_bench: int = Field(ge=0, default=0)


class RoomCreate(LayoutFields):
    block_id: int
    floor_id: int
    room_code: str = Field(min_length=1)
    capacity: int
    exam_usable: bool = False
    status: Status = Status.active


class RoomUpdate(ApiModel):
    room_code: Optional[str] = None
    capacity: Optional[int] = None
    exam_usable: Optional[bool] = None
    status: Optional[Status] = None
    total_rows: Optional[int] = Field(default=None, ge=0)
    benches_per_row: Optional[int] = Field(default=None, ge=0)
    seats_per_bench: Optional[int] = Field(default=None, ge=0)


class RoomRead(ApiModel):
    id: int
    block_id: int
    floor_id: int
    room_code: str
    capacity: int
    exam_usable: bool
    status: Status
    total_rows: int
    benches_per_row: int
    seats_per_bench: int


class BulkRoomItem(ApiModel):
    room_code: str
    capacity: int


class BulkRoomCreate(ApiModel):
    block_id: int
    floor_id: int
    rooms: list[BulkRoomItem] = Field(default_factory=list)


class SeatRead(ApiModel):
    id: int
    room_id: int
    row_label: str
    bench_number: int
    seat_number: int


class RoomLayoutRead(ApiModel):
    room: RoomRead
    block_name: Optional[str] = None
    floor_number: Optional[int] = None
    seats: list[SeatRead]
    seat_count: int


class StructureImportResult(ApiModel):
    blocks_created: int
    floors_created: int
    rooms_created: int


class StudentImportResult(ApiModel):
    message: str = "Import processing complete"
    success_count: int
    error_count: int
    errors: list[str]


class ExamCreate(ApiModel):
    exam_name: str = Field(min_length=1)
    exam_date: datetime


class ExamRead(ApiModel):
    id: int
    exam_name: str
    exam_date: datetime
    status: ExamStatus


class AllocationCreate(ApiModel):
    seat_id: int
    student_id: int


class AllocationRead(ApiModel):
    exam_id: int
    seat_id: int
    student_id: int
