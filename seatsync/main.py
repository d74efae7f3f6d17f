from __future__ import annotations

import os
from typing import Iterator, Optional

import structlog
from fastapi import Depends, FastAPI, File, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlmodel import Session

from . import exams, importer, structure
from .db import get_session, init_db
from .errors import InternalError, SeatSyncError
from .layout import LayoutTriple
from .log import configure_logging
from .schemas import (
    AllocationCreate,
    AllocationRead,
    BlockCreate,
    BlockRead,
    BlockUpdate,
    BulkRoomCreate,
    ExamCreate,
    ExamRead,
    FloorCreate,
    FloorRead,
    FloorUpdate,
    LayoutFields,
    RoomCreate,
    RoomLayoutRead,
    RoomRead,
    RoomUpdate,
    SeatRead,
    StructureImportResult,
    StudentImportResult,
)

configure_logging()
logger = structlog.get_logger(__name__)

app = FastAPI(title="SeatSync API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.environ.get("SEATSYNC_CORS_ORIGINS", "*").split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def _startup() -> None:
    init_db()


def _session() -> Iterator[Session]:
    with get_session() as session:
        yield session


@app.exception_handler(SeatSyncError)
def _handle_seatsync_error(request: Request, exc: SeatSyncError) -> JSONResponse:
    logger.info("request_rejected", path=request.url.path, status=exc.status_code, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(Exception)
def _handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("internal_server_error", method=request.method, path=request.url.path)
    err = InternalError("Internal Server Error.")
    return JSONResponse(status_code=err.status_code, content={"message": err.message})


@app.get("/health")
def health() -> dict:
    return {"ok": True}


# --- blocks ---


@app.get("/blocks", response_model=list[BlockRead])
def list_blocks(session: Session = Depends(_session)) -> list[BlockRead]:
    return [
        BlockRead(id=b.id, name=b.name, status=b.status, floor_count=count)
        for b, count in structure.list_blocks(session)
    ]


@app.post("/blocks", response_model=BlockRead, status_code=201)
def create_block(payload: BlockCreate, session: Session = Depends(_session)) -> BlockRead:
    block = structure.create_block(session, payload.name, payload.status)
    return BlockRead.model_validate(block)


@app.put("/blocks/{block_id}", response_model=BlockRead)
def update_block(block_id: int, payload: BlockUpdate, session: Session = Depends(_session)) -> BlockRead:
    block = structure.update_block(session, block_id, name=payload.name, status=payload.status)
    return BlockRead.model_validate(block)


@app.delete("/blocks/{block_id}")
def delete_block(block_id: int, session: Session = Depends(_session)) -> dict:
    structure.delete_block(session, block_id)
    return {"deleted": True}


# --- floors ---


@app.get("/floors", response_model=list[FloorRead])
def list_floors(
    block_id: Optional[int] = Query(default=None, alias="blockId"),
    session: Session = Depends(_session),
) -> list[FloorRead]:
    return [FloorRead.model_validate(f) for f in structure.list_floors(session, block_id)]


@app.post("/floors", response_model=FloorRead, status_code=201)
def create_floor(payload: FloorCreate, session: Session = Depends(_session)) -> FloorRead:
    floor = structure.create_floor(session, payload.block_id, payload.floor_number, payload.status)
    return FloorRead.model_validate(floor)


@app.put("/floors/{floor_id}", response_model=FloorRead)
def update_floor(floor_id: int, payload: FloorUpdate, session: Session = Depends(_session)) -> FloorRead:
    floor = structure.update_floor(session, floor_id, floor_number=payload.floor_number, status=payload.status)
    return FloorRead.model_validate(floor)


@app.delete("/floors/{floor_id}")
def delete_floor(floor_id: int, session: Session = Depends(_session)) -> dict:
    structure.delete_floor(session, floor_id)
    return {"deleted": True}


# --- rooms ---


@app.get("/rooms", response_model=list[RoomRead])
def list_rooms(
    block_id: Optional[int] = Query(default=None, alias="blockId"),
    floor_id: Optional[int] = Query(default=None, alias="floorId"),
    session: Session = Depends(_session),
) -> list[RoomRead]:
    return [RoomRead.model_validate(r) for r in structure.list_rooms(session, block_id, floor_id)]


@app.post("/rooms", response_model=RoomRead, status_code=201)
def create_room(payload: RoomCreate, session: Session = Depends(_session)) -> RoomRead:
    room = structure.create_room(
        session,
        block_id=payload.block_id,
        floor_id=payload.floor_id,
        room_code=payload.room_code,
        capacity=payload.capacity,
        exam_usable=payload.exam_usable,
        layout=LayoutTriple(payload.total_rows, payload.benches_per_row, payload.seats_per_bench),
        status=payload.status,
    )
    return RoomRead.model_validate(room)


@app.post("/rooms/bulk", response_model=list[RoomRead], status_code=201)
def bulk_create_rooms(payload: BulkRoomCreate, session: Session = Depends(_session)) -> list[RoomRead]:
    drafts = [structure.RoomDraft(room_code=r.room_code, capacity=r.capacity) for r in payload.rooms]
    rooms = structure.bulk_create_rooms(session, payload.block_id, payload.floor_id, drafts)
    return [RoomRead.model_validate(r) for r in rooms]


@app.put("/rooms/{room_id}", response_model=RoomRead)
def update_room(room_id: int, payload: RoomUpdate, session: Session = Depends(_session)) -> RoomRead:
    room = structure.update_room(session, room_id, **payload.model_dump(exclude_unset=True))
    return RoomRead.model_validate(room)


@app.patch("/rooms/{room_id}/disable", response_model=RoomRead)
def disable_room(room_id: int, session: Session = Depends(_session)) -> RoomRead:
    return RoomRead.model_validate(structure.disable_room(session, room_id))


@app.delete("/rooms/{room_id}")
def delete_room(room_id: int, session: Session = Depends(_session)) -> dict:
    structure.delete_room(session, room_id)
    return {"deleted": True}


@app.get("/rooms/{room_id}/layout", response_model=RoomLayoutRead)
def get_room_layout(room_id: int, session: Session = Depends(_session)) -> RoomLayoutRead:
    layout = structure.get_room_layout(session, room_id)
    return RoomLayoutRead(
        room=RoomRead.model_validate(layout.room),
        block_name=layout.block.name if layout.block else None,
        floor_number=layout.floor.floor_number if layout.floor else None,
        seats=[SeatRead.model_validate(s) for s in layout.seats],
        seat_count=layout.seat_count,
    )


@app.put("/rooms/{room_id}/layout", response_model=RoomLayoutRead)
def configure_room_layout(room_id: int, payload: LayoutFields, session: Session = Depends(_session)) -> RoomLayoutRead:
    structure.configure_layout(
        session,
        room_id,
        LayoutTriple(payload.total_rows, payload.benches_per_row, payload.seats_per_bench),
    )
    return get_room_layout(room_id, session)


# --- imports ---


@app.post("/structure/import", response_model=StructureImportResult)
def import_structure(file: UploadFile = File(...), session: Session = Depends(_session)) -> StructureImportResult:
    data = file.file.read()
    result = importer.import_structure_file(session, data, file.filename or "")
    return StructureImportResult(
        blocks_created=result.blocks_created,
        floors_created=result.floors_created,
        rooms_created=result.rooms_created,
    )


@app.post("/students/import", response_model=StudentImportResult)
def import_students(file: UploadFile = File(...), session: Session = Depends(_session)) -> StudentImportResult:
    rows = importer.read_table(file.file.read(), file.filename or "")
    report = importer.import_students(session, rows)
    return StudentImportResult(
        success_count=report.succeeded,
        error_count=report.failed,
        errors=[str(e) for e in report.errors],
    )


# --- exams ---


@app.get("/exams", response_model=list[ExamRead])
def list_exams(session: Session = Depends(_session)) -> list[ExamRead]:
    return [ExamRead.model_validate(e) for e in exams.list_exams(session)]


@app.post("/exams", response_model=ExamRead, status_code=201)
def create_exam(payload: ExamCreate, session: Session = Depends(_session)) -> ExamRead:
    return ExamRead.model_validate(exams.create_exam(session, payload.exam_name, payload.exam_date))


@app.post("/exams/{exam_id}/allocations", response_model=AllocationRead, status_code=201)
def allocate_seat(exam_id: int, payload: AllocationCreate, session: Session = Depends(_session)) -> AllocationRead:
    allocation = exams.allocate_seat(session, exam_id, payload.seat_id, payload.student_id)
    return AllocationRead.model_validate(allocation)
