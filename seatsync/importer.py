from __future__ import annotations

import io
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import pandas as pd
import structlog
from sqlmodel import Session, select

from . import repository as repo
from .batch import AtomicBatch, BatchReport, BestEffortBatch
from .errors import FormatError, ValidationError
from .models import Block, Floor, Room, Status, Student

logger = structlog.get_logger(__name__)

STRUCTURE_COLUMNS = ("BlockName", "FloorNumber", "RoomCode", "Capacity", "IsExamUsable")
STUDENT_COLUMNS = ("RegisterNumber", "Email", "DepartmentCode")

SPREADSHEET_SUFFIXES = {".xlsx", ".xlsm", ".xls"}

Row = dict[str, str]


def read_table(data: bytes, filename: str = "") -> list[Row]:
    """
    Parse CSV or spreadsheet bytes into row dicts of stripped strings.
    The format is picked from the file extension; anything unknown is read as CSV.
    """
    if not data:
        raise FormatError("Import file is empty")
    suffix = Path(filename or "").suffix.lower()
    try:
        if suffix in SPREADSHEET_SUFFIXES:
            df = pd.read_excel(io.BytesIO(data), dtype=str, na_filter=False)
        else:
            df = pd.read_csv(io.BytesIO(data), dtype=str, na_filter=False, encoding="utf-8-sig")
    except pd.errors.EmptyDataError as e:
        raise FormatError("Import file is empty") from e
    except ImportError:
        # A missing reader engine is an install problem, not a bad file.
        raise
    except Exception as e:  # noqa: BLE001 - parser errors vary by engine
        raise FormatError(f"Could not read import file: {e}") from e

    df.columns = [str(c).strip() for c in df.columns]
    return [{k: str(v).strip() for k, v in rec.items()} for rec in df.to_dict(orient="records")]


def _parse_int(value: Optional[str]) -> Optional[int]:
    text = (value or "").strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        pass
    # Spreadsheets hand back whole numbers as "3.0".
    try:
        f = float(text)
    except ValueError:
        return None
    return int(f) if f.is_integer() else None


def _line_number(index: int) -> int:
    # 1-based data row index; the header is line 1.
    return index + 2


def _require_headers(rows: list[Row], required: tuple[str, ...]) -> None:
    headers = set(rows[0].keys())
    missing = [h for h in required if h not in headers]
    if missing:
        raise FormatError(f"Missing required headers: {', '.join(missing)}")


# --- structure import ---


@dataclass
class ImportResult:
    blocks_created: int = 0
    floors_created: int = 0
    rooms_created: int = 0

    def as_dict(self) -> dict:
        return {
            "blocksCreated": self.blocks_created,
            "floorsCreated": self.floors_created,
            "roomsCreated": self.rooms_created,
        }


def import_structure(session: Session, rows: list[Row]) -> ImportResult:
    """
    Create missing blocks, floors and rooms from BlockName/FloorNumber/RoomCode/
    Capacity/IsExamUsable rows. One bad row rolls back the whole file.
    Imported rooms have an empty layout and no seats.
    """
    if not rows:
        raise FormatError("Import file has no data rows")
    _require_headers(rows, STRUCTURE_COLUMNS)

    result = ImportResult()
    seen_codes: set[str] = set()
    block_cache: dict[str, int] = {}
    floor_cache: dict[str, int] = {}

    def _resolve_block(name: str) -> int:
        block_id = block_cache.get(name)
        if block_id is None:
            block = repo.find_block_by_name(session, name)
            if block is None:
                block = Block(name=name, status=Status.active)
                session.add(block)
                session.flush()
                result.blocks_created += 1
            block_id = int(block.id)
            block_cache[name] = block_id
        return block_id

    def _resolve_floor(block_id: int, floor_number: int) -> int:
        key = f"{block_id}-{floor_number}"
        floor_id = floor_cache.get(key)
        if floor_id is None:
            floor = repo.find_floor(session, block_id, floor_number)
            if floor is None:
                floor = Floor(block_id=block_id, floor_number=floor_number, status=Status.active)
                session.add(floor)
                session.flush()
                result.floors_created += 1
            floor_id = int(floor.id)
            floor_cache[key] = floor_id
        return floor_id

    def _import_row(index: int, row: Row) -> None:
        line = _line_number(index)
        block_name = row.get("BlockName", "").strip()
        floor_number = _parse_int(row.get("FloorNumber"))
        room_code = row.get("RoomCode", "").strip()
        capacity = _parse_int(row.get("Capacity"))

        if not block_name:
            raise ValidationError(f"Line {line}: BlockName is required")
        if floor_number is None:
            raise ValidationError(f"Line {line}: Invalid FloorNumber")
        if not room_code:
            raise ValidationError(f"Line {line}: RoomCode is required")
        if capacity is None or capacity <= 0:
            raise ValidationError(f"Line {line}: Invalid Capacity")

        if room_code.lower() in seen_codes:
            raise ValidationError(f"Line {line}: Duplicate RoomCode '{room_code}' in file")
        seen_codes.add(room_code.lower())

        block_id = _resolve_block(block_name)
        floor_id = _resolve_floor(block_id, floor_number)

        if repo.find_room_by_code(session, room_code, floor_id):
            raise ValidationError(
                f"Line {line}: Room '{room_code}' already exists on Block '{block_name}' Floor {floor_number}"
            )

        session.add(
            Room(
                block_id=block_id,
                floor_id=floor_id,
                room_code=room_code,
                capacity=capacity,
                exam_usable=row.get("IsExamUsable", "").strip().lower() == "true",
                status=Status.active,
                total_rows=0,
                benches_per_row=0,
                seats_per_bench=0,
            )
        )
        session.flush()
        result.rooms_created += 1

    AtomicBatch(session, name="structure_import").run(enumerate(rows, start=1), _import_row)
    logger.info("structure_imported", **result.as_dict())
    return result


def import_structure_file(session: Session, data: bytes, filename: str = "") -> ImportResult:
    return import_structure(session, read_table(data, filename))


# --- student roster import ---


def import_students(session: Session, rows: list[Row]) -> BatchReport:
    """
    Upsert students by RegisterNumber. Bad rows are reported and skipped;
    the remaining rows are committed.
    """
    if not rows:
        raise FormatError("Import file has no data rows")

    def _import_row(index: int, row: Row) -> None:
        register_number = row.get("RegisterNumber", "").strip()
        email = row.get("Email", "").strip()
        department_code = row.get("DepartmentCode", "").strip()
        if not (register_number and email and department_code):
            raise ValidationError(f"Missing required fields ({', '.join(STUDENT_COLUMNS)})")

        batch_year = None
        if row.get("BatchYear", "").strip():
            batch_year = _parse_int(row.get("BatchYear"))
            if batch_year is None:
                raise ValidationError(f"Invalid BatchYear '{row.get('BatchYear')}'")

        student = session.exec(select(Student).where(Student.register_number == register_number)).first()
        if student is None:
            student = Student(register_number=register_number, email=email, department_code=department_code)
        student.email = email
        student.department_code = department_code
        if row.get("Name", "").strip():
            student.full_name = row["Name"].strip()
        if batch_year is not None:
            student.batch_year = batch_year
        session.add(student)
        session.flush()

    batch = BestEffortBatch(
        session,
        name="student_import",
        key=lambda row: row.get("RegisterNumber", "").strip() or "Unknown",
    )
    items = ((_line_number(i), row) for i, row in enumerate(rows, start=1))
    return batch.run(items, _import_row)
