from __future__ import annotations

from datetime import datetime, timezone

import structlog
from sqlmodel import Session, select

from .db import transaction
from .errors import ConflictError, NotFoundError, ValidationError
from .models import Exam, Seat, SeatAllocation, Student

logger = structlog.get_logger(__name__)


def list_exams(session: Session) -> list[Exam]:
    return list(session.exec(select(Exam).order_by(Exam.exam_date)).all())


def create_exam(session: Session, exam_name: str, exam_date: datetime) -> Exam:
    name = (exam_name or "").strip()
    if not name:
        raise ValidationError("Exam name is required")
    # Stored as naive UTC like every other timestamp.
    if exam_date.tzinfo is not None:
        exam_date = exam_date.astimezone(timezone.utc).replace(tzinfo=None)
    with transaction(session):
        exam = Exam(exam_name=name, exam_date=exam_date)
        session.add(exam)
    session.refresh(exam)
    logger.info("exam_created", exam_id=exam.id, exam_date=exam.exam_date.isoformat())
    return exam


def allocate_seat(session: Session, exam_id: int, seat_id: int, student_id: int) -> SeatAllocation:
    with transaction(session):
        if not session.get(Exam, exam_id):
            raise NotFoundError("Exam not found")
        if not session.get(Seat, seat_id):
            raise NotFoundError("Seat not found")
        if not session.get(Student, student_id):
            raise NotFoundError("Student not found")
        if session.get(SeatAllocation, (exam_id, seat_id)):
            raise ConflictError("Seat is already allocated for this exam")
        allocation = SeatAllocation(exam_id=exam_id, seat_id=seat_id, student_id=student_id)
        session.add(allocation)
    session.refresh(allocation)
    logger.info("seat_allocated", exam_id=exam_id, seat_id=seat_id, student_id=student_id)
    return allocation
