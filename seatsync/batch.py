"""
Two deliberately different ways of applying a handler to many input rows.

``AtomicBatch`` commits all rows or none; the first failure propagates.
``BestEffortBatch`` isolates each row in a savepoint and reports failures per row.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Generic, Iterable, TypeVar

import structlog
from sqlmodel import Session

from .db import transaction
from .errors import SeatSyncError

logger = structlog.get_logger(__name__)

T = TypeVar("T")

RowHandler = Callable[[int, T], None]


@dataclass(frozen=True)
class BatchRowError:
    line: int
    key: str
    message: str

    def __str__(self) -> str:
        return f"Row {self.line} ({self.key}): {self.message}"


@dataclass
class BatchReport:
    succeeded: int = 0
    errors: list[BatchRowError] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.errors)


class AtomicBatch(Generic[T]):
    def __init__(self, session: Session, *, name: str = "batch"):
        self.session = session
        self.name = name

    def run(self, items: Iterable[tuple[int, T]], handler: RowHandler[T]) -> int:
        processed = 0
        try:
            with transaction(self.session):
                for line, item in items:
                    handler(line, item)
                    processed += 1
        except SeatSyncError as e:
            logger.warning("atomic_batch_rolled_back", batch=self.name, processed=processed, error=e.message)
            raise
        logger.info("atomic_batch_committed", batch=self.name, processed=processed)
        return processed


class BestEffortBatch(Generic[T]):
    def __init__(
        self,
        session: Session,
        *,
        name: str = "batch",
        key: Callable[[T], str] = lambda item: "Unknown",
    ):
        self.session = session
        self.name = name
        self.key = key

    def run(self, items: Iterable[tuple[int, T]], handler: RowHandler[T]) -> BatchReport:
        report = BatchReport()
        with transaction(self.session):
            for line, item in items:
                try:
                    with self.session.begin_nested():
                        handler(line, item)
                except SeatSyncError as e:
                    report.errors.append(BatchRowError(line=line, key=self.key(item), message=e.message))
                    continue
                report.succeeded += 1
        logger.info(
            "best_effort_batch_committed",
            batch=self.name,
            succeeded=report.succeeded,
            failed=report.failed,
        )
        return report
