"""Grading status and batch-result bookkeeping over the record store."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import case, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, delete, select

from salesgrader import db
from salesgrader.models import BatchResult, GradingState, GradingStatus, utcnow

logger = logging.getLogger(__name__)


class GradingConflict(Exception):
    """Raised when a session is re-dispatched with a different batch count."""


@dataclass(frozen=True)
class StatusSnapshot:
    session_id: int
    status: GradingState
    total_batches: int
    completed_batches: int

    @classmethod
    def from_row(cls, row: GradingStatus) -> "StatusSnapshot":
        return cls(
            session_id=row.session_id,
            status=GradingState(row.status),
            total_batches=row.total_batches,
            completed_batches=row.completed_batches,
        )


@dataclass(frozen=True)
class BatchCompletion:
    recorded: bool
    completed_batches: int = 0
    total_batches: int = 0
    became_complete: bool = False
    dropped: bool = False


class GradingStore:
    def __init__(self, engine: Engine | None = None) -> None:
        self._engine = engine

    @property
    def engine(self) -> Engine:
        return self._engine if self._engine is not None else db.engine

    def get_status(self, session_id: int) -> StatusSnapshot | None:
        with Session(self.engine) as session:
            row = session.get(GradingStatus, session_id)
            return StatusSnapshot.from_row(row) if row else None

    def begin_grading(self, session_id: int, total_batches: int) -> tuple[StatusSnapshot, bool]:
        """Insert the status row if absent; returns the row and whether it was created."""

        with Session(self.engine) as session:
            existing = session.get(GradingStatus, session_id)
            if existing is not None:
                return StatusSnapshot.from_row(existing), False

            row = GradingStatus(session_id=session_id, total_batches=total_batches)
            session.add(row)
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                existing = session.get(GradingStatus, session_id)
                if existing is None:
                    raise
                return StatusSnapshot.from_row(existing), False
            snapshot = StatusSnapshot(session_id, GradingState.QUEUED, total_batches, 0)

        logger.info(
            "grading status created",
            extra={"session_id": session_id, "stage": "begin_grading", "total_batches": total_batches},
        )
        return snapshot, True

    def mark_processing(self, session_id: int) -> None:
        with Session(self.engine) as session:
            session.exec(
                update(GradingStatus)
                .where(col(GradingStatus.session_id) == session_id, col(GradingStatus.status) == GradingState.QUEUED.value)
                .values(status=GradingState.PROCESSING.value, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            session.commit()

    def has_batch_result(self, session_id: int, batch_index: int) -> bool:
        with Session(self.engine) as session:
            found = session.exec(
                select(BatchResult.id).where(BatchResult.session_id == session_id, BatchResult.batch_index == batch_index)
            ).first()
            return found is not None

    def record_batch_completion(
        self,
        session_id: int,
        batch_index: int,
        result: dict[str, Any],
        total_batches: int | None = None,
    ) -> BatchCompletion:
        """Persist a batch result and count it, exactly once per batch index.

        The result insert, counter increment and terminal transition share one
        transaction; a duplicate result row rolls the whole thing back. Results
        for a batch the tracked run does not have, or from a job dispatched with
        a different batch count, are dropped.
        """

        log_extra = {"session_id": session_id, "batch_index": batch_index, "stage": "record_batch"}
        with Session(self.engine) as session:
            tracked = session.get(GradingStatus, session_id)
            if tracked is None:
                logger.warning("batch result dropped; session no longer tracked", extra=log_extra)
                return BatchCompletion(recorded=False, dropped=True)
            if (total_batches is not None and tracked.total_batches != total_batches) or not (
                0 <= batch_index < tracked.total_batches
            ):
                logger.warning(
                    "batch result dropped; batch does not belong to the tracked run",
                    extra={**log_extra, "total_batches": tracked.total_batches, "job_total_batches": total_batches},
                )
                return BatchCompletion(recorded=False, dropped=True)

            session.add(
                BatchResult(
                    session_id=session_id,
                    batch_index=batch_index,
                    line_count=len(result.get("line_ratings", [])),
                    result_json=json.dumps(result),
                )
            )
            try:
                session.flush()
            except IntegrityError:
                session.rollback()
                current = self.get_status(session_id)
                logger.info("duplicate batch delivery skipped", extra=log_extra)
                if current is None:
                    return BatchCompletion(recorded=False, dropped=True)
                return BatchCompletion(
                    recorded=False,
                    completed_batches=current.completed_batches,
                    total_batches=current.total_batches,
                )

            next_count = col(GradingStatus.completed_batches) + 1
            updated = session.exec(
                update(GradingStatus)
                .where(
                    col(GradingStatus.session_id) == session_id,
                    col(GradingStatus.completed_batches) < col(GradingStatus.total_batches),
                )
                .values(
                    completed_batches=next_count,
                    status=case(
                        (next_count >= col(GradingStatus.total_batches), GradingState.COMPLETE.value),
                        else_=GradingState.PROCESSING.value,
                    ),
                    updated_at=utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            if updated.rowcount != 1:
                session.rollback()
                logger.warning("batch result dropped; session removed or already counted", extra=log_extra)
                return BatchCompletion(recorded=False, dropped=True)
            counters = session.exec(
                select(GradingStatus.completed_batches, GradingStatus.total_batches).where(
                    GradingStatus.session_id == session_id
                )
            ).first()
            session.commit()

        completed, total = counters
        became_complete = completed == total
        logger.info(
            "batch completion recorded",
            extra={**log_extra, "completed_batches": completed, "total_batches": total, "became_complete": became_complete},
        )
        return BatchCompletion(
            recorded=True,
            completed_batches=completed,
            total_batches=total,
            became_complete=became_complete,
        )

    def list_batch_results(self, session_id: int) -> list[dict[str, Any]]:
        with Session(self.engine) as session:
            rows = session.exec(
                select(BatchResult).where(BatchResult.session_id == session_id).order_by(col(BatchResult.batch_index))
            ).all()
            return [json.loads(row.result_json) for row in rows]

    def delete_session_state(self, session_id: int) -> None:
        with Session(self.engine) as session:
            session.exec(delete(BatchResult).where(col(BatchResult.session_id) == session_id))
            session.exec(delete(GradingStatus).where(col(GradingStatus.session_id) == session_id))
            session.commit()
