"""
Worker assignment ledger.

Couples the assign/complete transitions with the per-worker counters. The
complaint UPDATE is flushed first; it is a compare-and-set on the complaint's
version column, so a concurrent writer makes it fail with ConflictError before
any counter moves. Counters are then changed with SQL-side expressions
(`total_assigned = total_assigned + 1`, opening the profile through an
INSERT .. ON CONFLICT upsert) so parallel assignments of different complaints
to one worker never lose an update. Everything runs inside the
caller's transaction and commits or rolls back as one unit.

Reassignment is a new assignment. The previous worker's counters are left
untouched.
"""
import logging
import uuid
from datetime import date, datetime

from sqlalchemy import case, literal, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from civicdesk.core.errors import ConflictError, NotFoundError
from civicdesk.engine import history, lifecycle
from civicdesk.engine.lifecycle import Transition
from civicdesk.models.base import utcnow
from civicdesk.models.complaint import Complaint, ComplaintStatus
from civicdesk.models.user import Role, User
from civicdesk.models.worker import WorkerAvailability, WorkerProfile

logger = logging.getLogger(__name__)

MAX_EFFICIENCY = 5.0

# dialects with INSERT .. ON CONFLICT DO UPDATE
_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _efficiency(completed, assigned):
    """5 × completed / assigned, clamped to [0, 5], 0 when nothing is assigned."""
    return case(
        (assigned <= 0, 0.0),
        (completed >= assigned, MAX_EFFICIENCY),
        else_=literal(MAX_EFFICIENCY) * completed / assigned,
    )


class WorkerAssignmentLedger:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def load_worker(self, worker_id: uuid.UUID) -> User:
        worker = await self.session.get(User, worker_id)
        if worker is None or worker.role != Role.FIELD_WORKER.value or not worker.is_active:
            raise NotFoundError(f"Field worker {worker_id} not found")
        return worker

    async def assign(
        self,
        complaint: Complaint,
        actor_id: uuid.UUID,
        *,
        worker: User,
        department_id: uuid.UUID | None,
        eta: date | None = None,
        notes: str | None = None,
        now: datetime | None = None,
    ) -> Transition:
        now = now or utcnow()
        previous_worker = complaint.assigned_worker_id
        transition = lifecycle.assign(
            complaint,
            actor_id,
            worker_id=worker.id,
            department_id=department_id,
            eta=eta,
            notes=notes,
            now=now,
        )
        await self._flush_complaint(complaint)
        await self._credit_assignment(worker.id, now)

        history.append(self.session, transition)
        if previous_worker is not None and previous_worker != worker.id:
            logger.info(
                "Complaint %s reassigned from worker %s to %s", complaint.id, previous_worker, worker.id
            )
        return transition

    async def record_completion(
        self,
        complaint: Complaint,
        previous_status: ComplaintStatus | None,
        now: datetime,
    ) -> bool:
        """
        Credit the assigned worker with a completion.

        Only the first entry into `completed` counts; re-completing a
        completed complaint leaves the counters alone. Returns True when a
        worker was credited.
        """
        await self._flush_complaint(complaint)
        if complaint.assigned_worker_id is None or previous_status is ComplaintStatus.COMPLETED:
            return False

        P = WorkerProfile
        values = {
            "total_completed": P.total_completed + 1,
            "efficiency_rating": _efficiency(P.total_completed + 1, P.total_assigned),
            "updated_at": now,
        }
        if complaint.assigned_at is not None:
            hours = max((now - complaint.assigned_at).total_seconds() / 3600.0, 0.0)
            values["avg_completion_hours"] = case(
                (P.avg_completion_hours.is_(None), literal(hours)),
                else_=(P.avg_completion_hours * P.total_completed + literal(hours)) / (P.total_completed + 1),
            )
        result = await self.session.execute(
            update(P)
            .where(P.user_id == complaint.assigned_worker_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.warning(
                "Worker %s completed complaint %s but has no profile; counters not updated",
                complaint.assigned_worker_id, complaint.id,
            )
            return False
        return True

    async def _flush_complaint(self, complaint: Complaint) -> None:
        # a failed flush leaves the instance unloadable until rollback
        complaint_id = complaint.id
        try:
            await self.session.flush()
        except StaleDataError as exc:
            raise ConflictError(
                f"Complaint {complaint_id} was modified concurrently; retry the request"
            ) from exc

    async def _credit_assignment(self, worker_id: uuid.UUID, now: datetime) -> None:
        """
        total_assigned += 1 for *worker_id*, opening the profile on first use.

        One INSERT .. ON CONFLICT DO UPDATE statement, so concurrent first
        assignments of the same worker both count.
        """
        dialect = self.session.get_bind().dialect.name
        try:
            insert = _UPSERT_INSERTS[dialect]
        except KeyError:
            raise RuntimeError(f"Worker ledger needs an upsert-capable database, got {dialect}") from None

        P = WorkerProfile
        stmt = insert(P).values(
            user_id=worker_id,
            specializations=[],
            total_assigned=1,
            total_completed=0,
            efficiency_rating=0.0,
            current_status=WorkerAvailability.AVAILABLE.value,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[P.user_id],
            set_={
                "total_assigned": P.total_assigned + 1,
                "efficiency_rating": _efficiency(P.total_completed, P.total_assigned + 1),
                "updated_at": now,
            },
        )
        await self.session.execute(stmt)
        logger.debug("Worker %s credited with an assignment", worker_id)
