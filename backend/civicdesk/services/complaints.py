"""
Complaint service — the entry point for every complaint read and mutation.

Each mutation follows the same order, and nothing is written until the last
step:
    load (NotFoundError) → authorize (AuthorizationError)
    → validate (ValidationError) → apply + history + ledger + notifications
    → commit, or roll back everything.
"""
import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import date

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from civicdesk.core.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from civicdesk.engine import history, lifecycle
from civicdesk.engine.ledger import WorkerAssignmentLedger
from civicdesk.engine.routing import CategoryRouter, CategoryVocabulary
from civicdesk.engine.scope import AccessScopeResolver, Actor, Operation, authorize_operation
from civicdesk.models.base import utcnow
from civicdesk.models.complaint import (
    Complaint,
    ComplaintStatus,
    Priority,
    StatusHistoryEntry,
)
from civicdesk.models.user import Role
from civicdesk.services import notifications

logger = logging.getLogger(__name__)


class ComplaintService:
    def __init__(self, session: AsyncSession, vocabulary: CategoryVocabulary):
        self.session = session
        self.vocabulary = vocabulary
        self.ledger = WorkerAssignmentLedger(session)

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    async def _resolver(self) -> AccessScopeResolver:
        router = await CategoryRouter.load(self.session, self.vocabulary)
        return AccessScopeResolver(router)

    async def _load(self, complaint_id: uuid.UUID) -> Complaint:
        complaint = await self.session.get(Complaint, complaint_id)
        if complaint is None:
            raise NotFoundError(f"Complaint {complaint_id} not found")
        return complaint

    @asynccontextmanager
    async def _unit_of_work(self) -> AsyncIterator[None]:
        """Commit on success; roll back on any failure so nothing is half-applied."""
        try:
            yield
            await self.session.commit()
        except StaleDataError as exc:
            await self.session.rollback()
            raise ConflictError("Complaint was modified concurrently; retry the request") from exc
        except IntegrityError as exc:
            await self.session.rollback()
            raise ConflictError("Conflicting concurrent write; retry the request") from exc
        except Exception:
            await self.session.rollback()
            raise

    # ------------------------------------------------------------------ #
    # Mutations
    # ------------------------------------------------------------------ #

    async def create_complaint(
        self,
        actor: Actor,
        *,
        categories: list[str],
        latitude: float,
        longitude: float,
        evidence_ref: str,
        note: str | None = None,
        ward: str | None = None,
        priority: Priority | str | None = None,
    ) -> Complaint:
        authorize_operation(actor, Operation.CREATE_COMPLAINT)
        complaint = lifecycle.submit(
            actor.id,
            categories=categories,
            latitude=latitude,
            longitude=longitude,
            evidence_ref=evidence_ref,
            note=note,
            ward=ward,
            priority=priority,
        )
        async with self._unit_of_work():
            self.session.add(complaint)
            await self.session.flush()
            history.append(self.session, lifecycle.initial_transition(complaint))

        logger.info(
            "Complaint %s submitted by %s (categories=%s)", complaint.id, actor.id, complaint.categories
        )
        return complaint

    async def assign_worker(
        self,
        actor: Actor,
        complaint_id: uuid.UUID,
        worker_id: uuid.UUID,
        department_id: uuid.UUID | None = None,
        eta: date | None = None,
        notes: str | None = None,
    ) -> Complaint:
        complaint = await self._load(complaint_id)
        resolver = await self._resolver()
        resolver.authorize(actor, Operation.ASSIGN_WORKER, complaint)

        router = resolver.router
        if department_id is not None:
            if router.get(department_id) is None:
                raise NotFoundError(f"Department {department_id} not found")
            target_department = department_id
        else:
            # keep an existing explicit department, else infer from categories
            target_department = complaint.assigned_department_id or router.route_id(complaint.categories)

        if actor.role is Role.DEPARTMENT_HEAD and target_department != actor.department_id:
            raise AuthorizationError("A department head may only assign within their own department")

        worker = await self.ledger.load_worker(worker_id)
        lifecycle.ensure_assignable(complaint)

        async with self._unit_of_work():
            transition = await self.ledger.assign(
                complaint,
                actor.id,
                worker=worker,
                department_id=target_department,
                eta=eta,
                notes=notes,
            )
            notifications.stage(
                self.session,
                user_id=worker.id,
                complaint_id=complaint.id,
                type=notifications.ASSIGNMENT,
                message=f"You have been assigned complaint {complaint.id}",
            )

        logger.info(
            "Complaint %s assigned to worker %s by %s (%s → %s, department=%s)",
            complaint.id, worker.id, actor.id,
            transition.from_status.value, transition.to_status.value, target_department,
        )
        return complaint

    async def mark_completed(
        self,
        actor: Actor,
        complaint_id: uuid.UUID,
        evidence_ref: str | None,
        notes: str | None = None,
    ) -> Complaint:
        complaint = await self._load(complaint_id)
        resolver = await self._resolver()
        resolver.authorize(actor, Operation.COMPLETE_COMPLAINT, complaint)
        lifecycle.require_reference(evidence_ref, "evidence_ref")

        now = utcnow()
        async with self._unit_of_work():
            transition = lifecycle.complete(complaint, actor.id, evidence_ref=evidence_ref, notes=notes, now=now)
            credited = await self.ledger.record_completion(complaint, transition.from_status, now)
            history.append(self.session, transition)
            if complaint.reporter_id != actor.id:
                notifications.stage(
                    self.session,
                    user_id=complaint.reporter_id,
                    complaint_id=complaint.id,
                    type=notifications.COMPLETION,
                    message=f"Your complaint {complaint.id} has been resolved",
                )

        if transition.from_status is ComplaintStatus.COMPLETED:
            logger.info("Completion evidence of complaint %s replaced by %s", complaint.id, actor.id)
        else:
            logger.info(
                "Complaint %s completed by %s (worker credited=%s)", complaint.id, actor.id, credited
            )
        return complaint

    async def patch_complaint(
        self,
        actor: Actor,
        complaint_id: uuid.UUID,
        status: ComplaintStatus | str | None = None,
        priority: Priority | str | None = None,
        notes: str | None = None,
    ) -> Complaint:
        complaint = await self._load(complaint_id)
        resolver = await self._resolver()
        resolver.authorize(actor, Operation.PATCH_COMPLAINT, complaint)

        # every check runs inside lifecycle.patch before the complaint is touched
        transition = lifecycle.patch(complaint, actor.id, status=status, priority=priority, notes=notes)
        async with self._unit_of_work():
            if transition is not None:
                history.append(self.session, transition)
                if complaint.reporter_id != actor.id:
                    notifications.stage(
                        self.session,
                        user_id=complaint.reporter_id,
                        complaint_id=complaint.id,
                        type=notifications.STATUS_CHANGE,
                        message=f"Your complaint {complaint.id} is now {transition.to_status.value}",
                    )
            await self.session.flush()

        logger.info(
            "Complaint %s patched by %s (status=%s, priority=%s)",
            complaint.id, actor.id, complaint.status, complaint.priority,
        )
        return complaint

    async def rate_complaint(
        self,
        actor: Actor,
        complaint_id: uuid.UUID,
        rating: int,
        feedback: str | None = None,
    ) -> Complaint:
        complaint = await self._load(complaint_id)
        resolver = await self._resolver()
        resolver.authorize(actor, Operation.RATE_COMPLAINT, complaint)
        score = lifecycle.validate_rating(rating)
        if complaint.status != ComplaintStatus.COMPLETED.value:
            raise ValidationError("Only completed complaints can be rated")

        async with self._unit_of_work():
            complaint.citizen_rating = score
            complaint.citizen_feedback = (feedback or "").strip() or None
            complaint.updated_at = utcnow()
            await self.session.flush()

        logger.info("Complaint %s rated %d by %s", complaint.id, score, actor.id)
        return complaint

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    async def list_complaints(
        self,
        actor: Actor,
        status: ComplaintStatus | str | None = None,
    ) -> list[Complaint]:
        resolver = await self._resolver()
        resolver.authorize(actor, Operation.VIEW_COMPLAINTS)
        scope = resolver.scope(actor)
        stmt = scope.apply(select(Complaint))
        if status is not None:
            stmt = stmt.where(Complaint.status == lifecycle.parse_status(status).value)
        stmt = stmt.order_by(Complaint.created_at.desc())
        result = await self.session.execute(stmt)
        return scope.filter(result.scalars().all())

    async def get_complaint(self, actor: Actor, complaint_id: uuid.UUID) -> Complaint:
        complaint = await self._load(complaint_id)
        resolver = await self._resolver()
        resolver.authorize(actor, Operation.VIEW_COMPLAINTS, complaint)
        return complaint

    async def get_history(self, actor: Actor, complaint_id: uuid.UUID) -> list[StatusHistoryEntry]:
        await self.get_complaint(actor, complaint_id)
        return await history.entries_for(self.session, complaint_id)
