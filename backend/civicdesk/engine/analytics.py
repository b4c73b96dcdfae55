"""
Analytics aggregation.

Everything is recomputed on demand from the live complaint rows visible to the
caller: scope filter first, then the category router for departmental
grouping. Nothing here writes, and no stored counter is trusted over the
complaint set. Empty inputs give zero-filled results.
"""
import logging
from collections import Counter
from collections.abc import Iterable
from datetime import datetime, timezone, tzinfo

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from civicdesk.engine.routing import CategoryRouter, CategoryVocabulary
from civicdesk.engine.scope import AccessScopeResolver, Actor, Operation, authorize_operation
from civicdesk.models.complaint import Complaint, ComplaintStatus
from civicdesk.models.user import Role, User
from civicdesk.models.worker import WorkerProfile
from civicdesk.schemas.analytics import (
    DashboardAnalytics,
    DepartmentStats,
    RecentComplaint,
    WorkerStats,
)

logger = logging.getLogger(__name__)

RECENT_LIMIT = 10
UNROUTED_LABEL = "Unrouted"

_SUBMITTED = ComplaintStatus.SUBMITTED.value
_ASSIGNED = ComplaintStatus.ASSIGNED.value
_COMPLETED = ComplaintStatus.COMPLETED.value


def avg_resolution_days(complaints: Iterable[Complaint]) -> float:
    """Mean (completed_at - created_at) in days over completed complaints; 0 when none."""
    seconds = [
        ((c.completed_at or c.updated_at) - c.created_at).total_seconds()
        for c in complaints
        if c.status == _COMPLETED
    ]
    if not seconds:
        return 0.0
    return round(sum(seconds) / len(seconds) / 86400.0, 2)


def hourly_histogram(complaints: Iterable[Complaint], tz: tzinfo, now: datetime) -> dict[int, int]:
    """Complaints created on *now*'s local date, bucketed by local hour (all 24 present)."""
    buckets = {hour: 0 for hour in range(24)}
    today = now.astimezone(tz).date()
    for c in complaints:
        local = c.created_at.replace(tzinfo=timezone.utc).astimezone(tz)
        if local.date() == today:
            buckets[local.hour] += 1
    return buckets


def _average(values: list[float]) -> float:
    return round(sum(values) / len(values), 2) if values else 0.0


class AnalyticsAggregator:
    def __init__(self, session: AsyncSession, vocabulary: CategoryVocabulary, tz: tzinfo = timezone.utc):
        self.session = session
        self.vocabulary = vocabulary
        self.tz = tz

    async def _scoped(self, actor: Actor) -> tuple[CategoryRouter, list[Complaint]]:
        router = await CategoryRouter.load(self.session, self.vocabulary)
        scope = AccessScopeResolver(router).scope(actor)
        stmt = scope.apply(select(Complaint).order_by(Complaint.created_at.desc()))
        result = await self.session.execute(stmt)
        return router, scope.filter(result.scalars().all())

    # ------------------------------------------------------------------ #
    # Dashboard
    # ------------------------------------------------------------------ #

    async def dashboard(self, actor: Actor, now: datetime | None = None) -> DashboardAnalytics:
        authorize_operation(actor, Operation.VIEW_ANALYTICS)
        router, complaints = await self._scoped(actor)
        now = now or datetime.now(self.tz)

        by_status = Counter(c.status for c in complaints)
        categories: Counter[str] = Counter()
        for c in complaints:
            # one bucket per distinct canonical category on the complaint
            for label in {self.vocabulary.canonical(raw) for raw in c.categories}:
                categories[label] += 1

        snapshot = DashboardAnalytics(
            total_complaints=len(complaints),
            submitted_complaints=by_status.get(_SUBMITTED, 0),
            assigned_complaints=by_status.get(_ASSIGNED, 0),
            completed_complaints=by_status.get(_COMPLETED, 0),
            unrouted_complaints=sum(
                1 for c in complaints if router.route(c.categories, c.assigned_department_id) is None
            ),
            avg_resolution_days=avg_resolution_days(complaints),
            category_breakdown=dict(categories.most_common()),
            priority_breakdown=dict(Counter(c.priority for c in complaints)),
            ward_breakdown=dict(Counter(c.ward for c in complaints if c.ward).most_common()),
            hourly_distribution=hourly_histogram(complaints, self.tz, now),
            recent_complaints=[
                RecentComplaint(
                    id=c.id,
                    categories=list(c.categories),
                    status=c.status,
                    priority=c.priority,
                    ward=c.ward,
                    created_at=c.created_at,
                )
                for c in complaints[:RECENT_LIMIT]
            ],
        )
        logger.debug("Dashboard for %s (%s): %d complaints", actor.id, actor.role.value, len(complaints))
        return snapshot

    # ------------------------------------------------------------------ #
    # Departments
    # ------------------------------------------------------------------ #

    async def departments(self, actor: Actor) -> list[DepartmentStats]:
        authorize_operation(actor, Operation.VIEW_ANALYTICS)
        router, complaints = await self._scoped(actor)

        grouped: dict[object, list[Complaint]] = {}
        for c in complaints:
            grouped.setdefault(router.route_id(c.categories, c.assigned_department_id), []).append(c)

        result = await self.session.execute(
            select(User.department_id, func.count(User.id))
            .where(User.role == Role.FIELD_WORKER.value, User.is_active.is_(True))
            .group_by(User.department_id)
        )
        workers_per_department = {dept_id: count for dept_id, count in result.all()}

        if actor.is_magistrate:
            departments = router.departments
        else:
            own = router.get(actor.department_id)
            departments = [own] if own is not None else []

        stats = [
            self._department_row(
                grouped.get(dept.id, []),
                department_id=dept.id,
                name=dept.name,
                name_local=dept.name_local,
                total_workers=workers_per_department.get(dept.id, 0),
            )
            for dept in departments
        ]
        if actor.is_magistrate:
            stats.append(self._department_row(grouped.get(None, []), department_id=None, name=UNROUTED_LABEL))
        return stats

    @staticmethod
    def _department_row(complaints: list[Complaint], **identity) -> DepartmentStats:
        by_status = Counter(c.status for c in complaints)
        ratings = [c.citizen_rating for c in complaints if c.citizen_rating is not None]
        return DepartmentStats(
            **identity,
            total_complaints=len(complaints),
            submitted_complaints=by_status.get(_SUBMITTED, 0),
            assigned_complaints=by_status.get(_ASSIGNED, 0),
            resolved_complaints=by_status.get(_COMPLETED, 0),
            avg_resolution_days=avg_resolution_days(complaints),
            avg_rating=_average(ratings),
        )

    # ------------------------------------------------------------------ #
    # Workers
    # ------------------------------------------------------------------ #

    async def workers(self, actor: Actor) -> list[WorkerStats]:
        authorize_operation(actor, Operation.VIEW_ANALYTICS)
        _, complaints = await self._scoped(actor)

        stmt = (
            select(User, WorkerProfile)
            .outerjoin(WorkerProfile, WorkerProfile.user_id == User.id)
            .where(User.role == Role.FIELD_WORKER.value, User.is_active.is_(True))
            # counters are written with SQL-side UPDATEs; refresh any cached profiles
            .execution_options(populate_existing=True)
        )
        if not actor.is_magistrate:
            if actor.department_id is None:
                return []
            stmt = stmt.where(User.department_id == actor.department_id)
        rows = (await self.session.execute(stmt)).all()

        active = Counter(c.assigned_worker_id for c in complaints if c.status == _ASSIGNED)
        done = Counter(c.assigned_worker_id for c in complaints if c.status == _COMPLETED)

        stats = [
            WorkerStats(
                worker_id=user.id,
                name=user.full_name,
                department_id=user.department_id,
                total_assigned=profile.total_assigned if profile else 0,
                total_completed=profile.total_completed if profile else 0,
                efficiency_rating=round(profile.efficiency_rating or 0.0, 2) if profile else 0.0,
                avg_completion_hours=round(profile.avg_completion_hours or 0.0, 2) if profile else 0.0,
                current_status=profile.current_status if profile else "available",
                active_assignments=active.get(user.id, 0),
                completed_in_scope=done.get(user.id, 0),
            )
            for user, profile in rows
        ]
        stats.sort(key=lambda s: (-s.efficiency_rating, s.name))
        return stats
