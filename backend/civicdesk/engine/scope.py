"""
Access scope resolution: which complaints an actor may see or mutate, and
which operations each role may perform at all.

Every read and mutation path asks this module once. A scope carries an SQL
pre-filter (narrows the rows fetched) and an exact predicate (applied to each
loaded complaint). For department-heads the pre-filter is deliberately loose
because the routed department depends on the category vocabulary.
"""
import enum
import uuid
from collections.abc import Callable
from dataclasses import dataclass

from sqlalchemy import ColumnElement, Select, false, or_

from civicdesk.core.errors import AuthorizationError
from civicdesk.engine.routing import CategoryRouter
from civicdesk.models.complaint import Complaint
from civicdesk.models.user import Role, User


class Operation(str, enum.Enum):
    CREATE_COMPLAINT = "create_complaint"
    RATE_COMPLAINT = "rate_complaint"
    VIEW_COMPLAINTS = "view_complaints"
    ASSIGN_WORKER = "assign_worker"
    COMPLETE_COMPLAINT = "complete_complaint"
    PATCH_COMPLAINT = "patch_complaint"
    VIEW_ANALYTICS = "view_analytics"
    VIEW_DEPARTMENTS = "view_departments"
    MANAGE_DEPARTMENTS = "manage_departments"
    VIEW_WORKERS = "view_workers"
    MANAGE_WORKERS = "manage_workers"
    UPDATE_WORKER_STATUS = "update_worker_status"
    VIEW_USERS = "view_users"


_STAFF_READS = {
    Operation.VIEW_COMPLAINTS,
    Operation.VIEW_ANALYTICS,
    Operation.VIEW_DEPARTMENTS,
    Operation.VIEW_WORKERS,
    Operation.VIEW_USERS,
}

WHITELIST: dict[Role, frozenset[Operation]] = {
    Role.CITIZEN: frozenset({
        Operation.CREATE_COMPLAINT,
        Operation.RATE_COMPLAINT,
        Operation.VIEW_COMPLAINTS,
    }),
    Role.FIELD_WORKER: frozenset({
        Operation.VIEW_COMPLAINTS,
        Operation.COMPLETE_COMPLAINT,
        Operation.PATCH_COMPLAINT,
        Operation.UPDATE_WORKER_STATUS,
    }),
    Role.DEPARTMENT_HEAD: frozenset({
        *_STAFF_READS,
        Operation.ASSIGN_WORKER,
        Operation.COMPLETE_COMPLAINT,
        Operation.PATCH_COMPLAINT,
        Operation.MANAGE_WORKERS,
        Operation.UPDATE_WORKER_STATUS,
    }),
    Role.DISTRICT_MAGISTRATE: frozenset(Operation),
}


@dataclass(frozen=True)
class Actor:
    id: uuid.UUID
    role: Role
    department_id: uuid.UUID | None = None

    @classmethod
    def from_user(cls, user: User) -> "Actor":
        return cls(id=user.id, role=Role(user.role), department_id=user.department_id)

    @property
    def is_magistrate(self) -> bool:
        return self.role is Role.DISTRICT_MAGISTRATE


def can(actor: Actor, operation: Operation) -> bool:
    return operation in WHITELIST.get(actor.role, frozenset())


def authorize_operation(actor: Actor, operation: Operation) -> None:
    """Raise AuthorizationError unless *operation* is whitelisted for the actor's role."""
    if not can(actor, operation):
        raise AuthorizationError(
            f"Role '{actor.role.value}' may not perform '{operation.value}'",
            details={"role": actor.role.value, "operation": operation.value},
        )


@dataclass(frozen=True)
class Scope:
    actor: Actor
    clause: ColumnElement[bool] | None
    predicate: Callable[[Complaint], bool]

    def apply(self, stmt: Select) -> Select:
        if self.clause is None:
            return stmt
        return stmt.where(self.clause)

    def matches(self, complaint: Complaint) -> bool:
        return self.predicate(complaint)

    def filter(self, complaints) -> list[Complaint]:
        return [c for c in complaints if self.predicate(c)]


class AccessScopeResolver:
    def __init__(self, router: CategoryRouter):
        self.router = router

    def scope(self, actor: Actor) -> Scope:
        if actor.role is Role.DISTRICT_MAGISTRATE:
            return Scope(actor, None, lambda c: True)

        if actor.role is Role.CITIZEN:
            return Scope(
                actor,
                Complaint.reporter_id == actor.id,
                lambda c: c.reporter_id == actor.id,
            )

        if actor.role is Role.FIELD_WORKER:
            return Scope(
                actor,
                Complaint.assigned_worker_id == actor.id,
                lambda c: c.assigned_worker_id == actor.id,
            )

        if actor.role is Role.DEPARTMENT_HEAD and actor.department_id is not None:
            department_id = actor.department_id
            router = self.router
            return Scope(
                actor,
                or_(
                    Complaint.assigned_department_id == department_id,
                    Complaint.assigned_department_id.is_(None),
                ),
                lambda c: router.route_id(c.categories, c.assigned_department_id) == department_id,
            )

        # department-head without an affiliation sees nothing
        return Scope(actor, false(), lambda c: False)

    def authorize(self, actor: Actor, operation: Operation, complaint: Complaint | None = None) -> None:
        """Whitelist check, then (for a concrete record) the scope predicate."""
        authorize_operation(actor, operation)
        if complaint is not None and not self.scope(actor).matches(complaint):
            raise AuthorizationError(
                f"Complaint {complaint.id} is outside the caller's scope",
                details={"complaint_id": str(complaint.id), "operation": operation.value},
            )
