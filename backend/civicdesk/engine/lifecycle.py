"""
Complaint lifecycle state machine.

    submitted ──assign──▶ assigned ──complete──▶ completed
        └──────────────complete──────────────────▲

`completed` is terminal: nothing moves a complaint back out of it. Repeating
mark-complete on a completed complaint is allowed and overwrites the
completion evidence.

The functions here validate payloads and mutate a Complaint in memory. They
never touch the session; the caller owns persistence and the transaction.
"""
import math
import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime

from civicdesk.core.errors import InvalidTransitionError, ValidationError
from civicdesk.engine.routing import normalize_label
from civicdesk.models.base import utcnow
from civicdesk.models.complaint import Complaint, ComplaintStatus, Priority

S = ComplaintStatus

# trigger → states it may fire from
_ASSIGNABLE_FROM = frozenset({S.SUBMITTED, S.ASSIGNED})
_COMPLETABLE_FROM = frozenset({S.SUBMITTED, S.ASSIGNED, S.COMPLETED})


@dataclass(frozen=True)
class Transition:
    complaint_id: uuid.UUID
    from_status: ComplaintStatus | None
    to_status: ComplaintStatus
    actor_id: uuid.UUID | None
    notes: str | None
    at: datetime

    @property
    def changed(self) -> bool:
        return self.from_status is not self.to_status


# ---------------------------------------------------------------------------
# Payload validation
# ---------------------------------------------------------------------------

def parse_status(value: ComplaintStatus | str) -> ComplaintStatus:
    try:
        return ComplaintStatus(value)
    except ValueError:
        raise ValidationError(
            f"Unknown status {value!r}; expected one of {[s.value for s in ComplaintStatus]}"
        ) from None


def parse_priority(value: Priority | str) -> Priority:
    try:
        return Priority(value)
    except ValueError:
        raise ValidationError(
            f"Unknown priority {value!r}; expected one of {[p.value for p in Priority]}"
        ) from None


def validate_location(latitude, longitude) -> tuple[float, float]:
    try:
        lat = float(latitude)
        lng = float(longitude)
    except (TypeError, ValueError):
        raise ValidationError("Invalid latitude or longitude format") from None
    if not (math.isfinite(lat) and math.isfinite(lng)):
        raise ValidationError("Invalid latitude or longitude format")
    if not -90 <= lat <= 90:
        raise ValidationError("Latitude must be between -90 and 90", details={"latitude": lat})
    if not -180 <= lng <= 180:
        raise ValidationError("Longitude must be between -180 and 180", details={"longitude": lng})
    return lat, lng


def normalize_categories(categories: Iterable[str] | None) -> list[str]:
    """Trim labels and collapse duplicates, keeping first-seen order."""
    if categories is None or isinstance(categories, str):
        raise ValidationError("categories must be a non-empty list of labels")
    seen: dict[str, None] = {}
    for label in categories:
        cleaned = normalize_label(label) if label is not None else ""
        if cleaned:
            seen.setdefault(cleaned, None)
    if not seen:
        raise ValidationError("At least one category is required")
    return list(seen)


def require_reference(value: str | None, field: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required", details={"field": field})
    return str(value).strip()


def validate_rating(rating) -> int:
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise ValidationError("Rating must be an integer between 1 and 5")
    return rating


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------

def submit(
    reporter_id: uuid.UUID,
    *,
    categories: Iterable[str],
    latitude,
    longitude,
    evidence_ref: str | None,
    note: str | None = None,
    ward: str | None = None,
    priority: Priority | str | None = None,
    now: datetime | None = None,
) -> Complaint:
    """Build a new complaint in the initial state. Nothing is persisted."""
    labels = normalize_categories(categories)
    lat, lng = validate_location(latitude, longitude)
    evidence = require_reference(evidence_ref, "evidence_ref")
    level = parse_priority(priority) if priority is not None else Priority.MEDIUM
    now = now or utcnow()
    return Complaint(
        id=uuid.uuid4(),
        reporter_id=reporter_id,
        categories=labels,
        note=(note or "").strip() or None,
        latitude=lat,
        longitude=lng,
        ward=(normalize_label(ward) or None) if ward else None,
        evidence_ref=evidence,
        status=S.SUBMITTED.value,
        priority=level.value,
        created_at=now,
        updated_at=now,
    )


def initial_transition(complaint: Complaint) -> Transition:
    return Transition(
        complaint_id=complaint.id,
        from_status=None,
        to_status=S.SUBMITTED,
        actor_id=complaint.reporter_id,
        notes="Complaint submitted",
        at=complaint.created_at,
    )


def ensure_assignable(complaint: Complaint) -> ComplaintStatus:
    """Current status of *complaint*; InvalidTransitionError when it cannot take a worker."""
    current = parse_status(complaint.status)
    if current not in _ASSIGNABLE_FROM:
        raise InvalidTransitionError(
            f"Cannot assign a worker to a {current.value} complaint",
            details={"from": current.value, "to": S.ASSIGNED.value},
        )
    return current


def assign(
    complaint: Complaint,
    actor_id: uuid.UUID,
    *,
    worker_id: uuid.UUID,
    department_id: uuid.UUID | None,
    eta: date | None = None,
    notes: str | None = None,
    now: datetime | None = None,
) -> Transition:
    current = ensure_assignable(complaint)
    now = now or utcnow()
    complaint.assigned_worker_id = worker_id
    complaint.assigned_department_id = department_id
    complaint.estimated_completion = eta
    complaint.assigned_at = now
    complaint.status = S.ASSIGNED.value
    complaint.updated_at = now
    return Transition(complaint.id, current, S.ASSIGNED, actor_id, notes or f"Worker assigned: {worker_id}", now)


def complete(
    complaint: Complaint,
    actor_id: uuid.UUID,
    *,
    evidence_ref: str | None,
    notes: str | None = None,
    now: datetime | None = None,
) -> Transition:
    current = parse_status(complaint.status)
    evidence = require_reference(evidence_ref, "evidence_ref")
    if current not in _COMPLETABLE_FROM:
        raise InvalidTransitionError(f"Cannot complete a {current.value} complaint")
    now = now or utcnow()
    complaint.completion_evidence_ref = evidence
    complaint.completion_notes = notes
    if current is not S.COMPLETED:
        # a re-completion corrects the evidence; resolution time stays as first recorded
        complaint.completed_at = now
    complaint.status = S.COMPLETED.value
    complaint.updated_at = now
    return Transition(complaint.id, current, S.COMPLETED, actor_id, notes or "Complaint marked as completed", now)


def patch(
    complaint: Complaint,
    actor_id: uuid.UUID,
    *,
    status: ComplaintStatus | str | None = None,
    priority: Priority | str | None = None,
    notes: str | None = None,
    now: datetime | None = None,
) -> Transition | None:
    """
    Apply a status and/or priority override.

    Returns the Transition when the status value actually changed, else None.
    All checks run before the complaint is modified.
    """
    if status is None and priority is None:
        raise ValidationError("Provide a status and/or a priority")
    target = parse_status(status) if status is not None else None
    level = parse_priority(priority) if priority is not None else None
    current = parse_status(complaint.status)

    if target is not None and target is not current:
        if current is S.COMPLETED:
            raise InvalidTransitionError(
                "A completed complaint cannot move back to an earlier state",
                details={"from": current.value, "to": target.value},
            )
        if target is S.ASSIGNED and complaint.assigned_worker_id is None:
            raise InvalidTransitionError("Assign a worker to move a complaint to 'assigned'")
        if target is S.COMPLETED and not complaint.completion_evidence_ref:
            raise ValidationError("Completion evidence is required; use mark-complete")

    now = now or utcnow()
    if level is not None:
        complaint.priority = level.value
    complaint.updated_at = now

    if target is None or target is current:
        return None

    if target is S.SUBMITTED:
        complaint.assigned_worker_id = None
        complaint.assigned_at = None
        complaint.estimated_completion = None
    elif target is S.COMPLETED:
        complaint.completed_at = now
    complaint.status = target.value
    return Transition(complaint.id, current, target, actor_id, notes or f"Status updated to {target.value}", now)
