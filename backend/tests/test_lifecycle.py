"""
Tests for the complaint state machine (pure, no database).
"""
import math
import uuid
from datetime import datetime, timedelta

import pytest

from civicdesk.core.errors import InvalidTransitionError, ValidationError
from civicdesk.engine import lifecycle
from civicdesk.models.complaint import ComplaintStatus

REPORTER = uuid.uuid4()
ACTOR = uuid.uuid4()
WORKER = uuid.uuid4()


def _new(**overrides):
    payload = dict(
        categories=["Garbage & Waste"],
        latitude=25.3176,
        longitude=82.9739,
        evidence_ref="uploads/complaint-1.jpg",
    )
    payload.update(overrides)
    return lifecycle.submit(REPORTER, **payload)


def test_submit_defaults():
    complaint = _new(ward="  Ward   12 ")
    assert complaint.status == "submitted"
    assert complaint.priority == "medium"
    assert complaint.ward == "Ward 12"
    assert complaint.created_at == complaint.updated_at
    assert complaint.assigned_worker_id is None


def test_submit_collapses_duplicate_categories():
    complaint = _new(categories=["Pollution", " Pollution ", "Garbage & Waste", "Pollution"])
    assert complaint.categories == ["Pollution", "Garbage & Waste"]


@pytest.mark.parametrize("categories", [[], ["  "], None, "Pollution"])
def test_submit_rejects_bad_categories(categories):
    with pytest.raises(ValidationError):
        _new(categories=categories)


@pytest.mark.parametrize(
    "lat, lng",
    [(95, 10), (-90.5, 10), (10, 181), (math.nan, 10), (10, math.inf), ("north", 10)],
)
def test_submit_rejects_bad_location(lat, lng):
    with pytest.raises(ValidationError):
        _new(latitude=lat, longitude=lng)


def test_submit_requires_evidence():
    with pytest.raises(ValidationError):
        _new(evidence_ref="   ")


def test_submit_rejects_unknown_priority():
    with pytest.raises(ValidationError):
        _new(priority="urgent")


def test_assign_sets_worker_and_timestamps():
    complaint = _new()
    transition = lifecycle.assign(complaint, ACTOR, worker_id=WORKER, department_id=None)
    assert complaint.status == "assigned"
    assert complaint.assigned_worker_id == WORKER
    assert complaint.assigned_at is not None
    assert transition.from_status is ComplaintStatus.SUBMITTED
    assert transition.to_status is ComplaintStatus.ASSIGNED


def test_reassign_is_allowed():
    complaint = _new()
    lifecycle.assign(complaint, ACTOR, worker_id=WORKER, department_id=None)
    other = uuid.uuid4()
    transition = lifecycle.assign(complaint, ACTOR, worker_id=other, department_id=None)
    assert complaint.assigned_worker_id == other
    assert not transition.changed


def test_cannot_assign_completed():
    complaint = _new()
    lifecycle.complete(complaint, ACTOR, evidence_ref="uploads/done.jpg")
    with pytest.raises(InvalidTransitionError):
        lifecycle.assign(complaint, ACTOR, worker_id=WORKER, department_id=None)
    assert complaint.assigned_worker_id is None


def test_direct_completion_from_submitted():
    complaint = _new()
    transition = lifecycle.complete(complaint, ACTOR, evidence_ref="uploads/done.jpg", notes="cleared")
    assert complaint.status == "completed"
    assert complaint.completion_evidence_ref == "uploads/done.jpg"
    assert complaint.completed_at is not None
    assert transition.from_status is ComplaintStatus.SUBMITTED


def test_complete_requires_evidence_and_leaves_state_untouched():
    complaint = _new()
    with pytest.raises(ValidationError):
        lifecycle.complete(complaint, ACTOR, evidence_ref="")
    assert complaint.status == "submitted"
    assert complaint.completion_evidence_ref is None


def test_recomplete_overwrites_evidence():
    complaint = _new()
    lifecycle.complete(complaint, ACTOR, evidence_ref="uploads/first.jpg")
    transition = lifecycle.complete(complaint, ACTOR, evidence_ref="uploads/second.jpg")
    assert complaint.completion_evidence_ref == "uploads/second.jpg"
    assert transition.from_status is ComplaintStatus.COMPLETED


def test_recomplete_keeps_first_completion_time():
    complaint = _new()
    first = datetime(2026, 3, 1, 10, 0)
    lifecycle.complete(complaint, ACTOR, evidence_ref="uploads/first.jpg", now=first)
    lifecycle.complete(complaint, ACTOR, evidence_ref="uploads/second.jpg", now=first + timedelta(days=2))
    assert complaint.completed_at == first
    assert complaint.updated_at == first + timedelta(days=2)


def test_ensure_assignable_rejects_completed():
    complaint = _new()
    assert lifecycle.ensure_assignable(complaint) is ComplaintStatus.SUBMITTED
    lifecycle.complete(complaint, ACTOR, evidence_ref="uploads/done.jpg")
    with pytest.raises(InvalidTransitionError):
        lifecycle.ensure_assignable(complaint)


@pytest.mark.parametrize("target", ["submitted", "assigned"])
def test_nothing_leaves_completed(target):
    complaint = _new()
    lifecycle.complete(complaint, ACTOR, evidence_ref="uploads/done.jpg")
    with pytest.raises(InvalidTransitionError):
        lifecycle.patch(complaint, ACTOR, status=target)
    assert complaint.status == "completed"


def test_patch_priority_only_has_no_transition():
    complaint = _new()
    assert lifecycle.patch(complaint, ACTOR, priority="high") is None
    assert complaint.priority == "high"


def test_patch_same_status_has_no_transition():
    complaint = _new()
    assert lifecycle.patch(complaint, ACTOR, status="submitted") is None


def test_patch_requires_some_field():
    with pytest.raises(ValidationError):
        lifecycle.patch(_new(), ACTOR)


def test_patch_to_assigned_needs_worker():
    complaint = _new()
    with pytest.raises(InvalidTransitionError):
        lifecycle.patch(complaint, ACTOR, status="assigned")


def test_patch_to_completed_needs_evidence():
    complaint = _new()
    lifecycle.assign(complaint, ACTOR, worker_id=WORKER, department_id=None)
    with pytest.raises(ValidationError):
        lifecycle.patch(complaint, ACTOR, status="completed", priority="low")
    # nothing applied, priority included
    assert complaint.status == "assigned"
    assert complaint.priority == "medium"


def test_patch_back_to_submitted_detaches_worker():
    complaint = _new()
    lifecycle.assign(complaint, ACTOR, worker_id=WORKER, department_id=None)
    transition = lifecycle.patch(complaint, ACTOR, status="submitted")
    assert transition.to_status is ComplaintStatus.SUBMITTED
    assert complaint.assigned_worker_id is None


@pytest.mark.parametrize("rating", [0, 6, 3.5, True, "4"])
def test_invalid_rating(rating):
    with pytest.raises(ValidationError):
        lifecycle.validate_rating(rating)
