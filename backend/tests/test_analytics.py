"""
Tests for analytics aggregation over scoped, routed complaint sets.
"""
from datetime import datetime, timedelta, timezone

import pytest

from civicdesk.core.errors import AuthorizationError
from civicdesk.engine.analytics import (
    UNROUTED_LABEL,
    AnalyticsAggregator,
    avg_resolution_days,
    hourly_histogram,
)
from civicdesk.models.complaint import Complaint
from civicdesk.services.complaints import ComplaintService

from conftest import actor


def _stub(status, created_at, completed_at=None):
    return Complaint(status=status, created_at=created_at, updated_at=created_at, completed_at=completed_at)


def test_avg_resolution_days_fractional():
    start = datetime(2026, 3, 1, 8, 0)
    complaints = [
        _stub("completed", start, start + timedelta(days=1, hours=12)),
        _stub("completed", start, start + timedelta(days=2)),
        _stub("assigned", start),
    ]
    assert avg_resolution_days(complaints) == 1.75


def test_avg_resolution_days_empty():
    assert avg_resolution_days([]) == 0.0


def test_hourly_histogram_uses_local_date():
    ist = timezone(timedelta(hours=5, minutes=30))
    now = datetime(2026, 3, 2, 12, 0, tzinfo=ist)
    complaints = [
        _stub("submitted", datetime(2026, 3, 2, 4, 0)),    # 09:30 local, today
        _stub("submitted", datetime(2026, 3, 1, 20, 0)),   # 01:30 local, today
        _stub("submitted", datetime(2026, 3, 1, 17, 0)),   # 22:30 local, yesterday
    ]
    buckets = hourly_histogram(complaints, ist, now)
    assert len(buckets) == 24
    assert buckets[9] == 1
    assert buckets[1] == 1
    assert sum(buckets.values()) == 2


@pytest.mark.asyncio
async def test_empty_scope_gives_zeros(db_session, vocabulary, head, magistrate):
    aggregator = AnalyticsAggregator(db_session, vocabulary)

    dashboard = await aggregator.dashboard(actor(head))

    assert dashboard.total_complaints == 0
    assert dashboard.completed_complaints == 0
    assert dashboard.avg_resolution_days == 0.0
    assert dashboard.category_breakdown == {}
    assert dashboard.recent_complaints == []
    assert set(dashboard.hourly_distribution) == set(range(24))
    assert sum(dashboard.hourly_distribution.values()) == 0

    rows = await aggregator.departments(actor(magistrate))
    assert all(row.total_complaints == 0 and row.avg_rating == 0.0 for row in rows)
    assert rows[-1].name == UNROUTED_LABEL


@pytest.mark.asyncio
async def test_citizen_cannot_view_analytics(db_session, vocabulary, citizen):
    with pytest.raises(AuthorizationError):
        await AnalyticsAggregator(db_session, vocabulary).dashboard(actor(citizen))


@pytest.mark.asyncio
async def test_dashboard_scoping_and_breakdowns(
    db_session, vocabulary, citizen, magistrate, head, worker, public_works
):
    service = ComplaintService(db_session, vocabulary)
    garbage = await service.create_complaint(
        actor(citizen),
        categories=["Garbage & Waste (roadside dumps, no dustbins, poor segregation)", "Pollution"],
        latitude=25.3, longitude=83.0, evidence_ref="uploads/a.jpg", ward="Ward 4", priority="high",
    )
    await service.create_complaint(
        actor(citizen), categories=["Potholes"], latitude=25.3, longitude=83.0,
        evidence_ref="uploads/b.jpg", ward="Ward 4",
    )
    await service.create_complaint(
        actor(citizen), categories=["Stray cattle"], latitude=25.3, longitude=83.0,
        evidence_ref="uploads/c.jpg",
    )
    await service.assign_worker(actor(head), garbage.id, worker.id)
    await service.mark_completed(actor(worker), garbage.id, "uploads/a-fixed.jpg")
    await service.rate_complaint(actor(citizen), garbage.id, 4, "Quick work")

    aggregator = AnalyticsAggregator(db_session, vocabulary)
    overall = await aggregator.dashboard(actor(magistrate))
    assert overall.total_complaints == 3
    assert overall.completed_complaints == 1
    assert overall.submitted_complaints == 2
    assert overall.unrouted_complaints == 1
    assert overall.category_breakdown["Garbage & Waste"] == 1
    assert overall.category_breakdown["Pollution"] == 1
    assert overall.category_breakdown["Traffic & Roads"] == 1
    assert overall.priority_breakdown == {"high": 1, "medium": 2}
    assert overall.ward_breakdown == {"Ward 4": 2}
    assert len(overall.recent_complaints) == 3

    scoped = await aggregator.dashboard(actor(head))
    assert scoped.total_complaints == 1
    assert scoped.completed_complaints == 1

    payload = overall.model_dump(by_alias=True)
    assert payload["completedComplaints"] == 1
    assert "avgResolutionDays" in payload

    rows = {row.name: row for row in await aggregator.departments(actor(magistrate))}
    assert rows["Sanitation Department"].resolved_complaints == 1
    assert rows["Sanitation Department"].avg_rating == 4.0
    assert rows["Sanitation Department"].total_workers == 1
    assert rows["Public Works Department"].submitted_complaints == 1
    assert rows[UNROUTED_LABEL].total_complaints == 1

    own = await aggregator.departments(actor(head))
    assert [row.name for row in own] == ["Sanitation Department"]

    workers = await aggregator.workers(actor(head))
    assert len(workers) == 1
    assert workers[0].total_assigned == 1
    assert workers[0].total_completed == 1
    assert workers[0].efficiency_rating == 5.0
    assert workers[0].completed_in_scope == 1
