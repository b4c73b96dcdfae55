"""
Tests for category vocabulary resolution and department routing.

Routing is pure: departments are built in memory, no database needed.
"""
import json
import uuid

import pytest

from civicdesk.engine.routing import (
    CategoryRouter,
    CategoryVocabulary,
    load_vocabulary,
    normalize_label,
)
from civicdesk.models.department import Department


def _department(name, categories, priority=100, status="active"):
    return Department(
        id=uuid.uuid4(),
        name=name,
        name_local=name,
        status=status,
        routing_priority=priority,
        categories=categories,
    )


@pytest.fixture
def departments():
    return [
        _department("Sanitation", ["Garbage & Waste"], priority=10),
        _department("Public Works", ["Traffic & Roads", "Public Spaces"], priority=20),
        _department("Water Board", ["Drainage & Sewage"], priority=30),
    ]


def test_normalize_label_collapses_whitespace():
    assert normalize_label("  Garbage   &  Waste ") == "Garbage & Waste"


def test_long_wording_and_short_label_route_identically(vocabulary, departments):
    router = CategoryRouter(departments, vocabulary)
    short = router.route(["Garbage & Waste"])
    long = router.route(["Garbage & Waste (roadside dumps, no dustbins, poor segregation)"])
    assert short is not None
    assert short.name == "Sanitation"
    assert long is short


def test_localized_alias_routes(vocabulary, departments):
    router = CategoryRouter(departments, vocabulary)
    assert router.route(["जल निकासी एवं सीवेज"]).name == "Water Board"


def test_matching_is_case_insensitive(vocabulary, departments):
    router = CategoryRouter(departments, vocabulary)
    assert router.route(["garbage & WASTE"]).name == "Sanitation"


def test_no_substring_matching(vocabulary, departments):
    router = CategoryRouter(departments, vocabulary)
    assert router.route(["Garbage"]) is None
    assert router.route(["Roads"]) is None


def test_unknown_category_is_unrouted(vocabulary, departments):
    router = CategoryRouter(departments, vocabulary)
    assert router.route(["Other Issues"]) is None
    assert router.route_id(["Stray cattle"]) is None


def test_explicit_department_wins(vocabulary, departments):
    router = CategoryRouter(departments, vocabulary)
    water = departments[2]
    assert router.route(["Garbage & Waste"], water.id) is water


def test_routing_priority_breaks_overlap(vocabulary):
    first = _department("Zeta Works", ["Public Spaces"], priority=5)
    second = _department("Alpha Works", ["Public Spaces"], priority=50)
    router = CategoryRouter([second, first], vocabulary)
    assert router.route(["Public Spaces"]) is first


def test_name_breaks_priority_ties(vocabulary):
    beta = _department("Beta", ["Pollution"], priority=10)
    alpha = _department("Alpha", ["Pollution"], priority=10)
    router = CategoryRouter([beta, alpha], vocabulary)
    assert router.route(["Pollution"]) is alpha
    assert [d.name for d in router.departments] == ["Alpha", "Beta"]


def test_inactive_department_skipped_for_inference(vocabulary):
    closed = _department("Closed", ["Pollution"], priority=1, status="inactive")
    open_ = _department("Open", ["Pollution"], priority=2)
    router = CategoryRouter([closed, open_], vocabulary)
    assert router.route(["Pollution"]) is open_
    # an explicit assignment to an inactive department still holds
    assert router.route(["Pollution"], closed.id) is closed


def test_department_owned_set_is_canonicalized(vocabulary):
    dept = _department("Roads", ["Traffic & Roads (encroachments, potholes, heavy congestion)"])
    router = CategoryRouter([dept], vocabulary)
    assert router.route(["Potholes"]) is dept


def test_vocabulary_rejects_conflicting_alias():
    data = {
        "version": 1,
        "categories": [
            {"label": "A", "aliases": ["shared"]},
            {"label": "B", "aliases": ["Shared"]},
        ],
    }
    with pytest.raises(ValueError):
        CategoryVocabulary.from_dict(data)


def test_load_vocabulary_from_custom_file(tmp_path):
    path = tmp_path / "vocab.json"
    path.write_text(
        json.dumps({"version": 7, "categories": [{"label": "Streetlights", "aliases": ["Lamp out"]}]}),
        encoding="utf-8",
    )
    vocabulary = load_vocabulary(path)
    assert vocabulary.version == 7
    assert vocabulary.canonical("lamp   OUT") == "Streetlights"
    assert vocabulary.labels == ["Streetlights"]


def test_bundled_vocabulary_labels(vocabulary):
    assert vocabulary.version >= 1
    assert "Garbage & Waste" in vocabulary.labels
    assert vocabulary.is_known("Garbage and Waste")
    assert not vocabulary.is_known("Garbage")
