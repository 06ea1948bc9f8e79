"""Tests for the derived dashboard values."""

# purpose: check filtering, critical counts, suggestions and the alert banner
# status: pilot

from __future__ import annotations

import pytest

from auradash.collection_sync import build_mirror
from auradash.data.loaders import get_seed_inspections
from auradash.derived import (
    DashboardViewModel,
    alert_banner,
    compute_view,
    critical_count,
    filter_inspections,
    suggest_tokens,
)
from auradash.schemas import CollectionMirror, InspectionRecord
from auradash.tests.conftest import next_value, settle


@pytest.fixture
def seeded_mirror():
    return CollectionMirror(get_seed_inspections())


def _critical(doc_id: str, critical: bool = True) -> InspectionRecord:
    return InspectionRecord(
        id=doc_id,
        title=f"Panel {doc_id}",
        category="Electrical",
        location="Block A",
        status="Flagged",
        timestamp_label="now",
        critical=critical,
    )


def test_empty_term_returns_everything(seeded_mirror):
    assert filter_inspections(seeded_mirror, "") == seeded_mirror.records()


@pytest.mark.parametrize("term", ["net", "NET", "floor", "zone", "hvac", "xyz"])
def test_filter_is_case_insensitive_subset(seeded_mirror, term):
    result = filter_inspections(seeded_mirror, term)
    needle = term.lower()
    assert all(record.id in seeded_mirror for record in result)
    for record in seeded_mirror.records():
        matches = any(needle in field.lower() for field in (record.title, record.location, record.category))
        assert (record in result) is matches


def test_filter_preserves_mirror_order(seeded_mirror):
    result = filter_inspections(seeded_mirror, "a")
    order = list(seeded_mirror)
    assert [record.id for record in result] == sorted((record.id for record in result), key=order.index)


def test_network_search_matches_single_record(seeded_mirror):
    view = compute_view(seeded_mirror, "net")
    assert view.total == 1
    assert view.suggestions == ["Network"]


def test_critical_count_ignores_search_term(seeded_mirror):
    assert critical_count(seeded_mirror) == 1
    assert compute_view(seeded_mirror, "zzz").critical_count == 1


def test_critical_count_on_empty_mirror():
    assert critical_count(CollectionMirror()) == 0
    assert compute_view(CollectionMirror()).alert is None


def test_short_terms_have_no_suggestions(seeded_mirror):
    assert suggest_tokens(seeded_mirror, "") == []
    assert suggest_tokens(seeded_mirror, "fi") == []


def test_suggestions_are_capped_and_deduplicated():
    mirror = CollectionMirror(
        [
            _critical("1").model_copy(update={"title": "Pump Pumphouse", "category": "Pumping"}),
            _critical("2").model_copy(update={"title": "Pump Pumpkin", "category": "Pump"}),
        ]
    )
    assert suggest_tokens(mirror, "pum") == ["Pump", "Pumphouse", "Pumping"]


def test_suggestions_are_case_insensitive_prefixes(seeded_mirror):
    for token in suggest_tokens(seeded_mirror, "HVA"):
        assert token.lower().startswith("hva")


@pytest.mark.parametrize(
    ("count", "banner"),
    [
        (0, None),
        (1, "1 CRITICAL ISSUE REQUIRES ATTENTION"),
        (4, "4 CRITICAL ISSUES REQUIRE ATTENTION"),
    ],
)
def test_alert_banner(count, banner):
    assert alert_banner(count) == banner


def test_view_model_choose_suggestion_applies_search(seeded_mirror):
    model = DashboardViewModel(seeded_mirror)
    view = model.choose_suggestion("Network")
    assert model.search_term == "Network"
    assert view.total == 1
    assert model.view is view


@pytest.mark.asyncio
async def test_critical_transition_publishes_no_intermediate_values():
    model = DashboardViewModel()
    watch = model.watch()
    initial = await next_value(watch)
    assert initial.total == 0

    model.apply_mirror(CollectionMirror([_critical(str(i)) for i in range(4)]))
    model.apply_mirror(CollectionMirror([_critical(str(i), critical=False) for i in range(4)]))

    four = await next_value(watch)
    zero = await next_value(watch)
    assert (four.critical_count, four.alert) == (4, "4 CRITICAL ISSUES REQUIRE ATTENTION")
    assert (zero.critical_count, zero.alert) == (0, None)
    assert zero.total == 4

    await settle()
    model.close()
    with pytest.raises(LookupError):
        await next_value(watch)


def test_view_built_from_raw_snapshot():
    snapshot = [record.to_wire() for record in get_seed_inspections()]
    view = compute_view(build_mirror(snapshot), "server")
    assert [record.id for record in view.inspections] == [
        record.id for record in get_seed_inspections() if "server" in record.title.lower()
        or "server" in record.location.lower()
        or "server" in record.category.lower()
    ]
