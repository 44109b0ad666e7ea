from __future__ import annotations

import pytest

from ticket_dashboard.filters import FilterStateManager, compute_effective_state, toggle_selection
from ticket_dashboard.models import DrillDown, FilterQuery


def _manager(clock) -> tuple[FilterStateManager, list[FilterQuery]]:
    manager = FilterStateManager(debounce_seconds=0.3, clock=clock)
    updates: list[FilterQuery] = []
    manager.subscribe(updates.append)
    return manager, updates


def test_typing_within_debounce_window_yields_one_update(clock) -> None:
    manager, updates = _manager(clock)

    for text in ("a", "ab", "abc"):
        manager.set_search(text)
        clock.advance(0.1)
        assert manager.poll() is False

    assert manager.raw.search == "abc"
    assert manager.effective.search == ""
    assert manager.search_pending

    clock.advance(0.25)
    assert manager.poll() is True

    assert [update.search for update in updates] == ["abc"]
    assert manager.effective.search == "abc"
    assert not manager.search_pending


def test_search_reverted_before_deadline_cancels_update(clock) -> None:
    manager, updates = _manager(clock)

    manager.set_search("x")
    manager.set_search("")
    clock.advance(1)

    assert manager.poll() is False
    assert updates == []


def test_non_search_change_keeps_pending_search(clock) -> None:
    manager, updates = _manager(clock)

    manager.set_search("late")
    manager.toggle("status", "Open")

    assert updates[-1].status == ("Open",)
    assert updates[-1].search == ""
    assert manager.search_pending

    clock.advance(0.3)
    manager.poll()
    assert updates[-1] == FilterQuery(search="late", status=("Open",))


async def test_settle_waits_for_debounce() -> None:
    manager = FilterStateManager(debounce_seconds=0.01)

    manager.set_search("abc")

    assert await manager.settle() is True
    assert manager.effective.search == "abc"


def test_toggle_selection_is_pure_and_idempotent() -> None:
    current = ("Open",)

    toggled = toggle_selection(current, "Closed")

    assert toggled == ("Open", "Closed")
    assert current == ("Open",)
    assert toggle_selection(toggled, "Closed") == current


def test_select_all_is_one_transition(clock) -> None:
    manager, updates = _manager(clock)
    assignees = ["a1", "a2", "a3", "a4", "a5"]

    manager.toggle_all("assignee", assignees)
    assert len(updates) == 1
    assert manager.effective.assignee == tuple(assignees)

    manager.toggle_all("assignee", assignees)
    assert len(updates) == 2
    assert manager.effective.assignee == ()


def test_set_selection_dedupes_and_ignores_no_op(clock) -> None:
    manager, updates = _manager(clock)

    assert manager.set_selection("project", ["P1", "P1", "P2"]) is True
    assert manager.set_selection("project", ["P1", "P2"]) is False

    assert len(updates) == 1
    assert manager.effective.project == ("P1", "P2")
    with pytest.raises(KeyError):
        manager.set_selection("title", ["x"])


def test_sort_by_flips_order_for_same_field(clock) -> None:
    manager, _ = _manager(clock)

    manager.sort_by("created")
    assert (manager.effective.sort_field, manager.effective.sort_order) == ("created", "asc")

    manager.sort_by("priority")
    assert (manager.effective.sort_field, manager.effective.sort_order) == ("priority", "asc")

    manager.sort_by("priority")
    assert manager.effective.sort_order == "desc"


def test_clear_filters_applies_immediately(clock) -> None:
    manager, updates = _manager(clock)
    manager.toggle("status", "Open")
    manager.set_category("Escrow")
    manager.set_search("pending")

    manager.clear_filters()

    assert updates[-1] == FilterQuery()
    assert manager.raw == FilterQuery()
    assert not manager.search_pending
    assert manager.active_filter_count == 0


def test_active_filter_count(clock) -> None:
    manager, _ = _manager(clock)
    manager.set_selection("status", ["Open", "Closed"])
    manager.toggle("project", "P1")
    manager.set_category("Escrow")

    assert manager.active_filter_count == 4


def test_apply_group_values_is_one_update(clock) -> None:
    manager, updates = _manager(clock)
    manager.toggle("priority", "High")

    manager.apply_group_values({"project": "Servicing", "status": "Closed"})

    assert len(updates) == 2
    assert updates[-1].project == ("Servicing",)
    assert updates[-1].status == ("Closed",)
    assert updates[-1].priority == ("High",)
    assert manager.apply_group_values({}) is False


def test_apply_drill_down_replaces_filters(clock) -> None:
    manager, updates = _manager(clock)
    manager.toggle("status", "Open")

    assert manager.apply_drill_down(DrillDown(type="project", value="Servicing")) is True
    assert updates[-1] == FilterQuery(project=("Servicing",))

    manager.apply_drill_down(DrillDown(type="category", value="Escrow"))
    assert updates[-1] == FilterQuery(category="Escrow")

    manager.apply_drill_down(DrillDown(type="dateRange", value="2024-01", date_start="2024-01-01"))
    assert updates[-1] == FilterQuery(search="2024-01")


def test_apply_drill_down_ignores_unknown_type(clock, caplog) -> None:
    manager, updates = _manager(clock)

    assert manager.apply_drill_down(DrillDown(type="heatmap", value="Mon")) is False
    assert updates == []
    assert "unknown drill-down" in caplog.text


def test_unsubscribe_stops_notifications(clock) -> None:
    manager = FilterStateManager(clock=clock)
    updates: list[FilterQuery] = []
    unsubscribe = manager.subscribe(updates.append)

    unsubscribe()
    manager.toggle("status", "Open")

    assert updates == []


def test_compute_effective_state_holds_unsettled_search() -> None:
    raw = FilterQuery(search="new", status=("Open",))
    effective = FilterQuery(search="old")

    pending = compute_effective_state(raw, effective, search_settled=False)
    assert pending.query == FilterQuery(search="old", status=("Open",))
    assert pending.should_refetch is True

    settled = compute_effective_state(raw, effective, search_settled=True)
    assert settled.query == raw

    unchanged = compute_effective_state(effective, effective, search_settled=True)
    assert unchanged.should_refetch is False


def test_filter_query_params() -> None:
    query = FilterQuery(search="x", status=("Open", "Closed"), category="Escrow")

    assert query.to_params(2, 50) == {
        "page": "2",
        "limit": "50",
        "search": "x",
        "status": "Open,Closed",
        "project": "",
        "priority": "",
        "assignee": "",
        "category": "Escrow",
        "sortField": "created",
        "sortOrder": "desc",
    }
    with pytest.raises(ValueError):
        FilterQuery(sort_field="bogus")
