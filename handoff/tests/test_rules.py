"""
Derived-state rule tests - pure functions, no database
"""
import itertools
from datetime import date, datetime, timedelta

import pytest

from handoff.services import rules
from handoff.services.approvals import check_transition, is_terminal
from handoff.errors import ConflictError, ValidationError


def _steps(*statuses):
    return [{"id": f"s{i}", "status": status} for i, status in enumerate(statuses)]


def _versions(*numbers, latest=None):
    return [
        {"id": f"v{n}", "version_number": n, "is_latest": n == latest, "status": "pending"}
        for n in numbers
    ]


# ===================== AVAILABILITY =====================


def test_current_step_index():
    assert rules.current_step_index(_steps("completed", "current", "upcoming")) == 1
    assert rules.current_step_index(_steps("upcoming", "upcoming")) == -1
    assert rules.current_step_index([]) == -1


def test_current_step_index_prefers_explicit_id():
    steps = _steps("completed", "current", "upcoming")
    assert rules.current_step_index(steps, current_step_id="s2") == 2


def test_available_steps_up_to_current():
    steps = _steps("completed", "completed", "current", "upcoming", "upcoming")
    assert rules.available_step_ids(steps) == ["s0", "s1", "s2"]


def test_completed_step_after_current_is_available():
    steps = _steps("completed", "current", "upcoming", "completed")
    assert rules.available_step_ids(steps) == ["s0", "s1", "s3"]
    assert rules.is_step_available(steps, steps[3])
    assert not rules.is_step_available(steps, steps[2])


def test_no_current_step_only_completed_available():
    steps = _steps("completed", "upcoming", "upcoming")
    assert rules.available_step_ids(steps) == ["s0"]


@pytest.mark.parametrize("size", [1, 2, 3, 4])
def test_availability_property(size):
    """available(i) holds exactly when i <= current index or status is completed"""
    for statuses in itertools.product(["upcoming", "current", "completed"], repeat=size):
        steps = _steps(*statuses)
        current = statuses.index("current") if "current" in statuses else -1
        for i, step in enumerate(steps):
            expected = i <= current or statuses[i] == "completed"
            assert rules.is_step_available(steps, step) == expected, statuses


def test_project_progress():
    assert rules.project_progress([]) == 0
    assert rules.project_progress(_steps("completed", "current", "upcoming")) == 33
    assert rules.project_progress(_steps("completed", "completed", "upcoming")) == 67
    assert rules.project_progress(_steps("completed", "completed")) == 100


# ===================== VERSIONS =====================


def test_sort_versions_chronological():
    versions = _versions(3, 1, 2)
    assert [v["version_number"] for v in rules.sort_versions(versions)] == [1, 2, 3]
    assert [v["version_number"] for v in rules.versions_newest_first(versions)] == [3, 2, 1]


def test_latest_label_follows_flag_not_position():
    versions = _versions(1, 2, 3, latest=2)
    labels = {v["id"]: rules.latest_label(v) for v in versions}
    assert labels == {"v1": None, "v2": "Latest", "v3": None}


def test_version_options_newest_first():
    versions = [
        {"id": "a", "version_number": 1, "version_name": "First", "is_latest": False},
        {"id": "b", "version_number": 2, "version_name": "Second", "is_latest": True},
    ]
    options = rules.version_options(versions)
    assert [o.id for o in options] == ["b", "a"]
    assert options[0].label == "Latest"
    assert options[1].name == "First"


def test_navigator_defaults_to_latest_flag():
    nav = rules.VersionNavigator(_versions(1, 2, 3, latest=2))
    assert nav.current["id"] == "v2"


def test_navigator_defaults_to_highest_without_flag():
    nav = rules.VersionNavigator(_versions(2, 1, 3))
    assert nav.current["id"] == "v3"
    assert not nav.has_next
    assert nav.has_previous


def test_navigator_moves_and_stops_at_ends():
    nav = rules.VersionNavigator(_versions(1, 2, 3), current_id="v1")
    assert not nav.has_previous
    assert nav.previous() is None
    assert nav.current["id"] == "v1"

    assert nav.next() == "v2"
    assert nav.next() == "v3"
    assert nav.next() is None
    assert nav.current["id"] == "v3"

    assert nav.previous() == "v2"


def test_navigator_single_version():
    nav = rules.VersionNavigator(_versions(1))
    assert not nav.has_previous and not nav.has_next
    assert nav.next() is None and nav.previous() is None


def test_navigator_unknown_id():
    with pytest.raises(KeyError):
        rules.VersionNavigator(_versions(1, 2), current_id="missing")


@pytest.mark.parametrize("count", [1, 2, 3, 5])
def test_navigator_property(count):
    """From every position, previous/next land on the chronological neighbour or nowhere"""
    versions = _versions(*range(1, count + 1))
    ids = [v["id"] for v in versions]
    for index, version_id in enumerate(ids):
        nav = rules.VersionNavigator(versions, current_id=version_id)
        assert nav.previous() == (ids[index - 1] if index > 0 else None)
        nav.select(version_id)
        assert nav.next() == (ids[index + 1] if index < count - 1 else None)


# ===================== DEADLINES =====================

NOW = datetime(2025, 4, 10, 12, 0)


def test_deadline_overdue():
    status = rules.deadline_status(NOW - timedelta(days=2), now=NOW)
    assert status.kind == "overdue"
    assert status.label == "Overdue"


def test_deadline_overdue_by_one_day():
    status = rules.deadline_status(NOW - timedelta(days=1), now=NOW)
    assert status.kind == "overdue"
    assert status.days == -1


def test_deadline_due_soon_bands():
    assert rules.deadline_status(NOW, now=NOW).label == "Due soon (0 days)"
    assert rules.deadline_status(NOW + timedelta(hours=5), now=NOW).label == "Due soon (1 day)"
    assert rules.deadline_status(NOW + timedelta(days=2), now=NOW).label == "Due soon (2 days)"
    assert rules.deadline_status(NOW + timedelta(days=1), now=NOW).kind == "due_soon"


def test_deadline_upcoming():
    status = rules.deadline_status(NOW + timedelta(days=2, hours=1), now=NOW)
    assert status.kind == "upcoming"
    assert status.label == "Due in 3 days"
    assert status.days == 3


def test_deadline_accepts_dates_and_strings():
    # A date counts from midnight
    assert rules.deadline_status(date(2025, 4, 10), now=NOW).kind == "due_soon"
    assert rules.deadline_status(date(2025, 4, 9), now=NOW).kind == "overdue"
    assert rules.deadline_status("2025-04-20T12:00:00Z", now=NOW).label == "Due in 10 days"


def test_deadline_none():
    assert rules.deadline_status(None, now=NOW) is None


def test_days_left_never_negative():
    assert rules.days_left(date(2025, 4, 1), now=NOW) == 0
    assert rules.days_left(date(2025, 4, 15), now=NOW) == 5
    assert rules.days_left(None, now=NOW) == 0


# ===================== COMMENTS =====================

COMMENTS = [
    {"id": "c3", "milestone_id": "m1", "created_at": "2025-04-03T10:00:00Z"},
    {"id": "c1", "milestone_id": "m1", "created_at": datetime(2025, 4, 1, 10, 0)},
    {"id": "c2", "milestone_id": "m2", "created_at": "2025-04-02T10:00:00"},
]


def test_filter_comments_milestone():
    result = rules.filter_comments(COMMENTS, scope="milestone", milestone_id="m1")
    assert [c["id"] for c in result] == ["c1", "c3"]


def test_filter_comments_all_sorted():
    result = rules.filter_comments(COMMENTS, scope="all")
    assert [c["id"] for c in result] == ["c1", "c2", "c3"]


def test_filter_comments_unknown_milestone():
    assert rules.filter_comments(COMMENTS, scope="milestone", milestone_id="m9") == []


def test_filter_comments_bad_scope():
    with pytest.raises(ValueError):
        rules.filter_comments(COMMENTS, scope="recent")


# ===================== APPROVAL =====================


def test_can_approve_only_pending():
    assert rules.can_approve({"status": "pending"})
    assert rules.can_reject({"status": "pending"})
    for status in ("approved", "rejected"):
        assert not rules.can_approve({"status": status})
        assert not rules.can_reject({"status": status})


def test_transitions():
    assert check_transition("pending", "approved") == "approved"
    assert check_transition("pending", "rejected") == "rejected"
    assert is_terminal("approved") and is_terminal("rejected")
    assert not is_terminal("pending")


def test_terminal_states_refuse_transitions():
    with pytest.raises(ConflictError):
        check_transition("rejected", "pending")
    with pytest.raises(ConflictError):
        check_transition("approved", "rejected")
    with pytest.raises(ValidationError):
        check_transition("pending", "archived")
