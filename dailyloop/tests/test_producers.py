import pytest

from dailyloop.core.errors import ValidationError
from dailyloop.features.progress.producers import (
    pomodoro_session_completed,
    report_gratitude_entries,
    report_journal_entries,
    report_pomodoro_session,
    report_todo_list,
    todo_list_completed,
)


def test_todo_policy():
    assert todo_list_completed([]) is False
    assert todo_list_completed([True, False]) is False
    assert todo_list_completed([True, True]) is True


@pytest.mark.parametrize(
    "preset, cycles, expected",
    [
        ("beginner", 7, False),
        ("beginner", 8, True),
        ("intermediate", 4, True),
        ("flow_state", 1, False),
        ("flow_state", 3, True),
    ],
)
def test_pomodoro_policy(preset, cycles, expected):
    assert pomodoro_session_completed(preset, cycles) is expected


def test_pomodoro_rejects_unknown_preset_and_negative_cycles():
    with pytest.raises(ValidationError):
        pomodoro_session_completed("marathon", 3)
    with pytest.raises(ValidationError):
        pomodoro_session_completed("beginner", -1)


def test_entry_producers_follow_entry_count(service):
    report_gratitude_entries("p1", 2, service=service)
    state = report_journal_entries("p1", 1, service=service)
    assert state.completed_tasks["gratitude"] is True
    assert state.completed_tasks["journal"] is True

    # last journal entry of the day deleted
    state = report_journal_entries("p1", 0, service=service)
    assert state.completed_tasks["journal"] is False


def test_todo_producer_recomputes_after_each_mutation(service):
    state = report_todo_list("p2", [False, True], service=service)
    assert state.completed_tasks["todo"] is False

    state = report_todo_list("p2", [True, True], service=service)
    assert state.completed_tasks["todo"] is True

    state = report_todo_list("p2", [True, True, False], service=service)
    assert state.completed_tasks["todo"] is False


def test_partial_pomodoro_reports_nothing(service, store):
    assert report_pomodoro_session("p3", "intermediate", 2, service=service) is None
    assert store.load("p3") is None

    state = report_pomodoro_session("p3", "intermediate", 4, service=service)
    assert state.completed_tasks["pomodoro"] is True


def test_all_producers_together_award_streak(service):
    report_gratitude_entries("p4", 1, service=service)
    report_journal_entries("p4", 1, service=service)
    report_pomodoro_session("p4", "flow_state", 2, service=service)
    state = report_todo_list("p4", [True], service=service)

    assert state.all_tasks_completed is True
    assert state.streak == 1
