"""Unit tests for Series, Parallel and Continuous pipelines."""

from __future__ import annotations

from swf_decider.decider import actions
from swf_decider.decider.events import EventList
from swf_decider.decider.pipeline import BREAK, Continuous, Parallel, Series
from swf_decider.decider.task import Task


def _timer_started(name: str, event_id: int) -> dict:
    return {
        "eventId": event_id,
        "eventType": "TimerStarted",
        "timerStartedEventAttributes": {"control": name, "timerId": f"id-{event_id}"},
    }


def _timer_fired(name: str, event_id: int) -> dict:
    return {
        "eventId": event_id,
        "eventType": "TimerFired",
        "timerFiredEventAttributes": {"control": name},
    }


def _signal(name: str, event_id: int) -> dict:
    return {
        "eventId": event_id,
        "eventType": "WorkflowExecutionSignaled",
        "workflowExecutionSignaledEventAttributes": {"signalName": name},
    }


def _timer(name: str, delay: int = 10) -> Task:
    return Task(name=name, kind="timer", delay=delay)


def test_series_schedules_first_child() -> None:
    pipe = Series([_timer("a"), _timer("b")])

    assert pipe.get_next_actions(EventList()) == [actions.TimerAction("a", 10)]


def test_series_waits_for_in_flight_child() -> None:
    pipe = Series([_timer("a"), _timer("b")])
    events = EventList.from_history([_timer_started("a", 1)])

    assert pipe.get_next_actions(events) == [actions.Noop()]


def test_series_moves_on_after_completion() -> None:
    pipe = Series([_timer("a"), _timer("b", 5)])
    events = EventList.from_history([_timer_started("a", 1), _timer_fired("a", 2)])

    assert pipe.get_next_actions(events) == [actions.TimerAction("b", 5)]


def test_series_uses_completion_as_lower_bound_for_next_child() -> None:
    # The same timer name appears twice; the second occurrence must not see
    # the first one's events.
    pipe = Series([_timer("poll"), _timer("pause"), _timer("poll")])
    events = EventList.from_history(
        [
            _timer_started("poll", 1),
            _timer_fired("poll", 2),
            _timer_started("pause", 3),
            _timer_fired("pause", 4),
        ]
    )

    assert pipe.get_next_actions(events) == [actions.TimerAction("poll", 10)]


def test_finished_series_is_empty_and_tagged() -> None:
    pipe = Series([_timer("a"), _timer("b")])
    events = EventList.from_history(
        [
            _timer_started("a", 1),
            _timer_fired("a", 2),
            _timer_started("b", 3),
            _timer_fired("b", 4),
        ]
    )

    result = pipe.get_next_actions(events)

    assert result == []
    assert result.last_event_id == 4


def test_nested_pipelines_expand_to_leaf_actions() -> None:
    pipe = Series([Series([_timer("a")]), Parallel([_timer("b"), _timer("c")])])
    events = EventList.from_history([_timer_started("a", 1), _timer_fired("a", 2)])

    assert pipe.get_next_actions(events) == [
        actions.TimerAction("b", 10),
        actions.TimerAction("c", 10),
    ]


def test_raw_actions_are_children_too() -> None:
    marker = actions.RecordMarkerAction("done", {"ok": True})
    pipe = Series([marker])

    assert pipe.get_next_actions(EventList()) == [marker]


def test_parallel_runs_every_child() -> None:
    pipe = Parallel([_timer("a"), _timer("b")])
    events = EventList.from_history([_timer_started("a", 1), _timer_fired("a", 2)])

    assert pipe.get_next_actions(events) == [actions.TimerAction("b", 10)]


def test_parallel_in_flight_child_keeps_it_open() -> None:
    pipe = Parallel([_timer("a"), _timer("b")])
    events = EventList.from_history(
        [_timer_started("a", 1), _timer_started("b", 2), _timer_fired("b", 3)]
    )

    assert pipe.get_next_actions(events) == [actions.Noop()]


def test_finished_parallel_is_tagged_with_latest_completion() -> None:
    pipe = Series([Parallel([_timer("a"), _timer("b")]), _timer("a")])
    events = EventList.from_history(
        [
            _timer_started("a", 1),
            _timer_started("b", 2),
            _timer_fired("b", 3),
            _timer_fired("a", 4),
        ]
    )

    assert Parallel([_timer("a"), _timer("b")]).get_next_actions(events).last_event_id == 4
    assert pipe.get_next_actions(events) == [actions.TimerAction("a", 10)]


def test_signal_subscriber_ignored_until_signal_fires() -> None:
    pipe = Series([_timer("main")]).on_signal("refresh", _timer("on-refresh", 1))

    assert pipe.get_next_actions(EventList()) == [actions.TimerAction("main", 10)]


def test_signal_subscriber_runs_before_children() -> None:
    pipe = Series([_timer("main")]).on_signal("refresh", _timer("on-refresh", 1))
    events = EventList.from_history([_signal("refresh", 1)])

    assert pipe.get_next_actions(events) == [actions.TimerAction("on-refresh", 1)]


def test_finished_subscriber_lets_children_continue() -> None:
    pipe = Series([_timer("main")]).on_signal("refresh", _timer("on-refresh", 1))
    events = EventList.from_history(
        [_signal("refresh", 1), _timer_started("on-refresh", 2), _timer_fired("on-refresh", 3)]
    )

    assert pipe.get_next_actions(events) == [actions.TimerAction("main", 10)]


def test_signal_fired_again_restarts_subscriber() -> None:
    pipe = Series([_timer("main")]).on_signal(["refresh", "reload"], _timer("on-refresh", 1))
    events = EventList.from_history(
        [
            _signal("refresh", 1),
            _timer_started("on-refresh", 2),
            _timer_fired("on-refresh", 3),
            _signal("reload", 4),
        ]
    )

    assert pipe.get_next_actions(events) == [actions.TimerAction("on-refresh", 1)]


def test_parallel_runs_subscribers_alongside_children() -> None:
    pipe = Parallel([_timer("main")]).on_signal("refresh", _timer("on-refresh", 1))
    events = EventList.from_history([_signal("refresh", 1)])

    assert pipe.get_next_actions(events) == [
        actions.TimerAction("on-refresh", 1),
        actions.TimerAction("main", 10),
    ]


def test_continuous_restarts_when_finished(execution) -> None:
    pipe = Continuous([_timer("tick"), _timer("tock")])
    events = EventList.from_history(
        [
            _timer_started("tick", 1),
            _timer_fired("tick", 2),
            _timer_started("tock", 3),
            _timer_fired("tock", 4),
        ],
        workflow_execution=execution,
    )

    assert pipe.get_next_actions(events) == [actions.TimerAction("tick", 10)]


def test_continuous_second_round_follows_the_series(execution) -> None:
    pipe = Continuous([_timer("tick"), _timer("tock")])
    events = EventList.from_history(
        [
            _timer_started("tick", 1),
            _timer_fired("tick", 2),
            _timer_started("tock", 3),
            _timer_fired("tock", 4),
            _timer_started("tick", 5),
            _timer_fired("tick", 6),
        ],
        workflow_execution=execution,
    )

    assert pipe.get_next_actions(events) == [actions.TimerAction("tock", 10)]


def test_continuous_stops_on_break(observer) -> None:
    pipe = Continuous([_timer("tick")], observer=observer).on_signal("stop", BREAK)
    events = EventList.from_history([_timer_started("tick", 1), _signal("stop", 2)])

    assert pipe.get_next_actions(events) == []
    assert observer.breaks == ["stop"]


def test_break_is_ignored_by_plain_series() -> None:
    pipe = Series([_timer("tick")]).on_signal("stop", BREAK)
    events = EventList.from_history([_signal("stop", 1)])

    assert pipe.get_next_actions(events) == [actions.TimerAction("tick", 10)]


def test_first_and_last_events_come_from_outer_children() -> None:
    pipe = Series([_timer("a"), _timer("b")])
    events = EventList.from_history(
        [
            _timer_started("a", 1),
            _timer_fired("a", 2),
            _timer_started("b", 3),
            _timer_fired("b", 4),
        ]
    )

    assert pipe.most_recent_first_event(events).event_id == 1
    assert pipe.most_recent_last_event(events).event_id == 4
    assert Series().most_recent_first_event(events) is None
