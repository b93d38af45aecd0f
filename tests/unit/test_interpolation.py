"""Unit tests for `$` reference resolution."""

from __future__ import annotations

import json

import pytest

from swf_decider.decider.events import EventList
from swf_decider.decider.interpolation import (
    InterpolationError,
    Reference,
    interpolate,
    parse_reference,
)


def _completed(activity_id: str, result: object) -> dict:
    return {
        "eventType": "ActivityTaskCompleted",
        "activityTaskCompletedEventAttributes": {"activityId": activity_id, "result": result},
    }


def test_parse_reference() -> None:
    assert parse_reference("plain") is None
    assert parse_reference("$Fetch") == Reference("Fetch")
    assert parse_reference("$Fetch.user.email") == Reference("Fetch", ("user", "email"))
    assert parse_reference("$$Workflow").is_workflow_input


def test_resolves_dotted_path_into_json_output() -> None:
    events = EventList.from_history(
        [_completed("FirstActivity", json.dumps({"foo": {"bar": {"baz": "boop"}}}))]
    )

    assert interpolate({"baz": "$FirstActivity.foo.bar.baz"}, events) == {"baz": "boop"}


def test_whole_output_when_no_path() -> None:
    events = EventList.from_history([_completed("FirstActivity", "boop")])

    assert interpolate({"baz": "$FirstActivity"}, events) == {"baz": "boop"}


def test_workflow_input(workflow_started: dict) -> None:
    events = EventList.from_history([workflow_started])

    assert interpolate("$$Workflow", events) == {"name": "wf input"}
    assert interpolate("$$Workflow.name", events) == "wf input"


def test_missing_task_resolves_to_none() -> None:
    assert interpolate("$NeverRan.value", EventList()) is None
    assert interpolate("$$Workflow", EventList()) is None


def test_missing_key_resolves_to_none() -> None:
    events = EventList.from_history([_completed("a", json.dumps({"x": 1}))])

    assert interpolate("$a.y.z", events) is None


def test_list_indices() -> None:
    events = EventList.from_history([_completed("a", json.dumps({"items": [{"id": 7}]}))])

    assert interpolate("$a.items.0.id", events) == 7
    assert interpolate("$a.items.3.id", events) is None


def test_path_into_plain_text_raises() -> None:
    events = EventList.from_history([_completed("a", "just text")])

    with pytest.raises(InterpolationError):
        interpolate("$a.field", events)


def test_non_reference_values_pass_through() -> None:
    events = EventList()

    assert interpolate("literal", events) == "literal"
    assert interpolate(30, events) == 30
    assert interpolate(None, events) is None
    assert interpolate(["$a"], events) == ["$a"]
    assert interpolate({"nested": {"n": 1}}, events) == {"nested": {"n": 1}}
