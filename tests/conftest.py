"""Test configuration and fixtures."""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Iterator, Mapping, Sequence
from typing import Any

import pytest

from swf_decider.decider.actions import FatalErrorAction
from swf_decider.decider.events import EventList, WorkflowExecution

WORKFLOW_START: dict[str, Any] = {
    "eventId": 1,
    "eventTimestamp": "2015-07-14T02:39:17.767Z",
    "eventType": "WorkflowExecutionStarted",
    "workflowExecutionStartedEventAttributes": {
        "childPolicy": "TERMINATE",
        "executionStartToCloseTimeout": "1800",
        "input": '{ "name": "wf input" }',
        "parentInitiatedEventId": 0,
        "taskList": {"name": "test-tasks"},
        "taskStartToCloseTimeout": "1800",
        "workflowType": {"name": "Test Workflow", "version": "0.1"},
    },
}


@pytest.fixture
def workflow_started() -> dict[str, Any]:
    """Provide a `WorkflowExecutionStarted` record with JSON input."""
    return copy.deepcopy(WORKFLOW_START)


@pytest.fixture
def execution() -> WorkflowExecution:
    """Provide the identity of the execution under test."""
    return WorkflowExecution(workflow_id="order-1234", run_id="run-1")


@pytest.fixture
def make_events(execution: WorkflowExecution) -> Callable[..., EventList]:
    """Provide a builder turning raw history records into an EventList."""

    def _make(records: Sequence[Mapping[str, Any]] = ()) -> EventList:
        return EventList.from_history(records, workflow_execution=execution)

    return _make


class RecordingObserver:
    """Observer that remembers every notification."""

    def __init__(self) -> None:
        self.failures: list[FatalErrorAction] = []
        self.errors: list[BaseException] = []
        self.breaks: list[str] = []

    def workflow_failed(self, action: FatalErrorAction, events: EventList) -> None:
        self.failures.append(action)

    def decision_error(self, error: BaseException, events: EventList | None) -> None:
        self.errors.append(error)

    def pipeline_broken(self, pipeline: object, signal: str) -> None:
        self.breaks.append(signal)


@pytest.fixture
def observer() -> RecordingObserver:
    return RecordingObserver()


@pytest.fixture
def restore_root_logging() -> Iterator[None]:
    """Undo `configure_logging` side effects on the root logger."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
