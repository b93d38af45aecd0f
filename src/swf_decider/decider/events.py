"""Typed, queryable view over a workflow execution's history.

The orchestration service delivers history as a list of JSON records. Each
record is normalised into an `Event` carrying a logical task name, so the rest
of the decider can ask "what happened to task X" without knowing which
attribute holds the name for each event type.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, overload

BACKOFF_SUFFIX = "__backoff"


class UnknownEventTypeError(ValueError):
    """Raised when history contains an event type the decider cannot classify."""


class EventType(str, Enum):
    WORKFLOW_EXECUTION_STARTED = "WorkflowExecutionStarted"
    WORKFLOW_EXECUTION_SIGNALED = "WorkflowExecutionSignaled"
    WORKFLOW_EXECUTION_CANCEL_REQUESTED = "WorkflowExecutionCancelRequested"
    WORKFLOW_EXECUTION_COMPLETED = "WorkflowExecutionCompleted"
    WORKFLOW_EXECUTION_FAILED = "WorkflowExecutionFailed"
    WORKFLOW_EXECUTION_TIMED_OUT = "WorkflowExecutionTimedOut"
    WORKFLOW_EXECUTION_CANCELED = "WorkflowExecutionCanceled"
    WORKFLOW_EXECUTION_TERMINATED = "WorkflowExecutionTerminated"
    WORKFLOW_EXECUTION_CONTINUED_AS_NEW = "WorkflowExecutionContinuedAsNew"
    COMPLETE_WORKFLOW_EXECUTION_FAILED = "CompleteWorkflowExecutionFailed"
    FAIL_WORKFLOW_EXECUTION_FAILED = "FailWorkflowExecutionFailed"
    CANCEL_WORKFLOW_EXECUTION_FAILED = "CancelWorkflowExecutionFailed"
    CONTINUE_AS_NEW_WORKFLOW_EXECUTION_FAILED = "ContinueAsNewWorkflowExecutionFailed"

    DECISION_TASK_SCHEDULED = "DecisionTaskScheduled"
    DECISION_TASK_STARTED = "DecisionTaskStarted"
    DECISION_TASK_COMPLETED = "DecisionTaskCompleted"
    DECISION_TASK_TIMED_OUT = "DecisionTaskTimedOut"

    ACTIVITY_TASK_SCHEDULED = "ActivityTaskScheduled"
    SCHEDULE_ACTIVITY_TASK_FAILED = "ScheduleActivityTaskFailed"
    ACTIVITY_TASK_STARTED = "ActivityTaskStarted"
    ACTIVITY_TASK_COMPLETED = "ActivityTaskCompleted"
    ACTIVITY_TASK_FAILED = "ActivityTaskFailed"
    ACTIVITY_TASK_TIMED_OUT = "ActivityTaskTimedOut"
    ACTIVITY_TASK_CANCELED = "ActivityTaskCanceled"
    ACTIVITY_TASK_CANCEL_REQUESTED = "ActivityTaskCancelRequested"
    REQUEST_CANCEL_ACTIVITY_TASK_FAILED = "RequestCancelActivityTaskFailed"

    LAMBDA_FUNCTION_SCHEDULED = "LambdaFunctionScheduled"
    SCHEDULE_LAMBDA_FUNCTION_FAILED = "ScheduleLambdaFunctionFailed"
    START_LAMBDA_FUNCTION_FAILED = "StartLambdaFunctionFailed"
    LAMBDA_FUNCTION_STARTED = "LambdaFunctionStarted"
    LAMBDA_FUNCTION_COMPLETED = "LambdaFunctionCompleted"
    LAMBDA_FUNCTION_FAILED = "LambdaFunctionFailed"
    LAMBDA_FUNCTION_TIMED_OUT = "LambdaFunctionTimedOut"

    TIMER_STARTED = "TimerStarted"
    START_TIMER_FAILED = "StartTimerFailed"
    TIMER_FIRED = "TimerFired"
    TIMER_CANCELED = "TimerCanceled"
    CANCEL_TIMER_FAILED = "CancelTimerFailed"

    MARKER_RECORDED = "MarkerRecorded"
    RECORD_MARKER_FAILED = "RecordMarkerFailed"

    START_CHILD_WORKFLOW_EXECUTION_INITIATED = "StartChildWorkflowExecutionInitiated"
    START_CHILD_WORKFLOW_EXECUTION_FAILED = "StartChildWorkflowExecutionFailed"
    CHILD_WORKFLOW_EXECUTION_STARTED = "ChildWorkflowExecutionStarted"
    CHILD_WORKFLOW_EXECUTION_COMPLETED = "ChildWorkflowExecutionCompleted"
    CHILD_WORKFLOW_EXECUTION_FAILED = "ChildWorkflowExecutionFailed"
    CHILD_WORKFLOW_EXECUTION_TIMED_OUT = "ChildWorkflowExecutionTimedOut"
    CHILD_WORKFLOW_EXECUTION_CANCELED = "ChildWorkflowExecutionCanceled"
    CHILD_WORKFLOW_EXECUTION_TERMINATED = "ChildWorkflowExecutionTerminated"

    SIGNAL_EXTERNAL_WORKFLOW_EXECUTION_INITIATED = "SignalExternalWorkflowExecutionInitiated"
    SIGNAL_EXTERNAL_WORKFLOW_EXECUTION_FAILED = "SignalExternalWorkflowExecutionFailed"
    EXTERNAL_WORKFLOW_EXECUTION_SIGNALED = "ExternalWorkflowExecutionSignaled"
    REQUEST_CANCEL_EXTERNAL_WORKFLOW_EXECUTION_INITIATED = (
        "RequestCancelExternalWorkflowExecutionInitiated"
    )
    REQUEST_CANCEL_EXTERNAL_WORKFLOW_EXECUTION_FAILED = (
        "RequestCancelExternalWorkflowExecutionFailed"
    )
    EXTERNAL_WORKFLOW_EXECUTION_CANCEL_REQUESTED = "ExternalWorkflowExecutionCancelRequested"

    @property
    def attributes_key(self) -> str:
        """Name of the attribute block in the raw record, e.g. `timerFiredEventAttributes`."""

        return self.value[0].lower() + self.value[1:] + "EventAttributes"


class Phase(str, Enum):
    """Lifecycle phase of an event relative to the unit of work it names."""

    SCHEDULED = "scheduled"
    STARTED = "started"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELED = "canceled"
    FATAL = "fatal"
    SIGNALED = "signaled"
    INFO = "info"


@dataclass(frozen=True, slots=True)
class _Rule:
    phase: Phase
    name_key: str | None = None
    # Attribute holding the id of an earlier event whose name this event inherits.
    link_key: str | None = None
    output_key: str | None = None


_RULES: dict[EventType, _Rule] = {
    EventType.ACTIVITY_TASK_SCHEDULED: _Rule(Phase.SCHEDULED, "activityId", None, "input"),
    EventType.SCHEDULE_ACTIVITY_TASK_FAILED: _Rule(Phase.FATAL, "activityId"),
    EventType.ACTIVITY_TASK_STARTED: _Rule(Phase.STARTED, "activityId", "scheduledEventId"),
    EventType.ACTIVITY_TASK_COMPLETED: _Rule(
        Phase.COMPLETED, "activityId", "scheduledEventId", "result"
    ),
    EventType.ACTIVITY_TASK_FAILED: _Rule(
        Phase.FAILED, "activityId", "scheduledEventId", "details"
    ),
    EventType.ACTIVITY_TASK_TIMED_OUT: _Rule(
        Phase.TIMED_OUT, "activityId", "scheduledEventId", "details"
    ),
    EventType.ACTIVITY_TASK_CANCELED: _Rule(
        Phase.CANCELED, "activityId", "scheduledEventId", "details"
    ),
    EventType.LAMBDA_FUNCTION_SCHEDULED: _Rule(Phase.SCHEDULED, "id", None, "input"),
    EventType.SCHEDULE_LAMBDA_FUNCTION_FAILED: _Rule(Phase.FATAL, "id"),
    EventType.START_LAMBDA_FUNCTION_FAILED: _Rule(Phase.FATAL, None, "scheduledEventId"),
    EventType.LAMBDA_FUNCTION_STARTED: _Rule(Phase.STARTED, "id", "scheduledEventId"),
    EventType.LAMBDA_FUNCTION_COMPLETED: _Rule(Phase.COMPLETED, "id", "scheduledEventId", "result"),
    EventType.LAMBDA_FUNCTION_FAILED: _Rule(Phase.FAILED, "id", "scheduledEventId", "details"),
    EventType.LAMBDA_FUNCTION_TIMED_OUT: _Rule(Phase.TIMED_OUT, "id", "scheduledEventId"),
    EventType.TIMER_STARTED: _Rule(Phase.STARTED, "control"),
    EventType.START_TIMER_FAILED: _Rule(Phase.FATAL, "control"),
    EventType.TIMER_FIRED: _Rule(Phase.COMPLETED, "control", "startedEventId"),
    EventType.TIMER_CANCELED: _Rule(Phase.CANCELED, "control", "startedEventId"),
    EventType.MARKER_RECORDED: _Rule(Phase.COMPLETED, "markerName", None, "details"),
    EventType.RECORD_MARKER_FAILED: _Rule(Phase.FATAL, "markerName"),
    EventType.START_CHILD_WORKFLOW_EXECUTION_INITIATED: _Rule(
        Phase.SCHEDULED, "control", None, "input"
    ),
    EventType.START_CHILD_WORKFLOW_EXECUTION_FAILED: _Rule(
        Phase.FATAL, "control", "initiatedEventId"
    ),
    EventType.CHILD_WORKFLOW_EXECUTION_STARTED: _Rule(Phase.STARTED, None, "initiatedEventId"),
    EventType.CHILD_WORKFLOW_EXECUTION_COMPLETED: _Rule(
        Phase.COMPLETED, None, "initiatedEventId", "result"
    ),
    EventType.CHILD_WORKFLOW_EXECUTION_FAILED: _Rule(
        Phase.FAILED, None, "initiatedEventId", "details"
    ),
    EventType.CHILD_WORKFLOW_EXECUTION_TIMED_OUT: _Rule(Phase.TIMED_OUT, None, "initiatedEventId"),
    EventType.CHILD_WORKFLOW_EXECUTION_CANCELED: _Rule(
        Phase.CANCELED, None, "initiatedEventId", "details"
    ),
    EventType.CHILD_WORKFLOW_EXECUTION_TERMINATED: _Rule(Phase.FAILED, None, "initiatedEventId"),
    EventType.WORKFLOW_EXECUTION_SIGNALED: _Rule(Phase.SIGNALED, "signalName", None, "input"),
    EventType.WORKFLOW_EXECUTION_STARTED: _Rule(Phase.INFO, None, None, "input"),
}

# Bookkeeping events never belong to a unit of work.
_INFO_RULE = _Rule(Phase.INFO)

_TIMER_TYPES = frozenset(
    {
        EventType.TIMER_STARTED,
        EventType.START_TIMER_FAILED,
        EventType.TIMER_FIRED,
        EventType.TIMER_CANCELED,
    }
)


def _rule_for(event_type: EventType) -> _Rule:
    return _RULES.get(event_type, _INFO_RULE)


def _parse_event_type(raw: object) -> EventType:
    try:
        return EventType(raw)
    except ValueError:
        raise UnknownEventTypeError(f"Unknown history event type: {raw!r}") from None


def _parse_timestamp(raw: object) -> datetime | None:
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return raw if raw.tzinfo is not None else raw.replace(tzinfo=UTC)
    if isinstance(raw, int | float):
        return datetime.fromtimestamp(raw, tz=UTC)
    if isinstance(raw, str):
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)
    raise ValueError(f"Unsupported event timestamp: {raw!r}")


def decode_payload(raw: object) -> object:
    """Best-effort JSON decode. Non-JSON text is returned unchanged."""

    if not isinstance(raw, str):
        return raw
    try:
        return json.loads(raw)
    except ValueError:
        return raw


@dataclass(frozen=True, slots=True)
class WorkflowExecution:
    workflow_id: str
    run_id: str

    def to_json(self) -> dict[str, object]:
        return {"workflowId": self.workflow_id, "runId": self.run_id}

    @staticmethod
    def from_json(obj: Mapping[str, object]) -> WorkflowExecution:
        return WorkflowExecution(
            workflow_id=str(obj.get("workflowId", "")),
            run_id=str(obj.get("runId", "")),
        )


@dataclass(frozen=True, slots=True)
class Event:
    """One history record."""

    event_id: int
    event_type: EventType
    timestamp: datetime | None
    name: str | None
    attributes: Mapping[str, Any] = field(default_factory=dict)

    @property
    def phase(self) -> Phase:
        return _rule_for(self.event_type).phase

    @property
    def output(self) -> object:
        key = _rule_for(self.event_type).output_key
        if key is None:
            return None
        return decode_payload(self.attributes.get(key))

    def is_scheduled(self) -> bool:
        return self.phase is Phase.SCHEDULED

    def is_started(self) -> bool:
        return self.phase is Phase.STARTED

    def is_completed(self) -> bool:
        return self.phase is Phase.COMPLETED

    def is_canceled(self) -> bool:
        return self.phase is Phase.CANCELED

    def is_failure(self) -> bool:
        return self.phase is Phase.FAILED

    def is_timeout(self) -> bool:
        return self.phase is Phase.TIMED_OUT

    def is_fatal(self) -> bool:
        return self.phase is Phase.FATAL

    def is_signal(self) -> bool:
        return self.phase is Phase.SIGNALED

    def is_lifecycle(self) -> bool:
        return self.phase not in (Phase.INFO, Phase.SIGNALED)

    def is_backoff(self) -> bool:
        return (
            self.event_type in _TIMER_TYPES
            and self.name is not None
            and self.name.endswith(BACKOFF_SUFFIX)
        )

    def happened_after(self, other: Event) -> bool:
        """Compare by timestamp; event ids break the tie when either timestamp is missing."""

        if self.timestamp is not None and other.timestamp is not None:
            return self.timestamp > other.timestamp
        return self.event_id > other.event_id

    def bind(self, history: EventList) -> BoundEvent:
        return BoundEvent(
            event_id=self.event_id,
            event_type=self.event_type,
            timestamp=self.timestamp,
            name=self.name,
            attributes=self.attributes,
            history=history,
        )


@dataclass(frozen=True, slots=True)
class BoundEvent(Event):
    """An event handed to a phase handler, able to resolve `$` references."""

    history: EventList | None = field(default=None, compare=False, repr=False)

    def parse_property(self, text: object) -> object:
        from .interpolation import interpolate

        return interpolate(text, self.history if self.history is not None else EventList())


class EventList(Sequence[Event]):
    """Ordered, immutable sequence of events for one workflow execution.

    Order equals event id order equals causal order. Sub-views keep the
    execution identity so that they can still be used for interpolation.
    """

    __slots__ = ("_events", "_workflow_execution")

    def __init__(
        self,
        events: Iterable[Event] = (),
        workflow_execution: WorkflowExecution | None = None,
    ) -> None:
        self._events: tuple[Event, ...] = tuple(events)
        self._workflow_execution = workflow_execution

    @classmethod
    def from_history(
        cls,
        records: Iterable[Mapping[str, Any]],
        workflow_execution: WorkflowExecution | Mapping[str, object] | None = None,
    ) -> EventList:
        """Build an EventList from raw service history records."""

        if isinstance(workflow_execution, Mapping):
            workflow_execution = WorkflowExecution.from_json(workflow_execution)

        events: list[Event] = []
        names_by_id: dict[int, str | None] = {}
        for position, record in enumerate(records, start=1):
            event_type = _parse_event_type(record.get("eventType"))
            rule = _rule_for(event_type)
            attributes = record.get(event_type.attributes_key) or {}
            event_id = int(record.get("eventId") or position)

            name: str | None = None
            if rule.name_key is not None and attributes.get(rule.name_key) is not None:
                name = str(attributes[rule.name_key])
            elif rule.link_key is not None and attributes.get(rule.link_key) is not None:
                name = names_by_id.get(int(attributes[rule.link_key]))

            names_by_id[event_id] = name
            events.append(
                Event(
                    event_id=event_id,
                    event_type=event_type,
                    timestamp=_parse_timestamp(record.get("eventTimestamp")),
                    name=name,
                    attributes=attributes,
                )
            )
        return cls(events, workflow_execution=workflow_execution)

    @property
    def workflow_execution(self) -> WorkflowExecution | None:
        return self._workflow_execution

    @overload
    def __getitem__(self, index: int) -> Event: ...

    @overload
    def __getitem__(self, index: slice) -> EventList: ...

    def __getitem__(self, index: int | slice) -> Event | EventList:
        if isinstance(index, slice):
            return self._derive(self._events[index])
        return self._events[index]

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[Event]:
        return iter(self._events)

    def __repr__(self) -> str:
        return f"EventList({len(self._events)} events, execution={self._workflow_execution!r})"

    def _derive(self, events: Iterable[Event]) -> EventList:
        return EventList(events, workflow_execution=self._workflow_execution)

    def empty(self) -> EventList:
        """An empty list for the same execution."""

        return self._derive(())

    def for_task(self, name: str) -> EventList:
        return self._derive(e for e in self._events if e.name == name)

    def of_type(self, event_type: EventType) -> EventList:
        return self._derive(e for e in self._events if e.event_type is event_type)

    def after(self, event_id: int) -> EventList:
        return self._derive(e for e in self._events if e.event_id > event_id)

    def most_recent(self, name: str, phase: Phase | None = None) -> Event | None:
        for event in reversed(self._events):
            if event.name == name and (phase is None or event.phase is phase):
                return event
        return None

    def workflow_started(self) -> Event | None:
        for event in self._events:
            if event.event_type is EventType.WORKFLOW_EXECUTION_STARTED:
                return event
        return None

    def total_failures_or_timeouts(self) -> int:
        return sum(1 for e in self._events if e.is_failure() or e.is_timeout())
