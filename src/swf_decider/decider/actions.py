"""Leaf decision values.

Each action carries exactly what the decider needs to render one protocol
decision. Actions are plain values: two actions with the same fields are equal,
which is what makes replayed decision batches comparable.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .events import Event


@dataclass(frozen=True, slots=True)
class ScheduleAction:
    """Schedule an activity task; `name` doubles as the activity id."""

    name: str
    input: Any = None
    version: str | None = None
    activity_type: str | None = None
    task_list: str | None = None
    schedule_to_start_timeout: int | str | None = None
    schedule_to_close_timeout: int | str | None = None
    start_to_close_timeout: int | str | None = None
    heartbeat_timeout: int | str | None = None


@dataclass(frozen=True, slots=True)
class TimerAction:
    name: str
    delay: int | float | str


@dataclass(frozen=True, slots=True)
class CancelTimerAction:
    timer_id: str

    @staticmethod
    def for_started(event: Event) -> CancelTimerAction:
        """Cancel the timer started by a `TimerStarted` event."""

        return CancelTimerAction(timer_id=str(event.attributes.get("timerId")))


@dataclass(frozen=True, slots=True)
class ScheduleLambdaAction:
    name: str
    function_name: str
    input: Any = None
    start_to_close_timeout: int | str | None = None


@dataclass(frozen=True, slots=True)
class ChildWorkflowAction:
    name: str
    workflow_type: str
    workflow_version: str | None = None
    input: Any = None
    workflow_id: str | None = None
    child_policy: str | None = None
    lambda_role: str | None = None
    tag_list: tuple[str, ...] | None = None
    task_list: str | None = None
    task_priority: str | None = None
    execution_start_to_close_timeout: int | str | None = None
    task_start_to_close_timeout: int | str | None = None


@dataclass(frozen=True, slots=True)
class RecordMarkerAction:
    name: str
    details: Any = None


@dataclass(frozen=True, slots=True)
class FatalErrorAction:
    """Fail the whole workflow execution."""

    reason: Any
    details: Any = None


@dataclass(frozen=True, slots=True)
class Noop:
    """Work is in flight; nothing to decide this cycle.

    Distinct from an empty result, which means "finished".
    """


Action = (
    ScheduleAction
    | TimerAction
    | CancelTimerAction
    | ScheduleLambdaAction
    | ChildWorkflowAction
    | RecordMarkerAction
    | FatalErrorAction
    | Noop
)

ACTION_TYPES: tuple[type, ...] = (
    ScheduleAction,
    TimerAction,
    CancelTimerAction,
    ScheduleLambdaAction,
    ChildWorkflowAction,
    RecordMarkerAction,
    FatalErrorAction,
    Noop,
)


def is_action(value: object) -> bool:
    return isinstance(value, ACTION_TYPES)
