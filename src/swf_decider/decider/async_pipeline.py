"""Simulate a long-running activity that runs outside the service's workers.

A short-lived dispatcher lambda (`<name>__lambda`) starts the real work and
returns immediately. The real work reports back only through signals sent to
this workflow execution:

* `<name>__started`: the work began running
* `<name>__completed`: the work finished; the signal input is the result
* `<name>__failed`: the work failed; the signal input describes the failure

The pipeline's progress is stored in a marker named after the pipeline::

    Not Started -> Initiated -> Scheduled -> Started -> Completed | Failed | Timed Out

Two timers bound the wait. `<name>__scheduleToStartTimeout` starts when the
dispatcher completes and is canceled by the started signal;
`<name>__startToCloseTimeout` starts with the started signal and is canceled
by the completed/failed signal. A timer is always resolved, by firing or by
cancellation, so it doubles as the join point that lets the Series continue.

Signals may land before the dispatcher's completion event. The marker written
by the signal handler wins; the later completion event then finds the marker
past `Initiated` and does not start the schedule-to-start timer.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import replace
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from . import actions
from .events import BoundEvent, Event, EventList, EventType, Phase, WorkflowExecution
from .pipeline import Series
from .retry import RetryStrategy
from .steps import ActionList
from .task import PhaseHandler, Task, TaskKind, Timeouts

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 300

SCHEDULE_TIMEOUT = "SCHEDULE_TIMEOUT"
STARTED_TIMEOUT = "STARTED_TIMEOUT"


class MissingExecutionError(RuntimeError):
    """Raised when the event list carries no workflow execution identity."""


class AsyncState(str, Enum):
    NOT_STARTED = "Not Started"
    INITIATED = "Initiated"
    SCHEDULED = "Scheduled"
    STARTED = "Started"
    TIMED_OUT = "Timed Out"
    COMPLETED = "Completed"
    FAILED = "Failed"


# Marker states are compared as raw text.
FINISHED_STATES = frozenset(
    s.value for s in (AsyncState.TIMED_OUT, AsyncState.COMPLETED, AsyncState.FAILED)
)
FAILED_STATES = frozenset(s.value for s in (AsyncState.TIMED_OUT, AsyncState.FAILED))


class AsyncMarker(BaseModel):
    """Wire format of the pipeline's state marker."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    # Kept as raw text: markers written by other versions may carry states
    # this module does not know, and those must not be mistaken for known ones.
    state: str = AsyncState.NOT_STARTED.value
    result: Any = None
    message: Any = None
    details: Any = None
    reason: Any = None
    cause: Any = None
    timeout_type: Any = Field(default=None, alias="timeoutType")
    all_: Any = Field(default=None, alias="all")

    @property
    def is_finished(self) -> bool:
        return self.state in FINISHED_STATES

    @property
    def is_failed(self) -> bool:
        return self.state in FAILED_STATES

    @property
    def is_completed(self) -> bool:
        return self.state == AsyncState.COMPLETED

    def failure_details(self) -> object:
        return self.reason or self.details or self.cause or self.timeout_type

    def to_details(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


def read_marker(marker_name: str, events: EventList) -> AsyncMarker:
    """The most recent marker state; `Not Started` when none was recorded."""

    recorded = events.for_task(marker_name).of_type(EventType.MARKER_RECORDED)
    if not len(recorded):
        return AsyncMarker()
    output = recorded[-1].output
    if not isinstance(output, Mapping):
        return AsyncMarker()
    return AsyncMarker.model_validate(dict(output))


def cancel_timer(timer_name: str, events: EventList) -> list[actions.CancelTimerAction]:
    """Cancel a timer only if it started and was neither fired nor canceled."""

    started = events.most_recent(timer_name, Phase.STARTED)
    if started is None:
        return []
    if events.most_recent(timer_name, Phase.COMPLETED) or events.most_recent(
        timer_name, Phase.CANCELED
    ):
        return []
    return [actions.CancelTimerAction.for_started(started)]


class _SignalHandler:
    """Subscriber reacting to one of the pipeline's signals.

    It has no activation or completion events of its own, so the pipeline
    consults it every cycle once its signal has fired; the marker state keeps
    it from acting twice.
    """

    def __init__(self, pipeline: AsyncPipeline) -> None:
        self._pipeline = pipeline

    def most_recent_first_event(self, events: EventList) -> Event | None:
        return None

    def most_recent_last_event(self, events: EventList) -> Event | None:
        return None

    def get_next_actions(self, events: EventList, after_event_id: int | None = None) -> ActionList:
        raise NotImplementedError


class _StartedHandler(_SignalHandler):
    def get_next_actions(self, events: EventList, after_event_id: int | None = None) -> ActionList:
        p = self._pipeline
        out = ActionList()

        # A finish signal always wins; otherwise a start-to-close timer would
        # be left running after the work already ended.
        if events.most_recent(p.completed_signal) or events.most_recent(p.failed_signal):
            return out

        marker = read_marker(p.name, events)
        if not marker.is_finished and marker.state != AsyncState.STARTED:
            # Record Started before canceling the timer, so the dispatcher's
            # completion handler no longer arms the schedule-to-start timer.
            out.append(p.marker(AsyncMarker(state=AsyncState.STARTED.value)))

        out.extend(cancel_timer(p.schedule_to_start_timer, events))

        if not marker.is_finished:
            out.append(p.start_to_close_task())
        return out


class _CompletedHandler(_SignalHandler):
    def get_next_actions(self, events: EventList, after_event_id: int | None = None) -> ActionList:
        p = self._pipeline
        out = ActionList()
        signal = events.most_recent(p.completed_signal)
        if signal is not None and not read_marker(p.name, events).is_finished:
            out.append(
                p.marker(AsyncMarker(state=AsyncState.COMPLETED.value, result=signal.output))
            )
        out.extend(p.cancel_timers(events))
        return out


class _FailedHandler(_SignalHandler):
    def get_next_actions(self, events: EventList, after_event_id: int | None = None) -> ActionList:
        p = self._pipeline
        out = ActionList()
        signal = events.most_recent(p.failed_signal)
        if signal is not None and not read_marker(p.name, events).is_finished:
            payload = signal.output if signal.output is not None else {}
            fields = payload if isinstance(payload, Mapping) else {}
            out.append(
                p.marker(
                    AsyncMarker(
                        state=AsyncState.FAILED.value,
                        result=fields.get("result"),
                        message=fields.get("message"),
                        details=fields.get("details"),
                        reason=fields.get("reason"),
                        cause=fields.get("cause"),
                        all_=payload,
                    )
                )
            )
        out.extend(p.cancel_timers(events))
        return out


class AsyncPipeline(Series):
    """A Series around the dispatcher lambda, plus the three signal handlers.

    Args:
        name: Pipeline name; also the marker name and the signal name prefix.
        function_name: The dispatcher lambda.
        input: Dispatcher input. Must be a mapping, JSON object text, or a `$`
            reference to one: an `async` block is added to it so the remote
            work knows which execution and signals to report to.
        lambda_start_to_close_timeout: Dispatcher timeout in seconds.
        schedule_to_start_timeout: Seconds allowed between dispatcher
            completion and the started signal.
        start_to_close_timeout: Seconds allowed between the started signal and
            the completed/failed signal.
        retry_strategy: Retry strategy for the dispatcher lambda.
    """

    def __init__(
        self,
        *,
        name: str,
        function_name: str,
        input: Any = None,
        lambda_start_to_close_timeout: int | None = None,
        schedule_to_start_timeout: int | None = None,
        start_to_close_timeout: int | None = None,
        retry_strategy: RetryStrategy | None = None,
    ) -> None:
        self.name = name
        self.function_name = function_name
        self.lambda_name = f"{name}__lambda"
        self.started_signal = f"{name}__started"
        self.completed_signal = f"{name}__completed"
        self.failed_signal = f"{name}__failed"
        # Reserved; heartbeats are not processed yet.
        self.heartbeat_signal = f"{name}__heartbeat"
        self.schedule_to_start_timer = f"{name}__scheduleToStartTimeout"
        self.start_to_close_timer = f"{name}__startToCloseTimeout"
        self.schedule_to_start_timeout = schedule_to_start_timeout or DEFAULT_TIMEOUT
        self.start_to_close_timeout = start_to_close_timeout or DEFAULT_TIMEOUT

        dispatcher = Task(
            kind=TaskKind.LAMBDA,
            name=self.lambda_name,
            function_name=function_name,
            input=input,
            timeouts=Timeouts(start_to_close=lambda_start_to_close_timeout or DEFAULT_TIMEOUT),
            retry_strategy=retry_strategy,
            schedule_actions=[self.marker(AsyncMarker(state=AsyncState.INITIATED.value))],
        ).on_completed(self._on_dispatcher_completed)

        super().__init__([dispatcher])
        self.on_signal(self.started_signal, _StartedHandler(self))
        self.on_signal(self.completed_signal, _CompletedHandler(self))
        self.on_signal(self.failed_signal, _FailedHandler(self))

    def __repr__(self) -> str:
        return f"AsyncPipeline(name={self.name!r})"

    def marker(self, state: AsyncMarker) -> actions.RecordMarkerAction:
        return actions.RecordMarkerAction(self.name, state.to_details())

    def cancel_timers(self, events: EventList) -> list[actions.CancelTimerAction]:
        return [
            *cancel_timer(self.schedule_to_start_timer, events),
            *cancel_timer(self.start_to_close_timer, events),
        ]

    def schedule_to_start_task(self) -> Task:
        return Task(
            kind=TaskKind.TIMER,
            name=self.schedule_to_start_timer,
            delay=self.schedule_to_start_timeout,
        ).on_completed(self._timeout_handler(AsyncState.SCHEDULED, SCHEDULE_TIMEOUT))

    def start_to_close_task(self) -> Task:
        return Task(
            kind=TaskKind.TIMER,
            name=self.start_to_close_timer,
            delay=self.start_to_close_timeout,
        ).on_completed(self._timeout_handler(AsyncState.STARTED, STARTED_TIMEOUT))

    def _timeout_handler(self, armed_state: AsyncState, detail: str) -> PhaseHandler:
        def handler(event: BoundEvent, own: EventList, events: EventList) -> list[object]:
            # Only a fired timer in the state that armed it is a timeout.
            # Otherwise the state was moved on by a signal; let the Series continue.
            if (
                event.event_type is EventType.TIMER_FIRED
                and read_marker(self.name, events).state == armed_state
            ):
                logger.info(
                    "Async pipeline timed out",
                    extra={"pipeline": self.name, "timeout": detail},
                )
                return [
                    self.marker(AsyncMarker(state=AsyncState.TIMED_OUT.value, details=detail)),
                    actions.FatalErrorAction("TimedOut", detail),
                ]
            return []

        return handler

    def _on_dispatcher_completed(
        self, event: BoundEvent, own: EventList, events: EventList
    ) -> list[object]:
        # The timers are created here rather than up front: if a signal got in
        # first, the marker already moved on and no timer must be started.
        state = read_marker(self.name, events).state
        out: list[object] = []
        if state == AsyncState.INITIATED:
            state = AsyncState.SCHEDULED.value
            out.append(self.marker(AsyncMarker(state=state)))
        if state == AsyncState.SCHEDULED:
            out.append(self.schedule_to_start_task())
        # The start-to-close timer is armed by the started signal handler.
        return out

    def get_next_actions(self, events: EventList, after_event_id: int | None = None) -> ActionList:
        execution = events.workflow_execution
        if execution is None:
            raise MissingExecutionError(f"No workflow execution on event list for {self.name!r}")

        marker = read_marker(self.name, events)
        if marker.is_failed:
            return self._finish_actions(
                marker,
                ActionList([actions.FatalErrorAction(marker.state, marker.failure_details())]),
                events,
            )
        if marker.is_completed:
            return self._finish_actions(marker, ActionList(), events)

        found = super().get_next_actions(events, after_event_id)
        for index, action in enumerate(found):
            if isinstance(action, actions.ScheduleLambdaAction) and action.name == self.lambda_name:
                found[index] = replace(
                    action, input=self._with_async_block(action.input, execution)
                )
        return found

    def _with_async_block(self, data: object, execution: WorkflowExecution) -> dict[str, Any]:
        if isinstance(data, str):
            data = json.loads(data) if data else {}
        if data is None:
            data = {}
        if not isinstance(data, Mapping):
            raise ValueError(f"Async pipeline {self.name!r} input must be a JSON object")
        return {
            **data,
            "async": {
                "workflowExecution": execution.to_json(),
                "signals": {
                    "started": self.started_signal,
                    "completed": self.completed_signal,
                    "failed": self.failed_signal,
                    "heartbeat": self.heartbeat_signal,
                },
            },
        }

    def _finish_actions(
        self, marker: AsyncMarker, found: ActionList, events: EventList
    ) -> ActionList:
        # A timer start may be recorded after the pipeline finished; cancel any
        # such straggler once nothing else is pending.
        if marker.is_finished and not any(not isinstance(a, actions.Noop) for a in found):
            found.extend(self.cancel_timers(events))
        return found
