"""State machine for one named unit of work.

A Task never stores runtime state. Every call re-derives where the unit of
work stands from the events recorded under the task's name, and answers with
the actions needed to move it forward:

* no events yet: schedule it (after any declared pre-schedule actions)
* scheduled or started: `Noop`, the work is in flight
* completed or canceled: an empty result tagged with the completing event id
* failed or timed out: retry per the retry strategy, possibly after a
  private `<name>__backoff` timer
* scheduling rejected by the service: fail the workflow
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from . import actions
from .events import BACKOFF_SUFFIX, BoundEvent, Event, EventList, Phase
from .interpolation import interpolate
from .retry import NoRetry, RetryStrategy
from .steps import ActionList, as_nodes

logger = logging.getLogger(__name__)

RETRY_LIMIT_REACHED = "Retry limit reached."


class UnhandledEventError(RuntimeError):
    """Raised when a task's most recent event fits no lifecycle rule."""


class TaskKind(str, Enum):
    ACTIVITY = "activity"
    TIMER = "timer"
    LAMBDA = "lambda"
    CHILD_WORKFLOW = "childWorkflow"
    MARKER = "marker"
    FAIL = "fail"
    CANCEL_TIMER = "cancelTimer"


class HandlerPhase(str, Enum):
    COMPLETED = "Completed"
    FAILED = "Failed"
    CANCELED = "Canceled"


_HANDLER_PHASES: dict[Phase, HandlerPhase] = {
    Phase.COMPLETED: HandlerPhase.COMPLETED,
    Phase.FAILED: HandlerPhase.FAILED,
    Phase.CANCELED: HandlerPhase.CANCELED,
}

PhaseHandler = Callable[[BoundEvent, EventList, EventList], object]


@dataclass(frozen=True, slots=True)
class Timeouts:
    """Timeouts in seconds (or the service's `NONE`)."""

    schedule_to_start: int | str | None = None
    schedule_to_close: int | str | None = None
    start_to_close: int | str | None = None
    heartbeat: int | str | None = None
    execution_start_to_close: int | str | None = None
    task_start_to_close: int | str | None = None


class Task:
    """One named unit of work: an activity, timer, lambda, child workflow,
    marker, a workflow failure, or a timer cancellation.

    Args:
        name: Logical name; also the activity id / timer control / lambda id /
            marker name used to find the task's events in history.
        kind: A `TaskKind` (or its string value).
        input: Input for activities, lambdas and child workflows. May contain
            `$` references.
        delay: Timer delay in seconds, may be a `$` reference.
        details: Marker details, or failure details for `fail` tasks.
        reason: Failure reason for `fail` tasks.
        retry_strategy: Applied when an attempt fails or times out.
        schedule_actions: Actions emitted just before the task is first scheduled.
    """

    def __init__(
        self,
        *,
        name: str = "",
        kind: TaskKind | str,
        input: Any = None,
        delay: Any = None,
        details: Any = None,
        reason: Any = None,
        timeouts: Timeouts | None = None,
        activity_type: str | None = None,
        activity_version: str | None = None,
        task_list: str | None = None,
        function_name: str | None = None,
        workflow_type: str | None = None,
        workflow_version: str | None = None,
        workflow_id: str | None = None,
        child_policy: str | None = None,
        lambda_role: str | None = None,
        tag_list: Iterable[str] | None = None,
        task_priority: str | None = None,
        retry_strategy: RetryStrategy | None = None,
        schedule_actions: Iterable[actions.Action] = (),
    ) -> None:
        self.name = name
        self.kind = TaskKind(kind)
        self.input = input
        self.delay = delay
        self.details = details
        self.reason = reason
        self.timeouts = timeouts or Timeouts()
        self.activity_type = activity_type
        self.activity_version = activity_version
        self.task_list = task_list
        self.function_name = function_name
        self.workflow_type = workflow_type
        self.workflow_version = workflow_version
        self.workflow_id = workflow_id
        self.child_policy = child_policy
        self.lambda_role = lambda_role
        self.tag_list = tuple(tag_list) if tag_list is not None else None
        self.task_priority = task_priority
        self.retry_strategy: RetryStrategy = retry_strategy or NoRetry()
        self.schedule_actions = list(schedule_actions)
        self._handlers: dict[HandlerPhase, PhaseHandler] = {}

    def __repr__(self) -> str:
        return f"Task(name={self.name!r}, kind={self.kind.value!r})"

    # Only end-of-life handlers can be registered; anything else would break
    # the lifecycle processing below.

    def on(self, phase: HandlerPhase, handler: PhaseHandler) -> Task:
        """Register a handler called as `handler(event, task_events, all_events)`.

        The handler may return None, a node, or a list of nodes (actions,
        tasks, pipelines). A non-empty result replaces the default processing
        for that phase.
        """

        self._handlers[HandlerPhase(phase)] = handler
        return self

    def on_completed(self, handler: PhaseHandler) -> Task:
        return self.on(HandlerPhase.COMPLETED, handler)

    def on_failed(self, handler: PhaseHandler) -> Task:
        return self.on(HandlerPhase.FAILED, handler)

    def on_canceled(self, handler: PhaseHandler) -> Task:
        return self.on(HandlerPhase.CANCELED, handler)

    def most_recent_first_event(self, events: EventList) -> Event | None:
        return events.most_recent(self.name, Phase.STARTED)

    def most_recent_last_event(self, events: EventList) -> Event | None:
        return events.most_recent(self.name, Phase.COMPLETED)

    def get_next_actions(self, events: EventList, after_event_id: int | None = None) -> ActionList:
        own = EventList(
            (e for e in events.for_task(self.name) if e.is_lifecycle()),
            workflow_execution=events.workflow_execution,
        )
        backoff = events.for_task(self.name + BACKOFF_SUFFIX)
        if after_event_id is not None:
            own = own.after(after_event_id)
            backoff = backoff.after(after_event_id)

        scheduled = self._find_schedule_actions(own, events)
        if scheduled is not None:
            return scheduled

        last_event = own[-1]
        if len(backoff) and backoff[-1].happened_after(last_event):
            last_event = backoff[-1]

        handled = self._process_handlers(last_event, own, events)
        if handled is not None:
            return handled

        processed = self._process_last_event(last_event, own, events)
        if processed is not None:
            return processed

        raise UnhandledEventError(
            f"Task {self.name!r} cannot handle event {last_event.event_type.value}"
        )

    def _find_schedule_actions(self, own: EventList, events: EventList) -> ActionList | None:
        if self.kind is TaskKind.FAIL:
            # Reaching a fail task always fails the workflow.
            return ActionList(
                [
                    actions.FatalErrorAction(
                        interpolate(self.reason, events), interpolate(self.details, events)
                    )
                ]
            )
        if self.kind is TaskKind.CANCEL_TIMER:
            return self._cancel_timer_actions(events)
        if not len(own):
            return self._get_schedule_actions(events)
        return None

    def _cancel_timer_actions(self, events: EventList) -> ActionList:
        started = events.most_recent(self.name, Phase.STARTED)
        if started is None or events.most_recent(self.name, Phase.COMPLETED) is not None:
            return ActionList()
        timer_id = started.attributes.get("timerId")
        for event in reversed(events):
            if event.attributes.get("timerId") != timer_id:
                continue
            if event.is_canceled() or event.is_fatal():
                # Already canceled, or it never started.
                return ActionList()
        return ActionList([actions.CancelTimerAction.for_started(started)])

    def _get_schedule_actions(self, events: EventList) -> ActionList:
        return ActionList([*self.schedule_actions, self._create_schedule_action(events)])

    def _create_schedule_action(self, events: EventList) -> actions.Action:
        t = self.timeouts
        if self.kind is TaskKind.ACTIVITY:
            return actions.ScheduleAction(
                self.name,
                interpolate(self.input, events),
                version=self.activity_version,
                activity_type=self.activity_type,
                task_list=self.task_list,
                schedule_to_start_timeout=t.schedule_to_start,
                schedule_to_close_timeout=t.schedule_to_close,
                start_to_close_timeout=t.start_to_close,
                heartbeat_timeout=t.heartbeat,
            )
        if self.kind is TaskKind.TIMER:
            return actions.TimerAction(self.name, interpolate(self.delay, events))
        if self.kind is TaskKind.LAMBDA:
            if not self.function_name:
                raise ValueError(f"Lambda task {self.name!r} needs a function_name")
            return actions.ScheduleLambdaAction(
                self.name,
                self.function_name,
                interpolate(self.input, events),
                start_to_close_timeout=t.start_to_close,
            )
        if self.kind is TaskKind.CHILD_WORKFLOW:
            if not self.workflow_type:
                raise ValueError(f"Child workflow task {self.name!r} needs a workflow_type")
            return actions.ChildWorkflowAction(
                self.name,
                self.workflow_type,
                self.workflow_version,
                interpolate(self.input, events),
                workflow_id=interpolate(self.workflow_id, events),  # type: ignore[arg-type]
                child_policy=self.child_policy,
                lambda_role=self.lambda_role,
                tag_list=self.tag_list,
                task_list=self.task_list,
                task_priority=self.task_priority,
                execution_start_to_close_timeout=t.execution_start_to_close,
                task_start_to_close_timeout=t.task_start_to_close,
            )
        if self.kind is TaskKind.MARKER:
            return actions.RecordMarkerAction(self.name, interpolate(self.details, events))
        raise ValueError(f"Task kind {self.kind.value!r} cannot be scheduled")

    def _process_handlers(
        self, last_event: Event, own: EventList, events: EventList
    ) -> ActionList | None:
        # The backoff timer belongs to the retry machinery, not to the task's phases.
        if last_event.is_backoff():
            return None
        phase = _HANDLER_PHASES.get(last_event.phase)
        handler = self._handlers.get(phase) if phase is not None else None
        if handler is None:
            return None
        result = as_nodes(handler(last_event.bind(events), own, events))
        return ActionList(result) if result else None

    def _process_last_event(
        self, last_event: Event, own: EventList, events: EventList
    ) -> ActionList | None:
        if last_event.is_fatal():
            return ActionList([actions.FatalErrorAction(last_event.attributes.get("cause"))])

        if last_event.is_started() or last_event.is_scheduled():
            return ActionList([actions.Noop()])

        if last_event.is_completed():
            if last_event.is_backoff():
                return self._get_retry_actions(events, own.total_failures_or_timeouts(), last_event)
            return ActionList(last_event_id=last_event.event_id)

        if last_event.is_canceled():
            # Canceling the work is not a failure.
            return ActionList(last_event_id=last_event.event_id)

        if last_event.is_failure() or last_event.is_timeout():
            return self._get_retry_actions(events, own.total_failures_or_timeouts(), last_event)

        return None

    def _get_retry_actions(
        self, events: EventList, previous_failures: int, last_event: Event
    ) -> ActionList:
        if not self.retry_strategy.should_retry(previous_failures):
            logger.info(
                "Retry limit reached",
                extra={"task": self.name, "failures": previous_failures},
            )
            return ActionList([actions.FatalErrorAction(RETRY_LIMIT_REACHED)])

        # The backoff timer firing means the wait is over.
        if last_event.is_backoff():
            wait: float = 0
        else:
            wait = self.retry_strategy.get_backoff_time(previous_failures)
        if wait > 0:
            return ActionList([actions.TimerAction(self.name + BACKOFF_SUFFIX, wait)])
        return ActionList([self._create_schedule_action(events)])

