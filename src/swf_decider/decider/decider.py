"""One decision cycle: history in, decision batch out.

The Decider wraps the raw history in an EventList, asks the root step for
its next actions and renders each leaf action as one protocol decision.
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Protocol

from swf_decider.config import DeciderSettings
from swf_decider.observability import DeciderObserver, LoggingObserver

from . import actions
from .events import EventList, EventType, WorkflowExecution
from .steps import Step, expand

logger = logging.getLogger(__name__)

Decision = dict[str, Any]


class DecisionClient(Protocol):
    """The part of the service client the decider needs (boto3 SWF signature)."""

    def respond_decision_task_completed(
        self, *, taskToken: str, decisions: list[Decision]
    ) -> Any: ...


def _encode(value: object) -> str:
    """Payload text: strings pass through, everything else is JSON-encoded."""

    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(",", ":"))


def _truncate(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit]


def _seconds(value: object) -> str:
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value)


def _without_none(attrs: Mapping[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in attrs.items() if v is not None}


def timer_id_for(name: str, events: EventList) -> str:
    """Deterministic timer id for the next start of the timer named `name`.

    Timer ids must be unique among open timers and may not contain some
    characters, so the id is a digest of the name plus the number of times
    the timer was started before.
    """

    starts = sum(1 for e in events.for_task(name) if e.event_type is EventType.TIMER_STARTED)
    digest = hashlib.sha1(name.encode("utf-8")).hexdigest()[:16]
    return f"{digest}-{starts + 1}"


class Decider:
    """Bind a root step and a protocol client; one call handles one decision task."""

    def __init__(
        self,
        pipeline: Step,
        client: DecisionClient | None = None,
        settings: DeciderSettings | None = None,
        observer: DeciderObserver | None = None,
    ) -> None:
        self._pipeline = pipeline
        self._client = client
        self._settings = settings or DeciderSettings()
        self._observer: DeciderObserver = observer or LoggingObserver()

    def handle_decision_task(self, task: Mapping[str, Any]) -> Any:
        """Handle a poll response (`taskToken`, `events`, `workflowExecution`)."""

        return self.handle_events(
            task["taskToken"],
            task.get("events") or [],
            task.get("workflowExecution"),
        )

    def handle_events(
        self,
        task_token: str,
        history: Iterable[Mapping[str, Any]],
        workflow_execution: WorkflowExecution | Mapping[str, object] | None = None,
    ) -> Any:
        """Compute the decisions and submit them through the client."""

        if self._client is None:
            raise RuntimeError("Decider has no client to respond with")
        decisions = self.decide(history, workflow_execution)
        return self._client.respond_decision_task_completed(
            taskToken=task_token, decisions=decisions
        )

    def decide(
        self,
        history: Iterable[Mapping[str, Any]],
        workflow_execution: WorkflowExecution | Mapping[str, object] | None = None,
    ) -> list[Decision]:
        """Pure part of the cycle: the decision batch for this history."""

        events: EventList | None = None
        try:
            events = EventList.from_history(history, workflow_execution=workflow_execution)
            next_actions = expand(self._pipeline.get_next_actions(events), events)
            decisions = self._render(next_actions, events)
        except Exception as e:
            self._observer.decision_error(e, events)
            raise

        logger.debug(
            "Decision cycle complete",
            extra={
                "history_length": len(events),
                "decisions": [d["decisionType"] for d in decisions],
            },
        )
        return decisions

    def _render(self, next_actions: Sequence[object], events: EventList) -> list[Decision]:
        decisions: list[Decision] = []
        fatal: actions.FatalErrorAction | None = None
        for action in next_actions:
            if isinstance(action, actions.FatalErrorAction):
                self._observer.workflow_failed(action, events)
                if fatal is None:
                    fatal = action
                continue
            decision = self.render_action(action, events)
            if decision is not None:
                decisions.append(decision)

        # Closing decisions must come last, and there is at most one per batch.
        if fatal is not None:
            decisions.append(self._fail_decision(fatal))
        elif not next_actions:
            decisions.append(
                {
                    "decisionType": "CompleteWorkflowExecution",
                    "completeWorkflowExecutionDecisionAttributes": {
                        "result": self._settings.completion_result,
                    },
                }
            )
        return decisions

    def render_action(self, action: object, events: EventList) -> Decision | None:
        """Render one leaf action; `Noop` renders to nothing."""

        if isinstance(action, actions.Noop):
            return None

        if isinstance(action, actions.ScheduleAction):
            attrs: dict[str, Any] = {
                "activityType": _without_none(
                    {"name": action.activity_type or action.name, "version": action.version}
                ),
                "activityId": action.name,
                "input": None if action.input is None else _encode(action.input),
                "scheduleToStartTimeout": _opt_seconds(action.schedule_to_start_timeout),
                "scheduleToCloseTimeout": _opt_seconds(action.schedule_to_close_timeout),
                "startToCloseTimeout": _opt_seconds(action.start_to_close_timeout),
                "heartbeatTimeout": _opt_seconds(action.heartbeat_timeout),
                "taskList": {"name": action.task_list} if action.task_list else None,
            }
            return {
                "decisionType": "ScheduleActivityTask",
                "scheduleActivityTaskDecisionAttributes": _without_none(attrs),
            }

        if isinstance(action, actions.TimerAction):
            return {
                "decisionType": "StartTimer",
                "startTimerDecisionAttributes": {
                    "timerId": timer_id_for(action.name, events),
                    "control": action.name,
                    "startToFireTimeout": _seconds(action.delay),
                },
            }

        if isinstance(action, actions.CancelTimerAction):
            return {
                "decisionType": "CancelTimer",
                "cancelTimerDecisionAttributes": {"timerId": action.timer_id},
            }

        if isinstance(action, actions.ScheduleLambdaAction):
            attrs = {
                "id": action.name,
                "name": action.function_name,
                "input": None if action.input is None else _encode(action.input),
                "startToCloseTimeout": _opt_seconds(action.start_to_close_timeout),
            }
            return {
                "decisionType": "ScheduleLambdaFunction",
                "scheduleLambdaFunctionDecisionAttributes": _without_none(attrs),
            }

        if isinstance(action, actions.ChildWorkflowAction):
            attrs = {
                "workflowType": _without_none(
                    {"name": action.workflow_type, "version": action.workflow_version}
                ),
                "workflowId": action.workflow_id or action.name,
                "control": action.name,
                "input": None if action.input is None else _encode(action.input),
                "executionStartToCloseTimeout": _opt_seconds(
                    action.execution_start_to_close_timeout
                ),
                "taskStartToCloseTimeout": _opt_seconds(action.task_start_to_close_timeout),
                "childPolicy": action.child_policy,
                "lambdaRole": action.lambda_role,
                "tagList": list(action.tag_list) if action.tag_list else None,
                "taskList": {"name": action.task_list} if action.task_list else None,
                "taskPriority": action.task_priority,
            }
            return {
                "decisionType": "StartChildWorkflowExecution",
                "startChildWorkflowExecutionDecisionAttributes": _without_none(attrs),
            }

        if isinstance(action, actions.RecordMarkerAction):
            return {
                "decisionType": "RecordMarker",
                "recordMarkerDecisionAttributes": {
                    "markerName": action.name,
                    "details": json.dumps(action.details, separators=(",", ":")),
                },
            }

        if isinstance(action, actions.FatalErrorAction):
            return self._fail_decision(action)

        raise TypeError(f"Cannot render decision for {action!r}")

    def _fail_decision(self, action: actions.FatalErrorAction) -> Decision:
        attrs = {
            "reason": _truncate(_encode(action.reason), self._settings.max_reason_length)
            if action.reason is not None
            else None,
            "details": _truncate(_encode(action.details), self._settings.max_details_length)
            if action.details is not None
            else None,
        }
        return {
            "decisionType": "FailWorkflowExecution",
            "failWorkflowExecutionDecisionAttributes": _without_none(attrs),
        }


def _opt_seconds(value: object) -> str | None:
    return None if value is None else _seconds(value)
