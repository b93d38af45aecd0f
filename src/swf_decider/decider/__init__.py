"""Deterministic replay decider: history in, decisions out."""

from swf_decider.decider.actions import (
    Action,
    CancelTimerAction,
    ChildWorkflowAction,
    FatalErrorAction,
    Noop,
    RecordMarkerAction,
    ScheduleAction,
    ScheduleLambdaAction,
    TimerAction,
)
from swf_decider.decider.async_pipeline import AsyncMarker, AsyncPipeline, AsyncState
from swf_decider.decider.decider import Decider, DecisionClient
from swf_decider.decider.events import Event, EventList, EventType, WorkflowExecution
from swf_decider.decider.generators import TaskGenerator, WorkflowStart
from swf_decider.decider.pipeline import BREAK, Continuous, Parallel, Pipeline, Series
from swf_decider.decider.retry import (
    ConstantBackoff,
    ExponentialBackoff,
    Immediate,
    NoRetry,
    RetryStrategy,
)
from swf_decider.decider.steps import ActionList, Step
from swf_decider.decider.task import HandlerPhase, Task, TaskKind, Timeouts

__all__ = [
    "BREAK",
    "Action",
    "ActionList",
    "AsyncMarker",
    "AsyncPipeline",
    "AsyncState",
    "CancelTimerAction",
    "ChildWorkflowAction",
    "ConstantBackoff",
    "Continuous",
    "Decider",
    "DecisionClient",
    "Event",
    "EventList",
    "EventType",
    "ExponentialBackoff",
    "FatalErrorAction",
    "HandlerPhase",
    "Immediate",
    "NoRetry",
    "Noop",
    "Parallel",
    "Pipeline",
    "RecordMarkerAction",
    "RetryStrategy",
    "ScheduleAction",
    "ScheduleLambdaAction",
    "Series",
    "Step",
    "Task",
    "TaskGenerator",
    "TaskKind",
    "Timeouts",
    "TimerAction",
    "WorkflowExecution",
    "WorkflowStart",
]
