"""Shorthand constructors for building workflow definitions.

Each helper returns the same object the class would; they only spare the
caller the `kind=` argument and the retry/timeout wrapper types.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from swf_decider.config import DeciderSettings
from swf_decider.decider.async_pipeline import AsyncPipeline
from swf_decider.decider.decider import Decider, DecisionClient
from swf_decider.decider.pipeline import Continuous, Parallel, Series
from swf_decider.decider.retry import ConstantBackoff, ExponentialBackoff, Immediate, NoRetry
from swf_decider.decider.steps import Step
from swf_decider.decider.task import Task, TaskKind, Timeouts
from swf_decider.observability import DeciderObserver


def create_task(kind: TaskKind | str, name: str = "", **kwargs: Any) -> Task:
    return Task(kind=kind, name=name, **kwargs)


def create_activity_task(
    name: str,
    input: Any = None,
    *,
    version: str | None = None,
    activity_type: str | None = None,
    task_list: str | None = None,
    timeouts: Timeouts | None = None,
    **kwargs: Any,
) -> Task:
    return Task(
        kind=TaskKind.ACTIVITY,
        name=name,
        input=input,
        activity_version=version,
        activity_type=activity_type,
        task_list=task_list,
        timeouts=timeouts,
        **kwargs,
    )


def create_timer_task(name: str, delay: Any, **kwargs: Any) -> Task:
    return Task(kind=TaskKind.TIMER, name=name, delay=delay, **kwargs)


def create_lambda_task(
    name: str,
    function_name: str,
    input: Any = None,
    *,
    start_to_close_timeout: int | str | None = None,
    **kwargs: Any,
) -> Task:
    return Task(
        kind=TaskKind.LAMBDA,
        name=name,
        function_name=function_name,
        input=input,
        timeouts=Timeouts(start_to_close=start_to_close_timeout),
        **kwargs,
    )


def create_child_workflow_task(
    name: str,
    workflow_type: str,
    workflow_version: str | None = None,
    input: Any = None,
    **kwargs: Any,
) -> Task:
    return Task(
        kind=TaskKind.CHILD_WORKFLOW,
        name=name,
        workflow_type=workflow_type,
        workflow_version=workflow_version,
        input=input,
        **kwargs,
    )


def create_marker_task(name: str, details: Any = None) -> Task:
    return Task(kind=TaskKind.MARKER, name=name, details=details)


def create_fail_workflow_task(reason: Any, details: Any = None, name: str = "") -> Task:
    return Task(kind=TaskKind.FAIL, name=name, reason=reason, details=details)


def create_cancel_timer_task(timer_name: str) -> Task:
    return Task(kind=TaskKind.CANCEL_TIMER, name=timer_name)


def create_series_pipeline(children: Iterable[object] = ()) -> Series:
    return Series(children)


def create_parallel_pipeline(children: Iterable[object] = ()) -> Parallel:
    return Parallel(children)


def create_continuous_pipeline(
    children: Iterable[object] = (), observer: DeciderObserver | None = None
) -> Continuous:
    return Continuous(children, observer=observer)


def create_async_pipeline(
    name: str, function_name: str, input: Any = None, **kwargs: Any
) -> AsyncPipeline:
    return AsyncPipeline(name=name, function_name=function_name, input=input, **kwargs)


def create_decider(
    pipeline: Step,
    client: DecisionClient | None = None,
    settings: DeciderSettings | None = None,
    observer: DeciderObserver | None = None,
) -> Decider:
    return Decider(pipeline, client, settings=settings, observer=observer)


def no_retry() -> NoRetry:
    return NoRetry()


def immediate_retry(retry_limit: int) -> Immediate:
    return Immediate(retry_limit)


def constant_backoff(backoff: float, retry_limit: int) -> ConstantBackoff:
    return ConstantBackoff(backoff, retry_limit)


def exponential_backoff(start_at: float, retry_limit: int) -> ExponentialBackoff:
    return ExponentialBackoff(start_at, retry_limit)
