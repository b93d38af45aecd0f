"""SWF decider.

Workflows are declared as trees of tasks and pipelines; each decision task is
answered by replaying the execution's history through that tree:
- configuration loaded from `.env`
- structured logging
- a replay CLI for saved histories
"""

__version__ = "0.1.0"

from swf_decider.config import DeciderSettings
from swf_decider.factories import (
    constant_backoff,
    create_activity_task,
    create_async_pipeline,
    create_cancel_timer_task,
    create_child_workflow_task,
    create_continuous_pipeline,
    create_decider,
    create_fail_workflow_task,
    create_lambda_task,
    create_marker_task,
    create_parallel_pipeline,
    create_series_pipeline,
    create_task,
    create_timer_task,
    exponential_backoff,
    immediate_retry,
    no_retry,
)

__all__ = [
    "__version__",
    "DeciderSettings",
    "constant_backoff",
    "create_activity_task",
    "create_async_pipeline",
    "create_cancel_timer_task",
    "create_child_workflow_task",
    "create_continuous_pipeline",
    "create_decider",
    "create_fail_workflow_task",
    "create_lambda_task",
    "create_marker_task",
    "create_parallel_pipeline",
    "create_series_pipeline",
    "create_task",
    "create_timer_task",
    "exponential_backoff",
    "immediate_retry",
    "no_retry",
]
