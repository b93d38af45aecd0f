"""Observability side channel for decision cycles.

Observers are told about workflow failures, process-level errors and
pipeline breaks. They never influence the decisions being produced.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from swf_decider.decider.actions import FatalErrorAction
    from swf_decider.decider.events import EventList

logger = logging.getLogger(__name__)


class DeciderObserver(Protocol):
    def workflow_failed(self, action: FatalErrorAction, events: EventList) -> None: ...

    def decision_error(self, error: BaseException, events: EventList | None) -> None: ...

    def pipeline_broken(self, pipeline: object, signal: str) -> None: ...


def _execution_extra(events: EventList | None) -> dict[str, object]:
    execution = events.workflow_execution if events is not None else None
    if execution is None:
        return {}
    return {"workflow_id": execution.workflow_id, "run_id": execution.run_id}


class LoggingObserver:
    """Default observer: reports everything through standard logging."""

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger

    def workflow_failed(self, action: FatalErrorAction, events: EventList) -> None:
        self._log.warning(
            "Failing workflow execution",
            extra={"reason": action.reason, "details": action.details, **_execution_extra(events)},
        )

    def decision_error(self, error: BaseException, events: EventList | None) -> None:
        self._log.error(
            "Decision cycle aborted",
            exc_info=error,
            extra=_execution_extra(events),
        )

    def pipeline_broken(self, pipeline: object, signal: str) -> None:
        self._log.info(
            "Got break signal; stopping continuous pipeline",
            extra={"signal": signal, "pipeline": repr(pipeline)},
        )
