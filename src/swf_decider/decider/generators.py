"""Steps whose children are computed from history at decision time."""

from __future__ import annotations

from collections.abc import Callable

from .actions import is_action
from .events import Event, EventList
from .pipeline import Series
from .steps import ActionList, Step, as_nodes


class TaskGenerator:
    """Build the next section of the workflow programmatically.

    `func(events)` returns the nodes to run; they are wrapped in a Series
    and evaluated every cycle, so the function must be deterministic.
    """

    def __init__(self, func: Callable[[EventList], object]) -> None:
        self._func = func

    def get_next_actions(self, events: EventList, after_event_id: int | None = None) -> ActionList:
        return Series(as_nodes(self._func(events))).get_next_actions(events, after_event_id)

    def most_recent_first_event(self, events: EventList) -> Event | None:
        return None

    def most_recent_last_event(self, events: EventList) -> Event | None:
        return None


class WorkflowStart:
    """Decide the opening moves from the `WorkflowExecutionStarted` event.

    `func(start_event)` returns actions and/or steps. Raw actions are only
    emitted on the very first decision (history holds just the start event);
    afterwards only the steps are returned, for the enclosing pipeline to
    evaluate.
    """

    def __init__(self, func: Callable[[Event], object]) -> None:
        self._func = func

    def get_next_actions(self, events: EventList, after_event_id: int | None = None) -> ActionList:
        started = events.workflow_started()
        if started is None:
            return ActionList()

        nodes = as_nodes(self._func(started.bind(events)))
        raw_actions = [n for n in nodes if is_action(n)]
        steps = [n for n in nodes if isinstance(n, Step)]
        if len(events) == 1 and raw_actions:
            return ActionList(raw_actions)
        return ActionList(steps)

    def most_recent_first_event(self, events: EventList) -> Event | None:
        return None

    def most_recent_last_event(self, events: EventList) -> Event | None:
        return None
