"""The node vocabulary shared by tasks and pipelines.

A node is either a leaf `Action` or a `Step` (a Task, a Pipeline, or any
object with the same three methods). `expand` turns a list of nodes into leaf
actions by asking each step for its next actions, depth first.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from .actions import Action, is_action
from .events import Event, EventList


class ActionList(list):  # type: ignore[type-arg]
    """A list of nodes, optionally tagged with the id of a completing event.

    An empty list tagged with `last_event_id` means "this step finished at
    that event"; Series pipelines use the id as the next child's lower bound.
    """

    def __init__(self, items: Iterable[object] = (), last_event_id: int | None = None) -> None:
        super().__init__(items)
        self.last_event_id = last_event_id


@runtime_checkable
class Step(Protocol):
    def get_next_actions(
        self, events: EventList, after_event_id: int | None = None
    ) -> ActionList: ...

    def most_recent_first_event(self, events: EventList) -> Event | None: ...

    def most_recent_last_event(self, events: EventList) -> Event | None: ...


Node = Action | Step


def as_nodes(result: object) -> list[object]:
    """Normalise a handler/generator result (None, one node, or a list) to a list."""

    if result is None:
        return []
    if isinstance(result, list | tuple):
        return list(result)
    return [result]


def expand(nodes: Iterable[object], events: EventList) -> ActionList:
    """Recursively expand steps into leaf actions, preserving order."""

    last_event_id = nodes.last_event_id if isinstance(nodes, ActionList) else None
    out = ActionList(last_event_id=last_event_id)
    for node in nodes:
        if node is None:
            continue
        if is_action(node):
            out.append(node)
        elif isinstance(node, Step):
            res = expand(node.get_next_actions(events), events)
            out.extend(res)
            out.last_event_id = res.last_event_id
        else:
            raise TypeError(f"Not an action or step: {node!r}")
    return out
