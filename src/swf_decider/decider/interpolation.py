"""`$` references into earlier task output.

A string starting with `$` names a task and an optional dotted path into its
decoded output, e.g. `$FetchUser.profile.email`. The special task name
`$Workflow` (written `$$Workflow`) refers to the workflow start input.

References resolve against the most recent event recorded for the task.
A task with no events resolves to None. Mappings are interpolated
field-by-field; every other value passes through unchanged.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from .events import EventList

WORKFLOW_SENTINEL = "$Workflow"


class InterpolationError(ValueError):
    """Raised when a dotted path descends into a value that is not an object."""


@dataclass(frozen=True, slots=True)
class Reference:
    task_name: str
    path: tuple[str, ...] = ()

    @property
    def is_workflow_input(self) -> bool:
        return self.task_name == WORKFLOW_SENTINEL

    def resolve(self, events: EventList) -> object:
        if self.is_workflow_input:
            event = events.workflow_started()
        else:
            own = events.for_task(self.task_name)
            event = own[-1] if len(own) else None
        if event is None:
            return None

        output = event.output
        if not self.path:
            return output
        if not isinstance(output, Mapping | list):
            raise InterpolationError(
                f"Output of {self.task_name!r} is not an object; cannot resolve "
                f"{'.'.join(self.path)!r} (got {output!r})"
            )
        return _descend(output, self.path)


def parse_reference(text: str) -> Reference | None:
    """Parse `$task.dotted.path`; returns None for plain strings."""

    if not text.startswith("$"):
        return None
    task_name, *path = text[1:].split(".")
    return Reference(task_name=task_name, path=tuple(path))


def _descend(value: object, path: tuple[str, ...]) -> object:
    for key in path:
        if isinstance(value, Mapping):
            value = value.get(key)
        elif isinstance(value, list) and key.isdigit() and int(key) < len(value):
            value = value[int(key)]
        else:
            return None
    return value


def interpolate(data: object, events: EventList) -> object:
    if isinstance(data, str):
        ref = parse_reference(data)
        return ref.resolve(events) if ref is not None else data
    if isinstance(data, Mapping):
        return {key: interpolate(value, events) for key, value in data.items()}
    return data
