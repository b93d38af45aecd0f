"""Composition of tasks into Series, Parallel and Continuous pipelines.

All pipelines react to signals first: if a subscribed signal has fired and a
subscriber still has work to do for it, the subscriber's actions are produced
before (Series, Continuous) or alongside (Parallel) normal discovery.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from swf_decider.observability import DeciderObserver, LoggingObserver

from .events import Event, EventList
from .steps import ActionList, Step, expand

logger = logging.getLogger(__name__)

BREAK = "break"

Subscriber = Step | str


class Pipeline:
    """Base class: children plus signal subscriptions.

    Subclasses override `_discover_next_actions`; `get_next_actions` expands
    whatever they return into leaf actions.
    """

    def __init__(self, children: Iterable[object] = ()) -> None:
        self.children: list[object] = list(children)
        self._signal_subscribers: dict[str, list[Subscriber]] = {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({len(self.children)} children)"

    def on_signal(self, signal: str | Sequence[str], subscriber: Subscriber) -> Pipeline:
        """Run `subscriber` when `signal` fires. `BREAK` stops a Continuous pipeline."""

        signals = [signal] if isinstance(signal, str) else list(signal)
        for name in signals:
            self._signal_subscribers.setdefault(name, []).append(subscriber)
        return self

    def get_next_actions(self, events: EventList, after_event_id: int | None = None) -> ActionList:
        return expand(self._discover_next_actions(events, after_event_id), events)

    def _discover_next_actions(
        self, events: EventList, after_event_id: int | None = None
    ) -> ActionList:
        return self._signal_actions(events)

    def _signal_actions(self, events: EventList) -> ActionList:
        found = ActionList()
        for signal, subscribers in self._signal_subscribers.items():
            last_signal = events.most_recent(signal)
            if last_signal is None:
                continue

            for subscriber in subscribers:
                # Only Continuous pipelines act on breaks.
                if isinstance(subscriber, str):
                    continue

                first = subscriber.most_recent_first_event(events)
                last = subscriber.most_recent_last_event(events)

                # React if the subscriber never responded, is still responding,
                # or finished before the signal fired again.
                if first is None or last is None:
                    found.extend(expand(subscriber.get_next_actions(events), events))
                elif last_signal.event_id > last.event_id:
                    logger.debug(
                        "Signal fired again; restarting subscriber",
                        extra={"signal": signal, "event_id": last_signal.event_id},
                    )
                    found.extend(
                        expand(subscriber.get_next_actions(events, last_signal.event_id), events)
                    )
        return found

    def most_recent_first_event(self, events: EventList) -> Event | None:
        """The activation event of the first task in the pipeline."""

        if not self.children:
            return None
        first = self.children[0]
        return first.most_recent_first_event(events) if isinstance(first, Step) else None

    def most_recent_last_event(self, events: EventList) -> Event | None:
        """The completion event of the last task in the pipeline."""

        if not self.children:
            return None
        last = self.children[-1]
        return last.most_recent_last_event(events) if isinstance(last, Step) else None


class Series(Pipeline):
    """Run children one after another; stop at the first child with work to do."""

    def _discover_next_actions(
        self, events: EventList, after_event_id: int | None = None
    ) -> ActionList:
        signal_actions = self._signal_actions(events)
        if signal_actions:
            return signal_actions

        for child in self.children:
            if isinstance(child, Step):
                produced = expand(child.get_next_actions(events, after_event_id), events)
            else:
                produced = expand([child], events)
            if produced:
                return produced
            if produced.last_event_id is not None:
                after_event_id = produced.last_event_id
        return ActionList(last_event_id=after_event_id)


class Parallel(Pipeline):
    """Run every child each cycle and concatenate the results."""

    def _discover_next_actions(
        self, events: EventList, after_event_id: int | None = None
    ) -> ActionList:
        found = self._signal_actions(events)
        finished_at: list[int] = []
        for child in self.children:
            if isinstance(child, Step):
                produced = expand(child.get_next_actions(events, after_event_id), events)
            else:
                produced = expand([child], events)
            found.extend(produced)
            if produced.last_event_id is not None:
                finished_at.append(produced.last_event_id)
        if not found and finished_at:
            found.last_event_id = max(finished_at)
        return found


class Continuous(Series):
    """A Series that starts over once every child has finished.

    The restart runs the children against an empty history, which schedules
    the first batch again. A `BREAK` subscription ends the loop for good as
    soon as its signal has fired.
    """

    def __init__(
        self, children: Iterable[object] = (), observer: DeciderObserver | None = None
    ) -> None:
        super().__init__(children)
        self._observer: DeciderObserver = observer or LoggingObserver()

    def _discover_next_actions(
        self, events: EventList, after_event_id: int | None = None
    ) -> ActionList:
        for signal, subscribers in self._signal_subscribers.items():
            if BREAK in subscribers and events.most_recent(signal) is not None:
                self._observer.pipeline_broken(self, signal)
                return ActionList()

        found = super()._discover_next_actions(events, after_event_id)
        if not found and len(events) > 0:
            return self.get_next_actions(events.empty())
        return found
