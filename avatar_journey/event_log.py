"""Append-only journey event log."""

from __future__ import annotations

from datetime import date, datetime

from avatar_journey.models import EventKind, TravelEvent


class EventLog:
    """Ordered sequence of narrative events, in order of acceptance.

    Events are never mutated or removed; clear() is only used by a full
    journey reset. Event ids are creation-time milliseconds, bumped when
    needed so they stay unique and strictly increasing.
    """

    def __init__(self) -> None:
        self._events: list[TravelEvent] = []
        self._last_id = 0

    def next_id(self, moment: datetime) -> int:
        event_id = max(int(moment.timestamp() * 1000), self._last_id + 1)
        self._last_id = event_id
        return event_id

    def new_event(
        self,
        moment: datetime,
        kind: EventKind,
        content: str,
        needs_user_input: bool = False,
        user_message: str | None = None,
    ) -> TravelEvent:
        """Build (but do not append) the next event."""
        return TravelEvent(
            id=self.next_id(moment),
            timestamp=moment,
            kind=kind,
            content=content,
            needs_user_input=needs_user_input,
            user_message=user_message,
        )

    def append(self, event: TravelEvent) -> None:
        if self._events and event.id <= self._events[-1].id:
            raise ValueError(f"Event id {event.id} is not after {self._events[-1].id}")
        self._events.append(event)

    def snapshot(self) -> tuple[TravelEvent, ...]:
        return tuple(self._events)

    def on_day(self, day: date) -> list[TravelEvent]:
        return [e for e in self._events if e.timestamp.date() == day]

    def clear(self) -> None:
        self._events.clear()
