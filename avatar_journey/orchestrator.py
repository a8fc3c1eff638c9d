"""Journey orchestrator - the one owner of a journey's state.

Phases:
  not_started → active → (auto-advance | user intervention)* → reset → not_started

Update flow (start, auto-advance, user intervention):
  1. Check the phase and the in-flight guard.
  2. Cancel the pending "nextEvent" timer and take a new generation number.
  3. Build the prompt, call the LLM (the only await), parse the response.
  4. If the generation is still current, apply in one synchronous step:
     append the event, replace TravelState, arm the next timer.

Any failure in 3 leaves TravelState and the event log untouched and the
timer disarmed; the error goes to the caller. Auto-advance has no caller,
so its failures are logged.

Concurrency policy:
  - Only one update is in flight at a time. start/submit while another
    user-initiated update is running raise BusyError.
  - A user message supersedes an in-flight auto-advance: the auto-advance
    generation goes stale and its result is discarded when it lands.
  - An auto-advance that fires while anything is in flight is skipped
    (coalesced); the in-flight update arms a new timer when it commits.
  - Diary writing has its own guard and never touches the travel state.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from dataclasses import dataclass
from datetime import timedelta

from avatar_journey.errors import (
    BusyError,
    MalformedResponseError,
    PhaseError,
    StaleUpdateError,
    TransportError,
    ValidationError,
)
from avatar_journey.event_log import EventLog
from avatar_journey.llm import LLM
from avatar_journey.models import (
    CharacterProfile,
    DiaryEntry,
    EventKind,
    JourneySnapshot,
    JourneyUpdate,
    Phase,
    TravelEvent,
    TravelState,
)
from avatar_journey.parser import parse_diary_entry, parse_journey_update
from avatar_journey.prompts import (
    build_continue_prompt,
    build_diary_prompt,
    build_intervention_prompt,
    build_start_prompt,
    validate_profile,
)
from avatar_journey.scheduler import AsyncioScheduler, Cancelable, Clock, Scheduler, SystemClock

logger = logging.getLogger(__name__)

NEXT_EVENT_SLOT = "nextEvent"
SECONDS_PER_HOUR = 3600


@dataclass
class _Flight:
    generation: int
    stage: EventKind


class JourneyOrchestrator:
    """Runs one character's journey against an injected LLM.

    Args:
        llm:             Backend callable (see avatar_journey.llm.LLM).
        scheduler:       Timer capability. Defaults to AsyncioScheduler.
        clock:           Time source. Defaults to SystemClock.
        timeout:         Seconds to wait for the LLM before treating the call
                         as a TransportError. None waits forever.
        min_delay_hours: Floor applied to the backend's next-event delay.
        max_delay_hours: Ceiling applied to the backend's next-event delay.
    """

    def __init__(
        self,
        llm: LLM,
        scheduler: Scheduler | None = None,
        clock: Clock | None = None,
        *,
        timeout: float | None = None,
        min_delay_hours: float = 0.5,
        max_delay_hours: float = 3.0,
    ) -> None:
        if min_delay_hours <= 0 or max_delay_hours < min_delay_hours:
            raise ValueError("Event delay bounds must satisfy 0 < min <= max")
        self._llm = llm
        self._scheduler = scheduler or AsyncioScheduler()
        self._clock = clock or SystemClock()
        self._timeout = timeout
        self._min_delay_hours = min_delay_hours
        self._max_delay_hours = max_delay_hours

        self._profile: CharacterProfile | None = None
        self._state = TravelState()
        self._log = EventLog()
        self._diaries: list[DiaryEntry] = []
        self._last_diary_id = 0

        self._timers: dict[str, Cancelable] = {}
        self._timer_token = 0
        self._armed_token: int | None = None

        self._generation = 0
        self._in_flight: _Flight | None = None
        self._epoch = 0  # bumped on reset
        self._diary_in_flight = False

    # ------------------------------------------------------------------
    # Read-only accessors
    # ------------------------------------------------------------------

    @property
    def phase(self) -> Phase:
        if self._in_flight is not None:
            return "busy"
        if self._state.is_active:
            return "active"
        return "not_started"

    @property
    def profile(self) -> CharacterProfile | None:
        return self._profile

    @property
    def travel_state(self) -> TravelState:
        return self._state

    @property
    def events(self) -> tuple[TravelEvent, ...]:
        return self._log.snapshot()

    @property
    def diaries(self) -> tuple[DiaryEntry, ...]:
        return tuple(self._diaries)

    @property
    def has_pending_timer(self) -> bool:
        return self._armed_token is not None

    def snapshot(self) -> JourneySnapshot:
        return JourneySnapshot(
            phase=self.phase,
            profile=self._profile,
            travel_state=self._state,
            events=list(self._log.snapshot()),
            diaries=list(self._diaries),
            has_pending_timer=self.has_pending_timer,
        )

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def start_journey(self, profile: CharacterProfile) -> JourneyUpdate:
        """Set off. All-or-nothing: on any failure the journey stays not_started."""
        if self._state.is_active:
            raise PhaseError("A journey is already under way; reset it first")
        validate_profile(profile)
        prompt = build_start_prompt(profile, self._clock.now())

        generation = self._begin("journey_start")
        try:
            update = await self._request("journey_start", prompt)
            self._ensure_current(generation)
            self._profile = profile
            self._apply(update, "journey_start")
        finally:
            self._finish(generation)

        logger.info("journey started name=%r from=%r to=%r",
                    profile.name, profile.departure_location, profile.destination)
        return update

    async def submit_user_message(self, text: str) -> JourneyUpdate:
        """Steer the character. Cancels the pending auto-advance before calling out."""
        if not self._state.is_active or self._profile is None:
            raise PhaseError("No journey is under way")
        if not text.strip():
            raise ValidationError("Message is empty", fields=["message"])
        prompt = build_intervention_prompt(self._profile, self._state, text, self._clock.now())

        generation = self._begin("user_intervention", supersede_auto=True)
        try:
            update = await self._request("user_intervention", prompt)
            self._ensure_current(generation)
            self._apply(update, "user_intervention", user_message=text)
        finally:
            self._finish(generation)
        return update

    async def auto_advance(self) -> JourneyUpdate | None:
        """Produce the next event on a timer. Failures are logged, never raised."""
        if not self._state.is_active or self._profile is None:
            logger.debug("auto-advance ignored: no journey under way")
            return None
        if self._in_flight is not None:
            logger.info("auto-advance skipped: %s already in flight", self._in_flight.stage)
            return None
        prompt = build_continue_prompt(
            self._profile, self._state, self._log.snapshot(), self._clock.now()
        )

        generation = self._begin("auto_advance")
        try:
            update = await self._request("auto_advance", prompt)
            self._ensure_current(generation)
            self._apply(update, "auto_advance")
            return update
        except StaleUpdateError:
            logger.info("auto-advance result discarded: superseded (generation %d)", generation)
        except (TransportError, MalformedResponseError) as e:
            logger.warning("auto-advance failed, next event not scheduled: %s", e)
        except Exception:
            logger.exception("auto-advance failed unexpectedly")
        finally:
            self._finish(generation)
        return None

    async def write_diary(self) -> DiaryEntry:
        """Summarise today's events into a diary entry (replacing today's, if any)."""
        if not self._state.is_active or self._profile is None:
            raise PhaseError("No journey is under way")
        if self._diary_in_flight:
            raise BusyError("A diary entry is already being written")
        now = self._clock.now()
        day = now.date()
        events = self._log.on_day(day)
        if not events:
            raise PhaseError("Nothing has happened today yet")
        prompt = build_diary_prompt(self._profile, events, day)

        epoch = self._epoch
        self._diary_in_flight = True
        try:
            raw = await self._call_llm("diary", prompt)
            entry = parse_diary_entry(raw, self._last_diary_id + 1, day)
            if epoch != self._epoch:
                raise StaleUpdateError("Journey was reset while the diary was being written")
            self._diaries = [d for d in self._diaries if d.date != day]
            self._diaries.append(entry)
            self._last_diary_id = entry.id
        finally:
            if epoch == self._epoch:
                self._diary_in_flight = False

        logger.info("diary written date=%s title=%r", day.isoformat(), entry.title)
        return entry

    def reset_all(self) -> None:
        """Forget everything. Any in-flight result will be discarded when it lands."""
        self._cancel_timer()
        self._generation += 1
        self._epoch += 1
        self._in_flight = None
        self._diary_in_flight = False
        self._profile = None
        self._state = TravelState()
        self._log.clear()
        self._diaries.clear()
        logger.info("journey reset")

    # ------------------------------------------------------------------
    # Update path
    # ------------------------------------------------------------------

    def _begin(self, stage: EventKind, *, supersede_auto: bool = False) -> int:
        """Claim the update slot: disarm the timer and take a new generation."""
        if self._in_flight is not None:
            if not (supersede_auto and self._in_flight.stage == "auto_advance"):
                raise BusyError(f"An update is already in flight ({self._in_flight.stage})")
            logger.info("superseding in-flight auto-advance (generation %d)",
                        self._in_flight.generation)
        self._cancel_timer()
        self._generation += 1
        self._in_flight = _Flight(self._generation, stage)
        logger.debug("update begun stage=%s generation=%d", stage, self._generation)
        return self._generation

    def _finish(self, generation: int) -> None:
        if self._in_flight is not None and self._in_flight.generation == generation:
            self._in_flight = None

    def _ensure_current(self, generation: int) -> None:
        if generation != self._generation:
            raise StaleUpdateError(
                f"Update {generation} was superseded by {self._generation}"
            )

    async def _call_llm(self, stage: str, prompt: str) -> str:
        try:
            if self._timeout is None:
                return await self._llm(stage, prompt)
            return await asyncio.wait_for(self._llm(stage, prompt), self._timeout)
        except asyncio.TimeoutError as e:
            raise TransportError(f"LLM backend timed out after {self._timeout}s") from e

    async def _request(self, stage: EventKind, prompt: str) -> JourneyUpdate:
        raw = await self._call_llm(stage, prompt)
        return parse_journey_update(raw)

    def _apply(self, update: JourneyUpdate, kind: EventKind, user_message: str | None = None) -> None:
        """Commit a parsed update. Synchronous, so nothing can interleave."""
        now = self._clock.now()
        delay_hours = self._clamp_delay(update.next_event_delay_hours)
        event = self._log.new_event(
            now, kind, update.event_description,
            needs_user_input=update.needs_user_input,
            user_message=user_message,
        )
        self._log.append(event)
        self._state = TravelState(
            is_active=True,
            current_location=update.current_location,
            current_activity=update.current_activity,
            last_update=now,
            next_event_time=now + timedelta(hours=delay_hours),
        )
        self._schedule_next(delay_hours)
        logger.info("applied %s event id=%d location=%r next in %.2fh",
                    kind, event.id, update.current_location, delay_hours)

    def _clamp_delay(self, hours: float) -> float:
        clamped = min(max(hours, self._min_delay_hours), self._max_delay_hours)
        if clamped != hours:
            logger.warning("next event delay %.2fh outside [%.2f, %.2f], using %.2fh",
                           hours, self._min_delay_hours, self._max_delay_hours, clamped)
        return clamped

    # ------------------------------------------------------------------
    # Timer slot
    # ------------------------------------------------------------------

    def _schedule_next(self, delay_hours: float) -> None:
        self._cancel_timer()
        self._timer_token += 1
        token = self._timer_token
        handle = self._scheduler.schedule_after(
            delay_hours * SECONDS_PER_HOUR, functools.partial(self._on_timer, token)
        )
        self._timers[NEXT_EVENT_SLOT] = handle
        self._armed_token = token

    def _cancel_timer(self) -> None:
        handle = self._timers.pop(NEXT_EVENT_SLOT, None)
        if handle is not None:
            handle.cancel()
        self._armed_token = None

    async def _on_timer(self, token: int) -> None:
        if token != self._armed_token:
            logger.debug("timer %d fired after being replaced; ignored", token)
            return
        self._timers.pop(NEXT_EVENT_SLOT, None)
        self._armed_token = None
        await self.auto_advance()
