import asyncio
import json
from datetime import datetime, timedelta, timezone

import pytest

from avatar_journey.models import CharacterProfile
from avatar_journey.orchestrator import JourneyOrchestrator

START_TIME = datetime(2026, 5, 1, 9, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# StubLLM - dispatches by stage name, independent queue per stage
# ---------------------------------------------------------------------------

class StubLLM:
    """Deterministic LLM stand-in for tests.

    Provide a dict mapping stage name → list of responses (in call order).
    A response may be a string, an exception instance (raised), or an
    asyncio.Future (awaited, so the test decides when the call completes).
    Raises if a stage is called more times than responses were provided.
    """

    def __init__(self, responses: dict[str, list] | None = None) -> None:
        self._queues: dict[str, list] = {k: list(v) for k, v in (responses or {}).items()}
        self.calls: list[tuple[str, str]] = []

    def queue(self, stage: str, *responses) -> None:
        self._queues.setdefault(stage, []).extend(responses)

    async def __call__(self, stage: str, prompt: str) -> str:
        self.calls.append((stage, prompt))
        queue = self._queues.get(stage)
        if not queue:
            raise AssertionError(
                f"StubLLM: unexpected call to stage={stage!r} "
                f"(no responses queued). calls so far: {self.calls}"
            )
        response = queue.pop(0)
        if isinstance(response, asyncio.Future):
            response = await response
        if isinstance(response, BaseException):
            raise response
        return response

    def assert_exhausted(self) -> None:
        """Assert every queued response was consumed - catches missing LLM calls."""
        leftover = {k: v for k, v in self._queues.items() if v}
        if leftover:
            raise AssertionError(f"StubLLM: unused responses remain: {leftover}")


# ---------------------------------------------------------------------------
# Virtual time
# ---------------------------------------------------------------------------

class FixedClock:
    def __init__(self, start: datetime = START_TIME) -> None:
        self.current = start

    def now(self) -> datetime:
        return self.current


class ManualTimer:
    def __init__(self, due: datetime, delay_seconds: float, callback) -> None:
        self.due = due
        self.delay_seconds = delay_seconds
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Scheduler whose timers only fire when the test advances virtual time."""

    def __init__(self, clock: FixedClock) -> None:
        self.clock = clock
        self.timers: list[ManualTimer] = []

    def schedule_after(self, delay_seconds: float, callback) -> ManualTimer:
        timer = ManualTimer(self.clock.now() + timedelta(seconds=delay_seconds), delay_seconds, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> list[ManualTimer]:
        return [t for t in self.timers if not t.cancelled]

    async def advance(self, seconds: float) -> None:
        """Move time forward, running each due timer's callback to completion."""
        target = self.clock.now() + timedelta(seconds=seconds)
        while True:
            due = sorted(
                (t for t in self.pending if t.due <= target),
                key=lambda t: t.due,
            )
            if not due:
                break
            timer = due[0]
            timer.cancelled = True  # fired timers are no longer pending
            self.clock.current = timer.due
            await timer.callback()
        self.clock.current = target


# ---------------------------------------------------------------------------
# Response builders
# ---------------------------------------------------------------------------

def update_json(
    location: str = "X outskirts",
    activity: str = "driving",
    description: str = "The city thins out into fields as the road opens up.",
    delay: float = 1.0,
    needs_input: bool = False,
    **extra,
) -> str:
    body = {
        "currentLocation": location,
        "currentActivity": activity,
        "eventDescription": description,
        "nextEventTime": delay,
        "needsUserInput": needs_input,
    }
    body.update(extra)
    return json.dumps(body)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def profile() -> CharacterProfile:
    return CharacterProfile(
        name="A",
        description="Curious and a little reckless.",
        departure_location="X",
        destination="Y",
        travel_method="driving",
        travel_style="adventure",
    )


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def scheduler(clock: FixedClock) -> ManualScheduler:
    return ManualScheduler(clock)


@pytest.fixture
def llm() -> StubLLM:
    return StubLLM()


@pytest.fixture
def orchestrator(llm: StubLLM, scheduler: ManualScheduler, clock: FixedClock) -> JourneyOrchestrator:
    return JourneyOrchestrator(llm, scheduler=scheduler, clock=clock)


@pytest.fixture
async def active(orchestrator: JourneyOrchestrator, llm: StubLLM, profile: CharacterProfile) -> JourneyOrchestrator:
    """Orchestrator with a journey already started (one journey_start event, 1h timer)."""
    llm.queue("journey_start", update_json())
    await orchestrator.start_journey(profile)
    return orchestrator
