"""Journey endpoints: start, message, diary, reset, snapshot."""

from fastapi import APIRouter, Request

from avatar_journey.models import (
    CharacterProfile,
    DiaryEntry,
    JourneySnapshot,
    JourneyUpdate,
    TravelEvent,
)
from avatar_journey.orchestrator import JourneyOrchestrator

from .models import MessageBody

router = APIRouter()


def _orchestrator(request: Request) -> JourneyOrchestrator:
    return request.app.state.orchestrator


@router.get("/journey", response_model=JourneySnapshot)
async def get_journey(request: Request):
    """Current phase, profile, travel state, events and diaries."""
    return _orchestrator(request).snapshot()


@router.get("/journey/events", response_model=list[TravelEvent])
async def get_events(request: Request):
    """Journey events in the order they were applied."""
    return list(_orchestrator(request).events)


@router.post("/journey/start", response_model=JourneyUpdate)
async def start_journey(request: Request, body: CharacterProfile):
    """Set off with the given character profile."""
    return await _orchestrator(request).start_journey(body)


@router.post("/journey/messages", response_model=JourneyUpdate)
async def send_message(request: Request, body: MessageBody):
    """Send the traveller a suggestion or instruction."""
    return await _orchestrator(request).submit_user_message(body.message)


@router.post("/journey/diary", response_model=DiaryEntry)
async def write_diary(request: Request):
    """Write today's diary entry from today's events."""
    return await _orchestrator(request).write_diary()


@router.delete("/journey")
async def reset_journey(request: Request):
    """Clear the character, travel state, events and diaries."""
    _orchestrator(request).reset_all()
    return {"ok": True}
