"""Core domain models.

The orchestrator, prompt builder and parser all operate on these types.
Pydantic is used for validation and serialisation at every data boundary.
Field names are snake_case in Python and camelCase on the wire; both are
accepted on input.
"""

from __future__ import annotations

from datetime import date as CalendarDate, datetime
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictBool, StrictStr, field_validator
from pydantic.alias_generators import to_camel

from avatar_journey.catalog import TravelMethodId, TravelStyleId

EventKind = Literal[
    "journey_start",
    "auto_advance",
    "user_intervention",
]

Phase = Literal["not_started", "active", "busy"]


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class CharacterProfile(_WireModel):
    """The traveller. Frozen once a journey starts.

    Required fields are checked by prompts.validate_profile() rather than
    here, so an incomplete form still parses and gets a ValidationError
    naming every missing field.
    """

    name: str = ""
    description: str = ""
    departure_location: str = ""
    destination: str = ""
    travel_method: TravelMethodId | None = None
    travel_style: TravelStyleId | None = None


class TravelState(_WireModel):
    """Where the traveller is and what they are doing."""

    is_active: bool = False
    current_location: str = ""
    current_activity: str = ""
    last_update: datetime | None = None
    next_event_time: datetime | None = None


class JourneyUpdate(_WireModel):
    """One parsed backend response. Consumed immediately by the orchestrator."""

    current_location: StrictStr
    current_activity: StrictStr
    event_description: StrictStr
    next_event_delay_hours: float = Field(
        validation_alias=AliasChoices(
            "nextEventTime", "nextEventDelayHours", "next_event_delay_hours"
        ),
        serialization_alias="nextEventTime",
        allow_inf_nan=False,
    )
    needs_user_input: StrictBool = False

    @field_validator("next_event_delay_hours", mode="before")
    @classmethod
    def _numeric_only(cls, value: Any) -> Any:
        # bool is an int subclass; numeric strings are not accepted either
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError("must be a number of hours")
        return value


class TravelEvent(_WireModel):
    """A single entry in the journey's append-only event log."""

    id: int
    timestamp: datetime
    kind: EventKind
    content: str
    needs_user_input: bool = False
    user_message: str | None = None  # present on user_intervention only


class DiaryEntry(_WireModel):
    """A day's travel diary, written from that day's events."""

    id: int
    date: CalendarDate
    title: str
    content: str
    key_events: list[str] = Field(default_factory=list)


class JourneySnapshot(_WireModel):
    """Read-only view of the whole journey for the presentation layer."""

    phase: Phase
    profile: CharacterProfile | None = None
    travel_state: TravelState
    events: list[TravelEvent] = Field(default_factory=list)
    diaries: list[DiaryEntry] = Field(default_factory=list)
    has_pending_timer: bool = False
