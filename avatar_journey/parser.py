"""Backend output parsing.

The backend is asked for a bare JSON object but often wraps it in a
markdown fence or a sentence of prose. Both are tolerated; anything that
still isn't a well-typed object raises MalformedResponseError.
"""

from __future__ import annotations

import json
import logging
from datetime import date
from typing import Any

import pydantic

from avatar_journey.errors import MalformedResponseError
from avatar_journey.models import DiaryEntry, JourneyUpdate

logger = logging.getLogger(__name__)


def strip_code_fence(text: str) -> str:
    """Remove a surrounding ``` / ```json fence, if any."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        cleaned = "\n".join(lines).strip()
    return cleaned


def _decode_object(text: str) -> dict[str, Any]:
    cleaned = strip_code_fence(text)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        # Fall back to the outermost {...} span when prose surrounds the object
        start, end = cleaned.find("{"), cleaned.rfind("}")
        if start == -1 or end <= start:
            raise MalformedResponseError(f"Response is not valid JSON: {e}") from e
        try:
            data = json.loads(cleaned[start:end + 1])
        except json.JSONDecodeError as e2:
            raise MalformedResponseError(f"Response is not valid JSON: {e2}") from e2
    if not isinstance(data, dict):
        raise MalformedResponseError(
            f"Response must be a JSON object, got {type(data).__name__}"
        )
    return data


def _malformed(e: pydantic.ValidationError, what: str) -> MalformedResponseError:
    first = e.errors()[0]
    field = ".".join(str(part) for part in first["loc"]) or None
    return MalformedResponseError(f"Invalid {what}: {field}: {first['msg']}", field=field)


def parse_journey_update(raw: str) -> JourneyUpdate:
    """Parse backend text into a JourneyUpdate.

    Required: currentLocation, currentActivity, eventDescription (strings),
    nextEventTime (number of hours). needsUserInput defaults to false.
    """
    data = _decode_object(raw)
    try:
        update = JourneyUpdate.model_validate(data)
    except pydantic.ValidationError as e:
        raise _malformed(e, "journey update") from e
    logger.debug(
        "parsed update location=%r delay=%.2fh needs_input=%s",
        update.current_location, update.next_event_delay_hours, update.needs_user_input,
    )
    return update


def parse_diary_entry(raw: str, entry_id: int, day: date) -> DiaryEntry:
    """Parse backend text into a DiaryEntry for the given day."""
    data = _decode_object(raw)
    title = data.get("title")
    content = data.get("content")
    key_events = data.get("keyEvents", data.get("key_events", []))
    if not isinstance(title, str):
        raise MalformedResponseError("Invalid diary entry: title must be a string", field="title")
    if not isinstance(content, str):
        raise MalformedResponseError("Invalid diary entry: content must be a string", field="content")
    if not isinstance(key_events, list) or not all(isinstance(k, str) for k in key_events):
        raise MalformedResponseError(
            "Invalid diary entry: keyEvents must be a list of strings", field="keyEvents"
        )
    return DiaryEntry(id=entry_id, date=day, title=title, content=content, key_events=key_events)
