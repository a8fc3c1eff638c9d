"""Handlebars prompt rendering for journey updates and diaries.

Three journey prompts share one identity block and one response schema:

  start         - the character has just set off
  continue      - auto-advance; current state plus the latest events
  intervention  - the user's message is embedded verbatim as a directive

Free text supplied by the user (names, descriptions, messages) is rendered
with triple-stash so it reaches the backend unescaped.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import date, datetime
from typing import Any

import pybars

from avatar_journey.catalog import travel_method, travel_style
from avatar_journey.errors import ValidationError
from avatar_journey.models import CharacterProfile, TravelEvent, TravelState

_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}

REQUIRED_PROFILE_FIELDS = ("name", "departure_location", "destination")
RECENT_EVENT_COUNT = 3


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


# ── Response schema ──────────────────────────────────────

# (field, type, constraint) - rendered into every journey prompt
RESPONSE_SCHEMA: list[tuple[str, str, str]] = [
    ("currentLocation", "string", "where the character is now, as a specific place"),
    ("currentActivity", "string", "what the character is doing right now"),
    ("eventDescription", "string", "what happened, told as a story of about 200 words"),
    ("nextEventTime", "number", "hours until the next event, usually between 0.5 and 3"),
    ("needsUserInput", "boolean", "true only if the character is waiting for a decision"),
]


def schema_description() -> str:
    """The response schema as an example object followed by per-field rules."""
    example = ",\n".join(
        f'  "{name}": <{type_}>' for name, type_, _ in RESPONSE_SCHEMA
    )
    rules = "\n".join(
        f"- {name} ({type_}): {constraint}" for name, type_, constraint in RESPONSE_SCHEMA
    )
    return f"{{\n{example}\n}}\n\n{rules}"


# ── Templates ────────────────────────────────────────────

IDENTITY_BLOCK = """\
## Character
- Name: {{{char.name}}}
- Personality: {{{char.description}}}
- Departure: {{{char.departure}}}
- Destination: {{{char.destination}}}
- Travel method: {{{char.method}}}
- Travel style: {{{char.style}}}
"""

STATE_BLOCK = """\
## Current State
- Location: {{{state.location}}}
- Activity: {{{state.activity}}}
{{#if state.last_update}}
- Last update: {{state.last_update}}
{{/if}}
"""

SCHEMA_BLOCK = """\
Reply with a single JSON object and nothing else:

{{{schema}}}
"""

START_PROMPT = (
    """\
You are the narrator of a virtual travel game. You write realistic travel \
experiences for the user's virtual character.

"""
    + IDENTITY_BLOCK
    + """
It is now {{now}} and the character has just set off. Write the first \
event of the journey and estimate when the next one will happen.

"""
    + SCHEMA_BLOCK
    + """
Requirements:
1. Make the experience believable.
2. Take the travel method and the real route from departure to destination into account.
3. Keep the event interesting and true to the character.
4. Keep the time estimate reasonable (usually 0.5 to 3 hours).
"""
)

CONTINUE_PROMPT = (
    """\
You are the narrator of a virtual travel game. You write realistic travel \
experiences for the user's virtual character.

"""
    + IDENTITY_BLOCK
    + "\n"
    + STATE_BLOCK
    + """{{#if events}}
## Recent Events
{{#each events}}
- [{{time}}] {{{content}}}
{{/each}}
{{/if}}

It is now {{now}}. Time has passed since the last update. Continue the \
journey with the next event, following on naturally from the current state.

"""
    + SCHEMA_BLOCK
    + """
Requirements:
1. Keep continuity with the current location and activity.
2. Make progress towards the destination in a way that fits the travel method.
3. Keep the event interesting and true to the character.
4. Keep the time estimate reasonable (usually 0.5 to 3 hours).
"""
)

INTERVENTION_PROMPT = (
    """\
{{{char.name}}} is travelling.

"""
    + IDENTITY_BLOCK
    + "\n"
    + STATE_BLOCK
    + """
It is now {{now}}. The user has sent a message to steer what the character does:

"{{{message}}}"

Treat the message as a directive. Write what the character does next \
following the user's suggestion and what they run into. The location may \
change; the activity should reflect the suggestion.

"""
    + SCHEMA_BLOCK
)

DIARY_PROMPT = """\
You are {{{char.name}}}, travelling from {{{char.departure}}} to \
{{{char.destination}}}. Write your travel diary for {{date}} in the first \
person, based on today's events:

{{#each events}}
- [{{time}}] {{#if user_message}}(following the suggestion "{{{user_message}}}") {{/if}}{{{content}}}
{{/each}}

Reply with a single JSON object and nothing else:

{
  "title": <string, a short title for the day>,
  "content": <string, the diary entry, about 300 words>,
  "keyEvents": <array of strings, the day's highlights in a few words each>
}
"""


# ── Rendering ────────────────────────────────────────────


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return str(compiled(context))
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


def validate_profile(profile: CharacterProfile) -> None:
    """Raise ValidationError naming every missing required field."""
    missing = [
        field for field in REQUIRED_PROFILE_FIELDS
        if not getattr(profile, field).strip()
    ]
    if missing:
        raise ValidationError(
            "Character profile is incomplete: missing " + ", ".join(missing),
            fields=missing,
        )


def _format_time(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%d %H:%M")


def build_context(
    profile: CharacterProfile,
    now: datetime,
    state: TravelState | None = None,
    events: Sequence[TravelEvent] | None = None,
    message: str | None = None,
) -> dict[str, Any]:
    """Assemble template variables from the profile and travel state."""
    method = travel_method(profile.travel_method) if profile.travel_method else None
    style = travel_style(profile.travel_style) if profile.travel_style else None

    ctx: dict[str, Any] = {
        "char": {
            "name": profile.name,
            "description": profile.description or "(not given)",
            "departure": profile.departure_location,
            "destination": profile.destination,
            "method": f"{method.name} ({method.description})" if method else "unspecified",
            "style": f"{style.name} ({style.description})" if style else "unspecified",
        },
        "now": _format_time(now),
        "schema": schema_description(),
    }
    if state is not None:
        ctx["state"] = {
            "location": state.current_location,
            "activity": state.current_activity,
            "last_update": _format_time(state.last_update) if state.last_update else "",
        }
    if events is not None:
        ctx["events"] = [
            {
                "time": _format_time(e.timestamp),
                "content": e.content,
                "user_message": e.user_message or "",
            }
            for e in events
        ]
    if message is not None:
        ctx["message"] = message
    return ctx


def build_start_prompt(profile: CharacterProfile, now: datetime) -> str:
    validate_profile(profile)
    return render_prompt(START_PROMPT, build_context(profile, now))


def build_continue_prompt(
    profile: CharacterProfile,
    state: TravelState,
    recent_events: Sequence[TravelEvent],
    now: datetime,
) -> str:
    """Auto-advance prompt: the start prompt's context plus where things stand."""
    validate_profile(profile)
    events = list(recent_events)[-RECENT_EVENT_COUNT:]
    return render_prompt(CONTINUE_PROMPT, build_context(profile, now, state=state, events=events))


def build_intervention_prompt(
    profile: CharacterProfile,
    state: TravelState,
    message: str,
    now: datetime,
) -> str:
    validate_profile(profile)
    return render_prompt(INTERVENTION_PROMPT, build_context(profile, now, state=state, message=message))


def build_diary_prompt(
    profile: CharacterProfile,
    events: Sequence[TravelEvent],
    day: date,
) -> str:
    validate_profile(profile)
    ctx = build_context(profile, datetime.combine(day, datetime.min.time()), events=events)
    ctx["date"] = day.isoformat()
    return render_prompt(DIARY_PROMPT, ctx)
