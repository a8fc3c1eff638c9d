"""LLM client - HTTP connection to a generative text backend.

The orchestrator injects an LLM callable matching the protocol:

    async def __call__(self, stage: str, prompt: str) -> str: ...

`stage` identifies why the call is made ("journey_start", "auto_advance",
"user_intervention", "diary"). Implementations use it for logging; the
HTTP client ignores it otherwise.

Two implementations are provided:

    HttpLLM   - real HTTP client for Anthropic Messages, OpenAI-compatible
                 completions, or KoboldCpp. Selected by provider_format.
    DemoLLM   - canned, well-formed journey responses. Lets the service run
                 end-to-end without a model.

Every transport-level failure is raised as TransportError. Whether the
text that did come back is a usable update is the parser's business.
"""

from __future__ import annotations

import itertools
import json
import logging
from typing import Literal, Protocol

import httpx

from avatar_journey.errors import TransportError

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"
DEFAULT_ANTHROPIC_MODEL = "claude-sonnet-4-20250514"


# ---------------------------------------------------------------------------
# Protocol - every LLM implementation must match this signature
# ---------------------------------------------------------------------------

class LLM(Protocol):
    async def __call__(self, stage: str, prompt: str) -> str: ...


# ---------------------------------------------------------------------------
# HttpLLM - connects to a real backend
# ---------------------------------------------------------------------------

ProviderFormat = Literal["anthropic", "openai", "koboldcpp"]


class HttpLLM:
    """Async HTTP client for generative text backends.

    Supported formats:
      "anthropic"  - POST /v1/messages  {"model", "max_tokens", "messages": [...]}
                     Response: {"content": [{"type": "text", "text": "..."}]}
      "openai"     - POST /v1/completions  {"model", "prompt", "max_tokens"}
                     Response: {"choices": [{"text": "..."}]}
      "koboldcpp"  - POST /api/v1/generate  {"prompt", "max_length"}
                     Response: {"results": [{"text": "..."}]}

    Args:
        provider_url:    Base URL of the backend, e.g. "https://api.anthropic.com".
        api_key:         Credential, or empty string if not required.
        provider_format: Wire format to use. Defaults to "anthropic".
        model:           Model identifier (anthropic and openai formats).
        timeout:         HTTP timeout in seconds. Defaults to 120.
        max_length:      Target maximum response length in tokens. Defaults to 1000.
    """

    def __init__(
        self,
        provider_url: str,
        api_key: str = "",
        provider_format: ProviderFormat = "anthropic",
        model: str = "",
        timeout: float = 120.0,
        max_length: int = 1000,
    ) -> None:
        self._base_url = provider_url.rstrip("/")
        self._api_key = api_key
        self._format = provider_format
        self._model = model
        self._timeout = timeout
        self._max_length = max_length

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._format == "anthropic":
            headers["anthropic-version"] = ANTHROPIC_VERSION
            if self._api_key:
                headers["x-api-key"] = self._api_key
        elif self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _build_request(self, prompt: str) -> tuple[str, dict]:
        """Return (url, body) for the configured format."""
        if self._format == "anthropic":
            url = f"{self._base_url}/v1/messages"
            return url, {
                "model": self._model or DEFAULT_ANTHROPIC_MODEL,
                "max_tokens": self._max_length,
                "messages": [{"role": "user", "content": prompt}],
            }

        if self._format == "openai":
            url = f"{self._base_url}/v1/completions"
            body: dict = {"prompt": prompt, "max_tokens": self._max_length}
            if self._model:
                body["model"] = self._model
            return url, body

        # koboldcpp
        url = f"{self._base_url}/api/v1/generate"
        return url, {"prompt": prompt, "max_length": self._max_length}

    def _parse_response(self, data: dict) -> str:
        """Extract the completion text from the response body."""
        if self._format == "anthropic":
            items, label = data.get("content"), "Anthropic"
        elif self._format == "openai":
            items, label = data.get("choices"), "OpenAI-compatible"
        else:
            items, label = data.get("results"), "KoboldCpp"

        first = items[0] if isinstance(items, list) and items else None
        text = first.get("text") if isinstance(first, dict) else None
        if not isinstance(text, str):
            raise TransportError(f"Unexpected response format from {label} backend")
        return text

    async def __call__(self, stage: str, prompt: str) -> str:
        url, body = self._build_request(prompt)
        logger.debug("llm call stage=%s url=%s prompt_len=%d", stage, url, len(prompt))

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=body, headers=self._headers())
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise TransportError(f"Cannot connect to LLM backend at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"LLM backend returned HTTP {e.response.status_code}"
            ) from e
        except httpx.TimeoutException as e:
            raise TransportError(f"LLM backend timed out after {self._timeout}s") from e
        except httpx.HTTPError as e:
            raise TransportError(f"LLM request failed: {e}") from e

        try:
            data = resp.json()
        except ValueError as e:
            raise TransportError("LLM backend returned an undecodable body") from e
        if not isinstance(data, dict):
            raise TransportError("Unexpected response format from LLM backend")

        text = self._parse_response(data)
        logger.debug("llm response stage=%s len=%d", stage, len(text))
        return text


# ---------------------------------------------------------------------------
# DemoLLM - canned responses; useful for running without a model
# ---------------------------------------------------------------------------

_DEMO_STOPS = [
    ("a roadside service area", "stretching their legs and buying coffee",
     "The first stretch of road slips by. A quiet service area offers bitter coffee and "
     "a vending machine that only takes exact change."),
    ("a small market town", "wandering the morning market",
     "Stalls of dried fruit and hand-woven baskets line the square. A vendor insists on "
     "a taste of something sour and unforgettable."),
    ("a hillside viewpoint", "watching the valley from a stone bench",
     "Clouds drag their shadows across the fields below. Another traveller shares a map "
     "with a few routes circled in red."),
]


class DemoLLM:
    """Returns well-formed journey JSON without any network calls.

    Walks through a short fixed itinerary, one stop per call. Diary calls
    get a fixed diary entry. Meant for demos and wiring checks; tests use
    StubLLM when they need controlled responses.
    """

    def __init__(self, delay_hours: float = 1.0) -> None:
        self._delay_hours = delay_hours
        self._stops = itertools.cycle(_DEMO_STOPS)

    async def __call__(self, stage: str, prompt: str) -> str:
        logger.debug("DemoLLM stage=%s prompt_len=%d", stage, len(prompt))
        if stage == "diary":
            return json.dumps({
                "title": "On the road",
                "content": "Today was long and good. The road kept offering small surprises.",
                "keyEvents": ["set off", "stopped at a market"],
            })
        location, activity, description = next(self._stops)
        return json.dumps({
            "currentLocation": location,
            "currentActivity": activity,
            "eventDescription": description,
            "nextEventTime": self._delay_hours,
            "needsUserInput": False,
        })
