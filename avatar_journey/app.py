"""FastAPI application factory.

One process serves one journey: the app owns a single JourneyOrchestrator
on app.state, wired to the backend configured in the environment.
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from avatar_journey.config import Config, load_config
from avatar_journey.errors import (
    BusyError,
    JourneyError,
    MalformedResponseError,
    PhaseError,
    StaleUpdateError,
    TransportError,
    ValidationError,
)
from avatar_journey.llm import LLM, DemoLLM, HttpLLM
from avatar_journey.orchestrator import JourneyOrchestrator
from avatar_journey.routes import router

# error class → (HTTP status, machine-readable code)
ERROR_STATUS: dict[type[JourneyError], tuple[int, str]] = {
    ValidationError: (422, "validation"),
    PhaseError: (409, "phase"),
    BusyError: (409, "busy"),
    StaleUpdateError: (409, "stale"),
    TransportError: (502, "transport"),
    MalformedResponseError: (502, "malformed_response"),
}


def build_llm(config: Config) -> LLM:
    if config.provider_format == "demo":
        return DemoLLM()
    return HttpLLM(
        provider_url=config.provider_url,
        api_key=config.api_key,
        provider_format=config.provider_format,
        model=config.model,
        timeout=config.timeout,
        max_length=config.max_length,
    )


def build_orchestrator(config: Config) -> JourneyOrchestrator:
    return JourneyOrchestrator(
        build_llm(config),
        timeout=config.timeout,
        min_delay_hours=config.min_event_delay_hours,
        max_delay_hours=config.max_event_delay_hours,
    )


async def journey_error_handler(request: Request, exc: Exception) -> JSONResponse:
    status, code = ERROR_STATUS.get(type(exc), (500, "journey"))
    body: dict = {"detail": str(exc), "error": code}
    if isinstance(exc, ValidationError):
        body["fields"] = exc.fields
    return JSONResponse(body, status_code=status)


def create_app(
    orchestrator: JourneyOrchestrator | None = None,
    config: Config | None = None,
) -> FastAPI:
    if orchestrator is None:
        orchestrator = build_orchestrator(config or load_config())

    app = FastAPI(title="Avatar Journey")
    app.state.orchestrator = orchestrator
    app.add_exception_handler(JourneyError, journey_error_handler)
    app.include_router(router, prefix="/api")
    return app
