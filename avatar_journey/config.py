"""Environment configuration.

Values come from the process environment, with a `.env` file in the repo
root loaded first. Anything unset falls back to _CONFIG_DEFAULTS.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

from dotenv import load_dotenv
from pydantic import BaseModel

ROOT = Path(__file__).parent.parent

ProviderChoice = Literal["anthropic", "openai", "koboldcpp", "demo"]

_CONFIG_DEFAULTS: dict[str, Any] = {
    "provider_url": "https://api.anthropic.com",
    "api_key": "",
    "provider_format": "anthropic",
    "model": "",
    "timeout": 120.0,
    "max_length": 1000,
    "min_event_delay_hours": 0.5,
    "max_event_delay_hours": 3.0,
    "host": "0.0.0.0",
    "port": 13013,
}

# config field → environment variable
_ENV_VARS: dict[str, str] = {
    "provider_url": "LLM_PROVIDER_URL",
    "api_key": "LLM_API_KEY",
    "provider_format": "LLM_PROVIDER_FORMAT",
    "model": "LLM_MODEL",
    "timeout": "LLM_TIMEOUT",
    "max_length": "LLM_MAX_LENGTH",
    "min_event_delay_hours": "MIN_EVENT_DELAY_HOURS",
    "max_event_delay_hours": "MAX_EVENT_DELAY_HOURS",
    "host": "HOST",
    "port": "PORT",
}


class Config(BaseModel):
    provider_url: str
    api_key: str = ""
    provider_format: ProviderChoice = "anthropic"
    model: str = ""
    timeout: float = 120.0
    max_length: int = 1000
    min_event_delay_hours: float = 0.5
    max_event_delay_hours: float = 3.0
    host: str = "0.0.0.0"
    port: int = 13013


def load_config(env_file: Path | None = None, **overrides: Any) -> Config:
    """Read config, returning defaults merged with environment values.

    Keyword overrides win over both (used by the launcher and tests).
    """
    load_dotenv(env_file or ROOT / ".env")
    values = dict(_CONFIG_DEFAULTS)
    for field, var in _ENV_VARS.items():
        raw = os.getenv(var)
        if raw is not None and raw != "":
            values[field] = raw
    values.update({k: v for k, v in overrides.items() if v is not None})
    return Config.model_validate(values)
