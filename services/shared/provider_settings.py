"""
Environment-driven configuration for the text generation backend.

Every AI-assisted operation reads the same family of variables, derived from a
single prefix (e.g. RECOMMENDATION_PROVIDER, RECOMMENDATION_TIMEOUT_SECONDS),
so timeouts, sampling temperature, output bounds and retry counts are parsed
and validated in one place.
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

SUPPORTED_PROVIDERS = frozenset({"deterministic", "mock", "openai"})
REQUIRED_OPENAI_ENV_VARS = ("OPENAI_API_KEY", "OPENAI_MODEL", "OPENAI_API_BASE")
MAX_TEMPERATURE = 2.0

N = TypeVar("N", int, float)


class ProviderSettingsError(RuntimeError):
    """Raised when provider configuration cannot be constructed."""


@dataclass(frozen=True, slots=True)
class OpenAIConfig:
    api_key: str
    model: str
    api_base: str


@dataclass(frozen=True, slots=True)
class ProviderSettings:
    provider_name: str
    timeout_seconds: float
    temperature: float
    max_output_tokens: int
    max_attempts: int = 1
    fixture_path: Optional[str] = None
    openai: Optional[OpenAIConfig] = None


def env_names(prefix: str) -> dict[str, str]:
    """Map each setting to the environment variable that controls it for `prefix`."""
    return {
        "provider": f"{prefix}_PROVIDER",
        "timeout": f"{prefix}_TIMEOUT_SECONDS",
        "temperature": f"{prefix}_TEMPERATURE",
        "max_tokens": f"{prefix}_MAX_TOKENS",
        "max_attempts": f"{prefix}_MAX_ATTEMPTS",
        "fixture": f"{prefix}_PROVIDER_FIXTURE",
    }


def load_provider_settings(
    prefix: str,
    *,
    default_provider: str = "deterministic",
    default_timeout: float = 20.0,
    default_temperature: float = 0.1,
    default_max_tokens: int = 1500,
    default_max_attempts: int = 1,
) -> ProviderSettings:
    """
    Construct ProviderSettings from the environment variables named after `prefix`.

    Args:
        prefix: Upper-case stem shared by the variables, e.g. "RECOMMENDATION".
        default_*: Fallback values when the matching variable is unset or empty.
    Raises:
        ProviderSettingsError when a value is malformed, out of range, or the
        openai provider is selected without its credentials.
    """

    names = env_names(prefix)
    provider_name = _read_provider(names["provider"], default_provider)

    timeout_seconds = _read_number(names["timeout"], default_timeout, float)
    if timeout_seconds <= 0:
        raise ProviderSettingsError(f"{names['timeout']} must be greater than zero")

    temperature = _read_number(names["temperature"], default_temperature, float)
    if not 0 <= temperature <= MAX_TEMPERATURE:
        raise ProviderSettingsError(f"{names['temperature']} must be between 0 and {MAX_TEMPERATURE:g}")

    max_output_tokens = _read_number(names["max_tokens"], default_max_tokens, int)
    if max_output_tokens <= 0:
        raise ProviderSettingsError(f"{names['max_tokens']} must be greater than zero")

    max_attempts = _read_number(names["max_attempts"], default_max_attempts, int)
    if max_attempts < 1:
        raise ProviderSettingsError(f"{names['max_attempts']} must be at least 1")

    return ProviderSettings(
        provider_name=provider_name,
        timeout_seconds=timeout_seconds,
        temperature=temperature,
        max_output_tokens=max_output_tokens,
        max_attempts=max_attempts,
        fixture_path=_read_text(names["fixture"]),
        openai=_read_openai_config(names["provider"]) if provider_name == "openai" else None,
    )


def _read_text(env_key: str) -> Optional[str]:
    return (os.getenv(env_key) or "").strip() or None


def _read_provider(env_key: str, default: str) -> str:
    candidate = (_read_text(env_key) or default).lower()
    if candidate not in SUPPORTED_PROVIDERS:
        raise ProviderSettingsError(f"Unsupported provider '{candidate}'")
    return candidate


def _read_number(env_key: str, default: N, cast: Callable[[str], N]) -> N:
    raw_value = _read_text(env_key)
    if raw_value is None:
        return default

    kind = "an integer" if cast is int else "numeric"
    try:
        value = cast(raw_value)
    except ValueError as exc:
        raise ProviderSettingsError(f"{env_key} must be {kind} (received '{raw_value}')") from exc
    if not math.isfinite(value):
        raise ProviderSettingsError(f"{env_key} must be {kind} (received '{raw_value}')")
    return value


def _read_openai_config(provider_env: str) -> OpenAIConfig:
    values = {env_key: _read_text(env_key) for env_key in REQUIRED_OPENAI_ENV_VARS}
    missing = [env_key for env_key, value in values.items() if value is None]
    if missing:
        raise ProviderSettingsError(f"{provider_env}=openai requires the following env vars: {', '.join(missing)}")

    return OpenAIConfig(
        api_key=values["OPENAI_API_KEY"],
        model=values["OPENAI_MODEL"],
        api_base=values["OPENAI_API_BASE"],
    )
