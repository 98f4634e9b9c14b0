from __future__ import annotations

"""
Provider abstraction for the external text generation call.

The recommendation pipeline treats the model as an opaque capability: a prompt,
a temperature and an output bound go in, raw text comes out. Any backend that
honours this shape can be swapped in through configuration.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

FIXTURE_ENV_VAR = "RECOMMENDATION_PROVIDER_FIXTURE"


class TextGenerationUnavailableError(RuntimeError):
    """Raised by generators that cannot produce text at all (e.g. no model configured)."""


@dataclass(frozen=True, slots=True)
class TextGenerationRequest:
    """
    Contract for text generation inputs.

    Attributes:
        prompt: Complete instruction block sent to the model.
        temperature: Sampling temperature; kept low where output must parse as JSON.
        max_output_tokens: Upper bound on the length of the reply.
    """

    prompt: str
    temperature: float
    max_output_tokens: int


@dataclass(frozen=True, slots=True)
class TextGenerationResponse:
    text: str


@runtime_checkable
class TextGenerator(Protocol):
    """
    Interface for swappable text generation backends.

    Implementations provide a descriptive `name` and a blocking `generate` method.
    Failures are raised as exceptions; callers own the fallback policy.
    """

    name: str

    def generate(self, request: TextGenerationRequest) -> TextGenerationResponse:
        ...


class DeterministicTextGenerator:
    """
    Backend used when no model is configured.

    It never produces text, so every AI-assisted operation degrades to its local
    fallback result.
    """

    name = "deterministic"

    def generate(self, request: TextGenerationRequest) -> TextGenerationResponse:
        raise TextGenerationUnavailableError("AI service temporarily unavailable")


class MockTextGenerator:
    """
    Fixture-driven backend suitable for tests or offline demos.

    The fixture holds raw model text, fences and surrounding prose included, so
    the full cleaning path is exercised.
    """

    name = "mock"

    def __init__(self, fixture_path: str | Path | None = None):
        candidate = fixture_path or os.getenv(FIXTURE_ENV_VAR)
        if candidate is None:
            candidate = _default_fixture_path()

        self._fixture_path = Path(candidate)
        if not self._fixture_path.exists():
            raise FileNotFoundError(f"Mock text generation fixture not found at {self._fixture_path}")

    def generate(self, request: TextGenerationRequest) -> TextGenerationResponse:
        return TextGenerationResponse(text=self._fixture_path.read_text(encoding="utf-8"))


def _default_fixture_path() -> Path:
    service_root = Path(__file__).resolve().parents[1]
    return service_root / "tests" / "fixtures" / "mock_recommendation_response.txt"


def build_text_generator(name: str | None, *, settings: Optional[Any] = None) -> TextGenerator:
    """
    Factory that instantiates the requested text generation backend.
    """

    normalized = (name or "").strip().lower()
    if normalized in ("", "deterministic"):
        return DeterministicTextGenerator()
    if normalized == "mock":
        fixture_path = getattr(settings, "fixture_path", None) if settings is not None else None
        return MockTextGenerator(fixture_path)
    if normalized == "openai":
        # The OpenAI SDK is only needed when this backend is selected.
        from .providers.openai_text import OpenAITextGenerator

        return OpenAITextGenerator(settings=settings)

    raise ValueError(f"Unsupported text generation provider '{name}'")
