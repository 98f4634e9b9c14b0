"""
Recommendation Service: prompt → model call → cleaning/validation → fallback.

Every public operation returns a complete result. Failures of the external call
and unusable model output are reported to a FallbackObserver and replaced with a
locally synthesized result, so callers never see an exception from here.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol, Sequence, TypeVar

from shared.observability.privacy import hash_payload, mask_labels
from shared.observability.telemetry import model_call_span

from .budget_model import BudgetInput, GoalItem, GoalReview, Recommendation
from .fallback import create_fallback_goal_review, create_fallback_recommendation, create_fallback_tips
from .prompts import build_analysis_prompt, build_goal_review_prompt, build_quick_tips_prompt
from .recommendation_parser import (
    InvalidRecommendation,
    ModelOutputError,
    parse_goal_review,
    parse_recommendation,
    parse_tips,
)
from .text_generation import TextGenerationRequest, TextGenerator

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.1
DEFAULT_MAX_OUTPUT_TOKENS = 1500
QUICK_TIPS_TEMPERATURE = 0.4
QUICK_TIPS_MAX_OUTPUT_TOKENS = 512
GOAL_REVIEW_TEMPERATURE = 0.2
GOAL_REVIEW_MAX_OUTPUT_TOKENS = 1024

T = TypeVar("T")


@dataclass(frozen=True)
class FallbackEvent:
    """
    Details of one degraded operation.

    Attributes:
        operation: "recommendation", "quick_tips" or "goal_review".
        provider: Name of the text generator that failed.
        error_type: Exception class name, e.g. "APITimeoutError" or "InvalidRecommendationError".
        error_message: Human-readable reason; also surfaced to users where relevant.
        attempts: Number of model calls made before giving up.
        prompt_hash: SHA-256 of the prompt, for correlating with request logs.
    """

    operation: str
    provider: str
    error_type: str
    error_message: str
    attempts: int
    prompt_hash: str


class FallbackObserver(Protocol):
    def on_fallback(self, event: FallbackEvent) -> None:
        ...


class LoggingFallbackObserver:
    """Default observer: one structured warning per fallback."""

    def __init__(self, log: Optional[logging.Logger] = None):
        self._logger = log or logger

    def on_fallback(self, event: FallbackEvent) -> None:
        self._logger.warning(
            {
                "event": "recommendation_fallback",
                "operation": event.operation,
                "provider": event.provider,
                "error_type": event.error_type,
                "error_message": event.error_message,
                "attempts": event.attempts,
                "prompt_hash": event.prompt_hash,
            }
        )


class _AttemptsExhausted(Exception):
    def __init__(self, error: Exception, attempts: int):
        super().__init__(str(error))
        self.error = error
        self.attempts = attempts


class RecommendationService:
    """
    Two-tier recommendation pipeline: best-effort model call, guaranteed local fallback.

    Args:
        generator: Text generation backend.
        temperature/max_output_tokens: Bounds for the main analysis call.
        max_attempts: Model calls per operation before falling back (no backoff).
        observer: Receives a FallbackEvent for every degraded operation.
    """

    def __init__(
        self,
        generator: TextGenerator,
        *,
        temperature: float = DEFAULT_TEMPERATURE,
        max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS,
        max_attempts: int = 1,
        timeout_seconds: Optional[float] = None,
        observer: Optional[FallbackObserver] = None,
    ):
        self._generator = generator
        self._temperature = temperature
        self._max_output_tokens = max_output_tokens
        self._max_attempts = max(1, max_attempts)
        self._timeout_seconds = timeout_seconds
        self._observer = observer or LoggingFallbackObserver()

    @property
    def provider_name(self) -> str:
        return self._generator.name

    def get_recommendation(self, budget_input: BudgetInput) -> Recommendation:
        prompt = _analysis_prompt(budget_input)
        prompt_hash = hash_payload(prompt)

        logger.info(
            {
                "event": "recommendation_request",
                "provider": self.provider_name,
                "prompt_hash": prompt_hash,
                "budget_hash": hash_payload(budget_input),
                "expense_labels": mask_labels(item.category for item in budget_input.fixed_expenses),
                "goal_labels": mask_labels(goal.category for goal in budget_input.goals),
            }
        )

        request = TextGenerationRequest(
            prompt=prompt,
            temperature=self._temperature,
            max_output_tokens=self._max_output_tokens,
        )
        try:
            recommendation = self._call_with_attempts("recommendation", request, _parse_or_raise)
        except _AttemptsExhausted as exhausted:
            self._report_fallback("recommendation", exhausted, prompt_hash)
            return create_fallback_recommendation(budget_input, _error_message(exhausted.error))

        logger.info(
            {
                "event": "recommendation_response",
                "provider": self.provider_name,
                "plan_entry_count": len(recommendation.budget_plan),
                "response_hash": hash_payload(recommendation),
            }
        )
        return recommendation

    async def get_recommendation_async(
        self,
        budget_input: BudgetInput,
        timeout: Optional[float] = None,
    ) -> Recommendation:
        """
        Run `get_recommendation` in a worker thread under an explicit timeout.

        A timeout is treated like any other model failure: the caller receives the
        fallback recommendation with a timeout warning. The abandoned worker thread
        is bounded by the backend's own request timeout.
        """
        limit = timeout if timeout is not None else self._timeout_seconds
        try:
            return await asyncio.wait_for(asyncio.to_thread(self.get_recommendation, budget_input), timeout=limit)
        except asyncio.TimeoutError:
            message = f"AI recommendation timed out after {limit:g} seconds"
            self._report_fallback(
                "recommendation",
                _AttemptsExhausted(TimeoutError(message), attempts=1),
                hash_payload(_analysis_prompt(budget_input)),
            )
            return create_fallback_recommendation(budget_input, message)

    def get_quick_tips(self, budget_input: BudgetInput) -> List[str]:
        prompt = build_quick_tips_prompt(budget_input)
        request = TextGenerationRequest(
            prompt=prompt,
            temperature=QUICK_TIPS_TEMPERATURE,
            max_output_tokens=QUICK_TIPS_MAX_OUTPUT_TOKENS,
        )
        try:
            return self._call_with_attempts("quick_tips", request, parse_tips)
        except _AttemptsExhausted as exhausted:
            self._report_fallback("quick_tips", exhausted, hash_payload(prompt))
            return create_fallback_tips()

    def review_goals(self, income: float, goals: Sequence[GoalItem]) -> GoalReview:
        prompt = build_goal_review_prompt(income, goals)
        request = TextGenerationRequest(
            prompt=prompt,
            temperature=GOAL_REVIEW_TEMPERATURE,
            max_output_tokens=GOAL_REVIEW_MAX_OUTPUT_TOKENS,
        )
        try:
            return self._call_with_attempts("goal_review", request, parse_goal_review)
        except _AttemptsExhausted as exhausted:
            self._report_fallback("goal_review", exhausted, hash_payload(prompt))
            return create_fallback_goal_review(goals)

    def _call_with_attempts(self, operation: str, request: TextGenerationRequest, parse: Callable[[str], T]) -> T:
        last_error: Optional[Exception] = None
        for attempt in range(1, self._max_attempts + 1):
            try:
                with model_call_span(operation, self.provider_name, attempt):
                    response = self._generator.generate(request)
                    return parse(response.text)
            # Any backend may fail in its own way; all of them end in the fallback.
            except Exception as exc:  # noqa: BLE001
                last_error = exc
                if attempt < self._max_attempts:
                    logger.info(
                        {
                            "event": "recommendation_retry",
                            "provider": self.provider_name,
                            "attempt": attempt,
                            "error_type": type(exc).__name__,
                        }
                    )
        assert last_error is not None
        raise _AttemptsExhausted(last_error, self._max_attempts)

    def _report_fallback(self, operation: str, exhausted: _AttemptsExhausted, prompt_hash: str) -> None:
        event = FallbackEvent(
            operation=operation,
            provider=self.provider_name,
            error_type=type(exhausted.error).__name__,
            error_message=_error_message(exhausted.error),
            attempts=exhausted.attempts,
            prompt_hash=prompt_hash,
        )
        try:
            self._observer.on_fallback(event)
        except Exception:  # noqa: BLE001
            logger.exception("Fallback observer raised; continuing with fallback result")


class InvalidRecommendationError(ModelOutputError):
    """Model output decoded but did not have the Recommendation shape."""


def _analysis_prompt(budget_input: BudgetInput) -> str:
    return build_analysis_prompt(
        budget_input,
        budget_input.total_fixed_expenses,
        budget_input.remaining_income,
    )


def _parse_or_raise(text: str) -> Recommendation:
    result = parse_recommendation(text)
    if isinstance(result, InvalidRecommendation):
        raise InvalidRecommendationError(result.reason)
    return result.recommendation


def _error_message(error: Exception) -> str:
    message = str(error).strip()
    return message or type(error).__name__
