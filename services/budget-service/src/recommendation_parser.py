"""
Cleaning and validation of raw model output.

Models frequently wrap JSON in prose or markdown fences despite instructions,
so text is cleaned before decoding. Decoded payloads are then checked against
the Recommendation shape and coerced field by field; callers receive either a
ParsedRecommendation or an InvalidRecommendation explaining what went wrong.
"""

from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass
from typing import Any, List, Mapping, Union

from .budget_model import BudgetPlanEntry, GoalReview, Recommendation

DEFAULT_PLAN_CATEGORY = "Miscellaneous"
DEFAULT_PLAN_REASONING = "Budget allocation"

_JSON_FENCE = re.compile(r"```json\s*", re.IGNORECASE)
_FENCE = re.compile(r"```\s*")


@dataclass(frozen=True)
class ParsedRecommendation:
    recommendation: Recommendation


@dataclass(frozen=True)
class InvalidRecommendation:
    reason: str


RecommendationParseResult = Union[ParsedRecommendation, InvalidRecommendation]


class ModelOutputError(ValueError):
    """Raised when auxiliary model output cannot be turned into the expected shape."""


def clean_model_json(text: str, opening: str = "{", closing: str = "}") -> str:
    """
    Strip code fences and any text surrounding the outermost JSON value.

    Args:
        text: Raw model output.
        opening/closing: Delimiters of the expected top-level value ("{}" or "[]").
    Returns:
        The substring from the first `opening` to the last `closing`, or the
        fence-stripped text when either delimiter is missing.
    """
    cleaned = text.strip()
    cleaned = _JSON_FENCE.sub("", cleaned)
    cleaned = _FENCE.sub("", cleaned)

    start = cleaned.find(opening)
    if start > 0:
        cleaned = cleaned[start:]

    end = cleaned.rfind(closing)
    if end != -1 and end < len(cleaned) - 1:
        cleaned = cleaned[: end + 1]

    return cleaned.strip()


def parse_recommendation(text: str) -> RecommendationParseResult:
    """Clean, decode and validate model output into a Recommendation."""
    cleaned = clean_model_json(text)
    try:
        payload = json.loads(cleaned)
    except ValueError as exc:
        return InvalidRecommendation(reason=f"Model response was not valid JSON: {_decode_detail(exc)}")
    return validate_recommendation_payload(payload)


def validate_recommendation_payload(payload: Any) -> RecommendationParseResult:
    """
    Check the decoded payload's shape and coerce its fields.

    `budgetPlan`, `insights` and `warnings` must be lists and `summary` a string.
    Plan entries never invalidate the whole payload: missing or malformed fields
    fall back to defaults instead.
    """
    if not isinstance(payload, Mapping):
        return InvalidRecommendation(reason="Invalid recommendation structure: expected a JSON object")

    problems = []
    for key in ("budgetPlan", "insights", "warnings"):
        if not isinstance(payload.get(key), list):
            problems.append(f"'{key}' must be a list")
    if not isinstance(payload.get("summary"), str):
        problems.append("'summary' must be a string")
    if problems:
        return InvalidRecommendation(reason="Invalid recommendation structure: " + ", ".join(problems))

    return ParsedRecommendation(
        recommendation=Recommendation(
            budget_plan=[_coerce_plan_entry(item) for item in payload["budgetPlan"]],
            insights=_coerce_strings(payload["insights"]),
            warnings=_coerce_strings(payload["warnings"]),
            summary=payload["summary"],
        )
    )


def parse_tips(text: str) -> List[str]:
    """Decode a JSON array of tips; raises ModelOutputError on anything else."""
    cleaned = clean_model_json(text, opening="[", closing="]")
    try:
        payload = json.loads(cleaned)
    except ValueError as exc:
        raise ModelOutputError(f"Tips response was not valid JSON: {_decode_detail(exc)}") from exc
    if not isinstance(payload, list):
        raise ModelOutputError("Tips response must be a JSON array")
    tips = [tip for tip in _coerce_strings(payload) if tip]
    if not tips:
        raise ModelOutputError("Tips response contained no tips")
    return tips


def parse_goal_review(text: str) -> GoalReview:
    """Decode a goal review object; raises ModelOutputError on a wrong shape."""
    cleaned = clean_model_json(text)
    try:
        payload = json.loads(cleaned)
    except ValueError as exc:
        raise ModelOutputError(f"Goal review response was not valid JSON: {_decode_detail(exc)}") from exc
    if not isinstance(payload, Mapping) or not isinstance(payload.get("feasible"), bool):
        raise ModelOutputError("Goal review response must contain a boolean 'feasible'")

    issues = payload.get("issues", [])
    recommendations = payload.get("recommendations", [])
    if not isinstance(issues, list) or not isinstance(recommendations, list):
        raise ModelOutputError("Goal review 'issues' and 'recommendations' must be lists")

    return GoalReview(
        feasible=payload["feasible"],
        issues=_coerce_strings(issues),
        recommendations=_coerce_strings(recommendations),
    )


def _coerce_plan_entry(item: Any) -> BudgetPlanEntry:
    if not isinstance(item, Mapping):
        item = {}
    return BudgetPlanEntry(
        category=_coerce_text(item.get("category"), DEFAULT_PLAN_CATEGORY),
        amount=_coerce_number(item.get("amount")),
        percent=_coerce_number(item.get("percent")),
        reasoning=_coerce_text(item.get("reasoning"), DEFAULT_PLAN_REASONING),
    )


def _coerce_text(value: Any, default: str) -> str:
    if value is None or value == "":
        return default
    return str(value)


def _coerce_number(value: Any) -> float:
    if isinstance(value, bool):
        return float(value)
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return 0.0
    if not math.isfinite(number):
        return 0.0
    return number


def _decode_detail(exc: ValueError) -> str:
    # json.loads also raises plain ValueError, e.g. for integers past the digit limit.
    if isinstance(exc, json.JSONDecodeError):
        return exc.msg
    return str(exc)


def _coerce_strings(values: List[Any]) -> List[str]:
    return [str(value) for value in values if value is not None]
