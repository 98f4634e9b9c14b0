"""
Budget Service computes deterministic monthly budget allocations and layers a
model-generated (or locally synthesized) recommendation on top.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator
from shared.observability.privacy import mask_labels
from shared.observability.telemetry import (
    CORRELATION_ID_HEADER,
    SESSION_ID_HEADER,
    bind_request_context,
    bind_submission_context,
    ensure_request_id,
    reset_request_context,
    reset_submission_context,
    setup_telemetry,
)
from shared.provider_settings import ProviderSettings, ProviderSettingsError, load_provider_settings

from .allocator import BudgetInputError, allocate
from .budget_model import BudgetInput, ExpenseItem, GoalItem
from .recommendation_service import RecommendationService
from .submission_tracker import SessionTrackers, SubmissionTracker
from .text_generation import build_text_generator

app = FastAPI(title="Budget Service")
setup_telemetry(app, service_name="budget-service")
logger = logging.getLogger(__name__)


def _load_recommendation_provider_settings() -> ProviderSettings:
    return load_provider_settings(
        "RECOMMENDATION",
        default_timeout=20.0,
        default_temperature=0.1,  # Output must parse as JSON
        default_max_tokens=1500,
    )


try:
    RECOMMENDATION_PROVIDER_SETTINGS = _load_recommendation_provider_settings()
except ProviderSettingsError as exc:
    logger.error("Failed to load recommendation provider settings: %s", exc)
    raise


def _initialize_recommendation_service() -> RecommendationService:
    settings = RECOMMENDATION_PROVIDER_SETTINGS
    try:
        generator = build_text_generator(settings.provider_name, settings=settings)
    except ValueError as exc:
        logger.error("Unsupported recommendation provider '%s'", settings.provider_name)
        raise RuntimeError(f"Unsupported recommendation provider '{settings.provider_name}'") from exc

    logger.info(
        "Initialized recommendation provider: %s (set RECOMMENDATION_PROVIDER=openai to use a model)",
        settings.provider_name,
    )
    return RecommendationService(
        generator,
        temperature=settings.temperature,
        max_output_tokens=settings.max_output_tokens,
        max_attempts=settings.max_attempts,
        timeout_seconds=settings.timeout_seconds,
    )


RECOMMENDATION_SERVICE = _initialize_recommendation_service()
SESSION_TRACKERS = SessionTrackers()


def reload_recommendation_service_for_tests() -> None:
    """
    Refresh provider wiring after tests mutate environment variables.
    """

    global RECOMMENDATION_PROVIDER_SETTINGS
    global RECOMMENDATION_SERVICE

    RECOMMENDATION_PROVIDER_SETTINGS = _load_recommendation_provider_settings()
    RECOMMENDATION_SERVICE = _initialize_recommendation_service()


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    request_id = ensure_request_id(request)
    token = bind_request_context(request_id)
    try:
        response = await call_next(request)
        response.headers.setdefault(CORRELATION_ID_HEADER, request_id)
        return response
    finally:
        reset_request_context(token)


@app.exception_handler(BudgetInputError)
async def budget_input_error_handler(request: Request, exc: BudgetInputError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"error": "invalid_budget_input", "details": exc.problems})


class ExpenseItemModel(BaseModel):
    category: str = Field(min_length=1)
    amount: float = Field(ge=0, allow_inf_nan=False)

    @field_validator("category")
    @classmethod
    def _category_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("category must not be blank")
        return value


class GoalItemModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    category: str = Field(min_length=1)
    target_percent: float = Field(ge=0, le=100, allow_inf_nan=False, alias="targetPercent")

    @field_validator("category")
    @classmethod
    def _category_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("category must not be blank")
        return value


class BudgetInputPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    income: float = Field(gt=0, allow_inf_nan=False)
    fixed_expenses: List[ExpenseItemModel] = Field(default_factory=list, alias="fixedExpenses")
    goals: List[GoalItemModel] = Field(default_factory=list)

    def to_dataclass(self) -> BudgetInput:
        """Convert validated payload into the immutable core representation."""
        return BudgetInput(
            income=self.income,
            fixed_expenses=tuple(
                ExpenseItem(category=item.category, amount=item.amount) for item in self.fixed_expenses
            ),
            goals=tuple(GoalItem(category=goal.category, target_percent=goal.target_percent) for goal in self.goals),
        )


class GoalReviewPayload(BaseModel):
    income: float = Field(gt=0, allow_inf_nan=False)
    goals: List[GoalItemModel] = Field(default_factory=list)


class BudgetPlanEntryModel(BaseModel):
    category: str
    amount: float
    percent: float
    reasoning: str


class RecommendationModel(BaseModel):
    budgetPlan: List[BudgetPlanEntryModel]
    insights: List[str]
    warnings: List[str]
    summary: str


class OptimizeResponseModel(BaseModel):
    submission_id: str
    result: Dict[str, Any]
    recommendation: Optional[RecommendationModel] = None
    superseded: bool = False


class QuickTipsResponseModel(BaseModel):
    tips: List[str]


class GoalReviewResponseModel(BaseModel):
    feasible: bool
    issues: List[str]
    recommendations: List[str]


def _log_allocation(budget_input: BudgetInput, feasible: bool, reason: Optional[str]) -> None:
    logger.info(
        {
            "event": "allocation_computed",
            "feasible": feasible,
            "reason": reason,
            "expense_count": len(budget_input.fixed_expenses),
            "goal_count": len(budget_input.goals),
            "goal_labels": mask_labels(goal.category for goal in budget_input.goals),
        }
    )


def _allocate_payload(budget_input: BudgetInput) -> Dict[str, Any]:
    result = allocate(budget_input)
    payload = result.to_payload()
    _log_allocation(budget_input, payload["feasible"], payload["reason"])
    return payload


@app.get("/health")
def health_check() -> dict:
    """
    Report Budget Service readiness; expects no payload.
    """
    return {"status": "ok", "service": "budget-service"}


@app.post("/allocate")
def allocate_budget(payload: BudgetInputPayload) -> Dict[str, Any]:
    """
    Compute the deterministic allocation for one submission.
    Infeasible budgets are a normal 200 response with `feasible: false` and a reason.
    """
    return _allocate_payload(payload.to_dataclass())


@app.post("/recommendation", response_model=RecommendationModel)
async def recommend_budget(payload: BudgetInputPayload) -> Dict[str, Any]:
    """
    Produce a narrative recommendation; falls back to a local one when the model is unavailable.
    """
    recommendation = await RECOMMENDATION_SERVICE.get_recommendation_async(payload.to_dataclass())
    return recommendation.to_payload()


@app.post("/optimize", response_model=OptimizeResponseModel)
async def optimize_budget(payload: BudgetInputPayload, request: Request) -> Dict[str, Any]:
    """
    Allocate and recommend in one call.

    Clients that send an `x-session-id` header get stale-result protection: when a
    newer submission from the same session arrives while this one is still waiting
    for its recommendation, this response carries `superseded: true` and no
    recommendation.
    """
    budget_input = payload.to_dataclass()
    session_id = request.headers.get(SESSION_ID_HEADER)
    tracker = SESSION_TRACKERS.get(session_id) if session_id else SubmissionTracker()
    ticket = tracker.begin()

    token = bind_submission_context(ticket.submission_id)
    try:
        result_payload = _allocate_payload(budget_input)
        recommendation = await tracker.run(ticket, RECOMMENDATION_SERVICE.get_recommendation_async(budget_input))
    finally:
        reset_submission_context(token)

    if recommendation is None:
        logger.info({"event": "recommendation_superseded", "submission_id": ticket.submission_id})

    return {
        "submission_id": ticket.submission_id,
        "result": result_payload,
        "recommendation": recommendation.to_payload() if recommendation is not None else None,
        "superseded": recommendation is None,
    }


@app.post("/quick-tips", response_model=QuickTipsResponseModel)
def quick_tips(payload: BudgetInputPayload) -> Dict[str, Any]:
    return {"tips": RECOMMENDATION_SERVICE.get_quick_tips(payload.to_dataclass())}


@app.post("/review-goals", response_model=GoalReviewResponseModel)
def review_goals(payload: GoalReviewPayload) -> Dict[str, Any]:
    """
    Ask the model whether the goal percentages are realistic for the income.
    Falls back to an arithmetic check (percentages must not exceed 100%).
    """
    goals = [GoalItem(category=goal.category, target_percent=goal.target_percent) for goal in payload.goals]
    review = RECOMMENDATION_SERVICE.review_goals(payload.income, goals)
    return {"feasible": review.feasible, "issues": review.issues, "recommendations": review.recommendations}
