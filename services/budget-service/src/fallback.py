from __future__ import annotations

from typing import List, Optional, Sequence

from .budget_model import BudgetInput, BudgetPlanEntry, GoalItem, GoalReview, Recommendation

EMERGENCY_SAVINGS_SHARE = 0.2
DISCRETIONARY_SHARE = 0.8

UNAVAILABLE_WARNING = "AI service temporarily unavailable"
INSUFFICIENT_INCOME_WARNING = "Income insufficient to cover fixed expenses"
DEFICIT_SUMMARY = "Budget shows deficit - immediate action needed"
PENDING_SUMMARY = "Basic budget allocation provided - AI analysis pending"

DEFAULT_QUICK_TIPS = (
    "Track your expenses for a week to identify spending patterns",
    "Set up automatic transfers to your savings account",
    "Review and negotiate your recurring subscriptions",
)


def create_fallback_recommendation(budget_input: BudgetInput, error: Optional[str] = None) -> Recommendation:
    """
    Synthesize a recommendation locally when the model result is unavailable.

    Args:
        budget_input: Submission the recommendation is for; remaining income is
            recomputed from it and may be negative.
        error: Message describing why the model result is missing, surfaced as
            the first warning.
    Returns:
        A complete Recommendation. Never raises for any remaining income value.
    """
    income = budget_input.income
    remaining = budget_input.remaining_income

    budget_plan: List[BudgetPlanEntry] = []
    if remaining > 0:
        emergency = remaining * EMERGENCY_SAVINGS_SHARE
        discretionary = remaining * DISCRETIONARY_SHARE
        budget_plan = [
            BudgetPlanEntry(
                category="Emergency Savings",
                amount=emergency,
                percent=_percent_of(emergency, income),
                reasoning="Build emergency fund first",
            ),
            BudgetPlanEntry(
                category="Discretionary",
                amount=discretionary,
                percent=_percent_of(discretionary, income),
                reasoning="Flexible spending allocation",
            ),
        ]

    insights = [
        "AI analysis temporarily unavailable",
        f"Available after fixed expenses: ${remaining:.2f}",
        "Focus on building an emergency fund" if remaining > 0 else "Consider reducing expenses",
    ]

    warnings = [error or UNAVAILABLE_WARNING]
    if remaining < 0:
        warnings.append(INSUFFICIENT_INCOME_WARNING)

    return Recommendation(
        budget_plan=budget_plan,
        insights=insights,
        warnings=warnings,
        summary=DEFICIT_SUMMARY if remaining < 0 else PENDING_SUMMARY,
    )


def create_fallback_tips() -> List[str]:
    return list(DEFAULT_QUICK_TIPS)


def create_fallback_goal_review(goals: Sequence[GoalItem]) -> GoalReview:
    """Judge goal feasibility arithmetically: the percentages must not exceed 100%."""
    total_percent = sum(goal.target_percent for goal in goals)
    issues: List[str] = []
    if total_percent > 100:
        issues.append(f"Goals add up to {total_percent:g}% of income, which is more than 100%")
    return GoalReview(
        feasible=total_percent <= 100,
        issues=issues,
        recommendations=["Please review your goals and try again"],
    )


def _percent_of(amount: float, income: float) -> float:
    if income == 0:
        return 0.0
    return amount / income * 100
