from __future__ import annotations

import math
from typing import List

from .budget_model import (
    DISCRETIONARY_CATEGORY,
    Allocation,
    BudgetInput,
    BudgetResult,
    FeasibleBudget,
    InfeasibleBudget,
    InfeasibleReason,
)

# Amounts within this tolerance of their limit count as fitting it. The relative
# part scales with income; the absolute part covers budgets near zero.
FEASIBILITY_EPSILON = 1e-9
FEASIBILITY_REL_TOLERANCE = 1e-12


class BudgetInputError(ValueError):
    """Raised when a BudgetInput violates the pre-validation contract."""

    def __init__(self, problems: List[str]):
        self.problems = list(problems)
        super().__init__("; ".join(self.problems))


def validate_budget_input(budget_input: BudgetInput) -> None:
    """
    Check the input contract the allocator relies on.

    Args:
        budget_input: Submission to check.
    Raises:
        BudgetInputError listing every violated rule (positive income, non-negative
        expense amounts, goal percentages within 0-100, non-empty categories).
    """
    problems: List[str] = []

    if not _is_finite(budget_input.income) or budget_input.income <= 0:
        problems.append("income must be a positive number")

    for index, expense in enumerate(budget_input.fixed_expenses):
        if not expense.category or not expense.category.strip():
            problems.append(f"fixed_expenses[{index}].category must not be empty")
        if not _is_finite(expense.amount) or expense.amount < 0:
            problems.append(f"fixed_expenses[{index}].amount must be zero or greater")

    for index, goal in enumerate(budget_input.goals):
        if not goal.category or not goal.category.strip():
            problems.append(f"goals[{index}].category must not be empty")
        if not _is_finite(goal.target_percent) or not 0 <= goal.target_percent <= 100:
            problems.append(f"goals[{index}].target_percent must be between 0 and 100")

    if problems:
        raise BudgetInputError(problems)


def allocate(budget_input: BudgetInput) -> BudgetResult:
    """
    Split a monthly income across fixed expenses, percentage goals and discretionary spending.

    Args:
        budget_input: Validated submission; see `validate_budget_input`.
    Returns:
        FeasibleBudget when fixed expenses and every goal fit inside the income,
        otherwise InfeasibleBudget tagged with the first constraint that failed.
    Assumptions:
        Pure and deterministic. Goal amounts are taken from gross income and goal
        percentages are summed without capping so inconsistent goals surface as
        infeasibility rather than being normalized away.
    """
    validate_budget_input(budget_input)

    income = budget_input.income
    total_fixed_expenses = budget_input.total_fixed_expenses
    remaining_income = income - total_fixed_expenses

    if _exceeds(total_fixed_expenses, income):
        return InfeasibleBudget(
            reason=InfeasibleReason.EXPENSES_EXCEED_INCOME,
            income=income,
            total_fixed_expenses=total_fixed_expenses,
            remaining_income=0.0,
            fixed_expenses=budget_input.fixed_expenses,
        )

    goal_allocations: List[Allocation] = []
    total_goal_amount = 0.0
    total_goal_percent = 0.0
    for goal in budget_input.goals:
        amount = goal.target_percent / 100 * income
        goal_allocations.append(Allocation(category=goal.category, amount=amount, percent=amount / income * 100))
        total_goal_amount += amount
        total_goal_percent += goal.target_percent

    if _exceeds(total_goal_amount, remaining_income):
        return InfeasibleBudget(
            reason=InfeasibleReason.GOALS_EXCEED_REMAINING,
            income=income,
            total_fixed_expenses=total_fixed_expenses,
            remaining_income=remaining_income,
            fixed_expenses=budget_input.fixed_expenses,
            goal_allocations=tuple(goal_allocations),
            total_goal_amount=total_goal_amount,
            total_goal_percent=total_goal_percent,
        )

    discretionary_amount = max(remaining_income - total_goal_amount, 0.0)
    discretionary_percent = discretionary_amount / income * 100
    allocations = tuple(goal_allocations) + (
        Allocation(
            category=DISCRETIONARY_CATEGORY,
            amount=discretionary_amount,
            percent=discretionary_percent,
        ),
    )

    return FeasibleBudget(
        income=income,
        total_fixed_expenses=total_fixed_expenses,
        remaining_income=max(remaining_income, 0.0),
        fixed_expenses=budget_input.fixed_expenses,
        allocations=allocations,
        total_goal_amount=total_goal_amount,
        total_goal_percent=total_goal_percent,
        discretionary_amount=discretionary_amount,
        discretionary_percent=discretionary_percent,
    )


def _is_finite(value: float) -> bool:
    try:
        return math.isfinite(value)
    except TypeError:
        return False


def _exceeds(amount: float, limit: float) -> bool:
    if amount <= limit:
        return False
    return not math.isclose(amount, limit, rel_tol=FEASIBILITY_REL_TOLERANCE, abs_tol=FEASIBILITY_EPSILON)
