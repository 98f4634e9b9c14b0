from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Literal, Sequence, Tuple, Union

DISCRETIONARY_CATEGORY = "Discretionary Spending"


@dataclass(frozen=True)
class ExpenseItem:
    """A fixed monthly cost entered by the user."""

    category: str
    amount: float


@dataclass(frozen=True)
class GoalItem:
    """A share of gross income the user wants directed to a named purpose."""

    category: str
    target_percent: float


@dataclass(frozen=True)
class BudgetInput:
    """
    Immutable snapshot of one budget submission.

    Sequences are normalized to tuples so a constructed input cannot change
    between the allocation and the recommendation that follows it.
    """

    income: float
    fixed_expenses: Tuple[ExpenseItem, ...] = ()
    goals: Tuple[GoalItem, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "fixed_expenses", tuple(self.fixed_expenses))
        object.__setattr__(self, "goals", tuple(self.goals))

    @property
    def total_fixed_expenses(self) -> float:
        return float(sum(expense.amount for expense in self.fixed_expenses))

    @property
    def remaining_income(self) -> float:
        """Income left after fixed expenses; negative when expenses exceed income."""
        return self.income - self.total_fixed_expenses


@dataclass(frozen=True)
class Allocation:
    category: str
    amount: float
    percent: float


class InfeasibleReason(str, Enum):
    EXPENSES_EXCEED_INCOME = "expenses_exceed_income"
    GOALS_EXCEED_REMAINING = "goals_exceed_remaining"


_INFEASIBLE_MESSAGES = {
    InfeasibleReason.EXPENSES_EXCEED_INCOME: (
        "Your fixed expenses exceed your income. Please adjust your expenses or increase your income."
    ),
    InfeasibleReason.GOALS_EXCEED_REMAINING: (
        "Your financial goals cannot be met with your current income and fixed expenses."
    ),
}


@dataclass(frozen=True)
class InfeasibleBudget:
    """
    Allocation outcome when the stated expenses and goals do not fit the income.

    `remaining_income` is clamped to 0 for EXPENSES_EXCEED_INCOME; goal
    allocations and totals are only populated for GOALS_EXCEED_REMAINING.
    """

    reason: InfeasibleReason
    income: float
    total_fixed_expenses: float
    remaining_income: float
    fixed_expenses: Tuple[ExpenseItem, ...]
    goal_allocations: Tuple[Allocation, ...] = ()
    total_goal_amount: float = 0.0
    total_goal_percent: float = 0.0
    feasible: Literal[False] = field(default=False, init=False)

    @property
    def shortfall(self) -> float:
        """How far the commitments overshoot what the income can cover."""
        if self.reason is InfeasibleReason.EXPENSES_EXCEED_INCOME:
            return self.total_fixed_expenses - self.income
        return self.total_goal_amount - self.remaining_income

    @property
    def message(self) -> str:
        return _INFEASIBLE_MESSAGES[self.reason]

    def to_payload(self) -> Dict[str, Any]:
        return {
            "feasible": False,
            "reason": self.reason.value,
            "message": self.message,
            "income": self.income,
            "totalFixedExpenses": self.total_fixed_expenses,
            "remainingIncome": self.remaining_income,
            "fixedExpenses": [asdict(expense) for expense in self.fixed_expenses],
            "allocations": [],
            "goalAllocations": [asdict(allocation) for allocation in self.goal_allocations],
            "totalGoalAmount": self.total_goal_amount,
            "totalGoalPercent": self.total_goal_percent,
            "shortfall": self.shortfall,
        }


@dataclass(frozen=True)
class FeasibleBudget:
    """
    Allocation outcome when every goal fits inside the income left after fixed costs.

    `allocations` holds one entry per goal in input order followed by exactly one
    Discretionary Spending entry; their amounts sum to `remaining_income`.
    """

    income: float
    total_fixed_expenses: float
    remaining_income: float
    fixed_expenses: Tuple[ExpenseItem, ...]
    allocations: Tuple[Allocation, ...]
    total_goal_amount: float
    total_goal_percent: float
    discretionary_amount: float
    discretionary_percent: float
    feasible: Literal[True] = field(default=True, init=False)

    @property
    def message(self) -> str:
        return "Here's your optimized budget plan:"

    def to_payload(self) -> Dict[str, Any]:
        return {
            "feasible": True,
            "reason": None,
            "message": self.message,
            "income": self.income,
            "totalFixedExpenses": self.total_fixed_expenses,
            "remainingIncome": self.remaining_income,
            "fixedExpenses": [asdict(expense) for expense in self.fixed_expenses],
            "allocations": [asdict(allocation) for allocation in self.allocations],
            "totalGoalAmount": self.total_goal_amount,
            "totalGoalPercent": self.total_goal_percent,
            "discretionaryAmount": self.discretionary_amount,
            "discretionaryPercent": self.discretionary_percent,
        }


BudgetResult = Union[FeasibleBudget, InfeasibleBudget]


@dataclass
class BudgetPlanEntry:
    category: str
    amount: float
    percent: float
    reasoning: str


@dataclass
class Recommendation:
    """
    Narrative budget recommendation.

    Model-generated and locally synthesized recommendations share this shape so
    consumers never need to know which one they received.
    """

    budget_plan: List[BudgetPlanEntry] = field(default_factory=list)
    insights: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    summary: str = ""

    def to_payload(self) -> Dict[str, Any]:
        return {
            "budgetPlan": [asdict(entry) for entry in self.budget_plan],
            "insights": list(self.insights),
            "warnings": list(self.warnings),
            "summary": self.summary,
        }


@dataclass
class GoalReview:
    feasible: bool
    issues: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)


def budget_input_from_mapping(payload: Dict[str, Any]) -> BudgetInput:
    """Build a BudgetInput from plain dicts, e.g. fixtures or already-validated JSON."""
    expenses: Sequence[Dict[str, Any]] = payload.get("fixed_expenses", payload.get("fixedExpenses", []))
    goals: Sequence[Dict[str, Any]] = payload.get("goals", [])
    return BudgetInput(
        income=float(payload["income"]),
        fixed_expenses=tuple(
            ExpenseItem(category=str(item["category"]), amount=float(item["amount"])) for item in expenses
        ),
        goals=tuple(
            GoalItem(
                category=str(item["category"]),
                target_percent=float(item.get("target_percent", item.get("targetPercent", 0.0))),
            )
            for item in goals
        ),
    )
