"""Pytest configuration for budget-service tests.

Puts the service root (for `src.*` imports) and the services root (for the
`shared` package) on sys.path, and provides the budgets used across test modules.
"""

import sys
from pathlib import Path

import pytest

SERVICE_ROOT = Path(__file__).resolve().parents[1]
SERVICES_ROOT = SERVICE_ROOT.parent

for path in (SERVICE_ROOT, SERVICES_ROOT):
    path_str = str(path)
    if path_str not in sys.path:
        sys.path.insert(0, path_str)

from src.budget_model import BudgetInput, ExpenseItem, GoalItem  # noqa: E402

FIXTURES_DIR = SERVICE_ROOT / "tests" / "fixtures"


@pytest.fixture
def balanced_budget() -> BudgetInput:
    """Income 5000, fixed costs 1530, goals 15/10/8% -> 1820 left for discretionary spending."""
    return BudgetInput(
        income=5000.0,
        fixed_expenses=(
            ExpenseItem(category="Rent", amount=1200.0),
            ExpenseItem(category="Utilities", amount=200.0),
            ExpenseItem(category="Internet", amount=80.0),
            ExpenseItem(category="Phone", amount=50.0),
        ),
        goals=(
            GoalItem(category="Emergency", target_percent=15.0),
            GoalItem(category="Retirement", target_percent=10.0),
            GoalItem(category="Entertainment", target_percent=8.0),
        ),
    )


@pytest.fixture
def overcommitted_goals_budget() -> BudgetInput:
    """Income 3000, fixed costs 2900, goals 30% -> 800 short."""
    return BudgetInput(
        income=3000.0,
        fixed_expenses=(
            ExpenseItem(category="Rent", amount=2000.0),
            ExpenseItem(category="Car Payment", amount=600.0),
            ExpenseItem(category="Insurance", amount=300.0),
        ),
        goals=(
            GoalItem(category="Savings", target_percent=20.0),
            GoalItem(category="Entertainment", target_percent=10.0),
        ),
    )


@pytest.fixture
def deficit_budget() -> BudgetInput:
    """Fixed costs of 1500 against an income of 1000."""
    return BudgetInput(
        income=1000.0,
        fixed_expenses=(
            ExpenseItem(category="Rent", amount=1100.0),
            ExpenseItem(category="Loan", amount=400.0),
        ),
        goals=(GoalItem(category="Savings", target_percent=10.0),),
    )


@pytest.fixture
def mock_response_path() -> Path:
    return FIXTURES_DIR / "mock_recommendation_response.txt"
