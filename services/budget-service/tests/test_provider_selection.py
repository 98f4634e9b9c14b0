from typing import Any, Dict

import pytest
from fastapi.testclient import TestClient

from src.main import app, reload_recommendation_service_for_tests

client = TestClient(app)


def _budget_payload() -> Dict[str, Any]:
    return {
        "income": 5000.0,
        "fixedExpenses": [
            {"category": "Rent", "amount": 1200.0},
            {"category": "Utilities", "amount": 200.0},
            {"category": "Internet", "amount": 80.0},
            {"category": "Phone", "amount": 50.0},
        ],
        "goals": [
            {"category": "Emergency", "targetPercent": 15},
            {"category": "Retirement", "targetPercent": 10},
            {"category": "Entertainment", "targetPercent": 8},
        ],
    }


@pytest.fixture(autouse=True)
def deterministic_provider(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("RECOMMENDATION_PROVIDER", "deterministic")
    reload_recommendation_service_for_tests()
    yield
    monkeypatch.delenv("RECOMMENDATION_PROVIDER", raising=False)
    reload_recommendation_service_for_tests()


def test_health_check() -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "budget-service"}
    assert response.headers["x-request-id"]


def test_allocate_returns_feasible_breakdown() -> None:
    response = client.post("/allocate", json=_budget_payload())

    assert response.status_code == 200
    body = response.json()
    assert body["feasible"] is True
    assert body["remainingIncome"] == pytest.approx(3470.0)
    assert body["discretionaryAmount"] == pytest.approx(1820.0)
    assert body["allocations"][-1]["category"] == "Discretionary Spending"


def test_allocate_accepts_snake_case_fields() -> None:
    payload = {
        "income": 1000,
        "fixed_expenses": [{"category": "Rent", "amount": 1500}],
        "goals": [{"category": "Savings", "target_percent": 10}],
    }

    response = client.post("/allocate", json=payload)

    body = response.json()
    assert body["feasible"] is False
    assert body["reason"] == "expenses_exceed_income"
    assert body["remainingIncome"] == 0.0
    assert "exceed your income" in body["message"]


def test_allocate_reports_goal_shortfall() -> None:
    payload = {
        "income": 3000,
        "fixedExpenses": [{"category": "Rent", "amount": 2900}],
        "goals": [{"category": "Savings", "targetPercent": 30}],
    }

    body = client.post("/allocate", json=payload).json()

    assert body["reason"] == "goals_exceed_remaining"
    assert body["shortfall"] == pytest.approx(800.0)
    assert body["goalAllocations"][0]["amount"] == pytest.approx(900.0)


@pytest.mark.parametrize(
    "mutation",
    [
        {"income": 0},
        {"income": -100},
        {"fixedExpenses": [{"category": "Rent", "amount": -1}]},
        {"fixedExpenses": [{"category": "   ", "amount": 10}]},
        {"goals": [{"category": "Savings", "targetPercent": 120}]},
        {"goals": [{"category": "", "targetPercent": 10}]},
    ],
)
def test_invalid_input_is_rejected(mutation: Dict[str, Any]) -> None:
    response = client.post("/allocate", json={**_budget_payload(), **mutation})

    assert response.status_code == 422


def test_recommendation_uses_fallback_with_deterministic_provider() -> None:
    response = client.post("/recommendation", json=_budget_payload())

    assert response.status_code == 200
    body = response.json()
    assert [entry["category"] for entry in body["budgetPlan"]] == ["Emergency Savings", "Discretionary"]
    assert body["warnings"] == ["AI service temporarily unavailable"]
    assert body["summary"] == "Basic budget allocation provided - AI analysis pending"


def test_recommendation_uses_mock_provider(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("RECOMMENDATION_PROVIDER", "mock")
    reload_recommendation_service_for_tests()

    body = client.post("/recommendation", json=_budget_payload()).json()

    assert body["budgetPlan"][-1]["category"] == "Discretionary Spending"
    assert sum(entry["amount"] for entry in body["budgetPlan"]) == pytest.approx(3470.0)
    assert body["warnings"] == ["No major warnings detected"]


def test_optimize_combines_allocation_and_recommendation() -> None:
    response = client.post("/optimize", json=_budget_payload(), headers={"x-session-id": "session-a"})

    assert response.status_code == 200
    body = response.json()
    assert body["submission_id"]
    assert body["superseded"] is False
    assert body["result"]["feasible"] is True
    assert body["recommendation"]["summary"] == "Basic budget allocation provided - AI analysis pending"


def test_optimize_still_recommends_for_infeasible_budget() -> None:
    payload = {"income": 1000, "fixedExpenses": [{"category": "Rent", "amount": 1500}], "goals": []}

    body = client.post("/optimize", json=payload).json()

    assert body["result"]["feasible"] is False
    assert body["recommendation"]["budgetPlan"] == []
    assert body["recommendation"]["warnings"][-1] == "Income insufficient to cover fixed expenses"


def test_quick_tips_fall_back_to_defaults() -> None:
    body = client.post("/quick-tips", json=_budget_payload()).json()

    assert len(body["tips"]) == 3


def test_review_goals_falls_back_to_percentage_check() -> None:
    payload = {
        "income": 4000,
        "goals": [{"category": "Savings", "targetPercent": 70}, {"category": "Travel", "targetPercent": 40}],
    }

    body = client.post("/review-goals", json=payload).json()

    assert body["feasible"] is False
    assert body["issues"]


def test_unsupported_provider_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    from shared.provider_settings import ProviderSettingsError

    monkeypatch.setenv("RECOMMENDATION_PROVIDER", "anthropic-magic")

    with pytest.raises(ProviderSettingsError):
        reload_recommendation_service_for_tests()
