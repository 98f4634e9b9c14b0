"""Concurrent /optimize requests: a newer submission from the same session supersedes the older one."""

from __future__ import annotations

import threading
import time
from uuid import uuid4

import anyio
import httpx
import pytest

import src.main as main_module
from src.recommendation_service import RecommendationService
from src.text_generation import TextGenerationRequest, TextGenerationResponse

FIRST_CALL_DELAY_SECONDS = 0.5


class SlowFirstCallGenerator:
    """Stalls on its first call only, so an earlier request finishes after a later one."""

    name = "slow-first"

    def __init__(self, reply: str):
        self._reply = reply
        self._lock = threading.Lock()
        self._calls = 0

    def generate(self, request: TextGenerationRequest) -> TextGenerationResponse:
        with self._lock:
            self._calls += 1
            call = self._calls
        if call == 1:
            time.sleep(FIRST_CALL_DELAY_SECONDS)
        return TextGenerationResponse(text=self._reply)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def slow_first_service(monkeypatch: pytest.MonkeyPatch, mock_response_path) -> RecommendationService:
    service = RecommendationService(SlowFirstCallGenerator(mock_response_path.read_text()), timeout_seconds=5)
    monkeypatch.setattr(main_module, "RECOMMENDATION_SERVICE", service)
    return service


def _payload(income: float) -> dict:
    return {
        "income": income,
        "fixedExpenses": [{"category": "Rent", "amount": 1200}],
        "goals": [{"category": "Savings", "targetPercent": 10}],
    }


@pytest.mark.anyio
async def test_older_submission_in_same_session_is_superseded(slow_first_service):
    headers = {"x-session-id": f"session-{uuid4()}"}
    responses = {}
    transport = httpx.ASGITransport(app=main_module.app)

    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:

        async def submit(name: str, income: float) -> None:
            responses[name] = await client.post("/optimize", json=_payload(income), headers=headers)

        async with anyio.create_task_group() as group:
            group.start_soon(submit, "older", 4000)
            await anyio.sleep(FIRST_CALL_DELAY_SECONDS / 5)
            group.start_soon(submit, "newer", 5000)

    older = responses["older"].json()
    newer = responses["newer"].json()

    assert responses["older"].status_code == 200
    assert older["superseded"] is True
    assert older["recommendation"] is None
    assert older["result"]["feasible"] is True
    assert newer["superseded"] is False
    assert newer["recommendation"]["budgetPlan"]
    assert older["submission_id"] != newer["submission_id"]


@pytest.mark.anyio
async def test_requests_without_session_never_supersede_each_other(slow_first_service):
    responses = []
    transport = httpx.ASGITransport(app=main_module.app)

    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:

        async def submit(income: float) -> None:
            responses.append((await client.post("/optimize", json=_payload(income))).json())

        async with anyio.create_task_group() as group:
            group.start_soon(submit, 4000)
            await anyio.sleep(FIRST_CALL_DELAY_SECONDS / 5)
            group.start_soon(submit, 5000)

    assert [body["superseded"] for body in responses] == [False, False]
    assert all(body["recommendation"] is not None for body in responses)
