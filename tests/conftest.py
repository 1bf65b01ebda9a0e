"""Shared fixtures and fakes for the test suite."""

import json
from datetime import date
from typing import Any, Dict, List, Optional

import pytest

from src.models.request_models import TripRequest
from src.services.vertex_ai_service import SMOKE_TEST_PROMPT, ModelResponse


class FakeVertexResponse:
    """Minimal stand-in for a Vertex GenerationResponse."""

    def __init__(self, text: Optional[str]):
        self.text = text
        self.candidates = []
        self.usage_metadata = None


class FakeGenerativeModel:
    """Answers the smoke test, then plays back scripted replies (text or exceptions)."""

    def __init__(self, replies: Optional[List[Any]] = None, smoke_reply: Any = "Hi"):
        self.replies = list(replies or [])
        self.smoke_reply = smoke_reply
        self.prompts: List[str] = []

    async def generate_content_async(self, prompt: str):
        self.prompts.append(prompt)
        reply = self.smoke_reply if prompt == SMOKE_TEST_PROMPT else self.replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return FakeVertexResponse(reply)


class StubModelClient:
    """Pipeline-level fake exposing only call_model."""

    def __init__(self, reply: Any = None):
        self.reply = reply
        self.prompts: List[str] = []

    async def call_model(self, prompt: str) -> ModelResponse:
        self.prompts.append(prompt)
        if isinstance(self.reply, BaseException):
            raise self.reply
        return ModelResponse(text=self.reply, model_id="gemini-test", usage={"total_tokens": 10})


def make_day(n: int, **overrides) -> Dict[str, Any]:
    day = {
        "day": n,
        "title": f"Day {n} highlights",
        "activities": [f"Visit landmark {n}", f"Walk through district {n}"],
        "meals": ["Breakfast at a bakery", "Dinner at a bistro"],
        "transportation": "Metro",
        "budget": "₹9,000",
    }
    day.update(overrides)
    return day


def make_itinerary_json(days: int, /, **overrides) -> str:
    data = {
        "title": "Paris Getaway",
        "duration": f"{days} Days",
        "overview": "Museums, cafes and river walks.",
        "days": [make_day(i) for i in range(1, days + 1)],
        "tips": ["Buy a museum pass", "Carry a reusable bottle"],
        "totalEstimatedCost": "₹1,20,000 per person",
    }
    data.update(overrides)
    return json.dumps(data, ensure_ascii=False)


@pytest.fixture
def paris_trip() -> TripRequest:
    return TripRequest(destination="Paris", start_date=date(2025, 6, 1), end_date=date(2025, 6, 5))


@pytest.fixture
def five_day_trip() -> TripRequest:
    return TripRequest(
        destination="Kyoto",
        start_date=date(2025, 10, 1),
        end_date=date(2025, 10, 6),
        number_of_travelers=2,
    )
