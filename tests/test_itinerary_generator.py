import asyncio
import json

import pytest

from src.services.itinerary_generator import ItineraryGeneratorService
from src.services.vertex_ai_service import VertexModelClient
from src.utils.exceptions import ConfigurationError, EmptyResponseError, ModelError, ParseError
from src.utils.formatters import sanitize_itinerary

from conftest import FakeGenerativeModel, StubModelClient, make_day, make_itinerary_json


@pytest.mark.asyncio
async def test_paris_model_success_is_sanitized(paris_trip):
    days = [make_day(1, activities=["**Eiffel Tower** at sunset", "Seine walk"])] + [make_day(i) for i in range(2, 5)]
    stub = StubModelClient(make_itinerary_json(4, days=days))
    service = ItineraryGeneratorService(stub)

    result = await service.generate_itinerary(paris_trip)

    assert result.used_fallback is False
    assert result.model_id == "gemini-test"
    assert len(result.itinerary.days) == 4
    assert result.itinerary.days[0].activities[0] == "Eiffel Tower at sunset"
    assert "Paris, 4 days" in stub.prompts[0]


@pytest.mark.asyncio
async def test_paris_model_failure_falls_back(paris_trip):
    service = ItineraryGeneratorService(StubModelClient(ModelError("provider down")))

    result = await service.generate_itinerary(paris_trip)

    assert result.used_fallback is True
    assert "provider down" in result.error_detail
    assert len(result.itinerary.days) == 4
    assert result.itinerary.days[0].title == "Day 1 in Paris"
    assert result.itinerary.title == "Paris Adventure"


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [
    ConfigurationError("no models"),
    EmptyResponseError("empty"),
    ParseError("bad json", raw_text="nope"),
    RuntimeError("unexpected"),
])
async def test_every_failure_falls_back(paris_trip, error):
    result = await ItineraryGeneratorService(StubModelClient(error)).generate_itinerary(paris_trip)

    assert result.used_fallback is True
    assert result.error_detail
    assert [d.day for d in result.itinerary.days] == [1, 2, 3, 4]


@pytest.mark.asyncio
async def test_unparseable_output_falls_back(paris_trip):
    result = await ItineraryGeneratorService(StubModelClient("Sorry, I cannot do that")).generate_itinerary(paris_trip)
    assert result.used_fallback is True


@pytest.mark.asyncio
async def test_cancellation_propagates(paris_trip):
    class HangingClient:
        async def call_model(self, prompt):
            await asyncio.sleep(10)

    task = asyncio.ensure_future(ItineraryGeneratorService(HangingClient()).generate_itinerary(paris_trip))
    await asyncio.sleep(0.01)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task


@pytest.mark.asyncio
async def test_regenerate_excludes_places(paris_trip):
    stub = StubModelClient(make_itinerary_json(4))
    service = ItineraryGeneratorService(stub)

    result = await service.regenerate_itinerary(paris_trip, ["Louvre", "Eiffel Tower"])

    assert result.used_fallback is False
    assert "Exclude: Louvre, Eiffel Tower" in stub.prompts[0]
    assert paris_trip.excluded_places == []


@pytest.mark.asyncio
async def test_end_to_end_with_vertex_client_fakes(paris_trip):
    model = FakeGenerativeModel(replies=["```json\n" + make_itinerary_json(4) + "\n```"])
    client = VertexModelClient(
        project_id="test-project",
        candidate_models=["gemini-test"],
        model_factory=lambda model_id: model,
        backoff_seconds=0,
    )

    result = await ItineraryGeneratorService(client).generate_itinerary(paris_trip)

    assert result.used_fallback is False
    assert result.model_id == "gemini-test"
    assert result.usage["total_tokens"] > 0


@pytest.mark.asyncio
async def test_unavailable_client_keeps_falling_back_without_retrying_selection(paris_trip):
    created = []

    def factory(model_id):
        created.append(model_id)
        return FakeGenerativeModel(smoke_reply=RuntimeError("not enabled"))

    client = VertexModelClient(project_id="p", candidate_models=["a", "b"], model_factory=factory, backoff_seconds=0)
    service = ItineraryGeneratorService(client)

    first = await service.generate_itinerary(paris_trip)
    second = await service.generate_itinerary(paris_trip)

    assert first.used_fallback and second.used_fallback
    assert created == ["a", "b"]


def test_fallback_itinerary_direct(paris_trip):
    itinerary = ItineraryGeneratorService(StubModelClient()).fallback_itinerary(paris_trip)
    assert len(itinerary.days) == 4
    assert json.loads(json.dumps(itinerary.to_document()))["totalEstimatedCost"].startswith("₹")


@pytest.mark.asyncio
async def test_sanitizer_failure_on_model_output_falls_back(paris_trip, monkeypatch):
    calls = []

    def failing_once(itinerary):
        calls.append(itinerary)
        if len(calls) == 1:
            raise ValueError("unexpected text shape")
        return sanitize_itinerary(itinerary)

    monkeypatch.setattr("src.services.itinerary_generator.sanitize_itinerary", failing_once)
    result = await ItineraryGeneratorService(StubModelClient(make_itinerary_json(4))).generate_itinerary(paris_trip)

    assert result.used_fallback is True
    assert "unexpected text shape" in result.error_detail
