import asyncio

import pytest
from google.api_core import exceptions as google_exceptions

from src.services.vertex_ai_service import VertexModelClient, extract_response_text
from src.utils.exceptions import ConfigurationError, EmptyResponseError, ModelError, RetryableModelError

from conftest import FakeGenerativeModel


def _client(models, candidates=("primary", "secondary"), **kwargs):
    created = []

    def factory(model_id):
        created.append(model_id)
        return models[model_id]

    client = VertexModelClient(
        project_id="test-project",
        candidate_models=list(candidates),
        model_factory=factory,
        backoff_seconds=0,
        **kwargs,
    )
    return client, created


@pytest.mark.asyncio
async def test_selects_first_candidate_that_answers():
    models = {
        "primary": FakeGenerativeModel(smoke_reply=google_exceptions.NotFound("no such model")),
        "secondary": FakeGenerativeModel(replies=["{}"]),
    }
    client, _ = _client(models)

    response = await client.call_model("plan a trip")

    assert response.model_id == "secondary"
    assert response.text == "{}"
    assert client.model_id == "secondary"
    assert models["secondary"].prompts == ["Hello", "plan a trip"]


@pytest.mark.asyncio
async def test_initialization_is_single_flight():
    models = {"primary": FakeGenerativeModel()}
    client, created = _client(models, candidates=("primary",))

    results = await asyncio.gather(*(client.ensure_initialized() for _ in range(5)))

    assert results == ["primary"] * 5
    assert created == ["primary"]
    assert models["primary"].prompts == ["Hello"]


@pytest.mark.asyncio
async def test_no_candidates_raises_and_caches_configuration_error():
    models = {
        "primary": FakeGenerativeModel(smoke_reply=RuntimeError("boom")),
        "secondary": FakeGenerativeModel(smoke_reply=""),
    }
    client, created = _client(models)

    with pytest.raises(ConfigurationError):
        await client.call_model("x")
    with pytest.raises(ConfigurationError):
        await client.call_model("x")

    assert created == ["primary", "secondary"]
    assert client.is_unavailable

    client.reset()
    assert not client.is_unavailable


@pytest.mark.asyncio
async def test_transient_error_is_retried():
    models = {"primary": FakeGenerativeModel(replies=[google_exceptions.ServiceUnavailable("busy"), "ok"])}
    client, _ = _client(models, candidates=("primary",), max_attempts=2)

    response = await client.call_model("prompt")

    assert response.text == "ok"
    assert models["primary"].prompts.count("prompt") == 2


@pytest.mark.asyncio
async def test_retries_stop_after_max_attempts():
    models = {"primary": FakeGenerativeModel(replies=[google_exceptions.ServiceUnavailable("busy")] * 3)}
    client, _ = _client(models, candidates=("primary",), max_attempts=2)

    with pytest.raises(RetryableModelError):
        await client.call_model("prompt")

    assert models["primary"].prompts.count("prompt") == 2


@pytest.mark.asyncio
async def test_terminal_provider_error_is_not_retried():
    models = {"primary": FakeGenerativeModel(replies=[google_exceptions.InvalidArgument("bad prompt"), "never"])}
    client, _ = _client(models, candidates=("primary",), max_attempts=3)

    with pytest.raises(ModelError) as exc_info:
        await client.call_model("prompt")

    assert not isinstance(exc_info.value, RetryableModelError)
    assert models["primary"].prompts.count("prompt") == 1


@pytest.mark.asyncio
async def test_empty_text_is_an_error_not_a_success():
    models = {"primary": FakeGenerativeModel(replies=["   "])}
    client, _ = _client(models, candidates=("primary",))

    with pytest.raises(EmptyResponseError):
        await client.call_model("prompt")


@pytest.mark.asyncio
async def test_timeout_is_retryable():
    class SlowModel(FakeGenerativeModel):
        async def generate_content_async(self, prompt):
            if prompt != "Hello":
                self.prompts.append(prompt)
                await asyncio.sleep(1)
            return await super().generate_content_async("Hello")

    models = {"primary": SlowModel()}
    client, _ = _client(models, candidates=("primary",), max_attempts=2, timeout_seconds=0.05)

    with pytest.raises(RetryableModelError):
        await client.call_model("prompt")

    assert models["primary"].prompts.count("prompt") == 2


def test_extract_text_walks_candidate_parts():
    class Part:
        def __init__(self, text):
            self.text = text
            self.inline_data = None

    class Content:
        parts = [Part('{"a":'), Part(" 1}")]

    class Candidate:
        content = Content()

    class Response:
        candidates = [Candidate()]

        @property
        def text(self):
            raise ValueError("multiple parts")

    assert extract_response_text(Response()) == '{"a":\n 1}'


def test_extract_text_returns_none_for_empty_envelope():
    class Response:
        text = ""
        candidates = []

    assert extract_response_text(Response()) is None
