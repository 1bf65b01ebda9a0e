import vertexai
from vertexai.generative_models import GenerationConfig, GenerativeModel
from google.api_core import exceptions as google_exceptions
from tenacity import AsyncRetrying, before_sleep_log, retry_if_exception_type, stop_after_attempt, wait_exponential
import asyncio
import base64
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from src.utils.config import get_settings, candidate_model_ids
from src.utils.exceptions import ConfigurationError, EmptyResponseError, ModelError, RetryableModelError

SMOKE_TEST_PROMPT = "Hello"

# Provider errors worth another attempt; everything else from the provider is terminal.
TRANSIENT_PROVIDER_ERRORS = (
    google_exceptions.ServiceUnavailable,
    google_exceptions.DeadlineExceeded,
    google_exceptions.ResourceExhausted,
    google_exceptions.TooManyRequests,
    google_exceptions.InternalServerError,
    google_exceptions.Aborted,
)


@dataclass(frozen=True)
class ModelResponse:
    text: str
    model_id: str
    usage: Dict[str, int] = field(default_factory=dict)


def extract_response_text(response: Any) -> Optional[str]:
    """Recover text from a Vertex response envelope.

    Tries the ``text`` accessor first (property or callable), then walks
    candidates -> content -> parts. Returns None when nothing is recoverable.
    """
    try:
        text_attr = getattr(response, "text", None)
        if callable(text_attr):
            text_attr = text_attr()
        if isinstance(text_attr, str) and text_attr.strip():
            return text_attr
    except (ValueError, AttributeError, IndexError):
        # The SDK raises ValueError when the response has no text part or several candidates
        pass

    candidates = getattr(response, "candidates", None)
    if not candidates:
        return None
    parts_text: List[str] = []
    for cand in candidates:
        content = getattr(cand, "content", None)
        parts = getattr(content, "parts", None) if content else None
        if not parts:
            continue
        for part in parts:
            t = getattr(part, "text", None)
            if isinstance(t, str) and t:
                parts_text.append(t)
                continue
            inline = getattr(part, "inline_data", None)
            data_b64 = getattr(inline, "data", None) if inline else None
            if isinstance(data_b64, (bytes, str)) and data_b64:
                try:
                    raw = base64.b64decode(data_b64 if isinstance(data_b64, bytes) else data_b64.encode())
                    parts_text.append(raw.decode("utf-8", errors="ignore"))
                except ValueError:
                    continue
    combined = "\n".join(parts_text).strip()
    return combined or None


def _usage_from_response(response: Any, prompt: str, text: str) -> Dict[str, int]:
    usage = getattr(response, "usage_metadata", None)
    prompt_tokens = getattr(usage, "prompt_token_count", None) if usage else None
    completion_tokens = getattr(usage, "candidates_token_count", None) if usage else None
    if not isinstance(prompt_tokens, int) or not isinstance(completion_tokens, int):
        # Rough estimate when the provider does not report usage
        prompt_tokens = len(prompt) // 4
        completion_tokens = len(text) // 4
    return {
        "prompt_tokens": prompt_tokens,
        "completion_tokens": completion_tokens,
        "total_tokens": prompt_tokens + completion_tokens,
    }


class VertexModelClient:
    """Owned handle on a Vertex AI generative model.

    The model is chosen lazily on first use by smoke-testing candidate ids in
    priority order; the winner is cached for the life of the process. Concurrent
    first callers share a single initialization.
    """

    def __init__(
        self,
        project_id: str,
        location: str = "us-central1",
        candidate_models: Optional[List[str]] = None,
        model_factory: Optional[Callable[[str], Any]] = None,
        max_attempts: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
        timeout_seconds: Optional[float] = None,
    ):
        settings = get_settings()
        self.project_id = project_id
        self.location = location
        self.candidate_models = candidate_models or candidate_model_ids()
        self.max_attempts = max_attempts if max_attempts is not None else settings.VERTEX_AI_MAX_ATTEMPTS
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.VERTEX_AI_BACKOFF_SECONDS
        self.timeout_seconds = timeout_seconds if timeout_seconds is not None else settings.VERTEX_AI_TIMEOUT_SECONDS
        self.logger = logging.getLogger(__name__)

        self._model_factory = model_factory or self._vertex_model_factory
        self._vertex_initialized = False
        self._init_lock = asyncio.Lock()
        self._model: Any = None
        self._model_id: Optional[str] = None
        self._init_error: Optional[ConfigurationError] = None

    # --- model construction -------------------------------------------------

    def _vertex_model_factory(self, model_id: str) -> GenerativeModel:
        if not self._vertex_initialized:
            vertexai.init(project=self.project_id, location=self.location)
            self._vertex_initialized = True
            self.logger.info(f"Vertex AI initialized for project {self.project_id}", extra={"location": self.location})
        settings = get_settings()
        return GenerativeModel(
            model_id,
            generation_config=GenerationConfig(
                temperature=settings.VERTEX_AI_TEMPERATURE,
                top_p=settings.VERTEX_AI_TOP_P,
                top_k=settings.VERTEX_AI_TOP_K,
                max_output_tokens=settings.VERTEX_AI_MAX_OUTPUT_TOKENS,
            ),
        )

    # --- initialization -----------------------------------------------------

    @property
    def model_id(self) -> Optional[str]:
        return self._model_id

    @property
    def is_initialized(self) -> bool:
        return self._model is not None

    @property
    def is_unavailable(self) -> bool:
        return self._init_error is not None

    def reset(self) -> None:
        """Forget the selected model (or cached failure) so the next call re-runs selection."""
        self._model = None
        self._model_id = None
        self._init_error = None

    async def ensure_initialized(self) -> str:
        """Select a working model once; returns its id or raises ConfigurationError."""
        if self._model is not None:
            return self._model_id
        if self._init_error is not None:
            raise self._init_error
        async with self._init_lock:
            # Another caller may have finished while we waited
            if self._model is not None:
                return self._model_id
            if self._init_error is not None:
                raise self._init_error

            self.logger.info(
                "[vertex] selecting model",
                extra={"project": self.project_id, "location": self.location, "candidates": self.candidate_models},
            )
            for model_id in self.candidate_models:
                model = await self._try_candidate(model_id)
                if model is not None:
                    self._model = model
                    self._model_id = model_id
                    self.logger.info(f"[vertex] using model {model_id}")
                    return model_id

            self._init_error = ConfigurationError(
                f"No available Vertex AI models found in region {self.location} "
                f"(tried: {', '.join(self.candidate_models)})"
            )
            self.logger.error("[vertex] model selection failed", extra={"candidates": self.candidate_models})
            raise self._init_error

    async def _try_candidate(self, model_id: str) -> Any:
        """Smoke-test one candidate; returns the model when it answers with text, else None."""
        self.logger.debug(f"[vertex] trying model {model_id}")
        try:
            model = self._model_factory(model_id)
            response = await asyncio.wait_for(
                model.generate_content_async(SMOKE_TEST_PROMPT), timeout=self.timeout_seconds
            )
            if extract_response_text(response):
                return model
            self.logger.warning(f"[vertex] model {model_id} returned no text for smoke test")
        except Exception as e:
            self.logger.warning(f"[vertex] model {model_id} failed: {str(e)[:100]}")
        return None

    # --- generation ---------------------------------------------------------

    async def _attempt(self, prompt: str) -> Any:
        """One provider call, classifying failures as retryable or terminal."""
        try:
            return await asyncio.wait_for(self._model.generate_content_async(prompt), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            raise RetryableModelError(f"Model call timed out after {self.timeout_seconds}s", self._model_id) from e
        except TRANSIENT_PROVIDER_ERRORS as e:
            raise RetryableModelError(f"Transient model error: {e}", self._model_id) from e
        except ConnectionError as e:
            raise RetryableModelError(f"Connection error: {e}", self._model_id) from e
        except google_exceptions.GoogleAPICallError as e:
            raise ModelError(f"Model call rejected: {e}", self._model_id) from e

    async def call_model(self, prompt: str) -> ModelResponse:
        """Send a prompt to the selected model and return its text.

        Raises ConfigurationError when no model could be selected, ModelError when
        the call fails after retries or yields no text.
        """
        model_id = await self.ensure_initialized()
        self.logger.info(
            "[vertex] request",
            extra={"model": model_id, "prompt_len": len(prompt), "max_attempts": self.max_attempts},
        )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.backoff_seconds),
            retry=retry_if_exception_type(RetryableModelError),
            before_sleep=before_sleep_log(self.logger, logging.WARNING),
            reraise=True,
        )
        response = None
        async for attempt in retrying:
            with attempt:
                response = await self._attempt(prompt)

        text = extract_response_text(response)
        if not text:
            self.logger.error("[vertex] Empty or unsupported response from model", extra={"model": model_id})
            raise EmptyResponseError("Empty or invalid response from Vertex AI", model_id)

        usage = _usage_from_response(response, prompt, text)
        self.logger.info("[vertex] response received", extra={"model": model_id, "response_len": len(text), "usage": usage})
        return ModelResponse(text=text, model_id=model_id, usage=usage)
