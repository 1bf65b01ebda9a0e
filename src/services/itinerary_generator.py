import asyncio
import logging
from enum import Enum
from typing import List, Optional
from datetime import datetime

from src.models.request_models import TripRequest
from src.models.response_models import Itinerary, ItineraryResult
from src.models.weather_models import WeatherSummary
from src.prompts.itinerary_prompts import build_prompt, prompt_exceeds_limit
from src.services.fallback_itinerary import create_fallback_itinerary
from src.services.itinerary_parser import ItineraryResponseParser
from src.services.vertex_ai_service import VertexModelClient
from src.utils.config import get_settings
from src.utils.exceptions import ConfigurationError, ModelError, ParseError
from src.utils.formatters import sanitize_itinerary, summarize_itinerary


class PipelineState(str, Enum):
    BUILDING = "building"
    CALLING = "calling"
    PARSING = "parsing"
    SUCCEEDED = "succeeded"
    FALLEN_BACK = "fallen_back"


class ItineraryGeneratorService:
    """Drives one itinerary generation: prompt, model call, parse, with fallback on any failure.

    generate_itinerary never raises for a valid trip; only cancellation propagates.
    """

    def __init__(self, model_client: VertexModelClient, parser: Optional[ItineraryResponseParser] = None):
        self.model_client = model_client
        self.parser = parser or ItineraryResponseParser()
        self.logger = logging.getLogger(__name__)

    def _transition(self, state: PipelineState, trip: TripRequest, **extra) -> None:
        self.logger.info(
            f"[pipeline] {state.value}",
            extra={"state": state.value, "destination": trip.destination, **extra},
        )

    async def generate_itinerary(self, trip: TripRequest, weather: Optional[WeatherSummary] = None) -> ItineraryResult:
        start_time = datetime.utcnow()
        settings = get_settings()

        self._transition(
            PipelineState.BUILDING, trip,
            days=trip.trip_length_days, travelers=trip.traveler_count, has_weather=weather is not None,
        )
        try:
            prompt = build_prompt(trip, weather=weather, currency=settings.ITINERARY_CURRENCY)
            if prompt_exceeds_limit(prompt, settings.MAX_PROMPT_CHARS):
                self.logger.warning(
                    "[pipeline] prompt exceeds recommended length; sending anyway",
                    extra={"prompt_len": len(prompt), "limit": settings.MAX_PROMPT_CHARS},
                )

            self._transition(PipelineState.CALLING, trip, prompt_len=len(prompt))
            response = await self.model_client.call_model(prompt)

            self._transition(PipelineState.PARSING, trip, model=response.model_id, response_len=len(response.text))
            itinerary = sanitize_itinerary(self.parser.parse(response.text, trip))
        except asyncio.CancelledError:
            self.logger.info("[pipeline] cancelled", extra={"destination": trip.destination})
            raise
        except ConfigurationError as e:
            self.logger.error("[pipeline] AI generation unavailable", extra={"error": str(e)})
            return self._fall_back(trip, weather, str(e))
        except ModelError as e:
            self.logger.warning("[pipeline] model call failed", extra={"error": str(e), "model": e.model_id})
            return self._fall_back(trip, weather, str(e))
        except ParseError as e:
            self.logger.warning("[pipeline] model output unusable", extra={"error": str(e), "preview": e.raw_preview})
            return self._fall_back(trip, weather, str(e))
        except Exception as e:
            self.logger.exception("[pipeline] unexpected error during generation")
            return self._fall_back(trip, weather, f"Unexpected error: {e}")

        elapsed = (datetime.utcnow() - start_time).total_seconds()
        self._transition(
            PipelineState.SUCCEEDED, trip,
            generation_time_s=round(elapsed, 2), **summarize_itinerary(itinerary),
        )
        return ItineraryResult(
            itinerary=itinerary,
            used_fallback=False,
            model_id=response.model_id,
            usage=response.usage,
        )

    async def regenerate_itinerary(
        self,
        trip: TripRequest,
        excluded_places: List[str],
        weather: Optional[WeatherSummary] = None,
    ) -> ItineraryResult:
        """Same as generate_itinerary, with extra places excluded from the new plan."""
        updated = trip.with_excluded_places(excluded_places)
        self.logger.info(
            "[pipeline] regenerating",
            extra={"destination": trip.destination, "excluded": updated.excluded_places},
        )
        return await self.generate_itinerary(updated, weather)

    def fallback_itinerary(self, trip: TripRequest, weather: Optional[WeatherSummary] = None) -> Itinerary:
        """Template itinerary without touching the model."""
        return sanitize_itinerary(create_fallback_itinerary(trip, weather))

    def _fall_back(self, trip: TripRequest, weather: Optional[WeatherSummary], detail: str) -> ItineraryResult:
        itinerary = self.fallback_itinerary(trip, weather)
        self._transition(PipelineState.FALLEN_BACK, trip, reason=detail[:200], days=len(itinerary.days))
        return ItineraryResult(itinerary=itinerary, used_fallback=True, error_detail=detail)
