"""
Deterministic itinerary template used when the model is unavailable or its
output cannot be used. Depends only on the destination and day count.
"""

from typing import List, Optional

from src.models.request_models import TripRequest
from src.models.response_models import DayPlan, Itinerary, WeatherInfo
from src.models.weather_models import WeatherSummary
from src.utils.config import get_settings
from src.utils.formatters import ResponseFormatter

DAILY_BUDGET_LOW = 8000
DAILY_BUDGET_HIGH = 12000
BASE_COST_LOW = 40000
BASE_COST_HIGH = 65000


def fallback_tips(destination: str) -> List[str]:
    return [
        f"Research local customs and etiquette in {destination}",
        "Book major attractions in advance",
        "Try local cuisine and specialties",
        "Keep important documents safe",
        "Learn basic phrases in the local language",
    ]


def estimate_total_cost(trip_days: int, currency: str = "INR") -> str:
    """Per-person total estimate for a trip of the given length."""
    low = BASE_COST_LOW + trip_days * DAILY_BUDGET_LOW
    high = BASE_COST_HIGH + trip_days * DAILY_BUDGET_HIGH
    return ResponseFormatter.format_cost_range(low, high, currency, suffix="per person")


def fallback_day(day_number: int, destination: str, currency: str = "INR") -> DayPlan:
    return DayPlan(
        day=day_number,
        title=f"Day {day_number} in {destination}",
        activities=[
            f"Explore main attractions in {destination}",
            f"Visit local markets and cultural sites in {destination}",
            f"Enjoy authentic local cuisine in {destination}",
            "Evening leisure activities",
        ],
        meals=[
            "Local breakfast specialties",
            f"Traditional dinner at a recommended restaurant in {destination}",
        ],
        transportation="Local transport and walking",
        budget=ResponseFormatter.format_cost_range(DAILY_BUDGET_LOW, DAILY_BUDGET_HIGH, currency),
    )


def weather_info_from_summary(weather: Optional[WeatherSummary]) -> Optional[WeatherInfo]:
    if weather is None:
        return None
    packing = [*weather.recommendations.clothing, *weather.recommendations.accessories]
    return WeatherInfo(forecast=weather.describe(), packing_recommendations=packing)


def create_fallback_itinerary(trip: TripRequest, weather: Optional[WeatherSummary] = None) -> Itinerary:
    """Build a plausible itinerary without calling the model. Never raises for a valid trip."""
    settings = get_settings()
    currency = settings.ITINERARY_CURRENCY
    trip_days = trip.trip_length_days
    destination = trip.destination
    planned_days = min(trip_days, settings.FALLBACK_MAX_DAYS)

    return Itinerary(
        title=f"{destination} Adventure",
        duration=ResponseFormatter.format_duration_days(trip_days),
        overview=(
            f"A wonderful {trip_days}-day journey through {destination}, featuring the best "
            "attractions, local experiences, and cultural highlights."
        ),
        days=[fallback_day(i, destination, currency) for i in range(1, planned_days + 1)],
        tips=fallback_tips(destination),
        total_estimated_cost=estimate_total_cost(trip_days, currency),
        weather_info=weather_info_from_summary(weather),
    )
