from datetime import date, timedelta

import pytest

from src.models.request_models import TripRequest
from src.models.weather_models import DailyForecast, WeatherRecommendations, WeatherSummary
from src.services.fallback_itinerary import create_fallback_itinerary, estimate_total_cost


def _trip(days: int, destination: str = "Jaipur") -> TripRequest:
    start = date(2025, 11, 1)
    return TripRequest(destination=destination, start_date=start, end_date=start + timedelta(days=days))


@pytest.mark.parametrize("trip_days, expected_days", [(1, 1), (3, 3), (10, 7)])
def test_day_count_is_capped_and_numbered(trip_days, expected_days):
    itinerary = create_fallback_itinerary(_trip(trip_days))

    assert [d.day for d in itinerary.days] == list(range(1, expected_days + 1))
    assert itinerary.duration == (f"{trip_days} Days" if trip_days > 1 else "1 Day")


def test_template_content():
    itinerary = create_fallback_itinerary(_trip(3))
    day = itinerary.days[0]

    assert itinerary.title == "Jaipur Adventure"
    assert day.title == "Day 1 in Jaipur"
    assert len(day.activities) == 4
    assert all("Jaipur" in a for a in day.activities[:3])
    assert len(day.meals) == 2
    assert day.transportation == "Local transport and walking"
    assert day.budget == "₹8,000-12,000"
    assert len(itinerary.tips) == 5
    assert itinerary.weather_info is None


def test_total_cost_uses_uncapped_length():
    assert estimate_total_cost(3) == "₹64,000-101,000 per person"
    assert create_fallback_itinerary(_trip(10)).total_estimated_cost == "₹120,000-185,000 per person"


def test_same_day_trip_counts_as_one_day():
    start = date(2025, 11, 1)
    trip = TripRequest(destination="Goa", start_date=start, end_date=start)
    assert len(create_fallback_itinerary(trip).days) == 1


def test_weather_is_echoed():
    weather = WeatherSummary(
        destination="Jaipur",
        forecast=[DailyForecast(date="2025-11-01", temperature=31, condition="Clear")],
        recommendations=WeatherRecommendations(clothing=["Sun hat"], accessories=["Sunscreen"]),
    )

    itinerary = create_fallback_itinerary(_trip(2), weather)

    assert "31°C" in itinerary.weather_info.forecast
    assert itinerary.weather_info.packing_recommendations == ["Sun hat", "Sunscreen"]


def test_deterministic():
    assert create_fallback_itinerary(_trip(4)) == create_fallback_itinerary(_trip(4))
