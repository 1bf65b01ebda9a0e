from datetime import date

from src.models.request_models import BudgetTier, CurrentLocation, TravelStyle, TripRequest, UserPreferences
from src.models.weather_models import DailyForecast, WeatherRecommendations, WeatherSummary
from src.prompts.itinerary_prompts import build_prompt, build_weather_context, prompt_exceeds_limit


def _weather(forecast=None):
    return WeatherSummary(
        destination="Paris",
        forecast=forecast if forecast is not None else [
            DailyForecast(date="2025-06-01", temperature=22, condition="Clear"),
            DailyForecast(date="2025-06-02", temperature=18, condition="Rain", precipitation=3.2),
        ],
        recommendations=WeatherRecommendations(clothing=["Light layers"], accessories=["Umbrella"]),
    )


def test_prompt_is_deterministic(paris_trip):
    assert build_prompt(paris_trip) == build_prompt(paris_trip)


def test_prompt_states_day_count_and_plain_text_rules(paris_trip):
    prompt = build_prompt(paris_trip)
    assert "Paris, 4 days" in prompt
    assert 'Produce exactly 4 entries in "days", numbered 1 to 4' in prompt
    assert "Use plain text only" in prompt
    assert "₹" in prompt and "INR" in prompt
    assert '"totalEstimatedCost"' in prompt


def test_group_phrase_follows_traveler_count():
    solo = TripRequest(destination="Lisbon", start_date=date(2025, 5, 1), end_date=date(2025, 5, 3))
    couple = solo.model_copy(update={"number_of_travelers": 2})
    group = solo.model_copy(update={"participants": ["a", "b", "c"]})

    assert "solo traveler" in build_prompt(solo)
    assert "couple" in build_prompt(couple)
    assert "group of 4 people" in build_prompt(group)


def test_weather_context_only_with_forecast(paris_trip):
    with_weather = build_prompt(paris_trip, weather=_weather())
    assert "Weather Forecast for Paris" in with_weather
    assert "Average temperature: 20°C" in with_weather
    assert "Days with precipitation: 1/2" in with_weather
    assert '"weatherInfo"' in with_weather

    empty_forecast = _weather(forecast=[])
    assert build_weather_context("Paris", empty_forecast) == ""
    assert build_prompt(paris_trip, weather=empty_forecast) == build_prompt(paris_trip)


def test_preferences_from_request_and_override(paris_trip):
    prefs = UserPreferences(budget=BudgetTier.UNDER_500, travel_style=TravelStyle.FAMILY, interests=["art", "food"])
    trip = paris_trip.model_copy(update={"user_preferences": prefs})

    prompt = build_prompt(trip)
    assert "Budget-conscious (Under ₹40,000)" in prompt
    assert "Family-friendly" in prompt
    assert "Interests: art, food" in prompt

    override = UserPreferences(travel_style=TravelStyle.LUXURY)
    overridden = build_prompt(trip, preferences=override)
    assert "Luxury traveler" in overridden
    assert "Family-friendly" not in overridden


def test_exclusions_and_current_location(paris_trip):
    trip = paris_trip.with_excluded_places(["Eiffel Tower", "Louvre"]).model_copy(
        update={"current_location": CurrentLocation(name="London", latitude=51.5, longitude=-0.12)}
    )
    prompt = build_prompt(trip)
    assert "Exclude: Eiffel Tower, Louvre" in prompt
    assert "Starting from: London" in prompt
    assert "Consider transportation from London" in prompt


def test_prompt_limit_helper():
    assert not prompt_exceeds_limit("x" * 10, limit=10)
    assert prompt_exceeds_limit("x" * 11, limit=10)
