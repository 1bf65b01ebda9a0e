"""
Prompt construction for itinerary generation with Vertex AI Gemini.

Everything here is pure: the same trip, preferences and weather always produce
the same prompt text.
"""

from typing import List, Optional

from src.models.request_models import TripRequest, UserPreferences
from src.models.weather_models import WeatherSummary
from src.utils.formatters import ResponseFormatter

# Soft limit: longer prompts are logged by the caller but still sent.
MAX_PROMPT_CHARS = 30000

BUDGET_TIER_LABELS = {
    "under-500": "Budget-conscious (Under ₹40,000)",
    "500-1000": "Mid-range (₹40,000 - ₹80,000)",
    "1000-2500": "Comfortable (₹80,000 - ₹2,00,000)",
    "2500-5000": "Premium (₹2,00,000 - ₹4,00,000)",
    "over-5000": "Luxury (Over ₹4,00,000)",
}

TRAVEL_STYLE_LABELS = {
    "budget": "Budget traveler - focus on affordable options and value for money",
    "mid-range": "Mid-range traveler - balance of comfort and cost",
    "luxury": "Luxury traveler - premium experiences and comfort",
    "backpacking": "Backpacker - adventurous, flexible, budget-friendly",
    "family": "Family-friendly - activities suitable for all ages",
    "solo": "Solo traveler - safe, social, and flexible options",
    "business": "Business traveler - efficient plans around work commitments",
    "adventure": "Adventure seeker - outdoor and active experiences",
}


def prompt_exceeds_limit(prompt: str, limit: int = MAX_PROMPT_CHARS) -> bool:
    return len(prompt) > limit


def _group_advice(travelers: int) -> str:
    if travelers == 1:
        return "Focus on solo-friendly activities and single occupancy options."
    if travelers == 2:
        return "Recommend romantic/couple activities and double occupancy accommodations."
    return f"Plan group activities suitable for {travelers} people and recommend group accommodations/transportation."


def build_location_context(trip: TripRequest) -> str:
    loc = trip.current_location
    if not loc:
        return ""
    return (
        f"Starting from: {loc.name} ({loc.latitude}, {loc.longitude}). "
        f"Consider travel time and transportation options from this location to {trip.destination}."
    )


def build_weather_context(destination: str, weather: Optional[WeatherSummary]) -> str:
    """Weather block for the prompt; empty when there is no usable forecast."""
    if not weather or not weather.has_forecast:
        return ""
    forecast = weather.forecast
    avg_temp = sum(day.temperature for day in forecast) / len(forecast)
    rain_days = sum(1 for day in forecast if day.precipitation > 0)
    conditions = ", ".join(dict.fromkeys(day.condition for day in forecast))
    clothing = ", ".join(weather.recommendations.clothing) or "Standard travel clothing"
    accessories = ", ".join(weather.recommendations.accessories) or "Basic travel essentials"

    return f"""
Weather Forecast for {destination}:
- Average temperature: {round(avg_temp)}°C
- Expected conditions: {conditions}
- Days with precipitation: {rain_days}/{len(forecast)}
- Recommended clothing: {clothing}
- Additional packing: {accessories}

Consider the weather when suggesting activities (indoor alternatives for rainy days) and include appropriate clothing recommendations in tips."""


def build_preferences_context(preferences: Optional[UserPreferences]) -> str:
    if not preferences or preferences.is_empty():
        return ""
    parts: List[str] = []
    if preferences.budget:
        tier = preferences.budget.value
        parts.append(f"Budget preference: {BUDGET_TIER_LABELS.get(tier, tier)}")
    if preferences.travel_style:
        style = preferences.travel_style.value
        parts.append(f"Travel style: {TRAVEL_STYLE_LABELS.get(style, style)}")
    if preferences.interests:
        parts.append(f"Interests: {', '.join(preferences.interests)}")

    lines = "\n".join(f"- {p}" for p in parts)
    return f"""
User Preferences:
{lines}

Please tailor the itinerary to match these preferences and interests."""


def _json_format_block(days: int, has_weather: bool, currency: str, symbol: str) -> str:
    weather_overview = " including weather considerations" if has_weather else ""
    weather_tip = ', "Weather-appropriate clothing and packing suggestions based on forecast"' if has_weather else ""
    weather_block = (
        ',\n  "weatherInfo": {\n    "forecast": "Brief weather summary for trip dates",\n'
        '    "packingRecommendations": ["Essential items for the weather conditions"]\n  }'
        if has_weather else ""
    )
    return f"""{{
  "title": "Trip title",
  "duration": "{days} Days",
  "overview": "Brief overview in plain text{weather_overview}",
  "days": [
    {{
      "day": 1,
      "title": "Day title in plain text",
      "activities": ["Activity 1 description in plain text", "Activity 2 description in plain text", "Activity 3 description in plain text"],
      "meals": ["Breakfast suggestion in plain text", "Dinner suggestion in plain text"],
      "transportation": "Transport method in plain text",
      "budget": "Daily budget estimate in {currency} with {symbol} symbol"
    }}
  ],
  "tips": ["Tip 1 in plain text without markdown", "Tip 2 in plain text without markdown", "Tip 3 in plain text without markdown"{weather_tip}],
  "totalEstimatedCost": "Total cost estimate in {currency} with {symbol} symbol"{weather_block}
}}"""


def build_prompt(
    trip: TripRequest,
    preferences: Optional[UserPreferences] = None,
    weather: Optional[WeatherSummary] = None,
    currency: str = "INR",
) -> str:
    """Build the itinerary prompt for a trip.

    Preferences default to the ones carried on the trip request. Weather only
    changes the prompt when it contains a forecast.
    """
    preferences = preferences if preferences is not None else trip.user_preferences
    days = trip.trip_length_days
    travelers = trip.traveler_count
    symbol = ResponseFormatter.currency_symbol(currency)
    budget = f"{trip.budget:g}" if trip.budget else "moderate"
    group = ResponseFormatter.format_group_info(travelers)

    location_context = build_location_context(trip)
    weather_context = build_weather_context(trip.destination, weather)
    preferences_context = build_preferences_context(preferences)
    has_weather = bool(weather_context)

    lines = [
        f"Create a travel itinerary in JSON format for {trip.destination}, {days} days, "
        f"{travelers} traveler(s), budget: {budget}.",
        "",
        f"Group Size: {travelers} {group}",
    ]
    for context in (location_context, weather_context, preferences_context):
        if context:
            lines.append(context)

    lines.extend([
        "",
        "IMPORTANT:",
        "- Use plain text only. Do not use markdown formatting (**bold**, *italics*) or special characters. "
        "Write in clean, readable plain text.",
        f"- All budget and cost estimates should be in {currency} using the {symbol} symbol.",
        f"- Consider the group size of {travelers} people when recommending activities, accommodations, and transportation.",
        f"- {_group_advice(travelers)}",
    ])
    if has_weather:
        lines.append("- Factor in the weather forecast when suggesting activities and include weather-appropriate clothing recommendations.")
    if preferences_context:
        lines.append("- Tailor all recommendations to match the user's specified preferences, travel style, and interests.")

    lines.extend([
        "",
        "JSON format (be concise):",
        _json_format_block(days, has_weather, currency, symbol),
        "",
        f"Include specific places, restaurants, attractions for {trip.destination}. "
        "Name real attractions rather than generic placeholders. Focus on popular attractions and practical details.",
        f"Produce exactly {days} entries in \"days\", numbered 1 to {days}, with no repeated days.",
        "Use plain text descriptions without any markdown formatting like asterisks or bold text.",
        f"All budget estimates and costs should be in {currency} with proper {symbol} symbol formatting.",
    ])
    if has_weather:
        lines.append("Include indoor and outdoor activity options based on the weather forecast. "
                     "Suggest appropriate clothing and gear in the tips section.")
    if trip.excluded_places:
        lines.append(f"Exclude: {', '.join(trip.excluded_places)}. Do not include these places anywhere in the itinerary.")
    if trip.current_location:
        lines.append(f"Consider transportation from {trip.current_location.name} and include travel recommendations.")

    lines.extend([
        "",
        "Return only valid JSON with plain text content, no markdown formatting, no extra text.",
    ])
    return "\n".join(lines)
