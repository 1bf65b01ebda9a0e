import logging
from collections import Counter
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from src.models.weather_models import CurrentWeather, DailyForecast, WeatherRecommendations, WeatherSummary
from src.utils.config import get_settings

BASE_URL = "https://api.openweathermap.org/data/2.5"
GEOCODING_URL = "https://api.openweathermap.org/geo/1.0"

# OpenWeatherMap free tier only forecasts five days ahead
FORECAST_HORIZON_DAYS = 5

FORECAST_UNAVAILABLE_NOTE = "Weather forecast is only available for the next 5 days. Current weather provided as reference."


class WeatherService:
    """OpenWeatherMap client producing WeatherSummary values for trip planning.

    Weather is an optional enrichment: every public method returns None or an
    empty result on failure instead of raising.
    """

    def __init__(self, api_key: Optional[str] = None, http_client: Optional[httpx.AsyncClient] = None):
        settings = get_settings()
        self.api_key = api_key if api_key is not None else settings.OPENWEATHER_API_KEY
        self.logger = logging.getLogger(__name__)
        self.http_client = http_client or httpx.AsyncClient(
            timeout=settings.WEATHER_TIMEOUT_SECONDS,
            limits=httpx.Limits(max_keepalive_connections=10, max_connections=20)
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def close(self):
        """Close the HTTP client"""
        await self.http_client.aclose()

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_exponential(multiplier=0.5, max=2),
        retry=retry_if_exception_type((httpx.TransportError,)),
        reraise=True
    )
    async def _get_json(self, url: str, params: Dict[str, Any]) -> Optional[Any]:
        resp = await self.http_client.get(url, params={**params, "appid": self.api_key})
        if resp.status_code != 200:
            self.logger.warning(f"[weather] API error: {resp.status_code}", extra={"url": url})
            return None
        return resp.json()

    async def get_coordinates(self, destination: str) -> Optional[Dict[str, Any]]:
        try:
            data = await self._get_json(f"{GEOCODING_URL}/direct", {"q": destination, "limit": 1})
        except (httpx.HTTPError, ValueError) as e:
            self.logger.warning("[weather] geocoding failed", extra={"destination": destination, "error": str(e)})
            return None
        if not isinstance(data, list) or not data or not isinstance(data[0], dict):
            self.logger.info("[weather] location not found", extra={"destination": destination})
            return None
        first = data[0]
        if first.get("lat") is None or first.get("lon") is None:
            self.logger.warning("[weather] geocoding result has no coordinates", extra={"destination": destination})
            return None
        return {
            "lat": first["lat"],
            "lon": first["lon"],
            "country": first.get("country"),
            "state": first.get("state"),
        }

    async def get_current_weather(self, lat: float, lon: float) -> Optional[CurrentWeather]:
        try:
            data = await self._get_json(f"{BASE_URL}/weather", {"lat": lat, "lon": lon, "units": "metric"})
            if not data:
                return None
            main = data["main"]
            condition = (data.get("weather") or [{}])[0]
            return CurrentWeather(
                temperature=round(main["temp"]),
                feels_like=round(main["feels_like"]) if "feels_like" in main else None,
                humidity=main.get("humidity"),
                description=condition.get("description"),
                condition=condition.get("main", "unknown"),
                wind_speed=(data.get("wind") or {}).get("speed", 0.0),
            )
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            self.logger.warning("[weather] current weather failed", extra={"error": str(e)})
            return None

    async def get_weather_forecast(self, lat: float, lon: float) -> List[DailyForecast]:
        """5-day forecast, 3-hourly entries grouped into daily summaries."""
        try:
            data = await self._get_json(f"{BASE_URL}/forecast", {"lat": lat, "lon": lon, "units": "metric"})
            if not data:
                return []
            return self._group_forecast(data.get("list") or [])
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            self.logger.warning("[weather] forecast failed", extra={"error": str(e)})
            return []

    def _group_forecast(self, entries: List[Dict[str, Any]]) -> List[DailyForecast]:
        days: Dict[str, Dict[str, Any]] = {}
        for item in entries:
            day_key = datetime.fromtimestamp(item["dt"], tz=timezone.utc).date().isoformat()
            bucket = days.setdefault(day_key, {
                "temperatures": [], "conditions": [], "humidity": [], "wind": [], "precipitation": 0.0
            })
            bucket["temperatures"].append(item["main"]["temp"])
            bucket["conditions"].append((item.get("weather") or [{}])[0])
            bucket["humidity"].append(item["main"].get("humidity", 0))
            bucket["wind"].append((item.get("wind") or {}).get("speed", 0.0))
            bucket["precipitation"] += (item.get("rain") or {}).get("3h", 0.0)
            bucket["precipitation"] += (item.get("snow") or {}).get("3h", 0.0)

        forecast = []
        for day_key, bucket in days.items():
            temps = bucket["temperatures"]
            counts = Counter(c.get("main", "unknown") for c in bucket["conditions"])
            main_condition = counts.most_common(1)[0][0]
            description = next(
                (c.get("description") for c in bucket["conditions"] if c.get("main") == main_condition), None
            )
            forecast.append(DailyForecast(
                date=day_key,
                temperature=round(sum(temps) / len(temps)),
                min_temperature=round(min(temps)),
                max_temperature=round(max(temps)),
                condition=main_condition,
                description=description,
                precipitation=round(bucket["precipitation"], 1),
                humidity=round(sum(bucket["humidity"]) / len(bucket["humidity"])),
                wind_speed=round(sum(bucket["wind"]) / len(bucket["wind"]), 1),
            ))
        return forecast

    def generate_recommendations(
        self,
        forecast: List[DailyForecast],
        current: Optional[CurrentWeather] = None,
    ) -> WeatherRecommendations:
        """Packing and activity advice from forecast days, or current weather when there is no forecast."""
        recs = WeatherRecommendations()
        if forecast:
            temps = [d.temperature for d in forecast]
            conditions = {d.condition for d in forecast}
            winds = [d.wind_speed or 0.0 for d in forecast]
        elif current:
            temps = [current.temperature]
            conditions = {current.condition}
            winds = [current.wind_speed]
        else:
            return recs

        max_temp = max(temps)
        min_temp = min(temps)

        if max_temp > 30:
            recs.clothing.extend(["Light, breathable clothing (cotton/linen)", "Shorts and t-shirts", "Sun hat and sunglasses"])
            recs.accessories.append("High SPF sunscreen")
            recs.general.append("Stay hydrated - carry water bottle")
        elif max_temp > 20:
            recs.clothing.extend(["Light layers - t-shirts and light jacket", "Comfortable pants or jeans"])
            if min_temp < 15:
                recs.clothing.append("Warm sweater for cool evenings")
            else:
                recs.clothing.append("Light sweater for evenings")
        elif max_temp > 10:
            recs.clothing.extend(["Warm layers - sweaters and jackets", "Long pants and closed shoes", "Light coat or jacket"])
        elif max_temp > 0:
            recs.clothing.extend(["Heavy winter clothing", "Warm coat, gloves, and scarf", "Insulated boots"])
            recs.accessories.append("Thermal underwear")
        else:
            recs.clothing.extend(["Arctic-level winter gear", "Heavy winter coat and thermal layers", "Winter boots with good grip"])
            recs.accessories.append("Face protection and hand warmers")

        if conditions & {"Rain", "Drizzle"}:
            recs.accessories.extend(["Waterproof jacket or raincoat", "Umbrella", "Waterproof shoes"])
            recs.activities.append("Plan indoor activities as backup")
        if "Snow" in conditions:
            recs.clothing.append("Waterproof winter boots")
            recs.accessories.append("Snow gloves and warm socks")
            recs.activities.append("Check for snow activities (skiing, snowboarding)")
            recs.general.append("Allow extra travel time due to snow")
        if "Thunderstorm" in conditions:
            recs.general.append("Monitor weather alerts")
            recs.activities.append("Have indoor backup plans")
            recs.accessories.append("Waterproof bag for electronics")
        if conditions & {"Clear", "Clouds"}:
            recs.activities.extend(["Great weather for outdoor sightseeing", "Perfect for walking tours"])

        if max(winds) > 10:
            recs.clothing.append("Secure hat or avoid loose accessories")
            recs.general.append("Windy conditions expected - secure belongings")

        return recs

    async def get_weather_for_trip(
        self,
        destination: str,
        start_date: date,
        end_date: date,
        today: Optional[date] = None,
    ) -> Optional[WeatherSummary]:
        """Weather context for the trip dates, or None when nothing could be fetched."""
        if not self.is_configured:
            self.logger.debug("[weather] no API key configured; skipping")
            return None

        coordinates = await self.get_coordinates(destination)
        if not coordinates:
            return None
        lat, lon = coordinates["lat"], coordinates["lon"]

        today = today or date.today()
        days_until_trip = (start_date - today).days
        current = await self.get_current_weather(lat, lon)

        if days_until_trip > FORECAST_HORIZON_DAYS:
            if current is None:
                return None
            self.logger.info("[weather] trip beyond forecast horizon; using current weather", extra={"destination": destination})
            return WeatherSummary(
                destination=destination,
                current=current,
                recommendations=self.generate_recommendations([], current),
                note=FORECAST_UNAVAILABLE_NOTE,
            )

        forecast = await self.get_weather_forecast(lat, lon)
        trip_forecast = [
            d for d in forecast
            if d.date and start_date <= date.fromisoformat(d.date) <= end_date
        ]
        if not trip_forecast and current is None:
            return None

        self.logger.info(
            "[weather] forecast ready",
            extra={"destination": destination, "days": len(trip_forecast)},
        )
        return WeatherSummary(
            destination=destination,
            forecast=trip_forecast,
            current=current,
            recommendations=self.generate_recommendations(trip_forecast, current),
        )


def fallback_weather_summary(destination: str) -> WeatherSummary:
    """General advice returned by the API when live weather is unavailable."""
    return WeatherSummary(
        destination=destination,
        recommendations=WeatherRecommendations(
            clothing=[
                "Pack layers for varying weather conditions",
                "Bring both warm and cool weather clothing",
                "Include a waterproof jacket",
            ],
            accessories=["Umbrella or rain gear", "Comfortable walking shoes", "Sunscreen and sunglasses"],
            activities=["Check local weather before outdoor activities", "Have indoor backup plans"],
            general=[
                "Research typical weather patterns for your destination",
                "Check weather forecast closer to travel date",
            ],
        ),
        note="Weather service unavailable. General recommendations provided.",
    )
