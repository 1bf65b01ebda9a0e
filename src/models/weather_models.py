from pydantic import BaseModel, Field
from typing import List, Optional

class DailyForecast(BaseModel):
    date: Optional[str] = None
    temperature: float = 0.0  # daily average, °C
    min_temperature: Optional[float] = None
    max_temperature: Optional[float] = None
    condition: str = "unknown"
    description: Optional[str] = None
    precipitation: float = 0.0  # mm
    humidity: Optional[int] = None
    wind_speed: Optional[float] = None

class WeatherRecommendations(BaseModel):
    clothing: List[str] = Field(default_factory=list)
    accessories: List[str] = Field(default_factory=list)
    activities: List[str] = Field(default_factory=list)
    general: List[str] = Field(default_factory=list)

class CurrentWeather(BaseModel):
    temperature: float
    feels_like: Optional[float] = None
    humidity: Optional[int] = None
    description: Optional[str] = None
    condition: str = "unknown"
    wind_speed: float = 0.0

class WeatherSummary(BaseModel):
    """Weather context for a trip; optional input to prompt building."""
    destination: str
    forecast: List[DailyForecast] = Field(default_factory=list)
    current: Optional[CurrentWeather] = None
    recommendations: WeatherRecommendations = Field(default_factory=WeatherRecommendations)
    note: Optional[str] = None

    @property
    def has_forecast(self) -> bool:
        return len(self.forecast) > 0

    def describe(self) -> str:
        """One-line plain text summary of the forecast."""
        if not self.forecast:
            if self.current:
                return f"Currently {round(self.current.temperature)}°C and {self.current.condition.lower()} in {self.destination}"
            return f"No forecast available for {self.destination}"
        avg = sum(d.temperature for d in self.forecast) / len(self.forecast)
        conditions = ", ".join(dict.fromkeys(d.condition for d in self.forecast))
        rain_days = sum(1 for d in self.forecast if d.precipitation > 0)
        return (
            f"Around {round(avg)}°C with {conditions.lower()}; "
            f"precipitation expected on {rain_days} of {len(self.forecast)} days"
        )
