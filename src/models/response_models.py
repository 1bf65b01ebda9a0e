from pydantic import BaseModel, Field, validator
from typing import List, Optional, Dict, Any

def as_text(value: Any) -> str:
    """Flatten a loosely-typed model value (dict, number, list) into a line of text."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        parts = [as_text(v) for v in value.values()]
        return " - ".join(p for p in parts if p)
    if isinstance(value, (list, tuple)):
        return ", ".join(p for p in (as_text(v) for v in value) if p)
    return str(value)

class DayPlan(BaseModel):
    day: int = Field(..., ge=1)
    title: str
    activities: List[str] = Field(..., min_length=1)
    meals: List[str] = Field(default_factory=list)
    transportation: str = ""
    budget: str = ""

    model_config = {"frozen": True}

    @validator('title', 'transportation', 'budget', pre=True)
    def coerce_text(cls, v):
        return as_text(v)

    @validator('activities', 'meals', pre=True)
    def coerce_text_items(cls, v):
        if isinstance(v, (str, dict)):
            v = [v]
        if not isinstance(v, (list, tuple)):
            return v
        items = [as_text(item).strip() for item in v]
        return [item for item in items if item]

class WeatherInfo(BaseModel):
    forecast: str = ""
    packing_recommendations: List[str] = Field(default_factory=list, alias="packingRecommendations")

    model_config = {"frozen": True, "populate_by_name": True}

    @validator('forecast', pre=True)
    def coerce_forecast(cls, v):
        return as_text(v)

class Itinerary(BaseModel):
    """Structured multi-day plan; identical schema whether model-derived or synthesized."""
    title: str
    duration: str
    overview: str
    days: List[DayPlan] = Field(..., min_length=1)
    tips: List[str] = Field(default_factory=list)
    total_estimated_cost: str = Field(..., alias="totalEstimatedCost")
    weather_info: Optional[WeatherInfo] = Field(default=None, alias="weatherInfo")

    model_config = {"frozen": True, "populate_by_name": True}

    @validator('title', 'duration', 'overview', 'total_estimated_cost', pre=True)
    def coerce_text(cls, v):
        return as_text(v)

    @validator('tips', pre=True)
    def coerce_tips(cls, v):
        if isinstance(v, str):
            v = [v]
        if not isinstance(v, (list, tuple)):
            return v
        return [t for t in (as_text(item).strip() for item in v) if t]

    def to_document(self) -> Dict[str, Any]:
        """Wire/storage form (camelCase keys, no nulls)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

class ItineraryResult(BaseModel):
    """Outcome of one pipeline run; fallback usage is a property of the run, not the itinerary."""
    itinerary: Itinerary
    used_fallback: bool = Field(default=False, alias="usedFallback")
    error_detail: Optional[str] = Field(default=None, alias="errorDetail")
    model_id: Optional[str] = Field(default=None, alias="modelId")
    usage: Optional[Dict[str, int]] = None

    model_config = {"frozen": True, "populate_by_name": True}

class AuthenticatedUser(BaseModel):
    uid: str
    email: Optional[str] = None
    email_verified: bool = Field(default=False, alias="emailVerified")
    name: Optional[str] = None
    picture: Optional[str] = None

    model_config = {"populate_by_name": True}

class ItineraryResponse(BaseModel):
    success: bool = True
    trip_id: str = Field(..., alias="tripId")
    itinerary: Dict[str, Any]
    used_fallback: bool = Field(default=False, alias="usedFallback")
    message: Optional[str] = None

    model_config = {"populate_by_name": True}
