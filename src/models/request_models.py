from pydantic import BaseModel, Field, validator
from datetime import date
from typing import List, Optional, Dict, Any
from enum import Enum

class BudgetTier(str, Enum):
    UNDER_500 = "under-500"
    RANGE_500_1000 = "500-1000"
    RANGE_1000_2500 = "1000-2500"
    RANGE_2500_5000 = "2500-5000"
    OVER_5000 = "over-5000"

class TravelStyle(str, Enum):
    BUDGET = "budget"
    MID_RANGE = "mid-range"
    LUXURY = "luxury"
    BACKPACKING = "backpacking"
    FAMILY = "family"
    SOLO = "solo"
    BUSINESS = "business"
    ADVENTURE = "adventure"

class TripStatus(str, Enum):
    PLANNING = "planning"
    PLANNED = "planned"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

class CurrentLocation(BaseModel):
    name: str = Field(..., min_length=1)
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)

class UserPreferences(BaseModel):
    budget: Optional[BudgetTier] = None
    travel_style: Optional[TravelStyle] = Field(default=None, alias="travelStyle")
    interests: List[str] = Field(default_factory=list)

    model_config = {"populate_by_name": True}

    def is_empty(self) -> bool:
        return self.budget is None and self.travel_style is None and not self.interests

def _dedupe(items: List[str]) -> List[str]:
    seen = set()
    out = []
    for item in items:
        key = item.strip()
        if key and key.lower() not in seen:
            seen.add(key.lower())
            out.append(key)
    return out

class TripRequest(BaseModel):
    """Everything the itinerary pipeline needs to know about one trip."""

    destination: str = Field(..., min_length=1, max_length=200)
    start_date: date = Field(..., alias="startDate")
    end_date: date = Field(..., alias="endDate")
    budget: Optional[float] = Field(default=None, gt=0)

    # Group
    number_of_travelers: Optional[int] = Field(default=None, ge=1, alias="numberOfUsers")
    participants: List[str] = Field(default_factory=list)

    current_location: Optional[CurrentLocation] = Field(default=None, alias="currentLocation")
    excluded_places: List[str] = Field(default_factory=list, alias="excludedPlaces")
    user_preferences: Optional[UserPreferences] = Field(default=None, alias="userPreferences")

    model_config = {"populate_by_name": True}

    @validator('destination')
    def validate_destination(cls, v):
        if not v.strip():
            raise ValueError('Destination is required')
        return v.strip()

    @validator('end_date')
    def validate_dates(cls, v, values):
        if 'start_date' in values and v < values['start_date']:
            raise ValueError('End date must not be before start date')
        return v

    @validator('excluded_places')
    def validate_excluded_places(cls, v):
        return _dedupe(v)

    @property
    def trip_length_days(self) -> int:
        """Whole calendar days spanned by the trip; a same-day trip counts as one."""
        return max(1, (self.end_date - self.start_date).days)

    @property
    def traveler_count(self) -> int:
        if self.number_of_travelers:
            return self.number_of_travelers
        return len(self.participants) + 1

    def with_excluded_places(self, places: List[str]) -> "TripRequest":
        """Copy of this request with extra places folded into the exclusion list."""
        merged = _dedupe([*self.excluded_places, *places])
        return self.model_copy(update={"excluded_places": merged})

# Route-layer payloads

class TripCreateRequest(BaseModel):
    destination: str = Field(..., min_length=2, max_length=200)
    start_date: date = Field(..., alias="startDate")
    end_date: date = Field(..., alias="endDate")
    budget: Optional[float] = Field(default=None, gt=0)
    number_of_travelers: Optional[int] = Field(default=None, ge=1, alias="numberOfUsers")
    participants: List[str] = Field(default_factory=list)
    current_location: Optional[CurrentLocation] = Field(default=None, alias="currentLocation")
    preferences: Optional[UserPreferences] = None

    model_config = {"populate_by_name": True}

class TripUpdateRequest(BaseModel):
    destination: Optional[str] = Field(default=None, min_length=2, max_length=200)
    start_date: Optional[date] = Field(default=None, alias="startDate")
    end_date: Optional[date] = Field(default=None, alias="endDate")
    budget: Optional[float] = Field(default=None, gt=0)
    number_of_travelers: Optional[int] = Field(default=None, ge=1, alias="numberOfUsers")
    participants: Optional[List[str]] = None
    current_location: Optional[CurrentLocation] = Field(default=None, alias="currentLocation")
    preferences: Optional[UserPreferences] = None
    status: Optional[TripStatus] = None

    model_config = {"populate_by_name": True}

    def changes(self) -> Dict[str, Any]:
        """Only the fields the caller actually sent, in stored (camelCase) form."""
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)

class GenerateItineraryRequest(BaseModel):
    preferences: Optional[UserPreferences] = None
    include_weather: bool = Field(default=True, alias="includeWeather")

    model_config = {"populate_by_name": True}

class RegenerateItineraryRequest(BaseModel):
    excluded_places: List[str] = Field(default_factory=list, alias="excludedPlaces")
    preferences: Optional[UserPreferences] = None
    include_weather: bool = Field(default=True, alias="includeWeather")

    model_config = {"populate_by_name": True}

class UserProfileUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    preferences: Optional[UserPreferences] = None

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True, exclude_none=True)
