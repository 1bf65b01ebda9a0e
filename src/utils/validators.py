import re
from typing import List, Dict, Any, Optional
from datetime import date

from src.models.request_models import TripRequest
from src.utils.config import get_settings
from src.utils.exceptions import TripValidationError

class TripRequestValidator:
    """Precondition checks for trip requests before they reach the pipeline"""

    @staticmethod
    def validate_destination(destination: str) -> bool:
        """Validate destination string (allow common punctuation like commas)."""
        if not destination or len(destination.strip()) < 2:
            return False
        # Letters (any script), digits, spaces and punctuation seen in place names
        # e.g., "Paris, France", "St. John's", "São Paulo", "Queens (NY)"
        pattern = r"^[\w\s\-\'\.,&()/]+$"
        return re.match(pattern, destination.strip()) is not None

    @staticmethod
    def validate_dates(start_date: date, end_date: date, today: Optional[date] = None) -> Dict[str, Any]:
        """Validate trip dates"""
        errors = []
        today = today or date.today()
        max_days = get_settings().MAX_TRIP_DURATION_DAYS

        if start_date < today:
            errors.append("Start date cannot be in the past")

        if end_date < start_date:
            errors.append("End date must be on or after start date")

        trip_duration = (end_date - start_date).days
        if trip_duration > max_days:
            errors.append(f"Trip duration cannot exceed {max_days} days")

        return {
            'valid': len(errors) == 0,
            'errors': errors,
            'duration_days': max(1, trip_duration)
        }

    @staticmethod
    def validate_budget(budget: Optional[float], traveler_count: int = 1) -> Dict[str, Any]:
        """Validate the optional trip budget"""
        errors = []
        max_budget = get_settings().MAX_BUDGET

        if budget is not None:
            if budget <= 0:
                errors.append("Budget must be greater than zero")
            elif budget > max_budget:
                errors.append(f"Budget cannot exceed {max_budget:,.0f}")

        budget_per_person = (budget / traveler_count) if budget and traveler_count else 0

        return {
            'valid': len(errors) == 0,
            'errors': errors,
            'budget_per_person': budget_per_person
        }

    @staticmethod
    def validate_travelers(traveler_count: int) -> Dict[str, Any]:
        """Validate group size"""
        errors = []
        max_group = get_settings().MAX_GROUP_SIZE

        if traveler_count < 1 or traveler_count > max_group:
            errors.append(f"Group size must be between 1 and {max_group} people")

        return {
            'valid': len(errors) == 0,
            'errors': errors,
            'is_solo': traveler_count == 1,
            'is_group': traveler_count > 2
        }

    @staticmethod
    def validate_complete_request(request: TripRequest, today: Optional[date] = None) -> Dict[str, Any]:
        """Validate a complete trip request"""
        all_errors = []
        all_warnings = []
        validation_results = {}

        if not TripRequestValidator.validate_destination(request.destination):
            all_errors.append("Invalid destination")

        date_validation = TripRequestValidator.validate_dates(request.start_date, request.end_date, today)
        if not date_validation['valid']:
            all_errors.extend(date_validation['errors'])
        validation_results['dates'] = date_validation

        budget_validation = TripRequestValidator.validate_budget(request.budget, request.traveler_count)
        if not budget_validation['valid']:
            all_errors.extend(budget_validation['errors'])
        validation_results['budget'] = budget_validation

        group_validation = TripRequestValidator.validate_travelers(request.traveler_count)
        if not group_validation['valid']:
            all_errors.extend(group_validation['errors'])
        validation_results['group'] = group_validation

        if request.budget is None:
            all_warnings.append("No budget provided; estimates will assume a moderate budget")
        if len(request.excluded_places) > 20:
            all_warnings.append("Long exclusion lists may leave few attractions to choose from")

        return {
            'valid': len(all_errors) == 0,
            'errors': all_errors,
            'warnings': all_warnings,
            'details': validation_results
        }

    @staticmethod
    def ensure_valid(request: TripRequest, today: Optional[date] = None) -> None:
        """Raise TripValidationError when the request fails any check"""
        result = TripRequestValidator.validate_complete_request(request, today)
        if not result['valid']:
            raise TripValidationError(result['errors'])

    @staticmethod
    def suggest_improvements(request: TripRequest) -> List[str]:
        """Suggest improvements to the trip request"""
        suggestions = []

        if request.trip_length_days > 14:
            suggestions.append("Consider breaking long trips into multiple shorter trips for better planning")

        if request.budget:
            budget_per_person = request.budget / request.traveler_count
            if budget_per_person < 10000:
                suggestions.append("Consider increasing budget for a more comfortable trip experience")

        preferences = request.user_preferences
        if preferences is None or preferences.is_empty():
            suggestions.append("Add a travel style or interests for more targeted recommendations")
        elif len(preferences.interests) > 8:
            suggestions.append("Consider focusing on top 5-6 interests for more targeted recommendations")

        if request.number_of_travelers and request.participants and len(request.participants) + 1 != request.number_of_travelers:
            suggestions.append("Number of travelers does not match the participant list")

        return suggestions
