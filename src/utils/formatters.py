from typing import Dict, Any, Optional
from datetime import date
import re

from src.models.response_models import Itinerary

CURRENCY_SYMBOLS = {
    'USD': '$',
    'EUR': '€',
    'GBP': '£',
    'JPY': '¥',
    'CAD': 'C$',
    'AUD': 'A$',
    'INR': '₹',
}

class ResponseFormatter:
    """Format responses for better presentation and API consistency"""

    @staticmethod
    def currency_symbol(currency: str = "INR") -> str:
        return CURRENCY_SYMBOLS.get(currency.upper(), currency)

    @staticmethod
    def format_currency(amount: float, currency: str = "INR", decimals: Optional[bool] = None) -> str:
        """Format currency amount with proper symbols"""
        symbol = ResponseFormatter.currency_symbol(currency)

        if decimals is None:
            # No decimal places for these currencies
            decimals = currency.upper() not in ['JPY', 'INR']
        if decimals:
            return f"{symbol}{amount:,.2f}"
        return f"{symbol}{amount:,.0f}"

    @staticmethod
    def format_cost_range(low: float, high: float, currency: str = "INR", suffix: str = "") -> str:
        """Format an estimate range, e.g. ₹8,000-12,000"""
        low_text = ResponseFormatter.format_currency(low, currency, decimals=False)
        text = f"{low_text}-{high:,.0f}"
        return f"{text} {suffix}".strip()

    @staticmethod
    def format_duration_days(days: int) -> str:
        return f"{days} Day" if days == 1 else f"{days} Days"

    @staticmethod
    def format_date_range(start_date: date, end_date: date) -> str:
        """Format date range in a user-friendly way"""
        duration = (end_date - start_date).days

        if duration == 0:
            return f"{start_date.strftime('%B %d, %Y')}"
        elif duration == 1:
            return f"{start_date.strftime('%B %d')} - {end_date.strftime('%B %d, %Y')}"
        else:
            return f"{start_date.strftime('%B %d')} - {end_date.strftime('%B %d, %Y')} ({duration} days)"

    @staticmethod
    def format_group_info(traveler_count: int) -> str:
        """Group phrase used in prompts and summaries"""
        if traveler_count == 1:
            return "solo traveler"
        if traveler_count == 2:
            return "couple"
        return f"group of {traveler_count} people"


# Markdown emphasis clean-up. Order matters: paired markers first, stray asterisks last.
_BOLD_STARS = re.compile(r"\*\*(.*?)\*\*")
_ITALIC_STAR = re.compile(r"\*(.*?)\*")
_BOLD_UNDERSCORES = re.compile(r"__(.*?)__")
_ITALIC_UNDERSCORE = re.compile(r"_(.*?)_")
_STRAY_STARS = re.compile(r"\*+")


def clean_markdown_text(text: str) -> str:
    """Strip **bold**, *italic*, __bold__, _italic_ and stray asterisks, keeping the inner text."""
    if not isinstance(text, str):
        return text
    text = _BOLD_STARS.sub(r"\1", text)
    text = _ITALIC_STAR.sub(r"\1", text)
    text = _BOLD_UNDERSCORES.sub(r"\1", text)
    text = _ITALIC_UNDERSCORE.sub(r"\1", text)
    text = _STRAY_STARS.sub("", text)
    return text.strip()


def sanitize_value(value: Any) -> Any:
    """Recursively clean every string in nested dicts/lists; other values pass through."""
    if isinstance(value, dict):
        return {k: sanitize_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [sanitize_value(v) for v in value]
    if isinstance(value, str):
        return clean_markdown_text(value)
    return value


def sanitize_itinerary(itinerary: Itinerary) -> Itinerary:
    """Return a new itinerary with markdown emphasis removed from every string field."""
    cleaned = sanitize_value(itinerary.model_dump(by_alias=True, exclude_none=True))
    return Itinerary.model_validate(cleaned)


def summarize_itinerary(itinerary: Itinerary) -> Dict[str, Any]:
    """Compact shape summary for structured log payloads."""
    return {
        "title": itinerary.title,
        "days": len(itinerary.days),
        "tips": len(itinerary.tips),
        "has_weather": itinerary.weather_info is not None,
    }
