"""
Turns free-text model output into a validated Itinerary.

Repair is best effort and isolated here: a trailing partially written day is
dropped, never completed, and day content is never invented.
"""

import json
import logging
import re
from typing import Any, List, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from src.models.request_models import TripRequest
from src.models.response_models import DayPlan, Itinerary, WeatherInfo, as_text
from src.services.fallback_itinerary import estimate_total_cost, fallback_tips
from src.utils.config import get_settings
from src.utils.exceptions import ParseError
from src.utils.formatters import ResponseFormatter, sanitize_value

_CODE_FENCE = re.compile(r"```(?:json)?[ \t]*\n?", re.IGNORECASE)
_DAYS_ARRAY = re.compile(r'"days"\s*:\s*\[')
_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_DANGLING_KEY = re.compile(r',?\s*"(?:[^"\\]|\\.)*"\s*:\s*$')


def strip_code_fences(text: str) -> str:
    return _CODE_FENCE.sub("", text or "").strip()


def looks_truncated(text: str) -> bool:
    """True when the JSON starting at the first '{' is cut off.

    That is, it leaves a string or bracket open, or the text does not end with a
    closing brace or bracket.
    """
    start = text.find("{")
    if start == -1:
        return False
    stack, in_string, _ = _scan_structure(text[start:])
    return bool(stack) or in_string or not text.rstrip().endswith(("}", "]"))


def extract_json_object(text: str) -> Optional[str]:
    """First '{' through last '}' (greedy), or None when there is no such span."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    return text[start:end + 1]


def _scan_structure(text: str) -> Tuple[List[str], bool, int]:
    """String-aware bracket scan; returns (open bracket stack, ends inside a string, index of that string's quote)."""
    stack: List[str] = []
    in_string = False
    escape = False
    string_start = -1
    for i, ch in enumerate(text):
        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
            string_start = i
        elif ch in "{[":
            stack.append(ch)
        elif ch in "}]" and stack:
            stack.pop()
    return stack, in_string, string_start


def _scan_days_array(text: str, array_start: int) -> Tuple[List[int], Optional[int]]:
    """Walk the array opened at ``array_start``.

    Returns the offsets just past each complete element object and the index of
    the array's closing bracket (None when the text ends before it closes).
    """
    ends: List[int] = []
    depth = 0
    in_string = False
    escape = False
    for i in range(array_start, len(text)):
        ch = text[i]
        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in "{[":
            depth += 1
        elif ch in "}]":
            depth -= 1
            if depth == 0:
                return ends, i
            if depth == 1 and ch == "}":
                ends.append(i + 1)
    return ends, None


def repair_truncated_days(text: str, tips: List[str], total_cost: str) -> Tuple[str, int]:
    """Close a truncated document at the last complete day and append a minimal tail.

    Returns (repaired text, number of characters discarded). Raises ParseError
    when truncation happened before the days array opened or before any day
    was complete.
    """
    match = _DAYS_ARRAY.search(text)
    if not match:
        raise ParseError("Response truncated before the days array", raw_text=text)
    array_start = match.end() - 1
    ends, close_index = _scan_days_array(text, array_start)
    if close_index is not None:
        head = text[:close_index]
    elif ends:
        head = text[:ends[-1]]
    else:
        raise ParseError("Response truncated before the first complete day", raw_text=text)

    tail = (
        '],"tips":' + json.dumps(tips, ensure_ascii=False)
        + ',"totalEstimatedCost":' + json.dumps(total_cost, ensure_ascii=False) + "}"
    )
    return head + tail, len(text) - len(head)


def balance_json(text: str) -> Optional[str]:
    """Mechanical repair: drop an unterminated string, dangling key or trailing comma, then close open brackets."""
    start = text.find("{")
    if start == -1:
        return None
    s = text[start:]
    _, in_string, string_start = _scan_structure(s)
    if in_string:
        s = s[:string_start]
    s = s.rstrip()
    s = _DANGLING_KEY.sub("", s)
    s = s.rstrip().rstrip(",")
    s = _TRAILING_COMMA.sub(r"\1", s)
    stack, _, _ = _scan_structure(s)
    closers = "".join("}" if opener == "{" else "]" for opener in reversed(stack))
    return s + closers


class ItineraryResponseParser:
    """Parse and, when needed, repair raw model text into an Itinerary."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def parse(self, raw_text: str, trip: TripRequest) -> Itinerary:
        if not raw_text or not raw_text.strip():
            raise ParseError("Empty model output", raw_text=raw_text)

        self.logger.debug("[parser] parsing response", extra={"length": len(raw_text)})
        cleaned = strip_code_fences(raw_text)

        data = self._loads(extract_json_object(cleaned))

        if data is None and looks_truncated(cleaned):
            currency = get_settings().ITINERARY_CURRENCY
            repaired, discarded = repair_truncated_days(
                cleaned, fallback_tips(trip.destination), estimate_total_cost(trip.trip_length_days, currency)
            )
            self.logger.warning(
                "[parser] response truncated; closed days array at last complete day",
                extra={"discarded_chars": discarded, "original_len": len(cleaned)},
            )
            cleaned = repaired
            data = self._loads(extract_json_object(cleaned))

        if data is None:
            repaired = balance_json(cleaned)
            if repaired is not None:
                self.logger.warning("[parser] strict parse failed; retrying with balanced brackets")
                data = self._loads(repaired)

        if data is None:
            raise ParseError("Model output is not valid JSON after repair", raw_text=raw_text)

        return self._build_itinerary(data, trip, raw_text)

    def _loads(self, text: Optional[str]) -> Optional[Any]:
        if text is None:
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            self.logger.debug("[parser] JSON decode failed", extra={"error": str(e)})
            return None

    def _build_itinerary(self, data: Any, trip: TripRequest, raw_text: str) -> Itinerary:
        if not isinstance(data, dict):
            raise ParseError("Model output is not a JSON object", raw_text=raw_text)
        if not isinstance(data.get("days"), list) or not data["days"]:
            raise ParseError("Model output has no days", raw_text=raw_text)

        data = sanitize_value(data)
        days = self._build_days(data["days"])
        if not days:
            raise ParseError("No valid days in model output", raw_text=raw_text)
        if len(days) != trip.trip_length_days:
            self.logger.info(
                "[parser] day count differs from trip length",
                extra={"days": len(days), "trip_length": trip.trip_length_days},
            )

        currency = get_settings().ITINERARY_CURRENCY
        try:
            return Itinerary(
                title=self._text(data.get("title")) or f"{trip.destination} Itinerary",
                duration=self._text(data.get("duration")) or ResponseFormatter.format_duration_days(trip.trip_length_days),
                overview=self._text(data.get("overview")) or f"A {trip.trip_length_days}-day trip to {trip.destination}.",
                days=days,
                tips=self._tips(data.get("tips"), trip),
                total_estimated_cost=self._text(data.get("totalEstimatedCost"))
                or estimate_total_cost(trip.trip_length_days, currency),
                weather_info=self._weather_info(data.get("weatherInfo")),
            )
        except PydanticValidationError as e:
            raise ParseError(f"Model output failed itinerary validation: {e.error_count()} errors", raw_text=raw_text) from e

    def _build_days(self, entries: List[Any]) -> List[DayPlan]:
        """Validate day entries in order, dropping invalid and duplicate ones, numbering by position."""
        days: List[DayPlan] = []
        seen = set()
        for index, entry in enumerate(entries):
            if not isinstance(entry, dict):
                self.logger.warning("[parser] dropping non-object day entry", extra={"index": index})
                continue
            fingerprint = json.dumps({k: v for k, v in entry.items() if k != "day"}, sort_keys=True, default=str)
            if fingerprint in seen:
                self.logger.warning("[parser] dropping duplicate day entry", extra={"index": index, "day": entry.get("day")})
                continue
            try:
                plan = DayPlan.model_validate({**entry, "day": len(days) + 1})
            except PydanticValidationError as e:
                self.logger.warning(
                    "[parser] dropping invalid day entry",
                    extra={"index": index, "errors": e.error_count()},
                )
                continue
            if entry.get("day") != plan.day:
                self.logger.debug("[parser] renumbered day", extra={"from": entry.get("day"), "to": plan.day})
            seen.add(fingerprint)
            days.append(plan)
        return days

    def _weather_info(self, value: Any) -> Optional[WeatherInfo]:
        if not isinstance(value, dict):
            return None
        try:
            return WeatherInfo.model_validate(value)
        except PydanticValidationError:
            self.logger.warning("[parser] ignoring malformed weatherInfo")
            return None

    def _tips(self, value: Any, trip: TripRequest) -> List[str]:
        if isinstance(value, str):
            value = [value]
        tips = [t for t in (as_text(item).strip() for item in value) if t] if isinstance(value, list) else []
        if not tips:
            self.logger.info("[parser] no usable tips; using general tips")
            return fallback_tips(trip.destination)
        return tips

    @staticmethod
    def _text(value: Any) -> str:
        if isinstance(value, str):
            return value.strip()
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return ""


def parse_itinerary(raw_text: str, trip: TripRequest) -> Itinerary:
    return ItineraryResponseParser().parse(raw_text, trip)
