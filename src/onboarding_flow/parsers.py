"""Free-text parsers for onboarding answers.

Each parser turns the raw text a user typed into a typed value.  Parsers are
referenced from the flow YAML by name (``parser: weight``) and looked up in
:data:`PARSERS`.

A registered parser returns a :class:`ParsedAnswer` or ``None``.  ``None`` is
the invalid sentinel: the pipeline rejects the answer and reprompts.  Some
parsers also derive *sibling* fields that are stored next to the primary
value in the same profile category (e.g. a location's state, a weight's
unit, a birthdate's age).

The plain helpers (:func:`parse_date`, :func:`parse_weight`, ...) are usable
on their own and carry the exact extraction rules.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Optional


@dataclass(frozen=True)
class ParsedAnswer:
    """A parsed value plus any derived sibling fields (field name → value)."""

    value: Any
    siblings: dict[str, Any] = field(default_factory=dict)


# Accepted date layouts, tried in order.  Month names match case-insensitively.
DATE_FORMATS: list[str] = [
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%m-%d-%Y",
    "%m/%d/%y",
    "%B %d, %Y",
    "%B %d %Y",
    "%b %d, %Y",
    "%b %d %Y",
    "%d %B %Y",
    "%d %b %Y",
    "%d %B, %Y",
    "%B %d,%Y",
]

_ORDINAL_RE = re.compile(r"(\d+)(st|nd|rd|th)\b", re.IGNORECASE)
_WEIGHT_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(kg|lbs?|pounds?)?", re.IGNORECASE)
_SCALED_RE = re.compile(r"(\d+(?:\.\d+)?)\s*([km]\b)?")


def _tidy_number(x: float) -> int | float:
    """Return ``x`` as an int when it has no fractional part."""
    return int(x) if float(x).is_integer() else x


# ---------------------------------------------------------------------------
# Plain helpers
# ---------------------------------------------------------------------------

def parse_date(text: str) -> Optional[str]:
    """Parse a human-entered calendar date.

    Accepts ISO dates and common US/long forms ("March 15, 1990",
    "03/15/1990", "15th March 1990").

    Returns:
        The date as ``YYYY-MM-DD``, or None if no format matches.
    """
    cleaned = _ORDINAL_RE.sub(r"\1", " ".join(text.split())).rstrip(".")
    if not cleaned:
        return None
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt).date().isoformat()
        except ValueError:
            continue
    return None


def compute_age(birthdate: str | date, today: date | None = None) -> int:
    """Whole years between *birthdate* and *today*.

    The year difference is decremented when today's (month, day) falls
    before the birthday in the calendar year.
    """
    if isinstance(birthdate, str):
        birthdate = date.fromisoformat(birthdate)
    today = today or date.today()
    age = today.year - birthdate.year
    # Adjust if birthday hasn't occurred yet this year
    if (today.month, today.day) < (birthdate.month, birthdate.day):
        age -= 1
    return age


def parse_location(text: str) -> tuple[str, Optional[str]]:
    """Split "City, State" into ``(city, state)``.

    The state keeps only letters and spaces; it is None when there is no
    second segment or nothing alphabetic remains.
    """
    parts = [p.strip() for p in text.split(",")]
    state = None
    if len(parts) >= 2:
        state = re.sub(r"[^a-zA-Z\s]", "", parts[1]).strip() or None
    return parts[0], state


def parse_weight(text: str) -> tuple[int | float, Optional[str]]:
    """Extract a weight magnitude and unit.

    Returns:
        ``(magnitude, unit)`` where unit is "kg" or "lbs" (the default when
        no unit is given), or ``(0, None)`` when the text holds no number.
    """
    match = _WEIGHT_RE.search(text)
    if not match:
        return 0, None
    unit = (match.group(2) or "lbs").lower()
    return _tidy_number(float(match.group(1))), "kg" if "kg" in unit else "lbs"


def parse_scaled_number(text: str) -> int | float:
    """Parse amounts like "75k", "2.5m" or "$1,200".

    Currency punctuation is stripped and a trailing ``k``/``m`` multiplies by
    1,000/1,000,000.  Unparsable input yields 0.
    """
    cleaned = re.sub(r"[,$]", "", text).strip().lower()
    match = _SCALED_RE.match(cleaned)
    if not match:
        return 0
    number = float(match.group(1))
    suffix = match.group(2)
    if suffix == "k":
        number *= 1_000
    elif suffix == "m":
        number *= 1_000_000
    return _tidy_number(number)


# ---------------------------------------------------------------------------
# Registered parsers (used by the input pipeline)
# ---------------------------------------------------------------------------

ParserFn = Callable[..., Optional[ParsedAnswer]]


def _date_parser(raw: Any, *, today: date) -> Optional[ParsedAnswer]:
    if not isinstance(raw, str):
        return None
    iso = parse_date(raw)
    if iso is None:
        return None
    age = compute_age(iso, today)
    # Birthdates in the future are not a date of birth
    if age < 0:
        return None
    return ParsedAnswer(iso, {"age": age})


def _location_parser(raw: Any, *, today: date) -> Optional[ParsedAnswer]:
    if not isinstance(raw, str):
        return None
    city, state = parse_location(raw)
    return ParsedAnswer(city, {"state": state} if state else {})


def _weight_parser(raw: Any, *, today: date) -> Optional[ParsedAnswer]:
    if not isinstance(raw, str):
        return None
    magnitude, unit = parse_weight(raw)
    # No number: store nothing extra and let validation decide
    return ParsedAnswer(magnitude, {"weightUnit": unit} if unit else {})


def _scaled_number_parser(raw: Any, *, today: date) -> Optional[ParsedAnswer]:
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return ParsedAnswer(_tidy_number(raw))
    if not isinstance(raw, str):
        return None
    return ParsedAnswer(parse_scaled_number(raw))


def _as_list_parser(raw: Any, *, today: date) -> Optional[ParsedAnswer]:
    if not isinstance(raw, str):
        return None
    return ParsedAnswer([raw])


# Maps parser name (as used in flow YAML) → parser function.
PARSERS: dict[str, ParserFn] = {
    "date": _date_parser,
    "location": _location_parser,
    "weight": _weight_parser,
    "scaled_number": _scaled_number_parser,
    "as_list": _as_list_parser,
}


def get_parser(name: str) -> ParserFn:
    """Look up a registered parser by name.

    Raises:
        ValueError: if no parser is registered under *name*.
    """
    try:
        return PARSERS[name]
    except KeyError:
        raise ValueError(f"Unknown parser '{name}'") from None
