# accounting/services/event_values.py

"""
EVENT VALUES (typed view over adapter event data)

Adapters hand the engine a flat field map, e.g.
    {"subtotal": 10000, "total_cgst": "900.00", "customer_id": "C-1", "is_export": False}

Every value is coerced into a closed tagged union:
    string | number | bool | null

Rules:
- bool stays bool (checked before int: True is not 1 here)
- int / float / Decimal / numeric JSON -> number (Decimal, never float math)
- structured numbers {"value": n} / {"amount": n} -> number
- str stays string (a numeric string can still be read as a number)
- anything else (lists, nested objects, dates) -> string via str()
  so placeholders still render, but it never compares as a number

The posting templates are a small interpreted language over these values:
condition predicates, field sums ("a + b") and "{field}" placeholders.
Nothing here evaluates arbitrary expressions.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

STRING = "string"
NUMBER = "number"
BOOL = "bool"
NULL = "null"

_TRUE_WORDS = {"true", "yes", "1"}
_FALSE_WORDS = {"false", "no", "0"}

_PLACEHOLDER = re.compile(r"\{([A-Za-z0-9_.]+)\}")


def _parse_decimal(text: str) -> Decimal | None:
    s = (text or "").strip().replace(",", "")
    if not s:
        return None
    try:
        d = Decimal(s)
    except (InvalidOperation, ValueError):
        return None
    return d if d.is_finite() else None


@dataclass(frozen=True)
class EventValue:
    kind: str
    raw: str | Decimal | bool | None = None

    @classmethod
    def of(cls, value) -> "EventValue":
        if isinstance(value, EventValue):
            return value
        if value is None:
            return cls(NULL)
        if isinstance(value, bool):
            return cls(BOOL, value)
        if isinstance(value, Decimal):
            return cls(NUMBER, value) if value.is_finite() else cls(NULL)
        if isinstance(value, int):
            return cls(NUMBER, Decimal(value))
        if isinstance(value, float):
            d = Decimal(str(value))
            return cls(NUMBER, d) if d.is_finite() else cls(NULL)
        if isinstance(value, str):
            return cls(STRING, value)
        if isinstance(value, Mapping):
            for key in ("value", "amount"):
                if key in value:
                    inner = cls.of(value[key])
                    if inner.as_decimal() is not None:
                        return cls(NUMBER, inner.as_decimal())
        return cls(STRING, str(value))

    @property
    def is_null(self) -> bool:
        return self.kind == NULL

    def as_decimal(self) -> Decimal | None:
        if self.kind == NUMBER:
            return self.raw
        if self.kind == STRING:
            return _parse_decimal(self.raw)
        return None

    def as_bool(self) -> bool | None:
        if self.kind == BOOL:
            return self.raw
        if self.kind == STRING:
            word = self.raw.strip().lower()
            if word in _TRUE_WORDS:
                return True
            if word in _FALSE_WORDS:
                return False
        return None

    def as_text(self) -> str:
        if self.kind == NULL:
            return ""
        if self.kind == BOOL:
            return "true" if self.raw else "false"
        if self.kind == NUMBER:
            return format(self.raw, "f")
        return self.raw

    def is_blank(self) -> bool:
        return self.kind == NULL or (self.kind == STRING and not self.raw.strip())


EventData = dict[str, EventValue]


def coerce_event_data(raw: Mapping | None) -> EventData:
    if raw is None:
        return {}
    if isinstance(raw, Mapping):
        return {str(k): EventValue.of(v) for k, v in raw.items()}
    raise TypeError("Event data must be a mapping of field -> value")


# ------------------------------------------------------------
# CONDITIONS
# ------------------------------------------------------------

def literal_matches(expected, actual: EventValue) -> bool:
    """
    Compare one configured literal with one event value.
    - bool literal: event bool, or "true"/"false" strings
    - number literal: numeric comparison (100 == "100.00")
    - string literal: case-insensitive; numeric strings compare as numbers
    - null literal: event value is null
    """
    if expected is None:
        return actual.is_null

    if isinstance(expected, bool):
        return actual.as_bool() is expected

    if isinstance(expected, (int, float, Decimal)):
        exp = EventValue.of(expected).as_decimal()
        got = actual.as_decimal()
        return exp is not None and got is not None and exp == got

    if isinstance(expected, str):
        if actual.kind == BOOL:
            return EventValue.of(expected).as_bool() is actual.raw
        if actual.kind == NUMBER:
            exp = _parse_decimal(expected)
            return exp is not None and exp == actual.raw
        if actual.kind == STRING:
            return expected.strip().casefold() == actual.raw.strip().casefold()
        return False

    return False


def condition_matches(expected, actual: EventValue | None) -> bool:
    """Equality, or membership when the configured value is a list."""
    if actual is None:
        return False
    if isinstance(expected, (list, tuple)):
        return any(literal_matches(e, actual) for e in expected)
    return literal_matches(expected, actual)


def matched_condition_count(conditions: Mapping | None, data: EventData) -> int | None:
    """
    Number of condition keys satisfied, or None when any key fails.
    An empty predicate matches everything with a count of 0.
    """
    if not conditions:
        return 0
    for key, expected in conditions.items():
        if not condition_matches(expected, data.get(key)):
            return None
    return len(conditions)


# ------------------------------------------------------------
# AMOUNTS + TEXT
# ------------------------------------------------------------

def field_names(expression: str | None) -> list[str]:
    if not expression:
        return []
    return [part.strip() for part in str(expression).split("+") if part.strip()]


def resolve_amount(expression: str | None, data: EventData) -> Decimal:
    """
    Sum of the named fields ("total_amount" or "subtotal + total_cgst").
    Missing or non-numeric fields count as zero.
    """
    total = Decimal("0")
    for name in field_names(expression):
        value = data.get(name)
        amount = value.as_decimal() if value is not None else None
        if amount is not None:
            total += amount
    return total


def render_template(template: str | None, data: EventData) -> str:
    """Replace {field} placeholders; unknown placeholders are left as-is."""
    if not template:
        return ""

    def _sub(match: re.Match) -> str:
        value = data.get(match.group(1))
        return match.group(0) if value is None else value.as_text()

    return _PLACEHOLDER.sub(_sub, str(template))
