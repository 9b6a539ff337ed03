"""Compound estimate encoding: ``category,value1[,value2...]``.

Two categories carry numbers: ``Geld`` (money, one amount) and ``Zeit``
(time, duration and person count). The sentinels ``pending`` and ``unknown``
mark an item under consideration and an explicit abstention.

Decoding never raises. Numeric components that do not parse become NaN and
stay NaN through ``normalized_value()``; statistics built on such a value are
NaN as well.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Union

MONEY_TAG = "Geld"
TIME_TAG = "Zeit"
PENDING = "pending"
UNKNOWN = "unknown"

MONEY_UNIT = 1
TIME_UNIT = 50


def _parse_number(raw: str) -> float:
    try:
        return float(raw.strip())
    except (AttributeError, ValueError):
        return math.nan


def _format_number(value: float) -> str:
    if math.isfinite(value) and value == int(value):
        return str(int(value))
    return repr(value)


@dataclass(frozen=True)
class Money:
    amount: float

    def normalized_value(self) -> float:
        return self.amount * MONEY_UNIT

    def encode(self) -> str:
        return f"{MONEY_TAG},{_format_number(self.amount)}"


@dataclass(frozen=True)
class Duration:
    hours: float
    persons: float

    def normalized_value(self) -> float:
        return self.hours * self.persons * TIME_UNIT

    def encode(self) -> str:
        return (
            f"{TIME_TAG},{_format_number(self.hours)},{_format_number(self.persons)}"
        )


@dataclass(frozen=True)
class Unknown:
    def normalized_value(self) -> float:
        return 0

    def encode(self) -> str:
        return UNKNOWN


@dataclass(frozen=True)
class Pending:
    def normalized_value(self) -> float:
        return 0

    def encode(self) -> str:
        return PENDING


@dataclass(frozen=True)
class Unrecognized:
    """A category written by a peer that this node does not understand."""

    raw: str

    def normalized_value(self) -> float:
        return 0

    def encode(self) -> str:
        return self.raw


Estimate = Union[Money, Duration, Unknown, Pending, Unrecognized]


def decode(raw: object) -> Estimate:
    """Parse a stored estimate value into its tagged variant."""
    text = raw if isinstance(raw, str) else ("" if raw is None else str(raw))
    if text == PENDING:
        return Pending()
    if text == UNKNOWN:
        return Unknown()

    parts = text.split(",")
    tag = parts[0]
    if tag == MONEY_TAG:
        amount = _parse_number(parts[1]) if len(parts) > 1 else math.nan
        return Money(amount=amount)
    if tag == TIME_TAG:
        hours = _parse_number(parts[1]) if len(parts) > 1 else math.nan
        persons = _parse_number(parts[2]) if len(parts) > 2 else math.nan
        return Duration(hours=hours, persons=persons)
    return Unrecognized(raw=text)


def encode(estimate: Estimate) -> str:
    return estimate.encode()


def normalized_value(raw: object) -> float:
    """Numeric value of a stored estimate in money units (0 for sentinels)."""
    return decode(raw).normalized_value()


def shall_count(raw: object) -> bool:
    """Whether a stored estimate takes part in the statistics."""
    return not isinstance(decode(raw), (Pending, Unknown))


def is_pending(raw: object) -> bool:
    return raw == PENDING
