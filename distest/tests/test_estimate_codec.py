import math

import pytest

from distest.services import estimate_codec
from distest.services.estimate_codec import (
    Duration,
    Money,
    Pending,
    Unknown,
    Unrecognized,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Geld,5", 5),
        ("Zeit,2,3", 300),
        ("pending", 0),
        ("unknown", 0),
        ("Zeit,0.5,2", 50),
    ],
)
def test_normalized_value(raw, expected):
    assert estimate_codec.normalized_value(raw) == expected


def test_decode_returns_tagged_variants():
    assert estimate_codec.decode("Geld,12") == Money(amount=12)
    assert estimate_codec.decode("Zeit,4,2") == Duration(hours=4, persons=2)
    assert estimate_codec.decode("pending") == Pending()
    assert estimate_codec.decode("unknown") == Unknown()
    assert estimate_codec.decode("Kosten,3") == Unrecognized(raw="Kosten,3")


def test_unparseable_numbers_become_nan():
    assert math.isnan(estimate_codec.normalized_value("Geld,abc"))
    assert math.isnan(estimate_codec.normalized_value("Zeit,2"))
    assert math.isnan(estimate_codec.normalized_value("Geld"))


def test_shall_count_excludes_only_sentinels():
    assert estimate_codec.shall_count("Geld,1") is True
    assert estimate_codec.shall_count("Zeit,1,1") is True
    assert estimate_codec.shall_count("Kosten,9") is True
    assert estimate_codec.shall_count("pending") is False
    assert estimate_codec.shall_count("unknown") is False


def test_encode_renders_integral_values_without_decimals():
    assert estimate_codec.encode(Money(amount=10.0)) == "Geld,10"
    assert estimate_codec.encode(Duration(hours=1.5, persons=2)) == "Zeit,1.5,2"
    assert estimate_codec.encode(Pending()) == "pending"
    assert estimate_codec.encode(Unknown()) == "unknown"


def test_is_pending():
    assert estimate_codec.is_pending("pending") is True
    assert estimate_codec.is_pending("unknown") is False
    assert estimate_codec.is_pending(None) is False
