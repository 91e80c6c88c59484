from __future__ import annotations

import pytest

from catalog.domain.models import RECORD_DEFAULTS
from catalog.domain.validation import ValidationEngine

ENGINE = ValidationEngine()


def _effective(**patch):
    values = dict(RECORD_DEFAULTS)
    values.update(patch)
    return values


def test_minimal_record_is_valid_and_fills_missing_with_none() -> None:
    result = ENGINE.validate(_effective(key="A"))

    assert result.ok
    assert result.values["key"] == "A"
    assert result.values["status"] == "new"
    assert result.values["priority"] is None
    assert result.values["score"] is None


@pytest.mark.parametrize("key", [None, "", "   ", 42])
def test_missing_or_blank_key_is_rejected(key) -> None:
    result = ENGINE.validate(_effective(key=key))

    assert not result.ok
    assert result.messages == ["Key can't be blank"]


def test_unknown_status_is_rejected() -> None:
    result = ENGINE.validate(_effective(key="A", status="done"))

    assert result.messages == ["Status 'done' is not a valid status"]


def test_unknown_category_is_rejected() -> None:
    result = ENGINE.validate(_effective(key="A", category="misc"))

    assert result.messages == ["Category 'misc' is not a valid category"]


@pytest.mark.parametrize(
    "name, value, message",
    [
        ("priority", 0, "Priority must be between 1 and 5"),
        ("priority", 6, "Priority must be between 1 and 5"),
        ("score", -0.5, "Score must be between 0 and 100"),
        ("score", 100.01, "Score must be between 0 and 100"),
        ("complexity", 9, "Complexity must be between 1 and 5"),
        ("speed", 0, "Speed must be between 1 and 5"),
        ("quality", 7, "Quality must be between 1 and 5"),
    ],
)
def test_out_of_range_numbers_are_rejected(name: str, value, message: str) -> None:
    result = ENGINE.validate(_effective(key="A", **{name: value}))

    assert result.messages == [message]


def test_inclusive_bounds_are_accepted() -> None:
    result = ENGINE.validate(
        _effective(key="A", priority=1, score=100, complexity=5, speed=1, quality=5)
    )

    assert result.ok
    assert result.values["score"] == 100.0


@pytest.mark.parametrize("value", ["abc", True, [3], float("nan"), float("inf"), "1e400", 10**400])
def test_non_numeric_values_are_rejected(value) -> None:
    result = ENGINE.validate(_effective(key="A", priority=value))

    assert result.messages == ["Priority is not a number"]


def test_numeric_strings_are_coerced() -> None:
    result = ENGINE.validate(_effective(key="A", priority="4", score=" 62.5 "))

    assert result.ok
    assert result.values["priority"] == 4
    assert isinstance(result.values["priority"], int)
    assert result.values["score"] == 62.5


def test_integral_float_is_accepted_for_integer_field() -> None:
    result = ENGINE.validate(_effective(key="A", priority=3.0))

    assert result.ok
    assert result.values["priority"] == 3


def test_fractional_value_for_integer_field_is_rejected() -> None:
    result = ENGINE.validate(_effective(key="A", priority=2.5))

    assert result.messages == ["Priority must be an integer"]


def test_description_must_be_text() -> None:
    result = ENGINE.validate(_effective(key="A", description=12))

    assert result.messages == ["Description must be a string"]


def test_every_violation_is_reported() -> None:
    result = ENGINE.validate(_effective(key="", status="bogus", score=500))

    assert result.messages == [
        "Key can't be blank",
        "Status 'bogus' is not a valid status",
        "Score must be between 0 and 100",
    ]
