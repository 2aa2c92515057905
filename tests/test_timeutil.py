"""Tests for HH:MM <-> minutes conversion."""

import pytest

from roombook.domain.timeutil import MalformedTimeError, to_minutes, to_time_of_day


def test_to_minutes_known_values():
    assert to_minutes("00:00") == 0
    assert to_minutes("01:00") == 60
    assert to_minutes("08:00") == 480
    assert to_minutes("12:30") == 750
    assert to_minutes("23:59") == 1439


def test_to_time_of_day_pads_fields():
    assert to_time_of_day(0) == "00:00"
    assert to_time_of_day(9) == "00:09"
    assert to_time_of_day(65) == "01:05"
    assert to_time_of_day(1439) == "23:59"


def test_round_trip_every_minute_of_the_day():
    for minutes in range(24 * 60):
        assert to_minutes(to_time_of_day(minutes)) == minutes


@pytest.mark.parametrize("value", ["07:45", "00:00", "23:59", "12:00"])
def test_round_trip_from_string(value):
    assert to_time_of_day(to_minutes(value)) == value


@pytest.mark.parametrize(
    "value",
    [
        "24:00",
        "12:60",
        "9:00",
        "09:5",
        "0900",
        "09-00",
        "ab:cd",
        "",
        "09:00\n",
        " 09:00",
        "0٩:00",
        "０９:００",
    ],
)
def test_malformed_times_are_rejected(value):
    with pytest.raises(MalformedTimeError):
        to_minutes(value)


def test_malformed_time_is_a_value_error():
    """Pydantic validators rely on this to turn parse failures into 422s."""
    assert issubclass(MalformedTimeError, ValueError)


@pytest.mark.parametrize("minutes", [-1, 1440, 2000])
def test_to_time_of_day_out_of_range_does_not_wrap(minutes):
    with pytest.raises(ValueError):
        to_time_of_day(minutes)
