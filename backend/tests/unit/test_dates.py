"""Unit tests for date-only calendar math."""

import datetime as dt

import pytest

from booking_engine.models import ErrorCode, InvalidDate
from booking_engine.utils.dates import (
    days_before_start,
    format_datetime,
    iter_nights,
    nights_between,
    normalize_date_only,
    ranges_overlap,
)


class TestNormalizeDateOnly:
    def test_date_only_string(self) -> None:
        assert normalize_date_only("2027-03-15") == dt.date(2027, 3, 15)

    def test_datetime_string_with_z_suffix(self) -> None:
        assert normalize_date_only("2027-03-15T23:30:00Z") == dt.date(2027, 3, 15)

    def test_aware_datetime_converted_to_utc_first(self) -> None:
        """01:00 at +02:00 is still the previous day in UTC."""
        assert normalize_date_only("2027-03-15T01:00:00+02:00") == dt.date(2027, 3, 14)

    def test_date_and_datetime_objects(self) -> None:
        assert normalize_date_only(dt.date(2027, 3, 15)) == dt.date(2027, 3, 15)
        assert normalize_date_only(dt.datetime(2027, 3, 15, 18, 0)) == dt.date(2027, 3, 15)

    @pytest.mark.parametrize("value", ["", "   ", "15/03/2027", "2027-13-01", "tomorrow"])
    def test_invalid_values_raise(self, value: str) -> None:
        with pytest.raises(InvalidDate) as exc_info:
            normalize_date_only(value)
        assert exc_info.value.code == ErrorCode.INVALID_DATE

    def test_non_string_raises(self) -> None:
        with pytest.raises(InvalidDate):
            normalize_date_only(20270315)  # type: ignore[arg-type]


class TestNightsAndOverlap:
    def test_nights_between(self) -> None:
        assert nights_between(dt.date(2027, 3, 1), dt.date(2027, 3, 4)) == 3
        assert nights_between(dt.date(2027, 3, 4), dt.date(2027, 3, 1)) == -3

    def test_iter_nights_excludes_checkout(self) -> None:
        nights = list(iter_nights(dt.date(2027, 2, 27), dt.date(2027, 3, 2)))
        assert nights == [dt.date(2027, 2, 27), dt.date(2027, 2, 28), dt.date(2027, 3, 1)]

    def test_back_to_back_ranges_do_not_overlap(self) -> None:
        """Check-out day of one stay is the check-in day of the next."""
        assert not ranges_overlap(
            dt.date(2027, 3, 1), dt.date(2027, 3, 5), dt.date(2027, 3, 5), dt.date(2027, 3, 8)
        )

    def test_one_shared_night_overlaps(self) -> None:
        assert ranges_overlap(
            dt.date(2027, 3, 1), dt.date(2027, 3, 5), dt.date(2027, 3, 4), dt.date(2027, 3, 8)
        )


class TestDaysBeforeStart:
    def test_counts_whole_days_until_midnight_utc(self) -> None:
        now = dt.datetime(2027, 1, 1, 12, 0, tzinfo=dt.UTC)
        assert days_before_start(now, dt.date(2027, 1, 11)) == 9

    def test_exact_midnight(self) -> None:
        now = dt.datetime(2027, 1, 1, 0, 0, tzinfo=dt.UTC)
        assert days_before_start(now, dt.date(2027, 1, 31)) == 30

    def test_started_stay_is_zero(self) -> None:
        now = dt.datetime(2027, 1, 5, 9, 0, tzinfo=dt.UTC)
        assert days_before_start(now, dt.date(2027, 1, 1)) == 0

    def test_naive_now_taken_as_utc(self) -> None:
        assert days_before_start(dt.datetime(2027, 1, 1), dt.date(2027, 3, 2)) == 60


class TestFormatDatetime:
    def test_fixed_width_with_z_suffix(self) -> None:
        whole = dt.datetime(2027, 1, 1, 12, 0, tzinfo=dt.UTC)
        fractional = whole + dt.timedelta(milliseconds=500)

        assert format_datetime(whole) == "2027-01-01T12:00:00.000000Z"
        assert format_datetime(fractional) == "2027-01-01T12:00:00.500000Z"
        assert format_datetime(whole) < format_datetime(fractional)

    def test_other_zones_converted_to_utc(self) -> None:
        value = dt.datetime(2027, 1, 1, 14, 0, tzinfo=dt.timezone(dt.timedelta(hours=2)))
        assert format_datetime(value) == "2027-01-01T12:00:00.000000Z"
