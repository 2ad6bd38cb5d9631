"""
Business-day calculator.

Pure date arithmetic over a holiday calendar: add/subtract N business days,
count business days in a range, test a date, and adjust a date to the
nearest business day in a direction. A business day is a Monday–Friday date
that is not a holiday for the country.

Every public method performs at most one holiday lookup for its search
window (a second one only when a walk runs past the window), and keeps no
state between calls.

Usage:
    from caseflow.services.business_day import BusinessDayCalculator
    calc = BusinessDayCalculator(DbHolidayLookup(), default_country_code="JP")
    calc.add_business_days(date(2025, 12, 26), 3)   # -> 2025-12-31
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta

from caseflow.core.exceptions import InvalidDateError, ValidationError
from caseflow.services.holiday_service import HolidayLookup
from caseflow.services.schedule_types import Direction

logger = logging.getLogger(__name__)

DEFAULT_COUNTRY_CODE = "JP"

# Extra calendar days added to every search window so that short walks
# across long weekends / holiday runs stay inside one lookup.
WINDOW_PADDING_DAYS = 14

_SATURDAY = 5


def as_calendar_date(value, argument: str = "date") -> date:
    """Return ``value`` as a ``date``; fail fast on anything that is not one.

    Strings, numbers (NaN included) and None are rejected rather than parsed.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raise InvalidDateError(value, argument)


def search_window_days(business_days: int) -> int:
    """Calendar-day span that covers ``business_days`` business days."""
    return 3 * abs(business_days) + WINDOW_PADDING_DAYS


class _CalendarWalk:
    """Holiday window for one call, loaded in the direction of travel."""

    def __init__(self, lookup: HolidayLookup, country_code: str, origin: date, step: int, span: int):
        self._lookup = lookup
        self._country_code = country_code
        self._step = step
        self._span = span
        self.lookups = 0
        self._load(origin)

    def _load(self, first: date) -> None:
        reach = timedelta(days=self._span - 1)
        if self._step > 0:
            lo, hi = first, first + reach
        else:
            lo, hi = first - reach, first
        self._days = frozenset(self._lookup.holidays_between(self._country_code, lo, hi))
        self._lo, self._hi = lo, hi
        self.lookups += 1

    def is_business_day(self, day: date) -> bool:
        if day.weekday() >= _SATURDAY:
            return False
        if not (self._lo <= day <= self._hi):
            self._load(day)
        return day not in self._days

    def advance(self, day: date, count: int) -> date:
        one = timedelta(days=self._step)
        while count > 0:
            day += one
            if self.is_business_day(day):
                count -= 1
        return day


class BusinessDayCalculator:
    """Business-day arithmetic bound to one holiday lookup."""

    def __init__(self, holiday_lookup: HolidayLookup, default_country_code: str = DEFAULT_COUNTRY_CODE):
        self.holiday_lookup = holiday_lookup
        self.default_country_code = default_country_code

    def _country(self, country_code: str | None) -> str:
        return country_code or self.default_country_code

    @staticmethod
    def _as_count(n, argument: str = "n") -> int:
        if isinstance(n, bool) or not isinstance(n, int):
            raise ValidationError(f"{argument} must be an integer (got {n!r})")
        return n

    # ── Arithmetic ───────────────────────────────────────────────────────

    def add_business_days(self, start, n: int, country_code: str | None = None) -> date:
        """Move ``start`` by ``n`` business days (backward when n < 0)."""
        day = as_calendar_date(start, "start")
        n = self._as_count(n)
        if n == 0:
            return day

        step = 1 if n > 0 else -1
        walk = _CalendarWalk(
            self.holiday_lookup,
            self._country(country_code),
            day + timedelta(days=step),
            step,
            search_window_days(n),
        )
        result = walk.advance(day, abs(n))
        if walk.lookups > 1:
            logger.debug(
                "add_business_days walked past its window: start=%s n=%d lookups=%d",
                day, n, walk.lookups,
            )
        return result

    def subtract_business_days(self, start, n: int, country_code: str | None = None) -> date:
        return self.add_business_days(start, -self._as_count(n), country_code)

    def count_business_days_between(self, start, end, country_code: str | None = None) -> int:
        """Inclusive count of business days in [start, end].

        Negated count of [end, start] when ``start`` is after ``end``.
        """
        first = as_calendar_date(start, "start")
        last = as_calendar_date(end, "end")
        if first > last:
            return -self.count_business_days_between(last, first, country_code)

        holidays = frozenset(
            self.holiday_lookup.holidays_between(self._country(country_code), first, last)
        )
        count = 0
        day = first
        one = timedelta(days=1)
        while day <= last:
            if day.weekday() < _SATURDAY and day not in holidays:
                count += 1
            day += one
        return count

    def is_business_day(self, value, country_code: str | None = None) -> bool:
        day = as_calendar_date(value)
        if day.weekday() >= _SATURDAY:
            return False
        return not self.holiday_lookup.holidays_between(self._country(country_code), day, day)

    def adjust_to_business_day(
        self,
        value,
        direction: Direction | str = Direction.FORWARD,
        country_code: str | None = None,
    ) -> date:
        """Return ``value`` if it is a business day, else the next one in ``direction``."""
        day = as_calendar_date(value)
        try:
            direction = Direction(direction)
        except ValueError:
            raise ValidationError(
                f"direction must be 'forward' or 'backward' (got {direction!r})"
            ) from None

        step = 1 if direction is Direction.FORWARD else -1
        walk = _CalendarWalk(
            self.holiday_lookup, self._country(country_code), day, step, WINDOW_PADDING_DAYS,
        )
        if walk.is_business_day(day):
            return day
        return walk.advance(day, 1)
