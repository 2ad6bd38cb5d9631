"""
Holiday calendar service.

Holiday lookups consumed by the business-day calculator, plus the CRUD the
holiday blueprint needs.

Lookups:
  - HolidayLookup:            interface - holidays_between(country, start, end)
  - StaticHolidayLookup:      in-memory calendar (tests, config-driven calendars)
  - DbHolidayLookup:          reads the ``holidays`` table
  - PrefetchedHolidayLookup:  computation-scoped window over another lookup;
                              serves one prefetched range from memory

Rules:
  - db.session.commit() happens only in this file for holiday writes.
  - Lookups never cache across calls; PrefetchedHolidayLookup is created per
    schedule computation and discarded with it.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from datetime import date
from typing import Iterable

from sqlalchemy import select

from caseflow.core.exceptions import ConflictError, NotFoundError, ValidationError
from caseflow.models import db
from caseflow.models.holiday import Holiday

logger = logging.getLogger(__name__)

_COUNTRY_CODE_RE = re.compile(r"^[A-Z]{2}$")


# ═════════════════════════════════════════════════════════════════════════════
# Lookups
# ═════════════════════════════════════════════════════════════════════════════


class HolidayLookup(ABC):
    """Source of non-working dates for a country."""

    @abstractmethod
    def holidays_between(self, country_code: str, start: date, end: date) -> list[date]:
        """Return holiday dates in the inclusive range [start, end]."""


class StaticHolidayLookup(HolidayLookup):
    """Holiday calendar held in memory, keyed by country code."""

    def __init__(self, calendars: dict[str, Iterable[date]] | None = None):
        self._calendars = {
            code.upper(): frozenset(days) for code, days in (calendars or {}).items()
        }

    def holidays_between(self, country_code, start, end):
        days = self._calendars.get((country_code or "").upper(), frozenset())
        return sorted(d for d in days if start <= d <= end)


class DbHolidayLookup(HolidayLookup):
    """Holiday rows from the database. Requires an app context."""

    def holidays_between(self, country_code, start, end):
        rows = db.session.execute(
            select(Holiday.date)
            .where(
                Holiday.country_code == country_code,
                Holiday.date >= start,
                Holiday.date <= end,
            )
            .order_by(Holiday.date)
        ).scalars().all()
        return list(rows)


class PrefetchedHolidayLookup(HolidayLookup):
    """One prefetched window over a delegate lookup.

    Built by the schedule engine for a single computation so the delegate is
    hit once for the whole propagation instead of once per date operation.
    Requests that fall (partly) outside the window go to the delegate.
    """

    def __init__(self, delegate: HolidayLookup, country_code: str, start: date, end: date):
        self._delegate = delegate
        self.country_code = country_code
        self.start = start
        self.end = end
        self._days = frozenset(delegate.holidays_between(country_code, start, end))
        self.delegated_calls = 0

    def covers(self, country_code: str, start: date, end: date) -> bool:
        return country_code == self.country_code and self.start <= start and end <= self.end

    def holidays_between(self, country_code, start, end):
        if self.covers(country_code, start, end):
            return sorted(d for d in self._days if start <= d <= end)
        self.delegated_calls += 1
        logger.debug(
            "Holiday window miss country=%s range=%s..%s (prefetched %s..%s)",
            country_code, start, end, self.start, self.end,
        )
        return self._delegate.holidays_between(country_code, start, end)


# ═════════════════════════════════════════════════════════════════════════════
# Japanese public holidays (fixed-date subset used for seeding)
# ═════════════════════════════════════════════════════════════════════════════

# (month, day, name, first_year, last_year); None means unbounded.
_JP_FIXED_HOLIDAYS = (
    (1, 1, "元日", None, None),
    (2, 11, "建国記念の日", None, None),
    (2, 23, "天皇誕生日", 2020, None),
    (4, 29, "みどりの日", None, 2006),
    (4, 29, "昭和の日", 2007, None),
    (5, 3, "憲法記念日", None, None),
    (5, 4, "国民の休日", None, 2006),
    (5, 4, "みどりの日", 2007, None),
    (5, 5, "こどもの日", None, None),
    (8, 11, "山の日", 2016, None),
    (11, 3, "文化の日", None, None),
    (11, 23, "勤労感謝の日", None, None),
    (12, 23, "天皇誕生日", None, 2018),
)

# Olympic special-measures years moved 山の日 off its fixed date.
_JP_MOUNTAIN_DAY_OVERRIDES = {
    2020: date(2020, 8, 10),
    2021: date(2021, 8, 8),
}


def japanese_holidays_for_year(year: int) -> list[tuple[date, str]]:
    """Fixed-date Japanese holidays for ``year`` as (date, name) pairs.

    Movable holidays (Coming of Age Day, equinoxes, Marine Day, ...) and
    substitute holidays (振替休日) are not computed here; add them through
    the holiday API.
    """
    holidays = []
    for month, day, name, first_year, last_year in _JP_FIXED_HOLIDAYS:
        if first_year is not None and year < first_year:
            continue
        if last_year is not None and year > last_year:
            continue
        if name == "山の日" and year in _JP_MOUNTAIN_DAY_OVERRIDES:
            holidays.append((_JP_MOUNTAIN_DAY_OVERRIDES[year], name))
            continue
        holidays.append((date(year, month, day), name))
    return holidays


# ═════════════════════════════════════════════════════════════════════════════
# CRUD
# ═════════════════════════════════════════════════════════════════════════════


def normalize_country_code(value: str | None) -> str:
    code = (value or "").strip().upper()
    if not _COUNTRY_CODE_RE.match(code):
        raise ValidationError(
            "country_code must be a two-letter ISO code",
            details={"country_code": value},
        )
    return code


def list_holidays(country_code: str, year: int | None = None) -> list[Holiday]:
    stmt = select(Holiday).where(Holiday.country_code == normalize_country_code(country_code))
    if year is not None:
        stmt = stmt.where(Holiday.date >= date(year, 1, 1), Holiday.date <= date(year, 12, 31))
    return list(db.session.execute(stmt.order_by(Holiday.date)).scalars().all())


def create_holiday(data: dict) -> Holiday:
    """Create one holiday row.

    Raises:
        ValidationError: bad country code or date.
        ConflictError: the country already has a holiday on that date.
    """
    from caseflow.utils.helpers import parse_date

    country_code = normalize_country_code(data.get("country_code"))
    day = parse_date(data.get("date"))
    if day is None:
        raise ValidationError("date is required (YYYY-MM-DD)", details={"date": data.get("date")})

    existing = db.session.execute(
        select(Holiday).where(Holiday.country_code == country_code, Holiday.date == day)
    ).scalar_one_or_none()
    if existing is not None:
        raise ConflictError("Holiday", "date", f"{country_code}:{day.isoformat()}")

    holiday = Holiday(country_code=country_code, date=day, name=(data.get("name") or None))
    db.session.add(holiday)
    db.session.commit()
    logger.info("Holiday created country=%s date=%s", country_code, day)
    return holiday


def delete_holiday(holiday_id: int) -> None:
    holiday = db.session.get(Holiday, holiday_id)
    if holiday is None:
        raise NotFoundError(resource="Holiday", resource_id=holiday_id)
    db.session.delete(holiday)
    db.session.commit()
    logger.info("Holiday deleted id=%s", holiday_id)


def seed_japanese_holidays(year: int) -> int:
    """Insert the fixed-date JP holidays for ``year``. Idempotent.

    Returns the number of rows created.
    """
    existing = {
        h.date for h in list_holidays("JP", year)
    }
    created = 0
    for day, name in japanese_holidays_for_year(year):
        if day in existing:
            continue
        db.session.add(Holiday(country_code="JP", date=day, name=name))
        created += 1
    db.session.commit()
    logger.info("Seeded %d JP holidays for %d", created, year)
    return created
