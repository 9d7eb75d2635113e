"""
Calendar domains for bucketed statistics queries

A domain is the complete, ordered set of buckets a query's output must cover.
It depends only on the request parameters, never on stored data.
"""
import re
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Tuple, Union

from travelstats.config import settings
from travelstats.exceptions import InvalidDate, InvalidRange, InvalidYear

DATE_FORMAT = "%Y%m%d"

_DATE_RE = re.compile(r"[0-9]{8}")
_YEAR_RE = re.compile(r"[0-9]{4}")

HOURS_PER_DAY = 24
MONTHS_PER_YEAR = 12


class DomainKind(str, Enum):
    """Bucket key forms"""

    DAY = "day"
    HOUR = "hour"
    MONTH = "month"


DateLike = Union[str, date]


def parse_date(value: DateLike) -> date:
    """
    Parse a YYYYMMDD string into a date

    Well-formed but nonexistent dates (e.g. 20220230) are rejected the same
    way as malformed strings.

    Args:
        value: YYYYMMDD string, or a date which is returned unchanged

    Returns:
        Parsed date

    Raises:
        InvalidDate: If the value is not a valid calendar date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not _DATE_RE.fullmatch(value):
        raise InvalidDate(f"Invalid date: {value!r}. Expected YYYYMMDD")
    try:
        return datetime.strptime(value, DATE_FORMAT).date()
    except ValueError:
        raise InvalidDate(f"Invalid date: {value!r}. Expected YYYYMMDD")


def parse_year(value: Union[str, int]) -> int:
    """
    Parse a 4-digit year

    Raises:
        InvalidYear: If the value is not a 4-digit year
    """
    if isinstance(value, bool):
        raise InvalidYear(f"Invalid year: {value!r}. Expected YYYY")
    if isinstance(value, int):
        value = str(value)
    if not isinstance(value, str) or not _YEAR_RE.fullmatch(value) or value == "0000":
        raise InvalidYear(f"Invalid year: {value!r}. Expected YYYY")
    return int(value)


def parse_day_range(start: DateLike, end: DateLike) -> Tuple[date, date]:
    """
    Parse and validate an inclusive day range

    Ranges longer than settings.MAX_RANGE_DAYS are rejected before any
    partition is read.

    Raises:
        InvalidRange: If either bound is invalid, start is after end, or
            the range spans too many days
    """
    try:
        first = parse_date(start)
        last = parse_date(end)
    except InvalidDate as e:
        raise InvalidRange(str(e)) from e

    if first > last:
        raise InvalidRange(
            f"Invalid range: from {first.strftime(DATE_FORMAT)} "
            f"is after to {last.strftime(DATE_FORMAT)}"
        )
    days = (last - first).days + 1
    if days > settings.MAX_RANGE_DAYS:
        raise InvalidRange(
            f"Invalid range: {days} days exceeds the maximum of {settings.MAX_RANGE_DAYS}"
        )
    return first, last


def day_domain(start: DateLike, end: DateLike) -> Tuple[date, ...]:
    """
    Every calendar day from start to end inclusive

    Example:
        day_domain("20220228", "20220302")
        # (date(2022, 2, 28), date(2022, 3, 1), date(2022, 3, 2))
    """
    first, last = parse_day_range(start, end)
    return tuple(first + timedelta(days=i) for i in range((last - first).days + 1))


def hour_domain(day: DateLike) -> Tuple[int, ...]:
    """
    Hours 0..23 of a day

    The date only selects whose data is aggregated; it is still validated.

    Raises:
        InvalidDate: If the date is invalid
    """
    parse_date(day)
    return tuple(range(HOURS_PER_DAY))


def month_domain(year: Union[str, int]) -> Tuple[int, ...]:
    """
    Months 1..12 of a year

    Raises:
        InvalidYear: If the year is invalid
    """
    parse_year(year)
    return tuple(range(1, MONTHS_PER_YEAR + 1))


def year_bounds(year: int) -> Tuple[date, date]:
    """First and last day of a year"""
    return date(year, 1, 1), date(year, 12, 31)


def bucket_label(kind: DomainKind, key) -> str:
    """
    Render a bucket key for the wire

    Days render as YYYYMMDD, hours and months as their plain number.
    """
    if kind == DomainKind.DAY:
        return key.strftime(DATE_FORMAT)
    elif kind in (DomainKind.HOUR, DomainKind.MONTH):
        return str(key)
    else:
        raise ValueError(f"Unknown domain kind: {kind}")


class RedisKeyGenerator:
    """
    Generate consistent Redis keys for bucketed counters

    Each key is a hash whose fields are bucket keys. Fields only exist for
    buckets that received at least one event.
    """

    def __init__(self, prefix: str = "stats"):
        self.prefix = prefix

    @staticmethod
    def scope(username=None) -> str:
        return f"user:{username}" if username else "all"

    def counter_key(self, metric: str, kind: DomainKind, partition: str, username=None) -> str:
        """
        Generate a bucket counter key

        Args:
            metric: Metric name (e.g. "transits", "purchases")
            kind: Bucket granularity
            partition: Partition of the key space (a year for DAY and MONTH,
                a YYYYMMDD day for HOUR)
            username: Restrict to one user (global scope if None)

        Returns:
            Redis key (e.g. "stats:transits:hour:user:alice:20220701")
        """
        return f"{self.prefix}:{metric}:{kind.value}:{self.scope(username)}:{partition}"

    def buyers_key(self, year: int) -> str:
        """Generate the tickets-bought-per-user key for a year"""
        return f"{self.prefix}:buyers:{year:04d}"

    @staticmethod
    def partitions(kind: DomainKind, start: date, end: date) -> list:
        """
        Partitions covering an inclusive day range

        Args:
            kind: Bucket granularity
            start: First day
            end: Last day

        Returns:
            Ordered list of partition strings
        """
        if kind == DomainKind.HOUR:
            return [
                (start + timedelta(days=i)).strftime(DATE_FORMAT)
                for i in range((end - start).days + 1)
            ]
        elif kind in (DomainKind.DAY, DomainKind.MONTH):
            return [f"{year:04d}" for year in range(start.year, end.year + 1)]
        else:
            raise ValueError(f"Unknown domain kind: {kind}")

    @staticmethod
    def field(kind: DomainKind, moment: datetime) -> str:
        """Bucket field for an event timestamp"""
        if kind == DomainKind.DAY:
            return moment.strftime(DATE_FORMAT)
        elif kind == DomainKind.HOUR:
            return str(moment.hour)
        elif kind == DomainKind.MONTH:
            return str(moment.month)
        else:
            raise ValueError(f"Unknown domain kind: {kind}")

    @staticmethod
    def partition(kind: DomainKind, moment: datetime) -> str:
        """Partition an event timestamp belongs to"""
        if kind == DomainKind.HOUR:
            return moment.strftime(DATE_FORMAT)
        return f"{moment.year:04d}"
