"""
Statistics queries

Each query validates its parameters, builds its domain and fetches from the
source before returning. Only then is a lazy record iterator handed back, so
every error surfaces before the first record is emitted.
"""
import logging
import re
from typing import Iterator, Optional, Union

from travelstats.core.aggregations import densify, rank
from travelstats.core.emitter import stream_records
from travelstats.core.storage import StatisticsSource
from travelstats.exceptions import AuthenticationError, InvalidLimit
from travelstats.models.statistics import Metric, Record, ValueKind
from travelstats.utils.time_windows import (
    DomainKind,
    bucket_label,
    day_domain,
    hour_domain,
    month_domain,
    parse_date,
    parse_day_range,
    parse_year,
    year_bounds,
)

logger = logging.getLogger(__name__)

_LIMIT_RE = re.compile(r"[0-9]+")


def parse_limit(value: Union[str, int]) -> int:
    """
    Parse a ranking limit

    Raises:
        InvalidLimit: If the value is not a non-negative integer
    """
    if isinstance(value, bool):
        raise InvalidLimit(f"Invalid limit: {value!r}")
    if isinstance(value, int):
        if value < 0:
            raise InvalidLimit(f"Invalid limit: {value}. Must not be negative")
        return value
    if not isinstance(value, str) or not _LIMIT_RE.fullmatch(value):
        raise InvalidLimit(f"Invalid limit: {value!r}. Expected a non-negative integer")
    return int(value)


def _require_identity(username: Optional[str]) -> str:
    if not username:
        raise AuthenticationError("An authenticated user is required")
    return username


class StatisticsService:
    """
    Gap-filled and ranked statistics over a sparse aggregate source
    """

    def __init__(self, source: StatisticsSource):
        """
        Args:
            source: Sparse aggregate source (e.g. RedisStorage)
        """
        self.source = source

    def _series(self, metric: Metric, kind: DomainKind, domain, start, end, username=None) -> Iterator[Record]:
        sparse = self.source.fetch_by_bucket(metric, kind, start, end, username)
        logger.info(
            f"{metric.value} per {kind.value}: {len(domain)} buckets, "
            f"{len(sparse)} non-empty{' for ' + username if username else ''}"
        )
        entries = densify(domain, sparse, metric.value_kind)
        return stream_records(entries, metric.value_kind, lambda key: bucket_label(kind, key))

    def transits_per_day(self, start, end) -> Iterator[Record]:
        """
        Number of transits on each day of an inclusive range

        Args:
            start: First day (YYYYMMDD)
            end: Last day (YYYYMMDD)

        Raises:
            InvalidRange: If a bound is invalid or start > end
        """
        domain = day_domain(start, end)
        return self._series(Metric.TRANSITS, DomainKind.DAY, domain, domain[0], domain[-1])

    def transits_per_hour(self, day) -> Iterator[Record]:
        """
        Number of transits in each hour of one day

        Raises:
            InvalidDate: If the date is invalid
        """
        domain = hour_domain(day)
        moment = parse_date(day)
        return self._series(Metric.TRANSITS, DomainKind.HOUR, domain, moment, moment)

    def my_transits_per_hour(self, start, end, username: str) -> Iterator[Record]:
        """
        A user's transits in each hour of the day, summed over an inclusive day range

        Raises:
            InvalidRange: If a bound is invalid or start > end
        """
        first, last = parse_day_range(start, end)
        username = _require_identity(username)
        return self._series(
            Metric.TRANSITS, DomainKind.HOUR, hour_domain(first), first, last, username
        )

    def revenues_per_month(self, year) -> Iterator[Record]:
        """
        Total revenues in each month of a year

        Raises:
            InvalidYear: If the year is invalid
        """
        domain = month_domain(year)
        first, last = year_bounds(parse_year(year))
        return self._series(Metric.PURCHASES, DomainKind.MONTH, domain, first, last)

    def my_expenses_per_month(self, year, username: str) -> Iterator[Record]:
        """
        A user's total expenses in each month of a year

        Raises:
            InvalidYear: If the year is invalid
        """
        domain = month_domain(year)
        first, last = year_bounds(parse_year(year))
        username = _require_identity(username)
        return self._series(Metric.PURCHASES, DomainKind.MONTH, domain, first, last, username)

    def top_buyers(self, limit, year) -> Iterator[Record]:
        """
        Users who bought the most tickets in a year, most first

        Ties are broken by username so repeated calls agree.

        Raises:
            InvalidLimit: If limit is not a non-negative integer
            InvalidYear: If the year is invalid
        """
        limit = parse_limit(limit)
        year = parse_year(year)
        entries = self.source.fetch_ranking(year)
        ranking = rank(entries, limit)
        logger.info(f"Top {limit} buyers of {year}: {len(ranking)} of {len(entries)} buyers")
        return stream_records(ranking, ValueKind.COUNT)
