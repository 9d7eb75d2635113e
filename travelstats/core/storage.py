"""
Redis storage layer for bucketed statistics counters

Counters are kept as Redis hashes, one per (metric, granularity, scope,
partition). A hash field exists only once its bucket has seen an event, so
reads naturally return sparse, unordered aggregates.
"""
import logging
from datetime import date, datetime
from typing import Dict, List, Optional, Protocol, Tuple, Union

import redis
from redis import Redis

from travelstats.config import settings
from travelstats.exceptions import SourceUnavailable
from travelstats.models.statistics import Metric
from travelstats.utils.time_windows import DATE_FORMAT, DomainKind, RedisKeyGenerator

logger = logging.getLogger(__name__)

Aggregate = Tuple[Union[date, int], Union[int, float]]


class StatisticsSource(Protocol):
    """
    Contract of a sparse aggregate source

    Results contain only non-empty buckets, at most one entry per key, in no
    particular order. Failures raise SourceUnavailable.
    """

    def fetch_by_bucket(
        self,
        metric: Metric,
        kind: DomainKind,
        start: date,
        end: date,
        username: Optional[str] = None,
    ) -> List[Aggregate]:
        ...

    def fetch_ranking(self, year: int, username: Optional[str] = None) -> List[Tuple[str, int]]:
        ...


def _decode(value) -> str:
    return value.decode("utf-8") if isinstance(value, bytes) else value


class RedisStorage:
    """
    Redis storage for transit and purchase counters
    """

    def __init__(self, redis_client: Optional[Redis] = None):
        """
        Initialize Redis storage

        Args:
            redis_client: Optional Redis client (creates new if None)
        """
        if redis_client is not None:
            self.redis = redis_client
        else:
            self.redis = redis.from_url(
                settings.get_redis_url(),
                socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
            )

        self.key_gen = RedisKeyGenerator(settings.REDIS_KEY_PREFIX)

    def ping(self) -> bool:
        """Check Redis connection"""
        try:
            return bool(self.redis.ping())
        except redis.RedisError:
            return False

    # =====================
    # Counter updates
    # =====================

    def record_transit(self, username: str, moment: datetime) -> None:
        """
        Count one transit in every day/hour counter it belongs to

        Args:
            username: Ticket owner
            moment: Local time of the transit
        """
        pipe = self.redis.pipeline()
        self._queue_transit(pipe, username, moment)
        self._execute(pipe, "record transit")

    def record_purchase(self, username: str, moment: datetime, quantity: int, amount: float) -> None:
        """
        Add one order to the monthly revenue counters and the buyers ranking

        Args:
            username: Buyer
            moment: Local time of the purchase
            quantity: Number of tickets bought
            amount: Total price paid
        """
        pipe = self.redis.pipeline()
        self._queue_purchase(pipe, username, moment, quantity, amount)
        self._execute(pipe, "record purchase")

    def record_batch(
        self,
        transits: List[Tuple[str, datetime]],
        purchases: List[Tuple[str, datetime, int, float]],
    ) -> None:
        """
        Apply a batch of transits and purchases atomically

        Every counter update is queued in one MULTI/EXEC transaction, so a
        failed batch leaves no partial counts behind and can be retried.

        Args:
            transits: (username, moment) pairs
            purchases: (username, moment, quantity, amount) tuples
        """
        pipe = self.redis.pipeline()
        for username, moment in transits:
            self._queue_transit(pipe, username, moment)
        for username, moment, quantity, amount in purchases:
            self._queue_purchase(pipe, username, moment, quantity, amount)
        self._execute(pipe, f"record batch of {len(transits) + len(purchases)} events")

    def _queue_transit(self, pipe, username: str, moment: datetime) -> None:
        for scope in (None, username):
            for kind in (DomainKind.DAY, DomainKind.HOUR):
                key = self.key_gen.counter_key(
                    Metric.TRANSITS.value, kind, self.key_gen.partition(kind, moment), scope
                )
                pipe.hincrby(key, self.key_gen.field(kind, moment), 1)

    def _queue_purchase(self, pipe, username: str, moment: datetime, quantity: int, amount: float) -> None:
        kind = DomainKind.MONTH
        partition = self.key_gen.partition(kind, moment)
        field = self.key_gen.field(kind, moment)

        for scope in (None, username):
            key = self.key_gen.counter_key(Metric.PURCHASES.value, kind, partition, scope)
            pipe.hincrbyfloat(key, field, amount)
        pipe.hincrby(self.key_gen.buyers_key(moment.year), username, quantity)

    # =====================
    # Sparse reads
    # =====================

    def fetch_by_bucket(
        self,
        metric: Metric,
        kind: DomainKind,
        start: date,
        end: date,
        username: Optional[str] = None,
    ) -> List[Aggregate]:
        """
        Fetch non-empty buckets of a metric over an inclusive day range

        HOUR buckets are summed across every day of the range.

        Args:
            metric: Metric to read
            kind: Bucket granularity
            start: First day of the range
            end: Last day of the range
            username: Restrict to one user (global if None)

        Returns:
            Unordered list of (key, value) pairs, one per non-empty bucket
        """
        keys = [
            self.key_gen.counter_key(metric.value, kind, partition, username)
            for partition in self.key_gen.partitions(kind, start, end)
        ]

        pipe = self.redis.pipeline(transaction=False)
        for key in keys:
            pipe.hgetall(key)
        hashes = self._execute(pipe, f"fetch {metric.value} per {kind.value}")

        value_kind = metric.value_kind
        buckets: Dict[Union[date, int], Union[int, float]] = {}
        for partition_key, fields in zip(keys, hashes):
            for field, raw in (fields or {}).items():
                bucket = self._parse_field(kind, _decode(field))
                if bucket is None:
                    logger.warning(f"Skipping malformed field {field!r} in {partition_key}")
                    continue
                if kind == DomainKind.DAY and not start <= bucket <= end:
                    continue
                value = value_kind.coerce(raw)
                if not value:
                    continue
                buckets[bucket] = buckets.get(bucket, value_kind.zero) + value

        logger.debug(
            f"Fetched {len(buckets)} non-empty {metric.value}/{kind.value} buckets "
            f"from {len(keys)} partition(s)"
        )
        return list(buckets.items())

    def fetch_ranking(self, year: int, username: Optional[str] = None) -> List[Tuple[str, int]]:
        """
        Fetch tickets bought per user in a year

        Args:
            year: Purchase year
            username: Restrict to one user (all buyers if None)

        Returns:
            Unordered list of (username, tickets) pairs
        """
        key = self.key_gen.buyers_key(year)
        try:
            if username:
                raw = self.redis.hget(key, username)
                fields = {username: raw} if raw is not None else {}
            else:
                fields = self.redis.hgetall(key)
        except redis.RedisError as e:
            logger.error(f"Redis failure during fetch ranking: {e}", exc_info=True)
            raise SourceUnavailable(f"Statistics store unavailable: {e}") from e

        ranking = []
        for identity, raw in fields.items():
            count = int(_decode(raw))
            if count > 0:
                ranking.append((_decode(identity), count))
        return ranking

    # =====================
    # Utility Methods
    # =====================

    @staticmethod
    def _parse_field(kind: DomainKind, field: str):
        try:
            if kind == DomainKind.DAY:
                return datetime.strptime(field, DATE_FORMAT).date()
            return int(field)
        except ValueError:
            return None

    @staticmethod
    def _execute(pipe, operation: str) -> list:
        try:
            return pipe.execute()
        except redis.RedisError as e:
            logger.error(f"Redis failure during {operation}: {e}", exc_info=True)
            raise SourceUnavailable(f"Statistics store unavailable: {e}") from e
