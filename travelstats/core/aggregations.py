"""
Densification and ranking of sparse aggregates

The data store only reports buckets that saw at least one event. These
helpers turn its unordered (key, value) pairs into:
- a dense series spanning the whole requested domain, in domain order
- a top-N ranking ordered by value, with a deterministic tie-break
"""
import heapq
import logging
from typing import Hashable, Iterable, Iterator, List, NamedTuple, Sequence, Tuple, Union

from travelstats.exceptions import DuplicateBucket, InvalidLimit
from travelstats.models.statistics import ValueKind

logger = logging.getLogger(__name__)

Value = Union[int, float]


class SeriesEntry(NamedTuple):
    """One bucket of a dense series"""

    key: Hashable
    value: Value


class RankedEntry(NamedTuple):
    """One subject of a ranking"""

    identity: str
    value: int


def densify(
    domain: Sequence[Hashable],
    sparse: Iterable[Tuple[Hashable, Value]],
    kind: ValueKind,
) -> Iterator[SeriesEntry]:
    """
    Merge sparse aggregates into a dense series over a domain

    The sparse input is consumed once, up front, so a DuplicateBucket is
    raised before the first entry is produced. Entries are then produced
    lazily, one per domain key.

    Args:
        domain: Ordered, duplicate-free bucket keys
        sparse: (key, value) pairs, at most one per key, any order
        kind: Numeric kind of the series; absent buckets get kind.zero

    Returns:
        Iterator of SeriesEntry in domain order

    Raises:
        DuplicateBucket: If the sparse input repeats a key

    Example:
        densify((0, 1, 2), [(2, 5), (0, 1)], ValueKind.COUNT)
        # SeriesEntry(0, 1), SeriesEntry(1, 0), SeriesEntry(2, 5)
    """
    lookup = {}
    for key, value in sparse:
        if key in lookup:
            raise DuplicateBucket(key)
        lookup[key] = kind.coerce(value)

    outside = len(lookup.keys() - set(domain))
    if outside:
        logger.warning(f"Ignoring {outside} aggregate(s) outside the requested domain")

    zero = kind.zero
    return (SeriesEntry(key, lookup.get(key, zero)) for key in domain)


def rank(entries: Iterable[Tuple[str, Value]], limit: int) -> List[RankedEntry]:
    """
    Top-N ranking by value descending, identity ascending on ties

    Args:
        entries: (identity, count) pairs, any order. Sources promise at most
            one pair per identity; a repeat means the source broke that
            promise and is rejected, never merged.
        limit: Maximum number of entries to return (0 gives an empty list)

    Returns:
        At most `limit` RankedEntry values

    Raises:
        InvalidLimit: If limit is negative or not an integer
        DuplicateBucket: If an identity appears more than once
    """
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 0:
        raise InvalidLimit(f"Invalid limit: {limit!r}. Expected a non-negative integer")

    counts = {}
    for identity, value in entries:
        if identity in counts:
            raise DuplicateBucket(identity)
        counts[identity] = ValueKind.COUNT.coerce(value)

    if limit == 0:
        return []

    top = heapq.nsmallest(limit, counts.items(), key=lambda item: (-item[1], item[0]))
    return [RankedEntry(identity, value) for identity, value in top]
