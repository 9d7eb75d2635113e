"""
Tests for densification, ranking and streaming emission
"""
import itertools
import json
from datetime import date

import pytest

from travelstats.core.aggregations import RankedEntry, SeriesEntry, densify, rank
from travelstats.core.emitter import ndjson_lines, stream_records
from travelstats.exceptions import DuplicateBucket, InvalidLimit
from travelstats.models.statistics import AmountRecord, CountRecord, ValueKind
from travelstats.utils.time_windows import DomainKind, bucket_label, day_domain


class TestDensify:
    """Test merging sparse aggregates into a dense series"""

    def test_fills_gaps_in_domain_order(self):
        domain = tuple(range(24))
        sparse = [(18, 9), (0, 2), (1, 3)]

        series = list(densify(domain, sparse, ValueKind.COUNT))

        assert [entry.key for entry in series] == list(domain)
        assert series[0] == SeriesEntry(0, 2)
        assert series[1] == SeriesEntry(1, 3)
        assert series[18] == SeriesEntry(18, 9)
        assert sum(entry.value for entry in series) == 14
        assert all(entry.value == 0 for entry in series if entry.key not in (0, 1, 18))

    def test_empty_sparse_input(self):
        series = list(densify(tuple(range(1, 13)), [], ValueKind.COUNT))

        assert len(series) == 12
        assert all(entry.value == 0 for entry in series)

    def test_amount_zero_is_float(self):
        """Empty amount buckets are 0.0, never 0"""
        series = list(densify((1, 2, 3), [(2, "189.09")], ValueKind.AMOUNT))

        assert [entry.value for entry in series] == [0.0, 189.09, 0.0]
        assert all(isinstance(entry.value, float) for entry in series)

    def test_count_values_are_ints(self):
        series = list(densify((1, 2), [(1, b"7")], ValueKind.COUNT))

        assert series == [SeriesEntry(1, 7), SeriesEntry(2, 0)]
        assert all(type(entry.value) is int for entry in series)

    def test_day_keys(self):
        domain = day_domain("20220701", "20220710")
        sparse = [(date(2022, 7, 3), 180), (date(2022, 7, 1), 200)]

        series = list(densify(domain, sparse, ValueKind.COUNT))

        assert len(series) == 10
        assert series[0] == SeriesEntry(date(2022, 7, 1), 200)
        assert series[2] == SeriesEntry(date(2022, 7, 3), 180)
        assert sum(entry.value for entry in series) == 380

    def test_idempotent(self):
        domain = tuple(range(24))
        sparse = [(5, 1), (7, 4)]

        first = list(densify(domain, sparse, ValueKind.COUNT))
        second = list(densify(domain, sparse, ValueKind.COUNT))

        assert first == second

    def test_duplicate_bucket_raised_before_output(self):
        """The source contract violation surfaces eagerly"""
        with pytest.raises(DuplicateBucket) as exc_info:
            densify((1, 2, 3), [(2, 1), (3, 1), (2, 5)], ValueKind.COUNT)

        assert exc_info.value.key == 2

    def test_keys_outside_domain_are_ignored(self):
        series = list(densify((1, 2), [(1, 4), (9, 9)], ValueKind.COUNT))

        assert series == [SeriesEntry(1, 4), SeriesEntry(2, 0)]

    def test_consumes_generator_source_once(self):
        sparse = ((hour, 1) for hour in (3, 4))

        series = list(densify(tuple(range(24)), sparse, ValueKind.COUNT))

        assert sum(entry.value for entry in series) == 2


class TestRank:
    """Test top-N ranking"""

    def test_limit_and_tie_break(self):
        entries = [("C", 88), ("A", 102), ("B", 88)]

        assert rank(entries, 2) == [RankedEntry("A", 102), RankedEntry("B", 88)]

    def test_deterministic_across_calls(self):
        entries = [("C", 88), ("A", 102), ("B", 88)]

        assert rank(entries, 2) == rank(entries, 2)

    def test_stable_under_permutation(self):
        entries = [("dave", 5), ("alice", 7), ("carol", 5), ("bob", 7), ("eve", 1)]
        expected = [
            RankedEntry("alice", 7),
            RankedEntry("bob", 7),
            RankedEntry("carol", 5),
            RankedEntry("dave", 5),
        ]

        for permutation in itertools.permutations(entries):
            assert rank(list(permutation), 4) == expected

    def test_limit_zero(self):
        assert rank([("A", 102), ("B", 88)], 0) == []

    def test_limit_larger_than_input(self):
        assert rank([("B", 1), ("A", 2)], 10) == [RankedEntry("A", 2), RankedEntry("B", 1)]

    def test_empty_input(self):
        assert rank([], 5) == []

    @pytest.mark.parametrize("limit", [-1, 1.5, "2", True])
    def test_invalid_limit(self, limit):
        with pytest.raises(InvalidLimit):
            rank([("A", 1)], limit)

    def test_duplicate_identity(self):
        with pytest.raises(DuplicateBucket):
            rank([("A", 1), ("A", 2)], 2)


class TestEmitter:
    """Test lazy record emission"""

    def test_records_follow_value_kind(self):
        counts = list(stream_records([(0, 2)], ValueKind.COUNT))
        amounts = list(stream_records([(1, 0.0)], ValueKind.AMOUNT))

        assert counts == [CountRecord(bucket="0", value=2)]
        assert amounts == [AmountRecord(bucket="1", value=0.0)]

    def test_ndjson_lines(self):
        records = stream_records(
            [(date(2022, 7, 1), 200), (date(2022, 7, 2), 0)],
            ValueKind.COUNT,
            lambda key: bucket_label(DomainKind.DAY, key),
        )

        lines = list(ndjson_lines(records))

        assert lines == ['{"20220701": 200}\n', '{"20220702": 0}\n']

    def test_amount_zero_serializes_as_float(self):
        lines = list(ndjson_lines(stream_records([(3, 0.0)], ValueKind.AMOUNT)))

        assert lines == ['{"3": 0.0}\n']
        assert json.loads(lines[0]) == {"3": 0.0}

    def test_lazy_emission(self):
        """Records are pulled on demand, not materialized up front"""
        pulled = []

        def upstream():
            for hour in range(24):
                pulled.append(hour)
                yield hour, 0

        lines = ndjson_lines(stream_records(upstream(), ValueKind.COUNT))

        assert next(lines) == '{"0": 0}\n'
        assert pulled == [0]

    def test_close_stops_emission(self):
        pulled = []

        def upstream():
            for hour in range(24):
                pulled.append(hour)
                yield hour, 0

        lines = ndjson_lines(stream_records(upstream(), ValueKind.COUNT))
        next(lines)
        next(lines)
        lines.close()

        assert pulled == [0, 1]
        with pytest.raises(StopIteration):
            next(lines)
