"""
tests/test_shuffle.py
=====================
Partitioning, grouping and bucket execution.
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from mrcaprune._shuffle import (
    group_by_key,
    partition_records,
    run_buckets,
    split_evenly,
    stable_hash,
)


KEYS = [f"t{i % 17}" for i in range(200)]


class TestStableHash:
    def test_deterministic(self):
        assert stable_hash("A|B") == stable_hash("A|B")
        assert stable_hash((3, ("A",))) == stable_hash((3, ("A",)))

    def test_salt_changes_value(self):
        assert stable_hash("A|B", salt=0) != stable_hash("A|B", salt=1)

    def test_non_negative(self):
        assert all(stable_hash(k) >= 0 for k in KEYS)


class TestPartitionRecords:
    @pytest.mark.parametrize("n_partitions", [1, 2, 5, 64])
    def test_keys_never_split(self, n_partitions):
        buckets = partition_records(KEYS, lambda k: k, n_partitions)
        assert len(buckets) == n_partitions
        owner = {}
        for b, bucket in enumerate(buckets):
            for key in bucket:
                assert owner.setdefault(key, b) == b

    def test_nothing_lost(self):
        buckets = partition_records(KEYS, lambda k: k, 7)
        assert sorted(k for b in buckets for k in b) == sorted(KEYS)

    def test_salt_reshuffles(self):
        a = partition_records(KEYS, lambda k: k, 8, salt=0)
        b = partition_records(KEYS, lambda k: k, 8, salt=3)
        assert a != b

    def test_invalid_count(self):
        with pytest.raises(ValueError):
            partition_records(KEYS, lambda k: k, 0)


class TestSplitEvenly:
    def test_contiguous_and_complete(self):
        splits = split_evenly(list(range(10)), 3)
        assert splits == [[0, 1, 2], [3, 4, 5], [6, 7, 8, 9]]

    def test_more_partitions_than_records(self):
        splits = split_evenly(["A", "B"], 4)
        assert len(splits) == 4
        assert [x for s in splits for x in s] == ["A", "B"]

    def test_invalid_count(self):
        with pytest.raises(ValueError):
            split_evenly(["A"], 0)


class TestGroupByKey:
    def test_preserves_arrival_order(self):
        groups = group_by_key([("a", 1), ("b", 2), ("a", 3)], lambda r: r[0])
        assert groups == {"a": [("a", 1), ("a", 3)], "b": [("b", 2)]}


class TestRunBuckets:
    @pytest.mark.parametrize("n_workers", [1, 4])
    def test_concatenates_in_bucket_order(self, n_workers):
        buckets = [[1, 2], [], [3], [4, 5, 6]]
        out = run_buckets(lambda b: [x * 10 for x in b], buckets, n_workers)
        assert out == [10, 20, 30, 40, 50, 60]

    def test_error_propagates(self):
        def fail_on_three(bucket):
            if 3 in bucket:
                raise RuntimeError("bucket failed")
            return bucket

        with pytest.raises(RuntimeError, match="bucket failed"):
            run_buckets(fail_on_three, [[1], [3], [4]], n_workers=3)
