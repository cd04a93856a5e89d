"""
_shuffle.py
===========
A local stand-in for the partition / shuffle / group-by machinery of a
distributed execution engine.

  partition_records(records, key_fn, n_partitions, salt=0)
      Route records into buckets by a stable hash of their key.
  group_by_key(records, key_fn)
      Group one bucket's records by key, preserving arrival order.
  run_buckets(fn, buckets, n_workers)
      Apply *fn* to every bucket, optionally on a thread pool, and
      concatenate the results in bucket order.

Routing uses CRC32 rather than ``hash()`` so bucket assignment does not
depend on ``PYTHONHASHSEED``.  Buckets share no state; a function passed to
``run_buckets`` must only read its own bucket.
"""

import zlib
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, Hashable, Iterable, List, Sequence, TypeVar


T = TypeVar("T")
R = TypeVar("R")


def stable_hash(key: Hashable, salt: int = 0) -> int:
    """
    Deterministic non-negative hash of *key*.

    >>> stable_hash('A|B') == stable_hash('A|B')
    True
    """
    return zlib.crc32(f"{salt}:{key}".encode("utf-8"))


def partition_records(
    records: Iterable[T],
    key_fn: Callable[[T], Hashable],
    n_partitions: int,
    salt: int = 0,
) -> List[List[T]]:
    """
    Split *records* into *n_partitions* buckets by key.

    All records sharing a key land in the same bucket.  Changing *salt*
    gives a different, equally valid, assignment.

    Raises
    ------
    ValueError
        If *n_partitions* < 1.
    """
    if n_partitions < 1:
        raise ValueError(f"n_partitions must be >= 1, got {n_partitions}")

    buckets: List[List[T]] = [[] for _ in range(n_partitions)]
    for record in records:
        buckets[stable_hash(key_fn(record), salt) % n_partitions].append(record)
    return buckets


def split_evenly(records: Sequence[T], n_partitions: int) -> List[List[T]]:
    """
    Split *records* into *n_partitions* contiguous slices regardless of key,
    the way input splits are handed to independent map tasks.
    """
    if n_partitions < 1:
        raise ValueError(f"n_partitions must be >= 1, got {n_partitions}")
    n = len(records)
    bounds = [n * i // n_partitions for i in range(n_partitions + 1)]
    return [list(records[bounds[i] : bounds[i + 1]]) for i in range(n_partitions)]


def group_by_key(
    records: Iterable[T], key_fn: Callable[[T], Hashable]
) -> Dict[Hashable, List[T]]:
    groups: Dict[Hashable, List[T]] = {}
    for record in records:
        groups.setdefault(key_fn(record), []).append(record)
    return groups


def run_buckets(
    fn: Callable[[List[T]], List[R]],
    buckets: Sequence[List[T]],
    n_workers: int = 1,
) -> List[R]:
    """
    Apply *fn* to every bucket and concatenate the outputs in bucket order.

    With ``n_workers > 1`` buckets are processed on a thread pool.  The first
    exception raised by any bucket propagates and no output is returned.
    """
    if n_workers <= 1 or len(buckets) <= 1:
        results = [fn(bucket) for bucket in buckets]
    else:
        with ThreadPoolExecutor(max_workers=n_workers) as executor:
            results = list(executor.map(fn, buckets))

    out: List[R] = []
    for chunk in results:
        out.extend(chunk)
    return out
