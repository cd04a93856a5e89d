"""
_pruner.py
==========
The pruning job: map, combine, shuffle and reduce, run locally.

Public API
----------
  Pruner(config=None, source=None)
      Bind a job configuration and a path source.

  .run(taxa)                      -> list[MRCARecord]
  .run_job(input_path, output_dir=None) -> Path
  .prune(taxa, internal_labels=False)   -> str   (NEWICK)

Data flow
---------
::

    taxa ─split─▶ map tasks ─▶ Emission
                                  │  combine (0..N passes, each over a
                                  │  different partitioning)
                                  ▼
                       shuffle by NodeID ─▶ aggregate_tips (once per node)
                                  │
                       shuffle by TipSetKey ─▶ select_mrca (once per key)
                                  ▼
                              MRCARecord

Buckets never share state, so with ``n_workers > 1`` each bucket of a stage
runs on its own thread.  The two shuffles are the only synchronization
points: a stage starts only after the previous one has produced every record.

Logging
-------
Module loggers are children of ``'mrcaprune'``.

  INFO level:    job parameters, per-stage record counts, selected/total keys,
                 output location.
  WARNING level: duplicate query taxa, unavailable backend fallback.
  DEBUG level:   system and numba status (logged once at import), per-taxon
                 expansion, dropped keys.
"""

import logging
import os
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

import numpy as np

from mrcaprune._assembler import assemble_newick
from mrcaprune._backend import (
    check_numba_available,
    get_available_backends,
    get_best_backend,
    import_cpu_kernels,
    resolve_backend,
)
from mrcaprune._config import PrunerConfig
from mrcaprune._context import get_backend_override
from mrcaprune._logging import (
    log_backend_availability,
    log_backend_fallback,
    log_duplicate_taxa,
    log_job_start,
    log_optimization_status,
    log_output_written,
    log_selection_summary,
    log_stage_counts,
)
from mrcaprune._paths import DirectoryPathSource
from mrcaprune._records import (
    AncestorItem,
    Emission,
    MRCARecord,
    PartialAncestorRecord,
    format_mrca,
)
from mrcaprune._shuffle import group_by_key, partition_records, run_buckets, split_evenly
from mrcaprune._stages import PathExpander, aggregate_tips, select_mrca
from mrcaprune._utils import read_taxa


logger = logging.getLogger(__name__)

OUTPUT_FILENAME = "part-00000"


# ── Module-level status ──────────────────────────────────────────────────────
_NUMBA_AVAILABLE = check_numba_available()
_, _select_mrca_njit = import_cpu_kernels()

log_optimization_status(_NUMBA_AVAILABLE)
log_backend_availability(get_available_backends())


def _node_key(item: AncestorItem) -> int:
    return item.node_id


def _content_key(item: AncestorItem):
    # spreads one node's records over several buckets
    return (item.node_id, item.tips)


def _tipset_key(record: PartialAncestorRecord) -> str:
    return record.key


def _combine_bucket(bucket: List[AncestorItem]) -> List[PartialAncestorRecord]:
    return [aggregate_tips(items) for items in group_by_key(bucket, _node_key).values()]


def _select_bucket(bucket: List[PartialAncestorRecord]) -> List[MRCARecord]:
    out = []
    for records in group_by_key(bucket, _tipset_key).values():
        mrca = select_mrca(records)
        if mrca is not None:
            out.append(mrca)
    return out


class Pruner:
    """
    Run the pruning job for one configuration.

    Parameters
    ----------
    config : PrunerConfig, optional
        Job settings.  Defaults to ``PrunerConfig()``.  A backend set with
        ``use_backend(...)`` around the constructor replaces ``config.backend``
        in the Pruner's own copy.
    source : object, optional
        Anything with ``get_path(taxon) -> list[PathEntry]``.  Defaults to a
        ``DirectoryPathSource`` over ``config.path_dir``.

    Raises
    ------
    ValueError
        If neither *source* nor ``config.path_dir`` is given.

    Examples
    --------
    >>> from mrcaprune import ReferenceTree, TreePathSource
    >>> tree = ReferenceTree('(((A:1,B:2):3,C:4):5,D:6);')
    >>> pruner = Pruner(source=TreePathSource(tree))
    >>> pruner.prune(['A', 'B', 'C'])
    '((A,B):3.0,C):5.0;'
    """

    def __init__(self, config: Optional[PrunerConfig] = None, source=None) -> None:
        config = config if config is not None else PrunerConfig()
        override = get_backend_override()
        if override is not None:
            # snapshot: the running job never reads the context again
            config = config.with_overrides(backend=override)
        self.config = config
        if source is None:
            if self.config.path_dir is None:
                raise ValueError("Pruner needs a path source or config.path_dir")
            source = DirectoryPathSource(self.config.path_dir)
        self.source = source
        self.expander = PathExpander(source)

    # ================================================================== #
    # Stages                                                               #
    # ================================================================== #

    def map(self, taxa: List[str]) -> List[List[Emission]]:
        """
        Expand every taxon, one map task per input split.

        Returns
        -------
        list of list of Emission
            One list per split, ready for the combine stage.
        """
        splits = split_evenly(taxa, self.config.n_partitions)

        def map_task(split):
            return [[e for taxon in split for e in self.expander(taxon)]]

        return run_buckets(map_task, splits, self.config.n_workers)

    def combine(
        self, partitions: List[List[AncestorItem]], passes: Optional[int] = None
    ) -> List[List[AncestorItem]]:
        """
        Apply the combine stage *passes* times (default ``config.combine_passes``).

        The first pass runs inside the given partitions.  Every later pass
        first repartitions the records with a different hash salt, so the
        combine stage is exercised over its own output grouped differently.
        """
        passes = self.config.combine_passes if passes is None else passes
        for n in range(passes):
            if n > 0:
                flat = [item for part in partitions for item in part]
                partitions = partition_records(
                    flat, _content_key, self.config.n_partitions, salt=n
                )
            partitions = _combine_partitions(partitions, self.config.n_workers)
        return partitions

    def complete_tip_sets(
        self, partitions: List[List[AncestorItem]]
    ) -> List[PartialAncestorRecord]:
        """
        Shuffle by NodeID and aggregate each node exactly once.

        After this step every node's record carries its full tip set.
        """
        flat = [item for part in partitions for item in part]
        buckets = partition_records(flat, _node_key, self.config.n_partitions)
        return run_buckets(_combine_bucket, buckets, self.config.n_workers)

    def reduce(
        self, records: List[PartialAncestorRecord], backend: str = "python"
    ) -> List[MRCARecord]:
        """
        Shuffle by TipSetKey and select one MRCA per key.

        Returns
        -------
        list of MRCARecord
            Sorted by key.
        """
        buckets = partition_records(records, _tipset_key, self.config.n_partitions)

        if backend == "cpu-parallel":
            groups: Dict[str, List[PartialAncestorRecord]] = {}
            for bucket in buckets:
                groups.update(group_by_key(bucket, _tipset_key))
            out = _select_cpu_parallel(groups)
            n_keys = len(groups)
        else:
            out = run_buckets(_select_bucket, buckets, self.config.n_workers)
            n_keys = len({r.key for r in records})

        log_selection_summary(n_keys, len(out))
        out.sort(key=lambda r: r.key)
        return out

    # ================================================================== #
    # Jobs                                                                 #
    # ================================================================== #

    def run(self, taxa: Iterable[str]) -> List[MRCARecord]:
        """
        Run the full job for *taxa* and return the MRCA records.

        Duplicate labels are used once.

        Raises
        ------
        ResourceError, ParseError, StructuralError
            From any stage; the job is aborted and nothing is returned.
        """
        taxa, duplicates = read_taxa(taxa)
        log_duplicate_taxa(duplicates)

        backend = self._resolve_backend()
        cfg = self.config
        log_job_start(
            len(taxa), backend, cfg.n_partitions, cfg.combine_passes, cfg.n_workers
        )

        mapped = self.map(taxa)
        combined = self.combine(mapped)
        complete = self.complete_tip_sets(combined)
        result = self.reduce(complete, backend)

        log_stage_counts(
            {
                "taxa": len(taxa),
                "emissions": sum(len(p) for p in mapped),
                "combined": sum(len(p) for p in combined),
                "ancestor records": len(complete),
                "MRCA records": len(result),
            }
        )
        return result

    def run_job(
        self, input_path: Union[str, Path], output_dir: Union[str, Path, None] = None
    ) -> Path:
        """
        Read a taxon list, run the job and write ``part-00000``.

        The output is written to a temporary file and renamed into place only
        after the whole job has succeeded.

        Returns
        -------
        Path
            The output file.
        """
        output_dir = output_dir if output_dir is not None else self.config.output_dir
        if output_dir is None:
            raise ValueError("run_job() needs output_dir or config.output_dir")

        with open(input_path, encoding="utf-8") as fh:
            records = self.run(fh)

        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        target = output_dir / OUTPUT_FILENAME
        tmp = output_dir / (OUTPUT_FILENAME + ".tmp")
        try:
            with open(tmp, "w", encoding="utf-8") as fh:
                for record in records:
                    fh.write(format_mrca(record) + "\n")
            os.replace(tmp, target)
        except Exception:
            tmp.unlink(missing_ok=True)
            raise

        log_output_written(str(target), len(records))
        return target

    def prune(self, taxa: Iterable[str], internal_labels: bool = False) -> str:
        """Run the job and assemble the result as a NEWICK string."""
        taxa = list(taxa)
        records = self.run(taxa)
        unique, _ = read_taxa(taxa)
        return assemble_newick(records, unique, internal_labels=internal_labels)

    # ================================================================== #
    # Private                                                              #
    # ================================================================== #

    def _resolve_backend(self) -> str:
        try:
            return resolve_backend(self.config.backend)
        except ValueError as e:
            fallback = get_best_backend()
            log_backend_fallback(str(e), fallback)
            return fallback

    def __repr__(self) -> str:
        return f"Pruner(config={self.config!r}, source={self.source!r})"


def _combine_partitions(partitions, n_workers):
    """Combine each partition on its own, keeping partition boundaries."""
    return run_buckets(lambda part: [_combine_bucket(part)], partitions, n_workers)


def _select_cpu_parallel(
    groups: Dict[str, List[PartialAncestorRecord]]
) -> List[MRCARecord]:
    """
    Pack *groups* CSR-style and run the numba selection kernel over all keys.
    """
    keys = list(groups)
    if not keys:
        return []

    sizes = np.fromiter((len(groups[k]) for k in keys), dtype=np.int64, count=len(keys))
    offsets = np.zeros(len(keys) + 1, dtype=np.int64)
    np.cumsum(sizes, out=offsets[1:])

    flat = [r for k in keys for r in groups[k]]
    n = len(flat)
    node_ids = np.fromiter((r.node_id for r in flat), dtype=np.int64, count=n)
    lengths = np.fromiter((r.branch_length for r in flat), dtype=np.float64, count=n)
    counts = np.fromiter((r.tip_count for r in flat), dtype=np.int64, count=n)

    best_id = np.empty(len(keys), dtype=np.int64)
    best_count = np.empty(len(keys), dtype=np.int64)
    total = np.empty(len(keys), dtype=np.float64)

    _select_mrca_njit(offsets, node_ids, lengths, counts, best_id, best_count, total)

    return [
        MRCARecord(key, int(best_id[g]), float(total[g]), int(best_count[g]))
        for g, key in enumerate(keys)
        if best_id[g] >= 0
    ]
