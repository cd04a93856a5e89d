"""
_logging.py
===========
Logging functions for mrcaprune.

All functions in this module have NO side effects except logging. They take
computed data as parameters and format/emit log messages.

This separation ensures:
- Logging can be easily disabled/mocked in tests
- Computation is separate from presentation
"""

import logging
import os
import platform
from typing import Dict, List

import psutil


logger = logging.getLogger(__name__)


# ============================================================================ #
# System and Backend Logging (called at module import time)
# ============================================================================ #


def log_optimization_status(numba_available: bool) -> None:
    """
    Log system capabilities and numba availability at DEBUG level.

    Called once when the pruner module is imported.

    Parameters
    ----------
    numba_available : bool
        Whether numba was successfully imported.
    """
    cpu_count = os.cpu_count() or 1
    logger.debug(
        "System: %s (%s), %d CPU cores, Python %s",
        platform.machine(),
        platform.system(),
        cpu_count,
        platform.python_version(),
    )

    mem = psutil.virtual_memory()
    logger.debug(
        "Memory: %.1f GB total, %.1f GB available",
        mem.total / (1024**3),
        mem.available / (1024**3),
    )

    if numba_available:
        import numba

        logger.debug("Numba %s loaded successfully", numba.__version__)
        try:
            logger.debug(
                "Numba threading: %s layer, %d threads configured",
                numba.config.THREADING_LAYER,
                numba.config.NUMBA_NUM_THREADS,
            )
        except AttributeError:
            pass  # config attribute names vary across numba releases
    else:
        logger.debug("Numba not installed; reduce stage limited to 'python'")


def log_backend_availability(backends_available: List[str]) -> None:
    """
    Log which reduce backends are available.

    Parameters
    ----------
    backends_available : List[str]
        Available backends in preference order.
    """
    logger.debug("Available backends: %s", ", ".join(backends_available))
    if "cpu-parallel" in backends_available:
        logger.debug("  cpu-parallel: numba.njit + prange over tip-set keys")
    logger.debug("  python: pure-Python fold, one key at a time")
    logger.debug("Default backend='best' will use: %s", backends_available[-1])


# ============================================================================ #
# Job Logging
# ============================================================================ #


def log_job_start(
    n_taxa: int, backend: str, n_partitions: int, combine_passes: int, n_workers: int
) -> None:
    logger.info(
        "Pruning to %d taxa (backend=%r, partitions=%d, combine passes=%d, "
        "workers=%d)",
        n_taxa,
        backend,
        n_partitions,
        combine_passes,
        n_workers,
    )


def log_duplicate_taxa(duplicates: List[str]) -> None:
    """Warn about query taxa listed more than once."""
    if not duplicates:
        return
    if len(duplicates) <= 5:
        logger.warning(
            "%d taxon label(s) listed more than once and used once: %s",
            len(duplicates),
            ", ".join(duplicates),
        )
    else:
        logger.warning(
            "%d taxon labels listed more than once and used once (first: %s)",
            len(duplicates),
            duplicates[0],
        )


def log_stage_counts(counts: Dict[str, int]) -> None:
    """
    Log record counts between stages.

    Parameters
    ----------
    counts : Dict[str, int]
        Ordered mapping from stage name to the number of records it produced.
    """
    for stage, n in counts.items():
        logger.info("  %-18s %d", stage + ":", n)


def log_selection_summary(n_keys: int, n_records: int) -> None:
    """
    Log how many tip-set keys produced an MRCA record.

    Keys without a branch point (single-taxon keys) are dropped; that is
    expected and only reported at DEBUG level.
    """
    n_dropped = n_keys - n_records
    logger.info(
        "Selected %d MRCA record(s) from %d tip-set key(s)", n_records, n_keys
    )
    if n_dropped:
        logger.debug("Dropped %d key(s) with no branch point", n_dropped)


def log_backend_fallback(message: str, fallback: str) -> None:
    logger.warning("%s; falling back to %r", message, fallback)


def log_output_written(path: str, n_records: int) -> None:
    logger.info("Wrote %d record(s) to %s", n_records, path)
