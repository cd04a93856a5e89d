"""
_config.py
==========
Job configuration.

A ``PrunerConfig`` is built once per job and handed to ``Pruner``; every
stage reads what it needs from that one value.  There is no module-level
configuration state: a ``use_backend(...)`` override is copied into the
Pruner's config when the Pruner is constructed, never read while a job runs.
"""

import json
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Optional, Union

from mrcaprune._backend import BACKENDS


PathLike = Union[str, Path]


@dataclass(frozen=True)
class PrunerConfig:
    """
    Settings for one pruning job.

    Attributes
    ----------
    path_dir : Path or None
        Root directory of the per-taxon path files.  May be None when the
        Pruner is given a path source directly.
    output_dir : Path or None
        Directory that receives ``part-00000``.  Only needed by
        ``Pruner.run_job``.
    backend : str
        Reduce backend: 'best', 'python' or 'cpu-parallel'.
    n_partitions : int
        Number of map splits and shuffle buckets (>= 1).
    combine_passes : int
        How many times the combine stage is applied to map output before the
        NodeID shuffle (>= 0).  Each pass repartitions the records.
    n_workers : int
        Threads used to process buckets (>= 1).
    """

    path_dir: Optional[Path] = None
    output_dir: Optional[Path] = None
    backend: str = "best"
    n_partitions: int = 1
    combine_passes: int = 1
    n_workers: int = 1

    def __post_init__(self):
        if self.path_dir is not None and not isinstance(self.path_dir, Path):
            object.__setattr__(self, "path_dir", Path(self.path_dir))
        if self.output_dir is not None and not isinstance(self.output_dir, Path):
            object.__setattr__(self, "output_dir", Path(self.output_dir))

        if self.backend != "best" and self.backend not in BACKENDS:
            raise ValueError(
                f"Unknown backend '{self.backend}'. "
                f"Valid backends: best, {', '.join(BACKENDS)}"
            )
        _check_int("n_partitions", self.n_partitions, minimum=1)
        _check_int("combine_passes", self.combine_passes, minimum=0)
        _check_int("n_workers", self.n_workers, minimum=1)

    @classmethod
    def from_dict(cls, data: dict) -> "PrunerConfig":
        """
        Build a config from a mapping; unknown keys raise ``ValueError``.

        >>> PrunerConfig.from_dict({'n_partitions': 4}).n_partitions
        4
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown configuration key(s): {', '.join(unknown)}")
        return cls(**data)

    @classmethod
    def from_json(cls, path: PathLike) -> "PrunerConfig":
        with open(path) as fh:
            data = json.load(fh)
        if not isinstance(data, dict):
            raise ValueError(f"Configuration file {path} must contain a JSON object")
        return cls.from_dict(data)

    def with_overrides(self, **overrides) -> "PrunerConfig":
        """Return a copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def _check_int(name: str, value, minimum: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
