"""
_stages.py
==========
The three record-level stages of the pruning job.

  expand_path(taxon, path)          map      : one Emission per ancestor
  aggregate_tips(items)             combine  : one PartialAncestorRecord per node
  select_mrca(records)              reduce   : at most one MRCARecord per key

Every function here is a pure function of its input records.  None of them
keeps state between calls, so any of them may be retried, duplicated or run
on arbitrary partitions of its input.

How the two group-by passes fit together
----------------------------------------
``aggregate_tips`` accepts Emissions and its own PartialAncestorRecords
interchangeably, because both describe "taxa seen below this node".  Its
result is a union over those taxa, so the job can apply it zero, one or many
times inside arbitrary partitions and then once more after all records for a
NodeID have been brought together.  Only that last, complete call determines
the tip set (and so the key) a node is reduced under.

``select_mrca`` then folds every record sharing a key:

  * the branch lengths are summed -- the nodes sharing one tip set form a
    chain of pass-through ancestors collapsed into a single edge;
  * among records with ``tip_count > 1`` the greatest NodeID wins.  Preorder
    IDs grow toward the tips, so the greatest ID is the most recent node with
    that exact tip set: the MRCA.
"""

import logging
from typing import Iterable, List, NamedTuple, Optional, Sequence

from mrcaprune._errors import StructuralError
from mrcaprune._records import (
    AncestorItem,
    Emission,
    MRCARecord,
    PartialAncestorRecord,
    PathEntry,
    TipSet,
    validate_taxon,
)


logger = logging.getLogger(__name__)


# ======================================================================== #
# Map                                                                       #
# ======================================================================== #


def validate_path(taxon: str, path: Sequence[PathEntry]) -> None:
    """
    Check the NodeID invariant along one tip-first root path.

    Raises
    ------
    StructuralError
        If the path is empty, or if the IDs do not strictly decrease from
        the tip toward the root (a repeated ID means a cycle).
    """
    if len(path) == 0:
        raise StructuralError(f"Empty root path for taxon {taxon!r}.")

    for i in range(1, len(path)):
        child = path[i - 1].node_id
        parent = path[i].node_id
        if parent == child:
            raise StructuralError(
                f"Cycle in root path for taxon {taxon!r}: node {parent} "
                f"repeats at position {i}."
            )
        if parent > child:
            raise StructuralError(
                f"Non-monotonic root path for taxon {taxon!r}: ancestor "
                f"{parent} at position {i} has a larger ID than its "
                f"descendant {child}."
            )


def expand_path(taxon: str, path: Sequence[PathEntry]) -> List[Emission]:
    """
    Fan one taxon's root path out into one Emission per ancestor.

    The first entry is the tip itself and is not emitted.

    Parameters
    ----------
    taxon : str
        Query taxon label.
    path : sequence of PathEntry
        Tip-first, root-last path for *taxon*.

    Returns
    -------
    list of Emission

    Examples
    --------
    >>> path = [PathEntry(4, 0.1), PathEntry(3, 0.3), PathEntry(2, 0.5),
    ...         PathEntry(1, 0.0)]
    >>> [(e.node_id, e.taxon) for e in expand_path('A', path)]
    [(3, 'A'), (2, 'A'), (1, 'A')]
    """
    validate_taxon(taxon)
    validate_path(taxon, path)
    return [Emission(entry.node_id, entry.branch_length, taxon) for entry in path[1:]]


class PathExpander:
    """
    Map stage bound to a path source.

    Calling the expander with a taxon label looks up its root path and
    returns the emissions.  The source raises ``ResourceError`` or
    ``ParseError`` when the path cannot be read; both propagate unchanged.
    """

    def __init__(self, source) -> None:
        self.source = source

    def __call__(self, taxon: str) -> List[Emission]:
        path = self.source.get_path(taxon)
        emissions = expand_path(taxon, path)
        logger.debug("Expanded %r into %d emissions", taxon, len(emissions))
        return emissions


# ======================================================================== #
# Combine                                                                   #
# ======================================================================== #


def aggregate_tips(items: Iterable[AncestorItem]) -> PartialAncestorRecord:
    """
    Merge everything known about one node into a single partial record.

    Parameters
    ----------
    items : iterable of Emission or PartialAncestorRecord
        All items must share one NodeID.  Mixing the two record types is
        allowed; duplicates are harmless.

    Returns
    -------
    PartialAncestorRecord
        Keyed by the canonical key of the union of all tips seen.

    Raises
    ------
    ValueError
        If *items* is empty.
    StructuralError
        If the items disagree on NodeID or on the node's branch length.
    """
    node_id = None
    branch_length = None
    taxa = set()

    for item in items:
        if node_id is None:
            node_id = item.node_id
            branch_length = item.branch_length
        elif item.node_id != node_id:
            raise StructuralError(
                f"Cannot aggregate records of different nodes "
                f"({node_id} and {item.node_id})."
            )
        elif item.branch_length != branch_length:
            raise StructuralError(
                f"Node {node_id} has conflicting branch lengths "
                f"{branch_length!r} and {item.branch_length!r}."
            )
        taxa.update(item.tips)

    if node_id is None:
        raise ValueError("aggregate_tips() needs at least one record.")

    tip_set = TipSet(taxa)
    return PartialAncestorRecord(tip_set.key, node_id, branch_length, len(tip_set))


# ======================================================================== #
# Reduce                                                                    #
# ======================================================================== #


class SelectionAccumulator(NamedTuple):
    """
    Fold state for one tip-set key.

    ``merge`` is associative and commutative, and ``EMPTY_SELECTION`` is its
    identity, so the fold may be evaluated by any parallel reduction.
    """

    best_id: Optional[int]
    best_tip_count: int
    total_length: float

    @classmethod
    def of(cls, record: PartialAncestorRecord) -> "SelectionAccumulator":
        if record.tip_count > 1:
            return cls(record.node_id, record.tip_count, record.branch_length)
        # pass-through parent of a single tip: length only
        return cls(None, 0, record.branch_length)

    def merge(self, other: "SelectionAccumulator") -> "SelectionAccumulator":
        total = self.total_length + other.total_length
        if other.best_id is None:
            return SelectionAccumulator(self.best_id, self.best_tip_count, total)
        if self.best_id is None:
            return SelectionAccumulator(other.best_id, other.best_tip_count, total)
        best = max(
            (self.best_id, self.best_tip_count), (other.best_id, other.best_tip_count)
        )
        return SelectionAccumulator(best[0], best[1], total)


EMPTY_SELECTION = SelectionAccumulator(None, 0, 0.0)


def fold_records(records: Iterable[PartialAncestorRecord]) -> SelectionAccumulator:
    acc = EMPTY_SELECTION
    for record in records:
        acc = acc.merge(SelectionAccumulator.of(record))
    return acc


def select_mrca(records: Iterable[PartialAncestorRecord]) -> Optional[MRCARecord]:
    """
    Reduce every partial record of one tip-set key to its MRCA.

    Parameters
    ----------
    records : iterable of PartialAncestorRecord
        The complete group for one key.  Order does not matter.

    Returns
    -------
    MRCARecord or None
        None when no record has ``tip_count > 1`` (a single-taxon key).
        That is an ordinary outcome, not an error.

    Raises
    ------
    StructuralError
        If the records carry more than one key.

    Notes
    -----
    Floating-point addition is not associative, so the total length can
    differ in its last bits when the same records arrive in another order.
    """
    key = None
    acc = EMPTY_SELECTION
    for record in records:
        if key is None:
            key = record.key
        elif record.key != key:
            raise StructuralError(
                f"select_mrca() received records for two keys: {key!r} and "
                f"{record.key!r}."
            )
        acc = acc.merge(SelectionAccumulator.of(record))

    if acc.best_id is None:
        return None
    return MRCARecord(key, acc.best_id, acc.total_length, acc.best_tip_count)
