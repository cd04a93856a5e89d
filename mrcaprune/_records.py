"""
_records.py
===========
Record types that flow between the map, combine and reduce stages, and the
plain-text wire format they travel in.

Record types
------------
  PathEntry(node_id, branch_length)
      One node on a taxon's root path.  Paths are tip-first, root-last.

  Emission(node_id, branch_length, taxon)
      Map output: one per (ancestor, taxon) pair.  The ancestor's own branch
      length travels with its ID so the combine stage never needs a lookup.

  PartialAncestorRecord(key, node_id, branch_length, tip_count)
      Combine output: the tips seen below one node within one call.

  MRCARecord(key, node_id, total_branch_length, tip_count)
      Reduce output: the MRCA of one distinct tip set and the length of the
      collapsed edge above it.

All records are ``NamedTuple`` instances and therefore immutable.

Wire format
-----------
Every record is a ``key \\t value`` text line:

  emission  :  ``NodeID,BranchLength \\t Taxon``
  partial   :  ``TipSetKey \\t NodeID,BranchLength,TipCount``
  final     :  ``TipSetKey \\t NodeID,TotalBranchLength,TipCount``

Floats are written with ``repr`` so they survive a round trip exactly.
"""

import math
from typing import FrozenSet, Iterable, List, NamedTuple, Tuple, Union

from mrcaprune._errors import ParseError


# Separator used to build canonical tip-set keys.  It is rejected inside
# taxon labels, which keeps keys collision-free.
TIPSET_SEPARATOR = "|"

_FORBIDDEN_LABEL_CHARS = (TIPSET_SEPARATOR, "\t", "\n", "\r")


# ======================================================================== #
# Record types                                                              #
# ======================================================================== #


class PathEntry(NamedTuple):
    node_id: int
    branch_length: float


class Emission(NamedTuple):
    node_id: int
    branch_length: float
    taxon: str

    @property
    def tips(self) -> Tuple[str, ...]:
        return (self.taxon,)


class PartialAncestorRecord(NamedTuple):
    key: str
    node_id: int
    branch_length: float
    tip_count: int

    @property
    def tips(self) -> Tuple[str, ...]:
        return tuple(self.key.split(TIPSET_SEPARATOR))


class MRCARecord(NamedTuple):
    key: str
    node_id: int
    total_branch_length: float
    tip_count: int

    @property
    def tips(self) -> Tuple[str, ...]:
        return tuple(self.key.split(TIPSET_SEPARATOR))


AncestorItem = Union[Emission, PartialAncestorRecord]


# ======================================================================== #
# TipSet                                                                    #
# ======================================================================== #


class TipSet:
    """
    An immutable, order-independent set of taxon labels.

    Two TipSets are equal iff their membership is equal.  ``key`` is the
    canonical serialization used for grouping: the sorted labels joined by
    ``TIPSET_SEPARATOR``.

    Examples
    --------
    >>> TipSet(['B', 'A', 'B']).key
    'A|B'
    >>> TipSet(['A', 'B']) == TipSet.from_key('B|A')
    True
    """

    __slots__ = ("_members", "_key")

    def __init__(self, taxa: Iterable[str] = ()) -> None:
        members = frozenset(taxa)
        for taxon in members:
            validate_taxon(taxon)
        self._members: FrozenSet[str] = members
        self._key: str = TIPSET_SEPARATOR.join(sorted(members))

    @classmethod
    def from_key(cls, key: str) -> "TipSet":
        if not key:
            raise ParseError("Empty tip-set key.")
        return cls(key.split(TIPSET_SEPARATOR))

    @property
    def key(self) -> str:
        return self._key

    @property
    def members(self) -> FrozenSet[str]:
        return self._members

    def union(self, other: Iterable[str]) -> "TipSet":
        return TipSet(self._members.union(other))

    def issubset(self, other: "TipSet") -> bool:
        return self._members <= other._members

    def __len__(self) -> int:
        return len(self._members)

    def __iter__(self):
        return iter(sorted(self._members))

    def __contains__(self, taxon) -> bool:
        return taxon in self._members

    def __eq__(self, other) -> bool:
        if not isinstance(other, TipSet):
            return NotImplemented
        return self._members == other._members

    def __hash__(self) -> int:
        return hash(self._members)

    def __repr__(self) -> str:
        return f"TipSet({self._key!r})"


# ======================================================================== #
# Validation helpers                                                        #
# ======================================================================== #


def validate_taxon(taxon: str) -> str:
    """
    Check that *taxon* is usable as a TaxonLabel and return it unchanged.

    Raises
    ------
    ParseError
        If the label is empty, not a string, or contains the tip-set
        separator, a tab or a line break.
    """
    if not isinstance(taxon, str) or not taxon:
        raise ParseError(f"Invalid taxon label: {taxon!r}")
    for ch in _FORBIDDEN_LABEL_CHARS:
        if ch in taxon:
            raise ParseError(
                f"Taxon label {taxon!r} contains reserved character {ch!r}."
            )
    return taxon


def _parse_node_id(text: str, context: str) -> int:
    try:
        node_id = int(text)
    except ValueError:
        raise ParseError(f"Bad NodeID {text!r} in {context!r}") from None
    if node_id < 0:
        raise ParseError(f"Negative NodeID {node_id} in {context!r}")
    return node_id


def _parse_length(text: str, context: str) -> float:
    try:
        length = float(text)
    except ValueError:
        raise ParseError(f"Bad branch length {text!r} in {context!r}") from None
    if not math.isfinite(length) or length < 0.0:
        raise ParseError(
            f"Branch length must be finite and non-negative, got {text!r} "
            f"in {context!r}"
        )
    return length


def _parse_count(text: str, context: str) -> int:
    try:
        count = int(text)
    except ValueError:
        raise ParseError(f"Bad tip count {text!r} in {context!r}") from None
    if count < 1:
        raise ParseError(f"Tip count must be positive in {context!r}")
    return count


def _split_line(line: str) -> Tuple[str, str]:
    key, sep, value = line.rstrip("\r\n").partition("\t")
    if not sep:
        raise ParseError(f"Missing tab separator in record {line!r}")
    return key, value


# ======================================================================== #
# PathEntry codec                                                           #
# ======================================================================== #


def parse_path_entry(token: str) -> PathEntry:
    """
    Parse one ``NodeID,BranchLength`` token.

    >>> parse_path_entry('3,0.25')
    PathEntry(node_id=3, branch_length=0.25)
    """
    parts = token.strip().split(",")
    if len(parts) != 2:
        raise ParseError(f"Expected 'NodeID,BranchLength', got {token!r}")
    return PathEntry(_parse_node_id(parts[0], token), _parse_length(parts[1], token))


def parse_path(text: str) -> List[PathEntry]:
    """
    Parse the contents of a per-taxon path file.

    Entries are separated by newlines or tabs; blank lines are ignored.
    """
    return [parse_path_entry(token) for token in text.split() if token]


def format_path(path: Iterable[PathEntry]) -> str:
    return "".join(f"{e.node_id},{e.branch_length!r}\n" for e in path)


# ======================================================================== #
# Wire codec                                                                #
# ======================================================================== #


def format_emission(emission: Emission) -> str:
    return f"{emission.node_id},{emission.branch_length!r}\t{emission.taxon}"


def parse_emission(line: str) -> Emission:
    key, taxon = _split_line(line)
    entry = parse_path_entry(key)
    return Emission(entry.node_id, entry.branch_length, validate_taxon(taxon))


def format_partial(record: PartialAncestorRecord) -> str:
    return (
        f"{record.key}\t{record.node_id},{record.branch_length!r},"
        f"{record.tip_count}"
    )


def parse_partial(line: str) -> PartialAncestorRecord:
    key, value = _split_line(line)
    node_id, length, count = _parse_value(value, line)
    return PartialAncestorRecord(TipSet.from_key(key).key, node_id, length, count)


def format_mrca(record: MRCARecord) -> str:
    return (
        f"{record.key}\t{record.node_id},{record.total_branch_length!r},"
        f"{record.tip_count}"
    )


def parse_mrca(line: str) -> MRCARecord:
    key, value = _split_line(line)
    node_id, length, count = _parse_value(value, line)
    return MRCARecord(TipSet.from_key(key).key, node_id, length, count)


def _parse_value(value: str, line: str) -> Tuple[int, float, int]:
    parts = value.split(",")
    if len(parts) != 3:
        raise ParseError(f"Expected 'NodeID,BranchLength,TipCount' in {line!r}")
    return (
        _parse_node_id(parts[0], line),
        _parse_length(parts[1], line),
        _parse_count(parts[2], line),
    )


def read_mrca_records(lines: Iterable[str]) -> List[MRCARecord]:
    """Parse job output lines, skipping blank ones."""
    return [parse_mrca(line) for line in lines if line.strip()]
