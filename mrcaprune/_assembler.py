"""
_assembler.py
=============
Rebuild the pruned tree from MRCA records and write it as NEWICK.

Public API
----------
  assemble_tree(records, taxa=())        -> PrunedNode   (root)
  to_newick(root, internal_labels=False) -> str
  assemble_newick(records, taxa=(), internal_labels=False) -> str

Reconstruction
--------------
Each MRCARecord is one internal node of the pruned tree.  Tip sets that come
from one reference tree are laminar (any two are nested or disjoint), so the
records containing a given taxon form a chain ordered by size.  A record's
parent is the next larger record in that chain, and a taxon hangs from the
smallest record that contains it.

An internal node's branch length is the record's total branch length, i.e.
the collapsed edge up to the next branch point (or up to the reference root
for the top node).  Leaves have no length: the map stage never emits the tip
entry.

If more than one top-level node remains the result is not rooted at a single
MRCA; a synthetic root without a length is added above them.

Both functions are iterative, so caterpillar trees with many thousands of
taxa do not hit the recursion limit.
"""

import logging
from typing import Dict, Iterable, List, Optional

from mrcaprune._errors import StructuralError
from mrcaprune._records import MRCARecord, validate_taxon
from mrcaprune._utils import format_newick, quote_label


logger = logging.getLogger(__name__)


class PrunedNode:
    """
    One node of the pruned tree.

    Attributes
    ----------
    taxon    : str or None     Leaf label; None for internal nodes.
    node_id  : int or None     Reference NodeID of an internal node; None
                               for leaves and for a synthetic root.
    length   : float or None   Branch length above the node, if known.
    children : list[PrunedNode]
    """

    __slots__ = ("taxon", "node_id", "length", "children")

    def __init__(self, taxon=None, node_id=None, length=None) -> None:
        self.taxon: Optional[str] = taxon
        self.node_id: Optional[int] = node_id
        self.length: Optional[float] = length
        self.children: List["PrunedNode"] = []

    @property
    def is_leaf(self) -> bool:
        return self.taxon is not None

    def leaves(self) -> List[str]:
        """Leaf labels below this node, in NEWICK order."""
        out = []
        stack = [self]
        while stack:
            node = stack.pop()
            if node.is_leaf:
                out.append(node.taxon)
            else:
                stack.extend(reversed(node.children))
        return out

    def __repr__(self) -> str:
        if self.is_leaf:
            return f"PrunedNode(taxon={self.taxon!r})"
        return (
            f"PrunedNode(node_id={self.node_id}, length={self.length}, "
            f"n_children={len(self.children)})"
        )


def assemble_tree(
    records: Iterable[MRCARecord], taxa: Iterable[str] = ()
) -> PrunedNode:
    """
    Build the pruned tree from MRCA records.

    Parameters
    ----------
    records : iterable of MRCARecord
        Final job output.
    taxa : iterable of str, optional
        Query taxa.  Needed only for taxa that appear in no record, e.g. a
        single-taxon query.

    Returns
    -------
    PrunedNode
        The root.

    Raises
    ------
    ValueError
        If there are neither records nor taxa.
    StructuralError
        If two tip sets overlap without one containing the other.
    """
    records = sorted(records, key=lambda r: (r.tip_count, r.key))
    tip_sets = [frozenset(r.tips) for r in records]

    # chain[t] = indices of records containing taxon t, smallest first
    chains: Dict[str, List[int]] = {validate_taxon(t): [] for t in taxa}
    for idx, tips in enumerate(tip_sets):
        for taxon in tips:
            chains.setdefault(taxon, []).append(idx)

    if not chains:
        raise ValueError("Nothing to assemble: no records and no taxa.")

    # parent[i] = next larger record in every chain through i; -1 at the top
    parent = [-1] * len(records)
    for chain in chains.values():
        for small, large in zip(chain, chain[1:]):
            if parent[small] == large:
                continue
            if parent[small] != -1 or not tip_sets[small] < tip_sets[large]:
                raise StructuralError(
                    f"Tip sets {records[small].key!r} and {records[large].key!r} "
                    f"overlap but are not nested."
                )
            parent[small] = large

    nodes = [PrunedNode(node_id=r.node_id, length=r.total_branch_length) for r in records]
    for idx, p in enumerate(parent):
        if p >= 0:
            nodes[p].children.append(nodes[idx])

    top: List[PrunedNode] = [n for n, p in zip(nodes, parent) if p < 0]
    for taxon in sorted(chains):
        leaf = PrunedNode(taxon=taxon)
        if chains[taxon]:
            nodes[chains[taxon][0]].children.append(leaf)
        else:
            top.append(leaf)

    if len(top) == 1:
        root = top[0]
    else:
        logger.info(
            "Records do not close under one MRCA (%d top-level nodes); "
            "adding a synthetic root",
            len(top),
        )
        root = PrunedNode()
        root.children.extend(top)

    _sort_children(root)
    return root


def _sort_children(root: PrunedNode) -> None:
    """Order every node's children by their smallest leaf label."""
    order: List[PrunedNode] = []
    stack = [root]
    while stack:
        node = stack.pop()
        order.append(node)
        stack.extend(node.children)

    smallest: Dict[int, str] = {}
    for node in reversed(order):
        if node.is_leaf:
            smallest[id(node)] = node.taxon
        else:
            node.children.sort(key=lambda c: smallest[id(c)])
            smallest[id(node)] = smallest[id(node.children[0])]


def to_newick(root: PrunedNode, internal_labels: bool = False) -> str:
    """
    Serialize a pruned tree to a ``;``-terminated NEWICK string.

    Parameters
    ----------
    root : PrunedNode
    internal_labels : bool, default False
        If True, label internal nodes with their reference NodeID.

    Examples
    --------
    >>> from mrcaprune._records import MRCARecord
    >>> root = assemble_tree([MRCARecord('A|B', 3, 0.5, 2)])
    >>> to_newick(root)
    '(A,B):0.5;'
    """
    text: Dict[int, str] = {}
    stack = [(root, False)]
    while stack:
        node, expanded = stack.pop()
        if node.is_leaf:
            body = quote_label(node.taxon)
        elif not expanded:
            stack.append((node, True))
            stack.extend((c, False) for c in reversed(node.children))
            continue
        else:
            body = "(" + ",".join(text.pop(id(c)) for c in node.children) + ")"
            if internal_labels and node.node_id is not None:
                body += str(node.node_id)
        if node.length is not None:
            body += f":{node.length!r}"
        text[id(node)] = body

    return format_newick(text[id(root)])


def assemble_newick(
    records: Iterable[MRCARecord],
    taxa: Iterable[str] = (),
    internal_labels: bool = False,
) -> str:
    """Convenience wrapper: ``to_newick(assemble_tree(records, taxa))``."""
    return to_newick(assemble_tree(records, taxa), internal_labels=internal_labels)
