"""
_tree.py
========
A reference phylogeny parsed from NEWICK, numbered in preorder.

Public API
----------
  ReferenceTree(newick_string)
      Constructor.  Parses the NEWICK string and assigns preorder NodeIDs.

  .path_to_root(taxon)   -> list[PathEntry]   tip-first root path
  .mrca(taxa)            -> int               NodeID of the MRCA of *taxa*
  .node_id(taxon)        -> int               NodeID of a leaf

Node-ID conventions
-------------------
NodeIDs are assigned by a preorder traversal starting at 1 for the root, with
children visited in NEWICK order.  Every node therefore has a strictly larger
ID than all of its ancestors, which is the invariant the reduce stage relies
on.  The per-node arrays below are indexed by ``node_id - 1``.

Arrays
------
parent   : int32  [n_nodes]   Parent NodeID; 0 for the root.
distance : float64[n_nodes]   Branch length to parent; 0.0 when absent.
names    : list[str]          Leaf names and internal labels ('' if none).

Unlike a strictly bifurcating representation, multifurcations and
unbranched (single-child) internal nodes are kept as written.
"""

import logging
from typing import Dict, Iterable, List

import numpy as np

from mrcaprune._errors import ParseError
from mrcaprune._records import PathEntry, validate_taxon


logger = logging.getLogger(__name__)

_LABEL_STOP = ":,();[ \t\r\n"


class ReferenceTree:
    """
    A rooted phylogenetic tree with preorder NodeIDs.

    Attributes (all read-only after construction)
    ----------------------------------------------
    n_nodes     : int        Total number of nodes.
    n_leaves    : int        Number of leaf (taxon) nodes.
    root        : int        NodeID of the root (always 1).
    leaf_names  : list[str]  Leaf names in preorder.
    """

    def __init__(self, newick_string: str) -> None:
        """
        Parameters
        ----------
        newick_string : str
            A NEWICK tree string (trailing ';' optional).

        Raises
        ------
        ParseError
            If the string is not valid NEWICK, a leaf is unnamed, a leaf
            name is duplicated, or a leaf name is not a valid taxon label.
        """
        tmp_parent, children, names, lengths = self._parse_newick(newick_string)
        self._number_preorder(tmp_parent, children, names, lengths)

        self.n_nodes: int = int(self.parent.shape[0])
        self.root: int = 1
        self.leaf_names: List[str] = [
            self.names[i] for i in range(self.n_nodes) if self._is_leaf[i]
        ]
        self.n_leaves: int = len(self.leaf_names)

        self._leaf_index: Dict[str, int] = {}
        for i in range(self.n_nodes):
            if not self._is_leaf[i]:
                continue
            name = self.names[i]
            if not name:
                raise ParseError(f"Leaf node {i + 1} has no name.")
            validate_taxon(name)
            if name in self._leaf_index:
                raise ParseError(f"Duplicate leaf name {name!r} in tree.")
            self._leaf_index[name] = i + 1

        n_unary = int(np.sum(self._n_children == 1))
        logger.info(
            "Parsed reference tree: %d nodes, %d leaves, %d unbranched internal "
            "node(s)",
            self.n_nodes,
            self.n_leaves,
            n_unary,
        )

    # ================================================================== #
    # Public methods                                                       #
    # ================================================================== #

    def node_id(self, taxon: str) -> int:
        """Return the NodeID of leaf *taxon*; ``KeyError`` if absent."""
        try:
            return self._leaf_index[taxon]
        except KeyError:
            raise KeyError(f"No leaf named '{taxon}' in tree.") from None

    def path_to_root(self, taxon: str) -> List[PathEntry]:
        """
        Return the root path of *taxon*, tip first, root last.

        Each entry pairs a NodeID with the length of the branch above it.

        >>> tree = ReferenceTree('(((A:1,B:2)n3:3,C:4)n2:5,D:6)n1;')
        >>> [e.node_id for e in tree.path_to_root('A')]
        [4, 3, 2, 1]
        """
        node = self.node_id(taxon)
        path = []
        while node != 0:
            path.append(PathEntry(node, float(self.distance[node - 1])))
            node = int(self.parent[node - 1])
        return path

    def mrca(self, taxa: Iterable[str]) -> int:
        """
        Return the NodeID of the most recent common ancestor of *taxa*.

        For a single taxon this is the leaf itself.

        Raises
        ------
        ValueError
            If *taxa* is empty.
        """
        common = None
        for taxon in taxa:
            ids = [e.node_id for e in self.path_to_root(taxon)]
            common = set(ids) if common is None else common.intersection(ids)
        if common is None:
            raise ValueError("mrca() needs at least one taxon.")
        # preorder: the deepest shared node has the largest ID
        return max(common)

    def is_leaf(self, node_id: int) -> bool:
        return bool(self._is_leaf[node_id - 1])

    def __repr__(self) -> str:
        return f"ReferenceTree(n_nodes={self.n_nodes}, n_leaves={self.n_leaves})"

    # ================================================================== #
    # Private methods                                                      #
    # ================================================================== #

    @staticmethod
    def _parse_newick(newick_string: str):
        """
        **Private.**  Iterative, stack-based NEWICK scan.

        Nodes get temporary IDs in creation order; ``_number_preorder``
        replaces them afterwards.

        Returns
        -------
        (tmp_parent, children, names, lengths) : lists indexed by temp ID.
        """
        s = newick_string.strip()
        n_chars = len(s)
        if n_chars > 0 and s[n_chars - 1] == ";":
            n_chars -= 1
        if n_chars == 0:
            raise ParseError("Empty NEWICK string.")

        tmp_parent: List[int] = []
        children: List[List[int]] = []
        names: List[str] = []
        lengths: List[float] = []

        def new_node(parent_id: int) -> int:
            node = len(tmp_parent)
            tmp_parent.append(parent_id)
            children.append([])
            names.append("")
            lengths.append(0.0)
            if parent_id >= 0:
                children[parent_id].append(node)
            return node

        stack: List[int] = []
        expect_node = True
        i = 0

        while i < n_chars:
            c = s[i]

            if c in " \t\r\n":
                i += 1
                continue

            if c == "[":
                # NEWICK comment
                end = s.find("]", i)
                if end < 0:
                    raise ParseError("Unterminated comment in NEWICK string.")
                i = end + 1
                continue

            if c == "(":
                if not expect_node:
                    raise ParseError(f"Unexpected '(' at position {i}.")
                if not stack and tmp_parent:
                    raise ParseError(f"Text after the root node at position {i}.")
                stack.append(new_node(stack[-1] if stack else -1))
                i += 1
                continue

            if c == ",":
                if not stack:
                    raise ParseError(f"',' outside parentheses at position {i}.")
                if expect_node:
                    # empty leaf, e.g. '(,A)'
                    new_node(stack[-1])
                expect_node = True
                i += 1
                continue

            if c == ")":
                if not stack:
                    raise ParseError(f"Unbalanced ')' at position {i}.")
                if expect_node:
                    new_node(stack[-1])
                closed = stack.pop()
                i = ReferenceTree._read_label_and_length(
                    s, i + 1, n_chars, closed, names, lengths
                )
                expect_node = False
                continue

            # Leaf
            if not expect_node:
                raise ParseError(f"Unexpected character {c!r} at position {i}.")
            if not stack and tmp_parent:
                raise ParseError(f"Text after the root node at position {i}.")
            leaf = new_node(stack[-1] if stack else -1)
            j = ReferenceTree._read_label_and_length(s, i, n_chars, leaf, names, lengths)
            if j == i:
                raise ParseError(f"Unexpected character {c!r} at position {i}.")
            i = j
            expect_node = False

        if stack:
            raise ParseError("Unbalanced '(' in NEWICK string.")

        return tmp_parent, children, names, lengths

    @staticmethod
    def _read_label_and_length(s, i, n_chars, node, names, lengths) -> int:
        """**Private.**  Read ``label[:length]`` starting at *i*; return new *i*."""
        while i < n_chars and s[i] in " \t\r\n":
            i += 1

        if i < n_chars and s[i] == "'":
            j = i + 1
            buf = []
            while True:
                if j >= n_chars:
                    raise ParseError("Unterminated quoted label in NEWICK string.")
                if s[j] == "'":
                    if j + 1 < n_chars and s[j + 1] == "'":
                        buf.append("'")
                        j += 2
                        continue
                    break
                buf.append(s[j])
                j += 1
            names[node] = "".join(buf)
            i = j + 1
        else:
            j = i
            while j < n_chars and s[j] not in _LABEL_STOP:
                j += 1
            names[node] = s[i:j]
            i = j

        while i < n_chars and s[i] in " \t\r\n":
            i += 1

        if i < n_chars and s[i] == ":":
            i += 1
            while i < n_chars and s[i] in " \t\r\n":
                i += 1
            j = i
            while j < n_chars and s[j] not in ",)[ \t\r\n":
                j += 1
            text = s[i:j]
            try:
                length = float(text)
            except ValueError:
                raise ParseError(f"Bad branch length {text!r} in NEWICK string.") from None
            if not np.isfinite(length) or length < 0.0:
                raise ParseError(f"Branch length must be non-negative, got {text!r}.")
            lengths[node] = length
            i = j

        return i

    def _number_preorder(self, tmp_parent, children, names, lengths) -> None:
        """
        **Private.**  Renumber nodes in preorder (root = 1) and populate the
        per-node arrays.
        """
        n_nodes = len(tmp_parent)
        order = []
        stack = [0]
        while stack:
            node = stack.pop()
            order.append(node)
            # push right-to-left so children are visited in NEWICK order
            for child in reversed(children[node]):
                stack.append(child)

        new_id = [0] * n_nodes
        for rank, node in enumerate(order):
            new_id[node] = rank + 1

        parent = np.zeros(n_nodes, dtype=np.int32)
        distance = np.zeros(n_nodes, dtype=np.float64)
        n_children = np.zeros(n_nodes, dtype=np.int32)
        out_names = [""] * n_nodes

        for node in range(n_nodes):
            idx = new_id[node] - 1
            p = tmp_parent[node]
            parent[idx] = new_id[p] if p >= 0 else 0
            distance[idx] = lengths[node]
            n_children[idx] = len(children[node])
            out_names[idx] = names[node]

        self.parent = parent
        self.distance = distance
        self.names = out_names
        self._n_children = n_children
        self._is_leaf = n_children == 0
