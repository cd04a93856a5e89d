"""
tests/test_tree.py
==================
NEWICK parsing, preorder numbering and root paths of ReferenceTree.
"""

import os
import sys

import numpy as np
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from mrcaprune._errors import ParseError
from mrcaprune._records import PathEntry
from mrcaprune._tree import ReferenceTree
from examples_trees import load_tree, random_newick


@pytest.fixture(scope="module")
def example_tree():
    return load_tree("worked_example.tree")


class TestPreorderNumbering:
    def test_worked_example_ids(self, example_tree):
        assert example_tree.n_nodes == 7
        assert example_tree.n_leaves == 4
        assert example_tree.root == 1
        assert example_tree.names == ["n1", "n2", "n3", "A", "B", "C", "D"]
        assert [example_tree.node_id(t) for t in "ABCD"] == [4, 5, 6, 7]

    def test_parent_array(self, example_tree):
        np.testing.assert_array_equal(example_tree.parent, [0, 1, 2, 3, 3, 2, 1])

    def test_distance_array(self, example_tree):
        np.testing.assert_allclose(
            example_tree.distance, [0.0, 0.5, 0.3, 0.1, 0.2, 0.4, 0.6]
        )

    def test_caterpillar_ids(self):
        tree = load_tree("caterpillar_5leaf.tree")
        assert [tree.node_id(t) for t in "ABCDE"] == [2, 4, 6, 8, 9]
        assert tree.leaf_names == ["A", "B", "C", "D", "E"]

    def test_children_have_larger_ids(self):
        tree = ReferenceTree(random_newick(300, seed=11))
        for idx in range(1, tree.n_nodes):
            assert tree.parent[idx] < idx + 1

    def test_is_leaf(self, example_tree):
        assert example_tree.is_leaf(4)
        assert not example_tree.is_leaf(1)


class TestRootPaths:
    def test_path_is_tip_first(self, example_tree):
        assert example_tree.path_to_root("A") == [
            PathEntry(4, 0.1),
            PathEntry(3, 0.3),
            PathEntry(2, 0.5),
            PathEntry(1, 0.0),
        ]

    def test_shallow_tip(self, example_tree):
        assert [e.node_id for e in example_tree.path_to_root("D")] == [7, 1]

    def test_unbranched_nodes_kept(self):
        tree = load_tree("unbranched.tree")
        assert tree.path_to_root("A") == [
            PathEntry(5, 1.0),
            PathEntry(4, 1.0),
            PathEntry(3, 2.0),
            PathEntry(2, 3.0),
            PathEntry(1, 0.0),
        ]

    def test_unknown_taxon(self, example_tree):
        with pytest.raises(KeyError):
            example_tree.path_to_root("Z")


class TestMRCA:
    @pytest.mark.parametrize(
        "taxa, expected",
        [
            (["A", "B"], 3),
            (["A", "C"], 2),
            (["B", "C", "A"], 2),
            (["A", "D"], 1),
            (["C"], 6),
        ],
    )
    def test_mrca(self, example_tree, taxa, expected):
        assert example_tree.mrca(taxa) == expected

    def test_multifurcation(self):
        tree = load_tree("multifurcating.tree")
        assert tree.mrca(["A", "C"]) == 2
        assert tree.mrca(["B", "D"]) == 1

    def test_empty(self, example_tree):
        with pytest.raises(ValueError):
            example_tree.mrca([])


class TestParsing:
    def test_missing_lengths_are_zero(self):
        tree = ReferenceTree("((A,B),C);")
        np.testing.assert_array_equal(tree.distance, np.zeros(5))

    def test_trailing_semicolon_optional(self):
        assert ReferenceTree("(A:1,B:2)").n_nodes == 3

    def test_quoted_labels(self):
        tree = ReferenceTree("('Homo sapiens':1,'O''Brien':2);")
        assert tree.leaf_names == ["Homo sapiens", "O'Brien"]

    def test_comment_after_length(self):
        tree = ReferenceTree("(A:1[&&NHX:S=x],B:2);")
        assert tree.leaf_names == ["A", "B"]
        assert tree.distance[1] == 1.0

    def test_whitespace_and_newlines(self):
        tree = ReferenceTree("(\n  A : 1 ,\n  B : 2\n) ;\n")
        assert tree.leaf_names == ["A", "B"]

    def test_single_leaf(self):
        tree = ReferenceTree("A;")
        assert tree.n_nodes == 1
        assert tree.path_to_root("A") == [PathEntry(1, 0.0)]

    def test_scientific_notation(self):
        tree = ReferenceTree("(A:1e-3,B:2.5E2);")
        np.testing.assert_allclose(tree.distance, [0.0, 0.001, 250.0])

    @pytest.mark.parametrize(
        "newick",
        [
            "",
            ";",
            "((A,B);",
            "(A,B));",
            "(A,A);",
            "(A,);",
            "(A:x,B);",
            "(A:-1,B);",
            "(A,B)C,D;",
            "(A|B,C);",
            "(A,B)(C,D);",
            "('A,B);",
            "(A[x,B);",
        ],
    )
    def test_malformed(self, newick):
        with pytest.raises(ParseError):
            ReferenceTree(newick)

    @pytest.mark.large_scale
    def test_deep_caterpillar_does_not_recurse(self):
        n = 20000
        newick = "(" * (n - 1) + "t0:1" + "".join(
            f",t{i}:1)" + (":1" if i < n - 1 else "") for i in range(1, n)
        )
        tree = ReferenceTree(newick + ";")
        assert tree.n_leaves == n
        assert len(tree.path_to_root("t0")) == n
