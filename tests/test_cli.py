"""
tests/test_cli.py
=================
The ``mrcaprune`` command line: ``paths`` followed by ``prune``.
"""

import json
import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from mrcaprune.__main__ import build_parser, main
from mrcaprune._paths import taxon_file
from examples_trees import tree_path


@pytest.fixture
def path_dir(tmp_path):
    out = tmp_path / "paths"
    assert main(["paths", tree_path("worked_example.tree"), str(out)]) == 0
    return out


@pytest.fixture
def taxa_file(tmp_path):
    path = tmp_path / "taxa.txt"
    path.write_text("A\nB\nC\n")
    return path


class TestPathsCommand:
    def test_writes_every_leaf(self, path_dir):
        for taxon in "ABCD":
            assert taxon_file(path_dir, taxon).is_file()

    def test_taxa_subset(self, tmp_path):
        subset = tmp_path / "subset.txt"
        subset.write_text("D\n")
        out = tmp_path / "some"
        assert main(["paths", tree_path("worked_example.tree"), str(out), "--taxa", str(subset)]) == 0
        assert taxon_file(out, "D").is_file()
        assert not taxon_file(out, "A").exists()

    def test_bad_tree(self, tmp_path, capsys):
        bad = tmp_path / "bad.tree"
        bad.write_text("((A,B);")
        assert main(["paths", str(bad), str(tmp_path / "out")]) == 1
        assert "error" in capsys.readouterr().err


class TestPruneCommand:
    def test_prints_newick(self, tmp_path, path_dir, taxa_file, capsys):
        out = tmp_path / "out"
        assert main(["prune", str(taxa_file), str(out), "--paths", str(path_dir)]) == 0
        assert capsys.readouterr().out.strip() == "((A,B):0.3,C):0.5;"
        assert (out / "part-00000").read_text() == "A|B\t3,0.3,2\nA|B|C\t2,0.5,3\n"

    def test_options(self, tmp_path, path_dir, taxa_file, capsys):
        out = tmp_path / "out"
        argv = [
            "prune", str(taxa_file), str(out), "--paths", str(path_dir),
            "--backend", "python", "--partitions", "3", "--combine-passes", "2",
            "--workers", "2", "--internal-labels",
        ]
        assert main(argv) == 0
        assert capsys.readouterr().out.strip() == "((A,B)3:0.3,C)2:0.5;"

    def test_config_file(self, tmp_path, path_dir, taxa_file, capsys):
        config = tmp_path / "job.json"
        config.write_text(json.dumps({"path_dir": str(path_dir), "n_partitions": 2}))
        out = tmp_path / "out"
        assert main(["prune", str(taxa_file), str(out), "--config", str(config)]) == 0
        assert capsys.readouterr().out.strip() == "((A,B):0.3,C):0.5;"

    def test_missing_taxon_fails(self, tmp_path, path_dir, capsys):
        taxa = tmp_path / "taxa.txt"
        taxa.write_text("A\nZ\n")
        out = tmp_path / "out"
        assert main(["prune", str(taxa), str(out), "--paths", str(path_dir)]) == 1
        assert "'Z'" in capsys.readouterr().err
        assert not (out / "part-00000").exists()

    def test_missing_path_dir_fails(self, tmp_path, taxa_file, capsys):
        assert main(["prune", str(taxa_file), str(tmp_path / "out")]) == 1
        assert "path" in capsys.readouterr().err

    def test_invalid_partitions(self, tmp_path, path_dir, taxa_file):
        argv = ["prune", str(taxa_file), str(tmp_path), "--paths", str(path_dir), "--partitions", "0"]
        assert main(argv) == 1


class TestParser:
    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_unknown_backend_rejected(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["prune", "t", "o", "--backend", "cuda"])

    def test_verbosity_counts(self):
        args = build_parser().parse_args(["-vv", "paths", "t", "o"])
        assert args.verbose == 2
