"""
Command-line entry point.

    python -m mrcaprune paths TREE OUTDIR [--taxa FILE]
    python -m mrcaprune prune TAXA OUTDIR --paths DIR [options]
"""

import argparse
import logging
import sys

from mrcaprune._assembler import assemble_newick
from mrcaprune._backend import BACKENDS
from mrcaprune._config import PrunerConfig
from mrcaprune._errors import PrunerError
from mrcaprune._paths import write_path_files
from mrcaprune._pruner import Pruner
from mrcaprune._records import read_mrca_records
from mrcaprune._tree import ReferenceTree
from mrcaprune._utils import read_taxa


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mrcaprune",
        description="Prune a reference phylogeny to the subtree connecting a set of taxa.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "-v", "--verbose", action="count", default=0,
        help="increase log output (-v for INFO, -vv for DEBUG)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    paths = sub.add_parser(
        "paths", help="write per-taxon root-path files for a NEWICK reference tree",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    paths.add_argument("tree", help="NEWICK file of the reference tree")
    paths.add_argument("outdir", help="directory to write path files into")
    paths.add_argument("--taxa", help="only write files for the taxa listed in this file")

    prune = sub.add_parser(
        "prune", help="run the pruning job and print the pruned tree as NEWICK",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    prune.add_argument("taxa", help="newline-delimited list of query taxa")
    prune.add_argument("outdir", help="directory that receives part-00000")
    prune.add_argument("--paths", dest="path_dir", help="directory of per-taxon path files")
    prune.add_argument("--config", help="JSON job configuration")
    prune.add_argument("--backend", choices=("best",) + BACKENDS, help="reduce backend")
    prune.add_argument("--partitions", dest="n_partitions", type=int, help="number of partitions")
    prune.add_argument("--combine-passes", dest="combine_passes", type=int, help="number of combine passes")
    prune.add_argument("--workers", dest="n_workers", type=int, help="worker threads")
    prune.add_argument(
        "--internal-labels", action="store_true",
        help="label internal nodes with their reference NodeID",
    )
    return parser


def _run_paths(args) -> None:
    with open(args.tree, encoding="utf-8") as fh:
        tree = ReferenceTree(fh.read())
    taxa = None
    if args.taxa:
        with open(args.taxa, encoding="utf-8") as fh:
            taxa, _ = read_taxa(fh)
    write_path_files(tree, args.outdir, taxa)


def _run_prune(args) -> None:
    config = PrunerConfig.from_json(args.config) if args.config else PrunerConfig()
    config = config.with_overrides(
        path_dir=args.path_dir,
        output_dir=args.outdir,
        backend=args.backend,
        n_partitions=args.n_partitions,
        combine_passes=args.combine_passes,
        n_workers=args.n_workers,
    )
    output = Pruner(config).run_job(args.taxa)

    with open(args.taxa, encoding="utf-8") as fh:
        taxa, _ = read_taxa(fh)
    with open(output, encoding="utf-8") as fh:
        records = read_mrca_records(fh)
    print(assemble_newick(records, taxa, internal_labels=args.internal_labels))


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    level = {0: logging.WARNING, 1: logging.INFO}.get(args.verbose, logging.DEBUG)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    try:
        if args.command == "paths":
            _run_paths(args)
        else:
            _run_prune(args)
    except (PrunerError, ValueError, OSError) as e:
        print(f"mrcaprune: error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
