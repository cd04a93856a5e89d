"""
mrcaprune
=========

Prune a large reference phylogeny down to the minimal subtree connecting a
set of query taxa, by key-grouped aggregation over precomputed root-to-tip
paths.

Every ancestor on a taxon's root path is emitted once (map), ancestors are
merged into tip sets (combine), and for every distinct tip set the most
recent common ancestor and the length of the collapsed edge above it are
selected (reduce).  The result does not depend on how records are
partitioned, ordered, or how many times the combine step runs.

Main Classes
------------
Pruner : Runs the map / combine / reduce job
PrunerConfig : Job configuration, built once per job
ReferenceTree : NEWICK reference tree with preorder NodeIDs

Stages
------
expand_path : Map one taxon's root path to emissions
aggregate_tips : Combine all records of one node into a tip set
select_mrca : Reduce all records of one tip set to its MRCA

Path Sources
------------
DirectoryPathSource : Per-taxon path files on disk
TreePathSource : Paths computed from an in-memory ReferenceTree
write_path_files : Precompute per-taxon path files

Tree Assembly
-------------
assemble_tree, to_newick, assemble_newick

Context Managers
----------------
quiet : Suppress logging during operations
suppress_logger : Suppress a specific logger
use_backend : Force a specific reduce backend

Examples
--------
>>> from mrcaprune import Pruner, ReferenceTree, TreePathSource
>>> tree = ReferenceTree('(((A:0.1,B:0.2):0.3,C:0.4):0.5,D:0.6);')
>>> records = Pruner(source=TreePathSource(tree)).run(['A', 'B'])
>>> records[0].key, records[0].node_id
('A|B', 3)
"""

__version__ = "0.1.0"
__license__ = "MIT"

# Main classes
from ._pruner import Pruner
from ._config import PrunerConfig
from ._tree import ReferenceTree

# Records
from ._records import (
    TIPSET_SEPARATOR,
    Emission,
    MRCARecord,
    PartialAncestorRecord,
    PathEntry,
    TipSet,
    read_mrca_records,
)

# Stages
from ._stages import (
    PathExpander,
    SelectionAccumulator,
    aggregate_tips,
    expand_path,
    select_mrca,
)

# Path sources
from ._paths import (
    DirectoryPathSource,
    TreePathSource,
    encode_taxon,
    write_path_files,
)

# Tree assembly
from ._assembler import PrunedNode, assemble_newick, assemble_tree, to_newick

# Errors
from ._errors import ParseError, PrunerError, ResourceError, StructuralError

# Context managers
from ._context import quiet, suppress_logger, use_backend

# Backend information
from ._backend import get_available_backends, get_backend_info

__all__ = [
    # Main classes
    "Pruner",
    "PrunerConfig",
    "ReferenceTree",
    # Records
    "TIPSET_SEPARATOR",
    "Emission",
    "MRCARecord",
    "PartialAncestorRecord",
    "PathEntry",
    "TipSet",
    "read_mrca_records",
    # Stages
    "PathExpander",
    "SelectionAccumulator",
    "aggregate_tips",
    "expand_path",
    "select_mrca",
    # Path sources
    "DirectoryPathSource",
    "TreePathSource",
    "encode_taxon",
    "write_path_files",
    # Tree assembly
    "PrunedNode",
    "assemble_newick",
    "assemble_tree",
    "to_newick",
    # Errors
    "ParseError",
    "PrunerError",
    "ResourceError",
    "StructuralError",
    # Context managers
    "quiet",
    "suppress_logger",
    "use_backend",
    # Backend information
    "get_available_backends",
    "get_backend_info",
    # Version info
    "__version__",
]
