"""
_paths.py
=========
Path sources: where the map stage gets each taxon's root path from.

  DirectoryPathSource(root)
      Reads precomputed per-taxon path files from a directory tree.
  TreePathSource(tree)
      Computes paths directly from an in-memory ReferenceTree.
  write_path_files(tree, root, taxa=None)
      Precomputes the files a DirectoryPathSource reads.

Both sources expose ``get_path(taxon) -> list[PathEntry]`` and raise
``ResourceError`` when the taxon's path cannot be found or read.

File layout
-----------
A taxon label is encoded as the hex MD5 digest of its UTF-8 bytes, which
makes any label safe as a file name.  The first two hex characters name a
sub-directory so no single directory grows too large:

    <root>/<digest[:2]>/<digest>

Each file holds one ``NodeID,BranchLength`` token per line, tip first.
"""

import hashlib
import logging
import os
from pathlib import Path
from typing import Iterable, List, Optional, Union

from mrcaprune._errors import ParseError, ResourceError
from mrcaprune._records import PathEntry, format_path, parse_path, validate_taxon
from mrcaprune._tree import ReferenceTree


logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def encode_taxon(taxon: str) -> str:
    """Encode a taxon label as a file-name-safe string (hex MD5 digest)."""
    return hashlib.md5(taxon.encode("utf-8")).hexdigest()


def taxon_file(root: PathLike, taxon: str) -> Path:
    """Return the location of *taxon*'s path file under *root*."""
    code = encode_taxon(taxon)
    return Path(root) / code[:2] / code


class DirectoryPathSource:
    """
    Path source backed by per-taxon files under *root*.

    Parameters
    ----------
    root : str or Path
        Directory written by ``write_path_files``.
    """

    def __init__(self, root: PathLike) -> None:
        self.root = Path(root)

    def get_path(self, taxon: str) -> List[PathEntry]:
        """
        Read and parse *taxon*'s path file.

        Raises
        ------
        ResourceError
            If the file is missing or unreadable.
        ParseError
            If the file is not UTF-8 text, or a line is not a valid
            ``NodeID,BranchLength`` token.
        """
        path = taxon_file(self.root, taxon)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ResourceError(
                f"Cannot read root path for taxon {taxon!r} at {path}: {exc}"
            ) from exc
        except UnicodeDecodeError as exc:
            raise ParseError(
                f"Root path file for taxon {taxon!r} at {path} is not valid UTF-8: "
                f"{exc}"
            ) from exc
        return parse_path(text)

    def __repr__(self) -> str:
        return f"DirectoryPathSource({str(self.root)!r})"


class TreePathSource:
    """Path source that walks an in-memory ReferenceTree."""

    def __init__(self, tree: ReferenceTree) -> None:
        self.tree = tree

    def get_path(self, taxon: str) -> List[PathEntry]:
        try:
            return self.tree.path_to_root(taxon)
        except KeyError as exc:
            raise ResourceError(f"No root path for taxon {taxon!r}: {exc}") from exc

    def __repr__(self) -> str:
        return f"TreePathSource({self.tree!r})"


def write_path_files(
    tree: ReferenceTree, root: PathLike, taxa: Optional[Iterable[str]] = None
) -> int:
    """
    Write one path file per leaf of *tree* (or per taxon in *taxa*).

    Each file is written to a temporary name and renamed into place, so a
    reader never sees a half-written path.

    Returns
    -------
    int
        Number of files written.
    """
    root = Path(root)
    names = tree.leaf_names if taxa is None else [validate_taxon(t) for t in taxa]

    n_written = 0
    for taxon in names:
        target = taxon_file(root, taxon)
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp = target.with_name(target.name + ".tmp")
        tmp.write_text(format_path(tree.path_to_root(taxon)), encoding="utf-8")
        os.replace(tmp, target)
        n_written += 1

    logger.info("Wrote %d path file(s) under %s", n_written, root)
    return n_written
