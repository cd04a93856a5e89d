"""
_utils.py
=========
General-purpose helpers for mrcaprune.

These are standalone functions that don't depend on the main classes.
"""

from typing import Iterable, List, Tuple

from mrcaprune._records import validate_taxon


_NEWICK_METACHARACTERS = set("()[]':;, \t\r\n")


def format_newick(newick: str) -> str:
    """
    Format a NEWICK string for consistent representation.

    Ensures the NEWICK string:
    - Ends with a semicolon
    - Has no leading/trailing whitespace

    Examples
    --------
    >>> format_newick('((A:1,B:1):1,(C:1,D:1):1)')
    '((A:1,B:1):1,(C:1,D:1):1);'

    >>> format_newick('  ((A:1,B:1):1);  ')
    '((A:1,B:1):1);'
    """
    newick = newick.strip()
    if not newick.endswith(";"):
        newick += ";"
    return newick


def quote_label(label: str) -> str:
    """
    Quote a NEWICK label if it contains metacharacters.

    >>> quote_label('Homo_sapiens')
    'Homo_sapiens'
    >>> quote_label("Homo sapiens")
    "'Homo sapiens'"
    >>> quote_label("O'Brien")
    "'O''Brien'"
    """
    if any(ch in _NEWICK_METACHARACTERS for ch in label):
        return "'" + label.replace("'", "''") + "'"
    return label


def read_taxa(lines: Iterable[str]) -> Tuple[List[str], List[str]]:
    """
    Read a newline-delimited taxon list.

    Blank lines are skipped and surrounding whitespace is stripped.  Each
    label is kept once, in first-seen order.

    Returns
    -------
    (taxa, duplicates) : (list[str], list[str])
        Unique labels, and the labels that appeared more than once.

    Raises
    ------
    ParseError
        If a label contains a reserved character.
    """
    taxa: List[str] = []
    seen = set()
    duplicates: List[str] = []
    for line in lines:
        label = line.strip()
        if not label:
            continue
        validate_taxon(label)
        if label in seen:
            if label not in duplicates:
                duplicates.append(label)
            continue
        seen.add(label)
        taxa.append(label)
    return taxa, duplicates
