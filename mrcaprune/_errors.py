"""
_errors.py
==========
Exception types raised by mrcaprune.

Every stage is a pure function of its input records, so an error is always
fatal to the unit of work that raised it.  Nothing here retries: recovery is
left to whatever runs the job.
"""


class PrunerError(Exception):
    """Base class for all mrcaprune errors."""


class ResourceError(PrunerError, OSError):
    """A per-taxon path resource is missing or cannot be read."""


class ParseError(PrunerError, ValueError):
    """A path line, wire record, taxon label or NEWICK string is malformed."""


class StructuralError(PrunerError, ValueError):
    """
    The NodeID invariant is violated.

    Raised for cycles and non-monotonic root paths, for one NodeID carrying
    two different branch lengths, and for tip sets that do not nest.
    """
