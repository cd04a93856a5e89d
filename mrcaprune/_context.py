"""
_context.py
===========
Context managers for mrcaprune.

Provides context managers for temporarily changing state:
- Logging control (suppress/change levels)
- Backend selection (force a specific reduce backend)

All context managers restore state on exit, even if exceptions occur.
"""

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Optional


# Backend override of the current context; read once by Pruner.__init__
_backend_override: ContextVar[Optional[str]] = ContextVar(
    "mrcaprune_backend_override", default=None
)


# ============================================================================ #
# Logging Context Managers
# ============================================================================ #


@contextmanager
def suppress_logger(logger_name: str, level: int = logging.CRITICAL):
    """
    Temporarily change a logger's level.

    Parameters
    ----------
    logger_name : str
        Name of the logger to suppress (e.g., 'mrcaprune._pruner').
    level : int, default logging.CRITICAL
        Temporary logging level.

    Examples
    --------
    >>> with suppress_logger('mrcaprune._pruner', logging.WARNING):
    ...     records = pruner.run(taxa)
    """
    logger = logging.getLogger(logger_name)
    original_level = logger.level

    try:
        logger.setLevel(level)
        yield
    finally:
        logger.setLevel(original_level)


@contextmanager
def quiet(level: int = logging.CRITICAL):
    """
    Temporarily suppress all mrcaprune logging.

    Every module logger is a child of ``'mrcaprune'``, so raising the parent
    logger's level silences all of them.

    Examples
    --------
    >>> with quiet():
    ...     records = pruner.run(taxa)

    >>> with quiet(logging.WARNING):
    ...     records = pruner.run(taxa)
    """
    with suppress_logger("mrcaprune", level):
        yield


# ============================================================================ #
# Backend Context Managers
# ============================================================================ #


@contextmanager
def use_backend(backend: str):
    """
    Default reduce backend for every Pruner constructed inside the block.

    A Pruner reads the override once, when it is constructed, and stores it
    in its own ``PrunerConfig``.  Pruners built before or after the block
    are unaffected, and the job never consults the override while running.

    Parameters
    ----------
    backend : str
        'python', 'cpu-parallel' or 'best'.

    Raises
    ------
    ValueError
        If requested backend is not available.

    Examples
    --------
    >>> with use_backend('python'):
    ...     pruner = Pruner(source=source)
    >>> pruner.config.backend
    'python'

    Notes
    -----
    The override is a ``contextvars.ContextVar``, so it is local to the
    current thread or asyncio task.
    """
    from ._backend import get_available_backends

    available = get_available_backends()

    if backend != "best" and backend not in available:
        raise ValueError(
            f"Backend '{backend}' not available. "
            f"Available backends: {', '.join(available)}"
        )

    token = _backend_override.set(backend)
    try:
        yield
    finally:
        _backend_override.reset(token)


def get_backend_override() -> Optional[str]:
    """
    Get the backend override of the current context, if any.

    >>> get_backend_override() is None
    True
    """
    return _backend_override.get()
