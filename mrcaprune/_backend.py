"""
_backend.py
===========
Backend detection and selection for the reduce stage.

Two backends evaluate the MRCA selection fold:

  'python'        pure-Python fold, one key at a time (always available)
  'cpu-parallel'  numba kernel over CSR-packed records, parallel over keys

Functions in this module have NO side effects - they only query system state.
Logging is done by the calling code, not here.
"""

from typing import List, Optional, Tuple


BACKENDS = ("python", "cpu-parallel")


# ============================================================================ #
# Backend Detection (No Side Effects)
# ============================================================================ #


def check_numba_available() -> bool:
    """
    Check if numba is importable.

    Returns
    -------
    bool
        True if numba can be imported, False otherwise.
    """
    try:
        import numba  # noqa: F401

        return True
    except ImportError:
        return False


def get_available_backends() -> List[str]:
    """
    Get list of available execution backends, in preference order.

    Returns
    -------
    list[str]
        Always includes 'python'; includes 'cpu-parallel' when the numba
        kernel module imports cleanly.

    Examples
    --------
    >>> get_available_backends()
    ['python', 'cpu-parallel']
    """
    backends = ["python"]
    ok, _ = import_cpu_kernels()
    if ok:
        backends.append("cpu-parallel")
    return backends


def get_best_backend() -> str:
    """
    Get the most optimized available backend.

    Returns
    -------
    str
        'cpu-parallel' if available, else 'python'.
    """
    # List is in preference order, last is best
    return get_available_backends()[-1]


def resolve_backend(backend: str) -> str:
    """
    Resolve a backend specification to an actual backend.

    Parameters
    ----------
    backend : str
        'best', or one of 'python', 'cpu-parallel'.

    Returns
    -------
    str
        Resolved backend name.

    Raises
    ------
    ValueError
        If *backend* is unknown or not available on this system.
    """
    if backend == "best":
        return get_best_backend()

    if backend not in BACKENDS:
        raise ValueError(
            f"Unknown backend '{backend}'. "
            f"Valid backends: best, {', '.join(BACKENDS)}"
        )

    available = get_available_backends()
    if backend not in available:
        raise ValueError(
            f"Backend '{backend}' not available. "
            f"Available backends: {', '.join(available)}"
        )

    return backend


# ============================================================================ #
# Kernel Import Helpers
# ============================================================================ #


def import_cpu_kernels() -> Tuple[bool, Optional[object]]:
    """
    Try to import the numba selection kernel.

    Returns
    -------
    tuple
        (success, select_kernel)
    """
    try:
        from mrcaprune._cpu_kernels import _select_mrca_njit

        return (True, _select_mrca_njit)
    except ImportError:
        return (False, None)


def get_backend_info() -> dict:
    """
    Get comprehensive backend information.

    Returns
    -------
    dict
        Keys: 'numba_available', 'backends', 'best_backend',
        'cpu_kernels_available'.
    """
    cpu_kernels_ok, _ = import_cpu_kernels()
    return {
        "numba_available": check_numba_available(),
        "backends": get_available_backends(),
        "best_backend": get_best_backend(),
        "cpu_kernels_available": cpu_kernels_ok,
    }
