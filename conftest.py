"""
conftest.py
===========
Session-level pytest configuration for the test suite.

Custom marks
------------
large_scale
    Applied to tests that build reference trees with thousands of taxa.
    Excluded with ``-m 'not large_scale'`` for a quick run.

Warning filters
---------------
NumbaPerformanceWarning messages are filtered out during tests.  Small test
inputs leave most of the parallel kernel's threads idle, which is expected
and not informative for correctness testing.
"""

import warnings

from numba.core.errors import NumbaPerformanceWarning


def pytest_configure(config):
    """
    Configure pytest before test collection begins.

    This runs before any test module is imported, so the filter is in place
    before the selection kernel is compiled.
    """
    config.addinivalue_line(
        "markers",
        "large_scale: tests over reference trees with thousands of taxa",
    )
    warnings.filterwarnings("ignore", category=NumbaPerformanceWarning)


def pytest_unconfigure(config):
    """Restore default warning behavior."""
    warnings.resetwarnings()
