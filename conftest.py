"""
Pytest configuration for the Intcode test suite.

    python -m pytest                 # everything
    python -m pytest -m "not slow"   # skip the benchmark driver tests
"""

import os
import sys

# Flat layout: make the root modules importable without installing.
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers",
        "slow: timing-loop tests (benchmark driver); deselect with -m 'not slow'")
