"""Test utilities for leanapi applications.

Provides an ASGI test client and problem+json assertions::

    from leanapi.testing import TestClient, assert_problem
"""

from leanapi.testing.assertions import assert_problem, assert_rate_limit_headers
from leanapi.testing.client import TestClient

__all__ = [
    "TestClient",
    "assert_problem",
    "assert_rate_limit_headers",
]
