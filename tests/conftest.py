"""
Shared test fixtures and helpers for the Heron test suite.
"""

import pytest
from typing import Any, Dict, Optional

from heron.di import Container
from heron.request import Request
from heron.response import Response


# ============================================================================
# Request Helpers
# ============================================================================


def make_request(
    method: str = "GET",
    path: str = "/",
    *,
    headers: Optional[Dict[str, str]] = None,
    body: Any = None,
    query: Optional[Dict[str, Any]] = None,
) -> Request:
    """Build a parsed Request as the transport would."""
    return Request.build(method, path, headers=headers, body=body, query=query)


class Recorder:
    """Collects events in order so tests can assert on pipeline sequencing."""

    def __init__(self):
        self.events = []

    def __call__(self, event: str) -> None:
        self.events.append(event)

    def clear(self) -> None:
        self.events.clear()


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def container() -> Container:
    return Container()


@pytest.fixture
def response() -> Response:
    return Response()


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()
