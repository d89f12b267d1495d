"""
Shared test fixtures and helpers for the Strix test suite.
"""

import logging

import pytest

from strix.request import Request
from strix.testing import make_test_context, make_test_request  # noqa: F401


class CountingRequest(Request):
    """Request that records how often ``parse_form`` runs."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.parse_form_calls = 0

    async def parse_form(self):
        self.parse_form_calls += 1
        return await super().parse_form()


def make_counting_request(**kwargs) -> CountingRequest:
    """Build a CountingRequest with the same arguments as make_test_request."""
    base = make_test_request(**kwargs)
    return CountingRequest(base.scope, base._receive)


@pytest.fixture
def context_logger():
    """Logger used by test contexts; records at INFO and above."""
    logger = logging.getLogger("strix.test.context")
    logger.setLevel(logging.INFO)
    return logger


FORM_HEADERS = [("content-type", "application/x-www-form-urlencoded")]
