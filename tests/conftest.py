"""
Shared pytest fixtures for fault_reporter tests.
"""

from __future__ import annotations

import pytest

import fault_reporter
from fault_reporter.config import Settings
from fault_reporter.transport.sinks import Sink


class RecordingSink(Sink):
    """Sink that remembers what it was sent and optionally fails."""

    def __init__(self, name: str = 'Recording', error: Exception | None = None) -> None:
        self.name = name
        self.error = error
        self.sent: list[tuple[str, str]] = []

    def send(self, report: str, exception_type: str) -> None:
        self.sent.append((report, exception_type))
        if self.error is not None:
            raise self.error


@pytest.fixture
def settings() -> Settings:
    """Settings that report everything, with a short sink timeout."""
    return Settings(ignore_debug_errors=False, sink_timeout=5)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def environ() -> dict[str, str]:
    """WSGI environ for GET http://example.com:8080/shop/cart?item=3."""
    return {
        'REQUEST_METHOD': 'GET',
        'wsgi.url_scheme': 'http',
        'SERVER_NAME': 'example.com',
        'SERVER_PORT': '8080',
        'SCRIPT_NAME': '',
        'PATH_INFO': '/shop/cart',
        'QUERY_STRING': 'item=3',
        'REMOTE_ADDR': '203.0.113.7',
        'REMOTE_USER': '',
        'HTTP_COOKIE': 'theme=dark',
        'HTTP_USER_AGENT': 'pytest',
    }


@pytest.fixture(autouse=True)
def reset_reporter():
    yield
    fault_reporter.shutdown()
