"""
Unit tests for the shared logging context helpers.
"""

import pytest
import structlog

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from shared.logging import ServiceNameAdder, clear_context, set_request_id, set_tool_context


@pytest.fixture(autouse=True)
def clean_context():
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()


class TestCorrelationContext:
    """Test cases for the request and Tool correlation fields."""

    def test_request_id_from_header(self):
        assert set_request_id("req-1") == "req-1"
        assert structlog.contextvars.get_contextvars() == {"request_id": "req-1"}

    def test_request_id_generated(self):
        request_id = set_request_id()

        assert len(request_id) == 36
        assert structlog.contextvars.get_contextvars()["request_id"] == request_id

    def test_tool_context_skips_unknown_values(self):
        set_tool_context(client_id="tool-1")
        set_tool_context(deployment_id="deployment-1")
        set_tool_context()

        assert structlog.contextvars.get_contextvars() == {
            "client_id": "tool-1",
            "deployment_id": "deployment-1",
        }

    def test_clear_context_keeps_unrelated_bindings(self):
        structlog.contextvars.bind_contextvars(worker="w-1")
        set_request_id("req-1")
        set_tool_context(client_id="tool-1", deployment_id="deployment-1")

        clear_context()

        assert structlog.contextvars.get_contextvars() == {"worker": "w-1"}


class TestServiceNameAdder:
    """Test cases for the service/component processor."""

    def test_component_from_logger_name(self):
        event = ServiceNameAdder("consumer")(None, "info", {"event": "x", "logger": "consumer.nonce"})

        assert event["service"] == "consumer"
        assert event["component"] == "nonce"

    def test_top_level_logger(self):
        event = ServiceNameAdder("consumer")(None, "info", {"event": "x", "logger": "consumer"})

        assert event["service"] == "consumer"
        assert "component" not in event
