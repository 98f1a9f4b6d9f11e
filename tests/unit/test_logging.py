"""
Unit Tests - Logging Processors
"""
import structlog
from starlette.requests import Request

from salespulse.config.logging import ServiceContext, mask_customer_names, owner_context
from salespulse.serving.api.middleware import request_context


def make_request(path: str, headers: dict = None) -> Request:
    raw_headers = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    return Request({"type": "http", "method": "GET", "path": path, "headers": raw_headers, "query_string": b""})


class TestProcessors:
    """Tests for the structlog processors"""

    def test_customer_names_are_masked(self):
        event = mask_customer_names(None, "info", {
            "event": "Segmented",
            "customer_name": "Budi",
            "top_customers": ["Ani", "Citra"],
            "records": 12,
        })

        assert event["customer_name"] == "B***"
        assert event["top_customers"] == ["A***", "C***"]
        assert event["records"] == 12

    def test_missing_or_empty_names_untouched(self):
        event = mask_customer_names(None, "info", {"event": "x", "customer_name": None})
        assert event["customer_name"] is None

    def test_service_context_does_not_override(self):
        processor = ServiceContext("salespulse", "test")

        event = processor(None, "info", {"event": "x", "env": "custom"})

        assert event["service"] == "salespulse"
        assert event["env"] == "custom"


class TestContext:
    """Tests for owner and request context binding"""

    def test_owner_context_is_scoped(self):
        with owner_context("owner-1", state="incremental"):
            bound = structlog.contextvars.get_contextvars()
            assert bound["owner_id"] == "owner-1"
            assert bound["state"] == "incremental"

        assert "owner_id" not in structlog.contextvars.get_contextvars()

    def test_request_context_reads_owner_from_path(self):
        context = request_context(make_request("/api/v1/analytics/owner-3/report", {"X-Request-ID": "abc"}))
        assert context == {"request_id": "abc", "owner_id": "owner-3"}

    def test_request_context_generates_id(self):
        context = request_context(make_request("/api/v1/health"))

        assert "owner_id" not in context
        assert len(context["request_id"]) == 32
