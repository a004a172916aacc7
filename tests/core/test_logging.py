"""Tests for logging processors and request context."""

from uuid import uuid4

import pytest

from learnhub.core.context import (
    clear_context,
    get_context,
    set_course_id,
    set_request_id,
    set_user_id,
)
from learnhub.core.logging import add_context_processor, filter_sensitive_data
from learnhub.core.middleware import extract_traceparent


@pytest.fixture(autouse=True)
def _reset_context():
    clear_context()
    yield
    clear_context()


class TestFilterSensitiveData:
    """Tests for filter_sensitive_data."""

    def test_masks_verification_code(self):
        event = filter_sensitive_data(
            None, "info", {"event": "x", "verification_code": "VERIFY-0123456789AB"}
        )

        assert event["verification_code"] == "VE***************AB"

    def test_short_values_fully_masked(self):
        event = filter_sensitive_data(None, "info", {"token": "abc"})

        assert event["token"] == "***"

    def test_nested_dicts(self):
        event = filter_sensitive_data(
            None, "info", {"headers": {"Authorization": "Bearer abcdef"}}
        )

        assert event["headers"]["Authorization"] == "Be*********ef"

    def test_other_values_untouched(self):
        event = filter_sensitive_data(
            None, "info", {"event": "course_completed", "score": 91, "grade": "A-"}
        )

        assert event == {"event": "course_completed", "score": 91, "grade": "A-"}


class TestContext:
    def test_empty_context(self):
        assert get_context() == {}

    def test_context_values(self):
        user_id, course_id = uuid4(), uuid4()
        request_id = set_request_id("req-1")
        set_user_id(user_id)
        set_course_id(course_id)

        assert get_context() == {
            "request_id": request_id,
            "user_id": str(user_id),
            "course_id": str(course_id),
        }

    def test_generated_request_id(self):
        assert set_request_id() != ""

    def test_processor_does_not_override_event_values(self):
        set_request_id("req-1")
        set_course_id("from-context")

        event = add_context_processor(None, "info", {"course_id": "explicit"})

        assert event == {"course_id": "explicit", "request_id": "req-1"}


class TestTraceparent:
    def test_extracts_trace_id(self):
        header = "00-4bf92f3577b34da6a3ce929d0e0e4736-00f067aa0ba902b7-01"

        assert extract_traceparent(header) == "4bf92f3577b34da6a3ce929d0e0e4736"

    @pytest.mark.parametrize("header", [None, "", "garbage"])
    def test_missing_or_malformed(self, header):
        assert extract_traceparent(header) is None
