"""Unit tests for the default intent comparator."""

import pytest

from idempotency_engine.intent import DefaultIntentComparator, IntentComparator
from idempotency_engine.models import RequestSnapshot
from idempotency_engine.request import Request


@pytest.fixture
def comparator() -> DefaultIntentComparator:
    return DefaultIntentComparator()


@pytest.fixture
def original() -> Request:
    return Request(
        method="POST",
        path="/api/orders",
        query_string="dry_run=false&tag=a&tag=b",
        headers={"content-type": "application/json", "x-trace-id": "trace-1"},
        body=b'{"sku": "A-1", "quantity": 2}',
    )


def _snapshot(request: Request) -> RequestSnapshot:
    return RequestSnapshot.from_request(request)


def test_satisfies_protocol(comparator):
    assert isinstance(comparator, IntentComparator)


def test_identical_request_matches(comparator, original):
    assert comparator.matches(_snapshot(original), original)


def test_headers_are_ignored(comparator, original):
    retry = Request(
        method=original.method,
        path=original.path,
        query_string=original.query_string,
        headers={"x-trace-id": "trace-2", "authorization": "Bearer new"},
        body=original.body,
    )
    assert comparator.matches(_snapshot(original), retry)


def test_method_case_is_ignored(comparator, original):
    retry = Request("post", original.path, original.query_string, {}, original.body)
    assert comparator.matches(_snapshot(original), retry)


def test_different_path_does_not_match(comparator, original):
    other = Request(original.method, "/api/refunds", original.query_string, {}, original.body)
    assert not comparator.matches(_snapshot(original), other)


def test_different_method_does_not_match(comparator, original):
    other = Request("PUT", original.path, original.query_string, {}, original.body)
    assert not comparator.matches(_snapshot(original), other)


class TestQuery:
    def test_parameter_order_is_ignored(self, comparator, original):
        retry = Request(original.method, original.path, "tag=a&dry_run=false&tag=b", {}, original.body)
        assert comparator.matches(_snapshot(original), retry)

    def test_repeated_value_order_matters(self, comparator, original):
        other = Request(original.method, original.path, "dry_run=false&tag=b&tag=a", {}, original.body)
        assert not comparator.matches(_snapshot(original), other)

    def test_different_value_does_not_match(self, comparator, original):
        other = Request(original.method, original.path, "dry_run=true&tag=a&tag=b", {}, original.body)
        assert not comparator.matches(_snapshot(original), other)

    def test_missing_parameter_does_not_match(self, comparator, original):
        other = Request(original.method, original.path, "", {}, original.body)
        assert not comparator.matches(_snapshot(original), other)

    def test_blank_value_differs_from_absent(self, comparator):
        first = Request("GET", "/search", "q=")
        assert not comparator.matches(_snapshot(first), Request("GET", "/search", ""))


class TestBody:
    def test_json_formatting_and_key_order_are_ignored(self, comparator, original):
        retry = Request(
            original.method,
            original.path,
            original.query_string,
            {},
            b'{\n  "quantity": 2,\n  "sku": "A-1"\n}',
        )
        assert comparator.matches(_snapshot(original), retry)

    def test_different_json_value_does_not_match(self, comparator, original):
        other = Request(
            original.method,
            original.path,
            original.query_string,
            {},
            b'{"sku": "A-1", "quantity": 3}',
        )
        assert not comparator.matches(_snapshot(original), other)

    def test_nested_structures_are_compared_deeply(self, comparator):
        first = Request("POST", "/batch", body=b'{"items": [{"id": 1}, {"id": 2}]}')
        same = Request("POST", "/batch", body=b'{"items":[{"id":1},{"id":2}]}')
        reordered = Request("POST", "/batch", body=b'{"items": [{"id": 2}, {"id": 1}]}')
        assert comparator.matches(_snapshot(first), same)
        assert not comparator.matches(_snapshot(first), reordered)

    def test_non_json_bodies_compared_byte_for_byte(self, comparator):
        first = Request("POST", "/upload", body=b"a=1&b=2")
        assert comparator.matches(_snapshot(first), Request("POST", "/upload", body=b"a=1&b=2"))
        assert not comparator.matches(_snapshot(first), Request("POST", "/upload", body=b"b=2&a=1"))

    def test_json_string_differs_from_raw_text(self, comparator):
        first = Request("POST", "/notes", body=b'"hello"')
        assert not comparator.matches(_snapshot(first), Request("POST", "/notes", body=b"hello"))

    def test_empty_and_whitespace_bodies_match(self, comparator):
        first = Request("DELETE", "/api/orders/1", body=b"")
        assert comparator.matches(_snapshot(first), Request("DELETE", "/api/orders/1", body=b"  \n"))

    def test_empty_body_differs_from_content(self, comparator):
        first = Request("POST", "/api/orders", body=b"")
        assert not comparator.matches(_snapshot(first), Request("POST", "/api/orders", body=b"{}"))

    def test_invalid_utf8_body(self, comparator):
        first = Request("POST", "/blob", body=b"\xff\xfe\x00")
        assert comparator.matches(_snapshot(first), Request("POST", "/blob", body=b"\xff\xfe\x00"))
        assert not comparator.matches(_snapshot(first), Request("POST", "/blob", body=b"\xff"))
