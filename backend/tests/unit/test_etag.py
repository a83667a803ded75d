"""
Unit tests for ETag helpers.
"""

import pytest
from starlette.requests import Request

from authcore.utils.etag import compute_etag, content_hash, etag_json_response, etag_matches, quote_etag


def _request(if_none_match=None):
    headers = []
    if if_none_match is not None:
        headers.append((b"if-none-match", if_none_match.encode("latin-1")))
    return Request({"type": "http", "method": "GET", "path": "/", "headers": headers, "query_string": b""})


@pytest.mark.unit
class TestComputeEtag:
    def test_version_field_preferred(self):
        assert compute_etag({"version": 1700000000000, "pages": []}) == "1700000000000"

    def test_version_key_order(self):
        payload = {"permissionVersion": 4, "version": 99}

        assert compute_etag(payload, version_keys=("permissionVersion", "version")) == "4"

    def test_content_hash_fallback(self):
        etag = compute_etag({"endpoints": [1, 2]})

        assert len(etag) == 64
        assert etag == content_hash({"endpoints": [1, 2]})

    def test_hash_ignores_key_order(self):
        assert content_hash({"a": 1, "b": 2}) == content_hash({"b": 2, "a": 1})

    def test_hash_changes_with_content(self):
        assert content_hash({"a": 1}) != content_hash({"a": 2})


@pytest.mark.unit
class TestEtagMatches:
    @pytest.mark.parametrize(
        "header,expected",
        [
            ('"abc"', True),
            ("abc", True),
            ('W/"abc"', True),
            ('"xyz", "abc"', True),
            ("*", True),
            ('"xyz"', False),
            ("", False),
            (None, False),
        ],
    )
    def test_matching(self, header, expected):
        assert etag_matches(header, "abc") is expected

    def test_quote(self):
        assert quote_etag("abc") == '"abc"'
        assert quote_etag('"abc"') == '"abc"'
        assert quote_etag('W/"abc"') == 'W/"abc"'


@pytest.mark.unit
class TestEtagJsonResponse:
    def test_fresh_response_carries_etag(self):
        response = etag_json_response(_request(), {"version": 7, "items": []})

        assert response.status_code == 200
        assert response.headers["etag"] == '"7"'

    def test_not_modified_has_no_body(self):
        response = etag_json_response(_request('"7"'), {"version": 7, "items": []})

        assert response.status_code == 304
        assert response.body == b""
        assert response.headers["etag"] == '"7"'

    def test_explicit_etag(self):
        response = etag_json_response(_request("3-abc"), {"version": 7}, etag="3-abc")

        assert response.status_code == 304
