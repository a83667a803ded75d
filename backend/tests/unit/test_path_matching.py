"""
Unit tests for request path normalization and Ant-style template matching.
"""

import pytest

from authcore.services.authorization.path_matching import (
    AntPathMatcher,
    composite_paths,
    join_paths,
    normalize_path,
    strip_context_path,
)


@pytest.mark.unit
class TestNormalizePath:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            (None, "/"),
            ("", "/"),
            ("/", "/"),
            ("/invoices/", "/invoices"),
            ("invoices/42", "/invoices/42"),
            ("/invoices/42?expand=lines&x=1", "/invoices/42"),
            ("//invoices", "/invoices"),
            ("/a%2Fb", "/a%2Fb"),
        ],
    )
    def test_normalize(self, raw, expected):
        assert normalize_path(raw) == expected

    def test_query_only(self):
        assert normalize_path("?q=1") == "/"


@pytest.mark.unit
class TestContextPath:
    def test_strips_prefix(self):
        assert strip_context_path("/auth/api/x", "/auth") == "/api/x"

    def test_bare_prefix_becomes_root(self):
        assert strip_context_path("/auth", "/auth") == "/"

    def test_prefix_must_end_on_segment_boundary(self):
        assert strip_context_path("/authx/y", "/auth") == "/authx/y"

    def test_empty_context_is_noop(self):
        assert strip_context_path("/api/x", "") == "/api/x"
        assert strip_context_path("/api/x", None) == "/api/x"


@pytest.mark.unit
class TestCompositePaths:
    def test_original_first_then_versioned_then_service(self):
        assert composite_paths("/invoices/{id}", "billing", "v1") == [
            "/invoices/{id}",
            "/api/billing/v1/invoices/{id}",
            "/api/billing/invoices/{id}",
        ]

    def test_empty_service_disables_prefixed_forms(self):
        assert composite_paths("/x", "", "v1") == ["/x"]

    def test_empty_version_skips_versioned_form(self):
        assert composite_paths("/x", "svc", "") == ["/x", "/api/svc/x"]

    def test_service_and_version_trimmed(self):
        assert composite_paths("x/", "/svc/", " /v2/ ")[1] == "/api/svc/v2/x"

    def test_already_prefixed_template_is_not_duplicated(self):
        candidates = composite_paths("/api/svc/v1/x", "svc", "v1")
        assert len(candidates) == len(set(candidates))

    def test_join_paths(self):
        assert join_paths("/api/", "/svc") == "/api/svc"
        assert join_paths("", "/svc") == "/svc"
        assert join_paths("/api", "") == "/api"


@pytest.mark.unit
class TestAntPathMatcher:
    @pytest.fixture
    def matcher(self):
        return AntPathMatcher()

    @pytest.mark.parametrize(
        "pattern,path,expected",
        [
            ("/invoices/{id}", "/invoices/42", True),
            ("/invoices/{id}", "/invoices", False),
            ("/invoices/{id}", "/invoices/42/lines", False),
            ("/invoices/{id}/lines/{line}", "/invoices/42/lines/7", True),
            ("/invoices/{id:\\d+}", "/invoices/42", True),
            ("/invoices/{id:\\d+}", "/invoices/abc", False),
            ("/files/*.pdf", "/files/report.pdf", True),
            ("/files/*.pdf", "/files/a/report.pdf", False),
            ("/files/*", "/files/anything", True),
            ("/v?/x", "/v1/x", True),
            ("/v?/x", "/v10/x", False),
            ("/reports/**", "/reports", True),
            ("/reports/**", "/reports/2024/q1", True),
            ("/a/**/z", "/a/z", True),
            ("/a/**/z", "/a/b/c/z", True),
            ("/a/**/z", "/a/b/c", False),
            ("/**", "/", True),
            ("/**", "/anything/at/all", True),
            ("/a.b", "/axb", False),
            ("/", "/", True),
            ("/", "/x", False),
        ],
    )
    def test_match(self, matcher, pattern, path, expected):
        assert matcher.match(pattern, path) is expected

    def test_query_string_ignored(self, matcher):
        assert matcher.match("/invoices/{id}", "/invoices/42?expand=1")

    def test_trailing_slash_ignored(self, matcher):
        assert matcher.match("/invoices/{id}/", "/invoices/42/")

    def test_case_sensitive(self, matcher):
        assert not matcher.match("/Invoices/{id}", "/invoices/42")
