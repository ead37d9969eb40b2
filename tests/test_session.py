"""Tests for the shared HTTP helpers."""

import pytest
from yarl import URL

from registry_browser_client import RegistryStatusError
from registry_browser_client.core.session import ensure_ok, resolve_next_url, resolve_url
from registry_browser_client.core.types import RequestResult


class TestResolveNextUrl:
    """Pagination cursor resolution."""

    def test_relative_cursor_keeps_base_prefix(self):
        base = URL("https://mirror.example.com/registry")
        assert resolve_next_url(base, "/v2/team/app/tags/list?n=100&last=v1") == (
            "https://mirror.example.com/registry/v2/team/app/tags/list?n=100&last=v1"
        )

    def test_relative_cursor_on_root_base(self):
        base = URL("https://hub.docker.com/")
        assert resolve_next_url(base, "v2/namespaces/acme/repositories/tool/tags?page=2") == (
            "https://hub.docker.com/v2/namespaces/acme/repositories/tool/tags?page=2"
        )

    def test_absolute_cursor_unchanged(self):
        base = URL("https://mirror.example.com/registry")
        cursor = "https://other.example.com/v2/x/tags/list?last=a"
        assert resolve_next_url(base, cursor) == cursor

    @pytest.mark.parametrize("cursor", ["", "   "])
    def test_empty_cursor(self, cursor):
        assert resolve_next_url(URL("https://ghcr.io"), cursor) == ""

    def test_without_base(self):
        assert resolve_next_url(None, "/v2/x?last=a") == "/v2/x?last=a"


class TestRequestHelpers:
    def test_resolve_url_appends_encoded_path(self):
        base = URL("https://harbor.example.com/prefix/")
        url = resolve_url(base, "/api/v2.0/projects/a/repositories/b%252Fc", {"page": "1"})
        assert url.raw_path == "/prefix/api/v2.0/projects/a/repositories/b%252Fc"
        assert url.query["page"] == "1"

    def test_ensure_ok(self):
        ensure_ok(RequestResult(status_code=204), "catalog")
        with pytest.raises(RegistryStatusError, match="catalog request failed: 503 Busy") as exc_info:
            ensure_ok(RequestResult(status_code=503, reason="Busy"), "catalog")
        assert exc_info.value.status == 503
        assert exc_info.value.reason == "Busy"
