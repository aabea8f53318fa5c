"""Tests for canispect.transport.endpoint — local vs public resolution."""

from __future__ import annotations

import pytest

from canispect.transport.endpoint import (
    EndpointKind,
    RuntimeContext,
    is_loopback,
    resolve_endpoint,
)


class TestResolveEndpoint:
    @pytest.mark.parametrize(
        "url",
        [
            "http://localhost:4943",
            "http://127.0.0.1:8080",
            "http://[::1]:4943",
            "http://app.localhost:5173",
            "http://dev-box.internal:4943",
        ],
    )
    def test_local(self, url):
        endpoint = resolve_endpoint(RuntimeContext.from_url(url))
        assert endpoint.kind is EndpointKind.LOCAL
        assert endpoint.is_local
        assert endpoint.fetch_root_key

    def test_local_keeps_origin(self):
        endpoint = resolve_endpoint(RuntimeContext.from_url("http://127.0.0.1:4943/some/path"))
        assert endpoint.host == "http://127.0.0.1:4943"

    def test_ipv6_origin_is_bracketed(self):
        endpoint = resolve_endpoint(RuntimeContext.from_url("http://[::1]:4943"))
        assert endpoint.host == "http://[::1]:4943"

    @pytest.mark.parametrize("url", ["https://ic0.app", "https://canispect.icp0.io", "https://example.com:8443"])
    def test_public(self, url):
        endpoint = resolve_endpoint(RuntimeContext.from_url(url))
        assert endpoint.kind is EndpointKind.PUBLIC
        assert not endpoint.fetch_root_key

    def test_public_host_used_when_context_has_no_hostname(self):
        endpoint = resolve_endpoint(RuntimeContext(hostname=""), public_host="https://icp-api.io")
        assert endpoint.kind is EndpointKind.PUBLIC
        assert endpoint.host == "https://icp-api.io"

    def test_custom_local_port(self):
        ctx = RuntimeContext.from_url("http://dev-box.internal:8000")
        assert resolve_endpoint(ctx).kind is EndpointKind.PUBLIC
        assert resolve_endpoint(ctx, local_replica_port=8000).kind is EndpointKind.LOCAL

    def test_is_pure(self):
        ctx = RuntimeContext.from_url("http://localhost:4943")
        assert resolve_endpoint(ctx) == resolve_endpoint(ctx)


class TestRuntimeContext:
    def test_from_settings_development(self, settings):
        ctx = RuntimeContext.from_settings(settings)
        assert (ctx.hostname, ctx.port, ctx.scheme) == ("localhost", 4943, "http")

    def test_from_settings_production(self, production_settings):
        ctx = RuntimeContext.from_settings(production_settings)
        assert ctx.hostname == "ic0.app"
        assert ctx.port is None

    def test_origin_without_port(self):
        assert RuntimeContext(hostname="ic0.app").origin == "https://ic0.app"


class TestIsLoopback:
    @pytest.mark.parametrize("name", ["localhost", "LOCALHOST", "127.0.0.1", "127.8.9.10", "::1", "[::1]", "x.localhost"])
    def test_loopback(self, name):
        assert is_loopback(name)

    @pytest.mark.parametrize("name", ["ic0.app", "10.0.0.1", "localhost.example.com", ""])
    def test_not_loopback(self, name):
        assert not is_loopback(name)
