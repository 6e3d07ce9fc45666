"""Tests for the shared request template and HTTP client."""

from __future__ import annotations

import pytest

from slt._internal.config import RunConfig
from slt._internal.errors import FatalTransportError
from slt.engine.http import LoadClient, RequestTemplate


class TestRequestTemplate:
    """Tests for the RequestTemplate dataclass."""

    def test_from_config(self) -> None:
        config = RunConfig.create("http://localhost/x", headers={"X-Id": "7"})
        template = RequestTemplate.from_config(config)
        assert template.method == "GET"
        assert template.url == "http://localhost/x"
        assert dict(template.headers) == {"X-Id": "7"}

    def test_is_immutable(self) -> None:
        template = RequestTemplate(url="http://localhost/")
        with pytest.raises(AttributeError):
            template.url = "http://elsewhere/"  # type: ignore[misc]

    def test_headers_are_read_only(self) -> None:
        config = RunConfig.create("http://localhost/", headers={"A": "1"})
        template = RequestTemplate.from_config(config)
        with pytest.raises(TypeError):
            template.headers["B"] = "2"  # type: ignore[index]


class TestLoadClient:
    """Tests for the LoadClient wrapper."""

    async def test_returns_status(self, target_server) -> None:
        template = RequestTemplate(url=target_server.url("/status/204"))
        async with LoadClient(timeout_seconds=5.0) as client:
            assert await client.send(template) == 204

    async def test_sends_template_headers(self, target_server) -> None:
        template = RequestTemplate(
            url=target_server.url("/echo"),
            headers={"X-Custom": "test-value"},
        )
        async with LoadClient(timeout_seconds=5.0) as client:
            assert await client.send(template) == 200
            assert await client.send(template) == 200

        assert [hit["X-Custom"] for hit in target_server.hits] == ["test-value"] * 2

    async def test_connection_refused_is_fatal(self, closed_url: str) -> None:
        template = RequestTemplate(url=closed_url)
        async with LoadClient(timeout_seconds=2.0) as client:
            with pytest.raises(FatalTransportError) as exc_info:
                await client.send(template)

        assert exc_info.value.url == closed_url
        assert exc_info.value.cause is not None

    async def test_timeout_is_fatal(self, target_server) -> None:
        template = RequestTemplate(url=target_server.url("/delay?delay=1.0"))
        async with LoadClient(timeout_seconds=0.1) as client:
            with pytest.raises(FatalTransportError):
                await client.send(template)

    async def test_context_manager_required(self) -> None:
        client = LoadClient(timeout_seconds=1.0)
        with pytest.raises(RuntimeError, match="async context manager"):
            await client.send(RequestTemplate(url="http://localhost/"))
