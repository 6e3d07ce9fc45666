"""Shared test fixtures for the slt test suite."""

from __future__ import annotations

import asyncio
import socket
import threading
from typing import TYPE_CHECKING

import pytest
from aiohttp import web

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator


# =============================================================================
# Pytest configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-apply markers based on test directory structure."""
    for item in items:
        test_path = str(item.fspath)
        if "/unit/" in test_path:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
        elif "/e2e/" in test_path:
            item.add_marker(pytest.mark.e2e)


# =============================================================================
# Network utilities
# =============================================================================


def get_free_port() -> int:
    """Find an available port on localhost."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("", 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


@pytest.fixture
def closed_url() -> str:
    """URL on a local port with nothing listening (connection refused)."""
    return f"http://127.0.0.1:{get_free_port()}/"


# =============================================================================
# Target HTTP server handlers
# =============================================================================

HITS = web.AppKey("hits", list)


async def _status_handler(request: web.Request) -> web.Response:
    """Respond with the status code from the path (e.g. /status/404)."""
    request.app[HITS].append(dict(request.headers))
    return web.Response(status=int(request.match_info["code"]), text="status")


async def _echo_handler(request: web.Request) -> web.Response:
    """Echo back the request headers as JSON."""
    request.app[HITS].append(dict(request.headers))
    return web.json_response({"method": request.method, "headers": dict(request.headers)})


async def _delay_handler(request: web.Request) -> web.Response:
    """Respond after a configurable delay (query param: ?delay=0.5)."""
    request.app[HITS].append(dict(request.headers))
    await asyncio.sleep(float(request.query.get("delay", "0.1")))
    return web.json_response({"status": "ok"})


async def _health_handler(request: web.Request) -> web.Response:
    """Simple health check endpoint."""
    return web.json_response({"status": "ok"})


def _create_target_app() -> web.Application:
    """Build the target app with all test routes."""
    app = web.Application()
    app[HITS] = []
    app.router.add_get("/status/{code}", _status_handler)
    app.router.add_get("/echo", _echo_handler)
    app.router.add_get("/delay", _delay_handler)
    app.router.add_get("/health", _health_handler)
    return app


class TargetServer:
    """Handle on a running target server: its base URL and recorded hits."""

    def __init__(self, base_url: str, app: web.Application) -> None:
        self.base_url = base_url
        self.app = app

    @property
    def hits(self) -> list[dict[str, str]]:
        """Headers of every request received by a recording route."""
        return self.app[HITS]

    def url(self, path: str) -> str:
        return f"{self.base_url}{path}"


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
async def target_server() -> AsyncIterator[TargetServer]:
    """Aiohttp target server on the test's event loop."""
    app = _create_target_app()
    port = get_free_port()
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", port)
    await site.start()
    yield TargetServer(f"http://127.0.0.1:{port}", app)
    await runner.cleanup()


@pytest.fixture
def sync_target_server() -> Iterator[TargetServer]:
    """Target server running in a background thread for sync tests.

    Useful for CLI tests where the command runs its own event loop and
    blocks the main thread.
    """
    port = get_free_port()
    started = threading.Event()
    loop_holder: list[asyncio.AbstractEventLoop] = []
    app = _create_target_app()

    def _thread_target() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        runner = web.AppRunner(app)
        loop.run_until_complete(runner.setup())
        site = web.TCPSite(runner, "127.0.0.1", port)
        loop.run_until_complete(site.start())
        loop_holder.append(loop)
        started.set()
        loop.run_forever()
        loop.run_until_complete(runner.cleanup())
        loop.close()

    thread = threading.Thread(target=_thread_target, daemon=True)
    thread.start()
    started.wait(timeout=5.0)

    yield TargetServer(f"http://127.0.0.1:{port}", app)

    if loop_holder:
        loop_holder[0].call_soon_threadsafe(loop_holder[0].stop)
    thread.join(timeout=5.0)
