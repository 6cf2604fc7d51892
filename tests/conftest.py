import json
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest

from pve_mcp.client import ProxmoxClient
from pve_mcp.config import ProxmoxConfig
from pve_mcp.tools import ProxmoxTools

API_PREFIX = "/api2/json"


class FakeProxmox:
    """In-memory Proxmox API served through ``httpx.MockTransport``.

    Routes map ``(method, path)`` to a response; every request is recorded so
    tests can assert on which endpoints were hit and how often.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Callable[[httpx.Request], httpx.Response]] = {}
        self.requests: List[httpx.Request] = []

    def add(self, path: str, data: Any = None, method: str = "GET", status: int = 200,
            text: Optional[str] = None, exc: Optional[Exception] = None):
        """Register a response. ``data`` is wrapped as ``{"data": ...}``."""

        def respond(request: httpx.Request) -> httpx.Response:
            if exc is not None:
                raise exc
            if text is not None:
                return httpx.Response(status, text=text)
            return httpx.Response(status, json={"data": data})

        self.routes[(method, path)] = respond
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path.startswith(API_PREFIX):
            path = path[len(API_PREFIX):]
        respond = self.routes.get((request.method, path))
        if respond is None:
            return httpx.Response(404, text=f"no route for {request.method} {path}")
        return respond(request)

    @property
    def paths(self) -> List[str]:
        return [r.url.path[len(API_PREFIX):] for r in self.requests]

    def body(self, index: int = -1) -> Any:
        return json.loads(self.requests[index].content)


@pytest.fixture
def fake_proxmox():
    return FakeProxmox()


@pytest.fixture
def make_config():
    def _make(**overrides) -> ProxmoxConfig:
        values = dict(host="pve.test", token_value="secret-token")
        values.update(overrides)
        return ProxmoxConfig(**values)
    return _make


@pytest.fixture
def make_client(fake_proxmox, make_config):
    def _make(**overrides) -> ProxmoxClient:
        return ProxmoxClient(make_config(**overrides), transport=httpx.MockTransport(fake_proxmox.handler))
    return _make


@pytest.fixture
def make_tools(fake_proxmox, make_config):
    """Factory for a ProxmoxTools wired to the fake backend."""
    def _make(allow_elevated: bool = False) -> ProxmoxTools:
        config = make_config(allow_elevated=allow_elevated)
        client = ProxmoxClient(config, transport=httpx.MockTransport(fake_proxmox.handler))
        return ProxmoxTools(config, client)
    return _make


@pytest.fixture
def basic_tools(make_tools):
    return make_tools(allow_elevated=False)


@pytest.fixture
def elevated_tools(make_tools):
    return make_tools(allow_elevated=True)


def result_text(result) -> str:
    """Return the text of a single-item tool result."""
    assert isinstance(result, list)
    assert len(result) == 1
    assert result[0].type == "text"
    return result[0].text
