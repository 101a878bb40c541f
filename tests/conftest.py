"""
Pytest configuration and shared fixtures.

Provides a recording log writer, Grafana configuration built from env, and
a fake Grafana API served through httpx.MockTransport.
"""

import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest
import pytest_asyncio

from grafsync.config.settings import GrafanaConfig
from grafsync.logger.logger import init_logger
from grafsync.logger.types import Level, LogEntry
from grafsync.services.grafana import GrafanaClient

# ==============================================================================
# Logging
# ==============================================================================


class RecordingWriter:
    """Keeps every emitted entry in memory."""

    def __init__(self) -> None:
        self.entries: list[LogEntry] = []

    def emit(self, entry: LogEntry) -> None:
        self.entries.append(entry)

    async def close(self) -> None:
        pass

    def messages(self, level: Level | None = None) -> list[str]:
        return [e.message for e in self.entries if level is None or e.level == level]


@pytest.fixture(autouse=True)
def log_writer() -> RecordingWriter:
    writer = RecordingWriter()
    init_logger("grafsync-test", "test", writer=writer, min_level=Level.TRACE)
    return writer


# ==============================================================================
# Configuration
# ==============================================================================


@pytest.fixture
def grafana_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    """Env for a fast-polling GrafanaConfig with no credentials."""
    for name in ("GRAFANA_USER", "GRAFANA_PASSWORD", "GRAFANA_BEARER_TOKEN", "GRAFANA_FOLDERS"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("GRAFANA_URL", "http://grafana.test")
    monkeypatch.setenv("GRAFANA_READY_INTERVAL", "0.01")
    monkeypatch.setenv("GRAFANA_READY_TIMEOUT", "0.2")
    monkeypatch.setenv("GRAFANA_HOMEPAGE_ATTEMPTS", "3")
    monkeypatch.setenv("GRAFANA_HOMEPAGE_DELAY", "0")
    return monkeypatch


@pytest.fixture
def grafana_config(grafana_env: pytest.MonkeyPatch) -> GrafanaConfig:
    return GrafanaConfig()


# ==============================================================================
# Fake Grafana
# ==============================================================================

Responder = Callable[[httpx.Request], httpx.Response]


class FakeGrafana:
    """
    In-memory Grafana API.

    Default behavior: healthy, folder creates succeed and show up in the
    listing, dashboard/datasource creates succeed. Any (method, path) can be
    overridden with a responder.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.overrides: dict[tuple[str, str], Responder] = {}
        self.folders: list[dict[str, Any]] = []
        self.dashboards: dict[str, int] = {}
        self._next_folder_id = 1

    def override(self, method: str, path: str, responder: Responder) -> None:
        self.overrides[(method, path)] = responder

    def respond(self, method: str, path: str, status: int, body: Any = None) -> None:  # noqa: ANN401
        self.override(method, path, lambda _request: httpx.Response(status, json=body))

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def bodies(self, method: str, path: str) -> list[Any]:
        return [json.loads(r.content) for r in self.calls(method, path)]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        if key in self.overrides:
            return self.overrides[key](request)

        path = request.url.path
        if key == ("GET", "/api/health"):
            return httpx.Response(200, json={"database": "ok"})
        if key == ("POST", "/api/folders"):
            title = json.loads(request.content)["title"]
            if any(f["title"] == title for f in self.folders):
                return httpx.Response(409, json={"message": "a folder with the same name already exists"})
            folder = {"id": self._next_folder_id, "uid": f"uid-{title}", "title": title}
            self._next_folder_id += 1
            self.folders.append(folder)
            return httpx.Response(200, json=folder)
        if key == ("GET", "/api/folders"):
            return httpx.Response(200, json=self.folders)
        if key in (("POST", "/api/dashboards/import"), ("POST", "/api/datasources")):
            return httpx.Response(200, json={"status": "success"})
        if request.method == "GET" and path.startswith("/api/dashboards/db/"):
            slug = path.rsplit("/", 1)[-1]
            if slug in self.dashboards:
                return httpx.Response(200, json={"dashboard": {"id": self.dashboards[slug]}})
            return httpx.Response(404, json={"message": "Dashboard not found"})
        if request.method == "POST" and path.startswith("/api/user/stars/dashboard/"):
            return httpx.Response(200, json={"message": "Dashboard starred!"})
        if key == ("PUT", "/api/org/preferences"):
            return httpx.Response(200, json={"message": "Preferences updated"})
        if key == ("GET", "/api/search"):
            return httpx.Response(200, json=[])
        return httpx.Response(404, json={"message": "Not found"})


@pytest.fixture
def fake_grafana() -> FakeGrafana:
    return FakeGrafana()


@pytest_asyncio.fixture
async def grafana_client(grafana_config: GrafanaConfig, fake_grafana: FakeGrafana):
    client = GrafanaClient(grafana_config, transport=httpx.MockTransport(fake_grafana.handler))
    yield client
    await client.close()
