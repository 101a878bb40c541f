"""
Grafana HTTP API client.

Endpoints used:
- GET  /api/health                       readiness probe
- GET  /api/search                       dashboard listing
- POST /api/folders, GET /api/folders    folder create / listing
- POST /api/dashboards/import            dashboard create/update
- POST /api/datasources                  datasource create
- GET  /api/dashboards/db/<slug>         slug -> dashboard id
- POST /api/user/stars/dashboard/<id>    star
- PUT  /api/org/preferences              home dashboard

Every call is a single request with an explicit timeout and no retry of
its own; only exactly 200 counts as success. Retrying is done by the
callers that need it (readiness polling, slug resolution).
"""

import asyncio
import json
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx

from grafsync.domain.grafana import DashboardRef, Folder
from grafsync.errors import GrafanaAPIError, ReadinessTimeoutError, SlugResolutionError
from grafsync.logger.logger import get_logger
from grafsync.logger.types import Category, param

if TYPE_CHECKING:
    from grafsync.config.settings import GrafanaConfig

JSON_HEADERS = {"Content-Type": "application/json"}

# Error bodies are echoed into log lines; keep them short
MAX_ERROR_BODY = 300


class GrafanaClient:
    """Async client for the Grafana endpoints grafsync needs."""

    def __init__(
        self,
        config: "GrafanaConfig",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize GrafanaClient.

        Args:
            config: Grafana configuration (URL, credentials, timeouts)
            transport: Optional httpx transport, used by tests
        """
        self.config = config
        self.logger = get_logger().with_category(Category.GRAFANA)
        self.sleep = asyncio.sleep

        headers = {"Accept": "application/json"}
        auth = config.auth
        if config.bearer_token:
            # A bearer token takes precedence over basic auth
            headers["Authorization"] = f"Bearer {config.bearer_token}"
            auth = None

        self.http = httpx.AsyncClient(
            base_url=config.url,
            auth=auth,
            headers=headers,
            timeout=config.request_timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self.http.aclose()

    # ------------------------------------------------------------------
    # Transport helpers
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json_body: Any = None,  # noqa: ANN401
        content: str | bytes | None = None,
    ) -> httpx.Response:
        """
        Issue one request and require a 200 response.

        Raises:
            GrafanaAPIError: on transport failure or any status other than 200
        """
        headers = JSON_HEADERS if method in ("POST", "PUT", "DELETE") else None
        if json_body is not None:
            content = json.dumps(json_body)
        if isinstance(content, str):
            try:
                content = content.encode("utf-8")
            except UnicodeEncodeError as e:
                raise GrafanaAPIError(method, path, None, f"body is not valid UTF-8: {e}") from e

        self.logger.debug(f"{method} {path}")
        try:
            response = await self.http.request(method, path, content=content, headers=headers)
        except httpx.HTTPError as e:
            raise GrafanaAPIError(method, path, None, str(e) or type(e).__name__) from e

        if response.status_code != 200:
            raise GrafanaAPIError(
                method,
                path,
                response.status_code,
                response.text[:MAX_ERROR_BODY].strip(),
            )
        return response

    @staticmethod
    def _decode(response: httpx.Response, method: str, path: str) -> Any:  # noqa: ANN401
        try:
            return response.json()
        except ValueError as e:
            raise GrafanaAPIError(method, path, response.status_code, f"invalid JSON: {e}") from e

    # ------------------------------------------------------------------
    # Readiness
    # ------------------------------------------------------------------

    async def health(self) -> bool:
        """Single probe of /api/health."""
        try:
            await self._request("GET", "/api/health")
        except GrafanaAPIError as e:
            self.logger.warn(
                "Grafana health check failed",
                param("status_code", e.status_code),
                param("error", e.message),
            )
            return False
        return True

    async def wait_until_ready(
        self,
        interval: float | None = None,
        timeout: float | None = None,
    ) -> None:
        """
        Poll /api/health every interval seconds until it returns 200.

        Args:
            interval: Seconds between probes (default from config)
            timeout: Total seconds to keep trying (default from config)

        Raises:
            ReadinessTimeoutError: if the service is not healthy within timeout
        """
        interval = self.config.ready_interval if interval is None else interval
        timeout = self.config.ready_timeout if timeout is None else timeout

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        attempt = 0

        while True:
            attempt += 1
            if await self.health():
                self.logger.info("Grafana is ready", param("attempts", attempt))
                return

            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            self.logger.info(
                f"Trying Grafana health again in {interval:g}s",
                param("attempt", attempt),
            )
            await self.sleep(min(interval, remaining))

        error = ReadinessTimeoutError(self.config.display_url, timeout)
        self.logger.error("Grafana never became ready", error, param("attempts", attempt))
        raise error

    # ------------------------------------------------------------------
    # Folders
    # ------------------------------------------------------------------

    async def create_folder(self, title: str) -> None:
        await self._request("POST", "/api/folders", json_body={"title": title})

    async def list_folders(self) -> list[Folder]:
        """
        Fetch every folder.

        Raises:
            GrafanaAPIError: on request failure or an undecodable listing
        """
        response = await self._request("GET", "/api/folders")
        data = self._decode(response, "GET", "/api/folders")
        if not isinstance(data, list):
            raise GrafanaAPIError("GET", "/api/folders", 200, "error decoding folder listing")
        try:
            return [Folder.from_api(item) for item in data]
        except (KeyError, TypeError, ValueError) as e:
            raise GrafanaAPIError(
                "GET", "/api/folders", 200, f"error decoding folder listing: {e}"
            ) from e

    # ------------------------------------------------------------------
    # Dashboards and datasources
    # ------------------------------------------------------------------

    async def search_dashboards(self) -> list[DashboardRef]:
        response = await self._request("GET", "/api/search")
        data = self._decode(response, "GET", "/api/search")
        if not isinstance(data, list):
            raise GrafanaAPIError("GET", "/api/search", 200, "search result is not a list")
        return [DashboardRef.from_api(item) for item in data if isinstance(item, dict)]

    async def create_dashboard(self, payload: str | bytes) -> None:
        """POST a dashboard import body as-is."""
        await self._request("POST", "/api/dashboards/import", content=payload)

    async def create_datasource(self, payload: str | bytes) -> None:
        """POST a datasource definition as-is."""
        await self._request("POST", "/api/datasources", content=payload)

    # ------------------------------------------------------------------
    # Home page
    # ------------------------------------------------------------------

    async def get_dashboard_id(
        self,
        slug: str,
        attempts: int | None = None,
        delay: float | None = None,
    ) -> int:
        """
        Resolve a dashboard slug to its numeric id.

        The dashboard may not have been imported yet, so the lookup is
        retried up to attempts times with delay seconds between attempts.

        Raises:
            SlugResolutionError: if no attempt produced an id
        """
        attempts = self.config.slug_attempts if attempts is None else attempts
        delay = self.config.slug_delay if delay is None else delay
        path = f"/api/dashboards/db/{quote(slug, safe='')}"
        logger = self.logger.with_category(Category.HOMEPAGE)
        last_error: Exception | None = None

        for attempt in range(1, attempts + 1):
            if attempt > 1:
                await self.sleep(delay)
            try:
                response = await self._request("GET", path)
                dashboard_id = self._dashboard_id(self._decode(response, "GET", path), path)
            except GrafanaAPIError as e:
                last_error = e
                logger.warn(
                    f"Dashboard id lookup attempt {attempt}/{attempts} failed",
                    param("slug", slug),
                    param("error", str(e)),
                )
                continue

            logger.info(
                "Resolved dashboard id",
                param("slug", slug),
                param("dashboard_id", dashboard_id),
                param("attempts", attempt),
            )
            return dashboard_id

        raise SlugResolutionError(slug, attempts, last_error)

    @staticmethod
    def _dashboard_id(data: Any, path: str) -> int:  # noqa: ANN401
        dashboard = data.get("dashboard") if isinstance(data, dict) else None
        dashboard_id = dashboard.get("id") if isinstance(dashboard, dict) else None
        if isinstance(dashboard_id, bool) or not isinstance(dashboard_id, int):
            raise GrafanaAPIError("GET", path, 200, "response has no dashboard.id")
        return dashboard_id

    async def star_dashboard(self, dashboard_id: int) -> None:
        await self._request("POST", f"/api/user/stars/dashboard/{dashboard_id}")

    async def update_home_dashboard(self, dashboard_id: int) -> None:
        await self._request(
            "PUT", "/api/org/preferences", json_body={"homeDashboardId": dashboard_id}
        )

    async def set_home_page(
        self,
        slug: str,
        attempts: int | None = None,
        delay: float | None = None,
    ) -> int:
        """
        Make the dashboard with this slug the organization home page.

        Three steps, each aborting the rest on failure: resolve the slug,
        star the dashboard, update org preferences. Steps already done are
        not undone.

        Returns:
            The dashboard id that was set

        Raises:
            SlugResolutionError: slug never resolved
            GrafanaAPIError: star or preference update failed
        """
        logger = self.logger.with_category(Category.HOMEPAGE)
        logger.info("Setting home page", param("slug", slug))

        dashboard_id = await self.get_dashboard_id(slug, attempts, delay)

        try:
            await self.star_dashboard(dashboard_id)
        except GrafanaAPIError as e:
            logger.error("Star dashboard failed", e, param("dashboard_id", dashboard_id))
            raise

        try:
            await self.update_home_dashboard(dashboard_id)
        except GrafanaAPIError as e:
            logger.error(
                "Updating home dashboard preference failed",
                e,
                param("dashboard_id", dashboard_id),
            )
            raise

        logger.info(
            "Changed home page",
            param("slug", slug),
            param("dashboard_id", dashboard_id),
        )
        return dashboard_id
