"""Settings module for grafsync."""

import os

import httpx

from grafsync.errors import ConfigurationError

DEFAULT_FOLDERS = "tos,tdh,tdc"
DEFAULT_HOMEPAGE = "ji-qun-zong-lan"


def _read_secret(name: str, env_var: str) -> str | None:
    """Read a value from a Docker/Kubernetes secret file, falling back to env."""
    secret_path = f"/run/secrets/{name}"
    try:
        with open(secret_path) as f:
            return f.read().strip() or None
    except (FileNotFoundError, PermissionError):
        return os.getenv(env_var) or None


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e
    if value < 0:
        raise ConfigurationError(f"{name} must not be negative, got {raw!r}")
    return value


def _env_int(name: str, default: int | None) -> int | None:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {raw!r}")
    return value


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def parse_folder_names(raw: str) -> list[str]:
    """Split a comma-separated folder list, dropping blanks and duplicates."""
    names: list[str] = []
    for part in raw.split(","):
        name = part.strip()
        if name and name not in names:
            names.append(name)
    return names


class GrafanaConfig:
    """Grafana API configuration."""

    def __init__(self) -> None:
        self.url = self._parse_url(os.getenv("GRAFANA_URL", ""))
        self.folder_names = parse_folder_names(os.getenv("GRAFANA_FOLDERS", DEFAULT_FOLDERS))
        self.home_page = os.getenv("GRAFANA_HOMEPAGE", DEFAULT_HOMEPAGE).strip()

        # Credentials
        self.user = os.getenv("GRAFANA_USER") or None
        self.password = _read_secret("grafana_password", "GRAFANA_PASSWORD")
        self.bearer_token = _read_secret("grafana_bearer_token", "GRAFANA_BEARER_TOKEN")

        self.request_timeout = _env_float("GRAFANA_REQUEST_TIMEOUT", 10.0)

        # Readiness polling of /api/health
        self.ready_interval = _env_float("GRAFANA_READY_INTERVAL", 3.0)
        self.ready_timeout = _env_float("GRAFANA_READY_TIMEOUT", 600.0)

        # Home page slug -> dashboard id resolution
        self.slug_attempts = _env_int("GRAFANA_HOMEPAGE_ATTEMPTS", 10) or 10
        self.slug_delay = _env_float("GRAFANA_HOMEPAGE_DELAY", 6.0)

    @staticmethod
    def _parse_url(raw: str) -> httpx.URL:
        raw = raw.strip()
        if not raw:
            raise ConfigurationError("Missing GRAFANA_URL")
        try:
            url = httpx.URL(raw)
        except httpx.InvalidURL as e:
            raise ConfigurationError(f"GRAFANA_URL could not be parsed: {raw}") from e
        if url.scheme not in ("http", "https") or not url.host:
            raise ConfigurationError(f"GRAFANA_URL could not be parsed: {raw}")
        return url

    @property
    def display_url(self) -> str:
        """Base URL without credentials, for logs."""
        port = f":{self.url.port}" if self.url.port else ""
        return f"{self.url.scheme}://{self.url.host}{port}{self.url.path}"

    @property
    def auth(self) -> httpx.BasicAuth | None:
        """Basic auth from GRAFANA_USER / GRAFANA_PASSWORD, if a user is set."""
        if not self.user:
            return None
        return httpx.BasicAuth(self.user, self.password or "")


class KubernetesConfig:
    """ConfigMap watch configuration."""

    def __init__(self) -> None:
        self.run_outside_cluster = _env_bool("RUN_OUTSIDE_CLUSTER")
        self.namespace = os.getenv("WATCH_NAMESPACE", "").strip()
        self.watch_timeout_seconds = _env_int("WATCH_TIMEOUT_SECONDS", 180) or 180


class RedisConfig:
    """Redis Streams event source configuration."""

    def __init__(self) -> None:
        self.host = os.getenv("MESSENGER_HOST", "messenger")
        self.port = int(os.getenv("MESSENGER_PORT", "6379"))
        self.db = int(os.getenv("MESSENGER_DB", "0"))
        self.password = _read_secret("redis_password", "MESSENGER_PASSWORD")
        self.consumer_group = f"grafsync-{os.getenv('ENVIRONMENT', 'dev')}"
        self.stream = os.getenv("MESSENGER_STREAM", "configmaps-updates")


class LogConfig:
    """Logging configuration."""

    def __init__(self) -> None:
        self.level = os.getenv("LOG_LEVEL", "info")
        self.postgres_dsn = _read_secret("log_postgres_dsn", "LOG_POSTGRES_DSN")


class Settings:
    """Application settings."""

    EVENT_SOURCES = ("kubernetes", "redis")

    def __init__(self) -> None:
        self.environment = os.getenv("ENVIRONMENT", "dev")
        self.service_name = os.getenv("SERVICE_NAME", "grafsync")
        self.service_version = os.getenv("SERVICE_VERSION", "0.1.0")

        self.event_source = os.getenv("EVENT_SOURCE", "kubernetes").strip().lower()
        if self.event_source not in self.EVENT_SOURCES:
            raise ConfigurationError(
                f"EVENT_SOURCE must be one of {', '.join(self.EVENT_SOURCES)}, "
                f"got {self.event_source!r}"
            )

        # None keeps every hash for the life of the process
        self.dedup_max_entries = _env_int("DEDUP_MAX_ENTRIES", None)

        self.grafana = GrafanaConfig()
        self.kubernetes = KubernetesConfig()
        self.redis = RedisConfig()
        self.log = LogConfig()
