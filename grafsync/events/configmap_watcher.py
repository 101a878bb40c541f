"""ConfigMap list/watch event source."""

import asyncio
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from kubernetes import client as k8s_client
from kubernetes import config as k8s_config
from kubernetes import watch as k8s_watch
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException

from grafsync.domain.config_object import ConfigObject
from grafsync.errors import ConfigurationError, EventSourceError
from grafsync.events.source import ObjectHandler
from grafsync.logger.logger import get_logger
from grafsync.logger.types import Category, param

if TYPE_CHECKING:
    from grafsync.config.settings import KubernetesConfig

# Statuses that will not fix themselves by relisting
FATAL_STATUSES = (401, 403)
MAX_BACKOFF = 30.0
# Watch.stop() only takes effect between events, so a read blocked on an
# idle connection is not waited for past this
STOP_JOIN_TIMEOUT = 2.0


class ConfigMapWatcher:
    """
    Watches ConfigMaps and hands every observed snapshot to a handler.

    The blocking kubernetes client runs in a worker thread which lists all
    ConfigMaps, then watches from the returned resourceVersion until the
    server closes the window, then lists again. Every list re-delivers all
    objects; unchanged content is filtered downstream by content hash.
    Snapshots cross into the event loop through an asyncio.Queue consumed by
    a single task, so the handler never runs concurrently with itself.
    """

    def __init__(
        self,
        config: "KubernetesConfig",
        api: Any = None,  # noqa: ANN401
        watch_factory: Callable[[], Any] = k8s_watch.Watch,
    ) -> None:
        """
        Initialize ConfigMapWatcher.

        Args:
            config: Kubernetes watch configuration
            api: CoreV1Api-compatible object; built from credentials when None
            watch_factory: Creates watch objects with a stream() method
        """
        self.config = config
        self.api = api
        self.watch_factory = watch_factory
        self.logger = get_logger().with_category(Category.KUBERNETES)

        self._stopped = threading.Event()
        self._queue: asyncio.Queue[ConfigObject | Exception | None] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._current_watch: Any = None

    def connect(self) -> None:
        """
        Load cluster credentials and build the API client.

        Raises:
            ConfigurationError: credentials could not be discovered
        """
        if self.api is not None:
            return
        try:
            if self.config.run_outside_cluster:
                k8s_config.load_kube_config()
            else:
                k8s_config.load_incluster_config()
        except (ConfigException, FileNotFoundError) as e:
            mode = "kubeconfig" if self.config.run_outside_cluster else "in-cluster"
            raise ConfigurationError(f"Failed to load {mode} Kubernetes credentials: {e}") from e
        self.api = k8s_client.CoreV1Api()

    async def consume(self, handler: ObjectHandler) -> None:
        """
        Start watching and feed each object to handler until stopped.

        Raises:
            EventSourceError: the watch hit a non-retryable API error
        """
        self.connect()
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self._thread = threading.Thread(
            target=self._watch_loop, name="configmap-watch", daemon=True
        )
        self._thread.start()

        namespace = self.config.namespace or "<all>"
        self.logger.info("Watching ConfigMaps", param("namespace", namespace))

        while not self._stopped.is_set():
            item = await self._queue.get()
            if item is None:
                break
            if isinstance(item, Exception):
                raise item
            try:
                await handler(item)
            except Exception as e:
                self.logger.error(
                    "Failed to handle ConfigMap",
                    e,
                    param("object", item.key),
                )

        self.logger.info("ConfigMap watch stopped")

    async def stop(self) -> None:
        self.logger.info("Stopping ConfigMap watch...")
        self._stopped.set()
        if self._current_watch is not None:
            self._current_watch.stop()
        if self._queue is not None:
            self._queue.put_nowait(None)

        thread = self._thread
        if thread is None or thread is threading.current_thread():
            return
        await asyncio.to_thread(thread.join, STOP_JOIN_TIMEOUT)
        if thread.is_alive():
            # Daemon thread; exits with the process or when the watch window closes
            self.logger.warn(
                "ConfigMap watch thread still blocked on a read, leaving it",
                param("timeout", STOP_JOIN_TIMEOUT),
            )

    # ------------------------------------------------------------------
    # Worker thread
    # ------------------------------------------------------------------

    def _list_kwargs(self) -> tuple[Callable[..., Any], dict[str, Any]]:
        if self.config.namespace:
            return self.api.list_namespaced_config_map, {"namespace": self.config.namespace}
        return self.api.list_config_map_for_all_namespaces, {}

    def _watch_loop(self) -> None:
        backoff = 1.0
        while not self._stopped.is_set():
            try:
                self._list_and_watch()
                backoff = 1.0
            except ApiException as e:
                if e.status == 410:
                    self.logger.info("Watch resourceVersion expired, relisting")
                    continue
                if e.status in FATAL_STATUSES:
                    self._publish(
                        EventSourceError(f"ConfigMap watch rejected: {e.status} {e.reason}")
                    )
                    return
                self.logger.warn(
                    "ConfigMap watch failed, retrying",
                    param("status", e.status),
                    param("reason", e.reason),
                    param("delay", backoff),
                )
                self._stopped.wait(backoff)
                backoff = min(backoff * 2, MAX_BACKOFF)
            except Exception as e:
                self.logger.warn(
                    "ConfigMap watch failed, retrying",
                    param("error", str(e)),
                    param("delay", backoff),
                )
                self._stopped.wait(backoff)
                backoff = min(backoff * 2, MAX_BACKOFF)

    def _list_and_watch(self) -> None:
        list_func, kwargs = self._list_kwargs()

        listing = list_func(**kwargs)
        for configmap in listing.items or []:
            if self._stopped.is_set():
                return
            self._publish(ConfigObject.from_kubernetes(configmap))

        resource_version = listing.metadata.resource_version
        watch = self.watch_factory()
        self._current_watch = watch
        try:
            if self._stopped.is_set():
                return
            for event in watch.stream(
                list_func,
                resource_version=resource_version,
                timeout_seconds=self.config.watch_timeout_seconds,
                **kwargs,
            ):
                if self._stopped.is_set():
                    return
                event_type = event.get("type")
                if event_type in ("ADDED", "MODIFIED"):
                    self._publish(ConfigObject.from_kubernetes(event["object"]))
                elif event_type == "ERROR":
                    # Usually 410 Gone; relist
                    self.logger.info("Watch returned an error event, relisting")
                    return
        finally:
            watch.stop()
            self._current_watch = None

    def _publish(self, item: ConfigObject | Exception) -> None:
        if self._loop is None or self._queue is None:
            return
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, item)
        except RuntimeError:
            # Event loop already closed
            self._stopped.set()
