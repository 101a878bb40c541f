"""Turns observed ConfigObjects into Grafana create calls."""

import json
import time
from dataclasses import dataclass, field

from grafsync.domain.config_object import ConfigObject
from grafsync.domain.intent import Intent, parse_intent
from grafsync.errors import GrafsyncError, MalformedPayloadError
from grafsync.logger.logger import get_logger
from grafsync.logger.types import Category, duration_ms, param
from grafsync.services.folders import ROOT_FOLDER_ID, FolderResolver
from grafsync.services.grafana import GrafanaClient
from grafsync.store.dedup import ContentDedupStore, content_hash


def inject_folder_id(key: str, payload: str, folder_id: int) -> str:
    """
    Set the top-level folderId of a dashboard import body.

    Raises:
        MalformedPayloadError: if the payload is not a JSON object
    """
    try:
        document = json.loads(payload)
    except json.JSONDecodeError as e:
        raise MalformedPayloadError(key, str(e)) from e
    if not isinstance(document, dict):
        raise MalformedPayloadError(key, f"top-level value is {type(document).__name__}")
    document["folderId"] = folder_id
    # ASCII escapes keep lone surrogates as \uXXXX; out-of-range numbers
    # decode to inf, which has no JSON spelling
    try:
        return json.dumps(document, separators=(",", ":"), allow_nan=False)
    except ValueError as e:
        raise MalformedPayloadError(key, str(e)) from e


@dataclass
class ReconcileResult:
    """Per-object outcome, mostly for logging and tests."""

    created: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


class ReconcileHandler:
    """
    Handler invoked once per observed ConfigObject.

    interpret annotations -> resolve folder -> per entry: dedup check ->
    create. A failing entry is logged and never stops its siblings.
    """

    def __init__(
        self,
        client: GrafanaClient,
        folders: FolderResolver,
        dedup: ContentDedupStore,
    ) -> None:
        """
        Initialize ReconcileHandler.

        Args:
            client: Grafana API client
            folders: Folder title -> id table
            dedup: Content hashes already submitted
        """
        self.client = client
        self.folders = folders
        self.dedup = dedup
        self.logger = get_logger().with_category(Category.RECONCILE)

    async def handle(self, obj: ConfigObject) -> ReconcileResult:
        result = ReconcileResult()
        intent = parse_intent(obj.annotations)
        if not intent.is_relevant:
            return result

        folder_id = self._resolve_folder(obj, intent)

        self.logger.info(
            "Processing config object",
            param("object", obj.key),
            param("dashboards", intent.is_dashboard_set),
            param("datasource", intent.is_datasource_set),
            param("entries", len(obj.data)),
        )

        for key, payload in obj.data.items():
            digest = content_hash(payload)
            if self.dedup.check_and_mark(digest):
                self.logger.info(
                    f"Content already submitted, {key} skipped",
                    param("object", obj.key),
                    param("entry", key),
                    param("sha1", digest),
                )
                result.skipped.append(key)
                continue

            start_time = time.time()
            try:
                await self._create(key, payload, intent, folder_id)
            except GrafsyncError as e:
                self.logger.error(
                    f"Failed to create {key}",
                    e,
                    param("object", obj.key),
                    param("entry", key),
                )
                result.failed.append(key)
                continue

            self.logger.info(
                f"Created {key}",
                param("object", obj.key),
                param("entry", key),
                duration_ms(int((time.time() - start_time) * 1000)),
            )
            result.created.append(key)

        return result

    def _resolve_folder(self, obj: ConfigObject, intent: Intent) -> int:
        if not intent.is_dashboard_set or not intent.folder_name:
            return ROOT_FOLDER_ID

        folder_id, found = self.folders.lookup(intent.folder_name)
        if found:
            self.logger.debug(
                "Resolved folder",
                param("object", obj.key),
                param("folder", intent.folder_name),
                param("folder_id", folder_id),
            )
        else:
            self.logger.warn(
                f"{intent.folder_name} is not a known folder, using root",
                param("object", obj.key),
                param("folder", intent.folder_name),
            )
        return folder_id

    async def _create(self, key: str, payload: str, intent: Intent, folder_id: int) -> None:
        # Datasource wins when both flags are set
        if intent.is_datasource_set:
            self.logger.info(f"Creating datasource: {key}")
            await self.client.create_datasource(payload)
            return

        body = inject_folder_id(key, payload, folder_id)
        self.logger.info(f"Creating dashboard: {key}", param("folder_id", folder_id))
        await self.client.create_dashboard(body)
