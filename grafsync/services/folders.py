"""Folder title -> id resolution."""

import threading
from collections.abc import Iterable

from grafsync.errors import GrafanaAPIError
from grafsync.logger.logger import get_logger
from grafsync.logger.types import Category, param
from grafsync.services.grafana import GrafanaClient

ROOT_FOLDER_ID = 0


class FolderResolver:
    """
    Lookup table of Grafana folder titles to ids.

    sync() creates the configured folders and then rebuilds the table from
    the full listing. The table is replaced as a whole, so titles that no
    longer exist in Grafana disappear on the next successful sync.
    """

    def __init__(self, client: GrafanaClient, folder_names: Iterable[str]) -> None:
        """
        Initialize FolderResolver.

        Args:
            client: Grafana API client
            folder_names: Folder titles that must exist in Grafana
        """
        self.client = client
        self.folder_names = list(folder_names)
        self.logger = get_logger().with_category(Category.FOLDERS)
        self._folders: dict[str, int] = {}
        self._lock = threading.Lock()

    async def sync(self) -> dict[str, int]:
        """
        Wait for Grafana, create configured folders, reload the table.

        Folder creation is best effort: a failed create (typically because
        the folder already exists) is logged and the sync continues. The
        listing afterwards is authoritative.

        Returns:
            The new title -> id mapping

        Raises:
            ReadinessTimeoutError: Grafana never became healthy
            GrafanaAPIError: the folder listing could not be fetched or decoded
        """
        await self.client.wait_until_ready()

        for title in self.folder_names:
            try:
                await self.client.create_folder(title)
                self.logger.info("Created folder", param("folder", title))
            except GrafanaAPIError as e:
                self.logger.warn(
                    "Folder create failed, continuing",
                    param("folder", title),
                    param("status_code", e.status_code),
                    param("error", str(e)),
                )

        folders = await self.client.list_folders()
        mapping = {folder.title: folder.id for folder in folders}
        self.replace(mapping)

        self.logger.info(
            "Folders synced",
            param("count", len(mapping)),
            param("folders", mapping),
        )
        return dict(mapping)

    def replace(self, mapping: dict[str, int]) -> None:
        """Swap in a new table."""
        new_folders = dict(mapping)
        with self._lock:
            self._folders = new_folders

    def lookup(self, title: str) -> tuple[int, bool]:
        """
        Resolve a folder title without any network call.

        Returns:
            (id, True) when known, (ROOT_FOLDER_ID, False) otherwise
        """
        with self._lock:
            folder_id = self._folders.get(title)
        if folder_id is None:
            return ROOT_FOLDER_ID, False
        return folder_id, True

    def snapshot(self) -> dict[str, int]:
        with self._lock:
            return dict(self._folders)
