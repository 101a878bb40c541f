"""Grafana resource models."""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Folder:
    """Grafana folder as returned by GET /api/folders."""

    id: int
    title: str
    uid: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Folder":
        """
        Create Folder from an API listing item.

        Raises:
            KeyError, TypeError, ValueError: if id or title is missing or invalid
        """
        folder_id = data["id"]
        if isinstance(folder_id, bool) or not isinstance(folder_id, int):
            raise ValueError(f"folder id must be an integer, got {folder_id!r}")
        title = data["title"]
        if not isinstance(title, str):
            raise TypeError(f"folder title must be a string, got {title!r}")
        return cls(id=folder_id, title=title, uid=data.get("uid"))


@dataclass(frozen=True)
class DashboardRef:
    """Dashboard search hit from GET /api/search."""

    id: int
    title: str
    uri: str | None = None

    @property
    def slug(self) -> str:
        """The search uri has the form db/<slug>."""
        uri = self.uri or ""
        return uri[3:] if uri.startswith("db/") else uri

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "DashboardRef":
        return cls(
            id=int(data.get("id", 0)),
            title=str(data.get("title", "")),
            uri=data.get("uri"),
        )
