"""Annotation interpretation: what a ConfigObject asks grafsync to do."""

from collections.abc import Mapping
from dataclasses import dataclass

DASHBOARD_ANNOTATION = "grafana.net/dashboards"
DATASOURCE_ANNOTATION = "grafana.net/datasource"
FOLDER_ANNOTATION = "grafana.net/folder"

_TRUE_VALUES = frozenset({"1", "t", "T", "TRUE", "true", "True"})


def parse_bool(value: str | None) -> bool:
    """
    Parse an annotation flag.

    Only the literal spellings 1/t/T/TRUE/true/True enable a flag. Absent,
    malformed or false values all mean disabled; this never raises.
    """
    return value is not None and value in _TRUE_VALUES


@dataclass(frozen=True)
class Intent:
    """Parsed per-object directive."""

    is_dashboard_set: bool = False
    is_datasource_set: bool = False
    folder_name: str | None = None

    @property
    def is_relevant(self) -> bool:
        """Whether the object's entries should be pushed to Grafana at all."""
        return self.is_dashboard_set or self.is_datasource_set


def parse_intent(annotations: Mapping[str, str] | None) -> Intent:
    """Build an Intent from an object's annotations."""
    annotations = annotations or {}
    folder_name = annotations.get(FOLDER_ANNOTATION) or None
    return Intent(
        is_dashboard_set=parse_bool(annotations.get(DASHBOARD_ANNOTATION)),
        is_datasource_set=parse_bool(annotations.get(DATASOURCE_ANNOTATION)),
        folder_name=folder_name,
    )
