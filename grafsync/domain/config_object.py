"""ConfigObject domain model."""

import json
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ConfigObject:
    """
    Snapshot of an annotated key/value config resource (a ConfigMap).

    Read-only to grafsync: the reconcile pass only looks at annotations and
    data and never writes the object back.
    """

    namespace: str
    name: str
    annotations: dict[str, str] = field(default_factory=dict)
    data: dict[str, str] = field(default_factory=dict)
    resource_version: str | None = None

    @property
    def key(self) -> str:
        """namespace/name identity."""
        return f"{self.namespace}/{self.name}"

    @classmethod
    def from_kubernetes(cls, configmap: Any) -> "ConfigObject":  # noqa: ANN401
        """
        Create ConfigObject from a kubernetes V1ConfigMap.

        Args:
            configmap: kubernetes.client.V1ConfigMap

        Returns:
            ConfigObject instance
        """
        metadata = configmap.metadata
        return cls(
            namespace=metadata.namespace or "",
            name=metadata.name or "",
            annotations=dict(metadata.annotations or {}),
            data=dict(configmap.data or {}),
            resource_version=metadata.resource_version,
        )

    @classmethod
    def from_event_data(cls, data: dict[str, Any]) -> "ConfigObject":
        """
        Create ConfigObject from a stream message.

        annotations and data may arrive either as dicts or as JSON strings.
        Undecodable or non-object values are treated as empty.

        Args:
            data: Message fields (namespace, name, annotations, data)

        Returns:
            ConfigObject instance
        """
        return cls(
            namespace=str(data.get("namespace") or ""),
            name=str(data.get("name") or ""),
            annotations=cls._string_map(data.get("annotations")),
            data=cls._string_map(data.get("data")),
            resource_version=data.get("resource_version"),
        )

    @staticmethod
    def _string_map(value: Any) -> dict[str, str]:  # noqa: ANN401
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError:
                return {}
        if not isinstance(value, dict):
            return {}
        return {str(k): v if isinstance(v, str) else json.dumps(v) for k, v in value.items()}
