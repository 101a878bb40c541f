"""Keeps Grafana dashboards, datasources, folders and the home page in sync with annotated ConfigMaps."""

__version__ = "0.1.0"
