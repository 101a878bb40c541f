"""Tests for annotation interpretation."""

import pytest

from grafsync.domain.intent import (
    DASHBOARD_ANNOTATION,
    DATASOURCE_ANNOTATION,
    FOLDER_ANNOTATION,
    Intent,
    parse_bool,
    parse_intent,
)


class TestParseBool:
    """Tests for flag parsing."""

    @pytest.mark.parametrize("value", ["1", "t", "T", "TRUE", "true", "True"])
    def test_true_spellings(self, value: str) -> None:
        assert parse_bool(value) is True

    @pytest.mark.parametrize("value", ["0", "f", "F", "FALSE", "false", "False"])
    def test_false_spellings(self, value: str) -> None:
        assert parse_bool(value) is False

    @pytest.mark.parametrize("value", [None, "", "yes", "on", "tRuE", " true", "2"])
    def test_malformed_values_disable(self, value: str | None) -> None:
        """Unparseable flags degrade to disabled instead of raising."""
        assert parse_bool(value) is False


class TestParseIntent:
    """Tests for building an Intent from annotations."""

    def test_no_annotations(self) -> None:
        intent = parse_intent({})
        assert intent == Intent()
        assert intent.is_relevant is False

    def test_none_annotations(self) -> None:
        assert parse_intent(None).is_relevant is False

    def test_unrelated_annotations(self) -> None:
        intent = parse_intent({"kubectl.kubernetes.io/last-applied-configuration": "{}"})
        assert intent.is_relevant is False

    def test_dashboard_with_folder(self) -> None:
        intent = parse_intent({DASHBOARD_ANNOTATION: "true", FOLDER_ANNOTATION: "ops"})
        assert intent.is_dashboard_set is True
        assert intent.is_datasource_set is False
        assert intent.folder_name == "ops"
        assert intent.is_relevant is True

    def test_datasource(self) -> None:
        intent = parse_intent({DATASOURCE_ANNOTATION: "1"})
        assert intent.is_datasource_set is True
        assert intent.folder_name is None

    def test_empty_folder_name_is_none(self) -> None:
        intent = parse_intent({DASHBOARD_ANNOTATION: "true", FOLDER_ANNOTATION: ""})
        assert intent.folder_name is None

    def test_folder_without_flag_is_not_relevant(self) -> None:
        intent = parse_intent({FOLDER_ANNOTATION: "ops", DASHBOARD_ANNOTATION: "nope"})
        assert intent.is_relevant is False
