"""Tests for top-1 result selection and the label table."""

from __future__ import annotations

from pathlib import Path

import pytest

from conectec.errors import ConfigurationError
from conectec.ml.labels import CONNECTOR_LABELS, LabelTable
from conectec.ml.selector import select

from helpers import SCENARIO_SCORES


class TestSelect:
    def test_picks_maximum(self, labels: LabelTable) -> None:
        scores = [0.0] * 20
        scores[8] = 0.9
        result = select(scores, labels)
        assert result.index == 8
        assert result.label == "Conector HDMI"
        assert result.confidence == 0.9

    def test_ties_resolve_to_lowest_index(self, labels: LabelTable) -> None:
        scores = [0.1] * 20
        scores[5] = 0.7
        scores[12] = 0.7
        scores[19] = 0.7
        result = select(scores, labels)
        assert result.index == 5
        assert result.label == labels[5]

    def test_all_equal_selects_first(self, labels: LabelTable) -> None:
        result = select([0.05] * 20, labels)
        assert result.index == 0
        assert result.label == labels[0]

    def test_confidence_equals_distribution_at_index(self, labels: LabelTable) -> None:
        scores = [(i * 7 % 13) / 13 for i in range(20)]
        result = select(scores, labels)
        assert result.confidence == result.distribution[result.index]
        assert result.label == labels[result.index]

    def test_scores_are_not_renormalized(self, labels: LabelTable) -> None:
        scores = [3.5] + [-1.0] * 19
        result = select(scores, labels)
        assert result.confidence == 3.5
        assert result.distribution == tuple(scores)

    def test_reference_scenario(self, labels: LabelTable) -> None:
        result = select(SCENARIO_SCORES, labels)
        assert result.label == labels[0]
        assert result.confidence == pytest.approx(0.1)

    def test_length_mismatch_is_configuration_error(self, labels: LabelTable) -> None:
        with pytest.raises(ConfigurationError, match="19 scores"):
            select([0.1] * 19, labels)


class TestLabelTable:
    def test_default_has_twenty_connectors(self) -> None:
        table = LabelTable.default()
        assert len(table) == 20
        assert table.labels == CONNECTOR_LABELS
        assert table[19] == "Conector VGA"

    def test_empty_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="empty"):
            LabelTable(())

    def test_duplicates_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="duplicate"):
            LabelTable(("a", "b", "a"))

    def test_from_file_skips_blank_lines(self, tmp_path: Path) -> None:
        path = tmp_path / "labels.txt"
        path.write_text("USB-A\n\n  USB-C  \nHDMI\n", encoding="utf-8")
        table = LabelTable.from_file(path)
        assert table.labels == ("USB-A", "USB-C", "HDMI")

    def test_from_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="Cannot read"):
            LabelTable.from_file(tmp_path / "missing.txt")
