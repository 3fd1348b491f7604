"""Tests for majority-vote leaf prediction."""

from __future__ import annotations

import polars as pl
import pytest
from pytest_check import check

from cartkit.majority import predict_majority, predict_majority_frame
from cartkit.tree import Leaf

_LABELS_WITH_GAPS: list[int | None] = [1, 1, 3, 2, None, 1, None, 2, 3, None, 2, 2, None, None]


class TestPredictMajority:
    """Tests for `predict_majority` over an iterable of optional class codes."""

    def test_predicts_most_frequent_code_ignoring_missing(self) -> None:
        """Class 2 wins with 4 of the 9 present labels."""
        # Act
        result = predict_majority(_LABELS_WITH_GAPS)

        # Assert
        assert result is not None
        with check:
            assert result.prediction == 2
        with check:
            assert 0.4 < result.confidence < 0.5
        with check:
            assert result.confidence == pytest.approx(4 / 9)
        with check:
            assert result.samples == len(_LABELS_WITH_GAPS)

    @pytest.mark.parametrize("labels", [[None, None, None], []], ids=["all_missing", "empty"])
    def test_no_votes_returns_none(self, labels: list[int | None]) -> None:
        """Without any present label there is no leaf.

        Args:
            labels (list[int | None]): Labels without any present value.
        """
        assert predict_majority(labels) is None

    @pytest.mark.parametrize(
        "labels",
        [[3, 1, 3, 1], [1, 3, 1, 3], [3, 3, 1, 1]],
        ids=["interleaved_high_first", "interleaved_low_first", "grouped"],
    )
    def test_ties_go_to_smallest_code(self, labels: list[int]) -> None:
        """Tied counts should resolve to the smallest class code regardless of order.

        Args:
            labels (list[int]): Labels with a two-way tie.
        """
        # Act
        result = predict_majority(labels)

        # Assert
        assert result == Leaf(prediction=1, confidence=0.5, samples=4)

    def test_confidence_is_max_share(self) -> None:
        """Confidence should be the majority share, never a runner-up share."""
        # Act
        result = predict_majority([0, 0, 0, 1, 1, 2])

        # Assert
        assert result is not None
        assert result.confidence == pytest.approx(0.5)

    def test_accepts_generators(self) -> None:
        """Any iterable of labels should be accepted."""
        # Act
        result = predict_majority(code for code in (4, 4, 5))

        # Assert
        assert result is not None
        with check:
            assert result.prediction == 4
        with check:
            assert result.samples == 3


class TestPredictMajorityFrame:
    """Tests for `predict_majority_frame` on a DataFrame's target column."""

    def test_agrees_with_iterable_form(self) -> None:
        """The DataFrame form should produce the same leaf as the iterable form."""
        # Arrange
        df = pl.DataFrame({"variety": pl.Series(_LABELS_WITH_GAPS, dtype=pl.UInt32)})

        # Act
        result = predict_majority_frame(df, "variety")

        # Assert
        assert result == predict_majority(_LABELS_WITH_GAPS)

    def test_ties_go_to_smallest_code(self) -> None:
        """The DataFrame form should apply the same deterministic tie break."""
        # Arrange
        df = pl.DataFrame({"variety": pl.Series([5, 2, 5, 2, 7], dtype=pl.UInt16)})

        # Act
        result = predict_majority_frame(df, "variety")

        # Assert
        assert result == Leaf(prediction=2, confidence=0.4, samples=5)

    def test_all_missing_returns_none(self) -> None:
        """A frame whose labels are all missing yields no leaf."""
        # Arrange
        df = pl.DataFrame({"variety": pl.Series([None, None], dtype=pl.UInt32)})

        # Act / Assert
        assert predict_majority_frame(df, "variety") is None
