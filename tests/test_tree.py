"""Tests for the tree data structure: nodes, prediction, missing-value routing, and rule extraction."""

from __future__ import annotations

import math

import polars as pl
import pytest
from pydantic import ValidationError
from pytest_check import check

from cartkit.exceptions import ColumnsNotFoundError
from cartkit.tree import ClassificationRule, Internal, Leaf, Predicate, SplitRule, Tree

_DEEP_CHAIN_LENGTH: int = 1500  # Deeper than the default interpreter recursion limit.


class TestEmptyTree:
    """Tests for the empty tree state."""

    def test_new_tree_has_no_root(self) -> None:
        """`Tree.new()` should produce an explicit empty tree."""
        # Act
        tree = Tree.new()

        # Assert
        with check:
            assert tree.root is None
        with check:
            assert tree.is_empty
        with check:
            assert tree.depth == 0
        with check:
            assert tree.leaf_count == 0
        with check:
            assert tree.node_count == 0
        with check:
            assert tree.rules() == []

    @pytest.mark.parametrize("row", [{}, {"petal_length": 1.4}, {"petal_length": None}])
    def test_predict_returns_none(self, row: dict[str, float | None]) -> None:
        """An empty tree has no prediction for any row.

        Args:
            row (dict[str, float | None]): The row to classify.
        """
        assert Tree.new().predict(row) is None

    def test_predict_frame_returns_nulls(self) -> None:
        """Every row should get a null prediction and confidence."""
        # Arrange
        df = pl.DataFrame({"petal_length": [1.4, 4.7]})

        # Act
        predictions = Tree.new().predict_frame(df)

        # Assert
        with check:
            assert predictions.height == 2
        with check:
            assert predictions.get_column("prediction").null_count() == 2
        with check:
            assert predictions.get_column("confidence").null_count() == 2


class TestPredict:
    """Tests for `Tree.predict` routing."""

    def test_single_leaf_tree_predicts_its_class(self) -> None:
        """A one-leaf tree should predict the leaf's class for any row."""
        # Arrange
        tree = Tree.from_node(Leaf(prediction=3, confidence=0.75, samples=8))

        # Act / Assert
        with check:
            assert tree.predict({}) == (3, 0.75)
        with check:
            assert tree.predict({"petal_length": 9.9}) == (3, 0.75)

    @pytest.mark.parametrize(
        ("value", "expected"),
        [(4.0, (1, 1.0)), (2.5, (1, 1.0)), (2.4999, (0, 0.75)), (-1, (0, 0.75))],
        ids=["above", "at_cutoff", "just_below", "negative"],
    )
    def test_routes_by_cutoff(self, value: float, expected: tuple[int, float]) -> None:
        """Values at or above the cutoff go higher; values below go lower.

        Args:
            value (float): The row's value for the split dimension.
            expected (tuple[int, float]): The expected prediction.
        """
        # Arrange
        tree = _make_stump(higher_samples=3, lower_samples=4)

        # Act / Assert
        assert tree.predict({"petal_length": value}) == expected

    @pytest.mark.parametrize(
        "row",
        [{"petal_length": None}, {"petal_length": math.nan}, {"sepal_width": 3.1}],
        ids=["none", "nan", "absent_key"],
    )
    def test_missing_value_follows_larger_child(self, row: dict[str, float | None]) -> None:
        """A missing value should follow the child that saw more training rows.

        Args:
            row (dict[str, float | None]): A row whose split value is missing.
        """
        # Arrange
        lower_heavy = _make_stump(higher_samples=3, lower_samples=4)
        higher_heavy = _make_stump(higher_samples=5, lower_samples=4)

        # Act / Assert
        with check:
            assert lower_heavy.predict(row) == (0, 0.75)
        with check:
            assert higher_heavy.predict(row) == (1, 1.0)

    def test_missing_value_with_equal_children_goes_higher(self) -> None:
        """Ties in training row counts should resolve to the higher child."""
        # Arrange
        tree = _make_stump(higher_samples=4, lower_samples=4)

        # Act / Assert
        assert tree.predict({"petal_length": None}) == (1, 1.0)

    def test_nested_tree_walks_to_leaf(self) -> None:
        """Prediction should apply every rule along the path."""
        # Arrange
        tree = _make_two_level_tree()

        # Act / Assert
        with check:
            assert tree.predict({"petal_length": 1.0, "petal_width": 9.0}) == (0, 1.0)
        with check:
            assert tree.predict({"petal_length": 5.0, "petal_width": 2.0}) == (2, 0.9)
        with check:
            assert tree.predict({"petal_length": 5.0, "petal_width": 1.0}) == (1, 0.8)


class TestPredictFrame:
    """Tests for `Tree.predict_frame`."""

    def test_predicts_each_row_with_typed_columns(self) -> None:
        """The output should have UInt32 predictions and Float64 confidences, one per row."""
        # Arrange
        tree = _make_two_level_tree()
        df = pl.DataFrame({
            "petal_length": [1.0, 5.0, 5.0, None],
            "petal_width": [0.2, 2.0, 1.0, 1.0],
            "sepal_length": [5.1, 6.3, 5.9, 6.0],
        })

        # Act
        predictions = tree.predict_frame(df)

        # Assert
        with check:
            assert predictions.schema == pl.Schema({"prediction": pl.UInt32, "confidence": pl.Float64})
        with check:
            assert predictions.get_column("prediction").to_list() == [0, 2, 1, 1]
        with check:
            assert predictions.get_column("confidence").to_list() == [1.0, 0.9, 0.8, 0.8]

    def test_single_leaf_tree_predicts_every_row(self) -> None:
        """A tree that tests no feature should still return one prediction per input row."""
        # Arrange
        tree = Tree.from_node(Leaf(prediction=1, confidence=1.0, samples=3))
        df = pl.DataFrame({"petal_length": [1.0, 2.0, 3.0]})

        # Act
        predictions = tree.predict_frame(df)

        # Assert
        with check:
            assert predictions.shape == (3, 2)
        with check:
            assert predictions.get_column("prediction").to_list() == [1, 1, 1]
        with check:
            assert predictions.get_column("confidence").to_list() == [1.0, 1.0, 1.0]

    def test_missing_dimension_column_raises(self) -> None:
        """A frame lacking a tested feature should be rejected."""
        # Arrange
        tree = _make_two_level_tree()
        df = pl.DataFrame({"petal_length": [1.0]})

        # Act / Assert
        with pytest.raises(ColumnsNotFoundError) as exc_info:
            tree.predict_frame(df)

        assert exc_info.value.missing_columns == ["petal_width"]


class TestTreeStructure:
    """Tests for structural introspection and rule extraction."""

    def test_counts_and_depth(self) -> None:
        """Depth, leaf count, node count, and dimensions should describe the tree."""
        # Arrange
        tree = _make_two_level_tree()

        # Assert
        with check:
            assert tree.depth == 2
        with check:
            assert tree.leaf_count == 3
        with check:
            assert tree.node_count == 5
        with check:
            assert tree.dimensions() == {"petal_length", "petal_width"}
        with check:
            assert [leaf.prediction for leaf in tree.leaves()] == [2, 1, 0]

    def test_deep_tree_structure_is_walked_without_recursion(self) -> None:
        """Introspection should handle trees deeper than the interpreter's recursion limit."""
        # Arrange
        tree = _make_chain_tree(_DEEP_CHAIN_LENGTH)

        # Act
        rules = tree.rules()

        # Assert
        with check:
            assert tree.depth == _DEEP_CHAIN_LENGTH
        with check:
            assert tree.leaf_count == _DEEP_CHAIN_LENGTH + 1
        with check:
            assert len(rules) == _DEEP_CHAIN_LENGTH + 1
        with check:
            assert len(rules[-1].predicates) == _DEEP_CHAIN_LENGTH
        with check:
            assert tree.predict({"x": -1.0}) == (0, 1.0)

    def test_rules_describe_each_root_to_leaf_path(self) -> None:
        """One rule per leaf, with `>=` on higher branches and `<` on lower ones."""
        # Arrange
        tree = _make_two_level_tree()

        # Act
        rules = tree.rules()

        # Assert
        assert len(rules) == 3
        with check:
            assert rules[0] == ClassificationRule(
                predicates=[
                    Predicate(variable="petal_length", operator=">=", value=2.5),
                    Predicate(variable="petal_width", operator=">=", value=1.75),
                ],
                prediction=2,
                samples=10,
                confidence=0.9,
            )
        with check:
            assert [str(predicate) for predicate in rules[2].predicates] == ["petal_length < 2.5"]
        with check:
            assert str(rules[1]) == (
                "if petal_length >= 2.5 and petal_width < 1.75 then 1 (confidence=0.8000, samples=10)"
            )

    def test_single_leaf_rule_has_no_predicates(self) -> None:
        """A one-leaf tree yields one unconditional rule."""
        # Arrange
        tree = Tree.from_node(Leaf(prediction=0, confidence=1.0, samples=4))

        # Act
        rules = tree.rules()

        # Assert
        with check:
            assert rules[0].predicates == []
        with check:
            assert str(rules[0]).startswith("if always then 0")

    def test_json_round_trip_preserves_tree(self) -> None:
        """Serializing and re-validating should reproduce an equal tree."""
        # Arrange
        tree = _make_two_level_tree()

        # Act
        restored = Tree.model_validate_json(tree.model_dump_json())

        # Assert
        with check:
            assert restored == tree
        with check:
            assert isinstance(restored.root, Internal)


class TestNodeValidation:
    """Tests for node model constraints."""

    @pytest.mark.parametrize(
        "fields",
        [
            {"prediction": 0, "confidence": 1.5, "samples": 1},
            {"prediction": 0, "confidence": -0.1, "samples": 1},
            {"prediction": -1, "confidence": 0.5, "samples": 1},
            {"prediction": 0, "confidence": 0.5, "samples": 0},
        ],
        ids=["confidence_above_one", "negative_confidence", "negative_class", "no_samples"],
    )
    def test_invalid_leaf_raises_validation_error(self, fields: dict[str, float]) -> None:
        """Leaves with out-of-range fields should be rejected.

        Args:
            fields (dict[str, float]): Leaf constructor arguments.
        """
        with pytest.raises(ValidationError):
            Leaf(**fields)  # type: ignore[arg-type]

    def test_nodes_are_immutable(self) -> None:
        """Node fields cannot be reassigned after construction."""
        # Arrange
        leaf = Leaf(prediction=0, confidence=1.0, samples=2)

        # Act / Assert
        with pytest.raises(ValidationError):
            leaf.prediction = 1  # type: ignore[misc]

    def test_predicate_eval(self) -> None:
        """Predicates should evaluate their comparison."""
        # Arrange
        higher = Predicate(variable="petal_width", operator=">=", value=1.75)
        lower = Predicate(variable="petal_width", operator="<", value=1.75)

        # Assert
        with check:
            assert higher.eval(1.75)
        with check:
            assert not lower.eval(1.75)
        with check:
            assert lower.eval(0.2)


def _make_stump(*, higher_samples: int, lower_samples: int) -> Tree:
    """Build a one-split tree on `petal_length` at 2.5.

    Args:
        higher_samples (int): Training rows of the higher leaf (predicts 1, confidence 1.0).
        lower_samples (int): Training rows of the lower leaf (predicts 0, confidence 0.75).

    Returns:
        Tree: The stump.
    """
    return Tree.from_node(
        Internal(
            rule=SplitRule(dimension="petal_length", cutoff=2.5),
            higher=Leaf(prediction=1, confidence=1.0, samples=higher_samples),
            lower=Leaf(prediction=0, confidence=0.75, samples=lower_samples),
            samples=higher_samples + lower_samples,
        )
    )


def _make_two_level_tree() -> Tree:
    """Build an iris-shaped tree: petal_length first, then petal_width on the higher side.

    Returns:
        Tree: A tree with two internal nodes and three leaves.
    """
    return Tree.from_node(
        Internal(
            rule=SplitRule(dimension="petal_length", cutoff=2.5),
            higher=Internal(
                rule=SplitRule(dimension="petal_width", cutoff=1.75),
                higher=Leaf(prediction=2, confidence=0.9, samples=10),
                lower=Leaf(prediction=1, confidence=0.8, samples=10),
                samples=20,
            ),
            lower=Leaf(prediction=0, confidence=1.0, samples=10),
            samples=30,
        )
    )


def _make_chain_tree(length: int) -> Tree:
    """Build a tree of `length` splits on `x`, each splitting one row off the higher side.

    Args:
        length (int): Number of internal nodes on the lower-side chain.

    Returns:
        Tree: Root cutoff `length - 0.5`; the bottom leaf predicts 0 for `x < 0.5`.
    """
    node: Leaf | Internal = Leaf(prediction=0, confidence=1.0, samples=1)
    for position in range(1, length + 1):
        node = Internal(
            rule=SplitRule(dimension="x", cutoff=position - 0.5),
            higher=Leaf(prediction=position % 2, confidence=1.0, samples=1),
            lower=node,
            samples=position + 1,
        )
    return Tree.from_node(node)
