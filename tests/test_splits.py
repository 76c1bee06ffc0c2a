import numpy as np
import pytest
from rftable import FeatureTable
from rftable.hashing import hash_text
from rftable.impurity import (decrement_squared_frequency, delta_impurity_class,
                              delta_impurity_regr, increment_squared_frequency)

NAN = float("nan")


def _separable_table():
    """Feature values split cleanly at 4 | 10, stored in shuffled sample order."""
    fv = [12, 3, 10, 1, 13, 4, 2, 11]
    num_target = [1 if v > 4 else 0 for v in fv]
    cat_target = ["hi" if v > 4 else "lo" for v in fv]
    return FeatureTable.from_columns([
        ("NUM", "f", fv),
        ("NUM", "y", num_target),
        ("CAT", "label", cat_target),
    ])


def _hash(word):
    return next(iter(hash_text(word)))


# -----------------------------------------------------------------------------
# Impurity formulas
# -----------------------------------------------------------------------------
def test_delta_impurity_formulas():
    assert delta_impurity_regr(0.5, 8, 0.0, 4, 1.0, 4) == pytest.approx(0.25)
    assert delta_impurity_regr(2.0, 4, 2.0, 2, 2.0, 2) == pytest.approx(0.0)
    assert delta_impurity_class(32, 8, 16, 4, 16, 4) == pytest.approx(0.5)


def test_squared_frequency_updates():
    freq = {}
    sf = 0
    for x in [1.0, 1.0, 2.0]:
        sf = increment_squared_frequency(x, freq, sf)
    assert sf == 2 ** 2 + 1 ** 2
    sf = decrement_squared_frequency(1.0, freq, sf)
    assert sf == 1 + 1
    assert freq == {1.0: 1, 2.0: 1}


# -----------------------------------------------------------------------------
# Numerical feature
# -----------------------------------------------------------------------------
def test_numerical_split_numerical_target():
    td = _separable_table()
    res = td.numerical_feature_split(1, 0, 1, np.arange(8))
    assert res.is_split
    assert res.split_value == 4.0
    assert res.score == pytest.approx(0.25)
    assert sorted(td.get_feature_data(0, res.left)) == [1, 2, 3, 4]
    assert sorted(td.get_feature_data(0, res.right)) == [10, 11, 12, 13]
    assert res.n_left + res.n_right == 8


def test_numerical_split_categorical_target():
    td = _separable_table()
    res = td.numerical_feature_split(2, 0, 2, list(range(8)))
    assert res.split_value == 4.0
    assert res.score == pytest.approx(0.5)
    np.testing.assert_array_equal(res.left, [3, 6, 1, 5])
    np.testing.assert_array_equal(res.right, [2, 7, 0, 4])


def test_numerical_split_respects_min_samples():
    td = _separable_table()
    res = td.numerical_feature_split(1, 0, 5, np.arange(8))
    assert not res.is_split
    assert res.score == 0.0
    assert res.n_left == 0
    np.testing.assert_array_equal(res.right, np.arange(8))

    ics = [7, 6, 5, 4, 3, 2, 1, 0]
    res = td.numerical_feature_split(1, 0, 4, ics)
    assert res.split_value == 4.0
    assert res.n_left >= 4 and res.n_right >= 4


def test_numerical_split_skips_missing_values():
    td = FeatureTable.from_columns([
        ("NUM", "f", [1, 2, NAN, 3, 10, 11, 12]),
        ("NUM", "y", [0, 0, 5, NAN, 1, 1, 1]),
    ])
    res = td.numerical_feature_split(1, 0, 1, np.arange(7))
    assert res.split_value == 2.0
    np.testing.assert_array_equal(res.left, [0, 1])
    np.testing.assert_array_equal(res.right, [4, 5, 6])


def test_numerical_split_constant_target_has_no_split():
    td = FeatureTable.from_columns([
        ("NUM", "f", [1, 2, 3, 4]),
        ("NUM", "y", [0, 0, 0, 0]),
    ])
    res = td.numerical_feature_split(1, 0, 1, np.arange(4))
    assert not res.is_split
    np.testing.assert_array_equal(res.right, np.arange(4))


def test_numerical_split_constant_nonzero_target_has_no_split():
    for y in ([0.3] * 10, [1e6 + 0.3] * 10):
        td = FeatureTable.from_columns([
            ("NUM", "f", np.arange(10)),
            ("NUM", "y", y),
        ])
        res = td.numerical_feature_split(1, 0, 1, np.arange(10))
        assert not res.is_split
        assert res.score == 0.0
        np.testing.assert_array_equal(res.right, np.arange(10))


def test_numerical_split_offset_target_keeps_precision():
    td = FeatureTable.from_columns([
        ("NUM", "f", [1, 2, 3, 4, 5, 6]),
        ("NUM", "y", [1e8, 1e8, 1e8, 1e8 + 1, 1e8 + 1, 1e8 + 1]),
    ])
    res = td.numerical_feature_split(1, 0, 1, np.arange(6))
    assert res.split_value == 3.0
    assert res.score == pytest.approx(0.25)
    assert res.n_left + res.n_right == 6


def test_categorical_split_constant_nonzero_target_has_no_split():
    td = FeatureTable.from_columns([
        ("CAT", "c", ["a", "b", "c", "a", "b", "c"]),
        ("NUM", "y", [0.3] * 6),
    ])
    res = td.categorical_feature_split(1, 0, 1, np.arange(6))
    assert not res.is_split
    np.testing.assert_array_equal(res.right, np.arange(6))


def test_numerical_split_considers_positions_inside_ties():
    td = FeatureTable.from_columns([
        ("NUM", "f", [1, 1, 1, 1]),
        ("NUM", "y", [0, 1, 0, 1]),
    ])
    res = td.numerical_feature_split(1, 0, 1, np.arange(4))
    assert res.is_split
    assert res.split_value == 1.0
    assert res.n_left + res.n_right == 4


# -----------------------------------------------------------------------------
# Categorical feature
# -----------------------------------------------------------------------------
def test_categorical_split_numerical_target():
    td = FeatureTable.from_columns([
        ("CAT", "c", ["a", "a", "b", "b", "c", "c"]),
        ("NUM", "y", [0, 0, 10, 10, 0, 0]),
    ])
    res = td.categorical_feature_split(1, 0, 1, np.arange(6))
    assert res.score == pytest.approx(200.0 / 9.0)
    assert res.split_values_left == frozenset({1.0})
    assert res.split_values_right == frozenset({0.0, 2.0})
    np.testing.assert_array_equal(res.left, [2, 3])
    np.testing.assert_array_equal(res.right, [0, 1, 4, 5])


def test_categorical_split_groups_several_categories():
    td = FeatureTable.from_columns([
        ("CAT", "c", ["a", "b", "c", "d", "a", "b", "c", "d", "NA"]),
        ("CAT", "y", ["x", "z", "x", "z", "x", "z", "x", "z", "x"]),
    ])
    res = td.categorical_feature_split(1, 0, 1, np.arange(9))
    assert res.score == pytest.approx(0.5)
    left_labels = {td.raw_value(0, c) for c in res.split_values_left}
    right_labels = {td.raw_value(0, c) for c in res.split_values_right}
    assert {frozenset(left_labels), frozenset(right_labels)} == {
        frozenset({"a", "c"}), frozenset({"b", "d"})}
    assert res.n_left + res.n_right == 8
    assert 8 not in res.left and 8 not in res.right


def test_categorical_split_values_partition_observed_categories():
    rng = np.random.RandomState(3)
    labels = list(rng.choice(list("pqrstu"), size=60))
    labels[5] = "NA"
    target = list(rng.rand(60))
    td = FeatureTable.from_columns([("CAT", "c", labels), ("NUM", "y", target)])
    ics = np.arange(0, 60, 2)
    res = td.categorical_feature_split(1, 0, 2, ics)
    assert res.is_split
    assert not (res.split_values_left & res.split_values_right)
    observed = set(td.get_filtered_feature_data(0, ics)[0])
    assert res.split_values_left | res.split_values_right == observed
    assert res.n_left >= 2 and res.n_right >= 2
    assert sorted(np.concatenate([res.left, res.right])) == sorted(
        td.get_filtered_feature_data(0, ics)[1])


def test_categorical_split_single_category_has_no_split():
    td = FeatureTable.from_columns([
        ("CAT", "c", ["a", "a", "a"]),
        ("NUM", "y", [1, 2, 3]),
    ])
    res = td.categorical_feature_split(1, 0, 1, [2, 0, 1])
    assert res.score == 0.0 and res.n_left == 0
    np.testing.assert_array_equal(res.right, [2, 0, 1])


# -----------------------------------------------------------------------------
# Textual feature
# -----------------------------------------------------------------------------
def _text_table():
    return FeatureTable.from_columns([
        ("TXT", "t", ["red apple", "red car", "blue car", "blue sky"]),
        ("NUM", "y", [1, 1, 0, 0]),
        ("CAT", "label", ["x", "x", "y", "y"]),
    ])


def test_textual_split_numerical_target():
    td = _text_table()
    res = td.textual_feature_split(1, 0, _hash("red"), 1, np.arange(4))
    assert res.score == pytest.approx(0.25)
    np.testing.assert_array_equal(res.left, [0, 1])
    np.testing.assert_array_equal(res.right, [2, 3])
    assert res.hash_code == _hash("red")


def test_textual_split_categorical_target():
    td = _text_table()
    res = td.textual_feature_split(2, 0, _hash("blue"), 2, [3, 2, 1, 0])
    assert res.score == pytest.approx(0.5)
    np.testing.assert_array_equal(res.left, [3, 2])
    np.testing.assert_array_equal(res.right, [1, 0])


def test_textual_split_min_samples():
    td = _text_table()
    res = td.textual_feature_split(1, 0, _hash("apple"), 2, np.arange(4))
    assert not res.is_split
    np.testing.assert_array_equal(res.right, np.arange(4))
    res = td.textual_feature_split(1, 0, _hash("car"), 2, np.arange(4))
    assert res.score == pytest.approx(0.0)
    np.testing.assert_array_equal(res.left, [1, 2])
    np.testing.assert_array_equal(res.right, [0, 3])
