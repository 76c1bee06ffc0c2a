import numpy as np
import pytest
from rftable import FeatureTable, NodeSplitter


def _mixed_table():
    """Target y depends on the categorical column only; x is noise, t has one useful word."""
    n = 40
    rng = np.random.RandomState(0)
    cat = ["on" if i % 2 else "off" for i in range(n)]
    y = [10.0 if c == "on" else 0.0 for c in cat]
    text = ["good stuff" if c == "on" else "stuff" for c in cat]
    return FeatureTable.from_columns([
        ("NUM", "x", list(rng.rand(n))),
        ("CAT", "c", cat),
        ("TXT", "t", text),
        ("NUM", "y", y),
    ])


def test_params_follow_estimator_api():
    sp = NodeSplitter(min_samples=3, with_replacement=False, sample_fraction=0.5, random_state=1)
    params = sp.get_params()
    assert params == {"min_samples": 3, "with_replacement": False,
                      "sample_fraction": 0.5, "random_state": 1}
    sp.set_params(min_samples=5)
    assert sp.min_samples == 5


def test_split_dispatches_on_feature_type():
    td = _mixed_table()
    sp = NodeSplitter(min_samples=2, random_state=0)
    ics = np.arange(td.n_samples())
    assert sp.split(td, 3, 0, ics).split_value is not None
    cat = sp.split(td, 3, 1, ics)
    assert cat.split_values_left and cat.split_values_right
    txt = sp.split(td, 3, 2, ics)
    assert txt.hash_code is not None
    assert txt.n_left + txt.n_right == td.n_samples()


def test_best_split_prefers_informative_feature():
    td = _mixed_table()
    sp = NodeSplitter(min_samples=2, random_state=0)
    ics = np.arange(td.n_samples())
    best = sp.best_split(td, 3, [3, 0, 1], ics)
    assert best.feature_idx == 1
    assert best.score == pytest.approx(25.0)
    assert sorted(td.get_feature_data(3, best.left)) in ([0.0] * 20, [10.0] * 20)


def test_best_split_without_candidates_is_empty():
    td = _mixed_table()
    sp = NodeSplitter()
    best = sp.best_split(td, 3, [3], [0, 1, 2])
    assert not best.is_split
    np.testing.assert_array_equal(best.right, [0, 1, 2])


def test_draw_hash_returns_code_of_population():
    td = _mixed_table()
    sp = NodeSplitter(random_state=3)
    ics = [1, 3, 5]
    h = sp.draw_hash(td, 2, ics)
    assert any(td.has_hash(2, i, h) for i in ics)
    with pytest.raises(TypeError):
        sp.draw_hash(td, 0, ics)


def test_bootstrap_uses_parameters_and_seed():
    td = _mixed_table()
    a = NodeSplitter(with_replacement=False, sample_fraction=0.25, random_state=5).bootstrap(td, 3)
    b = NodeSplitter(with_replacement=False, sample_fraction=0.25, random_state=5).bootstrap(td, 3)
    assert a[0].size == 10
    np.testing.assert_array_equal(a[0], b[0])


def test_invalid_min_samples():
    td = _mixed_table()
    with pytest.raises(ValueError):
        NodeSplitter(min_samples=0).split(td, 3, 0, np.arange(10))
