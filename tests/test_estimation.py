import math

import numpy as np
import pytest

from mixed_kernel_svm.errors import DimensionMismatch
from mixed_kernel_svm.estimation import (
    CSearchResult,
    estimate_c,
    estimate_gamma,
    pairwise_distances,
    partition_folds,
)
from mixed_kernel_svm.kernels import AggregateKernel, InnerKernel
from mixed_kernel_svm.schema import NUMERIC, FeatureSpec, build_feature_configuration


def _numeric_configuration(X):
    return build_feature_configuration(X, [FeatureSpec(0, 'x', NUMERIC)])


def _separable(n_per_class=20, seed=0):
    rng = np.random.default_rng(seed)
    X = np.concatenate([
        rng.normal(-3.0, 0.3, size=n_per_class),
        rng.normal(3.0, 0.3, size=n_per_class),
    ])[:, None]
    y = np.array([0] * n_per_class + [1] * n_per_class)
    return X, y


# -------------------------------------------------------------------
# Gamma
# -------------------------------------------------------------------

def test_gamma_uses_exact_order_statistics():
    X = np.array([[0.0], [1.0], [2.0], [4.0]])
    cfg = _numeric_configuration(X)

    # squared gaps: 1, 4, 16, 1, 9, 4 -> sorted 1, 1, 4, 4, 9, 16
    # m = 6: ranks round(1.5) = 2 and round(4.5) = 4
    d = sorted(2.0 * (1.0 - math.exp(-g)) for g in (1, 4, 16, 1, 9, 4))
    expected = (d[1] + d[3]) / 2.0
    gamma = estimate_gamma(X, cfg)
    assert gamma == pytest.approx(expected)
    assert gamma == pytest.approx((1.0 - math.exp(-1.0)) + (1.0 - math.exp(-4.0)))

    interpolated = (np.quantile(d, 0.25) + np.quantile(d, 0.75)) / 2.0
    assert gamma != pytest.approx(interpolated)


def test_pairwise_distances_cover_every_unordered_pair(records, configuration):
    D = pairwise_distances(records, configuration, block_rows=7)
    n = len(records)
    assert D.shape == (n * (n - 1) // 2,)
    assert D.min() >= 0.0
    assert D.max() <= 2.0

    K = InnerKernel(configuration).matrix(records, records)
    iu = np.triu_indices(n, k=1)
    assert np.sort(D) == pytest.approx(np.sort(2.0 * (1.0 - K[iu])))


def test_gamma_is_deterministic(records, configuration):
    first = estimate_gamma(records, configuration)
    assert estimate_gamma(records, configuration) == first
    assert estimate_gamma(records, configuration, block_rows=4) == first
    assert estimate_gamma(records, configuration, n_jobs=2, block_rows=5) == first
    assert first > 0


def test_gamma_needs_two_records(configuration, records):
    with pytest.raises(ValueError):
        estimate_gamma(records[:1], configuration)


def test_gamma_two_records():
    X = np.array([[0.0], [1.0]])
    assert estimate_gamma(X, _numeric_configuration(X)) == pytest.approx(2.0 * (1.0 - math.exp(-1.0)))


def test_duplicate_records_warn_on_zero_gamma():
    X = np.array([[1.0], [1.0], [1.0], [1.0]])
    with pytest.warns(RuntimeWarning):
        gamma = estimate_gamma(X, _numeric_configuration(X))
    assert gamma == 0.0


# -------------------------------------------------------------------
# Folds
# -------------------------------------------------------------------

def test_partition_folds_is_a_seeded_partition():
    folds = partition_folds(23, 5, random_state=7)
    assert len(folds) == 5
    assert sorted(np.concatenate(folds).tolist()) == list(range(23))
    sizes = [len(f) for f in folds]
    assert max(sizes) - min(sizes) <= 1

    again = partition_folds(23, 5, random_state=7)
    assert all(np.array_equal(a, b) for a, b in zip(folds, again))

    other = partition_folds(23, 5, random_state=8)
    assert not all(np.array_equal(a, b) for a, b in zip(folds, other))


def test_partition_folds_rejects_bad_k():
    with pytest.raises(ValueError):
        partition_folds(10, 1)
    with pytest.raises(ValueError):
        partition_folds(3, 4)


# -------------------------------------------------------------------
# C
# -------------------------------------------------------------------

def test_single_candidate_is_returned_without_search():
    result = estimate_c(np.eye(3), [0, 1, 0], [5.0], n_folds=3)
    assert isinstance(result, CSearchResult)
    assert result.C == 5.0
    assert result.scores == ()


def test_separable_data_prefers_first_of_equal_candidates():
    X, y = _separable()
    cfg = _numeric_configuration(X)
    gamma = estimate_gamma(X, cfg)
    pre = AggregateKernel(InnerKernel(cfg), gamma).precompute(X)

    result = estimate_c(pre, y, [1, 10], n_folds=5, random_state=0)
    assert result.C == 1.0
    assert [c for c, _ in result.scores] == [1.0, 10.0]
    assert all(s == 0.0 for _, s in result.scores)
    assert result.tied == (1.0, 10.0)

    reversed_order = estimate_c(pre, y, [10, 1], n_folds=5, random_state=0)
    assert reversed_order.C == 10.0


def test_lower_cv_error_wins():
    X, y = _separable(seed=3)
    # flip a few labels so that a very small C underfits
    y = y.copy()
    y[:3] = 1
    cfg = _numeric_configuration(X)
    pre = AggregateKernel(InnerKernel(cfg), estimate_gamma(X, cfg)).precompute(X)

    result = estimate_c(pre, y, [1e-4, 100.0], n_folds=4, random_state=1)
    scores = dict(result.scores)
    assert result.C == min(scores, key=lambda c: (scores[c], [1e-4, 100.0].index(c)))
    assert all(0.0 <= s <= 100.0 for s in scores.values())


def test_c_search_is_reproducible_across_workers():
    X, y = _separable(seed=4)
    cfg = _numeric_configuration(X)
    pre = AggregateKernel(InnerKernel(cfg), 1.0).precompute(X)
    a = estimate_c(pre, y, [0.1, 1.0, 10.0], n_folds=4, random_state=11, n_jobs=1)
    b = estimate_c(pre, y, [0.1, 1.0, 10.0], n_folds=4, random_state=11, n_jobs=2)
    assert a == b


def test_c_search_accepts_plain_gram_matrix():
    X, y = _separable(seed=5)
    cfg = _numeric_configuration(X)
    K = AggregateKernel(InnerKernel(cfg), 1.0).gram(X)
    assert estimate_c(K, y, [1.0, 10.0], n_folds=4, random_state=0).C == 1.0


def test_c_search_validates_inputs():
    K = np.eye(4)
    with pytest.raises(ValueError):
        estimate_c(K, [0, 1, 0, 1], [])
    with pytest.raises(ValueError):
        estimate_c(K, [0, 1, 0, 1], [1.0, -1.0])
    with pytest.raises(DimensionMismatch):
        estimate_c(K, [0, 1, 0], [1.0, 2.0])


def _two_cluster_gram(n0=30, n1=10, within=0.9):
    """Exact class-block Gram: unit diagonal, `within` inside a class, 0 across."""
    y = np.array([0] * n0 + [1] * n1)
    K = np.where(y[:, None] == y[None, :], within, 0.0)
    np.fill_diagonal(K, 1.0)
    return K, y


def test_strictly_lower_first_candidate_wins():
    K, y = _two_cluster_gram()
    # a tiny C only predicts the majority class (25% error), C=1 separates the clusters
    result = estimate_c(K, y, [1.0, 1e-3], n_folds=4, random_state=0)
    assert result.C == 1.0
    assert result.scores[0][1] < result.scores[1][1]
    assert result.scores[0][1] == 0.0
    assert result.tied == (1.0,)


def test_strictly_lower_later_candidate_wins():
    K, y = _two_cluster_gram()
    result = estimate_c(K, y, [1e-3, 1.0], n_folds=4, random_state=0)
    assert result.C == 1.0
    assert result.scores[1][1] < result.scores[0][1]
    assert result.scores[0][1] == pytest.approx(25.0)
