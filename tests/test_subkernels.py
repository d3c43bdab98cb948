import math

import numpy as np
import pytest

from mixed_kernel_svm.errors import DimensionMismatch, MissingParameter
from mixed_kernel_svm.schema import FrequencyTable
from mixed_kernel_svm.subkernels import (
    jaccard_matrix,
    k_jaccard,
    k_linear,
    k_rbf,
    k_univariate,
    linear_matrix,
    rbf_matrix,
    univariate_matrix,
)

PROBS = {1: 0.5, 2: 0.3, 3: 0.2}


def test_rbf_values():
    assert k_rbf([0.0], [1.0]) == pytest.approx(math.exp(-1.0))
    assert k_rbf([1.0, 2.0], [1.0, 2.0]) == 1.0
    assert k_rbf([0.0, 0.0], [1.0, 2.0]) == pytest.approx(math.exp(-5.0))
    assert 0.0 < k_rbf([0.0], [10.0]) <= 1.0


def test_linear_values():
    assert k_linear([1.0, 2.0], [3.0, 4.0]) == 11.0


def test_vector_kernels_reject_length_mismatch():
    with pytest.raises(DimensionMismatch):
        k_rbf([1.0, 2.0], [1.0])
    with pytest.raises(DimensionMismatch):
        k_linear([1.0], [1.0, 2.0])
    with pytest.raises(DimensionMismatch):
        k_jaccard([1, 0, 1], [1, 0])


def test_jaccard_counts_only_non_zero_positions():
    # n11 at positions 0 and 3, n01 at 1, n10 at 2
    x = [1, 0, 1, 1]
    y = [1, 1, 0, 1]
    assert k_jaccard(x, y) == pytest.approx(2 / 4)
    # 0-0 positions are ignored entirely
    assert k_jaccard([1, 0, 0, 0], [1, 0, 0, 0]) == 1.0
    assert k_jaccard([1, 0, 0], [0, 0, 1]) == 0.0


def test_jaccard_is_symmetric():
    rng = np.random.default_rng(1)
    for _ in range(20):
        x = rng.integers(0, 2, size=7)
        y = rng.integers(0, 2, size=7)
        assert k_jaccard(x, y) == k_jaccard(y, x)


def test_jaccard_empty_union_is_zero():
    assert k_jaccard([0, 0, 0], [0, 0, 0]) == 0.0


def test_jaccard_rejects_non_binary():
    with pytest.raises(ValueError):
        k_jaccard([1, 2], [1, 0])


def test_univariate_self_similarity_is_one_minus_p():
    for level, p in PROBS.items():
        assert k_univariate(level, level, PROBS) == pytest.approx(1.0 - p)


def test_univariate_mismatch_is_zero():
    assert k_univariate(1, 3, PROBS) == 0.0
    assert k_univariate(2.0, 1.0, PROBS) == 0.0


def test_univariate_missing_table():
    with pytest.raises(MissingParameter):
        k_univariate(1, 1, None)
    with pytest.raises(MissingParameter):
        k_univariate(1, 2, None)


def test_univariate_unseen_level():
    with pytest.raises(MissingParameter):
        k_univariate(7, 7, PROBS)

    table = FrequencyTable(PROBS, fallback=0.1)
    assert k_univariate(7, 7, table) == pytest.approx(0.9)


def test_matrix_forms_match_scalar_forms():
    rng = np.random.default_rng(2)
    A = rng.normal(size=(5, 3))
    B = rng.normal(size=(4, 3))
    Ab = rng.integers(0, 2, size=(5, 4)).astype(float)
    Bb = rng.integers(0, 2, size=(4, 4)).astype(float)
    a = rng.integers(1, 4, size=5).astype(float)
    b = rng.integers(1, 4, size=4).astype(float)

    K_rbf = rbf_matrix(A, B)
    K_lin = linear_matrix(A, B)
    K_jac = jaccard_matrix(Ab, Bb)
    K_uni = univariate_matrix(a, b, PROBS)
    for i in range(5):
        for j in range(4):
            assert K_rbf[i, j] == pytest.approx(k_rbf(A[i], B[j]))
            assert K_lin[i, j] == pytest.approx(k_linear(A[i], B[j]))
            assert K_jac[i, j] == pytest.approx(k_jaccard(Ab[i], Bb[j]))
            assert K_uni[i, j] == pytest.approx(k_univariate(a[i], b[j], PROBS))


def test_matrix_forms_reject_width_mismatch():
    with pytest.raises(DimensionMismatch):
        rbf_matrix(np.zeros((2, 3)), np.zeros((2, 2)))
    with pytest.raises(DimensionMismatch):
        jaccard_matrix(np.zeros((2, 3)), np.zeros((2, 2)))


def test_univariate_matrix_only_looks_up_matching_levels():
    # level 9 is unknown but never matches anything in b
    out = univariate_matrix([9.0, 1.0], [1.0, 2.0], PROBS)
    assert out.tolist() == [[0.0, 0.0], [0.5, 0.0]]
    with pytest.raises(MissingParameter):
        univariate_matrix([9.0], [9.0], PROBS)
