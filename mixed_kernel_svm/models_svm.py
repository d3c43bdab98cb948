"""
Mixed-kernel SVM.

Architecture:
1. Kernel configuration -> RBF / Jaccard / univariate group per feature, frozen on the training set.
2. Gamma (quartile heuristic) -> scale of the exponential aggregate kernel.
3. Gram matrix -> materialized once, shared by every CV fold.
4. C (k-fold grid search) -> regularization for the final SVC(kernel='precomputed').
"""

import numpy as np
from sklearn.base import BaseEstimator, ClassifierMixin
from sklearn.svm import SVC

from . import config
from .estimation import estimate_c, estimate_gamma
from .kernels import AggregateKernel, InnerKernel
from .schema import build_feature_configuration


class MixedKernelSVM(BaseEstimator, ClassifierMixin):
    """
    SVM over mixed numeric/categorical records.

    gamma and C are estimated during fit unless given explicitly.
    """

    def __init__(self, schema=None, gamma=None, C=None, c_grid=None, n_folds=None,
                 overrides=None, unseen=None, random_state=None, n_jobs=None):
        self.schema = schema
        self.gamma = gamma
        self.C = C
        self.c_grid = c_grid
        self.n_folds = n_folds
        self.overrides = overrides
        self.unseen = unseen
        self.random_state = random_state
        self.n_jobs = n_jobs

    def fit(self, X, y):
        if self.schema is None:
            raise ValueError("MixedKernelSVM needs a feature schema (see data.build_schema)")
        X = np.asarray(X, dtype=np.float64)
        y = np.asarray(y)
        self.classes_ = np.unique(y)

        self.configuration_ = build_feature_configuration(
            X, self.schema, overrides=self.overrides, unseen=self.unseen
        )
        if self.gamma is None:
            self.gamma_ = estimate_gamma(X, self.configuration_, n_jobs=self.n_jobs)
        else:
            self.gamma_ = float(self.gamma)

        self.kernel_ = AggregateKernel(InnerKernel(self.configuration_), self.gamma_)
        precomputed = self.kernel_.precompute(X)
        self.gram_ = precomputed.gram

        if self.C is None:
            search = estimate_c(
                precomputed,
                y,
                self.c_grid if self.c_grid is not None else config.C_GRID,
                n_folds=self.n_folds,
                random_state=self.random_state,
                n_jobs=self.n_jobs,
            )
            self.C_ = search.C
            self.cv_scores_ = search.scores
        else:
            self.C_ = float(self.C)
            self.cv_scores_ = ()

        self.X_fit_ = X
        self.model_ = SVC(kernel='precomputed', C=self.C_)
        self.model_.fit(self.gram_, y)
        return self

    def _cross_kernel(self, X):
        return self.kernel_(np.asarray(X, dtype=np.float64), self.X_fit_)

    def decision_function(self, X):
        return self.model_.decision_function(self._cross_kernel(X))

    def predict(self, X):
        return self.model_.predict(self._cross_kernel(X))


def get_mixed_svm(schema, random_state=None):
    """Factory with the project defaults."""
    return MixedKernelSVM(
        schema=schema,
        c_grid=config.C_GRID,
        n_folds=config.N_FOLDS,
        random_state=config.SEED if random_state is None else random_state,
        n_jobs=config.N_JOBS,
    )
