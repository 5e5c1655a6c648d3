"""
OPLS-DA: Orthogonal Projections to Latent Structures Discriminant Analysis.

Fits a single-response OPLS model to a two-class problem and selects the
number of orthogonal components by cross-validation.

Statistical Background:
    PLS-DA regresses a 0/1 class indicator on the feature matrix through a
    small number of latent components. OPLS (Trygg & Wold, 2002) splits the
    systematic variation in X into:

        - a predictive part, correlated with the response (1 component for a
          single binary response)
        - orthogonal parts, systematic X variation uncorrelated with the
          response (e.g., age or batch structure shared by both classes)

    Removing the orthogonal parts before the predictive component is fitted
    concentrates the class separation in one score vector, which makes the
    predictive loadings directly interpretable as per-feature importance.

Algorithm (NIPALS for a single response, on unit-variance scaled data):

    w  = X'y / ||X'y||                         predictive weight
    for each orthogonal component:
        t  = Xw,   p = X't / t't                predictive score / loading
        wo = p - (w'p) w,  wo /= ||wo||         orthogonal weight
        to = X wo, po = X'to / to'to            orthogonal score / loading
        X  = X - to po'                         remove orthogonal variation
        w  = X'y / ||X'y||                      recompute on filtered X
    t = Xw, p = X't / t't, c = y't / t't        final predictive component

    New samples are filtered with the stored (wo, po) pairs and projected
    onto w; the prediction is t * c, rescaled to the response units.

    Missing values are handled the NIPALS way: scaling statistics use the
    observed entries of each column, and every product X'v or Xv sums over
    observed entries only, divided by the matching partial v'v.

Model Selection:
    Candidate orthogonal counts 0, 1, 2, ... are scored by cross-validated
    Q2 = 1 - PRESS / SS (leave-one-out by default: one fold per sample).
    Every fold refits scaling, filtering and the predictive component on
    its training rows only. The count increases while Q2 improves by at
    least ``min_q2_improvement`` and stops at the first candidate that does
    not improve (or cannot be extracted). Before that, the predictive
    component alone must be significant (R2Y and Q2 above the configured
    floors), mirroring the automatic mode of common OPLS toolkits; a
    comparison with no significant predictive component raises
    ModelFitError.

Permutation Test:
    With ``n_permutations > 0`` the selected model is refitted on permuted
    labels and pR2Y / pQ2 report how often a permuted model matches the
    observed fit: (1 + #{perm >= observed}) / (1 + n_valid_permutations).

Examples:
    >>> fitter = OPLSDA()
    >>> model = fitter.fit(fm.features, fm.labels, positive_label="MM1")
    >>> model.n_orthogonal, model.metrics.q2_cum
    (1, 0.74)
"""

from __future__ import annotations

import logging
import time
import warnings
from dataclasses import dataclass, field
from typing import Protocol, Sequence

import numpy as np
import pandas as pd
from numpy.typing import NDArray
from sklearn.model_selection import KFold, LeaveOneOut

from vipranker.core.exceptions import ModelFitError

logger = logging.getLogger(__name__)

__all__ = [
    'OPLSDA',
    'OPLSDAModel',
    'QualityMetrics',
    'ProjectionFitter',
    'encode_labels',
]

_EPS = 1e-10


# =============================================================================
# Result Types
# =============================================================================


@dataclass(frozen=True)
class QualityMetrics:
    """
    Summary statistics of a fitted OPLS-DA model.

    Attributes:
        r2x_cum: Fraction of X variance explained by all components
        r2y_cum: Fraction of response variance explained
        q2_cum: Cross-validated fraction of response variance predicted
        rmsee: Root mean squared error of estimation, sqrt(SSE / (n - 1))
        n_predictive: Number of predictive components ("pre")
        n_orthogonal: Number of orthogonal components ("ort")
        p_r2y: Permutation p-value of R2Y (NaN when not computed)
        p_q2: Permutation p-value of Q2 (NaN when not computed)
    """
    r2x_cum: float
    r2y_cum: float
    q2_cum: float
    rmsee: float
    n_predictive: int
    n_orthogonal: int
    p_r2y: float = float("nan")
    p_q2: float = float("nan")

    def as_dict(self) -> dict[str, float]:
        """Metrics keyed by their conventional report names."""
        return {
            "R2X(cum)": self.r2x_cum,
            "R2Y(cum)": self.r2y_cum,
            "Q2(cum)": self.q2_cum,
            "RMSEE": self.rmsee,
            "pre": self.n_predictive,
            "ort": self.n_orthogonal,
            "pR2Y": self.p_r2y,
            "pQ2": self.p_q2,
        }


@dataclass(frozen=True, eq=False)
class _OPLSCore:
    """Arrays of one OPLS fit, in scaled units."""
    x_mean: NDArray[np.float64]
    x_scale: NDArray[np.float64]
    y_mean: float
    y_scale: float
    w_pred: NDArray[np.float64]
    p_pred: NDArray[np.float64]
    t_pred: NDArray[np.float64]
    c_pred: float
    w_orth: NDArray[np.float64]
    p_orth: NDArray[np.float64]
    t_orth: NDArray[np.float64]
    r2x: float
    r2y: float
    ssy_pred: float
    sse: float


@dataclass(frozen=True, eq=False)
class OPLSDAModel:
    """
    A fitted OPLS-DA model for one comparison.

    Attributes:
        feature_names: Features in column order
        positive_label: Label encoded as 1
        negative_label: Label encoded as 0
        n_predictive: Number of predictive components (1)
        n_orthogonal: Number of orthogonal components selected
        predictive_weights: (p, n_predictive) weight vectors
        predictive_loadings: (p, n_predictive) loading vectors
        predictive_scores: (n, n_predictive) score vectors
        orthogonal_weights: (p, n_orthogonal)
        orthogonal_loadings: (p, n_orthogonal)
        orthogonal_scores: (n, n_orthogonal)
        response_variance_explained: Response sum of squares explained by
            each predictive component (scaled units)
        metrics: QualityMetrics of the selected model
        q2_trace: Cross-validated Q2 per evaluated orthogonal count
        cv_folds: Number of cross-validation folds used
    """
    feature_names: list[str]
    positive_label: str
    negative_label: str
    n_predictive: int
    n_orthogonal: int
    predictive_weights: NDArray[np.float64]
    predictive_loadings: NDArray[np.float64]
    predictive_scores: NDArray[np.float64]
    orthogonal_weights: NDArray[np.float64]
    orthogonal_loadings: NDArray[np.float64]
    orthogonal_scores: NDArray[np.float64]
    response_variance_explained: NDArray[np.float64]
    metrics: QualityMetrics
    q2_trace: dict[int, float]
    cv_folds: int
    _core: _OPLSCore = field(repr=False, compare=False)

    @property
    def n_features(self) -> int:
        return len(self.feature_names)

    def predict(self, features: pd.DataFrame | NDArray) -> NDArray[np.float64]:
        """
        Predict the continuous class response for new samples.

        Values near 1 indicate the positive label, near 0 the negative label.

        Args:
            features: Samples × features with the training column order
                (DataFrames are reordered by column name)
        """
        if isinstance(features, pd.DataFrame):
            missing = [f for f in self.feature_names if f not in features.columns]
            if missing:
                raise KeyError(f"Missing features for prediction: {missing[:10]}")
            features = features[self.feature_names].to_numpy(dtype=np.float64)
        X = np.atleast_2d(np.asarray(features, dtype=np.float64))
        if X.shape[1] != self.n_features:
            raise ValueError(
                f"Expected {self.n_features} features, got {X.shape[1]}"
            )
        return _predict_core(self._core, X)

    def predict_labels(self, features: pd.DataFrame | NDArray) -> NDArray:
        """Predict class labels by thresholding the response at 0.5."""
        response = self.predict(features)
        return np.where(response >= 0.5, self.positive_label, self.negative_label)


class ProjectionFitter(Protocol):
    """Interface of a numeric backend producing OPLSDAModel objects."""

    def fit(
        self,
        features: pd.DataFrame | NDArray,
        labels: Sequence | pd.Series,
        positive_label: str | None = None,
        rng: np.random.Generator | None = None,
    ) -> OPLSDAModel:
        ...


# =============================================================================
# Numerical Core
# =============================================================================


def encode_labels(
    labels: Sequence | pd.Series,
    positive_label: str | None = None,
) -> tuple[NDArray[np.float64], str, str]:
    """
    Encode two-class labels as a 0/1 response.

    Args:
        labels: One label per sample
        positive_label: Label to encode as 1. Defaults to the second label
            in sorted order.

    Returns:
        (y, positive_label, negative_label)

    Raises:
        ModelFitError: If the labels do not contain exactly two classes
    """
    values = np.asarray(labels).astype(str)
    classes = sorted(set(values.tolist()))
    if len(classes) != 2:
        raise ModelFitError(f"OPLS-DA needs exactly two classes, got {len(classes)}: {classes}")

    if positive_label is None:
        negative, positive = classes
    else:
        positive = str(positive_label)
        if positive not in classes:
            raise ModelFitError(f"Positive label '{positive}' not among labels {classes}")
        negative = classes[0] if classes[1] == positive else classes[1]

    y = (values == positive).astype(np.float64)
    return y, positive, negative


def _scale_stats(X: NDArray[np.float64]) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Column means and standard deviations (ddof=1) over the observed entries."""
    observed = ~np.isnan(X)
    n_obs = observed.sum(axis=0)
    X0 = np.where(observed, X, 0.0)
    x_mean = X0.sum(axis=0) / np.maximum(n_obs, 1)
    dev = np.where(observed, X - x_mean, 0.0)
    var = (dev ** 2).sum(axis=0) / np.maximum(n_obs - 1, 1)
    x_sd = np.where(n_obs > 1, np.sqrt(var), 0.0)
    return x_mean, x_sd


def _project(X: NDArray[np.float64], v: NDArray[np.float64], axis: int) -> NDArray[np.float64]:
    """
    NIPALS regression of the rows (axis=0) or columns (axis=1) of X on v.

    Only observed entries enter the sums, so a missing value shrinks the
    denominator instead of counting as zero. With complete data this is
    ``X v / v'v`` (axis=0) or ``X' v / v'v`` (axis=1).
    """
    observed = ~np.isnan(X)
    X0 = np.where(observed, X, 0.0)
    M = observed.astype(np.float64)
    if axis == 1:
        X0, M = X0.T, M.T
    num = X0 @ v
    den = M @ (v ** 2)
    return np.divide(num, den, out=np.zeros_like(num), where=den > _EPS)


def _fit_core(X: NDArray[np.float64], y: NDArray[np.float64], n_orthogonal: int) -> _OPLSCore:
    """
    Fit one OPLS model with a fixed number of orthogonal components.

    Missing values (NaN) are allowed in X and are skipped in every sum.

    Raises:
        ModelFitError: If the data have no variance or a component cannot
            be extracted
    """
    n, p = X.shape
    if n < 2:
        raise ModelFitError(f"OPLS needs at least 2 samples, got {n}")

    x_mean, x_sd = _scale_stats(X)
    x_scale = np.where(x_sd > _EPS, x_sd, 1.0)
    Xs = (X - x_mean) / x_scale

    y_mean = float(y.mean())
    y_sd = float(y.std(ddof=1))
    if y_sd <= _EPS:
        raise ModelFitError("Response has no variance (single class in training data)")
    ys = (y - y_mean) / y_sd

    ss_x = float(np.nansum(Xs ** 2))
    if ss_x <= _EPS:
        raise ModelFitError("Feature matrix has no variance")
    ss_y = float(np.sum(ys ** 2))

    Xr = Xs.copy()
    w_orth = np.zeros((p, n_orthogonal))
    p_orth = np.zeros((p, n_orthogonal))
    t_orth = np.zeros((n, n_orthogonal))

    for k in range(n_orthogonal):
        w = _unit_weight(Xr, ys)
        t = _project(Xr, w, axis=0)
        if float(t @ t) <= _EPS:
            raise ModelFitError(f"Predictive score vanished before orthogonal component {k + 1}")
        p_vec = _project(Xr, t, axis=1)

        wo = p_vec - float(w @ p_vec) * w
        wo_norm = float(np.linalg.norm(wo))
        if wo_norm <= _EPS:
            raise ModelFitError(f"Cannot extract orthogonal component {k + 1}: no orthogonal variation left")
        wo = wo / wo_norm

        to = _project(Xr, wo, axis=0)
        if float(to @ to) <= _EPS:
            raise ModelFitError(f"Orthogonal score {k + 1} vanished")
        po = _project(Xr, to, axis=1)

        Xr = Xr - np.outer(to, po)
        w_orth[:, k] = wo
        p_orth[:, k] = po
        t_orth[:, k] = to

    w = _unit_weight(Xr, ys)
    t = _project(Xr, w, axis=0)
    tt = float(t @ t)
    if tt <= _EPS:
        raise ModelFitError("Predictive score vanished: no predictive component can be extracted")
    p_vec = _project(Xr, t, axis=1)
    c = float(ys @ t) / tt

    residual = Xr - np.outer(t, p_vec)
    y_hat = t * c
    sse_scaled = float(np.sum((ys - y_hat) ** 2))

    return _OPLSCore(
        x_mean=x_mean,
        x_scale=x_scale,
        y_mean=y_mean,
        y_scale=y_sd,
        w_pred=w,
        p_pred=p_vec,
        t_pred=t,
        c_pred=c,
        w_orth=w_orth,
        p_orth=p_orth,
        t_orth=t_orth,
        r2x=1.0 - float(np.nansum(residual ** 2)) / ss_x,
        r2y=1.0 - sse_scaled / ss_y,
        ssy_pred=float(np.sum(y_hat ** 2)),
        sse=sse_scaled * y_sd ** 2,
    )


def _unit_weight(X: NDArray[np.float64], y: NDArray[np.float64]) -> NDArray[np.float64]:
    w = _project(X, y, axis=1)
    norm = float(np.linalg.norm(w))
    if norm <= _EPS:
        raise ModelFitError("Features carry no covariance with the response (rank-deficient)")
    return w / norm


def _predict_core(core: _OPLSCore, X: NDArray[np.float64]) -> NDArray[np.float64]:
    Xs = (X - core.x_mean) / core.x_scale
    for k in range(core.w_orth.shape[1]):
        to = _project(Xs, core.w_orth[:, k], axis=0)
        Xs = Xs - np.outer(to, core.p_orth[:, k])
    t = _project(Xs, core.w_pred, axis=0)
    return t * core.c_pred * core.y_scale + core.y_mean


# =============================================================================
# Fitter
# =============================================================================


class OPLSDA:
    """
    OPLS-DA fitter with cross-validated orthogonal component selection.

    Args:
        cv_folds: Number of cross-validation folds. None (default) means
            leave-one-out, i.e. one fold per sample.
        max_orthogonal: Upper bound on orthogonal components tried
        min_q2_improvement: Minimum Q2 gain required to accept one more
            orthogonal component
        significance_r2y: Minimum R2Y of the predictive component
        significance_q2: Q2 of the predictive component must exceed this
        n_permutations: Label permutations for pR2Y / pQ2 (0 disables)
        time_budget: Wall-clock seconds allowed per fit (None = unlimited)
        seed: Seed for the permutation generator when fit() gets no rng

    Examples:
        >>> fitter = OPLSDA(cv_folds=None, n_permutations=20)
        >>> model = fitter.fit(X, labels, positive_label="CJD")
        >>> model.metrics.as_dict()["Q2(cum)"]
        0.81
    """

    def __init__(
        self,
        cv_folds: int | None = None,
        max_orthogonal: int = 9,
        min_q2_improvement: float = 0.01,
        significance_r2y: float = 0.01,
        significance_q2: float = 0.0,
        n_permutations: int = 20,
        time_budget: float | None = None,
        seed: int | None = 114,
    ):
        if cv_folds is not None and cv_folds < 2:
            raise ValueError(f"cv_folds must be >= 2 or None (leave-one-out), got {cv_folds}")
        if max_orthogonal < 0:
            raise ValueError(f"max_orthogonal must be >= 0, got {max_orthogonal}")
        if n_permutations < 0:
            raise ValueError(f"n_permutations must be >= 0, got {n_permutations}")
        if time_budget is not None and time_budget <= 0:
            raise ValueError(f"time_budget must be positive, got {time_budget}")

        self.cv_folds = cv_folds
        self.max_orthogonal = max_orthogonal
        self.min_q2_improvement = min_q2_improvement
        self.significance_r2y = significance_r2y
        self.significance_q2 = significance_q2
        self.n_permutations = n_permutations
        self.time_budget = time_budget
        self.seed = seed

    def fit(
        self,
        features: pd.DataFrame | NDArray,
        labels: Sequence | pd.Series,
        positive_label: str | None = None,
        rng: np.random.Generator | None = None,
    ) -> OPLSDAModel:
        """
        Fit OPLS-DA with cross-validated orthogonal component selection.

        Args:
            features: Samples × features matrix
            labels: Two-class label per sample
            positive_label: Label encoded as 1 (default: second sorted label)
            rng: Generator for the permutation test (default: seeded from
                ``self.seed``)

        Returns:
            OPLSDAModel with the selected number of orthogonal components

        Raises:
            ModelFitError: If cross-validation cannot be evaluated, no
                significant predictive component exists, or the time
                budget is exceeded
        """
        deadline = None if self.time_budget is None else time.monotonic() + self.time_budget

        if isinstance(features, pd.DataFrame):
            feature_names = [str(c) for c in features.columns]
            X = features.to_numpy(dtype=np.float64)
        else:
            X = np.asarray(features, dtype=np.float64)
            feature_names = [f"feature_{i}" for i in range(X.shape[1])]

        if X.ndim != 2:
            raise ModelFitError(f"Feature matrix must be 2D, got shape {X.shape}")
        if np.isinf(X).any():
            raise ModelFitError("Feature matrix contains infinite values")
        unobserved = np.isnan(X).all(axis=0)
        if unobserved.any():
            raise ModelFitError(f"{int(unobserved.sum())} feature(s) have no observed values")

        y, positive, negative = encode_labels(labels, positive_label)
        n, p = X.shape
        if len(y) != n:
            raise ModelFitError(f"{len(y)} labels for {n} samples")

        n_constant = int(np.sum(_scale_stats(X)[1] <= _EPS))
        n_missing = int(np.isnan(X).sum())
        if n_missing:
            logger.info(f"{n_missing} missing values skipped by NIPALS ({n_missing / X.size:.1%} of the matrix)")
        if n_constant:
            logger.warning(f"{n_constant} of {p} features have zero variance; their VIP will be 0")

        splits = self._splits(n)
        min_train = min(len(train) for train, _ in splits)
        bound = max(0, min(self.max_orthogonal, p - 1, min_train - 2))

        # Predictive component alone must carry signal
        q2_trace = {0: self._cross_validate(X, y, 0, splits, deadline)}
        core = _fit_core(X, y, 0)
        if core.r2y < self.significance_r2y or q2_trace[0] <= self.significance_q2:
            raise ModelFitError(
                f"Predictive component not significant: R2Y={core.r2y:.3f}, "
                f"Q2={q2_trace[0]:.3f} (need R2Y >= {self.significance_r2y}, "
                f"Q2 > {self.significance_q2})"
            )

        selected = 0
        for n_orth in range(1, bound + 1):
            try:
                q2 = self._cross_validate(X, y, n_orth, splits, deadline)
            except _BudgetExceeded:
                raise
            except ModelFitError as e:
                logger.debug(f"Stopping at {selected} orthogonal components: {e}")
                break
            q2_trace[n_orth] = q2
            if q2 - q2_trace[selected] < self.min_q2_improvement:
                break
            selected = n_orth

        core = _fit_core(X, y, selected)
        q2 = q2_trace[selected]

        p_r2y, p_q2 = float("nan"), float("nan")
        if self.n_permutations > 0:
            if rng is None:
                rng = np.random.default_rng(self.seed)
            p_r2y, p_q2 = self._permutation_test(
                X, y, selected, splits, core.r2y, q2, rng, deadline
            )

        if core.r2y - q2 > 0.3:
            warnings.warn(
                f"R2Y - Q2 gap of {core.r2y - q2:.2f} suggests overfitting "
                f"({positive} vs {negative}, n={n}, p={p})",
                stacklevel=2,
            )

        metrics = QualityMetrics(
            r2x_cum=core.r2x,
            r2y_cum=core.r2y,
            q2_cum=q2,
            rmsee=float(np.sqrt(core.sse / (n - 1))),
            n_predictive=1,
            n_orthogonal=selected,
            p_r2y=p_r2y,
            p_q2=p_q2,
        )

        logger.info(
            f"OPLS-DA {positive} vs {negative}: 1 + {selected} components, "
            f"R2X={metrics.r2x_cum:.3f}, R2Y={metrics.r2y_cum:.3f}, Q2={metrics.q2_cum:.3f}"
        )

        return OPLSDAModel(
            feature_names=feature_names,
            positive_label=positive,
            negative_label=negative,
            n_predictive=1,
            n_orthogonal=selected,
            predictive_weights=core.w_pred.reshape(-1, 1),
            predictive_loadings=core.p_pred.reshape(-1, 1),
            predictive_scores=core.t_pred.reshape(-1, 1),
            orthogonal_weights=core.w_orth,
            orthogonal_loadings=core.p_orth,
            orthogonal_scores=core.t_orth,
            response_variance_explained=np.array([core.ssy_pred]),
            metrics=metrics,
            q2_trace=q2_trace,
            cv_folds=len(splits),
            _core=core,
        )

    def _splits(self, n: int) -> list[tuple[NDArray, NDArray]]:
        """Cross-validation folds (leave-one-out unless cv_folds is set)."""
        if self.cv_folds is None or self.cv_folds == n:
            splitter = LeaveOneOut()
        elif self.cv_folds > n:
            raise ModelFitError(f"Cannot run {self.cv_folds}-fold cross-validation on {n} samples")
        else:
            splitter = KFold(n_splits=self.cv_folds)
        return list(splitter.split(np.zeros((n, 1))))

    def _cross_validate(
        self,
        X: NDArray[np.float64],
        y: NDArray[np.float64],
        n_orthogonal: int,
        splits: list[tuple[NDArray, NDArray]],
        deadline: float | None,
    ) -> float:
        """Cross-validated Q2 = 1 - PRESS / SS for a fixed orthogonal count."""
        press = 0.0
        for fold, (train, test) in enumerate(splits):
            _check_deadline(deadline)
            if len(np.unique(y[train])) < 2:
                raise ModelFitError(
                    f"Cross-validation fold {fold + 1} has a single class in its training set"
                )
            core = _fit_core(X[train], y[train], n_orthogonal)
            y_hat = _predict_core(core, X[test])
            press += float(np.sum((y[test] - y_hat) ** 2))

        ss = float(np.sum((y - y.mean()) ** 2))
        return 1.0 - press / ss

    def _permutation_test(
        self,
        X: NDArray[np.float64],
        y: NDArray[np.float64],
        n_orthogonal: int,
        splits: list[tuple[NDArray, NDArray]],
        r2y_observed: float,
        q2_observed: float,
        rng: np.random.Generator,
        deadline: float | None,
    ) -> tuple[float, float]:
        """Permutation p-values for R2Y and Q2 of the selected model."""
        n_r2y = 0
        n_q2 = 0
        n_valid = 0
        n_failed = 0

        for _ in range(self.n_permutations):
            _check_deadline(deadline)
            y_perm = rng.permutation(y)
            try:
                core = _fit_core(X, y_perm, n_orthogonal)
                q2 = self._cross_validate(X, y_perm, n_orthogonal, splits, deadline)
            except _BudgetExceeded:
                raise
            except ModelFitError as e:
                logger.debug(f"Permuted model failed: {e}")
                n_failed += 1
                continue
            n_valid += 1
            n_r2y += core.r2y >= r2y_observed
            n_q2 += q2 >= q2_observed

        if n_failed:
            logger.warning(f"{n_failed}/{self.n_permutations} permuted models could not be fitted")
        if n_valid == 0:
            return float("nan"), float("nan")

        return (1 + n_r2y) / (1 + n_valid), (1 + n_q2) / (1 + n_valid)


class _BudgetExceeded(ModelFitError):
    """Raised when a fit runs past its wall-clock budget."""
    pass


def _check_deadline(deadline: float | None) -> None:
    if deadline is not None and time.monotonic() > deadline:
        raise _BudgetExceeded("Exceeded per-comparison time budget")
