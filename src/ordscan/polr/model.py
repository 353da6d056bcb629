"""Fitted null model shared by every test unit of a scan."""

from dataclasses import dataclass, field
from pathlib import Path

import numpy as np
from loguru import logger

from ordscan.core.config import parse_link
from ordscan.errors import ConfigurationError
from ordscan.io.covariate import read_covariate_table
from ordscan.polr.fit import fit_polr, observed_information
from ordscan.polr.score import OrdinalScoreTest


@dataclass
class FittedNullModel:
    """Proportional-odds model fitted without any genetic covariate.

    Read-only for the duration of a scan. Engines copy what they need into
    their own buffers and never write back.

    Attributes:
        X: Design matrix (n, p), no intercept column.
        y: Response categories coded 1..K.
        link: Link function name.
        weights: Prior sample weights (n,).
        theta: Ordered thresholds (K-1,).
        beta: Covariate coefficients (p,).
        loglik: Weighted log-likelihood.
        n_iter: Optimizer iterations used by the fit.
        covariate_names: Names of the columns of X.
        categories: Original response labels, in category order.
        rows: Rows of the source table kept for the fit, when fitted from a
            table with incomplete rows.
    """

    X: np.ndarray
    y: np.ndarray
    link: str
    weights: np.ndarray
    theta: np.ndarray
    beta: np.ndarray
    loglik: float
    n_iter: int = 0
    covariate_names: list[str] = field(default_factory=list)
    categories: np.ndarray | None = None
    rows: np.ndarray | None = None

    @property
    def n(self) -> int:
        return self.X.shape[0]

    @property
    def p(self) -> int:
        return self.X.shape[1]

    @property
    def n_categories(self) -> int:
        return len(self.theta) + 1

    @property
    def deviance(self) -> float:
        """-2 x weighted log-likelihood."""
        return -2.0 * self.loglik

    @property
    def coefficients(self) -> np.ndarray:
        """Thresholds followed by covariate coefficients."""
        return np.concatenate([self.theta, self.beta])

    @property
    def coef_names(self) -> list[str]:
        names = [f"theta_{j + 1}" for j in range(len(self.theta))]
        return names + list(self.covariate_names)

    def standard_errors(self) -> np.ndarray:
        """Standard errors from the inverse observed information."""
        info = observed_information(
            self.link, self.theta, self.beta, self.X, self.y - 1, self.weights
        )
        cov = np.linalg.pinv(info, hermitian=True)
        return np.sqrt(np.maximum(np.diag(cov), 0.0))

    def score_test(self, max_width: int = 1) -> OrdinalScoreTest:
        """Score-test context for blocks of up to ``max_width`` columns."""
        return OrdinalScoreTest(self, max_width=max_width)


def encode_response(y: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Code ordered response labels as categories 1..K.

    Returns:
        Tuple of (codes, labels) where labels[k - 1] is the label of code k.

    Raises:
        ConfigurationError: On missing values or fewer than two categories.
    """
    y = np.asarray(y)
    if y.dtype.kind == "f" and np.any(np.isnan(y)):
        raise ConfigurationError("response has missing values; drop those samples")
    labels = np.unique(y)
    if len(labels) < 2:
        raise ConfigurationError(
            f"ordinal response needs at least 2 categories, found {len(labels)}"
        )
    return np.searchsorted(labels, y).astype(np.int64) + 1, labels


def fit_null_model(
    y: np.ndarray,
    X: np.ndarray | None = None,
    link: str = "logit",
    weights: np.ndarray | None = None,
    maxiter: int = 4000,
    covariate_names: list[str] | None = None,
) -> FittedNullModel:
    """Fit the proportional-odds null model.

    Args:
        y: Ordered response; any sortable labels (e.g. 1..K).
        X: Covariates (n, p) without an intercept column, or None.
        link: "logit" (default), "probit", "cloglog" or "cauchit".
        weights: Prior sample weights, default all ones.
        maxiter: Optimizer iteration cap.
        covariate_names: Names for the columns of X.

    Returns:
        FittedNullModel.

    Raises:
        ConfigurationError: On mismatched shapes, missing values, a constant
            covariate column or invalid weights.
        ConvergenceError: If the optimizer does not converge.
    """
    link = parse_link(link)
    codes, labels = encode_response(y)
    n = len(codes)

    X = np.empty((n, 0)) if X is None else np.asarray(X, dtype=np.float64)
    if X.ndim == 1:
        X = X[:, np.newaxis]
    if X.shape[0] != n:
        raise ConfigurationError(
            f"covariate matrix has {X.shape[0]} rows but response has {n}"
        )
    if np.any(~np.isfinite(X)):
        raise ConfigurationError("covariates have missing values; drop those samples")
    constant = [j for j in range(X.shape[1]) if np.ptp(X[:, j]) == 0]
    if constant:
        raise ConfigurationError(
            f"covariate column(s) {constant} are constant; the thresholds already "
            f"act as the intercept"
        )

    if weights is None:
        w = np.ones(n)
    else:
        w = np.asarray(weights, dtype=np.float64)
        if w.shape != (n,) or np.any(~np.isfinite(w)) or np.any(w < 0):
            raise ConfigurationError(
                "weights must be a finite, non-negative vector of length n"
            )

    names = covariate_names or [f"x{j + 1}" for j in range(X.shape[1])]
    if len(names) != X.shape[1]:
        raise ConfigurationError(
            f"{len(names)} covariate names given for {X.shape[1]} columns"
        )

    fit = fit_polr(codes - 1, X, len(labels), link=link, weights=w, maxiter=maxiter)
    logger.info(
        f"Null model: n={n}, p={X.shape[1]}, K={len(labels)}, link={link}, "
        f"loglik={fit.loglik:.4f}, iterations={fit.n_iter}"
    )
    return FittedNullModel(
        X=X,
        y=codes,
        link=link,
        weights=w,
        theta=fit.theta,
        beta=fit.beta,
        loglik=fit.loglik,
        n_iter=fit.n_iter,
        covariate_names=list(names),
        categories=labels,
    )


def fit_null_from_table(
    path: Path,
    response: str,
    covariates: list[str] | None = None,
    link: str = "logit",
    weights_column: str | None = None,
    delimiter: str = ",",
    maxiter: int = 4000,
) -> FittedNullModel:
    """Fit the null model from columns of a covariate table.

    Rows with a missing value in any used column are dropped; their indices
    are excluded from ``model.rows``, which can be passed as the sample
    selector of a scan.
    """
    table = read_covariate_table(path, delimiter=delimiter)
    covariates = list(covariates or [])
    used = [response] + covariates + ([weights_column] if weights_column else [])
    values = table.select(used)
    complete = ~np.any(np.isnan(values), axis=1)
    rows = np.flatnonzero(complete)
    if len(rows) < table.n_rows:
        logger.warning(
            f"Dropped {table.n_rows - len(rows)} of {table.n_rows} rows with missing "
            f"values; pass model.rows as the sample selector of the scan"
        )

    y = table.column(response)[rows]
    X = table.select(covariates)[rows]
    w = table.column(weights_column)[rows] if weights_column else None
    model = fit_null_model(
        y, X, link=link, weights=w, maxiter=maxiter, covariate_names=covariates
    )
    model.rows = rows
    return model
