"""Maximum-likelihood fitting of the proportional-odds (cumulative link) model.

Model: P(Y <= j | x) = F(theta_j - x'beta) for categories j = 1..K-1, with F
the link distribution. The design matrix carries no intercept column; the
thresholds theta play that role.

The negative log-likelihood and its gradient are JIT-compiled with JAX and
handed to ``scipy.optimize.minimize`` (BFGS). Thresholds are optimized in an
unconstrained parameterization, theta_1 followed by log increments, so the
ordering theta_1 < ... < theta_{K-1} holds at every iterate.

Type annotations use jaxtyping for shape documentation:
    n = n_samples, p = n_covariates, k = n_categories
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import jax
import jax.numpy as jnp
import numpy as np
from jax import jit
from loguru import logger
from scipy.optimize import minimize

from ordscan.errors import ConvergenceError
from ordscan.polr.links import link_cdf, link_quantile

if TYPE_CHECKING:
    from jaxtyping import Array, Float, Int

# Category probabilities are floored here before taking logs
_PROB_FLOOR = 1e-300

# Gradient (sup norm) accepted as stationary, relative to max(1, |nll|)
_GRAD_RTOL = 1e-4


def unpack_params(params, n_cat: int):
    """Map unconstrained parameters to (theta, beta)."""
    increments = jnp.exp(params[1 : n_cat - 1])
    theta = params[0] + jnp.concatenate([jnp.zeros(1), jnp.cumsum(increments)])
    return theta, params[n_cat - 1 :]


def pack_params(theta: np.ndarray, beta: np.ndarray) -> np.ndarray:
    """Inverse of unpack_params for strictly increasing thresholds."""
    theta = np.asarray(theta, dtype=np.float64)
    steps = np.maximum(np.diff(theta), 1e-8)
    return np.concatenate([theta[:1], np.log(steps), np.asarray(beta, np.float64)])


def category_probability(
    link: str,
    theta: Float[Array, " k1"],
    eta: Float[Array, " n"],
    y: Int[Array, " n"],
) -> Float[Array, " n"]:
    """Probability of each sample's observed category (0-based ``y``).

    Infinite outer thresholds are replaced before calling the link CDF so
    gradients stay finite (the double-where pattern).
    """
    upper = jnp.concatenate([theta, jnp.array([jnp.inf])])[y]
    lower = jnp.concatenate([jnp.array([-jnp.inf]), theta])[y]
    top = jnp.isinf(upper)
    bottom = jnp.isinf(lower)
    cdf_hi = jnp.where(top, 1.0, link_cdf(link, jnp.where(top, 0.0, upper - eta)))
    cdf_lo = jnp.where(
        bottom, 0.0, link_cdf(link, jnp.where(bottom, 0.0, lower - eta))
    )
    return jnp.maximum(cdf_hi - cdf_lo, _PROB_FLOOR)


def _negloglik(link, n_cat, params, X, y, w):
    theta, beta = unpack_params(params, n_cat)
    return -jnp.sum(w * jnp.log(category_probability(link, theta, X @ beta, y)))


def _negloglik_natural(link, n_cat, coef, X, y, w):
    theta, beta = coef[: n_cat - 1], coef[n_cat - 1 :]
    return -jnp.sum(w * jnp.log(category_probability(link, theta, X @ beta, y)))


negloglik_value_and_grad = jit(
    jax.value_and_grad(_negloglik, argnums=2), static_argnums=(0, 1)
)

negloglik_hessian = jit(
    jax.hessian(_negloglik_natural, argnums=2), static_argnums=(0, 1)
)


@dataclass
class PolrFit:
    """Result of a proportional-odds fit.

    Attributes:
        theta: Ordered thresholds (K-1,).
        beta: Covariate coefficients (p,).
        loglik: Weighted log-likelihood at the optimum.
        n_iter: Optimizer iterations.
    """

    theta: np.ndarray
    beta: np.ndarray
    loglik: float
    n_iter: int

    @property
    def deviance(self) -> float:
        return -2.0 * self.loglik


def starting_thresholds(y: np.ndarray, weights: np.ndarray, n_cat: int, link: str):
    """Thresholds matching the marginal cumulative category proportions."""
    totals = np.bincount(y, weights=weights, minlength=n_cat)
    cum = np.cumsum(totals)[:-1] / totals.sum()
    cum = np.clip(cum, 1e-6, 1 - 1e-6)
    theta = np.asarray(link_quantile(link, cum), dtype=np.float64)
    # Empty middle categories give tied thresholds; spread them
    return theta + 1e-3 * np.arange(n_cat - 1)


def fit_polr(
    y: np.ndarray,
    X: np.ndarray,
    n_cat: int,
    link: str = "logit",
    weights: np.ndarray | None = None,
    maxiter: int = 4000,
    start: tuple[np.ndarray, np.ndarray] | None = None,
) -> PolrFit:
    """Fit a proportional-odds model by maximum likelihood.

    Args:
        y: Observed categories, 0-based integers in [0, n_cat).
        X: Design matrix (n, p) without an intercept column.
        n_cat: Number of response categories K (>= 2).
        link: "logit", "probit", "cloglog" or "cauchit".
        weights: Prior sample weights (default all ones).
        maxiter: BFGS iteration cap.
        start: Optional (theta, beta) starting point, e.g. a null fit
            extended with zeros for new columns.

    Returns:
        PolrFit at the optimum.

    Raises:
        ConvergenceError: If the objective is not finite or the optimizer
            stops away from a stationary point.
    """
    X = np.asarray(X, dtype=np.float64)
    y = np.asarray(y, dtype=np.int32)
    w = np.ones(len(y)) if weights is None else np.asarray(weights, dtype=np.float64)

    if start is None:
        x0 = pack_params(
            starting_thresholds(y, w, n_cat, link), np.zeros(X.shape[1])
        )
    else:
        x0 = pack_params(*start)

    X_j, y_j, w_j = jnp.asarray(X), jnp.asarray(y), jnp.asarray(w)

    def objective(params):
        value, grad = negloglik_value_and_grad(
            link, n_cat, jnp.asarray(params), X_j, y_j, w_j
        )
        return float(value), np.asarray(grad, dtype=np.float64)

    res = minimize(
        objective, x0, jac=True, method="BFGS", options={"maxiter": maxiter}
    )
    grad_max = float(np.max(np.abs(res.jac))) if res.jac.size else 0.0
    stationary = np.isfinite(res.fun) and grad_max <= _GRAD_RTOL * max(
        1.0, abs(float(res.fun))
    )
    if not (res.success and np.isfinite(res.fun)) and not stationary:
        raise ConvergenceError(
            f"proportional-odds fit did not converge after {res.nit} iterations: "
            f"{res.message} (|grad| = {grad_max:.3g})",
            n_iter=int(res.nit),
        )
    if not res.success:
        logger.debug(f"BFGS stopped with '{res.message}' at a stationary point")

    theta, beta = unpack_params(jnp.asarray(res.x), n_cat)
    return PolrFit(
        theta=np.asarray(theta, dtype=np.float64),
        beta=np.asarray(beta, dtype=np.float64),
        loglik=-float(res.fun),
        n_iter=int(res.nit),
    )


def observed_information(
    link: str,
    theta: np.ndarray,
    beta: np.ndarray,
    X: np.ndarray,
    y: np.ndarray,
    weights: np.ndarray,
) -> np.ndarray:
    """Observed information (negative Hessian of the log-likelihood).

    Rows and columns are ordered (theta_1..theta_{K-1}, beta_1..beta_p).
    ``y`` holds 0-based categories.
    """
    n_cat = len(theta) + 1
    coef = jnp.concatenate([jnp.asarray(theta), jnp.asarray(beta)])
    hess = negloglik_hessian(
        link, n_cat, coef, jnp.asarray(X), jnp.asarray(y), jnp.asarray(weights)
    )
    return np.asarray(hess, dtype=np.float64)
