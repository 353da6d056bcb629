"""Score test for extra covariates in a fitted proportional-odds model.

The statistic for a block Z of q new covariates is

    T = U' I_eff^- U,    U = Z' s,
    I_eff = Z' W Z - (Z' R) M^-1 (R' Z),

where s is the per-sample score of the linear predictor at the null fit,
W the per-sample Fisher weight of the linear predictor, M the Fisher
information of the nuisance parameters (thresholds and covariates) and R the
per-sample cross-information between the linear predictor and those
nuisance parameters. Everything except Z is fixed by the null fit and
computed once, so a test costs O(n * q * (K + p)).

T is referred to a chi-square distribution with rank(I_eff) degrees of
freedom, which is q unless the block is collinear with the null design.
"""

import numpy as np

from ordscan.core.stats import chi2_sf
from ordscan.polr.links import link_cdf, link_pdf

# Eigenvalues of I_eff below this fraction of the largest diagonal entry of
# Z'WZ are treated as zero
_RANK_RTOL = 1e-8


class OrdinalScoreTest:
    """Reusable score-test context bound to one fitted null model.

    Owns a design buffer of ``max_width`` columns. A caller activates the
    width of the current test unit, fills the returned view, then calls
    ``pvalue``. The buffer is overwritten by every unit, so one context
    serves exactly one test unit at a time and must not be shared between
    threads; give each worker its own context.

    Example:
        ctx = null_model.score_test(max_width=25)
        for unit in units:
            z = ctx.activate(unit.width)
            encode_genotypes(raw, model, is_dosage=False, out=z)
            p = ctx.pvalue()
    """

    def __init__(self, model, max_width: int = 1):
        if max_width < 1:
            raise ValueError(f"max_width must be positive, got {max_width}")
        X = np.asarray(model.X, dtype=np.float64)
        w = np.asarray(model.weights, dtype=np.float64)
        n = X.shape[0]

        eta = X @ model.beta
        arg = model.theta[np.newaxis, :] - eta[:, np.newaxis]
        f = np.asarray(link_pdf(model.link, arg), dtype=np.float64)
        F = np.asarray(link_cdf(model.link, arg), dtype=np.float64)

        zeros, ones = np.zeros((n, 1)), np.ones((n, 1))
        pi = np.maximum(np.diff(np.hstack([zeros, F, ones]), axis=1), 1e-300)
        # d pi_k / d eta for every category
        h = -np.diff(np.hstack([zeros, f, zeros]), axis=1)
        hp = h / pi

        c = f * (hp[:, :-1] - hp[:, 1:])
        v = np.sum(h * hp, axis=1)

        wf = w[:, np.newaxis] * f
        a_diag = np.sum(wf * f * (1.0 / pi[:, :-1] + 1.0 / pi[:, 1:]), axis=0)
        a_off = -np.sum(wf[:, :-1] * f[:, 1:] / pi[:, 1:-1], axis=0)
        A = np.diag(a_diag) + np.diag(a_off, 1) + np.diag(a_off, -1)

        wc = w[:, np.newaxis] * c
        wv = w * v
        M = np.block([[A, wc.T @ X], [X.T @ wc, X.T @ (wv[:, np.newaxis] * X)]])

        self.n = n
        self.max_width = max_width
        self._R = np.hstack([wc, wv[:, np.newaxis] * X])
        self._M_inv = np.linalg.pinv(M, hermitian=True)
        self._wv = wv
        self._s = w * hp[np.arange(n), model.y - 1]
        self._Z = np.zeros((n, max_width), dtype=np.float64)
        self.width = 0

    def activate(self, width: int) -> np.ndarray:
        """Set the active width and return the (n, width) buffer view to fill."""
        if not 1 <= width <= self.max_width:
            raise ValueError(
                f"test unit width {width} outside buffer capacity {self.max_width}"
            )
        self.width = width
        return self._Z[:, :width]

    @property
    def block(self) -> np.ndarray:
        """Active design block Z."""
        return self._Z[:, : self.width]

    def statistic(self) -> tuple[float, int]:
        """Score statistic and its degrees of freedom for the active block."""
        if self.width == 0:
            raise RuntimeError("No active block. Call activate() first.")
        Z = self.block
        U = Z.T @ self._s
        B = self._R.T @ Z
        ZWZ = Z.T @ (self._wv[:, np.newaxis] * Z)
        info = ZWZ - B.T @ self._M_inv @ B
        info = 0.5 * (info + info.T)

        evals, evecs = np.linalg.eigh(info)
        scale = max(float(np.max(np.abs(np.diag(ZWZ)))), np.finfo(np.float64).tiny)
        keep = evals > _RANK_RTOL * scale
        df = int(np.count_nonzero(keep))
        if df == 0:
            return 0.0, 0
        proj = evecs[:, keep].T @ U
        return float(np.sum(proj**2 / evals[keep])), df

    def pvalue(self) -> float:
        """Right-tail chi-square p-value for the active block."""
        stat, df = self.statistic()
        if df == 0:
            return 1.0
        return chi2_sf(stat, df)

    def test(self, Z: np.ndarray) -> float:
        """Copy ``Z`` into the buffer and return its p-value."""
        Z = np.asarray(Z, dtype=np.float64)
        if Z.ndim == 1:
            Z = Z[:, np.newaxis]
        self.activate(Z.shape[1])[:] = Z
        return self.pvalue()
