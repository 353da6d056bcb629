"""Gene-by-environment interaction tests, one variant at a time.

For each variant g and environment covariate e:

- score test: refit the null model with g added, then score-test the
  interaction column g*e against that fit;
- likelihood-ratio test: compare the fits of [X g] and [X g g*e] on one
  degree of freedom.

The SNP effect under the g-only fit is reported for both tests; the LRT
also reports the SNP and interaction effects of the full fit.
"""

from dataclasses import replace

import numpy as np
from loguru import logger

from ordscan.core.config import GeneticModel, TestKind
from ordscan.core.stats import chi2_sf
from ordscan.errors import ConfigurationError, ConvergenceError
from ordscan.io.source import VariantBlock
from ordscan.polr.fit import fit_polr
from ordscan.polr.score import OrdinalScoreTest
from ordscan.scan.encode import encode_genotypes
from ordscan.scan.engine import AssociationEngine


class GxeEngine(AssociationEngine):
    """Interaction test engine for single-variant units.

    Owns a design buffer [X | g | g*e]; the g column is refitted for every
    variant, so both test kinds refit at least once per unit.
    """

    def __init__(
        self,
        null_model,
        genetic_model: GeneticModel,
        environment: np.ndarray,
        test: TestKind = TestKind.SCORE,
        maxiter: int = 4000,
    ):
        super().__init__(null_model, genetic_model)
        environment = np.asarray(environment, dtype=np.float64).ravel()
        if environment.shape != (null_model.n,):
            raise ConfigurationError(
                f"environment has {environment.size} values but the null model "
                f"has {null_model.n} samples"
            )
        if np.any(~np.isfinite(environment)):
            raise ConfigurationError("environment covariate has missing values")
        self.test = test
        self.environment = environment
        self.maxiter = maxiter
        self.n_effects = 1 if test is TestKind.SCORE else 3
        p = null_model.p
        self._design = np.zeros((null_model.n, p + 2), dtype=np.float64)
        self._design[:, :p] = null_model.X
        self._y0 = np.asarray(null_model.y) - 1

    def _fit(self, design, start_theta, start_beta):
        null = self.null_model
        return fit_polr(
            self._y0,
            design,
            null.n_categories,
            link=null.link,
            weights=null.weights,
            maxiter=self.maxiter,
            start=(start_theta, start_beta),
        )

    def _test(self, block: VariantBlock) -> tuple[float, np.ndarray]:
        if block.width != 1:
            raise ValueError("GxE tests take one variant per unit")
        null = self.null_model
        p = null.p
        g = self._design[:, p : p + 1]
        encode_genotypes(block.values, self.genetic_model, block.is_dosage, out=g)
        self._design[:, p + 1] = self._design[:, p] * self.environment

        try:
            fit_g = self._fit(
                self._design[:, : p + 1], null.theta, np.append(null.beta, 0.0)
            )
            if self.test is TestKind.SCORE:
                model_g = replace(
                    null,
                    X=self._design[:, : p + 1].copy(),
                    theta=fit_g.theta,
                    beta=fit_g.beta,
                    loglik=fit_g.loglik,
                    n_iter=fit_g.n_iter,
                    covariate_names=list(null.covariate_names) + ["snp"],
                )
                pval = OrdinalScoreTest(model_g).test(self._design[:, p + 1])
                return pval, np.array([fit_g.beta[p]])

            fit_gxe = self._fit(
                self._design, fit_g.theta, np.append(fit_g.beta, 0.0)
            )
        except ConvergenceError as e:
            self.n_failed += 1
            logger.warning(f"GxE refit failed for {block.variant_id[0]}: {e}")
            return float("nan"), np.full(self.n_effects, np.nan)

        pval = chi2_sf(fit_g.deviance - fit_gxe.deviance, 1)
        return pval, np.array([fit_g.beta[p], fit_gxe.beta[p], fit_gxe.beta[p + 1]])
