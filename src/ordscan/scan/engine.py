"""Test statistic engines: score test and likelihood-ratio test per unit.

Both engines share the per-unit bookkeeping (MAF, HWE, monomorphic
short-circuit) and differ only in how a non-trivial unit is tested:

- ScoreTestEngine: writes the encoded block into the null model's
  score-test context and evaluates the quadratic form. No refit.
- LikelihoodRatioEngine: writes the encoded block next to the null design
  in an augmented buffer [X | Z], refits the ordinal model warm-started at
  the null estimates, and compares deviances on q degrees of freedom.

A unit whose members are all monomorphic (MAF 0) reports p = 1 and zero
effects without touching either path. A refit that fails to converge
reports NaN for that unit and the scan continues.
"""

import numpy as np
from loguru import logger

from ordscan.core.config import GeneticModel, TestKind
from ordscan.core.stats import chi2_sf
from ordscan.core.variant_stats import (
    hwe_from_counts,
    maf_from_counts,
    maf_from_dosages,
)
from ordscan.errors import ConvergenceError
from ordscan.io.source import VariantBlock
from ordscan.polr.fit import fit_polr
from ordscan.scan.encode import encode_genotypes
from ordscan.scan.grouping import TestUnit
from ordscan.scan.results import UnitResult


def block_maf(block: VariantBlock) -> np.ndarray:
    """Minor allele frequency of every member of a block."""
    if block.is_dosage:
        return maf_from_dosages(block.values)
    if block.class_counts is not None:
        return maf_from_counts(block.class_counts)
    return maf_from_dosages(block.values)


def block_hwe(block: VariantBlock) -> np.ndarray:
    """HWE p-value of every member; NaN for dosages."""
    if block.is_dosage or block.class_counts is None:
        return np.full(block.width, np.nan)
    return hwe_from_counts(block.class_counts)


class AssociationEngine:
    """Shared per-unit logic of the two test kinds.

    Attributes:
        test: Test kind implemented by the engine.
        n_tested: Units that went through the statistic (not short-circuited).
        n_monomorphic: Units short-circuited as monomorphic.
        n_failed: Units whose refit did not converge.
        n_effects: Length of the effect vector when it is not the unit width.
    """

    test: TestKind
    n_effects: int | None = None

    def __init__(self, null_model, genetic_model: GeneticModel):
        self.null_model = null_model
        self.genetic_model = genetic_model
        self.n_tested = 0
        self.n_monomorphic = 0
        self.n_failed = 0

    def evaluate(self, unit: TestUnit, block: VariantBlock) -> UnitResult:
        """Test one unit given its raw genotype block."""
        if block.width != unit.width:
            raise ValueError(
                f"block has {block.width} variants but unit {unit.index} has "
                f"{unit.width} members"
            )
        maf = block_maf(block)
        if np.all(maf == 0):
            self.n_monomorphic += 1
            pval, effect = 1.0, np.zeros(self.n_effects or unit.width)
        else:
            self.n_tested += 1
            pval, effect = self._test(block)

        result = UnitResult(
            pval=pval,
            effect=effect,
            members=unit.members,
            chromosome=block.chromosome,
            position=block.position,
            variant_id=block.variant_id,
            label=unit.label,
        )
        if unit.width == 1:
            result.maf = float(maf[0])
            result.hwe_pval = float(block_hwe(block)[0])
        return result

    def _test(self, block: VariantBlock) -> tuple[float, np.ndarray]:
        raise NotImplementedError


class ScoreTestEngine(AssociationEngine):
    """Score test through the null model's reusable score-test context.

    The context is mutable scratch state used by one unit at a time; the
    engine owns it and is not thread-safe.
    """

    test = TestKind.SCORE

    def __init__(self, null_model, genetic_model: GeneticModel, max_width: int = 1):
        super().__init__(null_model, genetic_model)
        self.context = null_model.score_test(max_width=max_width)

    def _test(self, block: VariantBlock) -> tuple[float, np.ndarray]:
        z = self.context.activate(block.width)
        encode_genotypes(block.values, self.genetic_model, block.is_dosage, out=z)
        return self.context.pvalue(), np.full(block.width, np.nan)


class LikelihoodRatioEngine(AssociationEngine):
    """Likelihood-ratio test by refitting the model with the unit's block.

    Owns a design buffer of p + max_width columns whose first p columns
    hold the null design; the active width is p + q for a unit of q members.
    """

    test = TestKind.LRT

    def __init__(
        self,
        null_model,
        genetic_model: GeneticModel,
        max_width: int = 1,
        maxiter: int = 4000,
    ):
        super().__init__(null_model, genetic_model)
        self.maxiter = maxiter
        self.max_width = max_width
        p = null_model.p
        self._design = np.zeros((null_model.n, p + max_width), dtype=np.float64)
        self._design[:, :p] = null_model.X
        self._y0 = np.asarray(null_model.y) - 1

    def _test(self, block: VariantBlock) -> tuple[float, np.ndarray]:
        null = self.null_model
        p, q = null.p, block.width
        if q > self.max_width:
            raise ValueError(
                f"test unit width {q} outside buffer capacity {self.max_width}"
            )
        design = self._design[:, : p + q]
        encode_genotypes(
            block.values, self.genetic_model, block.is_dosage, out=design[:, p:]
        )
        try:
            fit = fit_polr(
                self._y0,
                design,
                null.n_categories,
                link=null.link,
                weights=null.weights,
                maxiter=self.maxiter,
                start=(null.theta, np.concatenate([null.beta, np.zeros(q)])),
            )
        except ConvergenceError as e:
            self.n_failed += 1
            logger.warning(
                f"LRT refit failed for variants {block.variant_id[0]}..."
                f"{block.variant_id[-1]}: {e}"
            )
            return float("nan"), np.full(q, np.nan)

        pval = chi2_sf(null.deviance - fit.deviance, q)
        return pval, fit.beta[p:].copy()


def make_engine(
    test: TestKind,
    null_model,
    genetic_model: GeneticModel,
    max_width: int = 1,
    maxiter: int = 4000,
) -> AssociationEngine:
    """Construct the engine for a test kind."""
    if test is TestKind.SCORE:
        return ScoreTestEngine(null_model, genetic_model, max_width=max_width)
    return LikelihoodRatioEngine(
        null_model, genetic_model, max_width=max_width, maxiter=maxiter
    )
