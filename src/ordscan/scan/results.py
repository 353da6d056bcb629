"""Result record produced for each test unit."""

from dataclasses import dataclass

import numpy as np


@dataclass
class UnitResult:
    """Association test result for one test unit.

    Fields present depend on the grouping mode:
    - single variant: maf and hwe_pval are set, effect has one entry
    - window / named set / explicit set: effect holds one entry per member
    - GxE: effect holds (snp_effect_null,) for the score test and
      (snp_effect_null, snp_effect_full, gxe_effect) for the LRT

    Attributes:
        pval: Right-tail chi-square p-value (NaN if the refit failed).
        effect: Effect estimates; NaN for the score test, which fits nothing.
        members: Variant indices (0-based, ascending) tested jointly.
        chromosome: Chromosome of each member.
        position: Base-pair position of each member.
        variant_id: Identifier of each member.
        maf: Minor allele frequency (single-variant units only).
        hwe_pval: HWE p-value (single-variant units with hard calls only).
        label: Set id for named-set units.
    """

    pval: float
    effect: np.ndarray
    members: np.ndarray
    chromosome: np.ndarray
    position: np.ndarray
    variant_id: np.ndarray
    maf: float | None = None
    hwe_pval: float | None = None
    label: str | None = None

    @property
    def n_members(self) -> int:
        return len(self.members)

    @property
    def l2norm_effect(self) -> float:
        """Euclidean norm of the effect vector."""
        return float(np.linalg.norm(self.effect))
