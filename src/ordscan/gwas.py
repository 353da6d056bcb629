"""Top-level scan API for ordscan.

Single-call entry points that open a genetic source, choose the grouping
strategy and stream results to a text file.

Example:
    >>> from ordscan import fit_null_model, ordinal_gwas
    >>> null = fit_null_model(y, X)
    >>> summary = ordinal_gwas(null, "data/study", test="score")
    >>> print(f"Tested {summary.n_units} variants in {summary.elapsed:.1f}s")
"""

from __future__ import annotations

from pathlib import Path

import numpy as np

from ordscan.core.config import (
    ScanConfig,
    parse_genetic_model,
    parse_test_kind,
)
from ordscan.io.locate import open_variant_source
from ordscan.polr.model import FittedNullModel
from ordscan.scan.grouping import GroupingStrategy, SingleVariant, resolve_grouping
from ordscan.scan.runner import ScanSummary, run_scan

DEFAULT_OUTPUT = "ordinalgwas.pval.txt"


def _scan(
    null_model: FittedNullModel,
    genetic_file: str | Path,
    grouping: GroupingStrategy,
    *,
    genetic_format: str,
    vcf_type: str | None,
    test: str,
    genetic_model: str,
    sample_selector,
    output_path: str | Path,
    maxiter: int,
    chunk_size: int,
    show_progress: bool,
    environment: np.ndarray | None = None,
) -> ScanSummary:
    config = ScanConfig(
        test=parse_test_kind(test),
        genetic_model=parse_genetic_model(genetic_model),
        maxiter=maxiter,
        chunk_size=chunk_size,
        show_progress=show_progress,
    )
    with open_variant_source(
        genetic_file,
        genetic_format=genetic_format,
        vcf_type=vcf_type,
        sample_selector=sample_selector,
        expected_samples=null_model.n,
        chunk_size=chunk_size,
        show_progress=show_progress,
    ) as source:
        return run_scan(
            null_model,
            source,
            grouping,
            config,
            Path(output_path),
            environment=environment,
        )


def ordinal_gwas(
    null_model: FittedNullModel,
    genetic_file: str | Path,
    *,
    genetic_format: str = "PLINK",
    vcf_type: str | None = None,
    test: str = "score",
    genetic_model: str = "additive",
    sample_selector=None,
    variant_mask=None,
    output_path: str | Path = DEFAULT_OUTPUT,
    maxiter: int = 4000,
    chunk_size: int = 10_000,
    show_progress: bool = True,
) -> ScanSummary:
    """Test every variant (or every masked-in variant) one at a time.

    Args:
        null_model: Fitted null model.
        genetic_file: PLINK prefix or VCF path without the ``.vcf`` suffix.
        genetic_format: "PLINK" or "VCF".
        vcf_type: "GT" (hard calls) or "DS" (dosages); required for VCF.
        test: "score" or "lrt".
        genetic_model: "additive", "dominant" or "recessive".
        sample_selector: None, boolean mask or 0-based indices of the
            genetic file's samples, in null-model row order.
        variant_mask: None, boolean mask or 0-based variant indices.
        output_path: Result file (default "ordinalgwas.pval.txt").
        maxiter: Optimizer iteration cap for LRT refits.
        chunk_size: Variants per read when summarizing PLINK genotypes.
        show_progress: Show progress bars and section logging.

    Returns:
        ScanSummary.

    Raises:
        ConfigurationError: On missing or ambiguous files, sample-count
            mismatch or invalid arguments. Raised before the result file
            is created.
    """
    return _scan(
        null_model,
        genetic_file,
        SingleVariant(variant_mask),
        genetic_format=genetic_format,
        vcf_type=vcf_type,
        test=test,
        genetic_model=genetic_model,
        sample_selector=sample_selector,
        output_path=output_path,
        maxiter=maxiter,
        chunk_size=chunk_size,
        show_progress=show_progress,
    )


def ordinal_snpset_gwas(
    null_model: FittedNullModel,
    genetic_file: str | Path,
    snpset,
    *,
    genetic_format: str = "PLINK",
    vcf_type: str | None = None,
    test: str = "score",
    genetic_model: str = "additive",
    sample_selector=None,
    output_path: str | Path = DEFAULT_OUTPUT,
    maxiter: int = 4000,
    chunk_size: int = 10_000,
    show_progress: bool = True,
) -> ScanSummary:
    """Test groups of variants jointly.

    Args:
        snpset: An int window width, a path to a snpset mapping file
            (set id and variant id per line, following the genetic file's
            variant order), or 0-based variant indices / a boolean mask
            forming one set.

    The remaining arguments are as for ``ordinal_gwas``.

    Raises:
        ConfigurationError: As for ``ordinal_gwas``, plus an unrecognized
            ``snpset``.
        DataConsistencyError: If the mapping file's variant order differs
            from the genetic file's.
    """
    grouping = resolve_grouping(snpset)
    return _scan(
        null_model,
        genetic_file,
        grouping,
        genetic_format=genetic_format,
        vcf_type=vcf_type,
        test=test,
        genetic_model=genetic_model,
        sample_selector=sample_selector,
        output_path=output_path,
        maxiter=maxiter,
        chunk_size=chunk_size,
        show_progress=show_progress,
    )


def ordinal_gxe_gwas(
    null_model: FittedNullModel,
    genetic_file: str | Path,
    environment: np.ndarray,
    *,
    genetic_format: str = "PLINK",
    vcf_type: str | None = None,
    test: str = "score",
    genetic_model: str = "additive",
    sample_selector=None,
    variant_mask=None,
    output_path: str | Path = DEFAULT_OUTPUT,
    maxiter: int = 4000,
    chunk_size: int = 10_000,
    show_progress: bool = True,
) -> ScanSummary:
    """Test gene-by-environment interaction for every variant.

    Args:
        environment: Environment covariate, one value per null-model sample.
            It is usually also a column of the null design.

    The remaining arguments are as for ``ordinal_gwas``.
    """
    return _scan(
        null_model,
        genetic_file,
        SingleVariant(variant_mask),
        genetic_format=genetic_format,
        vcf_type=vcf_type,
        test=test,
        genetic_model=genetic_model,
        sample_selector=sample_selector,
        output_path=output_path,
        maxiter=maxiter,
        chunk_size=chunk_size,
        show_progress=show_progress,
        environment=np.asarray(environment, dtype=np.float64),
    )
