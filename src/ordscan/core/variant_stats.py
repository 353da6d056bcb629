"""Per-variant genotype summaries: class counts, MAF and HWE p-values.

PLINK sources summarize every variant once when opened; VCF sources compute
the same summaries per block as records stream past. Both paths go through
the functions here so MAF/HWE columns mean the same thing for either backend.
"""

import numpy as np

from ordscan.core.stats import chi2_sf

# Column layout of a class-count array
HOM_REF, HET, HOM_ALT, MISSING = 0, 1, 2, 3


def count_genotype_classes(genotypes: np.ndarray) -> np.ndarray:
    """Count genotype classes per variant.

    Args:
        genotypes: Copy-count matrix (n_samples, n_variants) holding 0, 1, 2
            or NaN for missing calls.

    Returns:
        Integer array (n_variants, 4) with columns hom-ref, het, hom-alt,
        missing.
    """
    genotypes = np.asarray(genotypes)
    if genotypes.ndim == 1:
        genotypes = genotypes[:, np.newaxis]
    counts = np.empty((genotypes.shape[1], 4), dtype=np.int64)
    counts[:, HOM_REF] = np.sum(genotypes == 0, axis=0)
    counts[:, HET] = np.sum(genotypes == 1, axis=0)
    counts[:, HOM_ALT] = np.sum(genotypes == 2, axis=0)
    counts[:, MISSING] = np.sum(np.isnan(genotypes), axis=0)
    return counts


def maf_from_counts(counts: np.ndarray) -> np.ndarray:
    """Minor allele frequency from class counts.

    Variants without a single observed call get MAF 0, which makes them
    monomorphic for the purpose of the scan short-circuit.

    Args:
        counts: Class-count array (n_variants, 4) from count_genotype_classes.

    Returns:
        Array of MAFs in [0, 0.5], one per variant.
    """
    counts = np.atleast_2d(counts).astype(np.float64)
    n_called = counts[:, HOM_REF] + counts[:, HET] + counts[:, HOM_ALT]
    with np.errstate(invalid="ignore", divide="ignore"):
        freq = (counts[:, HET] + 2.0 * counts[:, HOM_ALT]) / (2.0 * n_called)
    freq = np.nan_to_num(freq, nan=0.0)
    return np.minimum(freq, 1.0 - freq)


def maf_from_dosages(dosages: np.ndarray) -> np.ndarray:
    """Minor allele frequency from alternate-allele dosages (0..2).

    Args:
        dosages: Dosage matrix (n_samples, n_variants) with NaN for missing.

    Returns:
        Array of MAFs in [0, 0.5], one per variant.
    """
    dosages = np.asarray(dosages, dtype=np.float64)
    if dosages.ndim == 1:
        dosages = dosages[:, np.newaxis]
    with np.errstate(invalid="ignore"):
        freq = np.nanmean(dosages, axis=0) / 2.0
    freq = np.nan_to_num(freq, nan=0.0)
    return np.clip(np.minimum(freq, 1.0 - freq), 0.0, 0.5)


def compute_hwe_pvalues(
    n_aa: np.ndarray, n_ab: np.ndarray, n_bb: np.ndarray
) -> np.ndarray:
    """Compute Hardy-Weinberg equilibrium chi-squared p-values.

    Computes the chi-squared goodness-of-fit test for HWE for each variant.
    Under HWE, genotype frequencies are p^2 (AA), 2pq (AB), q^2 (BB)
    where p = freq(A), q = 1-p.

    This uses the chi-squared approximation (df=1), the standard choice for
    large-sample QC. Degenerate variants (all same genotype, zero total,
    monomorphic) return p-value = 1.0 by convention.

    Args:
        n_aa: Count of homozygous reference genotypes per variant.
        n_ab: Count of heterozygous genotypes per variant.
        n_bb: Count of homozygous alternate genotypes per variant.

    Returns:
        Array of p-values, one per variant.
    """
    n_aa = np.asarray(n_aa, dtype=np.float64)
    n_ab = np.asarray(n_ab, dtype=np.float64)
    n_bb = np.asarray(n_bb, dtype=np.float64)

    n = n_aa + n_ab + n_bb

    with np.errstate(invalid="ignore", divide="ignore"):
        p = (2 * n_aa + n_ab) / (2 * n)
        q = 1.0 - p

        e_aa = n * p**2
        e_ab = 2 * n * p * q
        e_bb = n * q**2

        chi_sq = (
            (n_aa - e_aa) ** 2 / e_aa
            + (n_ab - e_ab) ** 2 / e_ab
            + (n_bb - e_bb) ** 2 / e_bb
        )

    # Monomorphic or empty variants give NaN/inf; they pass HWE trivially
    chi_sq = np.where(np.isfinite(chi_sq), chi_sq, 0.0)

    return np.asarray(chi2_sf(chi_sq, 1), dtype=np.float64)


def hwe_from_counts(counts: np.ndarray) -> np.ndarray:
    """HWE p-values for a class-count array (n_variants, 4)."""
    counts = np.atleast_2d(counts)
    return compute_hwe_pvalues(counts[:, HOM_REF], counts[:, HET], counts[:, HOM_ALT])
