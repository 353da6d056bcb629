"""Genotype encoding and mean imputation.

Raw values are allele copy counts (0, 1, 2, NaN for missing) or dosages.
Copy counts are mapped to a covariate under the genetic model:

    model       0  1  2
    additive    0  1  2
    dominant    0  1  1
    recessive   0  0  1

Dosages are copied unchanged. Missing entries are then replaced by the mean
of the observed encoded entries of the same column; a column with no
observed entry becomes all zeros.
"""

import numpy as np

from ordscan.core.config import GeneticModel


def encode_genotypes(
    values: np.ndarray,
    model: GeneticModel,
    is_dosage: bool,
    out: np.ndarray,
) -> np.ndarray:
    """Encode and impute a raw genotype block into a caller-supplied buffer.

    Args:
        values: Raw block (n, q).
        model: Genetic model; ignored for dosages.
        is_dosage: True if ``values`` are dosages.
        out: Destination view of shape (n, q), e.g. a slice of an engine
            buffer. Only this array is written.

    Returns:
        ``out``, filled.
    """
    values = np.asarray(values, dtype=np.float64)
    if values.ndim == 1:
        values = values[:, np.newaxis]
    if out.shape != values.shape:
        raise ValueError(
            f"output buffer shape {out.shape} does not match block {values.shape}"
        )

    if is_dosage or model is GeneticModel.ADDITIVE:
        out[:] = values
    elif model is GeneticModel.DOMINANT:
        out[:] = np.where(values >= 1, 1.0, 0.0)
    else:
        out[:] = np.where(values == 2, 1.0, 0.0)

    missing = np.isnan(values)
    if missing.any():
        out[missing] = np.nan
        observed = ~missing
        n_obs = observed.sum(axis=0)
        totals = np.where(observed, out, 0.0).sum(axis=0)
        with np.errstate(invalid="ignore", divide="ignore"):
            means = np.where(n_obs > 0, totals / n_obs, 0.0)
        rows, cols = np.nonzero(missing)
        out[rows, cols] = means[cols]
    return out
