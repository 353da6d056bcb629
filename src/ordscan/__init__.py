"""ordscan: genome-wide association scans for ordinal traits.

ordscan fits a proportional-odds null model once, then tests every variant,
or every group of variants, for association with an ordered-category trait
using a reusable score test or a likelihood-ratio test. Genotypes are read
from PLINK binary triples or VCF files.

Example:
    >>> from ordscan import fit_null_model, ordinal_gwas
    >>> null = fit_null_model(y, X)
    >>> summary = ordinal_gwas(null, "data/study", test="score")
    >>> print(f"{summary.n_units} variants in {summary.elapsed:.1f}s")
"""

from importlib.metadata import version

__version__ = version("ordscan")

from ordscan.utils.logging import setup_logging  # noqa: E402

# Console logging at INFO on import
# Users can override by calling setup_logging() or logger.remove()/add()
setup_logging()

from ordscan.core.jax_config import configure_jax  # noqa: E402

# Deviance differences need float64 before the first JAX computation
configure_jax()

from ordscan.errors import (  # noqa: E402
    ConfigurationError,
    ConvergenceError,
    DataConsistencyError,
)
from ordscan.gwas import (  # noqa: E402
    ordinal_gwas,
    ordinal_gxe_gwas,
    ordinal_snpset_gwas,
)
from ordscan.io.output import write_null_summary  # noqa: E402
from ordscan.polr.model import (  # noqa: E402
    FittedNullModel,
    fit_null_from_table,
    fit_null_model,
)
from ordscan.scan.runner import ScanSummary  # noqa: E402

__all__ = [
    "ConfigurationError",
    "ConvergenceError",
    "DataConsistencyError",
    "FittedNullModel",
    "ScanSummary",
    "__version__",
    "fit_null_from_table",
    "fit_null_model",
    "ordinal_gwas",
    "ordinal_gxe_gwas",
    "ordinal_snpset_gwas",
    "write_null_summary",
]
