"""Exception types raised by ordscan.

Configuration and consistency errors are raised before any output file is
created. Convergence errors come from the ordinal optimizer; they are fatal
for the null model fit and downgraded to a NaN row for a single test unit.
"""


class ConfigurationError(ValueError):
    """Invalid scan setup detected before scanning starts.

    Raised for missing or ambiguous genetic files, sample-count mismatch
    between the genetic source and the null model, unknown test / grouping /
    genetic model arguments, and an unspecified VCF data type.
    """


class DataConsistencyError(ValueError):
    """SNP-set mapping file disagrees with the genetic source variant order."""


class ConvergenceError(RuntimeError):
    """Ordinal model optimizer did not converge."""

    def __init__(self, message: str, n_iter: int | None = None):
        super().__init__(message)
        self.n_iter = n_iter
