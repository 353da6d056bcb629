"""Covariate table I/O.

Covariate tables are delimited text with a header row naming the columns.
Rows are samples in the order of the genetic file (positional matching, not
ID-based). Missing values are encoded as "NA" or an empty field.
"""

from dataclasses import dataclass
from pathlib import Path

import numpy as np

MISSING_TOKENS = frozenset({"", "NA"})


@dataclass
class CovariateTable:
    """Numeric covariate table.

    Attributes:
        columns: Column names from the header row.
        values: (n_rows, n_columns) float64 array with NaN for missing values.
    """

    columns: list[str]
    values: np.ndarray

    @property
    def n_rows(self) -> int:
        return self.values.shape[0]

    def column(self, name: str) -> np.ndarray:
        """Return one column by name."""
        try:
            j = self.columns.index(name)
        except ValueError:
            raise KeyError(
                f"column {name!r} not in covariate table (columns: {self.columns})"
            ) from None
        return self.values[:, j]

    def select(self, names: list[str]) -> np.ndarray:
        """Return the named columns as an (n_rows, len(names)) matrix."""
        if not names:
            return np.empty((self.n_rows, 0), dtype=np.float64)
        return np.column_stack([self.column(name) for name in names])


def read_covariate_table(path: Path, delimiter: str = ",") -> CovariateTable:
    """Read a delimited covariate table with a header row.

    Args:
        path: Path to the table.
        delimiter: Field delimiter (default ",").

    Returns:
        CovariateTable with one column per header field.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file has no data rows, rows have inconsistent
            column counts, or a value cannot be parsed as numeric.

    Example:
        Table contents:
        ```
        y,sex,age
        1,0,35.0
        3,1,NA
        2,1,28.0
        ```

        >>> table = read_covariate_table(Path("covariates.csv"))
        >>> table.columns
        ['y', 'sex', 'age']
        >>> table.values.shape
        (3, 3)
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Covariate table not found: {path}")

    with open(path) as f:
        lines = [line.rstrip("\r\n") for line in f if line.strip()]

    if len(lines) < 2:
        raise ValueError(f"Covariate table has no data rows: {path}")

    columns = [name.strip() for name in lines[0].split(delimiter)]
    n_cols = len(columns)
    values = np.empty((len(lines) - 1, n_cols), dtype=np.float64)

    for i, line in enumerate(lines[1:]):
        fields = line.split(delimiter)
        if len(fields) != n_cols:
            raise ValueError(
                f"Covariate table row {i + 1} has {len(fields)} fields "
                f"but the header has {n_cols}"
            )
        for j, field in enumerate(fields):
            token = field.strip()
            if token in MISSING_TOKENS:
                values[i, j] = np.nan
                continue
            try:
                values[i, j] = float(token)
            except ValueError as e:
                raise ValueError(
                    f"Covariate table row {i + 1}, column {columns[j]!r}: "
                    f"cannot parse '{token}' as numeric (use 'NA' for missing)"
                ) from e

    return CovariateTable(columns=columns, values=values)
