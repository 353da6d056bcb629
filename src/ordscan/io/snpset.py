"""SNP-set mapping file I/O.

A mapping file assigns variants to named sets: two whitespace-delimited
columns (set id, variant id), no header, one variant per line. Rows must
follow the genetic file's variant order, so the variant-id column read top
to bottom has to reproduce that order exactly.
"""

from pathlib import Path

import numpy as np
from loguru import logger

from ordscan.errors import ConfigurationError, DataConsistencyError


def read_snpset_file(path: Path) -> tuple[np.ndarray, np.ndarray]:
    """Read a SNP-set mapping file.

    Args:
        path: Path to the mapping file.

    Returns:
        Tuple of (set_ids, variant_ids), one entry per row, in file order.

    Raises:
        ConfigurationError: If the file does not exist, is empty, or a row
            has fewer than two fields.
    """
    path = Path(path)
    if not path.is_file():
        raise ConfigurationError(
            f"snpset file not found: {path}. To specify a window, pass an integer"
        )

    set_ids: list[str] = []
    variant_ids: list[str] = []
    with open(path) as f:
        for lineno, line in enumerate(f, start=1):
            parts = line.split()
            if not parts:
                continue
            if len(parts) < 2:
                raise ConfigurationError(
                    f"snpset file {path} line {lineno}: expected 'set_id variant_id'"
                )
            set_ids.append(parts[0])
            variant_ids.append(parts[1])

    if not set_ids:
        raise ConfigurationError(f"snpset file is empty: {path}")

    logger.debug(
        f"Read {len(variant_ids)} variants in {len(dict.fromkeys(set_ids))} sets "
        f"from {path}"
    )
    return np.asarray(set_ids), np.asarray(variant_ids)


def validate_snpset_order(mapping_ids: np.ndarray, source_ids: np.ndarray) -> None:
    """Check that the mapping's variant ids equal the source's variant order.

    Raises:
        DataConsistencyError: On a length mismatch or the first differing row.
    """
    mapping_ids = np.asarray(mapping_ids)
    source_ids = np.asarray(source_ids)
    if len(mapping_ids) != len(source_ids):
        raise DataConsistencyError(
            f"snpset file lists {len(mapping_ids)} variants but the genetic file "
            f"has {len(source_ids)}; the snpset file must follow the variant order "
            f"of the genetic file"
        )
    mismatch = np.flatnonzero(mapping_ids.astype(str) != source_ids.astype(str))
    if len(mismatch):
        i = int(mismatch[0])
        raise DataConsistencyError(
            f"snpset file row {i + 1} names variant {mapping_ids[i]!r} but the "
            f"genetic file has {source_ids[i]!r} at that position; the snpset file "
            f"must follow the variant order of the genetic file"
        )
