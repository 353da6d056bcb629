"""Backend-independent access to variant genotypes.

The scan only talks to the VariantSource interface defined here. Two kinds
of backend sit behind it:

- random access (PLINK, materialized VCF): any index list can be read, and
  per-variant genotype class counts are available up front;
- forward-only (VCF): records come off the stream in file order. A record
  that is not tested must still be read (``skip``) to keep the stream
  aligned with the variant index space.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from contextlib import ExitStack
from dataclasses import dataclass

import numpy as np
from loguru import logger

from ordscan.core.variant_stats import count_genotype_classes
from ordscan.errors import ConfigurationError


@dataclass
class VariantBlock:
    """Raw genotypes and identity of the variants forming one read.

    Attributes:
        values: Matrix (n_selected_samples, q). Copy counts 0/1/2 with NaN for
            missing calls, or dosages when ``is_dosage`` is set.
        chromosome: Chromosome of each member.
        position: Base-pair position of each member.
        variant_id: Identifier of each member.
        is_dosage: True when ``values`` holds dosages (no genotype remapping).
        class_counts: Optional (q, 4) counts of hom-ref, het, hom-alt, missing.
    """

    values: np.ndarray
    chromosome: np.ndarray
    position: np.ndarray
    variant_id: np.ndarray
    is_dosage: bool = False
    class_counts: np.ndarray | None = None

    @property
    def width(self) -> int:
        """Number of variants in the block."""
        return self.values.shape[1]


@dataclass
class RecordInfo:
    """Identity of the most recently read record (VCF lookahead holder)."""

    chromosome: str
    position: int
    variant_id: str


class VariantSource(ABC):
    """Uniform access to a genetic data backend.

    Attributes:
        n_variants: Number of variants (records) in the source.
        n_samples: Number of samples in the file, before selection.
        sample_index: Selected sample rows, or None for all samples.
        is_dosage: True when values are dosages rather than copy counts.
        random_access: Whether ``read`` accepts arbitrary index lists.
    """

    n_variants: int
    n_samples: int
    sample_index: np.ndarray | None = None
    is_dosage: bool = False
    random_access: bool = True

    def __init__(self) -> None:
        self._position = 0
        self._stack = ExitStack()

    @property
    def n_selected(self) -> int:
        """Number of samples after applying the sample selection."""
        if self.sample_index is None:
            return self.n_samples
        return len(self.sample_index)

    @property
    def position(self) -> int:
        """Index of the next record a sequential read returns."""
        return self._position

    @abstractmethod
    def read(self, indices: Sequence[int] | np.ndarray) -> VariantBlock:
        """Read the variants at ``indices`` (ascending, 0-based)."""

    def read_next(self, width: int) -> VariantBlock:
        """Read the next ``width`` variants in source order."""
        if self._position + width > self.n_variants:
            raise IndexError(
                f"cannot read {width} variants at position {self._position} "
                f"of {self.n_variants}"
            )
        block = self.read(np.arange(self._position, self._position + width))
        self._position += width
        return block

    def skip(self, count: int) -> None:
        """Advance past ``count`` variants without returning them."""
        if count < 0:
            raise ValueError(f"cannot skip a negative number of variants: {count}")
        self._position = min(self._position + count, self.n_variants)

    def drain(self) -> None:
        """Advance to the end of the source."""
        self.skip(self.n_variants - self._position)

    def variant_ids(self) -> np.ndarray | None:
        """Authoritative variant-id order, or None if it needs a full read."""
        return None

    def materialize(self) -> "MemorySource":
        """Read every remaining variant into an in-memory random-access source."""
        remaining = self.n_variants - self._position
        logger.warning(
            f"Materializing {remaining} variants x {self.n_selected} samples "
            f"in memory (~{remaining * self.n_selected * 8 / 1e9:.2f} GB)"
        )
        block = self.read_next(remaining)
        return MemorySource(
            block.values,
            block.chromosome,
            block.position,
            block.variant_id,
            is_dosage=self.is_dosage,
        )

    def attach(self, resource):
        """Tie a context manager (file handle, temporary directory) to this source."""
        return self._stack.enter_context(resource)

    def close(self) -> None:
        """Release file handles and temporary files."""
        self._stack.close()

    def __enter__(self) -> "VariantSource":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class MemorySource(VariantSource):
    """In-memory variant matrix with random access.

    Used for materialized VCF files, which named-set and explicit-set scans
    need because their members are not contiguous in the record stream.
    """

    def __init__(
        self,
        values: np.ndarray,
        chromosome: np.ndarray,
        position: np.ndarray,
        variant_id: np.ndarray,
        is_dosage: bool = False,
    ) -> None:
        super().__init__()
        self.values = np.asarray(values, dtype=np.float64)
        self.chromosome = np.asarray(chromosome)
        self.bp_position = np.asarray(position)
        self.sid = np.asarray(variant_id)
        self.is_dosage = is_dosage
        self.n_samples = self.values.shape[0]
        self.n_variants = self.values.shape[1]
        self.sample_index = None
        self.class_counts = None if is_dosage else count_genotype_classes(self.values)

    def read(self, indices: Sequence[int] | np.ndarray) -> VariantBlock:
        idx = np.asarray(indices, dtype=np.intp)
        return VariantBlock(
            values=self.values[:, idx],
            chromosome=self.chromosome[idx],
            position=self.bp_position[idx],
            variant_id=self.sid[idx],
            is_dosage=self.is_dosage,
            class_counts=None if self.class_counts is None else self.class_counts[idx],
        )

    def variant_ids(self) -> np.ndarray:
        return self.sid


def resolve_sample_index(
    selector: Sequence[int] | Sequence[bool] | np.ndarray | None, n_samples: int
) -> np.ndarray | None:
    """Turn a sample selector into integer row indices, in the order given.

    Args:
        selector: None (all samples), a boolean mask of length ``n_samples``,
            or 0-based integer indices.
        n_samples: Number of samples in the genetic file.

    Returns:
        Integer index array, or None when every sample is used.

    Raises:
        ConfigurationError: If the mask has the wrong length or an index is
            out of range.
    """
    if selector is None:
        return None
    arr = np.asarray(selector)
    if arr.dtype == bool:
        if arr.shape != (n_samples,):
            raise ConfigurationError(
                f"sample mask has length {arr.size} but the genetic file has "
                f"{n_samples} samples"
            )
        return np.flatnonzero(arr)
    if arr.size == 0:
        raise ConfigurationError("sample selection is empty")
    if not np.issubdtype(arr.dtype, np.integer):
        raise ConfigurationError(
            f"sample indices must be integers or booleans, got dtype {arr.dtype}"
        )
    arr = arr.astype(np.intp).ravel()
    if arr.min() < 0 or arr.max() >= n_samples:
        raise ConfigurationError(
            f"sample index out of range for {n_samples} samples "
            f"(min={arr.min()}, max={arr.max()})"
        )
    logger.debug(f"Selected {len(arr)} of {n_samples} samples")
    return arr


def check_selected_samples(n_selected: int, n_expected: int) -> None:
    """Fail if the selected genetic samples do not line up with the null model.

    Raises:
        ConfigurationError: If the counts differ.
    """
    if n_selected != n_expected:
        raise ConfigurationError(
            f"number of samples selected from the genetic file ({n_selected}) "
            f"does not match the null model ({n_expected})"
        )
