"""PLINK binary format access using bed-reader.

PLINK triples (.bed/.bim/.fam) are the random-access backend: any set of
variant columns can be read directly, so grouping strategies never need to
materialize the genotype matrix. Genotype class counts for every variant are
summarized once, in a chunked pass, when the source is opened; MAF/HWE
columns and the monomorphic short-circuit then cost nothing per test unit.
"""

from collections.abc import Iterator, Sequence
from pathlib import Path

import numpy as np
from bed_reader import open_bed
from loguru import logger

from ordscan.core.progress import progress_iterator
from ordscan.core.variant_stats import count_genotype_classes
from ordscan.io.source import VariantBlock, VariantSource


def stream_genotype_chunks(
    bed,
    chunk_size: int = 10_000,
    sample_index: np.ndarray | None = None,
    dtype: type = np.float32,
    show_progress: bool = True,
) -> Iterator[tuple[np.ndarray, int, int]]:
    """Stream genotype chunks from an open .bed file.

    Memory: O(n_samples * chunk_size) per chunk, never O(n_samples * n_snps).

    Args:
        bed: Open bed-reader ``open_bed`` handle.
        chunk_size: Number of variants per chunk (default 10,000).
        sample_index: Sample rows to read, or None for all samples.
        dtype: Output dtype for genotypes (default float32 for memory efficiency).
        show_progress: Whether to show a progress bar.

    Yields:
        Tuple of (genotypes_chunk, start_idx, end_idx):
        - genotypes_chunk: Array of shape (n_selected_samples, chunk_snps)
        - start_idx: First variant index (inclusive)
        - end_idx: Last variant index (exclusive)
    """
    n_snps = bed.sid_count
    n_chunks = (n_snps + chunk_size - 1) // chunk_size
    rows = slice(None) if sample_index is None else sample_index

    starts = progress_iterator(
        range(0, n_snps, chunk_size),
        total=n_chunks,
        desc="Counting genotypes",
        enabled=show_progress,
    )
    for start in starts:
        end = min(start + chunk_size, n_snps)
        # Windowed read: only reads bytes for variants [start:end]
        chunk = bed.read(index=np.s_[rows, start:end], dtype=dtype)
        yield chunk, start, end


def _as_index(indices: np.ndarray):
    """Contiguous ascending runs become slices so bed-reader reads a window."""
    if len(indices) > 1 and np.all(np.diff(indices) == 1):
        return slice(int(indices[0]), int(indices[-1]) + 1)
    return indices


class PlinkSource(VariantSource):
    """Random-access genotype source over a PLINK .bed/.bim/.fam triple.

    Values are copy counts of allele 1 (bed-reader's ``count_A1`` default):
    0.0, 1.0, 2.0, or NaN for missing calls.

    Attributes:
        bed_path: Path of the .bed file (companions share its stem).
        chromosome: Chromosome of each variant (.bim column 1).
        bp_position: Base-pair position of each variant (.bim column 4).
        sid: Variant identifiers (.bim column 2), the authoritative order.
        class_counts: (n_variants, 4) hom-ref/het/hom-alt/missing counts over
            the selected samples.
    """

    random_access = True
    is_dosage = False

    def __init__(
        self,
        bed_path: Path,
        sample_index: np.ndarray | None = None,
        chunk_size: int = 10_000,
        show_progress: bool = True,
    ) -> None:
        super().__init__()
        self.bed_path = Path(bed_path)
        if not self.bed_path.exists():
            raise FileNotFoundError(f"PLINK .bed file not found: {self.bed_path}")

        self._bed = self.attach(open_bed(self.bed_path))
        self.n_samples = self._bed.iid_count
        self.n_variants = self._bed.sid_count
        self.sample_index = sample_index
        self.sid = np.asarray(self._bed.sid)
        self.chromosome = np.asarray(self._bed.chromosome)
        self.bp_position = np.asarray(self._bed.bp_position)

        logger.info(
            f"PLINK source {self.bed_path.name}: {self.n_samples} samples, "
            f"{self.n_variants} variants"
        )
        try:
            self.class_counts = self._summarize(chunk_size, show_progress)
        except BaseException:
            self.close()
            raise

    def _summarize(self, chunk_size: int, show_progress: bool) -> np.ndarray:
        counts = np.zeros((self.n_variants, 4), dtype=np.int64)
        for chunk, start, end in stream_genotype_chunks(
            self._bed,
            chunk_size=chunk_size,
            sample_index=self.sample_index,
            show_progress=show_progress,
        ):
            counts[start:end] = count_genotype_classes(chunk)
        return counts

    def read(self, indices: Sequence[int] | np.ndarray) -> VariantBlock:
        idx = np.asarray(indices, dtype=np.intp)
        rows = slice(None) if self.sample_index is None else self.sample_index
        values = self._bed.read(index=np.s_[rows, _as_index(idx)], dtype=np.float64)
        return VariantBlock(
            values=values,
            chromosome=self.chromosome[idx],
            position=self.bp_position[idx],
            variant_id=self.sid[idx],
            is_dosage=False,
            class_counts=self.class_counts[idx],
        )

    def variant_ids(self) -> np.ndarray:
        return self.sid
