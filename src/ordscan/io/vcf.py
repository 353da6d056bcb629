"""VCF genotype access using cyvcf2.

A VCF file is a forward-only record stream. Every record up to the last one
a scan needs has to be decoded, including records a variant mask leaves
out, so the stream position always matches the variant index space used by
grouping strategies. Decoded-but-untested records still update the
``lookahead`` holder with their chromosome, position and id.
"""

from collections.abc import Sequence
from contextlib import closing
from pathlib import Path

import numpy as np
from cyvcf2 import VCF
from loguru import logger

from ordscan.core.config import VcfType, parse_vcf_type
from ordscan.core.variant_stats import count_genotype_classes
from ordscan.errors import ConfigurationError
from ordscan.io.source import RecordInfo, VariantBlock, VariantSource

# cyvcf2 gt_types code for an unknown call when opened with gts012=True
_GT_UNKNOWN = 3


def _record_id(variant) -> str:
    return variant.ID if variant.ID is not None else "."


def _dosage_field(variant) -> np.ndarray | None:
    """DS FORMAT values of a record, or None when the field is absent.

    cyvcf2 raises KeyError for a field the header never declares and
    returns None for a declared field the record leaves out.
    """
    try:
        return variant.format("DS")
    except KeyError:
        return None


def vcf_sample_count(path: Path) -> int:
    """Number of samples declared in the VCF header."""
    vcf = VCF(str(path))
    try:
        return len(vcf.samples)
    finally:
        vcf.close()


def count_vcf_records(path: Path, vcf_type: VcfType) -> tuple[int, int]:
    """Count records and samples with a dedicated pass over the file.

    The first record is also checked for the DS field when dosages are
    requested, so a scan fails before any test runs.

    Args:
        path: VCF file (plain or gzip/bgzip compressed).
        vcf_type: GT for hard calls, DS for dosages.

    Returns:
        Tuple of (n_records, n_samples).

    Raises:
        ConfigurationError: If dosages are requested and the first record has
            no DS field.
    """
    vcf = VCF(str(path), gts012=True)
    try:
        n_samples = len(vcf.samples)
        n_records = 0
        check_ds = vcf_type is VcfType.DS
        for variant in vcf:
            if check_ds and _dosage_field(variant) is None:
                raise ConfigurationError(
                    f"dosage requested but the first record of {path} has no DS field"
                )
            check_ds = False
            n_records += 1
    finally:
        vcf.close()
    return n_records, n_samples


class VcfSource(VariantSource):
    """Forward-only variant source over a VCF file.

    In GT mode values are alternate-allele copy counts (0/1/2, NaN for
    unknown calls); in DS mode they are the DS FORMAT field.

    Attributes:
        path: VCF file being streamed.
        vcf_type: GT or DS.
        sample_names: Sample ids from the header, in file order.
        lookahead: Identity of the most recently decoded record.
    """

    random_access = False

    def __init__(
        self,
        path: Path,
        vcf_type: "VcfType | str | None",
        sample_index: np.ndarray | None = None,
    ) -> None:
        super().__init__()
        self.path = Path(path)
        if not self.path.exists():
            raise FileNotFoundError(f"VCF file not found: {self.path}")
        self.vcf_type = parse_vcf_type(vcf_type)
        self.is_dosage = self.vcf_type is VcfType.DS
        self.n_variants, self.n_samples = count_vcf_records(self.path, self.vcf_type)
        self.sample_index = sample_index

        self._vcf = VCF(str(self.path), gts012=True)
        self.attach(closing(self._vcf))
        self.sample_names = list(self._vcf.samples)
        self._records = iter(self._vcf)
        self.lookahead = RecordInfo(chromosome="", position=0, variant_id="")

        logger.info(
            f"VCF source {self.path.name}: {self.n_samples} samples, "
            f"{self.n_variants} records ({self.vcf_type.value})"
        )

    def _next_record(self):
        try:
            variant = next(self._records)
        except StopIteration:
            raise IndexError(
                f"VCF stream exhausted after {self._position} records"
            ) from None
        self._position += 1
        self.lookahead = RecordInfo(
            chromosome=variant.CHROM,
            position=int(variant.POS),
            variant_id=_record_id(variant),
        )
        return variant

    def _values(self, variant) -> np.ndarray:
        if self.is_dosage:
            ds = _dosage_field(variant)
            if ds is None:
                raise ConfigurationError(
                    f"record {self.lookahead.variant_id} at "
                    f"{self.lookahead.chromosome}:{self.lookahead.position} "
                    f"has no DS field"
                )
            column = np.asarray(ds[:, 0], dtype=np.float64)
        else:
            column = variant.gt_types.astype(np.float64)
            column[column == _GT_UNKNOWN] = np.nan
        if self.sample_index is not None:
            column = column[self.sample_index]
        return column

    def read(self, indices: Sequence[int] | np.ndarray) -> VariantBlock:
        """Read records at ascending ``indices`` at or after the stream position.

        Records between the requested indices are decoded and discarded.
        """
        idx = np.asarray(indices, dtype=np.intp)
        if len(idx) and (idx[0] < self._position or np.any(np.diff(idx) <= 0)):
            raise ValueError(
                f"VCF records must be read in ascending order from position "
                f"{self._position}; got indices starting at {idx[0]}"
            )
        columns = []
        chromosome, position, variant_id = [], [], []
        for i in idx:
            self.skip(int(i) - self._position)
            variant = self._next_record()
            columns.append(self._values(variant))
            chromosome.append(self.lookahead.chromosome)
            position.append(self.lookahead.position)
            variant_id.append(self.lookahead.variant_id)

        values = (
            np.column_stack(columns)
            if columns
            else np.empty((self.n_selected, 0), dtype=np.float64)
        )
        return VariantBlock(
            values=values,
            chromosome=np.asarray(chromosome),
            position=np.asarray(position),
            variant_id=np.asarray(variant_id),
            is_dosage=self.is_dosage,
            class_counts=None if self.is_dosage else count_genotype_classes(values),
        )

    def read_next(self, width: int) -> VariantBlock:
        return self.read(np.arange(self._position, self._position + width))

    def skip(self, count: int) -> None:
        if count < 0:
            raise ValueError(f"cannot skip a negative number of variants: {count}")
        for _ in range(count):
            self._next_record()

