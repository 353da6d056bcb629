"""Locate genetic data files and open the matching variant source.

A genetic file is named by its prefix: ``<prefix>.bed/.bim/.fam`` for PLINK
or ``<prefix>.vcf`` for VCF. Each file is looked up uncompressed first, then
under the compression suffixes in COMPRESSION_SUFFIXES, tried in order.
"""

import bz2
import glob
import gzip
import lzma
import shutil
import tempfile
from pathlib import Path

import numpy as np
from loguru import logger

from ordscan.core.config import (
    GeneticFormat,
    VcfType,
    parse_genetic_format,
    parse_vcf_type,
)
from ordscan.errors import ConfigurationError
from ordscan.io.plink import PlinkSource
from ordscan.io.source import (
    VariantSource,
    check_selected_samples,
    resolve_sample_index,
)
from ordscan.io.vcf import VcfSource, vcf_sample_count

COMPRESSION_SUFFIXES = ("gz", "bz2", "xz")

_OPENERS = {"gz": gzip.open, "bz2": bz2.open, "xz": lzma.open}


def locate_file(path: Path, what: str) -> tuple[Path, str | None]:
    """Find ``path`` itself or exactly one compressed variant of it.

    Args:
        path: Uncompressed file path, e.g. ``data/study.bed``.
        what: Description used in error messages ("bed file", "vcf file").

    Returns:
        Tuple of (existing path, compression suffix or None).

    Raises:
        ConfigurationError: If nothing is found, more than one compressed
            candidate exists, or the only candidate has an unsupported suffix.
    """
    path = Path(path)
    if path.is_file():
        return path, None

    found = [s for s in COMPRESSION_SUFFIXES if Path(f"{path}.{s}").is_file()]
    if len(found) > 1:
        raise ConfigurationError(
            f"ambiguous {what}: found {', '.join(f'{path.name}.{s}' for s in found)}"
        )
    if found:
        return Path(f"{path}.{found[0]}"), found[0]

    others = sorted(path.parent.glob(glob.escape(path.name) + ".*"))
    if others:
        raise ConfigurationError(
            f"{what} {others[0]} has an unsupported compression suffix; "
            f"supported suffixes are {', '.join(COMPRESSION_SUFFIXES)}"
        )
    raise ConfigurationError(f"{what} not found: {path}")


def decompress_to(path: Path, suffix: str, dest: Path) -> Path:
    """Decompress ``path`` into ``dest`` and return the new path."""
    logger.debug(f"Decompressing {path} to {dest}")
    with _OPENERS[suffix](path, "rb") as src, open(dest, "wb") as out:
        shutil.copyfileobj(src, out)
    return dest


def _open_plink(
    prefix: Path,
    sample_selector,
    expected_samples: int | None,
    chunk_size: int,
    show_progress: bool,
):
    located = {
        ext: locate_file(Path(f"{prefix}.{ext}"), f"{ext} file")
        for ext in ("bed", "fam", "bim")
    }
    tmpdir = None
    bed_path = located["bed"][0]
    try:
        if any(suffix is not None for _, suffix in located.values()):
            # bed-reader needs the three files side by side, uncompressed
            tmpdir = tempfile.TemporaryDirectory(prefix="ordscan-")
            stem = Path(tmpdir.name) / prefix.name
            for ext, (path, suffix) in located.items():
                dest = Path(f"{stem}.{ext}")
                if suffix is None:
                    shutil.copyfile(path, dest)
                else:
                    decompress_to(path, suffix, dest)
            bed_path = Path(f"{stem}.bed")

        n_samples = _count_lines(located["fam"][0], located["fam"][1])
        sample_index = resolve_sample_index(sample_selector, n_samples)
        if expected_samples is not None:
            n_selected = n_samples if sample_index is None else len(sample_index)
            check_selected_samples(n_selected, expected_samples)
        source = PlinkSource(
            bed_path,
            sample_index=sample_index,
            chunk_size=chunk_size,
            show_progress=show_progress,
        )
    except BaseException:
        if tmpdir is not None:
            tmpdir.cleanup()
        raise
    if tmpdir is not None:
        source.attach(tmpdir)
    return source


def _open_vcf(
    prefix: Path, vcf_type: VcfType, sample_selector, expected_samples: int | None
):
    path, suffix = locate_file(Path(f"{prefix}.vcf"), "vcf file")
    tmpdir = None
    try:
        # htslib reads gzip/bgzip natively; other codecs are expanded first
        if suffix is not None and suffix != "gz":
            tmpdir = tempfile.TemporaryDirectory(prefix="ordscan-")
            dest = Path(tmpdir.name) / f"{prefix.name}.vcf"
            path = decompress_to(path, suffix, dest)
        n_samples = vcf_sample_count(path)
        sample_index = resolve_sample_index(sample_selector, n_samples)
        if expected_samples is not None:
            n_selected = n_samples if sample_index is None else len(sample_index)
            check_selected_samples(n_selected, expected_samples)
        source = VcfSource(path, vcf_type, sample_index=sample_index)
    except BaseException:
        if tmpdir is not None:
            tmpdir.cleanup()
        raise
    if tmpdir is not None:
        source.attach(tmpdir)
    return source


def _count_lines(path: Path, suffix: str | None) -> int:
    opener = open if suffix is None else _OPENERS[suffix]
    with opener(path, "rt") as f:
        return sum(1 for line in f if line.strip())


def open_variant_source(
    prefix: "str | Path",
    genetic_format: "str | GeneticFormat" = GeneticFormat.PLINK,
    vcf_type: "str | VcfType | None" = None,
    sample_selector: "np.ndarray | list | None" = None,
    expected_samples: int | None = None,
    chunk_size: int = 10_000,
    show_progress: bool = True,
) -> VariantSource:
    """Open a PLINK or VCF variant source by file prefix.

    Args:
        prefix: Path without extension (``data/study`` for ``data/study.bed``).
        genetic_format: "PLINK" (any string containing "plink") or "VCF".
        vcf_type: "GT" or "DS"; required for VCF.
        sample_selector: None, boolean mask or 0-based sample indices.
        expected_samples: Null-model sample count; checked against the
            selection before any variant is read.
        chunk_size: Variants per read for the PLINK class-count pass.
        show_progress: Show the PLINK class-count progress bar.

    Returns:
        An open VariantSource. Close it (or use it as a context manager) to
        release file handles and any temporary decompressed copies.

    Raises:
        ConfigurationError: On missing, ambiguous or unsupported files, a
            missing VCF type, a VCF without DS when dosages are requested,
            an invalid sample selector or a sample-count mismatch.
    """
    prefix = Path(prefix)
    fmt = parse_genetic_format(genetic_format)
    if fmt is GeneticFormat.PLINK:
        return _open_plink(
            prefix, sample_selector, expected_samples, chunk_size, show_progress
        )
    return _open_vcf(
        prefix, parse_vcf_type(vcf_type), sample_selector, expected_samples
    )
