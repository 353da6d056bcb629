"""Writers for association results and null model summaries.

Association results are comma-delimited text, one header line plus one row
per test unit, streamed as units complete. The column layout depends on the
test kind and grouping mode:

    single_score    chr,pos,id,maf,hwe_pval,pval
    single_lrt      chr,pos,id,maf,hwe_pval,effect,pval
    window_score    start_chr,start_pos,start_id,end_chr,end_pos,end_id,pval
    window_lrt      window_score columns with l2norm_effect before pval
    snpset_score    snpset_id,n_members,pval
    snpset_lrt      snpset_id,n_members,l2norm_effect,pval
    explicit_score  one summary sentence, no header
    explicit_lrt    one summary sentence, no header
    gxe_score       chr,pos,id,maf,hwe_pval,snp_effect_null,pval
    gxe_lrt         chr,pos,id,maf,hwe_pval,snp_effect_null,snp_effect_full,
                    gxe_effect,pval
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from ordscan.scan.results import UnitResult


def format_float(value: float | None) -> str:
    """Shortest round-trip decimal text; NaN (or None) becomes "NaN"."""
    if value is None:
        return "NaN"
    value = float(value)
    if np.isnan(value):
        return "NaN"
    if np.isinf(value):
        return "Inf" if value > 0 else "-Inf"
    return repr(value)


def _single_prefix(result: UnitResult) -> list[str]:
    return [
        str(result.chromosome[0]),
        str(int(result.position[0])),
        str(result.variant_id[0]),
        format_float(result.maf),
        format_float(result.hwe_pval),
    ]


def _window_prefix(result: UnitResult) -> list[str]:
    return [
        str(result.chromosome[0]),
        str(int(result.position[0])),
        str(result.variant_id[0]),
        str(result.chromosome[-1]),
        str(int(result.position[-1])),
        str(result.variant_id[-1]),
    ]


def _snpset_prefix(result: UnitResult) -> list[str]:
    return [str(result.label), str(result.n_members)]


def format_single_score(result: UnitResult) -> str:
    return ",".join(_single_prefix(result) + [format_float(result.pval)])


def format_single_lrt(result: UnitResult) -> str:
    return ",".join(
        _single_prefix(result)
        + [format_float(result.effect[0]), format_float(result.pval)]
    )


def format_window_score(result: UnitResult) -> str:
    return ",".join(_window_prefix(result) + [format_float(result.pval)])


def format_window_lrt(result: UnitResult) -> str:
    return ",".join(
        _window_prefix(result)
        + [format_float(result.l2norm_effect), format_float(result.pval)]
    )


def format_snpset_score(result: UnitResult) -> str:
    return ",".join(_snpset_prefix(result) + [format_float(result.pval)])


def format_snpset_lrt(result: UnitResult) -> str:
    return ",".join(
        _snpset_prefix(result)
        + [format_float(result.l2norm_effect), format_float(result.pval)]
    )


def _format_indices(members: np.ndarray) -> str:
    return "[" + ", ".join(str(int(i)) for i in members) + "]"


def format_explicit_score(result: UnitResult) -> str:
    return (
        f"The joint pvalue of snps indexed at {_format_indices(result.members)} "
        f"is {format_float(result.pval)}"
    )


def format_explicit_lrt(result: UnitResult) -> str:
    return (
        f"The l2norm of the effect size vector is "
        f"{format_float(result.l2norm_effect)} and joint pvalue of snps indexed "
        f"at {_format_indices(result.members)} is {format_float(result.pval)}"
    )


def format_gxe_score(result: UnitResult) -> str:
    return ",".join(
        _single_prefix(result)
        + [format_float(result.effect[0]), format_float(result.pval)]
    )


def format_gxe_lrt(result: UnitResult) -> str:
    return ",".join(
        _single_prefix(result)
        + [format_float(e) for e in result.effect[:3]]
        + [format_float(result.pval)]
    )


HEADER_SINGLE_SCORE = "chr,pos,id,maf,hwe_pval,pval"
HEADER_SINGLE_LRT = "chr,pos,id,maf,hwe_pval,effect,pval"
HEADER_WINDOW_SCORE = "start_chr,start_pos,start_id,end_chr,end_pos,end_id,pval"
HEADER_WINDOW_LRT = (
    "start_chr,start_pos,start_id,end_chr,end_pos,end_id,l2norm_effect,pval"
)
HEADER_SNPSET_SCORE = "snpset_id,n_members,pval"
HEADER_SNPSET_LRT = "snpset_id,n_members,l2norm_effect,pval"
HEADER_GXE_SCORE = "chr,pos,id,maf,hwe_pval,snp_effect_null,pval"
HEADER_GXE_LRT = (
    "chr,pos,id,maf,hwe_pval,snp_effect_null,snp_effect_full,gxe_effect,pval"
)

# layout name -> (header line or None, row formatter)
LAYOUTS: dict[str, tuple[str | None, Callable[[UnitResult], str]]] = {
    "single_score": (HEADER_SINGLE_SCORE, format_single_score),
    "single_lrt": (HEADER_SINGLE_LRT, format_single_lrt),
    "window_score": (HEADER_WINDOW_SCORE, format_window_score),
    "window_lrt": (HEADER_WINDOW_LRT, format_window_lrt),
    "snpset_score": (HEADER_SNPSET_SCORE, format_snpset_score),
    "snpset_lrt": (HEADER_SNPSET_LRT, format_snpset_lrt),
    "explicit_score": (None, format_explicit_score),
    "explicit_lrt": (None, format_explicit_lrt),
    "gxe_score": (HEADER_GXE_SCORE, format_gxe_score),
    "gxe_lrt": (HEADER_GXE_LRT, format_gxe_lrt),
}


class IncrementalResultWriter:
    """Write association results incrementally to disk.

    Context manager that writes each row as soon as its test unit completes.
    The file is line-buffered, so an interrupted scan leaves a parseable
    prefix: the header plus every completed row.

    Example:
        with IncrementalResultWriter(Path("out.pval.txt"), "window_lrt") as writer:
            for result in engine_results():
                writer.write(result)
        print(f"Wrote {writer.count} results")
    """

    def __init__(self, path: Path, layout: str):
        """Initialize writer with output path.

        Args:
            path: Output file path. Parent directories created if needed.
            layout: Row layout name, a key of LAYOUTS.

        Raises:
            ValueError: If the layout is unknown.
        """
        if layout not in LAYOUTS:
            raise ValueError(
                f"unknown output layout {layout!r}; known layouts: {sorted(LAYOUTS)}"
            )
        self.path = Path(path)
        self.layout = layout
        self._header, self._format = LAYOUTS[layout]
        self._file = None
        self._count = 0

    def __enter__(self) -> "IncrementalResultWriter":
        """Open file and write header."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self.path, "w", buffering=1)
        if self._header is not None:
            self._file.write(self._header + "\n")
        return self

    def write(self, result: UnitResult) -> None:
        """Write single result immediately to disk."""
        if self._file is None:
            raise RuntimeError("Writer not opened. Use as context manager.")
        self._file.write(self._format(result) + "\n")
        self._count += 1

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Close file."""
        if self._file:
            self._file.close()
            self._file = None

    @property
    def count(self) -> int:
        """Number of results written."""
        return self._count


def write_null_summary(model, path: Path) -> Path:
    """Write the fitted null model as a coefficient table.

    Args:
        model: FittedNullModel.
        path: Output file path. Parent directories created if needed.

    Returns:
        The written path.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    coef = model.coefficients
    se = model.standard_errors()
    with np.errstate(divide="ignore", invalid="ignore"):
        z = coef / se
    with open(path, "w") as f:
        f.write(f"## Ordinal regression null model ({model.link} link)\n")
        f.write(f"## n = {model.n}\n")
        f.write(f"## categories = {model.n_categories}\n")
        f.write(f"## loglikelihood = {format_float(model.loglik)}\n")
        f.write(f"## deviance = {format_float(model.deviance)}\n")
        f.write(f"## iterations = {model.n_iter}\n")
        f.write("term,estimate,std_error,z\n")
        for name, c, s, zz in zip(model.coef_names, coef, se, z):
            f.write(f"{name},{format_float(c)},{format_float(s)},{format_float(zz)}\n")
    return path
