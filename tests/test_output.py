"""Tests for result writers and layouts."""

from pathlib import Path

import numpy as np
import pytest

from ordscan.io.output import (
    HEADER_SINGLE_LRT,
    HEADER_SNPSET_SCORE,
    LAYOUTS,
    IncrementalResultWriter,
    format_explicit_lrt,
    format_explicit_score,
    format_float,
    format_window_lrt,
    write_null_summary,
)
from ordscan.scan.results import UnitResult


def _result(members, pval=0.25, effect=None, **kwargs) -> UnitResult:
    members = np.asarray(members)
    return UnitResult(
        pval=pval,
        effect=np.zeros(len(members)) if effect is None else np.asarray(effect),
        members=members,
        chromosome=np.array(["1"] * len(members)),
        position=(members + 1) * 100,
        variant_id=np.array([f"rs{m}" for m in members]),
        **kwargs,
    )


@pytest.mark.tier0
class TestFormatFloat:
    def test_round_trip_precision(self):
        assert format_float(0.1) == "0.1"
        assert float(format_float(1 / 3)) == 1 / 3

    def test_special_values(self):
        assert format_float(float("nan")) == "NaN"
        assert format_float(None) == "NaN"
        assert format_float(float("inf")) == "Inf"
        assert format_float(np.float64(-np.inf)) == "-Inf"


@pytest.mark.tier0
class TestLayouts:
    def test_every_layout_has_formatter(self):
        assert set(LAYOUTS) == {
            f"{mode}_{test}"
            for mode in ("single", "window", "snpset", "explicit", "gxe")
            for test in ("score", "lrt")
        }

    def test_single_lrt_row(self, tmp_path: Path):
        path = tmp_path / "out.pval.txt"
        with IncrementalResultWriter(path, "single_lrt") as writer:
            writer.write(_result([3], pval=0.5, effect=[0.25], maf=0.125, hwe_pval=1.0))
        lines = path.read_text().splitlines()
        assert lines[0] == HEADER_SINGLE_LRT
        assert lines[1] == "1,400,rs3,0.125,1.0,0.25,0.5"

    def test_window_lrt_reports_l2norm(self):
        row = format_window_lrt(_result([0, 1], effect=[3.0, 4.0], pval=0.01))
        assert row == "1,100,rs0,1,200,rs1,5.0,0.01"

    def test_snpset_score_row(self, tmp_path: Path):
        path = tmp_path / "out.pval.txt"
        with IncrementalResultWriter(path, "snpset_score") as writer:
            writer.write(_result([0, 4, 5], label="geneA", pval=0.002))
        assert path.read_text().splitlines() == [HEADER_SNPSET_SCORE, "geneA,3,0.002"]

    def test_explicit_sentences(self):
        result = _result([4, 17, 22], pval=0.03, effect=[0.0, 3.0, 4.0])
        assert format_explicit_score(result) == (
            "The joint pvalue of snps indexed at [4, 17, 22] is 0.03"
        )
        assert format_explicit_lrt(result) == (
            "The l2norm of the effect size vector is 5.0 and joint pvalue of snps "
            "indexed at [4, 17, 22] is 0.03"
        )

    def test_explicit_layout_has_no_header(self, tmp_path: Path):
        path = tmp_path / "summary.txt"
        with IncrementalResultWriter(path, "explicit_score") as writer:
            writer.write(_result([1, 2]))
        lines = path.read_text().splitlines()
        assert len(lines) == 1
        assert lines[0].startswith("The joint pvalue")

    def test_nan_row_for_failed_unit(self, tmp_path: Path):
        path = tmp_path / "out.pval.txt"
        with IncrementalResultWriter(path, "single_lrt") as writer:
            writer.write(
                _result([0], pval=float("nan"), effect=[np.nan], maf=0.3, hwe_pval=0.9)
            )
        assert path.read_text().splitlines()[1].endswith(",NaN,NaN")


@pytest.mark.tier0
class TestIncrementalResultWriter:
    def test_rows_visible_before_close(self, tmp_path: Path):
        path = tmp_path / "out.pval.txt"
        with IncrementalResultWriter(path, "single_score") as writer:
            writer.write(_result([0], maf=0.1, hwe_pval=0.5))
            # line buffering: header and first row already on disk
            assert len(path.read_text().splitlines()) == 2
            for members in ([1], [2]):
                writer.write(_result(members))
        assert writer.count == 3

    def test_creates_parent_directories(self, tmp_path: Path):
        path = tmp_path / "a" / "b" / "out.pval.txt"
        with IncrementalResultWriter(path, "window_score"):
            pass
        assert path.exists()

    def test_write_requires_context(self, tmp_path: Path):
        writer = IncrementalResultWriter(tmp_path / "x.txt", "single_score")
        with pytest.raises(RuntimeError, match="context manager"):
            writer.write(_result([0]))

    def test_unknown_layout(self, tmp_path: Path):
        with pytest.raises(ValueError, match="unknown output layout"):
            IncrementalResultWriter(tmp_path / "x.txt", "single_wald")


@pytest.mark.tier0
def test_null_summary(tmp_path: Path, null_model):
    path = write_null_summary(null_model, tmp_path / "run.null.txt")
    lines = path.read_text().splitlines()
    assert lines[0].startswith("## Ordinal regression null model (logit link)")
    header = lines.index("term,estimate,std_error,z")
    rows = [line.split(",") for line in lines[header + 1 :]]
    assert [r[0] for r in rows] == ["theta_1", "theta_2", "theta_3", "age", "sex"]
    assert all(float(r[2]) > 0 for r in rows)
