"""Tests for variant sources (PLINK, VCF, in-memory) and file location."""

import bz2
import gzip
import lzma
import shutil
from pathlib import Path

import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_array_equal

from ordscan.errors import ConfigurationError
from ordscan.io import MemorySource, PlinkSource, VcfSource, open_variant_source
from ordscan.io.locate import locate_file

from conftest import MISSING_VARIANT, MONOMORPHIC_VARIANT, write_vcf


def _compress(path: Path, opener) -> Path:
    suffix = {gzip.open: "gz", bz2.open: "bz2", lzma.open: "xz"}[opener]
    target = Path(f"{path}.{suffix}")
    with open(path, "rb") as src, opener(target, "wb") as dst:
        shutil.copyfileobj(src, dst)
    path.unlink()
    return target


@pytest.mark.tier0
class TestPlinkSource:
    def test_open_and_read(self, study):
        with open_variant_source(study.prefix, show_progress=False) as source:
            assert isinstance(source, PlinkSource)
            assert source.n_variants == study.n_variants
            assert source.n_samples == study.n_samples
            block = source.read([0, 2, 3])
            assert_array_equal(block.values, study.genotypes[:, [0, 2, 3]])
            assert_array_equal(block.variant_id, study.sid[[0, 2, 3]])
            assert_array_equal(block.position, study.bp_position[[0, 2, 3]])

    def test_missing_calls_are_nan(self, study):
        with open_variant_source(study.prefix, show_progress=False) as source:
            block = source.read([MISSING_VARIANT])
            assert np.isnan(block.values).sum() == 10
            assert block.class_counts[0, 3] == 10

    def test_class_counts_use_selected_samples(self, study):
        rows = np.arange(0, study.n_samples, 2)
        with open_variant_source(
            study.prefix, sample_selector=rows, show_progress=False
        ) as source:
            assert source.n_selected == len(rows)
            counts = source.class_counts[0]
            g = study.genotypes[rows, 0]
            expected = [(g == 0).sum(), (g == 1).sum(), (g == 2).sum()]
            assert_array_equal(counts[:3], expected)
            assert_array_equal(source.read([0]).values[:, 0], g)

    def test_monomorphic_class_counts(self, study):
        with open_variant_source(study.prefix, show_progress=False) as source:
            assert source.class_counts[MONOMORPHIC_VARIANT, 0] == study.n_samples

    def test_sequential_reads(self, study):
        with open_variant_source(study.prefix, show_progress=False) as source:
            source.skip(4)
            block = source.read_next(3)
            assert_array_equal(block.variant_id, study.sid[4:7])
            assert source.position == 7
            source.drain()
            assert source.position == study.n_variants
            with pytest.raises(IndexError):
                source.read_next(1)

    def test_sample_count_mismatch(self, study):
        with pytest.raises(ConfigurationError, match=r"\(150\) does not match"):
            open_variant_source(study.prefix, expected_samples=149)

    def test_compressed_triple(self, study):
        for ext in ("bed", "bim", "fam"):
            _compress(Path(f"{study.prefix}.{ext}"), gzip.open)
        with open_variant_source(study.prefix, show_progress=False) as source:
            assert_array_equal(source.read([1]).values[:, 0], study.genotypes[:, 1])
            tmp_bed = source.bed_path
        # temporary decompressed copies go away with the source
        assert not tmp_bed.exists()


@pytest.mark.tier0
class TestLocateFile:
    def test_plain_file_preferred(self, tmp_path: Path):
        path = tmp_path / "data.vcf"
        path.write_text("x")
        Path(f"{path}.gz").write_text("y")
        assert locate_file(path, "vcf file") == (path, None)

    def test_single_compressed_candidate(self, tmp_path: Path):
        path = tmp_path / "data.vcf"
        Path(f"{path}.xz").write_text("y")
        assert locate_file(path, "vcf file") == (Path(f"{path}.xz"), "xz")

    def test_ambiguous(self, tmp_path: Path):
        path = tmp_path / "data.vcf"
        Path(f"{path}.gz").write_text("a")
        Path(f"{path}.bz2").write_text("b")
        with pytest.raises(ConfigurationError, match="ambiguous"):
            locate_file(path, "vcf file")

    def test_unsupported_suffix(self, tmp_path: Path):
        path = tmp_path / "data.vcf"
        Path(f"{path}.zip").write_text("z")
        with pytest.raises(ConfigurationError, match="unsupported compression"):
            locate_file(path, "vcf file")

    def test_not_found(self, tmp_path: Path):
        with pytest.raises(ConfigurationError, match="not found"):
            locate_file(tmp_path / "data.vcf", "vcf file")

    def test_missing_plink_file(self, tmp_path: Path):
        with pytest.raises(ConfigurationError, match="bed file not found"):
            open_variant_source(tmp_path / "nothing")


@pytest.mark.tier0
class TestVcfSource:
    def test_gt_values(self, vcf_study):
        with open_variant_source(
            vcf_study.prefix, genetic_format="VCF", vcf_type="GT"
        ) as source:
            assert isinstance(source, VcfSource)
            assert not source.random_access
            assert source.n_variants == vcf_study.n_variants
            block = source.read([0, MISSING_VARIANT])
            assert_array_equal(
                block.values, vcf_study.genotypes[:, [0, MISSING_VARIANT]]
            )
            assert_array_equal(block.variant_id, vcf_study.sid[[0, MISSING_VARIANT]])
            assert block.class_counts[1, 3] == 10

    def test_skipped_records_update_position_and_lookahead(self, vcf_study):
        with open_variant_source(
            vcf_study.prefix, genetic_format="VCF", vcf_type="GT"
        ) as source:
            source.read([3, 6])
            # records 0..6 consumed, 4 and 5 decoded but not returned
            assert source.position == 7
            assert source.lookahead.variant_id == vcf_study.sid[6]
            source.skip(2)
            assert source.position == 9
            assert source.lookahead.variant_id == vcf_study.sid[8]
            with pytest.raises(ValueError, match="ascending"):
                source.read([2])
            source.drain()
            assert source.position == vcf_study.n_variants

    def test_dosages(self, vcf_study):
        with open_variant_source(
            vcf_study.prefix, genetic_format="VCF", vcf_type="DS"
        ) as source:
            assert source.is_dosage
            block = source.read_next(2)
            assert block.class_counts is None
            assert np.all((block.values >= 0) & (block.values <= 2))
            assert_allclose(block.values, vcf_study.genotypes[:, :2], atol=0.11)

    def test_dosage_field_required(self, study):
        write_vcf(
            Path(f"{study.prefix}.vcf"),
            study.genotypes,
            study.sid,
            study.chromosome,
            study.bp_position,
        )
        with pytest.raises(ConfigurationError, match="no DS field"):
            open_variant_source(study.prefix, genetic_format="VCF", vcf_type="DS")

    def test_dosage_missing_from_later_record(self, tmp_path: Path):
        header = [
            "##fileformat=VCFv4.2",
            "##contig=<ID=1>",
            '##FORMAT=<ID=GT,Number=1,Type=String,Description="Genotype">',
            '##FORMAT=<ID=DS,Number=1,Type=Float,Description="Alternate dosage">',
            "\t".join(
                ["#CHROM", "POS", "ID", "REF", "ALT", "QUAL", "FILTER", "INFO"]
                + ["FORMAT", "ind0", "ind1"]
            ),
        ]
        records = [
            "1\t100\trs1\tA\tG\t.\tPASS\t.\tGT:DS\t0/1:0.9\t1/1:1.8",
            "1\t200\trs2\tC\tT\t.\tPASS\t.\tGT\t0/0\t0/1",
        ]
        (tmp_path / "partial.vcf").write_text("\n".join(header + records) + "\n")
        with open_variant_source(
            tmp_path / "partial", genetic_format="VCF", vcf_type="DS"
        ) as source:
            assert_allclose(source.read([0]).values[:, 0], [0.9, 1.8])
            with pytest.raises(ConfigurationError, match="rs2 at 1:200 has no DS"):
                source.read([1])

    def test_vcf_type_required(self, vcf_study):
        with pytest.raises(ConfigurationError, match="vcf_type not specified"):
            open_variant_source(vcf_study.prefix, genetic_format="VCF")

    def test_sample_selection(self, vcf_study):
        rows = np.array([5, 1, 9])
        with open_variant_source(
            vcf_study.prefix,
            genetic_format="VCF",
            vcf_type="GT",
            sample_selector=rows,
            expected_samples=3,
        ) as source:
            values = source.read([0]).values[:, 0]
            assert_array_equal(values, vcf_study.genotypes[rows, 0])

    def test_sample_count_mismatch(self, vcf_study):
        with pytest.raises(ConfigurationError, match="does not match"):
            open_variant_source(
                vcf_study.prefix,
                genetic_format="VCF",
                vcf_type="GT",
                expected_samples=10,
            )

    @pytest.mark.parametrize("opener", [bz2.open, lzma.open])
    def test_compressed_vcf(self, vcf_study, opener):
        _compress(Path(f"{vcf_study.prefix}.vcf"), opener)
        with open_variant_source(
            vcf_study.prefix, genetic_format="VCF", vcf_type="GT"
        ) as source:
            assert source.n_variants == vcf_study.n_variants
            assert_array_equal(source.read([4]).values[:, 0], vcf_study.genotypes[:, 4])

    def test_materialize(self, vcf_study):
        with open_variant_source(
            vcf_study.prefix, genetic_format="VCF", vcf_type="GT"
        ) as source:
            source.skip(1)
            memory = source.materialize()
            assert isinstance(memory, MemorySource)
            assert source.position == vcf_study.n_variants
            assert memory.n_variants == vcf_study.n_variants - 1
            assert_array_equal(memory.variant_ids(), vcf_study.sid[1:])
            assert_array_equal(memory.read([0]).values[:, 0], vcf_study.genotypes[:, 1])


@pytest.mark.tier0
class TestMemorySource:
    def test_random_access_read(self):
        values = np.array([[0.0, 1.0, 2.0], [1.0, np.nan, 0.0]])
        source = MemorySource(
            values,
            np.array(["1"] * 3),
            np.array([10, 20, 30]),
            np.array(["a", "b", "c"]),
        )
        block = source.read([2, 0])
        assert_array_equal(block.variant_id, ["c", "a"])
        assert_array_equal(block.class_counts[1], [1, 1, 0, 0])
        assert source.n_selected == 2
