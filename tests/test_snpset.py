"""Tests for SNP-set mapping files."""

from pathlib import Path

import numpy as np
import pytest
from numpy.testing import assert_array_equal

from ordscan.errors import ConfigurationError, DataConsistencyError
from ordscan.io.snpset import read_snpset_file, validate_snpset_order


@pytest.mark.tier0
class TestReadSnpsetFile:
    def test_reads_two_columns(self, tmp_path: Path):
        path = tmp_path / "sets.txt"
        path.write_text("gene1 rs1\ngene1\trs2\n\ngene2 rs3\n")
        set_ids, variant_ids = read_snpset_file(path)
        assert_array_equal(set_ids, ["gene1", "gene1", "gene2"])
        assert_array_equal(variant_ids, ["rs1", "rs2", "rs3"])

    def test_short_row(self, tmp_path: Path):
        path = tmp_path / "sets.txt"
        path.write_text("gene1 rs1\ngene2\n")
        with pytest.raises(ConfigurationError, match="line 2"):
            read_snpset_file(path)

    def test_empty_file(self, tmp_path: Path):
        path = tmp_path / "sets.txt"
        path.write_text("\n")
        with pytest.raises(ConfigurationError, match="empty"):
            read_snpset_file(path)


@pytest.mark.tier0
class TestValidateSnpsetOrder:
    def test_matching_order(self):
        validate_snpset_order(np.array(["a", "b"]), np.array(["a", "b"]))

    def test_length_mismatch(self):
        with pytest.raises(DataConsistencyError, match="lists 1 variants"):
            validate_snpset_order(np.array(["a"]), np.array(["a", "b"]))

    def test_reordered_rows(self):
        with pytest.raises(DataConsistencyError, match="row 1"):
            validate_snpset_order(np.array(["b", "a"]), np.array(["a", "b"]))
