"""Pytest fixtures for the ordscan test suite."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import numpy as np
import pytest
from bed_reader import to_bed

from ordscan.core import configure_jax
from ordscan.polr import FittedNullModel, fit_null_model
from ordscan.utils import setup_logging

# =============================================================================
# Test Tier System
# =============================================================================
#
# tier0 - Fast unit tests (<5s each)
#   - Pure computation on in-memory arrays or tiny synthetic files
#   - Run: pytest -m tier0
#
# tier1 - End-to-end scans (<60s each)
#   - Null fit + full scan over synthetic PLINK/VCF files
#   - Run: pytest -m tier1
#
# Quick reference:
#   pytest -m tier0             # Fast tests only
#   pytest                      # All tests
# =============================================================================

# Variant 2 carries the simulated genetic effect, variant 5 is monomorphic
# and variant 7 has missing calls
CAUSAL_VARIANT = 2
MONOMORPHIC_VARIANT = 5
MISSING_VARIANT = 7


@pytest.fixture(autouse=True)
def setup_jax():
    """Configure JAX with 64-bit precision before each test."""
    configure_jax(enable_x64=True)


@pytest.fixture(autouse=True)
def reset_logging():
    """Restore INFO console logging after tests that reconfigure loguru."""
    yield
    setup_logging()


def simulate_genotypes(
    rng: np.random.Generator, n_samples: int, n_variants: int
) -> np.ndarray:
    """Copy counts 0/1/2 under HWE with MAFs in [0.1, 0.5]."""
    mafs = rng.uniform(0.1, 0.5, n_variants)
    return rng.binomial(2, mafs, size=(n_samples, n_variants)).astype(np.float64)


def simulate_ordinal(
    rng: np.random.Generator,
    eta: np.ndarray,
    thresholds: tuple[float, ...] = (-1.0, 0.0, 1.0),
) -> np.ndarray:
    """Ordinal response 1..K from a logistic latent variable."""
    latent = eta + rng.logistic(size=len(eta))
    return 1 + np.sum(latent[:, np.newaxis] > np.asarray(thresholds), axis=1)


@dataclass
class Study:
    """Synthetic study: genotypes, phenotype and covariates on disk and in memory."""

    prefix: Path
    genotypes: np.ndarray
    y: np.ndarray
    X: np.ndarray
    sid: np.ndarray
    chromosome: np.ndarray
    bp_position: np.ndarray

    @property
    def n_samples(self) -> int:
        return self.genotypes.shape[0]

    @property
    def n_variants(self) -> int:
        return self.genotypes.shape[1]


def make_study(
    directory: Path,
    n_samples: int = 150,
    n_variants: int = 30,
    seed: int = 42,
    name: str = "study",
) -> Study:
    """Simulate a study and write it as a PLINK triple under ``directory``."""
    rng = np.random.default_rng(seed)
    genotypes = simulate_genotypes(rng, n_samples, n_variants)
    genotypes[:, CAUSAL_VARIANT] = rng.binomial(2, 0.4, n_samples)
    genotypes[:, MONOMORPHIC_VARIANT] = 0.0

    X = np.column_stack(
        [rng.normal(size=n_samples), rng.binomial(1, 0.5, n_samples)]
    )
    eta = X @ np.array([0.5, -0.4]) + 1.2 * genotypes[:, CAUSAL_VARIANT]
    y = simulate_ordinal(rng, eta - eta.mean())

    genotypes[rng.choice(n_samples, 10, replace=False), MISSING_VARIANT] = np.nan

    sid = np.array([f"rs{1000 + j}" for j in range(n_variants)])
    half = n_variants // 2
    chromosome = np.array(["1"] * half + ["2"] * (n_variants - half))
    bp_position = np.arange(1, n_variants + 1) * 100

    prefix = Path(directory) / name
    to_bed(
        f"{prefix}.bed",
        genotypes,
        properties={
            "iid": [f"ind{i}" for i in range(n_samples)],
            "sid": sid,
            "chromosome": chromosome,
            "bp_position": bp_position,
        },
    )
    return Study(
        prefix=prefix,
        genotypes=genotypes,
        y=y,
        X=X,
        sid=sid,
        chromosome=chromosome,
        bp_position=bp_position,
    )


def write_vcf(
    path: Path,
    genotypes: np.ndarray,
    sid: np.ndarray,
    chromosome: np.ndarray,
    bp_position: np.ndarray,
    dosages: np.ndarray | None = None,
) -> Path:
    """Write copy counts (NaN = missing) as an uncompressed VCF.

    GT carries the copy counts; DS is added when ``dosages`` is given.
    """
    n_samples, n_variants = genotypes.shape
    gt_text = {0.0: "0/0", 1.0: "0/1", 2.0: "1/1"}
    fmt = "GT" if dosages is None else "GT:DS"
    lines = [
        "##fileformat=VCFv4.2",
        *(f"##contig=<ID={c}>" for c in dict.fromkeys(chromosome.tolist())),
        '##FORMAT=<ID=GT,Number=1,Type=String,Description="Genotype">',
    ]
    if dosages is not None:
        lines.append(
            '##FORMAT=<ID=DS,Number=1,Type=Float,Description="Alternate dosage">'
        )
    lines.append(
        "\t".join(
            ["#CHROM", "POS", "ID", "REF", "ALT", "QUAL", "FILTER", "INFO", "FORMAT"]
            + [f"ind{i}" for i in range(n_samples)]
        )
    )
    for j in range(n_variants):
        calls = []
        for i in range(n_samples):
            g = genotypes[i, j]
            call = "./." if np.isnan(g) else gt_text[float(g)]
            if dosages is not None:
                call += f":{dosages[i, j]:.4f}"
            calls.append(call)
        lines.append(
            "\t".join(
                [str(chromosome[j]), str(int(bp_position[j])), str(sid[j])]
                + ["A", "G", ".", "PASS", ".", fmt]
                + calls
            )
        )
    path = Path(path)
    path.write_text("\n".join(lines) + "\n")
    return path


@pytest.fixture
def study(tmp_path: Path) -> Study:
    """Synthetic 150-sample, 30-variant study written as a PLINK triple."""
    return make_study(tmp_path)


@pytest.fixture
def vcf_study(study: Study) -> Study:
    """The same study also written as ``<prefix>.vcf`` with GT and DS fields."""
    rng = np.random.default_rng(7)
    dosages = np.nan_to_num(study.genotypes, nan=1.0)
    dosages = np.clip(dosages + rng.uniform(-0.1, 0.1, dosages.shape), 0.0, 2.0)
    dosages[:, MONOMORPHIC_VARIANT] = 0.0
    write_vcf(
        Path(f"{study.prefix}.vcf"),
        study.genotypes,
        study.sid,
        study.chromosome,
        study.bp_position,
        dosages=dosages,
    )
    return study


@pytest.fixture
def null_model(study: Study) -> FittedNullModel:
    """Null model y ~ X fitted on the synthetic study."""
    return fit_null_model(study.y, study.X, covariate_names=["age", "sex"])


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    """Create temporary output directory for test results."""
    out = tmp_path / "output"
    out.mkdir()
    return out
