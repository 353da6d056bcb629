"""Configuration dataclasses for ordscan.

This module contains the dataclasses and enumerations that configure a scan:
output locations, the test kind, the genetic model used to encode genotypes,
and the genetic data backend.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from ordscan.errors import ConfigurationError


class TestKind(str, Enum):
    """Association test applied to each test unit."""

    __test__ = False  # not a pytest test class

    SCORE = "score"
    LRT = "lrt"


class GeneticModel(str, Enum):
    """Mapping of genotype copy counts (0/1/2) to a numeric covariate."""

    ADDITIVE = "additive"
    DOMINANT = "dominant"
    RECESSIVE = "recessive"


class GeneticFormat(str, Enum):
    """Genetic data backend."""

    PLINK = "plink"
    VCF = "vcf"


class VcfType(str, Enum):
    """Data extracted from VCF records: hard calls or dosages."""

    GT = "GT"
    DS = "DS"


LINKS = ("logit", "probit", "cloglog", "cauchit")


def _parse_enum(enum_cls: type[Enum], value, what: str, normalize=str.lower):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(normalize(str(value)))
    except ValueError:
        allowed = ", ".join(repr(m.value) for m in enum_cls)
        raise ConfigurationError(
            f"unrecognized {what} {value!r}; allowed values are {allowed}"
        ) from None


def parse_test_kind(value: "str | TestKind") -> TestKind:
    """Parse a test name case-insensitively (``"score"`` or ``"lrt"``)."""
    return _parse_enum(TestKind, value, "test")


def parse_genetic_model(value: "str | GeneticModel") -> GeneticModel:
    """Parse a genetic model name (additive, dominant or recessive)."""
    return _parse_enum(GeneticModel, value, "genetic model")


def parse_genetic_format(value: "str | GeneticFormat") -> GeneticFormat:
    """Parse a genetic format. Any name containing "plink" selects PLINK."""
    if isinstance(value, str) and "plink" in value.lower():
        return GeneticFormat.PLINK
    return _parse_enum(GeneticFormat, value, "genetic format")


def parse_vcf_type(value: "str | VcfType | None") -> VcfType:
    """Parse the VCF data type; a VCF scan cannot run without one."""
    if value is None:
        raise ConfigurationError(
            "vcf_type not specified. Allowable types are 'GT' for genotypes "
            "and 'DS' for dosages."
        )
    return _parse_enum(VcfType, value, "vcf_type", normalize=str.upper)


def parse_link(value: str) -> str:
    """Validate a link function name."""
    link = str(value).lower()
    if link not in LINKS:
        raise ConfigurationError(
            f"unrecognized link {value!r}; allowed values are {', '.join(LINKS)}"
        )
    return link


@dataclass
class OutputConfig:
    """Configuration for output files and directories.

    Attributes:
        outdir: Output directory for result files. Created if it doesn't exist.
        prefix: Prefix for output filenames (e.g., "result" produces
            "result.pval.txt").
        verbose: Enable verbose/debug output to console.
    """

    outdir: Path = field(default_factory=lambda: Path("output"))
    prefix: str = "ordinalgwas"
    verbose: bool = False

    @property
    def pval_path(self) -> Path:
        """Path to the association results: {outdir}/{prefix}.pval.txt"""
        return self.outdir / f"{self.prefix}.pval.txt"

    @property
    def null_path(self) -> Path:
        """Path to the null model summary: {outdir}/{prefix}.null.txt"""
        return self.outdir / f"{self.prefix}.null.txt"

    @property
    def log_path(self) -> Path:
        """Path to the run log: {outdir}/{prefix}.log.txt"""
        return self.outdir / f"{self.prefix}.log.txt"

    def ensure_outdir(self) -> None:
        """Create output directory if it doesn't exist."""
        self.outdir.mkdir(parents=True, exist_ok=True)


@dataclass
class ScanConfig:
    """Settings shared by every test unit of a scan.

    Attributes:
        test: Score test (refit-free) or likelihood-ratio test (refit per unit).
        genetic_model: Genotype coding. Ignored for VCF dosages.
        maxiter: Iteration cap handed to the ordinal optimizer.
        chunk_size: Variants per read when summarizing PLINK genotype counts.
        show_progress: Show progress bars and section logging.
    """

    test: TestKind = TestKind.SCORE
    genetic_model: GeneticModel = GeneticModel.ADDITIVE
    maxiter: int = 4000
    chunk_size: int = 10_000
    show_progress: bool = True

    def __post_init__(self) -> None:
        self.test = parse_test_kind(self.test)
        self.genetic_model = parse_genetic_model(self.genetic_model)
        if self.maxiter < 1:
            raise ConfigurationError(f"maxiter must be positive, got {self.maxiter}")
        if self.chunk_size < 1:
            raise ConfigurationError(
                f"chunk_size must be positive, got {self.chunk_size}"
            )
