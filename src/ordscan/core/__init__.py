"""Core configuration and shared numerics for ordscan.

- config: Configuration dataclasses and enumerations
- jax_config: JAX configuration
- progress: Progress bar wrapper
- stats: Chi-square tail probabilities
- variant_stats: Genotype class counts, MAF and HWE
"""

from ordscan.core.config import (
    GeneticFormat,
    GeneticModel,
    OutputConfig,
    ScanConfig,
    TestKind,
    VcfType,
)
from ordscan.core.jax_config import configure_jax, get_jax_info

__all__ = [
    "GeneticFormat",
    "GeneticModel",
    "OutputConfig",
    "ScanConfig",
    "TestKind",
    "VcfType",
    "configure_jax",
    "get_jax_info",
]
