"""I/O modules for ordscan.

- source: Backend-independent variant source interface
- plink: PLINK binary format (.bed/.bim/.fam) via bed-reader
- vcf: VCF files via cyvcf2
- locate: File probing (compression suffixes) and source construction
- covariate: Delimited covariate tables
- snpset: SNP-set mapping files
- output: Result and null model writers
"""

from ordscan.io.covariate import CovariateTable, read_covariate_table
from ordscan.io.locate import open_variant_source
from ordscan.io.output import IncrementalResultWriter, write_null_summary
from ordscan.io.plink import PlinkSource
from ordscan.io.snpset import read_snpset_file
from ordscan.io.source import MemorySource, VariantBlock, VariantSource
from ordscan.io.vcf import VcfSource

__all__ = [
    "CovariateTable",
    "IncrementalResultWriter",
    "MemorySource",
    "PlinkSource",
    "VariantBlock",
    "VariantSource",
    "VcfSource",
    "open_variant_source",
    "read_covariate_table",
    "read_snpset_file",
    "write_null_summary",
]
