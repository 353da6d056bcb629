"""Variant scanning: encoding, grouping, test engines and the scan loop."""

from ordscan.scan.encode import encode_genotypes
from ordscan.scan.engine import (
    LikelihoodRatioEngine,
    ScoreTestEngine,
    make_engine,
)
from ordscan.scan.grouping import (
    ExplicitSet,
    FixedWindow,
    NamedSets,
    SingleVariant,
    TestUnit,
    partition_windows,
    resolve_grouping,
)
from ordscan.scan.gxe import GxeEngine
from ordscan.scan.results import UnitResult
from ordscan.scan.runner import ScanSummary, run_scan

__all__ = [
    "ExplicitSet",
    "FixedWindow",
    "GxeEngine",
    "LikelihoodRatioEngine",
    "NamedSets",
    "ScanSummary",
    "ScoreTestEngine",
    "SingleVariant",
    "TestUnit",
    "UnitResult",
    "encode_genotypes",
    "make_engine",
    "partition_windows",
    "resolve_grouping",
    "run_scan",
]
