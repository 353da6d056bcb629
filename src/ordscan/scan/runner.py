"""Sequential scan runner.

Each test unit is fully resolved (read block, encode, test, write row)
before the next one starts. Checks that can fail (sample count, grouping
arguments, snpset order) all run before the output file is opened, so a
misconfigured scan leaves no output behind.
"""

import time
from dataclasses import dataclass
from pathlib import Path

import numpy as np
from loguru import logger

from ordscan.core.config import ScanConfig
from ordscan.core.progress import progress_iterator
from ordscan.errors import ConfigurationError
from ordscan.io.output import IncrementalResultWriter
from ordscan.io.source import VariantSource, check_selected_samples
from ordscan.scan.engine import AssociationEngine, make_engine
from ordscan.scan.grouping import GroupingStrategy, SingleVariant
from ordscan.scan.gxe import GxeEngine
from ordscan.utils.logging import log_rss_memory


@dataclass
class ScanSummary:
    """Counts and timing of a finished scan."""

    output_path: Path
    layout: str
    n_units: int
    n_tested: int
    n_monomorphic: int
    n_failed: int
    records_consumed: int
    elapsed: float


def run_scan(
    null_model,
    source: VariantSource,
    grouping: GroupingStrategy,
    config: ScanConfig,
    output_path: Path,
    environment: np.ndarray | None = None,
) -> ScanSummary:
    """Scan every test unit of ``grouping`` and stream results to disk.

    Args:
        null_model: FittedNullModel shared read-only by every unit.
        source: Open variant source; forward-only sources are materialized
            when the grouping needs random access.
        grouping: Grouping strategy.
        config: Test kind, genetic model and optimizer settings.
        output_path: Result file, created only after every check passes.
        environment: Environment covariate; switches to the GxE
            interaction scan (single-variant grouping only).

    Returns:
        ScanSummary.

    Raises:
        ConfigurationError: On sample-count mismatch or invalid grouping.
        DataConsistencyError: If a snpset mapping disagrees with the source.
    """
    start_time = time.perf_counter()
    output_path = Path(output_path)
    file_source = source

    check_selected_samples(source.n_selected, null_model.n)
    if environment is not None and not isinstance(grouping, SingleVariant):
        raise ConfigurationError("GxE scans test one variant at a time")

    if grouping.requires_random_access and not source.random_access:
        source = source.materialize()
    grouping.validate(source)

    n_variants = source.n_variants
    n_units = grouping.count_units(n_variants)
    max_width = max(1, grouping.max_width(n_variants))

    engine: AssociationEngine
    if environment is not None:
        engine = GxeEngine(
            null_model,
            config.genetic_model,
            environment,
            test=config.test,
            maxiter=config.maxiter,
        )
        layout = f"gxe_{config.test.value}"
    else:
        engine = make_engine(
            config.test,
            null_model,
            config.genetic_model,
            max_width=max_width,
            maxiter=config.maxiter,
        )
        layout = f"{grouping.mode}_{config.test.value}"

    if config.show_progress:
        logger.info(f"## Performing {config.test.value} test ({layout})")
        logger.info(f"number of analyzed individuals = {null_model.n}")
        logger.info(f"number of total SNPs/variants = {n_variants}")
        logger.info(f"number of test units = {n_units}")
        logger.info(f"maximum unit width = {max_width}")
        log_rss_memory("scan", "start")

    t_scan_start = time.perf_counter()
    units = progress_iterator(
        grouping.units(n_variants),
        total=n_units,
        desc="Testing",
        enabled=config.show_progress,
    )
    with IncrementalResultWriter(output_path, layout) as writer:
        for unit in units:
            block = source.read(unit.members)
            writer.write(engine.evaluate(unit, block))
    t_scan_end = time.perf_counter()

    # Forward-only sources must end aligned with the file
    file_source.drain()

    elapsed = time.perf_counter() - start_time
    if engine.n_failed:
        logger.warning(f"{engine.n_failed} test unit(s) did not converge (NaN rows)")
    if config.show_progress:
        log_rss_memory("scan", "end")
        logger.info(f"Wrote {writer.count:,} results to {output_path}")
        logger.info("## Timing breakdown:")
        logger.info(f"##   Setup:     {t_scan_start - start_time:.2f}s")
        logger.info(f"##   Tests:     {t_scan_end - t_scan_start:.2f}s")
        logger.info(f"##   Total:     {elapsed:.2f}s")

    return ScanSummary(
        output_path=output_path,
        layout=layout,
        n_units=writer.count,
        n_tested=engine.n_tested,
        n_monomorphic=engine.n_monomorphic,
        n_failed=engine.n_failed,
        records_consumed=file_source.position,
        elapsed=elapsed,
    )
