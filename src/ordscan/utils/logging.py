"""Logging utilities for ordscan.

Console logging goes through loguru to whatever ``sys.stdout`` is current
when a message is emitted, so a redirected or replaced stdout (notebooks,
test runners) never leaves a handler pointing at a closed stream. The run
log written next to the results records the null model, the scan summary
and the timings of one ``ordscan`` invocation.
"""

import sys
from datetime import datetime
from pathlib import Path

from loguru import logger

import ordscan

CONSOLE_FORMAT = "{time:HH:mm:ss} | <level>{level: <8}</level> | {message}"


def _stdout_sink(message) -> None:
    sys.stdout.write(message)
    sys.stdout.flush()


def setup_logging(
    verbose: bool = False,
    log_file: Path | None = None,
) -> None:
    """Configure loguru for a scan.

    Args:
        verbose: Log DEBUG messages (per-unit convergence notes, sample
            selection) to the console instead of INFO and above.
        log_file: Optional JSON-lines file receiving every DEBUG message.
    """
    logger.remove()
    logger.add(
        _stdout_sink,
        level="DEBUG" if verbose else "INFO",
        format=CONSOLE_FORMAT,
        colorize=sys.stdout.isatty(),
    )
    if log_file:
        logger.add(log_file, serialize=True, level="DEBUG")


def _section(f, title: str, values: dict) -> None:
    f.write(f"## {title}:\n")
    for key, value in values.items():
        if isinstance(value, float):
            value = f"{value:.6g}"
        f.write(f"## {key} = {value}\n")
    f.write("##\n")


def write_run_log(
    output_config: "ordscan.core.config.OutputConfig",
    null_model: "ordscan.polr.model.FittedNullModel",
    command_line: str,
    null_seconds: float,
    summary: "ordscan.scan.runner.ScanSummary | None" = None,
    inputs: dict | None = None,
) -> Path:
    """Write ``{outdir}/{prefix}.log.txt`` for one invocation.

    Args:
        output_config: Output directory and prefix.
        null_model: The fitted null model shared by the scan.
        command_line: The command line used to invoke the program.
        null_seconds: Wall time of the null fit.
        summary: Result of the scan; None when only the null model was fitted.
        inputs: Input files and options worth recording (genetic file,
            test kind, environment column, ...).

    Returns:
        Path to the written log file.

    Example output:
        ## ordscan Version = 0.1.0
        ## Command Line Input = ordscan scan -g data/study -c cov.csv -y y
        ##
        ## Null Model:
        ## n_samples = 500
        ## link = logit
        ...
        ## Scan:
        ## layout = single_score
        ## n_units = 1000
        ...
        ## Computation Time:
        ## null fit = 0.84 seconds
        ## scan = 12.31 seconds
        ## total = 13.15 seconds
    """
    output_config.ensure_outdir()
    log_path = output_config.log_path

    null_values = {
        "n_samples": null_model.n,
        "n_covariates": null_model.p,
        "n_categories": null_model.n_categories,
        "link": null_model.link,
        "loglik": null_model.loglik,
        "iterations": null_model.n_iter,
    }
    timing = {"null fit": null_seconds}

    with open(log_path, "w") as f:
        f.write("##\n")
        f.write(f"## ordscan Version = {ordscan.__version__}\n")
        f.write(f"## Date = {datetime.now().isoformat()}\n")
        f.write(f"## Command Line Input = {command_line}\n")
        f.write("##\n")
        if inputs:
            _section(f, "Inputs", inputs)
        _section(f, "Null Model", null_values)
        if summary is not None:
            _section(
                f,
                "Scan",
                {
                    "layout": summary.layout,
                    "output_file": summary.output_path,
                    "n_units": summary.n_units,
                    "n_tested": summary.n_tested,
                    "n_monomorphic": summary.n_monomorphic,
                    "n_failed": summary.n_failed,
                    "records_consumed": summary.records_consumed,
                },
            )
            timing["scan"] = summary.elapsed
        f.write("## Computation Time:\n")
        for key, seconds in timing.items():
            f.write(f"## {key} = {seconds:.2f} seconds\n")
        f.write(f"## total = {sum(timing.values()):.2f} seconds\n")
        f.write("##\n")

    return log_path


def log_rss_memory(phase: str, checkpoint: str) -> float:
    """Log resident memory at a scan checkpoint.

    The reading is bound to the record as ``phase`` and ``checkpoint`` extras
    so the JSON log sink can be filtered on them.

    Returns:
        Current RSS in GB.
    """
    import psutil

    rss_gb = psutil.Process().memory_info().rss / 1e9
    logger.bind(phase=phase, checkpoint=checkpoint).info(
        f"RSS memory: {rss_gb:.2f}GB (phase={phase}, checkpoint={checkpoint})"
    )
    return rss_gb
