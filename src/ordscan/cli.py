"""ordscan command-line interface.

Typer-based CLI with global -outdir/-o/-v options and three commands:
``null`` (fit and summarize the null model), ``scan`` (single-variant or
variant-set scan) and ``gxe`` (gene-by-environment scan).
"""

import sys
import time
from pathlib import Path
from typing import Annotated

import typer

import ordscan
from ordscan.core import OutputConfig
from ordscan.errors import ConvergenceError
from ordscan.gwas import ordinal_gwas, ordinal_gxe_gwas, ordinal_snpset_gwas
from ordscan.io import read_covariate_table, write_null_summary
from ordscan.polr import FittedNullModel, fit_null_from_table
from ordscan.utils import setup_logging, write_run_log

# Create Typer app
app = typer.Typer(
    name="ordscan",
    help="ordscan: genome-wide association scans for ordinal traits.",
    add_completion=False,
)

# Store global options set by callback
_global_config: OutputConfig | None = None

# Errors reported as "Error: ..." with exit code 1
_USER_ERRORS = (ValueError, KeyError, FileNotFoundError, ConvergenceError)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from ordscan.core import get_jax_info

        typer.echo(f"ordscan version {ordscan.__version__}")
        info = get_jax_info()
        typer.echo(f"JAX {info['version']} on {info['backend']}")
        typer.echo(f"64-bit enabled: {info['x64_enabled']}")
        raise typer.Exit()


@app.callback()
def main(
    outdir: Annotated[
        Path,
        typer.Option("-outdir", help="Output directory"),
    ] = Path("output"),
    output: Annotated[
        str,
        typer.Option("-o", help="Output file prefix"),
    ] = "ordinalgwas",
    verbose: Annotated[
        bool,
        typer.Option("-v", "--verbose", help="Verbose output"),
    ] = False,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = None,
) -> None:
    """ordscan: ordinal-trait GWAS.

    Fits a proportional-odds null model once and tests variants, windows
    or variant sets with a score test or a likelihood-ratio test.
    """
    global _global_config
    _global_config = OutputConfig(outdir=outdir, prefix=output, verbose=verbose)
    setup_logging(verbose=verbose)


def _get_config() -> OutputConfig:
    global _global_config
    if _global_config is None:
        _global_config = OutputConfig()
    return _global_config


def _split_names(value: str | None) -> list[str]:
    if not value:
        return []
    return [name.strip() for name in value.split(",") if name.strip()]


def _parse_snpset(value: str) -> "int | Path":
    # A bare integer is a window width, anything else a mapping file
    try:
        return int(value)
    except ValueError:
        return Path(value)


def _fit_null(
    covariate_file: Path,
    response: str,
    covariates: str | None,
    link: str,
    weights: str | None,
    delimiter: str,
    maxiter: int,
) -> FittedNullModel:
    typer.echo(f"Fitting null model from {covariate_file}...")
    try:
        return fit_null_from_table(
            covariate_file,
            response,
            covariates=_split_names(covariates),
            link=link,
            weights_column=weights,
            delimiter=delimiter,
            maxiter=maxiter,
        )
    except _USER_ERRORS as e:
        typer.echo(f"Error fitting null model: {e}", err=True)
        raise typer.Exit(code=1) from None


# Options shared by every command
CovariateOpt = Annotated[
    Path,
    typer.Option("-c", help="Covariate table with a header row"),
]
ResponseOpt = Annotated[
    str,
    typer.Option("-y", help="Name of the ordinal response column"),
]
CovariatesOpt = Annotated[
    str | None,
    typer.Option("-x", help="Comma-separated covariate column names"),
]
LinkOpt = Annotated[
    str,
    typer.Option("-link", help="Link function: logit, probit, cloglog, cauchit"),
]
WeightsOpt = Annotated[
    str | None,
    typer.Option("-w", help="Name of a prior weights column"),
]
DelimiterOpt = Annotated[
    str,
    typer.Option("-delim", help="Covariate table delimiter"),
]
MaxiterOpt = Annotated[
    int,
    typer.Option("-maxiter", help="Optimizer iteration cap"),
]
GeneticOpt = Annotated[
    Path,
    typer.Option("-g", help="Genetic file prefix (PLINK) or path without .vcf"),
]
FormatOpt = Annotated[
    str,
    typer.Option("-format", help="Genetic file format: PLINK or VCF"),
]
VcfTypeOpt = Annotated[
    str | None,
    typer.Option("-vcftype", help="VCF field to read: GT or DS"),
]
TestOpt = Annotated[
    str,
    typer.Option("-t", help="Test: score or lrt"),
]
ModelOpt = Annotated[
    str,
    typer.Option("-m", help="Genetic model: additive, dominant or recessive"),
]


@app.command("null")
def null_command(
    covariate_file: CovariateOpt,
    response: ResponseOpt,
    covariates: CovariatesOpt = None,
    link: LinkOpt = "logit",
    weights: WeightsOpt = None,
    delimiter: DelimiterOpt = ",",
    maxiter: MaxiterOpt = 4000,
) -> None:
    """Fit the null model and write its coefficient summary.

    Writes {outdir}/{prefix}.null.txt and the run log.
    """
    start_time = time.perf_counter()
    config = _get_config()
    config.ensure_outdir()
    command_line = " ".join(sys.argv)

    model = _fit_null(
        covariate_file, response, covariates, link, weights, delimiter, maxiter
    )
    null_path = write_null_summary(model, config.null_path)
    typer.echo(f"Null model summary written to {null_path}")

    log_path = write_run_log(
        config,
        model,
        command_line,
        null_seconds=time.perf_counter() - start_time,
        inputs={"covariate_file": covariate_file, "null_file": null_path},
    )
    typer.echo(f"Log written to {log_path}")


@app.command("scan")
def scan_command(
    genetic_file: GeneticOpt,
    covariate_file: CovariateOpt,
    response: ResponseOpt,
    covariates: CovariatesOpt = None,
    genetic_format: FormatOpt = "PLINK",
    vcf_type: VcfTypeOpt = None,
    test: TestOpt = "score",
    genetic_model: ModelOpt = "additive",
    snpset: Annotated[
        str | None,
        typer.Option(
            "-snpset",
            help="Window width (integer) or snpset mapping file",
        ),
    ] = None,
    link: LinkOpt = "logit",
    weights: WeightsOpt = None,
    delimiter: DelimiterOpt = ",",
    maxiter: MaxiterOpt = 4000,
) -> None:
    """Scan variants, windows or variant sets for association.

    The null model is fitted from the covariate table first; rows dropped
    for missing values are also dropped from the genetic file's samples.
    Results go to {outdir}/{prefix}.pval.txt.
    """
    t_start = time.perf_counter()
    config = _get_config()
    config.ensure_outdir()
    command_line = " ".join(sys.argv)

    model = _fit_null(
        covariate_file, response, covariates, link, weights, delimiter, maxiter
    )
    t_null = time.perf_counter()

    common = dict(
        genetic_format=genetic_format,
        vcf_type=vcf_type,
        test=test,
        genetic_model=genetic_model,
        sample_selector=model.rows,
        output_path=config.pval_path,
        maxiter=maxiter,
    )
    typer.echo(f"Running {test} test on {genetic_file}...")
    try:
        if snpset is None:
            summary = ordinal_gwas(model, genetic_file, **common)
        else:
            summary = ordinal_snpset_gwas(
                model, genetic_file, _parse_snpset(snpset), **common
            )
    except _USER_ERRORS as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from None
    t_scan = time.perf_counter()
    typer.echo(f"Association results written to {summary.output_path}")

    inputs = {
        "genetic_file": genetic_file,
        "genetic_format": genetic_format,
        "test": test,
        "genetic_model": genetic_model,
        "snpset": snpset,
    }
    log_path = write_run_log(
        config, model, command_line, t_null - t_start, summary, inputs
    )
    typer.echo(f"Log written to {log_path}")
    typer.echo(f"\nTested {summary.n_units} units in {t_scan - t_start:.2f} seconds")


@app.command("gxe")
def gxe_command(
    genetic_file: GeneticOpt,
    covariate_file: CovariateOpt,
    response: ResponseOpt,
    environment: Annotated[
        str,
        typer.Option("-e", help="Name of the environment covariate column"),
    ],
    covariates: CovariatesOpt = None,
    genetic_format: FormatOpt = "PLINK",
    vcf_type: VcfTypeOpt = None,
    test: TestOpt = "score",
    genetic_model: ModelOpt = "additive",
    link: LinkOpt = "logit",
    weights: WeightsOpt = None,
    delimiter: DelimiterOpt = ",",
    maxiter: MaxiterOpt = 4000,
) -> None:
    """Scan variants for gene-by-environment interaction.

    The environment column is read from the covariate table. It is usually
    also listed in -x so that its main effect is in the null model.
    """
    t_start = time.perf_counter()
    config = _get_config()
    config.ensure_outdir()
    command_line = " ".join(sys.argv)

    model = _fit_null(
        covariate_file, response, covariates, link, weights, delimiter, maxiter
    )
    t_null = time.perf_counter()
    try:
        table = read_covariate_table(covariate_file, delimiter=delimiter)
        env = table.column(environment)[model.rows]
        typer.echo(f"Running GxE {test} test on {genetic_file}...")
        summary = ordinal_gxe_gwas(
            model,
            genetic_file,
            env,
            genetic_format=genetic_format,
            vcf_type=vcf_type,
            test=test,
            genetic_model=genetic_model,
            sample_selector=model.rows,
            output_path=config.pval_path,
            maxiter=maxiter,
        )
    except _USER_ERRORS as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from None
    typer.echo(f"GxE results written to {summary.output_path}")

    inputs = {
        "genetic_file": genetic_file,
        "environment": environment,
        "test": test,
        "genetic_model": genetic_model,
    }
    log_path = write_run_log(
        config, model, command_line, t_null - t_start, summary, inputs
    )
    typer.echo(f"Log written to {log_path}")


if __name__ == "__main__":
    app()
