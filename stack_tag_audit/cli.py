"""CLI entry-point for stack-tag-audit."""

from __future__ import annotations

import logging
import sys

import click
from rich.console import Console
from rich.table import Table

from stack_tag_audit import __version__
from stack_tag_audit.auditor import EXIT_FATAL, run_audit
from stack_tag_audit.aws import bootstrap
from stack_tag_audit.config import Settings
from stack_tag_audit.errors import TagAuditError
from stack_tag_audit.models import AuditSummary
from stack_tag_audit.registry import build_default_registry
from stack_tag_audit.report import open_report
from stack_tag_audit.resolver import StackResourceResolver

# stdout may carry the CSV report; everything for the operator goes to stderr.
console = Console(stderr=True)


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
        datefmt="%H:%M:%S",
    )
    # Quieten noisy libraries
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("boto3").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def _build_settings(config_file: str, **overrides: object) -> Settings:
    if config_file:
        return Settings.from_file(config_file, **overrides)
    return Settings(**{k: v for k, v in overrides.items() if v not in ("", None)})


def _print_summary(summary: AuditSummary) -> None:
    table = Table(title="Tag Audit Summary", show_lines=False)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Search terms", ", ".join(summary.search_terms))
    table.add_row("Resources discovered", str(summary.resources_discovered))
    table.add_row("Rows written", f"[green]{summary.rows_written}[/green]")
    table.add_row("Unsupported", f"[yellow]{summary.unsupported}[/yellow]")
    table.add_row("Not found", f"[yellow]{summary.not_found}[/yellow]")
    table.add_row("Anomalies", f"[yellow]{len(summary.anomalies)}[/yellow]")
    console.print(table)

    for anomaly in summary.anomalies:
        console.print(f"  [yellow]![/yellow] {anomaly}")

    if not summary.succeeded:
        console.print(f"[red bold]Aborted:[/red bold] {summary.error}")
        if summary.aborted_on is not None:
            r = summary.aborted_on
            console.print(
                f"  at {r.resource_type} {r.physical_id} "
                f"(logical id {r.logical_id}, stack {r.owner_stack_name})"
            )


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="stack-tag-audit")
@click.argument("search_terms", nargs=-1)
@click.option("--region", default="", help="AWS region (or set AWS_REGION).")
@click.option("--profile", default="", help="AWS CLI profile name (or set AWS_PROFILE).")
@click.option(
    "--output", "-o", "output_path", default="", help="Write the CSV report here instead of stdout."
)
@click.option(
    "--config", "config_file", default="", type=click.Path(dir_okay=False),
    help="YAML settings file (taxonomies, skippable error codes, ...).",
)
@click.option("--flush-every", type=int, default=None, help="Flush the report every N resources.")
@click.option("--max-depth", type=int, default=None, help="Maximum provisioned-product nesting depth.")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging.")
@click.pass_context
def main(
    ctx: click.Context,
    search_terms: tuple[str, ...],
    region: str,
    profile: str,
    output_path: str,
    config_file: str,
    flush_every: int | None,
    max_depth: int | None,
    verbose: bool,
) -> None:
    """Report tagging compliance of every resource in matching CloudFormation stacks.

    Each SEARCH_TERM selects the stacks whose name contains it.  Resources
    provisioned through Service Catalog products are followed into their
    own stacks.

    Exit status: 0 success, 1 fatal error, 3 unregistered resource type.
    """
    if not search_terms:
        click.echo(ctx.get_usage())
        return

    try:
        settings = _build_settings(
            config_file,
            aws_region=region,
            aws_profile=profile,
            output_path=output_path,
            flush_every=flush_every,
            max_depth=max_depth,
            verbose=verbose or None,
        )
    except (ValueError, OSError) as exc:
        console.print(f"[red bold]Error:[/red bold] invalid settings: {exc}")
        sys.exit(EXIT_FATAL)

    _configure_logging(settings.verbose)

    try:
        aws = bootstrap(region=settings.aws_region, profile=settings.aws_profile)
        registry = build_default_registry(aws, settings.custom_resource_prefix)
    except TagAuditError as exc:
        console.print(f"[red bold]Error:[/red bold] {exc}")
        sys.exit(EXIT_FATAL)

    resolver = StackResourceResolver(
        aws.client("cloudformation"),
        aws.client("servicecatalog"),
        indirection_types=settings.indirection_resource_types,
        max_depth=settings.max_depth,
    )

    try:
        sink, stream = open_report(settings.output_path)
    except OSError as exc:
        console.print(f"[red bold]Error:[/red bold] cannot write report: {exc}")
        sys.exit(EXIT_FATAL)

    try:
        summary = run_audit(list(search_terms), resolver, registry, sink, settings)
    finally:
        if stream is not sys.stdout:
            stream.close()

    _print_summary(summary)
    if settings.output_path:
        console.print(f"  Report saved to [green]{settings.output_path}[/green]")
    sys.exit(summary.exit_code)


if __name__ == "__main__":
    main()
