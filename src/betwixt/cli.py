from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer

from betwixt import __version__
from betwixt.config import merge_payload, tangle_defaults, tangle_options
from betwixt.exceptions import BetwixtError
from betwixt.flavors.registry import flavor_for_name, registered_flavors, resolve_flavor
from betwixt.schema import report_dto
from betwixt.tangle import Severity, TangleOptions, TangleReport, read_document, tangle_file
from betwixt.traversal import DocumentPass, traverse

app = typer.Typer(add_completion=False, help="Tangle code fragments out of Markdown documents.")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"betwixt {__version__}")
        raise typer.Exit(code=0)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output."),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
) -> None:
    _setup_logging(verbose)


def _fail(message: str) -> typer.Exit:
    typer.secho(f"Error: {message}", err=True, fg=typer.colors.RED)
    return typer.Exit(code=1)


def _check_flavor(flavor: str | None) -> None:
    if flavor is not None and flavor_for_name(flavor) is None:
        known = ", ".join(item.flavor_id for item in registered_flavors())
        raise typer.BadParameter(f"unknown flavor {flavor!r} (known: {known})")


def _resolve_options(
    *,
    config: Path | None,
    output: Path | None,
    tag: str | None,
    strict: bool | None,
    flavor: str | None,
    lenient_directives: bool | None,
    dry_run: bool,
) -> TangleOptions:
    root = config.parent if config is not None else Path.cwd()
    defaults = tangle_defaults(root=root, config_path=config)
    payload = merge_payload(
        {
            "output": str(output.resolve()) if output is not None else None,
            "tag": tag,
            "strict": strict,
            "flavor": flavor,
            "lenient_directives": lenient_directives,
            "dry_run": dry_run or None,
        },
        defaults,
    )
    return tangle_options(payload, root=root)


def _echo_report(report: TangleReport) -> None:
    results = {result.destination: result for result in report.results}
    for plan in report.plan.destinations:
        result = results.get(plan.destination)
        count = len(plan.operations)
        if report.dry_run:
            typer.echo(f"would write {plan.destination} ({count} fragment(s))")
        elif result is not None and result.ok:
            typer.echo(f"wrote {result.path} ({result.bytes_written} bytes)")
    for issue in report.issues:
        colour = typer.colors.RED if issue.severity is Severity.ERROR else typer.colors.YELLOW
        typer.secho(issue.describe(), err=True, fg=colour)
    if report.errors and not report.results and not report.dry_run:
        typer.secho(
            f"nothing written: {len(report.errors)} error(s)", err=True, fg=typer.colors.RED
        )


@app.command()
def tangle(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Root directory every destination is written under."
    ),
    tag: Optional[str] = typer.Option(
        None, "--tag", "-t", help="Only tangle fragments with this tag."
    ),
    strict: Optional[bool] = typer.Option(
        None,
        "--strict/--no-strict",
        help="Treat unrouted fragments and empty declared destinations as errors.",
    ),
    flavor: Optional[str] = typer.Option(None, "--flavor", help="Document flavor to scan with."),
    lenient_directives: Optional[bool] = typer.Option(
        None,
        "--lenient-directives/--fatal-directives",
        help="Skip malformed directives instead of aborting.",
    ),
    config: Optional[Path] = typer.Option(None, "--config", help="Path to betwixt.toml."),
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Show what would be written."),
    report: Optional[Path] = typer.Option(None, "--report", help="Write a JSON report here."),
    json_output: bool = typer.Option(False, "--json", help="Print the JSON report."),
) -> None:
    _check_flavor(flavor)
    options = _resolve_options(
        config=config,
        output=output,
        tag=tag,
        strict=strict,
        flavor=flavor,
        lenient_directives=lenient_directives,
        dry_run=dry_run,
    )
    _check_flavor(options.flavor_id)
    if not options.output_root.is_dir():
        raise typer.BadParameter(f"output directory {options.output_root} does not exist")
    try:
        outcome = tangle_file(file, options)
    except BetwixtError as exc:
        raise _fail(str(exc)) from exc
    _echo_report(outcome)
    payload = report_dto(outcome).model_dump_json(indent=2)
    if report is not None:
        report.parent.mkdir(parents=True, exist_ok=True)
        report.write_text(payload + "\n", encoding="utf-8")
    if json_output:
        typer.echo(payload)
    if not outcome.ok:
        raise typer.Exit(code=1)


def _describe_pass(document: DocumentPass, depth: int = 0) -> list[str]:
    indent = "  " * depth
    lines = [f"{indent}[{document.flavor_id}]"]
    for fragment in document.fragments:
        config = fragment.config
        heading = " > ".join(fragment.node.heading_path()) or "<root>"
        lines.append(
            f"{indent}#{fragment.index} line {fragment.line} {heading}: "
            f"language={fragment.language or '-'} "
            f"destination={config.destination or '-'} "
            f"mode={config.write_mode.value} role={config.role.value} "
            f"tag={config.tag or '-'} ignore={str(config.ignore).lower()} "
            f"origin={fragment.origin.value}"
        )
    for inner in document.nested:
        lines.extend(_describe_pass(inner, depth + 1))
    return lines


@app.command()
def fragments(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    flavor: Optional[str] = typer.Option(None, "--flavor", help="Document flavor to scan with."),
    config: Optional[Path] = typer.Option(None, "--config", help="Path to betwixt.toml."),
) -> None:
    """List every fragment with its resolved configuration."""
    _check_flavor(flavor)
    options = _resolve_options(
        config=config,
        output=None,
        tag=None,
        strict=None,
        flavor=flavor,
        lenient_directives=None,
        dry_run=False,
    )
    _check_flavor(options.flavor_id)
    document_flavor = resolve_flavor(path=file, flavor_id=options.flavor_id)
    try:
        document = traverse(
            read_document(file),
            document_flavor,
            lenient=options.lenient_directives,
        )
    except BetwixtError as exc:
        raise _fail(str(exc)) from exc
    for line in _describe_pass(document):
        typer.echo(line)
    for inner in document.walk():
        for error in inner.directive_errors:
            typer.secho(
                f"skipped malformed directive: {error}", err=True, fg=typer.colors.YELLOW
            )


@app.command()
def flavors() -> None:
    """List the registered document flavors."""
    for flavor in registered_flavors():
        extensions = ", ".join(flavor.file_extensions) or "-"
        nested = flavor.nested_flavor_id or "-"
        typer.echo(f"{flavor.flavor_id}: extensions={extensions} nested={nested}")
