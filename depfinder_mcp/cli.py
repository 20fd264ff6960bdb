"""Command line entry point: depfinder.

Subcommands:
    depfinder analyze ROOT_BINARY SEARCH_ROOT OUTPUT_DIR   # resolve, copy, report
    depfinder refs SEARCH_ROOT LIBRARY...                  # who links against LIBRARY
    depfinder approvals OUTPUT_DIR [--approve/--reject]    # inspect or edit decisions
    depfinder serve                                        # run the MCP server
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click

from depfinder_mcp.core.config import DECISION_POLICIES, ELF_BACKENDS, get_config
from depfinder_mcp.core.exceptions import DepFinderError, ValidationError
from depfinder_mcp.core.logging_config import setup_logging
from depfinder_mcp.core.security import clean_path
from depfinder_mcp.engine.approval import FileApprovalStore
from depfinder_mcp.engine.decisions import select_decision_provider
from depfinder_mcp.engine.models import ApprovalState
from depfinder_mcp.engine.session import AnalysisSummary, query_references, run_analysis


def _fail(exc: Exception) -> None:
    click.echo(f"Error: {exc}", err=True)
    sys.exit(1)


def _print_summary(summary: AnalysisSummary) -> None:
    run = summary.run
    stats = summary.statistics
    click.echo()
    click.secho("Analysis summary", bold=True)
    click.echo(f"  Root binary:          {run.root.canonical_path}")
    click.echo(f"  Passes:               {stats['passes']}")
    click.echo(f"  Libraries processed:  {stats['libraries_processed']}")
    click.echo(f"  Instances found:      {stats['instances_found']}")
    click.echo(f"  Files copied:         {stats['files_copied']}")
    click.echo(f"  Copy failures:        {stats['copy_failures']}")
    click.echo(f"  Missing dependencies: {stats['missing']}")
    click.echo(f"  Rejected edges:       {stats['rejected_edges']}")
    if "index_libraries" in stats:
        click.echo(
            f"  Reference index:      {stats['index_libraries']} libraries from "
            f"{stats['index_files_scanned']} files ({stats['index_failures']} failures)"
        )

    final = run.final_pass
    if final.missing:
        click.echo()
        click.secho("Missing dependencies:", fg="yellow")
        for name, dep in sorted(final.missing.items()):
            click.echo(f"  {name} (needed by {len(dep.referenced_by)} file(s))")
    if run.undecided:
        click.echo()
        click.secho("Undecided libraries (copied, not expanded):", fg="yellow")
        for name in sorted(run.undecided):
            click.echo(f"  {name}")
        click.echo(
            f"Decide with: depfinder approvals {run.output_root} --approve NAME / --reject NAME"
        )

    click.echo()
    for name, path in sorted(summary.artifacts.items()):
        click.echo(f"  {name:<11} {path}")


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging")
def main(verbose: bool) -> None:
    """depfinder: shared-library dependency resolution for extracted firmware images."""
    setup_logging(console_level=logging.DEBUG if verbose else logging.INFO)
    if verbose:
        logging.getLogger("depfinder_mcp").setLevel(logging.DEBUG)


@main.command("analyze")
@click.argument("root_binary")
@click.argument("search_root")
@click.argument("output_dir")
@click.option(
    "--references/--no-references",
    default=True,
    show_default=True,
    help="Index and report the binaries referencing each approved library",
)
@click.option(
    "--interactive/--non-interactive",
    default=True,
    show_default=True,
    help="Ask for decisions on new libraries (only when stdin is a terminal)",
)
@click.option(
    "--policy",
    type=click.Choice(DECISION_POLICIES),
    default=None,
    help="Non-interactive decision policy (default: DEPFINDER_DECISION_POLICY or defer)",
)
@click.option(
    "--decision-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="JSON approve/reject glob rules",
)
@click.option("--backend", type=click.Choice(ELF_BACKENDS), default=None, help="ELF reader backend")
@click.option("--workers", type=click.IntRange(min=0), default=None, help="Reference index workers")
def analyze(
    root_binary: str,
    search_root: str,
    output_dir: str,
    references: bool,
    interactive: bool,
    policy: str | None,
    decision_file: Path | None,
    backend: str | None,
    workers: int | None,
) -> None:
    """Resolve the dependency closure of ROOT_BINARY inside SEARCH_ROOT."""
    config = get_config()
    try:
        provider = select_decision_provider(
            config,
            interactive=interactive,
            policy=policy,
            decision_file=decision_file,
        )
        summary = run_analysis(
            root_binary,
            search_root,
            output_dir,
            provider=provider,
            config=config,
            references=references,
            backend=backend,
            workers=workers,
        )
    except DepFinderError as e:
        _fail(e)
        return
    _print_summary(summary)


@main.command("refs")
@click.argument("search_root")
@click.argument("libraries", nargs=-1, required=True)
@click.option("--backend", type=click.Choice(ELF_BACKENDS), default=None, help="ELF reader backend")
def refs(search_root: str, libraries: tuple[str, ...], backend: str | None) -> None:
    """List the binaries under SEARCH_ROOT that declare each LIBRARY."""
    try:
        found = query_references(search_root, libraries, config=get_config(), backend=backend)
    except DepFinderError as e:
        _fail(e)
        return

    root = Path(clean_path(search_root)).resolve()
    for library, paths in found.items():
        click.secho(f"References of {library}", bold=True)
        if not paths:
            click.echo("  No references found")
        for path in paths:
            try:
                shown = f"./{path.relative_to(root).as_posix()}"
            except ValueError:
                shown = str(path)
            click.echo(f"  {shown}")


@main.command("approvals")
@click.argument("output_dir")
@click.option("--approve", "approve", multiple=True, metavar="NAME", help="Approve a library")
@click.option("--reject", "reject", multiple=True, metavar="NAME", help="Reject a library")
def approvals(output_dir: str, approve: tuple[str, ...], reject: tuple[str, ...]) -> None:
    """Show or extend the approval state persisted in OUTPUT_DIR."""
    directory = Path(clean_path(output_dir)).resolve()
    try:
        conflicting = set(approve) & set(reject)
        if conflicting:
            raise ValidationError(
                f"Cannot approve and reject the same library: {', '.join(sorted(conflicting))}"
            )
        if not directory.is_dir():
            if not (approve or reject):
                raise ValidationError(f"Output directory does not exist: {directory}")
            directory.mkdir(parents=True)

        store = FileApprovalStore.open(directory)
        decisions = {name: ApprovalState.APPROVED for name in approve}
        decisions.update({name: ApprovalState.REJECTED for name in reject})
        applied = store.record(decisions)
    except (DepFinderError, OSError) as e:
        _fail(e)
        return

    for name in sorted(set(decisions) - set(applied)):
        click.secho(f"Unchanged: {name} ({store.state_of(name).value})", fg="yellow")
    for name, state in sorted(applied.items()):
        click.echo(f"Recorded: {name} -> {state.value}")

    click.secho(f"Approved ({len(store.approved)})", bold=True)
    for name in sorted(store.approved):
        click.echo(f"  {name}")
    click.secho(f"Rejected ({len(store.rejected)})", bold=True)
    for name in sorted(store.rejected):
        click.echo(f"  {name}")


@main.command("serve")
@click.option(
    "--transport",
    type=click.Choice(("stdio", "http")),
    default=None,
    help="MCP transport (default: MCP_TRANSPORT or stdio)",
)
def serve(transport: str | None) -> None:
    """Run the MCP server."""
    from server import main as server_main

    server_main(transport=transport)


if __name__ == "__main__":
    main()
