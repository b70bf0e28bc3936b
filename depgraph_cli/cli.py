"""Typer-based CLI for DepGraph dependency analysis."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Iterator, List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from . import __version__
from .config_manager import dump_config, load_config
from .errors import DepgraphError
from .graph_export import export_dot, export_json
from .models import AffectedEntity, Entity, EntityKind, GraphNode
from .orchestrator import Analyzer

app = typer.Typer(
    help="🕸️  DepGraph CLI — dependency analysis for TypeScript monorepos.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(
    help="⚙️  Configuration — inspect effective analyzer settings.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
app.add_typer(config_app, name="config")

err_console = Console(stderr=True)


class RankBy(str, Enum):
    deps = "deps"


class GraphFormat(str, Enum):
    json = "json"
    dot = "dot"


SELECTABLE_KINDS = [kind.value for kind in EntityKind if kind is not EntityKind.UNKNOWN]


def _path_arg():
    return typer.Argument(
        ...,
        exists=True,
        file_okay=False,
        resolve_path=True,
        help="Path to the root of the TypeScript monorepo.",
    )


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"DepGraph CLI v{__version__}")
        raise typer.Exit()


def _configure_logging(level: int) -> None:
    logger = logging.getLogger("depgraph_cli")
    logger.handlers.clear()
    handler = RichHandler(console=err_console, show_time=False, show_path=False)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False


@app.callback()
def main(
    ctx: typer.Context,
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Log scan progress and debug details."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only log errors."),
    jobs: int = typer.Option(1, "--jobs", "-j", min=1, max=64, help="Parallel file parsing workers."),
):
    """DepGraph CLI: query declarations, consumers, chains and cycles."""
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    else:
        level = logging.WARNING
    _configure_logging(level)
    ctx.obj = {"jobs": jobs}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

@contextmanager
def _handle_errors() -> Iterator[None]:
    try:
        yield
    except DepgraphError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1)


def _analyzer(ctx: typer.Context, path: Path) -> Analyzer:
    jobs = (ctx.obj or {}).get("jobs", 1)
    return Analyzer(path, jobs=jobs)


def _parse_kinds(value: Optional[str]) -> List[EntityKind]:
    if not value:
        return []
    kinds: List[EntityKind] = []
    for part in value.split(","):
        part = part.strip().lower()
        if not part:
            continue
        if part not in SELECTABLE_KINDS:
            raise typer.BadParameter(
                f"Unknown entity type '{part}'. Choose from: {', '.join(SELECTABLE_KINDS)}",
                param_hint="--entity-type",
            )
        kinds.append(EntityKind(part))
    return kinds


def _warn(message: str) -> None:
    err_console.print(f"[yellow]Warning:[/yellow] {message}", highlight=False)


def _print_entity(entity: Entity, show_id: bool = False, show_deps: bool = False) -> None:
    if show_id:
        typer.echo(f"ID: {entity.id}")
    typer.echo(f"Name: {entity.name}")
    typer.echo(f"Type: {entity.kind}")
    typer.echo(f"File: {entity.file_path}")
    if show_deps:
        if entity.import_references:
            typer.echo("Deps:")
            for ref in entity.import_references:
                typer.echo(f"  - {ref.name} ({ref.path})")
        else:
            typer.echo("Deps: none")
    typer.echo("---")


def _print_affected(item: AffectedEntity) -> None:
    typer.echo(f"Name: {item.entity.name}")
    typer.echo(f"Type: {item.entity.kind}")
    typer.echo(f"File: {item.entity.file_path}")
    typer.echo(f"Reason: {item.reason}")
    typer.echo("---")


def _chain_line(nodes: List[GraphNode]) -> str:
    return " -> ".join(node.name for node in nodes)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

@app.command("query-all")
def query_all(ctx: typer.Context, path: Path = _path_arg()):
    """List every entity discovered in the project."""
    with _handle_errors():
        entities = _analyzer(ctx, path).query_all()

    typer.echo(f"Found {len(entities)} entities:\n")
    for entity in entities:
        _print_entity(entity, show_id=True, show_deps=True)
    typer.echo(f"\nTotal entities in map: {len(entities)}")


@app.command("query")
def query(
    ctx: typer.Context,
    path: Path = _path_arg(),
    name: str = typer.Argument(..., help="Entity id or name to look up."),
):
    """Show entities matching an id or a name."""
    with _handle_errors():
        entities = _analyzer(ctx, path).query(name)

    if not entities:
        typer.echo(f"Entity not found: {name}")
        return
    for entity in entities:
        _print_entity(entity, show_id=True, show_deps=True)


@app.command("unused")
def unused(ctx: typer.Context, path: Path = _path_arg()):
    """List exported entities that nothing imports."""
    with _handle_errors():
        analyzer = _analyzer(ctx, path)
        entities = analyzer.unused()
        total = len(analyzer.table)

    typer.echo(f"Found {len(entities)} unused entities:\n")
    for entity in entities:
        _print_entity(entity)
    typer.echo(f"\nTotal: {len(entities)} unused out of {total} entities")


@app.command("graph")
def graph(
    ctx: typer.Context,
    path: Path = _path_arg(),
    entity_type: Optional[str] = typer.Option(
        None, "--entity-type", help="Comma-separated entity types to include, e.g. class,interface."
    ),
    fmt: GraphFormat = typer.Option(GraphFormat.json, "--format", "-f", help="Output format: json or dot."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write to this file instead of stdout."),
):
    """Output the dependency graph (D3-compatible JSON by default)."""
    kinds = _parse_kinds(entity_type)
    with _handle_errors():
        dep_graph = _analyzer(ctx, path).graph(kinds)

    exporter = export_dot if fmt is GraphFormat.dot else export_json
    text = exporter(dep_graph, output)
    if output is None:
        typer.echo(text)
    else:
        typer.echo(f"Exported graph to {output}")


@app.command("affected")
def affected(
    ctx: typer.Context,
    path: Path = _path_arg(),
    base: str = typer.Option(..., "--base", help="Git reference to compare against (branch, tag, or SHA)."),
    transitive: bool = typer.Option(False, "--transitive", help="Follow consumers of consumers."),
    paths: bool = typer.Option(False, "--paths", help="Print only unique affected directories."),
    tests: bool = typer.Option(False, "--tests", help="Print only test files related to affected entities."),
    project: Optional[str] = typer.Option(None, "--project", help="Restrict results to one area: web, mobile, or libs."),
):
    """List entities affected by changes since a git reference."""
    if paths and tests:
        raise typer.BadParameter("--paths and --tests cannot be used together.")

    with _handle_errors():
        report = _analyzer(ctx, path).affected(base, transitive=transitive, project=project)

    if tests:
        for test_file in report.test_files:
            typer.echo(test_file)
        return
    if paths:
        for directory in report.directories:
            typer.echo(directory)
        return

    typer.echo(f"Analyzing changes since '{base}'...\n")
    if not report.changed_files:
        typer.echo(f"No changes found since '{base}'.")
        return

    typer.echo(f"Changed files ({len(report.changed_files)}):")
    for cf in report.changed_files:
        typer.echo(f"  [{cf.change_kind}] {cf.path}")
    typer.echo("")

    typer.echo("---")
    typer.echo(f"Directly affected entities ({len(report.direct)}):\n")
    for item in report.direct:
        _print_affected(item)
    if report.consumers:
        typer.echo(f"Consumer entities ({len(report.consumers)}):\n")
        for item in report.consumers:
            _print_affected(item)
    typer.echo(
        f"Summary: {len(report.changed_files)} changed files, {len(report.direct)} direct, "
        f"{len(report.consumers)} consumers, {report.total} total affected"
    )


@app.command("chain")
def chain(
    ctx: typer.Context,
    path: Path = _path_arg(),
    start: str = typer.Option(..., "--start", help="Name of the entity the chain starts at."),
    end: str = typer.Option(..., "--end", help="Name of the entity the chain ends at."),
    shortest: bool = typer.Option(False, "--shortest", help="Only report the shortest chain."),
    max_paths: Optional[int] = typer.Option(None, "--max-paths", min=1, help="Maximum number of chains (default: 100)."),
    max_depth: Optional[int] = typer.Option(None, "--max-depth", min=1, help="Maximum chain length in hops (default: 10)."),
):
    """Find dependency chains between two named entities."""
    with _handle_errors():
        report = _analyzer(ctx, path).chain(
            start, end, shortest=shortest, max_paths=max_paths, max_depth=max_depth
        )

    if report.missing:
        for name in report.missing:
            typer.echo(f"No entity found with name '{name}'.")
        return
    if not report.paths:
        typer.echo(f"No dependency chain found from '{start}' to '{end}'.")
        return

    typer.echo(f"Found {len(report.paths)} chain(s) from '{start}' to '{end}':\n")
    for index, nodes in enumerate(report.paths, start=1):
        typer.echo(f"{index}. {_chain_line(nodes)} ({len(nodes) - 1} hops)")
        for node in nodes:
            typer.echo(f"     {node.name} [{node.kind}] {node.file}")
    if report.truncated:
        _warn(f"results truncated at {len(report.paths)} chains; raise --max-paths to see more.")


@app.command("cycles")
def cycles(
    ctx: typer.Context,
    path: Path = _path_arg(),
    max_cycles: Optional[int] = typer.Option(None, "--max-cycles", min=1, help="Maximum number of cycles (default: 100)."),
    max_depth: Optional[int] = typer.Option(None, "--max-depth", min=1, help="Maximum cycle length (default: 10)."),
):
    """Detect circular dependencies."""
    with _handle_errors():
        report = _analyzer(ctx, path).cycles(max_cycles=max_cycles, max_depth=max_depth)

    if not report.cycles:
        typer.echo("No circular dependencies found.")
        return

    typer.echo(f"Found {len(report.cycles)} circular dependencies:\n")
    for index, nodes in enumerate(report.cycles, start=1):
        typer.echo(f"{index}. {_chain_line(nodes + nodes[:1])}")
        for node in nodes:
            typer.echo(f"     {node.name} [{node.kind}] {node.file}")
    if report.truncated:
        _warn(f"results truncated at {len(report.cycles)} cycles; raise --max-cycles to see more.")


@app.command("rank")
def rank(
    ctx: typer.Context,
    path: Path = _path_arg(),
    by: RankBy = typer.Option(..., "--by", help="Metric to rank by."),
    entity_type: Optional[str] = typer.Option(
        None, "--entity-type", help="Comma-separated entity types to include, e.g. class,interface."
    ),
):
    """Rank entities by dependency count (fewest first)."""
    kinds = _parse_kinds(entity_type)
    with _handle_errors():
        ranked = _analyzer(ctx, path).rank(kinds)

    typer.echo(f"Entities ranked by {by.value} ({len(ranked)}):\n")
    for count, node in ranked:
        typer.echo(f"{count:>4}  {node.name} [{node.kind}] {node.file}")


@config_app.command("show")
def config_show(
    path: Optional[Path] = typer.Argument(
        None, exists=True, file_okay=False, resolve_path=True, help="Project root whose .depgraph.toml to include."
    ),
):
    """Print the effective analyzer configuration as TOML."""
    with _handle_errors():
        cfg = load_config(path)
    typer.echo(dump_config(cfg))


if __name__ == "__main__":
    app()
