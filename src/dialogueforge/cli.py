"""Dialogue Forge CLI - typer application entry point."""

from __future__ import annotations

import atexit
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from dotenv import load_dotenv
from pydantic import ValidationError as ModelValidationError
from rich.console import Console
from rich.table import Table
from rich.tree import Tree

from dialogueforge.config import ForgeConfigError, load_forge_config
from dialogueforge.graph import (
    GraphIntegrityError,
    apply_connection,
    create_empty_graph,
    create_hierarchy,
    delete_node,
    find_path,
    insert_node_between_edge,
    load_graph,
    remove_edge_and_semantic_link,
    save_graph,
    validate_graph,
)
from dialogueforge.models.graph import GraphKind, NodeType
from dialogueforge.observability import close_file_logging, configure_logging, get_logger

if TYPE_CHECKING:
    from dialogueforge.config import ForgeConfig
    from dialogueforge.graph import TreeNode, ValidationReport
    from dialogueforge.models.graph import GraphDocument

# Load environment variables from .env file
load_dotenv()

app = typer.Typer(
    name="dforge",
    help="Dialogue Forge: branching narrative graph editing and validation.",
    no_args_is_help=True,
)
console = Console()
log = get_logger(__name__)

# Global state for logging flags (set by callback, used by commands)
_verbose: int = 0
_log_enabled: bool = False

GraphFile = Annotated[
    Path,
    typer.Argument(help="Graph JSON file.", dir_okay=False),
]


@app.callback()
def main(
    verbose: Annotated[
        int,
        typer.Option(
            "-v",
            "--verbose",
            count=True,
            help="Increase verbosity: -v for INFO, -vv for DEBUG.",
        ),
    ] = 0,
    log_to_file: Annotated[
        bool,
        typer.Option(
            "--log",
            help="Enable file logging to {graph dir}/logs/forge.jsonl.",
        ),
    ] = False,
) -> None:
    """Dialogue Forge: branching narrative graph editing and validation."""
    global _verbose, _log_enabled
    _verbose = verbose
    _log_enabled = log_to_file

    # Console logging now; file logging once the graph's directory is known
    configure_logging(verbosity=verbose)


def _configure_project_logging(project_path: Path) -> None:
    """Configure file logging if --log flag was set."""
    if _log_enabled:
        configure_logging(verbosity=_verbose, log_to_file=True, project_path=project_path)
        atexit.register(close_file_logging)


def _load_config(project_path: Path) -> ForgeConfig:
    try:
        return load_forge_config(project_path)
    except ForgeConfigError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e


def _load(file: Path) -> GraphDocument:
    """Load a graph file, exiting with a readable error on failure."""
    _configure_project_logging(file.parent)
    try:
        return load_graph(file)
    except FileNotFoundError as e:
        console.print(f"[red]Error:[/red] Graph file not found: {file}")
        raise typer.Exit(1) from e
    except ModelValidationError as e:
        console.print(f"[red]Error:[/red] {file} is not a valid graph:\n{e}")
        raise typer.Exit(1) from e
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e


def _save_edited(graph: GraphDocument, file: Path) -> None:
    """Save an edited graph and report its validation state."""
    save_graph(graph, file)
    report = validate_graph(graph, _load_config(file.parent).validation)
    if report.is_blocking:
        console.print(
            f"[yellow]Saved with blocking findings:[/yellow] {report.summary} "
            f"(run 'dforge validate {file}')"
        )
    else:
        console.print(f"[green]Saved[/green] {file}")


def _fail(error: GraphIntegrityError) -> typer.Exit:
    console.print(f"[red]Error:[/red] {error}")
    console.print(error.to_feedback(), style="dim")
    return typer.Exit(1)


@app.command()
def version() -> None:
    """Show version information."""
    from dialogueforge import __version__

    console.print(f"Dialogue Forge v{__version__}")


@app.command()
def new(
    file: GraphFile,
    project: Annotated[int, typer.Option("--project", "-p", help="Owning project id.")] = 0,
    kind: Annotated[
        GraphKind, typer.Option("--kind", "-k", case_sensitive=False, help="Graph kind.")
    ] = GraphKind.NARRATIVE,
    title: Annotated[str | None, typer.Option("--title", "-t", help="Graph title.")] = None,
    graph_id: Annotated[int | None, typer.Option("--id", help="Explicit graph id.")] = None,
) -> None:
    """Create a new graph containing only its start node."""
    if file.suffix != ".json":
        console.print(f"[red]Error:[/red] Graph files must end in .json, got: {file}")
        raise typer.Exit(1)
    if file.exists():
        console.print(f"[red]Error:[/red] {file} already exists")
        raise typer.Exit(1)
    _configure_project_logging(file.parent)
    config = _load_config(file.parent)

    graph = create_empty_graph(
        project_id=project,
        kind=kind,
        title=title,
        graph_id=graph_id,
        start_node_type=config.start_node_type(kind),
    )
    save_graph(graph, file)
    log.info("graph_created", graph_id=graph.id, path=str(file))
    console.print(
        f"[green]Created[/green] {graph.title} ({graph.kind}) "
        f"with start node [cyan]{graph.start_node_id}[/cyan]"
    )


def _report_table(report: ValidationReport, title: str) -> Table:
    table = Table(title=title)
    table.add_column("Check", style="cyan")
    table.add_column("Result", style="bold")
    table.add_column("Details")

    icons = {
        "pass": "[green]✓[/green] pass",
        "warn": "[yellow]![/yellow] warn",
        "fail": "[red]✗[/red] fail",
    }
    for check in report.checks:
        table.add_row(check.name, icons[check.severity], check.message)
    return table


@app.command()
def validate(file: GraphFile) -> None:
    """Run the commit-gate checks on a graph file."""
    graph = _load(file)
    config = _load_config(file.parent)
    report = validate_graph(graph, config.validation)

    console.print()
    console.print(_report_table(report, f"Validation: {graph.title}"))
    console.print()
    if report.is_blocking:
        console.print(f"[red]Blocking:[/red] {report.summary}")
        raise typer.Exit(1)
    console.print(f"[green]OK:[/green] {report.summary}")


def _tree_label(tree_node: TreeNode) -> str:
    node = tree_node.node
    label = f"[cyan]{tree_node.node_id}[/cyan] [dim]{node.type}[/dim]"
    if node.data.label:
        label += f" {node.data.label}"
    if tree_node.is_reference:
        label += " [yellow](see above)[/yellow]"
    return label


@app.command()
def tree(file: GraphFile) -> None:
    """Show the spanning tree from the start node."""
    graph = _load(file)
    root = create_hierarchy(graph)
    if root is None:
        console.print("[red]Error:[/red] Graph has no valid start node")
        raise typer.Exit(1)

    rendered = Tree(_tree_label(root))
    stack = [(root, rendered)]
    while stack:
        tree_node, branch = stack.pop()
        for child in tree_node.children:
            stack.append((child, branch.add(_tree_label(child))))
    console.print(rendered)


@app.command()
def path(
    file: GraphFile,
    from_id: Annotated[str, typer.Argument(help="Node id to start from.")],
    to_id: Annotated[str, typer.Argument(help="Node id to reach.")],
) -> None:
    """Show the first-discovered path between two nodes."""
    graph = _load(file)
    found = find_path(create_hierarchy(graph), from_id, to_id)
    if found is None:
        console.print(f"[yellow]No path[/yellow] from {from_id} to {to_id} in the spanning tree")
        raise typer.Exit(1)
    console.print(" → ".join(found))


@app.command()
def connect(
    file: GraphFile,
    source: Annotated[str, typer.Argument(help="Source node id.")],
    target: Annotated[str, typer.Argument(help="Target node id.")],
    handle: Annotated[
        str | None,
        typer.Option("--handle", "-h", help="Source handle: next, choice-N or block-N."),
    ] = None,
) -> None:
    """Connect two nodes, writing both the edge and the semantic pointer."""
    graph = _load(file)
    try:
        graph = apply_connection(graph, source=source, target=target, source_handle=handle)
    except GraphIntegrityError as e:
        raise _fail(e) from e
    _save_edited(graph, file)


@app.command()
def disconnect(
    file: GraphFile,
    edge_id: Annotated[str, typer.Argument(help="Edge id to remove.")],
) -> None:
    """Remove an edge and the semantic pointer it stands for."""
    graph = _load(file)
    if graph.get_edge(edge_id) is None:
        console.print(f"[red]Error:[/red] Edge '{edge_id}' not found")
        raise typer.Exit(1)
    _save_edited(remove_edge_and_semantic_link(graph, edge_id), file)


@app.command("delete-node")
def delete_node_command(
    file: GraphFile,
    node_id: Annotated[str, typer.Argument(help="Node id to delete.")],
) -> None:
    """Delete a node, its edges, and every pointer to it."""
    graph = _load(file)
    if not graph.has_node(node_id):
        console.print(f"[red]Error:[/red] Node '{node_id}' not found")
        raise typer.Exit(1)
    try:
        graph = delete_node(graph, node_id)
    except GraphIntegrityError as e:
        raise _fail(e) from e
    _save_edited(graph, file)


@app.command()
def insert(
    file: GraphFile,
    edge_id: Annotated[str, typer.Argument(help="Edge to split.")],
    node_type: Annotated[NodeType, typer.Argument(case_sensitive=False, help="New node type.")],
    new_id: Annotated[str, typer.Argument(help="Id for the new node.")],
    x: Annotated[float, typer.Option("--x", help="Canvas x position.")] = 0.0,
    y: Annotated[float, typer.Option("--y", help="Canvas y position.")] = 0.0,
) -> None:
    """Insert a new node in the middle of an existing edge."""
    graph = _load(file)
    if graph.get_edge(edge_id) is None:
        console.print(f"[red]Error:[/red] Edge '{edge_id}' not found")
        raise typer.Exit(1)
    try:
        graph = insert_node_between_edge(graph, edge_id, node_type, new_id, x, y)
    except GraphIntegrityError as e:
        raise _fail(e) from e
    _save_edited(graph, file)
