"""Typer-based CLI for NextGraph project analysis."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from . import __version__, config
from .config_manager import (
    load_analysis_config,
    load_full_config,
    load_layout_config,
    load_schema_layout_config,
    save_section,
)
from .dependencies import DependencyAnalyzer, find_files_importing
from .graph_export import export_dot, export_html, export_json, graph_payload, to_dot, to_html
from .models import DependencyResult, GraphLayout, StructureNode
from .routes import build_route_manifest
from .schema_graph import analyze_schema
from .tree_layout import TreeLayoutEngine, all_folder_ids, default_expanded
from .walker import ProjectRootError, ProjectWalker, analyze_project

console = Console()

app = typer.Typer(
    help="🧭 NextGraph CLI: structure, routing and dependency graphs for Next.js projects.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(help="⚙️  Show or change NextGraph settings.", no_args_is_help=True)
app.add_typer(config_app, name="config")

_FORMATS = {"json", "dot", "html"}

_STATE_STYLES = {
    "local-resolved": "green",
    "local-missing": "red",
    "external": "yellow",
}


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"NextGraph CLI v{__version__}")
        raise typer.Exit()


def _setup_logging(verbose: bool) -> None:
    pkg_logger = logging.getLogger("nextgraph_cli")
    pkg_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    if not any(isinstance(h, RichHandler) for h in pkg_logger.handlers):
        pkg_logger.addHandler(RichHandler(console=Console(stderr=True), show_path=False))


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Log progress at DEBUG level."),
):
    """NextGraph CLI: static analysis of Next.js App Router projects."""
    _setup_logging(verbose)


# ===================================================================
# Helpers
# ===================================================================

def _analyze_or_exit(project_path: Path, include_dependencies: bool = False):
    try:
        return analyze_project(project_path, include_dependencies=include_dependencies)
    except ProjectRootError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1)


def _check_format(fmt: str) -> str:
    fmt = fmt.lower()
    if fmt not in _FORMATS:
        raise typer.BadParameter("Format must be one of: json, dot, html")
    return fmt


def _write_graph(graph, fmt: str, output: Optional[Path], title: str) -> None:
    if output is None:
        if fmt == "json":
            typer.echo(json.dumps(graph_payload(graph), indent=2))
        elif fmt == "dot":
            typer.echo(to_dot(graph))
        else:
            typer.echo(to_html(graph, title))
        return

    if fmt == "json":
        export_json(graph, output)
    elif fmt == "dot":
        export_dot(graph, output)
    else:
        export_html(graph, output, title=title)
    typer.echo(f"Exported graph to {output}")


def _render_tree(node: StructureNode, branch: Tree) -> None:
    for child in node.children:
        if child.is_folder:
            label = f"[bold blue]{escape(child.name)}/[/bold blue]"
            if child.routing_analysis is not None and child.routing_analysis.type != "static-route":
                label += f" [magenta]({child.routing_analysis.routing_type})[/magenta]"
            if child.route_path is not None:
                label += f" [dim]{escape(child.route_path)}[/dim]"
            _render_tree(child, branch.add(label))
        else:
            label = escape(child.name)
            analysis = child.file_analysis
            if analysis is not None and analysis.is_app_router_special:
                label = f"[green]{escape(child.name)}[/green] [dim]{analysis.purpose}[/dim]"
            branch.add(label)


def _dependency_rows(result: DependencyResult) -> Table:
    table = Table(show_header=True, show_lines=False)
    table.add_column("Source", style="cyan")
    table.add_column("Type")
    table.add_column("State")
    table.add_column("Resolved")
    table.add_column("Specifiers")
    for dep in result.all:
        style = _STATE_STYLES.get(dep.state, "white")
        names = ", ".join(s.local or s.exported or "*" for s in dep.specifiers)
        resolved = dep.relative_path or dep.package_name or dep.resolved_path
        table.add_row(
            escape(dep.source), dep.type, f"[{style}]{dep.state}[/{style}]", escape(resolved or ""), names,
        )
    return table


# ===================================================================
# Commands
# ===================================================================

@app.command("analyze")
def analyze(
    project_path: Path = typer.Argument(..., help="Path to the Next.js project."),
    deps: bool = typer.Option(False, "--deps", "-d", help="Also build the project dependency map."),
    as_json: bool = typer.Option(False, "--json", help="Print the full analysis as JSON."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the JSON analysis to a file."),
):
    """Walk a project and report App Router insights."""
    result = _analyze_or_exit(project_path, include_dependencies=deps)
    payload = result.to_dict()

    if output is not None:
        output.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        typer.echo(f"Wrote analysis to {output}")
        return
    if as_json:
        typer.echo(json.dumps(payload, indent=2))
        return

    insights = result.insights
    meta = result.metadata
    color = "green" if insights.app_router_detected else "yellow"
    console.print(
        Panel.fit(
            f"Routes: [bold]{insights.route_count}[/bold]   "
            f"API endpoints: [bold]{insights.api_endpoint_count}[/bold]   "
            f"Folders: {meta['totalFolders']}   Files: {meta['totalFiles']}",
            title=f"[bold]{Path(meta['projectRoot']).name}[/bold]",
            border_style=color,
        )
    )

    table = Table(title="Route patterns", show_header=True)
    table.add_column("Pattern", style="cyan")
    table.add_column("Count", justify="right")
    for key, count in insights.route_patterns.items():
        table.add_row(key, str(count))
    console.print(table)

    special = Table(title="Special files", show_header=True)
    special.add_column("File", style="cyan")
    special.add_column("Count", justify="right")
    for key, count in insights.special_files.items():
        special.add_row(key, str(count))
    console.print(special)

    if result.prisma_info.get("detected"):
        for schema in result.prisma_info["schemas"]:
            stats = schema.get("stats") or {}
            console.print(
                f"🗄️  {schema.get('relativePath')}: "
                f"{stats.get('models', 0)} models, {stats.get('enums', 0)} enums"
            )
    if result.dependency_map is not None:
        console.print(f"🔗 Dependency map: {len(result.dependency_map)} files")


@app.command("show")
def show(project_path: Path = typer.Argument(..., help="Path to the Next.js project.")):
    """Print the project structure tree with route information."""
    try:
        walker = ProjectWalker(project_path)
    except ProjectRootError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1)
    structure = walker.build()
    tree = Tree(f"[bold]{escape(structure.name)}/[/bold]")
    _render_tree(structure, tree)
    console.print(tree)


@app.command("routes")
def routes(
    project_path: Path = typer.Argument(..., help="Path to the Next.js project."),
    as_json: bool = typer.Option(False, "--json", help="Print the route manifest as JSON."),
):
    """List pages, API routes and layouts by URL."""
    try:
        walker = ProjectWalker(project_path)
    except ProjectRootError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1)
    manifest = build_route_manifest(walker.build(), walker.root, walker.router_root)

    if as_json:
        typer.echo(json.dumps(manifest.to_dict(), indent=2))
        return

    pages = Table(title="Pages", show_header=True)
    pages.add_column("URL", style="cyan")
    pages.add_column("File")
    pages.add_column("Layouts", justify="right")
    for page in manifest.pages:
        pages.add_row(escape(page.url), escape(page.file), str(len(page.layout_chain)))
    console.print(pages)

    if manifest.api_routes:
        apis = Table(title="API routes", show_header=True)
        apis.add_column("URL", style="cyan")
        apis.add_column("Methods")
        apis.add_column("Kind")
        for api in manifest.api_routes:
            apis.add_row(escape(api.url), ", ".join(api.methods) or "-", api.kind)
        console.print(apis)

    if manifest.config_files:
        names = ", ".join(c.file_name for c in manifest.config_files)
        console.print(f"[dim]Config files:[/dim] {escape(names)}")


@app.command("deps")
def deps(
    file_path: Path = typer.Argument(..., help="Source file to analyze."),
    root: Optional[Path] = typer.Option(None, "--root", "-r", help="Project root (defaults to the file's folder)."),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON."),
):
    """Show the imports of a single file, resolved against the project."""
    project_root = root or file_path.resolve().parent
    settings = load_analysis_config(project_root)
    result = DependencyAnalyzer(project_root, settings.alias_prefix).analyze(file_path)

    if as_json:
        typer.echo(json.dumps(result.to_dict(), indent=2))
        return

    for error in result.metadata.parse_errors:
        console.print(f"[red]⚠ {escape(error)}[/red]")
    if not result.all:
        typer.echo("No dependencies found.")
        return
    console.print(_dependency_rows(result))


@app.command("importers")
def importers(
    file_path: Path = typer.Argument(..., help="File whose importers to find."),
    root: Path = typer.Option(Path("."), "--root", "-r", help="Project root to scan."),
):
    """List every project file that imports FILE."""
    try:
        refs = find_files_importing(file_path, root)
    except ProjectRootError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1)

    if not refs:
        typer.echo("No importers found.")
        return
    for ref in refs:
        names = ", ".join(s.local or s.exported or "*" for s in ref.specifiers)
        typer.echo(f"{ref.relative_path}" + (f"  ({names})" if names else ""))


def _dependency_layout(engine: TreeLayoutEngine, base: GraphLayout, project_root: Path) -> GraphLayout:
    settings = load_analysis_config(project_root)
    analyzer = DependencyAnalyzer(project_root, settings.alias_prefix)
    results: Dict[str, DependencyResult] = {}
    for node in base.nodes:
        if node.kind != "file":
            continue
        file_path = Path(node.data.get("filePath", ""))
        if file_path.suffix in config.SCRIPT_EXTENSIONS:
            results[node.id] = analyzer.analyze(file_path)
    extra = engine.layout_dependencies(base.nodes, results)
    return GraphLayout(nodes=base.nodes + extra.nodes, edges=base.edges + extra.edges)


@app.command("layout")
def layout(
    project_path: Path = typer.Argument(..., help="Path to the Next.js project."),
    expand: List[str] = typer.Option([], "--expand", "-e", help="Extra folder node ids to expand."),
    expand_all: bool = typer.Option(False, "--expand-all", help="Expand every folder."),
    with_deps: bool = typer.Option(False, "--deps", "-d", help="Lay out dependencies of visible files."),
    fmt: str = typer.Option("json", "--format", "-f", help="Export format: json, dot or html."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file path."),
):
    """Compute the tree layout and export it."""
    fmt = _check_format(fmt)
    try:
        walker = ProjectWalker(project_path)
    except ProjectRootError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1)
    structure = walker.build()

    expanded = all_folder_ids(structure) if expand_all else default_expanded() | set(expand)
    engine = TreeLayoutEngine(load_layout_config())
    graph = engine.layout(structure, expanded)
    if with_deps:
        graph = _dependency_layout(engine, graph, walker.root)

    _write_graph(graph, fmt, output, title=f"{walker.root.name} structure")


@app.command("schema")
def schema(
    schema_path: Path = typer.Argument(..., help="Prisma schema file."),
    fmt: str = typer.Option("", "--format", "-f", help="Export format: json, dot or html (default: summary)."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file path."),
    no_layout: bool = typer.Option(False, "--no-layout", help="Skip the force layout."),
):
    """Build the model/enum graph of a Prisma schema."""
    if fmt:
        fmt = _check_format(fmt)
    if not schema_path.is_file():
        raise typer.BadParameter(f"Schema file not found: {schema_path}")

    graph = analyze_schema(schema_path, layout=not no_layout, cfg=load_schema_layout_config())
    if fmt:
        _write_graph(graph, fmt, output, title=f"{schema_path.name} schema")
        return

    overview = graph.stats["overview"]
    console.print(
        Panel.fit(
            f"Models: [bold]{overview['modelCount']}[/bold]   "
            f"Enums: [bold]{overview['enumCount']}[/bold]   "
            f"Relations: [bold]{overview['totalRelations']}[/bold]   "
            f"Indexes: {overview['totalIndexes']}",
            title=f"[bold]{schema_path.name}[/bold]",
            border_style="cyan",
        )
    )
    table = Table(title="Models", show_header=True)
    table.add_column("Model", style="cyan")
    table.add_column("Fields", justify="right")
    table.add_column("Relations", justify="right")
    table.add_column("Related")
    for entry in graph.stats["modelBreakdown"]:
        table.add_row(
            entry["name"], str(entry["fields"]), str(entry["relations"]),
            ", ".join(entry["relatedModels"]),
        )
    console.print(table)


@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind."),
    port: int = typer.Option(8422, "--port", "-p", help="Port for the local API server."),
):
    """Serve the JSON analysis API locally."""
    import uvicorn

    from .server import create_app

    url = f"http://{host}:{port}"
    console.print(f"\n[bold green]🌐 NextGraph API[/bold green]")
    console.print(f"   URL: [link={url}]{url}[/link]")
    console.print(f"\n   [dim]Press Ctrl+C to stop the server[/dim]\n")
    try:
        uvicorn.run(create_app(), host=host, port=port, log_level="warning")
    except KeyboardInterrupt:
        pass
    finally:
        console.print("\n[dim]Server stopped.[/dim]")


# ===================================================================
# Config
# ===================================================================

def _coerce(value: str):
    lowered = value.lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    for cast in (int, float):
        try:
            return cast(value)
        except ValueError:
            continue
    return value


@config_app.command("show")
def config_show():
    """Print the user configuration file."""
    data = load_full_config()
    typer.echo(f"# {config.CONFIG_FILE}")
    if not data:
        typer.echo("(defaults)")
        return
    for section, values in data.items():
        typer.echo(f"[{section}]")
        if isinstance(values, dict):
            for key, value in values.items():
                typer.echo(f"{key} = {value!r}")


@config_app.command("set")
def config_set(
    key: str = typer.Argument(..., help="Setting as section.key, e.g. layout.depth_distance."),
    value: str = typer.Argument(..., help="New value."),
):
    """Change one setting in the user configuration file."""
    if "." not in key:
        raise typer.BadParameter("Key must look like section.name")
    section, name = key.split(".", 1)
    if section not in ("analysis", "layout", "schema_layout"):
        raise typer.BadParameter("Section must be one of: analysis, layout, schema_layout")

    parsed = _coerce(value)
    if section == "analysis" and name == "extra_ignores":
        parsed = [p.strip() for p in value.split(",") if p.strip()]

    config.ensure_base_dirs()
    if not save_section(section, {name: parsed}):
        console.print(f"[red]Could not write {escape(str(config.CONFIG_FILE))}[/red]")
        raise typer.Exit(code=1)
    typer.echo(f"Set {section}.{name} = {parsed!r}")


if __name__ == "__main__":
    app()
