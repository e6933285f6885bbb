"""Typer-based CLI for Factory Admin."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import typer
from rich.console import Console
from rich.table import Table
from rich.tree import Tree

from . import __version__, config, config_manager
from .cli_groups import attributes_grp, config_grp, node_grp
from .explorer import serve
from .factory_service import FactoryService, ServiceError
from .graph_export import TYPE_COLORS, export_dot, export_html, export_svg
from .hierarchy import HierarchyConflictError, ParentPolicy
from .layout import LayoutConfig
from .snapshot import HierarchySnapshot, HierarchyView, build_snapshot, load_snapshot
from .storage import SnapshotStore, StateManager

console = Console()

app = typer.Typer(
    help="🏭 Factory Admin: browse and edit the factory asset hierarchy.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.add_typer(node_grp, name="node")
app.add_typer(attributes_grp, name="attributes")
app.add_typer(config_grp, name="config")

# Register the web explorer as a direct command
app.command("serve")(serve)


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"Factory Admin v{__version__}")
        raise typer.Exit()


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
    verbose: bool = typer.Option(False, "--verbose", help="Log API calls and fallbacks."),
):
    """Factory Admin: tree and graph views over the asset platform."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _current_snapshot(store: SnapshotStore, service: Optional[FactoryService] = None) -> HierarchySnapshot:
    return load_snapshot(store, service or FactoryService())


def _require_node(snapshot: HierarchySnapshot, node_id: str):
    node = snapshot.hierarchy.get(node_id)
    if node is None:
        raise typer.BadParameter(f"Node '{node_id}' is not in the current hierarchy. Run 'fa fetch' to refresh.")
    return node


def _styled(node_type: str, text: str) -> str:
    color = TYPE_COLORS.get(node_type, "white")
    return f"[{color}]{text}[/]"


def _print_record(title: str, record: Dict[str, Any]) -> None:
    table = Table(title=title, show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    for key, value in record.items():
        if isinstance(value, (dict, list)):
            value = json.dumps(value, indent=2)
        table.add_row(key, "" if value is None else str(value))
    console.print(table)


# ------------------------------------------------------------------
# Hierarchy commands
# ------------------------------------------------------------------


@app.command("fetch")
def fetch(
    mock: bool = typer.Option(False, "--mock", help="Use the built-in demo hierarchy."),
    strict: bool = typer.Option(False, "--strict", help="Fail when a node has more than one parent."),
):
    """Fetch the hierarchy from the platform and cache it locally."""
    service = FactoryService(use_mock=True if mock else None)
    payload = service.fetch_hierarchy()

    policy = ParentPolicy.STRICT if strict else ParentPolicy.LAST_WINS
    try:
        snapshot = build_snapshot(payload, rank_table=service.rank_table, policy=policy)
    except HierarchyConflictError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1)

    with SnapshotStore() as store:
        generation = store.save_payload(payload)

    hierarchy = snapshot.hierarchy
    StateManager().get_selected(snapshot.node_ids)

    typer.echo(f"Fetched {len(hierarchy)} nodes and {len(hierarchy.links)} links from {payload.source} (generation {generation}).")
    primary = hierarchy.primary_root
    typer.echo(f"Roots: {len(hierarchy.roots)} | Primary root: {primary.label if primary else '-'}")
    for conflict in hierarchy.conflicts:
        console.print(
            f"[yellow]⚠ {conflict.child_id}: parent {conflict.previous_parent_id} "
            f"replaced by {conflict.new_parent_id}[/yellow]"
        )


@app.command("tree")
def tree(
    codes: bool = typer.Option(False, "--codes", help="Show asset codes."),
):
    """Print the hierarchy as a label-sorted tree."""
    with SnapshotStore() as store:
        snapshot = _current_snapshot(store)
    selected = StateManager().get_selected(snapshot.node_ids)

    if not snapshot.tree:
        typer.echo("Hierarchy is empty.")
        return

    root = Tree(f"🏭 [bold]Factory hierarchy[/bold] [dim]({snapshot.source})[/dim]")

    def _add(branch: Tree, entry) -> None:
        text = _styled(entry.type, entry.label) + f" [dim]{entry.type}[/dim]"
        if codes and entry.code:
            text += f" [dim]#{entry.code}[/dim]"
        if entry.id == selected:
            text = f"[reverse]{text}[/reverse]"
        child_branch = branch.add(text)
        for child in entry.children:
            _add(child_branch, child)

    for entry in snapshot.tree:
        _add(root, entry)
    console.print(root)


@app.command("graph")
def graph(
    as_json: bool = typer.Option(False, "--json", help="Print the layout as JSON."),
):
    """Show computed graph positions, levels and the bounding box."""
    with SnapshotStore() as store:
        snapshot = _current_snapshot(store)

    if as_json:
        typer.echo(json.dumps(snapshot.graph_dict(), indent=2))
        return

    table = Table(title="Graph layout")
    table.add_column("Level", justify="right")
    table.add_column("Node")
    table.add_column("Type")
    table.add_column("x", justify="right")
    table.add_column("y", justify="right")
    table.add_column("Neighbors", justify="right")
    for node in snapshot.layout.nodes:
        table.add_row(
            "-" if node.level is None else str(node.level),
            node.label,
            _styled(node.type, node.type),
            f"{node.x:g}",
            f"{node.y:g}",
            str(len(snapshot.connections.get(node.id, []))),
        )
    console.print(table)
    bounds = snapshot.layout.bounds
    typer.echo(f"Bounds: ({bounds.min_x:g}, {bounds.min_y:g}) → ({bounds.max_x:g}, {bounds.max_y:g}) [{bounds.width:g}×{bounds.height:g}]")


@app.command("select")
def select(node_id: str = typer.Argument(..., help="Node id to select.")):
    """Select a node for 'show' and highlighted exports."""
    with SnapshotStore() as store:
        snapshot = _current_snapshot(store)
    node = _require_node(snapshot, node_id)
    StateManager().set_selected(node.id)
    typer.echo(f"Selected {node.label} ({node.type}).")


@app.command("show")
def show(
    node_id: Optional[str] = typer.Argument(None, help="Node id (defaults to the selected node)."),
    remote: bool = typer.Option(False, "--remote", help="Fetch live details from the platform API."),
):
    """Show one node's details without its children."""
    service = FactoryService()
    with SnapshotStore() as store:
        snapshot = _current_snapshot(store, service)

    view = HierarchyView()
    view.refresh(snapshot)
    selected = node_id or StateManager().get_selected(snapshot.node_ids) or view.selected_id
    if selected is None:
        raise typer.BadParameter("No node selected and the hierarchy is empty.")
    if remote:
        _print_record(f"Asset {selected}", service.fetch_node_details(selected))
        return

    detail = view.detail(selected)
    if detail is None:
        _require_node(snapshot, selected)
    typer.echo(" › ".join(detail.pop("path")))
    detail.pop("assetData", None)
    _print_record(detail["label"], detail)


@app.command("export")
def export(
    fmt: str = typer.Option("svg", "--format", "-f", help="Export format: svg, html, dot or json."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file path."),
    focus: str = typer.Option("", "--focus", help="Node id to focus (dot: subtree and ancestry)."),
):
    """Export the hierarchy graph to SVG, HTML, Graphviz DOT or JSON."""
    fmt = fmt.lower()
    if fmt not in {"svg", "html", "dot", "json"}:
        raise typer.BadParameter("Format must be one of: svg, html, dot, json")

    with SnapshotStore() as store:
        snapshot = _current_snapshot(store)
    selected = focus or StateManager().get_selected(snapshot.node_ids)

    if output is None:
        output = Path.cwd() / f"factory_hierarchy.{fmt}"

    if fmt == "svg":
        export_svg(snapshot, output, selected=selected)
    elif fmt == "html":
        export_html(snapshot, output, selected=selected)
    elif fmt == "dot":
        export_dot(snapshot, output, focus=focus)
    else:
        output.write_text(
            json.dumps({"graph": snapshot.graph_dict(), "tree": snapshot.tree_dicts()}, indent=2),
            encoding="utf-8",
        )

    typer.echo(f"Exported graph to {output}")


# ------------------------------------------------------------------
# fa node ...
# ------------------------------------------------------------------


@node_grp.command("add")
def node_add(
    parent_id: str = typer.Argument(..., help="Id of the parent node."),
    node_type: str = typer.Option(..., "--type", "-t", help="Type of the new node."),
    name: str = typer.Option(..., "--name", "-n", help="Display name."),
    description: str = typer.Option("", "--description", "-d"),
    code: str = typer.Option("", "--code"),
    status: str = typer.Option("active", "--status"),
    plc_name: str = typer.Option("", "--plc-name", help="Workstations: PLC name."),
    plc_ip: str = typer.Option("", "--plc-ip", help="Workstations: PLC IP address."),
    plc_mac: str = typer.Option("", "--plc-mac", help="Workstations: PLC MAC address."),
):
    """Add a child node beneath PARENT_ID."""
    service = FactoryService()
    with SnapshotStore() as store:
        snapshot = _current_snapshot(store, service)
    parent = _require_node(snapshot, parent_id)

    try:
        created = service.create_node(
            parent.id,
            node_type,
            name,
            parent_type=parent.type,
            description=description,
            code=code,
            status=status,
            plc={"plc_name": plc_name, "plc_ip_address": plc_ip, "plc_mac_address": plc_mac},
        )
    except ServiceError as e:
        raise typer.BadParameter(str(e))

    mock_note = " (mock response)" if created.get("created") else ""
    typer.echo(f"Created {created['type']} '{created['label']}' [{created['id']}] under {parent.label}{mock_note}.")
    typer.echo("Run 'fa fetch' to refresh the cached hierarchy.")


@node_grp.command("update")
def node_update(
    node_id: str = typer.Argument(..., help="Id of the node to update."),
    name: Optional[str] = typer.Option(None, "--name", "-n"),
    description: Optional[str] = typer.Option(None, "--description", "-d"),
    code: Optional[str] = typer.Option(None, "--code"),
    status: Optional[str] = typer.Option(None, "--status"),
    city: Optional[str] = typer.Option(None, "--city", help="Facilities: city."),
    country: Optional[str] = typer.Option(None, "--country", help="Facilities: country."),
):
    """Update a node's name, description, code, status or location."""
    service = FactoryService()
    with SnapshotStore() as store:
        snapshot = _current_snapshot(store, service)
    node = _require_node(snapshot, node_id)

    changes: Dict[str, Any] = {
        "label": name or node.label,
        "description": description if description is not None else node.asset_data.get("description"),
        "code": code if code is not None else node.code,
        "status": status or node.status,
        "type": node.type,
        "assetData": node.asset_data,
    }
    if node.type == "facility" and (city is not None or country is not None):
        parameters = dict(node.asset_data.get("parameters") or {})
        specs = dict(parameters.get("specs") or {})
        demographics = dict(specs.get("demographics") or {})
        if city is not None:
            demographics["city"] = city
        if country is not None:
            demographics["country"] = country
        specs["demographics"] = demographics
        parameters["specs"] = specs
        changes["parameters"] = parameters
        changes["assetData"] = {**node.asset_data, "parameters": parameters}

    try:
        updated = service.update_node(node.id, changes)
    except ServiceError as e:
        raise typer.BadParameter(str(e))

    mock_note = " (mock response)" if updated.get("updated") else ""
    typer.echo(f"Updated '{updated['label']}' [{node.id}]{mock_note}.")


@node_grp.command("delete")
def node_delete(
    node_id: str = typer.Argument(..., help="Id of the node to delete."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation."),
):
    """Delete a node."""
    service = FactoryService()
    with SnapshotStore() as store:
        snapshot = _current_snapshot(store, service)
    node = _require_node(snapshot, node_id)

    below = snapshot.hierarchy.descendants(node.id)
    if not yes:
        prompt = f"Delete {node.type} '{node.label}'"
        if below:
            prompt += f" and orphan {len(below)} node(s) below it"
        typer.confirm(prompt + "?", abort=True)

    try:
        result = service.delete_node(node.id)
    except ServiceError as e:
        raise typer.BadParameter(str(e))

    state = StateManager()
    if state.get_selected() == node.id:
        state.clear()
    typer.echo(result["message"])


# ------------------------------------------------------------------
# fa attributes ...
# ------------------------------------------------------------------


def _workstation_sheet(store: SnapshotStore, node_id: str):
    snapshot = _current_snapshot(store)
    node = snapshot.hierarchy.get(node_id)
    if node is not None and node.type != "workstation":
        raise typer.BadParameter(f"Data attributes are mapped on workstations; '{node.label}' is a {node.type}.")
    return store.load_sheet(node_id)


def _print_sheet(sheet) -> None:
    from .attributes import LIMIT_KEYS

    table = Table(title=f"Data attributes for {sheet.node_id}")
    table.add_column("#", justify="right")
    table.add_column("Parameter", style="cyan")
    table.add_column("Model no.")
    for key in LIMIT_KEYS:
        table.add_column(key)
    for position, row in enumerate(sheet):
        table.add_row(
            str(position),
            row.parameter,
            row.model_no,
            *[str(row.limits.get(key, "")) for key in LIMIT_KEYS],
        )
    console.print(table)


@attributes_grp.command("show")
def attributes_show(node_id: str = typer.Argument(..., help="Workstation id.")):
    """Show the parameter sheet of a workstation."""
    with SnapshotStore() as store:
        sheet = _workstation_sheet(store, node_id)
        stored = store.has_sheet(node_id)
    _print_sheet(sheet)
    if not stored:
        typer.echo("(sample parameters; nothing saved for this workstation yet)")


@attributes_grp.command("set")
def attributes_set(
    node_id: str = typer.Argument(..., help="Workstation id."),
    position: int = typer.Argument(..., help="Row number."),
    field: str = typer.Argument(..., help="parameter, model_no or limits.<KEY> (e.g. limits.LCL)."),
    value: str = typer.Argument(..., help="New value."),
):
    """Set one field of a parameter row."""
    with SnapshotStore() as store:
        sheet = _workstation_sheet(store, node_id)
        try:
            row = sheet.update(position, field, value)
        except (IndexError, KeyError) as e:
            raise typer.BadParameter(str(e).strip("'\""))
        store.save_sheet(sheet)
    typer.echo(f"Row {position}: {row.parameter or '(unnamed)'} updated.")


@attributes_grp.command("insert")
def attributes_insert(
    node_id: str = typer.Argument(..., help="Workstation id."),
    position: int = typer.Argument(..., help="Insert the new row after this row."),
):
    """Insert an empty parameter row after POSITION."""
    with SnapshotStore() as store:
        sheet = _workstation_sheet(store, node_id)
        sheet.insert(position)
        store.save_sheet(sheet)
    typer.echo(f"Inserted a row; the sheet now has {len(sheet)} rows.")


@attributes_grp.command("remove")
def attributes_remove(
    node_id: str = typer.Argument(..., help="Workstation id."),
    position: int = typer.Argument(..., help="Row number to remove."),
):
    """Remove a parameter row. The last row cannot be removed."""
    with SnapshotStore() as store:
        sheet = _workstation_sheet(store, node_id)
        try:
            removed = sheet.delete(position)
        except IndexError as e:
            raise typer.BadParameter(str(e))
        if not removed:
            console.print("[red]Cannot remove the last parameter row.[/red]")
            raise typer.Exit(code=1)
        store.save_sheet(sheet)
    typer.echo(f"Removed row {position}; {len(sheet)} rows left.")


# ------------------------------------------------------------------
# fa config ...
# ------------------------------------------------------------------


@config_grp.command("show")
def config_show():
    """Show effective settings (environment overrides included)."""
    table = Table(title="Factory Admin configuration", show_header=False)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("Config file", str(config_manager.CONFIG_FILE))
    table.add_row("API URL", config.PLATFORM_API_URL)
    table.add_row("Timeout", f"{config.REQUEST_TIMEOUT:g}s")
    table.add_row("Mock API", "yes" if config.USE_MOCK_API else "no")
    layout = LayoutConfig.from_config()
    table.add_row("Level height", f"{layout.level_height:g}")
    table.add_row("Node padding", f"{layout.node_padding:g}")
    console.print(table)


@config_grp.command("set-api")
def config_set_api(
    url: str = typer.Option("", "--url", help="Platform API base URL."),
    timeout: float = typer.Option(0.0, "--timeout", min=0.0, help="Request timeout in seconds."),
    mock: Optional[bool] = typer.Option(None, "--mock/--no-mock", help="Always serve the demo hierarchy."),
):
    """Save platform API settings to config.toml."""
    if url and not url.startswith(("http://", "https://")):
        raise typer.BadParameter("URL must start with http:// or https://")
    if not config_manager.save_api_config(url=url, timeout=timeout, use_mock=mock):
        console.print(f"[red]Could not write {config_manager.CONFIG_FILE}[/red]")
        raise typer.Exit(code=1)
    typer.echo(f"Saved API settings to {config_manager.CONFIG_FILE}")


@config_grp.command("set-layout")
def config_set_layout(
    level_height: float = typer.Option(0.0, "--level-height", min=0.0, help="Vertical distance between levels."),
    node_padding: float = typer.Option(0.0, "--node-padding", min=0.0, help="Horizontal distance between siblings."),
):
    """Save graph layout spacing to config.toml."""
    if not config_manager.save_layout_config(level_height=level_height, node_padding=node_padding):
        console.print(f"[red]Could not write {config_manager.CONFIG_FILE}[/red]")
        raise typer.Exit(code=1)
    typer.echo(f"Saved layout settings to {config_manager.CONFIG_FILE}")


if __name__ == "__main__":
    app()
