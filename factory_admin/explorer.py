"""Factory explorer: browser UI for browsing and editing the asset hierarchy.

Launches a local web server serving a self-contained HTML page with:
- Collapsible hierarchy tree sidebar
- Level graph (SVG) with highlight-on-select
- Node detail panel with edit, add-child and delete actions
- Data attribute (parameter limit) table for workstations

Uses Starlette + Uvicorn.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict

import typer

from .attributes import InvalidParameterError, ParameterSheet
from .factory_service import FactoryService, ServiceError
from .platform_client import PlatformAPIError
from .snapshot import HierarchySnapshot, HierarchyView, load_snapshot

logger = logging.getLogger(__name__)


# ===================================================================
# Starlette app + Uvicorn server
# ===================================================================


def _create_server(store: Any, service: FactoryService):
    """Create the Starlette ASGI application."""
    from starlette.applications import Starlette
    from starlette.responses import HTMLResponse, JSONResponse
    from starlette.routing import Route

    view = HierarchyView()

    def _current(refresh: bool = False) -> HierarchySnapshot:
        if refresh or view.snapshot is None:
            view.refresh(load_snapshot(store, service, refresh=refresh))
        return view.snapshot

    async def _json_body(request) -> Dict[str, Any]:
        try:
            body = await request.json()
        except json.JSONDecodeError as e:
            raise ServiceError("Request body must be JSON") from e
        if not isinstance(body, dict):
            raise ServiceError("Request body must be a JSON object")
        return body

    async def homepage(request):
        return HTMLResponse(HTML_TEMPLATE)

    async def api_factory_hierarchy(request):
        try:
            _current(refresh=True)
            return JSONResponse(store.latest()["payload"].to_dict())
        except Exception as e:
            logger.exception("Hierarchy fetch failed")
            return JSONResponse({"error": f"Failed to fetch factory hierarchy data: {e}"}, status_code=500)

    async def api_factory_api(request):
        try:
            return JSONResponse(service.fetch_api_view())
        except PlatformAPIError as e:
            logger.warning("Factory API view failed: %s", e)
            return JSONResponse({"error": "Failed to fetch factory API data"}, status_code=500)

    async def api_tree(request):
        try:
            snapshot = _current()
            return JSONResponse({"tree": snapshot.tree_dicts(), "source": snapshot.source})
        except Exception as e:
            return JSONResponse({"error": str(e)}, status_code=500)

    async def api_graph(request):
        try:
            snapshot = _current()
            selected = request.query_params.get("selected")
            if selected is not None and not view.select(selected or None):
                return JSONResponse({"error": f"Unknown node '{selected}'"}, status_code=404)
            graph = snapshot.graph_dict()
            graph["selected"] = view.selected_id
            graph["highlighted"] = view.highlighted()
            return JSONResponse(graph)
        except Exception as e:
            return JSONResponse({"error": str(e)}, status_code=500)

    async def api_create_node(request):
        try:
            body = await _json_body(request)
            parent_id = body.get("parent_id")
            parent_type = None
            if parent_id:
                parent = _current().hierarchy.get(parent_id)
                if parent is None:
                    return JSONResponse({"error": f"Unknown parent node '{parent_id}'"}, status_code=404)
                parent_type = parent.type
            created = service.create_node(
                parent_id,
                body.get("type", ""),
                body.get("name", ""),
                parent_type=parent_type,
                description=body.get("description", ""),
                code=body.get("code", ""),
                status=body.get("status", "active"),
            )
            return JSONResponse(created)
        except ServiceError as e:
            return JSONResponse({"error": str(e)}, status_code=400)

    async def api_node(request):
        node_id = request.path_params["node_id"]
        if request.method == "GET":
            return JSONResponse(service.fetch_node_details(node_id))
        try:
            body = await _json_body(request)
            return JSONResponse(service.update_node(node_id, body))
        except ServiceError as e:
            return JSONResponse({"error": str(e)}, status_code=400)

    async def api_hierarchy_node(request):
        node_id = request.path_params["node_id"]
        _current()
        detail = view.detail(node_id)
        if detail is None:
            return JSONResponse({"error": f"Unknown node '{node_id}'"}, status_code=404)
        return JSONResponse(detail)

    async def api_delete_node(request):
        try:
            return JSONResponse(service.delete_node(request.path_params["node_id"]))
        except ServiceError as e:
            return JSONResponse({"error": str(e)}, status_code=400)

    async def api_attributes(request):
        node_id = request.path_params["node_id"]
        if request.method == "GET":
            sheet = store.load_sheet(node_id)
            return JSONResponse({"nodeId": node_id, "parameters": sheet.to_list(), "stored": store.has_sheet(node_id)})
        try:
            body = await _json_body(request)
            rows = body.get("parameters")
            if not isinstance(rows, list) or not rows:
                raise ServiceError("At least one parameter row is required")
            sheet = ParameterSheet.from_list(node_id, rows)
            store.save_sheet(sheet)
            return JSONResponse({"nodeId": node_id, "parameters": sheet.to_list(), "stored": True})
        except (ServiceError, InvalidParameterError) as e:
            return JSONResponse({"error": str(e)}, status_code=400)

    app = Starlette(routes=[
        Route("/", homepage),
        Route("/api/factory-hierarchy", api_factory_hierarchy),
        Route("/api/factory-api", api_factory_api),
        Route("/api/tree", api_tree),
        Route("/api/graph", api_graph),
        Route("/api/hierarchy-node/{node_id}", api_hierarchy_node),
        Route("/api/factory-node", api_create_node, methods=["POST"]),
        Route("/api/factory-node/{node_id}", api_node, methods=["GET", "POST", "PUT"]),
        Route("/api/factory-node/{node_id}/delete", api_delete_node, methods=["DELETE"]),
        Route("/api/factory-node/{node_id}/attributes", api_attributes, methods=["GET", "PUT"]),
    ])
    return app


# ===================================================================
# Typer command
# ===================================================================


def serve(
    port: int = typer.Option(8421, "--port", "-p", help="Port for the local web server."),
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind."),
    no_browser: bool = typer.Option(False, "--no-browser", help="Do not open a browser tab."),
):
    """🌐 Open the factory explorer in your browser.

    Example:
      fa serve
      fa serve --port 9000 --no-browser
    """
    import socket
    import threading
    import time
    import webbrowser

    from rich.console import Console

    from .storage import SnapshotStore

    console = Console()

    # Check if port is available
    actual_port = port
    for attempt in range(5):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            if s.connect_ex((host, actual_port)) != 0:
                break
            actual_port += 1
    else:
        console.print(f"[red]Ports {port}-{port+4} are all in use.[/red]")
        raise typer.Exit(code=1)

    store = SnapshotStore()
    service = FactoryService()
    server_app = _create_server(store, service)

    url = f"http://{host}:{actual_port}"
    console.print(f"\n[bold green]🏭 Factory Explorer[/bold green]")
    console.print(f"   API:     [cyan]{service.client.base_url}[/cyan]{' (mock)' if service.use_mock else ''}")
    console.print(f"   URL:     [link={url}]{url}[/link]")
    console.print(f"\n   [dim]Press Ctrl+C to stop the server[/dim]\n")

    if not no_browser:
        def _open_browser():
            time.sleep(1.0)
            webbrowser.open(url)

        threading.Thread(target=_open_browser, daemon=True).start()

    try:
        import uvicorn
        uvicorn.run(server_app, host=host, port=actual_port, log_level="warning")
    except KeyboardInterrupt:
        pass
    finally:
        store.close()
        console.print("\n[dim]Server stopped.[/dim]")


# ===================================================================
# HTML template (self-contained page)
# ===================================================================

HTML_TEMPLATE = r"""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8" />
<title>Factory Explorer</title>
<style>
  :root { --border: #e5e7eb; --muted: #6b7280; --accent: #2563eb; }
  * { box-sizing: border-box; }
  body { margin: 0; font-family: ui-sans-serif, system-ui, sans-serif; color: #111827; }
  header { padding: 10px 16px; border-bottom: 1px solid var(--border); display: flex; gap: 12px; align-items: center; }
  header h1 { font-size: 18px; margin: 0; flex: 1; }
  #source { font-size: 12px; color: var(--muted); }
  main { display: grid; grid-template-columns: 280px 1fr 340px; height: calc(100vh - 50px); }
  aside, section { overflow: auto; padding: 12px; }
  #tree-panel { border-right: 1px solid var(--border); }
  #detail-panel { border-left: 1px solid var(--border); }
  ul.tree { list-style: none; padding-left: 14px; margin: 0; }
  ul.tree li > span { cursor: pointer; padding: 2px 4px; border-radius: 4px; display: inline-block; }
  ul.tree li > span.selected { background: #dbeafe; }
  .type { font-size: 11px; color: var(--muted); margin-left: 4px; }
  svg text { pointer-events: none; }
  svg g.node { cursor: pointer; }
  label { display: block; font-size: 12px; color: var(--muted); margin-top: 8px; }
  input, select { width: 100%; padding: 4px 6px; border: 1px solid var(--border); border-radius: 4px; }
  button { margin-top: 10px; margin-right: 6px; padding: 5px 10px; border: 1px solid var(--border); border-radius: 4px; background: #fff; cursor: pointer; }
  button.primary { background: var(--accent); color: #fff; border-color: var(--accent); }
  button.danger { color: #dc2626; }
  table { border-collapse: collapse; width: 100%; font-size: 12px; margin-top: 10px; }
  td, th { border: 1px solid var(--border); padding: 2px 4px; }
  td input { border: none; padding: 2px; }
  #crumbs { font-size: 12px; color: var(--muted); }
</style>
</head>
<body>
<header>
  <h1>🏭 Factory Explorer</h1>
  <span id="source"></span>
  <button id="reload">Refresh</button>
</header>
<main>
  <aside id="tree-panel"><div id="tree"></div></aside>
  <section id="graph-panel"><svg id="graph" width="100%" height="100%"></svg></section>
  <aside id="detail-panel"><div id="crumbs"></div><div id="detail">Select a node.</div></aside>
</main>
<script>
const COLORS = { facility: '#2563eb', area: '#16a34a', mini_factory: '#9333ea', line: '#ea580c', workstation: '#dc2626' };
const LIMITS = ['CPP', 'CTQ', 'param_type', 'UoM', 'LCL', 'Low-LCL', 'HCL', 'High-HCL'];
let graph = null, tree = [], selected = null;

async function api(path, options) {
  const res = await fetch(path, options);
  const data = await res.json();
  if (!res.ok) throw new Error(data.error || res.statusText);
  return data;
}

function esc(s) { const d = document.createElement('div'); d.textContent = s == null ? '' : String(s); return d.innerHTML; }

async function load(refresh) {
  if (refresh) await api('/api/factory-hierarchy');
  const t = await api('/api/tree');
  tree = t.tree;
  document.getElementById('source').textContent = 'source: ' + t.source;
  await loadGraph(selected);
}

async function loadGraph(id) {
  graph = await api('/api/graph' + (id ? '?selected=' + encodeURIComponent(id) : ''));
  selected = graph.selected;
  renderTree();
  renderGraph();
  if (selected) showDetail(selected);
}

function renderTree() {
  const build = entries => '<ul class="tree">' + entries.map(e =>
    `<li><span data-id="${esc(e.id)}" class="${e.id === selected ? 'selected' : ''}">${esc(e.label)}<span class="type">${esc(e.type)}</span></span>` +
    (e.children.length ? build(e.children) : '') + '</li>').join('') + '</ul>';
  const el = document.getElementById('tree');
  el.innerHTML = build(tree);
  el.querySelectorAll('span[data-id]').forEach(s => s.onclick = () => loadGraph(s.dataset.id));
}

function renderGraph() {
  const svg = document.getElementById('graph');
  const b = graph.bounds;
  svg.setAttribute('viewBox', `${b.minX} ${b.minY} ${b.width} ${b.height}`);
  const lit = new Set(graph.highlighted);
  const pos = Object.fromEntries(graph.nodes.map(n => [n.id, n]));
  const dim = ids => lit.size && !ids.every(i => lit.has(i)) ? 0.25 : 1;
  let out = '';
  graph.links.forEach(l => {
    const s = pos[l.source], t = pos[l.target];
    if (s && t) out += `<line x1="${s.x}" y1="${s.y}" x2="${t.x}" y2="${t.y}" stroke="#94a3b8" stroke-width="2" opacity="${dim([l.source, l.target])}"/>`;
  });
  graph.nodes.forEach(n => {
    const ring = n.id === selected ? ' stroke="#111827" stroke-width="4"' : '';
    out += `<g class="node" data-id="${esc(n.id)}" opacity="${dim([n.id])}"><circle cx="${n.x}" cy="${n.y}" r="22" fill="${COLORS[n.type] || '#6b7280'}"${ring}/>` +
      `<text x="${n.x}" y="${n.y + 38}" text-anchor="middle" font-size="13">${esc(n.label)}</text></g>`;
  });
  svg.innerHTML = out;
  svg.querySelectorAll('g.node').forEach(g => g.onclick = () => loadGraph(g.dataset.id));
}

function findPath(entries, id, path) {
  for (const e of entries) {
    const next = path.concat([e]);
    if (e.id === id) return next;
    const found = findPath(e.children, id, next);
    if (found) return found;
  }
  return null;
}

async function showDetail(id) {
  const path = findPath(tree, id, []) || [];
  document.getElementById('crumbs').textContent = path.map(e => e.label).join(' › ');
  const node = path.length ? path[path.length - 1] : null;
  const d = await api('/api/factory-node/' + encodeURIComponent(id));
  const demo = (((d.parameters || {}).specs || {}).demographics) || null;
  let html = `<h3>${esc(d.label)}</h3>
    <label>Name</label><input id="f-label" value="${esc(d.label)}">
    <label>Description</label><input id="f-description" value="${esc(d.description)}">
    <label>Code</label><input id="f-code" value="${esc(d.code)}">
    <label>Status</label><input id="f-status" value="${esc(d.status)}">`;
  if (demo) html += `<label>City</label><input id="f-city" value="${esc(demo.city)}">
    <label>Country</label><input id="f-country" value="${esc(demo.country)}">`;
  html += `<div><button class="primary" id="save">Save</button><button class="danger" id="delete">Delete</button></div>
    <h4>Add child</h4><label>Type</label><select id="c-type"></select>
    <label>Name</label><input id="c-name"><button id="add">Add</button>`;
  if (node && node.type === 'workstation') html += '<h4>Data attributes</h4><div id="attrs"></div>';
  const el = document.getElementById('detail');
  el.innerHTML = html;

  const info = await api('/api/hierarchy-node/' + encodeURIComponent(id)).catch(() => ({ allowedChildTypes: [] }));
  document.getElementById('c-type').innerHTML = (info.allowedChildTypes || []).map(t => `<option>${esc(t)}</option>`).join('');

  document.getElementById('save').onclick = async () => {
    const body = { label: val('f-label'), description: val('f-description'), code: val('f-code'), status: val('f-status'), type: d.type, parameters: d.parameters };
    if (demo) body.parameters = { ...d.parameters, specs: { ...d.parameters.specs, demographics: { city: val('f-city'), country: val('f-country') } } };
    await api('/api/factory-node/' + encodeURIComponent(id), { method: 'PUT', headers: { 'Content-Type': 'application/json' }, body: JSON.stringify(body) });
    await load(true);
  };
  document.getElementById('delete').onclick = async () => {
    if (!confirm('Delete ' + d.label + '?')) return;
    await api('/api/factory-node/' + encodeURIComponent(id) + '/delete', { method: 'DELETE' });
    selected = null;
    await load(true);
  };
  document.getElementById('add').onclick = async () => {
    await api('/api/factory-node', { method: 'POST', headers: { 'Content-Type': 'application/json' },
      body: JSON.stringify({ parent_id: id, type: val('c-type'), name: val('c-name') }) });
    await load(true);
  };
  if (node && node.type === 'workstation') showAttributes(id);
}

function val(id) { return document.getElementById(id).value; }

async function showAttributes(id) {
  const data = await api('/api/factory-node/' + encodeURIComponent(id) + '/attributes');
  let rows = data.parameters;
  const render = () => {
    let html = '<table><tr><th>Parameter</th><th>Model</th>' + LIMITS.map(k => `<th>${k}</th>`).join('') + '<th></th></tr>';
    rows.forEach((r, i) => {
      html += `<tr><td><input data-i="${i}" data-k="parameter" value="${esc(r.parameter)}"></td><td><input data-i="${i}" data-k="model_no" value="${esc(r.model_no)}"></td>` +
        LIMITS.map(k => `<td><input data-i="${i}" data-k="limits.${k}" value="${esc(r.limits[k])}"></td>`).join('') +
        `<td><button data-ins="${i}">+</button><button data-del="${i}">−</button></td></tr>`;
    });
    html += '</table><button class="primary" id="attrs-save">Save attributes</button>';
    const el = document.getElementById('attrs');
    el.innerHTML = html;
    el.querySelectorAll('input').forEach(inp => inp.onchange = () => {
      const r = rows[+inp.dataset.i], k = inp.dataset.k;
      if (k.startsWith('limits.')) r.limits[k.slice(7)] = inp.value; else r[k] = inp.value;
    });
    el.querySelectorAll('button[data-ins]').forEach(b => b.onclick = () => { rows.splice(+b.dataset.ins + 1, 0, { parameter: '', model_no: '', limits: {} }); render(); });
    el.querySelectorAll('button[data-del]').forEach(b => b.onclick = () => { if (rows.length > 1) { rows.splice(+b.dataset.del, 1); render(); } });
    document.getElementById('attrs-save').onclick = async () => {
      const saved = await api('/api/factory-node/' + encodeURIComponent(id) + '/attributes', { method: 'PUT', headers: { 'Content-Type': 'application/json' }, body: JSON.stringify({ parameters: rows }) });
      rows = saved.parameters;
      render();
    };
  };
  render();
}

document.getElementById('reload').onclick = () => load(true);
load(false).catch(err => { document.getElementById('detail').textContent = err.message; });
</script>
</body>
</html>
"""
