# ui_frontend.py
# TaskBrowse - search page and favicon
# Copyright (c) 2025-2026 TaskBrowse
from __future__ import annotations

import html
from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, Response

from services.tasks import overview

__all__ = ["register_favicons", "register_ui_root", "get_index_html", "format_last_updated"]

FAVICON_SVG: str = """<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 64 64">
<defs><linearGradient id="g" x1="0" y1="0" x2="64" y2="64" gradientUnits="userSpaceOnUse">
<stop offset="0" stop-color="#2de2ff"/><stop offset="1" stop-color="#7c5cff"/></linearGradient></defs>
<rect width="64" height="64" rx="14" fill="#0b0b0f"/>
<circle cx="28" cy="28" r="13" fill="none" stroke="url(#g)" stroke-width="4"/>
<path d="M38 38 L50 50" stroke="url(#g)" stroke-width="5" stroke-linecap="round"/>
</svg>"""


def format_last_updated(iso: str | None, tz_name: str = "Australia/Sydney") -> str:
    if not iso:
        return "Never"
    try:
        ts = datetime.fromisoformat(str(iso).replace("Z", "+00:00"))
    except ValueError:
        return str(iso)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    try:
        tz = ZoneInfo(tz_name) if tz_name else timezone.utc
    except (ZoneInfoNotFoundError, ValueError):
        tz = timezone.utc
    return ts.astimezone(tz).strftime("%d/%m/%Y, %H:%M:%S")


def register_favicons(app: FastAPI) -> None:
    def _svg_resp() -> Response:
        return Response(
            content=FAVICON_SVG,
            media_type="image/svg+xml",
            headers={"Cache-Control": "public, max-age=86400"},
        )

    @app.get("/favicon.svg", include_in_schema=False, tags=["ui"])
    def favicon_svg() -> Response:
        return _svg_resp()

    @app.get("/favicon.ico", include_in_schema=False, tags=["ui"])
    def favicon_ico() -> Response:
        # serve SVG for legacy path
        return _svg_resp()


def register_ui_root(app: FastAPI) -> None:
    @app.get("/", include_in_schema=False, tags=["ui"])
    def ui_root(request: Request) -> HTMLResponse:
        st = request.app.state
        ov = overview(st.store)
        tz_name = str((st.load_config().get("runtime") or {}).get("display_timezone") or "")
        stats = f"{ov['taskCount']} tasks ({ov['assignedCount']} assigned)"
        return HTMLResponse(
            get_index_html(stats, format_last_updated(ov["lastUpdated"], tz_name)),
            headers={"Cache-Control": "no-store"},
        )


_STYLES = r"""
  :root{--bg:#0b0b0f;--panel:#14141b;--border:#262633;--fg:#e6e6ee;--muted:#8a8aa0;--accent:#7c5cff}
  *{box-sizing:border-box}
  body{margin:0;font:14px/1.45 system-ui,-apple-system,Segoe UI,Roboto,sans-serif;background:var(--bg);color:var(--fg)}
  header{display:flex;align-items:center;gap:12px;padding:14px 20px;border-bottom:1px solid var(--border)}
  header h1{font-size:18px;margin:0}
  header .meta{margin-left:auto;color:var(--muted);font-size:12px;text-align:right}
  main{padding:16px 20px;max-width:1200px;margin:0 auto}
  .bar{display:flex;flex-wrap:wrap;gap:8px;margin-bottom:12px}
  input,select,button{background:var(--panel);color:var(--fg);border:1px solid var(--border);border-radius:8px;padding:8px 10px}
  #q{flex:1;min-width:240px;font-size:16px}
  button{cursor:pointer}button:hover{border-color:var(--accent)}
  table{width:100%;border-collapse:collapse}
  th,td{text-align:left;padding:6px 8px;border-bottom:1px solid var(--border)}
  th{color:var(--muted);font-weight:600;font-size:12px;text-transform:uppercase}
  tr.deleted td{opacity:.45;text-decoration:line-through}
  .key{font-family:ui-monospace,Menlo,monospace;white-space:nowrap}
  .badge{font-size:11px;padding:1px 6px;border-radius:999px;background:var(--accent);color:#fff;margin-left:6px}
  #progress{color:var(--muted);font-size:12px;min-height:1em;margin-bottom:8px}
  a{color:#9db4ff;text-decoration:none}
"""

_SCRIPT = r"""
(function(){
  const $ = (id) => document.getElementById(id);
  let changed = {newIds: new Set(), updatedIds: new Set()};
  let timer = null;

  function esc(s){ const d=document.createElement('div'); d.textContent=(s==null?'':String(s)); return d.innerHTML; }

  function params(){
    const p = new URLSearchParams();
    p.set('q', $('q').value.trim());
    for (const k of ['project','status','assignee','due']) { const v=$(k).value; if (v) p.set(k, v); }
    if ($('changed').checked) p.set('changed','1');
    if (!$('deleted').checked) p.set('deleted','0');
    return p;
  }

  function row(t){
    const tag = changed.newIds.has(t.id) ? '<span class="badge">new</span>'
              : changed.updatedIds.has(t.id) ? '<span class="badge">updated</span>' : '';
    return `<tr class="${t.deleted?'deleted':''}">
      <td class="key"><a href="/browse/${esc(t.ticketKey)}" target="_blank">${esc(t.ticketKey)}</a>${tag}</td>
      <td><a href="${esc(t.url)}" target="_blank">${esc(t.title)}</a></td>
      <td>${esc(t.project)}</td><td>${esc(t.status)}</td><td>${esc(t.assignee)}</td><td>${esc(t.dueDate||'')}</td></tr>`;
  }

  async function run(){
    const r = await fetch('/api/search?' + params().toString());
    const js = await r.json();
    if (!r.ok){ $('rows').innerHTML = `<tr><td colspan="6">${esc(js.error||'Search failed')}</td></tr>`; $('count').textContent=''; return; }
    $('count').textContent = `${js.count} of ${js.total}`;
    $('rows').innerHTML = js.tasks.slice(0, 500).map(row).join('');
  }

  function opt(sel, items, label, value){
    const el = $(sel);
    for (const it of items){ const o=document.createElement('option'); o.value=value(it); o.textContent=label(it); el.appendChild(o); }
  }

  async function loadFilters(){
    const js = await (await fetch('/api/filters')).json();
    changed.newIds = new Set(js.newTaskIds||[]); changed.updatedIds = new Set(js.updatedTaskIds||[]);
    opt('project', js.projects||[], p => `${p.prefix} - ${p.name}`, p => p.id);
    opt('status', js.statuses||[], s => s, s => s);
    opt('assignee', js.assignees||[], a => a.name, a => a.id);
  }

  function refresh(){
    $('refresh').disabled = true;
    const es = new EventSource('/update?stream=1');
    es.addEventListener('progress', (e) => {
      const ev = JSON.parse(e.data);
      if (ev.event === 'sync:page') $('progress').textContent = `${ev.phase} page ${ev.page} (${ev.recordsSoFar} tasks)`;
    });
    es.addEventListener('done', (e) => { es.close(); const s=JSON.parse(e.data); $('progress').textContent=`Synced ${s.taskCount} tasks, ${s.newCount} new, ${s.updatedCount} updated`; setTimeout(()=>location.reload(), 800); });
    es.addEventListener('error', (e) => { es.close(); $('refresh').disabled=false; let msg='Sync failed'; try{ msg=JSON.parse(e.data).error||msg; }catch(_){} $('progress').textContent=msg; });
  }

  document.addEventListener('DOMContentLoaded', () => {
    $('q').addEventListener('input', () => { clearTimeout(timer); timer=setTimeout(run, 150); });
    $('q').addEventListener('keydown', (e) => {
      if (e.key === 'Enter'){ const m=$('q').value.trim().match(/^([A-Za-z]+)[-\s]?(\d+)$/); if (m) window.open(`/browse/${m[1].toUpperCase()}-${m[2]}`, '_blank'); }
    });
    for (const k of ['project','status','assignee','due','changed','deleted']) $(k).addEventListener('change', run);
    $('refresh').addEventListener('click', refresh);
    loadFilters().then(run);
    $('q').focus();
  });
})();
"""


def get_index_html(stats_text: str = "0 tasks (0 assigned)", last_updated: str = "Never") -> str:
    return f"""<!doctype html><html lang="en"><head>
<meta charset="utf-8"><meta name="viewport" content="width=device-width,initial-scale=1">
<title>TaskBrowse</title>
<link rel="icon" type="image/svg+xml" href="/favicon.svg"><link rel="alternate icon" href="/favicon.ico">
<style>{_STYLES}</style>
</head><body>
<header>
  <h1>TaskBrowse</h1>
  <button id="refresh" title="Sync now">Refresh</button>
  <div class="meta"><div id="stats">{html.escape(stats_text)}</div><div>Last updated: <span id="last-updated">{html.escape(last_updated)}</span></div></div>
</header>
<main>
  <div class="bar">
    <input id="q" type="search" placeholder="PRIM-242, 242 or text..." autocomplete="off">
    <select id="project"><option value="">All projects</option></select>
    <select id="status"><option value="">All statuses</option></select>
    <select id="assignee"><option value="">Anyone</option><option value="me">Me</option><option value="unassigned">Unassigned</option></select>
    <select id="due"><option value="">Any due date</option><option value="overdue">Overdue</option><option value="today">Due today</option><option value="week">Due this week</option><option value="none">No due date</option></select>
    <label><input id="changed" type="checkbox"> Changed</label>
    <label><input id="deleted" type="checkbox" checked> Show removed</label>
  </div>
  <div id="progress"></div>
  <div id="count"></div>
  <table><thead><tr><th>Key</th><th>Title</th><th>Project</th><th>Status</th><th>Assignee</th><th>Due</th></tr></thead>
  <tbody id="rows"></tbody></table>
</main>
<script>{_SCRIPT}</script>
</body></html>
"""
