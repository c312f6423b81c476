# dashboard.py
from html import escape

from fastapi import Depends, FastAPI, HTTPException
from fastapi.responses import HTMLResponse, JSONResponse

from cluster import ClusterError, connect
from models import DEFAULT_DELETE_AFTER_SECONDS, MAX_DELETE_AFTER_SECONDS
from storage import Storage
from sweeper import Sweeper

app = FastAPI()


def get_storage():
    db = Storage()
    try:
        yield db
    finally:
        db.close()


def get_sweeper(db: Storage = Depends(get_storage)) -> Sweeper:
    try:
        client = connect(
            in_cluster=db.get_bool("in_cluster", default=False),
            kubeconfig=db.get_config("kubeconfig") or None,
        )
    except ClusterError as e:
        raise HTTPException(status_code=503, detail=str(e))
    retention = db.get_int("delete_after_seconds", DEFAULT_DELETE_AFTER_SECONDS, maximum=MAX_DELETE_AFTER_SECONDS)
    return Sweeper(client, default_retention_seconds=retention)


def _plan(sweeper, db):
    try:
        return sweeper.plan(namespace=db.get_config("namespace") or None,
                            label_selector=db.get_config("label_selector") or None)
    except ClusterError as e:
        raise HTTPException(status_code=503, detail=str(e))


# ---------- Shared UI ----------
BASE_STYLE = """
  body { font-family: Arial, sans-serif; margin: 0; background: #f9f9f9; color: #333; }
  h1 { background: #2196F3; color: white; padding: 15px; margin: 0; }
  h2 { margin-top: 30px; color: #2196F3; }
  .container { padding: 20px; }
  .navbar { background: #1976D2; padding: 10px 20px; display: flex; gap: 20px; }
  .navbar a { color: white; text-decoration: none; font-weight: bold; }
  table { border-collapse: collapse; width: 100%; margin-top: 10px; background: white; }
  th, td { border: 1px solid #ddd; padding: 8px; text-align: left; }
  th { background-color: #2196F3; color: white; }
  tr:nth-child(even) { background-color: #f2f2f2; }
  .cards { display: grid; grid-template-columns: repeat(auto-fit,minmax(220px,1fr)); gap: 16px; margin-top: 20px; }
  .card { background: white; border: 1px solid #ddd; border-radius: 6px; padding: 12px; }
  .delete { color: #F44336; font-weight: bold; }
  .muted { color: #555; }
"""

def page(title: str, body_html: str) -> str:
    return f"""
    <html>
    <head>
      <title>{title}</title>
      <style>{BASE_STYLE}</style>
    </head>
    <body>
      <h1>{title}</h1>
      <div class="navbar">
        <a href="/">🏠 Plan</a>
        <a href="/config">⚙ Config</a>
      </div>
      <div class="container">
        {body_html}
      </div>
    </body>
    </html>
    """

# ---------- Plan ----------
@app.get("/", response_class=HTMLResponse)
def home(sweeper: Sweeper = Depends(get_sweeper), db: Storage = Depends(get_storage)):
    decisions = _plan(sweeper, db)
    due = sum(1 for d in decisions if d.eligible)

    body = f"""
      <div class="cards">
        <div class="card"><h3>Jobs</h3><p>{len(decisions)}</p></div>
        <div class="card"><h3>Due for deletion</h3><p>{due}</p></div>
        <div class="card"><h3>Default retention</h3><p>{sweeper.default_retention_seconds}s</p></div>
      </div>
      <h2>Next sweep</h2>
      <table>
        <tr><th>Namespace</th><th>Job</th><th>Verdict</th><th>Reason</th><th>Error</th></tr>
    """
    if not decisions:
        body += "</table><p class='muted'>No jobs found.</p>"
    else:
        for d in decisions:
            verdict = "<span class='delete'>delete</span>" if d.eligible else "keep"
            body += (f"<tr><td>{escape(d.namespace)}</td><td>{escape(d.name)}</td><td>{verdict}</td>"
                     f"<td>{escape(d.reason)}</td><td>{escape(d.error or '-')}</td></tr>")
        body += "</table><p class='muted'>Read-only preview. Run the CLI sweep command to delete.</p>"

    return page("🧹 Job Cleaner", body)

@app.get("/decisions", response_class=JSONResponse)
def decisions_json(sweeper: Sweeper = Depends(get_sweeper), db: Storage = Depends(get_storage)):
    return [d.to_dict() for d in _plan(sweeper, db)]

# ---------- Config ----------
@app.get("/config", response_class=HTMLResponse)
def config_page(db: Storage = Depends(get_storage)):
    rows = db.list_config()

    body = """
      <h2>Persisted configuration</h2>
      <table>
        <tr><th>Key</th><th>Value</th><th>Updated</th></tr>
    """
    if not rows:
        body += "</table><p class='muted'>No config entries found.</p>"
    else:
        for r in rows:
            body += f"<tr><td>{escape(r['key'])}</td><td>{escape(r['value'])}</td><td>{r['updated_at']}</td></tr>"
        body += "</table><p class='muted'>Use CLI config set/get to manage values.</p>"

    return page("⚙ Config", body)

@app.get("/healthz", response_class=JSONResponse)
def healthz():
    return {"ok": True}
