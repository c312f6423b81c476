# cli.py
import click

from cluster import ClusterError, connect
from models import DEFAULT_DELETE_AFTER_SECONDS, FAILED, MAX_DELETE_AFTER_SECONDS
from storage import Storage
from sweeper import Sweeper

CONFIG_KEYS = {
    "delete_after_seconds": "Default retention after completion, in seconds",
    "namespace": "Only sweep this namespace (empty = all namespaces)",
    "label_selector": "Only sweep jobs matching this label selector",
    "kubeconfig": "Path to the kubeconfig file",
    "in_cluster": "Use the pod service account (true/false)",
    "propagation_policy": "Background, Foreground or Orphan",
}

PROPAGATION_POLICIES = ["Background", "Foreground", "Orphan"]


@click.group()
def cli():
    """jobcleaner - delete finished Kubernetes jobs after a retention window"""
    pass


def _build_sweeper(db, in_cluster, kubeconfig, delete_after_seconds, propagation_policy, dry_run=False):
    # CLI option > persisted config > built-in default
    if in_cluster is None:
        # an explicit --kubeconfig means out of cluster
        in_cluster = False if kubeconfig is not None else db.get_bool("in_cluster", default=False)
    if kubeconfig is None:
        kubeconfig = db.get_config("kubeconfig") or None
    if delete_after_seconds is None:
        delete_after_seconds = db.get_int("delete_after_seconds", DEFAULT_DELETE_AFTER_SECONDS,
                                          maximum=MAX_DELETE_AFTER_SECONDS)
    if propagation_policy is None:
        propagation_policy = db.get_config("propagation_policy", default="Background")
        if propagation_policy not in PROPAGATION_POLICIES:
            propagation_policy = "Background"

    try:
        client = connect(in_cluster=in_cluster, kubeconfig=kubeconfig, propagation_policy=propagation_policy)
    except ClusterError as e:
        raise click.ClickException(str(e))
    return Sweeper(client, default_retention_seconds=delete_after_seconds, dry_run=dry_run)


def _scope(db, namespace, label_selector):
    if namespace is None:
        namespace = db.get_config("namespace") or None
    if label_selector is None:
        label_selector = db.get_config("label_selector") or None
    return namespace, label_selector


def connection_options(f):
    f = click.option("--propagation-policy", default=None, type=click.Choice(PROPAGATION_POLICIES),
                     help="How dependent pods are deleted (uses config if set, else Background)")(f)
    f = click.option("--delete-after-seconds", default=None, type=click.IntRange(min=0, max=MAX_DELETE_AFTER_SECONDS),
                     help="Default retention after completion (uses config if set, else 3600)")(f)
    f = click.option("--label-selector", default=None, help="Only consider jobs matching this label selector")(f)
    f = click.option("--namespace", "-n", default=None, help="Only consider jobs in this namespace (default: all)")(f)
    f = click.option("--kubeconfig", default=None, help="Absolute path to the kubeconfig file")(f)
    f = click.option("--in-cluster/--no-in-cluster", default=None,
                     help="Runs in cluster (uses config if set, else out of cluster)")(f)
    return f


# ---------------- Sweep ----------------
@cli.command()
@connection_options
@click.option("--dry-run", is_flag=True, default=False, help="Report what would be deleted without deleting")
def sweep(in_cluster, kubeconfig, namespace, label_selector, delete_after_seconds, propagation_policy, dry_run):
    """Run one sweep: delete every finished job past its retention window"""
    db = Storage()
    sweeper = _build_sweeper(db, in_cluster, kubeconfig, delete_after_seconds, propagation_policy, dry_run=dry_run)
    namespace, label_selector = _scope(db, namespace, label_selector)

    try:
        report = sweeper.run_once(namespace=namespace, label_selector=label_selector)
    except ClusterError as e:
        raise click.ClickException(str(e))

    if not report.outcomes:
        click.echo("No jobs found.")
        return

    for outcome in report.outcomes:
        if outcome.status == FAILED:
            click.echo(f"❌ {outcome.decision.key}: {outcome.error}")
    click.echo(f"🧹 Sweep finished: {report.summary()}")


# ---------------- Plan ----------------
@cli.command()
@connection_options
def plan(in_cluster, kubeconfig, namespace, label_selector, delete_after_seconds, propagation_policy):
    """Show the deletion decision for every job without deleting anything"""
    db = Storage()
    sweeper = _build_sweeper(db, in_cluster, kubeconfig, delete_after_seconds, propagation_policy)
    namespace, label_selector = _scope(db, namespace, label_selector)

    try:
        decisions = sweeper.plan(namespace=namespace, label_selector=label_selector)
    except ClusterError as e:
        raise click.ClickException(str(e))

    if not decisions:
        click.echo("No jobs found.")
        return

    for d in decisions:
        verdict = "delete" if d.eligible else "keep"
        err = f" | error={d.error}" if d.error else ""
        click.echo(f"{d.key} | {verdict} | {d.reason}{err}")


# ---------------- Config management ----------------
@cli.group()
def config():
    """Persisted defaults for sweep and plan"""
    pass

@config.command("set")
@click.argument("key", type=click.Choice(sorted(CONFIG_KEYS)))
@click.argument("value")
def config_set(key, value):
    """Set a config key to a value"""
    db = Storage()
    db.set_config(key, value)
    click.echo(f"🛠️ Config '{key}' set to '{value}'.")

@config.command("get")
@click.argument("key")
@click.option("--default", default=None, help="Fallback if key not set")
def config_get(key, default):
    """Get a config key"""
    db = Storage()
    row = db.get_config_row(key)
    if not row:
        if default is not None:
            click.echo(f"{key}={default} (default)")
        else:
            click.echo(f"{key} not set")
        return
    click.echo(f"{key}={row['value']} (updated_at={row['updated_at']})")

@config.command("list")
def config_list():
    """List all config keys"""
    db = Storage()
    rows = db.list_config()
    if not rows:
        click.echo("No config keys set.")
        return
    for row in rows:
        click.echo(f"{row['key']}={row['value']} (updated_at={row['updated_at']})")

@config.command("keys")
def config_keys():
    """List the keys sweep and plan read"""
    for key in sorted(CONFIG_KEYS):
        click.echo(f"{key}: {CONFIG_KEYS[key]}")


# ---------------- Dashboard ----------------
@cli.command()
@click.option("--host", default="127.0.0.1", help="Interface to bind")
@click.option("--port", default=8000, type=int, help="Port to listen on")
def dashboard(host, port):
    """Serve the read-only plan preview"""
    import uvicorn

    click.echo(f"🌐 Serving plan preview on http://{host}:{port}")
    uvicorn.run("dashboard:app", host=host, port=port)


# ---------------- Entrypoint ----------------
if __name__ == "__main__":
    cli()
