from datetime import datetime, timedelta, timezone

import pytest
from click.testing import CliRunner

import cli
from cluster import ClusterConnectionError, TRANSIENT
from conftest import FakeJobClient, job
from storage import Storage


@pytest.fixture
def fake_connect(monkeypatch, db_path):
    state = {"client": FakeJobClient(), "kwargs": None}

    def _connect(**kwargs):
        state["kwargs"] = kwargs
        return state["client"]

    monkeypatch.setattr(cli, "connect", _connect)
    return state


def test_sweep_deletes_old_jobs(fake_connect) -> None:
    fake_connect["client"] = FakeJobClient([job("old"), job("running", completion_time=None)])

    result = CliRunner().invoke(cli.cli, ["sweep", "--kubeconfig", "/tmp/kc"])

    assert result.exit_code == 0, result.output
    assert fake_connect["client"].deleted == [("default", "old")]
    assert fake_connect["kwargs"] == {"in_cluster": False, "kubeconfig": "/tmp/kc", "propagation_policy": "Background"}
    assert "deleted=1" in result.output


def test_sweep_reports_failures_but_exits_zero(fake_connect) -> None:
    fake_connect["client"] = FakeJobClient([job("x"), job("y")], delete_errors={"x": TRANSIENT})

    result = CliRunner().invoke(cli.cli, ["sweep"])

    assert result.exit_code == 0, result.output
    assert fake_connect["client"].deleted == [("default", "x"), ("default", "y")]
    assert "default/x" in result.output
    assert "failed=1" in result.output


def test_sweep_listing_failure_exits_nonzero(fake_connect) -> None:
    fake_connect["client"] = FakeJobClient([job("old")], list_error="list jobs: 500")

    result = CliRunner().invoke(cli.cli, ["sweep"])

    assert result.exit_code == 1
    assert "list jobs: 500" in result.output
    assert fake_connect["client"].deleted == []


def test_sweep_connection_failure_exits_nonzero(monkeypatch, db_path) -> None:
    def _connect(**kwargs):
        raise ClusterConnectionError("cannot load cluster config: missing")

    monkeypatch.setattr(cli, "connect", _connect)
    result = CliRunner().invoke(cli.cli, ["sweep", "--in-cluster"])

    assert result.exit_code == 1
    assert "cannot load cluster config" in result.output


def test_sweep_dry_run(fake_connect) -> None:
    fake_connect["client"] = FakeJobClient([job("old")])

    result = CliRunner().invoke(cli.cli, ["sweep", "--dry-run"])

    assert result.exit_code == 0, result.output
    assert fake_connect["client"].deleted == []
    assert "would_delete=1" in result.output


def test_sweep_empty_cluster(fake_connect) -> None:
    result = CliRunner().invoke(cli.cli, ["sweep"])
    assert result.exit_code == 0
    assert "No jobs found." in result.output


def test_sweep_uses_persisted_config(fake_connect, db_path) -> None:
    recent = datetime.now(timezone.utc) - timedelta(seconds=5)
    fake_connect["client"] = FakeJobClient([job("fresh", completion_time=recent, namespace="batch"),
                                            job("elsewhere", completion_time=recent, namespace="other")])
    db = Storage(str(db_path))
    db.set_config("delete_after_seconds", "0")
    db.set_config("namespace", "batch")
    db.set_config("propagation_policy", "Orphan")
    db.close()

    result = CliRunner().invoke(cli.cli, ["sweep"])

    assert result.exit_code == 0, result.output
    assert fake_connect["client"].list_calls == [("batch", None)]
    assert fake_connect["client"].deleted == [("batch", "fresh")]
    assert fake_connect["kwargs"]["propagation_policy"] == "Orphan"


def test_option_overrides_persisted_config(fake_connect, db_path) -> None:
    recent = datetime.now(timezone.utc)
    fake_connect["client"] = FakeJobClient([job("fresh", completion_time=recent)])
    db = Storage(str(db_path))
    db.set_config("delete_after_seconds", "0")
    db.close()

    result = CliRunner().invoke(cli.cli, ["sweep", "--delete-after-seconds", "3600"])

    assert result.exit_code == 0, result.output
    assert fake_connect["client"].deleted == []


def test_negative_retention_option_is_rejected(fake_connect) -> None:
    result = CliRunner().invoke(cli.cli, ["sweep", "--delete-after-seconds", "-1"])
    assert result.exit_code == 2


def test_plan_lists_decisions_without_deleting(fake_connect) -> None:
    fake_connect["client"] = FakeJobClient([
        job("old"),
        job("kept", annotations={"jhe.io/ignore": "True"}),
        job("bad", annotations={"jhe.io/delete-after-seconds": "soon"}),
    ])

    result = CliRunner().invoke(cli.cli, ["plan"])

    assert result.exit_code == 0, result.output
    assert fake_connect["client"].deleted == []
    assert "default/old | delete |" in result.output
    assert "default/kept | keep | ignored" in result.output
    assert "default/bad | delete |" in result.output
    assert "error=" in result.output


def test_config_set_get_list(db_path) -> None:
    runner = CliRunner()

    assert "namespace not set" in runner.invoke(cli.cli, ["config", "get", "namespace"]).output
    assert "No config keys set." in runner.invoke(cli.cli, ["config", "list"]).output

    result = runner.invoke(cli.cli, ["config", "set", "namespace", "batch"])
    assert result.exit_code == 0
    assert "namespace=batch" in runner.invoke(cli.cli, ["config", "get", "namespace"]).output
    assert "namespace=batch" in runner.invoke(cli.cli, ["config", "list"]).output


def test_config_set_rejects_unknown_key(db_path) -> None:
    result = CliRunner().invoke(cli.cli, ["config", "set", "colour", "blue"])
    assert result.exit_code == 2


def test_config_keys(db_path) -> None:
    result = CliRunner().invoke(cli.cli, ["config", "keys"])
    assert "delete_after_seconds:" in result.output


def _persist(db_path, **values) -> None:
    db = Storage(str(db_path))
    for key, value in values.items():
        db.set_config(key, value)
    db.close()


def test_persisted_in_cluster_is_used_without_options(fake_connect, db_path) -> None:
    _persist(db_path, in_cluster="true")

    result = CliRunner().invoke(cli.cli, ["sweep"])

    assert result.exit_code == 0, result.output
    assert fake_connect["kwargs"]["in_cluster"] is True


def test_explicit_kubeconfig_beats_persisted_in_cluster(fake_connect, db_path) -> None:
    _persist(db_path, in_cluster="true")

    result = CliRunner().invoke(cli.cli, ["sweep", "--kubeconfig", "/tmp/kc"])

    assert result.exit_code == 0, result.output
    assert fake_connect["kwargs"]["in_cluster"] is False
    assert fake_connect["kwargs"]["kubeconfig"] == "/tmp/kc"


def test_no_in_cluster_beats_persisted_in_cluster(fake_connect, db_path) -> None:
    _persist(db_path, in_cluster="true")

    result = CliRunner().invoke(cli.cli, ["plan", "--no-in-cluster"])

    assert result.exit_code == 0, result.output
    assert fake_connect["kwargs"]["in_cluster"] is False


def test_oversized_retention_option_is_rejected(fake_connect) -> None:
    result = CliRunner().invoke(cli.cli, ["sweep", "--delete-after-seconds", "1000000000000"])
    assert result.exit_code == 2


def test_oversized_persisted_retention_falls_back_to_default(fake_connect, db_path) -> None:
    fake_connect["client"] = FakeJobClient([job("old")])
    _persist(db_path, delete_after_seconds="1000000000000")

    result = CliRunner().invoke(cli.cli, ["sweep"])

    assert result.exit_code == 0, result.output
    assert fake_connect["client"].deleted == [("default", "old")]


def test_dashboard_command_serves_app(monkeypatch) -> None:
    import uvicorn

    calls = []
    monkeypatch.setattr(uvicorn, "run", lambda app, **kwargs: calls.append((app, kwargs)))

    result = CliRunner().invoke(cli.cli, ["dashboard", "--port", "9000"])

    assert result.exit_code == 0, result.output
    assert calls == [("dashboard:app", {"host": "127.0.0.1", "port": 9000})]
