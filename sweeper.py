# sweeper.py
import re
import sys
from datetime import datetime, timedelta, timezone

from cluster import DeleteError, NOT_FOUND
from models import (
    ALREADY_GONE, DEFAULT_DELETE_AFTER_SECONDS, DELETE_AFTER_SECONDS_ANNOTATION, DELETED,
    FAILED, IGNORE_ANNOTATION, MAX_DELETE_AFTER_SECONDS, SKIPPED, WOULD_DELETE,
    Decision, Outcome, SweepReport,
)

_SECONDS_RE = re.compile(r"\+?[0-9]+")


def parse_delete_after(value):
    """Parse a delete-after-seconds annotation; raises ValueError if malformed or too large."""
    if _SECONDS_RE.fullmatch(value) is None:
        raise ValueError(f"cannot convert seconds value: {value!r}")
    secs = int(value)
    if secs > MAX_DELETE_AFTER_SECONDS:
        raise ValueError(f"seconds value out of range: {value!r}")
    return secs


def evaluate_one(record, now, default_retention_seconds=DEFAULT_DELETE_AFTER_SECONDS):
    if record.completion_time is None:
        return Decision(record.namespace, record.name, False, "not finished")

    ignore = record.annotations.get(IGNORE_ANNOTATION)
    if ignore is not None and ignore.lower() == "true":
        return Decision(record.namespace, record.name, False, "ignored")

    secs = default_retention_seconds
    source = "default"
    error = None
    raw = record.annotations.get(DELETE_AFTER_SECONDS_ANNOTATION)
    if raw is not None:
        try:
            secs = parse_delete_after(raw)
            source = "annotation"
        except ValueError as e:
            error = f"{e}; using default {default_retention_seconds}s"

    try:
        deadline = record.completion_time + timedelta(seconds=secs)
    except OverflowError:
        # past datetime.max: the deadline is never reached
        return Decision(record.namespace, record.name, False,
                        f"retention never elapses ({secs}s from {source})",
                        retention_seconds=secs, error=error)
    if deadline < now:
        reason = f"retention elapsed ({secs}s from {source})"
        eligible = True
    else:
        reason = f"retention not elapsed ({secs}s from {source}, due {deadline.isoformat()})"
        eligible = False
    return Decision(record.namespace, record.name, eligible, reason,
                    retention_seconds=secs, deadline=deadline, error=error)


def evaluate(records, now, default_retention_seconds=DEFAULT_DELETE_AFTER_SECONDS):
    """
    Decide, for every record in input order, whether it is due for deletion.
    Pure: the same records and `now` always give the same decisions.
    """
    return [evaluate_one(r, now, default_retention_seconds) for r in records]


def _utcnow():
    return datetime.now(timezone.utc)


class Sweeper:
    def __init__(self, client, default_retention_seconds=DEFAULT_DELETE_AFTER_SECONDS, dry_run=False, clock=None):
        self.client = client
        self.default_retention_seconds = default_retention_seconds
        self.dry_run = dry_run
        self.clock = clock or _utcnow

    def _log(self, key, message, level="INFO"):
        now = _utcnow().isoformat()
        out = sys.stderr if level == "ERROR" else sys.stdout
        print(f"[{now}] {level} job={key}: {message}", file=out, flush=True)

    def plan(self, namespace=None, label_selector=None):
        """List jobs and return decisions without touching the cluster."""
        records = self.client.list_jobs(namespace=namespace, label_selector=label_selector)
        return evaluate(records, self.clock(), self.default_retention_seconds)

    def run_once(self, namespace=None, label_selector=None):
        """
        One sweep. A listing failure propagates; everything after that is
        per-job and recorded in the report instead of raised.
        """
        report = SweepReport(started_at=self.clock())
        for decision in self.plan(namespace=namespace, label_selector=label_selector):
            if decision.error:
                self._log(decision.key, decision.error, level="ERROR")
            if not decision.eligible:
                self._log(decision.key, f"{decision.reason}. skipping")
                report.outcomes.append(Outcome(decision, SKIPPED))
                continue
            report.outcomes.append(self._delete(decision))
        return report

    def _delete(self, decision):
        if self.dry_run:
            self._log(decision.key, f"{decision.reason}. would delete (dry run)")
            return Outcome(decision, WOULD_DELETE)

        self._log(decision.key, f"{decision.reason}. deleting")
        try:
            self.client.delete_job(decision.namespace, decision.name)
        except DeleteError as e:
            if e.kind == NOT_FOUND:
                self._log(decision.key, "already gone")
                return Outcome(decision, ALREADY_GONE)
            self._log(decision.key, f"{e} ({e.kind})", level="ERROR")
            return Outcome(decision, FAILED, error=f"{e} ({e.kind})")
        return Outcome(decision, DELETED)
