from datetime import datetime, timezone

import pytest

from cluster import DeleteError, ListJobsError
from models import JobRecord

T0 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def job(name, completion_time=T0, annotations=None, namespace="default"):
    return JobRecord(name=name, namespace=namespace, completion_time=completion_time,
                     annotations=annotations or {})


class FakeJobClient:
    def __init__(self, records=None, delete_errors=None, list_error=None):
        self.records = list(records or [])
        self.delete_errors = dict(delete_errors or {})   # name -> DeleteError kind
        self.list_error = list_error
        self.list_calls = []
        self.deleted = []

    def list_jobs(self, namespace=None, label_selector=None):
        self.list_calls.append((namespace, label_selector))
        if self.list_error:
            raise ListJobsError(self.list_error)
        return [r for r in self.records if namespace is None or r.namespace == namespace]

    def delete_job(self, namespace, name):
        self.deleted.append((namespace, name))
        kind = self.delete_errors.get(name)
        if kind:
            raise DeleteError(kind, f"delete: {kind}")


@pytest.fixture
def db_path(monkeypatch, tmp_path):
    path = tmp_path / "jobcleaner-tests.db"
    monkeypatch.setenv("JOBCLEANER_DB", str(path))
    return path
