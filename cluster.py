# cluster.py
from typing import List, Optional

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException

from models import JobRecord

# DeleteError kinds
NOT_FOUND = "not_found"
FORBIDDEN = "forbidden"
TRANSIENT = "transient"


class ClusterError(Exception):
    pass


class ClusterConnectionError(ClusterError):
    pass


class ListJobsError(ClusterError):
    pass


class DeleteError(ClusterError):
    def __init__(self, kind, message):
        super().__init__(message)
        self.kind = kind


def _kind_for_status(status):
    if status == 404:
        return NOT_FOUND
    if status in (401, 403):
        return FORBIDDEN
    return TRANSIENT


def connect(in_cluster=False, kubeconfig=None, propagation_policy="Background"):
    """Load cluster credentials and return a job client.

    in_cluster uses the pod's service account; otherwise the kubeconfig at
    the given path (or the default location when empty) is used.
    """
    try:
        if in_cluster:
            config.load_incluster_config()
        else:
            config.load_kube_config(config_file=kubeconfig or None)
    except (ConfigException, OSError) as e:
        raise ClusterConnectionError(f"cannot load cluster config: {e}") from e
    return KubeJobClient(client.BatchV1Api(), propagation_policy=propagation_policy)


def to_record(job) -> JobRecord:
    """Convert a V1Job into the fields the sweep needs."""
    meta = job.metadata
    status = job.status
    return JobRecord(
        name=meta.name,
        namespace=meta.namespace,
        completion_time=status.completion_time if status is not None else None,
        annotations=dict(meta.annotations or {}),
    )


class KubeJobClient:
    def __init__(self, api, propagation_policy="Background"):
        self.api = api
        self.propagation_policy = propagation_policy

    def list_jobs(self, namespace: Optional[str] = None, label_selector: Optional[str] = None) -> List[JobRecord]:
        kwargs = {}
        if label_selector:
            kwargs["label_selector"] = label_selector
        try:
            if namespace:
                resp = self.api.list_namespaced_job(namespace, **kwargs)
            else:
                resp = self.api.list_job_for_all_namespaces(**kwargs)
        except ApiException as e:
            raise ListJobsError(f"list jobs: {e.status} {e.reason}") from e
        except Exception as e:
            # connection refused, TLS errors and the like surface from urllib3
            raise ListJobsError(f"list jobs: {e}") from e
        return [to_record(job) for job in (resp.items or [])]

    def delete_job(self, namespace: str, name: str) -> None:
        body = client.V1DeleteOptions(propagation_policy=self.propagation_policy)
        try:
            self.api.delete_namespaced_job(name, namespace, body=body)
        except ApiException as e:
            raise DeleteError(_kind_for_status(e.status), f"delete: {e.status} {e.reason}") from e
        except Exception as e:
            raise DeleteError(TRANSIENT, f"delete: {e}") from e
