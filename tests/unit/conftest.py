import base64
import copy
import json
from typing import Any, Dict, List, Optional, Tuple

import pytest
from kubernetes.client.rest import ApiException
from kubernetes.dynamic.exceptions import ConflictError, NotFoundError

from sienna_setup import config
from sienna_setup.config_types import TokenPollingConfig
from sienna_setup.kubeconfig import Kubeconfig

CLUSTER_SCOPED_KINDS = ["Namespace", "ClusterRole", "ClusterRoleBinding"]


def make_api_error(error_cls, status, reason, message=""):
    """Build a dynamic client error the way the client raises it."""
    err = ApiException(status=status, reason=reason)
    err.body = json.dumps({"kind": "Status", "message": message, "code": status})
    err.headers = {"Content-Type": "application/json"}
    return error_cls(err)


class FakeResourceInstance:
    def __init__(self, body: Dict[str, Any]):
        self._body = copy.deepcopy(body)

    def to_dict(self):
        return copy.deepcopy(self._body)


class FakeCluster:
    """A tiny in-memory API server that records every call made to it."""

    def __init__(self):
        self.objects: Dict[Tuple[str, Optional[str], str], Dict[str, Any]] = {}
        self.calls: List[Tuple[str, str, str]] = []
        self.errors: Dict[Tuple[str, str], Exception] = {}
        self.secret_reads = 0
        # Number of secret reads that still see no token, None means never populated
        self.token_ready_after_reads: Optional[int] = 0
        self.token = "service-account-token"

    def add(self, body):
        self.objects[self.key(body["kind"], body["metadata"].get("namespace"), body["metadata"]["name"])] = body

    def key(self, kind, namespace, name):
        return (kind, None if kind in CLUSTER_SCOPED_KINDS else namespace, name)

    def find(self, kind, name, namespace=None):
        return self.objects.get(self.key(kind, namespace, name))

    def mutating_calls(self):
        return [call for call in self.calls if call[0] != "get"]

    def raise_if_failing(self, verb, kind):
        err = self.errors.get((verb, kind))
        if err is not None:
            raise err

    def populate_token(self, body):
        if body["kind"] != "Secret" or body.get("type") != config.SERVICE_ACCOUNT_TOKEN_TYPE:
            return body
        self.secret_reads += 1
        if self.token_ready_after_reads is None or self.secret_reads <= self.token_ready_after_reads:
            return body
        body = copy.deepcopy(body)
        body["data"] = {"token": base64.b64encode(self.token.encode()).decode()}
        return body


class FakeResource:
    def __init__(self, cluster: FakeCluster, api_version: str, kind: str):
        self.cluster = cluster
        self.api_version = api_version
        self.kind = kind
        self.namespaced = kind not in CLUSTER_SCOPED_KINDS

    def get(self, name, namespace=None):
        self.cluster.calls.append(("get", self.kind, name))
        self.cluster.raise_if_failing("get", self.kind)
        body = self.cluster.find(self.kind, name, namespace)
        if body is None:
            raise make_api_error(NotFoundError, 404, "Not Found", f'{self.kind} "{name}" not found')
        return FakeResourceInstance(self.cluster.populate_token(body))

    def create(self, body, namespace=None):
        name = body["metadata"]["name"]
        self.cluster.calls.append(("create", self.kind, name))
        self.cluster.raise_if_failing("create", self.kind)
        if self.cluster.find(self.kind, name, namespace) is not None:
            raise make_api_error(ConflictError, 409, "Conflict", f'{self.kind} "{name}" already exists')
        body = copy.deepcopy(body)
        if self.namespaced:
            body["metadata"]["namespace"] = namespace
        self.cluster.add(body)
        return FakeResourceInstance(body)

    def server_side_apply(self, body, field_manager=None, force_conflicts=None):
        assert field_manager == config.FIELD_MANAGER
        name = body["metadata"]["name"]
        self.cluster.calls.append(("apply", self.kind, name))
        self.cluster.raise_if_failing("apply", self.kind)
        self.cluster.add(copy.deepcopy(body))
        return FakeResourceInstance(body)


class FakeResources:
    def __init__(self, cluster: FakeCluster):
        self.cluster = cluster

    def get(self, api_version, kind):
        return FakeResource(self.cluster, api_version, kind)


class FakeDynamicClient:
    def __init__(self, cluster: FakeCluster):
        self.resources = FakeResources(cluster)


@pytest.fixture
def fake_cluster():
    return FakeCluster()


@pytest.fixture
def fake_client(fake_cluster):
    return FakeDynamicClient(fake_cluster)


@pytest.fixture
def api_error():
    return make_api_error


@pytest.fixture
def no_wait_polling():
    return TokenPollingConfig(settle_seconds=0, retry_interval_seconds=0, max_attempts=3)


@pytest.fixture
def sleeps():
    recorded = []

    def _sleep(seconds):
        recorded.append(seconds)

    return recorded, _sleep


@pytest.fixture
def kubeconfig_dict():
    def _kubeconfig_dict(server="https://10.0.0.1:6443", ca_data="QQ==", current_context="prod"):
        cluster = {}
        if server is not None:
            cluster["server"] = server
        if ca_data is not None:
            cluster["certificate-authority-data"] = ca_data
        return {
            "apiVersion": "v1",
            "kind": "Config",
            "current-context": current_context,
            "clusters": [
                {"name": "prod-cluster", "cluster": cluster},
                {"name": "staging-cluster", "cluster": {"server": "https://10.0.0.2:6443"}},
            ],
            "contexts": [
                {"name": "prod", "context": {"cluster": "prod-cluster", "user": "admin"}},
                {"name": "staging", "context": {"cluster": "staging-cluster", "user": "admin"}},
            ],
            "users": [{"name": "admin", "user": {"token": "admin-token"}}],
        }

    yield _kubeconfig_dict


@pytest.fixture
def kubeconfig(kubeconfig_dict):
    return Kubeconfig.from_dict(kubeconfig_dict())
