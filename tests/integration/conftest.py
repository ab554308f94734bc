from collections.abc import Iterator
from uuid import uuid4

import pytest
from kubernetes import config
from kubernetes.client import ApiClient, CoreV1Api, V1DeleteOptions
from kubernetes.dynamic import DynamicClient

from sienna_setup import config as setup_config
from sienna_setup.kubeconfig import ClusterContext, Kubeconfig, load_kubeconfig, resolve_context
from tests.integration.utils import delete_if_present


@pytest.fixture
def kubeconfig() -> Kubeconfig:
    return load_kubeconfig()


@pytest.fixture
def cluster_context(kubeconfig: Kubeconfig) -> ClusterContext:
    return resolve_context(kubeconfig)


@pytest.fixture
def k8s_dynamic(cluster_context: ClusterContext) -> DynamicClient:
    api_client = config.new_client_from_config(context=cluster_context.name)
    return DynamicClient(api_client)


@pytest.fixture
def k8s_core(cluster_context: ClusterContext) -> CoreV1Api:
    return CoreV1Api(config.new_client_from_config(context=cluster_context.name))


@pytest.fixture
def setup_namespace(k8s_core: CoreV1Api, k8s_dynamic: DynamicClient) -> Iterator[str]:
    """A fresh namespace name, the namespace and the cluster wide objects are removed afterwards."""
    ns = "sienna-test-" + str(uuid4())[:8]
    yield ns
    delete_if_present(k8s_dynamic, "rbac.authorization.k8s.io/v1", "ClusterRoleBinding", setup_config.CLUSTER_ROLE_BINDING_NAME)
    delete_if_present(k8s_dynamic, "rbac.authorization.k8s.io/v1", "ClusterRole", setup_config.CLUSTER_ROLE_NAME)
    k8s_core.delete_namespace(name=ns, body=V1DeleteOptions(propagation_policy="Foreground"))


@pytest.fixture
def token_client(cluster_context: ClusterContext, kubeconfig: Kubeconfig):
    """Build a client that authenticates with nothing but the extracted credential."""

    def _token_client(credential):
        user = {"token": credential.token}
        cluster = {"server": credential.api_endpoint}
        if credential.trust_anchor_data:
            cluster["certificate-authority-data"] = credential.trust_anchor_data
        else:
            cluster["insecure-skip-tls-verify"] = True
        config_dict = {
            "current-context": "sienna",
            "contexts": [{"name": "sienna", "context": {"cluster": "sienna", "user": "sienna"}}],
            "clusters": [{"name": "sienna", "cluster": cluster}],
            "users": [{"name": "sienna", "user": user}],
        }
        return CoreV1Api(config.new_client_from_config_dict(config_dict))

    yield _token_client
