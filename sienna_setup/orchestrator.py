import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from sienna_setup import config
from sienna_setup.access_objects import apply_access_bundle
from sienna_setup.config_types import TokenPollingConfig
from sienna_setup.errors import AuthorizationDenied, SetupError, TokenNotReady
from sienna_setup.kubeconfig import ClusterContext, Kubeconfig, with_cluster_credentials
from sienna_setup.namespace import ensure_namespace
from sienna_setup.token_secret import acquire_token


@dataclass(frozen=True)
class Credential:
    """Everything the Sienna integration needs to talk to the cluster."""

    api_endpoint: str
    trust_anchor_data: str
    token: str

    def is_complete(self) -> bool:
        # Clusters without a certificate authority (insecure-skip-tls-verify) have no trust anchor
        return bool(self.api_endpoint) and bool(self.token)


def bootstrap_access(
    client,
    kubeconfig: Kubeconfig,
    context: ClusterContext,
    namespace: str,
    polling: Optional[TokenPollingConfig] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Credential:
    """
    Provision the service account and its cluster wide grant in the given
    namespace and return the credential for it. Any failure is raised as a
    SetupError and stops the setup, nothing is retried apart from reading
    the token.
    """
    # The endpoint comes from the local kubeconfig, check it before changing the cluster
    context = with_cluster_credentials(kubeconfig, context)
    logging.info(f"Using context {context.name} with API server {context.api_endpoint}")

    ensure_namespace(client, namespace)
    apply_access_bundle(client, namespace)
    token = acquire_token(
        client,
        namespace,
        identity_name=config.SERVICE_ACCOUNT_NAME,
        polling=polling,
        sleep=sleep,
    )
    return Credential(
        api_endpoint=context.api_endpoint,
        trust_anchor_data=context.trust_anchor_data,
        token=token,
    )


def report_failure(err: SetupError) -> List[str]:
    """The lines shown to the operator when the setup fails."""
    lines = [f"❌ {err.summary}"]
    if err.diagnostic:
        lines += ["   Error details:", *[f"   {line}" for line in err.diagnostic.splitlines()]]
    if isinstance(err, AuthorizationDenied):
        lines += [
            "",
            "💡 This usually means you need cluster admin permissions to create "
            "ClusterRoles and ClusterRoleBindings.",
            "   Please ask your Kubernetes administrator to run this setup, "
            "or ensure you have sufficient permissions.",
            "",
            "   Required permissions:",
            *[f"   - {permission}" for permission in err.permissions],
        ]
    if isinstance(err, TokenNotReady) and err.manual_command:
        lines += [
            "   You can try running this command manually after a few minutes:",
            f"   {err.manual_command}",
        ]
    return lines


def render_credential(credential: Credential) -> List[str]:
    """The lines with the values the operator copies into Sienna."""
    return [
        "🔑 Copy these values into Sienna:",
        "=====================================",
        "",
        "API Server URL:",
        credential.api_endpoint,
        "",
        "Certificate Authority Data:",
        credential.trust_anchor_data,
        "",
        "Service Account Token:",
        credential.token,
        "",
    ]
