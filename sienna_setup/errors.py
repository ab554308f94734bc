"""Errors raised while setting up access for the Sienna integration.

Every error carries a kind, a short human summary and the underlying
diagnostic (usually the message returned by the Kubernetes API) so that
the caller can report both without parsing text.
"""

from enum import Enum
from typing import List, Optional

from kubernetes.client.rest import ApiException

from sienna_setup import config


class ErrorKind(Enum):
    NoActiveContext = "no-active-context"
    AuthorizationDenied = "authorization-denied"
    EndpointNotFound = "endpoint-not-found"
    TokenNotReady = "token-not-ready"
    ObjectApplyFailed = "object-apply-failed"
    TokenDecodeFailed = "token-decode-failed"


# HTTP status codes that mean the caller is not allowed to do something
AUTHORIZATION_STATUS_CODES = (401, 403)


class SetupError(Exception):
    """Base class of all fatal setup failures."""

    kind: ErrorKind

    def __init__(self, summary: str, diagnostic: str = ""):
        super().__init__(summary)
        self.summary = summary
        self.diagnostic = diagnostic


class NoActiveContext(SetupError):
    kind = ErrorKind.NoActiveContext


class EndpointNotFound(SetupError):
    kind = ErrorKind.EndpointNotFound


class ObjectApplyFailed(SetupError):
    kind = ErrorKind.ObjectApplyFailed


class TokenDecodeFailed(SetupError):
    kind = ErrorKind.TokenDecodeFailed


class AuthorizationDenied(SetupError):
    kind = ErrorKind.AuthorizationDenied

    def __init__(self, summary: str, diagnostic: str = "", namespace: Optional[str] = None):
        super().__init__(summary, diagnostic)
        self.namespace = namespace
        self.permissions = required_permissions(namespace)


class TokenNotReady(SetupError):
    kind = ErrorKind.TokenNotReady

    def __init__(self, summary: str, diagnostic: str = "", manual_command: str = ""):
        super().__init__(summary, diagnostic)
        self.manual_command = manual_command


def required_permissions(namespace: Optional[str] = None) -> List[str]:
    """The permissions an administrator has to grant for the setup to succeed."""
    target = f"the {namespace} namespace" if namespace else "the target namespace"
    return [
        "Create namespaces",
        f"Create ServiceAccounts in {target}",
        "Create ClusterRoles",
        "Create ClusterRoleBindings",
        f"Create Secrets in {target}",
    ]


def manual_token_command(namespace: str) -> str:
    return (
        f"kubectl get secret {config.TOKEN_SECRET_NAME} -n {namespace} "
        "-o jsonpath='{.data.token}' | base64 -d"
    )


def api_error_diagnostic(err: ApiException) -> str:
    """Extract the most useful message from a Kubernetes API error."""
    summary = getattr(err, "summary", None)
    if callable(summary):
        return str(summary())
    if err.body:
        return str(err.body)
    return f"{err.status} Reason: {err.reason}"


def is_authorization_error(err: ApiException) -> bool:
    return err.status in AUTHORIZATION_STATUS_CODES


def classify_api_error(err: ApiException, action: str, namespace: Optional[str] = None) -> SetupError:
    """Turn a failed API call into the matching setup error."""
    diagnostic = api_error_diagnostic(err)
    if is_authorization_error(err):
        return AuthorizationDenied(
            f"Not allowed to {action}.",
            diagnostic,
            namespace=namespace,
        )
    return ObjectApplyFailed(f"Failed to {action}.", diagnostic)
