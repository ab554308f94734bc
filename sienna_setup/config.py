import os

from dataconf.exceptions import MalformedConfigException, ParseException, TypeConfigException

from sienna_setup.config_types import TokenPollingConfig

# Fixed names so that re-running the setup updates the same objects
SERVICE_ACCOUNT_NAME = "sienna-integration-user"
CLUSTER_ROLE_NAME = "sienna-admin-role"
CLUSTER_ROLE_BINDING_NAME = "sienna-admin-binding"
TOKEN_SECRET_NAME = f"{SERVICE_ACCOUNT_NAME}-token"

SERVICE_ACCOUNT_NAME_ANNOTATION = "kubernetes.io/service-account.name"
SERVICE_ACCOUNT_TOKEN_TYPE = "kubernetes.io/service-account-token"

DEFAULT_NAMESPACE = "sienna"
NAMESPACE_CHOICES = {"1": DEFAULT_NAMESPACE, "2": "default"}

# Field manager recorded by the API server for server-side apply
FIELD_MANAGER = os.getenv("SIENNA_FIELD_MANAGER", "sienna-setup")


def token_polling() -> TokenPollingConfig:
    """
    Read the token polling settings from the TOKEN_POLLING_* env variables.
    Every problem with them is reported as a ValueError.
    """
    try:
        return TokenPollingConfig.dataconf_from_env()
    except (MalformedConfigException, ParseException, TypeConfigException) as err:
        raise ValueError(f"Invalid TOKEN_POLLING_* setting: {err}") from err


VERBOSE = os.environ.get("VERBOSE", "false").lower() == "true"
DEBUG = os.environ.get("DEBUG", "false").lower() == "true"
