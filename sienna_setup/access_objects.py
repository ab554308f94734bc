import logging
from typing import Dict

from kubernetes.client.rest import ApiException

from sienna_setup import config
from sienna_setup.errors import classify_api_error
from sienna_setup.k8s_resources import get_access_bundle_specs
from sienna_setup.utils import get_api


def apply_manifest(client, body):
    """Create or update a resource with server-side apply."""
    api = get_api(client, body["apiVersion"], body["kind"])
    return api.server_side_apply(
        body=body,
        field_manager=config.FIELD_MANAGER,
        force_conflicts=True,
    )


def apply_access_bundle(client, namespace: str) -> Dict[str, str]:
    """
    Apply the service account, the cluster role and the cluster role binding
    in that order. Applying is idempotent, running it again converges the
    existing objects to the desired state. The first failure aborts.
    """
    applied = {}
    for key, body in get_access_bundle_specs(namespace).items():
        kind = body["kind"]
        name = body["metadata"]["name"]
        try:
            apply_manifest(client, body)
        except ApiException as err:
            logging.warning(f"Applying {kind} {name} failed with status {err.status}")
            raise classify_api_error(err, f"apply the {kind} {name}", namespace) from err
        logging.info(f"Applied {kind} {name}")
        applied[key] = name
    return applied
