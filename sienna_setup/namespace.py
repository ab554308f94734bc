import logging

from kubernetes.client.rest import ApiException
from kubernetes.dynamic.exceptions import NotFoundError

from sienna_setup import config
from sienna_setup.errors import classify_api_error
from sienna_setup.k8s_resources import get_namespace_spec
from sienna_setup.utils import get_api


def ensure_namespace(client, namespace: str) -> bool:
    """
    Make sure the namespace exists. Returns True if it had to be created and
    False if it was already there, in which case nothing is changed.
    """
    if not namespace:
        raise ValueError("The namespace name cannot be empty.")
    api = get_api(client, "v1", "Namespace")
    try:
        api.get(name=namespace)
    except NotFoundError:
        pass
    except ApiException as err:
        raise classify_api_error(err, f"read the namespace {namespace}", namespace) from err
    else:
        logging.info(f"Namespace {namespace} already exists")
        return False

    logging.info(f"Creating namespace {namespace}")
    try:
        # Apply instead of create so that a namespace created in the meantime is not an error
        api.server_side_apply(
            body=get_namespace_spec(namespace),
            field_manager=config.FIELD_MANAGER,
            force_conflicts=True,
        )
    except ApiException as err:
        raise classify_api_error(err, f"create the namespace {namespace}", namespace) from err
    return True
