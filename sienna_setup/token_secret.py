"""Create a service account token secret and wait for its token.

Since Kubernetes 1.24 service accounts no longer get a token secret
automatically. We create one annotated with the service account name and
the token controller fills in ``data.token`` shortly afterwards.
"""

import base64
import binascii
import logging
import time
from typing import Any, Callable, Dict, Optional

from kubernetes.client.rest import ApiException
from kubernetes.dynamic.exceptions import ConflictError, NotFoundError

from sienna_setup import config
from sienna_setup.config_types import TokenPollingConfig
from sienna_setup.errors import (
    TokenDecodeFailed,
    TokenNotReady,
    classify_api_error,
    is_authorization_error,
    manual_token_command,
)
from sienna_setup.k8s_resources import get_token_secret_spec
from sienna_setup.utils import get_api


def create_token_secret(client, namespace: str) -> bool:
    """
    Create the token secret. Returns False if it already existed from
    an earlier run, which is not an error.
    """
    api = get_api(client, "v1", "Secret")
    try:
        api.create(body=get_token_secret_spec(namespace), namespace=namespace)
    except ConflictError:
        logging.info(f"Token secret {config.TOKEN_SECRET_NAME} already exists in {namespace}")
        return False
    except ApiException as err:
        raise classify_api_error(
            err, f"create the token secret {config.TOKEN_SECRET_NAME}", namespace
        ) from err
    logging.info(f"Created token secret {config.TOKEN_SECRET_NAME} in {namespace}")
    return True


def decode_token(encoded: Optional[str]) -> Optional[str]:
    """
    Decode the base64 encoded token of a secret. None means the token has
    not been populated yet, a non-empty value that cannot be decoded is fatal.
    """
    if not encoded:
        return None
    try:
        return base64.b64decode(encoded, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as err:
        raise TokenDecodeFailed(
            f"The token in secret {config.TOKEN_SECRET_NAME} is not valid base64.",
            str(err),
        ) from err


def read_token(client, namespace: str, identity_name: str) -> Optional[str]:
    """Read the token secret once, returns None if the token is not there yet."""
    api = get_api(client, "v1", "Secret")
    try:
        secret: Dict[str, Any] = api.get(name=config.TOKEN_SECRET_NAME, namespace=namespace).to_dict()
    except NotFoundError:
        logging.info(f"Token secret {config.TOKEN_SECRET_NAME} not found in {namespace} yet")
        return None
    except ApiException as err:
        if is_authorization_error(err):
            raise classify_api_error(
                err, f"read the token secret {config.TOKEN_SECRET_NAME}", namespace
            ) from err
        logging.warning(f"Reading token secret {config.TOKEN_SECRET_NAME} failed: {err.status} {err.reason}")
        return None

    annotations = (secret.get("metadata") or {}).get("annotations") or {}
    bound_to = annotations.get(config.SERVICE_ACCOUNT_NAME_ANNOTATION)
    if bound_to != identity_name:
        # NOTE: The token is still used, we do not verify which account it belongs to
        logging.warning(
            f"Token secret {config.TOKEN_SECRET_NAME} is annotated for "
            f"service account {bound_to}, expected {identity_name}"
        )
    return decode_token((secret.get("data") or {}).get("token"))


def acquire_token(
    client,
    namespace: str,
    identity_name: str = config.SERVICE_ACCOUNT_NAME,
    polling: Optional[TokenPollingConfig] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> str:
    """
    Create the token secret for the service account and poll it until the
    control plane has populated the token or the attempts run out.
    """
    polling = polling or config.token_polling()
    create_token_secret(client, namespace)

    logging.info(f"Waiting {polling.settle_seconds}s for the token to be generated")
    sleep(polling.settle_seconds)

    for attempt in range(1, polling.max_attempts + 1):
        token = read_token(client, namespace, identity_name)
        if token:
            logging.info(f"Token retrieved on attempt {attempt}/{polling.max_attempts}")
            return token
        logging.warning(f"Token not ready yet (attempt {attempt}/{polling.max_attempts})")
        if attempt < polling.max_attempts:
            sleep(polling.retry_interval_seconds)

    raise TokenNotReady(
        "Failed to retrieve service account token. The secret may not be ready yet.",
        f"No token in secret {config.TOKEN_SECRET_NAME} after {polling.max_attempts} attempts.",
        manual_command=manual_token_command(namespace),
    )
