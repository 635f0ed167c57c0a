"""Turn one resolved secret id into a Credential."""
import json
import logging

from ..domains.errors import (
    CredentialAccessDeniedError,
    CredentialMalformedError,
    CredentialNotFoundError,
)
from ..domains.gcp_client import GCPSecretClient
from ..domains.models import ACCESS_DENIED, Credential

logger = logging.getLogger(__name__)


def parse_credential(secret_id: str, payload: str) -> Credential:
    """
    Decompose a secret payload into username and password.

    The payload must be a JSON object with non-empty string fields
    ``username`` and ``password``.

    Raises:
        CredentialMalformedError: If the payload has any other shape
    """
    try:
        data = json.loads(payload)
    except ValueError:
        raise CredentialMalformedError(f"Secret '{secret_id}' is not a JSON credential")

    if not isinstance(data, dict):
        raise CredentialMalformedError(f"Secret '{secret_id}' is not a JSON object")

    username = data.get("username")
    password = data.get("password")
    if not isinstance(username, str) or not username:
        raise CredentialMalformedError(f"Secret '{secret_id}' has no username")
    if not isinstance(password, str) or not password:
        raise CredentialMalformedError(f"Secret '{secret_id}' has no password")

    return Credential(username=username, secret=password)


def fetch(secret_id: str, client: GCPSecretClient) -> Credential:
    """
    Fetch the credential stored in a secret.

    Raises:
        CredentialNotFoundError: No such secret
        CredentialAccessDeniedError: Secret exists but its value can't be read
        CredentialMalformedError: Value isn't a username/password pair
        SecretBackendError: Secret Manager call failed
    """
    payload = client.get_credential_payload(secret_id)

    if payload is None:
        raise CredentialNotFoundError(f"Secret '{secret_id}' not found")
    if payload is ACCESS_DENIED:
        raise CredentialAccessDeniedError(f"Secret '{secret_id}' exists but access was denied")

    credential = parse_credential(secret_id, payload)
    logger.debug(f"Fetched credential for user '{credential.username}' from secret '{secret_id}'")
    return credential
