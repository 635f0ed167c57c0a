"""GCP Secret Manager client wrapper.

Secrets used for sessions carry their metadata on the Secret resource:

- annotation ``display-name``: human readable name (falls back to the secret id)
- annotation or label ``username``: login the secret belongs to
- annotation ``host``: host the secret is used for (searched along with the name)

The latest version's payload holds the credential itself as a JSON object with
``username`` and ``password`` fields.
"""
import os
import logging
from typing import List, Optional
from google.api_core import exceptions as gcp_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import secretmanager

from .config_loader import get_config, ConfigError
from .errors import CredentialMalformedError, SecretBackendError
from .models import ACCESS_DENIED, CredentialPayload, SecretSummary

logger = logging.getLogger(__name__)

_BACKEND_ERRORS = (gcp_exceptions.GoogleAPIError, auth_exceptions.GoogleAuthError)

# Secret exists but its value can't be read: no IAM access, or version disabled/destroyed
_ACCESS_DENIED_ERRORS = (gcp_exceptions.PermissionDenied, gcp_exceptions.FailedPrecondition)


def _short_id(resource_name: str) -> str:
    """projects/p/secrets/web01-admin -> web01-admin"""
    return resource_name.rsplit("/", 1)[-1]


def to_summary(secret) -> SecretSummary:
    """Map a Secret Manager Secret resource to a SecretSummary, dropping everything else."""
    secret_id = _short_id(secret.name)
    annotations = secret.annotations or {}
    labels = secret.labels or {}
    return SecretSummary(
        id=secret_id,
        name=annotations.get("display-name") or secret_id,
        username=annotations.get("username") or labels.get("username") or "",
    )


def _matches(secret, term: str) -> bool:
    needle = term.lower()
    annotations = secret.annotations or {}
    haystack = (
        _short_id(secret.name),
        annotations.get("display-name", ""),
        annotations.get("host", ""),
    )
    return any(needle in field.lower() for field in haystack)


class GCPSecretClient:
    """Wrapper around GCP Secret Manager client."""

    def __init__(self, project_id: Optional[str] = None):
        self._client = None
        self._project_id = project_id
        self._project_checked = project_id is not None

    @property
    def client(self) -> secretmanager.SecretManagerServiceClient:
        """Lazy-initialize client."""
        if self._client is None:
            self._client = secretmanager.SecretManagerServiceClient()
        return self._client

    @property
    def project_id(self) -> Optional[str]:
        # Looked up once per client, a missing project is not retried
        if not self._project_checked:
            self._project_id = self.get_project_id()
            self._project_checked = True
        return self._project_id

    def get_project_id(self) -> Optional[str]:
        """
        Get GCP project ID from config or environment variable.

        Priority order:
        1. GCP_PROJECT environment variable (allows override)
        2. Config file (primary source)

        Returns:
            Project ID string, or None if not found
        """
        gcp_project_env = os.getenv("GCP_PROJECT")
        if gcp_project_env:
            logger.debug(f"Using GCP_PROJECT from environment: {gcp_project_env}")
            return gcp_project_env

        try:
            project_id = get_config()['gcp']['project_id']
        except ConfigError as e:
            logger.debug(f"Config not usable for project id: {e}")
            logger.warning("No GCP project configured. Set GCP_PROJECT or gcp.project_id in config")
            return None

        logger.debug(f"Using project_id from config: {project_id}")
        return project_id

    def _secret_path(self, secret_id: str) -> str:
        return f"projects/{self.project_id}/secrets/{secret_id}"

    def search(self, term: str) -> List[SecretSummary]:
        """
        Find secrets whose id, display name or host annotation contains the term.

        Args:
            term: Free text, matched case-insensitively

        Returns:
            Matching summaries in backend order. Empty if the backend can't be queried.
        """
        if not self.project_id:
            logger.debug(f"Search for '{term}' skipped: no GCP project configured")
            return []

        try:
            secrets = self.client.list_secrets(request={"parent": f"projects/{self.project_id}"})
            results = [to_summary(s) for s in secrets if _matches(s, term)]
        except _BACKEND_ERRORS as e:
            logger.warning(f"Secret search for '{term}' failed: {e}")
            return []

        logger.debug(f"Search '{term}' returned {len(results)} secret(s)")
        return results

    def lookup_by_id(self, secret_id: str) -> Optional[SecretSummary]:
        """Return the summary for a secret id, or None if it can't be found."""
        if not self.project_id:
            logger.debug(f"Lookup of secret '{secret_id}' skipped: no GCP project configured")
            return None

        try:
            secret = self.client.get_secret(request={"name": self._secret_path(secret_id)})
        except gcp_exceptions.NotFound:
            return None
        except _BACKEND_ERRORS as e:
            logger.warning(f"Lookup of secret '{secret_id}' failed: {e}")
            return None
        return to_summary(secret)

    def get_credential_payload(self, secret_id: str) -> CredentialPayload:
        """
        Read the latest version of a secret.

        Returns:
            The payload text, None if the secret doesn't exist, or ACCESS_DENIED
            if it exists but can't be read

        Raises:
            CredentialMalformedError: Payload bytes aren't UTF-8
            SecretBackendError: Any other backend failure
        """
        if not self.project_id:
            raise SecretBackendError("No GCP project configured. Set GCP_PROJECT or gcp.project_id in config")

        name = f"{self._secret_path(secret_id)}/versions/latest"
        try:
            response = self.client.access_secret_version(request={"name": name})
        except gcp_exceptions.NotFound:
            return None
        except _ACCESS_DENIED_ERRORS as e:
            logger.debug(f"Access denied for secret '{secret_id}': {e}")
            return ACCESS_DENIED
        except _BACKEND_ERRORS as e:
            raise SecretBackendError(f"Secret Manager request for '{secret_id}' failed: {e}") from e

        try:
            return response.payload.data.decode("UTF-8")
        except UnicodeDecodeError:
            raise CredentialMalformedError(f"Secret '{secret_id}' payload is not valid UTF-8 text")
