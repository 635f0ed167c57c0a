"""Per-host failures. Every one of them is recoverable: the batch logs it and moves on.

``summary`` is the short operator-facing category shown before the detail message.
"""


class ConnectError(Exception):
    """Base class for failures that abandon a single host."""
    summary = "connection failed"


class NoMatchError(ConnectError):
    """Search produced nothing, even after the fallback."""
    summary = "no credential found"


class AmbiguousUnresolvedError(ConnectError):
    """Several secrets matched and the operator did not pick a valid one."""
    summary = "no credential selected"


class SecretBackendError(ConnectError):
    """Secret Manager call failed for a reason other than not-found or access-denied."""
    summary = "secret store unavailable"


class FetchError(ConnectError):
    """Base class for credential fetch failures."""
    pass


class CredentialNotFoundError(FetchError):
    summary = "no credential found"


class CredentialAccessDeniedError(FetchError):
    summary = "credential found but inaccessible"


class CredentialMalformedError(FetchError):
    summary = "credential found but malformed"


class LaunchError(ConnectError):
    """External session client could not be started."""
    summary = "launcher failed"
