"""Domain models for secret resolution and session dispatch."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple, Union


class Protocol(Enum):
    """Session protocol; selects both the search filter and the launcher."""
    RDP = "rdp"
    SSH = "ssh"

    @classmethod
    def parse(cls, value: str) -> "Protocol":
        """Parse a protocol name case-insensitively. Raises ValueError if unknown."""
        return cls(value.strip().lower())


class _Sentinel(Enum):
    ACCESS_DENIED = "access-denied"


# Returned by the backend when a secret exists but its value cannot be read
ACCESS_DENIED = _Sentinel.ACCESS_DENIED

# Raw credential read: payload text, None when missing, or ACCESS_DENIED
CredentialPayload = Optional[Union[str, _Sentinel]]


@dataclass(frozen=True)
class SecretSummary:
    """A search hit: just enough to pick a secret, never its value."""
    id: str
    name: str
    username: str


@dataclass(frozen=True)
class Credential:
    """A concrete username/secret pair. Only built by the credential fetcher."""
    username: str
    secret: str = field(repr=False)


@dataclass(frozen=True)
class SearchQuery:
    """One resolution attempt."""
    term: str
    protocol: Protocol
    show_all: bool = False


@dataclass(frozen=True)
class NoMatch:
    pass


@dataclass(frozen=True)
class SingleMatch:
    secret_id: str


@dataclass(frozen=True)
class MultipleMatches:
    candidates: Tuple[SecretSummary, ...]


ResolutionResult = Union[NoMatch, SingleMatch, MultipleMatches]


@dataclass(frozen=True)
class SessionRequest:
    """Everything the dispatcher needs to open one session."""
    host: str
    protocol: Protocol
    credential: Credential


@dataclass(frozen=True)
class ConnectOptions:
    """Read-only settings shared by every host in one batch."""
    protocol: Protocol = Protocol.RDP
    secret_id: Optional[str] = None
    search_term: Optional[str] = None
    show_all: bool = False
