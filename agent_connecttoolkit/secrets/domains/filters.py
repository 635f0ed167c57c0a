"""Protocol-aware candidate filters applied to raw search results."""
from typing import Iterable, List

from .models import Protocol, SecretSummary

SSH_ACCOUNT_KEYWORDS = ("root", "linux")
DOMAIN_ADMIN_KEYWORDS = ("domain", "admin")
EXCLUDED_NAME_KEYWORDS = ("firewall", "switch", "vpn", "restore")


def is_ssh_account(summary: SecretSummary) -> bool:
    """True if the secret's username looks like a root/linux login."""
    username = summary.username.lower()
    return any(keyword in username for keyword in SSH_ACCOUNT_KEYWORDS)


def is_domain_admin(summary: SecretSummary) -> bool:
    """True if the secret's name marks a domain admin account that is not a network device or restore account."""
    name = summary.name.lower()
    if not all(keyword in name for keyword in DOMAIN_ADMIN_KEYWORDS):
        return False
    return not any(keyword in name for keyword in EXCLUDED_NAME_KEYWORDS)


def filter_candidates(candidates: Iterable[SecretSummary], protocol: Protocol, show_all: bool = False) -> List[SecretSummary]:
    """
    Apply the filter for a protocol, keeping backend order.

    Args:
        candidates: Raw search results
        protocol: Session protocol
        show_all: Disable the domain admin filter (RDP only)

    Returns:
        Retained candidates
    """
    if protocol is Protocol.SSH:
        return [c for c in candidates if is_ssh_account(c)]
    if show_all:
        return list(candidates)
    return [c for c in candidates if is_domain_admin(c)]
