"""Input validation for CLI arguments.

Every validator exits with code 2 (usage error) so nothing runs when an
argument is bad.
"""
import re
import sys
from typing import List

from agent_connecttoolkit.secrets.domains.models import Protocol

# Secret Manager secret ids: letters, digits, underscores, hyphens
SECRET_ID_PATTERN = r'^[a-zA-Z0-9_-]+$'


def validate_protocol(value: str) -> Protocol:
    """
    Parse the --protocol value.

    Returns:
        The matching Protocol

    Raises:
        SystemExit with code 2 if the value isn't rdp or ssh
    """
    try:
        return Protocol.parse(value)
    except ValueError:
        choices = ", ".join(p.value for p in Protocol)
        print(f"Error: Invalid protocol '{value}'. Choose one of: {choices}", file=sys.stderr)
        sys.exit(2)


def validate_secret_id(secret_id: str) -> None:
    """
    Validate an explicit secret id matches Secret Manager's naming rules.

    Raises:
        SystemExit with code 2 if validation fails
    """
    if not secret_id:
        print("Error: Secret ID cannot be empty", file=sys.stderr)
        sys.exit(2)

    if not re.match(SECRET_ID_PATTERN, secret_id):
        print(f"Error: Invalid secret ID '{secret_id}'", file=sys.stderr)
        print("\nAllowed characters: letters, numbers, underscores (_), hyphens (-)", file=sys.stderr)
        print("  ✓ web01-domain-admin", file=sys.stderr)
        print("  ✗ web01.admin (contains dot)", file=sys.stderr)
        sys.exit(2)


def validate_hosts(hosts: List[str]) -> None:
    """Reject blank hosts; an empty search term would match every secret."""
    for host in hosts:
        if not host.strip():
            print("Error: Host name cannot be empty", file=sys.stderr)
            sys.exit(2)
