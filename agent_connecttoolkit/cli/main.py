"""CLI entrypoint for agent-connecttoolkit."""
import sys
import argparse
import logging
from pathlib import Path

from .validators import validate_hosts, validate_protocol, validate_secret_id

VERSION = "0.1.0"

# Configure logging to stderr
logging.basicConfig(
    level=logging.WARNING,
    format="%(message)s",
    stream=sys.stderr
)
logger = logging.getLogger(__name__)


def _launcher_templates():
    """
    Launcher commands from config, or the defaults when there is no config file.

    Raises:
        ConfigError: If the config file exists but is invalid
    """
    from agent_connecttoolkit.secrets.domains.config_loader import ConfigNotFoundError, get_config
    from agent_connecttoolkit.sessions.domains.launchers import resolve_templates

    try:
        overrides = get_config().get("launchers")
    except ConfigNotFoundError:
        logger.debug("No config file, using default launchers")
        overrides = None
    return resolve_templates(overrides)


def cmd_version(args):
    """Show version information."""
    print(f"agent-connecttoolkit {VERSION}")


def cmd_connect(args, prompt=None, launcher=None):
    """Resolve a credential for each host and open a session to it."""
    from agent_connecttoolkit.secrets.domains.config_loader import ConfigError
    from agent_connecttoolkit.secrets.domains.gcp_client import GCPSecretClient
    from agent_connecttoolkit.secrets.domains.models import ConnectOptions
    from agent_connecttoolkit.secrets.workflows.disambiguator import console_prompt
    from agent_connecttoolkit.sessions.domains.launchers import SubprocessLauncher
    from agent_connecttoolkit.sessions.workflows.dispatcher import connect_hosts

    # Usage errors abort before any host is processed
    protocol = validate_protocol(args.protocol)
    validate_hosts(args.hosts)
    if args.secret_id is not None:
        validate_secret_id(args.secret_id)

    if args.verbose:
        logging.getLogger("agent_connecttoolkit").setLevel(logging.DEBUG)

    try:
        templates = _launcher_templates()
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    options = ConnectOptions(
        protocol=protocol,
        secret_id=args.secret_id,
        search_term=args.search,
        show_all=args.show_all,
    )
    outcomes = connect_hosts(
        args.hosts,
        options,
        GCPSecretClient(),
        launcher or SubprocessLauncher(),
        prompt or console_prompt,
        templates,
    )

    failed = [o for o in outcomes if not o.ok]
    if failed:
        print(f"{len(failed)} of {len(outcomes)} host(s) failed: {', '.join(o.host for o in failed)}", file=sys.stderr)
        sys.exit(1)
    sys.exit(0)


def cmd_secrets_search(args):
    """List the secrets a connect would choose from, without fetching or launching."""
    from agent_connecttoolkit.secrets.domains.gcp_client import GCPSecretClient
    from agent_connecttoolkit.secrets.domains.models import SearchQuery
    from agent_connecttoolkit.secrets.workflows.resolver import find_candidates

    protocol = validate_protocol(args.protocol)
    validate_hosts([args.term])

    query = SearchQuery(term=args.term, protocol=protocol, show_all=args.show_all)
    candidates = find_candidates(GCPSecretClient(), query)

    if not candidates:
        print(f"Error: No secrets match '{args.term}'", file=sys.stderr)
        sys.exit(1)

    id_width = max(len(c.id) for c in candidates)
    name_width = max(len(c.name) for c in candidates)
    for c in candidates:
        print(f"{c.id.ljust(id_width)}  {c.name.ljust(name_width)}  {c.username}".rstrip())
    sys.exit(0)


def cmd_config_set_path(args):
    """Set config file path preference."""
    from agent_connecttoolkit.secrets.domains.preferences import set_preference

    config_path = Path(args.path).resolve()

    if not config_path.exists():
        print(f"Error: Config file does not exist: {config_path}", file=sys.stderr)
        sys.exit(1)

    if not config_path.is_file():
        print(f"Error: Path is not a file: {config_path}", file=sys.stderr)
        sys.exit(1)

    set_preference("config_path", str(config_path))
    print(f"Config path set to: {config_path}")


def cmd_config_show(args):
    """Show current config file path."""
    from agent_connecttoolkit.secrets.domains.config_loader import default_config_path
    from agent_connecttoolkit.secrets.domains.preferences import get_preference

    config_path_pref = get_preference("config_path")

    if config_path_pref:
        config_path = Path(config_path_pref)
        found = "" if config_path.exists() else " (file not found)"
        print(f"Config path: {config_path}{found}")
        print("Source: preference")
    else:
        config_path = default_config_path()
        found = "" if config_path.exists() else " (file not found)"
        print(f"Config path: {config_path}")
        print(f"Source: default{found}")


def cmd_config_clear(args):
    """Clear config path preference."""
    from agent_connecttoolkit.secrets.domains.config_loader import default_config_path
    from agent_connecttoolkit.secrets.domains.preferences import clear_preference

    clear_preference("config_path")
    print(f"Config path preference cleared. Will use default: {default_config_path()}")


def build_parser():
    parser = argparse.ArgumentParser(
        prog="agentconnect",
        description="Agent-ConnectToolkit CLI - open RDP/SSH sessions with credentials from GCP Secret Manager",
        epilog="""
Exit codes:
  0 - Success
  1 - Runtime error (no credential, access denied, launcher failed, etc.)
  2 - Usage error (invalid protocol, invalid secret ID format, etc.)

Environment variables:
  GCP_PROJECT - GCP project ID (overrides config file)

Configuration:
  Default location: ~/.config/agent-connecttoolkit/config.yml
  Custom path: Set with 'agentconnect config set-path <path>'
  View current: Run 'agentconnect config show'
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser(
        "version",
        help="Show version information",
        description="Display the current version of agent-connecttoolkit"
    )

    # connect command
    connect_parser = subparsers.add_parser(
        "connect",
        help="Open sessions to one or more hosts",
        description="""
Find the credential for each host in GCP Secret Manager and open a session.

Resolution:
  1. --secret-id skips searching and uses that secret directly
  2. Otherwise secrets are searched by --search, or by the host name
  3. ssh keeps secrets whose username contains 'root' or 'linux'
  4. rdp keeps 'domain admin' secrets, excluding firewall/switch/vpn/restore;
     if none match, all secrets matching the search are considered
  5. If several secrets remain you are asked to pick one by ID

Hosts are processed one at a time. A host that fails is reported and skipped.
        """
    )
    connect_parser.add_argument(
        "hosts",
        nargs="+",
        metavar="HOST",
        help="Target host name or IP address (also the search term unless --search is given)"
    )
    connect_parser.add_argument(
        "-p", "--protocol",
        default="rdp",
        help="Session protocol: rdp or ssh (default: rdp)"
    )
    connect_parser.add_argument(
        "--secret-id",
        help="Use this secret instead of searching"
    )
    connect_parser.add_argument(
        "--search",
        help="Search term to use instead of the host name"
    )
    connect_parser.add_argument(
        "--show-all",
        action="store_true",
        help="rdp only: don't restrict the search to domain admin secrets"
    )
    connect_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log each resolution step"
    )

    # secrets command
    secrets_parser = subparsers.add_parser(
        "secrets",
        help="Secret lookup operations",
        description="Inspect secrets in GCP Secret Manager"
    )
    secrets_subparsers = secrets_parser.add_subparsers(dest="secrets_command")

    search_parser = secrets_subparsers.add_parser(
        "search",
        help="List secrets matching a term",
        description="""
List the secrets 'connect' would choose from for a search term, using the same
filters and fallback. Secret values are never printed.

Exit codes:
  0 - At least one secret matched
  1 - Nothing matched
  2 - Invalid arguments
        """
    )
    search_parser.add_argument("term", help="Host name or free text to search for")
    search_parser.add_argument(
        "-p", "--protocol",
        default="rdp",
        help="Filter for this protocol: rdp or ssh (default: rdp)"
    )
    search_parser.add_argument(
        "--show-all",
        action="store_true",
        help="rdp only: don't restrict the search to domain admin secrets"
    )

    # config command
    config_parser = subparsers.add_parser(
        "config",
        help="Configuration management",
        description="Manage agent-connecttoolkit configuration"
    )
    config_subparsers = config_parser.add_subparsers(dest="config_command")

    config_set_path_parser = config_subparsers.add_parser(
        "set-path",
        help="Set config file path",
        description="""
Set the configuration file path preference.

This stores the absolute path to your config file in:
~/.config/agent-connecttoolkit/preferences.json
        """
    )
    config_set_path_parser.add_argument("path", help="Path to config file")

    config_subparsers.add_parser(
        "show",
        help="Show current config path",
        description="Display the current configuration file path and its source (preference or default)."
    )
    config_subparsers.add_parser(
        "clear",
        help="Clear config path preference",
        description="Remove the config path preference and go back to ~/.config/agent-connecttoolkit/config.yml"
    )

    return parser, secrets_parser, config_parser


def main(argv=None):
    """Main CLI entrypoint.

    Exit codes:
        0 - Success
        1 - Runtime errors (no credential, access denied, launcher failed, etc.)
        2 - Usage errors (invalid arguments, invalid protocol, etc.)
    """
    parser, secrets_parser, config_parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(2)

    try:
        if args.command == "version":
            cmd_version(args)
        elif args.command == "connect":
            cmd_connect(args)
        elif args.command == "secrets":
            if args.secrets_command == "search":
                cmd_secrets_search(args)
            else:
                secrets_parser.print_help()
                sys.exit(2)
        elif args.command == "config":
            if args.config_command == "set-path":
                cmd_config_set_path(args)
            elif args.config_command == "show":
                cmd_config_show(args)
            elif args.config_command == "clear":
                cmd_config_clear(args)
            else:
                config_parser.print_help()
                sys.exit(2)
        else:
            parser.print_help()
            sys.exit(2)
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
