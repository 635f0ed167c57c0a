"""Configuration loader for Agent-ConnectToolkit."""
import os
import logging
import string
from pathlib import Path
from typing import Dict, Any, Optional
import yaml

from .preferences import get_preference

logger = logging.getLogger(__name__)

SUPPORTED_AUTH_TYPES = ("service_account", "application_default")

# Steps each protocol's launcher section may override
LAUNCHER_STEPS = {
    "rdp": ("register", "launch"),
    "ssh": ("launch",),
}
LAUNCHER_PLACEHOLDERS = ("host", "username", "secret", "target")


class ConfigError(Exception):
    """Configuration error exception."""
    pass


class ConfigNotFoundError(ConfigError, FileNotFoundError):
    """No config file at the preferred or default location."""
    pass


def default_config_path() -> Path:
    return Path.home() / ".config" / "agent-connecttoolkit" / "config.yml"


def _get_config_path() -> str:
    """
    Get config file path using XDG Base Directory standard.

    Priority order:
    1. User preference (stored in ~/.config/agent-connecttoolkit/preferences.json)
    2. Default location: ~/.config/agent-connecttoolkit/config.yml

    Returns:
        Absolute path to config file

    Raises:
        ConfigNotFoundError: If config file doesn't exist in any location
    """
    config_path_pref = get_preference("config_path")
    if config_path_pref:
        config_path = Path(config_path_pref)
        if config_path.exists():
            logger.info(f"Using config from preference: {config_path}")
            return str(config_path)
        logger.warning(f"Config path from preference doesn't exist: {config_path}")

    default_config = default_config_path()
    if default_config.exists():
        logger.info(f"Using default config location: {default_config}")
        return str(default_config)

    raise ConfigNotFoundError(
        "Configuration file not found. Please set up your config file using one of these methods:\n\n"
        "1. Use the default location:\n"
        f"   mkdir -p {default_config.parent}\n"
        f"   cp /path/to/your/config.yml {default_config}\n\n"
        "2. Point to an existing config file:\n"
        "   agentconnect config set-path /path/to/your/config.yml\n"
    )


def _validate_authentication(auth: Any, config_path: str) -> None:
    if not isinstance(auth, dict):
        raise ConfigError(
            f"Invalid 'authentication' section in config at {config_path}\n"
            f"Required format:\n"
            f"authentication:\n"
            f"  type: service_account\n"
            f"  service_account_path: /path/to/service-account.json"
        )

    if 'type' not in auth:
        raise ConfigError("Missing 'authentication.type' in config")

    if auth['type'] not in SUPPORTED_AUTH_TYPES:
        raise ConfigError(
            f"Unsupported authentication type: {auth['type']}\n"
            f"Supported types: {', '.join(SUPPORTED_AUTH_TYPES)}"
        )

    if auth['type'] != 'service_account':
        return

    if 'service_account_path' not in auth:
        raise ConfigError(
            "Missing 'authentication.service_account_path' in config\n"
            "Please specify the absolute path to your service account JSON file."
        )

    service_account_path = auth['service_account_path']
    if not os.path.exists(service_account_path):
        raise ConfigError(
            f"Service account file not found at: {service_account_path}\n"
            f"Please ensure the file exists or update the path in {config_path}"
        )
    if not os.path.isfile(service_account_path):
        raise ConfigError(f"Service account path is not a file: {service_account_path}")


def _validate_placeholders(key: str, arg: str) -> None:
    """Only bare {host}, {username}, {secret} and {target} fields are allowed."""
    allowed = ', '.join('{' + p + '}' for p in LAUNCHER_PLACEHOLDERS)
    try:
        fields = [(name, spec, conv) for _, name, spec, conv in string.Formatter().parse(arg) if name is not None]
    except ValueError as e:
        raise ConfigError(f"Invalid placeholder in '{key}': {arg!r} ({e})\nAllowed placeholders: {allowed}")

    for name, spec, conv in fields:
        if name not in LAUNCHER_PLACEHOLDERS or spec or conv:
            raise ConfigError(
                f"Invalid placeholder in '{key}': {arg!r} uses '{{{name}}}'\n"
                f"Allowed placeholders: {allowed}"
            )


def _validate_launchers(launchers: Any) -> None:
    """Check launcher overrides are argv lists using only known placeholders."""
    if not isinstance(launchers, dict):
        raise ConfigError("'launchers' must be a mapping of protocol to launcher commands")

    for protocol, steps in launchers.items():
        if protocol not in LAUNCHER_STEPS:
            raise ConfigError(
                f"Unknown launcher protocol '{protocol}'. Expected one of: {', '.join(LAUNCHER_STEPS)}"
            )
        if not isinstance(steps, dict):
            raise ConfigError(f"'launchers.{protocol}' must be a mapping")
        for step, argv in steps.items():
            key = f"launchers.{protocol}.{step}"
            if step not in LAUNCHER_STEPS[protocol]:
                raise ConfigError(
                    f"Unknown step '{key}'. Expected one of: {', '.join(LAUNCHER_STEPS[protocol])}"
                )
            if not isinstance(argv, list) or not argv or not all(isinstance(a, str) for a in argv):
                raise ConfigError(f"'{key}' must be a non-empty list of strings")
            for arg in argv:
                _validate_placeholders(key, arg)


def load_config() -> Dict[str, Any]:
    """
    Load and validate configuration from YAML file.

    Returns:
        Dict containing configuration with keys:
        - authentication: dict with type and (for service_account) service_account_path
        - gcp: dict with project_id
        - launchers: optional launcher command overrides

    Raises:
        ConfigError: If config file is missing or invalid
    """
    config_path = _get_config_path()

    try:
        with open(config_path, 'r') as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML config at {config_path}: {e}")
    except OSError as e:
        raise ConfigError(f"Failed to read config file at {config_path}: {e}")

    if not config:
        raise ConfigError(f"Config file at {config_path} is empty")

    if not isinstance(config, dict):
        raise ConfigError(f"Config file at {config_path} must contain a mapping")

    if 'authentication' not in config:
        raise ConfigError(
            f"Missing 'authentication' section in config at {config_path}\n"
            f"Required format:\n"
            f"authentication:\n"
            f"  type: service_account\n"
            f"  service_account_path: /path/to/service-account.json"
        )
    _validate_authentication(config['authentication'], config_path)

    if 'gcp' not in config or not isinstance(config['gcp'], dict):
        raise ConfigError(
            f"Missing 'gcp' section in config at {config_path}\n"
            f"Required format:\n"
            f"gcp:\n"
            f"  project_id: your-project-id"
        )

    if 'project_id' not in config['gcp']:
        raise ConfigError("Missing 'gcp.project_id' in config")

    if 'launchers' in config:
        _validate_launchers(config['launchers'])

    logger.info(f"Configuration loaded successfully from {config_path}")
    logger.debug(f"Using authentication type: {config['authentication']['type']}")
    logger.debug(f"Using project ID: {config['gcp']['project_id']}")

    return config


# Lazy loading: commands like --help and config must work without a config file
_CONFIG: Optional[Dict[str, Any]] = None


def get_config() -> Dict[str, Any]:
    """
    Load configuration on first use and reuse it for the rest of the process.

    Raises:
        ConfigError: If config file is missing or invalid
    """
    global _CONFIG

    if _CONFIG is None:
        _CONFIG = load_config()

        auth = _CONFIG['authentication']
        if auth['type'] == 'service_account':
            os.environ['GOOGLE_APPLICATION_CREDENTIALS'] = auth['service_account_path']
            logger.info(f"Set GOOGLE_APPLICATION_CREDENTIALS from config: {auth['service_account_path']}")

    return _CONFIG


def reset_config_cache() -> None:
    """Forget the loaded config so the next get_config() re-reads it."""
    global _CONFIG
    _CONFIG = None
