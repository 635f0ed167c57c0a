"""External session clients, started as subprocesses.

Each protocol maps to a list of steps (argv templates). Placeholders ``{host}``,
``{username}``, ``{secret}`` and ``{target}`` (``username@host``) are filled in
per session. The defaults match the Windows clients:

- RDP: ``cmdkey`` stores the credential under ``TERMSRV/<host>`` so ``mstsc``
  picks it up, then ``mstsc`` opens the session full screen.
- SSH: PuTTY with the password passed on the command line.

Any step can be replaced in config.yml under ``launchers``.
"""
import copy
import logging
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from agent_connecttoolkit.secrets.domains.errors import LaunchError

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATES: Dict[str, Dict[str, List[str]]] = {
    "rdp": {
        "register": ["cmdkey", "/generic:TERMSRV/{host}", "/user:{username}", "/pass:{secret}"],
        "launch": ["mstsc", "/v:{host}", "/f"],
    },
    "ssh": {
        "launch": ["putty", "-ssh", "{target}", "-pw", "{secret}"],
    },
}


@dataclass(frozen=True)
class LaunchParams:
    """One process to start. The argv may contain the secret, so it stays out of repr."""
    argv: Tuple[str, ...] = field(repr=False)
    wait: bool = False  # True: run to completion and check the exit code

    @property
    def program(self) -> str:
        return self.argv[0]


def resolve_templates(overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Dict[str, List[str]]]:
    """Merge config overrides (already validated by the config loader) over the defaults."""
    templates = copy.deepcopy(DEFAULT_TEMPLATES)
    for protocol, steps in (overrides or {}).items():
        templates[protocol].update(steps)
    return templates


def render(template: List[str], **fields: str) -> Tuple[str, ...]:
    return tuple(arg.format(**fields) for arg in template)


class Launcher(ABC):
    """Starts one external process for a session step."""

    @abstractmethod
    def launch(self, params: LaunchParams) -> None:
        """
        Start the process described by params.

        Raises:
            LaunchError: If the program is missing or fails to start
        """


class SubprocessLauncher(Launcher):
    """Launcher backed by the subprocess module. Fire-and-forget unless params.wait is set."""

    def launch(self, params: LaunchParams) -> None:
        logger.debug(f"Starting {params.program} (wait={params.wait})")
        try:
            if params.wait:
                subprocess.run(list(params.argv), capture_output=True, text=True, check=True)
            else:
                subprocess.Popen(list(params.argv))
        except FileNotFoundError:
            raise LaunchError(f"'{params.program}' not found. Is it installed and on PATH?")
        except subprocess.CalledProcessError as e:
            raise LaunchError(f"'{params.program}' exited with code {e.returncode}")
        except OSError as e:
            raise LaunchError(f"Failed to start '{params.program}': {e}")
