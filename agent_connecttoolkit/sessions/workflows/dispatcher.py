"""Dispatch sessions, and run the per-host connect pipeline over a batch of hosts.

Each host moves through START -> RESOLVING -> (DISAMBIGUATING) -> FETCHING ->
DISPATCHING -> DONE, or stops in FAILED. Hosts are processed one at a time in
input order. A failure abandons only the host it happened on.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional

from agent_connecttoolkit.secrets.domains.errors import AmbiguousUnresolvedError, ConnectError, NoMatchError
from agent_connecttoolkit.secrets.domains.gcp_client import GCPSecretClient
from agent_connecttoolkit.secrets.domains.models import (
    ConnectOptions,
    MultipleMatches,
    NoMatch,
    Protocol,
    SessionRequest,
)
from agent_connecttoolkit.secrets.workflows import credential_fetcher
from agent_connecttoolkit.secrets.workflows.disambiguator import Prompt, console_prompt, disambiguate
from agent_connecttoolkit.secrets.workflows.resolver import resolve
from ..domains.launchers import Launcher, LaunchParams, render, resolve_templates

logger = logging.getLogger(__name__)


class HostState(Enum):
    START = "start"
    RESOLVING = "resolving"
    DISAMBIGUATING = "disambiguating"
    FETCHING = "fetching"
    DISPATCHING = "dispatching"
    DONE = "done"
    FAILED = "failed"


@dataclass
class HostOutcome:
    """Where one host's pipeline ended up."""
    host: str
    state: HostState
    failed_in: Optional[HostState] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.state is HostState.DONE


def build_launch_steps(request: SessionRequest, templates: Dict[str, Dict[str, List[str]]]) -> List[LaunchParams]:
    """
    Render the launcher steps for a session request.

    RDP registers the credential for the host (waiting for it to finish) and then
    starts the remote desktop client. SSH starts the terminal client directly.
    """
    credential = request.credential
    fields = {
        "host": request.host,
        "username": credential.username,
        "secret": credential.secret,
        "target": f"{credential.username}@{request.host}",
    }
    steps = templates[request.protocol.value]

    if request.protocol is Protocol.RDP:
        return [
            LaunchParams(argv=render(steps["register"], **fields), wait=True),
            LaunchParams(argv=render(steps["launch"], **fields)),
        ]
    return [LaunchParams(argv=render(steps["launch"], **fields))]


def dispatch(request: SessionRequest, launcher: Launcher,
             templates: Optional[Dict[str, Dict[str, List[str]]]] = None) -> None:
    """
    Start a session for a request. Returns once the client is started, not when the session ends.

    Raises:
        LaunchError: If any step could not be started
    """
    for params in build_launch_steps(request, templates or resolve_templates()):
        launcher.launch(params)
    logger.info(f"Started {request.protocol.value} session to {request.host} as {request.credential.username}")


def connect_host(host: str,
                 options: ConnectOptions,
                 client: GCPSecretClient,
                 launcher: Launcher,
                 prompt: Prompt = console_prompt,
                 templates: Optional[Dict[str, Dict[str, List[str]]]] = None) -> HostOutcome:
    """
    Resolve, fetch and dispatch for one host.

    Failures are logged as warnings and reported in the returned outcome,
    never raised.
    """
    state = HostState.START

    def advance(new_state: HostState) -> None:
        nonlocal state
        logger.debug(f"{host}: {state.value} -> {new_state.value}")
        state = new_state

    try:
        advance(HostState.RESOLVING)
        result = resolve(
            host,
            options.protocol,
            client,
            search_term=options.search_term,
            show_all=options.show_all,
            explicit_secret_id=options.secret_id,
        )

        if isinstance(result, NoMatch):
            term = options.secret_id or options.search_term or host
            raise NoMatchError(f"Nothing in Secret Manager matches '{term}'")

        if isinstance(result, MultipleMatches):
            advance(HostState.DISAMBIGUATING)
            secret_id = disambiguate(result.candidates, prompt)
            if secret_id is None:
                raise AmbiguousUnresolvedError(f"{len(result.candidates)} secrets matched and none was selected")
        else:
            secret_id = result.secret_id

        advance(HostState.FETCHING)
        credential = credential_fetcher.fetch(secret_id, client)

        advance(HostState.DISPATCHING)
        dispatch(SessionRequest(host=host, protocol=options.protocol, credential=credential), launcher, templates)
    except ConnectError as e:
        logger.warning(f"Warning: {host}: {e.summary}: {e}")
        failed_in = state
        advance(HostState.FAILED)
        return HostOutcome(host=host, state=state, failed_in=failed_in, reason=str(e))

    advance(HostState.DONE)
    return HostOutcome(host=host, state=state)


def connect_hosts(hosts: Iterable[str],
                  options: ConnectOptions,
                  client: GCPSecretClient,
                  launcher: Launcher,
                  prompt: Prompt = console_prompt,
                  templates: Optional[Dict[str, Dict[str, List[str]]]] = None) -> List[HostOutcome]:
    """Run connect_host for each host in order. One host failing doesn't stop the rest."""
    return [connect_host(host, options, client, launcher, prompt, templates) for host in hosts]
