"""Shared fakes for the resolution and dispatch tests."""
import json
from typing import Dict, List, Optional

import pytest

from agent_connecttoolkit.secrets.domains.errors import LaunchError
from agent_connecttoolkit.secrets.domains.models import SecretSummary
from agent_connecttoolkit.sessions.domains.launchers import Launcher, LaunchParams


class FakeSecretClient:
    """In-memory stand-in for GCPSecretClient with scripted search results."""

    def __init__(self,
                 results: Optional[Dict[str, List[SecretSummary]]] = None,
                 payloads: Optional[Dict[str, object]] = None):
        self.results = results or {}
        self.payloads = payloads or {}
        self.search_calls: List[str] = []
        self.lookup_calls: List[str] = []
        self.fetch_calls: List[str] = []

    def search(self, term):
        self.search_calls.append(term)
        return list(self.results.get(term, []))

    def lookup_by_id(self, secret_id):
        self.lookup_calls.append(secret_id)
        for summaries in self.results.values():
            for summary in summaries:
                if summary.id == secret_id:
                    return summary
        if secret_id in self.payloads:
            return SecretSummary(id=secret_id, name=secret_id, username="")
        return None

    def get_credential_payload(self, secret_id):
        self.fetch_calls.append(secret_id)
        return self.payloads.get(secret_id)


class RecordingLauncher(Launcher):
    """Records launch params instead of starting processes."""

    def __init__(self, fail_programs=()):
        self.launched: List[LaunchParams] = []
        self.fail_programs = set(fail_programs)

    def launch(self, params):
        if params.program in self.fail_programs:
            raise LaunchError(f"'{params.program}' not found. Is it installed and on PATH?")
        self.launched.append(params)


def summary(secret_id, name, username=""):
    return SecretSummary(id=secret_id, name=name, username=username)


def credential_json(username="admin", password="s3cret"):
    return json.dumps({"username": username, "password": password})


@pytest.fixture
def launcher():
    return RecordingLauncher()
