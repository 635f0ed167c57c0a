"""Resolve a host name or search term to secret candidates.

Resolution runs as an ordered list of search stages. The first stage searches
and applies the protocol filter. For RDP with the domain admin filter active, a
second stage repeats the search unfiltered, on the theory that a host without a
domain admin secret may still have a device credential. The first stage that
yields anything wins.
"""
import logging
from typing import Callable, List, Optional

from ..domains.filters import filter_candidates
from ..domains.gcp_client import GCPSecretClient
from ..domains.models import (
    MultipleMatches,
    NoMatch,
    Protocol,
    ResolutionResult,
    SearchQuery,
    SecretSummary,
    SingleMatch,
)

logger = logging.getLogger(__name__)

SearchStage = Callable[[GCPSecretClient, SearchQuery], List[SecretSummary]]


def filtered_stage(client: GCPSecretClient, query: SearchQuery) -> List[SecretSummary]:
    """Search and keep only the candidates the protocol filter accepts."""
    raw = client.search(query.term)
    kept = filter_candidates(raw, query.protocol, query.show_all)
    logger.debug(f"Filtered search '{query.term}' ({query.protocol.value}): {len(kept)} of {len(raw)} kept")
    return kept


def unfiltered_stage(client: GCPSecretClient, query: SearchQuery) -> List[SecretSummary]:
    """Search again with no filter."""
    logger.info(f"No domain admin secret for '{query.term}', retrying as a general device credential")
    return client.search(query.term)


def stages_for(query: SearchQuery) -> List[SearchStage]:
    """Only the default RDP path falls back; SSH and show-all searches get one stage."""
    if query.protocol is Protocol.RDP and not query.show_all:
        return [filtered_stage, unfiltered_stage]
    return [filtered_stage]


def classify(candidates: List[SecretSummary]) -> ResolutionResult:
    if not candidates:
        return NoMatch()
    if len(candidates) == 1:
        return SingleMatch(candidates[0].id)
    return MultipleMatches(tuple(candidates))


def find_candidates(client: GCPSecretClient, query: SearchQuery) -> List[SecretSummary]:
    """Run each stage in turn until one produces candidates."""
    for stage in stages_for(query):
        candidates = stage(client, query)
        if candidates:
            return candidates
    return []


def search_with_fallback(client: GCPSecretClient, query: SearchQuery) -> ResolutionResult:
    return classify(find_candidates(client, query))


def resolve(identifier: str,
            protocol: Protocol,
            client: GCPSecretClient,
            search_term: Optional[str] = None,
            show_all: bool = False,
            explicit_secret_id: Optional[str] = None) -> ResolutionResult:
    """
    Resolve an identifier to zero, one or many secrets.

    Args:
        identifier: Host name, IP address or free text
        protocol: Session protocol, selects the filter
        client: Secret Manager client
        search_term: Search text to use instead of the identifier
        show_all: Disable the RDP domain admin filter
        explicit_secret_id: Skip searching and use this secret if it exists

    Returns:
        NoMatch, SingleMatch or MultipleMatches (in backend order)
    """
    if explicit_secret_id:
        summary = client.lookup_by_id(explicit_secret_id)
        if summary is None:
            logger.debug(f"Secret '{explicit_secret_id}' does not exist")
            return NoMatch()
        return SingleMatch(summary.id)

    query = SearchQuery(term=search_term or identifier, protocol=protocol, show_all=show_all)
    return search_with_fallback(client, query)
