"""Let the operator pick one secret when resolution finds several."""
import logging
from typing import Callable, Optional, Sequence

from ..domains.models import SecretSummary

logger = logging.getLogger(__name__)

# Shows the candidates and returns whatever the operator typed, or None on abort
Prompt = Callable[[Sequence[SecretSummary]], Optional[str]]


def format_candidates(candidates: Sequence[SecretSummary]) -> str:
    id_width = max(len(c.id) for c in candidates)
    lines = [
        f"  {c.id.ljust(id_width)}  {c.name}" + (f"  ({c.username})" if c.username else "")
        for c in candidates
    ]
    return "\n".join(lines)


def console_prompt(candidates: Sequence[SecretSummary]) -> Optional[str]:
    """Print the candidates and block on a single line of input."""
    print(f"Multiple secrets found ({len(candidates)}):")
    print(format_candidates(candidates))
    try:
        return input("Enter the secret ID to use: ")
    except EOFError:
        return None


def disambiguate(candidates: Sequence[SecretSummary], prompt: Prompt = console_prompt) -> Optional[str]:
    """
    Ask once for a secret id among the candidates.

    Args:
        candidates: Secrets to choose from, in the order they are presented
        prompt: Capability that shows the candidates and returns the raw answer

    Returns:
        The chosen secret id, or None if the answer isn't one of the presented ids.
        There is no re-prompt.
    """
    answer = prompt(candidates)
    if answer is None:
        logger.warning("No secret selected")
        return None

    selection = answer.strip()
    for candidate in candidates:
        if candidate.id == selection:
            return candidate.id

    logger.warning(f"Invalid selection '{selection}': not one of the listed secret IDs")
    return None
