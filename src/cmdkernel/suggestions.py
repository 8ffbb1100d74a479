"""Typo-tolerant "did you mean" suggestions for flags, subcommands and tools."""

from __future__ import annotations

from collections.abc import Iterable
from difflib import SequenceMatcher

SUGGESTION_LIMIT = 3
MAX_DISTANCE = 3
MIN_DISTANCE = 2
SHORT_CANDIDATE_LENGTH = 3


def levenshtein(a: str, b: str) -> int:
    """Return the edit distance between two strings."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def normalize(name: str) -> str:
    """Dash-stripped, lower-cased form used for comparisons."""
    return name.strip().lstrip("-").lower()


def distance_threshold(candidate: str) -> int:
    """Maximum edit distance accepted for a candidate of this length."""
    return min(MAX_DISTANCE, max(MIN_DISTANCE, len(candidate) // 2))


def suggest(candidate: str, vocabulary: Iterable[str], limit: int = SUGGESTION_LIMIT) -> list[str]:
    """Return up to `limit` vocabulary members similar to candidate, best first."""
    typed = candidate.strip().lstrip("-")
    needle = typed.lower()
    if not needle or limit <= 0:
        return []

    short = len(needle) < SHORT_CANDIDATE_LENGTH
    threshold = distance_threshold(needle)
    scored: list[tuple[int, int, float, int, str]] = []
    seen: set[str] = set()
    for index, member in enumerate(vocabulary):
        name = member.strip().lstrip("-")
        if not name or name in seen or name == typed:
            continue
        seen.add(name)
        folded = name.lower()
        distance = levenshtein(needle, folded)
        prefix = folded.startswith(needle)
        if short:
            # One-letter input only matches case variants or prefixes.
            qualifies = distance == 0 or prefix
            if len(needle) == 2:
                qualifies = qualifies or distance <= 1 or needle in folded
        else:
            qualifies = distance <= threshold
        if not qualifies:
            continue
        ratio = SequenceMatcher(None, needle, folded).ratio()
        rank = (0 if prefix else 1, distance) if short else (distance, 0 if prefix else 1)
        scored.append((*rank, -ratio, index, name))

    scored.sort()
    return [name for *_, name in scored[:limit]]
