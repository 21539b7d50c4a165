"""Fuzzy matching utilities"""

from typing import List, Optional

from rapidfuzz import fuzz, process

from config import settings


def suggest_units(
    text: str,
    candidates: List[str],
    threshold: Optional[int] = None,
    limit: Optional[int] = None
) -> List[str]:
    """
    Suggest known unit symbols that look like an unrecognized one

    Args:
        text: Symbol the user typed
        candidates: Known symbols and aliases
        threshold: Match threshold (0-100), defaults to config
        limit: Maximum suggestions, defaults to config

    Returns:
        Candidates ordered by similarity, best first
    """
    if not text or not candidates:
        return []

    threshold = settings.FUZZY_MATCH_THRESHOLD if threshold is None else threshold
    limit = limit or settings.MAX_UNIT_SUGGESTIONS

    # Case-only differences ("kb" for "KB") rank first
    exact = [candidate for candidate in candidates if candidate.lower() == text.lower()]

    results = process.extract(text, candidates, scorer=fuzz.ratio, limit=limit + len(exact))
    suggestions = list(exact)
    for candidate, score, _ in results:
        if score >= threshold and candidate not in suggestions:
            suggestions.append(candidate)

    return suggestions[:limit]

