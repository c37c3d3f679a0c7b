"""
Token-overlap matching of free text against previously shown candidates.

Both sides are normalized, split into words of three or more characters
and scored by shared words. An exact normalized match adds 3, otherwise a
substring match in either direction adds 2. The best candidate is only
accepted at a score of 2 or more, so a single shared common word such as
"hospital" never resolves on its own.

Usage:
    match = match_candidate("I want Seven Star Hospital", candidates)
    if match:
        print(match.candidate["name"], match.score)
"""

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

from concierge.utils import normalize_text

logger = logging.getLogger(__name__)

MIN_TOKEN_LENGTH = 3
MIN_ACCEPT_SCORE = 2
EXACT_BONUS = 3
SUBSTRING_BONUS = 2
GENERIC_KEYWORD = "hospital"


@dataclass(frozen=True)
class CandidateMatch:
    """Winning candidate and the score it reached."""
    candidate: Mapping[str, Any]
    score: int


def tokenize(value: str) -> set[str]:
    return {word for word in normalize_text(value).split() if len(word) >= MIN_TOKEN_LENGTH}


def score_candidate(text: str, name: str) -> int:
    """Score how well free text refers to a candidate name."""
    norm_text = normalize_text(text)
    norm_name = normalize_text(name)
    if not norm_text or not norm_name:
        return 0

    score = len(tokenize(norm_text) & tokenize(norm_name))
    if norm_text == norm_name:
        score += EXACT_BONUS
    elif norm_name in norm_text or norm_text in norm_name:
        score += SUBSTRING_BONUS
    return score


def match_candidate(
    text: str,
    candidates: Sequence[Mapping[str, Any]],
    name_key: str = "name",
) -> Optional[CandidateMatch]:
    """Return the best-scoring candidate, or None below the threshold.

    Ties keep the earlier candidate, i.e. the one ranked higher when the
    list was shown to the user.
    """
    best: Optional[CandidateMatch] = None
    for candidate in candidates:
        name = candidate.get(name_key) or ""
        score = score_candidate(text, name)
        if best is None or score > best.score:
            best = CandidateMatch(candidate=candidate, score=score)

    if best is None or best.score < MIN_ACCEPT_SCORE:
        logger.debug("No candidate reached score %d for %r", MIN_ACCEPT_SCORE, text)
        return None
    logger.debug("Matched %r with score %d", best.candidate.get(name_key), best.score)
    return best


def resolve_selection(
    text: str,
    candidates: Sequence[Mapping[str, Any]],
) -> dict[str, Any]:
    """Turn a selection reply into collected-data updates.

    A resolved candidate yields its name and full record. Text that only
    mentions a hospital generically is kept as-is, unresolved, so the
    answer is not silently dropped.
    """
    match = match_candidate(text, candidates)
    if match is not None:
        return {
            "selected_hospital": match.candidate.get("name"),
            "selected_hospital_details": dict(match.candidate),
        }
    if GENERIC_KEYWORD in text.lower():
        return {"selected_hospital": text.strip()}
    return {}
