"""Fuzzy forest name similarity using RapidFuzz."""
import re
from dataclasses import dataclass
from typing import List, Optional, Iterable
from rapidfuzz.distance import Levenshtein
from campfire.core.normalization import normalize_forest_name, significant_tokens


MAX_FUZZY_SCORE = 0.99
CORE_TOKEN_MATCH_SCORE = 0.98

DICE_WEIGHT = 0.45
TOKEN_WEIGHT = 0.2
EDIT_WEIGHT = 0.35
CONTAINMENT_BONUS = 0.07
SINGLE_TOKEN_BONUS = 0.18
SINGLE_TOKEN_MIN_EDIT_SIMILARITY = 0.8

_OPPOSITE_DIRECTIONS = (("east", "west"), ("north", "south"))


@dataclass
class BestMatch:
    """Best scoring candidate for a source name."""
    candidate_name: str
    score: float


def _bigrams(text: str) -> List[str]:
    """Character bigrams; a single character is its own gram."""
    if len(text) < 2:
        return [text] if text else []
    return [text[i:i + 2] for i in range(len(text) - 1)]


def dice_coefficient(left: str, right: str) -> float:
    """Sorensen-Dice coefficient over character bigrams. Empty strings score 0."""
    if not left or not right:
        return 0.0
    if left == right:
        return 1.0

    left_grams = _bigrams(left)
    left_counts = {}
    for gram in left_grams:
        left_counts[gram] = left_counts.get(gram, 0) + 1

    overlap = 0
    right_grams = _bigrams(right)
    for gram in right_grams:
        if left_counts.get(gram, 0) > 0:
            left_counts[gram] -= 1
            overlap += 1

    return (2.0 * overlap) / (len(left_grams) + len(right_grams))


def jaccard(left: Iterable[str], right: Iterable[str]) -> float:
    left_set, right_set = set(left), set(right)
    union = left_set | right_set
    if not union:
        return 0.0
    return len(left_set & right_set) / len(union)


def forest_name_similarity(left: str, right: str) -> float:
    """
    Score how likely two raw forest names refer to the same forest.

    Combines character bigram overlap, shared significant tokens and edit
    similarity. Tokens present in only one name lower the token overlap.

    Args:
        left: First raw name
        right: Second raw name

    Returns:
        Score in [0, 1]; 1 only when the comparison keys are identical
    """
    left_key = normalize_forest_name(left)
    right_key = normalize_forest_name(right)

    if not left_key or not right_key:
        return 0.0
    if left_key == right_key:
        return 1.0

    left_tokens = significant_tokens(left_key)
    right_tokens = significant_tokens(right_key)
    left_core = " ".join(left_tokens)
    right_core = " ".join(right_tokens)

    if left_core and left_core == right_core:
        return CORE_TOKEN_MATCH_SCORE

    left_compare = left_core or left_key
    right_compare = right_core or right_key

    edit_similarity = Levenshtein.normalized_similarity(left_compare, right_compare)

    score = (
        DICE_WEIGHT * dice_coefficient(left_compare, right_compare)
        + TOKEN_WEIGHT * jaccard(left_tokens, right_tokens)
        + EDIT_WEIGHT * edit_similarity
    )

    if left_core and right_core and (left_core in right_core or right_core in left_core):
        score += CONTAINMENT_BONUS

    if (
        len(left_tokens) == 1
        and len(right_tokens) == 1
        and edit_similarity >= SINGLE_TOKEN_MIN_EDIT_SIMILARITY
    ):
        score += SINGLE_TOKEN_BONUS

    return max(0.0, min(MAX_FUZZY_SCORE, score))


def best_match(source: str, candidates: Iterable[str]) -> Optional[BestMatch]:
    """
    Pick the highest scoring candidate for a source name.

    Ties are broken by lexicographic candidate order.

    Args:
        source: Raw source name
        candidates: Raw candidate names

    Returns:
        BestMatch, or None when there are no candidates
    """
    best = None
    for candidate in sorted(set(candidates)):
        score = forest_name_similarity(source, candidate)
        if best is None or score > best.score:
            best = BestMatch(candidate_name=candidate, score=score)
    return best


def has_directional_conflict(left: str, right: str) -> bool:
    """
    Check whether two names carry opposite compass terms.

    "Smith East" and "Smith West" conflict; "Smith East" and "Smith" do not.
    """
    left_key = normalize_forest_name(left)
    right_key = normalize_forest_name(right)

    for first, second in _OPPOSITE_DIRECTIONS:
        first_pattern = re.compile(rf"\b{first}\b")
        second_pattern = re.compile(rf"\b{second}\b")
        if first_pattern.search(left_key) and second_pattern.search(right_key):
            return True
        if second_pattern.search(left_key) and first_pattern.search(right_key):
            return True
    return False
