"""Text normalization utilities for forest name matching."""
import re
import unicodedata
from typing import List, Optional
from campfire.core.models import CanonicalName


# Generic geography/administrative words that carry no forest identity
STOP_WORDS = {
    "state", "forest", "forests", "nsw", "new", "south", "wales",
    "region", "area", "native", "around",
}

# Minimum length of a token that counts towards identity
MIN_SIGNIFICANT_TOKEN_LENGTH = 3

STATE_FOREST_SUFFIX = "State Forest"

_PARENTHETICAL = re.compile(r"\([^)]*\)")
_STATE_FOREST_TAIL = re.compile(r"(?:\s*\bstate\s+forests?\b)+\s*$", re.IGNORECASE)
_STATE_FOREST_TERM = re.compile(r"\bstate\s+forests?\b", re.IGNORECASE)

# Labels that appear in forest listings but are navigation or boilerplate
REJECTED_FOREST_LABELS = (
    "find a state forest",
    "defined state forest area",
    "includes:",
    "planning your visit",
    "right to information",
    "maps and spatial data",
    "contracts held",
)
MAX_FOREST_NAME_LENGTH = 120
_STATE_FOREST_NAME = re.compile(
    r"^[a-z0-9][a-z0-9 '&./()-]*state forest(?:\s*\([^)]*\))?$",
    re.IGNORECASE
)


def collapse_whitespace(text: Optional[str]) -> str:
    """Trim and collapse runs of whitespace to single spaces."""
    if not text:
        return ""
    return re.sub(r"\s+", " ", text).strip()


def clean_text(text: Optional[str]) -> str:
    """
    Lowercase, strip accents and parentheticals, and drop punctuation.

    Keeps the generic "state forest" wording; see normalize_forest_name
    for the comparison key.
    """
    if not text:
        return ""

    # Unicode normalization
    text = unicodedata.normalize("NFD", text)
    text = "".join(c for c in text if unicodedata.category(c) != "Mn")

    text = text.lower().replace("&", " and ")
    text = _PARENTHETICAL.sub(" ", text)

    # Remove punctuation
    text = re.sub(r"[^a-z0-9\s]", " ", text)

    return collapse_whitespace(text)


def normalize_forest_name(name: Optional[str]) -> str:
    """
    Canonicalize a forest name into a comparison key.

    "Badja State Forest (pine plantations)" and "BADJA" share the key
    "badja". The function is idempotent.

    Args:
        name: Raw forest name

    Returns:
        Normalized comparison key
    """
    text = clean_text(name)
    text = _STATE_FOREST_TAIL.sub("", text)
    return collapse_whitespace(text)


def canonical_name(name: str) -> CanonicalName:
    return CanonicalName(raw=name, key=normalize_forest_name(name))


def tokenize(text: str) -> List[str]:
    """Split normalized text into tokens."""
    return [token for token in text.split() if token]


def significant_tokens(key: str) -> List[str]:
    """
    Tokens that carry forest identity.

    Args:
        key: Normalized comparison key

    Returns:
        Tokens of length >= 3 that are not stop words, in order
    """
    return [
        token for token in tokenize(key)
        if len(token) >= MIN_SIGNIFICANT_TOKEN_LENGTH and token not in STOP_WORDS
    ]


def strip_parentheticals(name: Optional[str]) -> str:
    """Drop qualifiers such as "(pine plantations)", keeping case."""
    return collapse_whitespace(_PARENTHETICAL.sub(" ", name or ""))


def strip_state_forest_suffix(name: str) -> str:
    """
    Bare forest name for display-name queries, keeping case.

    Parenthetical qualifiers and every "State Forest" are removed:
    "Badja State Forest (pine plantations)" becomes "Badja".
    """
    return collapse_whitespace(_STATE_FOREST_TERM.sub(" ", strip_parentheticals(name)))


def with_state_forest_suffix(name: str) -> str:
    """Append "State Forest" unless the name already mentions it anywhere."""
    name = collapse_whitespace(name)
    if _STATE_FOREST_TERM.search(name):
        return name
    return f"{name} {STATE_FOREST_SUFFIX}"


def is_likely_state_forest_name(name: Optional[str]) -> bool:
    """
    Check whether a scraped label looks like a state forest name.

    Args:
        name: Candidate label from a forest listing

    Returns:
        True for labels like "Badja State Forest (Pine plantations)"
    """
    text = collapse_whitespace(name)
    if not text or len(text) > MAX_FOREST_NAME_LENGTH:
        return False

    lowered = text.lower()
    if any(label in lowered for label in REJECTED_FOREST_LABELS):
        return False

    return bool(_STATE_FOREST_NAME.match(text))
