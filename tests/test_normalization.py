"""Tests for forest name normalization."""
import pytest
from campfire.core.normalization import (
    is_likely_state_forest_name,
    normalize_forest_name,
    significant_tokens,
    strip_parentheticals,
    strip_state_forest_suffix,
    with_state_forest_suffix,
)


def test_normalize_forest_name():
    """Test comparison key generation."""
    assert normalize_forest_name("Badja State Forest") == "badja"
    assert normalize_forest_name("  BADJA   state forest ") == "badja"
    assert normalize_forest_name("Badja State Forest (pine plantations)") == "badja"
    assert normalize_forest_name("Mount O'Hara State Forest") == "mount o hara"
    assert normalize_forest_name("Bago & Maragle State Forests") == "bago and maragle"
    assert normalize_forest_name("") == ""
    assert normalize_forest_name(None) == ""


def test_normalize_strips_accents():
    assert normalize_forest_name("Bélanglo State Forest") == "belanglo"


@pytest.mark.parametrize("name", [
    "Badja State Forest",
    "Croft Knoll State Forest (Softwood)",
    "Chichester State Forest State Forest",
    "State Forest",
    "Mt. Boss -- State   Forest",
    "Smith East",
])
def test_normalize_is_idempotent(name):
    """Normalizing a key again yields the same key."""
    key = normalize_forest_name(name)
    assert normalize_forest_name(key) == key


def test_significant_tokens():
    assert significant_tokens("croft knoll") == ["croft", "knoll"]
    assert significant_tokens("new south wales forest area") == []
    assert significant_tokens("mt ku ring gai") == ["ring", "gai"]


def test_suffix_helpers():
    assert strip_state_forest_suffix("Badja State Forest") == "Badja"
    assert strip_state_forest_suffix("Badja") == "Badja"
    assert with_state_forest_suffix("Badja") == "Badja State Forest"
    assert with_state_forest_suffix("Badja State Forest") == "Badja State Forest"


def test_suffix_helpers_with_qualifier():
    """A qualified name already carries the suffix and strips to the bare name."""
    qualified = "Badja State Forest (pine plantations)"
    assert with_state_forest_suffix(qualified) == qualified
    assert strip_state_forest_suffix(qualified) == "Badja"
    assert strip_state_forest_suffix("Bago State Forest (Softwood, east)") == "Bago"
    assert strip_parentheticals("Badja (pine plantations) State Forest") == "Badja State Forest"


def test_is_likely_state_forest_name():
    """Test rejection of navigation and boilerplate labels."""
    assert is_likely_state_forest_name("Badja State Forest")
    assert is_likely_state_forest_name("Belanglo State Forest (Pine plantations)")
    assert is_likely_state_forest_name("Mount O'Hara State Forest")

    assert not is_likely_state_forest_name("Find a State Forest")
    assert not is_likely_state_forest_name("Defined State Forest area")
    assert not is_likely_state_forest_name("Planning your visit")
    assert not is_likely_state_forest_name("Badja")
    assert not is_likely_state_forest_name("")
    assert not is_likely_state_forest_name("A" * 110 + " State Forest")
