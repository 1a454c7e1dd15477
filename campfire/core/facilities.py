"""Facility assignment from the forest directory onto fire-ban forest names."""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Iterable
from campfire.core.config import FACILITY_MATCH_THRESHOLD
from campfire.core.entity_resolver import ResolutionOutcome, resolve


@dataclass
class FacilityFilter:
    """A facility the directory can be filtered by (e.g. camping, toilets)."""
    key: str
    label: str


@dataclass
class DirectoryForest:
    """One directory row: a forest and the facilities it offers."""
    forest_name: str
    facilities: Dict[str, bool] = field(default_factory=dict)


@dataclass
class ForestDirectory:
    filters: List[FacilityFilter] = field(default_factory=list)
    forests: List[DirectoryForest] = field(default_factory=list)


def build_facility_assignments(
    fire_ban_forest_names: Iterable[str],
    directory: ForestDirectory,
    threshold: float = FACILITY_MATCH_THRESHOLD
) -> ResolutionOutcome:
    """
    Attach directory facility flags to each fire-ban forest name.

    Unmatched names get None for every facility key, meaning "not known"
    rather than "not available". A directory with no filters or no
    forests leaves every name unmatched.

    Args:
        fire_ban_forest_names: Forest names from the fire-ban list
        directory: Parsed facilities directory
        threshold: Fuzzy acceptance threshold

    Returns:
        ResolutionOutcome keyed by fire-ban forest name
    """
    keys = [facility.key for facility in directory.filters]
    if not keys or not directory.forests:
        outcome = resolve(fire_ban_forest_names, [], attribute_keys=keys)
        # Nothing was offered for matching, so every directory forest is left over
        outcome.diagnostics.unmatched_targets = list(dict.fromkeys(
            row.forest_name for row in directory.forests
        ))
        return outcome

    attributes: Dict[str, Dict[str, Optional[bool]]] = {}
    for row in directory.forests:
        record = attributes.setdefault(row.forest_name, {key: None for key in keys})
        for key in keys:
            value = row.facilities.get(key)
            if value is not None:
                record[key] = bool(record[key]) or bool(value)

    return resolve(
        fire_ban_forest_names,
        list(attributes),
        attributes,
        threshold=threshold,
        attribute_keys=keys,
    )
