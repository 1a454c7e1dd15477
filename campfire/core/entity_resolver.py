"""Two-pass exact-then-fuzzy matching of source names against a forest universe."""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any, Iterable, Mapping
from campfire.core.config import FACILITY_MATCH_THRESHOLD
from campfire.core.fuzzy import best_match, has_directional_conflict
from campfire.core.models import MatchResult, MatchType
from campfire.core.normalization import normalize_forest_name
from campfire.utils.logging import log_structured


@dataclass
class Assignment:
    """Match result for one source name plus the attributes it resolved to."""
    source_name: str
    match: MatchResult
    matched_names: List[str] = field(default_factory=list)
    attributes: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_name": self.source_name,
            **self.match.to_dict(),
            "matched_names": list(self.matched_names),
            "attributes": dict(self.attributes),
        }


@dataclass
class FuzzyMatchRecord:
    """An accepted fuzzy match, surfaced so users can see approximate joins."""
    source_name: str
    matched_name: str
    score: float


@dataclass
class ResolutionDiagnostics:
    """Transparency data for one resolution run."""
    unmatched_targets: List[str] = field(default_factory=list)
    fuzzy_matches: List[FuzzyMatchRecord] = field(default_factory=list)


@dataclass
class ResolutionOutcome:
    assignments: Dict[str, Assignment]
    diagnostics: ResolutionDiagnostics

    def matched_name_for(self, source_name: str) -> Optional[str]:
        assignment = self.assignments.get(source_name)
        return assignment.match.matched_name if assignment else None


def merge_attributes(records: List[Mapping[str, Any]], keys: Iterable[str]) -> Dict[str, Any]:
    """
    Union attribute records from several target rows.

    Booleans are OR'd; a key stays None only if every row left it unknown.
    Non-boolean values keep the first known value.
    """
    merged: Dict[str, Any] = {}
    for key in keys:
        value = None
        for record in records:
            candidate = record.get(key)
            if candidate is None:
                continue
            if isinstance(candidate, bool):
                value = bool(value) or candidate
            elif value is None:
                value = candidate
        merged[key] = value
    return merged


def _attribute_keys(
    attributes_by_name: Mapping[str, Mapping[str, Any]],
    attribute_keys: Optional[Iterable[str]]
) -> List[str]:
    if attribute_keys is not None:
        return list(attribute_keys)
    keys: List[str] = []
    for record in attributes_by_name.values():
        for key in record:
            if key not in keys:
                keys.append(key)
    return keys


def resolve(
    source_names: Iterable[str],
    target_universe: Iterable[str],
    target_attributes_by_name: Optional[Mapping[str, Mapping[str, Any]]] = None,
    threshold: float = FACILITY_MATCH_THRESHOLD,
    consume_targets: bool = True,
    attribute_keys: Optional[Iterable[str]] = None
) -> ResolutionOutcome:
    """
    Assign each source name to a target name.

    Exact pass: source and target names sharing a normalized key match.
    Several targets sharing the key of a single source name are merged
    into one match; otherwise the lexicographically first target wins.
    Fuzzy pass: remaining source names are scored against the remaining
    targets and accepted at or above the threshold unless the names carry
    opposite compass terms.

    Args:
        source_names: Names to assign (duplicates are collapsed)
        target_universe: Canonical names to assign to
        target_attributes_by_name: Per-target attribute records
        threshold: Fuzzy acceptance threshold
        consume_targets: Whether a matched target leaves the pool
            (one-to-one matching). Closure notices match many-to-one.
        attribute_keys: Attribute keys for the unknown default; derived
            from the attribute records when omitted

    Returns:
        ResolutionOutcome with one assignment per unique source name
    """
    target_attributes_by_name = target_attributes_by_name or {}
    keys = _attribute_keys(target_attributes_by_name, attribute_keys)
    unknown = {key: None for key in keys}

    unique_sources = list(dict.fromkeys(name for name in source_names if name))
    targets = sorted(set(name for name in target_universe if name))

    assignments: Dict[str, Assignment] = {}
    diagnostics = ResolutionDiagnostics()

    if not targets:
        for source_name in unique_sources:
            assignments[source_name] = Assignment(
                source_name=source_name,
                match=MatchResult(MatchType.UNMATCHED),
                attributes=dict(unknown),
            )
        diagnostics.unmatched_targets = []
        return ResolutionOutcome(assignments=assignments, diagnostics=diagnostics)

    targets_by_key: Dict[str, List[str]] = {}
    for target in targets:
        targets_by_key.setdefault(normalize_forest_name(target), []).append(target)

    source_key_counts: Dict[str, int] = {}
    for source_name in unique_sources:
        key = normalize_forest_name(source_name)
        source_key_counts[key] = source_key_counts.get(key, 0) + 1

    available = set(targets)
    referenced = set()

    def attributes_for(names: List[str]) -> Dict[str, Any]:
        return merge_attributes(
            [target_attributes_by_name.get(name, {}) for name in names], keys
        )

    def take(names: List[str]):
        referenced.update(names)
        if consume_targets:
            available.difference_update(names)

    # Exact pass
    for source_name in unique_sources:
        key = normalize_forest_name(source_name)
        candidates = [name for name in targets_by_key.get(key, []) if name in available]
        if not candidates:
            continue

        if len(candidates) > 1 and source_key_counts.get(key, 0) == 1:
            matched = candidates
        else:
            matched = candidates[:1]

        take(matched)
        assignments[source_name] = Assignment(
            source_name=source_name,
            match=MatchResult(MatchType.EXACT, matched_name=matched[0], score=1.0),
            matched_names=matched,
            attributes=attributes_for(matched),
        )

    # Fuzzy pass
    for source_name in unique_sources:
        if source_name in assignments:
            continue

        candidate = best_match(source_name, sorted(available))
        if candidate is None:
            assignments[source_name] = Assignment(
                source_name=source_name,
                match=MatchResult(MatchType.UNMATCHED),
                attributes=dict(unknown),
            )
            continue

        if candidate.score < threshold or has_directional_conflict(
            source_name, candidate.candidate_name
        ):
            assignments[source_name] = Assignment(
                source_name=source_name,
                match=MatchResult(MatchType.UNMATCHED, score=candidate.score),
                attributes=dict(unknown),
            )
            continue

        take([candidate.candidate_name])
        assignments[source_name] = Assignment(
            source_name=source_name,
            match=MatchResult(
                MatchType.FUZZY,
                matched_name=candidate.candidate_name,
                score=candidate.score
            ),
            matched_names=[candidate.candidate_name],
            attributes=attributes_for([candidate.candidate_name]),
        )
        diagnostics.fuzzy_matches.append(FuzzyMatchRecord(
            source_name=source_name,
            matched_name=candidate.candidate_name,
            score=candidate.score,
        ))

    diagnostics.unmatched_targets = sorted(set(targets) - referenced)
    diagnostics.fuzzy_matches.sort(key=lambda record: record.source_name)

    log_structured(
        "debug",
        "Resolved source names",
        sources=len(unique_sources),
        targets=len(targets),
        fuzzy_matches=len(diagnostics.fuzzy_matches),
        unmatched_targets=len(diagnostics.unmatched_targets),
    )

    return ResolutionOutcome(
        assignments={name: assignments[name] for name in unique_sources},
        diagnostics=diagnostics,
    )
