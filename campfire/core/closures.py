"""Closure notice assignment and per-forest closure summaries."""
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Iterable, Protocol
from campfire.core.config import CLOSURE_MATCH_THRESHOLD
from campfire.core.entity_resolver import resolve
from campfire.core.models import MatchType
from campfire.core.normalization import collapse_whitespace


class ClosureNoticeStatus(str, Enum):
    NOTICE = "NOTICE"
    PARTIAL = "PARTIAL"
    CLOSED = "CLOSED"


class ClosureStatus(str, Enum):
    NONE = "NONE"
    NOTICE = "NOTICE"
    PARTIAL = "PARTIAL"
    CLOSED = "CLOSED"


class ClosureImpactLevel(str, Enum):
    NONE = "NONE"
    ADVISORY = "ADVISORY"
    RESTRICTED = "RESTRICTED"
    CLOSED = "CLOSED"
    UNKNOWN = "UNKNOWN"


IMPACT_ORDER = {
    ClosureImpactLevel.NONE: 0,
    ClosureImpactLevel.ADVISORY: 1,
    ClosureImpactLevel.RESTRICTED: 2,
    ClosureImpactLevel.CLOSED: 3,
    ClosureImpactLevel.UNKNOWN: -1,
}

CLOSURE_TAG_KEYS = ("ROAD_ACCESS", "CAMPING", "EVENT", "OPERATIONS")

MAX_DETAIL_TEXT_CHARS = 5000


@dataclass
class ClosureImpact:
    """Structured impact of one notice on camping and vehicle access."""
    camping: ClosureImpactLevel = ClosureImpactLevel.NONE
    access_2wd: ClosureImpactLevel = ClosureImpactLevel.NONE
    access_4wd: ClosureImpactLevel = ClosureImpactLevel.NONE
    confidence: str = "LOW"
    source: str = "RULES"
    rationale: Optional[str] = None


@dataclass
class ClosureNotice:
    """A closure or advisory notice scraped from the closures page."""
    id: str
    title: str
    forest_name_hint: Optional[str] = None
    status: ClosureNoticeStatus = ClosureNoticeStatus.NOTICE
    listed_at: Optional[datetime] = None
    until_at: Optional[datetime] = None
    tags: List[str] = field(default_factory=list)
    detail_url: Optional[str] = None
    detail_text: Optional[str] = None
    structured_impact: Optional[ClosureImpact] = None


class ClosureImpactEnricher(Protocol):
    """Turns notice text into a structured impact (rules, LLM, ...)."""

    def enrich(self, notice: ClosureNotice) -> Optional[ClosureImpact]:
        ...


@dataclass
class ClosureImpactSummary:
    camping: ClosureImpactLevel = ClosureImpactLevel.NONE
    access_2wd: ClosureImpactLevel = ClosureImpactLevel.NONE
    access_4wd: ClosureImpactLevel = ClosureImpactLevel.NONE


@dataclass
class ForestClosures:
    """All active notices assigned to one forest and their summary."""
    forest_name: str
    notices: List[ClosureNotice] = field(default_factory=list)
    status: ClosureStatus = ClosureStatus.NONE
    tags: Dict[str, bool] = field(default_factory=dict)
    impact: ClosureImpactSummary = field(default_factory=ClosureImpactSummary)


@dataclass
class FuzzyClosureMatch:
    notice_id: str
    notice_title: str
    matched_forest_name: str
    score: float


@dataclass
class ClosureMatchDiagnostics:
    unmatched_notices: List[ClosureNotice] = field(default_factory=list)
    fuzzy_matches: List[FuzzyClosureMatch] = field(default_factory=list)


@dataclass
class ClosureAssignment:
    by_forest_name: Dict[str, ForestClosures]
    diagnostics: ClosureMatchDiagnostics


def merge_impact_level(left: ClosureImpactLevel, right: ClosureImpactLevel) -> ClosureImpactLevel:
    """Return the more severe of two impact levels (UNKNOWN ranks lowest)."""
    return right if IMPACT_ORDER[right] > IMPACT_ORDER[left] else left


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def is_notice_active(notice: ClosureNotice, now: Optional[datetime] = None) -> bool:
    """A notice is active unless it is listed in the future or already expired."""
    now = _as_utc(now or datetime.now(timezone.utc))
    if notice.listed_at and _as_utc(notice.listed_at) > now:
        return False
    if notice.until_at and _as_utc(notice.until_at) < now:
        return False
    return True


def build_closure_status(notices: List[ClosureNotice]) -> ClosureStatus:
    if any(notice.status == ClosureNoticeStatus.CLOSED for notice in notices):
        return ClosureStatus.CLOSED
    if any(notice.status == ClosureNoticeStatus.PARTIAL for notice in notices):
        return ClosureStatus.PARTIAL
    if notices:
        return ClosureStatus.NOTICE
    return ClosureStatus.NONE


def build_closure_tags(notices: List[ClosureNotice]) -> Dict[str, bool]:
    tags = {key: False for key in CLOSURE_TAG_KEYS}
    for notice in notices:
        for tag in notice.tags:
            tags[tag] = True
    return tags


def build_impact_summary(notices: List[ClosureNotice]) -> ClosureImpactSummary:
    summary = ClosureImpactSummary()
    for notice in notices:
        impact = notice.structured_impact
        if impact is None:
            continue
        summary.camping = merge_impact_level(summary.camping, impact.camping)
        summary.access_2wd = merge_impact_level(summary.access_2wd, impact.access_2wd)
        summary.access_4wd = merge_impact_level(summary.access_4wd, impact.access_4wd)
    return summary


def build_closure_assignments(
    notices: Iterable[ClosureNotice],
    forest_names: Iterable[str],
    now: Optional[datetime] = None,
    threshold: float = CLOSURE_MATCH_THRESHOLD,
    enricher: Optional[ClosureImpactEnricher] = None
) -> ClosureAssignment:
    """
    Assign active closure notices to forests.

    Each notice's forest-name hint is matched exactly, then fuzzily, against
    the forest universe. Several notices may land on one forest.

    Args:
        notices: Scraped closure notices
        forest_names: Canonical forest names
        now: Reference time for the active check
        threshold: Fuzzy acceptance threshold
        enricher: Optional impact enricher for notices lacking an impact

    Returns:
        ClosureAssignment keyed by forest name, with diagnostics
    """
    forest_names = list(dict.fromkeys(forest_names))
    active = [notice for notice in notices if is_notice_active(notice, now)]

    if enricher is not None:
        for notice in active:
            if notice.structured_impact is None:
                notice.structured_impact = enricher.enrich(notice)

    hints = [collapse_whitespace(notice.forest_name_hint) for notice in active]
    outcome = resolve(
        [hint for hint in hints if hint],
        forest_names,
        threshold=threshold,
        consume_targets=False,
    )

    notices_by_forest: Dict[str, List[ClosureNotice]] = {}
    diagnostics = ClosureMatchDiagnostics()

    for notice, hint in zip(active, hints):
        assignment = outcome.assignments.get(hint) if hint else None
        if assignment is None or assignment.match.match_type == MatchType.UNMATCHED:
            diagnostics.unmatched_notices.append(notice)
            continue

        forest_name = assignment.match.matched_name
        notices_by_forest.setdefault(forest_name, []).append(notice)
        if assignment.match.match_type == MatchType.FUZZY:
            diagnostics.fuzzy_matches.append(FuzzyClosureMatch(
                notice_id=notice.id,
                notice_title=notice.title,
                matched_forest_name=forest_name,
                score=assignment.match.score,
            ))

    by_forest_name = {}
    for forest_name in forest_names:
        forest_notices = notices_by_forest.get(forest_name, [])
        by_forest_name[forest_name] = ForestClosures(
            forest_name=forest_name,
            notices=forest_notices,
            status=build_closure_status(forest_notices),
            tags=build_closure_tags(forest_notices),
            impact=build_impact_summary(forest_notices),
        )

    return ClosureAssignment(by_forest_name=by_forest_name, diagnostics=diagnostics)


_PARTIAL_SIGNAL = re.compile(
    r"\b(partial|partly|partially|sections?\s+of|exclusive use on part|limited camping)\b"
)
_REMAINS_OPEN = re.compile(r"\bremain open\b")
_CAMPING_OPEN = re.compile(r"\bcamp(?:ing|ground)?(?:\s+areas?)?.{0,50}\b(open|reopen|remain open)\b")
_CAMPING_CLOSED = re.compile(
    r"\bcamp(?:ing|ground)?(?:\s+areas?)?.{0,55}\b(closed|closure|not permissible|no access)\b"
)
_CAMPING_RESTRICTED = re.compile(
    r"\bcamp(?:ing|ground)?(?:\s+areas?)?.{0,55}\b(limited|restricted|busy|close proximity)\b"
)
_ACCESS_CLOSED = re.compile(
    r"\b(road|roads|track|tracks|trail|trails|vehicle access|access)\b.{0,55}"
    r"\b(closed|closure|blocked|no access|avoid)\b"
)
_ACCESS_OPEN = re.compile(r"\b(access|road|roads|track|tracks|trail|trails).{0,50}\b(open|reopen|accessible)\b")
_TWO_WHEEL = re.compile(r"\b(2wd|two[-\s]?wheel)\b.{0,45}\b(closed|closure|restricted|limited|no access)\b")
_FOUR_WHEEL = re.compile(r"\b(4wd|four[-\s]?wheel)\b.{0,45}\b(closed|closure|restricted|limited|no access)\b")
_ADVISORY = re.compile(r"\b(plan ahead|extremely busy|consider alternative|increased truck traffic)\b")


class RulesClosureImpactEnricher:
    """Keyword rules that classify notice wording into impact levels."""

    def enrich(self, notice: ClosureNotice) -> ClosureImpact:
        detail = collapse_whitespace(notice.detail_text)[:MAX_DETAIL_TEXT_CHARS]
        text = collapse_whitespace(f"{notice.title or ''} {detail}").lower()

        impact = ClosureImpact()
        reasons = []

        def raise_confidence():
            if impact.confidence == "LOW":
                impact.confidence = "MEDIUM"

        full_closure = (
            notice.status == ClosureNoticeStatus.CLOSED
            and not _PARTIAL_SIGNAL.search(text)
            and not _REMAINS_OPEN.search(text)
        )
        if full_closure:
            impact.camping = ClosureImpactLevel.CLOSED
            impact.access_2wd = ClosureImpactLevel.CLOSED
            impact.access_4wd = ClosureImpactLevel.CLOSED
            impact.confidence = "HIGH"
            impact.rationale = "Notice is marked closed with no partial/open exception wording."
            return impact

        if not _CAMPING_OPEN.search(text):
            if _CAMPING_CLOSED.search(text):
                impact.camping = ClosureImpactLevel.CLOSED
                impact.confidence = "MEDIUM"
                reasons.append("Camping closure language detected.")
            elif _CAMPING_RESTRICTED.search(text):
                impact.camping = ClosureImpactLevel.RESTRICTED
                impact.confidence = "MEDIUM"
                reasons.append("Camping restriction language detected.")

        if _ACCESS_CLOSED.search(text) and not _ACCESS_OPEN.search(text):
            impact.access_2wd = merge_impact_level(impact.access_2wd, ClosureImpactLevel.RESTRICTED)
            impact.access_4wd = merge_impact_level(impact.access_4wd, ClosureImpactLevel.RESTRICTED)
            raise_confidence()
            reasons.append("Road/access closure language detected.")

        if _TWO_WHEEL.search(text):
            impact.access_2wd = merge_impact_level(impact.access_2wd, ClosureImpactLevel.RESTRICTED)
            raise_confidence()
            reasons.append("2WD restriction language detected.")

        if _FOUR_WHEEL.search(text):
            impact.access_4wd = merge_impact_level(impact.access_4wd, ClosureImpactLevel.RESTRICTED)
            raise_confidence()
            reasons.append("4WD restriction language detected.")

        if (
            notice.status == ClosureNoticeStatus.PARTIAL
            and impact.access_2wd == ClosureImpactLevel.NONE
            and impact.access_4wd == ClosureImpactLevel.NONE
        ):
            impact.access_2wd = ClosureImpactLevel.RESTRICTED
            impact.access_4wd = ClosureImpactLevel.RESTRICTED
            raise_confidence()
            reasons.append("Partial closure status implies at least some access restrictions.")

        if _ADVISORY.search(text):
            if impact.camping == ClosureImpactLevel.NONE:
                impact.camping = ClosureImpactLevel.ADVISORY
            raise_confidence()
            reasons.append("Advisory travel/crowding language detected.")

        impact.rationale = " ".join(reasons) if reasons else "No specific impact language detected."
        return impact
