"""Turn the collaborator's per-component verdict into a canonical result.

The detailed ``UXValidationResult`` is the source of truth; the flat issue
list, the match percentage, the pass/warning/fail verdict and the
recommendations are all derived from it here, once. The collaborator's own
``overall_status`` is ignored.

Severity mapping:

    missing component                         critical  missing_element
    grammar / text mismatch / global grammar  major     wrong_content
    colour / global colour / background       major     wrong_style
    missing field                             major     missing_element
    typography / global typography            minor     wrong_style
    extra component                           reported  extra_element
    overlap                                   reported  wrong_position
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Any, List, Optional, Sequence, Tuple

from .. import settings
from ..ai.base import AICollaborator, ImageInput
from ..ai.json_utils import parse_llm_json
from ..ai.schemas import UXValidationResult, parse_validation
from ..exceptions import AIProviderError
from .models import (
    BoundingBox,
    ComparisonIssue,
    ComparisonResult,
    IssueCategory,
    MatchStatus,
    Severity,
)

logger = logging.getLogger(__name__)

PARSE_FAILURE_SUMMARY = "Failed to parse comparison results"
MANUAL_REVIEW = "Please review manually"


# ---------------------------------------------------------------------------
# Flattening
# ---------------------------------------------------------------------------


def _issue_text(item: Any) -> Tuple[str, Optional[BoundingBox]]:
    """Free-text issue entries may be plain strings or {description, bounding_box}."""
    if isinstance(item, dict):
        text = item.get("description") or item.get("issue") or item.get("text") or ""
        return str(text), BoundingBox.from_raw(item.get("bounding_box"))
    return str(item), None


def flatten_issues(detailed: UXValidationResult) -> List[ComparisonIssue]:
    issues: List[ComparisonIssue] = []

    def add(severity, category, item, location, fallback_box=None, prefix=""):
        text, box = _issue_text(item)
        if not text.strip():
            return
        issues.append(ComparisonIssue(
            severity=severity,
            category=category,
            description=f"{prefix}{text}",
            location=location,
            bounding_box=box or fallback_box,
        ))

    for comp in detailed.reference_components:
        comp_box = BoundingBox.from_raw(comp.bounding_box)
        if not comp.is_found:
            note = comp.issues.missing_component_note or comp.description
            issues.append(ComparisonIssue(
                severity=Severity.CRITICAL,
                category=IssueCategory.MISSING_ELEMENT,
                description=f"Missing component: {comp.name} - {note}",
                location=comp.description,
                bounding_box=comp_box,
            ))

        for item in comp.issues.grammar_issues:
            add(Severity.MAJOR, IssueCategory.WRONG_CONTENT, item, comp.name, comp_box)
        for item in comp.issues.text_mismatch:
            add(Severity.MAJOR, IssueCategory.WRONG_CONTENT, item, comp.name, comp_box)
        for item in comp.issues.major_color_differences:
            add(Severity.MAJOR, IssueCategory.WRONG_STYLE, item, comp.name, comp_box)
        for item in comp.issues.typography_issues:
            add(Severity.MINOR, IssueCategory.WRONG_STYLE, item, comp.name, comp_box)
        for item in comp.issues.missing_fields:
            add(Severity.MAJOR, IssueCategory.MISSING_ELEMENT, item, comp.name, comp_box,
                prefix="Missing field: ")

    for extra in detailed.extra_components_in_input:
        issues.append(ComparisonIssue(
            severity=Severity.from_reported(extra.severity),
            category=IssueCategory.EXTRA_ELEMENT,
            description=f"Extra component not in design: {extra.name} - {extra.description}",
            location=extra.description,
            bounding_box=BoundingBox.from_raw(extra.bounding_box),
        ))

    for overlap in detailed.overlapping_elements:
        issues.append(ComparisonIssue(
            severity=Severity.from_reported(overlap.severity),
            category=IssueCategory.WRONG_POSITION,
            description=f"{overlap.element_name} overlaps with {overlap.overlaps_with}",
            location=overlap.location,
            bounding_box=BoundingBox.from_raw(overlap.bounding_box),
        ))

    glob = detailed.global_issues
    for item in glob.grammar_issues:
        add(Severity.MAJOR, IssueCategory.WRONG_CONTENT, item, "Global")
    for item in glob.color_issues:
        add(Severity.MAJOR, IssueCategory.WRONG_STYLE, item, "Global")
    for item in glob.typography_issues:
        add(Severity.MINOR, IssueCategory.WRONG_STYLE, item, "Global")

    bg = glob.background_color
    if bg.has_difference:
        issues.append(ComparisonIssue(
            severity=Severity.MAJOR,
            category=IssueCategory.WRONG_STYLE,
            description=(
                f"Background color differs: reference {bg.reference_color or '?'}, "
                f"input {bg.input_color or '?'}" + (f" ({bg.note})" if bg.note else "")
            ),
            location="Background",
            bounding_box=BoundingBox.from_raw(bg.bounding_box),
        ))

    return issues


# ---------------------------------------------------------------------------
# Verdict
# ---------------------------------------------------------------------------


def match_percentage(detailed: UXValidationResult) -> int:
    """100 * found / max(1, total), halves rounded up; summary counts only when no components are listed."""
    components = detailed.reference_components
    if components:
        total = len(components)
        found = sum(1 for comp in components if comp.is_found)
    else:
        total = detailed.summary.total_reference_components
        found = detailed.summary.components_found
    found = max(0, min(found, max(total, 0)))
    return int(math.floor(100 * found / max(1, total) + 0.5))


def derive_status(percentage: int, issues: Sequence[ComparisonIssue]) -> MatchStatus:
    critical = sum(1 for issue in issues if issue.severity == Severity.CRITICAL)
    major = sum(1 for issue in issues if issue.severity == Severity.MAJOR)

    if (
        percentage < settings.WARNING_THRESHOLD
        or critical > 0
        or major > settings.MAJOR_ISSUE_TOLERANCE
    ):
        return MatchStatus.FAIL
    if percentage >= settings.PASS_THRESHOLD and major == 0:
        return MatchStatus.PASS
    return MatchStatus.WARNING


def build_recommendations(detailed: UXValidationResult) -> List[str]:
    components = detailed.reference_components
    missing = sum(1 for comp in components if not comp.is_found)
    if not components:
        missing = detailed.summary.components_missing
    grammar = sum(
        len(comp.issues.grammar_issues) + len(comp.issues.text_mismatch) for comp in components
    ) + len(detailed.global_issues.grammar_issues)
    color = (
        sum(len(comp.issues.major_color_differences) for comp in components)
        + len(detailed.global_issues.color_issues)
        + (1 if detailed.global_issues.background_color.has_difference else 0)
    )
    typography = sum(len(comp.issues.typography_issues) for comp in components) + len(
        detailed.global_issues.typography_issues
    )
    extra = len(detailed.extra_components_in_input)
    overlaps = len(detailed.overlapping_elements)

    recommendations = []
    if missing:
        recommendations.append(f"Add {missing} missing component(s) from the design")
    if extra:
        recommendations.append(f"Review {extra} extra component(s) not in the design")
    if grammar:
        recommendations.append(f"Fix {grammar} grammar/text issue(s)")
    if color:
        recommendations.append(f"Fix {color} color difference(s)")
    if typography:
        recommendations.append(f"Review {typography} typography issue(s)")
    if overlaps:
        recommendations.append(f"Fix {overlaps} overlapping element(s)")
    return recommendations


def _summary_text(detailed: UXValidationResult, percentage: int) -> str:
    if detailed.conclusion.strip():
        return detailed.conclusion.strip()
    total = len(detailed.reference_components) or detailed.summary.total_reference_components
    return f"{percentage}% of {total} reference component(s) found in the screenshot"


def aggregate(detailed: UXValidationResult) -> ComparisonResult:
    """Canonical result for one parsed verdict."""
    issues = flatten_issues(detailed)
    percentage = match_percentage(detailed)
    return ComparisonResult(
        overall_match=derive_status(percentage, issues),
        match_percentage=percentage,
        issues=issues,
        summary=_summary_text(detailed, percentage),
        recommendations=build_recommendations(detailed),
        detailed=detailed,
    )


def parse_failure_result(reason: str = PARSE_FAILURE_SUMMARY) -> ComparisonResult:
    return ComparisonResult(
        overall_match=MatchStatus.WARNING,
        match_percentage=0,
        issues=[],
        summary=reason,
        recommendations=[MANUAL_REVIEW],
    )


def result_from_response_text(text: Optional[str]) -> ComparisonResult:
    """Aggregate a raw collaborator reply; malformed or truncated text degrades to a warning."""
    detailed = parse_validation(parse_llm_json(text, caller="aggregator"))
    if detailed is None:
        return parse_failure_result()
    return aggregate(detailed)


# ---------------------------------------------------------------------------
# Comparison calls
# ---------------------------------------------------------------------------


async def compare(
    collaborator: AICollaborator,
    design: ImageInput,
    screenshot: ImageInput,
    context: str = "",
) -> ComparisonResult:
    """Compare one pair.

    Permanent provider errors (auth, permission, bad request) propagate;
    transient ones and unparseable replies give the parse-failure result.
    """
    try:
        detailed = await collaborator.compare_screenshot(design, screenshot, context)
    except AIProviderError as e:
        if e.is_permanent:
            raise
        logger.warning(f"compare: collaborator failed ({e}), degrading to warning")
        return parse_failure_result(f"Comparison failed: {e}")
    if detailed is None:
        return parse_failure_result()

    result = aggregate(detailed)
    logger.info(
        f"compare: {result.overall_match.value}, {result.match_percentage}% match, "
        f"{len(result.issues)} issue(s)"
    )
    return result


async def compare_all(
    collaborator: AICollaborator,
    pairs: Sequence[Tuple[ImageInput, ImageInput, str]],
    concurrency: Optional[int] = None,
) -> List[ComparisonResult]:
    """Compare every ``(design, screenshot, context)`` pair, results in input order."""
    sem = asyncio.Semaphore(max(1, concurrency or settings.COMPARE_CONCURRENCY))

    async def _compare_one(index: int, design: ImageInput, screenshot: ImageInput, context: str):
        async with sem:
            logger.info(f"compare_all: pair {index + 1}/{len(pairs)}")
            return await compare(collaborator, design, screenshot, context)

    tasks = [
        asyncio.ensure_future(_compare_one(i, design, screenshot, context))
        for i, (design, screenshot, context) in enumerate(pairs)
    ]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        # no comparison may outlive a failed batch
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
