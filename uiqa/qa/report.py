"""Pure rendering of run results into PR, Jira and commit-status text."""

from __future__ import annotations

from typing import Iterable, List, Tuple

from ..ai.schemas import UXValidationResult
from .models import MatchStatus, PairComparison, RunReport

REPORT_MARKER = "## 🔍 UI QA Analysis Results"
REQUEST_MARKER = "## 📸 UI QA: Screenshots Required"
BOT_MARKERS = (REPORT_MARKER, REQUEST_MARKER)

FOOTER = "*Analysis performed by UI QA Agent*"

STATUS_EMOJI = {
    MatchStatus.PASS: "✅",
    MatchStatus.WARNING: "⚠️",
    MatchStatus.FAIL: "❌",
}

SEVERITY_EMOJI = {
    "critical": "🔴",
    "major": "🟠",
    "minor": "🟡",
}

OVERALL_HEADLINE = {
    MatchStatus.FAIL: "❌ Issues Found",
    MatchStatus.WARNING: "⚠️ Minor Issues",
    MatchStatus.PASS: "✅ All Checks Passed",
}

COMMIT_STATUS = {
    MatchStatus.FAIL: ("failure", "UI discrepancies found - review required"),
    MatchStatus.WARNING: ("success", "Minor UI issues found - review recommended"),
    MatchStatus.PASS: ("success", "All UI checks passed"),
}


def _cell(text: str) -> str:
    return str(text).replace("|", "\\|").replace("\n", " ")


def _bullets(items: Iterable[object]) -> List[str]:
    lines = []
    for item in items:
        if isinstance(item, dict):
            item = item.get("description") or item.get("issue") or item.get("text") or ""
        if str(item).strip():
            lines.append(f"- {item}")
    return lines


# ---------------------------------------------------------------------------
# Screenshot request
# ---------------------------------------------------------------------------


def render_screenshot_request(design_links: Iterable[str]) -> str:
    links = "\n".join(f"- {link}" for link in design_links)
    return (
        f"{REQUEST_MARKER}\n\n"
        "I found the following Figma design link(s) in the linked Jira ticket:\n\n"
        f"{links}\n\n"
        "**Please upload screenshots of your implementation** by replying to this comment with images.\n\n"
        "### How to add screenshots:\n"
        "1. Take screenshots of your implemented UI\n"
        "2. Paste or drag-and-drop them into a reply to this comment\n"
        "3. I'll automatically compare them against the Figma designs\n\n"
        "---\n"
        "*UI QA Agent will analyze your screenshots and provide feedback.*"
    )


# ---------------------------------------------------------------------------
# PR comment
# ---------------------------------------------------------------------------


def _render_validation_summary(detailed: UXValidationResult) -> List[str]:
    components = detailed.reference_components
    found = sum(1 for comp in components if comp.is_found)
    total = len(components)
    if not components:
        found = detailed.summary.components_found
        total = detailed.summary.total_reference_components
    s = detailed.summary
    return [
        "#### 📊 Validation Summary",
        "",
        "| Metric | Value |",
        "|--------|-------|",
        f"| Components Found | {found}/{total} |",
        f"| Missing Components | {total - found} |",
        f"| Extra Components | {len(detailed.extra_components_in_input)} |",
        f"| Grammar Issues | {s.grammar_issues_count} |",
        f"| Color Issues | {s.color_issues_count} |",
        f"| Typography Issues | {s.typography_issues_count} |",
        f"| Overlapping Elements | {len(detailed.overlapping_elements)} |",
        f"| **Total Issues** | **{s.total_issues}** |",
        "",
    ]


def _render_components(detailed: UXValidationResult) -> List[str]:
    if not detailed.reference_components:
        return []
    lines = [
        "#### 🔍 Reference Component Analysis",
        "",
        "<details>",
        "<summary>Click to expand component-by-component analysis</summary>",
        "",
    ]
    for comp in detailed.reference_components:
        issues = comp.issues
        count = (
            len(issues.grammar_issues) + len(issues.text_mismatch)
            + len(issues.major_color_differences) + len(issues.missing_fields)
            + len(issues.typography_issues)
        )
        if not comp.is_found:
            icon, status_text = "❌", "MISSING"
        else:
            icon = "✅" if count == 0 else "⚠️"
            status_text = f"{count} issue(s)"
        lines.append(f"- {icon} **{comp.name}** ({comp.type}) - {status_text}")
        if not comp.is_found:
            if issues.missing_component_note:
                lines.append(f"  - {issues.missing_component_note}")
            continue
        for bullet in _bullets([*issues.grammar_issues, *issues.text_mismatch]):
            lines.append(f"  {bullet} (text)")
        for bullet in _bullets(issues.major_color_differences):
            lines.append(f"  {bullet} (color)")
        for bullet in _bullets(issues.missing_fields):
            lines.append(f"  {bullet} (missing field)")
        for bullet in _bullets(issues.typography_issues):
            lines.append(f"  {bullet} (typography)")
        if issues.field_notes:
            lines.append(f"  - ℹ️ {issues.field_notes}")
    lines += ["", "</details>", ""]
    return lines


def _render_comparison(index: int, pc: PairComparison) -> List[str]:
    result = pc.result
    emoji = STATUS_EMOJI[result.overall_match]
    lines = [
        "<details>",
        f"<summary>{emoji} Comparison {index}: {result.match_percentage}% match</summary>",
        "",
        f"**Figma Design:** {pc.design.source_url}",
        "",
        f"**Screenshot:** {pc.screenshot.source_url}",
        "",
        f"**Match confidence:** {pc.match.confidence}% ({pc.match.reasoning})",
        "",
        f"**Summary:** {result.summary}",
        "",
    ]

    if result.detailed is not None:
        lines += _render_validation_summary(result.detailed)

    if result.issues:
        lines += [
            "#### Issues Found:",
            "",
            "| Severity | Category | Description | Location |",
            "|----------|----------|-------------|----------|",
        ]
        for issue in result.issues:
            sev = issue.severity.value
            lines.append(
                f"| {SEVERITY_EMOJI.get(sev, '⚪')} {sev} | {issue.category.value} "
                f"| {_cell(issue.description)} | {_cell(issue.location)} |"
            )
        lines.append("")

    if result.detailed is not None:
        lines += _render_components(result.detailed)
        if result.detailed.conclusion:
            lines += ["#### 🎯 Conclusion", "", result.detailed.conclusion, ""]

    annotation = pc.annotation
    if annotation is not None and annotation.has_annotations:
        lines += ["#### 📍 Annotated Issues", ""]
        if annotation.path:
            lines += [f"Annotated screenshot: `{annotation.path}`", ""]
        for entry in annotation.legend:
            sev = entry.severity.value
            location = f" ({entry.location})" if entry.location else ""
            lines.append(f"{entry.number}. {SEVERITY_EMOJI.get(sev, '⚪')} {entry.description}{location}")
        lines.append("")

    if result.recommendations:
        lines += ["#### Recommendations:", ""]
        lines += [f"- {rec}" for rec in result.recommendations]
        lines.append("")

    lines += ["</details>", ""]
    return lines


def render_pr_comment(report: RunReport) -> str:
    """Full analysis comment; starts with REPORT_MARKER so it can be found again."""
    lines = [
        REPORT_MARKER,
        "",
        f"### Overall Status: {OVERALL_HEADLINE[report.overall_status]}",
        "",
        "| Status | Count |",
        "|--------|-------|",
        f"| ✅ Pass | {report.count(MatchStatus.PASS)} |",
        f"| ⚠️ Warning | {report.count(MatchStatus.WARNING)} |",
        f"| ❌ Fail | {report.count(MatchStatus.FAIL)} |",
        "",
    ]
    if report.ticket_key:
        lines += [f"**Jira ticket:** {report.ticket_key}", ""]

    for i, pc in enumerate(report.comparisons, start=1):
        lines += _render_comparison(i, pc)

    if report.unmatched_screenshots:
        lines += ["#### Unmatched screenshots", ""]
        lines += [f"- {s.source_url}" for s in report.unmatched_screenshots]
        lines.append("")
    if report.unmatched_designs:
        lines += ["#### Unmatched designs", ""]
        lines += [
            f"- {d.source_url}" + (f" (node {d.node_id})" if d.node_id else "")
            for d in report.unmatched_designs
        ]
        lines.append("")

    lines += ["---", FOOTER]
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Jira comment
# ---------------------------------------------------------------------------


def render_jira_comment(report: RunReport, pr_url: str) -> str:
    lines = [
        "🔍 UI QA Analysis Results",
        "",
        f"Overall Status: {OVERALL_HEADLINE[report.overall_status]}",
        "",
        "Summary:",
        f"• Pass: {report.count(MatchStatus.PASS)}",
        f"• Warning: {report.count(MatchStatus.WARNING)}",
        f"• Fail: {report.count(MatchStatus.FAIL)}",
        "",
    ]
    for i, pc in enumerate(report.comparisons, start=1):
        result = pc.result
        lines += [
            f"--- Comparison {i} ---",
            f"Status: {STATUS_EMOJI[result.overall_match]} {result.match_percentage}% match",
            f"Figma: {pc.design.source_url}",
            f"Summary: {result.summary}",
        ]
        if result.issues:
            lines += ["", "Issues:"]
            lines += [
                f"• [{issue.severity.value.upper()}] {issue.category.value}: "
                f"{issue.description} ({issue.location})"
                for issue in result.issues
            ]
        if result.recommendations:
            lines += ["", "Recommendations:"]
            lines += [f"• {rec}" for rec in result.recommendations]
        lines.append("")

    lines += [
        "---",
        f"View full details in PR: {pr_url}",
        "Analysis performed by UI QA Agent",
    ]
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Commit status
# ---------------------------------------------------------------------------


def commit_status_for(report: RunReport) -> Tuple[str, str]:
    """(state, description); warnings never block the merge."""
    return COMMIT_STATUS[report.overall_status]


def pending_status_description(design_count: int) -> str:
    return f"Found {design_count} Figma design(s) - awaiting screenshots"
