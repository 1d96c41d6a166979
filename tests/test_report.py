"""Tests for uiqa.qa.report (PR comment, Jira comment, commit status text)."""

import pytest

from uiqa.ai.schemas import UXValidationResult
from uiqa.qa.models import (
    AnnotationResult,
    BoundingBox,
    ComparisonIssue,
    DesignReference,
    IssueCategory,
    LegendEntry,
    RunReport,
    ScreenshotCandidate,
    Severity,
)
from uiqa.qa.report import (
    FOOTER,
    REPORT_MARKER,
    REQUEST_MARKER,
    commit_status_for,
    pending_status_description,
    render_jira_comment,
    render_pr_comment,
    render_screenshot_request,
)

from conftest import make_pair


COLOR_ISSUE = ComparisonIssue(
    Severity.MAJOR, IssueCategory.WRONG_STYLE, "Button is #00f | should be #06f", "Checkout",
    BoundingBox(10, 10, 20, 10),
)


# ---------------------------------------------------------------------------
# Tests: commit status
# ---------------------------------------------------------------------------


class TestCommitStatus:

    @pytest.mark.parametrize("statuses,expected", [
        (["pass", "pass"], ("success", "All UI checks passed")),
        (["pass", "warning"], ("success", "Minor UI issues found - review recommended")),
        (["warning", "fail"], ("failure", "UI discrepancies found - review required")),
        ([], ("success", "Minor UI issues found - review recommended")),
    ])
    def test_mapping(self, statuses, expected):
        report = RunReport(comparisons=[make_pair(s, index=i) for i, s in enumerate(statuses)])
        assert commit_status_for(report) == expected

    def test_pending_description(self):
        assert pending_status_description(2) == "Found 2 Figma design(s) - awaiting screenshots"


# ---------------------------------------------------------------------------
# Tests: PR comment
# ---------------------------------------------------------------------------


class TestRenderPrComment:

    def test_layout(self):
        report = RunReport(
            comparisons=[make_pair("pass"), make_pair("warning", 80, [COLOR_ISSUE], index=1)],
            unmatched_screenshots=[ScreenshotCandidate("https://cdn.example/extra.png", b"x")],
            unmatched_designs=[DesignReference("https://www.figma.com/design/KEY/Other", "KEY", None, b"d")],
            ticket_key="PROJ-5",
        )
        body = render_pr_comment(report)

        assert body.startswith(REPORT_MARKER)
        assert body.endswith(FOOTER)
        assert "### Overall Status: ⚠️ Minor Issues" in body
        assert "| ✅ Pass | 1 |" in body
        assert "| ⚠️ Warning | 1 |" in body
        assert "**Jira ticket:** PROJ-5" in body
        assert "<summary>✅ Comparison 1: 100% match</summary>" in body
        assert "<summary>⚠️ Comparison 2: 80% match</summary>" in body
        assert "| 🟠 major | wrong_style | Button is #00f \\| should be #06f | Checkout |" in body
        assert "- Fix 1 color difference(s)" in body
        assert "- https://cdn.example/extra.png" in body
        assert "- https://www.figma.com/design/KEY/Other\n" in body

    @pytest.mark.parametrize("status,headline", [
        ("fail", "❌ Issues Found"),
        ("pass", "✅ All Checks Passed"),
    ])
    def test_headline(self, status, headline):
        body = render_pr_comment(RunReport(comparisons=[make_pair(status)]))
        assert f"### Overall Status: {headline}" in body

    def test_detailed_sections(self):
        pc = make_pair("fail", 50)
        pc.result.detailed = UXValidationResult.model_validate({
            "reference_components": [
                {"name": "Logo", "type": "image"},
                {"name": "Cart", "type": "button", "found_in_input": False,
                 "issues": {"missing_component": True, "missing_component_note": "not rendered"}},
            ],
            "summary": {"total_issues": 1},
            "conclusion": "Cart is missing.",
        })
        body = render_pr_comment(RunReport(comparisons=[pc]))

        assert "| Components Found | 1/2 |" in body
        assert "- ❌ **Cart** (button) - MISSING" in body
        assert "- ✅ **Logo** (image) - 0 issue(s)" in body
        assert "#### 🎯 Conclusion" in body
        assert "Cart is missing." in body

    def test_annotation_legend(self):
        pc = make_pair("warning", 80, [COLOR_ISSUE])
        pc.annotation = AnnotationResult(
            image=b"png",
            legend=[LegendEntry(1, Severity.MAJOR, "Button colour", "Checkout")],
            has_annotations=True,
            path="ui-qa-annotations/comparison-1.png",
        )
        body = render_pr_comment(RunReport(comparisons=[pc]))
        assert "#### 📍 Annotated Issues" in body
        assert "`ui-qa-annotations/comparison-1.png`" in body
        assert "1. 🟠 Button colour (Checkout)" in body

    def test_rendering_is_deterministic(self):
        report = RunReport(comparisons=[make_pair("warning", 80, [COLOR_ISSUE])], ticket_key="PROJ-5")
        assert render_pr_comment(report) == render_pr_comment(report)


# ---------------------------------------------------------------------------
# Tests: Jira comment and screenshot request
# ---------------------------------------------------------------------------


class TestRenderJiraComment:

    def test_plain_text(self):
        report = RunReport(comparisons=[make_pair("warning", 80, [COLOR_ISSUE])], ticket_key="PROJ-5")
        text = render_jira_comment(report, "https://github.com/acme/web/pull/7")

        assert text.startswith("🔍 UI QA Analysis Results")
        assert "Overall Status: ⚠️ Minor Issues" in text
        assert "• Warning: 1" in text
        assert "--- Comparison 1 ---" in text
        assert "• [MAJOR] wrong_style: Button is #00f | should be #06f (Checkout)" in text
        assert "View full details in PR: https://github.com/acme/web/pull/7" in text
        assert "<details>" not in text


class TestRenderScreenshotRequest:

    def test_lists_links(self):
        body = render_screenshot_request([
            "https://www.figma.com/design/K/A?node-id=1:2",
            "https://www.figma.com/design/K/B",
        ])
        assert body.startswith(REQUEST_MARKER)
        assert "- https://www.figma.com/design/K/A?node-id=1:2\n- https://www.figma.com/design/K/B" in body
        assert "**Please upload screenshots of your implementation**" in body
