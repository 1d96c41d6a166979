"""QA core: screenshot/design matching, comparison aggregation, annotation and reporting."""

from .aggregator import compare, compare_all, parse_failure_result, result_from_response_text
from .matcher import match_screenshots
from .models import (
    ComparisonIssue,
    ComparisonResult,
    DesignReference,
    IssueCategory,
    Match,
    MatchResult,
    MatchStatus,
    RunReport,
    ScreenshotCandidate,
    Severity,
)

__all__ = [
    "ComparisonIssue",
    "ComparisonResult",
    "DesignReference",
    "IssueCategory",
    "Match",
    "MatchResult",
    "MatchStatus",
    "RunReport",
    "ScreenshotCandidate",
    "Severity",
    "compare",
    "compare_all",
    "match_screenshots",
    "parse_failure_result",
    "result_from_response_text",
]
