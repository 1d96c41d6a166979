"""Domain objects for one analysis run.

Everything here is created once per invocation and discarded at the end of
it. Verdict fields (``overall_match``, ``match_percentage``) are always
computed by the aggregator, never copied from the model's reply.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, List, Optional

from ..ai.base import ImageInput
from ..ai.schemas import UXValidationResult


class Severity(str, Enum):
    CRITICAL = "critical"
    MAJOR = "major"
    MINOR = "minor"

    @classmethod
    def from_reported(cls, value: Any, default: Optional["Severity"] = None) -> "Severity":
        """Severity as reported by the model; anything unknown maps to ``default``."""
        default = default or cls.MINOR
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return default


class IssueCategory(str, Enum):
    MISSING_ELEMENT = "missing_element"
    WRONG_STYLE = "wrong_style"
    WRONG_POSITION = "wrong_position"
    WRONG_CONTENT = "wrong_content"
    EXTRA_ELEMENT = "extra_element"


class MatchStatus(str, Enum):
    PASS = "pass"
    WARNING = "warning"
    FAIL = "fail"


# --- Bounding boxes ---


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass(frozen=True)
class BoundingBox:
    """Rectangle in percent of the screenshot (0-100 on every axis)."""
    x: float
    y: float
    width: float = 0.0
    height: float = 0.0

    @classmethod
    def from_raw(cls, value: Any) -> Optional["BoundingBox"]:
        """Build from a model-reported dict; None when it is unusable.

        ``x`` and ``y`` must be numbers; a missing width or height counts as
        zero. Any component outside [0, 100] discards the whole box.
        """
        if not isinstance(value, dict):
            return None
        x, y = value.get("x"), value.get("y")
        if not (_is_number(x) and _is_number(y)):
            return None
        width = value.get("width", 0)
        height = value.get("height", 0)
        width = width if _is_number(width) else 0
        height = height if _is_number(height) else 0
        parts = (x, y, width, height)
        if any(p < 0 or p > 100 for p in parts):
            return None
        return cls(float(x), float(y), float(width), float(height))


# --- Inputs ---


@dataclass
class DesignReference:
    """One rendered design node to compare against."""
    source_url: str
    file_key: str
    node_id: Optional[str]
    data: bytes
    media_type: str = "image/png"

    @property
    def image(self) -> ImageInput:
        return ImageInput(self.data, self.media_type)


@dataclass
class ScreenshotCandidate:
    """One implementation screenshot pasted into a PR comment."""
    source_url: str
    data: bytes
    media_type: str = "image/png"
    comment_id: Optional[int] = None

    @property
    def image(self) -> ImageInput:
        return ImageInput(self.data, self.media_type)


# --- Matching ---


@dataclass
class Match:
    screenshot_index: int
    design_index: int
    confidence: int
    reasoning: str


@dataclass
class MatchResult:
    matches: List[Match] = field(default_factory=list)
    unmatched_screenshots: List[int] = field(default_factory=list)
    unmatched_designs: List[int] = field(default_factory=list)


# --- Comparison ---


@dataclass
class ComparisonIssue:
    severity: Severity
    category: IssueCategory
    description: str
    location: str = ""
    bounding_box: Optional[BoundingBox] = None

    def as_dict(self) -> dict:
        data = {
            "severity": self.severity.value,
            "category": self.category.value,
            "description": self.description,
            "location": self.location,
        }
        if self.bounding_box is not None:
            data["boundingBox"] = {
                "x": self.bounding_box.x,
                "y": self.bounding_box.y,
                "width": self.bounding_box.width,
                "height": self.bounding_box.height,
            }
        return data


@dataclass
class ComparisonResult:
    """Canonical verdict for one matched pair."""
    overall_match: MatchStatus
    match_percentage: int
    issues: List[ComparisonIssue] = field(default_factory=list)
    summary: str = ""
    recommendations: List[str] = field(default_factory=list)
    # Per-component breakdown the flat issue list was derived from
    detailed: Optional[UXValidationResult] = None

    def count(self, severity: Severity) -> int:
        return sum(1 for issue in self.issues if issue.severity == severity)


# --- Annotation ---


@dataclass
class LegendEntry:
    number: int
    severity: Severity
    description: str
    location: str = ""


@dataclass
class AnnotationResult:
    image: bytes
    legend: List[LegendEntry] = field(default_factory=list)
    has_annotations: bool = False
    path: Optional[str] = None  # Set when the image was written to disk


# --- Run report ---


@dataclass
class PairComparison:
    """One committed match with its comparison outcome."""
    match: Match
    design: DesignReference
    screenshot: ScreenshotCandidate
    result: ComparisonResult
    annotation: Optional[AnnotationResult] = None

    def as_dict(self) -> dict:
        return {
            "figmaUrl": self.design.source_url,
            "nodeId": self.design.node_id,
            "screenshotUrl": self.screenshot.source_url,
            "matchConfidence": self.match.confidence,
            "overallMatch": self.result.overall_match.value,
            "matchPercentage": self.result.match_percentage,
            "summary": self.result.summary,
            "issues": [issue.as_dict() for issue in self.result.issues],
            "recommendations": list(self.result.recommendations),
        }


def overall_status(statuses: Iterable[MatchStatus]) -> MatchStatus:
    """Roll per-pair verdicts up; an empty run is a warning, never a pass."""
    statuses = list(statuses)
    if not statuses:
        return MatchStatus.WARNING
    if MatchStatus.FAIL in statuses:
        return MatchStatus.FAIL
    if MatchStatus.WARNING in statuses:
        return MatchStatus.WARNING
    return MatchStatus.PASS


@dataclass
class RunReport:
    comparisons: List[PairComparison] = field(default_factory=list)
    unmatched_screenshots: List[ScreenshotCandidate] = field(default_factory=list)
    unmatched_designs: List[DesignReference] = field(default_factory=list)
    ticket_key: Optional[str] = None

    @property
    def overall_status(self) -> MatchStatus:
        return overall_status(c.result.overall_match for c in self.comparisons)

    def count(self, status: MatchStatus) -> int:
        return sum(1 for c in self.comparisons if c.result.overall_match == status)
