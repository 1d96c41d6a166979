"""Pydantic models for the JSON the AI collaborator returns.

Models are lenient: unknown keys are ignored and ``null`` falls back to the
field default. Items of the free-text issue lists may be strings or
``{"description", "bounding_box"}`` objects, so they stay ``Any`` and are
normalised by the comparison aggregator.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator


class _LenientModel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    @field_validator("*", mode="before")
    @classmethod
    def _null_to_default(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            field = cls.model_fields[info.field_name]
            if not field.is_required():
                return field.get_default(call_default_factory=True)
        return value


# --- Link extraction ---


class LinkExtraction(_LenientModel):
    figmaLinks: List[Any] = Field(default_factory=list)
    confidence: str = "low"
    context: str = ""


# --- Screenshot/design matching ---


class MatchResponse(_LenientModel):
    matches: List[Dict[str, Any]] = Field(default_factory=list)
    unmatchedScreenshots: List[Any] = Field(default_factory=list)
    unmatchedFigmaDesigns: List[Any] = Field(default_factory=list)


# --- UX validation ---


class ComponentIssues(_LenientModel):
    missing_component: bool = False
    missing_component_note: str = ""
    grammar_issues: List[Any] = Field(default_factory=list)
    text_mismatch: List[Any] = Field(default_factory=list)
    major_color_differences: List[Any] = Field(default_factory=list)
    missing_fields: List[Any] = Field(default_factory=list)
    field_notes: str = ""
    typography_issues: List[Any] = Field(default_factory=list)


class ReferenceComponent(_LenientModel):
    name: str = ""
    type: str = ""
    description: str = ""
    found_in_input: bool = True
    bounding_box: Optional[Any] = None
    issues: ComponentIssues = Field(default_factory=ComponentIssues)
    status: str = ""

    @property
    def is_found(self) -> bool:
        return self.found_in_input and not self.issues.missing_component


class ExtraComponent(_LenientModel):
    name: str = ""
    type: str = ""
    description: str = ""
    bounding_box: Optional[Any] = None
    severity: str = "minor"


class BackgroundColorIssue(_LenientModel):
    has_difference: bool = False
    reference_color: str = ""
    input_color: str = ""
    note: str = ""
    bounding_box: Optional[Any] = None


class GlobalIssues(_LenientModel):
    background_color: BackgroundColorIssue = Field(default_factory=BackgroundColorIssue)
    color_issues: List[Any] = Field(default_factory=list)
    grammar_issues: List[Any] = Field(default_factory=list)
    typography_issues: List[Any] = Field(default_factory=list)


class OverlapIssue(_LenientModel):
    element_name: str = ""
    overlaps_with: str = ""
    location: str = ""
    bounding_box: Optional[Any] = None
    severity: str = "minor"


class ValidationSummary(_LenientModel):
    total_reference_components: int = 0
    components_found: int = 0
    components_missing: int = 0
    extra_components_count: int = 0
    grammar_issues_count: int = 0
    color_issues_count: int = 0
    typography_issues_count: int = 0
    overlapping_elements_count: int = 0
    total_issues: int = 0


class UXValidationResult(_LenientModel):
    """Rich per-component verdict for one screenshot/design pair."""
    reference_components: List[ReferenceComponent] = Field(default_factory=list)
    extra_components_in_input: List[ExtraComponent] = Field(default_factory=list)
    global_issues: GlobalIssues = Field(default_factory=GlobalIssues)
    overlapping_elements: List[OverlapIssue] = Field(default_factory=list)
    summary: ValidationSummary = Field(default_factory=ValidationSummary)
    # Reported by the model, never used for the verdict
    overall_status: str = ""
    conclusion: str = ""


_VALIDATION_KEYS = ("reference_components", "summary", "extra_components_in_input", "global_issues")


def parse_validation(data: Optional[Dict[str, Any]]) -> Optional[UXValidationResult]:
    """Validate a decoded object as a UX validation result; None when it isn't one."""
    if not isinstance(data, dict) or not any(key in data for key in _VALIDATION_KEYS):
        return None
    try:
        return UXValidationResult.model_validate(data)
    except ValidationError:
        return None
