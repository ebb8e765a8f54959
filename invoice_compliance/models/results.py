"""Validation and compliance result models"""

from enum import Enum
from typing import Any, List, Optional

from pydantic import Field

from .base import ApiModel


class Severity(str, Enum):
    CRITICAL = "critical"
    MAJOR = "major"
    MINOR = "minor"


class ValidationIssue(ApiModel):
    """A failed requirement; blocks validity"""
    field: str
    message: str
    severity: Severity = Severity.CRITICAL
    bir_requirement: Optional[str] = None


class ValidationWarning(ApiModel):
    """An advisory finding; never blocks validity"""
    field: str
    message: str
    suggestion: Optional[str] = None
    bir_guideline: Optional[str] = None


class ValidationResult(ApiModel):
    """Outcome of completeness validation"""
    is_valid: bool
    errors: List[ValidationIssue] = Field(default_factory=list)
    warnings: List[ValidationWarning] = Field(default_factory=list)
    score: int = 0
    summary: str = ""
    rule_set_id: Optional[str] = None


class IncompleteLineItem(ApiModel):
    index: int
    missing_fields: List[str]


class LineItemsCompleteness(ApiModel):
    total_items: int = 0
    complete_items: int = 0
    incomplete_items: List[IncompleteLineItem] = Field(default_factory=list)


class RequiredFieldStatus(ApiModel):
    field: str
    present: bool
    value: Any = None


class FieldCompletenessReport(ApiModel):
    """Per-rule presence plus line-item completeness breakdown"""
    required_fields: List[RequiredFieldStatus] = Field(default_factory=list)
    line_items_completeness: LineItemsCompleteness = Field(default_factory=LineItemsCompleteness)
    overall_completeness: int = 0


class BIRComplianceResult(ApiModel):
    """Outcome of BIR compliance validation"""
    is_compliant: bool
    errors: List[ValidationIssue] = Field(default_factory=list)
    warnings: List[ValidationWarning] = Field(default_factory=list)
    score: int = 0
    summary: str = ""
    field_completeness: FieldCompletenessReport = Field(default_factory=FieldCompletenessReport)
    minimum_score: Optional[int] = None
    rule_set_id: Optional[str] = None
