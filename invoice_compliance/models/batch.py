"""Batch validation request and response models"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field

from .base import ApiModel
from .results import BIRComplianceResult, ValidationResult


class BatchMode(str, Enum):
    VALIDATION = "validation"
    BIR_COMPLIANCE = "bir_compliance"


class DocumentOutcome(str, Enum):
    VALID = "VALID"
    INVALID = "INVALID"
    BIR_COMPLIANT = "BIR_COMPLIANT"
    BIR_NON_COMPLIANT = "BIR_NON_COMPLIANT"
    ERROR = "ERROR"


class BatchOptions(ApiModel):
    force_re_extraction: bool = False
    compliance_threshold: Optional[int] = Field(default=None, ge=0, le=100)
    po_type: Optional[str] = None


class BatchValidateRequest(ApiModel):
    document_ids: List[str] = Field(default_factory=list)
    rule_set_name: Optional[str] = None
    options: BatchOptions = Field(default_factory=BatchOptions)


class DocumentSummary(ApiModel):
    id: str
    title: Optional[str] = None
    original_file_name: Optional[str] = None


class BatchDocumentResult(ApiModel):
    document_id: str
    success: bool
    status: DocumentOutcome
    document: Optional[DocumentSummary] = None
    extracted_data: Optional[Dict[str, Any]] = None
    validation: Optional[ValidationResult] = None
    bir_compliance: Optional[BIRComplianceResult] = None
    error: Optional[str] = None
    processing_time_ms: int = 0


class CommonIssue(ApiModel):
    field: str
    occurrences: int


class BatchSummary(ApiModel):
    total_documents: int
    passed_documents: int
    failed_documents: int
    error_documents: int
    pass_rate: int
    average_score: int
    average_processing_time_ms: int
    total_processing_time_ms: int
    common_issues: List[CommonIssue] = Field(default_factory=list)


class ComplianceReport(ApiModel):
    """Overall verdict for a BIR batch: GOOD, FAIR or POOR"""
    overall_status: str
    recommendation: str


class BatchResult(ApiModel):
    mode: BatchMode
    rule_set_used: str
    results: List[BatchDocumentResult]
    summary: BatchSummary
    timestamp: str
    compliance_threshold: Optional[int] = None
    report: Optional[ComplianceReport] = None
