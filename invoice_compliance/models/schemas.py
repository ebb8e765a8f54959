"""API request and response envelopes"""

from typing import Any, Dict, List, Optional

from pydantic import Field

from .base import ApiModel
from .batch import BatchResult
from .records import InvoiceRecord, InvoiceValidationOutcome
from .results import BIRComplianceResult, ValidationResult
from .rules import RuleSet


class ValidateRequest(ApiModel):
    """Untyped invoice data plus the rule set to run"""
    invoice_data: Any = None
    rule_set_name: Optional[str] = None


class DocumentValidateRequest(ApiModel):
    rule_set_name: Optional[str] = None
    force_re_extraction: bool = False


class ValidationResponse(ApiModel):
    success: bool
    validation: ValidationResult
    rule_set_used: str
    document_id: Optional[str] = None
    extracted_data: Optional[Dict[str, Any]] = None


class BIRComplianceResponse(ApiModel):
    success: bool
    bir_compliance: BIRComplianceResult
    rule_set_used: str
    document_id: Optional[str] = None
    extracted_data: Optional[Dict[str, Any]] = None


class RuleSetInfo(ApiModel):
    """Catalogue entry shown to clients choosing a rule set"""
    id: str
    name: str
    description: str
    rules_count: int
    minimum_score: Optional[int] = None
    registration_type: Optional[str] = None

    @classmethod
    def from_rule_set(cls, rule_set: RuleSet) -> "RuleSetInfo":
        return cls(
            id=rule_set.id,
            name=rule_set.name,
            description=rule_set.description,
            rules_count=len(rule_set.rules),
            minimum_score=rule_set.minimum_score if rule_set.kind.value == "bir" else None,
            registration_type=rule_set.registration_type.value if rule_set.registration_type else None,
        )


class RuleSetCatalogue(ApiModel):
    success: bool = True
    rule_sets: List[RuleSetInfo]
    guidance: Optional[Dict[str, Any]] = None


class BatchCapabilities(ApiModel):
    success: bool = True
    max_documents: int
    concurrency: int
    default_rule_set: str
    rule_sets: List[RuleSetInfo]
    options: Dict[str, str]


class BatchResponse(ApiModel):
    success: bool
    batch: BatchResult


class RuleSetResponse(ApiModel):
    success: bool
    data: RuleSet


class RuleSetListResponse(ApiModel):
    success: bool
    data: List[RuleSet]


class DeleteResponse(ApiModel):
    success: bool
    message: str


class InvoiceResponse(ApiModel):
    success: bool
    data: InvoiceRecord


class InvoiceListResponse(ApiModel):
    success: bool
    data: List[InvoiceRecord]
    total: int
    page: int
    page_size: int


class DocumentListResponse(ApiModel):
    """One page of Paperless documents"""
    success: bool
    data: List[Dict[str, Any]]
    count: int
    page: int
    page_size: int


class InvoiceValidationResponse(ApiModel):
    success: bool
    data: InvoiceValidationOutcome


class HealthResponse(ApiModel):
    status: str
    service: str
    version: str
    rule_set_store: str
    database_connected: bool = Field(default=False)
