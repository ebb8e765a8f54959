"""Persisted invoice records and contract-validation verdicts"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import ConfigDict, Field, field_validator

from .base import ApiModel
from .results import BIRComplianceResult, ValidationResult

RAG_VALIDATION_SCHEMA_VERSION = 1


class InvoiceStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def retryable(self) -> bool:
        """Only pending or failed statuses may be (re)validated."""
        return self in (InvoiceStatus.PENDING, InvoiceStatus.FAILED)


class RagModel(ApiModel):
    """Lenient base for verdict parts: RAG answers vary between runs"""
    model_config = ConfigDict(alias_generator=None, populate_by_name=True, extra="allow")


class VendorValidation(RagModel):
    vendor_authorized: Optional[bool] = None
    contract_active: Optional[bool] = None
    contract_reference: Optional[str] = None


class DateValidation(RagModel):
    within_contract_period: Optional[bool] = None
    due_date_compliant: Optional[bool] = None


class AmountValidation(RagModel):
    subtotal_correct: Optional[bool] = None
    subtotal_invoice: Optional[float] = None
    subtotal_calculated: Optional[float] = None
    subtotal_variance: Optional[float] = None
    vat_correct: Optional[bool] = None
    vat_calculated: Optional[float] = None
    vat_variance: Optional[float] = None
    total_correct: Optional[bool] = None
    total_invoice: Optional[float] = None
    total_calculated: Optional[float] = None
    total_variance: Optional[float] = None


class LineItemValidation(RagModel):
    line_number: Optional[int] = None
    description: Optional[str] = None
    quantity_invoice: Optional[float] = None
    unit_price_invoice: Optional[float] = None
    line_total_invoice: Optional[float] = None
    contract_unit_price: Optional[float] = None
    contract_rate_compliant: Optional[bool] = None
    price_variance_percentage: Optional[float] = None
    quantity_within_limits: Optional[bool] = None
    line_total_correct: Optional[bool] = None
    line_total_calculated: Optional[float] = None
    item_authorized: Optional[bool] = None
    item_status: Optional[str] = None
    issues: List[str] = Field(default_factory=list)

    @field_validator("issues", mode="before")
    @classmethod
    def _null_issues(cls, value):
        return [] if value is None else value


class ComplianceIssue(RagModel):
    severity: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    expected_value: Optional[Union[float, str]] = None
    actual_value: Optional[Union[float, str]] = None


class FinancialSummary(RagModel):
    compliant_items_count: Optional[int] = None
    non_compliant_items_count: Optional[int] = None
    total_variance_amount: Optional[float] = None
    approved_amount: Optional[float] = None
    disputed_amount: Optional[float] = None


class Recommendations(RagModel):
    action_required: Optional[str] = None
    suggested_adjustment: Optional[float] = None
    next_steps: List[str] = Field(default_factory=list)

    @field_validator("next_steps", mode="before")
    @classmethod
    def _null_next_steps(cls, value):
        return [] if value is None else value


class RagValidation(RagModel):
    """Contract-validation verdict attached to an invoice record"""
    schema_version: int = RAG_VALIDATION_SCHEMA_VERSION
    ocr_id: Optional[str] = None
    validation_timestamp: Optional[str] = None
    contract_compliant: Optional[bool] = None
    overall_status: Optional[str] = None
    overall_amount_validation: Optional[str] = None
    confidence_score: Optional[float] = None
    vendor_validation: Optional[VendorValidation] = None
    date_validation: Optional[DateValidation] = None
    amount_validation: Optional[AmountValidation] = None
    line_items_validation: List[LineItemValidation] = Field(default_factory=list)
    compliance_issues: List[ComplianceIssue] = Field(default_factory=list)
    financial_summary: Optional[FinancialSummary] = None
    recommendations: Optional[Recommendations] = None

    @field_validator("line_items_validation", "compliance_issues", mode="before")
    @classmethod
    def _null_lists(cls, value):
        return [] if value is None else value

    @property
    def contract_approved(self) -> bool:
        return bool(self.recommendations and self.recommendations.action_required == "APPROVED")

    @property
    def amount_approved(self) -> bool:
        return self.overall_amount_validation == "APPROVED"


class InvoiceRecord(ApiModel):
    """Row of ai_db_schema.invoice_tbl"""
    id: str
    ocr_id: Optional[int] = None
    invoice_number: Optional[str] = None
    invoice_date: Optional[str] = None
    vendor_name: Optional[str] = None
    vendor_tin: Optional[str] = None
    customer_name: Optional[str] = None
    customer_tin: Optional[str] = None
    total_amount: Optional[str] = None
    currency: Optional[str] = None
    vat_amount: Optional[str] = None
    signature_present: Optional[bool] = None
    bir_atp: Optional[bool] = None
    attachment_validation_status: InvoiceStatus = InvoiceStatus.PENDING
    bir_validation_status: InvoiceStatus = InvoiceStatus.PENDING
    contract_validation_status: InvoiceStatus = InvoiceStatus.PENDING
    amount_validation_status: InvoiceStatus = InvoiceStatus.PENDING
    parsed_data: Dict[str, Any] = Field(default_factory=dict)
    rag_validation: Optional[RagValidation] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class InvoiceStatuses(ApiModel):
    attachment_validation_status: InvoiceStatus
    bir_validation_status: InvoiceStatus
    contract_validation_status: InvoiceStatus
    amount_validation_status: InvoiceStatus


class InvoiceValidationOutcome(ApiModel):
    """Result of running the status workflow for one invoice"""
    invoice_id: str
    validation_status: InvoiceStatuses
    document_validation: Optional[ValidationResult] = None
    bir_compliance: Optional[BIRComplianceResult] = None
    rag_validation: Optional[RagValidation] = None
