"""BIR compliance validation with weighted scoring and business rules"""

import re
from datetime import date
from typing import Any, List, Optional, Tuple

from ..models.invoice import BIRInvoiceData
from ..models.results import (
    BIRComplianceResult,
    FieldCompletenessReport,
    RequiredFieldStatus,
    Severity,
    ValidationIssue,
    ValidationWarning,
)
from ..models.rules import RegistrationType, RuleSet, RuleSetKind
from ..utils.dates import one_year_before, parse_date
from ..utils.logging import logger
from ..utils.numbers import amounts_differ, percentage
from .line_items import check_line_items, line_item_reconciles
from .predicates import evaluate_predicate
from .rule_registry import RuleSetRepository, resolve_rule_set, rule_set_repository
from .schema_validator import InvoiceSchemaError, parse_invoice_record

# Share of the score reserved for line-item completeness
LINE_ITEMS_WEIGHT = 15
HIGH_VALUE_THRESHOLD = 1_000_000

MANUAL_CONTROL_TYPES = {"manual", "atp", "ocn"}
SYSTEM_CONTROL_TYPES = {"system", "ptu", "accn"}

TIN_GUIDELINE = "TIN should be 9-12 digits in XXX-XXX-XXX-XXX format"

Findings = Tuple[List[ValidationIssue], List[ValidationWarning]]


def _critical(field: str, message: str, requirement: str) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        message=message,
        severity=Severity.CRITICAL,
        bir_requirement=requirement
    )


def _has_text(value: Optional[str]) -> bool:
    return bool(value and value.strip())


class BIRComplianceService:
    """Scores an extracted invoice against a BIR compliance rule set"""

    def __init__(self, repository: Optional[RuleSetRepository] = None):
        self.repository = repository or rule_set_repository

    async def validate_bir_compliance(
        self,
        invoice_data: Any,
        rule_set_id: str = "standard_bir_compliance",
        today: Optional[date] = None
    ) -> BIRComplianceResult:
        """
        Validate invoice data for BIR compliance.

        The score weighs every rule plus a fixed line-item block. The
        invoice is compliant only when the score reaches the rule set's
        minimum and no error was raised, so a single unresolved business
        rule violation fails an otherwise perfect invoice.

        Raises:
            UnknownRuleSetError: rule_set_id is not an active BIR set
        """
        rule_set = await resolve_rule_set(self.repository, rule_set_id, RuleSetKind.BIR)
        today = today or date.today()

        try:
            record = parse_invoice_record(invoice_data, BIRInvoiceData)
        except InvoiceSchemaError as exc:
            return BIRComplianceResult(
                is_compliant=False,
                errors=[exc.as_issue("Valid data format is required for BIR processing")],
                warnings=[],
                score=0,
                summary="Invoice data format validation failed",
                field_completeness=FieldCompletenessReport(),
                minimum_score=rule_set.minimum_score,
                rule_set_id=rule_set.id,
            )

        errors: List[ValidationIssue] = []
        warnings: List[ValidationWarning] = []
        required_fields: List[RequiredFieldStatus] = []
        total_weight = 0.0
        achieved_weight = 0.0

        for rule in rule_set.rules:
            value = record.value_of(rule.field)
            passed = evaluate_predicate(rule.predicate, value, today=today)
            total_weight += rule.weight
            required_fields.append(RequiredFieldStatus(field=rule.field, present=passed, value=value))

            if passed:
                achieved_weight += rule.weight
            elif rule.required:
                errors.append(ValidationIssue(
                    field=rule.field,
                    message=rule.error_message,
                    severity=rule.severity,
                    bir_requirement=f"BIR requires {rule.field} for valid invoice documentation"
                ))
            else:
                warnings.append(ValidationWarning(
                    field=rule.field,
                    message=rule.error_message,
                    suggestion=f"Provide a valid {rule.field} value",
                    bir_guideline="Optional BIR field improves documentation quality"
                ))

        # Line-item block
        completeness = check_line_items(record.line_items, strict=True)
        total_weight += LINE_ITEMS_WEIGHT
        if completeness.total_items == 0:
            errors.append(_critical(
                "line_items",
                "Line items are required for BIR compliance",
                "BIR requires detailed line items for invoice validation"
            ))
        else:
            achieved_weight += completeness.complete_items / completeness.total_items * LINE_ITEMS_WEIGHT
            if completeness.incomplete_items:
                warnings.append(ValidationWarning(
                    field="line_items",
                    message=f"{len(completeness.incomplete_items)} line items are incomplete",
                    suggestion="Ensure all line items have description, quantity, unit cost, and an accurate line_total",
                    bir_guideline="Complete line item details improve BIR compliance"
                ))

        for findings in (
            self._check_line_item_requirements(record),
            self._check_vat_registration(record, rule_set),
            self._check_document_control(record),
            self._perform_advisory_checks(record, today),
        ):
            errors.extend(findings[0])
            warnings.extend(findings[1])

        score = percentage(achieved_weight, total_weight)
        is_compliant = score >= rule_set.minimum_score and len(errors) == 0
        summary = self._generate_summary(
            is_compliant, len(errors), len(warnings), score, rule_set.name, rule_set.minimum_score
        )

        logger.log_step("bir_compliance_validation_completed", {
            "rule_set_id": rule_set.id,
            "invoice_number": record.invoice_number,
            "is_compliant": is_compliant,
            "score": score,
            "minimum_score": rule_set.minimum_score,
            "errors_count": len(errors),
            "warnings_count": len(warnings)
        })

        return BIRComplianceResult(
            is_compliant=is_compliant,
            errors=errors,
            warnings=warnings,
            score=score,
            summary=summary,
            field_completeness=FieldCompletenessReport(
                required_fields=required_fields,
                line_items_completeness=completeness,
                overall_completeness=score
            ),
            minimum_score=rule_set.minimum_score,
            rule_set_id=rule_set.id,
        )

    def _check_line_item_requirements(self, record: BIRInvoiceData) -> Findings:
        """Each line needs quantity > 0, unit cost > 0 and a description."""
        errors: List[ValidationIssue] = []
        warnings: List[ValidationWarning] = []
        requirement = "BIR requires quantity, unit cost and description for every line item"

        for index, item in enumerate(record.line_items):
            line = index + 1
            if item.quantity <= 0:
                errors.append(_critical(
                    f"line_items[{index}].quantity",
                    f"Line item {line} quantity must be greater than zero",
                    requirement
                ))
            if item.unit_amount <= 0:
                errors.append(_critical(
                    f"line_items[{index}].unit_cost",
                    f"Line item {line} unit cost must be greater than zero",
                    requirement
                ))
            if not _has_text(item.description):
                errors.append(_critical(
                    f"line_items[{index}].description",
                    f"Line item {line} description is required",
                    requirement
                ))
            if not line_item_reconciles(item):
                warnings.append(ValidationWarning(
                    field=f"line_items[{index}].line_total",
                    message=(
                        f"Line item {line} total ₱{item.line_total:,.2f} does not match "
                        f"quantity × unit cost (₱{item.quantity * item.unit_amount:,.2f})"
                    ),
                    suggestion="Verify line item arithmetic",
                    bir_guideline="Line totals must equal quantity multiplied by unit cost"
                ))

        return errors, warnings

    def _registration_type(self, record: BIRInvoiceData, rule_set: RuleSet) -> Optional[RegistrationType]:
        if record.vat_registration:
            try:
                return RegistrationType(record.vat_registration.strip().lower())
            except ValueError:
                return None
        return rule_set.registration_type

    def _check_vat_registration(self, record: BIRInvoiceData, rule_set: RuleSet) -> Findings:
        """VAT-registered and Non-VAT-registered invoices carry mutually exclusive markings."""
        errors: List[ValidationIssue] = []
        warnings: List[ValidationWarning] = []
        registration = self._registration_type(record, rule_set)

        if registration is None and record.vat_registration:
            warnings.append(ValidationWarning(
                field="vat_registration",
                message=f"Unrecognized VAT registration '{record.vat_registration}'",
                suggestion="Use vat_registered or non_vat_registered"
            ))

        if registration == RegistrationType.VAT_REGISTERED:
            if not record.has_exempt_label:
                errors.append(_critical(
                    "has_exempt_label",
                    'VAT-registered invoice must show the "EXEMPT" statement',
                    "BIR requires VAT-registered sellers to mark exempt sales on the invoice face"
                ))
            for index, item in enumerate(record.line_items):
                if item.vat_amount is not None and amounts_differ(item.vat_amount, 0.0, 0.0):
                    errors.append(_critical(
                        f"line_items[{index}].vat_amount",
                        f"Line item {index + 1} carries a VAT amount, which conflicts with the EXEMPT statement",
                        "BIR does not allow VAT amounts on exempt line items"
                    ))

        elif registration == RegistrationType.NON_VAT_REGISTERED:
            if record.vat_amount is None:
                errors.append(_critical(
                    "vat_amount",
                    "Non-VAT-registered invoice must state the VAT amount, even when zero",
                    "BIR requires the VAT amount field on Non-VAT invoices"
                ))
            if record.has_exempt_label:
                errors.append(_critical(
                    "has_exempt_label",
                    'Non-VAT-registered invoice must not carry the "EXEMPT" statement',
                    "BIR reserves the EXEMPT statement for VAT-registered sellers"
                ))

        return errors, warnings

    def _check_document_control(self, record: BIRInvoiceData) -> Findings:
        """Manual invoices need an ATP/OCN number, system invoices a PTU/ACCN number."""
        errors: List[ValidationIssue] = []
        warnings: List[ValidationWarning] = []
        control_type = (record.document_control_type or "").strip().lower()
        if not control_type:
            return errors, warnings

        if control_type in MANUAL_CONTROL_TYPES:
            numbers = (record.atp_number, record.ocn_number, record.document_control_number)
            if not any(_has_text(number) for number in numbers):
                errors.append(_critical(
                    "document_control_number",
                    "Manually printed invoice requires an ATP or OCN control number",
                    "BIR requires an Authority to Print / Official Control Number on manual invoices"
                ))
        elif control_type in SYSTEM_CONTROL_TYPES:
            numbers = (record.ptu_number, record.accn_number, record.document_control_number)
            if not any(_has_text(number) for number in numbers):
                errors.append(_critical(
                    "document_control_number",
                    "System-generated invoice requires a PTU or ACCN control number",
                    "BIR requires a Permit to Use / Acknowledgement Certificate number on system invoices"
                ))
        else:
            warnings.append(ValidationWarning(
                field="document_control_type",
                message=f"Unrecognized document control type '{record.document_control_type}'",
                suggestion="Use manual (ATP/OCN) or system (PTU/ACCN)"
            ))

        return errors, warnings

    def _perform_advisory_checks(self, record: BIRInvoiceData, today: date) -> Findings:
        """TIN length, invoice date range, high-value and serial-number heuristics."""
        errors: List[ValidationIssue] = []
        warnings: List[ValidationWarning] = []

        for field, label in (("vendor_tin", "Vendor"), ("customer_tin", "Customer")):
            value = record.value_of(field)
            if not value:
                continue
            digits = re.sub(r"\D", "", value)
            if len(digits) < 9 or len(digits) > 12:
                warnings.append(ValidationWarning(
                    field=field,
                    message=f"{label} TIN length may not comply with BIR standards",
                    suggestion="Verify TIN format with BIR guidelines",
                    bir_guideline=TIN_GUIDELINE
                ))

        invoice_date = parse_date(record.invoice_date)
        if invoice_date:
            if invoice_date > today:
                errors.append(_critical(
                    "invoice_date",
                    "Invoice date cannot be in the future",
                    "BIR requires valid historical invoice dates"
                ))
            elif invoice_date < one_year_before(today):
                warnings.append(ValidationWarning(
                    field="invoice_date",
                    message="Invoice date is more than one year old",
                    suggestion="Verify if this is a current transaction",
                    bir_guideline="Old invoices may require additional BIR documentation"
                ))

        if record.total_amount is not None and record.total_amount > HIGH_VALUE_THRESHOLD:
            warnings.append(ValidationWarning(
                field="total_amount",
                message="High-value transaction detected",
                suggestion="Ensure proper documentation for large transactions",
                bir_guideline="Large transactions may require additional BIR reporting"
            ))

        if _has_text(record.serial_number) and not re.search(r"\d", record.serial_number):
            warnings.append(ValidationWarning(
                field="serial_number",
                message="Serial number should contain at least one digit",
                suggestion="Verify the serial number printed on the invoice",
                bir_guideline="BIR invoices are serially numbered"
            ))

        return errors, warnings

    def _generate_summary(
        self,
        is_compliant: bool,
        error_count: int,
        warning_count: int,
        score: int,
        rule_set_name: str,
        minimum_score: int
    ) -> str:
        if is_compliant:
            details = (
                f"{warning_count} recommendations for improvement."
                if warning_count else "Fully compliant with BIR requirements."
            )
            return f"BIR Compliance PASSED ({score}% complete) using {rule_set_name} standards. {details}"
        return (
            f"BIR Compliance FAILED with {error_count} critical issues and {warning_count} warnings "
            f"({score}% complete, minimum required: {minimum_score}%) using {rule_set_name} standards."
        )


# Global BIR compliance service instance
bir_compliance_service = BIRComplianceService()
