"""Completeness / format validation of extracted invoice records"""

from datetime import date
from typing import Any, List, Optional, Tuple

from ..models.invoice import InvoiceData
from ..models.results import ValidationIssue, ValidationResult, ValidationWarning
from ..models.rules import RuleSetKind
from ..utils.dates import parse_date
from ..utils.logging import logger
from ..utils.numbers import amounts_differ, percentage
from .line_items import line_item_reconciles
from .predicates import evaluate_predicate
from .rule_registry import RuleSetRepository, resolve_rule_set, rule_set_repository
from .schema_validator import InvoiceSchemaError, parse_invoice_record

VAT_RATE = 0.12
TOTALS_TOLERANCE = 1.0  # ₱1


class ValidationService:
    """Runs a completeness rule set against an extracted invoice record"""

    def __init__(self, repository: Optional[RuleSetRepository] = None):
        self.repository = repository or rule_set_repository

    async def validate_invoice_data(
        self,
        invoice_data: Any,
        rule_set_id: str = "standard_invoice",
        today: Optional[date] = None
    ) -> ValidationResult:
        """
        Validate invoice data against a completeness rule set.

        Every rule counts equally towards the score. Arithmetic and date
        heuristics only ever add warnings. The record is valid when no
        rule produced an error, whatever the score.

        Raises:
            UnknownRuleSetError: rule_set_id is not an active completeness set
        """
        rule_set = await resolve_rule_set(self.repository, rule_set_id, RuleSetKind.COMPLETENESS)

        try:
            record = parse_invoice_record(invoice_data, InvoiceData)
        except InvoiceSchemaError as exc:
            return ValidationResult(
                is_valid=False,
                errors=[exc.as_issue()],
                warnings=[],
                score=0,
                summary="Invoice data format validation failed",
                rule_set_id=rule_set.id,
            )

        errors: List[ValidationIssue] = []
        warnings: List[ValidationWarning] = []
        passed_rules = 0

        for rule in rule_set.rules:
            value = record.value_of(rule.field)
            if evaluate_predicate(rule.predicate, value, today=today):
                passed_rules += 1
            elif rule.required:
                errors.append(ValidationIssue(
                    field=rule.field,
                    message=rule.error_message,
                    severity=rule.severity
                ))
            else:
                warnings.append(ValidationWarning(
                    field=rule.field,
                    message=rule.error_message,
                    suggestion=f"Provide a valid {rule.field} value"
                ))

        extra_errors, extra_warnings = self._perform_additional_validations(record, today or date.today())
        errors.extend(extra_errors)
        warnings.extend(extra_warnings)

        score = percentage(passed_rules, len(rule_set.rules))
        is_valid = len(errors) == 0
        summary = self._generate_summary(is_valid, len(errors), len(warnings), score, rule_set.name)

        logger.log_step("completeness_validation_completed", {
            "rule_set_id": rule_set.id,
            "invoice_number": record.invoice_number,
            "is_valid": is_valid,
            "score": score,
            "errors_count": len(errors),
            "warnings_count": len(warnings)
        })

        return ValidationResult(
            is_valid=is_valid,
            errors=errors,
            warnings=warnings,
            score=score,
            summary=summary,
            rule_set_id=rule_set.id,
        )

    def _perform_additional_validations(
        self,
        record: InvoiceData,
        today: date
    ) -> Tuple[List[ValidationIssue], List[ValidationWarning]]:
        """Arithmetic and date heuristics. Warnings only at this tier."""
        errors: List[ValidationIssue] = []
        warnings: List[ValidationWarning] = []

        # VAT = vatable sales x 12%
        if record.vat_status == "vatable" and record.vatable_sales is not None and record.vat_amount is not None:
            expected_vat = round(record.vatable_sales * VAT_RATE, 2)
            if amounts_differ(expected_vat, record.vat_amount, TOTALS_TOLERANCE):
                warnings.append(ValidationWarning(
                    field="vat_amount",
                    message=f"VAT calculation mismatch. Expected: ₱{expected_vat:,.2f}, Actual: ₱{record.vat_amount:,.2f}",
                    suggestion="Verify VAT calculation: vatable_sales × 12%"
                ))

        if record.line_items:
            calculated_subtotal = round(sum(item.line_total for item in record.line_items), 2)
            if record.subtotal is not None and amounts_differ(calculated_subtotal, record.subtotal, TOTALS_TOLERANCE):
                warnings.append(ValidationWarning(
                    field="subtotal",
                    message=f"Subtotal mismatch. Calculated: ₱{calculated_subtotal:,.2f}, Stated: ₱{record.subtotal:,.2f}",
                    suggestion="Verify line item calculations"
                ))

            for index, item in enumerate(record.line_items):
                if not line_item_reconciles(item):
                    warnings.append(ValidationWarning(
                        field=f"line_items[{index}].line_total",
                        message=(
                            f"Line item {index + 1} total ₱{item.line_total:,.2f} does not match "
                            f"quantity × unit price (₱{item.quantity * item.unit_amount:,.2f})"
                        ),
                        suggestion="Verify line item quantity, unit price and total"
                    ))

        invoice_date = parse_date(record.invoice_date)
        if invoice_date and invoice_date > today:
            warnings.append(ValidationWarning(
                field="invoice_date",
                message="Invoice date is in the future",
                suggestion="Verify invoice date accuracy"
            ))

        return errors, warnings

    def _generate_summary(
        self,
        is_valid: bool,
        error_count: int,
        warning_count: int,
        score: int,
        rule_set_name: str
    ) -> str:
        if is_valid:
            details = f"{warning_count} warnings found." if warning_count else "No issues detected."
            return f"Invoice validation passed ({score}% complete) using {rule_set_name} rules. {details}"
        return (
            f"Invoice validation failed with {error_count} critical errors and {warning_count} warnings "
            f"({score}% complete) using {rule_set_name} rules."
        )


# Global validation service instance
validation_service = ValidationService()
