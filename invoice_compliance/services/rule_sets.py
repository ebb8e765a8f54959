"""Built-in rule sets shipped with the engine"""

from datetime import datetime, timezone
from typing import List

from ..models.rules import (
    CustomPredicate,
    IsTruePredicate,
    MinLengthPredicate,
    NonEmptyStringPredicate,
    NotFutureDatePredicate,
    OneOfPredicate,
    PositiveNumberPredicate,
    PresentPredicate,
    RegistrationType,
    RuleSet,
    RuleSetKind,
    ValidationRule,
    ValidDatePredicate,
)

VAT_STATUSES = ["vatable", "vat_exempt", "zero_rated", "non_vat"]

NON_EMPTY = NonEmptyStringPredicate()
POSITIVE = PositiveNumberPredicate()
IS_TRUE = IsTruePredicate()
TIN = CustomPredicate(name="tin_format")
VALID_DATE = ValidDatePredicate()
VAT_STATUS = OneOfPredicate(values=VAT_STATUSES)


def _rule(field, predicate, message, weight=1) -> ValidationRule:
    return ValidationRule(field=field, predicate=predicate, error_message=message, weight=weight)


# Completeness tier

def _bir_invoice_rules() -> List[ValidationRule]:
    return [
        _rule("form_2307_attached", IS_TRUE, "BIR Form 2307 is required"),
        _rule("form_2307_consistent", IS_TRUE,
              "BIR Form 2307 contents must be aligned with invoice data."),
    ]


def _standard_invoice_rules() -> List[ValidationRule]:
    return [
        _rule("bir_atp", IS_TRUE,
              "BIR Authority to Print (ATP) is required and must be present on the invoice"),
        _rule("signature_present", IS_TRUE, "Authorized signature is required on the invoice"),
        _rule("invoice_number", NON_EMPTY, "Invoice number is required"),
        _rule("vendor_tin", TIN, "Valid vendor TIN is required (format: XXX-XXX-XXX-XXX)"),
        _rule("total_amount", POSITIVE, "Total amount must be greater than zero"),
    ]


def _government_invoice_rules() -> List[ValidationRule]:
    return [
        _rule("bir_atp", IS_TRUE,
              "BIR Authority to Print (ATP) is mandatory for government invoices"),
        _rule("signature_present", IS_TRUE, "Authorized signature is mandatory for government invoices"),
        _rule("invoice_number", NON_EMPTY, "Invoice number is required"),
        _rule("vendor_tin", TIN, "Valid vendor TIN is required for government transactions"),
        _rule("customer_tin", TIN, "Customer TIN is required for government transactions"),
        _rule("vat_status", VAT_STATUS,
              "Valid VAT status is required (vatable, vat_exempt, zero_rated, or non_vat)"),
    ]


def _purchase_order_rules() -> List[ValidationRule]:
    return [
        _rule("bir_atp", IS_TRUE, "BIR Authority to Print (ATP) is required"),
        _rule("signature_present", IS_TRUE, "Authorized signature is required"),
    ]


# BIR tier

def _standard_bir_rules(suffix: str = " (format: XXX-XXX-XXX-XXX)") -> List[ValidationRule]:
    return [
        _rule("invoice_number", NON_EMPTY, "Invoice number is required for BIR compliance", 10),
        _rule("invoice_date", VALID_DATE, "Valid invoice date is required for BIR compliance", 8),
        _rule("vendor_name", NON_EMPTY, "Vendor name is required for BIR compliance", 9),
        _rule("vendor_address", NON_EMPTY, "Vendor address is required for BIR compliance", 7),
        _rule("vendor_tin", TIN, f"Valid vendor TIN is required for BIR compliance{suffix}", 10),
        _rule("customer_name", NON_EMPTY, "Customer name is required for BIR compliance", 8),
        _rule("customer_address", NON_EMPTY, "Customer address is required for BIR compliance", 6),
        _rule("customer_tin", TIN, f"Valid customer TIN is required for BIR compliance{suffix}", 9),
        _rule("total_amount", POSITIVE, "Total amount must be greater than zero for BIR compliance", 10),
    ]


def _enhanced_bir_rules() -> List[ValidationRule]:
    return _standard_bir_rules(suffix="") + [
        _rule("vat_status", VAT_STATUS, "Valid VAT status is required for enhanced BIR compliance", 7),
    ]


def _government_bir_rules() -> List[ValidationRule]:
    return [
        _rule("invoice_number", MinLengthPredicate(length=5),
              "Government invoice number must be at least 5 characters", 10),
        _rule("invoice_date", NotFutureDatePredicate(),
              "Valid invoice date (not in future) is required for government transactions", 8),
        _rule("vendor_name", NON_EMPTY, "Vendor name is required for government transactions", 9),
        _rule("vendor_address", NON_EMPTY, "Vendor address is required for government transactions", 7),
        _rule("vendor_tin", TIN, "Valid vendor TIN is required for government transactions", 10),
        _rule("customer_name", NON_EMPTY, "Customer name is required for government transactions", 8),
        _rule("customer_address", NON_EMPTY, "Customer address is required for government transactions", 6),
        _rule("customer_tin", TIN, "Valid customer TIN is required for government transactions", 9),
        _rule("total_amount", POSITIVE,
              "Total amount must be greater than zero for government transactions", 10),
        _rule("vat_status", VAT_STATUS, "Valid VAT status is required for government transactions", 7),
    ]


def _official_bir_rules() -> List[ValidationRule]:
    return _standard_bir_rules() + [
        _rule("has_invoice_word", IS_TRUE, 'The word "Invoice" must appear on the document', 5),
        _rule("has_serial_number", IS_TRUE, "Invoice must carry a unique serial number", 5),
        _rule("has_vat_label", IS_TRUE, 'A "VAT" or "Non-VAT" label must appear near the vendor TIN', 4),
        _rule("signature_present", IS_TRUE, "Authorized signature is required for BIR compliance", 6),
    ]


def _vat_registered_rules() -> List[ValidationRule]:
    return _standard_bir_rules() + [
        _rule("vat_status", VAT_STATUS, "Valid VAT status is required for VAT-registered sellers", 7),
        _rule("vat_amount", PresentPredicate(), "VAT amount must be stated on VAT-registered invoices", 6),
        _rule("has_vat_label", IS_TRUE, 'The "VAT" label must appear near the vendor TIN', 4),
    ]


def _non_vat_registered_rules() -> List[ValidationRule]:
    return _standard_bir_rules() + [
        _rule("vat_status", VAT_STATUS, "Valid VAT status is required for Non-VAT sellers", 7),
        _rule("has_vat_label", IS_TRUE, 'The "Non-VAT" label must appear near the vendor TIN', 4),
    ]


def _rule_set(id, name, description, kind, rules, minimum_score=85, registration_type=None,
              created_at=None) -> RuleSet:
    return RuleSet(
        id=id,
        name=name,
        description=description,
        kind=kind,
        rules=rules,
        minimum_score=minimum_score,
        registration_type=registration_type,
        created_at=created_at,
        updated_at=created_at,
    )


def builtin_rule_sets() -> List[RuleSet]:
    """Fresh copies of every built-in rule set, in registration order."""
    now = datetime.now(timezone.utc)
    completeness = RuleSetKind.COMPLETENESS
    bir = RuleSetKind.BIR

    return [
        _rule_set("bir_invoice", "BIR 2307 Invoice Validation",
                  "BIR 2307 existence validation for invoices",
                  completeness, _bir_invoice_rules(), created_at=now),
        _rule_set("standard_invoice", "Standard Invoice Validation",
                  "Basic validation for standard Philippine invoices",
                  completeness, _standard_invoice_rules(), created_at=now),
        _rule_set("government_invoice", "Government Invoice Validation",
                  "Enhanced validation for government-related invoices",
                  completeness, _government_invoice_rules(), created_at=now),
        _rule_set("purchase_order_based", "Purchase Order Based Validation",
                  "Validation for invoices that require PO matching",
                  completeness, _purchase_order_rules(), created_at=now),
        _rule_set("standard_bir_compliance", "Standard BIR Compliance",
                  "Basic BIR compliance validation for Philippine invoices",
                  bir, _standard_bir_rules(), minimum_score=85, created_at=now),
        _rule_set("enhanced_bir_compliance", "Enhanced BIR Compliance",
                  "Comprehensive BIR compliance validation with line item details",
                  bir, _enhanced_bir_rules(), minimum_score=90, created_at=now),
        _rule_set("government_bir_compliance", "Government BIR Compliance",
                  "Strict BIR compliance for government transactions",
                  bir, _government_bir_rules(), minimum_score=95, created_at=now),
        _rule_set("official_bir_compliance", "Official BIR Compliance",
                  "BIR invoice requirements including document markings and signature",
                  bir, _official_bir_rules(), minimum_score=90, created_at=now),
        _rule_set("vat_registered_bir_compliance", "VAT-Registered BIR Compliance",
                  "BIR compliance for invoices issued by VAT-registered sellers",
                  bir, _vat_registered_rules(), minimum_score=90,
                  registration_type=RegistrationType.VAT_REGISTERED, created_at=now),
        _rule_set("non_vat_registered_bir_compliance", "Non-VAT-Registered BIR Compliance",
                  "BIR compliance for invoices issued by Non-VAT-registered sellers",
                  bir, _non_vat_registered_rules(), minimum_score=90,
                  registration_type=RegistrationType.NON_VAT_REGISTERED, created_at=now),
    ]
