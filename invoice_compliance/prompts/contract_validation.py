"""Contract validation prompt sent to the Paperless-AI RAG endpoint"""

CONTRACT_VALIDATION_PROMPT = """
# Invoice Validation
Validate invoice {invoice_number} against the vendor contract retrieved from the document store.

## Tasks
1. Verify vendor authorization and contract period
2. Validate pricing against contract rates
3. Check line item quantities and calculations
4. Recalculate subtotal, VAT and total amounts

## Output
Answer with one JSON object:
{{
  "ocr_id": "string",
  "validation_timestamp": "ISO 8601",
  "contract_compliant": boolean,
  "overall_status": "APPROVED" | "REJECTED" | "REQUIRES_REVIEW",
  "overall_amount_validation": "APPROVED" | "REJECTED",
  "confidence_score": number,
  "vendor_validation": {{"vendor_authorized": boolean, "contract_active": boolean, "contract_reference": "string or null"}},
  "date_validation": {{"within_contract_period": boolean, "due_date_compliant": boolean}},
  "amount_validation": {{
    "subtotal_correct": boolean, "subtotal_invoice": number or null, "subtotal_calculated": number or null,
    "subtotal_variance": number or null, "vat_correct": boolean, "vat_calculated": number or null,
    "vat_variance": number or null, "total_correct": boolean, "total_invoice": number or null,
    "total_calculated": number or null, "total_variance": number or null
  }},
  "line_items_validation": [{{
    "line_number": number, "description": "string", "quantity_invoice": number,
    "unit_price_invoice": number, "line_total_invoice": number, "contract_unit_price": number or null,
    "contract_rate_compliant": boolean, "price_variance_percentage": number or null,
    "quantity_within_limits": boolean, "line_total_correct": boolean, "line_total_calculated": number,
    "item_authorized": boolean, "item_status": "APPROVED" | "REJECTED" | "REQUIRES_REVIEW",
    "issues": ["string"]
  }}],
  "compliance_issues": [{{
    "severity": "CRITICAL" | "HIGH" | "MEDIUM" | "LOW",
    "category": "PRICING" | "QUANTITY" | "AUTHORIZATION" | "CALCULATION" | "DATE" | "OTHER",
    "description": "string", "expected_value": "string, number or null", "actual_value": "string, number or null"
  }}],
  "financial_summary": {{
    "compliant_items_count": number, "non_compliant_items_count": number,
    "total_variance_amount": number, "approved_amount": number or null, "disputed_amount": number or null
  }},
  "recommendations": {{
    "action_required": "APPROVED" | "REJECT" | "REQUEST_CLARIFICATION" | "ADJUST_AMOUNT",
    "suggested_adjustment": number or null,
    "next_steps": ["string"]
  }}
}}

## Rules
- Unit price tolerance: ±2%
- Quantity limit: at most 110% of the contract quantity
- VAT rate: 12% unless the contract specifies otherwise
- Round to 2 decimal places

## Status logic
- overall_amount_validation is "APPROVED" only if every amount_validation check is correct and
  every line item has line_total_correct and contract_rate_compliant; otherwise "REJECTED"
- overall_status is "APPROVED" if all validations pass, "REJECTED" if any CRITICAL issue exists,
  "REQUIRES_REVIEW" for MEDIUM/LOW issues or confidence below 0.7
- confidence_score (0-1) reflects contract match quality and data completeness
"""


def build_contract_validation_prompt(invoice_number: str) -> str:
    return CONTRACT_VALIDATION_PROMPT.format(invoice_number=invoice_number)
