"""Field extraction prompt for Philippine sales invoices"""

EXTRACTION_SYSTEM_PROMPT = "You are a Philippine invoice data extraction specialist. Answer with JSON only."

INVOICE_EXTRACTION_PROMPT = """
Extract structured data from a Philippine sales invoice into JSON following BIR requirements.

## Context
- Tax: VAT at 12%, VAT-exempt, zero-rated, or non-VAT
- Currency: PHP (₱) by default. ISO codes: PHP, USD, EUR
- TIN format: XXX-XXX-XXX-XXX or XXXXXXXXX
- Dates: convert to YYYY-MM-DD

## Field rules

Vendor (seller)
- vendor_name: legal or business name with suffix (Inc., Corp., OPC, ...)
- vendor_address: "Unit/Floor/Building, Street, Barangay, City, Province ZIP"
- vendor_tin: tax id with or without dashes
- vendor_business_style: line of business
- vat_registration: "vat_registered" when the TIN carries a "VAT" label,
  "non_vat_registered" when it carries "Non-VAT", otherwise null

Customer (buyer)
- customer_name: from "Sold to:", "Billed to:", "Customer:"
- customer_address, customer_tin

Invoice details
- invoice_number: from "Invoice No.:", "SI No.:", "OR No.:"
- invoice_date: issue date
- due_date: from "Due Date:" or computed from terms (Net 30 = +30 days)

Amounts (numbers only, no symbols or thousands separators)
- total_amount, subtotal, vatable_sales, vat_amount (0 for exempt or zero-rated),
  vat_exempt_sales, zero_rated_sales, percentage_tax_sales, net_amount, currency
- subtotal: sum of line_total before any discount
- discount_amount: total discount as a positive number, null when none

Line items: every product or service as
  {"description": string, "quantity": number (1 if missing), "unit_price": number,
   "line_total": number, "vat_amount": number or null}
Discounts are never line items; report them in discount_amount.

Classification
- invoice_type: "goods", "services" or "mixed"
- vat_status: "vatable", "vat_exempt", "zero_rated" or "non_vat"

BIR document fields
- has_invoice_word: "Invoice" or "Billing Invoice" appears on the document
- has_serial_number / serial_number: unique serial number and its value
- has_qty_unit_desc: line items show quantity, unit price and description
- has_vat_label: "VAT" or "Non-VAT" label near the vendor TIN
- has_exempt_label: "EXEMPT" printed on the invoice face
- has_sales_breakdown: VAT, exempt and zero-rated sales shown separately
- document_control_type: "ATP", "OCN", "PTU", "ACCN" or null
- document_control_number, document_control_date
- atp_number, ocn_number, ptu_number, accn_number: the matching certificate numbers if printed
- signature_present: handwritten, printed or digital signature exists
- bir_atp: an Authority to Print reference is printed

Attachments
- form_2307_attached: BIR Form 2307 appears in the document text
- form_2307_consistent: Form 2307 matches the invoice (TIN, amounts, dates); null when not attached

## Missing data
- Use null for missing values (not "" and not 0 unless explicitly zero)
- Booleans are only true or false

## Checks before answering
- vatable_sales × 0.12 ≈ vat_amount (±0.5)
- sum of line_total ≈ subtotal (±1)
- dates in YYYY-MM-DD, numbers without symbols, valid JSON

Return ONLY one JSON object with exactly these keys:
invoice_number, invoice_date, due_date, vendor_name, vendor_address, vendor_tin,
vendor_business_style, vat_registration, customer_name, customer_address, customer_tin,
total_amount, subtotal, vatable_sales, vat_exempt_sales, zero_rated_sales,
percentage_tax_sales, net_amount, vat_amount, discount_amount, currency, invoice_type, vat_status,
line_items, has_invoice_word, has_serial_number, serial_number, has_qty_unit_desc,
has_vat_label, has_exempt_label, has_sales_breakdown, document_control_type,
document_control_number, document_control_date, atp_number, ocn_number, ptu_number,
accn_number, signature_present, bir_atp, form_2307_attached, form_2307_consistent

## Invoice document
"""


def build_extraction_prompt(invoice_text: str) -> str:
    return f"{INVOICE_EXTRACTION_PROMPT}\n{invoice_text}"
