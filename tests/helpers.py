"""Sample invoice records shared by the test modules"""

import copy
from datetime import date

TODAY = date(2024, 6, 1)

STANDARD_INVOICE = {
    "invoice_number": "BIR-2024-001",
    "vendor_tin": "123-456-789-000",
    "total_amount": 11200.00,
    "signature_present": True,
    "bir_atp": True,
    "line_items": [
        {"description": "Consulting", "quantity": 1, "unit_price": 10000, "line_total": 10000},
    ],
}

BIR_INVOICE = {
    "invoice_number": "INV-2024-0042",
    "invoice_date": "2024-03-15",
    "vendor_name": "Acme Trading Corp.",
    "vendor_address": "123 Ayala Ave, Makati City",
    "vendor_tin": "123-456-789-000",
    "customer_name": "Juan Dela Cruz Enterprises",
    "customer_address": "45 Rizal St, Quezon City",
    "customer_tin": "987-654-321-000",
    "total_amount": 11200.00,
    "subtotal": 10000.00,
    "vatable_sales": 10000.00,
    "vat_amount": 1200.00,
    "vat_status": "vatable",
    "line_items": [
        {"description": "Consulting", "quantity": 2, "unit_cost": 2500.00, "line_total": 5000.00},
        {"description": "Software license", "quantity": 1, "unit_cost": 5000.00, "line_total": 5000.00},
    ],
    "has_invoice_word": True,
    "has_serial_number": True,
    "has_qty_unit_desc": True,
    "has_vat_label": True,
    "has_exempt_label": False,
    "has_sales_breakdown": True,
    "signature_present": True,
    "bir_atp": True,
}


def standard_invoice(**overrides):
    record = copy.deepcopy(STANDARD_INVOICE)
    record.update(overrides)
    return record


def bir_invoice(**overrides):
    record = copy.deepcopy(BIR_INVOICE)
    record.update(overrides)
    return record
