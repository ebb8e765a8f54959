"""Extracted invoice record schemas"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Document flags the BIR tier requires as explicit booleans
BIR_DOCUMENT_FLAGS = (
    "has_invoice_word",
    "has_serial_number",
    "has_qty_unit_desc",
    "has_vat_label",
    "has_exempt_label",
    "has_sales_breakdown",
    "signature_present",
    "bir_atp",
)


class LineItem(BaseModel):
    """One invoice line as extracted from the document"""

    model_config = ConfigDict(strict=True, extra="allow")

    description: str
    quantity: float
    unit_price: Optional[float] = None
    unit_cost: Optional[float] = None
    line_total: float
    vat_amount: Optional[float] = None

    @model_validator(mode="after")
    def _require_unit_amount(self):
        if self.unit_price is None and self.unit_cost is None:
            raise ValueError("unit_price or unit_cost is required")
        return self

    @property
    def unit_amount(self) -> float:
        """Unit cost when given, else unit price."""
        return self.unit_cost if self.unit_cost is not None else self.unit_price

    @property
    def unit_amount_field(self) -> str:
        return "unit_cost" if self.unit_cost is not None else "unit_price"


class InvoiceData(BaseModel):
    """
    Invoice record as produced by field extraction.

    Every field may be absent or null, except boolean flags which may be
    absent but never null. Unknown keys are kept so that configurable rules
    can reference them.
    """

    model_config = ConfigDict(strict=True, extra="allow")

    # Invoice details
    invoice_number: Optional[str] = None
    invoice_date: Optional[str] = None
    due_date: Optional[str] = None
    serial_number: Optional[str] = None
    invoice_type: Optional[str] = None

    # Vendor (seller)
    vendor_name: Optional[str] = None
    vendor_address: Optional[str] = None
    vendor_tin: Optional[str] = None
    vendor_business_style: Optional[str] = None

    # Customer (buyer)
    customer_name: Optional[str] = None
    customer_address: Optional[str] = None
    customer_tin: Optional[str] = None

    # Amounts
    total_amount: Optional[float] = None
    subtotal: Optional[float] = None
    vatable_sales: Optional[float] = None
    vat_exempt_sales: Optional[float] = None
    zero_rated_sales: Optional[float] = None
    percentage_tax_sales: Optional[float] = None
    net_amount: Optional[float] = None
    vat_amount: Optional[float] = None
    discount_amount: Optional[float] = None
    currency: Optional[str] = None

    # VAT classification
    vat_status: Optional[str] = None
    vat_registration: Optional[str] = None

    line_items: List[LineItem] = Field(default_factory=list)

    # Document control
    document_control_type: Optional[str] = None
    document_control_number: Optional[str] = None
    document_control_date: Optional[str] = None
    atp_number: Optional[str] = None
    ocn_number: Optional[str] = None
    ptu_number: Optional[str] = None
    accn_number: Optional[str] = None

    # Document flags
    has_invoice_word: bool = None
    has_serial_number: bool = None
    has_qty_unit_desc: bool = None
    has_vat_label: bool = None
    has_exempt_label: bool = None
    has_sales_breakdown: bool = None
    signature_present: bool = None
    bir_atp: bool = None

    # Attachments
    form_2307_attached: bool = None
    form_2307_consistent: Optional[bool] = None

    rag_validation: Optional[Dict[str, Any]] = None

    @field_validator("line_items", mode="before")
    @classmethod
    def _null_line_items(cls, value):
        return [] if value is None else value

    def value_of(self, field: str) -> Any:
        """Value of a declared or extra field, None when absent."""
        if field in type(self).model_fields:
            return getattr(self, field)
        return (self.model_extra or {}).get(field)


class BIRInvoiceData(InvoiceData):
    """Invoice record for BIR compliance: document flags are mandatory booleans"""

    has_invoice_word: bool
    has_serial_number: bool
    has_qty_unit_desc: bool
    has_vat_label: bool
    has_exempt_label: bool
    has_sales_breakdown: bool
    signature_present: bool
    bir_atp: bool
