"""Invoice record routes: upload, listing and the validation status workflow"""

import time
from typing import Optional

from fastapi import APIRouter, File, Form, HTTPException, Query, UploadFile

from ..exceptions import ComplianceEngineError, InvoiceNotFoundError
from ..models.schemas import InvoiceListResponse, InvoiceResponse, InvoiceValidationResponse
from ..services.invoice_service import invoice_repository, invoice_workflow
from ..services.upload_service import upload_service
from ..utils.logging import logger
from .errors import to_http_exception

router = APIRouter(prefix="/api/v1/invoices", tags=["Invoices"])


@router.get("", response_model=InvoiceListResponse)
async def list_invoices(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=25, ge=1, le=100, alias="pageSize"),
):
    records, total = await invoice_repository.list(page=page, page_size=page_size)
    return InvoiceListResponse(success=True, data=records, total=total, page=page, page_size=page_size)


@router.get("/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(invoice_id: str):
    record = await invoice_repository.get(invoice_id)
    if record is None:
        raise to_http_exception(InvoiceNotFoundError(invoice_id))
    return InvoiceResponse(success=True, data=record)


@router.post("/{invoice_id}/validate", response_model=InvoiceValidationResponse)
async def validate_invoice(invoice_id: str):
    """
    Run the pending or failed validations of an invoice.

    Statuses that already succeeded are left alone.
    """
    try:
        outcome = await invoice_workflow.validate(invoice_id)
    except ComplianceEngineError as exc:
        raise to_http_exception(exc)
    return InvoiceValidationResponse(success=True, data=outcome)


@router.post("/upload", response_model=InvoiceResponse, status_code=201)
async def upload_invoice(file: UploadFile = File(...), title: Optional[str] = Form(default=None)):
    """Upload an invoice file to Paperless and create its record"""
    start_time = time.time()
    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")

    try:
        record = await upload_service.upload_invoice(file.filename or "invoice.pdf", content, title=title)
    except ComplianceEngineError as exc:
        raise to_http_exception(exc)

    logger.log_step("invoice_upload_request_completed", {
        "invoice_id": record.id,
        "process_time": time.time() - start_time
    })
    return InvoiceResponse(success=True, data=record)
