"""Completeness validation routes"""

import time
from typing import Optional

from fastapi import APIRouter, Request

from ..config import settings
from ..exceptions import ComplianceEngineError
from ..models.batch import BatchMode
from ..models.rules import RuleSetKind
from ..models.schemas import (
    DocumentValidateRequest,
    HealthResponse,
    RuleSetCatalogue,
    RuleSetInfo,
    ValidateRequest,
    ValidationResponse,
)
from ..services.batch_service import DEFAULT_RULE_SETS, batch_orchestrator
from ..services.rule_registry import rule_set_repository
from ..services.validation_service import validation_service
from ..utils.database import db_manager
from ..utils.logging import logger
from .errors import to_http_exception

router = APIRouter(prefix="/api/v1", tags=["Validation"])

DEFAULT_RULE_SET = DEFAULT_RULE_SETS[BatchMode.VALIDATION]


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint"""
    return HealthResponse(
        status="healthy",
        service=settings.SERVICE_NAME,
        version=settings.SERVICE_VERSION,
        rule_set_store=settings.RULE_SET_STORE,
        database_connected=db_manager.is_connected,
    )


@router.post("/document/validate", response_model=ValidationResponse)
async def validate_document_data(request: Request, body: ValidateRequest):
    """
    Validate extracted invoice data against a completeness rule set.

    The full result is returned even when validation fails, so clients can
    show why. Body: {"invoiceData": {...}, "ruleSetName": "standard_invoice"}
    """
    start_time = time.time()
    rule_set_id = body.rule_set_name or DEFAULT_RULE_SET

    logger.log_step("document_validation_request_received", {
        "client": request.client.host if request.client else "unknown",
        "rule_set_id": rule_set_id
    })

    try:
        result = await validation_service.validate_invoice_data(body.invoice_data, rule_set_id)
    except ComplianceEngineError as exc:
        raise to_http_exception(exc)

    logger.log_step("document_validation_request_completed", {
        "rule_set_id": rule_set_id,
        "is_valid": result.is_valid,
        "process_time": time.time() - start_time
    })
    return ValidationResponse(success=True, validation=result, rule_set_used=rule_set_id)


@router.get("/document/validate", response_model=RuleSetCatalogue)
async def list_validation_rule_sets():
    """Available completeness rule sets"""
    rule_sets = await rule_set_repository.list(RuleSetKind.COMPLETENESS)
    return RuleSetCatalogue(rule_sets=[RuleSetInfo.from_rule_set(rs) for rs in rule_sets])


@router.post("/document/{doc_id}/validate", response_model=ValidationResponse)
async def validate_paperless_document(doc_id: str, body: Optional[DocumentValidateRequest] = None):
    """Fetch a Paperless document, extract its fields and validate them"""
    body = body or DocumentValidateRequest()
    rule_set_id = body.rule_set_name or DEFAULT_RULE_SET

    try:
        _, extracted = await batch_orchestrator.load_invoice_data(
            doc_id, BatchMode.VALIDATION, body.force_re_extraction
        )
        result = await validation_service.validate_invoice_data(extracted, rule_set_id)
    except ComplianceEngineError as exc:
        raise to_http_exception(exc)

    logger.log_step("paperless_document_validated", {
        "document_id": doc_id,
        "rule_set_id": rule_set_id,
        "is_valid": result.is_valid,
        "score": result.score
    })
    return ValidationResponse(
        success=True,
        validation=result,
        rule_set_used=rule_set_id,
        document_id=doc_id,
        extracted_data=extracted,
    )
