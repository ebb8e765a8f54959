"""BIR compliance routes"""

import time
from typing import Optional

from fastapi import APIRouter, Request

from ..exceptions import ComplianceEngineError
from ..models.batch import BatchMode
from ..models.rules import RuleSetKind
from ..models.schemas import (
    BIRComplianceResponse,
    DocumentValidateRequest,
    RuleSetCatalogue,
    RuleSetInfo,
    ValidateRequest,
)
from ..services.batch_service import DEFAULT_RULE_SETS, batch_orchestrator
from ..services.bir_compliance_service import bir_compliance_service
from ..services.rule_registry import rule_set_repository
from ..utils.logging import logger
from .errors import to_http_exception

router = APIRouter(prefix="/api/v1", tags=["BIR Compliance"])

DEFAULT_RULE_SET = DEFAULT_RULE_SETS[BatchMode.BIR_COMPLIANCE]

BIR_GUIDANCE = {
    "requiredFields": [
        "invoice_number",
        "invoice_date",
        "vendor_name",
        "vendor_address",
        "vendor_tin",
        "customer_name",
        "customer_address",
        "customer_tin",
        "total_amount",
    ],
    "lineItemRequiredFields": ["description", "quantity", "unit_cost", "line_total"],
    "birGuidelines": {
        "tinFormat": "XXX-XXX-XXX-XXX (9-12 digits)",
        "dateFormat": "YYYY-MM-DD (not in future)",
        "minimumScore": 85,
    },
}


@router.post("/document/bir-compliance", response_model=BIRComplianceResponse)
async def check_bir_compliance(request: Request, body: ValidateRequest):
    """
    Check extracted invoice data against a BIR rule set.

    Non-compliant results are returned with HTTP 200.
    """
    start_time = time.time()
    rule_set_id = body.rule_set_name or DEFAULT_RULE_SET

    logger.log_step("bir_compliance_request_received", {
        "client": request.client.host if request.client else "unknown",
        "rule_set_id": rule_set_id
    })

    try:
        result = await bir_compliance_service.validate_bir_compliance(body.invoice_data, rule_set_id)
    except ComplianceEngineError as exc:
        raise to_http_exception(exc)

    logger.log_step("bir_compliance_request_completed", {
        "rule_set_id": rule_set_id,
        "is_compliant": result.is_compliant,
        "score": result.score,
        "process_time": time.time() - start_time
    })
    return BIRComplianceResponse(success=True, bir_compliance=result, rule_set_used=rule_set_id)


@router.get("/document/bir-compliance", response_model=RuleSetCatalogue)
async def list_bir_rule_sets():
    """BIR rule sets with the requirements they enforce"""
    rule_sets = await rule_set_repository.list(RuleSetKind.BIR)
    return RuleSetCatalogue(
        rule_sets=[RuleSetInfo.from_rule_set(rs) for rs in rule_sets],
        guidance=BIR_GUIDANCE,
    )


@router.post("/document/{doc_id}/bir-compliance", response_model=BIRComplianceResponse)
async def check_paperless_document(doc_id: str, body: Optional[DocumentValidateRequest] = None):
    body = body or DocumentValidateRequest()
    rule_set_id = body.rule_set_name or DEFAULT_RULE_SET

    try:
        _, extracted = await batch_orchestrator.load_invoice_data(
            doc_id, BatchMode.BIR_COMPLIANCE, body.force_re_extraction
        )
        result = await bir_compliance_service.validate_bir_compliance(extracted, rule_set_id)
    except ComplianceEngineError as exc:
        raise to_http_exception(exc)

    logger.log_step("paperless_document_bir_checked", {
        "document_id": doc_id,
        "rule_set_id": rule_set_id,
        "is_compliant": result.is_compliant,
        "score": result.score
    })
    return BIRComplianceResponse(
        success=True,
        bir_compliance=result,
        rule_set_used=rule_set_id,
        document_id=doc_id,
        extracted_data=extracted,
    )
