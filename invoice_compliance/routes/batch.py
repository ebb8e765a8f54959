"""Batch validation routes"""

from fastapi import APIRouter

from ..exceptions import ComplianceEngineError
from ..models.batch import BatchMode, BatchValidateRequest
from ..models.rules import RuleSetKind
from ..models.schemas import BatchCapabilities, BatchResponse, RuleSetInfo
from ..services.batch_service import DEFAULT_RULE_SETS, batch_orchestrator
from ..services.rule_registry import rule_set_repository
from .errors import to_http_exception

router = APIRouter(prefix="/api/v1", tags=["Batch"])

BATCH_OPTIONS = {
    "forceReExtraction": "Re-run field extraction even when a document already carries extracted data",
    "poType": "Pick the rule set registered for this purchase-order type",
}

BIR_BATCH_OPTIONS = {
    **BATCH_OPTIONS,
    "complianceThreshold": "Stricter per-request minimum score (0-100); never relaxes the rule set's own minimum",
}


async def _run(body: BatchValidateRequest, mode: BatchMode) -> BatchResponse:
    try:
        batch = await batch_orchestrator.run_batch(
            body.document_ids,
            rule_set_id=body.rule_set_name,
            options=body.options,
            mode=mode,
        )
    except ComplianceEngineError as exc:
        raise to_http_exception(exc)
    return BatchResponse(success=True, batch=batch)


async def _capabilities(mode: BatchMode, kind: RuleSetKind, options: dict) -> BatchCapabilities:
    max_documents, concurrency = batch_orchestrator.limits(mode)
    rule_sets = await rule_set_repository.list(kind)
    return BatchCapabilities(
        max_documents=max_documents,
        concurrency=concurrency,
        default_rule_set=DEFAULT_RULE_SETS[mode],
        rule_sets=[RuleSetInfo.from_rule_set(rs) for rs in rule_sets],
        options=options,
    )


@router.post("/document/batch-validate", response_model=BatchResponse)
async def batch_validate(body: BatchValidateRequest):
    """Validate up to BATCH_MAX_DOCUMENTS Paperless documents"""
    return await _run(body, BatchMode.VALIDATION)


@router.get("/document/batch-validate", response_model=BatchCapabilities)
async def batch_validate_capabilities():
    return await _capabilities(BatchMode.VALIDATION, RuleSetKind.COMPLETENESS, BATCH_OPTIONS)


@router.post("/document/batch-bir-compliance", response_model=BatchResponse)
async def batch_bir_compliance(body: BatchValidateRequest):
    """Check up to BIR_BATCH_MAX_DOCUMENTS documents and report the compliance rate"""
    return await _run(body, BatchMode.BIR_COMPLIANCE)


@router.get("/document/batch-bir-compliance", response_model=BatchCapabilities)
async def batch_bir_compliance_capabilities():
    return await _capabilities(BatchMode.BIR_COMPLIANCE, RuleSetKind.BIR, BIR_BATCH_OPTIONS)
