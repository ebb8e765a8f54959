"""Paperless document listing"""

from fastapi import APIRouter, Query

from ..exceptions import ComplianceEngineError
from ..models.schemas import DocumentListResponse
from ..services.paperless_service import paperless_service
from .errors import to_http_exception

router = APIRouter(prefix="/api/v1/documents", tags=["Documents"])


@router.get("", response_model=DocumentListResponse)
async def list_documents(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=25, ge=1, le=100, alias="pageSize"),
):
    """Documents stored in Paperless, newest first"""
    try:
        result = await paperless_service.list_documents(page=page, page_size=page_size)
    except ComplianceEngineError as exc:
        raise to_http_exception(exc)
    return DocumentListResponse(success=True, **result)
