"""Rule set configuration routes"""

from typing import Optional, Union

from fastapi import APIRouter, Query

from ..exceptions import ComplianceEngineError, UnknownRuleSetError
from ..models.rules import RuleSetKind, RuleSetSpec, RuleSetUpdate
from ..models.schemas import DeleteResponse, RuleSetListResponse, RuleSetResponse
from ..services.rule_registry import rule_set_repository
from ..utils.logging import logger
from .errors import to_http_exception

router = APIRouter(prefix="/api/v1/validation", tags=["Rule Sets"])


@router.get("/configs", response_model=Union[RuleSetResponse, RuleSetListResponse])
async def get_rule_sets(
    id: Optional[str] = Query(default=None),
    po_type: Optional[str] = Query(default=None, alias="poType"),
    kind: Optional[RuleSetKind] = Query(default=None),
):
    """
    Active rule sets.

    ``id`` returns one rule set, ``poType`` the rule set registered for a
    purchase-order type, otherwise every active set (optionally one kind).
    """
    try:
        if id:
            rule_set = await rule_set_repository.get(id)
            if rule_set is None:
                raise UnknownRuleSetError(id)
            return RuleSetResponse(success=True, data=rule_set)

        if po_type:
            rule_set = await rule_set_repository.get_by_po_type(po_type)
            if rule_set is None:
                raise UnknownRuleSetError(po_type)
            return RuleSetResponse(success=True, data=rule_set)
    except ComplianceEngineError as exc:
        raise to_http_exception(exc)

    rule_sets = await rule_set_repository.list(kind)
    return RuleSetListResponse(success=True, data=rule_sets)


@router.post("/configs", response_model=RuleSetResponse, status_code=201)
async def create_rule_set(spec: RuleSetSpec):
    """Register a rule set; its id is derived from the name"""
    try:
        rule_set = await rule_set_repository.create(spec)
    except ComplianceEngineError as exc:
        raise to_http_exception(exc)
    return RuleSetResponse(success=True, data=rule_set)


@router.put("/configs", response_model=RuleSetResponse)
async def update_rule_set(changes: RuleSetUpdate, id: str = Query(...)):
    try:
        rule_set = await rule_set_repository.update(id, changes)
        if rule_set is None:
            raise UnknownRuleSetError(id)
    except ComplianceEngineError as exc:
        raise to_http_exception(exc)
    return RuleSetResponse(success=True, data=rule_set)


@router.delete("/configs", response_model=DeleteResponse)
async def delete_rule_set(id: str = Query(...)):
    """Deactivate a rule set. The record is kept."""
    try:
        if not await rule_set_repository.soft_delete(id):
            raise UnknownRuleSetError(id)
    except ComplianceEngineError as exc:
        raise to_http_exception(exc)

    logger.log_step("rule_set_delete_requested", {"rule_set_id": id})
    return DeleteResponse(success=True, message=f"Rule set '{id}' deactivated")
