"""Structural validation of raw extraction output"""

from typing import Any, Iterable, List, Type, TypeVar

from pydantic import ValidationError

from ..models.invoice import InvoiceData
from ..models.results import Severity, ValidationIssue
from ..utils.logging import logger

RecordT = TypeVar("RecordT", bound=InvoiceData)


class InvoiceSchemaError(Exception):
    """Raw record does not match the expected shape"""

    def __init__(self, violations: List[str]):
        self.violations = violations
        super().__init__("Invalid invoice data format: " + "; ".join(violations))

    def as_issue(self, bir_requirement: str = None) -> ValidationIssue:
        """Single aggregated critical error on the 'schema' field."""
        return ValidationIssue(
            field="schema",
            message=str(self),
            severity=Severity.CRITICAL,
            bir_requirement=bir_requirement,
        )


def format_location(loc: Iterable[Any]) -> str:
    """('line_items', 0, 'quantity') -> 'line_items[0].quantity'"""
    path = ""
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        elif path:
            path += f".{part}"
        else:
            path = str(part)
    return path or "record"


def parse_invoice_record(raw: Any, model: Type[RecordT] = InvoiceData) -> RecordT:
    """
    Validate a raw extraction dict against a record schema.

    Raises InvoiceSchemaError listing every violated field.
    """
    try:
        return model.model_validate(raw)
    except ValidationError as exc:
        violations = [
            f"{format_location(err['loc'])}: {err['msg']}"
            for err in exc.errors()
        ]
        logger.log_step("invoice_schema_rejected", {
            "schema": model.__name__,
            "violations": violations
        })
        raise InvoiceSchemaError(violations) from exc
