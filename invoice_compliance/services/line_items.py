"""Line-item completeness and arithmetic checks"""

from typing import List, Sequence

from ..models.invoice import LineItem
from ..models.results import IncompleteLineItem, LineItemsCompleteness
from ..utils.numbers import amounts_differ

LINE_TOTAL_TOLERANCE = 0.01


def line_item_reconciles(item: LineItem, tolerance: float = LINE_TOTAL_TOLERANCE) -> bool:
    """quantity x unit cost matches line_total within tolerance."""
    expected = item.quantity * item.unit_amount
    return not amounts_differ(expected, item.line_total, tolerance)


def missing_line_item_fields(item: LineItem, strict: bool = False) -> List[str]:
    """Names of the conditions a line item violates, in a stable order."""
    missing = []
    if not item.description or not item.description.strip():
        missing.append("description")
    if item.quantity <= 0:
        missing.append("quantity")
    if item.unit_amount <= 0:
        missing.append(item.unit_amount_field)
    if item.line_total <= 0:
        missing.append("line_total")
    if strict and not line_item_reconciles(item):
        missing.append("accurate_calculation")
    return missing


def check_line_items(items: Sequence[LineItem], strict: bool = False) -> LineItemsCompleteness:
    """
    Classify each line item as complete or incomplete.

    With ``strict`` the arithmetic reconciliation is part of completeness
    and a mismatch is recorded as the ``accurate_calculation`` field.
    """
    complete = 0
    incomplete: List[IncompleteLineItem] = []

    for index, item in enumerate(items):
        missing = missing_line_item_fields(item, strict=strict)
        if missing:
            incomplete.append(IncompleteLineItem(index=index, missing_fields=missing))
        else:
            complete += 1

    return LineItemsCompleteness(
        total_items=len(items),
        complete_items=complete,
        incomplete_items=incomplete,
    )
