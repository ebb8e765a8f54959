"""Interpreter for serializable rule predicates"""

import re
from datetime import date
from functools import lru_cache
from typing import Any, Callable, Dict, Optional

from ..models.rules import (
    CustomPredicate,
    IsTruePredicate,
    MinLengthPredicate,
    NonEmptyStringPredicate,
    NotFutureDatePredicate,
    OneOfPredicate,
    PositiveNumberPredicate,
    PresentPredicate,
    RegexMatchPredicate,
    ValidDatePredicate,
)
from ..utils.dates import parse_date
from ..utils.numbers import is_number

# XXX-XXX-XXX-XXX or 9 to 12 plain digits
TIN_PATTERN = re.compile(r"^(\d{3}-\d{3}-\d{3}-\d{3}|\d{9,12})$")


def tin_format(value: Any) -> bool:
    """Philippine TIN format, whitespace ignored."""
    if not isinstance(value, str) or not value:
        return False
    return bool(TIN_PATTERN.match(re.sub(r"\s", "", value)))


CUSTOM_PREDICATES: Dict[str, Callable[[Any], bool]] = {
    "tin_format": tin_format,
}


def register_custom_predicate(name: str, func: Callable[[Any], bool]) -> None:
    """Make a named predicate available to ``custom`` rules."""
    CUSTOM_PREDICATES[name] = func


@lru_cache(maxsize=256)
def _compile(pattern: str):
    return re.compile(pattern)


def _is_non_empty_string(value: Any) -> bool:
    return isinstance(value, str) and len(value.strip()) > 0


def evaluate_predicate(predicate: Optional[Any], value: Any, today: Optional[date] = None) -> bool:
    """
    Evaluate a predicate against a field value.

    A missing predicate is a presence check. Unknown custom predicate
    names raise KeyError: that is a rule-set configuration problem, not a
    content problem.
    """
    if predicate is None or isinstance(predicate, PresentPredicate):
        return value is not None

    if isinstance(predicate, NonEmptyStringPredicate):
        return _is_non_empty_string(value)

    if isinstance(predicate, MinLengthPredicate):
        return isinstance(value, str) and len(value.strip()) >= predicate.length

    if isinstance(predicate, PositiveNumberPredicate):
        return is_number(value) and value > 0

    if isinstance(predicate, IsTruePredicate):
        return value is True

    if isinstance(predicate, RegexMatchPredicate):
        if not isinstance(value, str) or not value:
            return False
        candidate = re.sub(r"\s", "", value) if predicate.strip_whitespace else value
        return bool(_compile(predicate.pattern).fullmatch(candidate))

    if isinstance(predicate, OneOfPredicate):
        return value is not None and value in predicate.values

    if isinstance(predicate, ValidDatePredicate):
        return parse_date(value) is not None

    if isinstance(predicate, NotFutureDatePredicate):
        parsed = parse_date(value)
        return parsed is not None and parsed <= (today or date.today())

    if isinstance(predicate, CustomPredicate):
        return bool(CUSTOM_PREDICATES[predicate.name](value))

    raise TypeError(f"Unsupported predicate: {predicate!r}")
