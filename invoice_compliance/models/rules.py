"""Rule and rule-set models.

Predicates are plain data: a tagged union on ``kind`` interpreted by
``services.predicates``. Rule sets can therefore be stored as JSON and
changed without a code deployment.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from .base import ApiModel
from .results import Severity


class PresentPredicate(BaseModel):
    """Value is neither null nor absent"""
    kind: Literal["present"] = "present"


class NonEmptyStringPredicate(BaseModel):
    kind: Literal["non_empty_string"] = "non_empty_string"


class MinLengthPredicate(BaseModel):
    """String with at least ``length`` characters after trimming"""
    kind: Literal["min_length"] = "min_length"
    length: int


class PositiveNumberPredicate(BaseModel):
    kind: Literal["positive_number"] = "positive_number"


class IsTruePredicate(BaseModel):
    kind: Literal["is_true"] = "is_true"


class RegexMatchPredicate(BaseModel):
    """Full match of ``pattern``; whitespace removed first when ``strip_whitespace``"""
    kind: Literal["regex_match"] = "regex_match"
    pattern: str
    strip_whitespace: bool = True


class OneOfPredicate(BaseModel):
    kind: Literal["one_of"] = "one_of"
    values: List[Any]


class ValidDatePredicate(BaseModel):
    kind: Literal["valid_date"] = "valid_date"


class NotFutureDatePredicate(BaseModel):
    """Valid date that is not after today"""
    kind: Literal["not_future_date"] = "not_future_date"


class CustomPredicate(BaseModel):
    """Named predicate resolved from the registered predicate table"""
    kind: Literal["custom"] = "custom"
    name: str


Predicate = Annotated[
    Union[
        PresentPredicate,
        NonEmptyStringPredicate,
        MinLengthPredicate,
        PositiveNumberPredicate,
        IsTruePredicate,
        RegexMatchPredicate,
        OneOfPredicate,
        ValidDatePredicate,
        NotFutureDatePredicate,
        CustomPredicate,
    ],
    Field(discriminator="kind"),
]


class RuleSetKind(str, Enum):
    COMPLETENESS = "completeness"
    BIR = "bir"


class RegistrationType(str, Enum):
    VAT_REGISTERED = "vat_registered"
    NON_VAT_REGISTERED = "non_vat_registered"


class ValidationRule(ApiModel):
    """
    A field-level rule.

    A rule without a predicate only checks that the field is present.
    ``weight`` (1-10) is used by the BIR tier only.
    """
    field: str = ""
    required: bool = True
    predicate: Optional[Predicate] = None
    error_message: str = ""
    severity: Severity = Severity.CRITICAL
    weight: int = 1


class RuleSetSpec(ApiModel):
    """Definition accepted when registering a rule set"""
    name: str = ""
    description: str = ""
    kind: RuleSetKind = RuleSetKind.COMPLETENESS
    rules: List[ValidationRule] = Field(default_factory=list)
    minimum_score: int = 85
    po_type: Optional[str] = None
    registration_type: Optional[RegistrationType] = None


class RuleSetUpdate(ApiModel):
    """Partial update; only fields that are set are applied"""
    name: Optional[str] = None
    description: Optional[str] = None
    rules: Optional[List[ValidationRule]] = None
    minimum_score: Optional[int] = None
    po_type: Optional[str] = None
    registration_type: Optional[RegistrationType] = None
    is_active: Optional[bool] = None


class RuleSet(RuleSetSpec):
    """A registered, versioned rule set"""
    id: str
    version: int = 1
    is_active: bool = True
    created_at: datetime
    updated_at: datetime
