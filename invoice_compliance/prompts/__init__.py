"""Prompt package for the compliance service."""

from .extraction import (
    EXTRACTION_SYSTEM_PROMPT,
    INVOICE_EXTRACTION_PROMPT,
    build_extraction_prompt,
)
from .contract_validation import (
    CONTRACT_VALIDATION_PROMPT,
    build_contract_validation_prompt,
)

__all__ = [
    "EXTRACTION_SYSTEM_PROMPT",
    "INVOICE_EXTRACTION_PROMPT",
    "build_extraction_prompt",
    "CONTRACT_VALIDATION_PROMPT",
    "build_contract_validation_prompt",
]
