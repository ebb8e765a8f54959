"""Exception hierarchy for the invoice compliance engine."""

from typing import Any, List, Optional


class ComplianceEngineError(Exception):
    """Base exception for all compliance engine errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class UnknownRuleSetError(ComplianceEngineError):
    """Raised when a rule set id is unknown, inactive, or of the wrong kind."""

    def __init__(self, rule_set_id: str, kind: Optional[str] = None) -> None:
        self.rule_set_id = rule_set_id
        self.kind = kind
        if kind:
            message = f"Unknown {kind} rule set: {rule_set_id}"
        else:
            message = f"Unknown rule set: {rule_set_id}"
        super().__init__(message, details={"rule_set_id": rule_set_id, "kind": kind})


class RuleSetConfigurationError(ComplianceEngineError):
    """Raised when a rule set definition fails meta-validation."""

    def __init__(self, errors: List[str], message: str = "Invalid validation configuration") -> None:
        self.errors = errors
        super().__init__(message, details={"errors": errors})


class BatchLimitError(ComplianceEngineError):
    """Raised when a batch request is empty or exceeds the document cap."""

    def __init__(self, message: str, requested: int, limit: int) -> None:
        self.requested = requested
        self.limit = limit
        super().__init__(message, details={"requested": requested, "limit": limit})


class CollaboratorError(ComplianceEngineError):
    """Base class for failures of external services (OCR, LLM, RAG)."""

    def __init__(
        self,
        message: str,
        original_error: Optional[Exception] = None,
        details: Optional[dict[str, Any]] = None
    ) -> None:
        self.original_error = original_error
        full_message = message
        if original_error:
            full_message += f" (Original error: {original_error})"
        super().__init__(full_message, details)


class DocumentNotFoundError(CollaboratorError):
    """Raised when the document store has no document for an id."""

    def __init__(self, document_id: str, original_error: Optional[Exception] = None) -> None:
        self.document_id = str(document_id)
        super().__init__(
            f"Document {document_id} not found",
            original_error,
            details={"document_id": self.document_id}
        )


class DocumentContentMissingError(CollaboratorError):
    """Raised when a document exists but carries no OCR text."""

    def __init__(self, document_id: str) -> None:
        self.document_id = str(document_id)
        super().__init__(
            f"Document {document_id} has no OCR content",
            details={"document_id": self.document_id}
        )


class ExtractionError(CollaboratorError):
    """Raised when LLM field extraction fails or returns unusable output."""


class ContractValidationError(CollaboratorError):
    """Raised when the RAG contract validation call fails or is unparseable."""


class UploadPollingError(CollaboratorError):
    """Raised when a document upload task fails or never finishes."""

    def __init__(self, task_id: str, message: str, attempts: int = 0) -> None:
        self.task_id = task_id
        self.attempts = attempts
        super().__init__(
            f"Upload task {task_id}: {message}",
            details={"task_id": task_id, "attempts": attempts}
        )


class InvoiceNotFoundError(ComplianceEngineError):
    """Raised when no invoice record exists for an id."""

    def __init__(self, invoice_id: str) -> None:
        self.invoice_id = invoice_id
        super().__init__(f"Invoice {invoice_id} not found", details={"invoice_id": invoice_id})
