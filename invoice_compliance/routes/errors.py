"""Translation of engine errors into HTTP errors"""

from fastapi import HTTPException

from ..exceptions import (
    BatchLimitError,
    CollaboratorError,
    ComplianceEngineError,
    DocumentNotFoundError,
    InvoiceNotFoundError,
    RuleSetConfigurationError,
    UnknownRuleSetError,
)
from ..utils.logging import logger


def to_http_exception(exc: ComplianceEngineError) -> HTTPException:
    if isinstance(exc, (UnknownRuleSetError, InvoiceNotFoundError, DocumentNotFoundError)):
        status_code = 404
    elif isinstance(exc, RuleSetConfigurationError):
        return HTTPException(status_code=400, detail={"message": exc.message, "errors": exc.errors})
    elif isinstance(exc, BatchLimitError):
        status_code = 400
    elif isinstance(exc, CollaboratorError):
        status_code = 502
    else:
        status_code = 500

    logger.log_error("request_failed", {
        "error_type": type(exc).__name__,
        "error": exc.message,
        "status_code": status_code,
        **exc.details
    })
    return HTTPException(status_code=status_code, detail=exc.message)
