"""Contract validation through the Paperless-AI RAG endpoint"""

from typing import Any, Dict, Optional

import requests
from fastapi.concurrency import run_in_threadpool

from ..config import settings
from ..exceptions import ContractValidationError
from ..prompts.contract_validation import build_contract_validation_prompt
from ..utils.json_utils import extract_json_object
from ..utils.logging import logger


class ContractValidationService:
    """Asks the RAG service to check an invoice against its vendor contract"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: Optional[float] = None
    ):
        self.base_url = (base_url or settings.PAPERLESSAI_URL).rstrip("/")
        self.username = username if username is not None else settings.PAPERLESSAI_USER
        self.password = password if password is not None else settings.PAPERLESSAI_PASSWORD
        self.timeout = timeout or settings.PAPERLESSAI_TIMEOUT

    def _ask(self, question: str) -> Dict[str, Any]:
        """Log in (cookie session) and post one question to /api/rag/ask."""
        with requests.Session() as session:
            login = session.post(
                f"{self.base_url}/login",
                json={"username": self.username, "password": self.password},
                timeout=self.timeout
            )
            if login.status_code >= 400:
                raise ContractValidationError(
                    f"Paperless-AI login failed with status {login.status_code}",
                    details={"status_code": login.status_code}
                )

            response = session.post(
                f"{self.base_url}/api/rag/ask",
                json={"question": question, "useAI": True},
                timeout=self.timeout
            )
            if response.status_code >= 400:
                raise ContractValidationError(
                    f"Paperless-AI RAG request failed with status {response.status_code}",
                    details={"status_code": response.status_code, "response": response.text[:500]}
                )
            return response.json()

    async def contract_validate(self, invoice_number: str) -> Dict[str, Any]:
        """
        Contract verdict for an invoice number as an untyped dict.

        Raises ContractValidationError when the service is unreachable or
        the answer holds no JSON object.
        """
        prompt = build_contract_validation_prompt(invoice_number)
        logger.log_step("contract_validation_requested", {"invoice_number": invoice_number})

        try:
            payload = await run_in_threadpool(self._ask, prompt)
        except requests.exceptions.RequestException as e:
            logger.log_error("contract_validation_request_exception", {
                "invoice_number": invoice_number,
                "error": str(e),
                "error_type": type(e).__name__
            })
            raise ContractValidationError("Paperless-AI request failed", original_error=e)

        answer = payload.get("answer") if isinstance(payload, dict) else None
        verdict = extract_json_object(answer)
        if verdict is None:
            logger.log_error("contract_validation_unparseable", {
                "invoice_number": invoice_number,
                "answer": str(answer or "")[:500]
            })
            raise ContractValidationError("AI Process Failed")

        logger.log_step("contract_validation_completed", {
            "invoice_number": invoice_number,
            "overall_amount_validation": verdict.get("overall_amount_validation"),
            "contract_compliant": verdict.get("contract_compliant")
        })
        return verdict


# Global contract validation service instance
contract_validation_service = ContractValidationService()
