"""LLM field extraction from OCR text"""

from typing import Any, Dict, Optional

from fastapi.concurrency import run_in_threadpool
from openai import OpenAI

from ..config import settings
from ..exceptions import ExtractionError
from ..prompts.extraction import EXTRACTION_SYSTEM_PROMPT, build_extraction_prompt
from ..utils.json_utils import extract_json_object
from ..utils.logging import logger


class ExtractionService:
    """Turns OCR text into an untyped invoice dict using an OpenAI chat model"""

    def __init__(self, client: Optional[OpenAI] = None):
        self.client = client

    def _ensure_client(self):
        """Ensure OpenAI client is initialized"""
        if self.client:
            return

        api_key = settings.OPENAI_API_KEY.strip() if settings.OPENAI_API_KEY else ""
        if not api_key:
            raise ExtractionError("OpenAI client not initialized. Please set OPENAI_API_KEY.")
        try:
            self.client = OpenAI(api_key=api_key)
            logger.log_step("openai_client_initialized", {"model": settings.LLM_MODEL})
        except Exception as e:
            logger.log_error("openai_client_init_failed", {"error": str(e)})
            raise ExtractionError("Failed to initialize OpenAI client", original_error=e)

    async def extract_invoice_fields(self, ocr_text: str) -> Dict[str, Any]:
        """
        Extract invoice fields from OCR text.

        The result is best-effort and never schema-checked here; callers
        run it through the record schema before any rule.
        """
        if not ocr_text or not ocr_text.strip():
            raise ExtractionError("No OCR text to extract from")

        self._ensure_client()

        def _run():
            response = self.client.chat.completions.create(
                model=settings.LLM_MODEL,
                messages=[
                    {"role": "system", "content": EXTRACTION_SYSTEM_PROMPT},
                    {"role": "user", "content": build_extraction_prompt(ocr_text)}
                ],
                temperature=settings.LLM_TEMPERATURE,
                response_format={"type": "json_object"}
            )
            return response.choices[0].message.content

        logger.log_step("invoice_extraction_started", {
            "model": settings.LLM_MODEL,
            "text_length": len(ocr_text)
        })

        try:
            content = await run_in_threadpool(_run)
        except Exception as e:
            logger.log_error("invoice_extraction_failed", {"error": str(e), "error_type": type(e).__name__})
            raise ExtractionError("Invoice field extraction failed", original_error=e)

        data = extract_json_object(content)
        if data is None:
            logger.log_error("invoice_extraction_unparseable", {"response": (content or "")[:500]})
            raise ExtractionError("Extraction model did not return a JSON object")

        logger.log_step("invoice_extraction_completed", {
            "invoice_number": data.get("invoice_number"),
            "fields_count": len(data)
        })
        return data


# Global extraction service instance
extraction_service = ExtractionService()
