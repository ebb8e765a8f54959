"""Invoice upload pipeline: Paperless upload, OCR wait, extraction, record creation"""

from typing import Optional

from ..exceptions import DocumentContentMissingError, UploadPollingError
from ..models.records import InvoiceRecord
from ..utils.logging import logger
from .extraction_service import ExtractionService, extraction_service
from .invoice_service import InvoiceRepository, invoice_repository
from .paperless_service import PaperlessService, paperless_service


class UploadService:
    def __init__(
        self,
        paperless: Optional[PaperlessService] = None,
        extractor: Optional[ExtractionService] = None,
        repository: Optional[InvoiceRepository] = None
    ):
        self.paperless = paperless or paperless_service
        self.extractor = extractor or extraction_service
        self.repository = repository or invoice_repository

    async def upload_invoice(
        self,
        file_name: str,
        content: bytes,
        title: Optional[str] = None,
        max_attempts: Optional[int] = None,
        interval_seconds: Optional[float] = None
    ) -> InvoiceRecord:
        """
        Upload an invoice file and create its record.

        Every step must succeed; any failure propagates to the caller.
        The new record starts with all validation statuses pending.
        """
        logger.log_step("invoice_upload_started", {"file_name": file_name, "file_size_bytes": len(content)})

        task_id = await self.paperless.post_document(file_name, content, title=title)
        task = await self.paperless.poll_task(task_id, max_attempts=max_attempts, interval_seconds=interval_seconds)

        document_id = task.get("related_document")
        if not document_id:
            raise UploadPollingError(task_id, "finished without a related document")

        document = await self.paperless.get_document(str(document_id))
        ocr_text = document.get("content")
        if not ocr_text or not str(ocr_text).strip():
            raise DocumentContentMissingError(str(document_id))

        parsed_data = await self.extractor.extract_invoice_fields(ocr_text)
        record = await self.repository.create(parsed_data, ocr_id=int(document_id))

        logger.log_step("invoice_upload_completed", {
            "file_name": file_name,
            "task_id": task_id,
            "document_id": document_id,
            "invoice_id": record.id
        })
        return record


# Global upload service instance
upload_service = UploadService()
