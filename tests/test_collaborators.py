import json
import unittest
from unittest.mock import AsyncMock, MagicMock, patch

import requests

from invoice_compliance.exceptions import (
    CollaboratorError,
    ContractValidationError,
    DocumentContentMissingError,
    DocumentNotFoundError,
    ExtractionError,
    UploadPollingError,
)
from invoice_compliance.models.records import InvoiceRecord
from invoice_compliance.prompts.extraction import INVOICE_EXTRACTION_PROMPT
from invoice_compliance.services.bir_compliance_service import BIRComplianceService
from invoice_compliance.services.contract_validation_service import ContractValidationService
from invoice_compliance.services.extraction_service import ExtractionService
from invoice_compliance.services.paperless_service import PaperlessService
from invoice_compliance.services.rule_registry import InMemoryRuleSetRepository
from invoice_compliance.services.upload_service import UploadService

from tests.helpers import TODAY, bir_invoice


def response(status_code=200, payload=None, text=""):
    mock = MagicMock()
    mock.status_code = status_code
    mock.json.return_value = payload
    mock.text = text
    return mock


class TestPaperlessService(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.service = PaperlessService(base_url="http://paperless.test/", token="secret", timeout=5)

    @patch("invoice_compliance.services.paperless_service.requests.request")
    async def test_get_document(self, mock_request):
        mock_request.return_value = response(payload={"id": 7, "content": "INVOICE"})

        document = await self.service.get_document("7")

        self.assertEqual(document["content"], "INVOICE")
        args, kwargs = mock_request.call_args
        self.assertEqual(args, ("GET", "http://paperless.test/api/documents/7/"))
        self.assertEqual(kwargs["headers"]["Authorization"], "Token secret")

    @patch("invoice_compliance.services.paperless_service.requests.request")
    async def test_missing_document(self, mock_request):
        mock_request.return_value = response(status_code=404)
        with self.assertRaises(DocumentNotFoundError):
            await self.service.get_document("7")

    @patch("invoice_compliance.services.paperless_service.requests.request")
    async def test_network_failure(self, mock_request):
        mock_request.side_effect = requests.exceptions.ConnectionError("refused")
        with self.assertRaises(CollaboratorError):
            await self.service.get_document("7")

    @patch("invoice_compliance.services.paperless_service.requests.request")
    async def test_list_documents(self, mock_request):
        mock_request.return_value = response(payload={
            "count": 31,
            "results": [{"id": 7, "title": "Invoice 7", "correspondent_name": "ACME Trading"}],
        })

        page = await self.service.list_documents(page=2, page_size=10)

        self.assertEqual(page["count"], 31)
        self.assertEqual(page["data"][0]["correspondent"], "ACME Trading")
        self.assertEqual(mock_request.call_args.kwargs["params"]["page"], 2)

    @patch("invoice_compliance.services.paperless_service.requests.request")
    async def test_post_document_returns_task_id(self, mock_request):
        mock_request.return_value = response(payload="0b8f2a8e-task")
        task_id = await self.service.post_document("invoice.pdf", b"%PDF-1.7", title="Invoice 42")
        self.assertEqual(task_id, "0b8f2a8e-task")
        self.assertEqual(mock_request.call_args.kwargs["data"], {"title": "Invoice 42"})

    @patch("invoice_compliance.services.paperless_service.asyncio.sleep", new_callable=AsyncMock)
    async def test_poll_until_success(self, mock_sleep):
        self.service.get_task = AsyncMock(side_effect=[
            None,
            {"status": "STARTED"},
            {"status": "SUCCESS", "related_document": "42"},
        ])

        task = await self.service.poll_task("task-1", max_attempts=5, interval_seconds=0.5)

        self.assertEqual(task["related_document"], "42")
        self.assertEqual(self.service.get_task.await_count, 3)
        self.assertEqual(mock_sleep.await_count, 2)
        mock_sleep.assert_awaited_with(0.5)

    @patch("invoice_compliance.services.paperless_service.asyncio.sleep", new_callable=AsyncMock)
    async def test_poll_failure(self, mock_sleep):
        self.service.get_task = AsyncMock(return_value={"status": "FAILURE", "result": "corrupt PDF"})

        with self.assertRaises(UploadPollingError) as ctx:
            await self.service.poll_task("task-1", max_attempts=5, interval_seconds=0)
        self.assertIn("corrupt PDF", ctx.exception.message)
        self.assertEqual(ctx.exception.attempts, 1)

    @patch("invoice_compliance.services.paperless_service.asyncio.sleep", new_callable=AsyncMock)
    async def test_poll_exhausted(self, mock_sleep):
        self.service.get_task = AsyncMock(return_value={"status": "PENDING"})

        with self.assertRaises(UploadPollingError) as ctx:
            await self.service.poll_task("task-1", max_attempts=3, interval_seconds=0)
        self.assertEqual(ctx.exception.attempts, 3)
        self.assertEqual(mock_sleep.await_count, 2)


class TestExtractionService(unittest.IsolatedAsyncioTestCase):

    def make_client(self, content):
        client = MagicMock()
        message = MagicMock()
        message.content = content
        client.chat.completions.create.return_value.choices = [MagicMock(message=message)]
        return client

    async def test_extracts_json(self):
        client = self.make_client('{"invoice_number": "INV-1", "total_amount": 100.0}')
        data = await ExtractionService(client=client).extract_invoice_fields("SALES INVOICE INV-1")

        self.assertEqual(data["invoice_number"], "INV-1")
        kwargs = client.chat.completions.create.call_args.kwargs
        self.assertEqual(kwargs["response_format"], {"type": "json_object"})

    async def test_non_json_answer(self):
        client = self.make_client("I could not read this invoice.")
        with self.assertRaises(ExtractionError):
            await ExtractionService(client=client).extract_invoice_fields("SALES INVOICE")

    async def test_api_failure(self):
        client = MagicMock()
        client.chat.completions.create.side_effect = RuntimeError("rate limited")
        with self.assertRaises(ExtractionError):
            await ExtractionService(client=client).extract_invoice_fields("SALES INVOICE")

    async def test_empty_text(self):
        with self.assertRaises(ExtractionError):
            await ExtractionService(client=MagicMock()).extract_invoice_fields("  ")

    def test_prompt_keeps_discounts_out_of_line_items(self):
        self.assertIn("discount_amount", INVOICE_EXTRACTION_PROMPT)
        self.assertNotIn("negative line_total", INVOICE_EXTRACTION_PROMPT)

    async def test_discounted_invoice_passes_bir_compliance(self):
        extracted = bir_invoice(discount_amount=500.0, vatable_sales=9500.0, vat_amount=1140.0, total_amount=10640.0)
        client = self.make_client(json.dumps(extracted))
        data = await ExtractionService(client=client).extract_invoice_fields("SALES INVOICE INV-2024-0042")

        service = BIRComplianceService(repository=InMemoryRuleSetRepository())
        result = await service.validate_bir_compliance(data, today=TODAY)

        self.assertTrue(result.is_compliant)
        self.assertEqual(result.score, 100)
        self.assertEqual(data["discount_amount"], 500.0)


class TestContractValidationService(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.service = ContractValidationService(
            base_url="http://paperless-ai.test", username="user", password="pass", timeout=5
        )

    @patch("invoice_compliance.services.contract_validation_service.requests.Session")
    async def test_parses_fenced_answer(self, mock_session_cls):
        session = mock_session_cls.return_value.__enter__.return_value
        session.post.side_effect = [
            response(),
            response(payload={"answer": '```json\n{"overall_amount_validation": "APPROVED"}\n```'}),
        ]

        verdict = await self.service.contract_validate("INV-1")

        self.assertEqual(verdict, {"overall_amount_validation": "APPROVED"})
        rag_call = session.post.call_args_list[1]
        self.assertEqual(rag_call.args[0], "http://paperless-ai.test/api/rag/ask")
        self.assertIn("INV-1", rag_call.kwargs["json"]["question"])

    @patch("invoice_compliance.services.contract_validation_service.requests.Session")
    async def test_unparseable_answer(self, mock_session_cls):
        session = mock_session_cls.return_value.__enter__.return_value
        session.post.side_effect = [response(), response(payload={"answer": "no idea"})]

        with self.assertRaises(ContractValidationError) as ctx:
            await self.service.contract_validate("INV-1")
        self.assertEqual(ctx.exception.message, "AI Process Failed")

    @patch("invoice_compliance.services.contract_validation_service.requests.Session")
    async def test_answer_that_is_not_text(self, mock_session_cls):
        session = mock_session_cls.return_value.__enter__.return_value
        for answer in ({"not": "text"}, 12345):
            session.post.side_effect = [response(), response(payload={"answer": answer})]
            with self.assertRaises(ContractValidationError) as ctx:
                await self.service.contract_validate("INV-1")
            self.assertEqual(ctx.exception.message, "AI Process Failed")

    @patch("invoice_compliance.services.contract_validation_service.requests.Session")
    async def test_login_failure(self, mock_session_cls):
        session = mock_session_cls.return_value.__enter__.return_value
        session.post.return_value = response(status_code=401)

        with self.assertRaises(ContractValidationError):
            await self.service.contract_validate("INV-1")


class TestUploadService(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.paperless = MagicMock()
        self.paperless.post_document = AsyncMock(return_value="task-1")
        self.paperless.poll_task = AsyncMock(return_value={"status": "SUCCESS", "related_document": 42})
        self.paperless.get_document = AsyncMock(return_value={"id": 42, "content": "SALES INVOICE INV-1"})
        self.extractor = MagicMock()
        self.extractor.extract_invoice_fields = AsyncMock(return_value={"invoice_number": "INV-1"})
        self.repository = MagicMock()
        self.repository.create = AsyncMock(
            return_value=InvoiceRecord(id="inv-1", ocr_id=42, parsed_data={"invoice_number": "INV-1"})
        )
        self.service = UploadService(paperless=self.paperless, extractor=self.extractor, repository=self.repository)

    async def test_upload_creates_pending_record(self):
        record = await self.service.upload_invoice("invoice.pdf", b"%PDF-1.7")

        self.assertEqual(record.id, "inv-1")
        self.assertEqual(record.bir_validation_status, "pending")
        self.paperless.get_document.assert_awaited_once_with("42")
        self.repository.create.assert_awaited_once_with({"invoice_number": "INV-1"}, ocr_id=42)

    async def test_task_without_document(self):
        self.paperless.poll_task.return_value = {"status": "SUCCESS", "related_document": None}
        with self.assertRaises(UploadPollingError):
            await self.service.upload_invoice("invoice.pdf", b"%PDF-1.7")
        self.repository.create.assert_not_awaited()

    async def test_document_without_ocr_text(self):
        self.paperless.get_document.return_value = {"id": 42, "content": ""}
        with self.assertRaises(DocumentContentMissingError):
            await self.service.upload_invoice("invoice.pdf", b"%PDF-1.7")
        self.extractor.extract_invoice_fields.assert_not_awaited()


if __name__ == '__main__':
    unittest.main()
