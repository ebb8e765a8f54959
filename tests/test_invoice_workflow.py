import asyncio
import unittest
from unittest.mock import AsyncMock, MagicMock

from invoice_compliance.exceptions import ContractValidationError, InvoiceNotFoundError
from invoice_compliance.models.records import InvoiceRecord, InvoiceStatus
from invoice_compliance.services.bir_compliance_service import BIRComplianceService
from invoice_compliance.services.invoice_service import InvoiceValidationWorkflow
from invoice_compliance.services.rule_registry import InMemoryRuleSetRepository
from invoice_compliance.services.validation_service import ValidationService

from tests.helpers import bir_invoice

APPROVED_VERDICT = {
    "contract_compliant": True,
    "overall_status": "COMPLIANT",
    "overall_amount_validation": "APPROVED",
    "recommendations": {"action_required": "APPROVED", "priority": "LOW"},
}

REJECTED_VERDICT = {
    "contract_compliant": False,
    "overall_amount_validation": "REJECTED",
    "recommendations": {"action_required": "REVIEW_REQUIRED"},
}


class InMemoryInvoices:
    """Invoice repository double keeping records in a dict"""

    def __init__(self, *records):
        self.records = {record.id: record for record in records}
        self.status_updates = []

    async def get(self, invoice_id):
        record = self.records.get(invoice_id)
        return record.model_copy(deep=True) if record else None

    async def update_statuses(self, invoice_id, **statuses):
        self.status_updates.append(statuses)
        for column, status in statuses.items():
            setattr(self.records[invoice_id], column, status)

    async def attach_rag_validation(self, invoice_id, rag_validation, contract_status, amount_status):
        record = self.records[invoice_id]
        record.rag_validation = rag_validation
        record.contract_validation_status = contract_status
        record.amount_validation_status = amount_status


def invoice(**fields):
    parsed = bir_invoice(form_2307_attached=True, form_2307_consistent=True)
    values = {"id": "inv-1", "invoice_number": parsed["invoice_number"], "parsed_data": parsed}
    values.update(fields)
    return InvoiceRecord(**values)


class TestInvoiceValidationWorkflow(unittest.IsolatedAsyncioTestCase):

    def make_workflow(self, *records, verdict=APPROVED_VERDICT):
        repository = InMemoryRuleSetRepository()
        self.invoices = InMemoryInvoices(*records)
        self.contract_validator = MagicMock()
        self.contract_validator.contract_validate = AsyncMock(return_value=verdict)
        return InvoiceValidationWorkflow(
            repository=self.invoices,
            validator=ValidationService(repository=repository),
            bir_validator=BIRComplianceService(repository=repository),
            contract_validator=self.contract_validator,
        )

    async def test_pending_invoice_runs_every_validation(self):
        workflow = self.make_workflow(invoice())
        outcome = await workflow.validate("inv-1")

        statuses = outcome.validation_status
        self.assertEqual(statuses.attachment_validation_status, InvoiceStatus.SUCCESS)
        self.assertEqual(statuses.bir_validation_status, InvoiceStatus.SUCCESS)
        self.assertEqual(statuses.contract_validation_status, InvoiceStatus.SUCCESS)
        self.assertEqual(statuses.amount_validation_status, InvoiceStatus.SUCCESS)
        self.assertTrue(outcome.document_validation.is_valid)
        self.assertTrue(outcome.bir_compliance.is_compliant)
        self.assertEqual(outcome.rag_validation.schema_version, 1)
        self.contract_validator.contract_validate.assert_awaited_once_with("INV-2024-0042")

    async def test_successful_statuses_are_not_rerun(self):
        record = invoice(
            attachment_validation_status=InvoiceStatus.SUCCESS,
            bir_validation_status=InvoiceStatus.SUCCESS,
            contract_validation_status=InvoiceStatus.SUCCESS,
            amount_validation_status=InvoiceStatus.SUCCESS,
        )
        workflow = self.make_workflow(record)
        outcome = await workflow.validate("inv-1")

        self.assertIsNone(outcome.document_validation)
        self.assertIsNone(outcome.bir_compliance)
        self.assertEqual(self.invoices.status_updates, [])
        self.contract_validator.contract_validate.assert_not_awaited()

    async def test_failed_statuses_are_retried(self):
        record = invoice(
            attachment_validation_status=InvoiceStatus.SUCCESS,
            bir_validation_status=InvoiceStatus.FAILED,
            contract_validation_status=InvoiceStatus.SUCCESS,
            amount_validation_status=InvoiceStatus.SUCCESS,
        )
        workflow = self.make_workflow(record)
        outcome = await workflow.validate("inv-1")

        self.assertIsNone(outcome.document_validation)
        self.assertIsNotNone(outcome.bir_compliance)
        self.assertEqual(self.invoices.status_updates, [{"bir_validation_status": InvoiceStatus.SUCCESS}])
        self.contract_validator.contract_validate.assert_not_awaited()

    async def test_failures_are_recorded(self):
        parsed = bir_invoice(form_2307_attached=False, has_invoice_word=False)
        workflow = self.make_workflow(invoice(parsed_data=parsed), verdict=REJECTED_VERDICT)
        outcome = await workflow.validate("inv-1")

        statuses = outcome.validation_status
        self.assertEqual(statuses.attachment_validation_status, InvoiceStatus.FAILED)
        self.assertEqual(statuses.bir_validation_status, InvoiceStatus.FAILED)
        self.assertEqual(statuses.contract_validation_status, InvoiceStatus.FAILED)
        self.assertEqual(statuses.amount_validation_status, InvoiceStatus.FAILED)
        self.assertEqual(self.invoices.records["inv-1"].contract_validation_status, InvoiceStatus.FAILED)

    async def test_only_amount_pending_still_calls_contract_validation(self):
        record = invoice(
            attachment_validation_status=InvoiceStatus.SUCCESS,
            bir_validation_status=InvoiceStatus.SUCCESS,
            contract_validation_status=InvoiceStatus.SUCCESS,
        )
        workflow = self.make_workflow(record)
        outcome = await workflow.validate("inv-1")

        self.assertEqual(outcome.validation_status.amount_validation_status, InvoiceStatus.SUCCESS)
        self.contract_validator.contract_validate.assert_awaited_once()

    async def test_recorded_success_survives_a_rejecting_verdict(self):
        record = invoice(
            attachment_validation_status=InvoiceStatus.SUCCESS,
            bir_validation_status=InvoiceStatus.SUCCESS,
            contract_validation_status=InvoiceStatus.SUCCESS,
        )
        workflow = self.make_workflow(record, verdict=REJECTED_VERDICT)
        outcome = await workflow.validate("inv-1")

        self.assertEqual(outcome.validation_status.contract_validation_status, InvoiceStatus.SUCCESS)
        self.assertEqual(outcome.validation_status.amount_validation_status, InvoiceStatus.FAILED)
        self.assertEqual(self.invoices.records["inv-1"].contract_validation_status, InvoiceStatus.SUCCESS)

    async def test_missing_invoice(self):
        workflow = self.make_workflow()
        with self.assertRaises(InvoiceNotFoundError):
            await workflow.validate("missing")

    async def test_contract_check_needs_an_invoice_number(self):
        parsed = bir_invoice(form_2307_attached=True, form_2307_consistent=True, invoice_number=None)
        workflow = self.make_workflow(invoice(invoice_number=None, parsed_data=parsed))

        with self.assertRaises(ContractValidationError):
            await workflow.validate("inv-1")
        # Statuses decided before the contract step are kept
        self.assertEqual(self.invoices.records["inv-1"].attachment_validation_status, InvoiceStatus.SUCCESS)

    async def test_verdict_with_numeric_values_and_null_lists(self):
        verdict = {
            **APPROVED_VERDICT,
            "line_items_validation": [{"line_number": 1, "issues": None}],
            "compliance_issues": [{"severity": "LOW", "expected_value": 1200.0, "actual_value": 1150.5}],
            "recommendations": {"action_required": "APPROVED", "next_steps": None},
        }
        workflow = self.make_workflow(invoice(), verdict=verdict)
        outcome = await workflow.validate("inv-1")

        self.assertEqual(outcome.validation_status.contract_validation_status, InvoiceStatus.SUCCESS)
        self.assertEqual(outcome.validation_status.amount_validation_status, InvoiceStatus.SUCCESS)
        self.assertEqual(outcome.rag_validation.compliance_issues[0].expected_value, 1200.0)
        self.assertEqual(outcome.rag_validation.recommendations.next_steps, [])
        self.assertEqual(outcome.rag_validation.line_items_validation[0].issues, [])
        self.assertIsNotNone(self.invoices.records["inv-1"].rag_validation)

    async def test_malformed_verdict(self):
        workflow = self.make_workflow(invoice(), verdict={"line_items_validation": "not a list"})
        with self.assertRaises(ContractValidationError):
            await workflow.validate("inv-1")

    async def test_concurrent_runs_are_serialized(self):
        workflow = self.make_workflow(invoice())
        first, second = await asyncio.gather(workflow.validate("inv-1"), workflow.validate("inv-1"))

        self.assertEqual(self.contract_validator.contract_validate.await_count, 1)
        self.assertIsNotNone(first.bir_compliance)
        self.assertIsNone(second.bir_compliance)
        self.assertEqual(workflow._locks, {})

    async def test_locks_are_released_after_each_run(self):
        workflow = self.make_workflow(invoice())
        await workflow.validate("inv-1")
        with self.assertRaises(InvoiceNotFoundError):
            await workflow.validate("missing")

        self.assertEqual(workflow._locks, {})
        self.assertEqual(workflow._lock_users, {})


if __name__ == '__main__':
    unittest.main()
