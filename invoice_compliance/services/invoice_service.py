"""Invoice records and the per-invoice validation status workflow"""

import asyncio
import json
import uuid
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from ..exceptions import ContractValidationError, InvoiceNotFoundError
from ..models.records import (
    InvoiceRecord,
    InvoiceStatus,
    InvoiceStatuses,
    InvoiceValidationOutcome,
    RagValidation,
)
from ..utils.database import db_manager
from ..utils.dates import parse_date
from ..utils.logging import logger
from .bir_compliance_service import BIRComplianceService, bir_compliance_service
from .contract_validation_service import ContractValidationService, contract_validation_service
from .validation_service import ValidationService, validation_service

ATTACHMENT_RULE_SET = "bir_invoice"
BIR_RULE_SET = "official_bir_compliance"

STATUS_COLUMNS = (
    "attachment_validation_status",
    "bir_validation_status",
    "contract_validation_status",
    "amount_validation_status",
)

SELECT_COLUMNS = """
    id, ocr_id, invoice_number, invoice_date, vendor_name, vendor_tin, customer_name,
    customer_tin, total_amount, currency, vat_amount, signature_present, bir_atp,
    attachment_validation_status, bir_validation_status, contract_validation_status,
    amount_validation_status, parsed_data, rag_validation, created_at, updated_at
"""


def _text(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def _json_column(value: Any) -> Any:
    return json.loads(value) if isinstance(value, str) else value


class InvoiceRepository:
    """asyncpg access to ai_db_schema.invoice_tbl"""

    TABLE = "ai_db_schema.invoice_tbl"

    def __init__(self, database=None):
        self.db = database or db_manager
        self._initialized = False

    async def ensure_table(self):
        if self._initialized:
            return
        async with self.db.get_connection() as conn:
            await conn.execute("CREATE SCHEMA IF NOT EXISTS ai_db_schema")
            await conn.execute(f"""
                CREATE TABLE IF NOT EXISTS {self.TABLE} (
                    id CHAR(36) PRIMARY KEY,
                    ocr_id INTEGER UNIQUE,
                    invoice_number VARCHAR(255),
                    invoice_date DATE,
                    vendor_name VARCHAR(500),
                    vendor_tin VARCHAR(100),
                    customer_name VARCHAR(500),
                    customer_tin VARCHAR(100),
                    total_amount VARCHAR(50),
                    currency VARCHAR(10),
                    vat_amount VARCHAR(50),
                    signature_present BOOLEAN,
                    bir_atp BOOLEAN,
                    attachment_validation_status VARCHAR(50) DEFAULT 'pending',
                    bir_validation_status VARCHAR(50) DEFAULT 'pending',
                    contract_validation_status VARCHAR(50) DEFAULT 'pending',
                    amount_validation_status VARCHAR(50) DEFAULT 'pending',
                    parsed_data JSONB,
                    rag_validation JSONB,
                    created_at TIMESTAMPTZ DEFAULT NOW(),
                    updated_at TIMESTAMPTZ DEFAULT NOW()
                )
            """)
        self._initialized = True

    @staticmethod
    def _to_record(row) -> InvoiceRecord:
        data = dict(row)
        data["id"] = data["id"].strip()
        if data.get("invoice_date") is not None:
            data["invoice_date"] = data["invoice_date"].isoformat()
        data["parsed_data"] = _json_column(data.get("parsed_data")) or {}
        data["rag_validation"] = _json_column(data.get("rag_validation"))
        return InvoiceRecord.model_validate(data)

    async def create(self, parsed_data: Dict[str, Any], ocr_id: Optional[int] = None) -> InvoiceRecord:
        """Insert an invoice with every status pending."""
        await self.ensure_table()
        invoice_id = str(uuid.uuid4())
        async with self.db.get_connection() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO {self.TABLE} (
                    id, ocr_id, invoice_number, invoice_date, vendor_name, vendor_tin,
                    customer_name, customer_tin, total_amount, currency, vat_amount,
                    signature_present, bir_atp, parsed_data
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14::jsonb)
                RETURNING {SELECT_COLUMNS}
                """,
                invoice_id,
                ocr_id,
                _text(parsed_data.get("invoice_number")),
                parse_date(parsed_data.get("invoice_date")),
                _text(parsed_data.get("vendor_name")),
                _text(parsed_data.get("vendor_tin")),
                _text(parsed_data.get("customer_name")),
                _text(parsed_data.get("customer_tin")),
                _text(parsed_data.get("total_amount")),
                _text(parsed_data.get("currency")),
                _text(parsed_data.get("vat_amount")),
                parsed_data.get("signature_present") if isinstance(parsed_data.get("signature_present"), bool) else None,
                parsed_data.get("bir_atp") if isinstance(parsed_data.get("bir_atp"), bool) else None,
                json.dumps(parsed_data, default=str),
            )
        logger.log_step("invoice_created", {"invoice_id": invoice_id, "ocr_id": ocr_id})
        return self._to_record(row)

    async def get(self, invoice_id: str) -> Optional[InvoiceRecord]:
        await self.ensure_table()
        async with self.db.get_connection() as conn:
            row = await conn.fetchrow(f"SELECT {SELECT_COLUMNS} FROM {self.TABLE} WHERE id = $1", invoice_id)
        return self._to_record(row) if row else None

    async def list(self, page: int = 1, page_size: int = 25) -> Tuple[List[InvoiceRecord], int]:
        """One page of invoices, newest first, plus the total count."""
        await self.ensure_table()
        offset = max(page - 1, 0) * page_size
        async with self.db.get_connection() as conn:
            rows = await conn.fetch(
                f"SELECT {SELECT_COLUMNS} FROM {self.TABLE} ORDER BY created_at DESC LIMIT $1 OFFSET $2",
                page_size,
                offset
            )
            total = await conn.fetchval(f"SELECT COUNT(*) FROM {self.TABLE}")
        return [self._to_record(row) for row in rows], total

    async def update_statuses(self, invoice_id: str, **statuses: InvoiceStatus) -> None:
        """Persist one or more status columns."""
        unknown = set(statuses) - set(STATUS_COLUMNS)
        if unknown:
            raise ValueError(f"Unknown status columns: {sorted(unknown)}")

        assignments = ", ".join(f"{column} = ${index}" for index, column in enumerate(statuses, start=2))
        async with self.db.get_connection() as conn:
            await conn.execute(
                f"UPDATE {self.TABLE} SET {assignments}, updated_at = NOW() WHERE id = $1",
                invoice_id,
                *[InvoiceStatus(value).value for value in statuses.values()]
            )
        logger.log_step("invoice_status_updated", {
            "invoice_id": invoice_id,
            **{column: InvoiceStatus(value).value for column, value in statuses.items()}
        })

    async def attach_rag_validation(
        self,
        invoice_id: str,
        rag_validation: RagValidation,
        contract_status: InvoiceStatus,
        amount_status: InvoiceStatus
    ) -> None:
        """Store the contract verdict and both statuses it decides."""
        async with self.db.get_connection() as conn:
            await conn.execute(
                f"""
                UPDATE {self.TABLE}
                SET rag_validation = $2::jsonb,
                    contract_validation_status = $3,
                    amount_validation_status = $4,
                    updated_at = NOW()
                WHERE id = $1
                """,
                invoice_id,
                rag_validation.model_dump_json(),
                contract_status.value,
                amount_status.value
            )
        logger.log_step("invoice_rag_validation_attached", {
            "invoice_id": invoice_id,
            "contract_validation_status": contract_status.value,
            "amount_validation_status": amount_status.value
        })


def _status(passed: bool) -> InvoiceStatus:
    return InvoiceStatus.SUCCESS if passed else InvoiceStatus.FAILED


class InvoiceValidationWorkflow:
    """
    Drives the status board of one invoice.

    Each status is validated only while it is pending or failed; a
    success is never re-run. Runs for the same invoice are serialized.
    """

    def __init__(
        self,
        repository: Optional[InvoiceRepository] = None,
        validator: Optional[ValidationService] = None,
        bir_validator: Optional[BIRComplianceService] = None,
        contract_validator: Optional[ContractValidationService] = None
    ):
        self.repository = repository or invoice_repository
        self.validator = validator or validation_service
        self.bir_validator = bir_validator or bir_compliance_service
        self.contract_validator = contract_validator or contract_validation_service
        # Per-invoice locks, dropped once no run holds or awaits them
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    async def validate(self, invoice_id: str) -> InvoiceValidationOutcome:
        lock = self._locks.setdefault(invoice_id, asyncio.Lock())
        self._lock_users[invoice_id] = self._lock_users.get(invoice_id, 0) + 1
        try:
            async with lock:
                return await self._validate(invoice_id)
        finally:
            self._lock_users[invoice_id] -= 1
            if not self._lock_users[invoice_id]:
                del self._lock_users[invoice_id]
                del self._locks[invoice_id]

    async def _validate(self, invoice_id: str) -> InvoiceValidationOutcome:
        invoice = await self.repository.get(invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(invoice_id)

        statuses = {column: getattr(invoice, column) for column in STATUS_COLUMNS}
        document_validation = None
        bir_compliance = None
        rag_validation = invoice.rag_validation

        logger.log_step("invoice_validation_started", {"invoice_id": invoice_id, **{
            column: status.value for column, status in statuses.items()
        }})

        if statuses["attachment_validation_status"].retryable:
            document_validation = await self.validator.validate_invoice_data(
                invoice.parsed_data, ATTACHMENT_RULE_SET
            )
            statuses["attachment_validation_status"] = _status(document_validation.is_valid)
            await self.repository.update_statuses(
                invoice_id, attachment_validation_status=statuses["attachment_validation_status"]
            )

        if statuses["bir_validation_status"].retryable:
            bir_compliance = await self.bir_validator.validate_bir_compliance(
                invoice.parsed_data, BIR_RULE_SET
            )
            statuses["bir_validation_status"] = _status(bir_compliance.is_compliant)
            await self.repository.update_statuses(
                invoice_id, bir_validation_status=statuses["bir_validation_status"]
            )

        if statuses["contract_validation_status"].retryable or statuses["amount_validation_status"].retryable:
            invoice_number = invoice.invoice_number or invoice.parsed_data.get("invoice_number")
            if not invoice_number:
                raise ContractValidationError("Invoice has no invoice number to validate against a contract")
            verdict = await self.contract_validator.contract_validate(invoice_number)
            try:
                rag_validation = RagValidation.model_validate(verdict)
            except ValidationError as e:
                logger.log_error("rag_validation_invalid", {"invoice_id": invoice_id, "error": str(e)})
                raise ContractValidationError("Contract verdict does not match the expected shape", original_error=e)

            # One verdict decides both statuses; a success already recorded stays
            if statuses["contract_validation_status"].retryable:
                statuses["contract_validation_status"] = _status(rag_validation.contract_approved)
            if statuses["amount_validation_status"].retryable:
                statuses["amount_validation_status"] = _status(rag_validation.amount_approved)
            await self.repository.attach_rag_validation(
                invoice_id,
                rag_validation,
                statuses["contract_validation_status"],
                statuses["amount_validation_status"]
            )

        logger.log_step("invoice_validation_completed", {"invoice_id": invoice_id, **{
            column: status.value for column, status in statuses.items()
        }})

        return InvoiceValidationOutcome(
            invoice_id=invoice_id,
            validation_status=InvoiceStatuses(**statuses),
            document_validation=document_validation,
            bir_compliance=bir_compliance,
            rag_validation=rag_validation,
        )


# Global invoice repository and workflow instances
invoice_repository = InvoiceRepository()
invoice_workflow = InvoiceValidationWorkflow()
