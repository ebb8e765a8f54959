"""Batch validation over Paperless documents"""

import asyncio
import time
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from ..config import settings
from ..exceptions import BatchLimitError, DocumentContentMissingError, UnknownRuleSetError
from ..models.batch import (
    BatchDocumentResult,
    BatchMode,
    BatchOptions,
    BatchResult,
    BatchSummary,
    CommonIssue,
    ComplianceReport,
    DocumentOutcome,
    DocumentSummary,
)
from ..models.rules import RuleSetKind
from ..utils.logging import logger
from ..utils.numbers import percentage, round_half_up
from .bir_compliance_service import BIRComplianceService, bir_compliance_service
from .extraction_service import ExtractionService, extraction_service
from .paperless_service import PaperlessService, paperless_service
from .rule_registry import RuleSetRepository, rule_set_repository
from .validation_service import ValidationService, validation_service

DEFAULT_RULE_SETS = {
    BatchMode.VALIDATION: "standard_invoice",
    BatchMode.BIR_COMPLIANCE: "standard_bir_compliance",
}

# Where previously extracted data may already sit on a Paperless document
EXTRACTED_DATA_KEYS = {
    BatchMode.VALIDATION: "extracted_data",
    BatchMode.BIR_COMPLIANCE: "bir_extracted_data",
}

COMMON_ISSUES_LIMIT = 5


def compliance_report(compliance_rate: int) -> ComplianceReport:
    """GOOD at 80% and above, FAIR at 60% and above, POOR below."""
    if compliance_rate >= 80:
        return ComplianceReport(
            overall_status="GOOD",
            recommendation="Most documents meet BIR requirements. Review the remaining non-compliant documents."
        )
    if compliance_rate >= 60:
        return ComplianceReport(
            overall_status="FAIR",
            recommendation="A significant share of documents is non-compliant. Address the common issues listed."
        )
    return ComplianceReport(
        overall_status="POOR",
        recommendation="Most documents fail BIR requirements. Review document sources and extraction quality."
    )


class BatchOrchestrator:
    """Fetch, extract and validate many documents with bounded concurrency"""

    def __init__(
        self,
        paperless: Optional[PaperlessService] = None,
        extractor: Optional[ExtractionService] = None,
        validator: Optional[ValidationService] = None,
        bir_validator: Optional[BIRComplianceService] = None,
        repository: Optional[RuleSetRepository] = None
    ):
        self.paperless = paperless or paperless_service
        self.extractor = extractor or extraction_service
        self.validator = validator or validation_service
        self.bir_validator = bir_validator or bir_compliance_service
        self.repository = repository or rule_set_repository

    @staticmethod
    def limits(mode: BatchMode) -> Tuple[int, int]:
        """(max documents, concurrency chunk size) for a mode."""
        if mode == BatchMode.BIR_COMPLIANCE:
            return settings.BIR_BATCH_MAX_DOCUMENTS, settings.BIR_BATCH_CONCURRENCY
        return settings.BATCH_MAX_DOCUMENTS, settings.BATCH_CONCURRENCY

    async def load_invoice_data(
        self,
        document_id: str,
        mode: BatchMode = BatchMode.VALIDATION,
        force_re_extraction: bool = False
    ) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        """
        Fetch a document and its invoice fields.

        Reuses extraction data already attached to the document unless
        ``force_re_extraction``. Returns (document, extracted_data).
        Collaborator failures propagate.
        """
        document = await self.paperless.get_document(document_id)
        content = document.get("content")
        if not content or not str(content).strip():
            raise DocumentContentMissingError(document_id)

        extracted = document.get(EXTRACTED_DATA_KEYS[mode])
        if force_re_extraction or not isinstance(extracted, dict):
            extracted = await self.extractor.extract_invoice_fields(content)
        return document, extracted

    async def _process_document(
        self,
        document_id: str,
        mode: BatchMode,
        rule_set_id: str,
        options: BatchOptions
    ) -> BatchDocumentResult:
        start = time.perf_counter()
        document = None
        extracted = None

        try:
            document, extracted = await self.load_invoice_data(document_id, mode, options.force_re_extraction)

            if mode == BatchMode.BIR_COMPLIANCE:
                result = await self.bir_validator.validate_bir_compliance(extracted, rule_set_id)
                compliant = result.is_compliant
                if options.compliance_threshold is not None and result.score < options.compliance_threshold:
                    compliant = False
                status = DocumentOutcome.BIR_COMPLIANT if compliant else DocumentOutcome.BIR_NON_COMPLIANT
                outcome = {"bir_compliance": result}
            else:
                result = await self.validator.validate_invoice_data(extracted, rule_set_id)
                status = DocumentOutcome.VALID if result.is_valid else DocumentOutcome.INVALID
                outcome = {"validation": result}

            return BatchDocumentResult(
                document_id=document_id,
                success=True,
                status=status,
                document=self._summarize(document_id, document),
                extracted_data=extracted,
                processing_time_ms=self._elapsed_ms(start),
                **outcome
            )

        except Exception as e:
            logger.log_error("batch_document_failed", {
                "document_id": document_id,
                "mode": mode.value,
                "error": str(e),
                "error_type": type(e).__name__
            })
            return BatchDocumentResult(
                document_id=document_id,
                success=False,
                status=DocumentOutcome.ERROR,
                document=self._summarize(document_id, document) if document else None,
                extracted_data=extracted,
                error=str(e),
                processing_time_ms=self._elapsed_ms(start),
            )

    async def run_batch(
        self,
        document_ids: List[str],
        rule_set_id: Optional[str] = None,
        options: Optional[BatchOptions] = None,
        mode: BatchMode = BatchMode.VALIDATION
    ) -> BatchResult:
        """
        Validate documents chunk by chunk.

        Documents inside a chunk run concurrently, chunks run one after
        another. A failing document becomes an ERROR result and never
        aborts the batch.

        Raises:
            BatchLimitError: empty batch or more documents than the mode allows
            UnknownRuleSetError: rule set id is not active for the mode
        """
        options = options or BatchOptions()
        max_documents, chunk_size = self.limits(mode)

        if not document_ids:
            raise BatchLimitError("Document IDs array is required", requested=0, limit=max_documents)
        if len(document_ids) > max_documents:
            raise BatchLimitError(
                f"Maximum {max_documents} documents allowed per batch",
                requested=len(document_ids),
                limit=max_documents
            )

        rule_set_id = await self._resolve_rule_set_id(mode, rule_set_id, options)

        logger.log_step("batch_started", {
            "mode": mode.value,
            "rule_set_id": rule_set_id,
            "documents_count": len(document_ids),
            "chunk_size": chunk_size,
            "force_re_extraction": options.force_re_extraction
        })

        results: List[BatchDocumentResult] = []
        for offset in range(0, len(document_ids), chunk_size):
            chunk = [str(doc_id) for doc_id in document_ids[offset:offset + chunk_size]]
            chunk_results = await asyncio.gather(
                *(self._process_document(doc_id, mode, rule_set_id, options) for doc_id in chunk)
            )
            results.extend(chunk_results)
            logger.log_step("batch_chunk_completed", {
                "mode": mode.value,
                "chunk_index": offset // chunk_size,
                "chunk_documents": chunk
            })

        summary = self._summarize_batch(results, mode)
        logger.log_step("batch_completed", {
            "mode": mode.value,
            "rule_set_id": rule_set_id,
            "total_documents": summary.total_documents,
            "passed_documents": summary.passed_documents,
            "error_documents": summary.error_documents,
            "total_processing_time_ms": summary.total_processing_time_ms
        })

        return BatchResult(
            mode=mode,
            rule_set_used=rule_set_id,
            results=results,
            summary=summary,
            timestamp=datetime.now(timezone.utc).isoformat(),
            compliance_threshold=options.compliance_threshold,
            report=compliance_report(summary.pass_rate) if mode == BatchMode.BIR_COMPLIANCE else None,
        )

    async def _resolve_rule_set_id(self, mode: BatchMode, rule_set_id: Optional[str], options: BatchOptions) -> str:
        kind = RuleSetKind.BIR if mode == BatchMode.BIR_COMPLIANCE else RuleSetKind.COMPLETENESS

        if options.po_type:
            by_po_type = await self.repository.get_by_po_type(options.po_type)
            if by_po_type is not None and by_po_type.kind == kind:
                return by_po_type.id

        rule_set_id = rule_set_id or DEFAULT_RULE_SETS[mode]
        rule_set = await self.repository.get(rule_set_id)
        if rule_set is None or rule_set.kind != kind:
            raise UnknownRuleSetError(rule_set_id, kind.value)
        return rule_set_id

    def _summarize_batch(self, results: List[BatchDocumentResult], mode: BatchMode) -> BatchSummary:
        total = len(results)
        passed_status = DocumentOutcome.BIR_COMPLIANT if mode == BatchMode.BIR_COMPLIANCE else DocumentOutcome.VALID
        passed = sum(1 for r in results if r.status == passed_status)
        errored = sum(1 for r in results if r.status == DocumentOutcome.ERROR)

        scores = []
        issues: Counter = Counter()
        for r in results:
            outcome = r.bir_compliance if mode == BatchMode.BIR_COMPLIANCE else r.validation
            if outcome is None:
                continue
            scores.append(outcome.score)
            issues.update(error.field for error in outcome.errors)

        total_ms = sum(r.processing_time_ms for r in results)
        return BatchSummary(
            total_documents=total,
            passed_documents=passed,
            failed_documents=total - passed - errored,
            error_documents=errored,
            pass_rate=percentage(passed, total),
            average_score=round_half_up(sum(scores) / len(scores)) if scores else 0,
            average_processing_time_ms=round_half_up(total_ms / total) if total else 0,
            total_processing_time_ms=total_ms,
            common_issues=[
                CommonIssue(field=field, occurrences=count)
                for field, count in issues.most_common(COMMON_ISSUES_LIMIT)
            ],
        )

    @staticmethod
    def _summarize(document_id: str, document: Optional[Dict[str, Any]]) -> DocumentSummary:
        document = document or {}
        return DocumentSummary(
            id=str(document.get("id", document_id)),
            title=document.get("title"),
            original_file_name=document.get("original_file_name"),
        )

    @staticmethod
    def _elapsed_ms(start: float) -> int:
        return int((time.perf_counter() - start) * 1000)


# Global batch orchestrator instance
batch_orchestrator = BatchOrchestrator()
