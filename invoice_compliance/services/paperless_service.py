"""Paperless-ngx client: OCR documents, uploads and upload tasks"""

import asyncio
from typing import Any, Dict, List, Optional

import requests
from fastapi.concurrency import run_in_threadpool

from ..config import settings
from ..exceptions import CollaboratorError, DocumentNotFoundError, UploadPollingError
from ..utils.logging import logger

TERMINAL_TASK_STATES = {"SUCCESS", "FAILURE"}


class PaperlessService:
    """Thin wrapper over the Paperless-ngx REST API"""

    def __init__(self, base_url: Optional[str] = None, token: Optional[str] = None, timeout: Optional[float] = None):
        self.base_url = (base_url or settings.PAPERLESS_URL).rstrip("/")
        self.token = token if token is not None else settings.PAPERLESS_TOKEN
        self.timeout = timeout or settings.PAPERLESS_TIMEOUT

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Token {self.token}"
        return headers

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            response = requests.request(method, url, headers=self._headers(), timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            logger.log_error("paperless_request_exception", {
                "method": method,
                "url": url,
                "error": str(e),
                "error_type": type(e).__name__
            })
            raise CollaboratorError(f"Paperless request failed: {method} {path}", original_error=e)
        return response

    def _raise_for_status(self, response: requests.Response, action: str) -> None:
        if response.status_code >= 400:
            logger.log_error("paperless_request_failed", {
                "action": action,
                "status_code": response.status_code,
                "response": response.text[:500]
            })
            raise CollaboratorError(
                f"Paperless {action} failed with status {response.status_code}",
                details={"status_code": response.status_code}
            )

    async def get_document(self, document_id: str) -> Dict[str, Any]:
        """Document metadata plus OCR ``content``."""
        def _call_api():
            response = self._request("GET", f"/api/documents/{document_id}/")
            if response.status_code == 404:
                raise DocumentNotFoundError(document_id)
            self._raise_for_status(response, "get_document")
            return response.json()

        document = await run_in_threadpool(_call_api)
        logger.log_step("paperless_document_fetched", {
            "document_id": document_id,
            "content_length": len(document.get("content") or "")
        })
        return document

    async def list_documents(self, page: int = 1, page_size: int = 25) -> Dict[str, Any]:
        """One page of documents, newest first, as {data, count, page, page_size}."""
        def _call_api():
            response = self._request(
                "GET",
                "/api/documents/",
                params={"page": page, "page_size": page_size, "ordering": "-created"}
            )
            self._raise_for_status(response, "list_documents")
            return response.json()

        payload = await run_in_threadpool(_call_api)
        documents: List[Dict[str, Any]] = [
            {
                "id": doc.get("id"),
                "title": doc.get("title"),
                "created": doc.get("created"),
                "modified": doc.get("modified"),
                "correspondent": doc.get("correspondent_name"),
                "document_type": doc.get("document_type_name"),
                "original_file_name": doc.get("original_file_name"),
            }
            for doc in payload.get("results", [])
        ]
        return {"data": documents, "count": payload.get("count", 0), "page": page, "page_size": page_size}

    async def post_document(self, file_name: str, content: bytes, title: Optional[str] = None) -> str:
        """Upload a file for consumption; returns the Paperless task id."""
        def _call_api():
            data = {"title": title} if title else None
            response = self._request(
                "POST",
                "/api/documents/post_document/",
                files={"document": (file_name, content)},
                data=data
            )
            self._raise_for_status(response, "post_document")
            # Paperless answers with the bare task uuid as a JSON string
            task = response.json()
            return task if isinstance(task, str) else str(task.get("task_id", ""))

        task_id = await run_in_threadpool(_call_api)
        logger.log_step("paperless_document_posted", {
            "file_name": file_name,
            "file_size_bytes": len(content),
            "task_id": task_id
        })
        return task_id

    async def get_task(self, task_id: str) -> Optional[Dict[str, Any]]:
        """Status record for an upload task, None while Paperless has not registered it."""
        def _call_api():
            response = self._request("GET", "/api/tasks/", params={"task_id": task_id})
            self._raise_for_status(response, "get_task")
            tasks = response.json()
            if isinstance(tasks, dict):
                tasks = tasks.get("results", [])
            return tasks[0] if tasks else None

        return await run_in_threadpool(_call_api)

    async def poll_task(
        self,
        task_id: str,
        max_attempts: Optional[int] = None,
        interval_seconds: Optional[float] = None
    ) -> Dict[str, Any]:
        """
        Poll an upload task until it reaches SUCCESS or FAILURE.

        Bounded by ``max_attempts`` with a fixed sleep between attempts; the
        sleep is an await point, so cancelling the calling task stops
        polling. Raises UploadPollingError on FAILURE or when attempts run out.
        """
        max_attempts = max_attempts or settings.UPLOAD_POLL_MAX_ATTEMPTS
        interval = settings.UPLOAD_POLL_INTERVAL_SECONDS if interval_seconds is None else interval_seconds

        for attempt in range(1, max_attempts + 1):
            task = await self.get_task(task_id)
            status = (task or {}).get("status")

            if status in TERMINAL_TASK_STATES:
                logger.log_step("paperless_task_finished", {
                    "task_id": task_id,
                    "status": status,
                    "attempts": attempt
                })
                if status == "FAILURE":
                    raise UploadPollingError(
                        task_id,
                        f"processing failed: {task.get('result') or 'unknown error'}",
                        attempts=attempt
                    )
                return task

            if attempt < max_attempts:
                await asyncio.sleep(interval)

        logger.log_error("paperless_task_polling_exhausted", {"task_id": task_id, "attempts": max_attempts})
        raise UploadPollingError(task_id, f"not finished after {max_attempts} attempts", attempts=max_attempts)


# Global Paperless service instance
paperless_service = PaperlessService()
