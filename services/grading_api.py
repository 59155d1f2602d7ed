"""
Grading API client
Async httpx wrapper over the grading backend's /api/v1 endpoints
"""

import json
import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx
from pydantic import ValidationError

from models.review_models import Exam, Grade, OverrideRequest, Submission
from models.upload_models import BatchUploadResult, UploadFileEntry
from services.credentials import CredentialProvider
from utils.errors import APIError

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


class GradingAPIClient:
    """Client for the grading backend; every request carries the bearer token"""

    def __init__(
        self,
        base_url: str,
        credentials: CredentialProvider,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip('/')
        self.credentials = credentials
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self):
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    # ==================== TRANSPORT ====================

    async def _request(self, method: str, path: str, fallback: str, **kwargs) -> Any:
        headers = await self.credentials.auth_headers()
        url = f"{API_PREFIX}{path}"

        try:
            response = await self._client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"{method} {url} failed: {str(e)}")
            raise APIError(fallback) from e

        if response.is_error:
            message = _error_message(response, fallback)
            logger.error(f"{method} {url} returned {response.status_code}: {message}")
            raise APIError(message, status_code=response.status_code)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            logger.error(f"{method} {url} returned a non-JSON body")
            raise APIError(fallback, status_code=response.status_code) from e

    @staticmethod
    def _parse(model, data, fallback: str):
        try:
            return model.model_validate(data)
        except ValidationError as e:
            logger.error(f"Unexpected {model.__name__} payload: {str(e)}")
            raise APIError(fallback) from e

    # ==================== EXAMS ====================

    async def get_exam(self, exam_id: str) -> Exam:
        fallback = "Failed to get exam"
        data = await self._request("GET", f"/exams/{exam_id}", fallback)
        return self._parse(Exam, data, fallback)

    # ==================== SUBMISSIONS ====================

    async def get_submission(self, submission_id: str) -> Submission:
        fallback = "Failed to get submission"
        data = await self._request("GET", f"/submissions/{submission_id}", fallback)
        return self._parse(Submission, data, fallback)

    async def trigger_grading(self, submission_id: str) -> Dict[str, Any]:
        return await self._request(
            "POST", f"/submissions/{submission_id}/trigger-grading", "Failed to trigger grading"
        )

    async def upload_submission(self, exam_id: str, entry: UploadFileEntry) -> Submission:
        fallback = "Failed to upload submission"
        data = await self._request(
            "POST",
            f"/exams/{exam_id}/submissions",
            fallback,
            files={"file": (entry.file.name, entry.file.content, entry.file.content_type)},
            data={"student_id": entry.student_id.strip()},
        )
        return self._parse(Submission, data, fallback)

    async def upload_batch(self, exam_id: str, entries: Sequence[UploadFileEntry]) -> BatchUploadResult:
        """
        Upload several files in one multipart request.

        `student_mapping` is keyed by filename for the backend; `file_manifest`
        repeats each entry with its client id in `files[]` order so duplicate
        names can still be told apart.
        """
        fallback = "Failed to upload batch"
        student_mapping = {entry.file.name: entry.student_id.strip() for entry in entries}
        manifest = [entry.manifest_row() for entry in entries]
        data = await self._request(
            "POST",
            f"/exams/{exam_id}/submissions/batch",
            fallback,
            files=[
                ("files[]", (entry.file.name, entry.file.content, entry.file.content_type))
                for entry in entries
            ],
            data={
                "student_mapping": json.dumps(student_mapping),
                "file_manifest": json.dumps(manifest),
            },
        )
        return self._parse(BatchUploadResult, data, fallback)

    async def get_batch_status(self, batch_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/batches/{batch_id}/status", "Failed to get batch status")

    # ==================== GRADES ====================

    async def get_grades(self, submission_id: str) -> List[Grade]:
        fallback = "Failed to get grades"
        data = await self._request("GET", f"/submissions/{submission_id}/grades", fallback)
        if data in (None, {}):
            return []
        if not isinstance(data, list):
            raise APIError(fallback)
        return [self._parse(Grade, item, fallback) for item in data]

    async def override_grade(self, submission_id: str, question_id: str, new_score: float, reason: str) -> Dict[str, Any]:
        body = OverrideRequest(new_score=new_score, reason=reason)
        return await self._request(
            "POST",
            f"/submissions/{submission_id}/questions/{question_id}/override",
            "Failed to override grade",
            json=body.model_dump(),
        )

    async def get_feedback(self, submission_id: str, question_id: str) -> Dict[str, Any]:
        return await self._request(
            "GET",
            f"/submissions/{submission_id}/questions/{question_id}/feedback",
            "Failed to get feedback",
        )

    async def get_audit_logs(self, entity_id: str, entity_type: str = "submission") -> List[Dict[str, Any]]:
        data = await self._request(
            "GET", f"/audit/{entity_id}", "Failed to get audit logs", params={"type": entity_type}
        )
        if isinstance(data, dict):
            return data.get("logs", [])
        return data


def _error_message(response: httpx.Response, fallback: str) -> str:
    """Backend `error` field verbatim, or the endpoint's fallback message"""
    try:
        body = response.json()
    except ValueError:
        return fallback
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return fallback
