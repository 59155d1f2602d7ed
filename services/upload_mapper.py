"""
Batch Upload Mapper
Collects scanned answer files, pairs each with a student id and uploads them
one at a time (single mode) or together (batch mode).
"""

import logging
from collections import Counter
from typing import Dict, Iterable, List, Optional, Union

from models.upload_models import (
    BatchUploadResult, CandidateFile, UploadFileEntry,
    UPLOAD_BATCH, UPLOAD_MODES, UPLOAD_SINGLE,
)
from services.grading_api import GradingAPIClient
from utils.errors import APIError, ReviewValidationError, ViewClosedError
from utils.file_types import default_student_id, is_supported_type
from utils.lifecycle import ViewScope
from utils.notifications import Notifier

logger = logging.getLogger(__name__)

DEFAULT_MAX_UPLOAD_BYTES = 50 * 1024 * 1024

EntryKey = Union[int, str]


class BatchUploadMapper:
    """
    File list for the upload screen.

    Entries are owned by a generated id, with a separate ordered id list for
    display order, so removing or editing a row never retargets another one.
    Methods taking an entry key accept either that id or the row's current
    position.
    """

    def __init__(
        self,
        api: GradingAPIClient,
        exam_id: str,
        mode: str = UPLOAD_BATCH,
        notifier: Optional[Notifier] = None,
        scope: Optional[ViewScope] = None,
        max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
    ):
        if mode not in UPLOAD_MODES:
            raise ValueError(f"Unknown upload mode: {mode}")
        self.api = api
        self.exam_id = exam_id
        self.notifier = notifier or Notifier()
        self.scope = scope or ViewScope(f"upload {exam_id}")
        self.max_upload_bytes = max_upload_bytes

        self._mode = mode
        self._entries: Dict[str, UploadFileEntry] = {}
        self._order: List[str] = []
        self.student_id = ""  # typed id for single mode
        self.uploading = False
        self.last_result: Optional[BatchUploadResult] = None

    # ==================== MODE ====================

    @property
    def mode(self) -> str:
        return self._mode

    def set_mode(self, mode: str):
        """Switching modes always empties the file list"""
        if mode not in UPLOAD_MODES:
            raise ValueError(f"Unknown upload mode: {mode}")
        if mode == self._mode:
            return
        self._mode = mode
        self.clear()
        logger.info(f"Upload mode switched to {mode}")

    # ==================== FILE LIST ====================

    @property
    def files(self) -> List[UploadFileEntry]:
        return [self._entries[entry_id] for entry_id in self._order]

    def __len__(self):
        return len(self._order)

    def clear(self):
        self._entries.clear()
        self._order.clear()

    def _reject(self, candidate: CandidateFile) -> bool:
        if not is_supported_type(candidate.content_type):
            self.notifier.error("Invalid file type", f"{candidate.name} is not a PDF or image file")
            return True
        if candidate.size > self.max_upload_bytes:
            limit_mb = self.max_upload_bytes / (1024 * 1024)
            self.notifier.error("File too large", f"{candidate.name} exceeds the {limit_mb:g} MB limit")
            return True
        return False

    def add_files(self, raw_files: Iterable[CandidateFile]) -> List[UploadFileEntry]:
        """
        Validate and add files; rejected files are reported one by one and
        never abort the rest. Returns the entries that were added.
        """
        valid = [candidate for candidate in raw_files if not self._reject(candidate)]
        if not valid:
            return []

        if self._mode == UPLOAD_SINGLE:
            entry = UploadFileEntry(file=valid[0], student_id=self.student_id)
            self.clear()
            self._entries[entry.id] = entry
            self._order.append(entry.id)
            return [entry]

        added = []
        for candidate in valid:
            entry = UploadFileEntry(file=candidate, student_id=default_student_id(candidate.name))
            self._entries[entry.id] = entry
            self._order.append(entry.id)
            added.append(entry)
        logger.info(f"Added {len(added)} file(s) to batch for exam {self.exam_id}")
        return added

    def _resolve(self, key: EntryKey) -> UploadFileEntry:
        if isinstance(key, int) and not isinstance(key, bool):
            if not 0 <= key < len(self._order):
                raise ReviewValidationError(f"No file at position {key}")
            return self._entries[self._order[key]]
        if key not in self._entries:
            raise ReviewValidationError(f"Unknown file entry {key}")
        return self._entries[key]

    def set_student_id(self, value: str):
        """Typed student id for single mode; also applied to the selected file"""
        self.student_id = value
        if self._mode == UPLOAD_SINGLE:
            for entry in self._entries.values():
                entry.student_id = value

    def update_student_id(self, key: EntryKey, value: str) -> UploadFileEntry:
        entry = self._resolve(key)
        entry.student_id = value
        return entry

    def remove_file(self, key: EntryKey) -> UploadFileEntry:
        entry = self._resolve(key)
        del self._entries[entry.id]
        self._order.remove(entry.id)
        return entry

    # ==================== UPLOAD ====================

    def validate(self):
        entries = self.files
        if not entries:
            raise ReviewValidationError("Please select at least one file")
        if any(not entry.student_id.strip() for entry in entries):
            raise ReviewValidationError("All files must have a student ID")
        if self._mode == UPLOAD_BATCH:
            duplicates = [name for name, count in Counter(e.filename for e in entries).items() if count > 1]
            if duplicates:
                raise ReviewValidationError(f"Duplicate file name in batch: {duplicates[0]}")

    async def submit(self):
        """
        Upload the current list. Nothing is sent unless every entry is valid.

        On success the uploaded entries leave the list and the response is
        returned; on failure the list is left untouched for a retry. Returns
        None without a request while an upload is already running.
        """
        if self.uploading:
            logger.info("Upload already in progress, ignoring")
            return None

        try:
            self.validate()
        except ReviewValidationError as e:
            self.notifier.error("Error", e.message)
            raise

        entries = self.files
        mode = self._mode
        self.uploading = True
        try:
            if mode == UPLOAD_SINGLE:
                result = await self.scope.run(self.api.upload_submission(self.exam_id, entries[0]))
            else:
                result = await self.scope.run(self.api.upload_batch(self.exam_id, entries))
        except ViewClosedError:
            return None
        except APIError as e:
            self.notifier.error("Upload failed", e.message)
            raise
        finally:
            if not self.scope.closed:
                self.uploading = False

        for entry in entries:
            if entry.id in self._entries:
                del self._entries[entry.id]
                self._order.remove(entry.id)

        if mode == UPLOAD_SINGLE:
            self.notifier.success("Success", "Submission uploaded successfully")
        else:
            self.last_result = result
            self.notifier.success("Success", f"{len(entries)} submissions uploaded successfully")
        logger.info(f"Uploaded {len(entries)} file(s) for exam {self.exam_id}")
        return result

    async def batch_status(self, batch_id: Optional[str] = None):
        batch_id = batch_id or (self.last_result.batch_id if self.last_result else None)
        if not batch_id:
            raise ReviewValidationError("No batch has been uploaded yet")
        try:
            return await self.scope.run(self.api.get_batch_status(batch_id))
        except APIError as e:
            self.notifier.error("Error", e.message)
            raise

    async def close(self):
        await self.scope.aclose()
        self.clear()
