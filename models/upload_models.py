"""Models for scanned answer file uploads"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List, Dict, Any
from pathlib import Path
import mimetypes
import uuid

UPLOAD_SINGLE = "single"
UPLOAD_BATCH = "batch"
UPLOAD_MODES = (UPLOAD_SINGLE, UPLOAD_BATCH)


class CandidateFile(BaseModel):
    """A file the reviewer picked or dropped, before validation"""
    name: str
    content_type: str = ""
    content: bytes = b""

    @property
    def size(self) -> int:
        return len(self.content)

    @classmethod
    def from_path(cls, path) -> "CandidateFile":
        path = Path(path)
        content_type, _ = mimetypes.guess_type(path.name)
        return cls(
            name=path.name,
            content_type=content_type or "application/octet-stream",
            content=path.read_bytes()
        )


class UploadFileEntry(BaseModel):
    """A validated file paired with the student it belongs to"""
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    file: CandidateFile
    student_id: str = ""

    @property
    def filename(self) -> str:
        return self.file.name

    def manifest_row(self) -> Dict[str, str]:
        return {
            "client_file_id": self.id,
            "filename": self.file.name,
            "student_id": self.student_id.strip()
        }


class BatchUploadResult(BaseModel):
    """Response of the batch upload endpoint; the backend may add fields"""
    model_config = ConfigDict(extra="allow")
    batch_id: Optional[str] = None
    submissions: List[Dict[str, Any]] = Field(default_factory=list)
    count: Optional[int] = None
