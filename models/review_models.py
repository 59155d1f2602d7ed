"""
Review Models for submission grading review
Submission, Grade and exam content as returned by the grading backend,
plus the locally staged override state
"""

from pydantic import BaseModel, Field, ConfigDict
from typing import List, Optional, Dict, Any

# ==================== STATUS VALUES ====================

# Submission.processing_status (backend-defined; other values are not actionable)
SUBMISSION_PENDING = "pending"
SUBMISSION_GRADING = "grading"
SUBMISSION_GRADED = "graded"
SUBMISSION_FAILED = "failed"

# Grade.status
GRADE_AUTO_GRADED = "auto_graded"
GRADE_NEEDS_REVIEW = "needs_review"
GRADE_OVERRIDDEN = "overridden"
GRADE_FINAL = "final"

LOW_CONFIDENCE_THRESHOLD = 0.7

# ==================== SUBMISSION MODELS ====================

class OCRPage(BaseModel):
    """OCR output for one scanned page"""
    model_config = ConfigDict(extra="ignore")
    page_number: int
    raw_text: str = ""
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    image_url: Optional[str] = None

    @property
    def flags(self) -> List[str]:
        flags = []
        if self.confidence < LOW_CONFIDENCE_THRESHOLD:
            flags.append("low_confidence")
        if not self.raw_text.strip():
            flags.append("no_text_detected")
        elif len(self.raw_text.strip()) < 10:
            flags.append("empty_or_short_text")
        return flags

    @property
    def confidence_percent(self) -> str:
        return f"{self.confidence * 100:.0f}%"


class Answer(BaseModel):
    model_config = ConfigDict(extra="ignore")
    question_id: str
    text: str = ""


class Submission(BaseModel):
    """One student's scanned answer set for one exam"""
    model_config = ConfigDict(extra="ignore")
    id: str
    exam_id: str
    student_id: str
    processing_status: str = SUBMISSION_PENDING
    ocr_results: List[OCRPage] = Field(default_factory=list)  # index-aligned with questions
    answers: List[Answer] = Field(default_factory=list)  # index-aligned with questions
    uploaded_at: Optional[str] = None

# ==================== GRADE MODEL ====================

class Grade(BaseModel):
    """Scored outcome for one question within a submission"""
    model_config = ConfigDict(extra="ignore")
    id: str
    submission_id: str
    question_id: str
    final_score: float
    max_score: float
    ai_score: Optional[float] = None
    override_score: Optional[float] = None
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    reasoning: str = ""
    criteria_met: List[str] = Field(default_factory=list)
    mistakes_found: List[str] = Field(default_factory=list)
    status: str = GRADE_AUTO_GRADED
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def is_final(self) -> bool:
        return self.status == GRADE_FINAL

# ==================== EXAM CONTENT ====================

class Question(BaseModel):
    model_config = ConfigDict(extra="ignore")
    id: str
    question_text: str
    points: float
    answer_type: str = "text"
    question_number: Optional[str] = None
    question_group: Optional[str] = None
    rubric: Optional[Dict[str, Any]] = None


class Exam(BaseModel):
    model_config = ConfigDict(extra="ignore")
    id: str
    title: str
    subject: Optional[str] = None
    description: Optional[str] = None
    questions: List[Question] = Field(default_factory=list)
    created_at: Optional[str] = None

# ==================== OVERRIDE MODELS ====================

class OverrideRequest(BaseModel):
    """Body of POST /submissions/{id}/questions/{qid}/override"""
    new_score: float
    reason: str


class PendingOverride(BaseModel):
    """Score and reason a reviewer has typed but not yet submitted"""
    new_score: Optional[float] = None
    reason: str = ""

    @property
    def is_empty(self) -> bool:
        return self.new_score is None and not self.reason
