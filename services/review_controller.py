"""
Submission Review Controller
Loads a submission with its grades and walks the reviewer through them
question by question. Every mutation is followed by a full reload; local
state is never patched.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from models.review_models import (
    Answer, Exam, Grade, OCRPage, Question, Submission,
    SUBMISSION_FAILED, SUBMISSION_GRADED, SUBMISSION_GRADING, SUBMISSION_PENDING,
)
from services.grading_api import GradingAPIClient
from services.grading_trigger import GradingTriggerCoordinator
from services.override_tracker import OverridePendingTracker
from utils.errors import APIError, ViewClosedError
from utils.lifecycle import ViewScope
from utils.notifications import Notifier

logger = logging.getLogger(__name__)

VIEW_LOADING = "loading"
VIEW_ERROR = "error"
VIEW_AWAITING_GRADING = "awaiting_grading"
VIEW_GRADING = "grading"
VIEW_NO_GRADES = "no_grades"
VIEW_REVIEW = "review"
VIEW_UNKNOWN = "unknown"


class SubmissionReviewController:
    """Review surface for one submission"""

    def __init__(
        self,
        api: GradingAPIClient,
        submission_id: str,
        notifier: Optional[Notifier] = None,
        scope: Optional[ViewScope] = None,
        refresh_strategy=None,
        load_exam: bool = True,
    ):
        self.api = api
        self.submission_id = submission_id
        self.notifier = notifier or Notifier()
        self.scope = scope or ViewScope(f"review {submission_id}")
        self.load_exam = load_exam

        self.submission: Optional[Submission] = None
        self.grades: List[Grade] = []
        self.exam: Optional[Exam] = None
        self.error: Optional[str] = None
        self.loading = False
        self._index = 0
        self._load_seq = 0

        self.grading = GradingTriggerCoordinator(self, strategy=refresh_strategy)
        self.overrides = OverridePendingTracker(self)

    # ==================== LOADING ====================

    async def load(self, submission_id: Optional[str] = None) -> bool:
        """
        Fetch the submission and its grades concurrently.

        A failed grades fetch degrades to an empty list. A failed submission
        fetch puts a fresh view in the error state; an already loaded review
        keeps its data and only records the error. Only the most recent load
        may write state, so a slow earlier response never replaces a newer
        one. Returns True when this load's result was applied.
        """
        if submission_id and submission_id != self.submission_id:
            self.submission_id = submission_id
            self._index = 0
            self.submission = None
            self.grades = []
            self.overrides.discard_all()

        self._load_seq += 1
        seq = self._load_seq
        self.loading = True
        try:
            try:
                submission, grades, exam = await self.scope.run(self._fetch(self.submission_id))
            except ViewClosedError:
                return False
            except APIError as e:
                if seq != self._load_seq:
                    logger.info(f"Ignoring failed stale load of {self.submission_id}: {e.message}")
                    return False
                if self.submission is None:
                    self.grades = []
                self.error = e.message
                self.notifier.error("Error loading submission", e.message)
                return False

            if seq != self._load_seq:
                logger.info(f"Discarding stale load of {submission.id}")
                return False

            self.submission = submission
            self.grades = grades
            self.exam = exam
            self.error = None
            self._index = self._clamp(self._index)
            logger.info(
                f"Loaded submission {submission.id}: status={submission.processing_status}, "
                f"{len(grades)} grade(s)"
            )
            return True
        finally:
            if seq == self._load_seq and not self.scope.closed:
                self.loading = False

    async def refresh(self) -> bool:
        return await self.load()

    async def _fetch(self, submission_id: str):
        submission, grades = await asyncio.gather(
            self.api.get_submission(submission_id),
            self._fetch_grades(submission_id),
            return_exceptions=True,
        )
        if isinstance(submission, BaseException):
            raise submission
        if isinstance(grades, BaseException):
            raise grades

        exam = self.exam
        if self.load_exam and (exam is None or exam.id != submission.exam_id):
            exam = await self._fetch_exam(submission.exam_id)
        return submission, grades, exam

    async def _fetch_grades(self, submission_id: str) -> List[Grade]:
        try:
            return await self.api.get_grades(submission_id)
        except APIError as e:
            # A submission can exist before grading has produced anything
            logger.warning(f"Grades unavailable for {submission_id}: {e.message}")
            return []

    async def _fetch_exam(self, exam_id: str) -> Optional[Exam]:
        try:
            return await self.api.get_exam(exam_id)
        except APIError as e:
            logger.warning(f"Exam {exam_id} unavailable, question text will be missing: {e.message}")
            return None

    async def close(self):
        """Tear down the view; pending requests become no-ops"""
        await self.scope.aclose()
        self.overrides.discard_all()

    async def __aenter__(self):
        await self.load()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    # ==================== NAVIGATION ====================

    def _clamp(self, index: int) -> int:
        if not self.grades:
            return 0
        return max(0, min(index, len(self.grades) - 1))

    @property
    def current_index(self) -> int:
        return self._index

    def go_to(self, index: int) -> int:
        self._index = self._clamp(index)
        return self._index

    def next(self) -> int:
        return self.go_to(self._index + 1)

    def previous(self) -> int:
        return self.go_to(self._index - 1)

    @property
    def has_next(self) -> bool:
        return self._index < len(self.grades) - 1

    @property
    def has_previous(self) -> bool:
        return self._index > 0

    @property
    def position_label(self) -> str:
        if not self.grades:
            return "No questions"
        return f"Question {self._index + 1} of {len(self.grades)}"

    # ==================== CURRENT QUESTION ====================

    @staticmethod
    def _at(items, index):
        return items[index] if items is not None and 0 <= index < len(items) else None

    @property
    def current_grade(self) -> Optional[Grade]:
        return self._at(self.grades, self._index)

    @property
    def current_answer(self) -> Optional[Answer]:
        return self._at(self.submission.answers, self._index) if self.submission else None

    @property
    def current_ocr_page(self) -> Optional[OCRPage]:
        return self._at(self.submission.ocr_results, self._index) if self.submission else None

    @property
    def current_question(self) -> Optional[Question]:
        return self._at(self.exam.questions, self._index) if self.exam else None

    def grade_by_id(self, grade_id: str) -> Optional[Grade]:
        for grade in self.grades:
            if grade.id == grade_id:
                return grade
        return None

    # ==================== STATE ====================

    @property
    def view_state(self) -> str:
        if self.submission is None:
            if self.error:
                return VIEW_ERROR
            return VIEW_LOADING
        if self.grades:
            return VIEW_REVIEW
        status = self.submission.processing_status
        if status == SUBMISSION_PENDING:
            return VIEW_AWAITING_GRADING
        if status == SUBMISSION_GRADING:
            return VIEW_GRADING
        if status == SUBMISSION_GRADED:
            return VIEW_NO_GRADES
        return VIEW_UNKNOWN

    @property
    def can_trigger_grading(self) -> bool:
        if self.submission is None or self.grading.triggering:
            return False
        status = self.submission.processing_status
        return status == SUBMISSION_PENDING or (status == SUBMISSION_GRADED and not self.grades)

    @property
    def can_navigate(self) -> bool:
        return self.view_state == VIEW_REVIEW

    def can_override(self, grade: Optional[Grade] = None) -> bool:
        """Final grades never get an override control"""
        grade = grade or self.current_grade
        return grade is not None and not grade.is_final

    @property
    def grading_settled(self) -> bool:
        if self.submission is None:
            return False
        status = self.submission.processing_status
        return status == SUBMISSION_FAILED or (status == SUBMISSION_GRADED and bool(self.grades))

    # ==================== SUPPLEMENTARY DATA ====================

    async def load_feedback(self) -> Optional[Dict[str, Any]]:
        """Student-facing feedback for the current question"""
        grade = self.current_grade
        if grade is None:
            return None
        try:
            return await self.scope.run(self.api.get_feedback(self.submission_id, grade.question_id))
        except ViewClosedError:
            return None
        except APIError as e:
            self.notifier.error("Error", e.message)
            raise

    async def load_audit_log(self) -> List[Dict[str, Any]]:
        try:
            return await self.scope.run(self.api.get_audit_logs(self.submission_id, "submission"))
        except ViewClosedError:
            return []
        except APIError as e:
            self.notifier.error("Error", e.message)
            raise

    def summary(self) -> Dict[str, Any]:
        grade = self.current_grade
        question = self.current_question
        return {
            "submission_id": self.submission_id,
            "student_id": self.submission.student_id if self.submission else None,
            "status": self.submission.processing_status if self.submission else None,
            "view_state": self.view_state,
            "position": self.position_label,
            "question": question.question_text if question else None,
            "answer": self.current_answer.text if self.current_answer else None,
            "score": f"{grade.final_score:.1f} / {grade.max_score:g}" if grade else None,
            "grade_status": grade.status if grade else None,
            "can_trigger_grading": self.can_trigger_grading,
            "can_override": self.can_override(),
            "error": self.error,
        }
