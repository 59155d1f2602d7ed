"""
Override tracking for graded questions
Staged score/reason and in-flight flags are keyed by grade id so several
overrides can be edited and submitted independently.
"""

import logging
import math
from typing import Any, Dict, Optional

from models.review_models import PendingOverride
from utils.errors import APIError, ReviewValidationError, ViewClosedError

logger = logging.getLogger(__name__)


def parse_score(value: Any) -> Optional[float]:
    """Numeric input (0 included) as a float; blank or non-numeric input is unset"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        try:
            value = float(value)
        except ValueError:
            return None
    if not isinstance(value, (int, float)):
        return None
    value = float(value)
    if math.isnan(value) or math.isinf(value):
        return None
    return value


class OverridePendingTracker:
    def __init__(self, controller):
        self.controller = controller
        self.pending: Dict[str, PendingOverride] = {}
        self.in_flight: Dict[str, bool] = {}

    # ==================== STAGING ====================

    def _entry(self, grade_id: str) -> PendingOverride:
        if grade_id not in self.pending:
            self.pending[grade_id] = PendingOverride()
        return self.pending[grade_id]

    def _prune(self, grade_id: str):
        if self.pending[grade_id].is_empty:
            del self.pending[grade_id]

    def stage_score(self, grade_id: str, value: Any):
        self._entry(grade_id).new_score = parse_score(value)
        self._prune(grade_id)

    def stage_reason(self, grade_id: str, text: Optional[str]):
        self._entry(grade_id).reason = text or ""
        self._prune(grade_id)

    def staged(self, grade_id: str) -> PendingOverride:
        """Copy of the staged values (empty when nothing is staged)"""
        entry = self.pending.get(grade_id)
        return entry.model_copy() if entry else PendingOverride()

    def is_in_flight(self, grade_id: str) -> bool:
        return self.in_flight.get(grade_id, False)

    def discard(self, grade_id: str):
        self.pending.pop(grade_id, None)

    def discard_all(self):
        self.pending.clear()

    # ==================== SUBMISSION ====================

    def _invalid(self, message: str):
        self.controller.notifier.error("Error", message)
        raise ReviewValidationError(message)

    async def submit(self, grade_id: str) -> Optional[Dict[str, Any]]:
        """
        Send the staged override for one grade.

        Validation failures raise ReviewValidationError before any request.
        Returns None without a request while the same grade is in flight.
        On success the staged values are dropped and the review is reloaded;
        on failure they are kept so the reviewer can retry.
        """
        controller = self.controller
        grade = controller.grade_by_id(grade_id)
        if grade is None:
            self._invalid(f"Grade {grade_id} is not part of this submission")

        staged = self.pending.get(grade_id) or PendingOverride()
        if staged.new_score is None:
            self._invalid("Please enter a new score")
        if not staged.reason.strip():
            self._invalid("Please provide a reason for the override")
        if grade.is_final:
            self._invalid("This grade is final and cannot be overridden")

        if self.in_flight.get(grade_id):
            logger.info(f"Override for grade {grade_id} already in flight, ignoring")
            return None

        self.in_flight[grade_id] = True
        try:
            result = await controller.scope.run(
                controller.api.override_grade(
                    controller.submission_id,
                    grade.question_id,
                    staged.new_score,
                    staged.reason.strip(),
                )
            )
        except ViewClosedError:
            return None
        except APIError as e:
            controller.notifier.error("Error", e.message)
            raise
        finally:
            if not controller.scope.closed:
                self.in_flight[grade_id] = False

        self.pending.pop(grade_id, None)
        logger.info(
            f"Overrode grade {grade_id} (question {grade.question_id}) "
            f"from {grade.final_score} to {staged.new_score}"
        )
        controller.notifier.success("Success", "Grade overridden successfully")
        await controller.refresh()
        return result
