"""
Test suite for the submission review controller
- load() of submission + grades (+ exam questions)
- clamped question navigation
- view state per processing_status x grade count
"""
import asyncio
import itertools

import pytest

from services.grading_trigger import FixedDelayRefresh
from services.review_controller import (
    SubmissionReviewController,
    VIEW_AWAITING_GRADING, VIEW_ERROR, VIEW_GRADING, VIEW_LOADING,
    VIEW_NO_GRADES, VIEW_REVIEW, VIEW_UNKNOWN,
)


async def wait_for(condition, timeout: float = 1.0):
    async def poll():
        while not condition():
            await asyncio.sleep(0)
    await asyncio.wait_for(poll(), timeout)


class TestLoad:
    """Loading a submission and its grades"""

    async def test_load_aligns_grades_with_answers(self, controller):
        """Grades keep backend order, index-aligned with answers and OCR pages"""
        assert controller.submission.id == "sub-1"
        assert [g.id for g in controller.grades] == ["g1", "g2", "g3"]
        assert controller.current_index == 0
        assert controller.current_answer.question_id == "q1"
        assert controller.current_ocr_page.page_number == 1
        assert controller.current_question.id == "q1"
        assert controller.view_state == VIEW_REVIEW

    async def test_fetches_submission_and_grades(self, backend, controller):
        assert backend.count("get_submission") == 1
        assert backend.count("get_grades") == 1
        assert backend.count("get_exam") == 1

    async def test_grades_failure_degrades_to_empty_list(self, backend, api, notifier):
        backend.fail("get_grades", 500, {"error": "grading store offline"})
        review = SubmissionReviewController(api, "sub-1", notifier=notifier)

        assert await review.load() is True
        assert review.submission is not None
        assert review.grades == []
        assert review.error is None
        assert review.view_state == VIEW_NO_GRADES
        assert notifier.history == []

    async def test_submission_failure_is_error_state(self, backend, api, notifier):
        backend.fail("get_submission", 500, {"error": "database unavailable"})
        review = SubmissionReviewController(api, "sub-1", notifier=notifier)

        assert await review.load() is False
        assert review.submission is None
        assert review.error == "database unavailable"
        assert review.view_state == VIEW_ERROR
        assert notifier.last.title == "Error loading submission"
        assert notifier.last.description == "database unavailable"

    async def test_failed_refresh_keeps_loaded_review(self, backend, controller, notifier):
        """A transient failure on refresh leaves the loaded grades on screen"""
        controller.next()
        backend.fail("get_submission", 503, {"error": "database unavailable"})

        assert await controller.refresh() is False
        assert controller.submission.id == "sub-1"
        assert len(controller.grades) == 3
        assert controller.current_index == 1
        assert controller.view_state == VIEW_REVIEW
        assert controller.error == "database unavailable"
        assert notifier.last.title == "Error loading submission"

        backend.clear_failures()
        assert await controller.refresh() is True
        assert controller.error is None

    async def test_switching_submission_drops_previous_review(self, controller):
        assert await controller.load("does-not-exist") is False
        assert controller.submission is None
        assert controller.grades == []
        assert controller.view_state == VIEW_ERROR

    async def test_missing_submission_uses_backend_message(self, api, notifier):
        review = SubmissionReviewController(api, "does-not-exist", notifier=notifier)

        assert await review.load() is False
        assert review.error == "submission not found"

    async def test_exam_failure_only_drops_question_text(self, backend, api):
        backend.fail("get_exam", 503)
        review = SubmissionReviewController(api, "sub-1")

        assert await review.load() is True
        assert review.exam is None
        assert review.current_question is None
        assert len(review.grades) == 3

    async def test_refresh_reuses_loaded_exam(self, backend, controller):
        await controller.refresh()
        await controller.refresh()

        assert backend.count("get_submission") == 3
        assert backend.count("get_exam") == 1

    async def test_refresh_replaces_local_state(self, backend, controller):
        backend.grades["sub-1"][0]["final_score"] = 4.5
        backend.grades["sub-1"][0]["status"] = "overridden"

        await controller.refresh()

        assert controller.grades[0].final_score == 4.5
        assert controller.grades[0].status == "overridden"

    async def test_not_loaded_is_loading_state(self, api):
        review = SubmissionReviewController(api, "sub-1")
        assert review.view_state == VIEW_LOADING
        assert review.current_grade is None
        assert review.current_answer is None


class TestNavigation:
    """Cursor over the question/answer/grade triple"""

    async def test_next_and_previous(self, controller):
        assert controller.next() == 1
        assert controller.current_grade.id == "g2"
        assert controller.next() == 2
        assert controller.previous() == 1
        assert controller.position_label == "Question 2 of 3"

    async def test_saturates_at_bounds(self, controller):
        for _ in range(10):
            controller.next()
        assert controller.current_index == 2
        assert not controller.has_next

        for _ in range(10):
            controller.previous()
        assert controller.current_index == 0
        assert not controller.has_previous

    async def test_every_sequence_stays_in_range(self, controller):
        last = len(controller.grades) - 1
        for steps in itertools.product(("next", "previous"), repeat=6):
            controller.go_to(0)
            for step in steps:
                getattr(controller, step)()
                assert 0 <= controller.current_index <= last

    async def test_go_to_is_clamped(self, controller):
        assert controller.go_to(99) == 2
        assert controller.go_to(-5) == 0

    async def test_cursor_clamped_when_grades_shrink(self, backend, controller):
        controller.go_to(2)
        backend.grades["sub-1"] = backend.grades["sub-1"][:1]

        await controller.refresh()

        assert controller.current_index == 0
        assert controller.current_grade.id == "g1"

    async def test_navigation_without_grades(self, pending_controller):
        assert pending_controller.next() == 0
        assert pending_controller.previous() == 0
        assert pending_controller.position_label == "No questions"
        assert pending_controller.current_grade is None


class TestViewState:
    """Available actions per processing_status and grade count"""

    async def test_pending_without_grades_only_offers_trigger(self, pending_controller):
        assert pending_controller.view_state == VIEW_AWAITING_GRADING
        assert pending_controller.can_trigger_grading
        assert not pending_controller.can_navigate
        assert not pending_controller.can_override()

    async def test_graded_without_grades_offers_retrigger(self, backend, api):
        backend.add_submission("sub-empty", "exam-1", status="graded")
        review = SubmissionReviewController(api, "sub-empty")
        await review.load()

        assert review.view_state == VIEW_NO_GRADES
        assert review.can_trigger_grading

    async def test_grading_in_progress_is_not_triggerable(self, backend, api):
        backend.add_submission("sub-busy", "exam-1", status="grading")
        review = SubmissionReviewController(api, "sub-busy")
        await review.load()

        assert review.view_state == VIEW_GRADING
        assert not review.can_trigger_grading

    async def test_unknown_status_is_not_actionable(self, backend, api):
        backend.add_submission("sub-odd", "exam-1", status="archived")
        review = SubmissionReviewController(api, "sub-odd")
        await review.load()

        assert review.view_state == VIEW_UNKNOWN
        assert not review.can_trigger_grading

    async def test_graded_with_grades_is_review_mode(self, controller):
        assert controller.view_state == VIEW_REVIEW
        assert controller.can_navigate
        assert not controller.can_trigger_grading

    async def test_final_grade_has_no_override(self, controller):
        controller.go_to(2)
        assert controller.current_grade.status == "final"
        assert controller.can_override() is False
        assert controller.can_override(controller.grade_by_id("g1")) is True


class TestSupplementaryData:
    """Feedback and audit log for the review screen"""

    async def test_load_feedback_for_current_question(self, controller):
        controller.next()
        feedback = await controller.load_feedback()
        assert feedback["question_id"] == "q2"

    async def test_load_audit_log(self, backend, controller):
        backend.audit_logs["sub-1"] = [{"action": "override", "question_id": "q1"}]
        logs = await controller.load_audit_log()
        assert logs == [{"action": "override", "question_id": "q1"}]

    async def test_summary(self, controller):
        summary = controller.summary()
        assert summary["student_id"] == "alice"
        assert summary["position"] == "Question 1 of 3"
        assert summary["score"] == "3.0 / 5"
        assert summary["can_override"] is True


class TestLifecycle:
    """Tearing the view down"""

    async def test_load_after_close_is_noop(self, api, notifier):
        review = SubmissionReviewController(api, "sub-1", notifier=notifier, refresh_strategy=FixedDelayRefresh(0))
        await review.close()

        assert await review.load() is False
        assert review.submission is None
        assert notifier.history == []

    async def test_close_discards_staged_overrides(self, controller):
        controller.overrides.stage_score("g1", 4)
        await controller.close()
        assert controller.overrides.pending == {}


class TestConcurrentLoads:
    """Overlapping loads of the same view"""

    async def test_slow_earlier_refresh_does_not_overwrite_newer_state(self, backend, controller):
        gate = backend.hold("get_grades")
        first = asyncio.ensure_future(controller.refresh())
        await wait_for(lambda: backend.count("get_grades") == 2)

        backend.grades["sub-1"][1]["final_score"] = 4.0
        backend.grades["sub-1"][1]["status"] = "overridden"
        assert await controller.refresh() is True
        assert controller.grades[1].status == "overridden"

        gate.set()
        assert await first is False
        assert controller.grades[1].status == "overridden"
        assert controller.grades[1].final_score == 4.0
        assert controller.loading is False

    async def test_cancelled_load_clears_loading_flag(self, backend, controller):
        backend.hold("get_grades")
        pending = asyncio.ensure_future(controller.refresh())
        await wait_for(lambda: backend.count("get_grades") == 2)
        assert controller.loading is True

        pending.cancel()
        with pytest.raises(asyncio.CancelledError):
            await pending

        assert controller.loading is False
        assert controller.view_state == VIEW_REVIEW
