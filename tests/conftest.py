import httpx
import pytest

from services.credentials import StaticTokenProvider
from services.grading_api import GradingAPIClient
from services.grading_trigger import FixedDelayRefresh
from services.review_controller import SubmissionReviewController
from services.upload_mapper import BatchUploadMapper
from utils.notifications import Notifier
from fake_backend import FakeGradingBackend, TEST_TOKEN


@pytest.fixture()
def backend():
    """Backend seeded with one graded and one pending submission"""
    fake = FakeGradingBackend()
    fake.add_exam("exam-1", question_count=3)

    fake.add_submission("sub-1", "exam-1", status="graded", question_count=3)
    fake.add_grade("sub-1", "g1", "q1", 3.0, status="auto_graded")
    fake.add_grade("sub-1", "g2", "q2", 2.5, status="needs_review")
    fake.add_grade("sub-1", "g3", "q3", 5.0, status="final")

    fake.add_submission("sub-pending", "exam-1", status="pending", student_id="bob")
    return fake


@pytest.fixture()
async def api(backend):
    client = GradingAPIClient(
        "http://testserver",
        StaticTokenProvider(TEST_TOKEN),
        transport=httpx.ASGITransport(app=backend.app),
    )
    yield client
    await client.aclose()


@pytest.fixture()
def notifier():
    return Notifier()


@pytest.fixture()
async def controller(api, notifier):
    review = SubmissionReviewController(api, "sub-1", notifier=notifier, refresh_strategy=FixedDelayRefresh(0))
    assert await review.load()
    yield review
    await review.close()


@pytest.fixture()
async def pending_controller(api, notifier):
    review = SubmissionReviewController(api, "sub-pending", notifier=notifier, refresh_strategy=FixedDelayRefresh(0))
    assert await review.load()
    yield review
    await review.close()


@pytest.fixture()
async def mapper(api, notifier):
    upload = BatchUploadMapper(api, "exam-1", notifier=notifier)
    yield upload
    await upload.close()

