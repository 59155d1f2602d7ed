"""
Composition root for the review client: settings, logging, API client and
the review/upload views. Run directly to print a submission summary.
"""
import argparse
import asyncio
import json
import logging
import sys
from typing import Optional

from models.upload_models import UPLOAD_BATCH
from services.credentials import CredentialProvider, StaticTokenProvider
from services.grading_api import GradingAPIClient
from services.grading_trigger import build_refresh_strategy
from services.review_controller import SubmissionReviewController
from services.upload_mapper import BatchUploadMapper
from utils.errors import ReviewError
from utils.lifecycle import ViewScope
from utils.notifications import Notifier
from utils.settings import ReviewSettings, load_settings
from version import BUILD_VERSION

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def build_api_client(settings: ReviewSettings, credentials: Optional[CredentialProvider] = None, transport=None) -> GradingAPIClient:
    return GradingAPIClient(
        settings.api_url,
        credentials or StaticTokenProvider(settings.api_token),
        timeout=settings.http_timeout,
        transport=transport,
    )


def open_review(api: GradingAPIClient, submission_id: str, settings: ReviewSettings, notifier: Optional[Notifier] = None) -> SubmissionReviewController:
    return SubmissionReviewController(
        api,
        submission_id,
        notifier=notifier,
        scope=ViewScope(f"review {submission_id}"),
        refresh_strategy=build_refresh_strategy(settings),
    )


def open_upload(api: GradingAPIClient, exam_id: str, settings: ReviewSettings, mode: str = UPLOAD_BATCH, notifier: Optional[Notifier] = None) -> BatchUploadMapper:
    return BatchUploadMapper(
        api,
        exam_id,
        mode=mode,
        notifier=notifier,
        scope=ViewScope(f"upload {exam_id}"),
        max_upload_bytes=settings.max_upload_bytes,
    )


async def review_summary(settings: ReviewSettings, submission_id: str, trigger: bool = False) -> dict:
    async with build_api_client(settings) as api:
        async with open_review(api, submission_id, settings) as controller:
            if trigger and controller.can_trigger_grading:
                await controller.grading.trigger()
                await controller.grading.pending_refresh
            summary = controller.summary()
            summary["notifications"] = [n.to_dict() for n in controller.notifier.history]
            return summary


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=f"Exam submission review client {BUILD_VERSION}")
    parser.add_argument("submission_id")
    parser.add_argument("--trigger", action="store_true", help="trigger grading when the submission is ungraded")
    args = parser.parse_args(argv)

    try:
        settings = load_settings()
    except ReviewError as e:
        print(f"Configuration error: {e.message}", file=sys.stderr)
        return 2
    configure_logging(settings.log_level)

    try:
        summary = asyncio.run(review_summary(settings, args.submission_id, trigger=args.trigger))
    except ReviewError as e:
        logger.error(f"Review failed: {e.message}")
        return 1
    print(json.dumps(summary, indent=2))
    return 0 if summary["error"] is None else 1


if __name__ == "__main__":
    sys.exit(main())
