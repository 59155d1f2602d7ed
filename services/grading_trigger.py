"""
Grading trigger coordination
Requests a (re-)grading run and refreshes the review once results may be in.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from tenacity import AsyncRetrying, retry_if_result, stop_after_attempt, wait_exponential

from models.review_models import SUBMISSION_FAILED
from utils.errors import APIError, ViewClosedError
from utils.settings import REFRESH_BACKOFF, ReviewSettings

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_DELAY = 2.0


class FixedDelayRefresh:
    """Refresh once after a fixed delay; no guarantee grading has finished"""

    def __init__(self, delay: float = DEFAULT_REFRESH_DELAY):
        self.delay = delay

    async def run(self, controller) -> bool:
        await asyncio.sleep(self.delay)
        if not await controller.refresh():
            return False
        return controller.grading_settled


class BackoffPollRefresh:
    """
    Poll with exponential backoff until grading settles or attempts run out.

    Settled means the submission is graded with at least one grade, or the
    backend reported the run as failed. The first poll waits `initial_delay`;
    each later wait grows by `factor` up to `max_delay`.
    """

    def __init__(
        self,
        initial_delay: float = 1.0,
        factor: float = 2.0,
        max_delay: float = 16.0,
        max_attempts: int = 5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.initial_delay = initial_delay
        self.factor = factor
        self.max_delay = max_delay
        self.max_attempts = max_attempts
        self.sleep = sleep

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(
                multiplier=self.initial_delay * self.factor,
                exp_base=self.factor,
                max=self.max_delay,
            ),
            retry=retry_if_result(lambda settled: not settled),
            retry_error_callback=lambda retry_state: False,
            sleep=self.sleep,
        )

    async def run(self, controller) -> bool:
        notifier = controller.notifier
        polls = 0

        async def poll() -> bool:
            nonlocal polls
            polls += 1
            await controller.refresh()
            # A closed view stops the polling; reported below
            return controller.scope.closed or controller.grading_settled

        await self.sleep(min(self.initial_delay, self.max_delay))
        settled = await self._retrying()(poll)
        if controller.scope.closed:
            return False

        if settled:
            if controller.submission.processing_status == SUBMISSION_FAILED:
                notifier.error("Grading failed", "The grading run did not complete")
            else:
                notifier.success("Grading complete", f"{len(controller.grades)} question(s) graded")
            logger.info(f"Grading settled for {controller.submission_id} after {polls} poll(s)")
            return True

        notifier.info("Grading still in progress", "Reload the submission later to see the results")
        logger.warning(
            f"Grading for {controller.submission_id} not settled after {self.max_attempts} poll(s)"
        )
        return False


def build_refresh_strategy(settings: ReviewSettings):
    if settings.refresh_strategy == REFRESH_BACKOFF:
        return BackoffPollRefresh(
            initial_delay=settings.refresh_delay,
            max_delay=settings.poll_max_delay,
            max_attempts=settings.poll_max_attempts,
        )
    return FixedDelayRefresh(settings.refresh_delay)


class GradingTriggerCoordinator:
    """Fire-and-poll trigger for one review session"""

    def __init__(self, controller, strategy=None):
        self.controller = controller
        self.strategy = strategy or FixedDelayRefresh()
        self.triggering = False
        self.pending_refresh: Optional[asyncio.Task] = None

    async def trigger(self, submission_id: Optional[str] = None) -> bool:
        """
        Ask the backend to (re-)grade a submission.

        Returns False without a request while a trigger is outstanding.
        On success a deferred refresh is scheduled and True is returned.
        """
        if self.triggering:
            logger.info("Grading trigger already in progress, ignoring")
            return False

        controller = self.controller
        submission_id = submission_id or controller.submission_id
        self.triggering = True
        try:
            await controller.scope.run(controller.api.trigger_grading(submission_id))
        except ViewClosedError:
            return False
        except APIError as e:
            controller.notifier.error("Error", e.message)
            raise
        finally:
            if not controller.scope.closed:
                self.triggering = False

        controller.notifier.info("Grading started", "This may take a few moments")
        logger.info(f"Grading triggered for submission {submission_id}")
        self._schedule_refresh()
        return True

    def _schedule_refresh(self):
        if self.pending_refresh is not None and not self.pending_refresh.done():
            # A newer trigger supersedes the previous poll
            self.pending_refresh.cancel()
        self.pending_refresh = self.controller.scope.spawn(
            self.strategy.run(self.controller),
            name=f"grading-refresh-{self.controller.submission_id}",
        )
