"""Job waiter for asynchronous control plane operations.

Every mutating QingCloud call returns a job ID. JobWaiter polls the job at a
fixed interval until it is terminal or the poll budget is spent.

The job wait is a synchronization aid, not the source of truth. Callers that
re-describe the volume afterwards use wait_best_effort() and let the describe
decide the outcome.
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import TYPE_CHECKING

from qcvolume.core.errors import JobFailedError, JobTimeoutError, VolumeError
from qcvolume.core.logging_schema import LogEvent
from qcvolume.core.models import JobStatus
from qcvolume.core.retryable import is_retryable

if TYPE_CHECKING:
    from qcvolume.core.interfaces import ControlPlane

logger = logging.getLogger(__name__)

DEFAULT_WAIT_INTERVAL = 10.0
DEFAULT_WAIT_TIMEOUT = 180.0


class JobWaiter:
    """Bounded poll of a control plane job.

    The wait is a coroutine, so callers can cancel it or bound it with
    asyncio.timeout(). Cancellation always propagates.
    """

    def __init__(
        self,
        api: ControlPlane,
        interval: float = DEFAULT_WAIT_INTERVAL,
        timeout: float = DEFAULT_WAIT_TIMEOUT,
    ) -> None:
        self._api = api
        self._interval = interval
        self._timeout = timeout

    @staticmethod
    def max_polls(timeout: float, interval: float) -> int:
        """Number of polls that fit in timeout (at least one)."""
        if interval <= 0:
            return 1
        return max(1, math.ceil(timeout / interval))

    async def wait(
        self,
        job_id: str,
        timeout: float | None = None,
        interval: float | None = None,
    ) -> None:
        """Wait until job_id succeeds.

        Args:
            job_id: Job to wait for
            timeout: Overall wait budget in seconds (default: configured)
            interval: Seconds between polls (default: configured)

        Raises:
            JobFailedError: Job failed or is unknown to the control plane
            JobTimeoutError: Job not terminal after the poll budget
            RemoteError: Non-transient error while describing the job
        """
        timeout = self._timeout if timeout is None else timeout
        interval = self._interval if interval is None else interval
        polls = self.max_polls(timeout, interval)

        for attempt in range(1, polls + 1):
            await asyncio.sleep(interval)

            try:
                jobs = await self._api.describe_jobs([job_id])
            except Exception as exc:
                if not is_retryable(exc):
                    raise
                # Network or API hiccup, not a job failure
                logger.warning(
                    "Failed to describe job, will retry: %s",
                    exc,
                    extra={"event": LogEvent.JOB_POLL_FAILED, "job_id": job_id, "attempt": attempt},
                )
                continue

            if not jobs:
                raise JobFailedError(f"Can not find job [{job_id}]")

            status = jobs[0].status
            if status == JobStatus.SUCCESSFUL:
                logger.debug(
                    "Job finished",
                    extra={"event": LogEvent.JOB_COMPLETED, "job_id": job_id, "attempt": attempt},
                )
                return
            if status in JobStatus.FAILURES:
                raise JobFailedError(f"Job [{job_id}] {status}")
            if status not in (None, JobStatus.PENDING, JobStatus.WORKING):
                logger.warning(
                    "Unknown status [%s] for job [%s]",
                    status,
                    job_id,
                    extra={"event": LogEvent.JOB_POLL_FAILED, "job_id": job_id},
                )

        raise JobTimeoutError(f"Wait timeout [{timeout}s] for job [{job_id}]")

    async def wait_best_effort(self, job_id: str) -> bool:
        """Wait for job_id, logging instead of raising job failures.

        Returns:
            True if the job succeeded, False if it failed or timed out
        """
        try:
            await self.wait(job_id)
        except JobTimeoutError as exc:
            logger.warning(
                "Job wait timed out, continuing: %s",
                exc,
                extra={"event": LogEvent.JOB_TIMEOUT, "job_id": job_id},
            )
            return False
        except (VolumeError, ValueError) as exc:
            # ValueError covers a job_set entry that does not parse
            logger.warning(
                "Job wait failed, continuing: %s",
                exc,
                extra={"event": LogEvent.JOB_FAILED, "job_id": job_id},
            )
            return False
        return True
