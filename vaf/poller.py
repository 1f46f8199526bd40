"""
Release status polling.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional

from .api import ReleaseRecord
from .errors import VafError
from .events import EventCallback, EventTypes, null_callback

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 5.0
DEFAULT_MAX_ATTEMPTS = 60

SUCCESS_STATUSES = {"success", "succeeded", "completed", "deployed"}
FAILED_STATUSES = {"failed", "error"}


class PollOutcome(Enum):
    SUCCESS = "success"
    FAILED = "failed"
    TIMEOUT = "timeout"
    # The status query itself failed; the release may still be running
    ERROR = "error"


@dataclass
class PollResult:
    outcome: PollOutcome
    attempts: int
    status: Optional[str] = None
    url: Optional[str] = None
    logs: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome is PollOutcome.SUCCESS


def _split_logs(logs: Optional[str]) -> List[str]:
    if not logs:
        return []
    return [line for line in logs.splitlines() if line.strip()]


class StatusPoller:
    """Polls a release until it reaches a terminal status or the attempt budget runs out."""

    def __init__(
        self,
        api,
        on_event: EventCallback = null_callback,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.api = api
        self.on_event = on_event
        self.interval = interval
        self.max_attempts = max_attempts
        self.sleep = sleep

    def poll(self, project_id: str, environment_id: str, release_id: str) -> PollResult:
        """
        Poll a release.

        Args:
            project_id: Project ID
            environment_id: Backend environment ID
            release_id: Release record ID

        Returns:
            PollResult. Remote failure, timeout and query errors are outcomes,
            not exceptions.
        """
        seen = 0
        lines: List[str] = []
        last_status: Optional[str] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                record: ReleaseRecord = self.api.get_release(project_id, environment_id, release_id)
            except VafError as e:
                logger.error(f"Status query failed for release {release_id}: {e}")
                self.on_event(EventTypes.POLL_ERROR, {"release_id": release_id, "error": e.message})
                return PollResult(PollOutcome.ERROR, attempt, status=last_status, logs=lines, error=e.message)

            status = record.status.lower()
            if status != last_status:
                self.on_event(EventTypes.RELEASE_STATUS, {"release_id": release_id, "status": status})
                last_status = status

            current = _split_logs(record.logs)
            # Logs are cumulative; a shorter list means the backend restarted them
            if len(current) < seen:
                seen = 0
            for line in current[seen:]:
                self.on_event(EventTypes.RELEASE_LOG, {"line": line})
            seen = len(current)
            lines = current

            if status in SUCCESS_STATUSES:
                self.on_event(EventTypes.RELEASE_SUCCESS, {"release_id": release_id, "url": record.url})
                return PollResult(PollOutcome.SUCCESS, attempt, status=status, url=record.url, logs=lines)

            if status in FAILED_STATUSES:
                self.on_event(EventTypes.RELEASE_FAILED, {
                    "release_id": release_id,
                    "error": record.error,
                    "logs": lines,
                })
                return PollResult(PollOutcome.FAILED, attempt, status=status, logs=lines, error=record.error)

            if attempt < self.max_attempts:
                self.sleep(self.interval)

        logger.warning(f"Release {release_id} still {last_status} after {self.max_attempts} attempts")
        self.on_event(EventTypes.RELEASE_TIMEOUT, {
            "release_id": release_id,
            "status": last_status,
            "attempts": self.max_attempts,
        })
        return PollResult(PollOutcome.TIMEOUT, self.max_attempts, status=last_status, logs=lines)
