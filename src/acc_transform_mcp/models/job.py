"""Design Automation job models."""

from datetime import datetime, timezone
from enum import Enum
from pydantic import BaseModel, Field, PrivateAttr
from typing import Any, Dict, Optional

from ..api_schema import STATUS_IN_PROGRESS, STATUS_PENDING, STATUS_SUCCESS, is_failed_status
from .acc import OutputSlot
from .changes import TransformManifest


class JobState(str, Enum):
    """Job lifecycle as the orchestrator sees it."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.SUCCEEDED, JobState.FAILED)

    @classmethod
    def from_status(cls, status: str) -> "JobState":
        """Map a raw work item status onto a job state."""
        if status == STATUS_SUCCESS:
            return cls.SUCCEEDED
        if is_failed_status(status):
            return cls.FAILED
        if status == STATUS_IN_PROGRESS:
            return cls.IN_PROGRESS
        if status == STATUS_PENDING:
            return cls.PENDING
        raise ValueError(f"Unknown work item status: {status!r}")


_STATE_ORDER = {
    JobState.PENDING: 0,
    JobState.IN_PROGRESS: 1,
    JobState.SUCCEEDED: 2,
    JobState.FAILED: 2,
}


class WorkItemStatus(BaseModel):
    """Response of ``GET /workitems/{id}``."""

    id: str = ""
    status: str
    progress: Optional[str] = None
    report_url: Optional[str] = Field(default=None, alias="reportUrl")
    debug_info_url: Optional[str] = Field(default=None, alias="debugInfoUrl")
    stats: Dict[str, Any] = Field(default_factory=dict)

    @property
    def state(self) -> JobState:
        return JobState.from_status(self.status)

    model_config = {"populate_by_name": True, "extra": "ignore"}


class TransformJob(BaseModel):
    """One submitted save.

    Everything but the state and the two locations is frozen at submission.
    The state only moves forward and each location is set at most once.
    """

    job_id: str
    manifest: TransformManifest
    output: OutputSlot
    submitted_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    _state: JobState = PrivateAttr(default=JobState.PENDING)
    _last_status: Optional[str] = PrivateAttr(default=None)
    _result_location: Optional[str] = PrivateAttr(default=None)
    _diagnostics_location: Optional[str] = PrivateAttr(default=None)

    model_config = {"frozen": True}

    @property
    def state(self) -> JobState:
        return self._state

    @property
    def last_status(self) -> Optional[str]:
        return self._last_status

    @property
    def result_location(self) -> Optional[str]:
        return self._result_location

    @property
    def diagnostics_location(self) -> Optional[str]:
        return self._diagnostics_location

    def record_status(self, status: str) -> JobState:
        """Apply a polled status; stale or backwards statuses are ignored."""
        new_state = JobState.from_status(status)
        if self._state.is_terminal:
            if new_state.is_terminal and new_state != self._state:
                raise ValueError(
                    f"Job {self.job_id} already {self._state.value}, got {status!r}"
                )
            return self._state
        if _STATE_ORDER[new_state] >= _STATE_ORDER[self._state]:
            self._state = new_state
            self._last_status = status
        return self._state

    def record_result_location(self, location: str) -> None:
        if self._result_location is not None:
            raise ValueError(f"Job {self.job_id} result location already set")
        self._result_location = location

    def record_diagnostics_location(self, location: str) -> None:
        if self._diagnostics_location is not None:
            raise ValueError(f"Job {self.job_id} diagnostics location already set")
        self._diagnostics_location = location

    def summary(self) -> Dict[str, Any]:
        """Plain dict for tool responses."""
        return {
            "job_id": self.job_id,
            "state": self._state.value,
            "last_status": self._last_status,
            "transform_count": len(self.manifest),
            "submitted_at": self.submitted_at.isoformat(),
            "result_location": self._result_location,
            "diagnostics_location": self._diagnostics_location,
        }
