"""Save pipeline: validate pending moves, run the remote Revit job, write the new version.

The orchestrator is the error boundary of a save. Clients below it raise
typed exceptions; ``SaveOrchestrator.save`` turns them into a
``SaveOutcome`` value so that callers never have to catch.
"""

import asyncio
import math
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from ..config import get_config, ServerConfig
from ..exceptions import (
    AccTransformError,
    JobFailedError,
    JobTimedOutError,
    RemoteRequestFailedError,
    SaveCancelledError,
    SaveInProgressError,
    SessionStateError,
    ValidationFailedError,
)
from ..logging import get_logger, LogContext
from ..models import (
    ELEMENT_KEY_SEPARATOR,
    JobDiagnostics,
    JobState,
    ManifestEntry,
    PendingChange,
    StorageLocation,
    TransformJob,
    TransformManifest,
    WorkItemStatus,
)
from .acc_client import AccResourceClient
from .auth_client import AuthClient
from .design_automation import DesignAutomationClient
from .diagnostics import extract_archive
from .token_store import TokenStore
from .transform_collector import TransformCollector


logger = get_logger(__name__)


class SaveState(str, Enum):
    """Where a save currently is."""
    IDLE = "idle"
    VALIDATING = "validating"
    SUBMITTING = "submitting"
    POLLING = "polling"
    COMPLETING = "completing"


class SessionContext(BaseModel):
    """The file the user is editing."""

    project_id: str
    item_id: str
    folder_id: Optional[str] = None
    version_id: Optional[str] = None
    file_name: str = ""


@dataclass
class SaveOutcome:
    """Result of one save attempt; failures are values, not exceptions."""
    success: bool
    version_id: Optional[str] = None
    job_id: Optional[str] = None
    transforms_applied: int = 0
    failure: Optional[AccTransformError] = None
    diagnostics: Optional[JobDiagnostics] = None
    elapsed_seconds: float = 0.0
    correlation_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for tool responses."""
        result: Dict[str, Any] = {
            "success": self.success,
            "version_id": self.version_id,
            "job_id": self.job_id,
            "transforms_applied": self.transforms_applied,
            "elapsed_seconds": round(self.elapsed_seconds, 1),
            "correlation_id": self.correlation_id,
        }
        if self.failure is not None:
            result["error"] = self.failure.to_dict()["error"]
        if self.diagnostics is not None:
            result["diagnostics"] = {
                "report": self.diagnostics.report,
                "report_url": self.diagnostics.report_url,
                "debug_info_url": self.diagnostics.debug_info_url,
                "files": [entry.name for entry in self.diagnostics.entries],
                "skipped": [entry.name for entry in self.diagnostics.skipped],
                "archive_error": self.diagnostics.archive_error,
            }
        return result


def _coordinates_finite(*values: float) -> bool:
    return all(isinstance(v, (int, float)) and math.isfinite(v) for v in values)


def build_manifest(changes: List[PendingChange]) -> TransformManifest:
    """Validate pending changes and build the manifest.

    Every violation is collected; any violation rejects the whole batch.

    Raises:
        ValidationFailedError: The batch is empty or has invalid entries
    """
    if not changes:
        raise ValidationFailedError(["No pending changes to save"])

    errors: List[str] = []
    seen: Dict[str, int] = {}
    for change in changes:
        label = f"Element {change.element_id}"
        key = change.element_key
        if not key:
            errors.append(f"{label}: element key is empty")
        elif ELEMENT_KEY_SEPARATOR not in key:
            errors.append(f"{label}: element key {key!r} has no {ELEMENT_KEY_SEPARATOR!r} separator")
        elif key in seen:
            errors.append(f"{label}: element key {key!r} already used by element {seen[key]}")
        else:
            seen[key] = change.element_id

        if isinstance(change.element_id, bool) or change.element_id <= 0:
            errors.append(f"{label}: element id must be a positive integer")
        if not _coordinates_finite(*change.original_position.to_tuple()):
            errors.append(f"{label}: original position is not finite")
        if not _coordinates_finite(*change.new_position.to_tuple()):
            errors.append(f"{label}: new position is not finite")
        elif not change.translation.is_finite():
            errors.append(f"{label}: translation is not finite")

    if errors:
        raise ValidationFailedError(errors)

    return TransformManifest(
        transforms={change.element_key: ManifestEntry.from_change(change) for change in changes}
    )


class SaveOrchestrator:
    """Runs one save at a time through validate, submit, poll and complete.

    Usage:
        outcome = await orchestrator.save(context)
        if not outcome.success:
            print(outcome.failure.message)
    """

    def __init__(
        self,
        collector: TransformCollector,
        token_store: TokenStore,
        auth_client: AuthClient,
        acc_client: AccResourceClient,
        da_client: DesignAutomationClient,
        config: Optional[ServerConfig] = None,
    ) -> None:
        self.collector = collector
        self.token_store = token_store
        self.auth_client = auth_client
        self.acc_client = acc_client
        self.da_client = da_client
        self.config = config or get_config()

        self.state = SaveState.IDLE
        self.last_job: Optional[TransformJob] = None
        self.last_outcome: Optional[SaveOutcome] = None
        self.last_status: Optional[WorkItemStatus] = None
        self._cancel_requested = asyncio.Event()

    @property
    def busy(self) -> bool:
        return self.state != SaveState.IDLE

    def cancel(self) -> bool:
        """Stop observing the running save. The remote job keeps running.

        Returns:
            False when no save is running
        """
        if not self.busy:
            return False
        logger.info("Save cancellation requested", state=self.state.value)
        self._cancel_requested.set()
        return True

    async def save(self, context: Optional[SessionContext]) -> SaveOutcome:
        """Run the whole pipeline for the current pending changes."""
        if self.busy:
            error = SaveInProgressError(self.state.value)
            logger.warning("Save rejected, another save is running", state=self.state.value)
            return SaveOutcome(success=False, failure=error)

        self.state = SaveState.VALIDATING
        self._cancel_requested = asyncio.Event()
        self.last_job = None
        self.last_status = None
        started = time.monotonic()

        with LogContext() as log_context:
            correlation_id = log_context.correlation_id
            try:
                version_id, job = await self._run(context)
            except AccTransformError as e:
                e.correlation_id = correlation_id
                job = self.last_job
                outcome = SaveOutcome(
                    success=False,
                    job_id=job.job_id if job else None,
                    failure=e,
                    diagnostics=e.diagnostics if isinstance(e, JobFailedError) else None,
                    elapsed_seconds=time.monotonic() - started,
                    correlation_id=correlation_id,
                )
                logger.warning(
                    "Save failed",
                    error_type=e.error_type,
                    error=e.message,
                    job_id=outcome.job_id,
                )
            else:
                outcome = SaveOutcome(
                    success=True,
                    version_id=version_id,
                    job_id=job.job_id,
                    transforms_applied=len(job.manifest),
                    elapsed_seconds=time.monotonic() - started,
                    correlation_id=correlation_id,
                )
                self.collector.clear()
                logger.info(
                    "Save completed",
                    job_id=job.job_id,
                    version_id=version_id,
                    transforms=outcome.transforms_applied,
                    elapsed_seconds=round(outcome.elapsed_seconds, 1),
                )
            finally:
                self.state = SaveState.IDLE

        self.last_outcome = outcome
        return outcome

    async def _run(self, context: Optional[SessionContext]):
        # Validate
        manifest = build_manifest(self.collector.list())
        if context is None:
            raise SessionStateError("no file is open")
        logger.info("Save started", transforms=len(manifest), item_id=context.item_id)

        # Submit
        self.state = SaveState.SUBMITTING
        user_token = await self.token_store.require_valid()
        item = await self.acc_client.get_item(user_token, context.project_id, context.item_id)
        version = await self.acc_client.get_version(user_token, context.project_id, item.tip_version_id)
        try:
            source = StorageLocation.from_urn(version.storage_urn)
        except ValueError as e:
            raise RemoteRequestFailedError("Parse storage urn", reason=str(e))
        input_url = await self.acc_client.get_signed_download_url(
            user_token, source.bucket_key, source.object_key
        )

        app_token = await self.auth_client.get_app_token()
        activity_id = await self.da_client.resolve_activity_id(app_token)
        output = await self.da_client.prepare_output(app_token)
        manifest_url = await self.da_client.upload_manifest(app_token, output.bucket_key, manifest)
        job_id = await self.da_client.submit(
            app_token, activity_id, input_url, manifest_url, output.signed_url
        )
        job = TransformJob(job_id=job_id, manifest=manifest, output=output)
        self.last_job = job

        # Poll
        self.state = SaveState.POLLING
        status = await self._poll(job, app_token)
        if job.state == JobState.FAILED:
            diagnostics = await self._collect_diagnostics(job, status)
            raise JobFailedError(
                job_id,
                status.status,
                report=diagnostics.report,
                diagnostics=diagnostics,
                report_url=status.report_url,
            )

        # Complete
        self.state = SaveState.COMPLETING
        data = await self.da_client.download_object(app_token, output.bucket_key, output.object_key)
        job.record_result_location(output.location.urn)

        folder_id = item.parent_folder_id or context.folder_id
        if not folder_id:
            raise SessionStateError("the file's parent folder is unknown")
        # The user token may have gone stale while polling
        user_token = await self.token_store.require_valid()
        storage_urn = await self.acc_client.create_storage(
            user_token, context.project_id, folder_id, item.display_name
        )
        try:
            target = StorageLocation.from_urn(storage_urn)
        except ValueError as e:
            raise RemoteRequestFailedError("Parse storage urn", reason=str(e))
        await self.acc_client.upload_object(user_token, target.bucket_key, target.object_key, data)
        version_id = await self.acc_client.create_version(
            user_token, context.project_id, item.id, storage_urn, item.display_name
        )
        return version_id, job

    async def _cancelled_during_wait(self) -> bool:
        try:
            await asyncio.wait_for(self._cancel_requested.wait(), timeout=self.config.poll_interval)
        except asyncio.TimeoutError:
            return False
        return True

    async def _poll(self, job: TransformJob, app_token: str) -> WorkItemStatus:
        """Poll until the job is terminal or the budget runs out."""
        attempts = self.config.max_poll_attempts
        for attempt in range(1, attempts + 1):
            if await self._cancelled_during_wait():
                raise SaveCancelledError(job.job_id)
            try:
                status = await self.da_client.get_status(app_token, job.job_id)
            except RemoteRequestFailedError as e:
                logger.warning("Status poll failed", job_id=job.job_id, attempt=attempt, error=e.message)
                continue
            try:
                state = job.record_status(status.status)
            except ValueError as e:
                logger.warning("Unexpected work item status", job_id=job.job_id, error=str(e))
                continue
            self.last_status = status
            logger.info(
                "Work item status",
                job_id=job.job_id,
                status=status.status,
                attempt=attempt,
                max_attempts=attempts,
            )
            if state.is_terminal:
                return status
        raise JobTimedOutError(job.job_id, attempts, job.last_status)

    async def _collect_diagnostics(self, job: TransformJob, status: WorkItemStatus) -> JobDiagnostics:
        """Fetch report text and the debug archive of a failed job.

        Download problems are recorded on the result, never raised.
        """
        diagnostics = JobDiagnostics(report_url=status.report_url, debug_info_url=status.debug_info_url)
        if status.report_url:
            try:
                diagnostics.report = await self.da_client.fetch_report(status.report_url)
            except RemoteRequestFailedError as e:
                logger.warning("Report download failed", job_id=job.job_id, error=e.message)
        if status.debug_info_url:
            try:
                archive = await self.da_client.fetch_archive(status.debug_info_url)
            except RemoteRequestFailedError as e:
                logger.warning("Debug archive download failed", job_id=job.job_id, error=e.message)
                diagnostics.archive_error = e.message
            else:
                extracted = extract_archive(
                    archive,
                    max_entry_bytes=self.config.max_diagnostic_entry_bytes,
                    journal_tail_chars=self.config.journal_tail_chars,
                )
                diagnostics.entries = extracted.entries
                diagnostics.skipped = extracted.skipped
                diagnostics.other_files = extracted.other_files
                diagnostics.archive_error = extracted.archive_error

        location = status.debug_info_url or status.report_url
        if location:
            job.record_diagnostics_location(location)
        if not diagnostics.has_content:
            logger.warning("Job failed without readable diagnostics", job_id=job.job_id)
        return diagnostics
