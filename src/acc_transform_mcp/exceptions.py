"""Custom exception hierarchy for the ACC Transform MCP Server.

All errors are designed to be actionable - they tell the caller what went
wrong in the save pipeline and what to do about it.
"""

from typing import Optional, List, Dict, Any
from dataclasses import dataclass


# Cap on response bodies carried inside errors
MAX_BODY_CHARS = 2000


@dataclass
class ErrorContext:
    """Structured context for errors."""
    requested_id: Optional[str] = None
    status_code: Optional[int] = None
    step: Optional[str] = None
    current_value: Optional[Any] = None
    affected_entities: Optional[List[str]] = None
    additional_info: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, excluding None values."""
        result = {}
        if self.requested_id is not None:
            result["requested_id"] = self.requested_id
        if self.status_code is not None:
            result["status_code"] = self.status_code
        if self.step is not None:
            result["step"] = self.step
        if self.current_value is not None:
            result["current_value"] = self.current_value
        if self.affected_entities is not None:
            result["affected_entities"] = self.affected_entities
        if self.additional_info is not None:
            result.update(self.additional_info)
        return result


@dataclass
class ErrorDetail:
    """Detailed error information."""
    type: str
    message: str
    suggestion: str
    context: Optional[ErrorContext] = None
    correlation_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        result = {
            "type": self.type,
            "message": self.message,
            "suggestion": self.suggestion,
        }
        if self.context:
            ctx = self.context.to_dict()
            if ctx:
                result["context"] = ctx
        if self.correlation_id:
            result["correlation_id"] = self.correlation_id
        return result


@dataclass
class ErrorResponse:
    """Structured error response format."""
    success: bool = False
    error: Optional[ErrorDetail] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = {"success": self.success}
        if self.error:
            result["error"] = self.error.to_dict()
        return result


def _truncate(body: Optional[str]) -> Optional[str]:
    if body is None or len(body) <= MAX_BODY_CHARS:
        return body
    return body[:MAX_BODY_CHARS] + "...[truncated]"


class AccTransformError(Exception):
    """Base exception for all ACC Transform errors."""

    error_type: str = "AccTransformError"
    default_suggestion: str = "Check the operation parameters and try again."

    def __init__(
        self,
        message: str,
        context: Optional[ErrorContext] = None,
        suggestion: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.context = context or ErrorContext()
        self.suggestion = suggestion or self.default_suggestion
        self.correlation_id = correlation_id

    def to_response(self) -> ErrorResponse:
        """Convert exception to structured error response."""
        return ErrorResponse(
            success=False,
            error=ErrorDetail(
                type=self.error_type,
                message=self.message,
                context=self.context,
                suggestion=self.suggestion,
                correlation_id=self.correlation_id,
            )
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return self.to_response().to_dict()


class AuthRequiredError(AccTransformError):
    """Raised when there is no usable user credential."""

    error_type = "AuthRequired"
    default_suggestion = "Sign in again with get_login_url() and complete_login()."

    def __init__(self, reason: str = "No valid Autodesk credential", **kwargs):
        super().__init__(f"Authentication required: {reason}", **kwargs)


class ValidationFailedError(AccTransformError):
    """Raised when pending changes are rejected before submission."""

    error_type = "ValidationFailed"
    default_suggestion = (
        "Fix or discard the listed changes; nothing was sent to the server."
    )

    def __init__(self, errors: List[str], **kwargs):
        self.errors = list(errors)
        count = len(self.errors)
        message = f"Transform validation failed with {count} error(s)"
        if count:
            message += f": {self.errors[0]}"
        context = ErrorContext(
            step="Validate",
            additional_info={"errors": self.errors},
        )
        super().__init__(message, context=context, **kwargs)


class InvalidGeometryError(AccTransformError):
    """Raised when a move carries non-finite coordinates."""

    error_type = "InvalidGeometry"
    default_suggestion = "Positions must be finite numbers; re-read them from the model."

    def __init__(self, element_id: Any, field: str, value: Any, **kwargs):
        message = f"Element {element_id}: {field} has non-finite coordinates ({value})"
        context = ErrorContext(
            requested_id=str(element_id),
            current_value=str(value),
            additional_info={"field": field},
        )
        super().__init__(message, context=context, **kwargs)


class RemoteRequestFailedError(AccTransformError):
    """Raised when the Autodesk API answers with a non-2xx status."""

    error_type = "RemoteRequestFailed"
    default_suggestion = "Inspect the status and body returned by the Autodesk API."

    def __init__(
        self,
        operation: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
        reason: Optional[str] = None,
        **kwargs,
    ):
        self.operation = operation
        self.status_code = status_code
        self.body = _truncate(body)
        if reason:
            message = f"{operation} failed: {reason}"
        elif status_code is not None:
            message = f"{operation} failed with HTTP {status_code}"
        else:
            message = f"{operation} failed"
        context = ErrorContext(
            status_code=status_code,
            step=operation,
            additional_info={"body": self.body} if self.body else None,
        )
        super().__init__(message, context=context, **kwargs)


class NotFoundError(RemoteRequestFailedError):
    """Raised when a hub, project, item or object does not exist."""

    error_type = "NotFound"
    default_suggestion = "Use list_projects() and list_folder_contents() to find valid ids."


class PermissionDeniedError(RemoteRequestFailedError):
    """Raised when the token is not allowed to access a resource."""

    error_type = "PermissionDenied"
    default_suggestion = "Check the token scopes and the user's project membership."


class ApsConnectionError(RemoteRequestFailedError):
    """Raised when the Autodesk API cannot be reached."""

    error_type = "ConnectionError"
    default_suggestion = "Check network connectivity to developer.api.autodesk.com."


class ApsTimeoutError(RemoteRequestFailedError):
    """Raised when a request to the Autodesk API times out."""

    error_type = "TimeoutError"
    default_suggestion = "The request took too long. Try again or raise the request timeout."


class UploadIncompleteError(AccTransformError):
    """Raised when any phase of a signed upload fails.

    The multipart upload is left as it is: no retry, no cleanup.
    """

    error_type = "UploadIncomplete"
    default_suggestion = (
        "The object was not created. Inspect the partial upload before saving again."
    )

    def __init__(
        self,
        phase: str,
        bucket_key: str,
        object_key: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
        **kwargs,
    ):
        self.phase = phase
        self.bucket_key = bucket_key
        self.object_key = object_key
        self.status_code = status_code
        message = f"Upload of {bucket_key}/{object_key} failed during {phase}"
        if status_code is not None:
            message += f" (HTTP {status_code})"
        context = ErrorContext(
            status_code=status_code,
            step=phase,
            requested_id=f"{bucket_key}/{object_key}",
            additional_info={"body": _truncate(body)} if body else None,
        )
        super().__init__(message, context=context, **kwargs)


class JobFailedError(AccTransformError):
    """Raised when the Design Automation work item reports failure."""

    error_type = "JobFailed"
    default_suggestion = (
        "Read the report and log excerpts; pending changes were kept so the "
        "save can be retried."
    )

    def __init__(
        self,
        job_id: str,
        status: str,
        report: Optional[str] = None,
        diagnostics: Optional[Any] = None,
        report_url: Optional[str] = None,
        **kwargs,
    ):
        self.job_id = job_id
        self.status = status
        self.report = report
        self.diagnostics = diagnostics
        self.report_url = report_url
        message = f"Work item {job_id} failed with status: {status}"
        info: Dict[str, Any] = {"status": status}
        if report_url:
            info["report_url"] = report_url
        if report:
            info["report"] = report
        context = ErrorContext(
            requested_id=job_id,
            step="Poll",
            additional_info=info,
        )
        super().__init__(message, context=context, **kwargs)


class JobTimedOutError(AccTransformError):
    """Raised when the poll budget runs out before the job resolves."""

    error_type = "JobTimedOut"
    default_suggestion = (
        "The job may still finish remotely; check get_save_status() later or save again."
    )

    def __init__(self, job_id: str, attempts: int, last_status: Optional[str] = None, **kwargs):
        self.job_id = job_id
        self.attempts = attempts
        self.last_status = last_status
        message = f"Work item {job_id} did not finish after {attempts} polls"
        context = ErrorContext(
            requested_id=job_id,
            step="Poll",
            additional_info={"attempts": attempts, "last_status": last_status},
        )
        super().__init__(message, context=context, **kwargs)


class SaveInProgressError(AccTransformError):
    """Raised when a save is requested while another one is running."""

    error_type = "SaveInProgress"
    default_suggestion = "Wait for the running save to finish or cancel it with cancel_save()."

    def __init__(self, state: str, **kwargs):
        super().__init__(
            f"A save is already in progress (state: {state})",
            context=ErrorContext(current_value=state),
            **kwargs,
        )


class SaveCancelledError(AccTransformError):
    """Raised when the user stops observing a running job."""

    error_type = "SaveCancelled"
    default_suggestion = (
        "The remote job was not cancelled and may still produce a result."
    )

    def __init__(self, job_id: Optional[str] = None, **kwargs):
        message = "Save cancelled"
        if job_id:
            message += f" while waiting for work item {job_id}"
        super().__init__(message, context=ErrorContext(requested_id=job_id), **kwargs)


class SessionStateError(AccTransformError):
    """Raised when an operation needs an open file and none is open."""

    error_type = "SessionState"
    default_suggestion = "Open a file with open_file() before saving."

    def __init__(self, issue: str, **kwargs):
        super().__init__(f"Session state error: {issue}", **kwargs)
