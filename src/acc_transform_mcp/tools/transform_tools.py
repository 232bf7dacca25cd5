"""Transform tools for ACC Transform MCP Server.

These tools record element moves made in the viewer and save them back to
the open Revit model as a new version.
"""

from datetime import datetime, timezone
from typing import Optional
from mcp.server.fastmcp import FastMCP

from .. import __version__
from ..exceptions import SessionStateError
from ..models import Point3D
from ..services.diagnostics import render_debug_report
from ..services.session import get_workspace
from ..logging import get_logger

logger = get_logger(__name__)


def register_transform_tools(mcp: FastMCP) -> None:
    """Register all transform tools with the MCP server.

    Args:
        mcp: FastMCP server instance
    """

    @mcp.tool()
    async def record_move(
        element_id: int,
        element_key: str,
        original_position: Point3D,
        new_position: Point3D,
        element_name: str = "",
    ) -> dict:
        """Record that an element was moved.

        Call this for every element the user dragged. Moving the same
        element again keeps its position from before the first move and
        replaces the target position.

        Args:
            element_id: Viewer dbId of the element
            element_key: Revit UniqueId of the element ("<GUID>-<hex id>")
            original_position: Position before the move {x, y, z} in model units (feet)
            new_position: Position after the move {x, y, z} in model units (feet)
            element_name: Display name of the element

        Returns:
            Dict with the recorded change (including its translation) and
            the number of pending changes

        Example response:
            {
                "change": {
                    "element_key": "8f0b7f3f-...-0001f43b",
                    "element_id": 2417,
                    "element_name": "Basic Wall [128059]",
                    "original_position": {"x": 0.0, "y": 0.0, "z": 0.0},
                    "new_position": {"x": 1.0, "y": 2.0, "z": 0.0},
                    "translation": {"x": 1.0, "y": 2.0, "z": 0.0}
                },
                "pending_count": 1
            }
        """
        logger.info("record_move called", element_id=element_id)
        collector = get_workspace().collector
        change = collector.record_move(
            element_id, element_key, original_position, new_position, element_name
        )
        return {"change": change.model_dump(), "pending_count": len(collector)}

    @mcp.tool()
    async def list_pending_changes() -> dict:
        """List moves not yet saved, in the order elements were first moved.

        Returns:
            Dict containing changes, total and the open file name
        """
        logger.info("list_pending_changes called")
        workspace = get_workspace()
        changes = workspace.collector.list()
        return {
            "changes": [c.model_dump() for c in changes],
            "total": len(changes),
            "file_name": workspace.context.file_name if workspace.context else None,
        }

    @mcp.tool()
    async def discard_changes() -> dict:
        """Drop every pending move without saving."""
        logger.info("discard_changes called")
        collector = get_workspace().collector
        count = len(collector)
        collector.clear()
        return {"discarded": count}

    @mcp.tool()
    async def save_changes() -> dict:
        """Save pending moves to the open file as a new version.

        Runs the whole pipeline and waits for it (up to about ten minutes):
        1. Validates the moves; any invalid move rejects the whole batch
        2. Submits a Design Automation job that applies them in Revit
        3. Polls the job until it finishes
        4. Uploads the result as a new version of the file

        On success the pending moves are cleared. On failure they are kept
        and the response carries the error, and for failed jobs the report
        text and log excerpts. Use get_debug_report() for the full report.

        Returns:
            Dict with:
            - success: True if a new version was created
            - version_id: The new version (on success)
            - job_id: Design Automation work item id
            - transforms_applied: Number of moves sent
            - error: Structured error (on failure)
            - diagnostics: Report and archive summary (failed jobs)
        """
        logger.info("save_changes called")
        workspace = get_workspace()
        outcome = await workspace.orchestrator.save(workspace.context)
        return outcome.to_dict()

    @mcp.tool()
    async def cancel_save() -> dict:
        """Stop waiting for a running save.

        The remote job is not cancelled and may still finish; pending moves
        are kept.
        """
        logger.info("cancel_save called")
        cancelled = get_workspace().orchestrator.cancel()
        return {
            "cancelled": cancelled,
            "message": "Stopped observing the save" if cancelled else "No save is running",
        }

    @mcp.tool()
    async def get_save_status() -> dict:
        """Get the state of the current or most recent save.

        Returns:
            Dict with state, pending_count, last_job and last_outcome
        """
        logger.info("get_save_status called")
        orchestrator = get_workspace().orchestrator
        return {
            "state": orchestrator.state.value,
            "pending_count": len(orchestrator.collector),
            "last_job": orchestrator.last_job.summary() if orchestrator.last_job else None,
            "last_outcome": (
                orchestrator.last_outcome.to_dict() if orchestrator.last_outcome else None
            ),
        }

    @mcp.tool()
    async def get_debug_report(save_to: Optional[str] = None) -> dict:
        """Build the plain-text debug report of the most recent job.

        Contains the work item status, the transforms sent, the Design
        Automation report and the extracted log files.

        Args:
            save_to: Optional file path to write the report to

        Returns:
            Dict with filename, report text and path (when saved)
        """
        logger.info("get_debug_report called")
        orchestrator = get_workspace().orchestrator
        job = orchestrator.last_job
        if job is None:
            raise SessionStateError("no job has been submitted yet")

        outcome = orchestrator.last_outcome
        status = orchestrator.last_status
        failure = outcome.failure if outcome and outcome.job_id == job.job_id else None
        report = render_debug_report(
            job.job_id,
            job.last_status or job.state.value,
            manifest_payload=job.manifest.to_payload(),
            status_data=status.model_dump(by_alias=True) if status else None,
            diagnostics=outcome.diagnostics if failure is not None else None,
            error=failure.message if failure is not None else None,
            version=__version__,
        )
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S")
        result = {"filename": f"debug-report-{timestamp}.txt", "report": report}
        if save_to:
            with open(save_to, "w", encoding="utf-8") as f:
                f.write(report)
            result["path"] = save_to
        return result
