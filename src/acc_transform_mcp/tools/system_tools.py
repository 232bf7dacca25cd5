"""System tools for ACC Transform MCP Server.

These tools provide health check and version information for monitoring
and diagnostics.
"""

from mcp.server.fastmcp import FastMCP

from .. import __version__
from ..exceptions import AccTransformError
from ..services.session import get_workspace
from ..logging import get_logger

# Version of the transforms.json layout read by the Revit plugin
MANIFEST_VERSION = "1.0"

logger = get_logger(__name__)


def register_system_tools(mcp: FastMCP) -> None:
    """Register all system tools with the MCP server.

    Args:
        mcp: FastMCP server instance
    """

    @mcp.tool()
    async def check_health() -> dict:
        """Check that saving can work end to end.

        Verifies that:
        - App credentials are configured
        - The user is signed in (refreshing the token once if needed)
        - An app token can be obtained
        - The Design Automation activity exists under its alias

        **Use this** to diagnose setup problems before saving.

        Returns:
            Dict with health status:
            - healthy: True if all checks passed
            - server_status: "running"
            - credentials_configured, authenticated, activity_available
            - message: Human-readable status message

        Example response:
            {
                "healthy": true,
                "server_status": "running",
                "credentials_configured": true,
                "authenticated": true,
                "activity_available": true,
                "activity_id": "myapp.RevitTransformActivity+prod",
                "message": "All systems operational"
            }
        """
        logger.info("check_health called")
        workspace = get_workspace()
        config = workspace.config
        problems = []

        configured = bool(config.aps_client_id and config.aps_client_secret)
        if not configured:
            problems.append("APS client id or secret not configured")

        authenticated = await workspace.token_store.get_valid() is not None
        if not authenticated:
            problems.append("Not signed in")

        activity_available = False
        activity_id = config.activity_id
        if configured:
            try:
                app_token = await workspace.auth_client.get_app_token()
                activity_id = await workspace.da_client.resolve_activity_id(app_token)
                activity = await workspace.da_client.get_activity(app_token, activity_id)
                activity_available = activity is not None
                if not activity_available:
                    problems.append(f"Activity {activity_id} not found; run acc-transform-provision")
            except AccTransformError as e:
                logger.warning("Design Automation check failed", error=e.message)
                problems.append(e.message)

        healthy = not problems
        return {
            "healthy": healthy,
            "server_status": "running",
            "server_version": __version__,
            "credentials_configured": configured,
            "authenticated": authenticated,
            "activity_available": activity_available,
            "activity_id": activity_id,
            "message": "All systems operational" if healthy else "; ".join(problems),
        }

    @mcp.tool()
    async def get_version() -> dict:
        """Get version information for the server and its Revit worker.

        Returns:
            Dict with server_version, manifest_version, engine, activity_id
            and appbundle_id
        """
        logger.info("get_version called")
        config = get_workspace().config
        return {
            "server_version": __version__,
            "manifest_version": MANIFEST_VERSION,
            "engine": config.da_engine,
            "activity_id": config.activity_id,
            "appbundle_id": config.appbundle_id,
        }
