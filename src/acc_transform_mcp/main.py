"""Main entry point for ACC Transform MCP Server."""

import argparse
from mcp.server.fastmcp import FastMCP

from .config import get_config
from .logging import setup_logging, get_logger
from .tools import (
    register_auth_tools,
    register_browse_tools,
    register_transform_tools,
    register_system_tools,
)


# Create FastMCP server instance
mcp = FastMCP(
    "ACCTransform",
    instructions="""You save element moves made in a 3D viewer back into Revit models
stored in Autodesk Construction Cloud.

SIGN-IN WORKFLOW:
1. Use get_auth_status() to see if a credential is stored
2. If not, call get_login_url(), have the user open it and sign in
3. Pass the code from the callback URL to complete_login()

BROWSE WORKFLOW:
1. list_hubs() to find the hub
2. list_projects(hub_id) to find the project
3. list_folder_contents(project_id, hub_id=...) for the top folders,
   then list_folder_contents(project_id, folder_id=...) to go deeper
4. open_file(project_id, item_id) on the Revit model to edit

EDIT WORKFLOW:
1. Call record_move() for every element the user moved, with its dbId,
   its UniqueId as element_key, and its positions before and after
2. Use list_pending_changes() to review, discard_changes() to start over
3. Call save_changes() to write a new version of the file

SAVE RESULTS:
- success=true: a new version exists; pending moves were cleared
- error.type ValidationFailed: nothing was sent; fix the listed moves
- error.type JobFailed: the Revit job failed; read diagnostics.report,
  pending moves were kept so the save can be retried
- error.type JobTimedOut: the job may still finish; check get_save_status()
- Use get_debug_report() for the full report of the last job

IMPORTANT:
- Positions are in the model's native unit (feet for Revit)
- Only translations are applied; rotations are ignored
- One save runs at a time; cancel_save() stops waiting but does not stop
  the remote job
- Use check_health() when saving fails for setup reasons
""",
)


def main() -> None:
    """Main entry point."""
    # Parse arguments
    parser = argparse.ArgumentParser(description="ACC Transform MCP Server")
    parser.add_argument(
        "--transport",
        type=str,
        choices=["sse", "stdio"],
        help="MCP transport type (overrides config)"
    )
    args = parser.parse_args()

    # Setup logging
    setup_logging()
    logger = get_logger(__name__)

    # Get configuration
    config = get_config()

    logger.info(
        "Starting ACC Transform MCP Server",
        aps_base_url=config.aps_base_url,
        activity_id=config.activity_id,
        transport=args.transport or config.server_transport,
    )

    # Register tools
    register_auth_tools(mcp)
    logger.info("Auth tools registered")

    register_browse_tools(mcp)
    logger.info("Browse tools registered")

    register_transform_tools(mcp)
    logger.info("Transform tools registered")

    register_system_tools(mcp)
    logger.info("System tools registered")

    # Determine transport
    transport = args.transport or config.server_transport

    # Run MCP server
    logger.info("Starting MCP server", transport=transport)
    mcp.run(transport=transport)


if __name__ == "__main__":
    main()
