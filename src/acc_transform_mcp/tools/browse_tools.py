"""Browse tools for ACC Transform MCP Server.

These tools walk hubs, projects and folders in Autodesk Construction Cloud
and open the Revit model whose elements will be moved.
"""

from typing import Optional
from mcp.server.fastmcp import FastMCP

from ..api_schema import strip_project_prefix
from ..exceptions import PermissionDeniedError
from ..services.save_orchestrator import SessionContext
from ..services.session import get_workspace
from ..logging import get_logger

logger = get_logger(__name__)


def register_browse_tools(mcp: FastMCP) -> None:
    """Register all browse tools with the MCP server.

    Args:
        mcp: FastMCP server instance
    """

    @mcp.tool()
    async def list_hubs() -> dict:
        """List the Autodesk hubs (accounts) the signed-in user can access.

        **Use this first** after signing in to find the hub id for
        list_projects().

        Returns:
            Dict containing hubs (id, name, region) and total
        """
        logger.info("list_hubs called")
        workspace = get_workspace()
        token = await workspace.token_store.require_valid()
        hubs = await workspace.acc_client.list_hubs(token)
        return {"hubs": [h.model_dump() for h in hubs], "total": len(hubs)}

    @mcp.tool()
    async def list_projects(hub_id: str) -> dict:
        """List the projects of a hub.

        Only whitelisted projects are returned when a whitelist is configured.

        Args:
            hub_id: Hub id from list_hubs()

        Returns:
            Dict containing projects (id, name, hub_id) and total
        """
        logger.info("list_projects called", hub_id=hub_id)
        workspace = get_workspace()
        token = await workspace.token_store.require_valid()
        projects = await workspace.acc_client.list_projects(token, hub_id)
        return {
            "projects": [
                {**p.model_dump(), "id": strip_project_prefix(p.id)} for p in projects
            ],
            "total": len(projects),
        }

    @mcp.tool()
    async def list_folder_contents(
        project_id: str,
        folder_id: Optional[str] = None,
        hub_id: Optional[str] = None,
    ) -> dict:
        """List folders and files.

        Without folder_id the project's top folders are listed, which
        requires hub_id.

        Args:
            project_id: Project id from list_projects()
            folder_id: Folder to list
            hub_id: Hub id, needed when folder_id is omitted

        Returns:
            Dict containing entries (id, type, name, is_folder) and total
        """
        logger.info("list_folder_contents called", project_id=project_id, folder_id=folder_id)
        if not folder_id and not hub_id:
            raise ValueError("Pass folder_id, or hub_id to list the top folders")
        workspace = get_workspace()
        token = await workspace.token_store.require_valid()
        if folder_id:
            entries = await workspace.acc_client.list_folder_contents(token, project_id, folder_id)
        else:
            entries = await workspace.acc_client.list_top_folders(token, hub_id, project_id)
        return {
            "entries": [{**e.model_dump(), "is_folder": e.is_folder} for e in entries],
            "total": len(entries),
        }

    @mcp.tool()
    async def open_file(project_id: str, item_id: str, folder_id: Optional[str] = None) -> dict:
        """Open a Revit model for editing.

        Subsequent record_move() calls refer to elements of this file.
        Opening a different file discards the pending changes of the
        previous one.

        Args:
            project_id: Project id from list_projects()
            item_id: Item id (lineage urn) from list_folder_contents()
            folder_id: Folder the item was listed in; used when the item
                       reports no parent folder

        Returns:
            Dict with file name, tip version id, parent folder id and the
            number of pending changes discarded
        """
        logger.info("open_file called", project_id=project_id, item_id=item_id)
        workspace = get_workspace()
        if not workspace.acc_client.is_project_allowed(project_id):
            raise PermissionDeniedError(
                "Open file", 403, reason=f"project {strip_project_prefix(project_id)} is not allowed"
            )
        token = await workspace.token_store.require_valid()
        item = await workspace.acc_client.get_item(token, project_id, item_id)
        parent_folder_id = item.parent_folder_id or folder_id
        discarded = workspace.open(
            SessionContext(
                project_id=strip_project_prefix(project_id),
                item_id=item.id,
                folder_id=parent_folder_id,
                version_id=item.tip_version_id,
                file_name=item.display_name,
            )
        )
        return {
            "file_name": item.display_name,
            "item_id": item.id,
            "version_id": item.tip_version_id,
            "folder_id": parent_folder_id,
            "discarded_changes": discarded,
        }
