"""Authentication tools for ACC Transform MCP Server.

These tools sign the user in to Autodesk with the three-legged OAuth flow
and report the state of the stored credential.
"""

import secrets
from mcp.server.fastmcp import FastMCP

from ..services.session import get_workspace
from ..logging import get_logger

logger = get_logger(__name__)


def register_auth_tools(mcp: FastMCP) -> None:
    """Register all authentication tools with the MCP server.

    Args:
        mcp: FastMCP server instance
    """

    @mcp.tool()
    async def get_login_url() -> dict:
        """Get the Autodesk sign-in URL.

        Open the URL in a browser and sign in. Autodesk redirects to the
        configured callback URL with a ``code`` query parameter; pass that
        code to complete_login().

        Returns:
            Dict with the login URL and the callback it redirects to
        """
        logger.info("get_login_url called")
        workspace = get_workspace()
        state = secrets.token_urlsafe(16)
        return {
            "login_url": workspace.auth_client.authorization_url(state=state),
            "callback_url": workspace.config.aps_callback_url,
            "state": state,
        }

    @mcp.tool()
    async def complete_login(code: str) -> dict:
        """Finish sign-in with the authorization code from the callback URL.

        Args:
            code: The ``code`` query parameter Autodesk appended to the callback URL

        Returns:
            Dict with authenticated flag and token lifetime in seconds
        """
        logger.info("complete_login called")
        workspace = get_workspace()
        grant = await workspace.auth_client.exchange_code(code)
        workspace.token_store.save(grant.access_token, grant.refresh_token or "", grant.expires_in)
        return {
            "authenticated": True,
            "expires_in": grant.expires_in,
            "has_refresh_token": bool(grant.refresh_token),
        }

    @mcp.tool()
    async def logout() -> dict:
        """Forget the stored Autodesk credential.

        Pending changes are kept; sign in again before saving them.
        """
        logger.info("logout called")
        get_workspace().token_store.clear()
        return {"authenticated": False}

    @mcp.tool()
    async def get_auth_status() -> dict:
        """Check whether a usable Autodesk credential is stored.

        An expired credential is refreshed once. If the refresh fails the
        credential is removed and the user must sign in again.

        Returns:
            Dict with:
            - authenticated: True if a valid access token is available
            - expires_at: Expiry as epoch seconds (when authenticated)
        """
        logger.info("get_auth_status called")
        store = get_workspace().token_store
        token = await store.get_valid()
        credential = store.get() if token else None
        return {
            "authenticated": token is not None,
            "expires_at": credential.expires_at if credential else None,
        }
