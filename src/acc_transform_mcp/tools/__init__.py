"""MCP tools for ACC Transform MCP Server."""

from .auth_tools import register_auth_tools
from .browse_tools import register_browse_tools
from .transform_tools import register_transform_tools
from .system_tools import register_system_tools

__all__ = [
    "register_auth_tools",
    "register_browse_tools",
    "register_transform_tools",
    "register_system_tools",
]
