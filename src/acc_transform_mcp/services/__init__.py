"""Services for the ACC Transform MCP Server."""

from .http_client import ApsHttpClient
from .oss_client import OssClient
from .auth_client import AuthClient
from .acc_client import AccResourceClient
from .design_automation import DesignAutomationClient
from .token_store import TokenStore
from .transform_collector import TransformCollector
from .diagnostics import extract_archive, render_debug_report
from .save_orchestrator import (
    SaveOrchestrator,
    SaveOutcome,
    SaveState,
    SessionContext,
    build_manifest,
)
from .session import Workspace, get_workspace, reset_workspace

__all__ = [
    "ApsHttpClient",
    "OssClient",
    "AuthClient",
    "AccResourceClient",
    "DesignAutomationClient",
    "TokenStore",
    "TransformCollector",
    "extract_archive",
    "render_debug_report",
    "SaveOrchestrator",
    "SaveOutcome",
    "SaveState",
    "SessionContext",
    "build_manifest",
    "Workspace",
    "get_workspace",
    "reset_workspace",
]
