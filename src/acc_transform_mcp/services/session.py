"""Process-wide workspace: the clients and state shared by all tools."""

from typing import Optional

from ..config import get_config, ServerConfig
from ..logging import get_logger
from .acc_client import AccResourceClient
from .auth_client import AuthClient
from .design_automation import DesignAutomationClient
from .save_orchestrator import SaveOrchestrator, SessionContext
from .token_store import TokenStore
from .transform_collector import TransformCollector


logger = get_logger(__name__)


class Workspace:
    """Everything one MCP server process holds between tool calls."""

    def __init__(self, config: Optional[ServerConfig] = None) -> None:
        self.config = config or get_config()
        self.auth_client = AuthClient(self.config)
        self.acc_client = AccResourceClient(self.config)
        self.da_client = DesignAutomationClient(self.config)
        self.token_store = TokenStore(
            path=self.config.token_store_path,
            storage_key=self.config.token_storage_key,
            refresher=self.auth_client.refresh,
            margin_seconds=self.config.token_refresh_margin,
        )
        self.collector = TransformCollector()
        self.orchestrator = SaveOrchestrator(
            self.collector,
            self.token_store,
            self.auth_client,
            self.acc_client,
            self.da_client,
            self.config,
        )
        self.context: Optional[SessionContext] = None

    def open(self, context: SessionContext) -> int:
        """Make ``context`` the open file.

        Pending changes belong to the previously open file and are dropped.

        Returns:
            Number of pending changes discarded
        """
        discarded = 0
        if self.context is not None and self.context.item_id != context.item_id:
            discarded = len(self.collector)
            self.collector.clear()
        self.context = context
        logger.info("File opened", item_id=context.item_id, discarded=discarded)
        return discarded

    async def aclose(self) -> None:
        """Close the HTTP clients."""
        for client in (self.auth_client, self.acc_client, self.da_client):
            await client.disconnect()


# Singleton instance
_workspace: Optional[Workspace] = None


def get_workspace() -> Workspace:
    """Get the workspace singleton."""
    global _workspace
    if _workspace is None:
        _workspace = Workspace()
    return _workspace


def reset_workspace() -> None:
    """Reset the workspace singleton (for testing)."""
    global _workspace
    _workspace = None
