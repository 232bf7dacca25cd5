"""Shared fixtures."""

import pytest

from acc_transform_mcp.config import ServerConfig, reset_config
from acc_transform_mcp.services.session import reset_workspace


APS = "https://aps.test"


@pytest.fixture
def config(tmp_path):
    """Create test configuration."""
    return ServerConfig(
        aps_client_id="test-client",
        aps_client_secret="test-secret",
        aps_base_url=APS,
        da_nickname="owner",
        token_store_path=tmp_path / "tokens.json",
        request_timeout=5.0,
        max_retries=2,
        retry_delay=0.0,
        poll_interval=0.01,
        max_poll_attempts=5,
        upload_chunk_size=8,
    )


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset module singletons after each test."""
    yield
    reset_config()
    reset_workspace()
