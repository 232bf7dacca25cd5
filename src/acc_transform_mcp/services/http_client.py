"""Async HTTP client base for the Autodesk REST API.

Provides connection management, retry on transport failures and the
mapping of non-2xx responses onto the error hierarchy. The concrete
clients (OAuth, ACC, Design Automation) build on it.
"""

import asyncio
from typing import Any, Dict, Iterable, Optional
import httpx

from ..config import get_config, ServerConfig
from ..exceptions import (
    ApsConnectionError,
    ApsTimeoutError,
    NotFoundError,
    PermissionDeniedError,
    RemoteRequestFailedError,
)
from ..logging import get_logger


logger = get_logger(__name__)


class ApsHttpClient:
    """Async HTTP client for Autodesk Platform Services.

    Usage:
        async with AccResourceClient() as client:
            hubs = await client.list_hubs(token)

    Or without context manager:
        client = AccResourceClient()
        await client.connect()
        try:
            hubs = await client.list_hubs(token)
        finally:
            await client.disconnect()

    Requests to absolute URLs (signed S3 URLs, report URLs) never carry
    the bearer token: it is only added when ``token`` is passed.
    """

    def __init__(self, config: Optional[ServerConfig] = None) -> None:
        """Initialize client with optional config.

        Args:
            config: Server configuration (uses global config if not provided)
        """
        self.config = config or get_config()
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "ApsHttpClient":
        """Async context manager entry - creates HTTP client."""
        await self.connect()
        return self

    async def __aexit__(self, *args) -> None:
        """Async context manager exit - closes HTTP client."""
        await self.disconnect()

    async def connect(self) -> None:
        """Create the async HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.config.aps_base_url,
                timeout=httpx.Timeout(self.config.request_timeout),
            )
            logger.debug(
                "Client connected",
                client=type(self).__name__,
                base_url=self.config.aps_base_url,
            )

    async def disconnect(self) -> None:
        """Close the async HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.debug("Client disconnected", client=type(self).__name__)

    async def _ensure_connected(self) -> None:
        """Ensure client is connected."""
        if self._client is None:
            await self.connect()

    async def _request(
        self,
        method: str,
        url: str,
        *,
        operation: str,
        token: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
        data: Optional[Dict[str, Any]] = None,
        files: Optional[Dict[str, Any]] = None,
        content: Optional[bytes] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        retry: bool = True,
        accept_status: Iterable[int] = (),
    ) -> httpx.Response:
        """Make HTTP request with retry logic.

        Args:
            method: HTTP method
            url: Endpoint path (relative to aps_base_url) or absolute URL
            operation: Human-readable step name used in logs and errors
            token: Bearer token; omitted for signed URLs
            params: Query parameters
            json: JSON body
            data: Form body
            files: Multipart files
            content: Raw body
            headers: Extra headers
            timeout: Per-request timeout override in seconds
            retry: Retry on transport errors and timeouts. Must be False
                for calls that are not safe to repeat.
            accept_status: Non-2xx statuses to return instead of raising

        Returns:
            The response

        Raises:
            ApsConnectionError: Cannot reach the API, or the connection
                broke during the exchange
            ApsTimeoutError: Request timed out
            NotFoundError: HTTP 404
            PermissionDeniedError: HTTP 401 or 403
            RemoteRequestFailedError: Any other non-2xx status
        """
        await self._ensure_connected()

        request_headers = dict(headers or {})
        if token:
            request_headers["Authorization"] = f"Bearer {token}"

        attempts = self.config.max_retries if retry else 1
        attempts = max(attempts, 1)
        last_error: Optional[Exception] = None

        for attempt in range(attempts):
            try:
                response = await self._client.request(
                    method,
                    url,
                    params=params,
                    json=json,
                    data=data,
                    files=files,
                    content=content,
                    headers=request_headers,
                    timeout=timeout if timeout is not None else httpx.USE_CLIENT_DEFAULT,
                )
            except httpx.ConnectError as e:
                last_error = e
                logger.warning(
                    "Connection error, retrying" if attempt < attempts - 1 else "Connection error",
                    operation=operation,
                    attempt=attempt + 1,
                    max_retries=attempts,
                )
            except httpx.TimeoutException as e:
                last_error = e
                logger.warning(
                    "Timeout error, retrying" if attempt < attempts - 1 else "Timeout error",
                    operation=operation,
                    attempt=attempt + 1,
                    max_retries=attempts,
                )
            except httpx.TransportError as e:
                # e.g. a connection reset mid-response
                last_error = e
                logger.warning(
                    "Transport error, retrying" if attempt < attempts - 1 else "Transport error",
                    operation=operation,
                    error_type=type(e).__name__,
                    attempt=attempt + 1,
                    max_retries=attempts,
                )
            else:
                logger.debug(
                    "Request completed",
                    operation=operation,
                    status=response.status_code,
                    attempt=attempt + 1,
                )
                if response.is_success or response.status_code in accept_status:
                    return response
                self._raise_for_status(response, operation)

            if attempt < attempts - 1:
                await asyncio.sleep(self.config.retry_delay)

        # All retries exhausted
        if isinstance(last_error, httpx.TimeoutException):
            raise ApsTimeoutError(operation, reason=f"timed out after {attempts} attempt(s)")
        if not isinstance(last_error, httpx.ConnectError):
            raise ApsConnectionError(
                operation,
                reason=f"connection failed after {attempts} attempt(s): {type(last_error).__name__}: {last_error}",
            )
        raise ApsConnectionError(
            operation,
            reason=f"cannot reach {self.config.aps_base_url}: {last_error}",
        )

    def _raise_for_status(self, response: httpx.Response, operation: str) -> None:
        """Map an error response onto the error hierarchy.

        Raises:
            Appropriate RemoteRequestFailedError subclass
        """
        status = response.status_code
        body = response.text
        logger.warning(
            "Request failed",
            operation=operation,
            status=status,
        )
        if status == 404:
            raise NotFoundError(operation, status, body)
        if status in (401, 403):
            raise PermissionDeniedError(operation, status, body)
        raise RemoteRequestFailedError(operation, status, body)

    @staticmethod
    def _json(response: httpx.Response, operation: str) -> Dict[str, Any]:
        """Decode a JSON body, classifying garbage as a remote failure."""
        try:
            return response.json()
        except ValueError:
            raise RemoteRequestFailedError(
                operation,
                response.status_code,
                response.text,
                reason="response is not valid JSON",
            )
