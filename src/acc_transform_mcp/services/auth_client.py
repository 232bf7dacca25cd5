"""OAuth client for the Autodesk authentication v2 endpoints."""

import time
from typing import Dict, Optional, Tuple
from urllib.parse import urlencode

from pydantic import ValidationError

from ..api_schema import get_endpoint
from ..exceptions import RemoteRequestFailedError
from ..logging import get_logger
from ..models import TokenGrant
from .http_client import ApsHttpClient


logger = get_logger(__name__)


class AuthClient(ApsHttpClient):
    """Three-legged (user) and two-legged (app) token flows.

    Token requests are form posts and are never retried: an authorization
    code or refresh token is single-use.
    """

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        # scope string -> (access token, expiry epoch seconds)
        self._app_tokens: Dict[str, Tuple[str, float]] = {}

    def authorization_url(self, state: Optional[str] = None) -> str:
        """Build the browser URL that starts the user sign-in."""
        params = {
            "response_type": "code",
            "client_id": self.config.aps_client_id,
            "redirect_uri": self.config.aps_callback_url,
            "scope": self.config.user_scopes,
        }
        if state:
            params["state"] = state
        return f"{self.config.aps_base_url}{get_endpoint('authorize')}?{urlencode(params)}"

    async def _token_request(self, operation: str, form: Dict[str, str]) -> TokenGrant:
        form = {
            **form,
            "client_id": self.config.aps_client_id,
            "client_secret": self.config.aps_client_secret,
        }
        response = await self._request(
            "POST",
            get_endpoint("token"),
            operation=operation,
            data=form,
            headers={"Accept": "application/json"},
            retry=False,
        )
        payload = self._json(response, operation)
        if not payload.get("access_token"):
            raise RemoteRequestFailedError(
                operation, response.status_code, reason="no access_token in response"
            )
        try:
            grant = TokenGrant.model_validate(payload)
        except ValidationError as e:
            raise RemoteRequestFailedError(
                operation,
                response.status_code,
                reason=f"malformed token response ({e.error_count()} invalid field(s))",
            )
        logger.info(
            "Token issued",
            operation=operation,
            expires_in=grant.expires_in,
            has_refresh_token=bool(grant.refresh_token),
        )
        return grant

    async def exchange_code(self, code: str) -> TokenGrant:
        """Exchange an authorization code for a user token pair."""
        return await self._token_request(
            "Exchange authorization code",
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.config.aps_callback_url,
            },
        )

    async def refresh(self, refresh_token: str) -> TokenGrant:
        """Trade a refresh token for a new user token pair."""
        return await self._token_request(
            "Refresh token",
            {
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "scope": self.config.user_scopes,
            },
        )

    async def client_credentials(self, scopes: Optional[str] = None) -> TokenGrant:
        """Get a two-legged app token."""
        return await self._token_request(
            "Get app token",
            {
                "grant_type": "client_credentials",
                "scope": scopes or self.config.app_scopes,
            },
        )

    async def get_app_token(self, scopes: Optional[str] = None) -> str:
        """Get a cached app token, requesting a new one near expiry."""
        scope_key = scopes or self.config.app_scopes
        cached = self._app_tokens.get(scope_key)
        if cached and time.time() < cached[1] - self.config.token_refresh_margin:
            return cached[0]

        grant = await self.client_credentials(scope_key)
        self._app_tokens[scope_key] = (grant.access_token, time.time() + grant.expires_in)
        return grant.access_token
