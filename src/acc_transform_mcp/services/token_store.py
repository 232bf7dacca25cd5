"""Persisted user credential with expiry check and one-shot refresh."""

import json
import time
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional

from pydantic import ValidationError

from ..exceptions import AccTransformError, AuthRequiredError
from ..logging import get_logger
from ..models import Credential, TokenGrant


logger = get_logger(__name__)

# Single-token key written by older clients
LEGACY_TOKEN_KEY = "autodesk_token"

Refresher = Callable[[str], Awaitable[TokenGrant]]


class TokenStore:
    """Holds at most one user credential.

    With a ``path`` the credential lives in a JSON file under
    ``storage_key``; without one it is kept in memory only. There is no
    locking: two concurrent ``get_valid`` calls on a stale credential may
    both refresh.
    """

    def __init__(
        self,
        path: Optional[Path] = None,
        storage_key: str = "autodesk_tokens",
        refresher: Optional[Refresher] = None,
        margin_seconds: float = 300.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.path = path.expanduser() if path is not None else None
        self.storage_key = storage_key
        self.refresher = refresher
        self.margin_seconds = margin_seconds
        self._clock = clock
        self._memory: Dict[str, Any] = {}

    def _read(self) -> Dict[str, Any]:
        if self.path is None:
            return dict(self._memory)
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning("Token file unreadable", path=str(self.path), error=str(e))
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, Any]) -> None:
        if self.path is None:
            self._memory = dict(data)
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")

    def get(self) -> Optional[Credential]:
        """Return the stored credential, or None if absent or corrupt."""
        raw = self._read().get(self.storage_key)
        if raw is None:
            return None
        try:
            return Credential.model_validate(raw)
        except ValidationError:
            logger.warning("Stored credential is malformed, ignoring it")
            return None

    def save(self, access_token: str, refresh_token: str, expires_in_seconds: float) -> Credential:
        """Store a new token pair, replacing any existing one."""
        credential = Credential(
            access_token=access_token,
            refresh_token=refresh_token or "",
            expires_at=self._clock() + expires_in_seconds,
        )
        data = self._read()
        data[self.storage_key] = credential.model_dump(by_alias=True)
        self._write(data)
        logger.info("Credential saved", expires_in=expires_in_seconds)
        return credential

    def clear(self) -> None:
        """Remove the credential and the legacy single-token entry."""
        data = self._read()
        data.pop(self.storage_key, None)
        data.pop(LEGACY_TOKEN_KEY, None)
        self._write(data)
        logger.info("Credential cleared")

    def is_expired(self, credential: Credential) -> bool:
        """True once less than the safety margin remains."""
        return self._clock() >= credential.expires_at - self.margin_seconds

    async def get_valid(self) -> Optional[str]:
        """Return a usable access token, refreshing once if needed.

        Returns None when there is no credential, or when the single
        refresh attempt fails (the store is cleared in that case).
        """
        credential = self.get()
        if credential is None:
            logger.debug("No credential stored")
            return None

        if not self.is_expired(credential):
            return credential.access_token

        if self.refresher is None or not credential.refresh_token:
            logger.info("Credential expired and cannot be refreshed")
            self.clear()
            return None

        logger.info("Credential expired, refreshing")
        try:
            grant = await self.refresher(credential.refresh_token)
        except AccTransformError as e:
            logger.warning("Token refresh failed", error=e.message)
            self.clear()
            return None
        except ValidationError as e:
            logger.warning("Token refresh returned a malformed grant", errors=e.error_count())
            self.clear()
            return None

        # The token endpoint may omit a rotated refresh token
        refreshed = self.save(
            grant.access_token,
            grant.refresh_token or credential.refresh_token,
            grant.expires_in,
        )
        return refreshed.access_token

    async def require_valid(self) -> str:
        """Like get_valid but raises AuthRequiredError instead of returning None."""
        token = await self.get_valid()
        if token is None:
            raise AuthRequiredError("sign-in missing, expired or refresh failed")
        return token
