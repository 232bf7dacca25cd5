"""OAuth credential models."""

from pydantic import BaseModel, Field
from typing import Optional


class Credential(BaseModel):
    """Persisted user token pair."""

    access_token: str = Field(alias="accessToken")
    refresh_token: str = Field(default="", alias="refreshToken")
    expires_at: float = Field(alias="expiresAt", description="Expiry as epoch seconds")

    model_config = {"populate_by_name": True}


class TokenGrant(BaseModel):
    """Response of the token endpoint."""

    access_token: str
    token_type: str = "Bearer"
    expires_in: int = 3600
    refresh_token: Optional[str] = None

    model_config = {"extra": "ignore"}
