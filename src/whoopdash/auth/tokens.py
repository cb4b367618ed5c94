"""The persisted token record ("passport")."""

from datetime import datetime, timedelta, timezone
from typing import Any

from pydantic import BaseModel, Field, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenRecord(BaseModel):
    """One set of OAuth2 tokens for the single connected Whoop account.

    ``expires_at`` is always derived from ``issued_at + expires_in`` and is
    never stored.
    """

    access_token: str
    refresh_token: str
    issued_at: datetime
    expires_in: int = Field(ge=0)
    token_type: str = "bearer"
    scope: str | None = None

    @field_validator("issued_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def expires_at(self) -> datetime:
        return self.issued_at + timedelta(seconds=self.expires_in)

    def needs_refresh(self, now: datetime, skew_seconds: int) -> bool:
        """True once ``now`` is within ``skew_seconds`` of expiry (or past it)."""
        return now >= self.expires_at - timedelta(seconds=skew_seconds)

    def seconds_remaining(self, now: datetime) -> int:
        return int((self.expires_at - now).total_seconds())

    @classmethod
    def from_token_response(
        cls,
        payload: Any,
        issued_at: datetime,
        previous_refresh_token: str | None = None,
    ) -> "TokenRecord":
        """Build a record from an OAuth token endpoint response.

        Providers that do not rotate refresh tokens omit ``refresh_token``;
        the previous one is kept in that case.

        Raises:
            ValueError: The payload is not an object, lacks a token, or has
                no positive ``expires_in``.
        """
        if not isinstance(payload, dict):
            raise ValueError(f"Token response is a {type(payload).__name__}, not an object")
        refresh_token = payload.get("refresh_token") or previous_refresh_token
        if not payload.get("access_token") or not refresh_token:
            raise ValueError("Token response is missing access_token or refresh_token")
        try:
            expires_in = int(payload.get("expires_in"))
        except (TypeError, ValueError) as e:
            raise ValueError("Token response has no usable expires_in") from e
        if expires_in <= 0:
            raise ValueError("Token response expires_in must be positive")
        return cls(
            access_token=payload["access_token"],
            refresh_token=refresh_token,
            issued_at=issued_at,
            expires_in=expires_in,
            token_type=payload.get("token_type") or "bearer",
            scope=payload.get("scope"),
        )

    def __repr__(self) -> str:
        # Keep tokens out of tracebacks and logs
        return (
            f"TokenRecord(issued_at={self.issued_at.isoformat()}, "
            f"expires_in={self.expires_in}, scope={self.scope!r})"
        )

    __str__ = __repr__
