"""Token lifecycle: hand out a valid access token, refreshing when close to expiry."""

from collections.abc import Callable
from datetime import datetime

import httpx
import structlog

from whoopdash.adapters.base import ReauthorizationRequired, Unauthenticated, truncate_body
from whoopdash.auth.store import TokenStore
from whoopdash.auth.tokens import TokenRecord, utcnow

logger = structlog.get_logger()

DEFAULT_REFRESH_SKEW_SECONDS = 300


class TokenManager:
    """Decides whether the stored token is usable and refreshes it if not.

    Validity is recomputed on every call instead of on a timer, so the
    manager holds no state between invocations beyond what the store has.

    When the store is empty, ``bootstrap_refresh_token`` (typically from the
    environment) is exchanged once; the resulting record is then persisted
    and used from the store on later runs.
    """

    def __init__(
        self,
        store: TokenStore,
        client_id: str,
        client_secret: str,
        token_url: str,
        *,
        http_client: httpx.AsyncClient | None = None,
        bootstrap_refresh_token: str | None = None,
        skew_seconds: int = DEFAULT_REFRESH_SKEW_SECONDS,
        timeout: float = 10.0,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.client_id = client_id
        self._client_secret = client_secret
        self.token_url = token_url
        self._http = http_client
        self._bootstrap_refresh_token = bootstrap_refresh_token or None
        self.skew_seconds = skew_seconds
        self.timeout = timeout
        self.clock = clock

    async def get_valid_access_token(self) -> str:
        """Return an access token that is not within the skew window of expiry.

        Raises:
            Unauthenticated: Nothing stored and no bootstrap refresh token.
            ReauthorizationRequired: The refresh call failed.
        """
        record = self.store.load()

        if record is None:
            if not self._bootstrap_refresh_token:
                raise Unauthenticated()
            logger.info("No token record stored, exchanging bootstrap refresh token")
            refreshed = await self.refresh(self._bootstrap_refresh_token)
            return refreshed.access_token

        now = self.clock()
        if not record.needs_refresh(now, self.skew_seconds):
            return record.access_token

        logger.info(
            "Access token expiring, refreshing",
            expires_at=record.expires_at.isoformat(),
            seconds_remaining=record.seconds_remaining(now),
        )
        refreshed = await self.refresh(record.refresh_token)
        return refreshed.access_token

    async def refresh(self, refresh_token: str) -> TokenRecord:
        """Exchange ``refresh_token`` for a new record and persist it.

        There is no retry: a rejected refresh token stays rejected.
        """
        data = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": self.client_id,
            "client_secret": self._client_secret,
            "scope": "offline",
        }

        try:
            response = await self._post(data)
        except httpx.HTTPError as e:
            logger.error("Token refresh failed, no response", error=type(e).__name__)
            raise ReauthorizationRequired(f"Token refresh failed: {type(e).__name__}") from e

        if not response.is_success:
            body = truncate_body(response.text)
            logger.error("Token refresh rejected", status_code=response.status_code, body=body)
            raise ReauthorizationRequired(
                f"Token refresh rejected with status {response.status_code}",
                status_code=response.status_code,
                body=body,
            )

        try:
            record = TokenRecord.from_token_response(
                response.json(),
                issued_at=self.clock(),
                previous_refresh_token=refresh_token,
            )
        except (TypeError, ValueError) as e:
            # json.JSONDecodeError and pydantic.ValidationError are both ValueErrors
            logger.error("Token refresh returned an unusable body", status_code=response.status_code)
            raise ReauthorizationRequired(
                "Token refresh returned an unusable body", status_code=response.status_code
            ) from e

        if record.refresh_token != refresh_token:
            logger.info("Refresh token rotated by provider")

        self.store.save(record)
        logger.info("Access token refreshed", expires_in=record.expires_in)
        return record

    async def _post(self, data: dict[str, str]) -> httpx.Response:
        headers = {"Content-Type": "application/x-www-form-urlencoded"}
        if self._http is not None:
            return await self._http.post(self.token_url, data=data, headers=headers, timeout=self.timeout)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(self.token_url, data=data, headers=headers)
