"""Whoop adapter for recovery, sleep, workout and cycle data."""

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

import httpx
import structlog

from whoopdash.adapters.base import (
    AdapterError,
    BaseAdapter,
    NetworkError,
    UpstreamError,
    truncate_body,
)
from whoopdash.aggregators.snapshot import unwrap_records
from whoopdash.auth.lifecycle import TokenManager
from whoopdash.auth.tokens import utcnow
from whoopdash.config.settings import WhoopSettings

logger = structlog.get_logger()


class WhoopGateway:
    """Issues authenticated calls against the Whoop API.

    A token is requested from the TokenManager immediately before every call,
    so a token close to expiry is refreshed before the upstream rejects it.
    A 401 is surfaced as-is: right after a refresh it points at a scope or
    endpoint problem, not a stale token.
    """

    def __init__(
        self,
        token_manager: TokenManager,
        base_url: str,
        http_client: httpx.AsyncClient,
        adapter_name: str = "whoop",
        timeout: float = 10.0,
    ) -> None:
        self.token_manager = token_manager
        self.base_url = base_url.rstrip("/")
        self._http = http_client
        self.adapter_name = adapter_name
        self.timeout = timeout
        self.logger = logger.bind(adapter=adapter_name)

    def _url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    async def request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Send one request and return the parsed JSON body.

        Raises:
            UpstreamError: Non-2xx response, or a 2xx body that is not JSON.
            NetworkError: No response received.
        """
        access_token = await self.token_manager.get_valid_access_token()

        try:
            response = await self._http.request(
                method,
                self._url(path),
                params=params,
                headers={"Authorization": f"Bearer {access_token}"},
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            self.logger.warning("No response from Whoop", method=method, path=path, error=type(e).__name__)
            raise NetworkError(self.adapter_name, f"{method} {path} failed: {type(e).__name__}") from e

        if not response.is_success:
            body = truncate_body(response.text)
            self.logger.warning(
                "Whoop request failed",
                method=method,
                path=path,
                status_code=response.status_code,
                body=body,
            )
            raise UpstreamError(self.adapter_name, response.status_code, body, path=path)

        if not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(
                self.adapter_name, response.status_code, truncate_body(response.text), path=path
            ) from e


@dataclass
class RawWhoopData:
    """Raw upstream payloads for one fetch cycle, before normalization."""

    profile: Any = None
    cycles: Any = None
    recoveries: list[dict[str, Any]] = field(default_factory=list)
    sleep: Any = None
    workouts: Any = None
    failed: list[str] = field(default_factory=list)

    @property
    def all_failed(self) -> bool:
        """True when none of the primary collections could be fetched."""
        return {"profile", "cycles", "sleep", "workouts"} <= set(self.failed)


class WhoopAdapter(BaseAdapter):
    """Adapter for Whoop fitness/recovery data.

    Fetches:
    - User profile
    - Cycles, and the recovery attached to each cycle
    - Sleep activities
    - Workouts

    Endpoint failures are recorded on the result instead of raised, so one
    broken endpoint only empties its own section. Credential errors from the
    TokenManager are not caught here.
    """

    def __init__(
        self,
        token_manager: TokenManager,
        whoop: WhoopSettings,
        *,
        http_client: httpx.AsyncClient | None = None,
        record_limit: int = 14,
        lookback_days: int = 14,
        timeout: float = 10.0,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        super().__init__("whoop")
        self.token_manager = token_manager
        self.whoop = whoop
        self.record_limit = record_limit
        self.lookback_days = lookback_days
        self.timeout = timeout
        self.clock = clock
        self._http = http_client
        self._owns_http = http_client is None
        self.gateway: WhoopGateway | None = None

    async def connect(self) -> bool:
        """Prepare the HTTP client and gateway. Tokens are checked lazily per call."""
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self.timeout)
        self.gateway = WhoopGateway(
            self.token_manager,
            self.whoop.api_base_url,
            self._http,
            adapter_name=self.name,
            timeout=self.timeout,
        )
        self._connected = True
        self.logger.info("Connected to Whoop API", base_url=self.whoop.api_base_url)
        return True

    async def disconnect(self) -> None:
        """Close the HTTP client if this adapter created it."""
        if self._owns_http and self._http is not None:
            await self._http.aclose()
            self._http = None
        self.gateway = None
        self._connected = False
        self.logger.info("Disconnected from Whoop API")

    async def health_check(self) -> bool:
        """Check if the profile endpoint answers with the current token."""
        if not self.gateway:
            return False
        try:
            await self.fetch_profile()
            return True
        except AdapterError:
            return False

    def _require_gateway(self) -> WhoopGateway:
        if self.gateway is None:
            raise NetworkError(self.name, "Not connected")
        return self.gateway

    def _window_params(self) -> dict[str, Any]:
        end = self.clock()
        start = end - timedelta(days=self.lookback_days)
        return {
            "limit": self.record_limit,
            "start": start.isoformat(),
            "end": end.isoformat(),
        }

    async def fetch_profile(self) -> Any:
        return await self._require_gateway().request("GET", self.whoop.profile_path)

    async def fetch_cycles(self) -> Any:
        return await self._require_gateway().request("GET", self.whoop.cycle_path, self._window_params())

    async def fetch_recovery(self, cycle_id: Any) -> Any:
        path = self.whoop.recovery_path.format(cycle_id=cycle_id)
        return await self._require_gateway().request("GET", path)

    async def fetch_sleep(self) -> Any:
        return await self._require_gateway().request("GET", self.whoop.sleep_path, self._window_params())

    async def fetch_workouts(self) -> Any:
        return await self._require_gateway().request("GET", self.whoop.workout_path, self._window_params())

    async def fetch_recoveries(self, cycles: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Fetch the recovery for each cycle, one at a time.

        A cycle whose recovery cannot be fetched is skipped. Each recovery is
        tagged with its cycle's start time as ``timestamp``.
        """
        recoveries = []
        for cycle in cycles:
            cycle_id = cycle.get("id")
            if cycle_id is None:
                continue
            try:
                body = await self.fetch_recovery(cycle_id)
            except AdapterError as e:
                self.logger.info("No recovery for cycle", cycle_id=cycle_id, error=e.message)
                continue
            if not body or not isinstance(body, dict):
                self.logger.info("Empty recovery for cycle", cycle_id=cycle_id)
                continue
            recoveries.append({**body, "timestamp": cycle.get("start")})
        return recoveries

    async def fetch_all(self) -> RawWhoopData:
        """Fetch every section for one dashboard snapshot."""
        raw = RawWhoopData()

        raw.profile = await self._fetch_section("profile", self.fetch_profile, raw)
        raw.cycles = await self._fetch_section("cycles", self.fetch_cycles, raw)

        cycles = unwrap_records(raw.cycles, "cycle")
        raw.recoveries = await self.fetch_recoveries(cycles)

        raw.sleep = await self._fetch_section("sleep", self.fetch_sleep, raw)
        raw.workouts = await self._fetch_section("workouts", self.fetch_workouts, raw)

        self.logger.info(
            "Fetched Whoop data",
            cycles=len(cycles),
            recoveries=len(raw.recoveries),
            failed=raw.failed,
        )
        return raw

    async def _fetch_section(
        self,
        section: str,
        fetcher: Callable[[], Any],
        raw: RawWhoopData,
    ) -> Any:
        try:
            return await fetcher()
        except AdapterError as e:
            self.logger.warning("Section unavailable, leaving it empty", section=section, error=e.message)
            raw.failed.append(section)
            return None
