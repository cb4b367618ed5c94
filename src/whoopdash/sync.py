"""One fetch cycle: tokens, upstream data, normalization, snapshot file."""

from collections.abc import Callable
from datetime import datetime

import httpx
import structlog

from whoopdash.adapters.base import NetworkError, WhoopDashError
from whoopdash.adapters.whoop import WhoopAdapter
from whoopdash.aggregators.snapshot import normalize
from whoopdash.auth.lifecycle import TokenManager
from whoopdash.auth.store import TokenStore
from whoopdash.auth.tokens import utcnow
from whoopdash.config.settings import DashboardSettings, WhoopSettings, settings
from whoopdash.storage.snapshot_file import SnapshotWriter

logger = structlog.get_logger()

EXIT_OK = 0
EXIT_FAILURE = 1


def build_token_manager(
    whoop: WhoopSettings,
    dashboard: DashboardSettings,
    http_client: httpx.AsyncClient | None = None,
    clock: Callable[[], datetime] = utcnow,
) -> TokenManager:
    return TokenManager(
        TokenStore(dashboard.token_file),
        client_id=whoop.client_id,
        client_secret=whoop.client_secret.get_secret_value(),
        token_url=whoop.token_url,
        http_client=http_client,
        bootstrap_refresh_token=whoop.refresh_token.get_secret_value(),
        skew_seconds=dashboard.refresh_skew_seconds,
        timeout=dashboard.request_timeout_seconds,
        clock=clock,
    )


async def run_sync(
    whoop: WhoopSettings | None = None,
    dashboard: DashboardSettings | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    clock: Callable[[], datetime] = utcnow,
) -> int:
    """Fetch everything and write the snapshot file.

    The snapshot file is always written last: the full Snapshot on success,
    an error snapshot otherwise.

    Returns:
        EXIT_OK, or EXIT_FAILURE on a credential failure, when every
        upstream collection failed, or on any unexpected error.
    """
    whoop = whoop or settings.whoop
    dashboard = dashboard or settings.dashboard
    writer = SnapshotWriter(dashboard.snapshot_file)

    logger.info("Starting Whoop data fetch", snapshot_file=str(writer.path))
    try:
        async with httpx.AsyncClient(
            timeout=dashboard.request_timeout_seconds, transport=transport
        ) as http:
            manager = build_token_manager(whoop, dashboard, http_client=http, clock=clock)

            # Fail fast on credentials before touching any data endpoint
            await manager.get_valid_access_token()

            async with WhoopAdapter(
                manager,
                whoop,
                http_client=http,
                record_limit=dashboard.record_limit,
                lookback_days=dashboard.lookback_days,
                timeout=dashboard.request_timeout_seconds,
                clock=clock,
            ) as adapter:
                raw = await adapter.fetch_all()

        if raw.all_failed:
            raise NetworkError("whoop", "Every Whoop endpoint failed")

        snapshot = normalize(
            raw.profile,
            raw.cycles,
            raw.recoveries,
            raw.sleep,
            raw.workouts,
            last_updated=clock(),
        )
    except WhoopDashError as e:
        logger.error("Whoop data fetch failed", error_type=type(e).__name__, error=str(e))
        writer.write_error(str(e), clock())
        return EXIT_FAILURE
    except Exception as e:
        logger.exception("Unexpected error during Whoop data fetch", error_type=type(e).__name__)
        writer.write_error(f"Unexpected error: {type(e).__name__}", clock())
        return EXIT_FAILURE

    writer.write(snapshot)
    logger.info("Successfully fetched and saved Whoop data")
    return EXIT_OK
