import asyncio

from conftest import make_record
from whoopdash.adapters.whoop import WhoopAdapter
from whoopdash.auth.lifecycle import TokenManager


def make_adapter(token_store, http_client, clock, whoop_settings):
    manager = TokenManager(
        token_store,
        client_id=whoop_settings.client_id,
        client_secret=whoop_settings.client_secret.get_secret_value(),
        token_url=whoop_settings.token_url,
        http_client=http_client,
        clock=clock,
    )
    return WhoopAdapter(manager, whoop_settings, http_client=http_client, clock=clock)


def test_recoveries_are_fetched_per_cycle_in_order(token_store, http_client, fake_whoop, clock, whoop_settings):
    token_store.save(make_record())
    fake_whoop.route("/cycle/1/recovery", {"score": {"recovery_score": 80}})
    fake_whoop.route("/cycle/3/recovery", {"score": {"recovery_score": 60}})
    adapter = make_adapter(token_store, http_client, clock, whoop_settings)

    async def go():
        async with adapter:
            return await adapter.fetch_recoveries(
                [
                    {"id": 1, "start": "s1"},
                    {"id": 2, "start": "s2"},  # 404
                    {"start": "no-id"},
                    {"id": 3, "start": "s3"},
                ]
            )

    recoveries = asyncio.run(go())

    assert [r["timestamp"] for r in recoveries] == ["s1", "s3"]
    assert [r.url.path for r in fake_whoop.data_requests] == [
        "/developer/v1/cycle/1/recovery",
        "/developer/v1/cycle/2/recovery",
        "/developer/v1/cycle/3/recovery",
    ]


def test_fetch_all_records_failed_sections(token_store, http_client, fake_whoop, clock, whoop_settings):
    token_store.save(make_record())
    fake_whoop.route("/cycle", {"records": [{"id": 5, "start": "s5"}]})
    fake_whoop.route("/cycle/5/recovery", {"score": {"recovery_score": 42}})
    fake_whoop.route("/activity/workout", [])
    adapter = make_adapter(token_store, http_client, clock, whoop_settings)

    async def go():
        async with adapter:
            return await adapter.fetch_all()

    raw = asyncio.run(go())

    assert raw.failed == ["profile", "sleep"]
    assert not raw.all_failed
    assert raw.cycles == {"records": [{"id": 5, "start": "s5"}]}
    assert raw.recoveries == [{"score": {"recovery_score": 42}, "timestamp": "s5"}]
    assert raw.workouts == []


def test_health_check(token_store, http_client, fake_whoop, clock, whoop_settings):
    token_store.save(make_record())
    adapter = make_adapter(token_store, http_client, clock, whoop_settings)

    async def go():
        async with adapter:
            unhealthy = await adapter.health_check()
            fake_whoop.route("/user/profile/basic", {"user_id": 1})
            healthy = await adapter.health_check()
        return unhealthy, healthy

    assert asyncio.run(go()) == (False, True)
    assert not adapter.is_connected


def test_adapter_creates_and_closes_its_own_client(token_store, clock, whoop_settings):
    manager = TokenManager(
        token_store,
        client_id="c",
        client_secret="s",
        token_url=whoop_settings.token_url,
        clock=clock,
    )
    adapter = WhoopAdapter(manager, whoop_settings)

    async def go():
        await adapter.connect()
        client = adapter._http
        await adapter.disconnect()
        return client

    client = asyncio.run(go())
    assert client.is_closed
    assert adapter.gateway is None
