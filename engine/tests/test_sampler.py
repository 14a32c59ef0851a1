"""
Tests for endpoint sampling and continuous health monitoring.
"""

import httpx
import pytest
import respx

from resilience_engine.probes.models import TargetEndpoint
from resilience_engine.probes.readiness import ReadinessPoller
from resilience_engine.probes.sampler import EndpointSampler, fetch_json, missing_fields
from tests.chaos.fixtures.network_chaos import NetworkChaos

METRICS_URL = "http://gw.test/metrics"
GATEWAY = TargetEndpoint(name="api-gateway", base_url="http://gw.test")


class TestMissingFields:
    """Tests for dotted-path field checks."""

    def test_nested_paths(self) -> None:
        body = {"gateway": {"uptime": 1.0}, "services": {}}

        assert missing_fields(body, ["gateway", "gateway.uptime", "services"]) == []
        assert missing_fields(body, ["gateway.memory", "system"]) == ["gateway.memory", "system"]

    def test_non_object_body(self) -> None:
        assert missing_fields(None, ["timestamp"]) == ["timestamp"]
        assert missing_fields([1, 2], ["timestamp"]) == ["timestamp"]


class TestFetchJson:
    """Tests for fetch_json."""

    @pytest.mark.asyncio
    async def test_transport_error(self) -> None:
        with respx.mock as router:
            NetworkChaos.connection_refused(router, "gw.test")
            async with httpx.AsyncClient() as client:
                assert await fetch_json(client, METRICS_URL) == (None, None)

    @pytest.mark.asyncio
    async def test_non_json_body(self) -> None:
        with respx.mock as router:
            NetworkChaos.invalid_json(router, METRICS_URL)
            async with httpx.AsyncClient() as client:
                assert await fetch_json(client, METRICS_URL) == (200, None)


class TestSampleJson:
    """Tests for EndpointSampler.sample_json."""

    @pytest.mark.asyncio
    async def test_collects_only_successful_snapshots(self) -> None:
        with respx.mock as router:
            NetworkChaos.intermittent_500(router, METRICS_URL, {"timestamp": 1}, every=2)
            async with httpx.AsyncClient() as client:
                snapshots = await EndpointSampler(client).sample_json(METRICS_URL, 0.1, 0.01)
            calls = router.calls.call_count

        assert calls >= 2
        assert len(snapshots) == (calls + 1) // 2
        assert all(snapshot == {"timestamp": 1} for snapshot in snapshots)

    @pytest.mark.asyncio
    async def test_timeouts_yield_no_snapshots(self) -> None:
        with respx.mock as router:
            NetworkChaos.timeout(router, METRICS_URL)
            async with httpx.AsyncClient() as client:
                snapshots = await EndpointSampler(client).sample_json(METRICS_URL, 0.05, 0.01)

        assert snapshots == []


class TestMonitorHealth:
    """Tests for EndpointSampler.monitor_health."""

    @pytest.mark.asyncio
    async def test_ratio(self) -> None:
        with respx.mock as router:
            NetworkChaos.intermittent_500(router, GATEWAY.health_url, {"status": "ok"}, every=4)
            async with httpx.AsyncClient() as client:
                report = await EndpointSampler(client).monitor_health(
                    ReadinessPoller(client), GATEWAY, duration_s=0.085, interval_s=0.01
                )

        assert report.total == 8
        assert report.healthy == 6
        assert report.ratio == pytest.approx(0.75)

    @pytest.mark.asyncio
    async def test_zero_interval_probes_once(self) -> None:
        with respx.mock as router:
            route = router.get(GATEWAY.health_url).mock(return_value=httpx.Response(200))
            async with httpx.AsyncClient() as client:
                report = await EndpointSampler(client).monitor_health(
                    ReadinessPoller(client), GATEWAY, duration_s=1.0, interval_s=0.0
                )

        assert report.total == 1
        assert route.call_count == 1
