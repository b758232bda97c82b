"""
Tests for the HTTP health probe.
"""

import httpx
import pytest

from provisioning.probe import HealthProbe
from provisioning.resources import HealthCheck
from provisioning.traffic import TargetHealth, TargetState


def make_client(status_code: int = 200, seen: list | None = None) -> httpx.Client:
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status_code, text="OK")

    return httpx.Client(transport=httpx.MockTransport(handler))


class TestProbe:
    def test_success(self, clock) -> None:
        seen: list[httpx.Request] = []
        probe = HealthProbe(HealthCheck(), client=make_client(seen=seen), clock=clock)

        result = probe.probe("http://10.0.0.10:3000/")

        assert result.success
        assert result.status_code == 200
        assert str(seen[0].url) == "http://10.0.0.10:3000/health"

    def test_error_status(self, clock) -> None:
        probe = HealthProbe(HealthCheck(), client=make_client(503), clock=clock)

        result = probe.probe("http://10.0.0.10:3000")

        assert not result.success
        assert result.status_code == 503

    def test_connection_error(self, clock) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = httpx.Client(transport=httpx.MockTransport(refuse))
        probe = HealthProbe(HealthCheck(), client=client, clock=clock)

        result = probe.probe("http://10.0.0.10:3000")

        assert not result.success
        assert result.status_code is None

    def test_elapsed_time(self) -> None:
        ticks = iter([100.0, 106.0])
        probe = HealthProbe(HealthCheck(), client=make_client(), clock=lambda: next(ticks))

        assert probe.probe("http://target").elapsed == pytest.approx(6.0)


class TestWatch:
    def test_healthy_target(self, clock) -> None:
        probe = HealthProbe(HealthCheck(), client=make_client(), clock=clock)
        target = TargetHealth(HealthCheck())

        state = probe.watch(target, "http://target", rounds=2, sleep=clock.sleep)

        assert state == TargetState.HEALTHY
        assert clock.sleeps == [30]

    def test_failing_target(self, clock) -> None:
        probe = HealthProbe(HealthCheck(), client=make_client(500), clock=clock)
        target = TargetHealth(HealthCheck())

        assert probe.watch(target, "http://target", rounds=3, sleep=clock.sleep) == TargetState.UNHEALTHY

    def test_slow_responses_fail(self) -> None:
        ticks = iter([0.0, 6.0, 30.0, 36.0])
        probe = HealthProbe(HealthCheck(), client=make_client(), clock=lambda: next(ticks))
        target = TargetHealth(HealthCheck())

        probe.watch(target, "http://target", rounds=2, sleep=lambda seconds: None)

        assert target.consecutive_failures == 2
        assert target.state == TargetState.UNKNOWN
