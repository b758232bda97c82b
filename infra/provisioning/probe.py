"""
HTTP health probing.

Probes a deployed target the way the load balancer does and feeds the
results into a ``TargetHealth`` state machine. Handy for smoke-testing a
deployment before pointing DNS at it.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass

import httpx
import structlog

from .resources import HealthCheck
from .traffic import TargetHealth, TargetState

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ProbeResult:
    success: bool
    elapsed: float
    status_code: int | None = None


class HealthProbe:
    def __init__(
        self,
        health_check: HealthCheck,
        client: httpx.Client | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.health_check = health_check
        self._get = client.get if client is not None else httpx.get
        self._clock = clock

    def probe(self, base_url: str) -> ProbeResult:
        """Send one probe. Only a 200 counts as success."""
        url = base_url.rstrip("/") + self.health_check.path
        started = self._clock()
        try:
            response = self._get(url, timeout=self.health_check.timeout)
        except httpx.HTTPError as e:
            elapsed = self._clock() - started
            logger.info("health_probe_failed", url=url, error=type(e).__name__)
            return ProbeResult(success=False, elapsed=elapsed)

        elapsed = self._clock() - started
        return ProbeResult(
            success=response.status_code == 200,
            elapsed=elapsed,
            status_code=response.status_code,
        )

    def watch(
        self,
        target: TargetHealth,
        base_url: str,
        rounds: int,
        sleep: Callable[[float], None] = time.sleep,
    ) -> TargetState:
        """Probe ``rounds`` times at the check's interval and return the final state."""
        for round_number in range(rounds):
            result = self.probe(base_url)
            state = target.record_probe(result.success, result.elapsed)
            logger.debug(
                "health_probe",
                url=base_url,
                success=result.success,
                status_code=result.status_code,
                state=state.value,
            )
            if round_number < rounds - 1:
                sleep(self.health_check.interval)
        return target.state
