"""
Walks a ``ResourceGraph`` against a backend.

Creation follows the graph's waves: every resource in a wave only depends on
earlier waves, so a wave may be created in parallel. Teardown runs in exact
reverse order. A failed run is not rolled back; the error lists what was
created so the operator can tear it down or fix the input and re-run.
"""

import time
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from typing import Protocol

import structlog

from .certificate import wait_for_validation
from .errors import ProvisioningFailed
from .graph import ResourceGraph
from .resources import Certificate, CertificateStatus, RemovalPolicy, Resource

logger = structlog.get_logger(__name__)


class Backend(Protocol):
    """What a provider must implement to realize a graph."""

    def create(self, resource: Resource) -> None: ...

    def delete(self, resource: Resource) -> None: ...

    def certificate_status(self, certificate: Certificate) -> CertificateStatus: ...


class Provisioner:
    def __init__(
        self,
        graph: ResourceGraph,
        backend: Backend,
        *,
        max_workers: int = 1,
        poll_interval: float = 5.0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.graph = graph
        self.backend = backend
        self.max_workers = max_workers
        self.poll_interval = poll_interval
        self._sleep = sleep
        self._clock = clock

    def provision(self) -> list[str]:
        """
        Create every resource in dependency order.

        Returns:
            Ids of the created resources, in creation order.

        Raises:
            ProvisioningFailed: a resource could not be created. Resources
                from earlier waves (and finished siblings in the failing
                wave) are left in place.
        """
        created: list[str] = []
        waves = self.graph.waves()
        logger.info("provisioning_started", resources=len(self.graph), waves=len(waves))

        for number, wave in enumerate(waves):
            logger.debug("provisioning_wave", wave=number, resources=[r.id for r in wave])
            if self.max_workers == 1 or len(wave) == 1:
                for resource in wave:
                    self._create_or_fail(resource, created)
                continue

            failure: tuple[Resource, BaseException] | None = None
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                futures = [(resource, executor.submit(self._create, resource)) for resource in wave]
                for resource, future in futures:
                    error = future.exception()
                    if error is None:
                        created.append(resource.id)
                    elif failure is None:
                        failure = (resource, error)
            if failure is not None:
                self._fail(failure[0], created, failure[1])

        logger.info("provisioning_finished", created=len(created))
        return created

    def teardown(self, created: Iterable[str] | None = None) -> list[str]:
        """
        Delete resources in reverse dependency order.

        Only resources with ``RemovalPolicy.DESTROY`` are deleted; retained
        and imported resources are left alone. ``created`` limits teardown
        to the resources of a (possibly partial) run.

        Returns:
            Ids of the deleted resources, in deletion order.
        """
        only = set(created) if created is not None else None
        deleted: list[str] = []
        for resource in self.graph.teardown_order():
            if only is not None and resource.id not in only:
                continue
            if resource.imported or resource.removal_policy != RemovalPolicy.DESTROY:
                logger.info(
                    "resource_retained",
                    resource=resource.id,
                    removal_policy=resource.removal_policy.value,
                    imported=resource.imported,
                )
                continue
            self.backend.delete(resource)
            deleted.append(resource.id)
            logger.info("resource_deleted", resource=resource.id)
        return deleted

    def _create_or_fail(self, resource: Resource, created: list[str]) -> None:
        try:
            self._create(resource)
        except Exception as e:
            self._fail(resource, created, e)
        created.append(resource.id)

    def _create(self, resource: Resource) -> None:
        self.backend.create(resource)
        if isinstance(resource, Certificate):
            wait_for_validation(
                self.backend,
                resource,
                poll_interval=self.poll_interval,
                sleep=self._sleep,
                clock=self._clock,
            )
        logger.info("resource_created", resource=resource.id, type=type(resource).__name__)

    def _fail(self, resource: Resource, created: list[str], error: BaseException) -> None:
        logger.error(
            "provisioning_failed",
            resource=resource.id,
            error=str(error),
            created=list(created),
        )
        raise ProvisioningFailed(resource.id, list(created), error) from error
