"""
TLS certificate issuance with DNS-challenge validation.

Issuance is the one provisioning step that waits on an external, slow
process (DNS propagation plus the CA's challenge check), so the wait is
bounded by an explicit timeout.
"""

import time
from collections.abc import Callable
from typing import TYPE_CHECKING

import structlog

from .errors import CertificateValidationTimeout, ProvisioningError
from .graph import ResourceGraph
from .resources import Certificate, CertificateStatus, HostedZone

if TYPE_CHECKING:
    from .provisioner import Backend

logger = structlog.get_logger(__name__)

DEFAULT_VALIDATION_TIMEOUT = 600.0


class CertificateIssuer:
    """Declares certificates covering a domain and all of its subdomains."""

    def __init__(
        self, graph: ResourceGraph, validation_timeout: float = DEFAULT_VALIDATION_TIMEOUT
    ) -> None:
        if validation_timeout <= 0:
            raise ValueError("validation_timeout must be positive")
        self.graph = graph
        self.validation_timeout = validation_timeout

    def issue(
        self, domain: str, hosted_zone: HostedZone, *, resource_id: str = "Certificate"
    ) -> Certificate:
        """Request a certificate for ``domain`` and ``*.domain``, validated in ``hosted_zone``."""
        zone = hosted_zone.domain_name.rstrip(".")
        if domain != zone and not domain.endswith(f".{zone}"):
            raise ProvisioningError(f"{domain!r} is not inside hosted zone {zone!r}")

        certificate = Certificate(
            id=resource_id,
            domain_name=domain,
            subject_alternative_names=(f"*.{domain}",),
            hosted_zone=hosted_zone,
            validation_timeout=self.validation_timeout,
        )
        return self.graph.add(certificate)


def wait_for_validation(
    backend: "Backend",
    certificate: Certificate,
    *,
    poll_interval: float = 5.0,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> None:
    """
    Block until ``certificate`` is issued.

    Raises:
        CertificateValidationTimeout: validation did not finish within the
            certificate's ``validation_timeout``.
        ProvisioningError: the CA rejected the validation.
    """
    deadline = clock() + certificate.validation_timeout
    while True:
        status = backend.certificate_status(certificate)
        if status == CertificateStatus.ISSUED:
            logger.info("certificate_issued", domain=certificate.domain_name)
            return
        if status == CertificateStatus.FAILED:
            raise ProvisioningError(f"Certificate validation failed for {certificate.domain_name!r}")

        remaining = deadline - clock()
        if remaining <= 0:
            raise CertificateValidationTimeout(
                certificate.domain_name, certificate.validation_timeout
            )
        logger.debug(
            "certificate_pending_validation",
            domain=certificate.domain_name,
            remaining_seconds=round(remaining, 1),
        )
        sleep(min(poll_interval, remaining))
