"""
Tests for certificate declaration and DNS validation polling.
"""

from unittest.mock import MagicMock

import pytest

from provisioning import ResourceGraph
from provisioning.certificate import CertificateIssuer, wait_for_validation
from provisioning.dns import lookup_hosted_zone
from provisioning.errors import CertificateValidationTimeout, ProvisioningError
from provisioning.resources import Certificate, CertificateStatus, HostedZone


@pytest.fixture
def zone(graph: ResourceGraph) -> HostedZone:
    return lookup_hosted_zone(graph, "example.com")


@pytest.fixture
def certificate(graph: ResourceGraph, zone: HostedZone) -> Certificate:
    return CertificateIssuer(graph, validation_timeout=20).issue("example.com", zone)


class TestIssue:
    def test_covers_domain_and_wildcard(self, certificate: Certificate, zone: HostedZone) -> None:
        assert certificate.domain_name == "example.com"
        assert certificate.subject_alternative_names == ("*.example.com",)
        assert certificate.validation == "DNS"
        assert certificate.hosted_zone is zone

    def test_depends_on_zone(self, graph: ResourceGraph, certificate: Certificate, zone: HostedZone) -> None:
        assert graph.dependencies_of(certificate) == [zone]

    def test_subdomain_of_zone(self, graph: ResourceGraph, zone: HostedZone) -> None:
        certificate = CertificateIssuer(graph).issue("api.example.com", zone, resource_id="ApiCert")

        assert certificate.subject_alternative_names == ("*.api.example.com",)

    def test_domain_outside_zone(self, graph: ResourceGraph, zone: HostedZone) -> None:
        with pytest.raises(ProvisioningError, match="not inside hosted zone"):
            CertificateIssuer(graph).issue("example.org", zone)

    def test_lookalike_domain_outside_zone(self, graph: ResourceGraph, zone: HostedZone) -> None:
        with pytest.raises(ProvisioningError):
            CertificateIssuer(graph).issue("badexample.com", zone)

    def test_timeout_must_be_positive(self, graph: ResourceGraph) -> None:
        with pytest.raises(ValueError):
            CertificateIssuer(graph, validation_timeout=0)


class TestWaitForValidation:
    def test_returns_once_issued(self, certificate: Certificate, clock) -> None:
        backend = MagicMock()
        backend.certificate_status.side_effect = [
            CertificateStatus.PENDING_VALIDATION,
            CertificateStatus.PENDING_VALIDATION,
            CertificateStatus.ISSUED,
        ]

        wait_for_validation(backend, certificate, poll_interval=5, sleep=clock.sleep, clock=clock)

        assert backend.certificate_status.call_count == 3
        assert clock.sleeps == [5, 5]

    def test_times_out(self, certificate: Certificate, clock) -> None:
        backend = MagicMock()
        backend.certificate_status.return_value = CertificateStatus.PENDING_VALIDATION

        with pytest.raises(CertificateValidationTimeout) as exc_info:
            wait_for_validation(backend, certificate, poll_interval=7, sleep=clock.sleep, clock=clock)

        assert exc_info.value.domain == "example.com"
        assert exc_info.value.timeout == 20
        # The last sleep is cut short so the deadline is not overshot.
        assert clock.sleeps == [7, 7, 6]
        assert clock.now == 20

    def test_failed_validation(self, certificate: Certificate, clock) -> None:
        backend = MagicMock()
        backend.certificate_status.return_value = CertificateStatus.FAILED

        with pytest.raises(ProvisioningError, match="validation failed"):
            wait_for_validation(backend, certificate, sleep=clock.sleep, clock=clock)
        assert clock.sleeps == []
