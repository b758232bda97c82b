"""Provisioning exceptions.

None of these are retried: every one of them requires an operator to fix the
input (or create a prerequisite out-of-band) and re-run.
"""


class ProvisioningError(Exception):
    """Base exception for provisioning errors."""

    pass


class ConfigurationError(ProvisioningError):
    """Raised when deployment configuration is missing or invalid."""

    pass


class SubnetAllocationError(ProvisioningError):
    """Raised when the requested subnet groups cannot be placed in the network."""

    pass


class DependencyError(ProvisioningError):
    """Raised when the resource graph references unknown resources or forms a cycle."""

    pass


class PlaintextSecretError(ProvisioningError):
    """Raised when secret material would end up in plaintext configuration."""

    pass


class SecretNotFoundError(ProvisioningError):
    """Raised when a secret expected to exist in the secret store is absent."""

    def __init__(self, name: str):
        super().__init__(
            f"Secret {name!r} does not exist. It must be created in the secret store "
            "before provisioning."
        )
        self.name = name


class CertificateValidationTimeout(ProvisioningError):
    """Raised when DNS validation does not complete within the allowed time."""

    def __init__(self, domain: str, timeout: float):
        super().__init__(f"Certificate for {domain!r} was not validated within {timeout:g}s")
        self.domain = domain
        self.timeout = timeout


class ProvisioningFailed(ProvisioningError):
    """
    Raised when a provisioning run stops part-way.

    Resources listed in ``created`` exist in the backend; nothing is rolled
    back automatically.
    """

    def __init__(self, failed: str, created: list[str], cause: BaseException):
        super().__init__(f"Provisioning failed at {failed!r}: {cause}")
        self.failed = failed
        self.created = created
        self.cause = cause
