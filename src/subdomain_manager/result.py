"""
Tagged results and the error taxonomy shared by the clients and the workflow.

Clients and the provisioning workflow never raise for expected failures.
Every operation returns either ``Ok(value)`` or ``Err(error)`` where ``error``
is one of the ``ProvisioningError`` subclasses below.

Usage:
    result = backend.create_record('A', 'blog.example.com', '10.0.0.1')
    if not result.ok:
        logger.error(f"DNS create failed: {result.message}")
    record_id = result.value
"""
from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar, Union

T = TypeVar('T')


class ProvisioningError(Exception):
    """Base class for all errors surfaced by the subdomain manager."""

    code = 'error'

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ProvisioningError):
    """Missing or malformed input. Raised before any side effect."""

    code = 'validation_error'


class NotFoundError(ProvisioningError):
    """Referenced Domain or Subdomain does not exist."""

    code = 'not_found'


class ConflictError(ProvisioningError):
    """Full hostname (or domain name) already registered."""

    code = 'conflict'


class ExternalServiceError(ProvisioningError):
    """A DNS provider or proxy manager call failed.

    Attributes:
        system: 'dns' or 'proxy_manager'
        status_code: HTTP status of the failed call, if one was received
    """

    code = 'external_service_error'

    def __init__(self, system: str, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.system = system
        self.status_code = status_code


class ConfigurationError(ProvisioningError):
    """Required configuration is missing. Fatal at construction time."""

    code = 'configuration_error'


class PersistenceError(ProvisioningError):
    """The local database rejected a write."""

    code = 'persistence_error'


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful outcome carrying a value."""

    value: T = None

    @property
    def ok(self) -> bool:
        return True

    @property
    def error(self) -> None:
        return None

    @property
    def message(self) -> str:
        return ''


@dataclass(frozen=True)
class Err:
    """Failed outcome carrying a typed error."""

    error: ProvisioningError

    @property
    def ok(self) -> bool:
        return False

    @property
    def value(self) -> None:
        return None

    @property
    def message(self) -> str:
        return self.error.message


Result = Union[Ok[Any], Err]
