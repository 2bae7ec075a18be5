"""Failure taxonomy for the bootstrap-and-fetch workflow.

Every stage raises a member of one closed family below. Errors caused by
an underlying capability or transport failure carry it as `cause` and are
raised with `raise ... from cause` so tracebacks keep the chain.

    BootstrapError
    ├── StartupError       MissingLicense, EngineFailure
    ├── AuthError          MissingCredential, ExchangeFailed, NoTokenInResponse
    ├── DeployError        ArtifactNotFound, DeployFailed, ServiceNotFound
    └── FetchError         InvalidUrl, TransportError, DecodeError

`NotReady` is raised by the orchestrator, not by a stage.
"""

from typing import Optional


class EdgeClientError(Exception):
    """A failure reported by the edge capability."""


class BootstrapError(Exception):
    """Base class for every stage failure."""

    cause: Optional[BaseException]

    def __init__(
        self,
        message: str = '',
        cause: Optional[BaseException] = None
    ) -> None:
        self.cause = cause
        if not message:
            message = (self.__doc__ or self.__class__.__name__).rstrip('.')
        if cause is not None:
            message = f'{message}: {cause}'
        super().__init__(message)


#
# STARTUP
#

class StartupError(BootstrapError):
    """Runtime could not be started."""


class MissingLicense(StartupError):
    """License file is missing, unreadable, or empty."""


class EngineFailure(StartupError):
    """Runtime failed to start."""


#
# AUTHENTICATION
#

class AuthError(BootstrapError):
    """Access token could not be obtained."""


class MissingCredential(AuthError):
    """Developer ID token file is missing, unreadable, or empty."""


class ExchangeFailed(AuthError):
    """Token exchange was rejected."""


class NoTokenInResponse(AuthError):
    """Token exchange succeeded without returning a token."""


#
# DEPLOYMENT
#

class DeployError(BootstrapError):
    """Service could not be deployed or located."""


class ArtifactNotFound(DeployError):
    """Packaged service artifact does not exist."""


class DeployFailed(DeployError):
    """Service deployment was rejected."""


class ServiceNotFound(DeployError):
    """No running service has the configured container name."""


#
# FETCH
#

class FetchError(BootstrapError):
    """Value could not be fetched from the service."""


class InvalidUrl(FetchError):
    """Endpoint URL is not well formed."""


class TransportError(FetchError):
    """Request to the service failed."""


class DecodeError(FetchError):
    """Response body is not an integer."""


class NotReady(Exception):
    """Fetch requested before a service handle exists."""
