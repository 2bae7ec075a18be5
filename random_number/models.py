"""Data types passed between workflow stages."""

from enum import Enum
import time
from typing import Dict, Optional

# pylint thinks BaseModel doesn't exist in pydantic
# ignoring it since MyPy's able to parse it
from pydantic import BaseModel, ConfigDict  # pylint: disable=no-name-in-module


class TokenCachePolicy(str, Enum):
    """How the Authenticator reuses access tokens."""

    CACHE_UNTIL_EXPIRY = 'cache_until_expiry'
    REFETCH_EVERY_CALL = 'refetch_every_call'


class DeployPolicy(str, Enum):
    """Whether bootstrap deploys the service or looks up a running one."""

    DEPLOY = 'deploy'
    DISCOVER = 'discover'


class PendingFetchPolicy(str, Enum):
    """What to do with a fetch requested before bootstrap completes."""

    REJECT = 'reject'
    QUEUE = 'queue'


class ServiceDescriptor(BaseModel):
    """Static description of the service to deploy."""

    # BaseModel is essentially a dataclass, no public methods needed
    # pylint: disable=too-few-public-methods

    model_config = ConfigDict(frozen=True)

    image_name: str
    container_name: str
    base_path: str
    env_variables: Dict[str, str] = {}


class ServiceHandle(BaseModel):
    """Reachability information for a deployed service."""

    # pylint: disable=too-few-public-methods

    model_config = ConfigDict(frozen=True)

    container_name: str
    base_path: str


class Authorization(BaseModel):
    """Response of a developer token exchange."""

    # pylint: disable=too-few-public-methods

    token: Optional[str] = None
    # seconds the token stays valid, when the issuer reports it
    expires_in: Optional[float] = None


class AccessToken(BaseModel):
    """A short-lived token used to authorize calls to the runtime."""

    model_config = ConfigDict(frozen=True)

    value: str
    # time.monotonic() deadline, None when the issuer gave no lifetime
    expires_at: Optional[float] = None

    @classmethod
    def from_authorization(
        cls,
        authorization: Authorization,
        now: Optional[float] = None
    ) -> 'AccessToken':
        """Build a token, turning a relative lifetime into a deadline."""
        if authorization.token is None:
            raise ValueError('Authorization has no token.')

        expires_at: Optional[float] = None

        if authorization.expires_in is not None:
            if now is None:
                now = time.monotonic()
            expires_at = now + authorization.expires_in

        return cls(value=authorization.token, expires_at=expires_at)

    def is_expired(self, now: Optional[float] = None, leeway: float = 0) -> bool:
        """Check if token is past (or within `leeway` seconds of) expiry."""
        if self.expires_at is None:
            return False

        if now is None:
            now = time.monotonic()

        return now + leeway >= self.expires_at

    def __str__(self) -> str:
        return self.value
