from logging import getLogger
from pathlib import Path
import time
from typing import Callable, Optional

from .credentials import read_secret
from .edge import EdgeCapability
from .errors import (
    EdgeClientError,
    ExchangeFailed,
    MissingCredential,
    NoTokenInResponse,
)
from .models import AccessToken, TokenCachePolicy


LOGGER = getLogger(__name__)


class Authenticator:
    """Exchange the developer ID token for runtime access tokens."""

    _edge: EdgeCapability
    _clock: Callable[[], float]
    _cached: Optional[AccessToken]
    credential_path: Path
    policy: TokenCachePolicy
    expiry_leeway: float

    def __init__(
        self,
        edge: EdgeCapability,
        credential_path: Path,
        policy: TokenCachePolicy = TokenCachePolicy.CACHE_UNTIL_EXPIRY,
        expiry_leeway: float = 0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._edge = edge
        self._clock = clock
        self._cached = None
        self.credential_path = credential_path
        self.policy = policy
        self.expiry_leeway = expiry_leeway

    async def authenticate(self) -> AccessToken:
        """Get a new access token from the runtime.

        Raises MissingCredential without calling the runtime when the
        developer ID token can't be read, ExchangeFailed when the runtime
        rejects it, or NoTokenInResponse when the runtime answers without
        a token.
        """
        credential = read_secret(self.credential_path)

        if credential is None:
            raise MissingCredential(
                f'No developer ID token at {self.credential_path}')

        try:
            authorization = await self._edge.exchange_token(credential)
        except EdgeClientError as err:
            LOGGER.error(f'Token exchange failed: {err}')
            raise ExchangeFailed(cause=err) from err

        if not authorization.token:
            raise NoTokenInResponse()

        token = AccessToken.from_authorization(
            authorization, now=self._clock())
        self._cached = token
        LOGGER.info('Access token acquired')

        return token

    async def token(self) -> AccessToken:
        """Get an access token according to the cache policy."""
        if self.policy is TokenCachePolicy.CACHE_UNTIL_EXPIRY \
                and self._cached is not None \
                and not self._cached.is_expired(
                    now=self._clock(), leeway=self.expiry_leeway):
            return self._cached

        return await self.authenticate()
