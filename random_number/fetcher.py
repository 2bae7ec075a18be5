from logging import getLogger
from typing import Any, Dict, Optional

import httpx

from .edge import EdgeCapability
from .errors import DecodeError, InvalidUrl, TransportError
from .models import AccessToken, ServiceHandle


LOGGER = getLogger(__name__)

RANDOM_NUMBER_ENDPOINT = '/randomNumber'


def endpoint_url(address: str, base_path: str, endpoint: str) -> str:
    """Join service address, base path, & endpoint with single slashes."""
    parts = [part.strip('/') for part in (base_path, endpoint)]
    path = '/'.join(part for part in parts if part)

    return f'{address.rstrip("/")}/{path}'


class ValueFetcher:
    """Request a random number from a deployed service."""

    # pylint: disable=too-few-public-methods

    _edge: EdgeCapability
    _client: httpx.AsyncClient
    endpoint: str
    timeout: Optional[float]

    def __init__(
        self,
        edge: EdgeCapability,
        client: httpx.AsyncClient,
        endpoint: str = RANDOM_NUMBER_ENDPOINT,
        timeout: Optional[float] = None,
    ) -> None:
        self._edge = edge
        self._client = client
        self.endpoint = endpoint
        self.timeout = timeout

    def _url(self, handle: ServiceHandle) -> httpx.URL:
        raw = endpoint_url(
            self._edge.service_address(), handle.base_path, self.endpoint)

        try:
            url = httpx.URL(raw)
        except httpx.InvalidURL as err:
            raise InvalidUrl(f'Invalid endpoint URL {raw}', cause=err) \
                from err

        if url.scheme not in ('http', 'https') or not url.host:
            raise InvalidUrl(f'Invalid endpoint URL {raw}')

        return url

    async def fetch(
        self,
        handle: ServiceHandle,
        token: Optional[AccessToken] = None
    ) -> int:
        """GET the endpoint once & decode the body as an integer.

        Raises InvalidUrl, TransportError on network failure or an error
        status, or DecodeError when the body isn't a JSON integer.
        """
        url = self._url(handle)
        kwargs: Dict[str, Any] = {}

        if token is not None:
            kwargs['headers'] = {'Authorization': f'Bearer {token.value}'}
        if self.timeout is not None:
            kwargs['timeout'] = self.timeout

        LOGGER.debug(f'GET {url}')

        try:
            response = await self._client.get(url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPError as err:
            LOGGER.error(f'Request to {url} failed: {err}')
            raise TransportError(cause=err) from err

        try:
            value = response.json()
        except ValueError as err:
            raise DecodeError(
                f'Body is not JSON: {response.text!r}', cause=err) from err

        # bool is an int subclass but `true` isn't a number
        if not isinstance(value, int) or isinstance(value, bool):
            raise DecodeError(f'Body is not an integer: {response.text!r}')

        LOGGER.info(f'Got {value}')

        return value
