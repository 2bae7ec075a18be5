"""The edge capability: runtime startup, token exchange, & deployment.

Stages only ever talk to the runtime through the `EdgeCapability`
protocol. `HttpEdgeClient` is the implementation used by the application,
talking to the runtime's local HTTP API; tests substitute a fake.
"""

import asyncio
from logging import getLogger
import os
from pathlib import Path
from typing import Any, Awaitable, Dict, List, Optional, Protocol

import httpx
from pydantic import ValidationError  # pylint: disable=no-name-in-module

from .config import RuntimeSettings
from .errors import EdgeClientError
from .models import (
    AccessToken,
    Authorization,
    ServiceDescriptor,
    ServiceHandle,
)


LOGGER = getLogger(__name__)

BASE_PATH_ENV = 'MCM.BASE_API_PATH'


class EdgeCapability(Protocol):
    """Protocol specifying the operations provided by an edge runtime.

    Every coroutine raises EdgeClientError when the runtime reports a
    failure.
    """

    def start_environment(self, license: str) -> Awaitable[None]:
        """Bring up the runtime using the given license."""
        ...

    def exchange_token(self, developer_id_token: str) -> Awaitable[Authorization]:
        """Exchange a developer ID token for an access token."""
        ...

    def provision_service(
        self,
        token: AccessToken,
        descriptor: ServiceDescriptor,
        artifact_path: Path,
    ) -> Awaitable[ServiceHandle]:
        """Deploy the packaged artifact as the described service."""
        ...

    def locate_service(
        self,
        token: AccessToken,
        container_name: str,
    ) -> Awaitable[Optional[ServiceHandle]]:
        """Find a running service by container name, None if not running."""
        ...

    def service_address(self) -> str:
        """Return the base address services are reached at."""
        ...


def _bearer(token: AccessToken) -> Dict[str, str]:
    return {'Authorization': f'Bearer {token.value}'}


def _handle_from_container(
    container: Dict[str, Any],
    fallback_base_path: Optional[str] = None
) -> Optional[ServiceHandle]:
    env = container.get('env') or {}
    if not isinstance(env, dict):
        raise EdgeClientError('Container env is not a JSON object')

    base_path = container.get('basePath') or env.get(BASE_PATH_ENV) \
        or fallback_base_path

    if not container.get('name') or not base_path:
        return None

    try:
        return ServiceHandle(
            container_name=container['name'], base_path=base_path)
    except ValidationError as err:
        raise EdgeClientError('Container response is malformed') from err


class HttpEdgeClient:
    """Edge capability backed by the runtime's local HTTP API.

    Call `connect` before use & `disconnect` when done; a runtime process
    launched by `start_environment` is stopped on disconnect.
    """

    settings: RuntimeSettings
    _client: Optional[httpx.AsyncClient]
    _transport: Optional[httpx.AsyncBaseTransport]
    _process: Optional[asyncio.subprocess.Process]

    def __init__(
        self,
        settings: RuntimeSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> None:
        self.settings = settings
        self._transport = transport
        self._client = None
        self._process = None

    async def connect(self) -> None:
        """Open the HTTP client used for every runtime call."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.settings.url,
                transport=self._transport)

    async def disconnect(self) -> None:
        """Close the HTTP client & stop a runtime launched by this client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

        if self._process is not None and self._process.returncode is None:
            LOGGER.info('Stopping edge runtime process...')
            self._process.terminate()
            await self._process.wait()

        self._process = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise EdgeClientError('HttpEdgeClient is not connected.')

        return self._client

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send a request to the runtime & return the decoded JSON body."""
        try:
            response = await self.client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPError as err:
            raise EdgeClientError(
                f'{method} {path} failed: {err}') from err

        if not response.content:
            return None

        try:
            return response.json()
        except ValueError as err:
            raise EdgeClientError(
                f'{method} {path} returned invalid JSON') from err

    async def _is_healthy(self) -> bool:
        try:
            response = await self.client.get(self.settings.health_path)
        except httpx.HTTPError as err:
            LOGGER.debug(f'Health check failed: {err}')
            return False

        return response.is_success

    def service_address(self) -> str:
        return self.settings.url.rstrip('/')

    async def start_environment(self, license: str) -> None:
        """Start the runtime unless it is already answering health checks.

        Launches `settings.command` with the license in `EDGE_LICENSE`,
        then polls health until it succeeds, the process exits, or the
        configured number of checks runs out.
        """
        # pylint: disable=redefined-builtin
        if await self._is_healthy():
            LOGGER.info('Edge runtime already running')
            return

        if not self.settings.command:
            raise EdgeClientError(
                f'Edge runtime is not running at {self.settings.url} & no '
                'launch command is configured.')

        LOGGER.info(f'Launching edge runtime: {self.settings.command[0]}')

        try:
            self._process = await asyncio.create_subprocess_exec(
                *self.settings.command,
                env={**os.environ, 'EDGE_LICENSE': license})
        except OSError as err:
            raise EdgeClientError(
                f'Unable to launch edge runtime: {err}') from err

        for _ in range(self.settings.startup_checks):
            if self._process.returncode is not None:
                raise EdgeClientError(
                    'Edge runtime exited during startup with code '
                    f'{self._process.returncode}')

            if await self._is_healthy():
                LOGGER.info('Edge runtime started')
                return

            await asyncio.sleep(self.settings.startup_check_delay)

        raise EdgeClientError(
            'Edge runtime did not become healthy after '
            f'{self.settings.startup_checks} checks')

    async def exchange_token(self, developer_id_token: str) -> Authorization:
        body = await self._request(
            'POST',
            self.settings.token_path,
            data={
                'grant_type': 'id_token_signin',
                'id_token': developer_id_token,
            })

        if not isinstance(body, dict):
            raise EdgeClientError('Token response is not a JSON object')

        try:
            return Authorization(
                token=body.get('access_token'),
                expires_in=body.get('expires_in'))
        except ValidationError as err:
            raise EdgeClientError('Token response is malformed') from err

    async def provision_service(
        self,
        token: AccessToken,
        descriptor: ServiceDescriptor,
        artifact_path: Path,
    ) -> ServiceHandle:
        """Upload the image archive, then start a container from it."""
        try:
            image = artifact_path.read_bytes()
        except OSError as err:
            raise EdgeClientError(
                f'Unable to read artifact at {artifact_path}') from err

        LOGGER.info(f'Uploading image {descriptor.image_name}...')
        await self._request(
            'POST',
            self.settings.images_path,
            headers=_bearer(token),
            files={'image': (artifact_path.name, image, 'application/x-tar')})

        LOGGER.info(f'Starting container {descriptor.container_name}...')
        container = await self._request(
            'POST',
            self.settings.containers_path,
            headers=_bearer(token),
            json={
                'name': descriptor.container_name,
                'image': descriptor.image_name,
                'env': {
                    **descriptor.env_variables,
                    BASE_PATH_ENV: descriptor.base_path,
                },
            })

        if not isinstance(container, dict):
            container = {}

        handle = _handle_from_container(
            {'name': descriptor.container_name, **container},
            fallback_base_path=descriptor.base_path)

        if handle is None:
            raise EdgeClientError('Container response has no name')

        return handle

    async def locate_service(
        self,
        token: AccessToken,
        container_name: str,
    ) -> Optional[ServiceHandle]:
        body = await self._request(
            'GET',
            self.settings.containers_path,
            headers=_bearer(token))

        containers: List[Dict[str, Any]] = []

        if isinstance(body, dict):
            containers = body.get('data') or []
        elif isinstance(body, list):
            containers = body

        if not isinstance(containers, list):
            raise EdgeClientError('Container list is not a JSON array')

        for container in containers:
            if isinstance(container, dict) \
                    and container.get('name') == container_name:
                return _handle_from_container(container)

        return None
