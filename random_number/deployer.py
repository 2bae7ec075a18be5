from logging import getLogger
from pathlib import Path

from .edge import EdgeCapability
from .errors import (
    ArtifactNotFound,
    DeployFailed,
    EdgeClientError,
    ServiceNotFound,
)
from .models import AccessToken, DeployPolicy, ServiceDescriptor, ServiceHandle


LOGGER = getLogger(__name__)


class Deployer:
    """Get a handle on the described service, by deploying or discovering it.

    `deploy` always provisions the packaged artifact; `discover` only looks
    up a service that is already running. `run` picks one of the two based
    on the configured policy.
    """

    _edge: EdgeCapability
    descriptor: ServiceDescriptor
    artifact_path: Path
    policy: DeployPolicy

    def __init__(
        self,
        edge: EdgeCapability,
        descriptor: ServiceDescriptor,
        artifact_path: Path,
        policy: DeployPolicy = DeployPolicy.DEPLOY,
    ) -> None:
        self._edge = edge
        self.descriptor = descriptor
        self.artifact_path = artifact_path
        self.policy = policy

    async def deploy(self, token: AccessToken) -> ServiceHandle:
        """Deploy the service from the packaged artifact."""
        if not self.artifact_path.is_file():
            raise ArtifactNotFound(f'No artifact at {self.artifact_path}')

        try:
            handle = await self._edge.provision_service(
                token, self.descriptor, self.artifact_path)
        except EdgeClientError as err:
            LOGGER.error(
                f'Deploying {self.descriptor.container_name} failed: {err}')
            raise DeployFailed(cause=err) from err

        LOGGER.info(f'Deployed {handle.container_name} at {handle.base_path}')

        return handle

    async def discover(self, token: AccessToken) -> ServiceHandle:
        """Find the already running service by its container name."""
        name = self.descriptor.container_name

        try:
            handle = await self._edge.locate_service(token, name)
        except EdgeClientError as err:
            LOGGER.error(f'Looking up {name} failed: {err}')
            raise DeployFailed(cause=err) from err

        if handle is None:
            raise ServiceNotFound(f'No running service named {name}')

        LOGGER.info(f'Found {handle.container_name} at {handle.base_path}')

        return handle

    async def run(self, token: AccessToken) -> ServiceHandle:
        if self.policy is DeployPolicy.DISCOVER:
            return await self.discover(token)

        return await self.deploy(token)
