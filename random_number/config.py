"""Application settings, read from the environment."""

import os
from pathlib import Path
import shlex
from typing import List, Optional

# pylint thinks BaseModel doesn't exist in pydantic
# ignoring it since MyPy's able to parse it
from pydantic import (  # pylint: disable=no-name-in-module
    BaseModel, Field, ValidationError)

from .models import (
    DeployPolicy,
    PendingFetchPolicy,
    ServiceDescriptor,
    TokenCachePolicy,
)


RANDOM_NUMBER_SERVICE = ServiceDescriptor(
    image_name='randomnumber-v1',
    container_name='randomnumber-v1',
    base_path='/randomnumber/v1',
    env_variables={})


class RuntimeSettings(BaseModel):
    """Where the edge runtime lives & how to reach its HTTP API."""

    # BaseModel is essentially a dataclass, no public methods needed
    # pylint: disable=too-few-public-methods

    url: str = 'http://localhost:8083'
    # command used to launch the runtime when it isn't already up
    command: Optional[List[str]] = None
    health_path: str = '/healthcheck'
    token_path: str = '/mID/v1/oauth/token'
    images_path: str = '/mcm/v1/images'
    containers_path: str = '/mcm/v1/containers'
    startup_checks: int = 10
    startup_check_delay: float = 0.5


class Settings(BaseModel):
    """Everything needed to build & run the bootstrap workflow."""

    # pylint: disable=too-few-public-methods

    runtime: RuntimeSettings = RuntimeSettings()
    license_path: Path = Path('Developer-mimOE-License')
    id_token_path: Path = Path('Developer-ID-Token')
    artifact_path: Path = Path('randomnumber_v1.tar')
    service: ServiceDescriptor = RANDOM_NUMBER_SERVICE
    endpoint: str = '/randomNumber'

    token_cache_policy: TokenCachePolicy = TokenCachePolicy.CACHE_UNTIL_EXPIRY
    # seconds before reported expiry at which a cached token is replaced
    token_expiry_leeway: float = 30
    deploy_policy: DeployPolicy = DeployPolicy.DEPLOY
    pending_fetch_policy: PendingFetchPolicy = PendingFetchPolicy.REJECT
    attach_token_on_fetch: bool = False
    # None leaves the transport's default timeout in place
    fetch_timeout: Optional[float] = None

    retry_attempts: int = Field(default=1, ge=1)
    retry_delay: float = 1
    retry_backoff: float = 2

    @classmethod
    def from_env(cls) -> 'Settings':
        """
        Build settings from environment variables, or use defaults.

        Raises ValueError when a variable holds a value that doesn't
        validate.
        """
        command = os.getenv('EDGE_RUNTIME_COMMAND')
        fetch_timeout = os.getenv('FETCH_TIMEOUT')

        try:
            return cls(
                runtime=RuntimeSettings(
                    url=os.getenv('EDGE_RUNTIME_URL', 'http://localhost:8083'),
                    command=shlex.split(command) if command else None),
                license_path=os.getenv(
                    'EDGE_LICENSE_PATH', 'Developer-mimOE-License'),
                id_token_path=os.getenv(
                    'EDGE_ID_TOKEN_PATH', 'Developer-ID-Token'),
                artifact_path=os.getenv(
                    'EDGE_ARTIFACT_PATH', 'randomnumber_v1.tar'),
                token_cache_policy=os.getenv(
                    'TOKEN_CACHE_POLICY', 'cache_until_expiry'),
                deploy_policy=os.getenv('DEPLOY_POLICY', 'deploy'),
                pending_fetch_policy=os.getenv(
                    'PENDING_FETCH_POLICY', 'reject'),
                attach_token_on_fetch=os.getenv(
                    'ATTACH_TOKEN_ON_FETCH', 'false'),
                fetch_timeout=fetch_timeout if fetch_timeout else None,
                retry_attempts=os.getenv('RETRY_ATTEMPTS', '1'),
                retry_delay=os.getenv('RETRY_DELAY', '1'),
                retry_backoff=os.getenv('RETRY_BACKOFF', '2'))
        except ValidationError as err:
            raise ValueError('Invalid environment configuration.') from err
