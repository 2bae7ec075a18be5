from logging import getLogger
from pathlib import Path

from .credentials import read_secret
from .edge import EdgeCapability
from .errors import EdgeClientError, EngineFailure, MissingLicense


LOGGER = getLogger(__name__)


class RuntimeInitializer:
    """Start the edge runtime with the locally stored license."""

    # pylint: disable=too-few-public-methods

    _edge: EdgeCapability
    license_path: Path

    def __init__(self, edge: EdgeCapability, license_path: Path) -> None:
        self._edge = edge
        self.license_path = license_path

    async def start(self) -> None:
        """Start the runtime.

        Raises MissingLicense before touching the runtime when the license
        can't be read, or EngineFailure when the runtime fails to start.
        """
        license_text = read_secret(self.license_path)

        if license_text is None:
            raise MissingLicense(f'No license at {self.license_path}')

        try:
            await self._edge.start_environment(license_text)
        except EdgeClientError as err:
            LOGGER.error(f'Edge runtime failed to start: {err}')
            raise EngineFailure(cause=err) from err

        LOGGER.info('Edge runtime ready')
