"""Encapsulates logic used to actually run the application.

Provided as an abstraction to keep process concerns (event loop, signals,
connecting & disconnecting clients) out of the application logic in app.py.
"""

import asyncio
from logging import getLogger
import signal
from typing import Any, Awaitable, Callable, List, Protocol


LOGGER = getLogger(__name__)


class Connectable(Protocol):
    """Protocol specifying that object has connection methods.

    Requires that an object have the following methods & signatures:

        async connect() -> None
        async disconnect() -> None
    """

    def connect(self) -> Awaitable[None]:
        """Connect to the defined i/o service."""
        ...

    def disconnect(self) -> Awaitable[None]:
        """Disconnect from the defined i/o service."""
        ...


class Runner:
    """Simple helper to handle graceful exits."""

    clients: List[Connectable]

    def __init__(self) -> None:
        signal.signal(signal.SIGINT, self._quit)
        signal.signal(signal.SIGTERM, self._quit)

        self.clients = []

    async def _connect_clients(self) -> Any:
        return await asyncio.gather(
            *[client.connect() for client in self.clients])

    async def _disconnect_clients(self) -> Any:
        return await asyncio.gather(
            *[client.disconnect() for client in self.clients])

    @staticmethod
    def _quit(signum: int, _: Any) -> None:
        """Exit the process by raising an Exception."""
        LOGGER.info(f'Exit signal received: {signum}')
        raise SystemExit(0)

    def register_client(self, client: Connectable) -> None:
        """Add client to list to be connected to when application is run."""
        self.clients.append(client)

    def run(self, main: Callable[[], Awaitable[None]]) -> None:
        """Connect registered clients, then run `main` until it returns.

        Gracefully exit using SIGINT or SIGTERM.
        """
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)

        try:
            loop.run_until_complete(self._connect_clients())
            loop.run_until_complete(main())
        except SystemExit:
            # setup graceful exit when error is raised in self._quit
            LOGGER.info('SystemExit caught, disconnecting clients...')
        finally:
            # by allowing clients to close their connections
            try:
                loop.run_until_complete(self._disconnect_clients())
            finally:
                loop.close()
