"""Sequence the workflow stages & track where the application is in it.

    IDLE -> ENGINE_STARTING -> AUTHENTICATING -> DEPLOYING -> READY
    READY -> FETCHING -> READY  (once per fetch)

Any failure while bootstrapping moves to the terminal FAILED state with
the stage it failed in & the error that stopped it.
"""

import asyncio
from enum import Enum
from logging import getLogger
from typing import Awaitable, Callable, List, NamedTuple, Optional, TypeVar

from .authenticator import Authenticator
from .deployer import Deployer
from .errors import (
    DeployFailed,
    EngineFailure,
    ExchangeFailed,
    NotReady,
)
from .fetcher import ValueFetcher
from .models import PendingFetchPolicy, ServiceHandle
from .retry import with_retries
from .runtime import RuntimeInitializer


LOGGER = getLogger(__name__)

# failures worth another attempt when retries are enabled
TRANSIENT_ERRORS = (EngineFailure, ExchangeFailed, DeployFailed)

# pylint: disable=invalid-name
T = TypeVar('T')


class State(Enum):
    """Workflow states."""

    IDLE = 'idle'
    ENGINE_STARTING = 'engine_starting'
    AUTHENTICATING = 'authenticating'
    DEPLOYING = 'deploying'
    READY = 'ready'
    FETCHING = 'fetching'
    FAILED = 'failed'


class Failure(NamedTuple):
    """The stage bootstrap stopped in & why."""

    stage: State
    cause: BaseException


class Orchestrator:
    """Run bootstrap once, then fetch values on request."""

    state: State
    failure: Optional[Failure]
    handle: Optional[ServiceHandle]
    transitions: List[State]
    pending_fetch_policy: PendingFetchPolicy
    attach_token_on_fetch: bool

    def __init__(
        self,
        runtime: RuntimeInitializer,
        authenticator: Authenticator,
        deployer: Deployer,
        fetcher: ValueFetcher,
        pending_fetch_policy: PendingFetchPolicy = PendingFetchPolicy.REJECT,
        attach_token_on_fetch: bool = False,
        retry_attempts: int = 1,
        retry_delay: float = 1,
        retry_backoff: float = 2,
    ) -> None:
        # pylint: disable=too-many-arguments
        self._runtime = runtime
        self._authenticator = authenticator
        self._deployer = deployer
        self._fetcher = fetcher
        self._retry_attempts = retry_attempts
        self._retry_delay = retry_delay
        self._retry_backoff = retry_backoff
        self._fetch_lock = asyncio.Lock()
        self._settled = asyncio.Event()

        self.state = State.IDLE
        self.failure = None
        self.handle = None
        self.transitions = [State.IDLE]
        self.pending_fetch_policy = pending_fetch_policy
        self.attach_token_on_fetch = attach_token_on_fetch

    def _transition(self, state: State) -> None:
        LOGGER.info(f'{self.state.value} -> {state.value}')
        self.state = state
        self.transitions.append(state)

    async def _retry(self, operation: Callable[[], Awaitable[T]]) -> T:
        return await with_retries(
            operation,
            retry_on=TRANSIENT_ERRORS,
            attempts=self._retry_attempts,
            delay=self._retry_delay,
            backoff=self._retry_backoff)

    async def bootstrap(self) -> ServiceHandle:
        """Start the runtime, authenticate, & deploy, in that order.

        May only be called once. Stops at the first failing stage, moving
        to FAILED & raising that stage's error.
        """
        if self.state is not State.IDLE:
            raise RuntimeError(
                f'Bootstrap already run, current state: {self.state.value}')

        try:
            self._transition(State.ENGINE_STARTING)
            await self._retry(self._runtime.start)

            self._transition(State.AUTHENTICATING)
            token = await self._retry(self._authenticator.authenticate)

            self._transition(State.DEPLOYING)
            handle = await self._retry(lambda: self._deployer.run(token))
        # cancellation included so queued fetches don't wait forever
        except BaseException as err:
            self.failure = Failure(self.state, err)
            self._transition(State.FAILED)
            LOGGER.error(f'Bootstrap failed in {self.failure.stage.value}: '
                         f'{err!r}')
            self._settled.set()
            raise

        self.handle = handle
        self._transition(State.READY)
        self._settled.set()

        return handle

    async def _wait_for_handle(self) -> ServiceHandle:
        if self.handle is not None:
            return self.handle

        if self.state is State.FAILED \
                or self.pending_fetch_policy is PendingFetchPolicy.REJECT:
            raise NotReady(
                f'Cannot fetch while {self.state.value}, no service handle')

        LOGGER.info('Fetch queued until bootstrap completes')
        await self._settled.wait()

        if self.handle is None:
            raise NotReady('Bootstrap failed, no service handle')

        return self.handle

    async def fetch(self) -> int:
        """Fetch one value from the service.

        Fetches run one at a time. A failed fetch leaves the orchestrator
        READY & raises the FetchError (or AuthError when a token is
        attached to each fetch).
        """
        handle = await self._wait_for_handle()

        async with self._fetch_lock:
            self._transition(State.FETCHING)

            try:
                token = await self._authenticator.token() \
                    if self.attach_token_on_fetch else None
                return await self._fetcher.fetch(handle, token)
            finally:
                self._transition(State.READY)
