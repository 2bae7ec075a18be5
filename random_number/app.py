"""Application wiring: settings -> edge client -> stages -> orchestrator."""

from logging import getLogger

import httpx

from .authenticator import Authenticator
from .config import Settings
from .console import read_presses, run_console
from .deployer import Deployer
from .edge import EdgeCapability, HttpEdgeClient
from .fetcher import ValueFetcher
from .logger import setup_logging
from .orchestrator import Orchestrator
from .runner import Runner
from .runtime import RuntimeInitializer


LOGGER = getLogger(__name__)


def build_orchestrator(
    settings: Settings,
    edge: EdgeCapability,
    client: httpx.AsyncClient,
) -> Orchestrator:
    """Build every stage around one edge capability & HTTP client."""
    authenticator = Authenticator(
        edge,
        settings.id_token_path,
        policy=settings.token_cache_policy,
        expiry_leeway=settings.token_expiry_leeway)

    return Orchestrator(
        RuntimeInitializer(edge, settings.license_path),
        authenticator,
        Deployer(
            edge,
            settings.service,
            settings.artifact_path,
            policy=settings.deploy_policy),
        ValueFetcher(
            edge,
            client,
            endpoint=settings.endpoint,
            timeout=settings.fetch_timeout),
        pending_fetch_policy=settings.pending_fetch_policy,
        attach_token_on_fetch=settings.attach_token_on_fetch,
        retry_attempts=settings.retry_attempts,
        retry_delay=settings.retry_delay,
        retry_backoff=settings.retry_backoff)


def main() -> None:
    """Run the console application until input ends or a signal arrives."""
    setup_logging()
    settings = Settings.from_env()
    LOGGER.info(f'Using edge runtime at {settings.runtime.url}')

    edge = HttpEdgeClient(settings.runtime)

    async def serve() -> None:
        async with httpx.AsyncClient() as client:
            orchestrator = build_orchestrator(settings, edge, client)
            await run_console(orchestrator, read_presses())

    runner = Runner()
    runner.register_client(edge)
    runner.run(serve)
