"""Console front-end: each line read is a press of "get random number"."""

import asyncio
from logging import getLogger
import sys
from typing import AsyncIterator, Callable, Optional, TextIO

from .errors import BootstrapError, NotReady
from .orchestrator import Orchestrator


LOGGER = getLogger(__name__)

TITLE = 'Random Number Generator'
PROMPT = 'Press Enter to GET RANDOM NUMBER, Ctrl+D to quit'


class RandomNumberView:
    """What the screen shows: the last number & the last error, if any."""

    value: int
    error: Optional[str]

    def __init__(self) -> None:
        self.value = 0
        self.error = None

    def show_value(self, value: int) -> None:
        self.value = value
        self.error = None

    def show_error(self, error: BaseException) -> None:
        self.error = f'{type(error).__name__}: {error}'

    def render(self) -> str:
        if self.error is not None:
            return f'Got {self.value} (last request failed, {self.error})'

        return f'Got {self.value}'


async def read_presses(stream: TextIO = sys.stdin) -> AsyncIterator[str]:
    """Yield each line read from `stream` without blocking the event loop."""
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader()
    await loop.connect_read_pipe(
        lambda: asyncio.StreamReaderProtocol(reader), stream)

    while True:
        line = await reader.readline()
        if not line:
            return
        yield line.decode().strip()


async def press(
    orchestrator: Orchestrator,
    view: RandomNumberView
) -> str:
    """Handle one button press, return the text to display."""
    try:
        view.show_value(await orchestrator.fetch())
    except (BootstrapError, NotReady) as err:
        LOGGER.info(f'Fetch failed: {err}')
        view.show_error(err)
    except Exception as err:  # pylint: disable=broad-except
        LOGGER.exception('Unexpected error while fetching')
        view.show_error(err)

    return view.render()


def _report_bootstrap(
    view: RandomNumberView,
    out: Callable[[str], None]
) -> Callable[['asyncio.Task[object]'], None]:
    def done(task: 'asyncio.Task[object]') -> None:
        if task.cancelled():
            return

        err = task.exception()
        if err is not None:
            view.show_error(err)
            out(view.render())

    return done


async def run_console(
    orchestrator: Orchestrator,
    presses: AsyncIterator[str],
    view: Optional[RandomNumberView] = None,
    out: Callable[[str], None] = print,
) -> RandomNumberView:
    """Bootstrap in the background while handling presses until input ends."""
    if view is None:
        view = RandomNumberView()

    out(TITLE)
    out(PROMPT)
    out(view.render())

    bootstrap = asyncio.create_task(orchestrator.bootstrap())
    bootstrap.add_done_callback(_report_bootstrap(view, out))

    try:
        async for _ in presses:
            out(await press(orchestrator, view))
    finally:
        if not bootstrap.done():
            bootstrap.cancel()

    return view
