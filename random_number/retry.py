import asyncio
from logging import getLogger
from typing import Awaitable, Callable, Tuple, Type, TypeVar


LOGGER = getLogger(__name__)

# Generic doesn't need a more descriptive name
# pylint: disable=invalid-name
T = TypeVar('T')


async def with_retries(
    operation: Callable[[], Awaitable[T]],
    retry_on: Tuple[Type[BaseException], ...],
    attempts: int = 1,
    delay: float = 1,
    backoff: float = 2,
) -> T:
    """
    Await `operation`, calling it again when it raises one of `retry_on`.

    Makes at most `attempts` calls, sleeping `delay` seconds after the first
    failure & multiplying the sleep by `backoff` after each one after that.
    The last error is raised once attempts run out; errors not listed in
    `retry_on` are raised immediately.
    """
    if attempts < 1:
        raise ValueError('Parameter `attempts` must be at least 1.')

    attempt = 1

    while True:
        try:
            return await operation()
        except retry_on as err:
            if attempt >= attempts:
                raise

            LOGGER.warning(
                f'Attempt {attempt} of {attempts} failed ({err}), '
                f'retrying in {delay} seconds...')

            await asyncio.sleep(delay)
            attempt += 1
            delay *= backoff
