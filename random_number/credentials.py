from logging import getLogger
from pathlib import Path
from typing import Optional, Union


LOGGER = getLogger(__name__)


def read_secret(path: Union[str, Path]) -> Optional[str]:
    """Read a single-line secret file & strip its newlines.

    Returns None when the file is missing, unreadable, or holds nothing
    but whitespace.
    """
    try:
        with open(path, 'r') as file:
            text = file.read()
    except (OSError, UnicodeDecodeError) as err:
        LOGGER.error(f'Unable to read secret file at {path}: {err}')
        return None

    secret = text.replace('\r', '').replace('\n', '').strip()

    if not secret:
        LOGGER.error(f'Secret file at {path} is empty')
        return None

    return secret
