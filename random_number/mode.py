import os


def get_mode() -> str:
    """Determine if running application in 'production', 'development', or 'debug'.

    Uses `MODE` environment variable & falls back to 'development' if no
    variable exists. Raises an error if anything else is specified.
    """
    env = os.getenv('MODE', 'development')  # default to 'development'

    if env in ('development', 'production', 'debug'):
        return env

    raise TypeError(
        'MODE must be either `production`, `development`, `debug`, or unset '
        '(defaults to `development`)')
