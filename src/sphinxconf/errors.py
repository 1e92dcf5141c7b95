"""Exception classes for configuration generation and client construction.

Each exception carries the exit code the CLI uses when it escapes a command:

- 1: General error (render failures, version probing, CRC collisions)
- 2: Invalid settings or arguments
"""


# Exit codes (same as cli/main.py)
EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_INVALID_ARGS = 2


class SphinxConfError(Exception):
    """Base exception for sphinxconf errors.

    All custom exceptions should inherit from this class.
    Default exit code is EXIT_ERROR (1).
    """
    exit_code = EXIT_ERROR


class ConfigurationLoadError(SphinxConfError):
    """Settings input is malformed or has values of the wrong type.

    Examples:
    - Settings file is not a mapping
    - ``port`` is not an integer
    - Unknown option name inside an ``index_options`` group

    Raised before any state is changed; the configuration keeps its
    previous values.

    Exit code: 2
    """
    exit_code = EXIT_INVALID_ARGS


class CrcCollisionError(SphinxConfError):
    """Two distinct indexable class names share a CRC32 checksum."""

    def __init__(self, crc: int, first: str, second: str):
        self.crc = crc
        self.names = (first, second)
        super().__init__(
            f"CRC collision: {first!r} and {second!r} both hash to {crc}"
        )


class RenderError(SphinxConfError):
    """A value would corrupt the config grammar or a required value is missing."""
    pass


class EmptyAddressError(SphinxConfError):
    """Client construction was requested with no server addresses.

    Exit code: 2
    """
    exit_code = EXIT_INVALID_ARGS


class VersionProbeError(SphinxConfError):
    """Running the indexer binary to detect the daemon version failed."""
    pass
