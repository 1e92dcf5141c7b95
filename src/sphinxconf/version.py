"""Detect the installed daemon version by running the indexer binary.

The indexer prints a banner such as ``Sphinx 2.0.4-release (r3135)`` when run
without arguments (and exits non-zero), so the exit status is ignored and only
the banner is parsed.
"""

import logging
import re
import subprocess
import threading
from typing import List, Optional, Tuple

from .errors import VersionProbeError

logger = logging.getLogger(__name__)

VERSION_PATTERN = re.compile(r"^Sphinx\s+(\d+\.\d+(?:\.\d+)?[\w.\-]*)", re.MULTILINE)

UNRESOLVED = "unresolved"
RESOLVED = "resolved"
FAILED = "failed"


def parse_version(output: str) -> str:
    """Extract the version from indexer output.

    Raises:
        VersionProbeError: If no ``Sphinx X.Y`` banner is present
    """
    match = VERSION_PATTERN.search(output)
    if not match:
        raise VersionProbeError(f"Could not find a Sphinx version in indexer output: {output[:200]!r}")
    return match.group(1)


def version_tuple(version: str) -> Tuple[int, ...]:
    """Comparable numeric prefix of a version string.

    Examples:
        >>> version_tuple("0.9.9-rc2")
        (0, 9, 9)
        >>> version_tuple("2.0.4-release")
        (2, 0, 4)
    """
    match = re.match(r"\d+(?:\.\d+)*", version.strip())
    if not match:
        return ()
    return tuple(int(part) for part in match.group(0).split("."))


class VersionProbe:
    """Memoized, single-flight version detection.

    State moves from ``unresolved`` to ``resolved`` or ``failed`` on the first
    call and stays there until ``reset()``. A failure is cached and re-raised
    so a broken binary is not re-run on every call.
    """

    DEFAULT_TIMEOUT = 10.0  # seconds

    def __init__(self, command: List[str], timeout: float = DEFAULT_TIMEOUT):
        self.command = command
        self.timeout = timeout
        self.state = UNRESOLVED
        self._version: Optional[str] = None
        self._error: Optional[VersionProbeError] = None
        self._lock = threading.Lock()

    def get(self) -> str:
        with self._lock:
            if self.state == RESOLVED:
                return self._version
            if self.state == FAILED:
                raise self._error

            try:
                self._version = self._run()
            except VersionProbeError as e:
                self.state = FAILED
                self._error = e
                raise
            self.state = RESOLVED
            return self._version

    def reset(self) -> None:
        with self._lock:
            self.state = UNRESOLVED
            self._version = None
            self._error = None

    def _run(self) -> str:
        logger.debug(f"Probing daemon version: {' '.join(self.command)}")
        try:
            result = subprocess.run(
                self.command,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            raise VersionProbeError(f"Indexer binary not found: {self.command[0]}") from e
        except subprocess.TimeoutExpired as e:
            raise VersionProbeError(f"Indexer did not respond within {self.timeout}s") from e
        except OSError as e:
            raise VersionProbeError(f"Failed to run indexer: {e}") from e

        version = parse_version(result.stdout + result.stderr)
        logger.debug(f"Detected Sphinx version {version}")
        return version
