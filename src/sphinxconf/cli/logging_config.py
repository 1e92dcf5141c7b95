"""Centralized logging configuration for CLI commands.

Provides three logging levels:
- Default: Warnings and errors only
- Verbose: Show settings files loaded and config files written
- Debug: Show everything including version probes
"""

import logging


def setup_logging_default():
    """Default logging: warnings (e.g., ignored settings keys) and errors."""
    logging.basicConfig(
        level=logging.WARNING,
        format='%(levelname)s: %(message)s'
    )
    logging.getLogger('sphinxconf').setLevel(logging.WARNING)


def setup_logging_verbose():
    """Verbose logging: show which files were read and written."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(levelname)s: %(message)s'
    )
    logging.getLogger('sphinxconf').setLevel(logging.INFO)


def setup_logging_debug():
    """Debug logging: show everything, with logger names."""
    logging.basicConfig(
        level=logging.DEBUG,
        format='%(name)s - %(levelname)s: %(message)s'
    )
    logging.getLogger('sphinxconf').setLevel(logging.DEBUG)


def setup_logging(verbose: bool = False, debug: bool = False):
    """Pick the logging level from CLI flags (debug wins over verbose)."""
    if debug:
        setup_logging_debug()
    elif verbose:
        setup_logging_verbose()
    else:
        setup_logging_default()
