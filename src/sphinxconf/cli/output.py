"""Output formatting utilities for CLI commands.

Text output uses [INFO]/[ERROR]/[WARNING] prefixes; JSON output wraps every
result in the same status/message/data/errors envelope.
"""

import json
import sys
from typing import Any, Dict, List, Optional


def format_json_response(
    status: str,
    message: str = "",
    data: Optional[Dict[str, Any]] = None,
    errors: Optional[List[str]] = None
) -> str:
    """Format a consistent JSON response.

    Example:
        >>> format_json_response("success", "Wrote config", {"path": "config/development.sphinx.conf"})
        '{"status": "success", "message": "Wrote config", ...}'
    """
    response = {
        "status": status,
        "message": message,
        "data": data or {},
        "errors": errors or []
    }
    return json.dumps(response, indent=2)


def print_json(
    status: str,
    message: str = "",
    data: Optional[Dict[str, Any]] = None,
    errors: Optional[List[str]] = None
):
    print(format_json_response(status, message, data, errors))


def print_error(message: str, json_output: bool = False):
    """Print error message with [ERROR] prefix (stderr), or a JSON error."""
    if json_output:
        print_json("error", f"[ERROR] {message}", errors=[message])
    else:
        print(f"[ERROR] {message}", file=sys.stderr)


def print_info(message: str, json_output: bool = False):
    """Print info message with [INFO] prefix; skipped in JSON mode."""
    if not json_output:
        print(f"[INFO] {message}")


def print_success(message: str, json_output: bool = False, data: Optional[Dict[str, Any]] = None):
    if json_output:
        print_json("success", message, data=data)
    else:
        print(message)
