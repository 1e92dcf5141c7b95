"""Search client handle bound to one or more searchd servers."""

import random
from typing import List, Optional, Sequence, Union

from .errors import EmptyAddressError
from .settings import DEFAULT_MAX_MATCHES, DEFAULT_PORT


class SearchClient:
    """Connection settings for querying searchd.

    Query execution lives elsewhere; this handle carries the server list,
    port and the client-level settings callers may adjust after
    construction (``timeout``, ``max_matches``).
    """

    def __init__(
        self,
        servers: Union[str, Sequence[str]],
        port: int = DEFAULT_PORT,
        key: Optional[str] = None
    ):
        """
        Initialize client handle.

        Args:
            servers: One address or an ordered list of addresses
            port: searchd port
            key: Optional auth token, passed through uninterpreted
        """
        if isinstance(servers, str):
            servers = [servers]
        self.servers: List[str] = list(servers)
        if not self.servers:
            raise EmptyAddressError("SearchClient requires at least one server address")
        self.port = port
        self.key = key
        self.timeout: float = 0
        self.max_matches: int = DEFAULT_MAX_MATCHES

    @property
    def server(self) -> str:
        """First server, for consumers that talk to a single host."""
        return self.servers[0]

    @server.setter
    def server(self, value: str) -> None:
        self.servers = [value]

    def __repr__(self) -> str:
        return f"SearchClient(servers={self.servers!r}, port={self.port})"


def build_client(
    addresses: Union[str, Sequence[str]],
    port: int,
    timeout: float = 0,
    max_matches: int = DEFAULT_MAX_MATCHES,
    shuffle: bool = False,
    key: Optional[str] = None
) -> SearchClient:
    """
    Build a client for the configured servers.

    Args:
        addresses: One address or an ordered list of addresses
        port: searchd port
        timeout: Client timeout in seconds
        max_matches: Maximum matches per query
        shuffle: Randomize server order (load balancing across servers)
        key: Optional auth token

    Returns:
        SearchClient with timeout and max_matches applied

    Raises:
        EmptyAddressError: If no addresses are given
    """
    if isinstance(addresses, str):
        servers = [addresses] if addresses else []
    else:
        servers = list(addresses)

    if not servers:
        raise EmptyAddressError("No searchd addresses configured")

    # Shuffle a copy so the configured address list keeps its order
    if shuffle:
        random.shuffle(servers)

    client = SearchClient(servers, port, key)
    client.timeout = timeout
    client.max_matches = max_matches
    return client
