# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Arcam receiver host IP/Port resolver.

Provides a method that can resolve the various accepted host strings and
environment variables into a receiver IP address and port.
"""

from __future__ import annotations

from ..internal_types import *
from ..exceptions import ArcamReceiverError
from .client_config import ArcamReceiverClientConfig

def resolve_receiver_tcp_host(
        host: Optional[str]=None,
        default_port: Optional[int]=None,
        config: Optional[ArcamReceiverClientConfig]=None,
      ) -> HostAndPort:
    """Resolves a receiver host string into a TCP/IP hostname and port.

        Args:
            host: The hostname or IPV4 address of the receiver.
                    may optionally be prefixed with "tcp://".
                    May be suffixed with ":<port>" to specify a
                    non-default port, which will override the default_port argument.
                    If None, the default host in config is used.
            default_port: The default TCP/IP port number to use. If None, the port
                    will be taken from the config.

        Returns:
            A tuple of (hostname: str, port: int).
    """
    config = ArcamReceiverClientConfig(
        default_host=host,
        default_port=default_port,
        base_config=config
    )
    host = config.default_host
    if host is None or host == '':
        raise ArcamReceiverError("No receiver host configured (set ARCAM_RECEIVER_HOST or pass a host)")
    port = config.default_port

    if host.startswith('tcp://'):
        host = host[6:]
    elif '://' in host or '/' in host:
        raise ArcamReceiverError(f"Invalid host specifier for TCP transport: '{host}'")

    if host.startswith('['):
        # bracketed IPv6 literal, e.g., "[::1]:50000"
        iclose = host.find(']')
        if iclose < 0:
            raise ArcamReceiverError(f"Invalid host specifier for TCP transport: '{host}'")
        rest = host[iclose + 1:]
        host = host[1:iclose]
        if rest.startswith(':'):
            port = _parse_port(rest[1:])
        elif rest != '':
            raise ArcamReceiverError(f"Invalid host specifier for TCP transport: '{host}'")
    elif host.count(':') == 1:
        host, port_str = host.rsplit(':', 1)
        port = _parse_port(port_str)

    if host == '':
        raise ArcamReceiverError("Empty receiver host name")

    return (host, port)

def _parse_port(port_str: str) -> int:
    try:
        port = int(port_str)
    except ValueError as e:
        raise ArcamReceiverError(f"Invalid receiver port number: '{port_str}'") from e
    if not 0 < port < 65536:
        raise ArcamReceiverError(f"Receiver port number out of range: {port}")
    return port
