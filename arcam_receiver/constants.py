# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Constants used by arcam_receiver"""

DEFAULT_PORT = 50000
"""The listen port number used by the receiver for TCP/IP control."""

DEFAULT_TIMEOUT = 5.0
"""The default time to wait for the reply to a status query, in seconds."""

CONNECT_TIMEOUT = 15.0
"""The timeout for connecting to the receiver over TCP/IP, in seconds."""

KEEPALIVE_INTERVAL = 60.0
"""The interval between heartbeat commands while connected, in seconds."""

RECONNECT_DELAY = 1.0
"""The fixed delay between a lost connection and the next connection attempt, in seconds."""

TCP_KEEPALIVE_INTERVAL = 10.0
"""Idle time before TCP keepalive probes are sent, and the interval between probes, in seconds."""

READ_CHUNK_SIZE = 2048
"""Maximum number of bytes read from the socket at a time."""
