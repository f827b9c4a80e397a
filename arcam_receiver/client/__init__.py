# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Arcam receiver client.

Provides the TCP/IP connection, the protocol client and the connection
supervisor for an Arcam receiver.
"""

from .client_config import ArcamReceiverClientConfig
from .resolve_host import resolve_receiver_tcp_host
from .tcp_connection import TcpReceiverConnection
from .client_impl import ArcamReceiverClient, EVENT_COMMAND_REJECTED
from .receiver_state import ConnectionStatus, VolumeMode, ReceiverState, describe_status
from .supervisor import (
    ReceiverSupervisor,
    ClientFactory,
    EVENT_STATUS_CHANGED,
    EVENT_VOLUME_CHANGED,
    EVENT_HOST_MUTE_CHANGED,
  )
from .simple import arcam_receiver_connect
