# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Package arcam_receiver provides a command-line tool and API for controlling
Arcam AV receivers via their proprietary TCP/IP protocol.
"""

from .version import __version__

from .pkg_logging import logger

from .internal_types import Jsonable, JsonableDict

from .exceptions import (
    ArcamReceiverError,
    FramingError,
    TransportError,
    ConnectError,
    NegativeAcknowledgementError,
  )

from .constants import (
    DEFAULT_PORT,
    DEFAULT_TIMEOUT,
    CONNECT_TIMEOUT,
    KEEPALIVE_INTERVAL,
    RECONNECT_DELAY,
  )

from .event_emitter import ReceiverEventEmitter

from .client import (
    ArcamReceiverClient,
    ArcamReceiverClientConfig,
    TcpReceiverConnection,
    ReceiverSupervisor,
    ConnectionStatus,
    VolumeMode,
    ReceiverState,
    resolve_receiver_tcp_host,
    arcam_receiver_connect,
  )

from .protocol import (
    Frame,
    FrameBuffer,
    CommandEntry,
    AnswerCode,
    MuteState,
    encode_request,
    encode_response,
    decode_request,
    decode_response,
    get_all_commands,
  )

from .util import (
    full_class_name,
    full_name_of_class,
)
