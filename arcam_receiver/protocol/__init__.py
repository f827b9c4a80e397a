# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Low-level protocol definitions for Arcam receivers.

This module defines the binary framing used by Arcam AV receivers for TCP/IP
control, and the small set of commands supported by this package.
It does not contain protocol implementations.
"""

from .constants import (
    START_OF_FRAME,
    END_OF_FRAME,
    ZONE_MAIN,
    ANSWER_OK,
    MAX_PAYLOAD_LENGTH,
    REQUEST_HEADER_LENGTH,
    RESPONSE_HEADER_LENGTH,
    STATUS_REQUEST,
    COMMAND_HEARTBEAT,
    COMMAND_MASTER_VOLUME,
    COMMAND_MUTE,
    COMMAND_SIMULATE_RC5,
    RC5_MUTE_TOGGLE,
    MIN_VOLUME,
    MAX_VOLUME,
  )

from .answer_code import AnswerCode
from .mute_state import MuteState

from .frame import (
    Frame,
    encode_request,
    encode_response,
    decode_request,
    decode_response,
  )

from .frame_buffer import FrameBuffer

from .command_registry import (
    CommandEntry,
    EVENT_HEARTBEAT,
    EVENT_MASTER_VOLUME_CHANGED,
    EVENT_MUTE_CHANGED,
    lookup,
    event_name_for,
    get_all_commands,
  )
