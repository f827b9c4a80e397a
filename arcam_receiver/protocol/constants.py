# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Protocol-specific constants
"""

from __future__ import annotations

START_OF_FRAME = 0x21
"""The first byte of every frame sent to or received from the receiver ('!')."""

END_OF_FRAME = 0x0d
"""The last byte of every frame sent to or received from the receiver (carriage return)."""

ZONE_MAIN = 0x01
"""The zone number of the main zone. Other zones are not supported."""

ANSWER_OK = 0x00
"""Answer code of a successful response or an unsolicited status update."""

MAX_PAYLOAD_LENGTH = 255
"""The maximum payload length of a frame; the length is carried in a single byte."""

REQUEST_HEADER_LENGTH = 4
"""Bytes preceding the payload in a request frame: start, zone, command code, length."""

RESPONSE_HEADER_LENGTH = 5
"""Bytes preceding the payload in a response frame: start, zone, command code, answer code, length."""

STATUS_REQUEST = 0xf0
"""Payload byte that turns a command into a status query."""

COMMAND_HEARTBEAT = 0x25
"""Heartbeat; also resets the receiver's standby timer."""

COMMAND_MASTER_VOLUME = 0x0d
"""Set or request the volume of a zone (0-99)."""

COMMAND_MUTE = 0x0e
"""Request the mute status of a zone."""

COMMAND_SIMULATE_RC5 = 0x08
"""Simulate an RC5 infrared remote control command."""

RC5_MUTE_TOGGLE = bytes([0x10, 0x0d])
"""RC5 system/command pair that toggles mute in the main zone."""

MIN_VOLUME = 0
"""Lowest volume accepted by the receiver."""

MAX_VOLUME = 99
"""Highest volume accepted by the receiver."""
