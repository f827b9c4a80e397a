# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Encapsulation of a single Arcam receiver protocol "frame" sent over the TCP/IP socket in either
direction.

A request frame is:

    21 <zone> <command_code> <length> <payload...> 0d

A response frame carries an additional answer code before the length:

    21 <zone> <command_code> <answer_code> <length> <payload...> 0d
"""

from __future__ import annotations

from ..internal_types import *
from ..exceptions import FramingError
from .constants import (
    START_OF_FRAME,
    END_OF_FRAME,
    ZONE_MAIN,
    ANSWER_OK,
    MAX_PAYLOAD_LENGTH,
    REQUEST_HEADER_LENGTH,
    RESPONSE_HEADER_LENGTH,
  )

class Frame:
    """
    A single decoded protocol frame, in either direction.
    """

    zone: int
    """The zone the frame is addressed to or originated from."""

    command_code: int

    answer_code: Optional[int]
    """The answer code of a response frame; None for a request frame."""

    payload: bytes

    def __init__(
            self,
            command_code: int,
            payload: bytes=b'',
            zone: int=ZONE_MAIN,
            answer_code: Optional[int]=None,
          ):
        self.command_code = command_code
        self.payload = bytes(payload)
        self.zone = zone
        self.answer_code = answer_code

    @property
    def is_response(self) -> bool:
        return self.answer_code is not None

    @property
    def is_ok(self) -> bool:
        """True if this is a response frame with a successful answer code."""
        return self.answer_code == ANSWER_OK

    def to_bytes(self) -> bytes:
        """Encodes the frame, using the response layout if it has an answer code."""
        if self.answer_code is None:
            return encode_request(self.command_code, self.payload, zone=self.zone)
        return encode_response(self.command_code, self.answer_code, self.payload, zone=self.zone)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Frame):
            return NotImplemented
        return (
            self.zone == other.zone and
            self.command_code == other.command_code and
            self.answer_code == other.answer_code and
            self.payload == other.payload
          )

    def __str__(self) -> str:
        if self.answer_code is None:
            return f"Frame(zone=0x{self.zone:02x}, cmd=0x{self.command_code:02x}, payload=[{self.payload.hex(' ')}])"
        return (
            f"Frame(zone=0x{self.zone:02x}, cmd=0x{self.command_code:02x}, "
            f"answer=0x{self.answer_code:02x}, payload=[{self.payload.hex(' ')}])"
          )

    def __repr__(self) -> str:
        return str(self)

def _check_payload(payload: bytes) -> None:
    if len(payload) > MAX_PAYLOAD_LENGTH:
        raise FramingError(f"Frame payload length {len(payload)} exceeds maximum allowed length {MAX_PAYLOAD_LENGTH}")

def encode_request(command_code: int, payload: Union[bytes, Iterable[int]]=b'', zone: int=ZONE_MAIN) -> bytes:
    """Encodes a request frame for the receiver."""
    payload = bytes(payload)
    _check_payload(payload)
    return bytes([START_OF_FRAME, zone, command_code, len(payload)]) + payload + bytes([END_OF_FRAME])

def encode_response(
        command_code: int,
        answer_code: int=ANSWER_OK,
        payload: Union[bytes, Iterable[int]]=b'',
        zone: int=ZONE_MAIN,
      ) -> bytes:
    """Encodes a response frame, as sent by the receiver."""
    payload = bytes(payload)
    _check_payload(payload)
    return bytes([START_OF_FRAME, zone, command_code, answer_code, len(payload)]) + payload + bytes([END_OF_FRAME])

def frame_length(raw_data: Union[bytes, bytearray], header_length: int) -> Optional[int]:
    """
    Returns the total length of the frame at the start of raw_data, including both markers,
    or None if not enough of the header is present to tell.
    """
    if len(raw_data) < header_length:
        return None
    return header_length + raw_data[header_length - 1] + 1

def _decode(raw_data: Union[bytes, bytearray], header_length: int) -> Optional[Frame]:
    if len(raw_data) == 0 or raw_data[0] != START_OF_FRAME:
        return None
    total_length = frame_length(raw_data, header_length)
    if total_length is None or total_length > len(raw_data):
        return None
    if raw_data[total_length - 1] != END_OF_FRAME:
        return None
    payload = bytes(raw_data[header_length:total_length - 1])
    answer_code = raw_data[3] if header_length == RESPONSE_HEADER_LENGTH else None
    return Frame(raw_data[2], payload, zone=raw_data[1], answer_code=answer_code)

def decode_response(raw_data: Union[bytes, bytearray]) -> Optional[Frame]:
    """
    Decodes a response frame received from the receiver.

    Returns None if raw_data does not start with a valid response frame. Stray or
    partial bytes are expected on this stream, so this is not an error.
    """
    return _decode(raw_data, RESPONSE_HEADER_LENGTH)

def decode_request(raw_data: Union[bytes, bytearray]) -> Optional[Frame]:
    """
    Decodes a request frame sent to the receiver.

    Returns None if raw_data does not start with a valid request frame.
    """
    return _decode(raw_data, REQUEST_HEADER_LENGTH)
