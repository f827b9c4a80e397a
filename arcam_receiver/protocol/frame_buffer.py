# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Receive buffer that recovers protocol frames from an arbitrarily segmented byte stream.

TCP does not preserve message boundaries; a single read may deliver part of a frame,
exactly one frame, or several frames. Bytes are accumulated here and complete frames
are extracted as soon as they are available.
"""

from __future__ import annotations

from ..internal_types import *
from ..exceptions import FramingError
from ..pkg_logging import logger
from .constants import (
    START_OF_FRAME,
    END_OF_FRAME,
    REQUEST_HEADER_LENGTH,
    RESPONSE_HEADER_LENGTH,
  )
from .frame import Frame, frame_length, decode_request, decode_response

class FrameBuffer:
    """
    Accumulates received bytes and yields complete, validated frames in arrival order.
    """

    buffer: bytearray

    header_length: int
    """Bytes preceding the payload; differs between requests and responses."""

    discarded_bytes: int = 0
    """Total number of bytes dropped because they could not be part of a valid frame."""

    def __init__(self, is_response: bool=True):
        """
        Args:
            is_response: True to scan for response frames (client side), False to
                         scan for request frames (receiver side).
        """
        self.buffer = bytearray()
        self.is_response = is_response
        self.header_length = RESPONSE_HEADER_LENGTH if is_response else REQUEST_HEADER_LENGTH
        self._decode: Callable[[bytes], Optional[Frame]] = decode_response if is_response else decode_request

    def __len__(self) -> int:
        return len(self.buffer)

    def feed(self, data: Union[bytes, bytearray, memoryview]) -> None:
        """Appends received bytes to the buffer."""
        self.buffer.extend(data)

    def clear(self) -> None:
        """Drops any buffered bytes, e.g., when a new stream is started."""
        self.buffer.clear()

    def _discard(self, n: int) -> None:
        logger.debug(f"Discarding {n} unframed byte(s): {bytes(self.buffer[:n]).hex(' ')}")
        self.discarded_bytes += n
        del self.buffer[:n]

    def _is_complete_frame_at(self, offset: int) -> bool:
        total_length = frame_length(self.buffer[offset:], self.header_length)
        return (
            total_length is not None
            and len(self.buffer) - offset >= total_length
            and self.buffer[offset + total_length - 1] == END_OF_FRAME
          )

    def _next_complete_start(self) -> Optional[int]:
        """Returns the offset of the first later start marker that begins a complete frame."""
        istart = self.buffer.find(START_OF_FRAME, 1)
        while istart > 0:
            if self._is_complete_frame_at(istart):
                return istart
            istart = self.buffer.find(START_OF_FRAME, istart + 1)
        return None

    def next_frame(self) -> Optional[Frame]:
        """
        Extracts the next complete frame from the buffer.

        Returns:
            The next Frame, or None if the buffer does not yet hold a complete frame.
        """
        while True:
            istart = self.buffer.find(START_OF_FRAME)
            if istart < 0:
                if len(self.buffer) > 0:
                    self._discard(len(self.buffer))
                return None
            if istart > 0:
                self._discard(istart)

            total_length = frame_length(self.buffer, self.header_length)
            if total_length is None or len(self.buffer) < total_length:
                # A stray start marker must not hold back a complete frame received after it
                inext = self._next_complete_start()
                if inext is None:
                    # Partial frame; wait for more data
                    return None
                self._discard(inext)
                continue

            if self.buffer[total_length - 1] != END_OF_FRAME:
                # Not a real frame start; skip it and rescan from the next start marker
                self._discard(1)
                continue

            raw_data = bytes(self.buffer[:total_length])
            del self.buffer[:total_length]
            frame = self._decode(raw_data)
            if frame is None:
                raise FramingError(f"Unable to decode delimited frame: {raw_data.hex(' ')}")
            return frame

    def __iter__(self) -> Iterator[Frame]:
        """Iterates over all complete frames currently in the buffer."""
        while True:
            frame = self.next_frame()
            if frame is None:
                return
            yield frame
