# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Arcam receiver emulator session.

One asyncio.Protocol instance per accepted client connection.
"""

from __future__ import annotations

import asyncio
from enum import Enum

from ..internal_types import *
from ..pkg_logging import logger
from ..protocol import Frame, FrameBuffer

if TYPE_CHECKING:
    from .emulator_impl import ArcamReceiverEmulator

class EmulatorSessionState(Enum):
    UNCONNECTED = 0
    READING_COMMAND = 1
    RUNNING_COMMAND = 2
    SHUTTING_DOWN = 3
    CLOSED = 4

class ArcamReceiverEmulatorSession(asyncio.Protocol):
    session_id: int = -1
    emulator: ArcamReceiverEmulator
    transport: Optional[asyncio.Transport] = None
    peer_name: str = "<unconnected>"
    description: str = "EmulatorSession(<unconnected>)"
    state: EmulatorSessionState = EmulatorSessionState.UNCONNECTED
    frame_buffer: FrameBuffer
    transport_closed: bool = True

    def __init__(self, emulator: ArcamReceiverEmulator):
        self.emulator = emulator
        self.frame_buffer = FrameBuffer(is_response=False)
        self.session_id = emulator.alloc_session_id(self)
        self.description = f"EmulatorSession(id={self.session_id}, from=<unconnected>)"

    @property
    def is_open(self) -> bool:
        return not self.transport_closed and self.state not in (EmulatorSessionState.CLOSED, EmulatorSessionState.SHUTTING_DOWN)

    def write(self, data: Union[bytes, bytearray, memoryview]) -> None:
        if self.transport is None or self.transport_closed:
            logger.debug(f"EmulatorSession: Attempt to write to closed session {self.description}; ignored")
            return
        logger.debug(f"{self}: Sending {bytes(data).hex(' ')}")
        self.transport.write(data)

    def connection_made(self, transport: asyncio.BaseTransport):
        """Called when a connection is made."""
        assert isinstance(transport, asyncio.Transport)
        assert self.state == EmulatorSessionState.UNCONNECTED
        self.transport = transport
        self.transport_closed = False
        self.peer_name = str(transport.get_extra_info('peername'))
        self.description = f"EmulatorSession(id={self.session_id}, from='{self.peer_name}')"
        logger.debug(f"EmulatorSession: Connection from {self.peer_name}")
        self.state = EmulatorSessionState.READING_COMMAND

    def close(self) -> None:
        if not self.state in (EmulatorSessionState.CLOSED, EmulatorSessionState.SHUTTING_DOWN):
            self.state = EmulatorSessionState.SHUTTING_DOWN
            if not self.transport_closed and not self.transport is None:
                self.transport_closed = True
                self.transport.close()
            self.state = EmulatorSessionState.CLOSED
            self.emulator.free_session_id(self.session_id)

    def data_received(self, data: bytes) -> None:
        """Called when some data is received. Handles every complete request frame."""
        try:
            logger.debug(f"{self}: Received {data.hex(' ')}")
            self.frame_buffer.feed(data)
            for frame in self.frame_buffer:
                if self.state != EmulatorSessionState.READING_COMMAND:
                    break
                self.state = EmulatorSessionState.RUNNING_COMMAND
                self.emulator.on_frame_received(self, frame)
                if self.state == EmulatorSessionState.RUNNING_COMMAND:
                    self.state = EmulatorSessionState.READING_COMMAND
        except BaseException as e:
            logger.exception(f"{self}: Exception while processing data: {e}")
            self.close()
            raise

    def connection_lost(self, exc: Optional[BaseException]) -> None:
        """Called when the connection is lost or closed."""
        logger.debug(f"{self}: Connection lost, exception={exc}; closing connection")
        self.transport_closed = True
        self.close()

    def eof_received(self) -> bool:
        """Called when the other end calls write_eof() or equivalent."""
        logger.debug(f"{self}: EOF received; closing connection")
        self.close()
        return True

    def __str__(self) -> str:
        return self.description

    def __repr__(self) -> str:
        return str(self)
