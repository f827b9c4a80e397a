# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Arcam receiver emulator.

Provides a simple emulation of an Arcam receiver on TCP/IP. Supports the
main-zone volume, mute (status query and RC5 mute toggle) and heartbeat
commands, and pushes change notifications to every connected session the way
a real receiver does.
"""

from __future__ import annotations

import asyncio

from ..internal_types import *
from ..pkg_logging import logger
from ..protocol import (
    Frame,
    AnswerCode,
    MuteState,
    encode_response,
    ZONE_MAIN,
    STATUS_REQUEST,
    COMMAND_HEARTBEAT,
    COMMAND_MASTER_VOLUME,
    COMMAND_MUTE,
    COMMAND_SIMULATE_RC5,
    RC5_MUTE_TOGGLE,
    MIN_VOLUME,
    MAX_VOLUME,
  )
from ..constants import DEFAULT_PORT
from ..exceptions import ArcamReceiverError

from .session import ArcamReceiverEmulatorSession

class ArcamReceiverEmulator(AsyncContextManager['ArcamReceiverEmulator']):
    bind_addr: str
    port: int
    sessions: Dict[int, ArcamReceiverEmulatorSession]
    next_session_id: int = 0
    server: Optional[asyncio.Server] = None
    final_result: asyncio.Future[None]

    volume: int
    is_muted: bool

    ignored_commands: Set[int]
    """Command codes that are silently ignored (no response), to emulate an unresponsive receiver."""

    received_frames: List[Frame]
    """Every request frame received, in order. Useful for tests."""

    def __init__(
            self,
            bind_addr: Optional[str] = None,
            port: int = DEFAULT_PORT,
            initial_volume: int = 30,
            initial_is_muted: bool = False,
          ):
        """
        Args:
            bind_addr: The local address to listen on. Defaults to 0.0.0.0.
            port: The TCP port to listen on. 0 selects a free port; the bound
                  port is available from the port attribute after start().
        """
        if not MIN_VOLUME <= initial_volume <= MAX_VOLUME:
            raise ArcamReceiverError(f"Initial volume {initial_volume} out of range")
        self.bind_addr = '0.0.0.0' if bind_addr is None else bind_addr
        self.port = port
        self.sessions = {}
        self.final_result = asyncio.get_event_loop().create_future()
        self.volume = initial_volume
        self.is_muted = initial_is_muted
        self.ignored_commands = set()
        self.received_frames = []

    def alloc_session_id(self, session: ArcamReceiverEmulatorSession) -> int:
        result = self.next_session_id
        self.next_session_id += 1
        self.sessions[result] = session
        return result

    def free_session_id(self, session_id: int) -> None:
        self.sessions.pop(session_id, None)

    @property
    def mute_payload(self) -> bytes:
        return bytes([MuteState.ON.value if self.is_muted else MuteState.OFF.value])

    def broadcast(self, data: bytes) -> None:
        """Sends bytes to every open session."""
        for session in list(self.sessions.values()):
            if session.is_open:
                session.write(data)

    def set_volume(self, volume: int) -> None:
        """Changes the volume, as if from the front panel, and notifies every session."""
        if not MIN_VOLUME <= volume <= MAX_VOLUME:
            raise ArcamReceiverError(f"Volume {volume} out of range [{MIN_VOLUME}, {MAX_VOLUME}]")
        logger.debug(f"Setting receiver emulator volume to {volume}")
        self.volume = volume
        self.broadcast(encode_response(COMMAND_MASTER_VOLUME, payload=[volume]))

    def set_muted(self, is_muted: bool) -> None:
        """Changes the mute state, as if from the front panel, and notifies every session."""
        logger.debug(f"Setting receiver emulator mute to {is_muted}")
        self.is_muted = is_muted
        self.broadcast(encode_response(COMMAND_MUTE, payload=self.mute_payload))

    def drop_sessions(self) -> None:
        """Closes every open session, emulating a network outage or receiver restart."""
        for session in list(self.sessions.values()):
            session.close()

    def on_frame_received(self, session: ArcamReceiverEmulatorSession, frame: Frame) -> None:
        """Called when a request frame is received from a session."""
        self.received_frames.append(frame)
        try:
            response = self.handle_request(session, frame)
        except Exception as e:
            logger.exception(f"{session}: Exception while handling request; killing session: {e}")
            session.close()
            return
        if response is not None:
            session.write(response)

    def handle_request(self, session: ArcamReceiverEmulatorSession, frame: Frame) -> Optional[bytes]:
        """Handles a single request frame, and returns the response to send to the requester.

        Change notifications caused by the request are broadcast separately to
        every session. Returns None if no direct response should be sent.
        """
        command_code = frame.command_code
        payload = frame.payload
        logger.debug(f"{session}: Received command: {frame}")

        def reject(answer_code: AnswerCode) -> bytes:
            return encode_response(command_code, answer_code.value, zone=frame.zone)

        if command_code in self.ignored_commands:
            logger.debug(f"{session}: Ignoring command 0x{command_code:02x}")
            return None
        if frame.zone != ZONE_MAIN:
            return reject(AnswerCode.ZONE_INVALID)

        if command_code == COMMAND_HEARTBEAT:
            if payload != bytes([STATUS_REQUEST]):
                return reject(AnswerCode.PARAMETER_NOT_RECOGNISED)
            return encode_response(COMMAND_HEARTBEAT, payload=[0x00])

        if command_code == COMMAND_MASTER_VOLUME:
            if len(payload) != 1:
                return reject(AnswerCode.INVALID_DATA_LENGTH)
            if payload[0] == STATUS_REQUEST:
                return encode_response(COMMAND_MASTER_VOLUME, payload=[self.volume])
            if payload[0] > MAX_VOLUME:
                return reject(AnswerCode.PARAMETER_NOT_RECOGNISED)
            # the notification to every session doubles as the response
            self.set_volume(payload[0])
            return None

        if command_code == COMMAND_MUTE:
            if payload != bytes([STATUS_REQUEST]):
                return reject(AnswerCode.PARAMETER_NOT_RECOGNISED)
            return encode_response(COMMAND_MUTE, payload=self.mute_payload)

        if command_code == COMMAND_SIMULATE_RC5:
            if len(payload) != 2:
                return reject(AnswerCode.INVALID_DATA_LENGTH)
            if payload != RC5_MUTE_TOGGLE:
                return reject(AnswerCode.PARAMETER_NOT_RECOGNISED)
            response = encode_response(COMMAND_SIMULATE_RC5, payload=payload)
            session.write(response)
            self.set_muted(not self.is_muted)
            return None

        return reject(AnswerCode.COMMAND_NOT_RECOGNISED)

    async def run(self) -> None:
        """Runs the Emulator until it is closed."""
        async with self:
            await self.wait_closed()

    async def start(self) -> None:
        try:
            loop = asyncio.get_running_loop()
            self.server = await loop.create_server(
                lambda: ArcamReceiverEmulatorSession(self),
                host=self.bind_addr,
                port=self.port)
            sockets = self.server.sockets
            if sockets:
                self.port = sockets[0].getsockname()[1]
            logger.debug(f"Emulator: Listening on {self.bind_addr}:{self.port}")
            await self.server.start_serving()
        except BaseException as e:
            self.set_final_result(e)
            try:
                await self.wait_closed()
            except BaseException:
                pass
            raise

    def close(self, exc: Optional[BaseException]=None) -> None:
        """Stops the Emulator."""
        self.set_final_result(exc)

    async def wait_closed(self) -> None:
        """Waits for the emulator to be fully closed. Does not initiate shutdown."""
        try:
            await self.final_result
        finally:
            server = self.server
            self.server = None
            if server is not None:
                server.close()
                self.drop_sessions()
                await server.wait_closed()

    async def close_and_wait(self, exc: Optional[BaseException]=None) -> None:
        self.close(exc)
        await self.wait_closed()

    def set_final_result(self, exc: Optional[BaseException]=None) -> None:
        if not self.final_result.done():
            if exc is None:
                logger.debug(f"Emulator: Setting final result to success")
                self.final_result.set_result(None)
            else:
                logger.debug(f"Emulator: Setting final exception: {exc}")
                self.final_result.set_exception(exc)
            if self.server is not None:
                self.server.close()
                self.drop_sessions()

    async def __aenter__(self) -> ArcamReceiverEmulator:
        await self.start()
        return self

    async def __aexit__(self,
            exc_type: Optional[type[BaseException]],
            exc: Optional[BaseException],
            tb: Optional[TracebackType]
      ) -> None:
        self.set_final_result(exc)
        try:
            # ensure that final_result has been awaited
            await self.wait_closed()
        except Exception:
            pass

    def __str__(self) -> str:
        return f"ArcamReceiverEmulator({self.bind_addr}:{self.port})"

    def __repr__(self) -> str:
        return str(self)
