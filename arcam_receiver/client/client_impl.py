# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Arcam receiver protocol client.

Turns connection byte events into semantic events ("masterVolumeChanged",
"muteChanged", "heartbeat"), and semantic requests into framed writes, with
request/response correlation by event name.
"""

from __future__ import annotations

import asyncio
from asyncio import Future
from collections import deque

from ..internal_types import *
from ..exceptions import ArcamReceiverError, NegativeAcknowledgementError
from ..pkg_logging import logger
from ..util import wait_with_timeout
from ..event_emitter import ReceiverEventEmitter
from ..protocol import (
    Frame,
    FrameBuffer,
    AnswerCode,
    encode_request,
    lookup,
    event_name_for,
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
from .client_config import ArcamReceiverClientConfig
from .tcp_connection import TcpReceiverConnection

EVENT_COMMAND_REJECTED = 'commandRejected'
"""Emitted with a NegativeAcknowledgementError when the receiver rejects a command."""

class ArcamReceiverClient(ReceiverEventEmitter):
    """Arcam receiver protocol client.

    Semantic events are multicast: every emitted event notifies all standing
    listeners, and also completes the oldest pending request waiting for that
    event name.

    Requests waiting for the same event name are queued; replies complete them
    in FIFO order. Any matching event, including an unsolicited change
    notification, completes the oldest waiter with the current value.
    """

    connection: TcpReceiverConnection
    config: ArcamReceiverClientConfig
    frame_buffer: FrameBuffer

    _pending: Dict[str, Deque[Future[Any]]]
    """Pending correlated requests, keyed by the event name they are waiting for."""

    def __init__(
            self,
            connection: TcpReceiverConnection,
            config: Optional[ArcamReceiverClientConfig]=None,
          ):
        """Initialize an Arcam receiver client on top of an (unconnected) connection."""
        super().__init__()
        self.config = ArcamReceiverClientConfig(base_config=config if config is not None else connection.config)
        self.connection = connection
        self.frame_buffer = FrameBuffer(is_response=True)
        self._pending = {}
        connection.on('connect', self._on_connect)
        connection.on('data', self._on_data)
        connection.on('close', self._on_close)
        connection.on('error', self._on_error)

    @classmethod
    def create(
            cls,
            host: Optional[str]=None,
            port: Optional[int]=None,
            config: Optional[ArcamReceiverClientConfig]=None,
          ) -> ArcamReceiverClient:
        """Creates a client with a new, unconnected TCP/IP connection."""
        connection = TcpReceiverConnection(host, port, config=config)
        return cls(connection, config=connection.config)

    @property
    def is_connected(self) -> bool:
        return self.connection.is_connected

    async def connect(self) -> None:
        """Opens a fresh TCP stream to the receiver. Raises ConnectError on failure."""
        await self.connection.connect()

    async def disconnect(self) -> None:
        """Closes the stream. Does not fail or cancel pending correlated requests."""
        await self.connection.disconnect()

    def _on_connect(self) -> None:
        self.frame_buffer.clear()
        self.emit('connect')

    def _on_close(self, had_error: bool) -> None:
        self.emit('close', had_error)

    def _on_error(self, error: BaseException) -> None:
        self.emit('error', error)

    def _on_data(self, data: bytes) -> None:
        self.frame_buffer.feed(data)
        for frame in self.frame_buffer:
            self.handle_frame(frame)

    def handle_frame(self, frame: Frame) -> None:
        """Dispatches a single decoded response frame."""
        logger.debug(f"Received frame: {frame}")
        entry = lookup(frame.command_code)
        if not frame.is_ok:
            assert frame.answer_code is not None
            error = NegativeAcknowledgementError(
                frame.command_code,
                frame.answer_code,
                f"Receiver rejected command 0x{frame.command_code:02x}: {AnswerCode.describe(frame.answer_code)}")
            logger.debug(f"{self}: {error}")
            if entry is not None and frame.zone == ZONE_MAIN:
                self._fail_oldest_pending(entry.event_name, error)
            self.emit(EVENT_COMMAND_REJECTED, error)
            return
        if entry is None:
            logger.debug(f"Ignoring response for unsupported command 0x{frame.command_code:02x}")
            return
        if frame.zone != ZONE_MAIN:
            logger.debug(f"Ignoring response for zone 0x{frame.zone:02x}")
            return
        try:
            value = entry.value_of(frame.payload)
        except (IndexError, ValueError):
            logger.debug(f"Ignoring response with unusable payload: {frame}")
            return
        self._resolve_oldest_pending(entry.event_name, value)
        self.emit(entry.event_name, value)

    def _resolve_oldest_pending(self, event_name: str, value: Any) -> None:
        waiters = self._pending.get(event_name)
        while waiters:
            waiter = waiters.popleft()
            if not waiter.done():
                waiter.set_result(value)
                break
        if waiters is not None and len(waiters) == 0:
            del self._pending[event_name]

    def _fail_oldest_pending(self, event_name: str, error: BaseException) -> None:
        waiters = self._pending.get(event_name)
        while waiters:
            waiter = waiters.popleft()
            if not waiter.done():
                waiter.set_exception(error)
                break
        if waiters is not None and len(waiters) == 0:
            del self._pending[event_name]

    def _discard_pending(self, event_name: str, waiter: Future[Any]) -> None:
        waiters = self._pending.get(event_name)
        if waiters is not None:
            try:
                waiters.remove(waiter)
            except ValueError:
                pass
            if len(waiters) == 0:
                del self._pending[event_name]

    def pending_count(self, event_name: Optional[str]=None) -> int:
        """Returns the number of correlated requests still waiting for a reply."""
        if event_name is not None:
            return len(self._pending.get(event_name, ()))
        return sum(len(waiters) for waiters in self._pending.values())

    async def send_command(
            self,
            command_code: int,
            payload: Union[bytes, Iterable[int], int]=b'',
            await_event: Optional[str]=None,
            timeout_secs: Optional[float]=None,
          ) -> Any:
        """Sends a command and, if await_event is given, waits for that event.

        The correlation is registered before the frame is written, so a reply
        that arrives immediately cannot be missed.

        Args:
            command_code: The protocol command code.
            payload: The payload bytes, or a single int byte.
            await_event: The event name carrying the reply. If None, returns as
                    soon as the frame has been written.
            timeout_secs: Maximum time to wait for the reply. If None, waits
                    indefinitely. Closing the connection does not end the wait.

        Returns:
            The value carried by await_event, or None if await_event is None.
        """
        if isinstance(payload, int):
            payload = bytes([payload])
        frame_bytes = encode_request(command_code, payload)
        if await_event is None:
            logger.debug(f"Sending command 0x{command_code:02x}: {frame_bytes.hex(' ')}")
            await self.connection.write(frame_bytes)
            return None

        waiter: Future[Any] = asyncio.get_running_loop().create_future()
        self._pending.setdefault(await_event, deque()).append(waiter)
        try:
            logger.debug(f"Sending command 0x{command_code:02x}: {frame_bytes.hex(' ')}")
            await self.connection.write(frame_bytes)
            return await wait_with_timeout(
                waiter,
                timeout_secs,
                f"No {await_event} reply to command 0x{command_code:02x} within {timeout_secs} seconds",
              )
        finally:
            if not waiter.done():
                waiter.cancel()
            self._discard_pending(await_event, waiter)

    async def get_volume(self, timeout_secs: Optional[float]=None) -> int:
        """Requests the volume of the main zone (0-99). Returned even if the zone is muted."""
        return await self.send_command(
            COMMAND_MASTER_VOLUME,
            STATUS_REQUEST,
            event_name_for('master_volume'),
            timeout_secs=timeout_secs,
          )

    async def set_volume(self, value: int) -> None:
        """Sets the volume of the main zone. Does not wait for the resulting change notification."""
        if not MIN_VOLUME <= value <= MAX_VOLUME:
            raise ArcamReceiverError(f"Volume {value} out of range [{MIN_VOLUME}, {MAX_VOLUME}]")
        await self.send_command(COMMAND_MASTER_VOLUME, value)

    async def get_mute(self, timeout_secs: Optional[float]=None) -> int:
        """Requests the raw mute status of the main zone (see MuteState)."""
        return await self.send_command(
            COMMAND_MUTE,
            STATUS_REQUEST,
            event_name_for('mute'),
            timeout_secs=timeout_secs,
          )

    async def set_mute(self) -> None:
        """Toggles mute by emulating the remote control mute button.

        The receiver has no explicit mute on/off command, so the command code
        differs from the one used by get_mute().
        """
        await self.send_command(COMMAND_SIMULATE_RC5, RC5_MUTE_TOGGLE)

    async def heartbeat(self, timeout_secs: Optional[float]=None) -> int:
        """Checks that the receiver is still connected and communicating.

        Also resets the receiver's automatic standby timer.
        """
        return await self.send_command(
            COMMAND_HEARTBEAT,
            STATUS_REQUEST,
            event_name_for('heartbeat'),
            timeout_secs=timeout_secs,
          )

    async def aclose(self) -> None:
        """Disconnects, and releases the connection and all listeners."""
        connection = self.connection
        connection.off('connect', self._on_connect)
        connection.off('data', self._on_data)
        connection.off('close', self._on_close)
        connection.off('error', self._on_error)
        await connection.disconnect()
        await connection.aclose()
        self.remove_all_listeners()

    async def __aenter__(self) -> ArcamReceiverClient:
        logger.debug(f"{self}: Entering async context manager")
        return self

    async def __aexit__(
            self,
            exc_type: Optional[Type[BaseException]],
            exc_val: Optional[BaseException],
            exc_tb: Optional[TracebackType],
          ) -> None:
        logger.debug(f"{self}: Exiting async context manager, exc={exc_val}")
        await self.aclose()

    def __str__(self) -> str:
        return f"ArcamReceiverClient(connection={self.connection})"

    def __repr__(self) -> str:
        return str(self)
