# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Arcam receiver TCP/IP connection.

Owns exactly one TCP stream to the receiver at a time and translates its
lifecycle into events:

    "connect"            The stream was opened.
    "data" (bytes)       Bytes were received. Not aligned to frame boundaries.
    "error" (exception)  A read on the stream failed. Always followed by "close".
    "close" (had_error)  A stream that had been opened has closed.

A fresh stream is created on every connect(); an old stream is never reopened.
"""

from __future__ import annotations

import socket
import asyncio

from ..internal_types import *
from ..exceptions import ArcamReceiverError, ConnectError, TransportError
from ..constants import READ_CHUNK_SIZE
from ..pkg_logging import logger
from ..event_emitter import ReceiverEventEmitter

from .client_config import ArcamReceiverClientConfig
from .resolve_host import resolve_receiver_tcp_host

def enable_tcp_keepalive(sock: socket.socket, interval_secs: float) -> None:
    """Turns on TCP keepalive probes so a dead peer is detected on an otherwise idle connection."""
    interval = max(1, int(interval_secs))
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
    if hasattr(socket, 'TCP_KEEPIDLE'):
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_KEEPIDLE, interval)
    elif hasattr(socket, 'TCP_KEEPALIVE'):
        # macOS spelling of TCP_KEEPIDLE
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_KEEPALIVE, interval)
    if hasattr(socket, 'TCP_KEEPINTVL'):
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_KEEPINTVL, interval)

class TcpReceiverConnection(ReceiverEventEmitter):
    """A TCP/IP stream to an Arcam receiver, with a uniform event interface."""

    config: ArcamReceiverClientConfig
    resolved_host: str
    resolved_port: int

    reader: Optional[asyncio.StreamReader] = None
    writer: Optional[asyncio.StreamWriter] = None
    read_task: Optional[asyncio.Task[None]] = None

    _connect_in_flight: bool = False

    def __init__(
            self,
            host: Optional[str]=None,
            port: Optional[int]=None,
            *,
            config: Optional[ArcamReceiverClientConfig]=None,
          ) -> None:
        """Initializes the connection. Does not connect.

        Args:
            host: The hostname or IPV4 address of the receiver, optionally
                  prefixed with "tcp://" and/or suffixed with ":<port>".
                  If None, the host is taken from config.
            port: The default TCP/IP port. If None, the port is taken from config.
            config: A base configuration. If None, a default config is created.
        """
        super().__init__()
        self.config = ArcamReceiverClientConfig(
            default_host=host,
            default_port=port,
            base_config=config,
          )
        self.resolved_host, self.resolved_port = resolve_receiver_tcp_host(config=self.config)

    @property
    def host(self) -> str:
        return self.resolved_host

    @property
    def port(self) -> int:
        return self.resolved_port

    @property
    def is_connected(self) -> bool:
        return self.writer is not None and not self.writer.is_closing()

    @property
    def is_connecting(self) -> bool:
        return self._connect_in_flight

    async def connect(self) -> None:
        """Opens a fresh TCP stream to the receiver, with timeout.

        Any previous stream is released first. Raises ConnectError if the
        connection cannot be established.
        """
        if self._connect_in_flight:
            raise ArcamReceiverError(f"{self}: connect() is already in progress")
        self._connect_in_flight = True
        try:
            await self._release_stream()
            logger.debug(f"Connecting to receiver at {self.host}:{self.port}")
            try:
                reader, writer = await asyncio.wait_for(
                    asyncio.open_connection(self.host, self.port),
                    timeout=self.config.connect_timeout_secs)
            except asyncio.TimeoutError as e:
                raise ConnectError(
                    f"Timeout connecting to receiver at {self.host}:{self.port} "
                    f"after {self.config.connect_timeout_secs} seconds") from e
            except OSError as e:
                raise ConnectError(f"Could not connect to receiver at {self.host}:{self.port}: {e}") from e

            sock = writer.get_extra_info('socket')
            if sock is not None:
                try:
                    enable_tcp_keepalive(sock, self.config.tcp_keepalive_secs)
                except OSError:
                    logger.debug("Unable to configure TCP keepalive", exc_info=True)

            self.reader = reader
            self.writer = writer
            self.read_task = asyncio.create_task(self._read_loop(reader, writer))
        finally:
            self._connect_in_flight = False
        logger.info(f"{self}: connected")
        self.emit('connect')

    async def _read_loop(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        """Delivers received bytes as "data" events until the stream ends."""
        had_error = False
        try:
            while True:
                data = await reader.read(READ_CHUNK_SIZE)
                if len(data) == 0:
                    logger.debug(f"{self}: end of stream")
                    break
                logger.debug(f"Read {len(data)} bytes: {data.hex(' ')}")
                self.emit('data', data)
        except asyncio.CancelledError:
            # The stream is being replaced or released; no close event
            raise
        except Exception as e:
            had_error = True
            logger.debug(f"{self}: read failed", exc_info=True)
            self.emit('error', TransportError(f"Read from receiver at {self.host}:{self.port} failed: {e}"))
        try:
            writer.close()
        except Exception:
            logger.debug("Exception while closing writer", exc_info=True)
        if self.writer is writer:
            self.reader = None
            self.writer = None
            self.read_task = None
        logger.info(f"{self}: connection closed (had_error={had_error})")
        self.emit('close', had_error)

    async def write(self, data: Union[bytes, bytearray, memoryview]) -> None:
        """Writes bytes to the receiver and waits until they are accepted into the send buffer.

        Raises TransportError if the stream is not open or the write fails.
        """
        writer = self.writer
        if writer is None or writer.is_closing():
            raise TransportError(f"{self}: not connected")
        logger.debug(f"Writing {len(data)} bytes: {bytes(data).hex(' ')}")
        try:
            writer.write(data)
            await writer.drain()
        except (OSError, RuntimeError) as e:
            raise TransportError(f"Write to receiver at {self.host}:{self.port} failed: {e}") from e

    async def disconnect(self) -> None:
        """Half-closes the stream (flush, then close). Safe to call when not connected; never raises.

        The read loop observes the end of stream and emits "close".
        """
        writer = self.writer
        if writer is None or writer.is_closing():
            return
        logger.debug(f"{self}: disconnecting")
        try:
            if writer.can_write_eof():
                await writer.drain()
                writer.write_eof()
        except Exception:
            logger.debug("Exception while flushing stream", exc_info=True)
        try:
            writer.close()
            await writer.wait_closed()
        except Exception:
            logger.debug("Exception while waiting for writer to close", exc_info=True)

    async def _release_stream(self) -> None:
        """Silently discards the current stream, if any, without emitting "close"."""
        read_task = self.read_task
        writer = self.writer
        self.read_task = None
        self.reader = None
        self.writer = None
        if read_task is not None and not read_task.done():
            read_task.cancel()
            await asyncio.wait([read_task])
        if writer is not None:
            try:
                writer.close()
                await writer.wait_closed()
            except Exception:
                logger.debug("Exception while releasing previous stream", exc_info=True)

    async def aclose(self) -> None:
        """Releases the stream and all listeners."""
        await self._release_stream()
        self.remove_all_listeners()

    def __str__(self) -> str:
        return f"TcpReceiverConnection({self.host}:{self.port})"

    def __repr__(self) -> str:
        return str(self)
