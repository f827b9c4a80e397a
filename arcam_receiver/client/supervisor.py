# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Arcam receiver connection supervisor.

Owns one ArcamReceiverClient per configured host. Drives the initial connection,
reconnects with a fixed delay whenever an established connection closes, sends a
periodic heartbeat while connected, and keeps a ReceiverState current from the
receiver's change notifications.

Events emitted to the host:

    "statusChanged" (ConnectionStatus, Optional[BaseException])
    "volumeChanged" (int)
    "muteChanged"   (bool)

Status transitions:

    UNCONFIGURED -> CONNECTING -> CONNECTED <-> RECONNECTING
                         |                          |
                         +-----> DISCONNECTED <-----+

A failed initial connection is not retried unless retry_initial_connect is
configured. A failed reconnect is reported as DISCONNECTED and then retried.
"""

from __future__ import annotations

import asyncio
from asyncio import Future

from ..internal_types import *
from ..exceptions import ArcamReceiverError
from ..pkg_logging import logger
from ..util import clamp, wait_with_timeout
from ..event_emitter import ReceiverEventEmitter
from ..protocol import (
    MuteState,
    EVENT_MASTER_VOLUME_CHANGED,
    EVENT_MUTE_CHANGED,
    MIN_VOLUME,
    MAX_VOLUME,
  )
from .client_config import ArcamReceiverClientConfig
from .client_impl import ArcamReceiverClient
from .receiver_state import (
    ConnectionStatus,
    VolumeMode,
    ReceiverState,
    describe_status,
  )

EVENT_STATUS_CHANGED = 'statusChanged'
EVENT_VOLUME_CHANGED = 'volumeChanged'
EVENT_HOST_MUTE_CHANGED = 'muteChanged'

CANCEL_RETRY_SECS = 0.1

ClientFactory = Callable[[ArcamReceiverClientConfig], ArcamReceiverClient]
"""Creates an unconnected client for the host in the provided config."""

def default_client_factory(config: ArcamReceiverClientConfig) -> ArcamReceiverClient:
    return ArcamReceiverClient.create(config=config)

async def _cancel_task(task: Optional[asyncio.Task[Any]]) -> None:
    """Cancels a task and waits for it to finish. Does nothing for the calling task.

    A cancellation of the calling task propagates to the caller.
    """
    if task is None or task is asyncio.current_task():
        return
    while not task.done():
        task.cancel()
        # asyncio.wait_for can absorb a cancel that races with a completed result
        await asyncio.wait([task], timeout=CANCEL_RETRY_SECS)
    if not task.cancelled() and task.exception() is not None:
        logger.debug(f"Task {task.get_name()} failed before it was cancelled: {task.exception()}")

class ReceiverSupervisor(ReceiverEventEmitter):
    """Connection lifecycle supervisor for a single Arcam receiver."""

    config: ArcamReceiverClientConfig
    client_factory: ClientFactory

    host: Optional[str] = None
    client: Optional[ArcamReceiverClient] = None
    state: ReceiverState

    status: ConnectionStatus = ConnectionStatus.UNCONFIGURED
    status_error: Optional[BaseException] = None

    connect_task: Optional[asyncio.Task[None]] = None
    keepalive_task: Optional[asyncio.Task[None]] = None
    reconnect_handle: Optional[asyncio.TimerHandle] = None
    reconnect_task: Optional[asyncio.Task[None]] = None

    reconnect_in_flight: bool = False
    """True from the moment a reconnect timer is armed until the retried connect() settles."""

    _status_waiters: List[Future[None]]
    _closed: bool = False

    def __init__(
            self,
            config: Optional[ArcamReceiverClientConfig]=None,
            client_factory: Optional[ClientFactory]=None,
          ) -> None:
        super().__init__()
        self.config = ArcamReceiverClientConfig(base_config=config)
        self.client_factory = default_client_factory if client_factory is None else client_factory
        self.state = ReceiverState()
        self._status_waiters = []

    @property
    def status_message(self) -> str:
        return describe_status(self.status, self.host, self.status_error)

    @property
    def is_connected(self) -> bool:
        return self.status == ConnectionStatus.CONNECTED

    @property
    def volume_value(self) -> Optional[int]:
        return self.state.volume_value

    @property
    def is_muted(self) -> Optional[bool]:
        return self.state.is_muted

    # ------------------------------------------------------------------
    # Configuration and lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Starts supervising the host in the supervisor's configuration."""
        await self.configure(self.config.default_host)

    async def configure(self, host: Optional[str]) -> None:
        """Sets the receiver host to supervise.

        An empty or None host leaves the supervisor UNCONFIGURED. A new host
        tears down the previous client and starts connecting in the background;
        use wait_connected() to wait for the result. Configuring the current
        host again has no effect.
        """
        if self._closed:
            raise ArcamReceiverError(f"{self}: supervisor is closed")
        if host is not None:
            host = host.strip()
        if host == '':
            host = None
        if host is not None and host == self.host and self.client is not None:
            logger.debug(f"{self}: host unchanged; keeping current connection")
            return

        await self._teardown()
        self.host = host
        self.state = ReceiverState()

        if host is None:
            self._set_status(ConnectionStatus.UNCONFIGURED)
            return

        logger.info(f"{self}: connecting to receiver")
        try:
            client = self.client_factory(ArcamReceiverClientConfig(default_host=host, base_config=self.config))
        except ArcamReceiverError as e:
            logger.warning(f"{self}: invalid receiver host {host!r}: {e}")
            self._set_status(ConnectionStatus.DISCONNECTED, e)
            return
        self._attach(client)
        self._set_status(ConnectionStatus.CONNECTING)
        self.connect_task = asyncio.create_task(self._initial_connect(client))

    def _attach(self, client: ArcamReceiverClient) -> None:
        self.client = client
        client.on('close', self._on_client_close)
        client.on('error', self._on_client_error)
        client.on(EVENT_MASTER_VOLUME_CHANGED, self._on_master_volume_changed)
        client.on(EVENT_MUTE_CHANGED, self._on_mute_changed)

    def _detach(self, client: ArcamReceiverClient) -> None:
        client.off('close', self._on_client_close)
        client.off('error', self._on_client_error)
        client.off(EVENT_MASTER_VOLUME_CHANGED, self._on_master_volume_changed)
        client.off(EVENT_MUTE_CHANGED, self._on_mute_changed)

    async def _teardown(self) -> None:
        """Stops all timers and tasks, and releases the current client."""
        if self.reconnect_handle is not None:
            self.reconnect_handle.cancel()
            self.reconnect_handle = None
        # Tasks still running after this point find that their client is no longer current
        client = self.client
        self.client = None
        keepalive_task = self.keepalive_task
        reconnect_task = self.reconnect_task
        connect_task = self.connect_task
        self.keepalive_task = None
        self.reconnect_task = None
        self.connect_task = None
        self.reconnect_in_flight = False
        if client is not None:
            self._detach(client)
        await _cancel_task(keepalive_task)
        await _cancel_task(reconnect_task)
        await _cancel_task(connect_task)

        if client is not None:
            try:
                await client.aclose()
            except Exception:
                logger.debug(f"{self}: exception while closing client", exc_info=True)

    async def aclose(self) -> None:
        """Stops supervising and disconnects. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        await self._teardown()
        self._fail_status_waiters(ArcamReceiverError(f"{self}: supervisor is closed"))
        self.remove_all_listeners()

    async def __aenter__(self) -> ReceiverSupervisor:
        return self

    async def __aexit__(
            self,
            exc_type: Optional[Type[BaseException]],
            exc_val: Optional[BaseException],
            exc_tb: Optional[TracebackType],
          ) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def _set_status(self, status: ConnectionStatus, error: Optional[BaseException]=None) -> None:
        if status == self.status and error is self.status_error:
            return
        self.status = status
        self.status_error = error
        if status == ConnectionStatus.DISCONNECTED:
            logger.warning(f"{self}: status: {self.status_message}")
        else:
            logger.info(f"{self}: status: {self.status_message}")
        if status == ConnectionStatus.CONNECTED:
            waiters = self._status_waiters
            self._status_waiters = []
            for waiter in waiters:
                if not waiter.done():
                    waiter.set_result(None)
        elif status in (ConnectionStatus.DISCONNECTED, ConnectionStatus.UNCONFIGURED):
            self._fail_status_waiters(
                error if error is not None else ArcamReceiverError(f"Receiver {self.status_message}"))
        self.emit(EVENT_STATUS_CHANGED, status, error)

    def _fail_status_waiters(self, error: BaseException) -> None:
        waiters = self._status_waiters
        self._status_waiters = []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_exception(error)

    async def wait_connected(self, timeout_secs: Optional[float]=None) -> None:
        """Waits until the supervisor reports CONNECTED.

        Raises the connection error if a connection attempt fails first, or
        ArcamReceiverError if no host is configured.
        """
        if self.status == ConnectionStatus.CONNECTED:
            return
        if self.status == ConnectionStatus.UNCONFIGURED:
            raise ArcamReceiverError("Receiver host is not configured")
        if self.status == ConnectionStatus.DISCONNECTED and not self.reconnect_in_flight:
            raise self.status_error if self.status_error is not None else ArcamReceiverError(self.status_message)
        waiter: Future[None] = asyncio.get_running_loop().create_future()
        self._status_waiters.append(waiter)
        try:
            await wait_with_timeout(
                waiter, timeout_secs, f"Receiver not connected within {timeout_secs} seconds")
        finally:
            if waiter in self._status_waiters:
                self._status_waiters.remove(waiter)

    # ------------------------------------------------------------------
    # Connect, reconnect and keepalive
    # ------------------------------------------------------------------

    async def _initial_connect(self, client: ArcamReceiverClient) -> None:
        try:
            await client.connect()
        except Exception as e:
            logger.debug(f"{self}: initial connect failed", exc_info=True)
            if self.client is not client:
                return
            self._set_status(ConnectionStatus.DISCONNECTED, e)
            if self.config.retry_initial_connect:
                self._arm_reconnect()
            return
        await self._on_connected(client)

    async def _on_connected(self, client: ArcamReceiverClient) -> None:
        """Refreshes receiver state, then starts the keepalive and reports CONNECTED."""
        try:
            await self._bootstrap(client)
        except Exception as e:
            logger.warning(f"{self}: unable to read initial receiver state: {e}")
        if self.client is not client or not client.is_connected:
            # Lost the connection (or the client was replaced) while bootstrapping
            return
        self._start_keepalive(client)
        self._set_status(ConnectionStatus.CONNECTED)

    async def _bootstrap(self, client: ArcamReceiverClient) -> None:
        """Queries volume and mute concurrently.

        ReceiverState is updated by the change event listeners as the replies arrive.
        """
        timeout_secs = self.config.timeout_secs
        volume, mute = await asyncio.gather(
            client.get_volume(timeout_secs=timeout_secs),
            client.get_mute(timeout_secs=timeout_secs),
          )
        logger.debug(f"{self}: bootstrap: volume={volume}, mute=0x{mute:02x}")

    def _on_client_close(self, had_error: bool=False) -> None:
        logger.info(f"{self}: connection closed (had_error={had_error})")
        self._stop_keepalive()
        if self._closed or self.client is None:
            return
        self._arm_reconnect()

    def _on_client_error(self, error: BaseException) -> None:
        # Always followed by a close event, which drives the reconnect
        logger.debug(f"{self}: connection error: {error}")

    def _arm_reconnect(self) -> None:
        if self.reconnect_in_flight:
            logger.debug(f"{self}: reconnect already pending")
            return
        self.reconnect_in_flight = True
        self._set_status(ConnectionStatus.RECONNECTING)
        self.reconnect_handle = asyncio.get_running_loop().call_later(
            self.config.reconnect_delay_secs,
            self._start_reconnect)

    def _start_reconnect(self) -> None:
        self.reconnect_handle = None
        client = self.client
        if client is None or self._closed:
            self.reconnect_in_flight = False
            return
        self.reconnect_task = asyncio.create_task(self._reconnect(client))

    async def _reconnect(self, client: ArcamReceiverClient) -> None:
        logger.info(f"{self}: attempting to reconnect")
        try:
            await client.connect()
        except Exception as e:
            logger.debug(f"{self}: reconnect failed", exc_info=True)
            if self.client is not client:
                return
            self.reconnect_in_flight = False
            self._set_status(ConnectionStatus.DISCONNECTED, e)
            self._arm_reconnect()
            return
        if self.client is not client:
            return
        self.reconnect_in_flight = False
        await self._on_connected(client)

    def _start_keepalive(self, client: ArcamReceiverClient) -> None:
        self._stop_keepalive()
        self.keepalive_task = asyncio.create_task(self._keepalive_loop(client))

    def _stop_keepalive(self) -> None:
        task = self.keepalive_task
        self.keepalive_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _keepalive_loop(self, client: ArcamReceiverClient) -> None:
        """Sends a heartbeat every keepalive_secs. Failures are logged only.

        Exits on its own as soon as it is no longer the supervisor's keepalive task.
        """
        this_task = asyncio.current_task()
        while self.keepalive_task is this_task:
            await asyncio.sleep(self.config.keepalive_secs)
            if self.keepalive_task is not this_task or self.client is not client:
                break
            try:
                value = await client.heartbeat(timeout_secs=self.config.timeout_secs)
                logger.debug(f"Keep-alive: heartbeat == {value}")
            except Exception as e:
                logger.warning(f"{self}: keep-alive heartbeat failed: {e}")

    # ------------------------------------------------------------------
    # Receiver change notifications
    # ------------------------------------------------------------------

    def _on_master_volume_changed(self, value: int) -> None:
        old_volume_value = self.state.volume_value
        self.state.volume_value = value
        if old_volume_value != value:
            logger.debug(f"{self}: volume {old_volume_value} -> {value}")
            self.emit(EVENT_VOLUME_CHANGED, value)

    def _on_mute_changed(self, value: int) -> None:
        old_is_muted = self.state.is_muted
        is_muted = MuteState.is_muted(value)
        self.state.is_muted = is_muted
        if old_is_muted != is_muted:
            logger.debug(f"{self}: mute {old_is_muted} -> {is_muted}")
            self.emit(EVENT_HOST_MUTE_CHANGED, is_muted)

    # ------------------------------------------------------------------
    # Host-facing operations
    # ------------------------------------------------------------------

    def _connected_client(self) -> ArcamReceiverClient:
        if self.client is None or self.status != ConnectionStatus.CONNECTED:
            raise ArcamReceiverError(f"Receiver is not connected ({self.status_message})")
        return self.client

    async def get_volume(self) -> int:
        return await self._connected_client().get_volume(timeout_secs=self.config.timeout_secs)

    async def set_volume(self, mode: Union[VolumeMode, str], value: int) -> int:
        """Sets the volume, clamped to [0, 99].

        In relative mode, value is added to the last observed volume. The
        observed state is updated only when the receiver reports the change.

        Returns:
            The volume that was sent to the receiver.
        """
        client = self._connected_client()
        volume_mode = VolumeMode.parse(mode)
        if volume_mode == VolumeMode.RELATIVE:
            if self.state.volume_value is None:
                raise ArcamReceiverError("Current volume is unknown; cannot apply a relative change")
            new_volume = self.state.volume_value + value
        else:
            new_volume = value
        new_volume = clamp(new_volume, MIN_VOLUME, MAX_VOLUME)
        logger.debug(f"{self}: set_volume: mode={volume_mode.value} value={value} -> {new_volume}")
        await client.set_volume(new_volume)
        return new_volume

    async def get_mute(self) -> bool:
        raw_value = await self._connected_client().get_mute(timeout_secs=self.config.timeout_secs)
        return MuteState.is_muted(raw_value)

    async def toggle_mute(self) -> bool:
        """Flips the mute state.

        Returns:
            The desired mute state: the negation of the last observed state.
        """
        client = self._connected_client()
        desired = not self.state.is_muted
        logger.debug(f"{self}: toggle_mute: is_muted={self.state.is_muted} -> {desired}")
        await client.set_mute()
        return desired

    async def set_mute(self, target: Union[bool, str]) -> bool:
        """Toggles mute if the last observed state differs from target ("on"/"off" or bool)."""
        if isinstance(target, str):
            if target.lower() not in ('on', 'off'):
                raise ArcamReceiverError(f"Unknown mute target {target!r}; expected 'on' or 'off'")
            target = target.lower() == 'on'
        if self.state.is_muted is not None and self.state.is_muted == target:
            self._connected_client()
            logger.debug(f"{self}: set_mute: already {'muted' if target else 'unmuted'}")
            return target
        return await self.toggle_mute()

    async def heartbeat(self) -> int:
        return await self._connected_client().heartbeat(timeout_secs=self.config.timeout_secs)

    def __str__(self) -> str:
        return f"ReceiverSupervisor(host={self.host!r})"

    def __repr__(self) -> str:
        return str(self)
