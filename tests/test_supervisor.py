from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Optional, Tuple

import pytest

from arcam_receiver import (
    ArcamReceiverClientConfig,
    ArcamReceiverError,
    ConnectError,
    ConnectionStatus,
    ReceiverSupervisor,
    arcam_receiver_connect,
)
from arcam_receiver.client import describe_status
from arcam_receiver.protocol import Frame, encode_response

from fakes import FakeClientFactory, FakeConnection


def make_config(**kwargs: Any) -> ArcamReceiverClientConfig:
    settings: dict = dict(
        default_host="receiver.local",
        timeout_secs=0.5,
        keepalive_secs=60.0,
        reconnect_delay_secs=0.01,
    )
    settings.update(kwargs)
    return ArcamReceiverClientConfig(**settings)


def record_statuses(supervisor: ReceiverSupervisor) -> List[Tuple[ConnectionStatus, Optional[BaseException]]]:
    statuses: List[Tuple[ConnectionStatus, Optional[BaseException]]] = []
    supervisor.on("statusChanged", lambda status, error: statuses.append((status, error)))
    return statuses


async def wait_until(predicate: Any, timeout: float = 2.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached before timeout")
        await asyncio.sleep(0.005)


def sent_volumes(connection: FakeConnection) -> List[int]:
    return [f.payload[0] for f in connection.requests() if f.command_code == 0x0D and f.payload != b"\xf0"]


async def start_connected(
        factory: FakeClientFactory,
        config: Optional[ArcamReceiverClientConfig] = None,
      ) -> ReceiverSupervisor:
    supervisor = ReceiverSupervisor(config=config or make_config(), client_factory=factory)
    await supervisor.start()
    await supervisor.wait_connected(timeout_secs=2.0)
    return supervisor


def test_start_connects_and_bootstraps_state() -> None:
    async def _run() -> None:
        factory = FakeClientFactory()
        supervisor = ReceiverSupervisor(config=make_config(), client_factory=factory)
        statuses = record_statuses(supervisor)
        volumes: List[int] = []
        mutes: List[bool] = []
        supervisor.on("volumeChanged", volumes.append)
        supervisor.on("muteChanged", mutes.append)

        await supervisor.start()
        await supervisor.wait_connected(timeout_secs=2.0)

        assert supervisor.is_connected
        assert [s for s, _ in statuses] == [ConnectionStatus.CONNECTING, ConnectionStatus.CONNECTED]
        assert supervisor.volume_value == 30
        assert supervisor.is_muted is False
        assert volumes == [30]
        assert mutes == [False]
        assert supervisor.status_message == "connected to 'receiver.local'"
        await supervisor.aclose()

    asyncio.run(_run())


def test_set_volume_clamps() -> None:
    async def _run() -> None:
        factory = FakeClientFactory()
        supervisor = await start_connected(factory)

        assert await supervisor.set_volume("absolute", 150) == 99
        assert await supervisor.set_volume("absolute", -5) == 0
        assert sent_volumes(factory.connection) == [99, 0]
        await supervisor.aclose()

    asyncio.run(_run())


def test_set_volume_relative() -> None:
    async def _run() -> None:
        factory = FakeClientFactory()
        supervisor = await start_connected(factory)
        factory.connection.receive(encode_response(0x0D, payload=[97]))
        assert supervisor.volume_value == 97

        assert await supervisor.set_volume("relative", 5) == 99
        await wait_until(lambda: supervisor.volume_value == 99)
        assert await supervisor.set_volume("relative", -10) == 89
        assert sent_volumes(factory.connection) == [99, 89]
        await supervisor.aclose()

    asyncio.run(_run())


def test_set_volume_does_not_update_state_until_notified() -> None:
    async def _run() -> None:
        factory = FakeClientFactory()
        supervisor = await start_connected(factory)
        factory.connection.auto_reply = False

        await supervisor.set_volume("absolute", 40)

        assert supervisor.volume_value == 30
        factory.connection.receive(encode_response(0x0D, payload=[40]))
        assert supervisor.volume_value == 40
        await supervisor.aclose()

    asyncio.run(_run())


def test_relative_volume_requires_known_volume() -> None:
    async def _run() -> None:
        factory = FakeClientFactory()
        factory.auto_reply = False
        supervisor = await start_connected(factory, make_config(timeout_secs=0.02))

        assert supervisor.volume_value is None
        with pytest.raises(ArcamReceiverError):
            await supervisor.set_volume("relative", 1)
        with pytest.raises(ArcamReceiverError):
            await supervisor.set_volume("sideways", 1)
        await supervisor.aclose()

    asyncio.run(_run())


def test_volume_changed_only_on_change() -> None:
    async def _run() -> None:
        factory = FakeClientFactory()
        supervisor = await start_connected(factory)
        volumes: List[int] = []
        supervisor.on("volumeChanged", volumes.append)

        factory.connection.receive(encode_response(0x0D, payload=[30]))
        factory.connection.receive(encode_response(0x0D, payload=[31]))
        factory.connection.receive(encode_response(0x0D, payload=[31]))

        assert volumes == [31]
        await supervisor.aclose()

    asyncio.run(_run())


def test_toggle_and_set_mute() -> None:
    async def _run() -> None:
        factory = FakeClientFactory()
        supervisor = await start_connected(factory)
        connection = factory.connection
        rc5 = Frame(0x08, b"\x10\x0d")

        assert await supervisor.toggle_mute() is True
        await wait_until(lambda: supervisor.is_muted is True)
        assert connection.requests().count(rc5) == 1

        # already muted; nothing is sent
        assert await supervisor.set_mute("on") is True
        assert connection.requests().count(rc5) == 1

        assert await supervisor.set_mute("off") is False
        await wait_until(lambda: supervisor.is_muted is False)
        assert connection.requests().count(rc5) == 2

        with pytest.raises(ArcamReceiverError):
            await supervisor.set_mute("maybe")
        assert await supervisor.get_mute() is False
        await supervisor.aclose()

    asyncio.run(_run())


def test_operations_require_connection() -> None:
    async def _run() -> None:
        supervisor = ReceiverSupervisor(config=make_config(default_host=None), client_factory=FakeClientFactory())
        await supervisor.start()

        assert supervisor.status == ConnectionStatus.UNCONFIGURED
        assert supervisor.status_message == "not configured"
        with pytest.raises(ArcamReceiverError):
            await supervisor.get_volume()
        with pytest.raises(ArcamReceiverError):
            await supervisor.toggle_mute()
        with pytest.raises(ArcamReceiverError):
            await supervisor.wait_connected()
        await supervisor.aclose()

    asyncio.run(_run())


def test_double_close_reconnects_once() -> None:
    async def _run() -> None:
        factory = FakeClientFactory()
        supervisor = await start_connected(factory)
        statuses = record_statuses(supervisor)
        connection = factory.connection

        connection.drop()
        connection.drop(had_error=True)
        await wait_until(lambda: supervisor.is_connected)
        await asyncio.sleep(0.05)

        assert connection.connect_calls == 2
        assert [s for s, _ in statuses] == [ConnectionStatus.RECONNECTING, ConnectionStatus.CONNECTED]
        await supervisor.aclose()

    asyncio.run(_run())


def test_reconnect_refreshes_state() -> None:
    async def _run() -> None:
        factory = FakeClientFactory()
        supervisor = await start_connected(factory)
        volumes: List[int] = []
        supervisor.on("volumeChanged", volumes.append)
        connection = factory.connection

        # changed while the connection was down
        connection.volume = 70
        connection.mute_raw = 0x00
        connection.drop()
        await wait_until(lambda: supervisor.is_connected and supervisor.volume_value == 70)

        assert supervisor.is_muted is True
        assert volumes == [70]
        assert len(factory.connections) == 1
        await supervisor.aclose()

    asyncio.run(_run())


def test_failed_initial_connect_is_not_retried() -> None:
    async def _run() -> None:
        factory = FakeClientFactory()
        factory.initial_connect_errors = [ConnectError("connection refused")]
        supervisor = ReceiverSupervisor(config=make_config(), client_factory=factory)
        statuses = record_statuses(supervisor)

        await supervisor.start()
        with pytest.raises(ConnectError):
            await supervisor.wait_connected(timeout_secs=2.0)
        await asyncio.sleep(0.05)

        assert factory.connection.connect_calls == 1
        assert [s for s, _ in statuses] == [ConnectionStatus.CONNECTING, ConnectionStatus.DISCONNECTED]
        assert supervisor.status_message == "error: connection refused"
        await supervisor.aclose()

    asyncio.run(_run())


def test_failed_initial_connect_retried_when_configured() -> None:
    async def _run() -> None:
        factory = FakeClientFactory()
        factory.initial_connect_errors = [ConnectError("connection refused")]
        supervisor = ReceiverSupervisor(config=make_config(retry_initial_connect=True), client_factory=factory)
        statuses = record_statuses(supervisor)

        await supervisor.start()
        await wait_until(lambda: supervisor.is_connected)

        assert factory.connection.connect_calls == 2
        assert [s for s, _ in statuses] == [
            ConnectionStatus.CONNECTING,
            ConnectionStatus.DISCONNECTED,
            ConnectionStatus.RECONNECTING,
            ConnectionStatus.CONNECTED,
        ]
        await supervisor.aclose()

    asyncio.run(_run())


def test_failed_reconnect_reports_and_retries() -> None:
    async def _run() -> None:
        factory = FakeClientFactory()
        supervisor = await start_connected(factory)
        statuses = record_statuses(supervisor)
        connection = factory.connection
        connection.connect_errors = [ConnectError("host unreachable"), ConnectError("host unreachable")]

        connection.drop()
        await wait_until(lambda: supervisor.is_connected)

        assert connection.connect_calls == 4
        assert [s for s, _ in statuses] == [
            ConnectionStatus.RECONNECTING,
            ConnectionStatus.DISCONNECTED,
            ConnectionStatus.RECONNECTING,
            ConnectionStatus.DISCONNECTED,
            ConnectionStatus.RECONNECTING,
            ConnectionStatus.CONNECTED,
        ]
        assert isinstance(statuses[1][1], ConnectError)
        await supervisor.aclose()

    asyncio.run(_run())


def test_keepalive_sends_heartbeats() -> None:
    async def _run() -> None:
        factory = FakeClientFactory()
        supervisor = await start_connected(factory, make_config(keepalive_secs=0.01))

        await wait_until(lambda: sum(1 for f in factory.connection.requests() if f.command_code == 0x25) >= 2)

        assert supervisor.is_connected
        await supervisor.aclose()

    asyncio.run(_run())


def heartbeat_count(connection: FakeConnection) -> int:
    return sum(1 for f in connection.requests() if f.command_code == 0x25)


def keepalive_tasks() -> List["asyncio.Task[Any]"]:
    return [t for t in asyncio.all_tasks() if t.get_coro().__name__ == "_keepalive_loop"]


def test_keepalive_cancel_racing_reply_stops_loop() -> None:
    async def _run() -> None:
        factory = FakeClientFactory()
        supervisor = await start_connected(factory, make_config(keepalive_secs=0.01))
        connection = factory.connection
        connection.auto_reply = False
        client = supervisor.client
        assert client is not None

        await wait_until(lambda: client.pending_count("heartbeat") == 1)
        task = supervisor.keepalive_task
        assert task is not None
        # reply and cancel in the same loop iteration
        connection.receive(encode_response(0x25, payload=[0x00]))
        task.cancel()
        await asyncio.sleep(0.05)

        assert task.done()
        count = heartbeat_count(connection)
        await asyncio.sleep(0.05)
        assert heartbeat_count(connection) == count
        await asyncio.wait_for(supervisor.aclose(), 2.0)

    asyncio.run(_run())


def test_close_with_heartbeat_in_flight_completes() -> None:
    async def _run() -> None:
        factory = FakeClientFactory()
        supervisor = await start_connected(factory, make_config(keepalive_secs=0.01))
        factory.connection.reply_delay = 0.02
        client = supervisor.client
        assert client is not None

        await wait_until(lambda: client.pending_count("heartbeat") == 1)
        await asyncio.wait_for(supervisor.aclose(), 2.0)

        assert supervisor.keepalive_task is None
        assert keepalive_tasks() == []

    asyncio.run(_run())


def test_reconnect_runs_a_single_keepalive_loop() -> None:
    async def _run() -> None:
        factory = FakeClientFactory()
        supervisor = await start_connected(factory, make_config(keepalive_secs=0.01))
        await wait_until(lambda: heartbeat_count(factory.connection) >= 1)

        factory.connection.drop()
        await wait_until(lambda: supervisor.is_connected and factory.connection.connect_calls == 2)
        await asyncio.sleep(0.05)

        assert keepalive_tasks() == [supervisor.keepalive_task]
        await supervisor.aclose()

    asyncio.run(_run())


def test_cancelling_close_propagates_to_caller() -> None:
    async def _run() -> None:
        factory = FakeClientFactory()
        supervisor = await start_connected(factory, make_config(keepalive_secs=0.01))

        closer = asyncio.create_task(supervisor.aclose())
        await asyncio.sleep(0)
        closer.cancel()

        with pytest.raises(asyncio.CancelledError):
            await closer

    asyncio.run(_run())


def test_keepalive_failure_is_only_logged(caplog: pytest.LogCaptureFixture) -> None:
    async def _run() -> None:
        factory = FakeClientFactory()
        supervisor = await start_connected(factory, make_config(keepalive_secs=0.01, timeout_secs=0.02))
        factory.connection.auto_reply = False

        await wait_until(lambda: any("keep-alive heartbeat failed" in r.getMessage() for r in caplog.records))

        assert supervisor.is_connected
        assert factory.connection.connect_calls == 1
        await supervisor.aclose()

    with caplog.at_level(logging.WARNING, logger="arcam_receiver"):
        asyncio.run(_run())


def test_configure_same_host_is_noop_and_new_host_resets_state() -> None:
    async def _run() -> None:
        factory = FakeClientFactory()
        supervisor = await start_connected(factory)
        assert supervisor.volume_value == 30

        await supervisor.configure("receiver.local")
        assert len(factory.connections) == 1
        assert supervisor.is_connected

        await supervisor.configure("other.local")
        assert len(factory.connections) == 2
        assert supervisor.host == "other.local"
        assert supervisor.volume_value is None
        assert supervisor.status == ConnectionStatus.CONNECTING
        await supervisor.wait_connected(timeout_secs=2.0)
        assert supervisor.volume_value == 30

        await supervisor.configure("  ")
        assert supervisor.status == ConnectionStatus.UNCONFIGURED
        await supervisor.aclose()

    asyncio.run(_run())


def test_close_stops_reconnecting() -> None:
    async def _run() -> None:
        factory = FakeClientFactory()
        supervisor = await start_connected(factory, make_config(reconnect_delay_secs=0.05))
        connection = factory.connection

        connection.drop()
        assert supervisor.status == ConnectionStatus.RECONNECTING
        await supervisor.aclose()
        await asyncio.sleep(0.1)

        assert connection.connect_calls == 1

    asyncio.run(_run())


def test_arcam_receiver_connect() -> None:
    async def _run() -> None:
        factory = FakeClientFactory()
        async with await arcam_receiver_connect(
                "receiver.local", config=make_config(), client_factory=factory) as supervisor:
            assert supervisor.is_connected
            assert await supervisor.get_volume() == 30
            assert await supervisor.heartbeat() == 0

    asyncio.run(_run())


def test_describe_status() -> None:
    assert describe_status(ConnectionStatus.UNCONFIGURED) == "not configured"
    assert describe_status(ConnectionStatus.CONNECTING, "av") == "connecting to 'av'"
    assert describe_status(ConnectionStatus.RECONNECTING, "av") == "reconnecting to 'av'"
    assert describe_status(ConnectionStatus.DISCONNECTED, "av", ConnectError("refused")) == "error: refused"
