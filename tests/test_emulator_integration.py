from __future__ import annotations

import asyncio
from typing import Any, List

import pytest

from arcam_receiver import (
    ArcamReceiverClient,
    ArcamReceiverClientConfig,
    ArcamReceiverError,
    ConnectError,
    ConnectionStatus,
    NegativeAcknowledgementError,
    TcpReceiverConnection,
    TransportError,
    arcam_receiver_connect,
)
from arcam_receiver.client import EVENT_COMMAND_REJECTED
from arcam_receiver.emulator import ArcamReceiverEmulator
from arcam_receiver.protocol import encode_request


def make_config(**kwargs: Any) -> ArcamReceiverClientConfig:
    settings: dict = dict(
        timeout_secs=2.0,
        connect_timeout_secs=2.0,
        reconnect_delay_secs=0.05,
    )
    settings.update(kwargs)
    return ArcamReceiverClientConfig(**settings)


def start_emulator(**kwargs: Any) -> ArcamReceiverEmulator:
    return ArcamReceiverEmulator(bind_addr="127.0.0.1", port=0, **kwargs)


def make_client(emulator: ArcamReceiverEmulator) -> ArcamReceiverClient:
    return ArcamReceiverClient.create("127.0.0.1", emulator.port, config=make_config())


async def wait_until(predicate: Any, timeout: float = 3.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached before timeout")
        await asyncio.sleep(0.01)


def test_client_queries_and_sets_volume() -> None:
    async def _run() -> None:
        async with start_emulator(initial_volume=30) as emulator:
            async with make_client(emulator) as client:
                await client.connect()
                assert client.is_connected
                volumes: List[int] = []
                client.on("masterVolumeChanged", volumes.append)

                assert await client.get_volume(timeout_secs=2.0) == 30
                assert await client.get_mute(timeout_secs=2.0) == 0x01
                assert await client.heartbeat(timeout_secs=2.0) == 0x00

                await client.set_volume(45)
                await wait_until(lambda: 45 in volumes)
                assert emulator.volume == 45

    asyncio.run(_run())


def test_rejected_commands() -> None:
    async def _run() -> None:
        async with start_emulator() as emulator:
            async with make_client(emulator) as client:
                await client.connect()
                rejections: List[NegativeAcknowledgementError] = []
                client.on(EVENT_COMMAND_REJECTED, rejections.append)

                # volume out of range
                with pytest.raises(NegativeAcknowledgementError) as exc_info:
                    await client.send_command(0x0D, 100, await_event="masterVolumeChanged", timeout_secs=2.0)
                assert exc_info.value.answer_code == 0x84

                # unknown command
                await client.send_command(0x1D, 0xF0)
                # zone 2
                await client.connection.write(encode_request(0x0D, b"\xf0", zone=0x02))
                await wait_until(lambda: len(rejections) == 3)

                assert [(e.command_code, e.answer_code) for e in rejections] == [
                    (0x0D, 0x84),
                    (0x1D, 0x83),
                    (0x0D, 0x82),
                ]
                assert emulator.volume == 30

    asyncio.run(_run())


def test_change_notifications_reach_every_session() -> None:
    async def _run() -> None:
        async with start_emulator() as emulator:
            async with make_client(emulator) as first, make_client(emulator) as second:
                await first.connect()
                await second.connect()
                await wait_until(lambda: len(emulator.sessions) == 2)
                seen: List[int] = []
                second.on("masterVolumeChanged", seen.append)

                await first.set_volume(22)
                await wait_until(lambda: seen == [22])

                emulator.set_volume(23)
                await wait_until(lambda: seen == [22, 23])

    asyncio.run(_run())


def test_connection_closed_by_receiver() -> None:
    async def _run() -> None:
        async with start_emulator() as emulator:
            connection = TcpReceiverConnection("127.0.0.1", emulator.port, config=make_config())
            closes: List[bool] = []
            connection.on("close", closes.append)
            await connection.connect()
            await wait_until(lambda: len(emulator.sessions) == 1)

            emulator.drop_sessions()
            await wait_until(lambda: closes == [False])

            assert not connection.is_connected
            await connection.aclose()

    asyncio.run(_run())


def test_connect_failure() -> None:
    async def _run() -> None:
        emulator = start_emulator()
        await emulator.start()
        port = emulator.port
        await emulator.close_and_wait()
        connection = TcpReceiverConnection("127.0.0.1", port, config=make_config())
        events: List[str] = []
        connection.on("connect", lambda: events.append("connect"))
        connection.on("close", lambda had_error: events.append("close"))

        with pytest.raises(ConnectError):
            await connection.connect()

        assert events == []
        assert not connection.is_connected
        await connection.aclose()

    asyncio.run(_run())


def test_supervisor_end_to_end() -> None:
    async def _run() -> None:
        async with start_emulator(initial_volume=40, initial_is_muted=True) as emulator:
            host = f"127.0.0.1:{emulator.port}"
            async with await arcam_receiver_connect(host, config=make_config()) as supervisor:
                assert supervisor.volume_value == 40
                assert supervisor.is_muted is True

                assert await supervisor.set_volume("relative", -15) == 25
                await wait_until(lambda: supervisor.volume_value == 25)

                assert await supervisor.set_mute("off") is False
                await wait_until(lambda: supervisor.is_muted is False)
                assert emulator.is_muted is False

                # front panel change
                emulator.set_muted(True)
                await wait_until(lambda: supervisor.is_muted is True)

    asyncio.run(_run())


def test_supervisor_reconnects_after_outage() -> None:
    async def _run() -> None:
        async with start_emulator() as emulator:
            host = f"127.0.0.1:{emulator.port}"
            async with await arcam_receiver_connect(host, config=make_config()) as supervisor:
                statuses: List[ConnectionStatus] = []
                supervisor.on("statusChanged", lambda status, error: statuses.append(status))
                assert supervisor.volume_value == 30

                emulator.drop_sessions()
                # changed while no session is connected; picked up by the refresh after reconnecting
                emulator.set_volume(55)
                await wait_until(lambda: supervisor.is_connected and supervisor.volume_value == 55)

                assert statuses == [ConnectionStatus.RECONNECTING, ConnectionStatus.CONNECTED]
                assert await supervisor.get_volume() == 55

    asyncio.run(_run())


def test_connect_while_connecting_is_rejected() -> None:
    async def _run() -> None:
        async with start_emulator() as emulator:
            connection = TcpReceiverConnection("127.0.0.1", emulator.port, config=make_config())
            connects: List[str] = []
            connection.on("connect", lambda: connects.append("connect"))

            first = asyncio.create_task(connection.connect())
            await asyncio.sleep(0)
            assert connection.is_connecting

            with pytest.raises(ArcamReceiverError):
                await connection.connect()

            await first
            assert not connection.is_connecting
            assert connection.is_connected
            assert connects == ["connect"]
            await connection.aclose()

    asyncio.run(_run())


def test_disconnect_is_silent_when_not_connected() -> None:
    async def _run() -> None:
        async with start_emulator() as emulator:
            connection = TcpReceiverConnection("127.0.0.1", emulator.port, config=make_config())
            events: List[str] = []
            connection.on("close", lambda had_error: events.append("close"))
            connection.on("error", lambda error: events.append("error"))

            # never opened
            await connection.disconnect()
            assert events == []

            await connection.connect()
            await connection.disconnect()
            await wait_until(lambda: events == ["close"])

            # already closed
            await connection.disconnect()
            await asyncio.sleep(0.05)
            assert events == ["close"]
            await connection.aclose()

    asyncio.run(_run())


def test_write_after_close_raises() -> None:
    async def _run() -> None:
        async with start_emulator() as emulator:
            connection = TcpReceiverConnection("127.0.0.1", emulator.port, config=make_config())
            closes: List[bool] = []
            connection.on("close", closes.append)

            with pytest.raises(TransportError):
                await connection.write(encode_request(0x0D, b"\xf0"))

            await connection.connect()
            await connection.write(encode_request(0x0D, b"\xf0"))
            await wait_until(lambda: len(emulator.sessions) == 1)
            emulator.drop_sessions()
            await wait_until(lambda: closes == [False])

            with pytest.raises(TransportError):
                await connection.write(encode_request(0x0D, b"\xf0"))
            await connection.aclose()

    asyncio.run(_run())
