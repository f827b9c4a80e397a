from __future__ import annotations

import asyncio

import pytest

from arcam_receiver import __version__
from arcam_receiver.__main__ import arun
from arcam_receiver.emulator import ArcamReceiverEmulator


def run_against_emulator(*argv: str, initial_volume: int = 30) -> tuple:
    async def _run() -> tuple:
        async with ArcamReceiverEmulator(bind_addr="127.0.0.1", port=0, initial_volume=initial_volume) as emulator:
            rc = await arun(["--host", f"127.0.0.1:{emulator.port}", *argv])
            # let the emulator process anything sent just before the client disconnected
            await asyncio.sleep(0.05)
            return rc, emulator.volume, emulator.is_muted

    return asyncio.run(_run())


def test_version(capsys: pytest.CaptureFixture[str]) -> None:
    assert asyncio.run(arun(["version"])) == 0
    assert capsys.readouterr().out.strip() == __version__


def test_get_volume(capsys: pytest.CaptureFixture[str]) -> None:
    rc, _, _ = run_against_emulator("get-volume", initial_volume=27)
    assert rc == 0
    assert capsys.readouterr().out.strip() == "27"


def test_set_volume_relative(capsys: pytest.CaptureFixture[str]) -> None:
    rc, volume, _ = run_against_emulator("set-volume", "--relative", "5")
    assert rc == 0
    assert capsys.readouterr().out.strip() == "35"
    assert volume == 35


def test_set_volume_clamped(capsys: pytest.CaptureFixture[str]) -> None:
    rc, volume, _ = run_against_emulator("set-volume", "150")
    assert rc == 0
    assert capsys.readouterr().out.strip() == "99"
    assert volume == 99


def test_mute_on(capsys: pytest.CaptureFixture[str]) -> None:
    rc, _, is_muted = run_against_emulator("mute", "on")
    assert rc == 0
    assert capsys.readouterr().out.strip() == "on"
    assert is_muted is True


def test_missing_host_is_an_error(capsys: pytest.CaptureFixture[str]) -> None:
    assert asyncio.run(arun(["get-volume"])) == 1
    assert "arcam-receiver: error:" in capsys.readouterr().err


def test_command_required(capsys: pytest.CaptureFixture[str]) -> None:
    assert asyncio.run(arun([])) == 1
    assert "A command is required" in capsys.readouterr().err
