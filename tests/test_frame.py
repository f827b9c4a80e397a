from __future__ import annotations

import pytest

from arcam_receiver.exceptions import FramingError
from arcam_receiver.protocol import (
    Frame,
    AnswerCode,
    encode_request,
    encode_response,
    decode_request,
    decode_response,
    MAX_PAYLOAD_LENGTH,
)


def test_encode_volume_query() -> None:
    assert encode_request(0x0D, bytes([0xF0])) == bytes.fromhex("21 01 0d 01 f0 0d")


def test_encode_rc5_mute_toggle() -> None:
    assert encode_request(0x08, bytes([0x10, 0x0D])) == bytes.fromhex("21 01 08 02 10 0d 0d")


def test_encode_empty_payload() -> None:
    assert encode_request(0x25) == bytes.fromhex("21 01 25 00 0d")


def test_encode_rejects_oversized_payload() -> None:
    with pytest.raises(FramingError):
        encode_request(0x0D, bytes(MAX_PAYLOAD_LENGTH + 1))
    with pytest.raises(FramingError):
        encode_response(0x0D, payload=bytes(MAX_PAYLOAD_LENGTH + 1))


def test_encode_accepts_max_payload() -> None:
    raw = encode_request(0x0D, bytes(MAX_PAYLOAD_LENGTH))
    assert len(raw) == 4 + MAX_PAYLOAD_LENGTH + 1
    assert raw[3] == MAX_PAYLOAD_LENGTH


def test_decode_volume_response() -> None:
    frame = decode_response(bytes.fromhex("21 01 0d 00 01 32 0d"))
    assert frame is not None
    assert frame.zone == 0x01
    assert frame.command_code == 0x0D
    assert frame.answer_code == 0x00
    assert frame.is_ok
    assert frame.payload == bytes([0x32])


def test_decode_negative_answer() -> None:
    frame = decode_response(bytes.fromhex("21 01 0d 84 00 0d"))
    assert frame is not None
    assert not frame.is_ok
    assert frame.answer_code == AnswerCode.PARAMETER_NOT_RECOGNISED.value


def test_decode_payload_containing_markers() -> None:
    raw = encode_response(0x0D, payload=bytes([0x21, 0x0D]))
    frame = decode_response(raw)
    assert frame is not None
    assert frame.payload == bytes([0x21, 0x0D])


@pytest.mark.parametrize(
    "raw_hex",
    [
        "",
        "22 01 0d 00 01 32 0d",  # bad start marker
        "21 01 0d",  # truncated header
        "21 01 0d 00 02 32 0d",  # truncated payload
        "21 01 0d 00 01 32 0e",  # bad end marker
    ],
)
def test_decode_response_rejects_malformed(raw_hex: str) -> None:
    assert decode_response(bytes.fromhex(raw_hex)) is None


def test_decode_request() -> None:
    frame = decode_request(bytes.fromhex("21 01 0d 01 f0 0d"))
    assert frame == Frame(0x0D, bytes([0xF0]))
    assert not frame.is_response
    assert decode_request(bytes.fromhex("21 01 0d 01 f0")) is None


def test_round_trip_all_command_codes() -> None:
    for command_code in range(256):
        for payload in (b"", bytes([command_code]), bytes([0x21, 0x0D])):
            frame = decode_response(encode_response(command_code, 0x00, payload))
            assert frame == Frame(command_code, payload, answer_code=0x00)
            assert decode_request(encode_request(command_code, payload)) == Frame(command_code, payload)


def test_frame_to_bytes() -> None:
    assert Frame(0x0D, b"\xf0").to_bytes() == encode_request(0x0D, b"\xf0")
    assert Frame(0x0E, b"\x01", answer_code=0).to_bytes() == bytes.fromhex("21 01 0e 00 01 01 0d")


def test_answer_code_describe() -> None:
    assert AnswerCode.describe(0x83) == "Command not recognised"
    assert "0x99" in AnswerCode.describe(0x99)
