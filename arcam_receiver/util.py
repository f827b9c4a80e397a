# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
General utility functions
"""
from __future__ import annotations

import asyncio
from asyncio import Future

from .internal_types import *

_T = TypeVar("_T")

def full_name_of_class(cls: Type[object]) -> str:
    """Return the full name of a class, including the module name."""
    module = cls.__module__
    if module == 'builtins':
        return cls.__qualname__
    return f"{module}.{cls.__qualname__}"

def full_class_name(o: object) -> str:
    """Return the full name of an object's class, including the module name."""
    return full_name_of_class(o.__class__)

def error_message(exc: BaseException) -> str:
    """Return a displayable message for an exception, falling back to its class name."""
    result = str(exc)
    if result == "":
        result = full_class_name(exc)
    return result

def clamp(value: int, min_value: int, max_value: int) -> int:
    """Clamp an integer into the inclusive range [min_value, max_value]."""
    if value < min_value:
        return min_value
    if value > max_value:
        return max_value
    return value

def parse_hex_bytes(text: str) -> bytes:
    """Parse a string of hex digits, optionally separated by whitespace, commas or "0x" prefixes."""
    cleaned = text.replace(',', ' ').replace('0x', '').replace('0X', '')
    return bytes.fromhex(''.join(cleaned.split()))

async def wait_with_timeout(future: Future[_T], timeout_secs: Optional[float], message: str="Timed out") -> _T:
    """Awaits a future, failing it with asyncio.TimeoutError if it is not done within timeout_secs.

    If the calling task is cancelled, the future is cancelled and CancelledError is
    raised, even if a result arrives in the same loop iteration.
    """
    if timeout_secs is None:
        return await future

    def expire() -> None:
        if not future.done():
            future.set_exception(asyncio.TimeoutError(message))

    timeout_handle = asyncio.get_running_loop().call_later(timeout_secs, expire)
    try:
        return await future
    finally:
        timeout_handle.cancel()
