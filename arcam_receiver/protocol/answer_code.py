# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Response answer code enumeration
"""

from __future__ import annotations

from aenum import Enum as AEnum
from ..internal_types import *

class AnswerCode(AEnum):
    STATUS_UPDATE                 = 0x00
    """The command succeeded; the payload carries the current value."""

    ZONE_INVALID                  = 0x82
    """The zone in the request does not exist."""

    COMMAND_NOT_RECOGNISED        = 0x83
    """The receiver does not support the command code."""

    PARAMETER_NOT_RECOGNISED      = 0x84
    """The payload value is not valid for the command."""

    COMMAND_INVALID_AT_THIS_TIME  = 0x85
    """The command is valid but cannot be accepted in the receiver's current state."""

    INVALID_DATA_LENGTH           = 0x86
    """The payload length is wrong for the command."""

    @property
    def description(self) -> str:
        """A friendly description, e.g., "Command not recognised"."""
        return self.name.replace('_', ' ').capitalize()

    @classmethod
    def describe(cls, answer_code: int) -> str:
        """Returns a friendly description of a raw answer code, including unknown codes."""
        try:
            return cls(answer_code).description
        except ValueError:
            return f"Unknown answer code 0x{answer_code:02x}"
