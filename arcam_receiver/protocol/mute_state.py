# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Mute status values carried in mute status payloads
"""

from __future__ import annotations

from aenum import Enum as AEnum
from ..internal_types import *

class MuteState(AEnum):
    ON                          = 0x00
    """Zone is muted."""

    OFF                         = 0x01
    """Zone is not muted."""

    @classmethod
    def is_muted(cls, raw_value: int) -> bool:
        """Returns True if a raw mute status byte means the zone is muted."""
        return raw_value == cls.ON.value
