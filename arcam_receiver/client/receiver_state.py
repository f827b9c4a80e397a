# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Observed receiver state and connection status, as tracked by the supervisor.
"""

from __future__ import annotations

from aenum import Enum as AEnum
from ..internal_types import *
from ..exceptions import ArcamReceiverError
from ..util import error_message

class ConnectionStatus(AEnum):
    UNCONFIGURED                = 0
    """No receiver host is configured."""

    CONNECTING                  = 1
    """The first connection to the configured host is being established."""

    CONNECTED                   = 2
    """Connected; state is being tracked and the keepalive is running."""

    RECONNECTING                = 3
    """The connection closed; a reconnect is scheduled or in progress."""

    DISCONNECTED                = 4
    """A connection attempt failed. The error is reported with the status."""

class VolumeMode(AEnum):
    ABSOLUTE                    = 'absolute'
    """The value is the new volume."""

    RELATIVE                    = 'relative'
    """The value is added to the last observed volume."""

    @classmethod
    def parse(cls, mode: Union[VolumeMode, str]) -> VolumeMode:
        if isinstance(mode, VolumeMode):
            return mode
        try:
            return cls(mode.lower())
        except ValueError as e:
            raise ArcamReceiverError(f"Unknown volume mode {mode!r}; expected 'absolute' or 'relative'") from e

class ReceiverState:
    """The last observed state of the main zone.

    None means the value has not been observed since the supervisor was created.
    """

    volume_value: Optional[int] = None
    is_muted: Optional[bool] = None

    def to_jsonable(self) -> JsonableDict:
        return dict(volume_value=self.volume_value, is_muted=self.is_muted)

    def __str__(self) -> str:
        return f"ReceiverState(volume_value={self.volume_value}, is_muted={self.is_muted})"

    def __repr__(self) -> str:
        return str(self)

def describe_status(status: ConnectionStatus, host: Optional[str]=None, error: Optional[BaseException]=None) -> str:
    """Returns a user-visible status string."""
    if status == ConnectionStatus.UNCONFIGURED:
        return "not configured"
    if status == ConnectionStatus.CONNECTING:
        return f"connecting to '{host}'"
    if status == ConnectionStatus.CONNECTED:
        return f"connected to '{host}'"
    if status == ConnectionStatus.RECONNECTING:
        return f"reconnecting to '{host}'"
    return f"error: {error_message(error) if error is not None else 'disconnected'}"
