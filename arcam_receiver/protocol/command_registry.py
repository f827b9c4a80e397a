# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Static table of the protocol commands understood by this package, and the semantic
events their responses are translated into.
"""

from __future__ import annotations

from ..internal_types import *
from .constants import (
    COMMAND_HEARTBEAT,
    COMMAND_MASTER_VOLUME,
    COMMAND_MUTE,
  )

EVENT_HEARTBEAT = 'heartbeat'
EVENT_MASTER_VOLUME_CHANGED = 'masterVolumeChanged'
EVENT_MUTE_CHANGED = 'muteChanged'

ValueTransform = Callable[[bytes], Any]
"""Converts a response payload into the value carried by a semantic event."""

class CommandEntry:
    """Immutable description of one supported command family."""

    __slots__ = ('_key', '_command_code', '_event_name', '_transform')

    def __init__(
            self,
            key: str,
            command_code: int,
            event_name: str,
            transform: Optional[ValueTransform]=None,
          ):
        self._key = key
        self._command_code = command_code
        self._event_name = event_name
        self._transform = transform

    @property
    def key(self) -> str:
        return self._key

    @property
    def command_code(self) -> int:
        return self._command_code

    @property
    def event_name(self) -> str:
        return self._event_name

    @property
    def transform(self) -> Optional[ValueTransform]:
        return self._transform

    def value_of(self, payload: bytes) -> Any:
        """
        Computes the event value for a response payload.

        Without a transform, the value is the first payload byte as an unsigned int.
        Raises IndexError for an empty payload with no transform.
        """
        if self._transform is not None:
            return self._transform(payload)
        return payload[0]

    def __str__(self) -> str:
        return f"CommandEntry({self._key!r}, 0x{self._command_code:02x}, {self._event_name!r})"

    def __repr__(self) -> str:
        return str(self)

_entries: List[CommandEntry] = [
    CommandEntry('heartbeat', COMMAND_HEARTBEAT, EVENT_HEARTBEAT),
    CommandEntry('master_volume', COMMAND_MASTER_VOLUME, EVENT_MASTER_VOLUME_CHANGED),
    CommandEntry('mute', COMMAND_MUTE, EVENT_MUTE_CHANGED),
  ]

commands_by_code: Dict[int, CommandEntry] = {}
"""Command entries keyed by command code."""

commands_by_key: Dict[str, CommandEntry] = {}
"""Command entries keyed by name."""

for _entry in _entries:
    assert _entry.command_code not in commands_by_code, f"Duplicate command code 0x{_entry.command_code:02x}"
    commands_by_code[_entry.command_code] = _entry
    commands_by_key[_entry.key] = _entry

def lookup(command_code: int) -> Optional[CommandEntry]:
    """Returns the command entry for a command code, or None if the command is not supported."""
    return commands_by_code.get(command_code)

def event_name_for(key: str) -> Optional[str]:
    """Returns the event name for a command key (e.g., "master_volume"), or None if unknown."""
    entry = commands_by_key.get(key)
    return None if entry is None else entry.event_name

def get_all_commands() -> Dict[str, CommandEntry]:
    """Returns a copy of the command table, keyed by command key."""
    return dict(commands_by_key)
