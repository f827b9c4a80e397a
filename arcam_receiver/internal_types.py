# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Type hints used internally by this package
"""

from typing import (
    TYPE_CHECKING,
    Dict, List, Optional, Union, Any, Tuple, Type, Set,
    Callable, Awaitable, Coroutine, Iterable, Iterator,
    AsyncIterator, AsyncContextManager, Mapping, MutableMapping,
    Sequence, Deque, NamedTuple, TypeVar,
  )

from types import TracebackType

Jsonable = Union[str, int, float, bool, None, Dict[str, Any], List[Any]]
"""A type that can be serialized to JSON."""

JsonableDict = Dict[str, Jsonable]
"""A dictionary that can be serialized to JSON."""

HostAndPort = Tuple[str, int]
"""A tuple of (hostname or IP address, port number)."""

EventListener = Callable[..., None]
"""A callback registered for a named event."""
