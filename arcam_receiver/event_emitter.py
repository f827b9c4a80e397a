# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Minimal multicast named-event dispatcher shared by the connection, client and supervisor.
"""

from __future__ import annotations

from .internal_types import *
from .pkg_logging import logger

class ReceiverEventEmitter:
    """
    Dispatches named events to registered listeners.

    Listeners are called synchronously, in registration order. An exception raised by a
    listener is logged and does not prevent delivery to the remaining listeners.
    """

    _listeners: Dict[str, List[EventListener]]

    def __init__(self) -> None:
        self._listeners = {}

    def on(self, event_name: str, listener: EventListener) -> EventListener:
        """Registers a listener for an event. Returns the listener, for later removal."""
        self._listeners.setdefault(event_name, []).append(listener)
        return listener

    def off(self, event_name: str, listener: EventListener) -> None:
        """Removes a previously registered listener. Has no effect if it is not registered."""
        listeners = self._listeners.get(event_name)
        if listeners is not None:
            try:
                listeners.remove(listener)
            except ValueError:
                pass
            if len(listeners) == 0:
                del self._listeners[event_name]

    def remove_all_listeners(self, event_name: Optional[str]=None) -> None:
        if event_name is None:
            self._listeners.clear()
        else:
            self._listeners.pop(event_name, None)

    def listener_count(self, event_name: str) -> int:
        return len(self._listeners.get(event_name, []))

    def emit(self, event_name: str, *args: Any) -> int:
        """
        Calls every listener registered for event_name with *args.

        Returns:
            The number of listeners called.
        """
        listeners = list(self._listeners.get(event_name, []))
        for listener in listeners:
            try:
                listener(*args)
            except Exception:
                logger.exception(f"{self}: Listener for event {event_name!r} raised an exception")
        return len(listeners)
