# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Arcam receiver client configuration.

Provides a general config object shared by the TCP/IP connection, the protocol
client and the connection supervisor.
"""

from __future__ import annotations

import os
import json

from ..internal_types import *
from ..exceptions import ArcamReceiverError
from ..constants import (
    DEFAULT_TIMEOUT,
    DEFAULT_PORT,
    CONNECT_TIMEOUT,
    KEEPALIVE_INTERVAL,
    RECONNECT_DELAY,
    TCP_KEEPALIVE_INTERVAL,
  )
from ..pkg_logging import logger

def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.lower() in ("true", "1", "yes", "y", "on")
    return bool(value)

class ArcamReceiverClientConfig:
    """Arcam receiver client configuration."""
    default_host: Optional[str]
    default_port: int
    timeout_secs: float
    connect_timeout_secs: float
    keepalive_secs: float
    reconnect_delay_secs: float
    tcp_keepalive_secs: float
    retry_initial_connect: bool

    def __init__(
            self,
            default_host: Optional[str]=None,
            *,
            default_port: Optional[int]=None,
            timeout_secs: Optional[float] = None,
            connect_timeout_secs: Optional[float] = None,
            keepalive_secs: Optional[float] = None,
            reconnect_delay_secs: Optional[float] = None,
            tcp_keepalive_secs: Optional[float] = None,
            retry_initial_connect: Optional[bool] = None,
            base_config: Optional[ArcamReceiverClientConfig]=None,
            use_config_file: bool = True,
          ) -> None:
        """Creates a configuration for an Arcam receiver client.

           Args:
             default_host: The default hostname or IPV4 address of the receiver.
                   may optionally be prefixed with "tcp://".
                   May be suffixed with ":<port>" to specify a
                   non-default port, which will override the default_port argument.
                   If None, the default host will be taken from the
                     ARCAM_RECEIVER_HOST environment variable.
             default_port: The default TCP/IP port number to use.
                    If None, the default port will be taken from ARCAM_RECEIVER_PORT.
                    If that environment variable is not found, the default Arcam
                    receiver port (50000) will be used.
             timeout_secs:
                   The time to wait for the reply to a status query (volume, mute,
                   heartbeat), in seconds. If None, DEFAULT_TIMEOUT is used.
             connect_timeout_secs:
                    The timeout for establishing the TCP connection, in seconds.
                    If None, CONNECT_TIMEOUT is used.
             keepalive_secs:
                    The interval between heartbeat commands while connected,
                    in seconds. If None, KEEPALIVE_INTERVAL (60 seconds) is used.
             reconnect_delay_secs:
                    The fixed delay before reconnecting after the connection
                    closes, in seconds. If None, RECONNECT_DELAY (1 second) is used.
             tcp_keepalive_secs:
                    Idle time before TCP keepalive probes start, and the interval
                    between probes, in seconds. If None, TCP_KEEPALIVE_INTERVAL is used.
             retry_initial_connect:
                    If True, a failed initial connection is retried like a lost
                    connection. If None, the base configuration is used. If no base
                    configuration is provided, the default is False.
             base_config:
                     An optional base configuration to use.
        """
        if base_config is None:
            self.init_from_defaults(use_config_file=use_config_file)
        else:
            self.init_from_base_config(base_config)

        if default_host is not None and default_host != '':
            self.default_host = default_host

        if default_port is not None and default_port > 0:
            self.default_port = default_port

        if timeout_secs is not None:
            self.timeout_secs = timeout_secs

        if connect_timeout_secs is not None:
            self.connect_timeout_secs = connect_timeout_secs

        if keepalive_secs is not None:
            self.keepalive_secs = keepalive_secs

        if reconnect_delay_secs is not None:
            self.reconnect_delay_secs = reconnect_delay_secs

        if tcp_keepalive_secs is not None:
            self.tcp_keepalive_secs = tcp_keepalive_secs

        if retry_initial_connect is not None:
            self.retry_initial_connect = retry_initial_connect

    def init_from_defaults(self, use_config_file: bool=True) -> None:
        """Initializes the configuration from defaults."""
        self.default_host = None
        self.default_port = DEFAULT_PORT
        self.timeout_secs = DEFAULT_TIMEOUT
        self.connect_timeout_secs = CONNECT_TIMEOUT
        self.keepalive_secs = KEEPALIVE_INTERVAL
        self.reconnect_delay_secs = RECONNECT_DELAY
        self.tcp_keepalive_secs = TCP_KEEPALIVE_INTERVAL
        self.retry_initial_connect = False

        if use_config_file:
            config_file = os.environ.get('ARCAM_RECEIVER_CONFIG_FILE')
            if config_file is not None and config_file != '':
                logger.debug(f"Loading receiver config from {config_file}")
                with open(config_file, 'r') as f:
                    config_jsonable = json.load(f)
                self.update_from_jsonable(config_jsonable)

        default_host: Optional[str] = os.environ.get('ARCAM_RECEIVER_HOST')
        if default_host is not None and default_host != '':
            self.default_host = default_host
        default_port_str = os.environ.get('ARCAM_RECEIVER_PORT')
        if default_port_str is not None and default_port_str != '':
            try:
                self.default_port = int(default_port_str)
            except ValueError as e:
                raise ArcamReceiverError(f"Invalid ARCAM_RECEIVER_PORT: {default_port_str!r}") from e

    def init_from_base_config(self, base_config: ArcamReceiverClientConfig) -> None:
        """Initializes the configuration from a base configuration."""
        self.default_host = base_config.default_host
        self.default_port = base_config.default_port
        self.timeout_secs = base_config.timeout_secs
        self.connect_timeout_secs = base_config.connect_timeout_secs
        self.keepalive_secs = base_config.keepalive_secs
        self.reconnect_delay_secs = base_config.reconnect_delay_secs
        self.tcp_keepalive_secs = base_config.tcp_keepalive_secs
        self.retry_initial_connect = base_config.retry_initial_connect

    def to_jsonable(self) -> JsonableDict:
        """Returns a JSON-serializable representation of the configuration."""
        result: JsonableDict = dict(
            default_host=self.default_host,
            default_port=self.default_port,
            timeout_secs=self.timeout_secs,
            connect_timeout_secs=self.connect_timeout_secs,
            keepalive_secs=self.keepalive_secs,
            reconnect_delay_secs=self.reconnect_delay_secs,
            tcp_keepalive_secs=self.tcp_keepalive_secs,
            retry_initial_connect=self.retry_initial_connect,
          )
        return result

    def to_json(self) -> str:
        """Returns a JSON representation of the configuration."""
        return json.dumps(self.to_jsonable())

    def update_from_jsonable(self, jsonable: JsonableDict) -> None:
        """Updates the configuration from a JSON-serializable representation."""
        default_host=jsonable.get('default_host')
        if default_host is not None and default_host != '':
            self.default_host = str(default_host)
        default_port=jsonable.get('default_port')
        if default_port is not None and default_port != '':
            self.default_port = int(default_port)
        timeout_secs=jsonable.get('timeout_secs')
        if timeout_secs is not None and timeout_secs != '':
            self.timeout_secs = float(timeout_secs)
        connect_timeout_secs=jsonable.get('connect_timeout_secs')
        if connect_timeout_secs is not None and connect_timeout_secs != '':
            self.connect_timeout_secs = float(connect_timeout_secs)
        keepalive_secs=jsonable.get('keepalive_secs')
        if keepalive_secs is not None and keepalive_secs != '':
            self.keepalive_secs = float(keepalive_secs)
        reconnect_delay_secs=jsonable.get('reconnect_delay_secs')
        if reconnect_delay_secs is not None and reconnect_delay_secs != '':
            self.reconnect_delay_secs = float(reconnect_delay_secs)
        tcp_keepalive_secs=jsonable.get('tcp_keepalive_secs')
        if tcp_keepalive_secs is not None and tcp_keepalive_secs != '':
            self.tcp_keepalive_secs = float(tcp_keepalive_secs)
        retry_initial_connect=jsonable.get('retry_initial_connect')
        if retry_initial_connect is not None and retry_initial_connect != '':
            self.retry_initial_connect = _to_bool(retry_initial_connect)

    @classmethod
    def from_jsonable(cls, jsonable: JsonableDict, use_config_file: bool=True) -> 'ArcamReceiverClientConfig':
        """Creates a configuration from a JSON-serializable representation."""
        result = cls(use_config_file=use_config_file)
        result.update_from_jsonable(jsonable)
        return result

    @classmethod
    def from_json(cls, json_str: str, use_config_file: bool=True) -> 'ArcamReceiverClientConfig':
        """Creates a configuration from a JSON representation."""
        jsonable = json.loads(json_str)
        return cls.from_jsonable(jsonable, use_config_file=use_config_file)

    @classmethod
    def from_config_file(cls, filename: str) -> 'ArcamReceiverClientConfig':
        """Creates a configuration from a JSON-serialized config file."""
        with open(filename, 'r') as f:
            jsonable: JsonableDict = json.load(f)

        result = cls.from_jsonable(jsonable, use_config_file=False)
        return result

    def __str__(self) -> str:
        return (
            f"ArcamReceiverClientConfig("
            f"default_host={self.default_host}, "
            f"default_port={self.default_port}, "
            f"keepalive_secs={self.keepalive_secs!r})"
          )

    def __repr__(self) -> str:
        return str(self)
