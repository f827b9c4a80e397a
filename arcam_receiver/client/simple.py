# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Arcam receiver simple connection API.

Provides a simple API for obtaining a connected, supervised receiver.
"""

from __future__ import annotations

from ..internal_types import *
from ..pkg_logging import logger
from .client_config import ArcamReceiverClientConfig
from .supervisor import ReceiverSupervisor, ClientFactory

async def arcam_receiver_connect(
        host: Optional[str]=None,
        port: Optional[int]=None,
        config: Optional[ArcamReceiverClientConfig]=None,
        client_factory: Optional[ClientFactory]=None,
      ) -> ReceiverSupervisor:
    """Create a ReceiverSupervisor and wait until it is connected and has
       read the initial receiver state.

    Args:
        host: The hostname or IPV4 address of the receiver.
                may optionally be prefixed with "tcp://".
                May be suffixed with ":<port>" to specify a
                non-default port, which will override the port argument.
                If None, the host will be taken from the config, or the
                ARCAM_RECEIVER_HOST environment variable.
        port: The default TCP/IP port. If None, taken from the config.
        config: An ArcamReceiverClientConfig object that specifies
                the default host, port, timeouts, etc. to use.
                If None, a default config will be created.

    The caller owns the returned supervisor and must aclose() it (it is also
    an async context manager).
    """
    config = ArcamReceiverClientConfig(
        default_host=host,
        default_port=port,
        base_config=config
      )
    supervisor = ReceiverSupervisor(config=config, client_factory=client_factory)
    try:
        await supervisor.start()
        await supervisor.wait_connected(timeout_secs=config.connect_timeout_secs + config.timeout_secs)
    except BaseException:
        await supervisor.aclose()
        raise
    logger.debug(f"Connected: {supervisor}, state={supervisor.state}")
    return supervisor
