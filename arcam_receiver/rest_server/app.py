#!/usr/bin/env python3

# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
A REST FastAPI server that controls an Arcam receiver.

The application lifespan owns a single ReceiverSupervisor, which keeps the
receiver connection up (reconnecting as needed) for as long as the server runs.
"""

from __future__ import annotations

from fastapi import FastAPI

import time
import os
import json

from contextlib import asynccontextmanager

from .logger import logger
from ..internal_types import *
from .. import (
    ReceiverSupervisor,
    ArcamReceiverClientConfig,
  )

from .api import router as api_router

DEFAULT_CONFIG_FILENAME = "arcam_receiver_config.json"

def load_raw_config() -> JsonableDict:
    """Loads the server's JSON config from ARCAM_RECEIVER_CONFIG_FILE, or ./arcam_receiver_config.json if present."""
    config_file = os.environ.get("ARCAM_RECEIVER_CONFIG_FILE", None)
    if config_file is None or config_file == '':
        if os.path.exists(DEFAULT_CONFIG_FILENAME):
            config_file = DEFAULT_CONFIG_FILENAME
    if config_file is None or config_file == '':
        return {}
    logger.debug(f"Loading REST server config from {config_file}")
    with open(config_file, "r") as f:
        raw_config: JsonableDict = json.load(f)
    return raw_config

@asynccontextmanager
async def fastapi_lifetime(app: FastAPI) -> AsyncIterator[None]:
    """
    A context manager that initializes and cleans up for FastAPI.
    """

    logger.info("Receiver REST server starting up--initializing...")
    raw_config = load_raw_config()
    app.state.raw_config = raw_config
    receiver_config = ArcamReceiverClientConfig.from_jsonable(raw_config, use_config_file=False)
    # The server outlives receiver outages, including one at startup
    receiver_config.retry_initial_connect = True
    app.state.receiver_config = receiver_config
    app.state.launch_time = time.monotonic()
    supervisor = ReceiverSupervisor(config=receiver_config)
    app.state.receiver_supervisor = supervisor
    try:
        await supervisor.start()
        logger.info(f"Serving API for receiver at {supervisor} ({supervisor.status_message})...")
        logger.info("Receiver REST server initialization done; starting server...")
        yield
    finally:
        logger.info("Receiver REST server shutting down--cleaning up...")
        await supervisor.aclose()

receiver_api = FastAPI(lifespan=fastapi_lifetime)
receiver_api.include_router(api_router)

def get_receiver_supervisor() -> ReceiverSupervisor:
    return receiver_api.state.receiver_supervisor

def get_receiver_config() -> ArcamReceiverClientConfig:
    return receiver_api.state.receiver_config

def get_raw_config() -> JsonableDict:
    return receiver_api.state.raw_config
