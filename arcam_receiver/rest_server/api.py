#!/usr/bin/env python3

# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
A REST FastAPI server that controls an Arcam receiver.
"""

from __future__ import annotations

from fastapi import APIRouter, Request

import time

from .logger import logger
from ..internal_types import *
from .. import (
    __version__ as pkg_version,
    ReceiverSupervisor,
    full_class_name,
  )

router = APIRouter(prefix="/api/v1")

def get_supervisor(request: Request) -> ReceiverSupervisor:
    return request.app.state.receiver_supervisor

def error_data(exc: BaseException) -> Dict[str, Any]:
    error_classname = full_class_name(exc)
    error_message = str(exc)
    if error_message == "":
        error_message = error_classname
    return dict(error=error_classname, error_message=error_message)

async def run_with_errors(
        name: str,
        request: Request,
        operation: Callable[[ReceiverSupervisor], Awaitable[Dict[str, Any]]],
      ) -> Dict[str, Any]:
    """Runs an operation against the supervisor, reporting any failure in the result."""
    supervisor = get_supervisor(request)
    logger.info(f"Executing {name}")
    try:
        result = await operation(supervisor)
    except Exception as exc:
        logger.info(f"{name} failed: {exc}")
        result = error_data(exc)
    return dict(name=name, **result)

@router.get("/")
async def root(request: Request):
    supervisor = get_supervisor(request)
    return { "message": f"Hello World! Serving receiver at {supervisor}" }

@router.get("/version")
async def version():
    """Returns the arcam-receiver package version"""
    return { "version": pkg_version }

@router.get("/config")
async def config_data(request: Request) -> Dict[str, Any]:
    """Returns the current receiver configuration of arcam-receiver."""
    supervisor = get_supervisor(request)
    return dict(config=supervisor.config.to_jsonable())

@router.get("/status")
async def status(request: Request) -> Dict[str, Any]:
    """Returns the connection status and the last observed receiver state."""
    supervisor = get_supervisor(request)
    result: Dict[str, Any] = dict(
        status=supervisor.status.name.lower(),
        message=supervisor.status_message,
        host=supervisor.host,
        state=supervisor.state.to_jsonable(),
      )
    return result

@router.get("/volume")
async def get_volume(request: Request) -> Dict[str, Any]:
    """Queries the receiver for the main zone volume."""
    async def operation(supervisor: ReceiverSupervisor) -> Dict[str, Any]:
        return dict(volume=await supervisor.get_volume())
    return await run_with_errors("get_volume", request, operation)

@router.get("/volume/set/{value}")
async def set_volume(
        value: int,
        request: Request,
        mode: str="absolute",
      ) -> Dict[str, Any]:
    """Sets the main zone volume.

    With mode=relative, value is added to the last observed volume. The
    result is clamped to 0-99; the volume actually sent is returned.
    """
    async def operation(supervisor: ReceiverSupervisor) -> Dict[str, Any]:
        return dict(volume=await supervisor.set_volume(mode, value))
    return await run_with_errors("set_volume", request, operation)

@router.get("/mute")
async def get_mute(request: Request) -> Dict[str, Any]:
    """Queries the receiver for the main zone mute state."""
    async def operation(supervisor: ReceiverSupervisor) -> Dict[str, Any]:
        return dict(is_muted=await supervisor.get_mute())
    return await run_with_errors("get_mute", request, operation)

@router.get("/mute/toggle")
async def toggle_mute(request: Request) -> Dict[str, Any]:
    """Toggles main zone mute. Returns the desired mute state."""
    async def operation(supervisor: ReceiverSupervisor) -> Dict[str, Any]:
        return dict(is_muted=await supervisor.toggle_mute())
    return await run_with_errors("toggle_mute", request, operation)

@router.get("/mute/{target}")
async def set_mute(target: str, request: Request) -> Dict[str, Any]:
    """Mutes ("on") or unmutes ("off") the main zone, if it is not already in that state."""
    async def operation(supervisor: ReceiverSupervisor) -> Dict[str, Any]:
        return dict(is_muted=await supervisor.set_mute(target))
    return await run_with_errors("set_mute", request, operation)

@router.get("/heartbeat")
async def heartbeat(request: Request) -> Dict[str, Any]:
    """Sends a heartbeat to the receiver."""
    async def operation(supervisor: ReceiverSupervisor) -> Dict[str, Any]:
        return dict(heartbeat=await supervisor.heartbeat())
    return await run_with_errors("heartbeat", request, operation)

@router.get("/ping")
async def ping(
        request: Request
      ) -> Dict[str, Any]:
    """Returns the health status of the API server and the receiver."""
    supervisor = get_supervisor(request)
    launch_time: float = request.app.state.launch_time
    up_time = time.monotonic() - launch_time
    result: Dict[str, Any] = dict(server_status="OK", up_time=up_time)
    try:
        await supervisor.heartbeat()
    except Exception as exc:
        result["receiver_status"] = "ERROR"
        data = error_data(exc)
        result["receiver_error"] = data["error"]
        result["receiver_error_message"] = data["error_message"]
    else:
        result["receiver_status"] = "OK"
    return result
