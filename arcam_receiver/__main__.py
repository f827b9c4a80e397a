#!/usr/bin/env python3

# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

from __future__ import annotations

import sys
import argparse
import json
import asyncio
import logging
from signal import SIGINT, SIGTERM

import dotenv

from arcam_receiver.internal_types import *
from arcam_receiver import (
    __version__ as pkg_version,
    DEFAULT_PORT,
    ReceiverSupervisor,
    ConnectionStatus,
    VolumeMode,
    arcam_receiver_connect,
    ArcamReceiverClientConfig,
  )
from arcam_receiver.client import (
    EVENT_STATUS_CHANGED,
    EVENT_VOLUME_CHANGED,
    EVENT_HOST_MUTE_CHANGED,
  )
from arcam_receiver.util import error_message

class CmdExitError(RuntimeError):
    exit_code: int

    def __init__(self, exit_code: int, msg: Optional[str]=None):
        if msg is None:
            msg = f"Command exited with return code {exit_code}"
        super().__init__(msg)
        self.exit_code = exit_code

class ArgparseExitError(CmdExitError):
    pass

class NoExitArgumentParser(argparse.ArgumentParser):
    def exit(self, status=0, message=None):
        if message:
            self._print_message(message, sys.stderr)
        raise ArgparseExitError(status, message)

class CommandHandler:
    _argv: Optional[Sequence[str]]
    _parser: argparse.ArgumentParser
    _args: argparse.Namespace
    _provide_traceback: bool = True

    def __init__(self, argv: Optional[Sequence[str]]=None):
        self._argv = argv

    def get_config(self) -> ArcamReceiverClientConfig:
        return ArcamReceiverClientConfig(
            default_host=self._args.host,
            default_port=self._args.port,
          )

    async def connect(self) -> ReceiverSupervisor:
        return await arcam_receiver_connect(config=self.get_config())

    def print_result(self, data: JsonableDict) -> None:
        print(json.dumps(data, indent=2))

    async def cmd_bare(self) -> int:
        print("A command is required", file=sys.stderr)
        return 1

    async def cmd_get_volume(self) -> int:
        async with await self.connect() as supervisor:
            volume = await supervisor.get_volume()
        print(volume)
        return 0

    async def cmd_set_volume(self) -> int:
        mode = VolumeMode.RELATIVE if self._args.relative else VolumeMode.ABSOLUTE
        async with await self.connect() as supervisor:
            sent_volume = await supervisor.set_volume(mode, self._args.value)
        print(sent_volume)
        return 0

    async def cmd_get_mute(self) -> int:
        async with await self.connect() as supervisor:
            is_muted = await supervisor.get_mute()
        print("on" if is_muted else "off")
        return 0

    async def cmd_toggle_mute(self) -> int:
        async with await self.connect() as supervisor:
            desired = await supervisor.toggle_mute()
        print("on" if desired else "off")
        return 0

    async def cmd_mute(self) -> int:
        async with await self.connect() as supervisor:
            desired = await supervisor.set_mute(self._args.state)
        print("on" if desired else "off")
        return 0

    async def cmd_heartbeat(self) -> int:
        async with await self.connect() as supervisor:
            value = await supervisor.heartbeat()
        print(value)
        return 0

    async def cmd_monitor(self) -> int:
        """Prints connection status and receiver state changes, one JSON object per line, until interrupted."""
        done = asyncio.get_running_loop().create_future()

        def emit_line(data: JsonableDict) -> None:
            print(json.dumps(data), flush=True)

        def on_status_changed(status: ConnectionStatus, error: Optional[BaseException]) -> None:
            data: JsonableDict = dict(event='status', status=status.name.lower(), message=supervisor.status_message)
            if error is not None:
                data.update(error=error_message(error))
            emit_line(data)

        def on_volume_changed(value: int) -> None:
            emit_line(dict(event='volume', volume=value))

        def on_mute_changed(is_muted: bool) -> None:
            emit_line(dict(event='mute', is_muted=is_muted))

        def stop() -> None:
            if not done.done():
                done.set_result(None)

        config = self.get_config()
        # keep retrying until interrupted, even if the receiver is not up yet
        config.retry_initial_connect = True
        supervisor = ReceiverSupervisor(config=config)
        supervisor.on(EVENT_STATUS_CHANGED, on_status_changed)
        supervisor.on(EVENT_VOLUME_CHANGED, on_volume_changed)
        supervisor.on(EVENT_HOST_MUTE_CHANGED, on_mute_changed)
        loop = asyncio.get_running_loop()
        for signal in (SIGINT, SIGTERM):
            loop.add_signal_handler(signal, stop)
        try:
            async with supervisor:
                await supervisor.start()
                await done
        finally:
            for signal in (SIGINT, SIGTERM):
                loop.remove_signal_handler(signal)
        return 0

    async def cmd_emulator(self) -> int:
        bind_addr: str = self._args.bind
        port: int = self._args.port
        from arcam_receiver.emulator import ArcamReceiverEmulator
        emulator = ArcamReceiverEmulator(
            bind_addr=bind_addr,
            port=DEFAULT_PORT if port is None else port,
            initial_volume=self._args.volume,
          )
        def sigint_cleanup() -> None:
            emulator.close(CmdExitError(1, "Emulator terminated with SIGINT or SIGTERM"))
        loop = asyncio.get_running_loop()
        for signal in (SIGINT, SIGTERM):
            loop.add_signal_handler(signal, sigint_cleanup)
        try:
            await emulator.run()
        finally:
            for signal in (SIGINT, SIGTERM):
                loop.remove_signal_handler(signal)
        return 0

    async def cmd_version(self) -> int:
        print(pkg_version)
        return 0

    async def arun(self) -> int:
        """Run the arcam-receiver command-line tool with provided arguments

        Args:
            argv (Optional[Sequence[str]], optional):
                A list of commandline arguments (NOT including the program as argv[0]!),
                or None to use sys.argv[1:]. Defaults to None.

        Returns:
            int: The exit code that would be returned if this were run as a standalone command.
        """
        parser = NoExitArgumentParser(description="Control an Arcam AV receiver.")

        # ======================= Main command

        self._parser = parser
        parser.add_argument('--traceback', "--tb", action='store_true', default=False,
                            help='Display detailed exception information')
        parser.add_argument('--log-level', dest='log_level', default='warning',
                            choices=['debug', 'info', 'warning', 'error', 'critical'],
                            help='''The logging level to use. Default: warning''')
        parser.add_argument('--host', default=None,
                            help='''The receiver host address, optionally with ":<port>". Default: use env var ARCAM_RECEIVER_HOST.''')
        parser.add_argument("--port", default=None, type=int,
                            help=f"Receiver TCP port number. Default: env var ARCAM_RECEIVER_PORT, or {DEFAULT_PORT}")
        parser.set_defaults(func=self.cmd_bare)

        subparsers = parser.add_subparsers(
                            title='Commands',
                            description='Valid commands',
                            help='Additional help available with "<command-name> -h"')

        # ======================= get-volume

        parser_get_volume = subparsers.add_parser('get-volume', description="Print the main zone volume (0-99).")
        parser_get_volume.set_defaults(func=self.cmd_get_volume)

        # ======================= set-volume

        parser_set_volume = subparsers.add_parser('set-volume',
                            description="Set the main zone volume. The result is clamped to 0-99 and printed.")
        parser_set_volume.add_argument('--relative', '-r', action='store_true', default=False,
                            help='Add VALUE to the current volume instead of setting it. Default: False')
        parser_set_volume.add_argument('value', type=int,
                            help='The new volume, or the change in volume with --relative.')
        parser_set_volume.set_defaults(func=self.cmd_set_volume)

        # ======================= get-mute

        parser_get_mute = subparsers.add_parser('get-mute', description='Print the main zone mute state ("on" or "off").')
        parser_get_mute.set_defaults(func=self.cmd_get_mute)

        # ======================= toggle-mute

        parser_toggle_mute = subparsers.add_parser('toggle-mute', description="Toggle main zone mute.")
        parser_toggle_mute.set_defaults(func=self.cmd_toggle_mute)

        # ======================= mute

        parser_mute = subparsers.add_parser('mute', description="Mute or unmute the main zone.")
        parser_mute.add_argument('state', choices=['on', 'off'],
                            help='The desired mute state.')
        parser_mute.set_defaults(func=self.cmd_mute)

        # ======================= heartbeat

        parser_heartbeat = subparsers.add_parser('heartbeat', description="Check that the receiver is communicating.")
        parser_heartbeat.set_defaults(func=self.cmd_heartbeat)

        # ======================= monitor

        parser_monitor = subparsers.add_parser('monitor',
                            description="Print connection status, volume and mute changes until interrupted.")
        parser_monitor.set_defaults(func=self.cmd_monitor)

        # ======================= emulator

        parser_emulator = subparsers.add_parser('emulator', description="Run a receiver emulator for testing purposes.")
        parser_emulator.add_argument('-b', '--bind', default="0.0.0.0",
                            help='''The local unicast IP address to bind to. Default: 0.0.0.0.''')
        parser_emulator.add_argument('--volume', default=30, type=int,
                            help='''The initial emulated volume. Default: 30.''')
        parser_emulator.set_defaults(func=self.cmd_emulator)

        # ======================= version

        parser_version = subparsers.add_parser('version',
                                description='''Display version information.''')
        parser_version.set_defaults(func=self.cmd_version)

        # =========================================================

        try:
            args = parser.parse_args(self._argv)
        except ArgparseExitError as ex:
            return ex.exit_code
        traceback: bool = args.traceback
        self._provide_traceback = traceback

        try:
            logging.basicConfig(
                level=logging.getLevelName(args.log_level.upper()),
            )
            self._args = args
            func: Callable[[], Awaitable[int]] = args.func
            logging.debug(f"Running command {func.__name__}, tb = {traceback}")
            rc = await func()
            logging.debug(f"Command {func.__name__} returned {rc}")
        except Exception as ex:
            if isinstance(ex, CmdExitError):
                rc = ex.exit_code
            else:
                rc = 1
            if rc != 0:
                if traceback:
                    raise
            ex_desc = str(ex)
            if len(ex_desc) == 0:
                ex_desc = ex.__class__.__name__
            print(f"arcam-receiver: error: {ex_desc}", file=sys.stderr)
        except BaseException as ex:
            print(f"arcam-receiver: Unhandled exception {ex.__class__.__name__}: {ex}", file=sys.stderr)
            raise

        return rc

    def run(self) -> int:
        return asyncio.run(self.arun())

def run(argv: Optional[Sequence[str]]=None) -> int:
    dotenv.load_dotenv()
    try:
        rc = CommandHandler(argv).run()
    except CmdExitError as ex:
        rc = ex.exit_code
    return rc

async def arun(argv: Optional[Sequence[str]]=None) -> int:
    try:
        rc = await CommandHandler(argv).arun()
    except CmdExitError as ex:
        rc = ex.exit_code
    return rc

# allow running with "python3 -m", or as a standalone script
if __name__ == "__main__":
    sys.exit(run())
