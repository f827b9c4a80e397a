#!/usr/bin/env python3

# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Interactive raw frame console for Arcam receivers.

Each input line is hex bytes. A line that begins with 21 is sent as a complete
frame; otherwise the first byte is the command code and the remaining bytes are
the payload of a main-zone request, e.g. "0d f0" queries the volume.
"""

from __future__ import annotations

import sys
import argparse
import asyncio
import logging
import dotenv
import aioconsole
import colorama # type: ignore[import]
from colorama import Fore, Style
import traceback

from arcam_receiver.internal_types import *
from arcam_receiver.pkg_logging import logger

from arcam_receiver.client import TcpReceiverConnection, ArcamReceiverClientConfig
from arcam_receiver.protocol import (
    Frame,
    FrameBuffer,
    AnswerCode,
    encode_request,
    decode_request,
    START_OF_FRAME,
  )
from arcam_receiver.util import parse_hex_bytes

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

def parse_console_frame(line: str) -> bytes:
    """Converts a line of console input into the bytes of a request frame."""
    raw_data = parse_hex_bytes(line)
    if len(raw_data) == 0:
        raise ValueError("No bytes entered")
    if raw_data[0] == START_OF_FRAME:
        if decode_request(raw_data) is None:
            raise ValueError(f"Malformed request frame: {raw_data.hex(' ')}")
        return raw_data
    return encode_request(raw_data[0], raw_data[1:])

class CommandHandler:
    _argv: Optional[Sequence[str]]
    _parser: argparse.ArgumentParser
    _args: argparse.Namespace
    _provide_traceback: bool = True
    _connection: Optional[TcpReceiverConnection] = None
    _frame_buffer: FrameBuffer
    _received: asyncio.Queue[Optional[Frame]]
    _console_task: Optional[asyncio.Task] = None
    _receive_task: Optional[asyncio.Task] = None
    _colorize_stdout: bool = True
    _colorize_stderr: bool = True
    _client_config: Optional[ArcamReceiverClientConfig] = None

    def __init__(self, argv: Optional[Sequence[str]]=None):
        self._argv = argv
        self._frame_buffer = FrameBuffer(is_response=True)

    def ocolor(self, codes: str) -> str:
        return codes if self._colorize_stdout else ""

    def ecolor(self, codes: str) -> str:
        return codes if self._colorize_stderr else ""

    def get_client_config(self) -> ArcamReceiverClientConfig:
        if self._client_config is None:
            self._client_config = ArcamReceiverClientConfig(
                default_host=self._args.host,
                default_port=self._args.port,
              )
        return self._client_config

    def _on_data(self, data: bytes) -> None:
        self._frame_buffer.feed(data)
        for frame in self._frame_buffer:
            self._received.put_nowait(frame)

    def _on_close(self, had_error: bool) -> None:
        self._received.put_nowait(None)

    async def connect_receiver(self) -> TcpReceiverConnection:
        connection = TcpReceiverConnection(config=self.get_client_config())
        connection.on('data', self._on_data)
        connection.on('close', self._on_close)
        await connection.connect()
        return connection

    def describe_frame(self, frame: Frame) -> str:
        if frame.is_ok:
            return f"{self.ocolor(Fore.BLUE)}{frame.to_bytes().hex(' ')}{self.ocolor(Style.RESET_ALL)}"
        assert frame.answer_code is not None
        return (
            f"{self.ocolor(Fore.RED)}{frame.to_bytes().hex(' ')} "
            f"({AnswerCode.describe(frame.answer_code)}){self.ocolor(Style.RESET_ALL)}"
          )

    async def handle_console_input(self) -> None:
        assert self._connection is not None
        assert self._receive_task is not None
        try:
            while True:
                raw_data = await aioconsole.ainput(">>> ")
                if raw_data.strip() == "":
                    continue
                if raw_data in ("exit", "quit", "q"):
                    break
                frame_bytes: Optional[bytes] = None
                try:
                    frame_bytes = parse_console_frame(raw_data)
                except Exception as e:
                    if self._provide_traceback:
                        print(f"\r{self.ocolor(Fore.RED)}Invalid frame: {e}\n{traceback.format_exc()}{self.ocolor(Style.RESET_ALL)}")
                    else:
                        print(f"\r{self.ocolor(Fore.RED)}Invalid frame: {e}{self.ocolor(Style.RESET_ALL)}")
                if frame_bytes is not None:
                    print(f"\r{self.ocolor(Fore.GREEN)}{frame_bytes.hex(' '):<24} ->{self.ocolor(Style.RESET_ALL)}")
                    await self._connection.write(frame_bytes)
                ### allow a response to be printed before the next prompt
                await asyncio.sleep(0.3)
        except EOFError:
            print()
        except Exception as e:
            logger.debug("Exception in console input handler", exc_info=e)
            raise
        finally:
            logger.debug("Console input handler exiting")
            self._receive_task.cancel()

    async def handle_received_data(self) -> None:
        assert self._console_task is not None
        try:
            while True:
                frame = await self._received.get()
                if frame is None:
                    print(f"\r{self.ocolor(Fore.RED)}Connection closed by receiver{self.ocolor(Style.RESET_ALL)}")
                    break
                print(f"\r{' '*24}    <- {self.describe_frame(frame)}")
        except Exception as e:
            logger.debug("Exception in Receive data handler", exc_info=e)
            raise
        finally:
            logger.debug("Receive data handler exiting")
            self._console_task.cancel()

    async def cmd_bare(self) -> int:
        self._received = asyncio.Queue()
        connection = await self.connect_receiver()
        self._connection = connection
        try:
            self._console_task = asyncio.create_task(self.handle_console_input())
            try:
                self._receive_task = asyncio.create_task(self.handle_received_data())
                try:
                    await self._receive_task
                except asyncio.CancelledError:
                    pass
            finally:
                logger.debug("Command exiting")
                self._console_task.cancel()
                try:
                    await self._console_task
                except asyncio.CancelledError:
                    pass
        finally:
            await connection.disconnect()
            await connection.aclose()

        return 0

    async def arun(self) -> int:
        """Run the raw console with provided arguments

        Args:
            argv (Optional[Sequence[str]], optional):
                A list of commandline arguments (NOT including the program as argv[0]!),
                or None to use sys.argv[1:]. Defaults to None.

        Returns:
            int: The exit code that would be returned if this were run as a standalone command.
        """
        parser = NoExitArgumentParser(description="Send raw hex frames to an Arcam receiver and display its responses.")

        self._parser = parser
        parser.add_argument('--traceback', "--tb", action='store_true', default=False,
                            help='Display detailed exception information')
        parser.add_argument('--log-level', dest='log_level', default='warning',
                            choices=['debug', 'info', 'warning', 'error', 'critical'],
                            help='''The logging level to use. Default: warning''')
        parser.add_argument('--no-color', dest='no_color', action='store_true', default=False,
                            help='Do not colorize output. Default: False')
        parser.set_defaults(func=self.cmd_bare)

        parser.add_argument('-p', '--port', default=None, type=int,
                            help='''The port number to connect to. Default: env var ARCAM_RECEIVER_PORT, or 50000''')
        parser.add_argument('host', default=None, nargs='?',
                            help='''The receiver host address. Default: use env var ARCAM_RECEIVER_HOST.''')

        try:
            args = parser.parse_args(self._argv)
        except ArgparseExitError as ex:
            return ex.exit_code
        traceback: bool = args.traceback
        self._provide_traceback = traceback
        if args.no_color:
            self._colorize_stdout = False
            self._colorize_stderr = False
        else:
            colorama.just_fix_windows_console()

        try:
            logging.basicConfig(
                level=logging.getLevelName(args.log_level.upper()),
            )
            self._args = args
            rc = await self.cmd_bare()
            logging.debug(f"Command returned {rc}")
        except Exception as ex:
            if isinstance(ex, CmdExitError):
                rc = ex.exit_code
            else:
                rc = 1
            if rc != 0:
                if traceback:
                    raise
            print(f"{self.ecolor(Fore.RED)}raw_console: error: {ex}{self.ecolor(Style.RESET_ALL)}", file=sys.stderr)
        except BaseException as ex:
            print(f"raw_console: Unhandled exception: {ex}", file=sys.stderr)
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
