# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Arcam receiver emulator.

Provides a simple emulation of an Arcam receiver on TCP/IP.
"""

from .emulator_impl import (
    ArcamReceiverEmulator,
  )
from .session import ArcamReceiverEmulatorSession
