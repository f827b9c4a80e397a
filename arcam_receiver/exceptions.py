#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Exceptions defined by this package"""

from typing import Optional

class ArcamReceiverError(Exception):
  """Base class for all error exceptions defined by this package."""
  pass

class FramingError(ArcamReceiverError):
  """A frame could not be encoded, or an inbound byte sequence is not a valid frame."""
  pass

class TransportError(ArcamReceiverError):
  """The TCP/IP stream to the receiver failed or is not open."""
  pass

class ConnectError(TransportError):
  """A TCP/IP connection to the receiver could not be established."""
  pass

class NegativeAcknowledgementError(ArcamReceiverError):
  """The receiver answered a command with a nonzero answer code."""

  command_code: int
  answer_code: int

  def __init__(self, command_code: int, answer_code: int, msg: Optional[str]=None):
    if msg is None:
      msg = f"Receiver rejected command 0x{command_code:02x} with answer code 0x{answer_code:02x}"
    super().__init__(msg)
    self.command_code = command_code
    self.answer_code = answer_code
