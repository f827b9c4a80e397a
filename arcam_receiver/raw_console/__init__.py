# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
A RAW console tool for Arcam receivers"""

from ..version import __version__

from ..internal_types import Jsonable, JsonableDict

from ..exceptions import ArcamReceiverError
