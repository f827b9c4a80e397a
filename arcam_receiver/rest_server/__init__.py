# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
A REST FastAPI server that controls an Arcam receiver.
"""
from .app import receiver_api, get_receiver_supervisor, get_receiver_config, get_raw_config
