# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Package-wide logger.
"""

import logging

logger = logging.getLogger('arcam_receiver')
