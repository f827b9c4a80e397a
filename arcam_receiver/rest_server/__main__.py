# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
A REST FastAPI server that controls an Arcam receiver.

Listens on REST_SERVER_HOST:REST_SERVER_PORT (default 0.0.0.0:8000).
"""
import os
import sys
import uvicorn
import logging
from dotenv import load_dotenv

def run() -> int:
    load_dotenv()

    log_level = os.environ.get("ARCAM_RECEIVER_LOG_LEVEL", "info")
    logging.basicConfig(level=logging.getLevelName(log_level.upper()))

    host = os.environ.get("REST_SERVER_HOST", "0.0.0.0")
    port = int(os.environ.get("REST_SERVER_PORT", "8000"))

    from arcam_receiver.rest_server.app import receiver_api
    uvicorn.run(receiver_api, host=host, port=port, log_config=None)
    return 0

if __name__ == "__main__":
    rc = run()
    sys.exit(rc)
