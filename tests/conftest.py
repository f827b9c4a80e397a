from __future__ import annotations

import pytest


@pytest.fixture(autouse=True)
def _isolate_receiver_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's receiver environment out of config defaults."""
    for name in ("ARCAM_RECEIVER_HOST", "ARCAM_RECEIVER_PORT", "ARCAM_RECEIVER_CONFIG_FILE"):
        monkeypatch.delenv(name, raising=False)
