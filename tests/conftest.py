from __future__ import annotations

import pytest

from api_harness import CLIENT_URL, SERVER_URL, ApiHarness


@pytest.fixture
def api(tmp_path, monkeypatch):
    monkeypatch.setenv("CLIENT_URL", CLIENT_URL)
    monkeypatch.setenv("SERVER_URL", SERVER_URL)
    harness = ApiHarness(tmp_path / "authcore.db")
    harness.install()
    yield harness
    harness.uninstall()
