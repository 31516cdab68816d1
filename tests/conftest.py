"""Shared pytest fixtures."""

from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path

import pytest

from aissist.services.settings import Settings


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in list(os.environ):
        if name.startswith("AISSIST_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("AISSIST_LOG_DIR", str(tmp_path / "logs"))


@pytest.fixture
def fixed_clock():
    moment = datetime(2024, 5, 1, 9, 30)
    return lambda: moment


@pytest.fixture
def settings() -> Settings:
    return Settings(api_key="test-key")
