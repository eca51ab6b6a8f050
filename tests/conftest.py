"""Shared fixtures: a throwaway static root with translations and an artifact directory."""

import shutil
import sys
import time
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from app import create_app  # noqa: E402
from settings import Settings  # noqa: E402


@pytest.fixture
def static_root(tmp_path: Path) -> Path:
    root = tmp_path / "static"
    (root / "img").mkdir(parents=True)
    (root / "img" / ".gitkeep").touch()
    shutil.copytree(PROJECT_ROOT / "static" / "lang", root / "lang")
    return root


@pytest.fixture
def artifact_dir(static_root: Path) -> Path:
    return static_root / "img"


@pytest.fixture
def settings(static_root: Path) -> Settings:
    return Settings(
        static_root=str(static_root),
        ttl_seconds=60,
        sweep_interval_seconds=30,
        secret_key="test-secret",
    )


@pytest.fixture
def clock():
    """Mutable clock: set clock.offset to move time forward."""

    class _Clock:
        offset = 0.0

        def __call__(self) -> float:
            return time.time() + self.offset

    return _Clock()


@pytest.fixture
def app(settings: Settings, clock):
    application = create_app(settings, start_sweeper=False, clock=clock)
    application.config["TESTING"] = True
    return application


@pytest.fixture
def client(app):
    return app.test_client()
