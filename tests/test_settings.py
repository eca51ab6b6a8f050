import os

import pytest

from settings import Settings

ENV_VARS = [
    "PORT",
    "STATIC_FILES_DIR",
    "ARTIFACT_SUBDIR",
    "ARTIFACT_PLACEHOLDER",
    "ARTIFACT_TTL_SECONDS",
    "SWEEP_INTERVAL_SECONDS",
    "LANGUAGES",
    "DEFAULT_LANGUAGE",
    "SECRET_KEY",
    "BASE_URL",
    "LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = Settings.from_env()

    assert settings.port == 8080
    assert settings.static_root == "static"
    assert settings.artifact_dir == os.path.join("static", "img")
    assert settings.lang_dir == os.path.join("static", "lang")
    assert settings.placeholder == ".gitkeep"
    assert settings.retention.ttl == 3600
    assert settings.retention.sweep_interval == 1800
    assert settings.languages == ()
    assert settings.base_url is None


def test_reads_environment(monkeypatch):
    monkeypatch.setenv("PORT", "9000")
    monkeypatch.setenv("STATIC_FILES_DIR", "/srv/public")
    monkeypatch.setenv("ARTIFACT_SUBDIR", "qr")
    monkeypatch.setenv("ARTIFACT_TTL_SECONDS", "120")
    monkeypatch.setenv("SWEEP_INTERVAL_SECONDS", "60")
    monkeypatch.setenv("LANGUAGES", "en, FR ,,de")
    monkeypatch.setenv("BASE_URL", "https://qr.example.com/")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = Settings.from_env()

    assert settings.port == 9000
    assert settings.artifact_dir == os.path.join("/srv/public", "qr")
    assert settings.retention.ttl == 120
    assert settings.retention.sweep_interval == 60
    assert settings.languages == ("en", "fr", "de")
    assert settings.base_url == "https://qr.example.com/"
    assert settings.log_level == "DEBUG"


def test_rejects_non_numeric_ttl(monkeypatch):
    monkeypatch.setenv("ARTIFACT_TTL_SECONDS", "an hour")

    with pytest.raises(ValueError, match="ARTIFACT_TTL_SECONDS"):
        Settings.from_env()


def test_rejects_sweep_interval_above_half_ttl(monkeypatch):
    # 30 min TTL with a 1 hour sweep would let files live for 90 minutes.
    monkeypatch.setenv("ARTIFACT_TTL_SECONDS", "1800")
    monkeypatch.setenv("SWEEP_INTERVAL_SECONDS", "3600")

    with pytest.raises(ValueError, match="sweep_interval"):
        Settings.from_env()
