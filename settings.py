import os
from dataclasses import dataclass, field
from typing import Optional, Tuple

from retention import RetentionPolicy


def _env_seconds(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number of seconds, got {raw!r}") from None


def _env_list(name: str) -> Tuple[str, ...]:
    raw = os.getenv(name, "")
    return tuple(item.strip().lower() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    port: int = 8080
    static_root: str = "static"
    artifact_subdir: str = "img"
    placeholder: str = ".gitkeep"
    ttl_seconds: float = 3600.0
    sweep_interval_seconds: float = 1800.0
    languages: Tuple[str, ...] = field(default_factory=tuple)
    default_language: str = "en"
    secret_key: str = "dev"
    base_url: Optional[str] = None
    log_level: str = "INFO"

    @property
    def artifact_dir(self) -> str:
        return os.path.join(self.static_root, self.artifact_subdir)

    @property
    def lang_dir(self) -> str:
        return os.path.join(self.static_root, "lang")

    @property
    def retention(self) -> RetentionPolicy:
        return RetentionPolicy(
            ttl=self.ttl_seconds, sweep_interval=self.sweep_interval_seconds
        )

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build settings from environment variables.
        Unset variables fall back to the dataclass defaults; the retention
        policy is validated before returning.
        """
        settings = cls(
            port=int(os.getenv("PORT", "8080")),
            static_root=os.getenv("STATIC_FILES_DIR") or "static",
            artifact_subdir=os.getenv("ARTIFACT_SUBDIR") or "img",
            placeholder=os.getenv("ARTIFACT_PLACEHOLDER") or ".gitkeep",
            ttl_seconds=_env_seconds("ARTIFACT_TTL_SECONDS", 3600.0),
            sweep_interval_seconds=_env_seconds("SWEEP_INTERVAL_SECONDS", 1800.0),
            languages=_env_list("LANGUAGES"),
            default_language=(os.getenv("DEFAULT_LANGUAGE") or "en").lower(),
            secret_key=os.getenv("SECRET_KEY") or "dev",
            base_url=os.getenv("BASE_URL") or None,
            log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
        )
        settings.retention.validate()
        return settings
