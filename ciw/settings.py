from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import find_dotenv, load_dotenv

STREAM_END_POLICIES = ("exit", "resubscribe")


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_choice(name: str, choices: tuple[str, ...], default: str) -> str:
    raw = (os.getenv(name) or "").strip().lower()
    return raw if raw in choices else default


@dataclass(frozen=True)
class Settings:
    # Core
    compose_file_path: str = "docker-compose.yml"
    image_to_watch: str = "ghcr.io/awbclan/awgores:latest"
    docker_bin: str = "docker"

    # Registry login (run once at startup)
    registry: str = "ghcr.io"
    registry_username: str | None = None
    registry_password: str | None = None
    skip_login: bool = False

    # Event subscription
    on_stream_end: str = "exit"  # exit|resubscribe
    resubscribe_backoff_s: int = 5
    resubscribe_max_backoff_s: int = 60

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            compose_file_path=os.getenv("COMPOSE_FILE_PATH", cls.compose_file_path),
            image_to_watch=os.getenv("IMAGE_TO_WATCH", cls.image_to_watch),
            docker_bin=os.getenv("CIW_DOCKER_BIN", cls.docker_bin),
            registry=os.getenv("CIW_REGISTRY", cls.registry),
            registry_username=os.getenv("GHCR_USERNAME"),
            registry_password=os.getenv("GHCR_PASSWORD"),
            skip_login=_env_bool("CIW_SKIP_LOGIN", cls.skip_login),
            on_stream_end=_env_choice("CIW_ON_STREAM_END", STREAM_END_POLICIES, cls.on_stream_end),
            resubscribe_backoff_s=max(1, _env_int("CIW_RESUBSCRIBE_BACKOFF_S", cls.resubscribe_backoff_s)),
            resubscribe_max_backoff_s=max(1, _env_int("CIW_RESUBSCRIBE_MAX_BACKOFF_S", cls.resubscribe_max_backoff_s)),
            log_level=os.getenv("CIW_LOG_LEVEL", cls.log_level).upper(),
        )


def load_settings(env_file: str | None = None) -> Settings:
    """Build settings from the process environment.

    A `.env` file (the given path, or one found from the working directory)
    is loaded first. Variables already set in the environment win.
    """
    if env_file:
        load_dotenv(env_file, override=False)
    else:
        load_dotenv(find_dotenv(usecwd=True), override=False)
    return Settings.from_env()
