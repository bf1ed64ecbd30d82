import os

import pytest

from ciw.settings import Settings, load_settings

ALL_VARS = [
    "COMPOSE_FILE_PATH",
    "IMAGE_TO_WATCH",
    "GHCR_USERNAME",
    "GHCR_PASSWORD",
    "CIW_REGISTRY",
    "CIW_DOCKER_BIN",
    "CIW_SKIP_LOGIN",
    "CIW_LOG_LEVEL",
    "CIW_ON_STREAM_END",
    "CIW_RESUBSCRIBE_BACKOFF_S",
    "CIW_RESUBSCRIBE_MAX_BACKOFF_S",
]


@pytest.fixture
def clean_env(monkeypatch):
    # setenv first so monkeypatch restores the original state, even for
    # variables a .env file sets behind its back.
    for name in ALL_VARS:
        monkeypatch.setenv(name, "x")
        monkeypatch.delenv(name)
    return monkeypatch


def test_defaults(clean_env):
    s = Settings.from_env()
    assert s.compose_file_path == "docker-compose.yml"
    assert s.image_to_watch == "ghcr.io/awbclan/awgores:latest"
    assert s.registry == "ghcr.io"
    assert s.registry_username is None
    assert s.registry_password is None
    assert s.skip_login is False
    assert s.on_stream_end == "exit"
    assert s.log_level == "INFO"


def test_environment_overrides(clean_env):
    clean_env.setenv("COMPOSE_FILE_PATH", "/srv/stack/compose.yml")
    clean_env.setenv("IMAGE_TO_WATCH", "ghcr.io/org/app")
    clean_env.setenv("GHCR_USERNAME", "bot")
    clean_env.setenv("GHCR_PASSWORD", "s3cret")
    clean_env.setenv("CIW_SKIP_LOGIN", "yes")
    clean_env.setenv("CIW_ON_STREAM_END", "Resubscribe")
    clean_env.setenv("CIW_RESUBSCRIBE_BACKOFF_S", "2")
    clean_env.setenv("CIW_LOG_LEVEL", "debug")

    s = Settings.from_env()
    assert s.compose_file_path == "/srv/stack/compose.yml"
    assert s.image_to_watch == "ghcr.io/org/app"
    assert (s.registry_username, s.registry_password) == ("bot", "s3cret")
    assert s.skip_login is True
    assert s.on_stream_end == "resubscribe"
    assert s.resubscribe_backoff_s == 2
    assert s.log_level == "DEBUG"


def test_invalid_values_fall_back(clean_env):
    clean_env.setenv("CIW_ON_STREAM_END", "explode")
    clean_env.setenv("CIW_RESUBSCRIBE_BACKOFF_S", "soon")
    s = Settings.from_env()
    assert s.on_stream_end == "exit"
    assert s.resubscribe_backoff_s == 5


def test_settings_are_immutable(clean_env):
    s = Settings.from_env()
    with pytest.raises(Exception):
        s.image_to_watch = "other"  # type: ignore[misc]


def test_env_file_is_loaded(clean_env, tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("IMAGE_TO_WATCH=ghcr.io/org/from-dotenv\nGHCR_USERNAME=dotenv-user\n")

    s = load_settings(str(env_file))
    assert s.image_to_watch == "ghcr.io/org/from-dotenv"
    assert s.registry_username == "dotenv-user"


def test_process_environment_wins_over_env_file(clean_env, tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("IMAGE_TO_WATCH=ghcr.io/org/from-dotenv\n")
    clean_env.setenv("IMAGE_TO_WATCH", "ghcr.io/org/from-env")

    s = load_settings(str(env_file))
    assert s.image_to_watch == "ghcr.io/org/from-env"
    assert os.environ["IMAGE_TO_WATCH"] == "ghcr.io/org/from-env"
