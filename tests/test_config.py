"""Unit tests for brickorm.config."""

from __future__ import annotations

import pytest

from brickorm.config import CompilerSettings, configure, get_settings, reset_settings

_VARS = (
    "BRICKORM_BACKEND",
    "BRICKORM_MAX_BRANCH_POINTS",
    "BRICKORM_STREAM_BATCH_SIZE",
    "BRICKORM_WARN_RESERVED",
)


@pytest.fixture()
def clean_env(monkeypatch):
    for var in _VARS:
        monkeypatch.delenv(var, raising=False)
    return monkeypatch


def test_defaults():
    settings = CompilerSettings()
    assert settings.default_backend == "postgres"
    assert settings.max_branch_points == 5
    assert settings.stream_batch_size == 100
    assert settings.warn_reserved_identifiers


def test_from_env(clean_env):
    clean_env.setenv("BRICKORM_BACKEND", "sqlite")
    clean_env.setenv("BRICKORM_MAX_BRANCH_POINTS", "7")
    clean_env.setenv("BRICKORM_WARN_RESERVED", "off")
    settings = CompilerSettings.from_env()
    assert settings.default_backend == "sqlite"
    assert settings.max_branch_points == 7
    assert settings.stream_batch_size == 100
    assert not settings.warn_reserved_identifiers


def test_from_env_file(clean_env, tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("BRICKORM_BACKEND=mysql\nBRICKORM_STREAM_BATCH_SIZE=10\n")
    clean_env.setenv("BRICKORM_STREAM_BATCH_SIZE", "25")
    try:
        settings = CompilerSettings.from_env(env_file)
        assert settings.default_backend == "mysql"
        assert settings.stream_batch_size == 25
    finally:
        clean_env.delenv("BRICKORM_BACKEND", raising=False)


@pytest.mark.parametrize(
    "overrides",
    [{"max_branch_points": -1}, {"stream_batch_size": 0}],
)
def test_invalid_values(overrides):
    with pytest.raises(ValueError):
        CompilerSettings(**overrides)


def test_configure_and_reset():
    configure(default_backend="mysql", stream_batch_size=5)
    assert get_settings().default_backend == "mysql"
    assert get_settings().stream_batch_size == 5
    reset_settings()
    assert get_settings() == CompilerSettings()


def test_settings_are_frozen():
    with pytest.raises(AttributeError):
        get_settings().max_branch_points = 9  # type: ignore[misc]
