"""Process-wide compiler settings.

Settings are a frozen dataclass so a compiled table never observes a change
half-way through.  They can be built from ``BRICKORM_*`` environment
variables, optionally loaded from a ``.env`` file::

    from brickorm.config import CompilerSettings, configure

    configure(default_backend="sqlite", max_branch_points=6)

    settings = CompilerSettings.from_env(".env")

Recognised variables
--------------------
``BRICKORM_BACKEND``                default backend name (``postgres``)
``BRICKORM_MAX_BRANCH_POINTS``      branch points per conditional query (``5``)
``BRICKORM_STREAM_BATCH_SIZE``      rows fetched per round trip by streams (``100``)
``BRICKORM_WARN_RESERVED``          ``0``/``false`` silences reserved-word warnings
"""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path

from dotenv import load_dotenv

_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


@dataclass(frozen=True)
class CompilerSettings:
    """Settings consulted at compile time and by streaming operations.

    Attributes:
        default_backend: Backend used by tables that do not declare one.
        max_branch_points: Maximum branch points per conditional query.  The
            enumeration doubles per branch point, so ``5`` allows 32 variants.
        stream_batch_size: ``fetchmany`` size used by streaming operations.
        warn_reserved_identifiers: Emit a warning for reserved field names.
    """

    default_backend: str = "postgres"
    max_branch_points: int = 5
    stream_batch_size: int = 100
    warn_reserved_identifiers: bool = True

    def __post_init__(self) -> None:
        if self.max_branch_points < 0:
            raise ValueError("max_branch_points must be >= 0")
        if self.stream_batch_size < 1:
            raise ValueError("stream_batch_size must be >= 1")

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> CompilerSettings:
        """Build settings from ``BRICKORM_*`` environment variables.

        Args:
            env_file: Optional ``.env`` file loaded first.  Variables already
                present in the environment take precedence.

        Returns:
            A new :class:`CompilerSettings`; unset variables keep defaults.
        """
        if env_file is not None:
            load_dotenv(dotenv_path=env_file, override=False)

        defaults = cls()
        warn = os.environ.get("BRICKORM_WARN_RESERVED")
        return cls(
            default_backend=os.environ.get("BRICKORM_BACKEND", defaults.default_backend),
            max_branch_points=int(
                os.environ.get("BRICKORM_MAX_BRANCH_POINTS", defaults.max_branch_points)
            ),
            stream_batch_size=int(
                os.environ.get("BRICKORM_STREAM_BATCH_SIZE", defaults.stream_batch_size)
            ),
            warn_reserved_identifiers=(
                defaults.warn_reserved_identifiers
                if warn is None
                else warn.strip().lower() not in _FALSE_VALUES
            ),
        )


_settings = CompilerSettings()


def get_settings() -> CompilerSettings:
    """Return the active process-wide settings."""
    return _settings


def configure(**overrides: object) -> CompilerSettings:
    """Replace fields of the active settings and return the new value.

    Only affects declarations compiled afterwards.
    """
    global _settings
    _settings = replace(_settings, **overrides)  # type: ignore[arg-type]
    return _settings


def reset_settings(settings: CompilerSettings | None = None) -> None:
    """Restore the default settings (or install ``settings``)."""
    global _settings
    _settings = settings or CompilerSettings()
