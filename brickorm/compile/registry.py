"""Backend registry (Open/Closed Principle).

``BackendFactory``
    Central registry for :class:`~brickorm.compile.base.Backend`
    implementations.  Register a backend once; declarations naming it via the
    ``backend`` option (or the configured default) pick it up automatically.

Usage::

    from brickorm.compile.registry import BackendFactory

    @BackendFactory.register("cockroach")
    class CockroachBackend(PostgresBackend):
        ...
"""

from __future__ import annotations

from collections.abc import Callable
from typing import ClassVar

from brickorm.compile.base import Backend
from brickorm.config import get_settings
from brickorm.errors import CompilationError


class BackendFactory:
    """Registry mapping backend names to :class:`Backend` classes.

    Callers register a backend class once; generators obtain instances on
    demand via :meth:`create`.

    Example::

        @BackendFactory.register("cockroach")
        class CockroachBackend(PostgresBackend):
            ...

        backend = BackendFactory.create("cockroach")
    """

    _backends: ClassVar[dict[str, type[Backend]]] = {}

    @classmethod
    def register(cls, name: str) -> Callable[[type[Backend]], type[Backend]]:
        """Decorator that registers a backend class under ``name``.

        Args:
            name: The backend name (e.g. ``"postgres"``).

        Returns:
            A decorator that registers and returns the backend class.
        """

        def decorator(backend_cls: type[Backend]) -> type[Backend]:
            cls._backends[name] = backend_cls
            return backend_cls

        return decorator

    @classmethod
    def register_class(cls, name: str, backend_cls: type[Backend]) -> None:
        """Register a backend class without using the decorator form.

        Args:
            name: The backend name.
            backend_cls: The :class:`Backend` subclass to register.
        """
        cls._backends[name] = backend_cls

    @classmethod
    def create(cls, name: str) -> Backend:
        """Instantiate the backend registered for ``name``.

        Args:
            name: The backend name.

        Returns:
            A fresh :class:`Backend` instance.

        Raises:
            CompilationError: If no backend is registered for ``name``.
        """
        backend_cls = cls._backends.get(name)
        if backend_cls is None:
            registered = sorted(cls._backends)
            raise CompilationError(
                f"Unsupported backend: '{name}'. Registered backends: {registered}."
            )
        return backend_cls()

    @classmethod
    def registered_backends(cls) -> list[str]:
        """Return the sorted list of registered backend names."""
        return sorted(cls._backends)


def resolve_backend(backend: Backend | str | None) -> Backend:
    """Return a :class:`Backend` for an instance, a name, or the default.

    ``None`` resolves to :attr:`CompilerSettings.default_backend`.
    """
    if isinstance(backend, Backend):
        return backend
    if backend is None:
        backend = get_settings().default_backend
    return BackendFactory.create(backend)
