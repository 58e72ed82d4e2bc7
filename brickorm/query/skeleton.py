"""Skeleton tokens of a conditional query.

A skeleton is a flat sequence of:

* ``str``                     a literal SQL fragment;
* :class:`Arg`                an inline argument, rendered as a placeholder;
* :class:`When`               a branch point: fragments included only when its
  guard holds.  Branch points do not nest.

Example::

    skeleton = (
        "SELECT id, name FROM users",
        When("name", "WHERE name LIKE", Arg(lambda p: f"%{p['name']}%")),
        "ORDER BY name",
        When("limit", "LIMIT", Arg("limit")),
    )

Guards and argument sources are either a parameter name or a callable taking
the mapping of call parameters.  A named guard holds when that parameter is
present and not ``None``.
"""
from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Union

from brickorm.errors import InvalidSkeletonError

Params = Mapping[str, Any]
Source = Union[str, Callable[[Params], Any]]


def _label(source: Source) -> str:
    if isinstance(source, str):
        return source
    return getattr(source, "__name__", repr(source))


@dataclass(frozen=True)
class Arg:
    """An inline argument bound to one placeholder."""

    source: Source

    def resolve(self, params: Params) -> Any:
        """Return the bound value for this call.

        Raises:
            TypeError: If a named parameter was not supplied.
        """
        if callable(self.source):
            return self.source(params)
        try:
            return params[self.source]
        except KeyError:
            raise TypeError(f"missing query parameter '{self.source}'") from None

    @property
    def label(self) -> str:
        return _label(self.source)


Fragment = Union[str, Arg]


@dataclass(frozen=True, init=False)
class When:
    """A branch point: ``fragments`` are emitted only when ``guard`` holds."""

    guard: Source
    fragments: tuple[Fragment, ...]

    def __init__(self, guard: Source, *fragments: Fragment) -> None:
        if not (isinstance(guard, str) or callable(guard)):
            raise InvalidSkeletonError(
                f"guard must be a parameter name or a callable, got {guard!r}"
            )
        for frag in fragments:
            if isinstance(frag, When):
                raise InvalidSkeletonError(
                    "branch points cannot be nested",
                    details={"guard": _label(guard)},
                )
            if not isinstance(frag, (str, Arg)):
                raise InvalidSkeletonError(
                    f"unsupported fragment {frag!r} inside branch point",
                    details={"guard": _label(guard)},
                )
        object.__setattr__(self, "guard", guard)
        object.__setattr__(self, "fragments", tuple(fragments))

    def holds(self, params: Params) -> bool:
        """Evaluate the guard against the call parameters."""
        if callable(self.guard):
            return bool(self.guard(params))
        return params.get(self.guard) is not None

    @property
    def label(self) -> str:
        return _label(self.guard)


Token = Union[str, Arg, When]


def check_skeleton(tokens: Iterable[Any]) -> tuple[Token, ...]:
    """Validate a skeleton and return it as a tuple.

    Raises:
        InvalidSkeletonError: For an empty skeleton or an unsupported token.
    """
    result = tuple(tokens)
    if not result:
        raise InvalidSkeletonError("query skeleton is empty")
    for token in result:
        if not isinstance(token, (str, Arg, When)):
            raise InvalidSkeletonError(
                f"unsupported token {token!r}; expected str, Arg or When"
            )
    return result


def branch_point_count(tokens: Iterable[Token]) -> int:
    return sum(1 for t in tokens if isinstance(t, When))
