"""``ConditionalQuery``: a query whose fragments depend on runtime values.

Every combination of branch points is rendered and checked when the query is
constructed, so a query object that exists can only ever run SQL that was
validated up front.  Build once (module level is fine) and call many times::

    users_query = ConditionalQuery(
        User,
        "SELECT id AS user_id, first_name, email FROM users",
        When("name", "WHERE first_name LIKE", Arg("name")),
        "ORDER BY first_name DESC",
        When("limit", "LIMIT", Arg("limit")),
        backend="sqlite",
    )

    users = users_query.fetch_all(conn, name="J%", limit=None)
"""
from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from brickorm.compile.base import Backend
from brickorm.compile.registry import resolve_backend
from brickorm.config import get_settings
from brickorm.errors import UnmatchedBranchError
from brickorm.query.expand import QueryBranch, bind, expand, render
from brickorm.query.shape import check_shapes
from brickorm.query.skeleton import Token, check_skeleton
from brickorm.runtime import executor

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class CompiledBranch:
    """One enumerated variant of a conditional query.

    Attributes:
        index: Position in the plan; lower indices are tried first.
        guards: Labels of the guards that must all hold.
        sql: The rendered statement.
        output_names: Top-level select-list names (``None`` if unknown).
    """

    index: int
    guards: tuple[str, ...]
    sql: str
    output_names: tuple[str, ...] | None
    branch: QueryBranch


@dataclass(frozen=True)
class SelectedBranch:
    """The variant chosen for one call, with its bound arguments."""

    index: int
    sql: str
    args: tuple[Any, ...]


class ConditionalQuery(Generic[T]):
    """A query skeleton compiled into every reachable variant.

    Args:
        output: Row type: a pydantic model, ``dict``, ``tuple``, or any type
            pydantic can validate a mapping into.
        *skeleton: Literals, :class:`~brickorm.query.skeleton.Arg` and
            :class:`~brickorm.query.skeleton.When` tokens.
        backend: Backend instance or name; defaults to the configured one.
        max_branch_points: Overrides :attr:`CompilerSettings.max_branch_points`.

    Raises:
        InvalidSkeletonError: For malformed skeletons.
        BranchCapacityExceededError: For too many branch points.
        BranchResultShapeMismatchError: If variants select different columns.
    """

    def __init__(
        self,
        output: type[T],
        *skeleton: Token,
        backend: Backend | str | None = None,
        max_branch_points: int | None = None,
    ) -> None:
        self.output = output
        self.backend = resolve_backend(backend)
        limit = (
            max_branch_points
            if max_branch_points is not None
            else get_settings().max_branch_points
        )
        tokens = check_skeleton(skeleton)
        branches = expand(tokens, limit)
        sqls = [render(b, self.backend) for b in branches]
        names = check_shapes(sqls, output, self.backend.name)
        self._variants = tuple(
            CompiledBranch(
                index=i,
                guards=tuple(g.label for g in b.guards),
                sql=sql,
                output_names=names,
                branch=b,
            )
            for i, (b, sql) in enumerate(zip(branches, sqls))
        )
        self._decoder = executor.make_decoder(output)
        for v in self._variants:
            logger.debug("variant %d %s: %s", v.index, list(v.guards), v.sql)

    @property
    def variants(self) -> tuple[CompiledBranch, ...]:
        """Every compiled variant, in dispatch order."""
        return self._variants

    def select(self, **params: Any) -> SelectedBranch:
        """Choose the variant for ``params`` and bind its arguments.

        Raises:
            UnmatchedBranchError: If no variant matches.
        """
        for variant in self._variants:
            if variant.branch.matches(params):
                return SelectedBranch(
                    index=variant.index,
                    sql=variant.sql,
                    args=bind(variant.branch, params),
                )
        raise UnmatchedBranchError("no query branch matched the given parameters")

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def fetch(self, handle: Any, **params: Any) -> Iterator[T]:
        """Lazily yield decoded rows."""
        chosen = self.select(**params)
        return executor.stream(
            handle, chosen.sql, chosen.args, self._decoder, self.backend.name
        )

    def fetch_all(self, handle: Any, **params: Any) -> list[T]:
        chosen = self.select(**params)
        return executor.fetch_all(
            handle, chosen.sql, chosen.args, self._decoder, self.backend.name
        )

    def fetch_one(self, handle: Any, **params: Any) -> T:
        """Return exactly one row (``RowNotFoundError`` / ``MultipleRowsError``)."""
        chosen = self.select(**params)
        return executor.fetch_one(
            handle, chosen.sql, chosen.args, self._decoder, self.backend.name
        )

    def fetch_optional(self, handle: Any, **params: Any) -> T | None:
        chosen = self.select(**params)
        return executor.fetch_optional(
            handle, chosen.sql, chosen.args, self._decoder, self.backend.name
        )

    def __repr__(self) -> str:
        name = getattr(self.output, "__name__", repr(self.output))
        return f"ConditionalQuery({name}, variants={len(self._variants)}, backend={self.backend.name!r})"
