"""Branch expansion and rendering.

Expansion walks the skeleton once.  Literals and arguments are appended to
every branch built so far; each branch point doubles the list, the clones
carrying the new guard and its fragments first, the unchanged originals
after.  Two branch points ``g1`` then ``g2`` therefore give::

    [g1 g2] [g2] [g1] []

Dispatch picks the first branch whose guards all hold, so the most specific
branch wins and the final, unguarded branch is the fallback.
"""
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from brickorm.compile.base import Backend
from brickorm.errors import BranchCapacityExceededError
from brickorm.query.skeleton import Arg, Fragment, Params, Token, When, branch_point_count

_NO_SPACE_BEFORE_ARG = ("=", "<", ">", "(", ",")
_NO_SPACE_BEFORE_LITERAL = (")", ",")


@dataclass(frozen=True)
class QueryBranch:
    """One possible query: its guards and its fragment sequence."""

    guards: tuple[When, ...]
    fragments: tuple[Fragment, ...]

    def matches(self, params: Params) -> bool:
        return all(g.holds(params) for g in self.guards)

    @property
    def args(self) -> tuple[Arg, ...]:
        return tuple(f for f in self.fragments if isinstance(f, Arg))


def expand(tokens: Sequence[Token], max_branch_points: int) -> tuple[QueryBranch, ...]:
    """Enumerate every branch of ``tokens``.

    Raises:
        BranchCapacityExceededError: If there are more than
            ``max_branch_points`` branch points.
    """
    count = branch_point_count(tokens)
    if count > max_branch_points:
        raise BranchCapacityExceededError(count, max_branch_points)

    branches = [QueryBranch(guards=(), fragments=())]
    for token in tokens:
        if isinstance(token, When):
            clones = [
                QueryBranch(b.guards + (token,), b.fragments + token.fragments)
                for b in branches
            ]
            branches = clones + branches
        else:
            branches = [QueryBranch(b.guards, b.fragments + (token,)) for b in branches]

    # Clones go first, so the last branch is always the unguarded fallback.
    return tuple(branches)


def _glue(previous: str, current: str, is_arg: bool) -> str:
    if not previous:
        return ""
    if previous[-1].isspace() or current[:1].isspace():
        return ""
    if is_arg and previous.endswith(_NO_SPACE_BEFORE_ARG):
        return ""
    if not is_arg and current.startswith(_NO_SPACE_BEFORE_LITERAL):
        return ""
    return " "


def render(branch: QueryBranch, backend: Backend) -> str:
    """Render ``branch`` to SQL, numbering placeholders from the start."""
    placeholders = backend.placeholders()
    sql = ""
    for frag in branch.fragments:
        if isinstance(frag, Arg):
            text, is_arg = next(placeholders), True
        else:
            text, is_arg = frag, False
        if not text:
            continue
        sql += _glue(sql, text, is_arg) + text
    return sql


def bind(branch: QueryBranch, params: Params) -> tuple[Any, ...]:
    """Resolve the branch's arguments for one call."""
    return tuple(a.resolve(params) for a in branch.args)
