"""Backend abstractions: CompiledStatement and the Backend ABC.

The Template Method pattern (GoF) is used:
- ``Backend`` defines the capability table consulted by every generator
  (quoting, placeholder numbering, reserved words, insert strategy).
- ``PostgresBackend``, ``MySQLBackend`` and ``SQLiteBackend`` override the
  dialect-specific steps.

Backends are stateless; ``placeholders()`` returns a fresh iterator so
numbered dialects restart at ``$1`` for every statement.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from typing import Any

#: Keywords reserved by every supported dialect.
COMMON_RESERVED: frozenset[str] = frozenset({
    "ALL", "ALTER", "AND", "ANY", "AS", "ASC", "BETWEEN", "BY", "CASE",
    "CHECK", "COLUMN", "CONSTRAINT", "CREATE", "CROSS", "DEFAULT", "DELETE",
    "DESC", "DISTINCT", "DROP", "ELSE", "END", "EXISTS", "FOR", "FOREIGN",
    "FROM", "GROUP", "HAVING", "IN", "INNER", "INSERT", "INTO", "IS", "JOIN",
    "LEFT", "LIKE", "LIMIT", "NOT", "NULL", "ON", "OR", "ORDER", "OUTER",
    "PRIMARY", "REFERENCES", "RIGHT", "SELECT", "SET", "TABLE", "THEN", "TO",
    "UNION", "UNIQUE", "UPDATE", "USING", "VALUES", "WHEN", "WHERE", "WITH",
})


@dataclass(frozen=True)
class CompiledStatement:
    """One emitted statement.

    Attributes:
        sql: The SQL text with dialect-specific positional placeholders.
        params: Names bound to the placeholders, in order.  Entity or insert
            field names, or ``$``-prefixed call arguments (``$id``,
            ``$value``, ``$by``, ``$limit``, ``$offset``).
        dialect: The backend name the statement was compiled for.
    """

    sql: str
    params: tuple[str, ...]
    dialect: str

    def bind(self, source: Any = None, **arguments: Any) -> tuple[Any, ...]:
        """Return the positional parameter tuple for this statement.

        Args:
            source: Object whose attributes provide field-named params.
            **arguments: Values for ``$``-prefixed params, keyed without ``$``.
        """
        values: list[Any] = []
        for name in self.params:
            if name.startswith("$"):
                values.append(arguments[name[1:]])
            else:
                values.append(getattr(source, name))
        return tuple(values)


class Backend(ABC):
    """Abstract base for dialect capability tables.

    Subclasses set the class attributes and implement the placeholder
    sequence; generators use this interface via the Strategy pattern.
    """

    #: Character wrapped around quoted identifiers.
    quote_char: str = '"'
    #: Upper-case identifiers that must always be quoted.
    reserved_idents: frozenset[str] = COMMON_RESERVED
    #: Whether ``INSERT ... RETURNING`` is available.
    supports_returning: bool = False
    #: Query returning the identifier generated by the last insert.
    last_insert_id_sql: str | None = None
    #: Statement opening a transaction explicitly.
    begin_sql: str = "BEGIN"

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the canonical backend name (``'postgres'``, ...)."""

    @abstractmethod
    def placeholders(self) -> Iterator[str]:
        """Return an infinite iterator of placeholders for one statement."""

    @abstractmethod
    def any_of(self, column: str, placeholder: str) -> str:
        """Return a predicate testing ``column`` against an array argument."""

    def bind_array(self, values: Sequence[Any]) -> Any:
        """Convert a sequence into the value bound by :meth:`any_of`."""
        return list(values)

    def is_reserved(self, ident: str) -> bool:
        """Return ``True`` if ``ident`` collides with a reserved word."""
        return ident.upper() in self.reserved_idents

    def quote(self, ident: str, force: bool = False) -> str:
        """Quote ``ident`` if it is reserved or ``force`` is set.

        Args:
            ident: Unquoted identifier (table, column or alias).
            force: Quote even if the identifier is not reserved.

        Returns:
            The identifier, wrapped in :attr:`quote_char` when required.
        """
        if not force and not self.is_reserved(ident):
            return ident
        q = self.quote_char
        escaped = ident.replace(q, q + q)
        return f"{q}{escaped}{q}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"
