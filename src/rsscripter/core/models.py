"""In-memory model of a Redshift database catalog.

The model is a tree: a Database owns Schemas (and server-level Groups),
a Schema owns Tables and Views, Tables and Views own Columns and a Table
owns Constraints. Every container keeps its children in insertion order,
keyed by case-insensitive name. A child's back-reference to its container
is set when it is added and cleared when it is removed; it is used for
name lookups only.

The catalog reader builds the tree once per run. The script renderer
only reads it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Generic, Iterator, TypeVar, overload

from rsscripter.core.errors import CatalogShapeError, OwnershipError
from rsscripter.core.quoting import QuoteMode, qualified_name, quote_identifier

T = TypeVar("T")


class DistributionStyle(IntEnum):
    """
    How the rows of a table are spread across the compute nodes.

    The values match `pg_class.reldiststyle`.

    Values:
        EVEN: Round-robin distribution. This is the default.
        KEY: Rows are distributed by the value of the DISTKEY column.
        ALL: A full copy of the table is stored on every node.
    """

    EVEN = 0
    KEY = 1
    ALL = 8


class ConstraintType(str, Enum):
    """Constraint kinds, valued by their `pg_constraint.contype` code."""

    PRIMARY_KEY = "p"
    UNIQUE = "u"
    FOREIGN_KEY = "f"


class NamedCollection(Generic[T]):
    """
    Ordered, case-insensitive keyed collection of named children.

    When `link` is set, adding an item sets `item.<link>` to the owner and
    removing it resets the attribute to None. An item that already links
    to a different owner cannot be added.
    """

    def __init__(self, owner: object | None = None, *, link: str | None = None) -> None:
        self._owner = owner
        self._link = link
        self._items: dict[str, T] = {}

    @staticmethod
    def _key(name: str) -> str:
        return name.casefold()

    def add(self, item: T) -> T:
        """Add an item and link it to the owner."""
        name = getattr(item, "name")
        if self._link is not None:
            current = getattr(item, self._link)
            if current is not None and current is not self._owner:
                raise OwnershipError(
                    f"Cannot add '{name}' to '{self._owner}' because it already "
                    f"belongs to '{current}'."
                )
        key = self._key(name)
        if key in self._items:
            raise OwnershipError(
                f"Cannot add '{name}' to '{self._owner}' because an item with "
                "the same name is already in the collection."
            )
        self._items[key] = item
        if self._link is not None:
            setattr(item, self._link, self._owner)
        return item

    def remove(self, item: T) -> None:
        """Remove an item and clear its link to the owner."""
        key = self._key(getattr(item, "name"))
        if self._items.get(key) is not item:
            raise KeyError(getattr(item, "name"))
        del self._items[key]
        if self._link is not None:
            setattr(item, self._link, None)

    def clear(self) -> None:
        """Remove all items, clearing each link."""
        for item in list(self._items.values()):
            self.remove(item)

    def get(self, name: str, default: T | None = None) -> T | None:
        """Return the item with the given name, or `default`."""
        return self._items.get(self._key(name), default)

    @overload
    def __getitem__(self, key: int) -> T: ...

    @overload
    def __getitem__(self, key: str) -> T: ...

    def __getitem__(self, key):
        if isinstance(key, int):
            return list(self._items.values())[key]
        return self._items[self._key(key)]

    def __contains__(self, item: object) -> bool:
        if isinstance(item, str):
            return self._key(item) in self._items
        name = getattr(item, "name", None)
        return name is not None and self._items.get(self._key(name)) is item

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._items.values()))

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)


@dataclass(eq=False)
class Column:
    """A column of a table or view."""

    name: str
    data_type: str = ""
    is_nullable: bool = True
    default_value: str | None = None
    compression_encoding: str | None = None
    is_distribution_key: bool = False
    sort_key_number: int = 0
    description: str | None = None
    parent: Table | View | None = field(default=None, init=False, repr=False)

    @property
    def has_compression_encoding(self) -> bool:
        """True when an encoding other than NONE or RAW is set."""
        return self.compression_encoding is not None and self.compression_encoding.upper() not in (
            "NONE",
            "RAW",
        )

    def quoted_name(self, mode: QuoteMode = QuoteMode.WHEN_NECESSARY) -> str:
        return quote_identifier(self.name, mode)

    def qualified_name(self, mode: QuoteMode = QuoteMode.WHEN_NECESSARY) -> str:
        if self.parent is None:
            return quote_identifier(self.name, mode)
        return self.parent.qualified_name(mode) + "." + quote_identifier(
            self.name, mode, qualified=True
        )

    def __str__(self) -> str:
        return self.name if self.parent is None else f"{self.parent}.{self.name}"


@dataclass(eq=False)
class Constraint:
    """A primary key, unique or foreign key constraint on a table."""

    name: str
    constraint_type: ConstraintType = ConstraintType.PRIMARY_KEY
    definition: str = ""
    description: str | None = None
    columns: list[Column] = field(default_factory=list)
    parent: Table | None = field(default=None, init=False, repr=False)

    def quoted_name(self, mode: QuoteMode = QuoteMode.WHEN_NECESSARY) -> str:
        return quote_identifier(self.name, mode)

    def __str__(self) -> str:
        return self.name if self.parent is None else f"{self.parent}.{self.name}"


@dataclass(eq=False)
class Group:
    """A server-level user group."""

    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(eq=False)
class SchemaObject:
    """Base for the named objects that live in a schema (tables and views)."""

    name: str
    owner: str | None = None
    access_control_list: str | None = None
    description: str | None = None
    schema: Schema | None = field(default=None, init=False, repr=False)

    def quoted_name(self, mode: QuoteMode = QuoteMode.WHEN_NECESSARY) -> str:
        return quote_identifier(self.name, mode)

    def qualified_name(self, mode: QuoteMode = QuoteMode.WHEN_NECESSARY) -> str:
        parent = self.schema.name if self.schema is not None else None
        return qualified_name(parent, self.name, mode)

    def __str__(self) -> str:
        return self.name if self.schema is None else f"{self.schema.name}.{self.name}"


@dataclass(eq=False)
class Table(SchemaObject):
    """A table with its columns, constraints and physical layout settings."""

    distribution_style: DistributionStyle = DistributionStyle.EVEN
    estimated_row_count: int = 0
    columns: NamedCollection[Column] = field(init=False, repr=False)
    constraints: NamedCollection[Constraint] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.columns = NamedCollection(self, link="parent")
        self.constraints = NamedCollection(self, link="parent")

    @property
    def distribution_key(self) -> Column | None:
        """The DISTKEY column, if any."""
        keys = [c for c in self.columns if c.is_distribution_key]
        if len(keys) > 1:
            raise CatalogShapeError(f"Table '{self}' has more than one distribution key column.")
        return keys[0] if keys else None

    @property
    def primary_key(self) -> Constraint | None:
        """The primary key constraint, if any."""
        keys = self._constraints_of(ConstraintType.PRIMARY_KEY)
        if len(keys) > 1:
            raise CatalogShapeError(f"Table '{self}' has more than one primary key.")
        return keys[0] if keys else None

    def unique_constraints(self) -> list[Constraint]:
        return self._constraints_of(ConstraintType.UNIQUE)

    def foreign_key_constraints(self) -> list[Constraint]:
        return self._constraints_of(ConstraintType.FOREIGN_KEY)

    def sort_keys(self) -> list[Column]:
        """Sort key columns ordered by their sort key position."""
        return sorted(
            (c for c in self.columns if c.sort_key_number > 0),
            key=lambda c: c.sort_key_number,
        )

    def _constraints_of(self, constraint_type: ConstraintType) -> list[Constraint]:
        return [c for c in self.constraints if c.constraint_type == constraint_type]


@dataclass(eq=False)
class View(SchemaObject):
    """A view and the output columns of its definition."""

    definition: str = ""
    columns: NamedCollection[Column] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.columns = NamedCollection(self, link="parent")


@dataclass(eq=False)
class Schema:
    """A schema and the tables and views it contains."""

    name: str
    owner: str | None = None
    access_control_list: str | None = None
    description: str | None = None
    database: Database | None = field(default=None, init=False, repr=False)
    tables: NamedCollection[Table] = field(init=False, repr=False)
    views: NamedCollection[View] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.tables = NamedCollection(self, link="schema")
        self.views = NamedCollection(self, link="schema")

    def quoted_name(self, mode: QuoteMode = QuoteMode.WHEN_NECESSARY) -> str:
        return quote_identifier(self.name, mode)

    def __str__(self) -> str:
        return self.name


@dataclass(eq=False)
class Database:
    """The scripted database: its schemas plus the server's groups."""

    name: str
    owner: str | None = None
    access_control_list: str | None = None
    description: str | None = None
    schemas: NamedCollection[Schema] = field(init=False, repr=False)
    groups: NamedCollection[Group] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.schemas = NamedCollection(self, link="database")
        self.groups = NamedCollection(self)

    def quoted_name(self, mode: QuoteMode = QuoteMode.WHEN_NECESSARY) -> str:
        return quote_identifier(self.name, mode)

    def __str__(self) -> str:
        return self.name
