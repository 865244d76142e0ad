import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .exceptions import UnknownColumnError
from .schema import GridRequest

logger = logging.getLogger(__name__)


class SearchOverride(BaseModel):
    """Named filter strategy used for a column instead of the default match."""

    model_config = ConfigDict(frozen=True)

    strategy: str
    parameters: tuple[Any, ...] = ()


class ColumnDefinition(BaseModel):
    """
    Declared column of a grid.

    ``name`` is the canonical identifier, resolved as an attribute path on SQL
    sources. ``data`` is the path values are read from (in-memory search and
    ordering included) and the key the grid binds to. ``title``
    is the display name used by export and print output.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    data: str = ""
    title: str = ""
    searchable: bool = True
    orderable: bool = True
    exportable: bool = True
    printable: bool = True
    # SQLAlchemy column expression used in place of attribute resolution.
    expression: Any = None
    search_override: Optional[SearchOverride] = None
    formatter: Optional[Callable[[Any, Any], Any]] = Field(default=None, exclude=True)

    @model_validator(mode="before")
    @classmethod
    def fill_defaults(cls, values: Any) -> Any:
        if isinstance(values, dict) and values.get("name"):
            values = dict(values)
            if not values.get("data"):
                values["data"] = values["name"]
            if not values.get("title"):
                values["title"] = values["name"].split(".")[-1].replace("_", " ").title()
        return values


@dataclass(frozen=True, eq=False)
class ResolvedColumn:
    index: int
    name: str
    data: str
    searchable: bool
    orderable: bool
    search_term: str = ""
    search_is_regex: bool = False
    definition: Optional[ColumnDefinition] = None

    @property
    def expression(self):
        return self.definition.expression if self.definition is not None else None

    @property
    def search_override(self) -> Optional[SearchOverride]:
        return self.definition.search_override if self.definition is not None else None


class ColumnResolver:
    """Maps request column indexes to canonical column identifiers."""

    def __init__(self, definitions: Sequence[ColumnDefinition], request: GridRequest):
        self.definitions = tuple(definitions)
        self.request = request
        self._by_name = {}
        for definition in self.definitions:
            self._by_name.setdefault(definition.name, definition)
        self._by_data = {}
        for definition in self.definitions:
            self._by_data.setdefault(definition.data, definition)

    def lookup(self, identifier: str) -> Optional[ColumnDefinition]:
        return self._by_name.get(identifier) or self._by_data.get(identifier)

    def resolve(self, index: int) -> ResolvedColumn:
        if index < 0 or index >= len(self.request.columns):
            raise UnknownColumnError(f"Column index out of range: {index}", index=index)
        col = self.request.columns[index]

        if not self.definitions:
            if not col.identifier:
                raise UnknownColumnError(f"Column {index} has no name or data", index=index)
            return ResolvedColumn(
                index=index,
                name=col.identifier,
                data=col.data or col.identifier,
                searchable=col.searchable,
                orderable=col.orderable,
                search_term=col.search_term,
                search_is_regex=col.search_is_regex,
            )

        definition = None
        if col.name:
            definition = self.lookup(col.name)
        if definition is None and col.data:
            definition = self.lookup(col.data)
        if definition is None:
            raise UnknownColumnError(
                f"Column {index} ({col.identifier!r}) is not declared", index=index
            )
        return ResolvedColumn(
            index=index,
            name=definition.name,
            data=definition.data,
            searchable=col.searchable and definition.searchable,
            orderable=col.orderable and definition.orderable,
            search_term=col.search_term,
            search_is_regex=col.search_is_regex,
            definition=definition,
        )

    def searchable(self) -> Iterator[ResolvedColumn]:
        """Searchable columns in request order; unknown columns are logged and skipped."""
        for col in self.request.columns:
            if not col.searchable:
                continue
            try:
                resolved = self.resolve(col.index)
            except UnknownColumnError as exc:
                logger.warning("Skipping column in search: %s", exc)
                continue
            if resolved.searchable:
                yield resolved
