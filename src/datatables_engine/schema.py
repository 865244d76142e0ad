# datatables_engine/schema.py
from typing import Any, Dict, Generic, List, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enum import OrderDirection

T = TypeVar("T")


# ----------------------
# Inbound request (as sent by the grid widget)
# ----------------------
class DataTablesSearch(BaseModel):
    value: Optional[str] = ""
    regex: bool = False

    @field_validator("value", mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> str:
        return "" if v is None else str(v)


class DataTablesColumn(BaseModel):
    data: Optional[Union[int, str]] = None
    name: Optional[str] = ""
    searchable: bool = True
    orderable: bool = True
    search: DataTablesSearch = Field(default_factory=DataTablesSearch)


class DataTablesOrder(BaseModel):
    column: int
    dir: OrderDirection = OrderDirection.ASC

    @field_validator("dir", mode="before")
    @classmethod
    def normalize_direction(cls, v: Any) -> OrderDirection:
        if isinstance(v, str) and v.lower() == "desc":
            return OrderDirection.DESC
        return OrderDirection.ASC


class DataTablesRequest(BaseModel):
    draw: Optional[int] = 1  # Provide a default value
    start: Optional[int] = 0
    length: Optional[int] = 10
    search: DataTablesSearch = Field(default_factory=DataTablesSearch)
    order: List[DataTablesOrder] = []
    columns: List[DataTablesColumn] = []
    extra: Optional[Dict[str, Any]] = {}


class DataTablesResponse(BaseModel, Generic[T]):
    draw: int
    recordsTotal: int
    recordsFiltered: int
    data: Optional[T]
    error: Optional[str] = None
    input: Optional[Dict[str, Any]] = None
    queries: Optional[List[str]] = None


# ----------------------
# Normalized request used by the engine
# ----------------------
class ColumnRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    index: int
    name: str = ""
    data: str = ""
    searchable: bool = True
    orderable: bool = True
    search_term: str = ""
    search_is_regex: bool = False

    @property
    def identifier(self) -> str:
        """Name if the client set one, otherwise the data path."""
        return self.name or self.data


class OrderCriterion(BaseModel):
    model_config = ConfigDict(frozen=True)

    column_index: int
    direction: OrderDirection = OrderDirection.ASC


class GridRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    draw: int = 1
    start: int = Field(default=0, ge=0)
    length: int = 10
    search_term: str = ""
    search_is_regex: bool = False
    case_insensitive: bool = True
    columns: tuple[ColumnRequest, ...] = ()
    order: tuple[OrderCriterion, ...] = ()

    @classmethod
    def from_request(
        cls, request: DataTablesRequest, case_insensitive: bool = True
    ) -> "GridRequest":
        columns = tuple(
            ColumnRequest(
                index=index,
                name=(col.name or "").strip(),
                data="" if col.data is None else str(col.data),
                searchable=col.searchable,
                orderable=col.orderable,
                search_term=col.search.value.strip(),
                search_is_regex=col.search.regex,
            )
            for index, col in enumerate(request.columns)
        )
        order = tuple(
            OrderCriterion(column_index=o.column, direction=o.dir) for o in request.order
        )
        return cls(
            draw=request.draw if request.draw is not None else 1,
            start=max(request.start or 0, 0),
            length=request.length if request.length is not None else 10,
            search_term=request.search.value.strip(),
            search_is_regex=request.search.regex,
            case_insensitive=case_insensitive,
            columns=columns,
            order=order,
        )

    def with_window(self, start: int, length: int) -> "GridRequest":
        return self.model_copy(update={"start": start, "length": length})


class ResultPage(BaseModel):
    """One processed page, before it is rendered into the response envelope."""

    draw: int
    records_total: int
    records_filtered: int
    rows: List[Any] = []
    filter_applied: bool = False
    queries: List[str] = []

    def render(self) -> Dict[str, Any]:
        return {
            "draw": self.draw,
            "recordsTotal": self.records_total,
            "recordsFiltered": self.records_filtered,
            "data": self.rows,
        }
