# datatables_engine/database.py
import logging
from dataclasses import dataclass, replace
from inspect import isawaitable
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple, Type

from sqlalchemy import Select, func, select
from sqlalchemy.exc import SQLAlchemyError

from .columns import ResolvedColumn
from .exceptions import BackendExecutionError, UnknownColumnError
from .ordering import ResolvedOrder, sort_rows
from .pagination import PageWindow, paginate
from .schema import GridRequest
from .search import SearchPlan
from .transformer import get_path, serialize_row
from .utils import (
    apply_joins,
    is_collection_path,
    primary_key_columns,
    related_condition,
    resolve_column,
)

logger = logging.getLogger(__name__)


class DatabaseBackend:
    """
    Capabilities the engine drives: every stage takes a source and returns a
    new one, the original source is never modified.
    """

    def __init__(self, db_session: Any = None):
        self.db_session = db_session  # Could be SQLAlchemy, Databases, etc.

    def source(self):
        """The unfiltered source the pipeline starts from"""
        raise NotImplementedError

    def scope(self, source, scope: Callable[[Any], Any]):
        return scope(source)

    async def count(self, source) -> int:
        """Count the records of a source"""
        raise NotImplementedError

    def filter(self, source, plan: SearchPlan):
        raise NotImplementedError

    def custom_filter(self, source, callback: Callable[..., Any], request: GridRequest):
        """Apply a caller supplied filter in place of the global search"""
        raise NotImplementedError

    def order(self, source, criteria: Sequence[ResolvedOrder], case_insensitive: bool = False):
        raise NotImplementedError

    def paginate(self, source, window: PageWindow):
        raise NotImplementedError

    async def execute(self, source) -> List[Any]:
        """Executes the final, constructed query"""
        raise NotImplementedError

    def describe(self, source) -> Optional[str]:
        return None


# ----------------------
# SQLAlchemy
# ----------------------
@dataclass(frozen=True)
class QueryState:
    """A statement plus the aliased relations already joined into it."""

    statement: Select
    aliases: Tuple[Tuple[str, Any], ...] = ()


class SQLAlchemyBackend(DatabaseBackend):  # Specific database backend
    def __init__(self, db_session, model: Type = None, base_statement: Select = None):
        super().__init__(db_session)
        if model is None and base_statement is None:
            raise ValueError("SQLAlchemyBackend needs a model or a base statement")
        self.model = model
        self.base_statement = base_statement

    def source(self) -> QueryState:
        if self.base_statement is None:
            return QueryState(select(self.model))
        return QueryState(self.base_statement)

    def scope(self, source: QueryState, scope) -> QueryState:
        return replace(source, statement=scope(source.statement))

    def column(self, state: QueryState, column: ResolvedColumn):
        """Resolve a column to an expression, joining relations on the way."""
        if column.expression is not None:
            return state, column.expression
        if self.model is None:
            raise UnknownColumnError(f"No model to resolve column: {column.name}", column.index)

        aliased_models = dict(state.aliases)
        joins = {}
        try:
            attr = resolve_column(self.model, column.name, joins, aliased_models)
        except AttributeError:
            raise UnknownColumnError(f"Invalid column path: {column.name}", column.index)
        if not joins:
            return state, attr
        statement = apply_joins(state.statement, joins)
        return QueryState(statement, tuple(aliased_models.items())), attr

    def through_collection(self, column: ResolvedColumn) -> bool:
        """Whether the column path crosses a to-many relationship."""
        if column.expression is not None or self.model is None:
            return False
        try:
            return is_collection_path(self.model, column.name)
        except AttributeError:
            raise UnknownColumnError(f"Invalid column path: {column.name}", column.index)

    def condition(self, state: QueryState, column: ResolvedColumn, build):
        """
        Search condition for a column. Paths through to-many relations become
        EXISTS clauses instead of joins so parent rows are not repeated.
        """
        if self.through_collection(column):
            try:
                return state, related_condition(self.model, column.name, build)
            except AttributeError:
                raise UnknownColumnError(f"Invalid column path: {column.name}", column.index)
        state, expression = self.column(state, column)
        return state, build(expression)

    async def count(self, source: QueryState) -> int:
        count_stmt = select(func.count()).select_from(
            source.statement.order_by(None).subquery()
        )
        result = await self._execute(count_stmt)
        return result.scalar_one()

    def filter(self, source: QueryState, plan: SearchPlan) -> QueryState:
        state = source

        def column_condition(column, build):
            nonlocal state
            try:
                state, condition = self.condition(state, column, build)
            except UnknownColumnError as exc:
                logger.warning("Skipping column in search: %s", exc)
                return None
            return condition

        clause = plan.where_clause(column_condition)
        if clause is None:
            return state
        return replace(state, statement=state.statement.where(clause))

    def custom_filter(self, source: QueryState, callback, request: GridRequest) -> QueryState:
        return replace(source, statement=callback(source.statement, request))

    def order(
        self, source: QueryState, criteria: Sequence[ResolvedOrder], case_insensitive: bool = False
    ) -> QueryState:
        state = source
        applied = False
        for criterion in criteria:
            try:
                if self.through_collection(criterion.column):
                    logger.warning(
                        "Skipping column in ordering: %s is a to-many relation path",
                        criterion.column.name,
                    )
                    continue
                state, order_col = self.column(state, criterion.column)
            except UnknownColumnError as exc:
                logger.warning("Skipping column in ordering: %s", exc)
                continue
            clause = order_col.desc() if criterion.descending else order_col.asc()
            state = replace(state, statement=state.statement.order_by(clause))
            applied = True

        if applied and self.model is not None:
            # primary key as the last key keeps ties in a deterministic order
            for key in primary_key_columns(self.model) or ():
                state = replace(state, statement=state.statement.order_by(key.asc()))
        return state

    def paginate(self, source: QueryState, window: PageWindow) -> QueryState:
        stmt = source.statement.offset(window.offset)
        if window.limit is not None:
            stmt = stmt.limit(window.limit)
        return replace(source, statement=stmt)

    async def execute(self, source: QueryState) -> List[Any]:
        stmt = source.statement
        result = await self._execute(stmt)
        descriptions = stmt.column_descriptions
        if len(descriptions) == 1:
            entity = descriptions[0].get("entity")
            if entity is not None and descriptions[0].get("expr") is entity:
                return list(result.scalars().all())
        return list(result.mappings().all())

    def describe(self, source: QueryState) -> Optional[str]:
        return str(source.statement)

    async def _execute(self, stmt):
        try:
            result = self.db_session.execute(stmt)
            if isawaitable(result):
                result = await result
            return result
        except SQLAlchemyError as exc:
            raise BackendExecutionError(str(exc)) from exc


# ----------------------
# In-memory collections
# ----------------------
class CollectionBackend(DatabaseBackend):
    """
    Rows are serialized once when the backend is built; searching and ordering
    read from the serialized form.
    """

    def __init__(self, rows: Iterable[Any]):
        super().__init__(None)
        self.rows = tuple(serialize_row(row) for row in rows)

    def source(self) -> Tuple[dict, ...]:
        return self.rows

    def scope(self, source, scope) -> Tuple[dict, ...]:
        return tuple(scope(source))

    async def count(self, source) -> int:
        return len(source)

    def filter(self, source, plan: SearchPlan) -> Tuple[dict, ...]:
        predicate = plan.row_predicate(get_path)
        return tuple(row for row in source if predicate(row))

    def custom_filter(self, source, callback, request: GridRequest) -> Tuple[dict, ...]:
        return tuple(row for row in source if callback(row, request))

    def order(self, source, criteria, case_insensitive: bool = False) -> Tuple[dict, ...]:
        return tuple(sort_rows(source, criteria, get_path, case_insensitive))

    def paginate(self, source, window: PageWindow) -> Tuple[dict, ...]:
        return tuple(paginate(source, window))

    async def execute(self, source) -> List[dict]:
        return list(source)
