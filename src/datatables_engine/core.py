import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Type

from sqlalchemy import Select
from sqlalchemy.ext.asyncio import AsyncSession

from .columns import ColumnDefinition, ColumnResolver
from .config import DataTablesSettings, get_settings
from .database import CollectionBackend, DatabaseBackend, SQLAlchemyBackend
from .enum import TransformMode
from .exceptions import InvalidSearchPatternError
from .ordering import resolve_order
from .pagination import ALL_ROWS, PageWindow
from .schema import DataTablesRequest, GridRequest, ResultPage
from .search import SearchCompiler
from .strategies import FilterStrategyRegistry, default_registry
from .transformer import DataTransformer

logger = logging.getLogger(__name__)


class DataTables:
    def __init__(
        self,
        db_session: Optional[AsyncSession] = None,
        model: Optional[Type] = None,
        base_statement: Optional[Select] = None,
        db_backend: Optional[DatabaseBackend] = None,
        columns: Optional[Sequence[ColumnDefinition]] = None,
        settings: Optional[DataTablesSettings] = None,
        strategies: Optional[FilterStrategyRegistry] = None,
    ):
        """
        Initializes the DataTables processor.

        Args:
            db_session: SQLAlchemy session (AsyncSession or Session)
            model: The SQLAlchemy model representing the data.
            base_statement: Statement to start from instead of ``select(model)``.
            db_backend: Backend to use instead of the SQLAlchemy one.
            columns: Declared columns. Without them, request columns are used as is
                and rows are returned fully serialized.
            settings: Engine settings, defaults to the environment settings.
            strategies: Registry of search override strategies.
        """
        self.model = model
        self.base_statement = base_statement
        if db_backend is None:
            self.db_backend = SQLAlchemyBackend(db_session, model, base_statement)
        else:
            self.db_backend = db_backend
        self.columns = tuple(columns or ())
        self.settings = settings or get_settings()
        self.strategies = strategies or default_registry()
        # overrides are checked once here, not per request
        self.overrides = self.strategies.bind_columns(self.columns)
        self.transformer = DataTransformer()
        self.scopes: List[Callable[[Any], Any]] = []
        self.global_filter: Optional[Callable[..., Any]] = None

    @classmethod
    def from_collection(
        cls,
        rows: Iterable[Any],
        columns: Optional[Sequence[ColumnDefinition]] = None,
        settings: Optional[DataTablesSettings] = None,
        strategies: Optional[FilterStrategyRegistry] = None,
    ) -> "DataTables":
        return cls(
            db_backend=CollectionBackend(rows),
            columns=columns,
            settings=settings,
            strategies=strategies,
        )

    def add_scope(self, scope: Callable[[Any], Any]) -> "DataTables":
        """Register a callable narrowing the base source before anything is counted."""
        self.scopes.append(scope)
        return self

    def filter(self, callback: Callable[..., Any]) -> "DataTables":
        """
        Replace the default global search with ``callback``. SQL sources call
        it as ``callback(statement, request)`` and use the returned statement;
        collections call it as ``callback(row, request)`` and keep the rows it
        accepts. Column searches still apply.
        """
        self.global_filter = callback
        return self

    def grid_request(self, request_data: DataTablesRequest) -> GridRequest:
        return GridRequest.from_request(request_data, self.settings.case_insensitive)

    async def build_page(
        self, request: GridRequest, mode: TransformMode = TransformMode.DISPLAY
    ) -> ResultPage:
        """
        Run the pipeline: count, filter, count, order, paginate, execute, transform.
        Backend errors propagate; an invalid search pattern gives an empty page.
        """
        backend = self.db_backend
        resolver = ColumnResolver(self.columns, request)

        # -- Base source --
        source = backend.source()
        for scope in self.scopes:
            source = backend.scope(source, scope)

        # -- Total Records (Unfiltered) --
        records_total = await backend.count(source)
        if not records_total:
            return ResultPage(draw=request.draw, records_total=0, records_filtered=0)

        # -- Search (global and per column) --
        try:
            plan = SearchCompiler(resolver, self.overrides).compile(
                request, global_search=self.global_filter is None
            )
        except InvalidSearchPatternError as exc:
            logger.warning("Search pattern rejected, no rows match: %s", exc)
            return ResultPage(
                draw=request.draw,
                records_total=records_total,
                records_filtered=0,
                filter_applied=True,
            )

        filter_applied = plan.filter_applied or self.global_filter is not None
        if self.global_filter is not None:
            source = backend.custom_filter(source, self.global_filter, request)
        if plan.filter_applied:
            source = backend.filter(source, plan)
        if filter_applied:
            records_filtered = await backend.count(source)
        else:
            records_filtered = records_total

        if not records_filtered:
            return ResultPage(
                draw=request.draw,
                records_total=records_total,
                records_filtered=0,
                filter_applied=filter_applied,
            )

        # -- Ordering --
        source = backend.order(source, resolve_order(resolver, request), request.case_insensitive)

        # -- Pagination --
        window = PageWindow.from_request(
            request.start, request.length, self.settings.default_page_size
        )
        source = backend.paginate(source, window)

        # -- Execute Final Query --
        rows = await backend.execute(source)
        data = [self.transformer.transform(row, self.columns, mode) for row in rows]
        logger.debug(
            "Grid page: total=%d filtered=%d rows=%d", records_total, records_filtered, len(data)
        )

        queries = []
        if self.settings.debug:
            description = backend.describe(source)
            if description:
                queries.append(description)

        return ResultPage(
            draw=request.draw,
            records_total=records_total,
            records_filtered=records_filtered,
            rows=data,
            filter_applied=filter_applied,
            queries=queries,
        )

    async def process(self, request_data: DataTablesRequest) -> Dict[str, Any]:
        """
        Processes the DataTables request and returns the response.
        Errors are logged and returned as an error payload without data.
        """
        request = self.grid_request(request_data)
        try:
            page = await self.build_page(request)
        except Exception as exc:
            logger.exception("DataTables request failed")
            return self.error_response(request, exc, request_data)

        output = page.render()
        if self.settings.debug:
            output["input"] = request_data.model_dump(mode="json")
            output["queries"] = page.queries
        return output

    async def export(
        self, request_data: DataTablesRequest, mode: TransformMode = TransformMode.EXPORT
    ) -> List[Dict[str, Any]]:
        """
        All filtered and ordered rows, mapped for export (or print) output.
        The rows are meant for an external file writer.
        """
        mode = TransformMode(mode)
        if mode == TransformMode.DISPLAY:
            raise ValueError("export needs the export or print mode")
        request = self.grid_request(request_data).with_window(0, ALL_ROWS)
        page = await self.build_page(request, mode)
        return page.rows

    async def print_rows(self, request_data: DataTablesRequest) -> List[Dict[str, Any]]:
        return await self.export(request_data, TransformMode.PRINT)

    def error_response(
        self, request: GridRequest, exc: Exception, request_data: DataTablesRequest
    ) -> Dict[str, Any]:
        message = self.settings.error_message
        if self.settings.debug:
            message = f"{message} Exception message: {exc}"
        output = {
            "draw": request.draw,
            "recordsTotal": 0,
            "recordsFiltered": 0,
            "data": [],
            "error": message,
        }
        if self.settings.debug:
            output["input"] = request_data.model_dump(mode="json")
        return output
