# datatables_engine/__init__.py
from .core import DataTables
from .database import CollectionBackend, DatabaseBackend, SQLAlchemyBackend  # Expose the classes.
from .columns import ColumnDefinition, ColumnResolver, SearchOverride
from .config import DataTablesSettings, get_settings
from .schema import DataTablesRequest, DataTablesResponse, GridRequest, ResultPage
from .exceptions import (
    BackendExecutionError,
    ConfigurationError,
    DataTablesError,
    InvalidColumnError,
    InvalidSearchPatternError,
    UnknownColumnError,
)
from .enum import MatchMode, OrderDirection, TransformMode
from .ordering import natural_compare
from .strategies import FilterStrategy, FilterStrategyRegistry, default_registry
from .transformer import DataTransformer
from .utils import build_condition

__version__ = "0.2.0"

__all__ = [  # This is for from package import *. Good for avoiding accident overwriting.
    "DataTables",
    "DatabaseBackend",
    "SQLAlchemyBackend",
    "CollectionBackend",
    "ColumnDefinition",
    "ColumnResolver",
    "SearchOverride",
    "DataTablesSettings",
    "get_settings",
    "DataTablesRequest",
    "DataTablesResponse",
    "GridRequest",
    "ResultPage",
    "DataTablesError",
    "ConfigurationError",
    "InvalidColumnError",
    "UnknownColumnError",
    "InvalidSearchPatternError",
    "BackendExecutionError",
    "MatchMode",
    "OrderDirection",
    "TransformMode",
    "natural_compare",
    "FilterStrategy",
    "FilterStrategyRegistry",
    "default_registry",
    "DataTransformer",
    "build_condition",
]
