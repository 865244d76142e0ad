import html
import re
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Sequence

from sqlalchemy import inspect
from sqlalchemy.exc import NoInspectionAvailable

from .columns import ColumnDefinition
from .enum import TransformMode

DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"

_TAGS = re.compile(r"<[^>]*>")
_MISSING = object()


def get_path(row: Any, path: str, default: Any = None) -> Any:
    """Read a dotted path from nested mappings and/or attributes."""
    current = row
    for part in path.split("."):
        if current is None:
            return default
        if isinstance(current, Mapping):
            current = current.get(part, _MISSING)
        elif isinstance(current, (list, tuple)) and part.isdigit():
            index = int(part)
            current = current[index] if index < len(current) else _MISSING
        else:
            current = getattr(current, part, _MISSING)
        if current is _MISSING:
            return default
    return current


def normalize_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.strftime(DATETIME_FORMAT)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, Mapping):
        return {key: normalize_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [normalize_value(item) for item in value]
    return serialize_row(value)


def serialize_row(row: Any) -> Dict[str, Any]:
    """
    Convert a backend row to a plain mapping. Mappings, SQLAlchemy mapped
    instances, result rows, pydantic models and plain objects are supported;
    nested values are converted recursively.
    """
    if isinstance(row, Mapping):
        data = dict(row)
    elif hasattr(row, "_mapping"):  # sqlalchemy Row
        data = dict(row._mapping)
    elif hasattr(row, "model_dump"):
        data = row.model_dump()
    else:
        try:
            state = inspect(row)
        except NoInspectionAvailable:
            state = None
        if state is not None and hasattr(state, "mapper"):
            # loaded column attributes only, relationships are not fetched
            data = {
                attr.key: getattr(row, attr.key)
                for attr in state.mapper.column_attrs
                if attr.key not in state.unloaded
            }
        elif hasattr(row, "__dict__"):
            data = {k: v for k, v in vars(row).items() if not k.startswith("_")}
        else:
            return {"value": normalize_value(row)}
    return {str(key): normalize_value(value) for key, value in data.items()}


def strip_markup(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    return html.unescape(_TAGS.sub("", value))


class DataTransformer:
    """Maps backend rows onto the declared output columns."""

    def transform(
        self,
        row: Any,
        columns: Optional[Sequence[ColumnDefinition]] = None,
        mode: TransformMode = TransformMode.DISPLAY,
    ) -> Dict[str, Any]:
        mode = TransformMode(mode)
        if not columns:
            data = serialize_row(row)
            if mode == TransformMode.EXPORT:
                return {key: strip_markup(value) for key, value in data.items()}
            return data

        if mode == TransformMode.DISPLAY:
            return {column.data: self.value(row, column) for column in columns}

        results = {}
        for column in columns:
            if mode == TransformMode.EXPORT:
                if not column.exportable:
                    continue
                results[strip_markup(column.title)] = strip_markup(self.value(row, column))
            else:
                if not column.printable:
                    continue
                results[column.title] = self.value(row, column)
        return results

    def value(self, row: Any, column: ColumnDefinition) -> Any:
        value = get_path(row, column.data)
        if column.formatter is not None:
            value = column.formatter(value, row)
        return normalize_value(value)
