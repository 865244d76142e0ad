from typing import Optional

from sqlalchemy import Select, cast, Date, DateTime, TIMESTAMP, func, inspect
from sqlalchemy import String, Text, not_
from sqlalchemy.exc import NoInspectionAvailable
from sqlalchemy.orm import aliased
from sqlalchemy.orm.attributes import InstrumentedAttribute

from .enum import MatchMode


def build_condition(
    column_attr, match_mode: MatchMode, value: str, case_insensitive: bool = True
):
    """
    Build a SQLAlchemy filter condition based on column type and match mode.
    Date/DateTime/TIMESTAMP columns are compared on their date part; every
    other non-text column is compared on its text form.
    """
    try:
        column_type = column_attr.type
    except AttributeError:
        # hybrid_property or unsupported type
        return None

    if isinstance(column_type, (DateTime, Date, TIMESTAMP)):
        db_date_only = cast(column_attr, Date)
        column_attr = cast(db_date_only, String)
        value = value.split("T")[0]
    elif not isinstance(column_type, (String, Text)):
        column_attr = cast(column_attr, String)

    if case_insensitive:
        column_attr = func.lower(column_attr, type_=String)
        value = value.lower()

    if match_mode == MatchMode.CONTAINS:
        return column_attr.contains(value, autoescape=True)
    elif match_mode == MatchMode.EQUALS:
        return column_attr == value
    elif match_mode == MatchMode.STARTS_WITH:
        return column_attr.startswith(value, autoescape=True)
    elif match_mode == MatchMode.ENDS_WITH:
        return column_attr.endswith(value, autoescape=True)
    elif match_mode == MatchMode.NOT_CONTAINS:
        return not_(column_attr.contains(value, autoescape=True))
    elif match_mode == MatchMode.NOT_EQUALS:
        return column_attr != value

    return None


def text_expression(column_attr):
    """Expression usable with LIKE: string columns as-is, anything else cast to text."""
    try:
        column_type = column_attr.type
    except AttributeError:
        return None
    if isinstance(column_type, (String, Text)):
        return column_attr
    return cast(column_attr, String)


def build_search_condition(
    column_attr, keyword: str, regex: bool = False, case_insensitive: bool = True
):
    """
    Default search condition: substring containment, or a pattern match when
    the term is flagged as regex. Returns None for unsupported attributes.
    """
    target = text_expression(column_attr)
    if target is None:
        return None

    if regex:
        if case_insensitive:
            # inline flag, SQLite ignores the flags argument
            return target.regexp_match(f"(?i){keyword}")
        return target.regexp_match(keyword)

    if case_insensitive:
        return func.lower(target, type_=String).contains(keyword.lower(), autoescape=True)
    return target.contains(keyword, autoescape=True)


def resolve_column(model, column_path: str, joins: dict, aliased_models: dict):
    """
    Resolve a dotted column path (e.g. 'user.name') to a SQLAlchemy column attribute.
    Handles relationship traversal with aliased joins; relations already present in
    ``aliased_models`` are reused, new ones are recorded in ``joins``.
    Raises AttributeError when a part of the path does not exist on the model.
    """
    current_model = model
    current_path = []
    current_attr = None

    parts = column_path.split(".")
    for i, part in enumerate(parts):
        current_path.append(part)
        path_str = ".".join(current_path)

        if i < len(parts) - 1:  # it's a relation
            if path_str not in aliased_models:
                relation_attr: InstrumentedAttribute = getattr(current_model, part)
                related_model = relation_attr.property.mapper.class_
                aliased_model = aliased(related_model)
                aliased_models[path_str] = aliased_model
                joins[path_str] = (relation_attr, aliased_model)
            current_model = aliased_models[path_str]
        else:  # it's the final column
            current_attr = getattr(current_model, part)

    return current_attr


def apply_joins(stmt: Select, joins: dict) -> Select:
    """Apply all accumulated joins to the statement."""
    for key, (relation_attr, aliased_model) in joins.items():
        stmt = stmt.outerjoin(aliased_model, relation_attr)
    return stmt


def is_collection_path(model, column_path: str) -> bool:
    """
    Whether a dotted path crosses a to-many relationship.
    Raises AttributeError when a relation part does not exist on the model.
    """
    current_model = model
    for part in column_path.split(".")[:-1]:
        relation = getattr(current_model, part).property
        if relation.uselist:
            return True
        current_model = relation.mapper.class_
    return False


def related_condition(model, column_path: str, build):
    """
    Condition on a dotted path expressed as nested EXISTS clauses
    (``any()`` for to-many relations, ``has()`` for to-one), so matching
    children never multiply the parent rows.
    ``build`` turns the final column attribute into a condition.
    """
    part, _, rest = column_path.partition(".")
    attr = getattr(model, part)
    if not rest:
        return build(attr)

    relation = attr.property
    inner = related_condition(relation.mapper.class_, rest, build)
    if inner is None:
        return None
    return attr.any(inner) if relation.uselist else attr.has(inner)


def primary_key_columns(model) -> Optional[tuple]:
    """Primary key attributes of a mapped class, or None for unmapped sources."""
    try:
        mapper = inspect(model)
    except NoInspectionAvailable:
        return None
    primary_key = getattr(mapper, "primary_key", None)
    return tuple(primary_key) if primary_key else None
