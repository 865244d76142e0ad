"""
Column search overrides.

Each override is a named strategy with a fixed number of configured
parameters. A strategy knows how to build a SQL condition for a column
expression and a value predicate for in-memory rows; both receive the
search keyword followed by the configured parameters.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Tuple

from sqlalchemy import String, func

from .columns import ColumnDefinition, SearchOverride
from .enum import MatchMode
from .exceptions import ConfigurationError
from .utils import build_condition, text_expression

logger = logging.getLogger(__name__)

SqlBuilder = Callable[..., Any]
PredicateBuilder = Callable[..., Optional[Callable[[Any], bool]]]


@dataclass(frozen=True)
class FilterStrategy:
    """
    ``sql(target, keyword, *parameters, case_insensitive=...)`` returns a
    condition or None. ``predicate(keyword, *parameters, case_insensitive=...)``
    returns a callable testing one value, or None when the keyword gives no
    usable constraint.
    """

    name: str
    arity: int
    sql: SqlBuilder
    predicate: PredicateBuilder

    def accepts(self, parameters: Tuple[Any, ...]) -> bool:
        return len(parameters) == self.arity


@dataclass(frozen=True)
class BoundOverride:
    strategy: FilterStrategy
    parameters: Tuple[Any, ...]

    def condition(self, target, keyword: str, case_insensitive: bool = True):
        return self.strategy.sql(
            target, keyword, *self.parameters, case_insensitive=case_insensitive
        )

    def value_predicate(self, keyword: str, case_insensitive: bool = True):
        return self.strategy.predicate(
            keyword, *self.parameters, case_insensitive=case_insensitive
        )


# Marks a column whose override failed validation; it contributes no search term.
DISABLED = None


class FilterStrategyRegistry:
    def __init__(self, strategies: Iterable[FilterStrategy] = ()):
        self._strategies: Dict[str, FilterStrategy] = {}
        for strategy in strategies:
            self.register(strategy)

    def register(self, strategy: FilterStrategy) -> FilterStrategy:
        if strategy.arity < 0:
            raise ConfigurationError(f"Strategy {strategy.name!r} has a negative arity")
        self._strategies[strategy.name] = strategy
        return strategy

    def get(self, name: str) -> FilterStrategy:
        try:
            return self._strategies[name]
        except KeyError:
            raise ConfigurationError(f"Unknown filter strategy: {name}")

    def __contains__(self, name: str) -> bool:
        return name in self._strategies

    def names(self) -> Tuple[str, ...]:
        return tuple(self._strategies)

    def bind(self, override: SearchOverride) -> BoundOverride:
        strategy = self.get(override.strategy)
        if not strategy.accepts(override.parameters):
            raise ConfigurationError(
                f"Strategy {strategy.name!r} takes {strategy.arity} parameter(s), "
                f"got {len(override.parameters)}"
            )
        return BoundOverride(strategy, tuple(override.parameters))

    def bind_columns(
        self, definitions: Iterable[ColumnDefinition]
    ) -> Mapping[str, Optional[BoundOverride]]:
        """
        Validate every declared override once. Columns whose override does not
        validate map to DISABLED and are left out of searching.
        """
        bound: Dict[str, Optional[BoundOverride]] = {}
        for definition in definitions:
            if definition.search_override is None:
                continue
            try:
                bound[definition.name] = self.bind(definition.search_override)
            except ConfigurationError as exc:
                logger.warning(
                    "Ignoring search override on column %r: %s", definition.name, exc
                )
                bound[definition.name] = DISABLED
        return bound


# ----------------------
# Built-in strategies
# ----------------------
def _as_text(value: Any, case_insensitive: bool) -> Optional[str]:
    if value is None or isinstance(value, (list, tuple, dict, set)):
        return None
    text = str(value)
    return text.lower() if case_insensitive else text


def _match_mode_strategy(mode: MatchMode) -> FilterStrategy:
    def sql(target, keyword, case_insensitive=True):
        return build_condition(target, mode, keyword, case_insensitive)

    def predicate(keyword, case_insensitive=True):
        needle = keyword.lower() if case_insensitive else keyword

        def test(value):
            text = _as_text(value, case_insensitive)
            if text is None:
                return False
            if mode == MatchMode.CONTAINS:
                return needle in text
            if mode == MatchMode.EQUALS:
                return text == needle
            if mode == MatchMode.STARTS_WITH:
                return text.startswith(needle)
            if mode == MatchMode.ENDS_WITH:
                return text.endswith(needle)
            if mode == MatchMode.NOT_CONTAINS:
                return needle not in text
            return text != needle

        return test

    return FilterStrategy(mode.value, 0, sql, predicate)


def _split(keyword: str, separator: str):
    return [part.strip() for part in keyword.split(separator) if part.strip()]


def _in_sql(target, keyword, separator, case_insensitive=True):
    values = _split(keyword, separator)
    expr = text_expression(target)
    if not values or expr is None:
        return None
    if case_insensitive:
        return func.lower(expr, type_=String).in_([v.lower() for v in values])
    return expr.in_(values)


def _in_predicate(keyword, separator, case_insensitive=True):
    values = _split(keyword, separator)
    if not values:
        return None
    if case_insensitive:
        values = [v.lower() for v in values]
    accepted = set(values)

    def test(value):
        text = _as_text(value, case_insensitive)
        return text is not None and text in accepted

    return test


def _parse_range(keyword, separator):
    parts = keyword.split(separator, 1)
    if len(parts) != 2:
        return None
    try:
        low = float(parts[0]) if parts[0].strip() else None
        high = float(parts[1]) if parts[1].strip() else None
    except ValueError:
        return None
    if low is None and high is None:
        return None
    return low, high


def _between_sql(target, keyword, separator, case_insensitive=True):
    bounds = _parse_range(keyword, separator)
    if bounds is None:
        return None
    low, high = bounds
    if low is None:
        return target <= high
    if high is None:
        return target >= low
    return target.between(low, high)


def _between_predicate(keyword, separator, case_insensitive=True):
    bounds = _parse_range(keyword, separator)
    if bounds is None:
        return None
    low, high = bounds

    def test(value):
        if value is None or isinstance(value, bool):
            return False
        try:
            number = float(value)
        except (TypeError, ValueError):
            return False
        if low is not None and number < low:
            return False
        if high is not None and number > high:
            return False
        return True

    return test


BUILTIN_STRATEGIES = tuple(_match_mode_strategy(mode) for mode in MatchMode) + (
    FilterStrategy("in", 1, _in_sql, _in_predicate),
    FilterStrategy("between", 1, _between_sql, _between_predicate),
)


def default_registry() -> FilterStrategyRegistry:
    return FilterStrategyRegistry(BUILTIN_STRATEGIES)
