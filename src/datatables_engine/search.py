"""
Search compilation.

The compiler turns the global keyword and the per-column keywords of a grid
request into a SearchPlan. A plan is backend neutral: the SQL backend asks
each term for a condition on a column expression, the collection backend asks
the plan for a row predicate.
"""

import logging
import re
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Callable, List, Mapping, Optional, Tuple

from sqlalchemy import and_, or_

from .columns import ColumnResolver, ResolvedColumn
from .exceptions import InvalidSearchPatternError
from .schema import GridRequest
from .strategies import BoundOverride
from .utils import build_search_condition

logger = logging.getLogger(__name__)

ValueTest = Callable[[Any], bool]
ColumnCondition = Callable[[ResolvedColumn, Callable[[Any], Any]], Any]


def compile_pattern(term: str, case_insensitive: bool = True) -> re.Pattern:
    flags = re.IGNORECASE if case_insensitive else 0
    try:
        return re.compile(term, flags)
    except re.error as exc:
        raise InvalidSearchPatternError(term, str(exc)) from exc


def searchable_text(value: Any) -> Optional[str]:
    """String form of a scalar value; None for absent or composite values."""
    if value is None or isinstance(value, (list, tuple, dict, set)):
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


@dataclass(frozen=True, eq=False)
class SearchTerm:
    column: ResolvedColumn
    keyword: str
    regex: bool = False
    override: Optional[BoundOverride] = None
    pattern: Optional[re.Pattern] = None

    def value_predicate(self, case_insensitive: bool = True) -> Optional[ValueTest]:
        if self.override is not None:
            return self.override.value_predicate(self.keyword, case_insensitive)

        if self.pattern is not None:
            pattern = self.pattern

            def test(value):
                text = searchable_text(value)
                return text is not None and pattern.search(text) is not None

            return test

        needle = self.keyword.lower() if case_insensitive else self.keyword

        def test(value):
            text = searchable_text(value)
            if not text:
                return False
            if case_insensitive:
                text = text.lower()
            return needle in text

        return test

    def condition(self, target, case_insensitive: bool = True):
        if self.override is not None:
            return self.override.condition(target, self.keyword, case_insensitive)
        return build_search_condition(target, self.keyword, self.regex, case_insensitive)


@dataclass(frozen=True)
class SearchPlan:
    global_terms: Tuple[SearchTerm, ...] = ()
    column_terms: Tuple[SearchTerm, ...] = ()
    case_insensitive: bool = True
    # columns whose term could not be built and were left out
    skipped: Tuple[str, ...] = field(default=())

    @property
    def filter_applied(self) -> bool:
        return bool(self.global_terms or self.column_terms)

    def row_predicate(self, extract: Callable[[Any, str], Any]) -> Callable[[Any], bool]:
        """Predicate over whole rows: any global term and every column term must match."""
        global_tests = self._tests(self.global_terms)
        column_tests = self._tests(self.column_terms)

        def test(row):
            if global_tests and not any(
                check(extract(row, path)) for path, check in global_tests
            ):
                return False
            return all(check(extract(row, path)) for path, check in column_tests)

        return test

    def _tests(self, terms) -> List[Tuple[str, ValueTest]]:
        tests = []
        for term in terms:
            check = term.value_predicate(self.case_insensitive)
            if check is not None:
                tests.append((term.column.data, check))
        return tests

    def where_clause(self, column_condition: ColumnCondition):
        """
        SQL condition for the plan, or None when no term produced one.
        ``column_condition(column, build)`` applies ``build`` (expression to
        condition) to the column it resolves, or returns None to skip it.
        """
        global_conditions = self._conditions(self.global_terms, column_condition)
        column_conditions = self._conditions(self.column_terms, column_condition)

        clauses = []
        if global_conditions:
            clauses.append(or_(*global_conditions))
        clauses.extend(column_conditions)
        if not clauses:
            return None
        return and_(*clauses)

    def _conditions(self, terms, column_condition):
        conditions = []
        for term in terms:
            condition = column_condition(
                term.column, partial(term.condition, case_insensitive=self.case_insensitive)
            )
            if condition is not None:
                conditions.append(condition)
        return conditions


class SearchCompiler:
    def __init__(
        self,
        resolver: ColumnResolver,
        overrides: Optional[Mapping[str, Optional[BoundOverride]]] = None,
    ):
        self.resolver = resolver
        self.overrides = overrides or {}

    def compile(self, request: GridRequest, global_search: bool = True) -> SearchPlan:
        """
        Raises InvalidSearchPatternError when a regex term does not compile.
        Columns with a disabled override are skipped. With ``global_search``
        off the global keyword is left to a custom filter.
        """
        case_insensitive = request.case_insensitive
        columns = list(self.resolver.searchable())
        skipped = []

        global_terms = []
        if global_search and request.search_term:
            for column in columns:
                term = self._term(
                    column, request.search_term, request.search_is_regex, case_insensitive
                )
                if term is None:
                    skipped.append(column.name)
                else:
                    global_terms.append(term)

        column_terms = []
        for column in columns:
            if not column.search_term:
                continue
            term = self._term(
                column, column.search_term, column.search_is_regex, case_insensitive
            )
            if term is None:
                skipped.append(column.name)
            else:
                column_terms.append(term)

        return SearchPlan(
            global_terms=tuple(global_terms),
            column_terms=tuple(column_terms),
            case_insensitive=case_insensitive,
            skipped=tuple(dict.fromkeys(skipped)),
        )

    def _term(
        self, column: ResolvedColumn, keyword: str, regex: bool, case_insensitive: bool
    ) -> Optional[SearchTerm]:
        if column.name in self.overrides:
            override = self.overrides[column.name]
            if override is None:
                logger.debug("Column %r has a disabled search override", column.name)
                return None
            return SearchTerm(column, keyword, regex=False, override=override)

        pattern = compile_pattern(keyword, case_insensitive) if regex else None
        return SearchTerm(column, keyword, regex=regex, pattern=pattern)
