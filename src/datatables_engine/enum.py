from enum import Enum


class MatchMode(str, Enum):
    CONTAINS = "contains"
    EQUALS = "equals"
    STARTS_WITH = "startsWith"
    ENDS_WITH = "endsWith"
    NOT_CONTAINS = "notContains"
    NOT_EQUALS = "notEquals"


class OrderDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class TransformMode(str, Enum):
    DISPLAY = "display"
    EXPORT = "export"
    PRINT = "print"
