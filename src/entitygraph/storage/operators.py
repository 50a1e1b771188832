"""
Operator names accepted in ``where`` arguments and their storage semantics.

Operator keys are written with a leading ``_`` (``{"age": {"_gt": 30}}``),
which keeps them legal inside inline GraphQL object literals. A leading ``$``
is accepted as an alias for JSON variables (``{"$or": [...]}``).
"""

from collections.abc import Callable
from enum import Enum
from typing import Any

from sqlalchemy import ColumnElement, not_
from sqlalchemy.orm import InstrumentedAttribute


class Op(Enum):
    """Storage-level query operators."""

    EQ = "eq"
    NE = "ne"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    IN = "in"
    NOT_IN = "notIn"
    LIKE = "like"
    NOT_LIKE = "notLike"
    ILIKE = "iLike"
    NOT_ILIKE = "notILike"
    BETWEEN = "between"
    NOT_BETWEEN = "notBetween"
    IS = "is"
    NOT = "not"
    STARTS_WITH = "startsWith"
    ENDS_WITH = "endsWith"
    SUBSTRING = "substring"
    AND = "and"
    OR = "or"


LOGICAL_OPERATORS = frozenset({Op.AND, Op.OR, Op.NOT})

OPERATOR_PREFIXES = ("_", "$")

OPERATORS: dict[str, Op] = {
    f"{prefix}{op.value}": op for prefix in OPERATOR_PREFIXES for op in Op
}


def lookup_operator(key: Any) -> Op | None:
    """Map a ``where`` key onto its operator, or None for field names."""
    if isinstance(key, Op):
        return key
    if isinstance(key, str):
        return OPERATORS.get(key)
    return None


def _between(column: InstrumentedAttribute, operand: Any) -> ColumnElement[bool]:
    if not isinstance(operand, list | tuple) or len(operand) != 2:
        raise ValueError("between expects a [low, high] pair")
    return column.between(operand[0], operand[1])


COMPARATORS: dict[Op, Callable[[InstrumentedAttribute, Any], ColumnElement[bool]]] = {
    Op.EQ: lambda column, operand: column.is_(None) if operand is None else column == operand,
    Op.NE: lambda column, operand: column.is_not(None) if operand is None else column != operand,
    Op.GT: lambda column, operand: column > operand,
    Op.GTE: lambda column, operand: column >= operand,
    Op.LT: lambda column, operand: column < operand,
    Op.LTE: lambda column, operand: column <= operand,
    Op.IN: lambda column, operand: column.in_(list(operand)),
    Op.NOT_IN: lambda column, operand: column.not_in(list(operand)),
    Op.LIKE: lambda column, operand: column.like(operand),
    Op.NOT_LIKE: lambda column, operand: column.not_like(operand),
    Op.ILIKE: lambda column, operand: column.ilike(operand),
    Op.NOT_ILIKE: lambda column, operand: column.not_ilike(operand),
    Op.BETWEEN: _between,
    Op.NOT_BETWEEN: lambda column, operand: not_(_between(column, operand)),
    Op.IS: lambda column, operand: column.is_(operand),
    Op.NOT: lambda column, operand: column.is_not(operand),
    Op.STARTS_WITH: lambda column, operand: column.startswith(operand, autoescape=True),
    Op.ENDS_WITH: lambda column, operand: column.endswith(operand, autoescape=True),
    Op.SUBSTRING: lambda column, operand: column.contains(operand, autoescape=True),
}
