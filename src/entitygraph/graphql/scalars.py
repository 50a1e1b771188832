"""
Custom GraphQL scalars used by generated entity schemas
"""

import uuid
from typing import Any

from graphql import GraphQLError, GraphQLScalarType, StringValueNode, ValueNode
from graphql.utilities import value_from_ast_untyped


def _parse_uuid(value: Any) -> str:
    if isinstance(value, uuid.UUID):
        return str(value)
    if not isinstance(value, str):
        raise GraphQLError(f"UUID cannot represent non-string value: {value!r}")
    try:
        return str(uuid.UUID(value))
    except ValueError:
        raise GraphQLError(f"UUID cannot represent invalid value: {value!r}") from None


def _parse_uuid_literal(node: ValueNode, _variables: Any = None) -> str:
    if not isinstance(node, StringValueNode):
        raise GraphQLError("UUID literal must be a string", node)
    return _parse_uuid(node.value)


UUIDScalar = GraphQLScalarType(
    name="UUID",
    description="Universally unique identifier in canonical string form",
    serialize=_parse_uuid,
    parse_value=_parse_uuid,
    parse_literal=_parse_uuid_literal,
)


def _identity(value: Any) -> Any:
    return value


def _parse_json_literal(node: ValueNode, variables: dict[str, Any] | None = None) -> Any:
    return value_from_ast_untyped(node, variables)


JSONScalar = GraphQLScalarType(
    name="JSON",
    description="Arbitrary JSON value",
    serialize=_identity,
    parse_value=_identity,
    parse_literal=_parse_json_literal,
)

SCALARS: dict[str, GraphQLScalarType] = {
    UUIDScalar.name: UUIDScalar,
    JSONScalar.name: JSONScalar,
}
