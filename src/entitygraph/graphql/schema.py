"""
Executable schema construction from SDL plus resolver maps
"""

from collections.abc import Callable, Iterable, Mapping
from typing import Any

from graphql import (
    GraphQLObjectType,
    GraphQLScalarType,
    GraphQLSchema,
    build_schema,
    get_introspection_query,
    graphql_sync,
)
from graphql import validate_schema as gql_validate_schema

from ..errors import SchemaError
from ..logging import get_logger

logger = get_logger(__name__)

ResolverMap = Mapping[str, Mapping[str, Callable[..., Any]] | GraphQLScalarType]


def make_executable_schema(type_defs: str | Iterable[str], resolvers: ResolverMap) -> GraphQLSchema:
    """Build a schema from SDL and attach resolvers to it.

    Args:
        type_defs: SDL source, or several SDL chunks joined in order
        resolvers: type name mapped to either a ``{field: resolver}`` dict
            or, for custom scalars, a ``GraphQLScalarType`` whose parsing
            and serialization functions are copied over

    Raises:
        SchemaError: If a resolver names an unknown type or field
    """
    sdl = type_defs if isinstance(type_defs, str) else "\n".join(type_defs)
    schema = build_schema(sdl)

    for type_name, entry in resolvers.items():
        gql_type = schema.get_type(type_name)
        if gql_type is None:
            raise SchemaError(f'resolver given for unknown type "{type_name}"')

        if isinstance(gql_type, GraphQLScalarType):
            if not isinstance(entry, GraphQLScalarType):
                raise SchemaError(f'scalar "{type_name}" needs a GraphQLScalarType implementation')
            gql_type.serialize = entry.serialize  # type: ignore[method-assign]
            gql_type.parse_value = entry.parse_value  # type: ignore[method-assign]
            gql_type.parse_literal = entry.parse_literal  # type: ignore[method-assign]
            continue

        if not isinstance(gql_type, GraphQLObjectType) or isinstance(entry, GraphQLScalarType):
            raise SchemaError(f'cannot attach resolvers to type "{type_name}"')

        for field_name, resolver in entry.items():
            field = gql_type.fields.get(field_name)
            if field is None:
                raise SchemaError(f'resolver given for unknown field "{type_name}.{field_name}"')
            field.resolve = resolver

    return schema


def validate_schema(schema: GraphQLSchema) -> None:
    """Validate the GraphQL schema at startup.

    This ensures that all type references can be resolved, causing the
    server to fail fast rather than erroring on the first request.

    Raises:
        SchemaError: If the schema is invalid or introspection fails
    """
    errors = gql_validate_schema(schema)
    if errors:
        error_messages = [str(e) for e in errors]
        logger.error("GraphQL schema validation failed", errors=error_messages)
        raise SchemaError(f"GraphQL schema validation failed: {'; '.join(error_messages)}")

    # Check that introspection query works (catches most resolution issues)
    result = graphql_sync(schema, get_introspection_query())
    if result.errors:
        error_messages = [str(e) for e in result.errors]
        logger.error("GraphQL introspection failed", errors=error_messages)
        raise SchemaError(f"GraphQL introspection failed: {'; '.join(error_messages)}")

    logger.info("GraphQL schema validation successful")
