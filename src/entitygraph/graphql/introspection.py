"""
Classification of entity type fields into attributes, relations and methods
"""

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType

from graphql import (
    GraphQLEnumType,
    GraphQLField,
    GraphQLList,
    GraphQLNamedType,
    GraphQLNonNull,
    GraphQLObjectType,
    GraphQLScalarType,
    GraphQLSchema,
    get_named_type,
)

from ..errors import SchemaError

METHOD_NAMES = frozenset({"create", "clone", "update", "delete", "batch"})


@dataclass(frozen=True)
class FieldClassification:
    """Field name to named type, partitioned by field kind."""

    attribute: Mapping[str, str]
    relation: Mapping[str, str]
    method: Mapping[str, str]

    def kind(self, name: str) -> str | None:
        if name in self.attribute:
            return "attribute"
        if name in self.relation:
            return "relation"
        if name in self.method:
            return "method"
        return None


class SchemaIntrospector:
    """Reads entity type structure off a built GraphQL schema.

    Schemas are static for the lifetime of the process, so the
    classification of each type is computed once and kept.
    """

    def __init__(self, schema: GraphQLSchema):
        self.schema = schema
        self._classified: dict[str, FieldClassification] = {}

    def object_type(self, type_name: str) -> GraphQLObjectType:
        gql_type = self.schema.get_type(type_name)
        if not isinstance(gql_type, GraphQLObjectType):
            raise SchemaError(f'type "{type_name}" is not an object type of the schema')
        return gql_type

    def field(self, type_name: str, field_name: str) -> GraphQLField:
        field = self.object_type(type_name).fields.get(field_name)
        if field is None:
            raise SchemaError(f'field "{field_name}" not defined on type "{type_name}"')
        return field

    def named_type(self, type_name: str, field_name: str) -> GraphQLNamedType:
        return get_named_type(self.field(type_name, field_name).type)

    def is_many(self, type_name: str, field_name: str) -> bool:
        """Whether the field type is wrapped in a list at any level."""
        gql_type = self.field(type_name, field_name).type
        while isinstance(gql_type, GraphQLNonNull | GraphQLList):
            if isinstance(gql_type, GraphQLList):
                return True
            gql_type = gql_type.of_type
        return False

    def classify(self, type_name: str) -> FieldClassification:
        cached = self._classified.get(type_name)
        if cached is not None:
            return cached

        attribute: dict[str, str] = {}
        relation: dict[str, str] = {}
        method: dict[str, str] = {}
        for name, field in self.object_type(type_name).fields.items():
            named = get_named_type(field.type)
            if name in METHOD_NAMES:
                method[name] = named.name
            elif isinstance(named, GraphQLScalarType | GraphQLEnumType):
                attribute[name] = named.name
            elif isinstance(named, GraphQLObjectType) and field.resolve is not None:
                relation[name] = named.name
            else:
                raise SchemaError(
                    f'unsupported type "{type(named).__name__}" for field "{name}" '
                    f'on type "{type_name}"'
                )

        classification = FieldClassification(
            attribute=MappingProxyType(attribute),
            relation=MappingProxyType(relation),
            method=MappingProxyType(method),
        )
        self._classified[type_name] = classification
        return classification
