"""
Type checking and normalization of mutation ``with`` payloads
"""

from dataclasses import dataclass, field
from typing import Any

from graphql import GraphQLEnumType, GraphQLError, GraphQLScalarType
from pydantic import BaseModel, ConfigDict, Field, StrictStr
from pydantic import ValidationError as PydanticValidationError

from ..errors import FieldTypeError, UnknownFieldError, ValidationError
from .introspection import SchemaIntrospector


class RelationDirective(BaseModel):
    """Normalized change instruction for one relation field."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    set: list[StrictStr] | None = None
    add: list[StrictStr] | None = Field(default=None, min_length=1)
    del_: list[StrictStr] | None = Field(default=None, alias="del", min_length=1)


@dataclass
class ResolvedRequest:
    attribute: dict[str, Any] = field(default_factory=dict)
    relation: dict[str, dict[str, list[str]]] = field(default_factory=dict)


def normalize_relation(value: Any, type_name: str, name: str) -> dict[str, list[str]]:
    """Turn a raw relation payload into ``{set?, add?, del?}`` id lists.

    A bare id means ``{set: [id]}``, null means ``{set: []}`` and a list
    of ids means ``{set: ids}``. Already normalized input is returned
    unchanged.
    """
    if value is None:
        value = {"set": []}
    elif isinstance(value, str):
        value = {"set": [value]}
    elif isinstance(value, list):
        value = {"set": value}
    elif isinstance(value, dict):
        value = {
            key: [] if ids is None else [ids] if isinstance(ids, str) else ids
            for key, ids in value.items()
        }
    else:
        raise ValidationError(f'invalid value for relation "{name}" on type "{type_name}"')

    try:
        directive = RelationDirective.model_validate(value)
    except PydanticValidationError as e:
        raise ValidationError(
            f'invalid value for relation "{name}" on type "{type_name}": '
            "expected { set?: [id*], add?: [id+], del?: [id+] }"
        ) from e
    return directive.model_dump(by_alias=True, exclude_none=True)


def coerce_attribute(
    introspector: SchemaIntrospector, type_name: str, name: str, value: Any
) -> Any:
    """Parse an attribute value through its scalar or enum type."""
    if value is None:
        return None

    named = introspector.named_type(type_name, name)
    if isinstance(named, GraphQLEnumType):
        if not isinstance(value, str):
            raise FieldTypeError(
                f'invalid value type (expected string) for enumeration "{named.name}" '
                f'on field "{name}" on type "{type_name}"'
            )
        if value not in named.values:
            raise ValidationError(
                f'invalid value for enumeration "{named.name}" '
                f'on field "{name}" on type "{type_name}"'
            )
        return value

    if isinstance(named, GraphQLScalarType):
        try:
            return named.parse_value(value)
        except (GraphQLError, TypeError, ValueError) as e:
            raise ValidationError(
                f'invalid value for field "{name}" on type "{type_name}": {e}'
            ) from e

    return value


def resolve_request(
    introspector: SchemaIntrospector, type_name: str, raw_with: Any
) -> ResolvedRequest:
    """Split a ``with`` payload into coerced attributes and relation directives.

    Raises:
        UnknownFieldError: If a key is neither an attribute nor a relation
        ValidationError: If a value does not fit its field
    """
    resolved = ResolvedRequest()
    if raw_with is None:
        return resolved
    if not isinstance(raw_with, dict):
        raise ValidationError(f'invalid "with" argument on type "{type_name}" (object expected)')

    fields = introspector.classify(type_name)
    for name, value in raw_with.items():
        if name in fields.relation:
            resolved.relation[name] = normalize_relation(value, type_name, name)
        elif name in fields.attribute:
            resolved.attribute[name] = coerce_attribute(introspector, type_name, name, value)
        else:
            raise UnknownFieldError(f'field "{name}" not known on type "{type_name}"')
    return resolved
