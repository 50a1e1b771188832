"""
GraphQL glue: executable schema, scalars and entity field handling
"""

from .hooks import HookGateway, TraceEvent
from .introspection import FieldClassification, SchemaIntrospector
from .scalars import SCALARS, JSONScalar, UUIDScalar
from .schema import make_executable_schema, validate_schema

__all__ = [
    "SCALARS",
    "FieldClassification",
    "HookGateway",
    "JSONScalar",
    "SchemaIntrospector",
    "TraceEvent",
    "UUIDScalar",
    "make_executable_schema",
    "validate_schema",
]
