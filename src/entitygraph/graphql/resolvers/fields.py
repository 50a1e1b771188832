"""
Generated scalar accessor fields: identifier and hash-code
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from graphql import GraphQLResolveInfo

from ...handles import is_anonymous

if TYPE_CHECKING:
    from ...engine import EntityEngine, Resolver


def id_schema(engine: EntityEngine, type_name: str) -> str:
    return (
        f'"""Unique identifier of the [{type_name}]() entity."""\n'
        f"{engine.id_name}: {engine.id_type}!\n"
    )


def id_resolver(engine: EntityEngine, type_name: str) -> Resolver:
    def resolve_id(entity: Any, info: GraphQLResolveInfo) -> Any:
        if is_anonymous(entity):
            return None
        return engine.store.identity(entity)

    return resolve_id


def hc_schema(engine: EntityEngine, type_name: str) -> str:
    return (
        f'"""Hash-code of the [{type_name}]() entity, for optimistic locking."""\n'
        f"{engine.hc_name}: String!\n"
    )


def hc_resolver(engine: EntityEngine, type_name: str) -> Resolver:
    def resolve_hc(entity: Any, info: GraphQLResolveInfo) -> str | None:
        if is_anonymous(entity):
            return None
        return engine.hash_code(entity)

    return resolve_hc
