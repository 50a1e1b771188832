"""
Clone resolver: copies attributes, never relations
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from graphql import GraphQLResolveInfo

from ...errors import AuthorizationError, ContextError
from ...handles import is_anonymous
from ...logging import get_logger
from ..hooks import TraceEvent

if TYPE_CHECKING:
    from ...engine import EntityEngine, Resolver

logger = get_logger(__name__)


def schema(engine: EntityEngine, type_name: str) -> str:
    return (
        f'"""Clone one [{type_name}]() entity by cloning its attributes\n'
        '(but not its relationships)."""\n'
        f"clone: {type_name}!\n"
    )


async def clone_entity(
    engine: EntityEngine, type_name: str, source: Any, info: GraphQLResolveInfo
) -> Any:
    tools = engine.tools(info.schema)
    tx = engine.transaction_of(info)
    ctx = info.context

    if not await engine.hooks.authorized("after", "read", type_name, source, ctx):
        raise AuthorizationError(f'not allowed to read entity of type "{type_name}"')

    # Foreign keys belong to relations, which are not cloned
    skipped = {engine.id_name} | engine.store.relation_columns(type_name)
    attributes = tools.introspector.classify(type_name).attribute
    values = engine.store.column_values(source)
    data = {
        name: value
        for name, value in values.items()
        if name in attributes and name not in skipped
    }
    data[engine.id_name] = engine.id_generator()

    if not await engine.hooks.authorized("before", "create", type_name, None, ctx):
        raise AuthorizationError(f'will not be allowed to clone entity of type "{type_name}"')

    instance = engine.store.build(type_name, data)
    await engine.store.save(instance, tx)

    if not await engine.hooks.authorized("after", "create", type_name, instance, ctx):
        raise AuthorizationError(f'was not allowed to clone entity of type "{type_name}"')

    if not await engine.hooks.authorized("after", "read", type_name, instance, ctx):
        raise AuthorizationError(f'was not allowed to read (cloned) entity of type "{type_name}"')

    logger.info(
        "Entity cloned",
        entity_type=type_name,
        source_id=str(engine.store.identity(source)),
        id=str(data[engine.id_name]),
    )

    engine.map_null_attributes(type_name, instance, tools)
    engine.index_update(type_name, instance, "create", tx)

    await engine.hooks.trace(
        TraceEvent(
            op="create",
            arity="one",
            dst_type=type_name,
            dst_ids=[data[engine.id_name]],
            dst_attrs=list(data),
        ),
        ctx,
    )
    return instance


def resolver(engine: EntityEngine, type_name: str) -> Resolver:
    async def resolve_clone(entity: Any, info: GraphQLResolveInfo, **args: Any) -> Any:
        engine.require_mutation(info, "clone")
        if is_anonymous(entity):
            raise ContextError(f'method "clone" only allowed in non-anonymous {type_name} context')
        return await clone_entity(engine, type_name, entity, info)

    return resolve_clone
