"""
Delete resolver
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
    return f'"""Delete one [{type_name}]() entity."""\ndelete: {engine.id_type}!\n'


async def delete_entity(
    engine: EntityEngine, type_name: str, instance: Any, info: GraphQLResolveInfo
) -> Any:
    """Delete ``instance`` and return its identifier."""
    tx = engine.transaction_of(info)
    ctx = info.context

    if not await engine.hooks.authorized("before", "delete", type_name, instance, ctx):
        raise AuthorizationError(f'will not be allowed to delete entity of type "{type_name}"')

    oid = engine.store.identity(instance)
    await engine.store.destroy(instance, tx)
    logger.info("Entity deleted", entity_type=type_name, id=str(oid))

    engine.index_update(type_name, None, "delete", tx, oid=oid)

    await engine.hooks.trace(
        TraceEvent(op="delete", arity="one", dst_type=type_name, dst_ids=[oid], dst_attrs=["*"]),
        ctx,
    )
    return oid


def resolver(engine: EntityEngine, type_name: str) -> Resolver:
    async def resolve_delete(entity: Any, info: GraphQLResolveInfo, **args: Any) -> Any:
        engine.require_mutation(info, "delete")
        if is_anonymous(entity):
            raise ContextError(f'method "delete" only allowed in non-anonymous {type_name} context')
        return await delete_entity(engine, type_name, entity, info)

    return resolve_delete
