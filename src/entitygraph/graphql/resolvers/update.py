"""
Update resolver with optional optimistic locking via the hash-code
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from graphql import GraphQLResolveInfo

from ...errors import AuthorizationError, ConflictError, ContextError
from ...handles import is_anonymous
from ...logging import get_logger
from ..hooks import TraceEvent
from ..request_fields import resolve_request

if TYPE_CHECKING:
    from ...engine import EntityEngine, Resolver

logger = get_logger(__name__)


def schema(engine: EntityEngine, type_name: str) -> str:
    return (
        '"""\n'
        f"Update one [{type_name}]() entity with specified attributes (`with`).\n"
        f"If the hash-code (`{engine.hc_name}`) is given, the entity must not have changed since.\n"
        '"""\n'
        f"update(with: JSON!, {engine.hc_name}: String): {type_name}!\n"
    )


async def update_entity(
    engine: EntityEngine,
    type_name: str,
    instance: Any,
    info: GraphQLResolveInfo,
    raw_with: Any,
    hc: str | None = None,
) -> Any:
    """Update attributes and relations of ``instance``.

    Returns the instance, or None when the caller may no longer read it.
    """
    tools = engine.tools(info.schema)
    tx = engine.transaction_of(info)
    ctx = info.context
    oid = engine.store.identity(instance)

    request = resolve_request(tools.introspector, type_name, raw_with)

    if hc is not None and hc != engine.hash_code(instance):
        raise ConflictError(
            f"entity {type_name}#{oid} was modified concurrently (hash-code mismatch)"
        )

    if not await engine.hooks.authorized("before", "update", type_name, instance, ctx):
        raise AuthorizationError(f'will not be allowed to update entity of type "{type_name}"')

    await engine.hooks.validate(type_name, request.attribute, ctx)

    logger.debug("Updating entity", entity_type=type_name, id=str(oid))
    await engine.store.update(instance, request.attribute, tx)
    await tools.relations.apply(type_name, instance, request.relation, tx)

    if not await engine.hooks.authorized("after", "update", type_name, instance, ctx):
        raise AuthorizationError(f'was not allowed to update entity of type "{type_name}"')

    logger.info("Entity updated", entity_type=type_name, id=str(oid))

    if not await engine.hooks.authorized("after", "read", type_name, instance, ctx):
        return None

    engine.map_null_attributes(type_name, instance, tools)
    engine.index_update(type_name, instance, "update", tx)

    await engine.hooks.trace(
        TraceEvent(
            op="update",
            arity="one",
            dst_type=type_name,
            dst_ids=[oid],
            dst_attrs=[*request.attribute, *request.relation],
        ),
        ctx,
    )
    return instance


def resolver(engine: EntityEngine, type_name: str) -> Resolver:
    async def resolve_update(entity: Any, info: GraphQLResolveInfo, **args: Any) -> Any:
        engine.require_mutation(info, "update")
        if is_anonymous(entity):
            raise ContextError(f'method "update" only allowed in non-anonymous {type_name} context')
        return await update_entity(
            engine, type_name, entity, info, args.get("with"), hc=args.get(engine.hc_name)
        )

    return resolve_update
