"""
Create resolver
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
        f'"""Create new [{type_name}]() entity, optionally with specified attributes (`with`)."""\n'
        f"create(id: {engine.id_type}, with: JSON): {type_name}!\n"
    )


async def create_entity(
    engine: EntityEngine,
    type_name: str,
    info: GraphQLResolveInfo,
    raw_with: Any,
    oid: Any = None,
    check_unique: bool = True,
) -> Any:
    """Create one entity and apply its relation changes.

    Returns the new instance, or None when the caller may not read it.

    Raises:
        ConflictError: If the given identifier is already taken
        AuthorizationError: If the before or after create check fails
    """
    tools = engine.tools(info.schema)
    tx = engine.transaction_of(info)
    ctx = info.context

    request = resolve_request(tools.introspector, type_name, raw_with)

    if oid is None:
        oid = engine.id_generator()
    elif check_unique:
        existing = await engine.store.find_by_id(type_name, oid, tx)
        if existing is not None:
            raise ConflictError(f"entity {type_name}#{oid} already exists")
    request.attribute[engine.id_name] = oid

    await engine.hooks.validate(type_name, request.attribute, ctx)

    if not await engine.hooks.authorized("before", "create", type_name, None, ctx):
        raise AuthorizationError(f'will not be allowed to create entity of type "{type_name}"')

    logger.debug("Creating entity", entity_type=type_name, id=str(oid))
    instance = engine.store.build(type_name, request.attribute)
    await engine.store.save(instance, tx)

    await tools.relations.apply(type_name, instance, request.relation, tx)

    if not await engine.hooks.authorized("after", "create", type_name, instance, ctx):
        raise AuthorizationError(f'was not allowed to create entity of type "{type_name}"')

    logger.info("Entity created", entity_type=type_name, id=str(oid))

    if not await engine.hooks.authorized("after", "read", type_name, instance, ctx):
        return None

    engine.map_null_attributes(type_name, instance, tools)
    engine.index_update(type_name, instance, "create", tx)

    await engine.hooks.trace(
        TraceEvent(
            op="create",
            arity="one",
            dst_type=type_name,
            dst_ids=[oid],
            dst_attrs=[*request.attribute, *request.relation],
        ),
        ctx,
    )
    return instance


def resolver(engine: EntityEngine, type_name: str) -> Resolver:
    async def resolve_create(entity: Any, info: GraphQLResolveInfo, **args: Any) -> Any:
        engine.require_mutation(info, "create")
        if not is_anonymous(entity, type_name):
            raise ContextError(f'method "create" only allowed in anonymous {type_name} context')
        return await create_entity(engine, type_name, info, args.get("with"), oid=args.get("id"))

    return resolve_create
