"""
Query-one and query-many resolvers, directly or by following a relation
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from graphql import GraphQLResolveInfo

from ...handles import Anonymous, is_anonymous
from ...logging import get_logger
from ..hooks import TraceEvent
from ..selection import FieldTree, requested_fields

if TYPE_CHECKING:
    from ...engine import EntityEngine, Resolver

logger = get_logger(__name__)


def _split_target(target: str) -> tuple[str, bool]:
    if target.endswith("*"):
        return target[:-1], True
    return target, False


def schema(engine: EntityEngine, source: str, relation: str, target: str) -> str:
    target, many = _split_target(target)
    limit = engine.default_limit
    if many and not relation:
        return (
            '"""\n'
            f"Query one or many [{target}]() entities,\n"
            "by either an (optionally available) full-text-search (`fts`)\n"
            "or an (always available) attribute-based condition (`where`),\n"
            "optionally filter them by related entities (`include`),\n"
            "optionally sort them (`order`),\n"
            "optionally start the result set at the n-th entity (zero-based `offset`), and\n"
            "optionally reduce the result set to a maximum number of entities (`limit`).\n"
            '"""\n'
            f"{target}s(fts: String, where: JSON, include: JSON, order: JSON, "
            f"offset: Int = 0, limit: Int = {limit}): [{target}]!\n"
        )
    if many:
        return (
            '"""\n'
            f"Query one or many [{target}]() entities\n"
            f"by following the **{relation}** relation of [{source}]() entity,\n"
            "optionally filter them by a condition (`where`) or by related entities (`include`),\n"
            "optionally sort them (`order`),\n"
            "optionally start the result set at the n-th entity (zero-based `offset`), and\n"
            "optionally reduce the result set to a maximum number of entities (`limit`).\n"
            '"""\n'
            f"{relation}(where: JSON, include: JSON, order: JSON, "
            f"offset: Int = 0, limit: Int = {limit}): [{target}]!\n"
        )
    if not relation:
        return (
            '"""\n'
            f"Query one [{target}]() entity by its unique id or by a condition (`where`),\n"
            f"or open an anonymous context for [{target}].\n"
            '"""\n'
            f"{target}(id: {engine.id_type}, where: JSON, include: JSON): {target}\n"
        )
    return (
        '"""\n'
        f"Query one [{target}]() entity by following\n"
        f"the **{relation}** relation of [{source}]() entity.\n"
        f"The [{target}]() entity can be optionally filtered by a condition (`where`).\n"
        '"""\n'
        f"{relation}(where: JSON, include: JSON): {target}\n"
    )


def _requested_attributes(
    engine: EntityEngine, type_name: str, info: GraphQLResolveInfo, requested: FieldTree
) -> list[str]:
    attributes = engine.tools(info.schema).introspector.classify(type_name).attribute
    return [name for name in requested if name in attributes]


def _read_event(
    engine: EntityEngine,
    arity: str,
    source: str,
    relation: str,
    target: str,
    parent: Any,
    instance: Any,
    attributes: list[str],
) -> TraceEvent:
    if relation:
        return TraceEvent(
            op="read",
            arity=arity,  # type: ignore[arg-type]
            dst_type=target,
            dst_ids=[engine.store.identity(instance)],
            dst_attrs=attributes,
            via="relation",
            src_type=source,
            src_id=engine.identity_or_none(parent),
            src_attr=relation,
        )
    return TraceEvent(
        op="read",
        arity=arity,  # type: ignore[arg-type]
        dst_type=target,
        dst_ids=[engine.store.identity(instance)],
        dst_attrs=attributes,
    )


async def query_many(
    engine: EntityEngine,
    source: str,
    relation: str,
    target: str,
    parent: Any,
    info: GraphQLResolveInfo,
    args: dict[str, Any],
) -> list[Any]:
    tools = engine.tools(info.schema)
    tx = engine.transaction_of(info)
    requested = requested_fields(info)
    options = tools.options.build(target, args, requested)

    logger.debug("Querying entities", entity_type=target, relation=relation or None)

    if not relation:
        if args.get("fts") is not None:
            found = await engine.fts_search(target, args["fts"], options, tx)
        else:
            found = await engine.store.find_all(target, options, tx)
    elif is_anonymous(parent):
        return []
    else:
        found = await engine.store.relation(source, relation).get(parent, options, tx)

    visible = []
    for instance in found:
        if await engine.hooks.authorized("after", "read", target, instance, info.context):
            visible.append(instance)

    for instance in visible:
        engine.map_null_attributes(target, instance, tools)

    attributes = _requested_attributes(engine, target, info, requested)
    for instance in visible:
        event = _read_event(engine, "many", source, relation, target, parent, instance, attributes)
        await engine.hooks.trace(event, info.context)

    return visible


async def query_one(
    engine: EntityEngine,
    source: str,
    relation: str,
    target: str,
    parent: Any,
    info: GraphQLResolveInfo,
    args: dict[str, Any],
) -> Any:
    tools = engine.tools(info.schema)
    tx = engine.transaction_of(info)

    if not relation and args.get("id") is None and args.get("where") is None:
        return Anonymous(target)

    requested = requested_fields(info)
    options = tools.options.build(target, args, requested)

    logger.debug(
        "Querying entity", entity_type=target, relation=relation or None, id=args.get("id")
    )

    if not relation:
        if args.get("id") is not None:
            instance = await engine.store.find_by_id(target, args["id"], tx, options)
        else:
            instance = await engine.store.find_one(target, options, tx)
    elif is_anonymous(parent):
        return None
    else:
        instance = await engine.store.relation(source, relation).get(parent, options, tx)

    if instance is None:
        return None

    if not await engine.hooks.authorized("after", "read", target, instance, info.context):
        return None

    engine.map_null_attributes(target, instance, tools)

    attributes = _requested_attributes(engine, target, info, requested)
    event = _read_event(engine, "one", source, relation, target, parent, instance, attributes)
    await engine.hooks.trace(event, info.context)

    return instance


def resolver(engine: EntityEngine, source: str, relation: str, target: str) -> Resolver:
    target, many = _split_target(target)

    if many:

        async def resolve_many(parent: Any, info: GraphQLResolveInfo, **args: Any) -> list[Any]:
            return await query_many(engine, source, relation, target, parent, info, args)

        return resolve_many

    async def resolve_one(parent: Any, info: GraphQLResolveInfo, **args: Any) -> Any:
        return await query_one(engine, source, relation, target, parent, info, args)

    return resolve_one
