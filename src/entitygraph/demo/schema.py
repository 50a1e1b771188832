"""
GraphQL schema of the demo organization domain, composed from engine fragments
"""

from typing import Any

from graphql import GraphQLSchema

from ..engine import EntityEngine
from ..graphql.hooks import TraceEvent
from ..graphql.scalars import SCALARS
from ..graphql.schema import make_executable_schema
from ..logging import get_logger
from ..storage import EntityStore
from .models import Base

logger = get_logger(__name__)

FTS_FIELDS = {
    "OrgUnit": ["initials", "name"],
    "Person": ["initials", "name"],
}


def log_trace(event: TraceEvent, ctx: Any) -> None:
    logger.debug(
        "trace",
        op=event.op,
        arity=event.arity,
        entity_type=event.dst_type,
        ids=[str(oid) for oid in event.dst_ids],
        via=event.via,
        source_type=event.src_type,
        source_attr=event.src_attr,
    )


def build_engine(**options: Any) -> EntityEngine:
    """Engine over the demo models; keyword arguments override the defaults."""
    options.setdefault("fts", FTS_FIELDS)
    options.setdefault("tracer", log_trace)
    return EntityEngine(EntityStore.from_base(Base), **options)


def _entity_methods(engine: EntityEngine, type_name: str) -> str:
    return "".join(
        [
            engine.entity_id_schema(type_name),
            engine.entity_hc_schema(type_name),
            engine.entity_clone_schema(type_name),
            engine.entity_create_schema(type_name),
            engine.entity_update_schema(type_name),
            engine.entity_delete_schema(type_name),
            engine.entity_batch_schema(type_name),
        ]
    )


ROOT_TYPES = ("Query", "Mutation")
ROOT_ENTITIES = ("OrgUnit", "OrgUnit*", "Person", "Person*")


def _root_fields(engine: EntityEngine, root: str) -> str:
    return "\n".join(engine.entity_query_schema(root, "", target) for target in ROOT_ENTITIES)


def build_type_defs(engine: EntityEngine) -> str:
    """SDL of the demo schema.

    Query and Mutation carry the same entity fields: a mutation starts from
    the anonymous handle of an entity type, e.g. ``mutation { Person { create } }``.
    """
    return f"""
scalar UUID
scalar JSON

enum PersonRole {{
    EMPLOYEE
    MANAGER
    EXTERNAL
}}

type Query {{
{_root_fields(engine, "Query")}
}}

type Mutation {{
{_root_fields(engine, "Mutation")}
}}

type OrgUnit {{
initials: String
name: String
{engine.entity_query_schema("OrgUnit", "director", "Person")}
{engine.entity_query_schema("OrgUnit", "members", "Person*")}
{engine.entity_query_schema("OrgUnit", "parent_unit", "OrgUnit")}
{_entity_methods(engine, "OrgUnit")}
}}

type Person {{
initials: String
name: String
role: PersonRole
{engine.entity_query_schema("Person", "belongs_to", "OrgUnit")}
{engine.entity_query_schema("Person", "supervisor", "Person")}
{_entity_methods(engine, "Person")}
}}
"""


def _entity_resolvers(engine: EntityEngine, type_name: str) -> dict[str, Any]:
    return {
        engine.id_name: engine.entity_id_resolver(type_name),
        engine.hc_name: engine.entity_hc_resolver(type_name),
        "clone": engine.entity_clone_resolver(type_name),
        "create": engine.entity_create_resolver(type_name),
        "update": engine.entity_update_resolver(type_name),
        "delete": engine.entity_delete_resolver(type_name),
        "batch": engine.entity_batch_resolver(type_name),
    }


def _root_resolvers(engine: EntityEngine, root: str) -> dict[str, Any]:
    return {
        "OrgUnit": engine.entity_query_resolver(root, "", "OrgUnit"),
        "OrgUnits": engine.entity_query_resolver(root, "", "OrgUnit*"),
        "Person": engine.entity_query_resolver(root, "", "Person"),
        "Persons": engine.entity_query_resolver(root, "", "Person*"),
    }


def build_resolvers(engine: EntityEngine) -> dict[str, Any]:
    return {
        **SCALARS,
        **{root: _root_resolvers(engine, root) for root in ROOT_TYPES},
        "OrgUnit": {
            "director": engine.entity_query_resolver("OrgUnit", "director", "Person"),
            "members": engine.entity_query_resolver("OrgUnit", "members", "Person*"),
            "parent_unit": engine.entity_query_resolver("OrgUnit", "parent_unit", "OrgUnit"),
            **_entity_resolvers(engine, "OrgUnit"),
        },
        "Person": {
            "belongs_to": engine.entity_query_resolver("Person", "belongs_to", "OrgUnit"),
            "supervisor": engine.entity_query_resolver("Person", "supervisor", "Person"),
            **_entity_resolvers(engine, "Person"),
        },
    }


def build_schema(engine: EntityEngine) -> GraphQLSchema:
    return make_executable_schema(build_type_defs(engine), build_resolvers(engine))
