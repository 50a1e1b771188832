"""
Entity resolution engine

Binds entity types of a GraphQL schema to storage models: generates SDL
fragments and resolver functions for query, create, clone, update, delete
and batch, and keeps the full-text index in step with the mutations it
performs.
"""

import hashlib
import json
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from graphql import GraphQLResolveInfo, GraphQLSchema, OperationType

from .config import settings
from .database import Transaction
from .errors import ContextError
from .graphql.find_options import QueryOptionBuilder
from .graphql.hooks import Authorizer, HookGateway, Tracer, Validator
from .graphql.introspection import SchemaIntrospector
from .graphql.relations import RelationMutator
from .graphql.resolvers import batch, clone, create, delete, fields, query, update
from .handles import is_anonymous
from .logging import get_logger
from .search import FTSManager
from .search.fts import IndexOp
from .storage import EntityStore, FindOptions

logger = get_logger(__name__)

Resolver = Callable[..., Any]


@dataclass(frozen=True)
class SchemaTools:
    """Per-schema collaborators derived from one ``SchemaIntrospector``."""

    introspector: SchemaIntrospector
    options: QueryOptionBuilder
    relations: RelationMutator


def default_id_generator() -> str:
    return str(uuid.uuid4())


class EntityEngine:
    """Generates entity schema fragments and resolvers over an ``EntityStore``.

    Constructor arguments override the corresponding ``ENTITYGRAPH_*``
    settings.

    Args:
        store: storage adapter mapping entity type names to models
        id_type: GraphQL scalar name used for identifiers
        id_name: identifier field and column name
        hc_name: name of the generated hash-code field
        id_generator: produces a fresh identifier for create and clone
        validator: ``(type, attributes, ctx) -> bool``, sync or async
        authorizer: ``(moment, op, type, instance, ctx) -> bool``, sync or async
        tracer: ``(TraceEvent, ctx) -> None``, sync or async
        fts: entity type name mapped to the fields to index
        fts_enabled: global full-text search switch
        fts_deferred: apply index mutations only after the transaction commits
    """

    def __init__(
        self,
        store: EntityStore,
        *,
        id_type: str | None = None,
        id_name: str | None = None,
        hc_name: str | None = None,
        id_generator: Callable[[], Any] | None = None,
        validator: Validator | None = None,
        authorizer: Authorizer | None = None,
        tracer: Tracer | None = None,
        fts: Mapping[str, list[str]] | None = None,
        fts_enabled: bool | None = None,
        fts_deferred: bool | None = None,
        default_limit: int | None = None,
    ):
        self.store = store
        self.id_type = id_type or settings.id_type
        self.id_name = id_name or settings.id_name
        self.hc_name = hc_name or settings.hc_name
        self.id_generator = id_generator or default_id_generator
        self.default_limit = default_limit if default_limit is not None else settings.default_limit
        self.hooks = HookGateway(authorizer=authorizer, validator=validator, tracer=tracer)
        self.fts = FTSManager(
            fts,
            enabled=settings.fts_enabled if fts_enabled is None else fts_enabled,
            heap_size=settings.fts_writer_heap_size,
        )
        self.fts_deferred = settings.fts_deferred if fts_deferred is None else fts_deferred
        self._tools: dict[int, SchemaTools] = {}

    # Lifecycle

    async def boot(self, tx: Transaction) -> None:
        """Build the full-text index of every configured type from stored rows."""
        for type_name, indexed in self.fts.config.items():
            if not self.fts.enabled:
                break
            rows = await self.store.find_all(type_name, FindOptions(attributes=list(indexed)), tx)
            self.fts.rebuild(
                type_name,
                ((self.store.identity(row), self.store.column_values(row)) for row in rows),
            )

    # Shared helpers for resolvers

    def tools(self, schema: GraphQLSchema) -> SchemaTools:
        tools = self._tools.get(id(schema))
        if tools is None or tools.introspector.schema is not schema:
            introspector = SchemaIntrospector(schema)
            tools = SchemaTools(
                introspector=introspector,
                options=QueryOptionBuilder(
                    introspector,
                    self.store,
                    self.id_name,
                    self.hc_name,
                    narrow=self.hooks.authorizer is None,
                ),
                relations=RelationMutator(introspector, self.store, self.id_name),
            )
            self._tools[id(schema)] = tools
        return tools

    @staticmethod
    def transaction_of(info: GraphQLResolveInfo) -> Transaction:
        context = info.context
        tx = context.get("tx") if isinstance(context, Mapping) else getattr(context, "tx", None)
        if not isinstance(tx, Transaction):
            raise ContextError("no transaction available in the GraphQL context")
        return tx

    @staticmethod
    def require_mutation(info: GraphQLResolveInfo, method: str) -> None:
        if info.operation.operation != OperationType.MUTATION:
            raise ContextError(f'method "{method}" only allowed under "mutation" operation')

    def hash_code(self, instance: Any) -> str:
        """SHA-1 over the canonical JSON form of the stored column values."""
        values = self.store.column_values(instance)
        payload = json.dumps(values, sort_keys=True, default=str)
        return hashlib.sha1(payload.encode("utf-8")).hexdigest()

    def map_null_attributes(self, type_name: str, instance: Any, tools: SchemaTools) -> None:
        """Give every schema attribute unknown to the model an explicit None."""
        model = type(instance)
        for name in tools.introspector.classify(type_name).attribute:
            if not hasattr(model, name) and name not in vars(instance):
                setattr(instance, name, None)

    def index_update(
        self, type_name: str, instance: Any, op: IndexOp, tx: Transaction, oid: Any = None
    ) -> None:
        if not self.fts.configured(type_name):
            return
        if oid is None:
            oid = self.store.identity(instance)
        values = self.store.column_values(instance) if instance is not None else None
        if self.fts_deferred:
            tx.after_commit(lambda: self.fts.update(type_name, oid, values, op))
        else:
            self.fts.update(type_name, oid, values, op)

    async def fts_search(
        self, type_name: str, query_string: str, options: FindOptions, tx: Transaction
    ) -> list[Any]:
        ids = self.fts.search(type_name, query_string)
        fetch = FindOptions(
            where={self.id_name: ids},
            order=options.order,
            offset=options.offset,
            limit=options.limit,
            attributes=options.attributes,
        )
        return await self.store.find_all(type_name, fetch, tx)

    def identity_or_none(self, handle: Any) -> Any:
        return None if is_anonymous(handle) else self.store.identity(handle)

    # Schema fragments and resolvers

    def entity_query_schema(self, source: str, relation: str, target: str) -> str:
        return query.schema(self, source, relation, target)

    def entity_query_resolver(self, source: str, relation: str, target: str) -> Resolver:
        return query.resolver(self, source, relation, target)

    def entity_create_schema(self, type_name: str) -> str:
        return create.schema(self, type_name)

    def entity_create_resolver(self, type_name: str) -> Resolver:
        return create.resolver(self, type_name)

    def entity_clone_schema(self, type_name: str) -> str:
        return clone.schema(self, type_name)

    def entity_clone_resolver(self, type_name: str) -> Resolver:
        return clone.resolver(self, type_name)

    def entity_update_schema(self, type_name: str) -> str:
        return update.schema(self, type_name)

    def entity_update_resolver(self, type_name: str) -> Resolver:
        return update.resolver(self, type_name)

    def entity_delete_schema(self, type_name: str) -> str:
        return delete.schema(self, type_name)

    def entity_delete_resolver(self, type_name: str) -> Resolver:
        return delete.resolver(self, type_name)

    def entity_batch_schema(self, type_name: str) -> str:
        return batch.schema(self, type_name)

    def entity_batch_resolver(self, type_name: str) -> Resolver:
        return batch.resolver(self, type_name)

    def entity_id_schema(self, type_name: str) -> str:
        return fields.id_schema(self, type_name)

    def entity_id_resolver(self, type_name: str) -> Resolver:
        return fields.id_resolver(self, type_name)

    def entity_hc_schema(self, type_name: str) -> str:
        return fields.hc_schema(self, type_name)

    def entity_hc_resolver(self, type_name: str) -> Resolver:
        return fields.hc_resolver(self, type_name)
