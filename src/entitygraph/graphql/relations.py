"""
Application of relation change directives to a stored entity
"""

from typing import Any

from ..database import Transaction
from ..errors import CardinalityError, NotFoundError, SchemaError
from ..logging import get_logger
from ..storage import EntityStore, FindOptions, RelationAccessor
from .introspection import SchemaIntrospector

logger = get_logger(__name__)

# Directive keys in the order they are applied
DIRECTIVE_ORDER = ("set", "del", "add")


class RelationMutator:
    """Applies ``set``/``del``/``add`` directives with cardinality and existence checks."""

    def __init__(self, introspector: SchemaIntrospector, store: EntityStore, id_name: str = "id"):
        self.introspector = introspector
        self.store = store
        self.id_name = id_name

    async def apply(
        self,
        type_name: str,
        instance: Any,
        directives: dict[str, dict[str, list[str]]],
        tx: Transaction,
    ) -> None:
        relations = self.introspector.classify(type_name).relation
        for name, directive in directives.items():
            target = relations.get(name)
            if target is None:
                raise SchemaError(f'relation "{name}" not defined on type "{type_name}"')
            many = self.introspector.is_many(type_name, name)
            accessor = self.store.relation(type_name, name)

            for action in DIRECTIVE_ORDER:
                if action not in directive:
                    continue
                await self._change(
                    action, type_name, name, target, many, accessor, instance,
                    directive[action], tx,
                )

    async def _change(
        self,
        action: str,
        type_name: str,
        name: str,
        target: str,
        many: bool,
        accessor: RelationAccessor,
        instance: Any,
        ids: list[str],
        tx: Transaction,
    ) -> None:
        targets = await self.resolve_targets(target, ids, tx, relation=f"{type_name}.{name}")

        if not many and len(ids) > 1:
            raise CardinalityError(
                f"relationship {name} on type {type_name} has cardinality 0..1 "
                "and cannot receive more than one foreign entity"
            )

        logger.debug(
            "Changing relation",
            action=action,
            entity_type=type_name,
            relation=name,
            target_ids=ids,
        )

        if action == "set":
            await accessor.set(instance, targets, tx)
        elif action == "del":
            if many:
                await accessor.remove(instance, targets, tx)
            else:
                await accessor.set(instance, [], tx)
        elif many:
            await accessor.add(instance, targets, tx)
        else:
            await accessor.set(instance, targets, tx)

    async def resolve_targets(
        self, target: str, ids: list[str], tx: Transaction, relation: str | None = None
    ) -> list[Any]:
        """Map ids onto stored instances, in the given order.

        Raises:
            NotFoundError: Naming the first id without a stored entity
        """
        if not ids:
            return []
        rows = await self.store.find_all(target, FindOptions(where={self.id_name: list(ids)}), tx)
        found = {str(self.store.identity(row)): row for row in rows}
        for oid in ids:
            if str(oid) not in found:
                via = f" (relation {relation})" if relation else ""
                raise NotFoundError(f"no such entity {target}#{oid} found{via}")
        return [found[str(oid)] for oid in ids]
