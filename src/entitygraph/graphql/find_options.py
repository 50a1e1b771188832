"""
Translation of GraphQL query arguments into storage find options
"""

from collections.abc import Mapping
from typing import Any

from ..errors import ValidationError
from ..storage import EntityStore, FindOptions, Include, lookup_operator
from .introspection import SchemaIntrospector
from .selection import FieldTree

INCLUDE_KEYS = frozenset({"where", "include"})


class QueryOptionBuilder:
    """Builds validated ``FindOptions`` from the query arguments of a field."""

    def __init__(
        self,
        introspector: SchemaIntrospector,
        store: EntityStore,
        id_name: str = "id",
        hc_name: str = "hc",
        narrow: bool = True,
    ):
        self.introspector = introspector
        self.store = store
        self.id_name = id_name
        self.hc_name = hc_name
        # off when an authorizer is configured: it gets full rows
        self.narrow = narrow

    def build(
        self, type_name: str, args: Mapping[str, Any], requested: FieldTree | None = None
    ) -> FindOptions:
        options = FindOptions()

        if args.get("where") is not None:
            options.where = self.rewrite_where(type_name, args["where"])

        if args.get("include") is not None:
            options.include = self.build_include(type_name, args["include"])

        if args.get("order") is not None:
            options.order = self.check_order(args["order"])

        if args.get("offset") is not None:
            options.offset = _non_negative("offset", args["offset"])

        if args.get("limit") is not None:
            options.limit = _non_negative("limit", args["limit"])

        if self.narrow and requested is not None and not options.include:
            options.attributes = self.projection(type_name, args, requested)

        return options

    def rewrite_where(self, type_name: str, where: Any) -> dict[Any, Any]:
        """Validate a ``where`` object and replace operator names by ``Op`` members."""
        if not isinstance(where, dict):
            raise ValidationError('invalid "where" argument (object expected)')
        return self._rewrite(type_name, where, set(self.introspector.classify(type_name).attribute))

    def _rewrite(self, type_name: str, value: Any, attributes: set[str]) -> Any:
        if isinstance(value, list):
            return [self._rewrite(type_name, item, attributes) for item in value]
        if not isinstance(value, dict):
            return value
        rewritten: dict[Any, Any] = {}
        for key, item in value.items():
            op = lookup_operator(key)
            if op is None and key not in attributes:
                raise ValidationError(
                    f'invalid "where" argument: no such field "{key}" on type "{type_name}"'
                )
            rewritten[op if op is not None else key] = self._rewrite(type_name, item, attributes)
        return rewritten

    def build_include(self, type_name: str, include: Any) -> list[Include]:
        if not isinstance(include, dict):
            raise ValidationError('invalid "include" argument (object expected)')

        relations = self.introspector.classify(type_name).relation
        result = []
        for name, entry in include.items():
            target = relations.get(name)
            if target is None:
                raise ValidationError(
                    f'invalid "include" argument: no such relation "{name}" on type "{type_name}"'
                )
            if entry is True or entry is None:
                entry = {}
            if not isinstance(entry, dict) or not set(entry) <= INCLUDE_KEYS:
                raise ValidationError(
                    f'invalid "include" argument for relation "{name}" on type "{type_name}": '
                    "expected { where?, include? }"
                )
            where = entry.get("where")
            nested = entry.get("include")
            result.append(
                Include(
                    relation=name,
                    target=target,
                    where=self.rewrite_where(target, where) if where is not None else None,
                    include=self.build_include(target, nested) if nested is not None else [],
                )
            )
        return result

    @staticmethod
    def check_order(order: Any) -> Any:
        if isinstance(order, str):
            return order
        if isinstance(order, list) and order and all(_is_order_item(item) for item in order):
            return order
        raise ValidationError('invalid "order" argument: wrong structure')

    def projection(
        self, type_name: str, args: Mapping[str, Any], requested: FieldTree
    ) -> list[str] | None:
        """Attributes to load, or None when the full row is needed."""
        if self.hc_name in args or self.hc_name in requested:
            return None

        fields = self.introspector.classify(type_name)
        if any(name in fields.method or name in fields.relation for name in requested):
            return None

        attributes = [name for name in requested if name in fields.attribute]
        columns = self.store.columns(type_name)
        if any(name not in columns for name in attributes):
            return None

        return attributes or [self.id_name]


def _is_order_item(item: Any) -> bool:
    if isinstance(item, str):
        return True
    return (
        isinstance(item, list | tuple)
        and len(item) == 2
        and all(isinstance(part, str) for part in item)
    )


def _non_negative(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(f'invalid "{name}" argument (non-negative integer expected)')
    return value
