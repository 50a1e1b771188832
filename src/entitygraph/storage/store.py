"""
SQLAlchemy-backed entity store.

Resolvers never touch the session directly; every read and write goes through
``EntityStore`` so that the transaction lock is always held and storage
failures surface as ``StorageError``.
"""

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from sqlalchemy import ColumnElement, Select, and_, not_, or_, select, true
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import (
    DeclarativeBase,
    RelationshipDirection,
    RelationshipProperty,
    Session,
    load_only,
    selectinload,
    with_parent,
)

from ..database import Transaction
from ..errors import SchemaError, StorageError, ValidationError
from ..logging import get_logger
from .operators import COMPARATORS, Op, lookup_operator
from .options import FindOptions, Include

logger = get_logger(__name__)


def _describe(action: str, error: SQLAlchemyError) -> str:
    cause = getattr(error, "orig", None) or error
    return f"{action} failed: {cause}"


@dataclass(frozen=True)
class RelationAccessor:
    """Getter and mutators for one relationship of one entity type."""

    store: "EntityStore"
    owner: str
    name: str
    target: str
    prop: RelationshipProperty

    @property
    def many(self) -> bool:
        return bool(self.prop.uselist)

    async def get(self, instance: Any, options: FindOptions | None, tx: Transaction) -> Any:
        """Load the related instance (or list of instances) of ``instance``."""
        if self.prop.direction is RelationshipDirection.MANYTOONE and self._unset(instance):
            return None
        stmt = self.store.select(self.target, options or FindOptions())
        stmt = stmt.where(with_parent(instance, self.prop.class_attribute))
        rows = await self.store.execute(stmt, tx)
        if self.many:
            return rows
        return rows[0] if rows else None

    def _unset(self, instance: Any) -> bool:
        """True when every loaded foreign-key column of a to-one relation is NULL."""
        state = sa_inspect(instance)
        for column in self.prop.local_columns:
            key = state.mapper.get_property_by_column(column).key
            if state.attrs[key].loaded_value is not None:
                return False
        return True

    async def set(self, instance: Any, targets: list[Any], tx: Transaction) -> None:
        def apply(session: Session) -> None:
            if self.many:
                setattr(instance, self.name, list(targets))
            else:
                setattr(instance, self.name, targets[0] if targets else None)

        await self.store.mutate(apply, tx, f"set {self.owner}.{self.name}")

    async def add(self, instance: Any, targets: list[Any], tx: Transaction) -> None:
        def apply(session: Session) -> None:
            if not self.many:
                setattr(instance, self.name, targets[0] if targets else None)
                return
            collection = getattr(instance, self.name)
            for target in targets:
                if target not in collection:
                    collection.append(target)

        await self.store.mutate(apply, tx, f"add {self.owner}.{self.name}")

    async def remove(self, instance: Any, targets: list[Any], tx: Transaction) -> None:
        def apply(session: Session) -> None:
            if not self.many:
                current = getattr(instance, self.name)
                if current is not None and (not targets or current in targets):
                    setattr(instance, self.name, None)
                return
            collection = getattr(instance, self.name)
            for target in targets:
                if target in collection:
                    collection.remove(target)

        await self.store.mutate(apply, tx, f"remove {self.owner}.{self.name}")


class EntityStore:
    """Maps entity type names onto declarative models and runs queries for them."""

    def __init__(self, models: Mapping[str, type], id_name: str = "id"):
        self.id_name = id_name
        self._models: dict[str, type] = dict(models)
        self._names: dict[type, str] = {model: name for name, model in self._models.items()}
        self._columns: dict[str, frozenset[str]] = {}
        self._relation_columns: dict[str, frozenset[str]] = {}
        self._accessors: dict[str, dict[str, RelationAccessor]] = {}

        fk_columns: dict[str, set[str]] = {name: set() for name in self._models}
        for name, model in self._models.items():
            mapper = sa_inspect(model)
            self._columns[name] = frozenset(attr.key for attr in mapper.column_attrs)
            accessors = {}
            for rel in mapper.relationships:
                target = self._names.get(rel.mapper.class_)
                if rel.direction is RelationshipDirection.MANYTOONE:
                    for column in rel.local_columns:
                        fk_columns[name].add(mapper.get_property_by_column(column).key)
                elif rel.direction is RelationshipDirection.ONETOMANY and target is not None:
                    # The foreign key lives on the target table
                    for column in rel.remote_side:
                        fk_columns[target].add(rel.mapper.get_property_by_column(column).key)
                if target is None:
                    continue
                accessors[rel.key] = RelationAccessor(self, name, rel.key, target, rel)
            self._accessors[name] = accessors
        self._relation_columns = {name: frozenset(keys) for name, keys in fk_columns.items()}

    @classmethod
    def from_base(cls, base: type[DeclarativeBase], id_name: str = "id") -> "EntityStore":
        """Register every model mapped on ``base`` under its class name."""
        models = {mapper.class_.__name__: mapper.class_ for mapper in base.registry.mappers}
        return cls(models, id_name=id_name)

    # Schema information

    def has_model(self, type_name: str) -> bool:
        return type_name in self._models

    def model(self, type_name: str) -> type:
        try:
            return self._models[type_name]
        except KeyError:
            raise SchemaError(f'no storage model registered for type "{type_name}"') from None

    def type_name(self, instance: Any) -> str | None:
        return self._names.get(type(instance))

    def columns(self, type_name: str) -> frozenset[str]:
        self.model(type_name)
        return self._columns[type_name]

    def relation_columns(self, type_name: str) -> frozenset[str]:
        """Foreign-key columns owned by many-to-one relations of the type."""
        self.model(type_name)
        return self._relation_columns[type_name]

    def relations(self, type_name: str) -> Mapping[str, RelationAccessor]:
        self.model(type_name)
        return self._accessors[type_name]

    def relation(self, type_name: str, name: str) -> RelationAccessor:
        try:
            return self.relations(type_name)[name]
        except KeyError:
            raise SchemaError(f'type "{type_name}" has no storage relation "{name}"') from None

    def identity(self, instance: Any) -> Any:
        return getattr(instance, self.id_name)

    def column_values(self, instance: Any) -> dict[str, Any]:
        """Loaded column values of ``instance``; unloaded columns are left out."""
        state = sa_inspect(instance)
        return {
            attr.key: state.dict[attr.key]
            for attr in state.mapper.column_attrs
            if attr.key in state.dict
        }

    # Query compilation

    def _column(self, model: type, name: Any) -> Any:
        type_name = self._names[model]
        if not isinstance(name, str) or name not in self._columns[type_name]:
            raise ValidationError(f'no such field "{name}" on type "{type_name}"')
        return getattr(model, name)

    def compile_where(self, model: type, where: Any) -> ColumnElement[bool]:
        if not isinstance(where, dict):
            raise ValidationError(f"where clause must be an object, got {type(where).__name__}")
        clauses = []
        for key, value in where.items():
            op = lookup_operator(key)
            if op is None:
                clauses.append(self._compile_condition(self._column(model, key), value))
            elif op in (Op.AND, Op.OR):
                parts = [self.compile_where(model, item) for item in _as_list(value)]
                clauses.append(_combine(and_ if op is Op.AND else or_, parts))
            elif op is Op.NOT:
                clauses.append(not_(self.compile_where(model, value)))
            else:
                raise ValidationError(f'operator "{op.value}" must be applied to a field')
        return _combine(and_, clauses)

    def _compile_condition(self, column: Any, value: Any) -> ColumnElement[bool]:
        if isinstance(value, dict):
            clauses = []
            for key, operand in value.items():
                op = lookup_operator(key)
                if op is None:
                    raise ValidationError(f'invalid operator "{key}" on field "{column.key}"')
                if op in (Op.AND, Op.OR):
                    parts = [self._compile_condition(column, item) for item in _as_list(operand)]
                    clauses.append(_combine(and_ if op is Op.AND else or_, parts))
                elif op is Op.NOT and isinstance(operand, dict):
                    clauses.append(not_(self._compile_condition(column, operand)))
                else:
                    try:
                        clauses.append(COMPARATORS[op](column, operand))
                    except (TypeError, ValueError) as e:
                        raise ValidationError(
                            f'invalid operand for "{op.value}" on field "{column.key}": {e}'
                        ) from e
            return _combine(and_, clauses)
        if isinstance(value, list):
            return column.in_(value)
        if value is None:
            return column.is_(None)
        return column == value

    def compile_order(self, model: type, order: Any) -> list[Any]:
        items = [order] if isinstance(order, str) else order
        clauses = []
        for item in items:
            if isinstance(item, str):
                clauses.append(self._column(model, item).asc())
                continue
            name, direction = item
            direction = str(direction).upper()
            if direction not in ("ASC", "DESC"):
                raise ValidationError(f'invalid sort direction "{direction}"')
            column = self._column(model, name)
            clauses.append(column.desc() if direction == "DESC" else column.asc())
        return clauses

    def _include_criterion(self, model: type, include: Include) -> ColumnElement[bool] | None:
        accessor = self.relation(self._names[model], include.relation)
        target = self.model(include.target)
        clauses = []
        if include.where is not None:
            clauses.append(self.compile_where(target, include.where))
        for nested in include.include:
            criterion = self._include_criterion(target, nested)
            if criterion is not None:
                clauses.append(criterion)
        if not clauses:
            return None
        attribute = getattr(model, include.relation)
        condition = _combine(and_, clauses)
        return attribute.any(condition) if accessor.many else attribute.has(condition)

    def _include_loaders(self, model: type, include: Include, parent: Any = None) -> Iterable[Any]:
        self.relation(self._names[model], include.relation)
        attribute = getattr(model, include.relation)
        loader = selectinload(attribute) if parent is None else parent.selectinload(attribute)
        yield loader
        target = self.model(include.target)
        for nested in include.include:
            yield from self._include_loaders(target, nested, loader)

    def select(self, type_name: str, options: FindOptions) -> Select:
        model = self.model(type_name)
        stmt = select(model)
        if options.where is not None:
            stmt = stmt.where(self.compile_where(model, options.where))
        for include in options.include:
            criterion = self._include_criterion(model, include)
            if criterion is not None:
                stmt = stmt.where(criterion)
            stmt = stmt.options(*self._include_loaders(model, include))
        if options.order:
            stmt = stmt.order_by(*self.compile_order(model, options.order))
        if options.offset:
            stmt = stmt.offset(options.offset)
        if options.limit is not None:
            stmt = stmt.limit(options.limit)
        if options.attributes:
            names = dict.fromkeys([self.id_name, *options.attributes])
            stmt = stmt.options(load_only(*[self._column(model, name) for name in names]))
        else:
            stmt = stmt.execution_options(populate_existing=True)
        return stmt

    # Execution

    async def execute(self, stmt: Select, tx: Transaction) -> list[Any]:
        async with tx.lock:
            try:
                result = await tx.session.execute(stmt)
                return list(result.scalars().unique().all())
            except SQLAlchemyError as e:
                raise StorageError(_describe("query", e)) from e

    async def mutate(self, apply: Callable[[Session], None], tx: Transaction, action: str) -> None:
        async with tx.lock:
            try:
                await tx.session.run_sync(apply)
                await tx.session.flush()
            except SQLAlchemyError as e:
                raise StorageError(_describe(action, e)) from e

    async def find_all(self, type_name: str, options: FindOptions, tx: Transaction) -> list[Any]:
        return await self.execute(self.select(type_name, options), tx)

    async def find_one(self, type_name: str, options: FindOptions, tx: Transaction) -> Any:
        stmt = self.select(type_name, options).limit(1)
        rows = await self.execute(stmt, tx)
        return rows[0] if rows else None

    async def find_by_id(
        self, type_name: str, oid: Any, tx: Transaction, options: FindOptions | None = None
    ) -> Any:
        model = self.model(type_name)
        stmt = self.select(type_name, options or FindOptions())
        stmt = stmt.where(getattr(model, self.id_name) == oid)
        rows = await self.execute(stmt, tx)
        return rows[0] if rows else None

    def build(self, type_name: str, values: Mapping[str, Any]) -> Any:
        model = self.model(type_name)
        for name in values:
            self._column(model, name)
        return model(**values)

    async def save(self, instance: Any, tx: Transaction) -> Any:
        async with tx.lock:
            tx.session.add(instance)
            try:
                await tx.session.flush()
                await tx.session.refresh(instance)
            except SQLAlchemyError as e:
                raise StorageError(_describe(f"save {type(instance).__name__}", e)) from e
        return instance

    async def update(self, instance: Any, values: Mapping[str, Any], tx: Transaction) -> Any:
        model = type(instance)
        for name in values:
            self._column(model, name)
        async with tx.lock:
            for name, value in values.items():
                setattr(instance, name, value)
            try:
                await tx.session.flush()
            except SQLAlchemyError as e:
                raise StorageError(_describe(f"update {model.__name__}", e)) from e
        return instance

    async def destroy(self, instance: Any, tx: Transaction) -> None:
        async with tx.lock:
            try:
                await tx.session.delete(instance)
                await tx.session.flush()
            except SQLAlchemyError as e:
                raise StorageError(_describe(f"delete {type(instance).__name__}", e)) from e


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else [value]


def _combine(fn: Callable[..., ColumnElement[bool]], clauses: list[Any]) -> ColumnElement[bool]:
    if not clauses:
        return true()
    if len(clauses) == 1:
        return clauses[0]
    return fn(*clauses)
