"""
Batch resolver: ordered create/clone/update/delete steps in one transaction
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar, Literal

from graphql import GraphQLResolveInfo
from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr
from pydantic import ValidationError as PydanticValidationError

from ...errors import ConflictError, NotFoundError, ValidationError
from ...handles import is_anonymous
from ...logging import get_logger
from .clone import clone_entity
from .create import create_entity
from .delete import delete_entity
from .update import update_entity

if TYPE_CHECKING:
    from ...engine import EntityEngine, Resolver

logger = get_logger(__name__)


class _Step(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    shape: ClassVar[str]

    type: StrictStr
    id: StrictStr | None = None
    root: StrictBool | None = None


class CreateStep(_Step):
    shape: ClassVar[str] = (
        "{ op: string, type: string, id?: string, root?: boolean, ref?: string, with: object }"
    )

    op: Literal["CREATE"]
    ref: StrictStr | None = None
    with_: dict[str, Any] = Field(alias="with")


class CloneStep(_Step):
    shape: ClassVar[str] = "{ op: string, type: string, id: string, root?: boolean, ref?: string }"

    op: Literal["CLONE"]
    id: StrictStr
    ref: StrictStr | None = None


class UpdateStep(_Step):
    shape: ClassVar[str] = "{ op: string, type: string, id: string, root?: boolean, with: object }"

    op: Literal["UPDATE"]
    id: StrictStr
    with_: dict[str, Any] = Field(alias="with")


class DeleteStep(_Step):
    shape: ClassVar[str] = "{ op: string, type: string, id: string, root?: boolean }"

    op: Literal["DELETE"]
    id: StrictStr


STEP_MODELS: dict[str, type[_Step]] = {
    "CREATE": CreateStep,
    "CLONE": CloneStep,
    "UPDATE": UpdateStep,
    "DELETE": DeleteStep,
}


def schema(engine: EntityEngine, type_name: str) -> str:
    return (
        '"""\n'
        f"Run a batch with create, clone, update or delete operations for type [{type_name}]()\n"
        "or composition entities.\n"
        '"""\n'
        f"batch(collection: JSON!): {type_name}\n"
    )


def substitute_refs(value: Any, refs: dict[str, Any]) -> Any:
    """Replace every string equal to a known reference name by its identifier."""
    if isinstance(value, str):
        return refs.get(value, value)
    if isinstance(value, list):
        return [substitute_refs(item, refs) for item in value]
    if isinstance(value, dict):
        return {key: substitute_refs(item, refs) for key, item in value.items()}
    return value


def parse_step(index: int, raw: Any, refs: dict[str, Any]) -> _Step:
    if not isinstance(raw, dict):
        raise ValidationError(f'invalid argument for method "batch": step {index} is not an object')

    raw = dict(raw)
    for key in ("with", "id"):
        if key in raw:
            raw[key] = substitute_refs(raw[key], refs)

    op = raw.get("op")
    model = STEP_MODELS.get(op) if isinstance(op, str) else None
    if model is None:
        raise ValidationError(
            f'invalid operation "{op}" in step {index}. '
            'Operation must be "CREATE", "CLONE", "UPDATE" or "DELETE".'
        )
    try:
        return model.model_validate(raw)
    except PydanticValidationError as e:
        raise ValidationError(
            f'invalid argument for method "batch": step {index} with op "{op}" '
            f"must have the structure: {model.shape}"
        ) from e


async def run_batch(
    engine: EntityEngine,
    type_name: str,
    entity: Any,
    info: GraphQLResolveInfo,
    collection: Any,
) -> Any:
    tx = engine.transaction_of(info)
    anonymous = is_anonymous(entity, type_name)

    if not isinstance(collection, list):
        raise ValidationError('invalid argument for method "batch": collection must be a list')

    refs: dict[str, Any] = {}
    executed: list[tuple[_Step, Any]] = []

    for index, raw in enumerate(collection):
        step = parse_step(index, raw, refs)
        if not engine.store.has_model(step.type):
            raise ValidationError(f'unknown entity type "{step.type}" in batch step {index}')

        ref = getattr(step, "ref", None)
        if ref is not None and ref in refs:
            raise ConflictError(
                f'reference "{ref}" already exists, but it must be unique in one batch.'
            )

        logger.debug(
            "Running batch step", index=index, op=type(step).__name__, entity_type=step.type
        )

        result: Any = None
        match step:
            case CreateStep():
                oid = step.id
                if oid is None:
                    oid = engine.id_generator()
                    result = await create_entity(
                        engine, step.type, info, step.with_, oid=oid, check_unique=False
                    )
                else:
                    result = await create_entity(engine, step.type, info, step.with_, oid=oid)
                if ref is not None:
                    refs[ref] = oid
            case CloneStep():
                source = await _existing(engine, step.type, step.id, tx)
                result = await clone_entity(engine, step.type, source, info)
                if ref is not None:
                    refs[ref] = engine.store.identity(result)
            case UpdateStep():
                target = await _existing(engine, step.type, step.id, tx)
                await update_entity(engine, step.type, target, info, step.with_)
                result = target
            case DeleteStep():
                target = await _existing(engine, step.type, step.id, tx)
                await delete_entity(engine, step.type, target, info)

        executed.append((step, result))

    if anonymous:
        for step, result in executed:
            if step.root:
                return result
        for step, result in executed:
            if step.type == type_name:
                return result
        return None

    oid = engine.store.identity(entity)
    for step, _result in executed:
        if isinstance(step, DeleteStep) and step.id == str(oid):
            return None
    instance = await engine.store.find_by_id(type_name, oid, tx)
    if instance is not None:
        engine.map_null_attributes(type_name, instance, engine.tools(info.schema))
    return instance


async def _existing(engine: EntityEngine, type_name: str, oid: str, tx: Any) -> Any:
    instance = await engine.store.find_by_id(type_name, oid, tx)
    if instance is None:
        raise NotFoundError(f"no such entity {type_name}#{oid} found")
    return instance


def resolver(engine: EntityEngine, type_name: str) -> Resolver:
    async def resolve_batch(entity: Any, info: GraphQLResolveInfo, **args: Any) -> Any:
        engine.require_mutation(info, "batch")
        return await run_batch(engine, type_name, entity, info, args.get("collection"))

    return resolve_batch
