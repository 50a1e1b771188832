"""
Pluggable authorization, validation and tracing callbacks
"""

import inspect
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Literal

from ..errors import ValidationError
from ..logging import get_logger

logger = get_logger(__name__)

Moment = Literal["before", "after"]
Operation = Literal["create", "read", "update", "delete"]

Authorizer = Callable[[Moment, Operation, str, Any, Any], Any]
Validator = Callable[[str, dict[str, Any], Any], Any]
Tracer = Callable[["TraceEvent", Any], Any]


@dataclass(frozen=True)
class TraceEvent:
    """One observed entity access.

    ``via`` is ``"relation"`` for reads that followed a relation, in which
    case the ``src_*`` fields name the entity and relation traversed.
    """

    op: Operation
    arity: Literal["one", "many"]
    dst_type: str
    dst_ids: list[Any]
    dst_attrs: list[str] = field(default_factory=list)
    via: Literal["direct", "relation"] = "direct"
    src_type: str | None = None
    src_id: Any = None
    src_attr: str | None = None


async def _call(callback: Callable[..., Any], *args: Any) -> Any:
    result = callback(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


class HookGateway:
    """Invokes the configured callbacks; each one is optional.

    Callbacks may be plain functions or coroutine functions.
    """

    def __init__(
        self,
        authorizer: Authorizer | None = None,
        validator: Validator | None = None,
        tracer: Tracer | None = None,
    ):
        self.authorizer = authorizer
        self.validator = validator
        self.tracer = tracer

    async def authorized(
        self, moment: Moment, op: Operation, type_name: str, instance: Any, ctx: Any
    ) -> bool:
        """Ask the authorizer; a missing authorizer allows everything, a failing one denies."""
        if self.authorizer is None:
            return True
        try:
            allowed = bool(await _call(self.authorizer, moment, op, type_name, instance, ctx))
        except Exception as e:
            logger.warning(
                "Authorizer raised, denying access",
                moment=moment,
                operation=op,
                entity_type=type_name,
                error=str(e),
            )
            return False
        if not allowed:
            logger.info("Access denied", moment=moment, operation=op, entity_type=type_name)
        return allowed

    async def validate(self, type_name: str, attributes: dict[str, Any], ctx: Any) -> None:
        """Run the validator over proposed attribute values.

        Raises:
            ValidationError: If the validator rejects the values or raises
        """
        if self.validator is None:
            return
        try:
            valid = await _call(self.validator, type_name, attributes, ctx)
        except ValidationError:
            raise
        except Exception as e:
            raise ValidationError(f'validation of entity of type "{type_name}" failed: {e}') from e
        if valid is False:
            raise ValidationError(f'validation of entity of type "{type_name}" failed')

    async def trace(self, event: TraceEvent, ctx: Any) -> None:
        if self.tracer is None:
            return
        try:
            await _call(self.tracer, event, ctx)
        except Exception as e:
            logger.warning("Tracer failed", op=event.op, entity_type=event.dst_type, error=str(e))
