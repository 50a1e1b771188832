"""
Exception taxonomy of the entity resolution engine.

All of these surface to the GraphQL execution layer as a failed field; none of
them is retried internally.
"""


class EntityGraphError(Exception):
    """Base exception for engine operations."""

    pass


class SchemaError(EntityGraphError):
    """Misconfigured schema type or field (fatal, not recoverable per request)."""

    pass


class ValidationError(EntityGraphError):
    """Bad input shape or value; the operation is aborted before any mutation."""

    pass


class FieldTypeError(ValidationError, TypeError):
    """Input value has the wrong Python type for its field."""

    pass


class UnknownFieldError(EntityGraphError):
    """Requested field is not defined on the entity type."""

    pass


class ConflictError(EntityGraphError):
    """Identifier collision, stale hash-code, or duplicate batch reference."""

    pass


class NotFoundError(EntityGraphError):
    """Referenced entity does not exist."""

    pass


class CardinalityError(EntityGraphError):
    """Relation arity violation."""

    pass


class ContextError(EntityGraphError):
    """Operation invoked in the wrong (anonymous/non-anonymous) context."""

    pass


class AuthorizationError(EntityGraphError):
    """Raised when a before or after authorization check fails."""

    pass


class FeatureUnavailableError(EntityGraphError):
    """Full-text search is not configured for the type or field."""

    pass


class StorageError(EntityGraphError):
    """Underlying persistence failure."""

    pass
