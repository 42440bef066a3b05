"""
Schema validation for payloads served by the sync service.

Contains:
- domains.py: Accepted value domains per field, with widening history
- entities.py: Entity schemas (metadata, content, root) as TypedDicts
- validator.py: Ordered multi-variant validation
"""

from rmraw.schemas.validator import (
    DEFAULT_REGISTRY,
    SchemaValidator,
    SchemaVariant,
)

__all__ = [
    "DEFAULT_REGISTRY",
    "SchemaValidator",
    "SchemaVariant",
]
