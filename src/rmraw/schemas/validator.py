"""
Multi-variant schema validation.

Each entity kind maps to an ordered tuple of schema variants. A payload is
checked against each variant in turn, strictly (no coercion), and the first
full match wins. When nothing matches, the ValidationError lists every
variant's failures so the caller can see exactly why each candidate failed.

Validation never modifies the payload. The optional normalization step
returns a rewritten copy and leaves the original untouched.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import orjson
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from rmraw.exceptions import ValidationError
from rmraw.logging import get_logger
from rmraw.schemas import entities
from rmraw.types import EntityKind, FieldFailure, ValidatedEntity

logger = get_logger(__name__)

_ACTUAL_MAX_CHARS = 60


@dataclass(frozen=True)
class SchemaVariant:
    """One accepted JSON shape for an entity kind."""

    tag: str
    schema: type
    adapter: TypeAdapter[Any] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "adapter", TypeAdapter(self.schema))

    @property
    def permissive(self) -> bool:
        """Whether unknown keys are accepted (and preserved)."""
        config = getattr(self.schema, "__pydantic_config__", {}) or {}
        return config.get("extra") == "allow"

    @property
    def known_keys(self) -> frozenset[str]:
        return frozenset(self.schema.__required_keys__) | frozenset(self.schema.__optional_keys__)

    def failures(self, payload: Any) -> list[FieldFailure]:
        """Validate strictly; an empty list means the payload matches."""
        try:
            self.adapter.validate_python(payload, strict=True)
        except PydanticValidationError as e:
            return [_to_field_failure(error) for error in e.errors(include_url=False)]
        return []


def _format_path(loc: Sequence[int | str]) -> str:
    path = ""
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path += f".{part}" if path else str(part)
    return path


def _describe(value: Any) -> str:
    text = repr(value)
    if len(text) > _ACTUAL_MAX_CHARS:
        text = text[: _ACTUAL_MAX_CHARS - 1] + "…"
    return f"{type(value).__name__} {text}"


def _to_field_failure(error: Mapping[str, Any]) -> FieldFailure:
    path = _format_path(error.get("loc", ()))
    error_type = error.get("type", "")
    if error_type == "missing":
        return FieldFailure(path=path, expected="required field", actual="missing")
    if error_type == "extra_forbidden":
        return FieldFailure(path=path, expected="no such field", actual=_describe(error.get("input")))
    expected = str(error.get("msg", error_type)).removeprefix("Input should be ")
    return FieldFailure(path=path, expected=expected, actual=_describe(error.get("input")))


def _structured_tags(payload: dict[str, Any]) -> dict[str, Any]:
    """Rewrite legacy string tags as tag objects with an unknown (0) timestamp."""
    tags = [{"name": name, "timestamp": 0} for name in payload.get("tags", [])]
    return {**payload, "tags": tags}


_DOCUMENT_VARIANTS = (
    SchemaVariant("document-content-v2", entities.DocumentContentV2),
    SchemaVariant("document-content-v1", entities.DocumentContentV1),
    SchemaVariant("document-content-legacy-tags", entities.DocumentContentLegacyTags),
)

_COLLECTION_VARIANTS = (
    SchemaVariant("collection-content", entities.CollectionContent),
    SchemaVariant("collection-content-legacy-tags", entities.CollectionContentLegacyTags),
)

# Variants are tried in this order; put the most specific first.
DEFAULT_REGISTRY: dict[EntityKind, tuple[SchemaVariant, ...]] = {
    EntityKind.METADATA: (SchemaVariant("metadata", entities.Metadata),),
    EntityKind.DOCUMENT_CONTENT: _DOCUMENT_VARIANTS,
    EntityKind.COLLECTION_CONTENT: _COLLECTION_VARIANTS,
    EntityKind.CONTENT: _DOCUMENT_VARIANTS + _COLLECTION_VARIANTS,
    EntityKind.ROOT: (
        SchemaVariant("root-current", entities.RootCurrent),
        SchemaVariant("root-legacy", entities.RootLegacy),
    ),
    EntityKind.ROOT_UPDATE: (SchemaVariant("root-update", entities.RootUpdate),),
}

# Legacy variant tag -> (rewrite, variant tag the rewritten payload must match)
DEFAULT_NORMALIZERS: dict[str, tuple[Callable[[dict[str, Any]], dict[str, Any]], str]] = {
    "document-content-legacy-tags": (_structured_tags, "document-content-v1"),
    "collection-content-legacy-tags": (_structured_tags, "collection-content"),
}


class SchemaValidator:
    """Validates untyped JSON against the variants registered for an entity kind.

    The default registry covers every payload the sync service serves. Pass a
    custom registry to widen or narrow what is accepted; the validator never
    guesses beyond it.
    """

    def __init__(
        self,
        registry: Mapping[EntityKind, Sequence[SchemaVariant]] | None = None,
        normalizers: Mapping[str, tuple[Callable[[dict[str, Any]], dict[str, Any]], str]]
        | None = None,
    ) -> None:
        self._registry = {
            kind: tuple(variants)
            for kind, variants in (DEFAULT_REGISTRY if registry is None else registry).items()
        }
        self._normalizers = dict(DEFAULT_NORMALIZERS if normalizers is None else normalizers)
        self._by_tag: dict[str, SchemaVariant] = {}
        for variants in self._registry.values():
            for variant in variants:
                self._by_tag.setdefault(variant.tag, variant)

    def variants(self, kind: EntityKind) -> tuple[SchemaVariant, ...]:
        """Variants for a kind, in the order they are tried.

        Raises:
            KeyError: If the kind has no registered variants.
        """
        return self._registry[kind]

    def validate(
        self,
        kind: EntityKind,
        payload: Any,
        *,
        normalize: bool = False,
    ) -> ValidatedEntity:
        """Validate a decoded JSON payload.

        Args:
            kind: Entity kind to validate against.
            payload: Decoded JSON value. Never modified.
            normalize: Rewrite legacy variants into the current shape. The
                rewritten copy is returned; the input is left alone.

        Returns:
            The entity, tagged with the first variant that matched.

        Raises:
            ValidationError: If no variant matches, with per-variant failures.
            KeyError: If the kind has no registered variants.
        """
        failures: dict[str, list[FieldFailure]] = {}
        for variant in self.variants(kind):
            variant_failures = variant.failures(payload)
            if variant_failures:
                failures[variant.tag] = variant_failures
                continue

            extra_keys: tuple[str, ...] = ()
            if variant.permissive and isinstance(payload, dict):
                extra_keys = tuple(sorted(set(payload) - variant.known_keys))
            entity = ValidatedEntity(
                kind=kind,
                variant=variant.tag,
                payload=payload,
                extra_keys=extra_keys,
            )
            if failures:
                logger.debug(
                    "Payload matched a fallback variant",
                    kind=kind.value,
                    variant=variant.tag,
                    skipped=list(failures),
                )
            if normalize and variant.tag in self._normalizers:
                return self._normalize(entity)
            return entity

        logger.warning(
            "Payload matched no schema variant",
            kind=kind.value,
            variants=list(failures),
        )
        raise ValidationError(kind, failures)

    def validate_json(
        self,
        kind: EntityKind,
        data: bytes | str,
        *,
        normalize: bool = False,
    ) -> ValidatedEntity:
        """Parse JSON text and validate it.

        Raises:
            ValidationError: If the text is not JSON or matches no variant.
        """
        try:
            payload = orjson.loads(data)
        except orjson.JSONDecodeError as e:
            raise ValidationError(
                kind,
                {"json": [FieldFailure(path="", expected="a JSON document", actual=str(e))]},
            ) from e
        return self.validate(kind, payload, normalize=normalize)

    def _normalize(self, entity: ValidatedEntity) -> ValidatedEntity:
        rewrite, target_tag = self._normalizers[entity.variant]
        rewritten = rewrite(entity.payload)
        target = self._by_tag[target_tag]
        target_failures = target.failures(rewritten)
        if target_failures:
            raise ValidationError(entity.kind, {target_tag: target_failures})
        return ValidatedEntity(
            kind=entity.kind,
            variant=entity.variant,
            payload=rewritten,
            normalized=True,
            extra_keys=entity.extra_keys,
        )
