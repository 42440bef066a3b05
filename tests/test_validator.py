"""
Tests for multi-variant schema validation.
"""

# No postponed annotations: the TypedDicts below must expose NotRequired eagerly.

import copy
from typing import Any

import orjson
import pytest
from pydantic import ConfigDict, with_config
from typing_extensions import NotRequired, TypedDict

from rmraw.exceptions import ValidationError
from rmraw.schemas import DEFAULT_REGISTRY, SchemaValidator, SchemaVariant
from rmraw.types import EntityKind

HASH = "d" * 64


@with_config(ConfigDict(extra="forbid"))
class _NullableRequired(TypedDict):
    value: int | None


@with_config(ConfigDict(extra="forbid"))
class _OptionalNotNull(TypedDict):
    value: NotRequired[int]


@with_config(ConfigDict(extra="forbid"))
class _Shape(TypedDict):
    kind: str
    size: int


@with_config(ConfigDict(extra="forbid"))
class _ShapeV1(TypedDict):
    kind: str


@pytest.fixture
def validator() -> SchemaValidator:
    return SchemaValidator()


class TestMetadataValidation:
    """Tests for .metadata payloads."""

    def test_valid_metadata(self, validator: SchemaValidator, metadata_payload: dict[str, Any]) -> None:
        """Test that a complete metadata payload validates."""
        entity = validator.validate(EntityKind.METADATA, metadata_payload)

        assert entity.variant == "metadata"
        assert entity.payload is metadata_payload
        assert entity["visibleName"] == "document_1"

    def test_optional_field_may_be_omitted(
        self, validator: SchemaValidator, metadata_payload: dict[str, Any]
    ) -> None:
        """Test that pinned can be left out by newer servers."""
        del metadata_payload["pinned"]
        entity = validator.validate(EntityKind.METADATA, metadata_payload)
        assert entity.get("pinned") is None

    def test_last_opened_page_never_opened(
        self, validator: SchemaValidator, metadata_payload: dict[str, Any]
    ) -> None:
        """Test that -1 is accepted as "never opened"."""
        metadata_payload["lastOpenedPage"] = -1
        validator.validate(EntityKind.METADATA, metadata_payload)

    def test_last_opened_page_below_sentinel(
        self, validator: SchemaValidator, metadata_payload: dict[str, Any]
    ) -> None:
        """Test that values below -1 are rejected."""
        metadata_payload["lastOpenedPage"] = -2

        with pytest.raises(ValidationError) as exc_info:
            validator.validate(EntityKind.METADATA, metadata_payload)

        assert exc_info.value.failed_paths("metadata") == ["lastOpenedPage"]

    def test_missing_required_field_named(
        self, validator: SchemaValidator, metadata_payload: dict[str, Any]
    ) -> None:
        """Test that a missing required field is reported by name."""
        del metadata_payload["visibleName"]

        with pytest.raises(ValidationError) as exc_info:
            validator.validate(EntityKind.METADATA, metadata_payload)

        failure = exc_info.value.failures["metadata"][0]
        assert failure.path == "visibleName"
        assert failure.expected == "required field"
        assert failure.actual == "missing"
        assert "visibleName" in str(exc_info.value)

    def test_unknown_field_rejected(
        self, validator: SchemaValidator, metadata_payload: dict[str, Any]
    ) -> None:
        """Test that metadata is closed to unknown keys."""
        metadata_payload["surprise"] = 1

        with pytest.raises(ValidationError) as exc_info:
            validator.validate(EntityKind.METADATA, metadata_payload)

        assert exc_info.value.failed_paths("metadata") == ["surprise"]

    def test_no_coercion(self, validator: SchemaValidator, metadata_payload: dict[str, Any]) -> None:
        """Test that a number is not accepted where a string is required."""
        metadata_payload["lastModified"] = 1700000000000

        with pytest.raises(ValidationError) as exc_info:
            validator.validate(EntityKind.METADATA, metadata_payload)

        failure = exc_info.value.failures["metadata"][0]
        assert failure.path == "lastModified"
        assert failure.actual.startswith("int ")

    def test_bool_is_not_an_integer(
        self, validator: SchemaValidator, metadata_payload: dict[str, Any]
    ) -> None:
        """Test that true is not accepted where an integer is required."""
        metadata_payload["version"] = True

        with pytest.raises(ValidationError):
            validator.validate(EntityKind.METADATA, metadata_payload)

    def test_edit_counter_past_uint8(
        self, validator: SchemaValidator, metadata_payload: dict[str, Any]
    ) -> None:
        """Test that edit counters above 255 are accepted."""
        metadata_payload["version"] = 300
        validator.validate(EntityKind.METADATA, metadata_payload)

    def test_payload_not_mutated(
        self, validator: SchemaValidator, metadata_payload: dict[str, Any]
    ) -> None:
        """Test that validation leaves the payload untouched."""
        snapshot = copy.deepcopy(metadata_payload)
        validator.validate(EntityKind.METADATA, metadata_payload)
        assert metadata_payload == snapshot


class TestContentValidation:
    """Tests for .content payloads and variant fallback."""

    def test_current_document_content(
        self, validator: SchemaValidator, document_content_v2: dict[str, Any]
    ) -> None:
        """Test that cPages content matches the current variant."""
        entity = validator.validate(EntityKind.DOCUMENT_CONTENT, document_content_v2)
        assert entity.variant == "document-content-v2"

    def test_falls_back_to_older_variant(
        self, validator: SchemaValidator, document_content_v1: dict[str, Any]
    ) -> None:
        """Test that flat page lists match the older variant."""
        entity = validator.validate(EntityKind.DOCUMENT_CONTENT, document_content_v1)
        assert entity.variant == "document-content-v1"

    def test_empty_orientation_accepted(
        self, validator: SchemaValidator, document_content_v2: dict[str, Any]
    ) -> None:
        """Test that "" is accepted as "never chosen"."""
        document_content_v2["orientation"] = ""
        document_content_v2["textAlignment"] = ""
        validator.validate(EntityKind.DOCUMENT_CONTENT, document_content_v2)

    def test_unknown_orientation_rejected(
        self, validator: SchemaValidator, document_content_v2: dict[str, Any]
    ) -> None:
        """Test that values outside the enum fail every variant."""
        document_content_v2["orientation"] = "sideways"

        with pytest.raises(ValidationError) as exc_info:
            validator.validate(EntityKind.DOCUMENT_CONTENT, document_content_v2)

        assert "orientation" in exc_info.value.failed_paths("document-content-v2")

    def test_null_keyboard_metadata(
        self, validator: SchemaValidator, document_content_v2: dict[str, Any]
    ) -> None:
        """Test that keyboardMetadata may be null."""
        document_content_v2["keyboardMetadata"] = None
        validator.validate(EntityKind.DOCUMENT_CONTENT, document_content_v2)

    def test_unknown_keys_kept_and_reported(
        self, validator: SchemaValidator, document_content_v2: dict[str, Any]
    ) -> None:
        """Test that content is open to unknown keys, which are preserved."""
        document_content_v2["futureField"] = {"x": 1}

        entity = validator.validate(EntityKind.DOCUMENT_CONTENT, document_content_v2)

        assert entity.extra_keys == ("futureField",)
        assert entity.payload["futureField"] == {"x": 1}

    def test_nested_failure_path(
        self, validator: SchemaValidator, document_content_v2: dict[str, Any]
    ) -> None:
        """Test that failures inside nested objects carry the full path."""
        document_content_v2["cPages"]["pages"][0]["idx"]["value"] = 5

        with pytest.raises(ValidationError) as exc_info:
            validator.validate(EntityKind.DOCUMENT_CONTENT, document_content_v2)

        assert "cPages.pages[0].idx.value" in exc_info.value.failed_paths("document-content-v2")

    def test_every_variant_reported(self, validator: SchemaValidator) -> None:
        """Test that a total mismatch lists failures for every variant tried."""
        with pytest.raises(ValidationError) as exc_info:
            validator.validate(EntityKind.DOCUMENT_CONTENT, {"fileType": "pdf"})

        error = exc_info.value
        assert list(error.failures) == [
            "document-content-v2",
            "document-content-v1",
            "document-content-legacy-tags",
        ]
        assert str(error).startswith("document_content payload matched none of 3 schema variant(s)")

    def test_collection_content(self, validator: SchemaValidator) -> None:
        """Test that folder content is matched by the combined content kind."""
        entity = validator.validate(EntityKind.CONTENT, {"tags": []})
        assert entity.variant == "collection-content"

    def test_empty_collection_content(self, validator: SchemaValidator) -> None:
        """Test that an empty object is valid folder content."""
        entity = validator.validate(EntityKind.COLLECTION_CONTENT, {})
        assert entity.variant == "collection-content"

    def test_non_object_payload(self, validator: SchemaValidator) -> None:
        """Test that arrays are rejected."""
        with pytest.raises(ValidationError):
            validator.validate(EntityKind.COLLECTION_CONTENT, [])


class TestLegacyTagNormalization:
    """Tests for rewriting legacy string tags."""

    def test_legacy_tags_match_legacy_variant(
        self, validator: SchemaValidator, document_content_v1: dict[str, Any]
    ) -> None:
        """Test that bare string tags match the legacy variant."""
        document_content_v1["tags"] = ["work", "urgent"]

        entity = validator.validate(EntityKind.DOCUMENT_CONTENT, document_content_v1)

        assert entity.variant == "document-content-legacy-tags"
        assert entity.normalized is False
        assert entity["tags"] == ["work", "urgent"]

    def test_normalize_rewrites_copy(
        self, validator: SchemaValidator, document_content_v1: dict[str, Any]
    ) -> None:
        """Test that normalization returns structured tags and leaves the input alone."""
        document_content_v1["tags"] = ["work"]

        entity = validator.validate(
            EntityKind.DOCUMENT_CONTENT, document_content_v1, normalize=True
        )

        assert entity.normalized is True
        assert entity.variant == "document-content-legacy-tags"
        assert entity["tags"] == [{"name": "work", "timestamp": 0}]
        assert document_content_v1["tags"] == ["work"]

    def test_normalize_collection_content(self, validator: SchemaValidator) -> None:
        """Test that folder tags are normalized too."""
        entity = validator.validate(EntityKind.CONTENT, {"tags": ["a"]}, normalize=True)
        assert entity.payload == {"tags": [{"name": "a", "timestamp": 0}]}

    def test_normalize_leaves_current_shape(
        self, validator: SchemaValidator, document_content_v2: dict[str, Any]
    ) -> None:
        """Test that current payloads are returned as-is when normalizing."""
        entity = validator.validate(
            EntityKind.DOCUMENT_CONTENT, document_content_v2, normalize=True
        )

        assert entity.normalized is False
        assert entity.payload is document_content_v2


class TestRootValidation:
    """Tests for root payloads."""

    def test_current_root(self, validator: SchemaValidator) -> None:
        """Test that a root with schemaVersion matches the current variant."""
        entity = validator.validate(
            EntityKind.ROOT, {"hash": HASH, "generation": 4, "schemaVersion": 3}
        )
        assert entity.variant == "root-current"

    def test_legacy_root(self, validator: SchemaValidator) -> None:
        """Test that a root without schemaVersion matches the legacy variant."""
        entity = validator.validate(EntityKind.ROOT, {"hash": HASH, "generation": 4})
        assert entity.variant == "root-legacy"

    def test_unknown_schema_version_rejected(self, validator: SchemaValidator) -> None:
        """Test that an unknown schemaVersion does not fall through to the legacy variant."""
        with pytest.raises(ValidationError) as exc_info:
            validator.validate(EntityKind.ROOT, {"hash": HASH, "generation": 4, "schemaVersion": 9})

        assert exc_info.value.failed_paths("root-current") == ["schemaVersion"]
        assert exc_info.value.failed_paths("root-legacy") == ["schemaVersion"]

    def test_negative_generation_rejected(self, validator: SchemaValidator) -> None:
        """Test that generations are non-negative."""
        with pytest.raises(ValidationError):
            validator.validate(EntityKind.ROOT, {"hash": HASH, "generation": -1})

    def test_validate_json(self, validator: SchemaValidator) -> None:
        """Test validating raw JSON bytes."""
        data = orjson.dumps({"hash": HASH, "generation": 1})
        assert validator.validate_json(EntityKind.ROOT_UPDATE, data)["generation"] == 1

    def test_validate_json_rejects_invalid_json(self, validator: SchemaValidator) -> None:
        """Test that unparsable JSON surfaces as a validation error."""
        with pytest.raises(ValidationError) as exc_info:
            validator.validate_json(EntityKind.ROOT, b"{not json")

        assert list(exc_info.value.failures) == ["json"]


class TestCustomRegistry:
    """Tests for registries supplied by the caller."""

    def test_default_registry_covers_every_kind(self) -> None:
        """Test that every entity kind has at least one variant."""
        assert set(DEFAULT_REGISTRY) == set(EntityKind)
        assert all(DEFAULT_REGISTRY[kind] for kind in EntityKind)

    def test_unknown_kind_raises_key_error(self) -> None:
        """Test that a registry without a kind refuses to guess."""
        validator = SchemaValidator(registry={})
        with pytest.raises(KeyError):
            validator.validate(EntityKind.METADATA, {})

    def test_nullable_required_field(self) -> None:
        """Test that a nullable field accepts null but must be present."""
        validator = SchemaValidator(
            registry={EntityKind.METADATA: (SchemaVariant("nullable", _NullableRequired),)}
        )

        validator.validate(EntityKind.METADATA, {"value": None})
        with pytest.raises(ValidationError) as exc_info:
            validator.validate(EntityKind.METADATA, {})

        assert exc_info.value.failures["nullable"][0].expected == "required field"

    def test_optional_field_not_nullable(self) -> None:
        """Test that an optional field may be absent but not null."""
        validator = SchemaValidator(
            registry={EntityKind.METADATA: (SchemaVariant("optional", _OptionalNotNull),)}
        )

        validator.validate(EntityKind.METADATA, {})
        with pytest.raises(ValidationError):
            validator.validate(EntityKind.METADATA, {"value": None})

    def test_first_matching_variant_wins(self) -> None:
        """Test that variants are tried in registration order."""
        validator = SchemaValidator(
            registry={
                EntityKind.CONTENT: (
                    SchemaVariant("v2", _Shape),
                    SchemaVariant("v1", _ShapeV1),
                )
            }
        )

        assert validator.validate(EntityKind.CONTENT, {"kind": "a", "size": 1}).variant == "v2"
        assert validator.validate(EntityKind.CONTENT, {"kind": "a"}).variant == "v1"

    def test_variants_lookup(self) -> None:
        """Test that variants() returns them in the order they are tried."""
        tags = [variant.tag for variant in SchemaValidator().variants(EntityKind.ROOT)]
        assert tags == ["root-current", "root-legacy"]

    def test_strictness_flag(self) -> None:
        """Test that permissive is derived from the schema config."""
        assert SchemaVariant("shape", _Shape).permissive is False
        variants = SchemaValidator().variants(EntityKind.DOCUMENT_CONTENT)
        assert all(variant.permissive for variant in variants)
