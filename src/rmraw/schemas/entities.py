"""
Entity schemas as TypedDicts.

Required-ness and nullability are separate axes:

    field: T                       required, not nullable
    field: T | None                required, nullable
    field: NotRequired[T]          optional, not nullable
    field: NotRequired[T | None]   optional, nullable

Schemas configured with extra="forbid" reject unknown keys; extra="allow"
marks a schema as permissive (unknown keys are kept, not interpreted).
"""

# Annotations are evaluated eagerly here so that Required/NotRequired are
# visible to both typing_extensions and pydantic.

from pydantic import ConfigDict, with_config
from typing_extensions import Literal, NotRequired, TypedDict

from rmraw.schemas.domains import (
    BackgroundFilter,
    EditCounter,
    FileType,
    Generation,
    Hash,
    Int32,
    ItemType,
    Orientation,
    PageIndex,
    SchemaVersion,
    TextAlignment,
    UInt32,
    ZoomMode,
)

STRICT = ConfigDict(extra="forbid")
PERMISSIVE = ConfigDict(extra="allow")


# Root pointer


@with_config(STRICT)
class RootCurrent(TypedDict):
    hash: Hash
    generation: Generation
    schemaVersion: SchemaVersion


@with_config(STRICT)
class RootLegacy(TypedDict):
    """Root response from servers that predate schemaVersion."""

    hash: Hash
    generation: Generation


@with_config(STRICT)
class RootUpdate(TypedDict):
    hash: Hash
    generation: Generation


# Metadata


@with_config(STRICT)
class Metadata(TypedDict):
    lastModified: str
    visibleName: str
    type: ItemType
    parent: str  # "" for the top level, "trash" for deleted items
    pinned: NotRequired[bool]  # omitted by newer servers
    lastOpened: NotRequired[str]
    lastOpenedPage: NotRequired[PageIndex]
    createdTime: NotRequired[str]
    deleted: NotRequired[bool]
    metadatamodified: NotRequired[bool]
    modified: NotRequired[bool]
    synced: NotRequired[bool]
    version: NotRequired[EditCounter]
    new: NotRequired[bool]
    source: NotRequired[str]


# Content building blocks


@with_config(STRICT)
class Tag(TypedDict):
    name: str
    timestamp: float


@with_config(STRICT)
class PageTag(TypedDict):
    name: str
    pageId: str
    timestamp: float


@with_config(PERMISSIVE)
class DocumentMetadata(TypedDict, total=False):
    authors: list[str]
    title: str
    publicationDate: str
    publisher: str


@with_config(STRICT)
class KeyboardMetadata(TypedDict):
    count: EditCounter
    timestamp: float


@with_config(STRICT)
class CPageStringValue(TypedDict):
    timestamp: str
    value: str


@with_config(STRICT)
class CPageNumberValue(TypedDict):
    timestamp: str
    value: Int32


@with_config(PERMISSIVE)
class CPagePage(TypedDict):
    id: str
    idx: CPageStringValue
    template: NotRequired[CPageStringValue]
    redir: NotRequired[CPageNumberValue]
    scrollTime: NotRequired[CPageStringValue]
    verticalScroll: NotRequired[CPageNumberValue]
    deleted: NotRequired[CPageNumberValue]


@with_config(STRICT)
class CPageUUID(TypedDict):
    first: str
    second: EditCounter


@with_config(PERMISSIVE)
class CPages(TypedDict):
    lastOpened: CPageStringValue
    original: CPageNumberValue
    pages: list[CPagePage]
    uuids: list[CPageUUID]


# Document content. Each variant repeats the common fields because pydantic
# reads the config of each TypedDict class on its own.


@with_config(PERMISSIVE)
class DocumentContentV2(TypedDict):
    """Current shape: page list lives in cPages."""

    coverPageNumber: Int32  # -1: open on the last page
    documentMetadata: DocumentMetadata
    extraMetadata: dict[str, str]
    fileType: FileType
    fontName: str
    lineHeight: Int32  # -1: device default
    margins: UInt32
    orientation: Orientation
    pageCount: UInt32
    sizeInBytes: str
    textAlignment: TextAlignment
    textScale: float
    formatVersion: Literal[2]
    cPages: CPages
    tags: NotRequired[list[Tag]]
    pageTags: NotRequired[list[PageTag]]
    customZoomCenterX: NotRequired[float]
    customZoomCenterY: NotRequired[float]
    customZoomOrientation: NotRequired[Orientation]
    customZoomPageHeight: NotRequired[float]
    customZoomPageWidth: NotRequired[float]
    customZoomScale: NotRequired[float]
    dummyDocument: NotRequired[bool]
    keyboardMetadata: NotRequired[KeyboardMetadata | None]  # null: keyboard never used
    lastOpenedPage: NotRequired[PageIndex]
    originalPageCount: NotRequired[Int32]
    redirectionPageMap: NotRequired[list[Int32]]
    transform: NotRequired[dict[str, float]]
    viewBackgroundFilter: NotRequired[BackgroundFilter | None]  # null: never toggled
    zoomMode: NotRequired[ZoomMode]


@with_config(PERMISSIVE)
class DocumentContentV1(TypedDict):
    """Older shape: flat list of page ids, structured tags."""

    coverPageNumber: Int32
    documentMetadata: DocumentMetadata
    extraMetadata: dict[str, str]
    fileType: FileType
    fontName: str
    lineHeight: Int32
    margins: UInt32
    orientation: Orientation
    pageCount: UInt32
    sizeInBytes: str
    textAlignment: TextAlignment
    textScale: float
    formatVersion: NotRequired[Literal[1]]
    pages: NotRequired[list[str]]
    tags: NotRequired[list[Tag]]
    pageTags: NotRequired[list[PageTag]]
    dummyDocument: NotRequired[bool]
    keyboardMetadata: NotRequired[KeyboardMetadata | None]
    lastOpenedPage: NotRequired[PageIndex]
    originalPageCount: NotRequired[Int32]
    redirectionPageMap: NotRequired[list[Int32]]
    transform: NotRequired[dict[str, float]]
    viewBackgroundFilter: NotRequired[BackgroundFilter | None]
    zoomMode: NotRequired[ZoomMode]


@with_config(PERMISSIVE)
class DocumentContentLegacyTags(TypedDict):
    """Oldest shape: tags as bare strings."""

    coverPageNumber: Int32
    documentMetadata: NotRequired[DocumentMetadata]
    extraMetadata: dict[str, str]
    fileType: FileType
    fontName: str
    lineHeight: Int32
    margins: UInt32
    orientation: Orientation
    pageCount: UInt32
    sizeInBytes: NotRequired[str]
    textAlignment: NotRequired[TextAlignment]
    textScale: float
    formatVersion: NotRequired[Literal[1]]
    pages: NotRequired[list[str]]
    tags: list[str]
    lastOpenedPage: NotRequired[PageIndex]
    transform: NotRequired[dict[str, float]]


# Collection (folder) content


@with_config(STRICT)
class CollectionContent(TypedDict):
    tags: NotRequired[list[Tag]]


@with_config(STRICT)
class CollectionContentLegacyTags(TypedDict):
    tags: list[str]
