"""
Accepted value domains for entity fields.

Every field whose accepted values differ from its plain JSON type is declared
here, with the history of how the domain was widened. Entity schemas refer to
these names instead of restating bounds, so the whole list of server quirks
the validator tolerates can be audited in one place.

| Domain            | Accepts                                   | Widened because                            |
| ----------------- | ----------------------------------------- | ------------------------------------------ |
| Hash              | 64 lowercase hex chars                    |                                            |
| Generation        | integer >= 0                              |                                            |
| SchemaVersion     | 3, 4                                      |                                            |
| Int32             | signed 32-bit integer                     |                                            |
| UInt32            | unsigned 32-bit integer                   |                                            |
| PageIndex         | -1 .. INT32_MAX                           | -1 is "never opened"                       |
| EditCounter       | unsigned 32-bit integer                   | was uint8; counters past 255 were observed |
| Orientation       | "portrait", "landscape", ""               | "" is "never chosen"                       |
| TextAlignment     | "justify", "left", ""                     | "" is "never chosen"                       |
| FileType          | "epub", "notebook", "pdf"                 |                                            |
| ItemType          | "CollectionType", "DocumentType"          |                                            |
| ZoomMode          | "bestFit", "customFit", "fitToHeight", "fitToWidth" |                                  |
| BackgroundFilter  | "off", "fullpage"                         |                                            |
"""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import Field

INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1
UINT32_MAX = 2**32 - 1
UINT8_MAX = 2**8 - 1

Hash = Annotated[str, Field(pattern=r"^[0-9a-f]{64}$")]
Generation = Annotated[int, Field(ge=0)]
SchemaVersion = Literal[3, 4]

Int32 = Annotated[int, Field(ge=INT32_MIN, le=INT32_MAX)]
UInt32 = Annotated[int, Field(ge=0, le=UINT32_MAX)]

# -1: the document has never been opened
PageIndex = Annotated[int, Field(ge=-1, le=INT32_MAX)]

# Historically bounded at UINT8_MAX
EditCounter = UInt32

Orientation = Literal["portrait", "landscape", ""]
TextAlignment = Literal["justify", "left", ""]

FileType = Literal["epub", "notebook", "pdf"]
ItemType = Literal["CollectionType", "DocumentType"]
ZoomMode = Literal["bestFit", "customFit", "fitToHeight", "fitToWidth"]
BackgroundFilter = Literal["off", "fullpage"]
