"""
Pytest configuration and fixtures for raw store client tests.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Generator
from unittest.mock import patch

import pytest

from rmraw.cache import LRUCache
from rmraw.client import RawStoreClient
from rmraw.config import Settings, clear_settings_cache
from rmraw.transport.memory import MemoryTransport


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test outputs."""
    return tmp_path


@pytest.fixture
def mock_env_vars() -> Generator[dict[str, str], None, None]:
    """Provide mock environment variables for testing."""
    env_vars = {
        "RM_SESSION_TOKEN": "test-session-token-0123456789",
        "RM_RAW_HOST": "https://sync.example.test/",
        "REQUEST_TIMEOUT_SECONDS": "5",
        "TRANSPORT_RETRY_ATTEMPTS": "4",
        "RETRY_BACKOFF_MIN_SECONDS": "0",
        "RETRY_BACKOFF_MAX_SECONDS": "0",
        "CACHE_CAPACITY": "16",
        "LOG_LEVEL": "DEBUG",
    }

    with patch.dict(os.environ, env_vars, clear=False):
        clear_settings_cache()
        yield env_vars


@pytest.fixture
def mock_settings(mock_env_vars: dict[str, str]) -> Generator[Settings, None, None]:
    """Provide a Settings instance with mock configuration."""
    clear_settings_cache()
    from rmraw.config import get_settings

    yield get_settings()
    clear_settings_cache()


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Automatically reset settings cache before and after each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def memory_transport() -> MemoryTransport:
    """An empty in-memory store speaking schema version 3."""
    return MemoryTransport(schema_version=3)


@pytest.fixture
def cache() -> LRUCache:
    """A fresh cache per test."""
    return LRUCache(64)


@pytest.fixture
def client(memory_transport: MemoryTransport, cache: LRUCache) -> RawStoreClient:
    """A client over the in-memory store."""
    return RawStoreClient(memory_transport, cache=cache)


@pytest.fixture
def metadata_payload() -> dict[str, Any]:
    """Metadata of a document at the top level."""
    return {
        "lastModified": "1700000000000",
        "visibleName": "document_1",
        "type": "DocumentType",
        "parent": "",
        "pinned": False,
    }


@pytest.fixture
def folder_metadata_payload() -> dict[str, Any]:
    """Metadata of a folder at the top level."""
    return {
        "lastModified": "1700000000000",
        "visibleName": "collection_1",
        "type": "CollectionType",
        "parent": "",
    }


@pytest.fixture
def document_content_v1() -> dict[str, Any]:
    """Content of a PDF in the older, flat-page-list shape."""
    return {
        "coverPageNumber": 0,
        "documentMetadata": {},
        "extraMetadata": {},
        "fileType": "pdf",
        "fontName": "",
        "lineHeight": -1,
        "margins": 125,
        "orientation": "portrait",
        "pageCount": 1,
        "sizeInBytes": "83",
        "textAlignment": "left",
        "textScale": 1,
        "formatVersion": 1,
        "pages": ["1b3a0b5a-3a94-4e3f-9a0a-8f7f2c1d6e11"],
        "tags": [],
    }


@pytest.fixture
def document_content_v2(document_content_v1: dict[str, Any]) -> dict[str, Any]:
    """Content of a PDF in the current cPages shape."""
    payload = {k: v for k, v in document_content_v1.items() if k != "pages"}
    payload["formatVersion"] = 2
    payload["cPages"] = {
        "lastOpened": {"timestamp": "1:1", "value": "1b3a0b5a-3a94-4e3f-9a0a-8f7f2c1d6e11"},
        "original": {"timestamp": "0:0", "value": -1},
        "pages": [
            {
                "id": "1b3a0b5a-3a94-4e3f-9a0a-8f7f2c1d6e11",
                "idx": {"timestamp": "1:2", "value": "ba"},
            }
        ],
        "uuids": [{"first": "3f1e6d1c-0000-4000-8000-000000000001", "second": 1}],
    }
    return payload
