"""
Transports for the sync service.

- base.py: Transport protocol
- http.py: httpx transport with backoff on transient failures
- memory.py: In-process transport with the same root semantics
"""

from rmraw.transport.base import Transport
from rmraw.transport.http import HttpTransport
from rmraw.transport.memory import MemoryTransport

__all__ = [
    "HttpTransport",
    "MemoryTransport",
    "Transport",
]
