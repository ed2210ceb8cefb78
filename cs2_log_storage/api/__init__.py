"""HTTP and WebSocket boundary."""

from .app import create_app
from .headers import ChunkHeaders, parse_chunk_headers

__all__ = ["create_app", "ChunkHeaders", "parse_chunk_headers"]
