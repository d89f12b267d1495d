"""
Upload part handling for Strix Request.

Provides:
- FilePart: One part of a multipart/form-data body
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import AsyncIterator, Dict, Optional


# ============================================================================
# FilePart
# ============================================================================

@dataclass
class FilePart:
    """
    One part read from a multipart/form-data stream.

    Plain form fields come through with an empty ``filename``; uploaded
    files carry the (sanitized) client filename.
    """

    name: str
    filename: str = ""
    content_type: str = "text/plain"
    headers: Dict[str, str] = field(default_factory=dict)
    content: bytes = b""
    _chunk_size: int = 64 * 1024

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def is_file(self) -> bool:
        """True when the part declares a non-empty filename."""
        return bool(self.filename)

    async def read(self, size: int = -1) -> bytes:
        """
        Read part content.

        Args:
            size: Number of bytes to read (-1 for all)

        Returns:
            Part content as bytes
        """
        if size == -1:
            return self.content
        return self.content[:size]

    async def stream(self, chunk_size: Optional[int] = None) -> AsyncIterator[bytes]:
        """
        Stream part content in chunks.

        Args:
            chunk_size: Size of each chunk

        Yields:
            Content chunks
        """
        chunk_size = chunk_size or self._chunk_size
        for i in range(0, len(self.content), chunk_size):
            yield self.content[i:i + chunk_size]


def sanitize_filename(filename: str) -> str:
    """Sanitize uploaded filename."""
    # Remove path components
    filename = os.path.basename(filename.replace("\\", "/"))

    filename = filename.replace("\x00", "")
    unsafe = ["<", ">", ":", '"', "/", "\\", "|", "?", "*"]
    for char in unsafe:
        filename = filename.replace(char, "_")

    if len(filename) > 255:
        name, ext = os.path.splitext(filename)
        filename = name[:250] + ext

    return filename or "unnamed"
