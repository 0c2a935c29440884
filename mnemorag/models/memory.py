"""
Memory record: the raw free-text input to graph extraction.
"""

import hashlib
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class MemoryKind(str, Enum):
    """Kinds of project knowledge a memory can record."""

    DECISION = "decision"
    PATTERN = "pattern"
    NOTE = "note"
    CONVENTION = "convention"
    ISSUE = "issue"


class Memory(BaseModel):
    """
    Stored free-text knowledge record.

    The memory store is the source of truth for memory content; the graph
    only keeps attributions (entity_memories, relationship_sources) and the
    last-processed fingerprint keyed by `id`.
    """

    id: str = Field(..., description="Unique memory ID")
    content: str = Field(..., description="Memory text")
    kind: MemoryKind = Field(default=MemoryKind.NOTE, description="Memory category")
    tags: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict, description="Additional metadata")
    created_at: datetime = Field(default_factory=datetime.now, description="Creation timestamp")
    updated_at: datetime = Field(default_factory=datetime.now, description="Last update timestamp")

    @property
    def content_hash(self) -> str:
        return compute_content_hash(self.content)


class MemoryFingerprint(BaseModel):
    """Last-processed marker for one memory."""

    memory_id: str
    content_hash: str
    extraction_version: str
    processed_at: datetime = Field(default_factory=datetime.now)


def compute_content_hash(content: str) -> str:
    """
    Compute SHA256 hash of content for change detection.

    Content is normalized (stripped) before hashing so whitespace-only edits
    at either end do not trigger reprocessing.

    Args:
        content: Text content to hash

    Returns:
        Hash string in format "sha256:hexdigest"
    """
    normalized = content.strip()
    hash_bytes = hashlib.sha256(normalized.encode("utf-8")).hexdigest()
    return f"sha256:{hash_bytes}"
