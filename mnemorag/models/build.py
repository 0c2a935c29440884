"""
Build pass options and results.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class BuildOptions(BaseModel):
    """
    Options for one incremental build pass.

    `memory_ids=None` means every memory in the store; an explicit list
    restricts both processing and orphan collection to those memories.
    """

    model_config = {"extra": "forbid"}

    memory_ids: list[str] | None = Field(default=None, description="Build scope")
    reindex_all: bool = Field(default=False, description="Ignore fingerprints")
    generate_reports: bool = Field(default=False)
    community_levels: int = Field(default=1, ge=1, le=10)

    @field_validator("memory_ids")
    @classmethod
    def _dedupe_ids(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return None
        seen: dict[str, None] = {}
        for memory_id in value:
            if not isinstance(memory_id, str) or not memory_id.strip():
                raise ValueError("memory_ids must be non-empty strings")
            seen.setdefault(memory_id, None)
        return list(seen)


class BuildResult(BaseModel):
    """Structured counters returned by a build pass."""

    entities_extracted: int = 0
    relationships_extracted: int = 0
    entities_merged: int = 0
    relationships_merged: int = 0
    entity_vectors_indexed: int = 0
    entity_vectors_deleted: int = 0
    report_vectors_deleted: int = 0
    memories_processed: int = 0
    memories_skipped: int = 0
    memories_failed: int = 0
    quarantined: int = 0
    communities_detected: int = 0
    reports_generated: int = 0
    report_vectors_indexed: int = 0
    # Vector upserts/deletes that still failed after retries
    vector_failures: int = 0
    community_rebuild_skipped: bool = True
    report_generation_skipped: bool = True
    duration_ms: float = 0.0
    errors: list[str] = Field(default_factory=list)

    @property
    def no_op(self) -> bool:
        return (
            self.memories_processed == 0
            and self.community_rebuild_skipped
            and self.report_generation_skipped
        )

    def summary(self) -> dict:
        """Counters as a flat dict, including the derived `no_op` flag."""
        data = self.model_dump(exclude={"errors"})
        data["no_op"] = self.no_op
        data["error_count"] = len(self.errors)
        return data


class BuildJobStatus(str, Enum):
    """Lifecycle of a queued background build."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class BuildJobResult(BaseModel):
    """Result published by the background build queue."""

    job_id: str
    status: BuildJobStatus
    options: BuildOptions
    result: BuildResult | None = None
    error: str | None = None
    submitted_at: datetime = Field(default_factory=datetime.now)
    finished_at: datetime | None = None
