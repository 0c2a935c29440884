"""
Vector Synchronizer - mirrors live entities and reports into the vector store.

Handles:
- Embedding and upserting changed entities and new reports
- Recording the returned vector id as the node's embedding_id
- Deleting vectors of deleted nodes, tolerating already-missing vectors
- Queueing failed deletes in the graph store and retrying them next build
- Retry with exponential backoff for remote calls

The graph store stays the source of truth. Vector failures are logged and
counted, never raised to the build.
"""

import asyncio
from typing import Iterable

from pydantic import BaseModel, Field

from mnemorag.core.embeddings.base import Embedder
from mnemorag.core.graph_store.base import GraphStore
from mnemorag.core.vector_store.base import VectorStore
from mnemorag.models.graph import CommunityReport, Entity
from mnemorag.utils.exceptions import ExternalCollaboratorError, MnemoRAGError, VectorStoreError
from mnemorag.utils.logger import get_logger

logger = get_logger(__name__)

ENTITY_VECTOR_TYPE = "graphrag_entity"
REPORT_VECTOR_TYPE = "graphrag_report"


def entity_vector_id(entity_id: str) -> str:
    return f"{ENTITY_VECTOR_TYPE}:{entity_id}"


def report_vector_id(report_id: str) -> str:
    return f"{REPORT_VECTOR_TYPE}:{report_id}"


def entity_text(entity: Entity) -> str:
    """Searchable profile of an entity."""
    parts = [entity.canonical_name, f"Type: {entity.entity_type.value}"]
    if entity.description:
        parts.append(f"Description: {entity.description}")
    return "\n".join(parts)


def report_text(report: CommunityReport) -> str:
    return f"{report.title}\n\n{report.summary}"


class SyncOutcome(BaseModel):
    succeeded: int = 0
    failed: int = 0
    errors: list[str] = Field(default_factory=list)


class VectorSynchronizer:
    """
    Keeps exactly one vector per live entity and report.

    Vector ids are derived from node ids, so re-indexing a node overwrites
    its previous vector.
    """

    def __init__(
        self,
        graph_store: GraphStore,
        embedder: Embedder,
        vector_store: VectorStore,
        max_retries: int = 3,
        retry_delay: float = 0.5,
        batch_size: int = 32,
    ):
        """
        Initialize synchronizer.

        Args:
            graph_store: Graph database
            embedder: Embedding provider
            vector_store: Vector database
            max_retries: Maximum attempts per remote operation
            retry_delay: Base delay between retries in seconds
            batch_size: Texts per embedding request
        """
        self.graph_store = graph_store
        self.embedder = embedder
        self.vector_store = vector_store
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.batch_size = batch_size

    async def _retry_operation(self, operation, operation_name: str):
        """
        Retry an async operation with exponential backoff.

        Args:
            operation: Async callable to retry
            operation_name: Name for logging

        Returns:
            Result of operation

        Raises:
            ExternalCollaboratorError: If all retries fail
            VectorStoreError: If the operation fails with an unexpected error
        """
        last_error = None

        for attempt in range(self.max_retries):
            try:
                return await operation()
            except ExternalCollaboratorError as e:
                # Remote collaborator errors are retryable
                last_error = e
                if attempt < self.max_retries - 1:
                    delay = self.retry_delay * (2**attempt)
                    logger.bind(
                        operation=operation_name,
                        attempt=attempt + 1,
                        error_type=type(e).__name__,
                    ).warning(
                        f"{operation_name} failed (attempt {attempt + 1}/{self.max_retries}): {e}. "
                        f"Retrying in {delay}s...",
                    )
                    await asyncio.sleep(delay)
                else:
                    logger.bind(
                        operation=operation_name,
                        error=str(e),
                        error_type=type(e).__name__,
                    ).error(
                        f"{operation_name} failed after {self.max_retries} attempts",
                    )
            except MnemoRAGError:
                raise
            except Exception as e:
                # Unexpected errors should not be retried
                logger.bind(
                    operation=operation_name,
                    error=str(e),
                    error_type=type(e).__name__,
                ).error(
                    f"{operation_name} failed with unexpected error: {e}",
                )
                raise VectorStoreError(
                    f"{operation_name} failed: {e}",
                    context={"operation": operation_name, "error_type": type(e).__name__},
                ) from e

        raise last_error

    # ═══════════════════════════════════════════════════════════
    # ENTITIES
    # ═══════════════════════════════════════════════════════════

    async def index_entities(self, entity_ids: Iterable[str]) -> SyncOutcome:
        """
        Embed and upsert the given entities, skipping ids that no longer exist.

        Returns:
            SyncOutcome counting indexed and failed entities
        """
        entities = await self.graph_store.get_entities(sorted(set(entity_ids)))
        outcome = SyncOutcome()

        for batch in self._batches(entities):
            vectors = await self._embed_batch([entity_text(entity) for entity in batch], outcome)
            if vectors is None:
                continue

            for entity, vector in zip(batch, vectors):
                vector_id = entity_vector_id(entity.id)
                payload = {
                    "type": ENTITY_VECTOR_TYPE,
                    "memory_id": vector_id,
                    "entity_id": entity.id,
                    "canonical_name": entity.canonical_name,
                    "entity_type": entity.entity_type.value,
                    "mention_count": entity.mention_count,
                }
                try:
                    stored_id = await self._retry_operation(
                        lambda: self.vector_store.upsert(vector_id, vector, payload),
                        f"Upsert entity vector {vector_id}",
                    )
                except MnemoRAGError as e:
                    outcome.failed += 1
                    outcome.errors.append(f"entity {entity.id}: {e}")
                    continue

                await self.graph_store.set_entity_embedding_id(entity.id, stored_id)
                outcome.succeeded += 1

        self._log_outcome("Indexed entity vectors", outcome)
        return outcome

    async def delete_entity_vectors(self, entities: Iterable[Entity]) -> SyncOutcome:
        """
        Delete vectors of deleted entities.

        Entities without an embedding_id are ignored. A vector that is
        already gone is not a failure but is not counted as deleted either.
        """
        outcome = SyncOutcome()
        for entity in entities:
            if entity.embedding_id:
                await self._delete_vector(entity.embedding_id, outcome)
        self._log_outcome("Deleted entity vectors", outcome)
        return outcome

    # ═══════════════════════════════════════════════════════════
    # REPORTS
    # ═══════════════════════════════════════════════════════════

    async def index_reports(self, reports: Iterable[CommunityReport]) -> SyncOutcome:
        reports = list(reports)
        outcome = SyncOutcome()

        for batch in self._batches(reports):
            vectors = await self._embed_batch([report_text(report) for report in batch], outcome)
            if vectors is None:
                continue

            for report, vector in zip(batch, vectors):
                vector_id = report_vector_id(report.id)
                payload = {
                    "type": REPORT_VECTOR_TYPE,
                    "memory_id": vector_id,
                    "report_id": report.id,
                    "community_id": report.community_id,
                    "title": report.title,
                    "rating": report.rating,
                }
                try:
                    stored_id = await self._retry_operation(
                        lambda: self.vector_store.upsert(vector_id, vector, payload),
                        f"Upsert report vector {vector_id}",
                    )
                except MnemoRAGError as e:
                    outcome.failed += 1
                    outcome.errors.append(f"report {report.id}: {e}")
                    continue

                await self.graph_store.set_report_embedding_id(report.id, stored_id)
                outcome.succeeded += 1

        self._log_outcome("Indexed report vectors", outcome)
        return outcome

    async def delete_report_vectors(self, reports: Iterable[CommunityReport]) -> SyncOutcome:
        outcome = SyncOutcome()
        for report in reports:
            if report.embedding_id:
                await self._delete_vector(report.embedding_id, outcome)
        self._log_outcome("Deleted report vectors", outcome)
        return outcome

    # ═══════════════════════════════════════════════════════════
    # PENDING DELETES
    # ═══════════════════════════════════════════════════════════

    async def retry_pending_deletes(self) -> tuple[SyncOutcome, SyncOutcome]:
        """
        Retry vector deletes that failed in earlier builds.

        Ids stay queued until the vector store confirms the vector is gone.

        Returns:
            (entity outcome, report outcome)
        """
        entities, reports = SyncOutcome(), SyncOutcome()
        for vector_id in await self.graph_store.list_pending_vector_deletes():
            if vector_id.startswith(f"{REPORT_VECTOR_TYPE}:"):
                outcome = reports
            else:
                outcome = entities
            if await self._delete_vector(vector_id, outcome):
                await self.graph_store.clear_vector_delete(vector_id)

        self._log_outcome("Retried pending entity vector deletes", entities)
        self._log_outcome("Retried pending report vector deletes", reports)
        return entities, reports

    # ═══════════════════════════════════════════════════════════
    # HELPERS
    # ═══════════════════════════════════════════════════════════

    def _batches(self, items: list) -> list[list]:
        return [items[i : i + self.batch_size] for i in range(0, len(items), self.batch_size)]

    async def _embed_batch(
        self, texts: list[str], outcome: SyncOutcome
    ) -> list[list[float]] | None:
        try:
            return await self._retry_operation(
                lambda: self.embedder.batch_embed(texts, batch_size=self.batch_size),
                f"Embed {len(texts)} texts",
            )
        except MnemoRAGError as e:
            outcome.failed += len(texts)
            outcome.errors.append(f"embedding batch: {e}")
            return None

    async def _delete_vector(self, vector_id: str, outcome: SyncOutcome) -> bool:
        """
        Delete one vector, queueing it for a later build when the delete fails.

        Returns:
            True if the vector is gone (deleted now or already missing)
        """
        try:
            deleted = await self._retry_operation(
                lambda: self.vector_store.delete(vector_id),
                f"Delete vector {vector_id}",
            )
        except MnemoRAGError as e:
            logger.bind(vector_id=vector_id, error=str(e)).warning(
                f"Failed to delete vector {vector_id}, queued for retry: {e}",
            )
            await self.graph_store.queue_vector_delete(vector_id)
            outcome.failed += 1
            outcome.errors.append(f"delete {vector_id}: {e}")
            return False

        if deleted:
            outcome.succeeded += 1
        return True

    def _log_outcome(self, action: str, outcome: SyncOutcome) -> None:
        if outcome.succeeded or outcome.failed:
            logger.bind(succeeded=outcome.succeeded, failed=outcome.failed).info(
                f"{action}: {outcome.succeeded} succeeded, {outcome.failed} failed",
            )
