"""
Build Orchestrator - one incremental GraphRAG build pass.

Sequence:
1. Retry vector deletes that failed in earlier builds
2. Resolve scope and retire removed memories (DiffEngine)
3. Extract entities/relationships with bounded concurrency
4. Per memory, in one transaction: resolve, drop stale attributions,
   delete orphans, record the fingerprint
5. Sync entity vectors (index changed, delete orphaned)
6. Rebuild communities when the graph changed
7. Generate missing or stale reports and sync their vectors
"""

import asyncio
import time
import weakref

from pydantic import ValidationError as PydanticValidationError

from mnemorag.config import Config
from mnemorag.core.embeddings.base import Embedder
from mnemorag.core.extraction.base import ExtractionProvider
from mnemorag.core.factory.extraction_factory import ExtractorFactory, SummarizerFactory
from mnemorag.core.graph_store.base import GraphStore
from mnemorag.core.graph_store.sqlite_store import SQLiteGraphStore
from mnemorag.core.memory_store.base import MemoryStore
from mnemorag.core.reports.base import ReportSummarizer
from mnemorag.core.vector_store.base import VectorStore
from mnemorag.models.build import BuildOptions, BuildResult
from mnemorag.models.extraction import ExtractionResult
from mnemorag.models.graph import Entity
from mnemorag.models.memory import Memory
from mnemorag.services.community_detector import CommunityDetector
from mnemorag.services.diff_engine import DiffEngine, OrphanSet
from mnemorag.services.entity_resolver import EntityResolver
from mnemorag.services.report_generator import ReportGenerator
from mnemorag.services.vector_sync import SyncOutcome, VectorSynchronizer
from mnemorag.utils.exceptions import (
    ExternalCollaboratorError,
    MnemoRAGError,
    StorageError,
    ValidationError,
)
from mnemorag.utils.logger import get_logger

logger = get_logger(__name__)

# One lock per shared database handle; builds against the same graph never overlap
_build_locks: "weakref.WeakKeyDictionary[object, asyncio.Lock]" = weakref.WeakKeyDictionary()


def get_build_lock(database: object) -> asyncio.Lock:
    lock = _build_locks.get(database)
    if lock is None:
        lock = _build_locks[database] = asyncio.Lock()
    return lock


class GraphBuildOrchestrator:
    """
    Sequences the diff engine, resolver, detector, report generator and
    vector synchronizer into one build pass.

    Per-memory failures (storage or external collaborator) abort only that
    memory's transaction; the memory stays unprocessed and is retried by
    the next build.

    Example:
        >>> orchestrator = GraphBuildOrchestrator(
        ...     graph_store, memory_store, embedder, vector_store, HeuristicExtractor()
        ... )
        >>> result = await orchestrator.run(BuildOptions(generate_reports=True))
        >>> result.no_op
        False
    """

    def __init__(
        self,
        graph_store: GraphStore,
        memory_store: MemoryStore,
        embedder: Embedder,
        vector_store: VectorStore,
        extractor: ExtractionProvider,
        summarizer: ReportSummarizer | None = None,
        config: Config | None = None,
    ):
        self.config = config or Config()
        self.graph_store = graph_store
        self.memory_store = memory_store
        self.extractor = extractor

        extraction_version = self.config.graph.extraction_version
        self.diff_engine = DiffEngine(graph_store, memory_store, extraction_version)
        self.resolver = EntityResolver(
            graph_store,
            extraction_version,
            name_similarity_threshold=self.config.graph.name_similarity_threshold,
        )
        self.detector = CommunityDetector(
            graph_store,
            resolutions=self.config.build.resolutions,
            max_iterations=self.config.build.max_iterations,
        )
        self.report_generator = ReportGenerator(
            graph_store,
            summarizer or SummarizerFactory.create(self.config),
            prompt_version=self.config.graph.prompt_version,
            max_entities=self.config.reports.max_entities,
            max_relationships=self.config.reports.max_relationships,
        )
        self.vector_sync = VectorSynchronizer(
            graph_store,
            embedder,
            vector_store,
            max_retries=self.config.build.vector_max_retries,
            retry_delay=self.config.build.vector_retry_delay,
            batch_size=self.config.build.embed_batch_size,
        )

    async def run(self, options: BuildOptions) -> BuildResult:
        """
        Run one build pass.

        Callers must serialize builds against the same graph; `build()`
        does so with a per-database lock.

        Returns:
            BuildResult with counters; "nothing to do" is `no_op`, never an error
        """
        started = time.perf_counter()
        result = BuildResult()

        pending_entities, pending_reports = await self.vector_sync.retry_pending_deletes()
        self._apply_outcome(result, pending_entities)
        self._apply_outcome(result, pending_reports)
        result.entity_vectors_deleted += pending_entities.succeeded
        result.report_vectors_deleted += pending_reports.succeeded

        plan = await self.diff_engine.plan(options)
        result.memories_skipped = len(plan.skipped_ids)

        topology_changed = False
        changed_entity_ids: set[str] = set()
        orphaned_entities: list[Entity] = []

        for memory_id in plan.retired_ids:
            try:
                async with self.graph_store.transaction():
                    orphans = await self.diff_engine.retire(memory_id)
                    await self.diff_engine.delete_orphans(orphans)
            except StorageError as e:
                self._record_failure(result, memory_id, e, count_as_skipped=False)
                continue
            orphaned_entities.extend(orphans.entities)
            topology_changed = True

        extractions = await self._extract_all(plan.to_process)

        for memory, extraction in zip(plan.to_process, extractions):
            if isinstance(extraction, BaseException):
                self._record_failure(result, memory.id, extraction)
                continue

            try:
                async with self.graph_store.transaction():
                    before = await self.diff_engine.snapshot(memory.id)
                    resolution = await self.resolver.resolve(memory.id, extraction)
                    orphans = await self.diff_engine.collect_orphans(
                        memory.id, before, resolution.entity_ids, resolution.relationship_ids
                    )
                    await self.diff_engine.delete_orphans(orphans)
                    await self.diff_engine.mark_processed(memory)
            except (StorageError, ExternalCollaboratorError) as e:
                self._record_failure(result, memory.id, e)
                continue

            result.memories_processed += 1
            result.entities_extracted += len(extraction.entities)
            result.relationships_extracted += len(extraction.relationships)
            result.entities_merged += len(resolution.entities_merged)
            result.relationships_merged += len(resolution.relationships_merged)
            result.quarantined += extraction.quarantined

            changed_entity_ids |= resolution.changed_entity_ids
            orphaned_entities.extend(orphans.entities)
            if resolution.topology_changed or not orphans.empty:
                topology_changed = True

        await self._sync_entity_vectors(result, changed_entity_ids, orphaned_entities)

        levels = options.community_levels
        rebuilt = False
        if (
            options.reindex_all
            or topology_changed
            or not await self.detector.hierarchy_matches(levels)
        ):
            replacement = await self.detector.rebuild(levels)
            rebuilt = True
            result.community_rebuild_skipped = False
            result.communities_detected = len(replacement.created_ids) + len(
                replacement.retained_ids
            )
            deleted = await self.vector_sync.delete_report_vectors(replacement.removed_reports)
            self._apply_outcome(result, deleted)
            result.report_vectors_deleted += deleted.succeeded

        if options.generate_reports:
            await self._generate_reports(result, rebuilt)

        result.duration_ms = round((time.perf_counter() - started) * 1000, 2)
        logger.bind(**result.summary()).info(
            f"Build complete: {result.memories_processed} processed, "
            f"{result.memories_skipped} skipped, no_op={result.no_op}",
        )
        return result

    async def _extract_all(
        self, memories: list[Memory]
    ) -> list[ExtractionResult | MnemoRAGError]:
        semaphore = asyncio.Semaphore(self.config.build.max_concurrency)

        async def extract(memory: Memory) -> ExtractionResult:
            async with semaphore:
                return await self.extractor.extract(memory.content)

        outcomes = await asyncio.gather(
            *(extract(memory) for memory in memories), return_exceptions=True
        )
        for outcome in outcomes:
            # Only collaborator failures are per-memory; anything else is a bug
            if isinstance(outcome, BaseException) and not isinstance(outcome, MnemoRAGError):
                raise outcome
        return outcomes

    async def _sync_entity_vectors(
        self, result: BuildResult, changed_entity_ids: set[str], orphaned: list[Entity]
    ) -> None:
        deleted = await self.vector_sync.delete_entity_vectors(orphaned)
        self._apply_outcome(result, deleted)
        result.entity_vectors_deleted += deleted.succeeded

        unindexed = {
            entity.id for entity in await self.graph_store.list_entities() if not entity.embedding_id
        }
        indexed = await self.vector_sync.index_entities(changed_entity_ids | unindexed)
        self._apply_outcome(result, indexed)
        result.entity_vectors_indexed += indexed.succeeded

    async def _generate_reports(self, result: BuildResult, rebuilt: bool) -> None:
        pending = await self.report_generator.communities_needing_reports()
        if not rebuilt and not pending:
            return

        outcome = await self.report_generator.generate_missing(pending)
        result.report_generation_skipped = False
        result.reports_generated = len(outcome.generated)
        result.errors.extend(outcome.errors)

        deleted = await self.vector_sync.delete_report_vectors(outcome.replaced)
        self._apply_outcome(result, deleted)
        result.report_vectors_deleted += deleted.succeeded

        generated_ids = {report.id for report in outcome.generated}
        unindexed = [
            report
            for report in await self.graph_store.list_reports()
            if not report.embedding_id and report.id not in generated_ids
        ]
        indexed = await self.vector_sync.index_reports([*outcome.generated, *unindexed])
        self._apply_outcome(result, indexed)
        result.report_vectors_indexed += indexed.succeeded

    @staticmethod
    def _apply_outcome(result: BuildResult, outcome: SyncOutcome) -> None:
        result.vector_failures += outcome.failed
        result.errors.extend(outcome.errors)

    @staticmethod
    def _record_failure(
        result: BuildResult, memory_id: str, error: BaseException, count_as_skipped: bool = True
    ) -> None:
        logger.bind(
            memory_id=memory_id,
            error=str(error),
            error_type=type(error).__name__,
        ).warning(
            f"Memory {memory_id} left unprocessed: {error}",
        )
        if count_as_skipped:
            result.memories_skipped += 1
            result.memories_failed += 1
        result.errors.append(f"memory {memory_id}: {error}")


async def build(
    options: BuildOptions | dict | None,
    memory_store: MemoryStore,
    embedder: Embedder,
    vector_store: VectorStore,
    *,
    extractor: ExtractionProvider | None = None,
    summarizer: ReportSummarizer | None = None,
    graph_store: GraphStore | None = None,
    config: Config | None = None,
) -> BuildResult:
    """
    Run one serialized build pass over the memory store's database.

    Args:
        options: BuildOptions or an equivalent dict; None means defaults
        memory_store: Source of memories; its database also holds the graph
        embedder: Embedding provider for entity and report vectors
        vector_store: Vector index mirroring the graph
        extractor: Extraction provider (default: built from config)
        summarizer: Report summarizer (default: built from config)
        graph_store: Graph store (default: SQLite on the memory store's handle)
        config: Configuration (default: Config())

    Returns:
        BuildResult

    Raises:
        ValidationError: If options are malformed; raised before any side effect
    """
    config = config or Config()
    try:
        if isinstance(options, BuildOptions):
            options = options.model_dump()
        options = BuildOptions.model_validate(options or {})
    except PydanticValidationError as e:
        raise ValidationError(
            f"Invalid build options: {e}", context={"errors": e.errors(include_url=False)}
        ) from e

    database = await memory_store.get_database()
    if graph_store is None:
        graph_store = SQLiteGraphStore(connection=database)
        await graph_store.initialize()

    owned = []
    if extractor is None:
        extractor = ExtractorFactory.create(config)
        owned.append(extractor)
    if summarizer is None:
        summarizer = SummarizerFactory.create(config)
        owned.append(summarizer)

    orchestrator = GraphBuildOrchestrator(
        graph_store, memory_store, embedder, vector_store, extractor, summarizer, config
    )
    try:
        async with get_build_lock(database):
            return await orchestrator.run(options)
    finally:
        for component in owned:
            await component.close()
