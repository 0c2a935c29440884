"""
GraphRAG Engine - wires stores, providers and the build pipeline from one Config.
"""

from mnemorag.config import Config
from mnemorag.core.embeddings.base import Embedder
from mnemorag.core.extraction.base import ExtractionProvider
from mnemorag.core.factory import (
    EmbedderFactory,
    ExtractorFactory,
    SummarizerFactory,
    VectorStoreFactory,
)
from mnemorag.core.graph_store.sqlite_store import SQLiteGraphStore
from mnemorag.core.memory_store.sqlite_store import SQLiteMemoryStore
from mnemorag.core.reports.base import ReportSummarizer
from mnemorag.core.vector_store.base import VectorStore
from mnemorag.models.build import BuildOptions, BuildResult
from mnemorag.models.graph import GraphStats
from mnemorag.models.memory import Memory
from mnemorag.services.build_orchestrator import build
from mnemorag.services.build_queue import BuildJobQueue
from mnemorag.utils.logger import get_logger, setup_logging_from_config

logger = get_logger(__name__)


class GraphRAGEngine:
    """
    Unified entry point for memories and the graph derived from them.

    Memory writes go straight to the memory store; the graph only changes
    when a build runs, either inline through `build()` or in the background
    through `submit_build()`.

    Example:
        >>> engine = await GraphRAGEngine.from_config(Config.from_env())
        >>> await engine.initialize()
        >>> await engine.add_memory(Memory(id="m1", content="React integrates with Redis."))
        >>> result = await engine.build(BuildOptions(generate_reports=True))
        >>> await engine.close()
    """

    def __init__(
        self,
        memory_store: SQLiteMemoryStore,
        graph_store: SQLiteGraphStore,
        embedder: Embedder,
        vector_store: VectorStore,
        extractor: ExtractionProvider,
        summarizer: ReportSummarizer,
        config: Config,
    ):
        self.memory_store = memory_store
        self.graph_store = graph_store
        self.embedder = embedder
        self.vector_store = vector_store
        self.extractor = extractor
        self.summarizer = summarizer
        self.config = config
        self.queue = BuildJobQueue(self.build)

    @classmethod
    async def from_config(cls, config: Config | None = None) -> "GraphRAGEngine":
        """
        Create every component from configuration.

        Args:
            config: Configuration (default: Config.from_env())

        Returns:
            Engine that still needs initialize()

        Raises:
            ConfigurationError: If a provider is unsupported or misconfigured
            EmbeddingError: If the embedding dimension cannot be detected
        """
        config = config or Config.from_env()
        setup_logging_from_config(config.logging)

        logger.info(
            f"Configuration: LLM={config.llm.provider}/{config.llm.model}, "
            f"Embedder={config.embedder.provider}/{config.embedder.model}, "
            f"Extraction={config.extraction.provider}, Reports={config.reports.provider}"
        )

        memory_store = SQLiteMemoryStore(config.graph.db_path)
        graph_store = SQLiteGraphStore(connection=await memory_store.get_database())

        embedder = EmbedderFactory.create(config.embedder)
        vector_size = await EmbedderFactory.get_dimension(embedder, config.embedder)
        logger.info(f"Embedding dimension: {vector_size}")
        vector_store = VectorStoreFactory.create(config.qdrant, vector_size)

        return cls(
            memory_store=memory_store,
            graph_store=graph_store,
            embedder=embedder,
            vector_store=vector_store,
            extractor=ExtractorFactory.create(config),
            summarizer=SummarizerFactory.create(config),
            config=config,
        )

    async def initialize(self) -> None:
        """Create schemas and the vector collection."""
        await self.memory_store.initialize()
        await self.graph_store.initialize()
        await self.vector_store.initialize()
        logger.bind(db_path=self.config.graph.db_path).info(
            "GraphRAG engine ready",
        )

    # ═══════════════════════════════════════════════════════════
    # MEMORIES
    # ═══════════════════════════════════════════════════════════

    async def add_memory(self, memory: Memory) -> Memory:
        return await self.memory_store.upsert_memory(memory)

    async def delete_memory(self, memory_id: str) -> bool:
        """Delete a memory; its graph attributions are retired by the next unscoped build."""
        return await self.memory_store.delete_memory(memory_id)

    # ═══════════════════════════════════════════════════════════
    # BUILDS
    # ═══════════════════════════════════════════════════════════

    async def build(self, options: BuildOptions | dict | None = None) -> BuildResult:
        return await build(
            options,
            self.memory_store,
            self.embedder,
            self.vector_store,
            extractor=self.extractor,
            summarizer=self.summarizer,
            graph_store=self.graph_store,
            config=self.config,
        )

    def start_queue(self) -> None:
        self.queue.start()

    async def submit_build(self, options: BuildOptions | dict | None = None) -> str:
        """Queue a background build; the outcome is published on `queue.results`."""
        return await self.queue.submit(options)

    async def stop_queue(self) -> None:
        await self.queue.stop()

    async def stats(self) -> GraphStats:
        return await self.graph_store.get_stats()

    async def close(self) -> None:
        """Stop background builds and close every component."""
        await self.stop_queue()
        await self.extractor.close()
        await self.summarizer.close()
        await self.embedder.close()
        await self.vector_store.close()
        await self.graph_store.close()
        await self.memory_store.close()
        logger.info("GraphRAG engine closed")
