"""
Tests for GraphRAGEngine wiring.
"""

from unittest.mock import patch

import pytest

from mnemorag.config import Config
from mnemorag.core.embeddings.ollama import OllamaEmbedder
from mnemorag.core.extraction import HeuristicExtractor
from mnemorag.core.reports import StatisticalSummarizer
from mnemorag.core.vector_store.qdrant import QdrantStore
from mnemorag.models.build import BuildJobStatus, BuildOptions
from mnemorag.models.memory import Memory
from mnemorag.services.graphrag_engine import GraphRAGEngine


@pytest.fixture
def engine_config(tmp_path) -> Config:
    config = Config()
    config.graph.db_path = str(tmp_path / "engine.db")
    config.embedder.dimension = 16
    config.logging.log_to_file = False
    config.build.vector_retry_delay = 0.0
    return config


@pytest.fixture
async def engine(memory_store, graph_store, embedder, vector_store, extractor, test_config):
    engine = GraphRAGEngine(
        memory_store=memory_store,
        graph_store=graph_store,
        embedder=embedder,
        vector_store=vector_store,
        extractor=extractor,
        summarizer=StatisticalSummarizer(),
        config=test_config,
    )
    await engine.initialize()
    yield engine
    await engine.stop_queue()


@pytest.mark.unit
@pytest.mark.asyncio
class TestGraphRAGEngine:
    async def test_from_config_wires_components(self, engine_config):
        with patch("mnemorag.services.graphrag_engine.setup_logging_from_config") as setup:
            engine = await GraphRAGEngine.from_config(engine_config)

        try:
            setup.assert_called_once_with(engine_config.logging)
            assert isinstance(engine.embedder, OllamaEmbedder)
            assert isinstance(engine.vector_store, QdrantStore)
            assert engine.vector_store.vector_size == 16
            assert isinstance(engine.extractor, HeuristicExtractor)
            assert isinstance(engine.summarizer, StatisticalSummarizer)
            assert engine.graph_store.connection is await engine.memory_store.get_database()
        finally:
            await engine.memory_store.close()

    async def test_add_build_and_stats(self, engine):
        await engine.add_memory(Memory(id="m1", content="React integrates with Redis."))

        result = await engine.build(BuildOptions(generate_reports=True))
        stats = await engine.stats()

        assert result.memories_processed == 1
        assert stats.entities == 2
        assert stats.relationships == 1
        assert stats.processed_memories == 1
        assert stats.reports == result.reports_generated

    async def test_delete_then_build_retires(self, engine):
        await engine.add_memory(Memory(id="m1", content="React integrates with Redis."))
        await engine.build()

        assert await engine.delete_memory("m1") is True
        await engine.build()

        assert (await engine.stats()).entities == 0

    async def test_close_releases_components(self, engine):
        await engine.close()

        assert engine.memory_store.connection is None
        assert engine.graph_store.connection is None

    async def test_background_build(self, engine):
        await engine.add_memory(Memory(id="m1", content="Alice deploys Docker."))
        engine.start_queue()

        job_id = await engine.submit_build({"memory_ids": ["m1"]})
        await engine.queue.join()

        outcome = await engine.queue.results.get()
        assert outcome.job_id == job_id
        assert outcome.status == BuildJobStatus.COMPLETED
        assert outcome.result.memories_processed == 1
