"""
Tests for DiffEngine scope planning and orphan collection.
"""

import pytest

from mnemorag.models.build import BuildOptions
from mnemorag.models.extraction import ExtractedEntity, ExtractionResult
from mnemorag.models.graph import EntityType
from mnemorag.models.memory import Memory, MemoryFingerprint
from mnemorag.services.diff_engine import DiffEngine
from mnemorag.services.entity_resolver import EntityResolver


def extraction(*names):
    return ExtractionResult(
        entities=[
            ExtractedEntity(
                canonical_name=name,
                entity_type=EntityType.TECHNOLOGY,
                confidence=0.8,
                mention_text=name,
            )
            for name in names
        ]
    )


@pytest.fixture
def diff_engine(graph_store, memory_store):
    return DiffEngine(graph_store, memory_store, extraction_version="v1")


@pytest.fixture
def resolver(graph_store):
    return EntityResolver(graph_store)


@pytest.mark.unit
@pytest.mark.asyncio
class TestPlan:
    """Scope classification."""

    async def test_new_memories_are_processed(self, diff_engine, memory_store):
        await memory_store.upsert_memory(Memory(id="m2", content="Redis"))
        await memory_store.upsert_memory(Memory(id="m1", content="React"))

        plan = await diff_engine.plan(BuildOptions())

        assert [m.id for m in plan.to_process] == ["m1", "m2"]
        assert plan.skipped_ids == []
        assert plan.scope_size == 2

    async def test_unchanged_memory_skipped(self, diff_engine, memory_store):
        memory = await memory_store.upsert_memory(Memory(id="m1", content="React"))
        await diff_engine.mark_processed(memory)

        plan = await diff_engine.plan(BuildOptions())

        assert plan.to_process == []
        assert plan.skipped_ids == ["m1"]

    async def test_edited_memory_reprocessed(self, diff_engine, memory_store):
        memory = await memory_store.upsert_memory(Memory(id="m1", content="React"))
        await diff_engine.mark_processed(memory)
        await memory_store.upsert_memory(Memory(id="m1", content="Redis"))

        plan = await diff_engine.plan(BuildOptions())

        assert [m.id for m in plan.to_process] == ["m1"]

    async def test_extraction_version_bump_reprocesses(self, graph_store, memory_store):
        memory = await memory_store.upsert_memory(Memory(id="m1", content="React"))
        await DiffEngine(graph_store, memory_store, "v1").mark_processed(memory)

        plan = await DiffEngine(graph_store, memory_store, "v2").plan(BuildOptions())

        assert [m.id for m in plan.to_process] == ["m1"]

    async def test_reindex_all_processes_everything(self, diff_engine, memory_store):
        memory = await memory_store.upsert_memory(Memory(id="m1", content="React"))
        await diff_engine.mark_processed(memory)

        plan = await diff_engine.plan(BuildOptions(reindex_all=True))

        assert [m.id for m in plan.to_process] == ["m1"]

    async def test_scope_limits_processing(self, diff_engine, memory_store):
        await memory_store.upsert_memory(Memory(id="m1", content="React"))
        await memory_store.upsert_memory(Memory(id="m2", content="Redis"))

        plan = await diff_engine.plan(BuildOptions(memory_ids=["m2"]))

        assert [m.id for m in plan.to_process] == ["m2"]
        assert plan.scope_size == 1

    async def test_empty_scope_is_empty_plan(self, diff_engine, memory_store):
        await memory_store.upsert_memory(Memory(id="m1", content="React"))

        plan = await diff_engine.plan(BuildOptions(memory_ids=[]))

        assert plan.to_process == []
        assert plan.skipped_ids == []
        assert plan.retired_ids == []

    async def test_deleted_memory_is_retired(self, diff_engine, graph_store):
        await graph_store.save_fingerprint(
            MemoryFingerprint(memory_id="gone", content_hash="sha256:x", extraction_version="v1")
        )

        unscoped = await diff_engine.plan(BuildOptions())
        scoped = await diff_engine.plan(BuildOptions(memory_ids=["gone", "never"]))

        assert unscoped.retired_ids == ["gone"]
        assert scoped.retired_ids == ["gone"]
        assert scoped.skipped_ids == ["gone", "never"]


@pytest.mark.unit
@pytest.mark.asyncio
class TestOrphans:
    """Attribution diffing and orphan deletion."""

    async def test_dropped_mention_orphans_entity(self, diff_engine, resolver, graph_store):
        await resolver.resolve("m1", extraction("React", "Redis"))
        before = await diff_engine.snapshot("m1")
        react = await graph_store.get_entity_by_name("React")
        await graph_store.set_entity_embedding_id(react.id, "graphrag_entity:" + react.id)

        result = await resolver.resolve("m1", extraction("Redis"))
        orphans = await diff_engine.collect_orphans(
            "m1", before, result.entity_ids, result.relationship_ids
        )

        assert [entity.id for entity in orphans.entities] == [react.id]
        assert orphans.entities[0].embedding_id == "graphrag_entity:" + react.id

        await diff_engine.delete_orphans(orphans)
        assert await graph_store.get_entity(react.id) is None

    async def test_shared_entity_survives(self, diff_engine, resolver, graph_store):
        await resolver.resolve("m1", extraction("React"))
        await resolver.resolve("m2", extraction("React"))
        before = await diff_engine.snapshot("m1")

        result = await resolver.resolve("m1", extraction("Redis"))
        orphans = await diff_engine.collect_orphans(
            "m1", before, result.entity_ids, result.relationship_ids
        )

        assert orphans.empty
        react = await graph_store.get_entity_by_name("React")
        assert react.mention_count == 1
        assert await graph_store.get_memory_ids_for_entity(react.id) == ["m2"]

    async def test_retire_removes_attributions_and_fingerprint(
        self, diff_engine, resolver, graph_store
    ):
        await resolver.resolve("m1", extraction("React"))
        await graph_store.save_fingerprint(
            MemoryFingerprint(memory_id="m1", content_hash="sha256:x", extraction_version="v1")
        )

        orphans = await diff_engine.retire("m1")

        assert [entity.canonical_name for entity in orphans.entities] == ["React"]
        assert await graph_store.get_fingerprint("m1") is None
