"""
Services for mnemorag.

Incremental GraphRAG build pipeline:
- DiffEngine: Scope resolution and orphan detection
- EntityResolver: Merging extracted mentions into canonical entities
- CommunityDetector: Hierarchical Louvain communities
- ReportGenerator: Community report lifecycle
- VectorSynchronizer: Graph/Vector store synchronization
- GraphBuildOrchestrator / build: One build pass
- BuildJobQueue: Single-writer background builds
- GraphRAGEngine: Config-driven wiring of the whole stack
"""

from mnemorag.services.build_orchestrator import GraphBuildOrchestrator, build
from mnemorag.services.build_queue import BuildJobQueue
from mnemorag.services.community_detector import CommunityDetector, louvain_partition
from mnemorag.services.diff_engine import DiffEngine
from mnemorag.services.entity_resolver import EntityResolver
from mnemorag.services.graph_builder import GraphBuilder, WeightedGraph
from mnemorag.services.graphrag_engine import GraphRAGEngine
from mnemorag.services.report_generator import ReportGenerator
from mnemorag.services.vector_sync import VectorSynchronizer

__all__ = [
    "build",
    "GraphBuildOrchestrator",
    "BuildJobQueue",
    "CommunityDetector",
    "louvain_partition",
    "DiffEngine",
    "EntityResolver",
    "GraphBuilder",
    "GraphRAGEngine",
    "WeightedGraph",
    "ReportGenerator",
    "VectorSynchronizer",
]
