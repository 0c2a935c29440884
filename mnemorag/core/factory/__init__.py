"""
Factory modules for creating mnemorag components.

Provides modular factories for LLM, Embedder, Vector Store, extraction and
report summarization.
"""

from mnemorag.core.factory.embedder_factory import EmbedderFactory
from mnemorag.core.factory.extraction_factory import ExtractorFactory, SummarizerFactory
from mnemorag.core.factory.llm_factory import LLMFactory
from mnemorag.core.factory.vector_factory import VectorStoreFactory

__all__ = [
    "LLMFactory",
    "EmbedderFactory",
    "VectorStoreFactory",
    "ExtractorFactory",
    "SummarizerFactory",
]
