"""Entity and relationship extraction providers."""

from mnemorag.core.extraction.base import ExtractionProvider
from mnemorag.core.extraction.heuristic import HeuristicExtractor
from mnemorag.core.extraction.llm_extractor import LLMExtractor

__all__ = ["ExtractionProvider", "HeuristicExtractor", "LLMExtractor"]
