"""Embedding providers for mnemorag."""

from mnemorag.core.embeddings.base import Embedder
from mnemorag.core.embeddings.ollama import OllamaEmbedder
from mnemorag.core.embeddings.openai import OpenAIEmbedder

__all__ = ["Embedder", "OllamaEmbedder", "OpenAIEmbedder"]
