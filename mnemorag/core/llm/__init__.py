"""LLM providers for mnemorag."""

from mnemorag.core.llm.base import LLMProvider
from mnemorag.core.llm.ollama import OllamaLLM
from mnemorag.core.llm.openai import OpenAILLM

__all__ = ["LLMProvider", "OllamaLLM", "OpenAILLM"]
