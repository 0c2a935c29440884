"""
Factories for extraction providers and report summarizers.
"""

from mnemorag.config import Config
from mnemorag.core.extraction.base import ExtractionProvider
from mnemorag.core.extraction.heuristic import HeuristicExtractor
from mnemorag.core.extraction.llm_extractor import LLMExtractor
from mnemorag.core.factory.llm_factory import LLMFactory
from mnemorag.core.reports.base import ReportSummarizer
from mnemorag.core.reports.llm_summarizer import LLMSummarizer
from mnemorag.core.reports.statistical import StatisticalSummarizer
from mnemorag.core.tokenizer import Tokenizer
from mnemorag.utils.exceptions import ConfigurationError


class ExtractorFactory:
    """Factory for creating extraction providers from configuration."""

    @staticmethod
    def create(config: Config) -> ExtractionProvider:
        """
        Create the configured extraction provider.

        "heuristic" needs no external service; "llm" builds an LLM provider
        from `config.llm` and keeps the heuristic extractor as fallback.

        Raises:
            ConfigurationError: If provider is not supported
        """
        provider = config.extraction.provider
        if provider == "heuristic":
            return HeuristicExtractor()
        elif provider == "llm":
            return LLMExtractor(
                llm=LLMFactory.create(config.llm),
                tokenizer=Tokenizer(config.tokenizer),
                min_confidence=config.extraction.min_confidence,
                max_content_tokens=config.extraction.max_content_tokens,
                max_tokens=config.llm.max_tokens,
            )
        else:
            raise ConfigurationError(
                f"Unsupported extraction provider: {provider}",
                context={"provider": provider},
            )


class SummarizerFactory:
    """Factory for creating report summarizers from configuration."""

    @staticmethod
    def create(config: Config) -> ReportSummarizer:
        provider = config.reports.provider
        if provider == "statistical":
            return StatisticalSummarizer()
        elif provider == "llm":
            return LLMSummarizer(
                llm=LLMFactory.create(config.llm),
                tokenizer=Tokenizer(config.tokenizer),
                max_tokens=config.llm.max_tokens,
            )
        else:
            raise ConfigurationError(
                f"Unsupported report provider: {provider}",
                context={"provider": provider},
            )
