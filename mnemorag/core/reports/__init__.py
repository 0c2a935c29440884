"""Community report summarizers."""

from mnemorag.core.reports.base import ReportContent, ReportSummarizer
from mnemorag.core.reports.llm_summarizer import LLMSummarizer
from mnemorag.core.reports.statistical import StatisticalSummarizer

__all__ = ["ReportContent", "ReportSummarizer", "StatisticalSummarizer", "LLMSummarizer"]
