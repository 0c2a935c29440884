"""
Abstract base class for community report summarizers.
"""

from abc import ABC, abstractmethod

from pydantic import BaseModel, field_validator

from mnemorag.models.graph import Community, Entity, Relationship


class ReportContent(BaseModel):
    """Narrative fields of a community report, as produced by a summarizer."""

    title: str
    summary: str
    full_content: str
    key_findings: list[str]
    rating: float
    rating_explanation: str

    @field_validator("rating")
    @classmethod
    def _clamp_rating(cls, value: float) -> float:
        return min(10.0, max(0.0, value))


class ReportSummarizer(ABC):
    """Turns a community and its members into a report."""

    @abstractmethod
    async def summarize(
        self,
        community: Community,
        entities: list[Entity],
        relationships: list[Relationship],
    ) -> ReportContent:
        """
        Summarize one community.

        Args:
            community: Community being described
            entities: Member entities, most mentioned first
            relationships: Relationships between members, strongest first

        Returns:
            ReportContent

        Raises:
            LLMError: If the summarizer depends on an LLM that fails
        """
        pass

    async def close(self) -> None:
        """Close any open connections."""
        return None
