"""
Report summarizer that needs no LLM.
"""

from collections import Counter

from mnemorag.core.reports.base import ReportContent, ReportSummarizer
from mnemorag.models.graph import Community, Entity, EntityType, Relationship

TOP_ENTITIES = 5


class StatisticalSummarizer(ReportSummarizer):
    """
    Describes a community by its dominant entity type and most mentioned members.
    """

    async def summarize(
        self,
        community: Community,
        entities: list[Entity],
        relationships: list[Relationship],
    ) -> ReportContent:
        count = len(entities)
        type_counts = Counter(entity.entity_type.value for entity in entities)
        dominant = type_counts.most_common(1)[0][0] if type_counts else EntityType.OTHER.value
        top = sorted(entities, key=lambda e: (-e.mention_count, e.canonical_name.lower()))[
            :TOP_ENTITIES
        ]
        top_names = ", ".join(entity.canonical_name for entity in top)

        breakdown = "\n".join(
            f"- {entity_type}: {type_count}"
            for entity_type, type_count in sorted(type_counts.items())
        )
        top_lines = "\n".join(
            f"- {entity.canonical_name} ({entity.entity_type.value}, "
            f"{entity.mention_count} mentions)"
            for entity in top
        )

        key_findings = [
            f"Contains {count} entities",
            f"Dominated by {dominant.lower()} entities",
        ]
        if top:
            key_findings.append(f"Most mentioned: {top[0].canonical_name}")

        return ReportContent(
            title=f"{dominant} Community ({count} entities)",
            summary=(
                f"A community of {count} entities, primarily {dominant.lower()}s. "
                f"Key entities include {top_names}."
            ),
            full_content=(
                f"Level {community.level} community with {count} entities and "
                f"{len(relationships)} internal relationships.\n\n"
                f"Entity types:\n{breakdown}\n\nTop entities:\n{top_lines}"
            ),
            key_findings=key_findings,
            rating=5.0,
            rating_explanation="Auto-generated report (LLM unavailable)",
        )
