"""
Prompts for entity extraction and community report generation.
"""

ENTITY_EXTRACTION_SYSTEM_PROMPT = (
    "You are an expert at extracting named entities and their relationships from "
    "project knowledge. Respond with JSON only."
)

ENTITY_EXTRACTION_PROMPT = """Extract all significant entities: people, organizations, technologies, concepts,
locations, events, products.

For each entity provide:
1. canonical_name: The normalized, full name (e.g., "PostgreSQL" not "postgres")
2. entity_type: One of PERSON, ORGANIZATION, TECHNOLOGY, CONCEPT, LOCATION, EVENT, PRODUCT, OTHER
3. description: A brief description based on context (1-2 sentences)
4. confidence: Your confidence in this extraction (0.0-1.0)
5. mention_text: The exact text that mentions this entity

For each relationship between extracted entities provide:
1. source_entity / target_entity: canonical_name of each end
2. relationship_type: e.g. USES, DEPENDS_ON, INTEGRATES_WITH, IMPLEMENTS, CREATED, RELATED_TO
3. description: One sentence describing the relationship
4. strength: 1-10, how strongly the text supports it
5. confidence: 0.0-1.0

IMPORTANT:
- Use canonical names (full, official names)
- Don't extract generic terms like "system" or "user" unless specifically named
- Only relate entities you extracted

TEXT:
{content}"""


COMMUNITY_REPORT_SYSTEM_PROMPT = (
    "You are an expert at summarizing groups of related entities into concise, "
    "factual reports. Respond with JSON only."
)

COMMUNITY_REPORT_PROMPT = """Given a community of entities and their relationships, write a report that:
1. Identifies the main theme binding these entities
2. Highlights key relationships and dependencies
3. Provides actionable insights

ENTITIES:
{entities}

RELATIONSHIPS:
{relationships}

Fields:
- title: descriptive title (5-10 words)
- summary: 2-3 sentence summary
- full_content: 2-4 paragraphs covering theme, key entities, relationships and implications
- key_findings: list of short findings
- rating: importance from 0 to 10
- rating_explanation: one sentence explaining the rating"""


def build_entity_extraction_prompt(content: str) -> str:
    return ENTITY_EXTRACTION_PROMPT.format(content=content)


def build_community_report_prompt(entity_lines: list[str], relationship_lines: list[str]) -> str:
    return COMMUNITY_REPORT_PROMPT.format(
        entities="\n".join(entity_lines) or "(none)",
        relationships="\n".join(relationship_lines) or "(none)",
    )
