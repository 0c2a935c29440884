"""
Regex-based entity extraction.

Used when no LLM is configured, or when LLM extraction fails. Finds well
known technologies and organisations plus capitalised phrases, and relates
entities that co-occur in a sentence.
"""

import re
from collections import Counter

from mnemorag.core.extraction.base import ExtractionProvider
from mnemorag.models.extraction import ExtractedEntity, ExtractedRelationship, ExtractionResult
from mnemorag.models.graph import EntityType
from mnemorag.utils.logger import get_logger

logger = get_logger(__name__)

COMMON_WORDS = frozenset(
    {
        # Articles and pronouns
        "The", "This", "That", "These", "Those", "When", "Where", "What", "Which",
        "Who", "How", "Why", "Here", "There", "Some", "All", "Any", "Each", "Every",
        "Both", "Few", "More", "Most", "Other", "Such",
        # Programming words that look like proper nouns
        "True", "False", "Null", "None", "Error", "Warning", "Info", "Debug",
        "Success", "Failed", "Todo", "Note", "Important",
        # Imperative verbs
        "Create", "Update", "Delete", "Read", "Write", "Add", "Remove", "Get", "Set",
        "Check", "Test", "Run", "Start", "Stop", "Build", "Deploy", "Install",
        "Configure", "Setup", "Use",
        # Days and months
        "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday",
        "January", "February", "March", "April", "May", "June", "July", "August",
        "September", "October", "November", "December",
    }
)  # fmt: skip

TECHNOLOGIES = (
    # Languages
    "JavaScript", "TypeScript", "Python", "Rust", "Go", "Java", "Ruby", "PHP",
    "Swift", "Kotlin", "C++", "C#",
    # Frameworks
    "React", "Vue", "Angular", "Next.js", "Nuxt", "Svelte", "Express", "FastAPI",
    "Django", "Flask", "Spring", "Rails",
    # Databases
    "PostgreSQL", "MySQL", "MongoDB", "Redis", "SQLite", "Elasticsearch",
    "DynamoDB", "Cassandra", "Firebase", "Qdrant",
    # Cloud and infrastructure
    "AWS", "Azure", "GCP", "Kubernetes", "Docker", "Terraform", "Jenkins",
    "GitHub Actions", "Vercel", "Netlify",
    # Tools
    "npm", "yarn", "pnpm", "bun", "pip", "cargo", "maven", "gradle", "webpack", "vite",
)  # fmt: skip

KNOWN_ORGANIZATIONS = (
    "Google", "Microsoft", "Amazon", "Apple", "Meta", "Facebook", "Netflix", "Uber",
    "Airbnb", "Stripe", "OpenAI", "Anthropic", "GitHub", "GitLab", "Atlassian",
    "Slack", "Notion",
)  # fmt: skip

ORG_SUFFIX_PATTERN = re.compile(
    r"\b([A-Z][a-z]+(?:\s+[A-Z][a-z]+)*)\s+(?:Inc|Corp|LLC|Ltd|Company|Technologies|Software|Labs|Studios)\b"
)
CAPITALIZED_PATTERN = re.compile(r"\b([A-Z][a-z]+(?:\s+[A-Z][a-z]+){0,3})\b")
SENTENCE_SPLIT = re.compile(r"[.!?]+")

PERSON_HINTS = ("said", "wrote", "created", "developed", "founded", "led", "managed", "designed")
CONCEPT_HINTS = ("pattern", "principle", "approach", "method", "strategy", "architecture", "design")

MAX_ENTITIES_PER_SENTENCE = 8
MAX_RELATIONSHIPS = 64


def _term_pattern(term: str) -> re.Pattern:
    # Short acronyms like Go, AWS and pip are only trusted in their canonical case
    flags = 0 if len(term) <= 3 else re.IGNORECASE
    return re.compile(rf"(?<![\w.+#]){re.escape(term)}(?![\w+#])", flags)


TECHNOLOGY_PATTERNS = [(term, _term_pattern(term)) for term in TECHNOLOGIES]
ORGANIZATION_PATTERNS = [(term, _term_pattern(term)) for term in KNOWN_ORGANIZATIONS]


def normalize_name(name: str) -> str:
    name = " ".join(name.split())
    return re.sub(r"^the\s+", "", name, flags=re.IGNORECASE)


class HeuristicExtractor(ExtractionProvider):
    """
    Pattern-matching extractor with fixed, low confidences.

    Confidence is 0.6 for known technologies, 0.5 for organisations and
    0.3 for other capitalised phrases.
    """

    async def extract(self, text: str) -> ExtractionResult:
        entities = self.extract_entities(text)
        relationships = self.extract_relationships(entities, text)
        logger.bind(entities=len(entities), relationships=len(relationships)).debug(
            f"Heuristic extraction found {len(entities)} entities, "
            f"{len(relationships)} relationships",
        )
        return ExtractionResult(
            entities=entities, relationships=relationships, used_fallback=True
        )

    def extract_entities(self, text: str) -> list[ExtractedEntity]:
        entities: list[ExtractedEntity] = []
        seen: set[str] = set()

        def add(name: str, entity_type: EntityType, confidence: float, mention: str) -> None:
            key = name.lower()
            if not name or key in seen:
                return
            seen.add(key)
            entities.append(
                ExtractedEntity(
                    canonical_name=name,
                    entity_type=entity_type,
                    confidence=confidence,
                    mention_text=mention,
                )
            )

        for term, pattern in TECHNOLOGY_PATTERNS:
            match = pattern.search(text)
            if match:
                add(term, EntityType.TECHNOLOGY, 0.6, match.group(0))

        for term, pattern in ORGANIZATION_PATTERNS:
            match = pattern.search(text)
            if match:
                add(term, EntityType.ORGANIZATION, 0.5, match.group(0))
        for match in ORG_SUFFIX_PATTERN.finditer(text):
            add(normalize_name(match.group(1)), EntityType.ORGANIZATION, 0.5, match.group(0))

        for match in CAPITALIZED_PATTERN.finditer(text):
            name = match.group(1)
            if name in COMMON_WORDS or name.lower() in seen or len(name) < 4:
                continue
            # Capitalised because it starts a sentence, not because it is a name
            before = match.start() - 2
            if before >= 0 and text[before] in ".!?":
                continue
            add(name, self._guess_entity_type(name, text), 0.3, name)

        return entities

    def extract_relationships(
        self, entities: list[ExtractedEntity], text: str
    ) -> list[ExtractedRelationship]:
        """
        Relate entities mentioned in the same sentence.

        Pairs are ordered by name so (A, B) and (B, A) accumulate together;
        sentences naming more than MAX_ENTITIES_PER_SENTENCE entities are ignored.
        """
        pair_counts: Counter[tuple[str, str]] = Counter()

        for sentence in SENTENCE_SPLIT.split(text):
            lowered = sentence.lower()
            present: dict[str, ExtractedEntity] = {}
            for entity in entities:
                mention = entity.mention_text.lower()
                canonical = entity.canonical_name.lower()
                if len(canonical) < 2:
                    continue
                if canonical in lowered or (len(mention) > 1 and mention in lowered):
                    present.setdefault(canonical, entity)

            if not 2 <= len(present) <= MAX_ENTITIES_PER_SENTENCE:
                continue

            names = [entity.canonical_name for entity in present.values()]
            for i, left in enumerate(names):
                for right in names[i + 1 :]:
                    pair = tuple(sorted((left, right), key=str.casefold))
                    pair_counts[pair] += 1

        # Counter.most_common keeps first-seen order among equal counts
        relationships = []
        for (source, target), count in pair_counts.most_common(MAX_RELATIONSHIPS):
            relationships.append(
                ExtractedRelationship(
                    source_entity=source,
                    target_entity=target,
                    relationship_type="CO_OCCURS_WITH",
                    description="Entities co-mentioned in the same sentence.",
                    strength=min(10, 2 + count),
                    confidence=min(0.9, 0.5 + count * 0.1),
                )
            )
        return relationships

    def _guess_entity_type(self, name: str, text: str) -> EntityType:
        lowered_name = name.lower()
        lowered_text = text.lower()

        index = lowered_text.find(lowered_name)
        if index != -1:
            nearby = lowered_text[max(0, index - 50) : index + len(lowered_name) + 50]
            if any(hint in nearby for hint in PERSON_HINTS):
                return EntityType.PERSON

        if any(hint in lowered_name for hint in CONCEPT_HINTS):
            return EntityType.CONCEPT

        return EntityType.OTHER
