"""
Extraction payload models.

Extraction providers return loosely typed JSON. `parse_extraction_payload`
validates it at the boundary into closed models; items that fail validation
are quarantined (logged and counted) rather than passed to the resolver.
"""

from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from mnemorag.models.graph import EntityType
from mnemorag.utils.logger import get_logger

logger = get_logger(__name__)


class ExtractedEntity(BaseModel):
    """One entity mention produced by an extraction provider."""

    model_config = {"extra": "ignore"}

    canonical_name: str = Field(..., description="Normalised entity name")
    entity_type: EntityType = Field(default=EntityType.OTHER)
    description: str | None = Field(default=None)
    confidence: float = Field(..., ge=0.0, le=1.0)
    mention_text: str = Field(default="", description="Surface form in the memory text")

    @field_validator("canonical_name")
    @classmethod
    def _normalise_name(cls, value: str) -> str:
        value = " ".join(value.split())
        if not value:
            raise ValueError("canonical_name cannot be empty")
        return value

    @field_validator("entity_type", mode="before")
    @classmethod
    def _upper_type(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("mention_text", mode="before")
    @classmethod
    def _default_mention(cls, value: Any) -> Any:
        return "" if value is None else value


class ExtractedRelationship(BaseModel):
    """One relationship mention produced by an extraction provider."""

    model_config = {"extra": "ignore"}

    source_entity: str
    target_entity: str
    relationship_type: str = Field(default="RELATED_TO")
    description: str | None = None
    strength: int = Field(..., ge=1, le=10)
    confidence: float = Field(..., ge=0.0, le=1.0)

    @field_validator("source_entity", "target_entity", "relationship_type")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        value = " ".join(value.split())
        if not value:
            raise ValueError("value cannot be empty")
        return value

    @field_validator("relationship_type", mode="after")
    @classmethod
    def _upper_type(cls, value: str) -> str:
        return value.upper().replace(" ", "_")

    @field_validator("strength", mode="before")
    @classmethod
    def _round_strength(cls, value: Any) -> Any:
        # LLMs sometimes emit 7.0 or "7"
        if isinstance(value, str):
            value = float(value)
        if isinstance(value, float):
            return int(round(value))
        return value


class ExtractionResult(BaseModel):
    """Validated extraction output for one memory."""

    entities: list[ExtractedEntity] = Field(default_factory=list)
    relationships: list[ExtractedRelationship] = Field(default_factory=list)
    used_fallback: bool = False
    quarantined: int = Field(default=0, description="Malformed items dropped at the boundary")


class LLMEntity(BaseModel):
    """Entity shape requested from an LLM; ranges are enforced afterwards."""

    canonical_name: str
    entity_type: str
    description: str
    confidence: float
    mention_text: str


class LLMRelationship(BaseModel):
    source_entity: str
    target_entity: str
    relationship_type: str
    description: str
    strength: float
    confidence: float


class EntityExtractionPayload(BaseModel):
    """Structured-output schema requested from an LLM."""

    entities: list[LLMEntity] = Field(default_factory=list)
    relationships: list[LLMRelationship] = Field(default_factory=list)


ENTITY_ALIASES = {
    "canonicalName": "canonical_name",
    "name": "canonical_name",
    "entityType": "entity_type",
    "type": "entity_type",
    "mentionText": "mention_text",
    "mention": "mention_text",
}

RELATIONSHIP_ALIASES = {
    "sourceEntity": "source_entity",
    "source": "source_entity",
    "from": "source_entity",
    "targetEntity": "target_entity",
    "target": "target_entity",
    "to": "target_entity",
    "relationshipType": "relationship_type",
    "type": "relationship_type",
}


def _apply_aliases(payload: dict[str, Any], aliases: dict[str, str]) -> dict[str, Any]:
    # Explicit snake_case keys win over aliases
    normalised = {key: value for key, value in payload.items() if key not in aliases}
    for key, value in payload.items():
        if key in aliases:
            normalised.setdefault(aliases[key], value)
    return normalised


def parse_extraction_payload(
    payload: dict[str, Any] | BaseModel | None,
    min_confidence: float = 0.0,
    used_fallback: bool = False,
) -> ExtractionResult:
    """
    Validate a raw extraction payload into an ExtractionResult.

    Args:
        payload: Dict (or model) with "entities" and "relationships" lists
        min_confidence: Drop items below this confidence (not counted as quarantined)
        used_fallback: Whether the payload came from the heuristic extractor

    Returns:
        ExtractionResult with only well-formed items
    """
    if payload is None:
        return ExtractionResult(used_fallback=used_fallback)
    if isinstance(payload, BaseModel):
        payload = payload.model_dump()
    if not isinstance(payload, dict):
        logger.bind(payload_type=type(payload).__name__).warning(
            "Quarantined extraction payload of unexpected type",
        )
        return ExtractionResult(used_fallback=used_fallback, quarantined=1)

    entities: list[ExtractedEntity] = []
    relationships: list[ExtractedRelationship] = []
    quarantined = 0

    for raw in payload.get("entities") or []:
        try:
            if not isinstance(raw, dict):
                raise TypeError(f"expected object, got {type(raw).__name__}")
            entity = ExtractedEntity.model_validate(_apply_aliases(raw, ENTITY_ALIASES))
        except (PydanticValidationError, TypeError) as e:
            quarantined += 1
            logger.bind(item=str(raw)[:200]).debug(f"Quarantined extracted entity: {e}")
            continue
        if entity.confidence >= min_confidence:
            entities.append(entity)

    for raw in payload.get("relationships") or []:
        try:
            if not isinstance(raw, dict):
                raise TypeError(f"expected object, got {type(raw).__name__}")
            relationship = ExtractedRelationship.model_validate(
                _apply_aliases(raw, RELATIONSHIP_ALIASES)
            )
        except (PydanticValidationError, TypeError) as e:
            quarantined += 1
            logger.bind(item=str(raw)[:200]).debug(
                f"Quarantined extracted relationship: {e}",
            )
            continue
        if relationship.confidence >= min_confidence:
            relationships.append(relationship)

    if quarantined:
        logger.bind(quarantined=quarantined).warning(
            f"Quarantined {quarantined} malformed extraction item(s)",
        )

    return ExtractionResult(
        entities=entities,
        relationships=relationships,
        used_fallback=used_fallback,
        quarantined=quarantined,
    )
