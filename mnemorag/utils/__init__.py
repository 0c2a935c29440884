"""Utility modules for mnemorag."""

from mnemorag.utils.exceptions import (
    ConfigurationError,
    EmbeddingError,
    ExternalCollaboratorError,
    ExtractionError,
    LLMError,
    MnemoRAGError,
    NotFoundError,
    StorageError,
    ValidationError,
    VectorStoreError,
)
from mnemorag.utils.id_generator import (
    generate_community_id,
    generate_entity_id,
    generate_job_id,
    generate_relationship_id,
    generate_report_id,
)
from mnemorag.utils.logger import get_logger, setup_logging, setup_logging_from_config

__all__ = [
    # Logging
    "get_logger",
    "setup_logging",
    "setup_logging_from_config",
    # ID Generators
    "generate_entity_id",
    "generate_relationship_id",
    "generate_report_id",
    "generate_community_id",
    "generate_job_id",
    # Exceptions
    "MnemoRAGError",
    "ValidationError",
    "StorageError",
    "NotFoundError",
    "ConfigurationError",
    "ExternalCollaboratorError",
    "ExtractionError",
    "EmbeddingError",
    "LLMError",
    "VectorStoreError",
]
