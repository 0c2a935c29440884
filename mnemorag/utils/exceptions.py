"""
Custom exception hierarchy for mnemorag.

Errors fall into three families:
- ValidationError: bad input, rejected before any side effect
- StorageError: graph/memory store failures (constraint violations, dangling refs)
- ExternalCollaboratorError: extraction, embedding, LLM and vector store calls

All exceptions inherit from MnemoRAGError for easy catching.
"""


class MnemoRAGError(Exception):
    """
    Base exception for all mnemorag errors.
    All custom exceptions should inherit from this class.
    """

    def __init__(self, message: str, context: dict | None = None):
        """
        Initialize mnemorag error.
        Args:
            message: Error message
            context: Optional context dictionary with additional error details
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}


class ValidationError(MnemoRAGError):
    """
    Validation errors.
    Raised when build options or extraction payloads are malformed.
    """

    pass


class StorageError(MnemoRAGError):
    """
    Graph and memory store errors.
    Raised on constraint violations (duplicate canonical name, dangling
    relationship endpoint) and on underlying SQLite failures.
    """

    pass


class NotFoundError(MnemoRAGError):
    """
    Resource not found errors.
    Raised when a requested entity, relationship or community doesn't exist.
    """

    pass


class ConfigurationError(MnemoRAGError):
    """
    Configuration errors.
    Raised when configuration is invalid or names an unsupported provider.
    """

    pass


class ExternalCollaboratorError(MnemoRAGError):
    """
    Base for failures of remote collaborators.
    A build logs these and carries on with the rest of its scope.
    """

    pass


class ExtractionError(ExternalCollaboratorError):
    """
    Entity/relationship extraction errors.
    """

    pass


class EmbeddingError(ExternalCollaboratorError):
    """
    Embedding generation errors.
    """

    pass


class LLMError(ExternalCollaboratorError):
    """
    LLM operation errors (API errors, timeouts, unparsable output).
    """

    pass


class VectorStoreError(ExternalCollaboratorError):
    """
    Vector store operation errors.
    """

    pass
