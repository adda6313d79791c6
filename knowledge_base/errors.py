"""Error taxonomy for remember/recall operations"""


class KnowledgeBaseError(Exception):
    """Base class for knowledge base failures"""

    pass


class ValidationError(KnowledgeBaseError):
    """Raised when remember/recall input is missing or unusable"""

    pass


class EmbeddingProviderError(KnowledgeBaseError):
    """Raised when the embedding provider call fails or returns an unusable payload"""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class PersistenceError(KnowledgeBaseError):
    """Raised when a datastore insert or query fails"""

    pass
