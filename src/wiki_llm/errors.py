"""Exception taxonomy shared by the indexing and completion paths."""

from __future__ import annotations


class WikiLlmError(Exception):
    """Base class for all domain errors raised by this package."""


class TransportError(WikiLlmError):
    """Network or HTTP-layer failure talking to an external server."""

    def __init__(self, message: str, *, status_code: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class GatewayError(TransportError):
    """Transport failure reported by the vector store gateway."""


class NotFoundError(WikiLlmError):
    """A collection, tenant, database, page or document is absent."""


class CollectionNotFoundError(NotFoundError):
    pass


class PromptNotFoundError(NotFoundError):
    pass


class MalformedInputError(WikiLlmError):
    """Input that cannot be turned into a document identifier."""


class MalformedPathError(MalformedInputError):
    pass


class UnexpectedResponseFormatError(WikiLlmError):
    """A server answered with a payload we cannot interpret."""


class StalenessCheckError(WikiLlmError):
    """Raised inside the staleness check; always treated as "needs update"."""
