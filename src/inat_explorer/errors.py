"""Exception hierarchy for the query pipeline.

Only ``QueryCancelled`` is an expected control path: the retriever turns it
into an aborted outcome. Everything else propagates to the caller.
"""

from __future__ import annotations


class InatExplorerError(Exception):
    """Base class for all errors raised by inat_explorer."""


class QueryCancelled(InatExplorerError):
    """The user asked for the running query to stop."""

    def __init__(self) -> None:
        super().__init__("Query cancelled")


class RetrievalAborted(InatExplorerError):
    """A paged retrieval refused to continue."""


class CeilingExceeded(RetrievalAborted):
    """A result set is larger than the retriever is willing to load."""

    unit = "items"

    def __init__(self, found: int, maximum: int) -> None:
        self.found = found
        self.maximum = maximum
        super().__init__(f"{found} {self.unit} found, maximum is {maximum}")


class ResultLimitExceeded(CeilingExceeded):
    unit = "results"


class PageLimitExceeded(CeilingExceeded):
    unit = "pages"


class TransportFailure(InatExplorerError):
    """HTTP request failed, returned a non-2xx status, or a non-JSON body."""

    def __init__(self, url: str, reason: str, status_code: int | None = None) -> None:
        self.url = url
        self.status_code = status_code
        super().__init__(f"GET {url} failed: {reason}")


class EntityNotFound(InatExplorerError):
    """An entity lookup returned no results."""

    def __init__(self, entity_type: str, entity_id: str | int) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"No {entity_type} found with id {entity_id}")


class StorageFailure(InatExplorerError):
    """The persistent cache could not be read or written."""
