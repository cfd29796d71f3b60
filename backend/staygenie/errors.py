"""Error taxonomy for the smart search pipeline.

Only failures without a fallback leave the orchestrator; each carries the
pipeline step it came from and the HTTP status the router should answer with.
"""


class SearchPipelineError(Exception):
    """Base class for failures surfaced to the search caller."""

    status_code = 500
    error = "Smart search failed"

    def __init__(self, message: str, step: str | None = None):
        super().__init__(message)
        self.message = message
        self.step = step

    def to_detail(self) -> dict:
        return {"error": self.error, "message": self.message, "step": self.step}


class QueryValidationError(SearchPipelineError):
    """The free-text query could not be turned into complete search parameters."""

    status_code = 400
    error = "Incomplete search parameters"


class UpstreamUnavailable(SearchPipelineError):
    """A collaborator failed and the stage has no fallback."""

    status_code = 502
    error = "Upstream service unavailable"


class NoAvailabilityError(SearchPipelineError):
    status_code = 404
    error = "No available hotels"


class SearchNotFound(SearchPipelineError):
    status_code = 404
    error = "Search not found"

    def __init__(self, search_id: str):
        super().__init__("Search results not found or expired", step="poll")
        self.search_id = search_id


class EnrichmentValidationError(ValueError):
    """Enrichment payload rejected at the cache merge boundary."""
