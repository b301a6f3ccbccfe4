"""
errors.py — Domain Error Taxonomy

Services raise these before any write; the API layer maps them onto HTTP
status codes (InvalidInputError → 400, NotFoundError → 404).
"""


class ValuationError(Exception):
    """Base class for errors raised by the valuation & action plan core."""


class InvalidInputError(ValuationError, ValueError):
    """Malformed input: bad classification, negative revenue, low > high range, due date out of window."""


class NotFoundError(ValuationError, LookupError):
    """Unknown company, task, question or multiple row."""

    def __init__(self, entity: str, identifier):
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity} {identifier} not found")


def http_status_for(exc: ValuationError) -> int:
    """HTTP status code the API layer reports for a domain error."""
    if isinstance(exc, NotFoundError):
        return 404
    return 400
