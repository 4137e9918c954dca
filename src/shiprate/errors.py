"""Exception taxonomy shared by the zoning and rating services.

"Nothing found" is never an exception here: a missing DIM factor is ``None`` and a
missing rate is a :class:`~shiprate.models.domain.RateNotFound` value.
"""

from __future__ import annotations


class ValidationError(ValueError):
    """Malformed or missing required input."""


class UnsupportedConversion(ValueError):
    """A unit (or unit pair) the converter does not know."""

    def __init__(self, from_unit: object, to_unit: object, kind: str = "unit") -> None:
        self.from_unit = from_unit
        self.to_unit = to_unit
        super().__init__(f"Unsupported {kind} conversion: {from_unit} to {to_unit}")


class StorageError(ConnectionError):
    """The backing store is unreachable or rejected a commit."""


class RecordNotFound(LookupError):
    """An administrative operation referenced a document that does not exist."""

    def __init__(self, collection: str, doc_id: str) -> None:
        self.collection = collection
        self.doc_id = doc_id
        super().__init__(f"{collection} record '{doc_id}' not found")
