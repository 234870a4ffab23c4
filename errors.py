"""Exceptions shared by the GeoQuiz import scripts, store and API."""


class GeoQuizError(Exception):
    """Base class for GeoQuiz errors."""


class ConfigurationError(GeoQuizError):
    """Required configuration is missing or malformed; the run cannot start."""


class StoreError(GeoQuizError):
    """The persistence layer rejected a write."""


class PayloadTooLargeError(StoreError):
    """A document exceeds the store's per-document size limit."""

    def __init__(self, collection: str, size: int, limit: int):
        self.collection = collection
        self.size = size
        self.limit = limit
        super().__init__(
            f"Document in '{collection}' is too large: {size} bytes (limit {limit} bytes)"
        )
