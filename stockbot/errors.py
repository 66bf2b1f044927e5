from __future__ import annotations


class StockbotError(Exception):
    """Base class for failures raised by stockbot collaborators."""


class ConfigurationError(StockbotError):
    """A collaborator credential is missing or still holds a placeholder."""


class UpstreamError(StockbotError):
    """The classifier or catalog call failed or returned an error shape."""


class MalformedResponseError(UpstreamError):
    """The classifier answered, but not with a decodable intent."""

    def __init__(self, message: str, raw: str = "") -> None:
        super().__init__(message)
        self.raw = raw


class PartialDataError(StockbotError):
    """A single per-item lookup failed; the containing search survives."""

    def __init__(self, product_id: str, message: str) -> None:
        super().__init__(f"product={product_id}: {message}")
        self.product_id = product_id
