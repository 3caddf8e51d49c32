"""Error types raised by the price watch core."""


class PriceWatchError(Exception):
    """Base class for price watch errors."""


class ConfigurationError(PriceWatchError):
    """A required credential or setting is missing or malformed."""


class UpstreamError(PriceWatchError):
    """The product catalog answered with a failure (or not at all)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class DeliveryError(PriceWatchError):
    """The mail transport could not deliver a notification."""


class ValidationError(PriceWatchError):
    """Caller input is malformed; nothing was persisted."""
