class CheckoutError(Exception):
    pass


class ValidationError(CheckoutError):
    """Client input is malformed. Nothing was written or sent upstream."""


class UpstreamError(CheckoutError):
    """The payment gateway failed, timed out or answered with a non-2xx."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class PersistenceError(CheckoutError):
    """The order store rejected or could not apply a write."""
