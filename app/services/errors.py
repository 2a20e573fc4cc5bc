"""Domain errors raised by the sync services.

Permanent errors (``retryable = False``) mean replaying the same event will
fail the same way, so the dispatcher dead-letters it instead of asking Stripe
to retry.
"""


class SyncError(Exception):
    code = "sync_error"
    status_code = 422
    retryable = False

    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class IdentityResolutionError(SyncError):
    code = "identity_unresolved"


class UnknownPriceError(SyncError):
    code = "unknown_price"

    def __init__(self, price_id: str | None) -> None:
        super().__init__(
            f"No plan is configured for price {price_id!r}",
            {"price_id": price_id},
        )
        self.price_id = price_id


class DocumentStoreError(SyncError):
    code = "document_store_error"
    status_code = 503
    retryable = True


class StripeNotConfiguredError(SyncError):
    code = "stripe_not_configured"
    status_code = 503
    retryable = True


class StripeApiError(SyncError):
    code = "stripe_api_error"
    status_code = 502
    retryable = True


class MeetingCreationError(SyncError):
    code = "meeting_creation_failed"
    status_code = 502
