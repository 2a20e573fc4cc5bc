from app.models.user import SubscriptionStatus, User, UserRole  # noqa: F401
from app.models.billing import (  # noqa: F401
    StripeCheckoutSession,
    StripeCustomer,
    StripeInvoice,
    StripePaymentMethod,
    StripePrice,
    StripeSubscription,
    WebhookEvent,
    WebhookEventStatus,
)
from app.models.demo import Demo  # noqa: F401
