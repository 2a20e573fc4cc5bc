from app.services.billing.checkout import CheckoutSessions, checkout_sessions
from app.services.billing.customers import Customers, customers
from app.services.billing.invoices import Invoices, invoices
from app.services.billing.payments import PaymentMethods, payment_methods
from app.services.billing.subscriptions import Subscriptions, subscriptions

__all__ = [
    "CheckoutSessions",
    "Customers",
    "Invoices",
    "PaymentMethods",
    "Subscriptions",
    "checkout_sessions",
    "customers",
    "invoices",
    "payment_methods",
    "subscriptions",
]
