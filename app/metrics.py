from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "path", "status"],
)
REQUEST_ERRORS = Counter(
    "http_request_errors_total",
    "HTTP requests that ended with a 5xx status",
    ["method", "path", "status"],
)

WEBHOOK_EVENTS = Counter(
    "stripe_webhook_events_total",
    "Stripe webhook events by type and outcome",
    ["event_type", "outcome"],
)
DOCUMENT_SYNC = Counter(
    "document_sync_total",
    "Firestore user document writes by outcome",
    ["outcome"],
)
