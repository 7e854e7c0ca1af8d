"""Prometheus metrics for monitoring"""
from prometheus_client import Counter, Histogram, Gauge, CollectorRegistry

registry = CollectorRegistry()

request_count = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status'],
    registry=registry
)

request_duration = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint'],
    registry=registry
)

cache_hits = Counter(
    'cache_hits_total',
    'Total cache hits',
    ['cache_key'],
    registry=registry
)

cache_misses = Counter(
    'cache_misses_total',
    'Total cache misses',
    ['cache_key'],
    registry=registry
)

rate_limit_exceeded = Counter(
    'rate_limit_exceeded_total',
    'Total rate limit exceeded events',
    ['user_id'],
    registry=registry
)

price_calculations = Counter(
    'price_calculations_total',
    'Total price breakdowns computed',
    ['time_multiplier'],
    registry=registry
)

quotations_submitted = Counter(
    'quotations_submitted_total',
    'Total quotations submitted by transport companies',
    registry=registry
)

quotation_transitions = Counter(
    'quotation_transitions_total',
    'Quotation terminal transitions',
    ['status'],
    registry=registry
)

counter_offer_transitions = Counter(
    'counter_offer_transitions_total',
    'Counter-offer status transitions',
    ['status'],
    registry=registry
)

bookings_bound = Counter(
    'bookings_bound_total',
    'Bookings with a bound final price',
    ['source'],
    registry=registry
)

negotiation_conflicts = Counter(
    'negotiation_conflicts_total',
    'Operations that lost a race or hit a stale precondition',
    ['error'],
    registry=registry
)

expirations_swept = Counter(
    'expirations_swept_total',
    'Records expired by the periodic sweep',
    ['kind'],
    registry=registry
)

webhook_deliveries = Counter(
    'webhook_deliveries_total',
    'Total webhook delivery attempts',
    ['status', 'retry_count'],
    registry=registry
)

webhook_duration = Histogram(
    'webhook_delivery_duration_seconds',
    'Webhook delivery duration in seconds',
    ['status'],
    registry=registry
)

pending_status_events = Gauge(
    'pending_status_events',
    'Status events waiting for delivery after the last dispatch run',
    registry=registry
)

redis_connected = Gauge(
    'redis_connected',
    'Redis connection status (1=connected, 0=disconnected)',
    registry=registry
)

db_connected = Gauge(
    'db_connected',
    'Database connection status (1=connected, 0=disconnected)',
    registry=registry
)


def get_metrics_text() -> str:
    """Generate Prometheus metrics in text format"""
    from prometheus_client import generate_latest
    return generate_latest(registry).decode('utf-8')
