"""Prometheus metrics for monitoring"""
from prometheus_client import Counter, Histogram, Gauge, CollectorRegistry, generate_latest

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

quotes_calculated = Counter(
    'pricing_quotes_total',
    'Total pricing breakdowns computed',
    ['source', 'discount_type'],
    registry=registry
)

cache_hits = Counter(
    'cache_hits_total',
    'Total cache hits',
    ['cache'],
    registry=registry
)

cache_misses = Counter(
    'cache_misses_total',
    'Total cache misses',
    ['cache'],
    registry=registry
)

return_state_transitions = Counter(
    'return_state_transitions_total',
    'Return workflow state changes',
    ['from_state', 'to_state'],
    registry=registry
)

booking_status_changes = Counter(
    'booking_status_changes_total',
    'Booking status changes',
    ['from_status', 'to_status'],
    registry=registry
)

workflow_blocked = Counter(
    'workflow_blocked_total',
    'Transitions refused by the return workflow',
    ['kind'],
    registry=registry
)

workflow_bypasses = Counter(
    'workflow_bypasses_total',
    'Operator overrides of the return workflow',
    ['kind'],
    registry=registry
)

rate_limit_exceeded = Counter(
    'rate_limit_exceeded_total',
    'Total rate limit exceeded events',
    ['user_id'],
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

audit_logs_created = Counter(
    'audit_logs_created_total',
    'Total audit logs created',
    ['action'],
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
    return generate_latest(registry).decode('utf-8')
