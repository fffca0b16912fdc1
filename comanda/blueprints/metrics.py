"""
Prometheus metrics blueprint.

/metrics exposes HTTP request metrics plus the order, invoice and
notification counters the services increment. It is unauthenticated: keep it
on the monitoring network.
"""
from flask import Blueprint, Response, request, g
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CollectorRegistry, CONTENT_TYPE_LATEST
from prometheus_client import multiprocess, REGISTRY
import time
import os

metrics_bp = Blueprint('metrics', __name__)

# Gunicorn workers share samples through PROMETHEUS_MULTIPROC_DIR
MULTIPROCESS_MODE = os.environ.get('PROMETHEUS_MULTIPROC_DIR') is not None

if MULTIPROCESS_MODE:
    registry = CollectorRegistry()
    multiprocess.MultiProcessCollector(registry)
    _register_into = None
else:
    registry = REGISTRY
    _register_into = REGISTRY

http_requests_total = Counter(
    'comanda_http_requests_total',
    'HTTP requests by route and status',
    ['method', 'route', 'http_status'],
    registry=_register_into
)

http_request_duration_seconds = Histogram(
    'comanda_http_request_duration_seconds',
    'HTTP request latency by route',
    ['method', 'route'],
    registry=_register_into,
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0)
)

http_requests_in_flight = Gauge(
    'comanda_http_requests_in_flight',
    'Requests currently being served',
    registry=_register_into
)

orders_created_total = Counter(
    'comanda_orders_created_total',
    'Orders opened on a table',
    registry=_register_into
)

invoices_issued_total = Counter(
    'comanda_invoices_issued_total',
    'Invoices issued (one per split on split checkouts)',
    registry=_register_into
)

event_publish_failures_total = Counter(
    'comanda_event_publish_failures_total',
    'Notifications that could not be delivered after commit',
    ['topic'],
    registry=_register_into
)


def _route_label():
    # Route template keeps label cardinality bounded (/orders/<int:order_id>)
    return request.url_rule.rule if request.url_rule else 'unmatched'


def setup_metrics_instrumentation(app):
    """Time every request and count it by route and status."""

    @app.before_request
    def start_request_timer():
        g._metrics_started = time.perf_counter()
        g._metrics_in_flight = True
        http_requests_in_flight.inc()

    @app.after_request
    def record_request(response):
        started = g.pop('_metrics_started', None)
        if started is not None:
            try:
                route = _route_label()
                http_request_duration_seconds.labels(request.method, route).observe(time.perf_counter() - started)
                http_requests_total.labels(request.method, route, response.status_code).inc()
            except ValueError as e:
                app.logger.warning(f"[METRICS] sample not recorded: {e}")
        return response

    @app.teardown_request
    def release_in_flight(exception=None):
        if g.pop('_metrics_in_flight', False):
            http_requests_in_flight.dec()


@metrics_bp.route('/metrics')
def metrics():
    return Response(generate_latest(registry), mimetype=CONTENT_TYPE_LATEST)
