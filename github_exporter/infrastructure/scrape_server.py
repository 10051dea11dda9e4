import logging
import socket
import threading
from typing import Optional
from wsgiref.simple_server import WSGIRequestHandler, make_server

from prometheus_client import CollectorRegistry, Counter, Histogram, make_wsgi_app
from prometheus_client.exposition import ThreadingWSGIServer

from github_exporter.application.exposition import SnapshotCollector
from github_exporter.application.metric_cache import MetricCache
from github_exporter.infrastructure.rate_budget import RateBudget

logger = logging.getLogger(__name__)

METRICS_PATH = "/metrics"
HEALTH_PATH = "/healthz"
# Label for every path other than the two served ones
OTHER_PATH = "other"


def build_registry(cache: MetricCache, rate_budget: Optional[RateBudget] = None) -> CollectorRegistry:
    """Registry exposing only the exporter's cached series, read fresh on every scrape."""
    registry = CollectorRegistry(auto_describe=False)
    registry.register(SnapshotCollector(cache.snapshot, rate_budget))
    return registry


def build_app(registry: CollectorRegistry):
    """
    WSGI app serving /metrics from ``registry`` and /healthz, 404 elsewhere.
    Every request is counted and timed into the same registry.
    """
    metrics_app = make_wsgi_app(registry)
    requests_total = Counter(
        "http_requests", "Number of HTTP requests made.", ["status_code", "path"], registry=registry
    )
    request_duration = Histogram(
        "http_request_duration_seconds", "The HTTP request latencies in seconds.", ["path"], registry=registry
    )

    def app(environ, start_response):
        method = environ.get("REQUEST_METHOD", "GET")
        path = environ.get("PATH_INFO") or "/"
        label = path if path in (METRICS_PATH, HEALTH_PATH) else OTHER_PATH
        status = []

        def recording_start_response(status_line, headers, exc_info=None):
            status.append(status_line.split(" ", 1)[0])
            return start_response(status_line, headers, exc_info)

        with request_duration.labels(label).time():
            if method == "GET" and path == METRICS_PATH:
                body = metrics_app(environ, recording_start_response)
            elif method == "GET" and path == HEALTH_PATH:
                recording_start_response("200 OK", [("Content-Type", "text/plain; charset=utf-8")])
                body = [b"OK"]
            else:
                recording_start_response("404 Not Found", [("Content-Type", "text/plain; charset=utf-8")])
                body = [b"Not Found"]

        requests_total.labels(status[0] if status else "500", label).inc()
        return body

    return app


class _LoggingHandler(WSGIRequestHandler):
    def log_message(self, format, *args):
        logger.debug(f"{self.address_string()} {format % args}")


def start_scrape_server(
    cache: MetricCache,
    rate_budget: Optional[RateBudget],
    host: str,
    port: int,
):
    """
    Starts the HTTP listener on a daemon thread.
    Scrapes only read the metric cache and never wait on GitHub.
    """
    family = socket.getaddrinfo(host, port, type=socket.SOCK_STREAM)[0][0]

    class _Server(ThreadingWSGIServer):
        address_family = family

    app = build_app(build_registry(cache, rate_budget))
    server = make_server(host, port, app, server_class=_Server, handler_class=_LoggingHandler)
    thread = threading.Thread(target=server.serve_forever, name="scrape-server", daemon=True)
    thread.start()

    logger.info(f"Serving metrics on http://{host}:{port}{METRICS_PATH}")
    return server, thread
