"""Prometheus metrics and the health/readiness HTTP endpoint."""

import json
import threading
import time
from collections.abc import Callable
from datetime import datetime, timezone
from http.server import ThreadingHTTPServer

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram
from prometheus_client.exposition import MetricsHandler

from ingress_dns.logging_config import get_logger

logger = get_logger(__name__)

SyncFinish = Callable[[BaseException | str | None, int, int], None]


class ControllerMetrics:
    """Metrics and readiness state for one controller process.

    Each instance owns its own registry, so several can coexist (tests).
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        self.registry = registry or CollectorRegistry()
        self._ready = threading.Event()

        self.sync_total = Counter(
            "ingress_dns_sync_total",
            "Total number of DNS sync operations performed",
            registry=self.registry,
        )
        self.sync_errors = Counter(
            "ingress_dns_sync_errors_total",
            "Total number of DNS sync errors",
            registry=self.registry,
        )
        self.sync_duration = Histogram(
            "ingress_dns_sync_duration_seconds",
            "Duration of DNS sync operations in seconds",
            registry=self.registry,
        )
        self.dns_records = Gauge(
            "ingress_dns_dns_records",
            "Number of addresses that should be published",
            registry=self.registry,
        )
        self.eligible_nodes = Gauge(
            "ingress_dns_eligible_nodes",
            "Number of eligible Traefik nodes",
            registry=self.registry,
        )
        self.last_sync_time = Gauge(
            "ingress_dns_last_sync_timestamp",
            "Unix timestamp of the last successful sync",
            registry=self.registry,
        )
        self.record_changes = Counter(
            "ingress_dns_record_changes_total",
            "DNS record operations by outcome",
            ["operation"],
            registry=self.registry,
        )

    @property
    def ready(self) -> bool:
        return self._ready.is_set()

    def mark_ready(self) -> None:
        """Mark the controller ready. Only the first call has an effect."""
        if self._ready.is_set():
            return
        self._ready.set()
        logger.info("Application marked as ready")

    def record_sync_start(self) -> SyncFinish:
        """Start timing a sync pass.

        Returns:
            Hook to call once the pass ends with ``(error, address_count, node_count)``
        """
        start = time.monotonic()

        def finish(error, address_count: int, node_count: int) -> None:
            self.sync_total.inc()
            self.sync_duration.observe(time.monotonic() - start)
            self.dns_records.set(address_count)
            self.eligible_nodes.set(node_count)
            if error:
                self.sync_errors.inc()
            else:
                self.last_sync_time.set(time.time())

        return finish

    def record_changes_applied(self, created: int, deleted: int, failed: int) -> None:
        """Count record operations of one pass."""
        if created:
            self.record_changes.labels(operation="create").inc(created)
        if deleted:
            self.record_changes.labels(operation="delete").inc(deleted)
        if failed:
            self.record_changes.labels(operation="failed").inc(failed)


def _status_body(status: str) -> bytes:
    timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    return json.dumps({"status": status, "timestamp": timestamp}).encode()


class MetricsServer:
    """Serves /health, /ready and /metrics from a background thread."""

    def __init__(self, metrics: ControllerMetrics, port: int = 8080, host: str = ""):
        self.metrics = metrics
        self.host = host
        self.port = port
        self._server: ThreadingHTTPServer | None = None
        self._thread: threading.Thread | None = None

    def _handler_class(self):
        metrics = self.metrics
        base = MetricsHandler.factory(metrics.registry)

        class Handler(base):
            def do_GET(self):
                path = self.path.split("?", 1)[0]
                if path == "/health":
                    self._send_json(200, _status_body("healthy"))
                elif path == "/ready":
                    if metrics.ready:
                        self._send_json(200, _status_body("ready"))
                    else:
                        self._send_json(503, _status_body("not ready"))
                elif path == "/metrics":
                    super().do_GET()
                else:
                    self._send_json(404, json.dumps({"error": "not found"}).encode())

            def _send_json(self, code: int, body: bytes) -> None:
                self.send_response(code)
                self.send_header("Content-Type", "application/json")
                self.send_header("Content-Length", str(len(body)))
                self.end_headers()
                self.wfile.write(body)

            def log_message(self, format, *args):
                logger.debug(f"{self.address_string()} {format % args}")

        return Handler

    @property
    def server_port(self) -> int:
        """Bound port (useful when started with port 0)."""
        return self._server.server_address[1] if self._server else self.port

    def start(self) -> None:
        """Bind and serve in a daemon thread."""
        if self._server is not None:
            return
        self._server = ThreadingHTTPServer((self.host, self.port), self._handler_class())
        self._server.daemon_threads = True
        self._thread = threading.Thread(
            target=self._server.serve_forever, name="metrics-server", daemon=True
        )
        self._thread.start()
        logger.info(f"Metrics server listening on :{self.server_port}")

    def stop(self) -> None:
        """Shut the server down."""
        if self._server is None:
            return
        logger.info("Shutting down metrics server...")
        self._server.shutdown()
        self._server.server_close()
        if self._thread:
            self._thread.join(5)
        self._server = None
        self._thread = None
        logger.info("Metrics server stopped")
