"""
Prometheus metrics for the GrowthBook operator.

This module provides metrics collection for monitoring reconcile passes,
GrowthBook store writes and requeue behaviour.
"""

import logging
import time
from contextlib import asynccontextmanager

# aiohttp is provided transitively by kopf, it serves the metrics endpoint
from aiohttp.web import (
    Application,
    AppRunner,
    Request,
    Response,
    TCPSite,
)
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

logger = logging.getLogger(__name__)

# Global metrics registry
_metrics_registry: CollectorRegistry | None = None

# Metrics definitions
RECONCILIATION_TOTAL = Counter(
    "growthbook_operator_reconciliation_total",
    "Total number of reconciliation attempts",
    ["resource_type", "namespace", "name", "result"],
    registry=None,  # Registered in get_metrics_registry
)

RECONCILIATION_DURATION = Histogram(
    "growthbook_operator_reconciliation_duration_seconds",
    "Time spent on reconciliation operations",
    ["resource_type", "namespace", "operation"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
    registry=None,
)

RECONCILIATION_ERRORS = Counter(
    "growthbook_operator_reconciliation_errors_total",
    "Total number of reconciliation errors",
    ["resource_type", "namespace", "error_type", "retryable"],
    registry=None,
)

INSTANCE_READY = Gauge(
    "growthbook_operator_instance_ready",
    "Ready condition of a GrowthbookInstance (1=True, 0=False)",
    ["namespace", "name"],
    registry=None,
)

MANAGED_RESOURCES = Gauge(
    "growthbook_operator_managed_resources",
    "Number of child resources in the instance resource catalog",
    ["namespace", "name"],
    registry=None,
)

STORE_WRITES_TOTAL = Counter(
    "growthbook_operator_store_writes_total",
    "Documents written to the GrowthBook store",
    ["collection", "operation"],
    registry=None,
)

STORE_UPSERTS_UNCHANGED_TOTAL = Counter(
    "growthbook_operator_store_upserts_unchanged_total",
    "Upserts skipped because the merged document was unchanged",
    ["collection"],
    registry=None,
)

REQUEUES_TOTAL = Counter(
    "growthbook_operator_requeues_total",
    "Instance reconciliations scheduled by the dispatcher",
    ["reason"],
    registry=None,
)


def get_metrics_registry() -> CollectorRegistry:
    """Get or create the global metrics registry."""
    global _metrics_registry

    if _metrics_registry is None:
        _metrics_registry = CollectorRegistry()

        for metric in [
            RECONCILIATION_TOTAL,
            RECONCILIATION_DURATION,
            RECONCILIATION_ERRORS,
            INSTANCE_READY,
            MANAGED_RESOURCES,
            STORE_WRITES_TOTAL,
            STORE_UPSERTS_UNCHANGED_TOTAL,
            REQUEUES_TOTAL,
        ]:
            _metrics_registry.register(metric)

    return _metrics_registry


class MetricsCollector:
    """Collects and manages metrics for the GrowthBook operator."""

    def __init__(self):
        self.registry = get_metrics_registry()

    @asynccontextmanager
    async def track_reconciliation(
        self,
        resource_type: str,
        namespace: str,
        name: str,
        operation: str = "reconcile",
    ):
        """
        Context manager to track reconciliation operations.

        Args:
            resource_type: Type of resource being reconciled
            namespace: Namespace of the resource
            name: Name of the resource
            operation: Type of operation being performed
        """
        start_time = time.time()
        result = "unknown"

        try:
            yield
            result = "success"
        except Exception as e:
            result = "error"
            self.record_reconciliation_error(resource_type, namespace, e)
            raise
        finally:
            duration = time.time() - start_time

            RECONCILIATION_TOTAL.labels(
                resource_type=resource_type,
                namespace=namespace,
                name=name,
                result=result,
            ).inc()

            RECONCILIATION_DURATION.labels(
                resource_type=resource_type, namespace=namespace, operation=operation
            ).observe(duration)

    def record_reconciliation_error(
        self, resource_type: str, namespace: str, error: Exception
    ) -> None:
        """Count a failed pass by error type and retryability."""
        retryable = "true" if getattr(error, "retryable", False) else "false"
        RECONCILIATION_ERRORS.labels(
            resource_type=resource_type,
            namespace=namespace,
            error_type=type(error).__name__,
            retryable=retryable,
        ).inc()

    def update_instance_status(
        self, namespace: str, name: str, ready: bool, catalog_size: int
    ) -> None:
        """
        Update readiness and catalog size gauges of an instance.

        Args:
            namespace: Namespace of the instance
            name: Name of the instance
            ready: Whether the Ready condition is True
            catalog_size: Number of entries in the resource catalog
        """
        INSTANCE_READY.labels(namespace=namespace, name=name).set(1 if ready else 0)
        MANAGED_RESOURCES.labels(namespace=namespace, name=name).set(catalog_size)

    def remove_instance(self, namespace: str, name: str) -> None:
        """Drop the gauges of an instance that no longer exists."""
        for gauge in (INSTANCE_READY, MANAGED_RESOURCES):
            try:
                gauge.remove(namespace, name)
            except KeyError:
                pass

    def record_store_write(self, collection: str, operation: str) -> None:
        STORE_WRITES_TOTAL.labels(collection=collection, operation=operation).inc()

    def record_store_unchanged(self, collection: str) -> None:
        STORE_UPSERTS_UNCHANGED_TOTAL.labels(collection=collection).inc()

    def record_requeue(self, reason: str) -> None:
        REQUEUES_TOTAL.labels(reason=reason).inc()


class MetricsServer:
    """HTTP server for exposing Prometheus metrics."""

    def __init__(self, port: int = 8081, host: str = "0.0.0.0"):
        """
        Initialize metrics server.

        Args:
            port: Port to serve metrics on
            host: Host interface to bind to
        """
        self.port = port
        self.host = host
        self.app = Application()
        self.runner: AppRunner | None = None
        self.site: TCPSite | None = None
        self._setup_routes()

    def _setup_routes(self) -> None:
        self.app.router.add_get("/metrics", self._metrics_handler)
        self.app.router.add_get("/healthz", self._healthz_handler)

    async def _metrics_handler(self, request: Request) -> Response:
        """Handle /metrics endpoint for Prometheus scraping."""
        try:
            registry = get_metrics_registry()
            metrics_data = generate_latest(registry)
            return Response(
                body=metrics_data, headers={"Content-Type": CONTENT_TYPE_LATEST}
            )
        except Exception as e:
            logger.error(f"Failed to generate metrics: {e}")
            return Response(
                text=f"Error generating metrics: {type(e).__name__}. Check logs for details.",
                status=500,
            )

    async def _healthz_handler(self, request: Request) -> Response:
        return Response(text="ok")

    async def start(self) -> None:
        """Start the metrics server."""
        self.runner = AppRunner(self.app)
        await self.runner.setup()

        self.site = TCPSite(self.runner, self.host, self.port)
        await self.site.start()

        logger.info(f"Metrics available at http://{self.host}:{self.port}/metrics")

    async def stop(self) -> None:
        """Stop the metrics server."""
        if self.site:
            await self.site.stop()
            self.site = None

        if self.runner:
            await self.runner.cleanup()
            self.runner = None

        logger.info("Metrics server stopped")

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()


# Global metrics collector instance
metrics_collector = MetricsCollector()
