#!/usr/bin/env python3
"""
GrowthBook Operator - Main entry point for the Kopf-based GrowthBook operator.

This operator converges the GrowthBook MongoDB store with declared
GrowthbookOrganization, GrowthbookUser, GrowthbookFeature and
GrowthbookClient resources selected by a GrowthbookInstance.

Usage:
    python -m growthbook_operator.operator
    # Or with kopf directly:
    kopf run -m growthbook_operator.operator --all-namespaces

Environment Variables:
    GROWTHBOOK_OPERATOR_NAMESPACES: Comma-separated list of namespaces to watch
    LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
    MAX_CONCURRENT_RECONCILES: Number of instances reconciled concurrently
"""

import logging
import random
import sys

import kopf
from kubernetes import config

# Import all handler modules to register them with kopf
# This is the standard pattern - importing modules registers their decorators
from growthbook_operator.handlers import instance, watches  # noqa: F401
from growthbook_operator.observability.logging import setup_structured_logging
from growthbook_operator.observability.metrics import MetricsServer
from growthbook_operator.services import InstanceReconciler, ReconcileDispatcher
from growthbook_operator.settings import settings as operator_settings
from growthbook_operator.utils.kubernetes import ResourceClient

# Global reference to metrics server for cleanup
_global_metrics_server: MetricsServer | None = None


def configure_logging() -> None:
    """Configure structured logging for the operator based on operator_settings."""
    setup_structured_logging(
        log_level=operator_settings.log_level.upper(),
        enable_json_formatting=operator_settings.json_logs,
        correlation_id_enabled=operator_settings.correlation_ids,
        log_health_probes=operator_settings.log_health_probes,
    )


def get_watched_namespaces() -> list[str] | None:
    """
    Get the list of namespaces to watch from operator_settings.

    Returns:
        List of namespace names, or None to watch all namespaces
    """
    return operator_settings.watched_namespaces


@kopf.on.startup()
async def startup_handler(
    settings: kopf.OperatorSettings, memo: kopf.Memo, **_
) -> None:
    """
    Operator startup configuration.

    This handler runs once when the operator starts up and configures:
    - kopf peering and worker limits
    - Kubernetes client configuration
    - Metrics and health check endpoints
    - The reconcile dispatcher shared by all handlers
    """
    logging.info("Starting GrowthBook Operator...")
    settings.watching.reconnect_backoff = 1.0  # Reconnect delay

    # Configure peering for leader election with random priority
    settings.peering.name = operator_settings.operator_name
    settings.peering.priority = random.randint(0, 32767)
    logging.info(
        f"Peering priority set to {settings.peering.priority} for leader election"
    )

    # Handlers only enqueue work, passes run in the dispatcher
    settings.execution.max_workers = 20

    watched_namespaces = get_watched_namespaces()
    if watched_namespaces:
        logging.info(f"Watching namespaces: {', '.join(watched_namespaces)}")
    else:
        logging.info("Watching all namespaces (cluster-wide mode)")

    # Load Kubernetes configuration if not already loaded
    try:
        config.load_incluster_config()
        logging.info("Loaded in-cluster Kubernetes configuration")
    except config.ConfigException:
        try:
            config.load_kube_config()
            logging.info("Loaded kubeconfig configuration")
        except config.ConfigException:
            logging.error("Failed to load Kubernetes configuration")
            raise

    # Start metrics server for Prometheus scraping and health checks
    try:
        metrics_server = MetricsServer(
            port=operator_settings.metrics_port, host=operator_settings.metrics_host
        )
        await metrics_server.start()
        logging.info(
            f"Metrics and health endpoints available on {operator_settings.metrics_host}:{operator_settings.metrics_port}"
        )

        global _global_metrics_server
        _global_metrics_server = metrics_server

    except Exception as e:
        logging.error(f"Failed to start metrics server: {e}")
        # Don't fail operator startup if metrics server fails
        logging.warning("Continuing without metrics server")

    resource_client = ResourceClient()
    memo.resource_client = resource_client
    memo.dispatcher = ReconcileDispatcher(InstanceReconciler(resource_client))
    logging.info(
        f"Reconcile dispatcher initialized: "
        f"max_concurrent_reconciles={operator_settings.max_concurrent_reconciles}"
    )


@kopf.on.cleanup()
async def cleanup_handler(memo: kopf.Memo, **_) -> None:
    """
    Operator cleanup handler.

    Cancels pending reconcile passes and stops the metrics server.
    """
    logging.info("Shutting down GrowthBook Operator...")

    dispatcher = getattr(memo, "dispatcher", None)
    if dispatcher is not None:
        await dispatcher.close()
        logging.info("Reconcile dispatcher stopped")

    global _global_metrics_server
    if _global_metrics_server:
        try:
            await _global_metrics_server.stop()
            logging.info("Metrics server stopped")
        except Exception as e:
            logging.error(f"Error stopping metrics server: {e}")


@kopf.on.probe(id="healthz")
async def health_check(**_) -> dict[str, str]:
    """
    Health check probe for Kubernetes liveness/readiness checks.

    Returns:
        Dictionary indicating operator health status
    """
    return {"status": "healthy", "operator": operator_settings.operator_name}


def main() -> None:
    """
    Main entry point for the operator.

    This function:
    1. Configures logging
    2. Determines namespace scope
    3. Runs the kopf operator with appropriate settings
    """
    configure_logging()

    watched_namespaces = get_watched_namespaces()
    settings_obj = kopf.OperatorSettings()

    try:
        if watched_namespaces:
            kopf.run(
                namespaces=watched_namespaces,
                liveness_endpoint="http://0.0.0.0:8080/healthz",
                settings=settings_obj,
            )
        else:
            kopf.run(
                clusterwide=True,
                liveness_endpoint="http://0.0.0.0:8080/healthz",
                settings=settings_obj,
            )
    except KeyboardInterrupt:
        logging.info("Received shutdown signal")
        sys.exit(0)
    except Exception as e:
        logging.error(f"Operator failed with error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
