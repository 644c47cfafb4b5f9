"""Shared logging utilities for kopf handlers.

This module provides common logging functions used across all handler modules
to ensure consistent logging format and behavior.
"""

import logging
from typing import Any

from ..constants import HANDLER_ENTRY_LOG_LEVEL

logger = logging.getLogger(__name__)


def log_handler_entry(
    handler_type: str,
    resource_type: str,
    name: str,
    namespace: str,
    extra: dict[str, Any] | None = None,
) -> None:
    """Log handler invocation at configurable level.

    This provides visibility into which handlers are being called, useful for
    debugging events that do not seem to trigger a reconcile.

    Args:
        handler_type: Type of handler (create, update, delete, resume, event)
        resource_type: Kind of resource (growthbookinstance, secret, ...)
        name: Resource name
        namespace: Resource namespace
        extra: Additional context to include in structured log
    """
    log_extra = {
        "handler_type": handler_type,
        "resource_type": resource_type,
        "resource_name": name,
        "namespace": namespace,
        "handler_phase": "invoked",
    }
    if extra:
        log_extra.update(extra)

    logger.log(
        HANDLER_ENTRY_LOG_LEVEL,
        f"Handler invoked: {handler_type} {resource_type}/{name} in {namespace}",
        extra=log_extra,
    )
