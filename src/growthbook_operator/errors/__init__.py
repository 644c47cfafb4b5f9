"""
Error handling module for the GrowthBook operator.

This module provides a comprehensive error hierarchy that integrates with kopf
and provides clear categorization for different types of failures.
"""

from .operator_errors import (
    ConfigurationError,
    ExternalServiceError,
    FieldMissingError,
    KubernetesAPIError,
    OperatorError,
    ReconcileTimeoutError,
    ReconciliationError,
    ResourceNotFoundError,
    SecretNotFoundError,
    SelectorInvalidError,
    StoreError,
    TemporaryError,
    ValidationError,
)

__all__ = [
    "OperatorError",
    "ValidationError",
    "SelectorInvalidError",
    "TemporaryError",
    "ReconcileTimeoutError",
    "ExternalServiceError",
    "StoreError",
    "KubernetesAPIError",
    "ResourceNotFoundError",
    "SecretNotFoundError",
    "FieldMissingError",
    "ConfigurationError",
    "ReconciliationError",
]
