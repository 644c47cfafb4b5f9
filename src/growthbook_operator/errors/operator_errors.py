"""
Operator error hierarchy with categorization and retry logic.

This module defines the error types used throughout the GrowthBook operator,
providing clear categorization, retry hints and user guidance.
"""

from ..constants import ERROR_DEADLINE_EXCEEDED


class OperatorError(Exception):
    """
    Base error class for all operator-related exceptions.

    Provides categorization, retry behavior, and user guidance for resolution.
    """

    def __init__(
        self,
        message: str,
        category: str,
        retryable: bool = True,
        delay: int = 30,
        user_action: str | None = None,
        cause: Exception | None = None,
    ):
        """
        Initialize operator error.

        Args:
            message: Human-readable error description
            category: Error category (validation, api, configuration, external)
            retryable: Whether kopf should retry this operation
            delay: Suggested retry delay in seconds
            user_action: What user should do to resolve the issue
            cause: Underlying exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.category = category
        self.retryable = retryable
        self.delay = delay
        self.user_action = user_action
        self.cause = cause

    def __str__(self) -> str:
        """Enhanced string representation with user guidance."""
        base_msg = super().__str__()
        if self.user_action:
            return f"{base_msg}\nAction required: {self.user_action}"
        return base_msg


class ValidationError(OperatorError):
    """Error in resource specification validation."""

    def __init__(
        self, message: str, field: str | None = None, user_action: str | None = None
    ):
        action = user_action or "Check resource specification and fix validation errors"
        if field:
            message = f"Validation error in field '{field}': {message}"
        super().__init__(
            message=message, category="validation", retryable=False, user_action=action
        )


class SelectorInvalidError(ValidationError):
    """A label selector could not be evaluated."""

    def __init__(self, message: str):
        super().__init__(
            message=f"invalid label selector: {message}",
            user_action="Fix matchLabels/matchExpressions of the referencing resource",
        )


class TemporaryError(OperatorError):
    """Temporary error that should be retried."""

    def __init__(self, message: str, delay: int = 30, user_action: str | None = None):
        super().__init__(
            message=message,
            category="temporary",
            retryable=True,
            delay=delay,
            user_action=user_action
            or "Wait for automatic retry or check system status",
        )


class ReconcileTimeoutError(TemporaryError):
    """The per-reconcile deadline of an instance was exceeded."""

    def __init__(self):
        super().__init__(
            message=ERROR_DEADLINE_EXCEEDED,
            user_action="Increase spec.timeout or check MongoDB and API server latency",
        )


class ExternalServiceError(OperatorError):
    """Error communicating with external services."""

    def __init__(
        self,
        service: str,
        message: str,
        retryable: bool = True,
        delay: int = 60,
        user_action: str | None = None,
        cause: Exception | None = None,
    ):
        action = user_action or f"Check {service} connectivity and credentials"
        super().__init__(
            message=f"{service} error: {message}",
            category="external",
            retryable=retryable,
            delay=delay,
            user_action=action,
            cause=cause,
        )


class StoreError(ExternalServiceError):
    """Error talking to the GrowthBook MongoDB store."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(
            service="MongoDB",
            message=message,
            user_action="Check spec.mongodb.uri and the MongoDB credentials secret",
            cause=cause,
        )


class KubernetesAPIError(ExternalServiceError):
    """Error communicating with Kubernetes API."""

    def __init__(self, message: str, reason: str | None = None, retryable: bool = True):
        if reason:
            message = f"{message} (reason: {reason})"

        # Some K8s errors are not retryable
        non_retryable_reasons = {"Forbidden", "Unauthorized", "Invalid"}
        if reason in non_retryable_reasons:
            retryable = False

        super().__init__(
            service="Kubernetes API",
            message=message,
            retryable=retryable,
            user_action="Check RBAC permissions and cluster connectivity",
        )


class ResourceNotFoundError(OperatorError):
    """A declared resource referenced by the operator does not exist."""

    def __init__(self, kind: str, namespace: str, name: str):
        super().__init__(
            message=f"{kind} {namespace}/{name} not found",
            category="not_found",
            retryable=True,
            user_action=f"Create {kind} {name} in namespace {namespace}",
        )
        self.kind = kind
        self.namespace = namespace
        self.name = name


class SecretNotFoundError(ResourceNotFoundError):
    """A referenced secret does not exist."""

    def __init__(self, namespace: str, name: str):
        super().__init__(kind="Secret", namespace=namespace, name=name)
        self.message = f"referencing secret {namespace}/{name} was not found"
        self.args = (self.message,)


class FieldMissingError(OperatorError):
    """A required field is absent from a referenced secret."""

    def __init__(self, namespace: str, secret_name: str, field: str):
        super().__init__(
            message=f"defined field '{field}' not found in secret {namespace}/{secret_name}",
            category="configuration",
            retryable=True,
            user_action=f"Add key '{field}' to secret {secret_name} or change the field name",
        )
        self.field = field


class ConfigurationError(OperatorError):
    """Error in operator or resource configuration."""

    def __init__(
        self, message: str, retryable: bool = False, user_action: str | None = None
    ):
        super().__init__(
            message=message,
            category="configuration",
            retryable=retryable,
            user_action=user_action or "Review and correct configuration",
        )


class ReconciliationError(OperatorError):
    """Error raised when reconciliation cannot be completed."""

    def __init__(
        self,
        message: str,
        retryable: bool = True,
        delay: int = 60,
        user_action: str | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(
            message=message,
            category="reconciliation",
            retryable=retryable,
            delay=delay,
            user_action=user_action
            or "Inspect operator logs and resource specification for issues",
            cause=cause,
        )

    @classmethod
    def for_step(cls, step: str, cause: Exception) -> "ReconciliationError":
        """Wrap a sub-reconcile failure with the name of the failing step."""
        detail = cause.message if isinstance(cause, OperatorError) else str(cause)
        return cls(
            message=f"failed reconciling {step}: {detail}",
            retryable=getattr(cause, "retryable", True),
            user_action=getattr(cause, "user_action", None),
            cause=cause,
        )
