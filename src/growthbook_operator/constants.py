"""
Constants used throughout the GrowthBook operator.

This module defines all constant values used by the operator including:
- API group, versions and resource kinds
- Finalizer names for cleanup coordination
- Status condition types and reasons
- GrowthBook store collection names and key material parameters
"""

import logging

# API group of the declared resources
API_GROUP = "growthbook.infra.doodle.com"
API_VERSION = "v1beta1"
API_GROUP_VERSION = f"{API_GROUP}/{API_VERSION}"

# Resource kinds and their plural names
KIND_INSTANCE = "GrowthbookInstance"
KIND_ORGANIZATION = "GrowthbookOrganization"
KIND_USER = "GrowthbookUser"
KIND_FEATURE = "GrowthbookFeature"
KIND_CLIENT = "GrowthbookClient"

PLURAL_INSTANCES = "growthbookinstances"
PLURAL_ORGANIZATIONS = "growthbookorganizations"
PLURAL_USERS = "growthbookusers"
PLURAL_FEATURES = "growthbookfeatures"
PLURAL_CLIENTS = "growthbookclients"

# Finalizer constants for cleanup coordination
# The instance carries the bare domain, children carry "<domain>/<instance>.<namespace>"
FINALIZER = "finalizers.growthbook.infra.doodle.com"

# Condition type constants (following Kubernetes conventions)
CONDITION_READY = "Ready"

# Condition status constants
CONDITION_TRUE = "True"
CONDITION_FALSE = "False"
CONDITION_UNKNOWN = "Unknown"

# Condition reasons
REASON_SYNCHRONIZED = "Synchronized"
REASON_PROGRESSING = "Progressing"
REASON_FAILED = "Failed"

# Status messages
SUCCESS_RECONCILIATION = "instance successfully reconciled"
ERROR_DEADLINE_EXCEEDED = "context deadline exceeded"

# Owner stamped into feature documents and MongoDB application name
OPERATOR_OWNER = "growthbook-operator"

# GrowthBook store collections
COLLECTION_FEATURES = "features"
COLLECTION_ORGANIZATIONS = "organizations"
COLLECTION_USERS = "users"
COLLECTION_SDK_CONNECTIONS = "sdkconnections"
COLLECTION_SDK_PAYLOADS = "sdkpayloads"

# SDK connection key material
SDK_KEY_PREFIX = "sdk-"
SDK_KEY_BYTES = 32
DEFAULT_TOKEN_FIELD = "token"

# Secret reference defaults
DEFAULT_USER_FIELD = "username"
DEFAULT_PASSWORD_FIELD = "password"

# Password hashing parameters, must match the GrowthBook back-end
PASSWORD_SALT_BYTES = 16
PASSWORD_HASH_BYTES = 64
SCRYPT_N = 16384
SCRYPT_R = 8
SCRYPT_P = 1

# Multiplier for the requeue delay after consecutive failed reconciliations
DEFAULT_BACKOFF_FACTOR = 2.0

# Log level for handler entry logging
HANDLER_ENTRY_LOG_LEVEL = logging.INFO
