"""
GrowthBook Operator - A Kubernetes operator for GrowthBook.

This operator converges declaratively managed GrowthBook state into the
GrowthBook MongoDB store:
- Organizations with label-selected members
- Users with scrypt password hashes
- Features with per-environment rules
- SDK connections with generated encryption and signing keys
"""

__version__ = "0.1.0"
