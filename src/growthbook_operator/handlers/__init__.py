"""
Handlers package - Contains all Kopf event handlers for GrowthBook resources.

This package organizes handlers by resource type:
- instance.py: GrowthbookInstance lifecycle
- watches.py: Child resources and secrets referenced by instances
"""
