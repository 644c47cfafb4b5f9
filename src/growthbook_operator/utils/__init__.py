"""
Utils package - Utility modules for GrowthBook operator functionality.

Contains helper modules for:
- Kubernetes resource access
- Label selector evaluation
- Secret credential resolution
- Duration parsing and formatting
"""
