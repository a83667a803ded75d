"""
AuthCore - Authorization Core for the multi-tenant identity service
"""

__version__ = "1.0.0"
